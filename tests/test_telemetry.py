"""Tests for parsing the device status string."""

from __future__ import annotations

from dsul.config import Settings
from dsul.telemetry import HardwareTelemetry, parse_telemetry

FULL = "v001.002.003ll016lb000:150cc255000000cb100cm002cd1#"


class TestParseTelemetry:
    def test_full_status(self):
        info = parse_telemetry(FULL)
        assert info.version == "1.2.3"
        assert info.led_count == 16
        assert (info.brightness_min, info.brightness_max) == (0, 150)
        assert info.current_color == "255:0:0"
        assert info.current_brightness == 100
        assert info.current_mode == 2
        assert info.current_dim == 1
        assert info.raw == FULL

    def test_empty_string_leaves_everything_absent(self):
        info = parse_telemetry("")
        assert info == HardwareTelemetry(raw="")
        assert info.brightness_min is None
        assert info.version is None

    def test_fields_are_independent(self):
        info = parse_telemetry("cm004xxlb005:090")
        assert info.current_mode == 4
        assert (info.brightness_min, info.brightness_max) == (5, 90)
        assert info.led_count is None
        assert info.current_color is None

    def test_explicit_zero_differs_from_absent(self):
        info = parse_telemetry("cb000cd0")
        assert info.current_brightness == 0
        assert info.current_dim == 0
        assert info.current_mode is None

    def test_two_digit_color_groups_not_matched(self):
        assert parse_telemetry("cc255000").current_color is None


class TestApplyBounds:
    def test_reported_bounds_replace_configured(self):
        settings = Settings()
        assert parse_telemetry("lb010:120#").apply_bounds(settings) == (10, 120)
        assert (settings.brightness_min, settings.brightness_max) == (10, 120)

    def test_absent_bounds_keep_configured(self):
        settings = Settings()
        assert parse_telemetry("v001.000.000#").apply_bounds(settings) == (0, 150)

    def test_zero_maximum_is_ignored(self):
        settings = Settings()
        assert parse_telemetry("lb005:000#").apply_bounds(settings) == (5, 150)
