"""Tests for the ``dsuld`` / ``dsulc`` command-line front ends."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from dsul import cli
from dsul.config import Settings
from dsul.telemetry import parse_telemetry


@pytest.fixture()
def config_path(tmp_path):
    return tmp_path / "dsul.yml"


class TestDaemonParser:
    def test_defaults(self):
        args = cli.build_daemon_parser().parse_args([])
        assert not args.network
        assert args.comport is None

    @pytest.mark.parametrize("baud", ["300", "230400", "fast"])
    def test_baudrate_out_of_range(self, baud):
        with pytest.raises(SystemExit):
            cli.build_daemon_parser().parse_args(["-b", baud])

    def test_empty_password_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_daemon_parser().parse_args(["-p", ""])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.build_daemon_parser().parse_args(["-v"])
        assert exc.value.code == 0
        assert "dsuld v0.1.0" in capsys.readouterr().out


class TestDaemonMain:
    def test_overrides_reach_daemon(self, config_path):
        with patch("dsul.cli.run_daemon") as run, patch("dsul.cli.asyncio.run"):
            code = cli.daemon_main(
                ["--config", str(config_path), "-c", "/dev/ttyACM1", "-b", "9600", "-n", "-p", "pw"]
            )
        assert code == 0
        settings = run.call_args.args[0]
        assert settings.serial.port == "/dev/ttyACM1"
        assert settings.serial.baudrate == 9600
        assert settings.network.listen
        assert settings.password == "pw"

    def test_bad_config_exits_1(self, tmp_path):
        path = tmp_path / "dsul.yml"
        path.write_text("brightness_max: lots\n")
        assert cli.daemon_main(["--config", str(path)]) == 1


class TestClientMain:
    def test_no_action_prints_usage(self, config_path, capsys):
        assert cli.client_main(["--config", str(config_path)]) == 1
        assert "usage" in capsys.readouterr().err.lower()

    def test_unknown_color_rejected(self, config_path):
        with pytest.raises(SystemExit):
            cli.client_main(["--config", str(config_path), "-c", "chartreuse"])

    def test_unknown_mode_rejected(self, config_path):
        with pytest.raises(SystemExit):
            cli.client_main(["--config", str(config_path), "-m", "disco"])

    @pytest.mark.parametrize("mode", ["0", "5"])
    def test_mode_ordinal_out_of_range_rejected(self, config_path, mode):
        with pytest.raises(SystemExit):
            cli.client_main(["--config", str(config_path), "-m", mode])

    def test_mode_ordinal_accepted(self, config_path):
        with patch("dsul.cli._run_client") as run, patch("dsul.cli.asyncio.run"):
            assert cli.client_main(["--config", str(config_path), "-m", "2"]) == 0
        _, commands = run.call_args.args
        assert [(c.key.value, c.value) for c in commands] == [("mode", "2")]

    def test_brightness_out_of_range_rejected(self, config_path):
        with pytest.raises(SystemExit):
            cli.client_main(["--config", str(config_path), "-b", "151"])

    def test_commands_passed_to_runner(self, config_path):
        with patch("dsul.cli._run_client") as run, patch("dsul.cli.asyncio.run"):
            code = cli.client_main(
                ["--config", str(config_path), "-c", "red", "-d", "-n", "10.0.0.5", "-p", "pw"]
            )
        assert code == 0
        settings, commands = run.call_args.args
        assert settings.network.server == "10.0.0.5"
        assert [(c.key.value, c.value, c.secret) for c in commands] == [
            ("dim", "true", "pw"),
            ("color", "red", "pw"),
        ]


class TestShowInformation:
    def test_without_hardware_values(self, capsys):
        cli.show_information(Settings(), None)
        out = capsys.readouterr().out
        assert "[modes]" in out
        assert "- pulse" in out
        assert "- max = 150" in out
        assert "[hardware values]" not in out

    def test_with_hardware_values(self, capsys):
        cli.show_information(Settings(), parse_telemetry("v001.002.003cc255000000cm002#"))
        out = capsys.readouterr().out
        assert "- version = 1.2.3" in out
        assert "- color = 255:0:0" in out
        assert "- mode = 2" in out
