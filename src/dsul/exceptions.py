"""
Exception hierarchy for DSUL.

All exceptions inherit from :class:`DsulError` so callers can catch
broadly (``except DsulError``) or narrowly (``except MalformedFrame``).
"""


class DsulError(Exception):
    """Base exception for all DSUL errors."""


class ConnectionError(DsulError):  # noqa: A001 – intentional shadow of builtin
    """Raised when the serial connection is unavailable or fails to open."""


class ValidationError(DsulError):
    """Raised when a configuration value fails validation."""


class MalformedFrame(DsulError):
    """Raised when an IPC payload cannot be decoded into a command."""


class TransportError(DsulError):
    """Raised when the IPC channel fails in an unrecoverable way."""
