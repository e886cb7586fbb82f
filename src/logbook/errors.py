"""
Error taxonomy for the logbook core.

Every failure the core reports derives from LogbookError so callers
(scheduler threads, API handlers, CLI) can catch the family in one place.
"""

from typing import Optional


class LogbookError(Exception):
    """Base class for logbook failures."""


class ConfigError(LogbookError):
    """Malformed schedule or time input. Recovered locally with a default."""

    def __init__(self, message: str, fallback: Optional[str] = None):
        super().__init__(message)
        self.fallback = fallback


class NoFixError(LogbookError):
    """No usable position at collection time. Aborts the current cycle only."""


class PersistenceError(LogbookError):
    """Storage write or read failed. Nothing from the cycle was written."""


class SendError(LogbookError):
    """Report email could not be sent. Never rolls back persistence."""


class InvalidVoyageOperation(LogbookError):
    """Rejected voyage operation (deleting the active voyage, unknown id, bad name)."""

    def __init__(self, reason: str, voyage_id: Optional[int] = None, not_found: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.voyage_id = voyage_id
        self.not_found = not_found


class InvalidRecipient(LogbookError):
    """Rejected recipient change (bad address, duplicate, unknown address)."""

    def __init__(self, reason: str, not_found: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.not_found = not_found


class SyncError(LogbookError):
    """Chart plotter resource update failed. Logged; never affects the log."""
