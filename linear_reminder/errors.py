"""Exception types shared across the reminder service."""
from typing import Optional


class ReminderError(Exception):
    """Base class for errors raised by the reminder service."""


class ConfigError(ReminderError, ValueError):
    """Configuration is missing or invalid."""


class StoreError(ReminderError):
    """A database operation failed and its transaction was rolled back."""


class NotifierError(ReminderError):
    """The outbound reminder could not be delivered."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ClaimAlreadyFinalized(ReminderError):
    """A claim was committed or rolled back more than once."""
