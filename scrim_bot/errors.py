from __future__ import annotations


class ScrimBotError(Exception):
    """Base class for failures that carry a user-facing message."""


class InvalidValueError(ScrimBotError, ValueError):
    """Raised when user input is malformed. The same step is re-prompted."""


class ConflictError(ScrimBotError):
    """Raised when an action clashes with existing state."""


class AlreadyCheckedInError(ConflictError):
    """Raised when a team already holds a slot for a scrim and date."""


class NotFoundError(ScrimBotError):
    """Raised when a team, scrim or role does not exist."""


class CaptchaExpiredError(ScrimBotError):
    """Raised when a captcha answer arrives after its window closed."""


class StorageError(ScrimBotError):
    """Raised when the backing table cannot be read or written."""


__all__ = [
    "ScrimBotError",
    "InvalidValueError",
    "ConflictError",
    "AlreadyCheckedInError",
    "NotFoundError",
    "CaptchaExpiredError",
    "StorageError",
]
