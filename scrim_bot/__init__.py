"""Scrim check-in bot helpers."""

from .checkin import CheckInFlow, CheckInResult
from .clock import Clock, ClockReading
from .errors import (
    AlreadyCheckedInError,
    CaptchaExpiredError,
    ConflictError,
    InvalidValueError,
    NotFoundError,
    ScrimBotError,
    StorageError,
)
from .lobby import LobbyAssigner
from .models import CaptchaChallenge, DailyRegistration, LobbyRoleGrant, Scrim, Team
from .registration import RegistrationFlow
from .scheduler import ScrimScheduler
from .storage import ScrimStorage

__all__ = [
    "CheckInFlow",
    "CheckInResult",
    "Clock",
    "ClockReading",
    "AlreadyCheckedInError",
    "CaptchaExpiredError",
    "ConflictError",
    "InvalidValueError",
    "NotFoundError",
    "ScrimBotError",
    "StorageError",
    "LobbyAssigner",
    "CaptchaChallenge",
    "DailyRegistration",
    "LobbyRoleGrant",
    "Scrim",
    "Team",
    "RegistrationFlow",
    "ScrimScheduler",
    "ScrimStorage",
]
