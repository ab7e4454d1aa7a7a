"""Captcha-gated check-in for an open scrim."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta

from .clock import Clock, ClockReading
from .errors import (
    AlreadyCheckedInError,
    CaptchaExpiredError,
    ConflictError,
    InvalidValueError,
    NotFoundError,
    StorageError,
)
from .lobby import LobbyAssigner
from .models import CaptchaChallenge, DailyRegistration
from .sessions import SessionStore
from .storage import ScrimStorage

log = logging.getLogger("scrim-bot.checkin")

CAPTCHA_WORDS = (
    "ALPHA",
    "BRAVO",
    "CHARLIE",
    "DELTA",
    "ECHO",
    "FOXTROT",
    "GOLF",
    "HOTEL",
    "INDIA",
    "JULIET",
    "KILO",
    "LIMA",
    "MIKE",
    "NOVEMBER",
    "OSCAR",
    "PAPA",
    "QUEBEC",
    "ROMEO",
    "SIERRA",
    "TANGO",
    "UNIFORM",
    "VICTOR",
    "WHISKEY",
    "XRAY",
    "YANKEE",
    "ZULU",
    "PHOENIX",
    "DRAGON",
    "THUNDER",
    "SHADOW",
)

DEFAULT_CAPTCHA_TIMEOUT_SECONDS = 60


@dataclass(slots=True)
class CaptchaWindow:
    user_id: int
    scrim_name: str
    scrim_date: str
    team_name: str
    captcha_word: str
    started_at: datetime

    def expired(self, now: datetime, timeout: timedelta) -> bool:
        return now - self.started_at > timeout


@dataclass(slots=True)
class CheckInResult:
    registration: DailyRegistration
    lobby_role: object | None


class CheckInFlow:
    """Issues captcha challenges and turns correct answers into lobby slots.

    One window per user: pressing check-in again, even for another scrim,
    replaces the pending window. Expiry is checked when the user replies;
    ``evict_expired`` clears abandoned windows.
    """

    def __init__(
        self,
        storage: ScrimStorage,
        assigner: LobbyAssigner,
        clock: Clock,
        *,
        windows: SessionStore[int, CaptchaWindow] | None = None,
        timeout_seconds: int = DEFAULT_CAPTCHA_TIMEOUT_SECONDS,
        rng: random.Random | None = None,
    ) -> None:
        self._storage = storage
        self._assigner = assigner
        self._clock = clock
        self._windows = windows if windows is not None else SessionStore(name="captcha")
        self.timeout = timedelta(seconds=timeout_seconds)
        self._rng = rng or random.SystemRandom()

    def has_window(self, user_id: int) -> bool:
        return user_id in self._windows

    def window_for(self, user_id: int) -> CaptchaWindow | None:
        return self._windows.get(user_id)

    def _ensure_open(self, scrim_name: str, reading: ClockReading) -> None:
        scrim = self._storage.get_scrim(scrim_name)
        if scrim is None:
            raise NotFoundError(f"Scrim {scrim_name} no longer exists.")
        if not scrim.is_open_at(reading.weekday, reading.minute_of_day):
            raise ConflictError(f"Check-in is not open for {scrim_name} right now.")

    async def start(self, user_id: int, scrim_name: str) -> CaptchaWindow:
        reading = self._clock.read()
        self._ensure_open(scrim_name, reading)
        team = self._storage.get_team_by_member(user_id)
        if team is None:
            raise ConflictError(
                "You must be part of a registered team to check in."
            )
        if self._storage.get_registration(scrim_name, reading.date_key, team.team_name):
            raise AlreadyCheckedInError(
                "Your team has already checked in for this scrim."
            )

        word = self._rng.choice(CAPTCHA_WORDS)
        self._storage.save_captcha_challenge(
            CaptchaChallenge(
                guild_id=self._storage.guild_id,
                user_id=user_id,
                scrim_name=scrim_name,
                scrim_date=reading.date_key,
                captcha_word=word,
            )
        )
        window = CaptchaWindow(
            user_id=user_id,
            scrim_name=scrim_name,
            scrim_date=reading.date_key,
            team_name=team.team_name,
            captcha_word=word,
            started_at=reading.instant,
        )
        self._windows.put(user_id, window)
        log.info(
            "Captcha issued to %s for %s (team %s)", user_id, scrim_name, team.team_name
        )
        return window

    async def handle_reply(self, user_id: int, text: str) -> CheckInResult | None:
        """Check a free-text reply; ``None`` when the user has no open window."""
        window = self._windows.get(user_id)
        if window is None:
            return None

        if window.expired(self._clock.now(), self.timeout):
            self._windows.pop(user_id)
            raise CaptchaExpiredError(
                "Captcha verification timed out. Please try checking in again."
            )
        if text.strip().upper() != window.captcha_word.upper():
            raise InvalidValueError("Incorrect captcha. Please try again.")

        try:
            self._ensure_open(window.scrim_name, self._clock.read())
            registration = await self._assigner.assign(
                window.scrim_name, window.scrim_date, window.team_name, user_id
            )
        except (ConflictError, NotFoundError):
            self._windows.pop(user_id)
            raise
        self._windows.pop(user_id)

        role = await self._assigner.grant_lobby_role(registration, user_id)
        try:
            self._storage.save_captcha_challenge(
                CaptchaChallenge(
                    guild_id=self._storage.guild_id,
                    user_id=user_id,
                    scrim_name=window.scrim_name,
                    scrim_date=window.scrim_date,
                    captcha_word=window.captcha_word,
                    verified=True,
                )
            )
        except StorageError as exc:
            log.warning(
                "Could not mark captcha verified for %s (%s): %s",
                user_id,
                window.scrim_name,
                exc,
            )
        return CheckInResult(registration=registration, lobby_role=role)

    def evict_expired(self, now: datetime | None = None) -> int:
        now = now or self._clock.now()
        evicted = self._windows.evict(lambda window: window.expired(now, self.timeout))
        if evicted:
            log.debug("Evicted %s expired captcha windows", len(evicted))
        return len(evicted)


__all__ = [
    "CAPTCHA_WORDS",
    "DEFAULT_CAPTCHA_TIMEOUT_SECONDS",
    "CaptchaWindow",
    "CheckInFlow",
    "CheckInResult",
]
