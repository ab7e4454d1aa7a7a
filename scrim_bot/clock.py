"""Calendar helpers evaluated in the server's configured time zone."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .validation import WEEKDAYS

DATE_KEY_FORMAT = "%Y-%m-%d"


@dataclass(slots=True, frozen=True)
class ClockReading:
    """Weekday, minute of day and date key taken from a single instant."""

    instant: datetime
    weekday: str
    minute_of_day: int
    date_key: str


class Clock:
    def __init__(
        self,
        timezone_name: str,
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        try:
            self._zone = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise RuntimeError(f"Unknown time zone: {timezone_name}") from exc
        self.timezone_name = timezone_name
        self._now = now or (lambda: datetime.now(UTC))

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    def now(self) -> datetime:
        return self._now().astimezone(self._zone)

    def read(self, instant: datetime | None = None) -> ClockReading:
        local = (instant or self._now()).astimezone(self._zone)
        return ClockReading(
            instant=local,
            weekday=WEEKDAYS[local.weekday()],
            minute_of_day=local.hour * 60 + local.minute,
            date_key=local.strftime(DATE_KEY_FORMAT),
        )

    def current_weekday(self) -> str:
        return self.read().weekday

    def current_minute_of_day(self) -> int:
        return self.read().minute_of_day

    def today(self) -> str:
        return self.read().date_key


__all__ = ["Clock", "ClockReading", "DATE_KEY_FORMAT"]
