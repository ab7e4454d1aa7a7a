from __future__ import annotations

from datetime import UTC, datetime

import pytest
from fakes import TIMEZONE, MutableNow, local_time

from scrim_bot.clock import Clock


def test_reading_uses_configured_zone():
    # 20:00 UTC on Sunday is 01:30 Monday in India.
    source = MutableNow(datetime(2023, 12, 31, 20, 0, tzinfo=UTC))
    clock = Clock(TIMEZONE, now=source)

    reading = clock.read()

    assert reading.weekday == "Monday"
    assert reading.minute_of_day == 90
    assert reading.date_key == "2024-01-01"
    assert clock.today() == "2024-01-01"
    assert clock.current_weekday() == "Monday"
    assert clock.current_minute_of_day() == 90


def test_read_accepts_explicit_instant(clock):
    reading = clock.read(local_time(2024, 1, 6, 23, 59))

    assert reading.weekday == "Saturday"
    assert reading.minute_of_day == 23 * 60 + 59
    assert reading.date_key == "2024-01-06"


def test_now_is_localized(clock, now):
    now.advance(minutes=5)

    assert clock.now().utcoffset() == local_time(2024, 1, 1).utcoffset()
    assert clock.now().minute == 5


def test_unknown_zone_fails_fast():
    with pytest.raises(RuntimeError, match="Unknown time zone"):
        Clock("Mars/Olympus_Mons")
