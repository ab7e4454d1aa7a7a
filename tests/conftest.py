from __future__ import annotations

import pytest
from fakes import GUILD_ID, TIMEZONE, FakeNotifier, FakeTable, MutableNow, local_time

from scrim_bot.clock import Clock
from scrim_bot.lobby import LobbyAssigner
from scrim_bot.storage import ScrimStorage


@pytest.fixture
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def storage(table: FakeTable) -> ScrimStorage:
    return ScrimStorage(table, GUILD_ID)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def now() -> MutableNow:
    # 2024-01-01 is a Monday.
    return MutableNow(local_time(2024, 1, 1, 9, 0))


@pytest.fixture
def clock(now: MutableNow) -> Clock:
    return Clock(TIMEZONE, now=now)


@pytest.fixture
def assigner(storage: ScrimStorage, notifier: FakeNotifier) -> LobbyAssigner:
    return LobbyAssigner(storage, notifier)
