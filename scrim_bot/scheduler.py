"""Minute ticker that opens and closes daily check-in windows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal

import discord
from discord.ext import tasks

from .clock import Clock, ClockReading
from .lobby import LobbyAssigner
from .models import Scrim
from .storage import ScrimStorage

log = logging.getLogger("scrim-bot.scheduler")

Boundary = Literal["open", "close"]


@dataclass(slots=True, frozen=True)
class WindowEvent:
    scrim_name: str
    boundary: Boundary
    scrim_date: str
    minute_of_day: int
    team_count: int = 0


class ScrimScheduler:
    """Fires each scrim's open/close boundary at most once per day.

    Boundaries match on the exact minute; a minute missed while the process
    was down is not replayed.
    """

    def __init__(
        self,
        storage: ScrimStorage,
        clock: Clock,
        notifier,
        assigner: LobbyAssigner,
        *,
        check_in=None,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._notifier = notifier
        self._assigner = assigner
        self._check_in = check_in
        self._fired: set[tuple[str, str, Boundary, int]] = set()
        self.open_scrims: set[str] = set()
        self._ticking = False
        self._restart_pending = False
        self._loop = tasks.loop(minutes=1)(self._run)
        self._loop.before_loop(self._wait_for_next_minute)

    # ----- Loop control -----
    @property
    def is_running(self) -> bool:
        return self._loop.is_running()

    def start(self) -> None:
        if self._loop.is_running():
            return
        self._loop.start()
        log.info("✅ Scrim schedules activated")

    def restart(self) -> None:
        """Replace the running ticker so only one instance fires.

        A tick in progress is allowed to finish first.
        """
        if not self._loop.is_running():
            self.start()
            return
        if self._ticking:
            self._restart_pending = True
            return
        self._loop.restart()
        log.info("Scrim ticker restarted")

    def stop(self) -> None:
        self._loop.cancel()

    async def _wait_for_next_minute(self) -> None:
        now = self._clock.now()
        next_minute = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
        await discord.utils.sleep_until(next_minute)

    async def _run(self) -> None:
        # Timers can wake a hair early; evaluate at the nearest whole minute.
        now = self._clock.now() + timedelta(seconds=30)
        reading = self._clock.read(now.replace(second=0, microsecond=0))
        self._ticking = True
        try:
            await self.tick(reading)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Scrim tick failed: %s", exc)
        finally:
            self._ticking = False
        if self._restart_pending:
            self._restart_pending = False
            self._loop.restart()
            log.info("Scrim ticker restarted")

    # ----- Tick -----
    async def tick(self, reading: ClockReading | None = None) -> list[WindowEvent]:
        reading = reading or self._clock.read()
        self._fired = {key for key in self._fired if key[1] == reading.date_key}
        if self._check_in is not None:
            self._check_in.evict_expired(reading.instant)

        scrims = self._storage.list_scrims()
        await self._drop_stale_open(scrims, reading)

        events: list[WindowEvent] = []
        for scrim in scrims:
            if not scrim.runs_on(reading.weekday):
                continue
            if reading.minute_of_day == scrim.start_minute:
                boundary: Boundary = "open"
            elif reading.minute_of_day == scrim.end_minute:
                boundary = "close"
            else:
                continue

            key = (scrim.scrim_name, reading.date_key, boundary, reading.minute_of_day)
            if key in self._fired:
                log.debug("Skipping repeated %s for %s", boundary, scrim.scrim_name)
                continue

            try:
                if boundary == "open":
                    events.append(await self.open_window(scrim, reading))
                else:
                    events.append(await self.close_window(scrim, reading))
                self._fired.add(key)
            except Exception as exc:  # pylint: disable=broad-except
                log.exception(
                    "Failed to %s check-in for %s: %s", boundary, scrim.scrim_name, exc
                )
        return events

    async def _drop_stale_open(
        self, scrims: list[Scrim], reading: ClockReading
    ) -> None:
        """Forget open scrims that were deleted or rescheduled mid-window.

        A scrim whose end is this minute is left for ``close_window``.
        """
        if not self.open_scrims:
            return
        live = {
            scrim.scrim_name
            for scrim in scrims
            if scrim.is_open_at(reading.weekday, reading.minute_of_day)
            or (
                scrim.runs_on(reading.weekday)
                and scrim.end_minute == reading.minute_of_day
            )
        }
        stale = self.open_scrims - live
        for scrim_name in sorted(stale):
            log.info("Check-in for %s no longer scheduled; closing", scrim_name)
            await self.forget(scrim_name)

    async def forget(self, scrim_name: str) -> None:
        """Drop ``scrim_name`` from the open set, closing the surface if empty."""
        if scrim_name not in self.open_scrims:
            return
        self.open_scrims.discard(scrim_name)
        if not self.open_scrims:
            await self._notifier.set_check_in_open(False)

    async def open_window(self, scrim: Scrim, reading: ClockReading) -> WindowEvent:
        self.open_scrims.add(scrim.scrim_name)
        await self._notifier.set_check_in_open(True)
        await self._notifier.announce_check_in_open(scrim)
        log.info("Check-in opened for %s on %s", scrim.scrim_name, reading.date_key)
        await self._notifier.send_log(f"✅ Check-in opened for {scrim.scrim_name}")
        return WindowEvent(
            scrim.scrim_name, "open", reading.date_key, reading.minute_of_day
        )

    async def close_window(self, scrim: Scrim, reading: ClockReading) -> WindowEvent:
        self.open_scrims.discard(scrim.scrim_name)
        if not self.open_scrims:
            await self._notifier.set_check_in_open(False)

        registrations = self._storage.list_registrations(
            scrim.scrim_name, reading.date_key
        )
        count = len(registrations)
        await self._notifier.announce_check_in_closed(scrim, count)
        await self._assigner.publish_rosters(
            scrim.scrim_name, reading.date_key, registrations
        )
        log.info(
            "Check-in closed for %s on %s with %s teams",
            scrim.scrim_name,
            reading.date_key,
            count,
        )
        await self._notifier.send_log(
            f"🔒 Check-in closed for {scrim.scrim_name} - {count} teams checked in"
        )
        return WindowEvent(
            scrim.scrim_name, "close", reading.date_key, reading.minute_of_day, count
        )


__all__ = ["ScrimScheduler", "WindowEvent"]
