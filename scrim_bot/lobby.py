"""Lobby slot assignment, roster publication and lobby-role transfer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .errors import AlreadyCheckedInError, ConflictError, NotFoundError
from .models import DailyRegistration, LobbyRoleGrant, Team
from .storage import ScrimStorage

log = logging.getLogger("scrim-bot.lobby")

DEFAULT_LOBBY_CAPACITY = 20


def lobby_for_count(existing: int, capacity: int = DEFAULT_LOBBY_CAPACITY) -> int:
    """Lobby for the next arrival when ``existing`` teams are already in."""
    return existing // capacity + 1


def lobby_for_order(order: int, capacity: int = DEFAULT_LOBBY_CAPACITY) -> int:
    return lobby_for_count(order - 1, capacity)


def lobby_role_name(lobby_number: int) -> str:
    return f"Lobby-{lobby_number}"


def lobby_channel_name(lobby_number: int) -> str:
    return f"lobby-{lobby_number}"


@dataclass(slots=True, frozen=True)
class RosterLine:
    check_in_order: int
    team_name: str
    team_tag: str | None

    @property
    def label(self) -> str:
        if self.team_tag:
            return f"[{self.team_tag}] {self.team_name}"
        return self.team_name


def group_by_lobby(
    registrations: Iterable[DailyRegistration],
) -> dict[int, list[DailyRegistration]]:
    grouped: dict[int, list[DailyRegistration]] = {}
    for registration in sorted(registrations, key=lambda entry: entry.check_in_order):
        grouped.setdefault(registration.lobby_number, []).append(registration)
    return dict(sorted(grouped.items()))


def format_slot_list(
    lines: Sequence[RosterLine],
    lobby_number: int,
    capacity: int = DEFAULT_LOBBY_CAPACITY,
) -> str:
    message = f"**🏆 Lobby {lobby_number} - Slot List**\n\n"
    for index, line in enumerate(lines, start=1):
        message += f"{index}. {line.label}\n"
    message += f"\n**Total Teams: {len(lines)}/{capacity}**"
    return message


class LobbyAssigner:
    """Hands out check-in positions and lobby numbers.

    Positions are allocated by one writer per (scrim, date) scope: the count
    and the insert happen under the same lock, and the insert itself is
    conditional on the team not holding a row yet.
    """

    def __init__(
        self,
        storage: ScrimStorage,
        notifier,
        *,
        capacity: int = DEFAULT_LOBBY_CAPACITY,
    ) -> None:
        if capacity < 1:
            raise ValueError("Lobby capacity must be positive")
        self._storage = storage
        self._notifier = notifier
        self.capacity = capacity
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def _scope_lock(self, scrim_name: str, scrim_date: str) -> asyncio.Lock:
        for scope in [key for key in self._locks if key[1] != scrim_date]:
            if not self._locks[scope].locked():
                del self._locks[scope]
        return self._locks.setdefault((scrim_name, scrim_date), asyncio.Lock())

    async def assign(
        self,
        scrim_name: str,
        scrim_date: str,
        team_name: str,
        checked_in_by: int,
        *,
        forced: bool = False,
    ) -> DailyRegistration:
        async with self._scope_lock(scrim_name, scrim_date):
            if self._storage.get_registration(scrim_name, scrim_date, team_name):
                raise AlreadyCheckedInError(
                    "Your team has already checked in for this scrim."
                )
            existing = self._storage.registration_count(scrim_name, scrim_date)
            registration = DailyRegistration(
                guild_id=self._storage.guild_id,
                scrim_name=scrim_name,
                scrim_date=scrim_date,
                team_name=team_name,
                checked_in_by=checked_in_by,
                lobby_number=lobby_for_count(existing, self.capacity),
                check_in_order=existing + 1,
                forced=forced,
            )
            self._storage.insert_registration(registration)

        log.info(
            "Team %s checked in to %s on %s: lobby %s, position #%s%s",
            team_name,
            scrim_name,
            scrim_date,
            registration.lobby_number,
            registration.check_in_order,
            " (forced)" if forced else "",
        )
        return registration

    async def force_check_in(
        self,
        team_name: str,
        scrim_name: str,
        admin_id: int,
        scrim_date: str,
    ) -> DailyRegistration:
        if self._storage.get_team(team_name) is None:
            raise NotFoundError("Team not found.")
        if self._storage.get_scrim(scrim_name) is None:
            raise NotFoundError(f"Scrim {scrim_name} not found.")
        try:
            registration = await self.assign(
                scrim_name, scrim_date, team_name, admin_id, forced=True
            )
        except AlreadyCheckedInError as exc:
            raise AlreadyCheckedInError("Team already checked in.") from exc
        await self._notifier.send_log(
            f"🛠️ Team \"{team_name}\" force checked-in to {scrim_name} - "
            f"Lobby {registration.lobby_number} "
            f"(Position #{registration.check_in_order}) by <@{admin_id}>"
        )
        return registration

    async def grant_lobby_role(self, registration: DailyRegistration, user_id: int):
        """Give ``user_id`` the role of the registration's lobby and audit it."""
        role = await self._notifier.ensure_role(
            lobby_role_name(registration.lobby_number)
        )
        if role is None:
            log.warning(
                "Lobby role %s unavailable; %s keeps slot without role",
                lobby_role_name(registration.lobby_number),
                user_id,
            )
            return None
        if not await self._notifier.grant_role(user_id, role):
            return None
        self._storage.record_lobby_role_grant(
            LobbyRoleGrant(
                guild_id=self._storage.guild_id,
                scrim_name=registration.scrim_name,
                scrim_date=registration.scrim_date,
                user_id=user_id,
                lobby_number=registration.lobby_number,
            )
        )
        return role

    def roster_lines(
        self, registrations: Sequence[DailyRegistration]
    ) -> list[RosterLine]:
        lines: list[RosterLine] = []
        for registration in registrations:
            team = self._storage.get_team(registration.team_name)
            if team is None:
                # Deleted after checking in; the slot stays on the roster.
                lines.append(
                    RosterLine(
                        registration.check_in_order, registration.team_name, None
                    )
                )
                continue
            lines.append(
                RosterLine(registration.check_in_order, team.team_name, team.team_tag)
            )
        return lines

    async def publish_rosters(
        self,
        scrim_name: str,
        scrim_date: str,
        registrations: Sequence[DailyRegistration] | None = None,
    ) -> dict[int, list[RosterLine]]:
        if registrations is None:
            registrations = self._storage.list_registrations(scrim_name, scrim_date)
        rosters: dict[int, list[RosterLine]] = {}
        for lobby_number, entries in group_by_lobby(registrations).items():
            lines = self.roster_lines(entries)
            rosters[lobby_number] = lines
            role = await self._notifier.ensure_role(lobby_role_name(lobby_number))
            await self._notifier.post_lobby_roster(
                scrim_name,
                scrim_date,
                lobby_number,
                format_slot_list(lines, lobby_number, self.capacity),
                role=role,
            )
        return rosters

    async def transfer_role(
        self, user_id: int, lobby_number: int, scrim_date: str
    ) -> int:
        """Move the lobby role from ``user_id`` to their first reachable teammate."""
        role = self._notifier.get_role(lobby_role_name(lobby_number))
        if role is None:
            raise NotFoundError("Lobby role not found.")
        if not await self._notifier.has_role(user_id, role):
            raise ConflictError("You do not have this lobby role to transfer.")
        team = self._storage.get_team_by_member(user_id)
        if team is None:
            raise ConflictError("You must be part of a team to transfer the role.")

        recipient = await self._grant_first_reachable(team, user_id, role)
        if recipient is None:
            raise NotFoundError("Could not find any teammate to transfer the role to.")

        await self._notifier.revoke_role(user_id, role)
        log.info(
            "Lobby %s role for %s moved from %s to %s (team %s)",
            lobby_number,
            scrim_date,
            user_id,
            recipient,
            team.team_name,
        )
        await self._notifier.send_log(
            f"🔄 {lobby_role_name(lobby_number)} transferred from <@{user_id}> "
            f"to <@{recipient}> ({team.team_name})"
        )
        return recipient

    async def _grant_first_reachable(
        self, team: Team, user_id: int, role
    ) -> int | None:
        for teammate_id in team.teammates_of(user_id):
            member = await self._notifier.resolve_member(teammate_id)
            if member is None:
                continue
            if await self._notifier.grant_role(teammate_id, role):
                return teammate_id
        return None


__all__ = [
    "DEFAULT_LOBBY_CAPACITY",
    "LobbyAssigner",
    "RosterLine",
    "format_slot_list",
    "group_by_lobby",
    "lobby_channel_name",
    "lobby_for_count",
    "lobby_for_order",
    "lobby_role_name",
]
