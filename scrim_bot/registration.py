"""Six-question team registration dialog run inside a thread."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum

from .errors import ConflictError, InvalidValueError, NotFoundError
from .models import Team, utc_now_iso
from .sessions import SessionStore
from .storage import ScrimStorage
from .validation import (
    parse_mentions,
    validate_player_uid,
    validate_team_name,
    validate_team_tag,
)

log = logging.getLogger("scrim-bot.registration")

DEFAULT_TEAM_ROLE_NAME = "eSports"


class RegistrationStep(IntEnum):
    TEAM_NAME = 1
    TEAM_TAG = 2
    CAPTAIN = 3
    PLAYER_TWO = 4
    PLAYER_THREE = 5
    MENTIONS = 6


TOTAL_STEPS = len(RegistrationStep)

_PLAYER_FORMAT_HINT = "Format: PlayerName#12345678"


@dataclass(slots=True)
class RegistrationSession:
    handle: int
    user_id: int
    step: RegistrationStep = RegistrationStep.TEAM_NAME
    team_name: str | None = None
    team_tag: str | None = None
    captain_id: int | None = None
    captain_name: str | None = None
    player2_name: str | None = None
    player3_name: str | None = None
    editing: bool = False
    original_team: Team | None = None
    started_at: str = field(default_factory=utc_now_iso)

    @property
    def original_team_name(self) -> str | None:
        return self.original_team.team_name if self.original_team else None


@dataclass(slots=True)
class RegistrationReply:
    message: str
    completed: bool = False
    team: Team | None = None


class RegistrationFlow:
    def __init__(
        self,
        storage: ScrimStorage,
        notifier,
        *,
        sessions: SessionStore[int, RegistrationSession] | None = None,
        team_role_name: str = DEFAULT_TEAM_ROLE_NAME,
    ) -> None:
        self._storage = storage
        self._notifier = notifier
        self._sessions = (
            sessions if sessions is not None else SessionStore(name="registration")
        )
        self.team_role_name = team_role_name

    def has_session(self, handle: int) -> bool:
        return handle in self._sessions

    def session_for(self, handle: int) -> RegistrationSession | None:
        return self._sessions.get(handle)

    # ----- Entry checks -----
    def ensure_can_register(self, user_id: int) -> None:
        if self._storage.get_team_by_member(user_id) is not None:
            raise ConflictError(
                'You are already part of a team. Use "Edit Team" or "Delete Team" '
                "instead."
            )

    def team_managed_by(self, user_id: int, *, is_admin: bool, action: str) -> Team:
        team = self._storage.get_team_by_member(user_id)
        if team is None:
            raise NotFoundError("You are not part of any team.")
        if team.captain_id != user_id and not is_admin:
            raise ConflictError(f"Only the team captain can {action} the team.")
        return team

    # ----- Dialog -----
    def open_session(
        self, handle: int, user_id: int, *, editing_team: Team | None = None
    ) -> str:
        session = RegistrationSession(
            handle=handle,
            user_id=user_id,
            editing=editing_team is not None,
            original_team=editing_team,
        )
        self._sessions.put(handle, session)
        if editing_team is not None:
            log.info("Edit dialog for %s opened by %s", editing_team.team_name, user_id)
            return (
                f"👋 Hi <@{user_id}>! Let's edit your team: "
                f"**{editing_team.team_name}**\n\n"
                f"**Question 1/{TOTAL_STEPS}:** What is your **Team Name**? "
                f"(Current: {editing_team.team_name})"
            )
        log.info("Registration dialog opened by %s", user_id)
        return (
            f"👋 Hi <@{user_id}>! Let's register your team.\n\n"
            f"**Question 1/{TOTAL_STEPS}:** What is your **Team Name**?"
        )

    async def handle_reply(
        self, handle: int, author_id: int, content: str
    ) -> RegistrationReply | None:
        """Advance the dialog owned by ``handle``.

        Returns ``None`` when there is no dialog or ``author_id`` does not own
        it. Invalid answers return a reply that repeats the current question.
        """
        session = self._sessions.get(handle)
        if session is None or session.user_id != author_id:
            return None

        handlers = {
            RegistrationStep.TEAM_NAME: self._answer_team_name,
            RegistrationStep.TEAM_TAG: self._answer_team_tag,
            RegistrationStep.CAPTAIN: self._answer_captain,
            RegistrationStep.PLAYER_TWO: self._answer_player_two,
            RegistrationStep.PLAYER_THREE: self._answer_player_three,
        }
        try:
            if session.step == RegistrationStep.MENTIONS:
                return await self._complete(session, content)
            message = handlers[session.step](session, content)
        except (InvalidValueError, ConflictError) as exc:
            return RegistrationReply(f"❌ {exc}")
        session.step = RegistrationStep(session.step + 1)
        return RegistrationReply(message)

    def _answer_team_name(self, session: RegistrationSession, content: str) -> str:
        name = validate_team_name(content)
        existing = self._storage.get_team(name)
        if existing is not None and name != session.original_team_name:
            raise ConflictError("Team name already taken. Please choose another name.")
        session.team_name = name
        return (
            f"✅ Team name set to: **{name}**\n\n"
            f"**Question 2/{TOTAL_STEPS}:** What is your **Team Tag**? "
            "(Format: [ABC], max 6 characters, only letters and numbers)"
        )

    def _answer_team_tag(self, session: RegistrationSession, content: str) -> str:
        tag = validate_team_tag(content)
        session.team_tag = tag
        return (
            f"✅ Team tag set to: **[{tag}]**\n\n"
            f"**Question 3/{TOTAL_STEPS}:** Enter **Player 1 (Captain)** details\n"
            f"{_PLAYER_FORMAT_HINT}"
        )

    def _answer_captain(self, session: RegistrationSession, content: str) -> str:
        uid = validate_player_uid(content)
        session.captain_name = uid
        if session.original_team is not None:
            session.captain_id = session.original_team.captain_id
        else:
            session.captain_id = session.user_id
        return (
            f"✅ Player 1 set to: **{uid}**\n\n"
            f"**Question 4/{TOTAL_STEPS}:** Enter **Player 2** details\n"
            f"{_PLAYER_FORMAT_HINT}"
        )

    def _answer_player_two(self, session: RegistrationSession, content: str) -> str:
        uid = validate_player_uid(content)
        session.player2_name = uid
        return (
            f"✅ Player 2 set to: **{uid}**\n\n"
            f"**Question 5/{TOTAL_STEPS}:** Enter **Player 3** details\n"
            f"{_PLAYER_FORMAT_HINT}"
        )

    def _answer_player_three(self, session: RegistrationSession, content: str) -> str:
        uid = validate_player_uid(content)
        session.player3_name = uid
        return (
            f"✅ Player 3 set to: **{uid}**\n\n"
            f"**Question 6/{TOTAL_STEPS}:** Mention your **3 teammates**\n"
            "Format: @user1 @user2 @user3\n(Must mention exactly 3 users)"
        )

    def _teammate_ids(
        self, session: RegistrationSession, content: str
    ) -> tuple[int, int]:
        mentions = parse_mentions(content)
        if len(mentions) != 3:
            raise InvalidValueError(
                "You must mention exactly 3 teammates. Please try again."
            )
        player2_id, player3_id = mentions[0], mentions[1]
        if player2_id == player3_id or session.captain_id in (player2_id, player3_id):
            raise InvalidValueError(
                "Players 2 and 3 must be two different members other than the "
                "captain. Please try again."
            )
        for member_id in (player2_id, player3_id):
            team = self._storage.get_team_by_member(member_id)
            if team is not None and team.team_name != session.original_team_name:
                raise ConflictError(
                    f"<@{member_id}> already belongs to team {team.team_name}. "
                    "Please try again."
                )
        return player2_id, player3_id

    async def _complete(
        self, session: RegistrationSession, content: str
    ) -> RegistrationReply:
        player2_id, player3_id = self._teammate_ids(session, content)
        team = Team(
            guild_id=self._storage.guild_id,
            team_name=session.team_name or "",
            team_tag=session.team_tag or "",
            captain_id=session.captain_id or session.user_id,
            captain_name=session.captain_name or "",
            player2_id=player2_id,
            player2_name=session.player2_name or "",
            player3_id=player3_id,
            player3_name=session.player3_name or "",
        )

        try:
            if session.original_team is not None:
                team.created_at = session.original_team.created_at
                self._storage.replace_team(session.original_team.team_name, team)
            else:
                self._storage.create_team(team)
        except ConflictError:
            # The name was claimed while the dialog was running.
            session.step = RegistrationStep.TEAM_NAME
            raise

        await self._grant_team_role(team)
        self._sessions.pop(session.handle)

        summary = (
            f"**Team Name:** {team.team_name}\n"
            f"**Team Tag:** [{team.team_tag}]\n"
            f"**Captain:** {team.captain_name}\n"
            f"**Player 2:** {team.player2_name}\n"
            f"**Player 3:** {team.player3_name}"
        )
        if session.editing:
            log.info(
                "Team %s updated as %s by %s",
                session.original_team_name,
                team.team_name,
                session.user_id,
            )
            await self._notifier.send_log(
                f"✏️ Team updated: **{team.display_name}** by <@{session.user_id}>"
            )
            message = (
                f"✅ **Team Updated Successfully!**\n\n{summary}\n\n"
                "You can now close this thread."
            )
        else:
            log.info("Team %s registered by %s", team.team_name, session.user_id)
            await self._notifier.send_log(
                f"✅ New team registered: **{team.display_name}** by "
                f"<@{session.user_id}>"
            )
            message = (
                f"✅ **Team Registered Successfully!**\n\n{summary}\n\n"
                f"All team members have been granted the **{self.team_role_name}** "
                "role! You can now check in for scrims.\n\n"
                "You can close this thread now."
            )
        return RegistrationReply(message, completed=True, team=team)

    async def _grant_team_role(self, team: Team) -> None:
        role = await self._notifier.ensure_role(self.team_role_name)
        if role is None:
            log.warning("Team role %s unavailable", self.team_role_name)
            return
        for member_id in team.member_ids:
            if not await self._notifier.grant_role(member_id, role):
                log.warning("Could not add role to member: %s", member_id)

    # ----- Deletion -----
    async def delete_team(self, team: Team, *, deleted_by: int) -> None:
        if not self._storage.delete_team(team.team_name):
            raise NotFoundError(f'Team "{team.team_name}" not found.')
        role = self._notifier.get_role(self.team_role_name)
        if role is not None:
            for member_id in team.member_ids:
                if not await self._notifier.revoke_role(member_id, role):
                    log.info("Could not remove role from member: %s", member_id)
        log.info("Team %s deleted by %s", team.team_name, deleted_by)
        await self._notifier.send_log(
            f'🗑️ Team "{team.team_name}" deleted by <@{deleted_by}>'
        )

    async def delete_team_by_name(self, team_name: str, *, deleted_by: int) -> Team:
        team = self._storage.get_team(team_name)
        if team is None:
            raise NotFoundError(f'Team "{team_name}" not found.')
        await self.delete_team(team, deleted_by=deleted_by)
        return team


__all__ = [
    "DEFAULT_TEAM_ROLE_NAME",
    "TOTAL_STEPS",
    "RegistrationFlow",
    "RegistrationReply",
    "RegistrationSession",
    "RegistrationStep",
]
