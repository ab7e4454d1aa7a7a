from __future__ import annotations

import functools
import logging

from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from .errors import AlreadyCheckedInError, ConflictError, StorageError
from .models import (
    CaptchaChallenge,
    DailyRegistration,
    LobbyRoleGrant,
    Scrim,
    Team,
    scope_pk,
)

log = logging.getLogger("scrim-bot.storage")

_CONDITION_FAILED = "ConditionalCheckFailedException"
_UNAVAILABLE = "The scrim database is unavailable. Please try again."


def _is_condition_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == _CONDITION_FAILED


def _wrap_table_errors(func):
    """Translate boto failures into ``StorageError``, keeping domain errors."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except ClientError as exc:
            log.exception("DynamoDB call %s failed: %s", func.__name__, exc)
            raise StorageError(_UNAVAILABLE) from exc
        except BotoCoreError as exc:
            log.exception("DynamoDB call %s failed: %s", func.__name__, exc)
            raise StorageError(_UNAVAILABLE) from exc

    return wrapper


class ScrimStorage:
    def __init__(self, table, guild_id: int) -> None:
        self._table = table
        self.guild_id = guild_id

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Scrim table is not configured")

    def _query(self, pk: str, sk_prefix: str, *, count: bool = False):
        self.ensure_table()
        kwargs: dict[str, object] = {
            "KeyConditionExpression": Key("pk").eq(pk)
            & Key("sk").begins_with(sk_prefix),
            "Select": "COUNT" if count else "ALL_ATTRIBUTES",
        }
        total = 0
        items: list[dict[str, object]] = []
        while True:
            resp = self._table.query(**kwargs)
            total += int(resp.get("Count", 0))
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        return total if count else items

    def _guild_pk(self) -> str:
        return Team.PK_TEMPLATE % self.guild_id

    # ----- Teams -----
    @_wrap_table_errors
    def get_team(self, team_name: str) -> Team | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Team.key(self.guild_id, team_name))
        item = resp.get("Item")
        if not item:
            return None
        return Team.from_item(item)

    @_wrap_table_errors
    def list_teams(self) -> list[Team]:
        """All teams, newest registration first."""
        items = self._query(self._guild_pk(), Team.SK_PREFIX)
        teams = [Team.from_item(item) for item in items]
        teams.sort(key=lambda team: team.team_name.lower())
        teams.sort(key=lambda team: team.created_at, reverse=True)
        return teams

    def get_team_by_member(self, user_id: int) -> Team | None:
        for team in self.list_teams():
            if team.has_member(user_id):
                return team
        return None

    @_wrap_table_errors
    def create_team(self, team: Team) -> None:
        self.ensure_table()
        try:
            self._table.put_item(
                Item=team.to_item(),
                ConditionExpression="attribute_not_exists(pk)",
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise ConflictError(
                    "Team name already taken. Please choose another name."
                ) from exc
            raise

    @_wrap_table_errors
    def save_team(self, team: Team) -> None:
        self.ensure_table()
        self._table.put_item(Item=team.to_item())

    @_wrap_table_errors
    def replace_team(self, original_name: str, team: Team) -> None:
        """Store ``team`` in place of ``original_name``, re-keying on rename."""
        self.ensure_table()
        if team.team_name == original_name:
            self._table.put_item(Item=team.to_item())
            return
        try:
            self._table.put_item(
                Item=team.to_item(),
                ConditionExpression="attribute_not_exists(pk)",
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise ConflictError(
                    "Team name already taken. Please choose another name."
                ) from exc
            raise
        try:
            self._table.delete_item(Key=Team.key(self.guild_id, original_name))
        except (ClientError, BotoCoreError):
            # Roll the new row back so the team is stored exactly once.
            try:
                self._table.delete_item(Key=Team.key(self.guild_id, team.team_name))
            except (ClientError, BotoCoreError) as cleanup_exc:
                log.error(
                    "Team %s is stored under both %s and %s: %s",
                    original_name,
                    original_name,
                    team.team_name,
                    cleanup_exc,
                )
            raise

    @_wrap_table_errors
    def delete_team(self, team_name: str) -> bool:
        self.ensure_table()
        try:
            self._table.delete_item(
                Key=Team.key(self.guild_id, team_name),
                ConditionExpression="attribute_exists(pk)",
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                return False
            raise
        return True

    # ----- Scrims -----
    @_wrap_table_errors
    def get_scrim(self, scrim_name: str) -> Scrim | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Scrim.key(self.guild_id, scrim_name))
        item = resp.get("Item")
        if not item:
            return None
        return Scrim.from_item(item)

    @_wrap_table_errors
    def save_scrim(self, scrim: Scrim) -> None:
        self.ensure_table()
        self._table.put_item(Item=scrim.to_item())

    @_wrap_table_errors
    def delete_scrim(self, scrim_name: str) -> bool:
        self.ensure_table()
        try:
            self._table.delete_item(
                Key=Scrim.key(self.guild_id, scrim_name),
                ConditionExpression="attribute_exists(pk)",
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                return False
            raise
        return True

    @_wrap_table_errors
    def list_scrims(self) -> list[Scrim]:
        items = self._query(self._guild_pk(), Scrim.SK_PREFIX)
        scrims = [Scrim.from_item(item) for item in items]
        scrims.sort(key=lambda scrim: scrim.scrim_name.lower())
        return scrims

    # ----- Daily registrations -----
    @_wrap_table_errors
    def registration_count(self, scrim_name: str, scrim_date: str) -> int:
        return self._query(
            scope_pk(self.guild_id, scrim_name, scrim_date),
            DailyRegistration.SK_PREFIX,
            count=True,
        )

    @_wrap_table_errors
    def get_registration(
        self, scrim_name: str, scrim_date: str, team_name: str
    ) -> DailyRegistration | None:
        self.ensure_table()
        resp = self._table.get_item(
            Key=DailyRegistration.key(self.guild_id, scrim_name, scrim_date, team_name)
        )
        item = resp.get("Item")
        if not item:
            return None
        return DailyRegistration.from_item(item)

    @_wrap_table_errors
    def insert_registration(self, registration: DailyRegistration) -> None:
        self.ensure_table()
        try:
            self._table.put_item(
                Item=registration.to_item(),
                ConditionExpression="attribute_not_exists(pk)",
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise AlreadyCheckedInError(
                    f"Team {registration.team_name} has already checked in for "
                    f"{registration.scrim_name}."
                ) from exc
            raise

    @_wrap_table_errors
    def list_registrations(
        self, scrim_name: str, scrim_date: str
    ) -> list[DailyRegistration]:
        items = self._query(
            scope_pk(self.guild_id, scrim_name, scrim_date),
            DailyRegistration.SK_PREFIX,
        )
        registrations = [DailyRegistration.from_item(item) for item in items]
        registrations.sort(key=lambda entry: entry.check_in_order)
        return registrations

    # ----- Captcha challenges -----
    @_wrap_table_errors
    def save_captcha_challenge(self, challenge: CaptchaChallenge) -> None:
        self.ensure_table()
        self._table.put_item(Item=challenge.to_item())

    @_wrap_table_errors
    def get_captcha_challenge(
        self, scrim_name: str, scrim_date: str, user_id: int
    ) -> CaptchaChallenge | None:
        self.ensure_table()
        resp = self._table.get_item(
            Key=CaptchaChallenge.key(self.guild_id, scrim_name, scrim_date, user_id)
        )
        item = resp.get("Item")
        if not item:
            return None
        return CaptchaChallenge.from_item(item)

    # ----- Lobby role grants -----
    @_wrap_table_errors
    def record_lobby_role_grant(self, grant: LobbyRoleGrant) -> None:
        self.ensure_table()
        self._table.put_item(Item=grant.to_item())

    @_wrap_table_errors
    def list_lobby_role_grants(
        self, scrim_name: str, scrim_date: str
    ) -> list[LobbyRoleGrant]:
        items = self._query(
            scope_pk(self.guild_id, scrim_name, scrim_date),
            "LOBBY_ROLE#",
        )
        grants = [LobbyRoleGrant.from_item(item) for item in items]
        grants.sort(key=lambda grant: (grant.lobby_number, grant.assigned_at))
        return grants


__all__ = ["ScrimStorage"]
