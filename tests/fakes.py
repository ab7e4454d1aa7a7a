from __future__ import annotations

from datetime import datetime, timedelta
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from botocore.exceptions import ClientError

from scrim_bot.models import Scrim, Team

GUILD_ID = 42
TIMEZONE = "Asia/Kolkata"


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeTable:
    """Dict-backed stand-in for the DynamoDB table resource."""

    def __init__(self, *, page_size: int | None = None) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}
        self.page_size = page_size
        self.fail_with: str | None = None

    def _maybe_fail(self, operation: str) -> None:
        if self.fail_with is not None:
            raise _client_error(self.fail_with, operation)

    def get_item(self, *, Key):
        self._maybe_fail("GetItem")
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": dict(item)} if item is not None else {}

    def put_item(self, *, Item, ConditionExpression=None):
        self._maybe_fail("PutItem")
        key = (Item["pk"], Item["sk"])
        if ConditionExpression == "attribute_not_exists(pk)" and key in self.items:
            raise _client_error("ConditionalCheckFailedException", "PutItem")
        self.items[key] = dict(Item)

    def delete_item(self, *, Key, ConditionExpression=None):
        self._maybe_fail("DeleteItem")
        key = (Key["pk"], Key["sk"])
        if ConditionExpression == "attribute_exists(pk)" and key not in self.items:
            raise _client_error("ConditionalCheckFailedException", "DeleteItem")
        self.items.pop(key, None)

    def query(
        self,
        *,
        KeyConditionExpression,
        Select="ALL_ATTRIBUTES",
        ExclusiveStartKey=None,
        **_kwargs,
    ):
        self._maybe_fail("Query")
        pk_value = None
        sk_prefix = ""
        for condition in KeyConditionExpression._values:  # type: ignore[attr-defined]
            key, value = condition._values  # type: ignore[attr-defined]
            if key.name == "pk":
                pk_value = value
            elif key.name == "sk":
                sk_prefix = value
        matching = [
            key
            for key in sorted(self.items)
            if key[0] == pk_value and key[1].startswith(sk_prefix)
        ]
        if ExclusiveStartKey is not None:
            start = (ExclusiveStartKey["pk"], ExclusiveStartKey["sk"])
            matching = [key for key in matching if key > start]
        last_key = None
        if self.page_size is not None and len(matching) > self.page_size:
            matching = matching[: self.page_size]
            last_key = {"pk": matching[-1][0], "sk": matching[-1][1]}
        resp: dict[str, object] = {"Count": len(matching)}
        if Select != "COUNT":
            resp["Items"] = [dict(self.items[key]) for key in matching]
        if last_key is not None:
            resp["LastEvaluatedKey"] = last_key
        return resp


class FakeRole:
    def __init__(self, role_id: int, name: str) -> None:
        self.id = role_id
        self.name = name


class FakeNotifier:
    """Records every Discord side effect the engine asks for."""

    def __init__(self) -> None:
        self.team_role_name = "eSports"
        self.roles: dict[str, FakeRole] = {}
        self.member_roles: dict[int, set[int]] = {}
        self.unreachable: set[int] = set()
        self.logs: list[str] = []
        self.check_in_states: list[bool] = []
        self.opened: list[str] = []
        self.closed: list[tuple[str, int]] = []
        self.rosters: list[dict[str, object]] = []
        self._next_role_id = 500

    def get_role(self, name: str):
        return self.roles.get(name)

    async def ensure_role(self, name: str):
        role = self.roles.get(name)
        if role is None:
            role = FakeRole(self._next_role_id, name)
            self._next_role_id += 1
            self.roles[name] = role
        return role

    async def resolve_member(self, user_id: int):
        if user_id in self.unreachable:
            return None
        return SimpleNamespace(id=user_id)

    async def has_role(self, user_id: int, role) -> bool:
        return role.id in self.member_roles.get(user_id, set())

    async def grant_role(self, user_id: int, role) -> bool:
        if user_id in self.unreachable:
            return False
        self.member_roles.setdefault(user_id, set()).add(role.id)
        return True

    async def revoke_role(self, user_id: int, role) -> bool:
        self.member_roles.get(user_id, set()).discard(role.id)
        return True

    def role_names_of(self, user_id: int) -> set[str]:
        ids = self.member_roles.get(user_id, set())
        return {role.name for role in self.roles.values() if role.id in ids}

    async def send_log(self, content: str) -> bool:
        self.logs.append(content)
        return True

    async def set_check_in_open(self, is_open: bool) -> bool:
        self.check_in_states.append(is_open)
        return True

    async def announce_check_in_open(self, scrim) -> bool:
        self.opened.append(scrim.scrim_name)
        return True

    async def announce_check_in_closed(self, scrim, team_count: int) -> bool:
        self.closed.append((scrim.scrim_name, team_count))
        return True

    async def post_lobby_roster(
        self, scrim_name, scrim_date, lobby_number, slot_list, *, role
    ) -> bool:
        self.rosters.append(
            {
                "scrim_name": scrim_name,
                "scrim_date": scrim_date,
                "lobby_number": lobby_number,
                "slot_list": slot_list,
                "role": role,
            }
        )
        return True


class MutableNow:
    """Callable clock source that tests can move forward."""

    def __init__(self, instant: datetime) -> None:
        self.instant = instant

    def __call__(self) -> datetime:
        return self.instant

    def advance(self, **kwargs) -> None:
        self.instant = self.instant + timedelta(**kwargs)

    def set(self, instant: datetime) -> None:
        self.instant = instant


def local_time(year, month, day, hour=0, minute=0, second=0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=ZoneInfo(TIMEZONE))


def make_team(
    name: str,
    captain_id: int,
    player2_id: int,
    player3_id: int,
    *,
    tag: str = "TAG",
    created_at: str = "2024-01-01T00:00:00.000000Z",
) -> Team:
    return Team(
        guild_id=GUILD_ID,
        team_name=name,
        team_tag=tag,
        captain_id=captain_id,
        captain_name=f"Captain{captain_id}#12345678",
        player2_id=player2_id,
        player2_name=f"Player{player2_id}#12345678",
        player3_id=player3_id,
        player3_name=f"Player{player3_id}#12345678",
        created_at=created_at,
    )


def make_scrim(
    name: str = "Evening",
    *,
    days: list[str] | None = None,
    start: int = 9 * 60,
    end: int = 9 * 60 + 30,
    mention_role_id: int | None = None,
) -> Scrim:
    return Scrim(
        guild_id=GUILD_ID,
        scrim_name=name,
        days=days or ["Monday"],
        start_minute=start,
        end_minute=end,
        mention_role_id=mention_role_id,
    )
