from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import ClassVar

from .validation import WEEKDAYS, format_time_of_day

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return datetime.now(UTC).strftime(ISO_FORMAT)


def _optional_int(value: object) -> int | None:
    if value in (None, "", "None"):
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def scope_pk(guild_id: int, scrim_name: str, scrim_date: str) -> str:
    """Partition key shared by every per-day record of one scrim."""
    return f"GUILD#{guild_id}#SCRIM#{scrim_name}#DATE#{scrim_date}"


@dataclass(slots=True)
class Team:
    guild_id: int
    team_name: str
    team_tag: str
    captain_id: int
    captain_name: str
    player2_id: int
    player2_name: str
    player3_id: int
    player3_name: str
    created_at: str = field(default_factory=utc_now_iso)

    PK_TEMPLATE: ClassVar[str] = "GUILD#%s"
    SK_TEMPLATE: ClassVar[str] = "TEAM#%s"
    SK_PREFIX: ClassVar[str] = "TEAM#"

    @classmethod
    def key(cls, guild_id: int, team_name: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % guild_id, "sk": cls.SK_TEMPLATE % team_name}

    def to_item(self) -> dict[str, object]:
        item = self.key(self.guild_id, self.team_name)
        item.update(
            {
                "team_name": self.team_name,
                "team_tag": self.team_tag,
                "captain_id": str(self.captain_id),
                "captain_name": self.captain_name,
                "player2_id": str(self.player2_id),
                "player2_name": self.player2_name,
                "player3_id": str(self.player3_id),
                "player3_name": self.player3_name,
                "created_at": self.created_at,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Team:
        guild_id = int(str(item["pk"]).split("#", 1)[1])
        team_name = item.get("team_name")
        if team_name is None:
            team_name = str(item.get("sk", "")).split("#", 1)[1]
        return cls(
            guild_id=guild_id,
            team_name=str(team_name),
            team_tag=str(item.get("team_tag", "")),
            captain_id=int(item.get("captain_id", 0)),
            captain_name=str(item.get("captain_name", "")),
            player2_id=int(item.get("player2_id", 0)),
            player2_name=str(item.get("player2_name", "")),
            player3_id=int(item.get("player3_id", 0)),
            player3_name=str(item.get("player3_name", "")),
            created_at=str(item.get("created_at", "")),
        )

    @property
    def member_ids(self) -> tuple[int, int, int]:
        """Member identities in slot order: captain, player 2, player 3."""
        return (self.captain_id, self.player2_id, self.player3_id)

    def has_member(self, user_id: int) -> bool:
        return user_id in self.member_ids

    def teammates_of(self, user_id: int) -> list[int]:
        teammates: list[int] = []
        for member_id in self.member_ids:
            if member_id and member_id != user_id and member_id not in teammates:
                teammates.append(member_id)
        return teammates

    @property
    def display_name(self) -> str:
        return f"[{self.team_tag}] {self.team_name}"


@dataclass(slots=True)
class Scrim:
    guild_id: int
    scrim_name: str
    days: list[str]
    start_minute: int
    end_minute: int
    mention_role_id: int | None = None
    created_at: str = field(default_factory=utc_now_iso)

    PK_TEMPLATE: ClassVar[str] = "GUILD#%s"
    SK_TEMPLATE: ClassVar[str] = "SCRIM#%s"
    SK_PREFIX: ClassVar[str] = "SCRIM#"

    @classmethod
    def key(cls, guild_id: int, scrim_name: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % guild_id, "sk": cls.SK_TEMPLATE % scrim_name}

    def to_item(self) -> dict[str, object]:
        item = self.key(self.guild_id, self.scrim_name)
        item.update(
            {
                "scrim_name": self.scrim_name,
                "days": list(self.days),
                "start_time": self.start_time,
                "end_time": self.end_time,
                "start_minute": self.start_minute,
                "end_minute": self.end_minute,
                "created_at": self.created_at,
            }
        )
        if self.mention_role_id is not None:
            item["mention_role_id"] = str(self.mention_role_id)
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Scrim:
        guild_id = int(str(item["pk"]).split("#", 1)[1])
        scrim_name = item.get("scrim_name")
        if scrim_name is None:
            scrim_name = str(item.get("sk", "")).split("#", 1)[1]
        raw_days = item.get("days", [])
        if isinstance(raw_days, str):
            raw_days = [day.strip() for day in raw_days.split(",")]
        days = [str(day) for day in raw_days if str(day) in WEEKDAYS]
        return cls(
            guild_id=guild_id,
            scrim_name=str(scrim_name),
            days=days,
            start_minute=int(item.get("start_minute", 0)),
            end_minute=int(item.get("end_minute", 0)),
            mention_role_id=_optional_int(item.get("mention_role_id")),
            created_at=str(item.get("created_at", "")),
        )

    @property
    def start_time(self) -> str:
        return format_time_of_day(self.start_minute)

    @property
    def end_time(self) -> str:
        return format_time_of_day(self.end_minute)

    def runs_on(self, weekday: str) -> bool:
        return weekday in self.days

    def is_open_at(self, weekday: str, minute_of_day: int) -> bool:
        """Whether ``minute_of_day`` falls in ``[start, end)`` on an active day.

        An end at or before the start wraps past midnight.
        """
        if not self.runs_on(weekday):
            return False
        if self.start_minute < self.end_minute:
            return self.start_minute <= minute_of_day < self.end_minute
        return minute_of_day >= self.start_minute or minute_of_day < self.end_minute


@dataclass(slots=True)
class DailyRegistration:
    guild_id: int
    scrim_name: str
    scrim_date: str
    team_name: str
    checked_in_by: int
    lobby_number: int
    check_in_order: int
    checked_in_at: str = field(default_factory=utc_now_iso)
    forced: bool = False

    SK_TEMPLATE: ClassVar[str] = "TEAM#%s"
    SK_PREFIX: ClassVar[str] = "TEAM#"

    @classmethod
    def key(
        cls, guild_id: int, scrim_name: str, scrim_date: str, team_name: str
    ) -> dict[str, str]:
        return {
            "pk": scope_pk(guild_id, scrim_name, scrim_date),
            "sk": cls.SK_TEMPLATE % team_name,
        }

    def to_item(self) -> dict[str, object]:
        item = self.key(self.guild_id, self.scrim_name, self.scrim_date, self.team_name)
        item.update(
            {
                "guild_id": str(self.guild_id),
                "scrim_name": self.scrim_name,
                "scrim_date": self.scrim_date,
                "team_name": self.team_name,
                "checked_in_by": str(self.checked_in_by),
                "lobby_number": self.lobby_number,
                "check_in_order": self.check_in_order,
                "checked_in_at": self.checked_in_at,
                "forced": self.forced,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> DailyRegistration:
        return cls(
            guild_id=int(item.get("guild_id", 0)),
            scrim_name=str(item.get("scrim_name", "")),
            scrim_date=str(item.get("scrim_date", "")),
            team_name=str(item.get("team_name", "")),
            checked_in_by=int(item.get("checked_in_by", 0)),
            lobby_number=int(item.get("lobby_number", 0)),
            check_in_order=int(item.get("check_in_order", 0)),
            checked_in_at=str(item.get("checked_in_at", "")),
            forced=bool(item.get("forced", False)),
        )


@dataclass(slots=True)
class LobbyRoleGrant:
    guild_id: int
    scrim_name: str
    scrim_date: str
    user_id: int
    lobby_number: int
    assigned_at: str = field(default_factory=utc_now_iso)

    SK_TEMPLATE: ClassVar[str] = "LOBBY_ROLE#%s"

    @classmethod
    def key(
        cls, guild_id: int, scrim_name: str, scrim_date: str, user_id: int
    ) -> dict[str, str]:
        return {
            "pk": scope_pk(guild_id, scrim_name, scrim_date),
            "sk": cls.SK_TEMPLATE % user_id,
        }

    def to_item(self) -> dict[str, object]:
        item = self.key(self.guild_id, self.scrim_name, self.scrim_date, self.user_id)
        item.update(
            {
                "guild_id": str(self.guild_id),
                "scrim_name": self.scrim_name,
                "scrim_date": self.scrim_date,
                "user_id": str(self.user_id),
                "lobby_number": self.lobby_number,
                "assigned_at": self.assigned_at,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> LobbyRoleGrant:
        return cls(
            guild_id=int(item.get("guild_id", 0)),
            scrim_name=str(item.get("scrim_name", "")),
            scrim_date=str(item.get("scrim_date", "")),
            user_id=int(item.get("user_id", 0)),
            lobby_number=int(item.get("lobby_number", 0)),
            assigned_at=str(item.get("assigned_at", "")),
        )


@dataclass(slots=True)
class CaptchaChallenge:
    guild_id: int
    user_id: int
    scrim_name: str
    scrim_date: str
    captcha_word: str
    verified: bool = False
    created_at: str = field(default_factory=utc_now_iso)

    SK_TEMPLATE: ClassVar[str] = "CAPTCHA#%s"

    @classmethod
    def key(
        cls, guild_id: int, scrim_name: str, scrim_date: str, user_id: int
    ) -> dict[str, str]:
        return {
            "pk": scope_pk(guild_id, scrim_name, scrim_date),
            "sk": cls.SK_TEMPLATE % user_id,
        }

    def to_item(self) -> dict[str, object]:
        item = self.key(self.guild_id, self.scrim_name, self.scrim_date, self.user_id)
        item.update(
            {
                "guild_id": str(self.guild_id),
                "user_id": str(self.user_id),
                "scrim_name": self.scrim_name,
                "scrim_date": self.scrim_date,
                "captcha_word": self.captcha_word,
                "verified": self.verified,
                "created_at": self.created_at,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> CaptchaChallenge:
        return cls(
            guild_id=int(item.get("guild_id", 0)),
            user_id=int(item.get("user_id", 0)),
            scrim_name=str(item.get("scrim_name", "")),
            scrim_date=str(item.get("scrim_date", "")),
            captcha_word=str(item.get("captcha_word", "")),
            verified=bool(item.get("verified", False)),
            created_at=str(item.get("created_at", "")),
        )


__all__ = [
    "ISO_FORMAT",
    "CaptchaChallenge",
    "DailyRegistration",
    "LobbyRoleGrant",
    "Scrim",
    "Team",
    "scope_pk",
    "utc_now_iso",
]
