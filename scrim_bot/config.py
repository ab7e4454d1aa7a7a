"""Environment configuration for the scrim bot."""

from __future__ import annotations

import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_TIMEZONE = "Asia/Kolkata"


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(slots=True, frozen=True)
class BotConfig:
    discord_token: str
    guild_id: int
    table_name: str
    aws_region: str = "us-east-1"
    timezone: str = DEFAULT_TIMEZONE
    lobby_capacity: int = 20
    captcha_timeout_seconds: int = 60
    thread_archive_delay_seconds: int = 5
    session_limit: int = 1000
    sync_commands: bool = True

    @classmethod
    def load(cls) -> BotConfig:
        missing: list[str] = []

        def need(name: str) -> str:
            value = os.getenv(name)
            if not value:
                missing.append(name)
                return ""
            return value

        discord_token = need("DISCORD_TOKEN")
        guild_id_raw = need("GUILD_ID")
        table_name = need("SCRIM_TABLE_NAME")

        if missing:
            raise RuntimeError("Missing env vars: " + ", ".join(sorted(set(missing))))

        try:
            guild_id = int(guild_id_raw)
        except ValueError as exc:
            raise RuntimeError(
                f"Invalid GUILD_ID={guild_id_raw}; expected an integer"
            ) from exc

        timezone = os.getenv("TIMEZONE") or DEFAULT_TIMEZONE
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise RuntimeError(f"Unknown TIMEZONE={timezone}") from exc

        def positive(name: str, default: int) -> int:
            value = env_int(name, default=default)
            if value is None or value < 1:
                raise RuntimeError(f"{name} must be at least 1")
            return value

        lobby_capacity = positive("LOBBY_CAPACITY", 20)
        captcha_timeout = positive("CAPTCHA_TIMEOUT_SECONDS", 60)
        session_limit = positive("SESSION_LIMIT", 1000)

        return cls(
            discord_token=discord_token,
            guild_id=guild_id,
            table_name=table_name,
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            timezone=timezone,
            lobby_capacity=lobby_capacity,
            captcha_timeout_seconds=captcha_timeout,
            thread_archive_delay_seconds=max(
                env_int("THREAD_ARCHIVE_DELAY_SECONDS", default=5) or 0, 0
            ),
            session_limit=session_limit,
            sync_commands=env_bool("SYNC_COMMANDS", default=True),
        )


__all__ = ["BotConfig", "DEFAULT_TIMEZONE", "env_bool", "env_int"]
