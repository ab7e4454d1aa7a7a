from __future__ import annotations

import re

from .errors import InvalidValueError

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

_TEAM_TAG_PATTERN = re.compile(r"^[A-Z0-9]{1,6}$")
_PLAYER_UID_PATTERN = re.compile(r"^.+#\d{8}$")
_MENTION_PATTERN = re.compile(r"<@!?(\d+)>")
_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")
_SPLIT_PATTERN = re.compile(r"[\s,]+")


def validate_team_name(raw: str) -> str:
    name = raw.strip()
    if len(name) < 3:
        raise InvalidValueError(
            "Team name must be at least 3 characters long. Please try again."
        )
    if len(name) > 100:
        raise InvalidValueError("Team name must be 100 characters or fewer.")
    return name


def normalize_team_tag(raw: str) -> str:
    """Strip brackets and uppercase. Normalizing twice is a no-op."""
    return raw.strip().replace("[", "").replace("]", "").upper()


def validate_team_tag(raw: str) -> str:
    tag = normalize_team_tag(raw)
    if not _TEAM_TAG_PATTERN.match(tag):
        raise InvalidValueError(
            "Invalid team tag. Must be max 6 characters, only letters and numbers "
            "(A-Z, 0-9). You can include brackets [ABC] or just type ABC. "
            "Please try again."
        )
    return tag


def is_valid_player_uid(raw: str) -> bool:
    return bool(_PLAYER_UID_PATTERN.match(raw))


def validate_player_uid(raw: str) -> str:
    uid = raw.strip()
    if not is_valid_player_uid(uid):
        raise InvalidValueError(
            "Invalid format. Must be: PlayerName#12345678 (8 digits). Please try again."
        )
    return uid


def parse_mentions(text: str) -> list[int]:
    """Return user ids mentioned in ``text`` in the order they appear."""
    return [int(match) for match in _MENTION_PATTERN.findall(text)]


def parse_time_of_day(raw: str) -> int:
    """Parse ``HH:MM`` (24h) into minutes after midnight."""
    match = _TIME_PATTERN.match(raw.strip())
    if match is None:
        raise InvalidValueError("Time must be in HH:MM format (24-hour)")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidValueError(f"Time {raw.strip()} is not a valid time of day")
    return hours * 60 + minutes


def format_time_of_day(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_weekdays(raw: str) -> list[str]:
    parts = [p for p in _SPLIT_PATTERN.split(raw.strip()) if p]
    if not parts:
        raise InvalidValueError("At least one day must be provided")
    lookup = {day.lower(): day for day in WEEKDAYS}
    days: list[str] = []
    for part in parts:
        day = lookup.get(part.lower())
        if day is None:
            raise InvalidValueError(
                f"Unknown day: {part}. Use full names such as Monday,Wednesday"
            )
        if day not in days:
            days.append(day)
    days.sort(key=WEEKDAYS.index)
    return days


__all__ = [
    "WEEKDAYS",
    "format_time_of_day",
    "is_valid_player_uid",
    "normalize_team_tag",
    "parse_mentions",
    "parse_time_of_day",
    "parse_weekdays",
    "validate_player_uid",
    "validate_team_name",
    "validate_team_tag",
]
