from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidValueError

LEADERBOARD_SIZE = 15


@dataclass(slots=True, frozen=True)
class LeaderboardEntry:
    team_name: str
    placement_points: int
    kill_points: int

    @property
    def total_points(self) -> int:
        return self.placement_points + self.kill_points


def _points(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        return 0


def parse_leaderboard_lines(raw: str) -> list[LeaderboardEntry]:
    """Parse ``TeamName,PlacementPoints,KillPoints`` lines.

    Missing or non-numeric point columns count as zero.
    """
    entries: list[LeaderboardEntry] = []
    for line in raw.splitlines():
        if not line.strip():
            continue
        columns = [column.strip() for column in line.split(",")]
        if not columns[0]:
            raise InvalidValueError(f"Missing team name in line: {line.strip()}")
        placement = _points(columns[1]) if len(columns) > 1 else 0
        kills = _points(columns[2]) if len(columns) > 2 else 0
        entries.append(LeaderboardEntry(columns[0], placement, kills))
    if not entries:
        raise InvalidValueError("Provide at least one TeamName,Placement,Kills line")
    return entries


def rank_entries(
    entries: list[LeaderboardEntry], *, limit: int = LEADERBOARD_SIZE
) -> list[tuple[int, LeaderboardEntry]]:
    """Highest total first; equal totals keep their input order."""
    ordered = sorted(entries, key=lambda entry: entry.total_points, reverse=True)
    return list(enumerate(ordered[:limit], start=1))


def format_leaderboard(scrim_name: str, entries: list[LeaderboardEntry]) -> str:
    ranked = rank_entries(entries)
    width = max([len(entry.team_name) for _, entry in ranked] + [4])
    lines = [
        f"{'Rank':<5} {'Team':<{width}} {'Place':>5} {'Kills':>5} {'Total':>5}",
        "-" * (width + 24),
    ]
    for rank, entry in ranked:
        lines.append(
            f"{'#' + str(rank):<5} {entry.team_name:<{width}} "
            f"{entry.placement_points:>5} {entry.kill_points:>5} "
            f"{entry.total_points:>5}"
        )
    return f"**{scrim_name} - Leaderboard**\n```\n" + "\n".join(lines) + "\n```"


__all__ = [
    "LEADERBOARD_SIZE",
    "LeaderboardEntry",
    "format_leaderboard",
    "parse_leaderboard_lines",
    "rank_entries",
]
