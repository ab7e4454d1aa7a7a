"""Embeds and button rows posted by the bot."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import discord

from .actions import (
    CheckIn,
    DeleteTeam,
    EditTeam,
    RegisterTeam,
    TransferLobbyRole,
    custom_id_for,
)
from .leaderboard import LeaderboardEntry, format_leaderboard
from .lobby import group_by_lobby
from .models import DailyRegistration, Scrim, Team

GREEN = discord.Colour(0x00FF00)
RED = discord.Colour(0xFF0000)
GOLD = discord.Colour(0xFFD700)

PANEL_TITLE = "🎮 Scrim Registration"
_EMBED_DESCRIPTION_LIMIT = 4000


def build_registration_panel_embed() -> discord.Embed:
    embed = discord.Embed(
        title=PANEL_TITLE,
        description=(
            "Welcome to the registration system! Use the buttons below to manage "
            "your team.\n\n"
            "**📝 Register Team** - Create a new team\n"
            "**✏️ Edit Team** - Modify your existing team\n"
            "**🗑️ Delete Team** - Remove your team"
        ),
        colour=GREEN,
        timestamp=discord.utils.utcnow(),
    )
    return embed


def build_registration_panel_view() -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label="📝 Register Team",
            style=discord.ButtonStyle.success,
            custom_id=custom_id_for(RegisterTeam()),
        )
    )
    view.add_item(
        discord.ui.Button(
            label="✏️ Edit Team",
            style=discord.ButtonStyle.primary,
            custom_id=custom_id_for(EditTeam()),
        )
    )
    view.add_item(
        discord.ui.Button(
            label="🗑️ Delete Team",
            style=discord.ButtonStyle.danger,
            custom_id=custom_id_for(DeleteTeam()),
        )
    )
    return view


def build_check_in_open_embed(scrim: Scrim) -> discord.Embed:
    return discord.Embed(
        title=f"🔔 {scrim.scrim_name} Check-In OPEN",
        description=(
            "Check-in is now open! Click the button below and complete the captcha "
            "to check in your team.\n\n"
            f"**Check-in closes at:** {scrim.end_time}"
        ),
        colour=GREEN,
        timestamp=discord.utils.utcnow(),
    )


def build_check_in_view(scrim_name: str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label="✅ Check In Team",
            style=discord.ButtonStyle.success,
            custom_id=custom_id_for(CheckIn(scrim_name)),
        )
    )
    return view


def build_check_in_closed_embed(scrim: Scrim, team_count: int) -> discord.Embed:
    return discord.Embed(
        title=f"🔒 {scrim.scrim_name} Check-In CLOSED",
        description=f"Check-in has ended.\n\n**Total Teams Checked In:** {team_count}",
        colour=RED,
        timestamp=discord.utils.utcnow(),
    )


def build_roster_embed(
    scrim_name: str, scrim_date: str, lobby_number: int, slot_list: str
) -> discord.Embed:
    embed = discord.Embed(
        title=f"🏆 {scrim_name} - Lobby {lobby_number}",
        description=slot_list,
        colour=GOLD,
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(text=f"Scrim Date: {scrim_date}")
    return embed


def build_transfer_view(lobby_number: int, scrim_date: str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label="🔄 Transfer Role",
            style=discord.ButtonStyle.primary,
            custom_id=custom_id_for(TransferLobbyRole(lobby_number, scrim_date)),
        )
    )
    return view


def build_captcha_embed(captcha_word: str, timeout_seconds: int) -> discord.Embed:
    return discord.Embed(
        title="🔐 Captcha Verification",
        description=(
            "Please type the following word to check in your team:\n\n"
            f"**{captcha_word}**\n\n(You have {timeout_seconds} seconds)"
        ),
        colour=GOLD,
    )


def _truncate(lines: Sequence[str]) -> str:
    description = ""
    for index, line in enumerate(lines):
        if len(description) + len(line) > _EMBED_DESCRIPTION_LIMIT:
            return description + f"…and {len(lines) - index} more"
        description += line
    return description


def build_teams_embed(teams: Sequence[Team]) -> discord.Embed:
    lines = [
        f"**{index}. {team.display_name}**\n"
        f"   Captain: {team.captain_name}\n"
        f"   Players: {team.player2_name}, {team.player3_name}\n\n"
        for index, team in enumerate(teams, start=1)
    ]
    return discord.Embed(
        title="📋 Registered Teams",
        description=_truncate(lines),
        colour=GREEN,
        timestamp=discord.utils.utcnow(),
    )


def build_slots_embed(
    scrim_date: str, registrations: Mapping[str, Sequence[DailyRegistration]]
) -> discord.Embed:
    embed = discord.Embed(
        title=f"📋 Today's Check-ins ({scrim_date})",
        colour=GREEN,
        timestamp=discord.utils.utcnow(),
    )
    for scrim_name, entries in registrations.items():
        description = ""
        for lobby_number, lobby_entries in group_by_lobby(entries).items():
            names = ", ".join(entry.team_name for entry in lobby_entries)
            description += f"\n**Lobby {lobby_number}:** {names}"
        embed.add_field(
            name=scrim_name, value=description[:1024] or "No teams yet", inline=False
        )
    return embed


def build_leaderboard_embed(
    scrim_name: str, entries: list[LeaderboardEntry]
) -> discord.Embed:
    return discord.Embed(
        title=f"🏆 {scrim_name}",
        description=format_leaderboard(scrim_name, entries),
        colour=GOLD,
        timestamp=discord.utils.utcnow(),
    )
