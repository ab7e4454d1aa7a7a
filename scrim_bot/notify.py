"""Discord side effects: channels, roles, members and announcements.

Discord failures are logged and reported through return values
(``None``/``False``) so one unreachable member or missing permission does
not abort a whole check-in or roster run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import discord

from . import embeds
from .lobby import lobby_channel_name
from .models import Scrim

log = logging.getLogger("scrim-bot.notify")


@dataclass(frozen=True, slots=True)
class ChannelNames:
    category: str = "Scrims"
    registration: str = "scrim-registration"
    check_in: str = "register-here"
    log: str = "scrim-log"


class DiscordNotifier:
    def __init__(
        self,
        client: discord.Client,
        guild_id: int,
        *,
        team_role_name: str = "eSports",
        channels: ChannelNames | None = None,
    ) -> None:
        self._client = client
        self._guild_id = guild_id
        self.team_role_name = team_role_name
        self.channels = channels or ChannelNames()

    @property
    def guild(self) -> discord.Guild:
        guild = self._client.get_guild(self._guild_id)
        if guild is None:
            raise RuntimeError(f"Guild {self._guild_id} is not available")
        return guild

    # ----- Channels -----
    def _category(self) -> discord.CategoryChannel | None:
        return discord.utils.get(self.guild.categories, name=self.channels.category)

    def find_channel(self, name: str) -> discord.TextChannel | None:
        category = self._category()
        for channel in self.guild.text_channels:
            if channel.name != name:
                continue
            if category is None or channel.category_id == category.id:
                return channel
        return None

    async def ensure_category(self) -> discord.CategoryChannel | None:
        category = self._category()
        if category is not None:
            return category
        try:
            return await self.guild.create_category(self.channels.category)
        except discord.HTTPException as exc:
            log.warning("Cannot create category %s: %s", self.channels.category, exc)
            return None

    async def ensure_text_channel(
        self,
        name: str,
        overwrites: dict[discord.abc.Snowflake, discord.PermissionOverwrite],
    ) -> discord.TextChannel | None:
        channel = self.find_channel(name)
        if channel is not None:
            return channel
        category = await self.ensure_category()
        try:
            channel = await self.guild.create_text_channel(
                name, category=category, overwrites=overwrites
            )
        except discord.Forbidden:
            log.warning("Forbidden when creating channel %s", name)
            return None
        except discord.HTTPException as exc:
            log.warning("HTTPException creating channel %s: %s", name, exc)
            return None
        log.info("Created channel #%s", name)
        return channel

    async def send_to_channel(
        self,
        name: str,
        content: str | None = None,
        *,
        embed: discord.Embed | None = None,
        view: discord.ui.View | None = None,
    ) -> discord.Message | None:
        channel = self.find_channel(name)
        if channel is None:
            log.warning("Channel #%s not found; message dropped", name)
            return None
        kwargs: dict[str, object] = {}
        if content:
            kwargs["content"] = content
        if embed is not None:
            kwargs["embed"] = embed
        if view is not None:
            kwargs["view"] = view
        try:
            return await channel.send(**kwargs)
        except discord.HTTPException as exc:
            log.warning("Failed to send to #%s: %s", name, exc)
            return None

    async def send_log(self, content: str) -> bool:
        return await self.send_to_channel(self.channels.log, content) is not None

    # ----- Roles -----
    def get_role(self, name: str) -> discord.Role | None:
        return discord.utils.get(self.guild.roles, name=name)

    async def ensure_role(self, name: str) -> discord.Role | None:
        role = self.get_role(name)
        if role is not None:
            return role
        try:
            role = await self.guild.create_role(name=name, reason=f"{name} access role")
        except discord.Forbidden:
            log.warning("Forbidden when creating role '%s'", name)
            return None
        except discord.HTTPException as exc:
            log.warning("HTTPException creating role '%s': %s", name, exc)
            return None
        log.info("Created role '%s' (id=%s)", role.name, role.id)
        return role

    async def resolve_member(self, user_id: int) -> discord.Member | None:
        guild = self.guild
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            log.warning("Member %s not found in guild %s", user_id, guild.id)
        except discord.Forbidden:
            log.warning("Forbidden fetching member %s in guild %s", user_id, guild.id)
        except discord.HTTPException as exc:
            log.warning(
                "HTTPException fetching member %s in guild %s: %s",
                user_id,
                guild.id,
                exc,
            )
        return None

    async def has_role(self, user_id: int, role: discord.Role) -> bool:
        member = await self.resolve_member(user_id)
        if member is None:
            return False
        return any(existing.id == role.id for existing in member.roles)

    async def grant_role(self, user_id: int, role: discord.Role) -> bool:
        member = await self.resolve_member(user_id)
        if member is None:
            return False
        try:
            await member.add_roles(role, reason=f"Grant {role.name}")
        except discord.Forbidden:
            log.warning("Forbidden when adding %s to %s", role.name, member)
            return False
        except discord.HTTPException as exc:
            log.warning("HTTPException adding %s to %s: %s", role.name, member, exc)
            return False
        return True

    async def revoke_role(self, user_id: int, role: discord.Role) -> bool:
        member = await self.resolve_member(user_id)
        if member is None:
            return False
        try:
            await member.remove_roles(role, reason=f"Revoke {role.name}")
        except discord.Forbidden:
            log.warning("Forbidden when removing %s from %s", role.name, member)
            return False
        except discord.HTTPException as exc:
            log.warning("HTTPException removing %s from %s: %s", role.name, member, exc)
            return False
        return True

    # ----- Provisioning -----
    async def provision(self, bot_user_id: int) -> None:
        """Create the category, channels, team role and registration panel."""
        guild = self.guild
        team_role = await self.ensure_role(self.team_role_name)
        everyone = guild.default_role

        await self.ensure_text_channel(
            self.channels.registration,
            {
                everyone: discord.PermissionOverwrite(
                    view_channel=True, send_messages=True
                )
            },
        )
        check_in_overwrites = {
            everyone: discord.PermissionOverwrite(view_channel=False),
        }
        if team_role is not None:
            check_in_overwrites[team_role] = discord.PermissionOverwrite(
                view_channel=True, send_messages=False
            )
        await self.ensure_text_channel(self.channels.check_in, check_in_overwrites)
        await self.ensure_text_channel(
            self.channels.log,
            {
                everyone: discord.PermissionOverwrite(
                    view_channel=False, send_messages=False
                )
            },
        )
        await self._publish_registration_panel(bot_user_id)
        log.info("✅ Server structure verified")

    async def _publish_registration_panel(self, bot_user_id: int) -> None:
        channel = self.find_channel(self.channels.registration)
        if channel is None:
            return
        embed = embeds.build_registration_panel_embed()
        view = embeds.build_registration_panel_view()
        try:
            async for message in channel.history(limit=10):
                if message.author.id == bot_user_id and message.components:
                    await message.edit(embed=embed, view=view)
                    return
            await channel.send(embed=embed, view=view)
        except discord.HTTPException as exc:
            log.warning("Cannot publish registration panel: %s", exc)

    # ----- Check-in window -----
    async def set_check_in_open(self, is_open: bool) -> bool:
        channel = self.find_channel(self.channels.check_in)
        role = self.get_role(self.team_role_name)
        if channel is None or role is None:
            log.warning("Check-in channel or team role missing; cannot toggle")
            return False
        try:
            await channel.set_permissions(
                role, view_channel=True, send_messages=is_open
            )
        except discord.HTTPException as exc:
            log.warning("Cannot update check-in permissions: %s", exc)
            return False
        return True

    async def announce_check_in_open(self, scrim: Scrim) -> bool:
        mention = f"<@&{scrim.mention_role_id}>" if scrim.mention_role_id else None
        message = await self.send_to_channel(
            self.channels.check_in,
            mention,
            embed=embeds.build_check_in_open_embed(scrim),
            view=embeds.build_check_in_view(scrim.scrim_name),
        )
        return message is not None

    async def announce_check_in_closed(self, scrim: Scrim, team_count: int) -> bool:
        message = await self.send_to_channel(
            self.channels.check_in,
            embed=embeds.build_check_in_closed_embed(scrim, team_count),
        )
        return message is not None

    async def post_lobby_roster(
        self,
        scrim_name: str,
        scrim_date: str,
        lobby_number: int,
        slot_list: str,
        *,
        role: discord.Role | None,
    ) -> bool:
        overwrites: dict[discord.abc.Snowflake, discord.PermissionOverwrite] = {
            self.guild.default_role: discord.PermissionOverwrite(view_channel=False),
        }
        if role is not None:
            overwrites[role] = discord.PermissionOverwrite(
                view_channel=True, send_messages=True
            )
        name = lobby_channel_name(lobby_number)
        if await self.ensure_text_channel(name, overwrites) is None:
            return False
        message = await self.send_to_channel(
            name,
            embed=embeds.build_roster_embed(
                scrim_name, scrim_date, lobby_number, slot_list
            ),
            view=embeds.build_transfer_view(lobby_number, scrim_date),
        )
        return message is not None


__all__ = ["ChannelNames", "DiscordNotifier"]
