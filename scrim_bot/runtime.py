"""Discord runtime wiring the scrim check-in engine to slash commands and buttons."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import boto3
import discord
from discord import app_commands

from . import embeds
from .actions import (
    CheckIn,
    ComponentAction,
    DeleteTeam,
    EditTeam,
    RegisterTeam,
    TransferLobbyRole,
    parse_custom_id,
)
from .checkin import CheckInFlow
from .clock import Clock
from .config import BotConfig
from .errors import ConflictError, NotFoundError, ScrimBotError
from .leaderboard import parse_leaderboard_lines
from .lobby import LobbyAssigner
from .models import DailyRegistration, Scrim
from .notify import DiscordNotifier
from .registration import RegistrationFlow
from .scheduler import ScrimScheduler
from .sessions import SessionStore
from .storage import ScrimStorage
from .validation import parse_time_of_day, parse_weekdays

log = logging.getLogger("scrim-bot")

GENERIC_FAILURE = "❌ An error occurred while processing your request."


def is_admin(member: discord.abc.User) -> bool:
    guild_perms = getattr(member, "guild_permissions", None)
    return bool(getattr(guild_perms, "administrator", False))


def require_admin():
    async def predicate(interaction: discord.Interaction) -> bool:
        if is_admin(interaction.user):
            return True
        raise app_commands.CheckFailure("Only administrators can use this command.")

    return app_commands.check(predicate)


async def send_ephemeral(
    interaction: discord.Interaction,
    message: str | None = None,
    *,
    embed: discord.Embed | None = None,
) -> None:
    kwargs: dict[str, object] = {"ephemeral": True}
    if embed is not None:
        kwargs["embed"] = embed
    if interaction.response.is_done():
        await interaction.followup.send(message, **kwargs)
    else:
        await interaction.response.send_message(message, **kwargs)


ComponentHandler = Callable[..., Awaitable[None]]


class ScrimBotRuntime:
    def __init__(
        self,
        config: BotConfig,
        *,
        client: discord.Client | None = None,
        table=None,
        clock: Clock | None = None,
        notifier=None,
    ) -> None:
        if client is None:
            intents = discord.Intents.default()
            intents.guilds = True
            intents.members = True
            intents.message_content = True
            client = discord.Client(intents=intents)
        if table is None:
            dynamodb = boto3.resource("dynamodb", region_name=config.aws_region)
            table = dynamodb.Table(config.table_name)

        self.config = config
        self.bot = client
        self.tree = app_commands.CommandTree(self.bot)
        self.storage = ScrimStorage(table, config.guild_id)
        self.clock = clock or Clock(config.timezone)
        self.notifier = notifier or DiscordNotifier(self.bot, config.guild_id)
        self.assigner = LobbyAssigner(
            self.storage, self.notifier, capacity=config.lobby_capacity
        )
        self.registration = RegistrationFlow(
            self.storage,
            self.notifier,
            sessions=SessionStore(max_size=config.session_limit, name="registration"),
            team_role_name=self.notifier.team_role_name,
        )
        self.check_in = CheckInFlow(
            self.storage,
            self.assigner,
            self.clock,
            windows=SessionStore(max_size=config.session_limit, name="captcha"),
            timeout_seconds=config.captcha_timeout_seconds,
        )
        self.scheduler = ScrimScheduler(
            self.storage,
            self.clock,
            self.notifier,
            self.assigner,
            check_in=self.check_in,
        )
        self._background: set[asyncio.Task] = set()
        self._component_handlers: dict[type, ComponentHandler] = {
            RegisterTeam: self.on_register_pressed,
            EditTeam: self.on_edit_pressed,
            DeleteTeam: self.on_delete_pressed,
            CheckIn: self.on_check_in_pressed,
            TransferLobbyRole: self.on_transfer_pressed,
        }
        self._register_events()
        self._register_commands()

    # ----- Lifecycle -----
    def _register_events(self) -> None:
        self.bot.event(self.on_ready)
        self.bot.event(self.on_interaction)
        self.bot.event(self.on_message)
        self.tree.error(self.on_app_command_error)

    async def on_ready(self) -> None:  # pragma: no cover - Discord lifecycle hook
        if self.config.sync_commands:
            await self.tree.sync(guild=discord.Object(id=self.config.guild_id))
            log.info("Commands synced to guild %s", self.config.guild_id)
        await self.notifier.provision(self.bot.user.id)
        self.scheduler.start()
        log.info("Scrim bot ready as %s (%s)", self.bot.user, self.bot.user.id)

    async def run(self) -> None:  # pragma: no cover - CLI entry point
        try:
            async with self.bot:
                await self.bot.start(self.config.discord_token)
        finally:
            self.scheduler.stop()

    @classmethod
    def create(cls) -> ScrimBotRuntime:
        return cls(BotConfig.load())

    # ----- Scheduler entry points -----
    def on_scrim_created(self, scrim: Scrim) -> None:
        log.info("Scrim %s saved; restarting ticker", scrim.scrim_name)
        self.scheduler.restart()

    async def on_tick(self):
        return await self.scheduler.tick()

    # ----- Components -----
    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type != discord.InteractionType.component:
            return
        data = interaction.data or {}
        action = parse_custom_id(data.get("custom_id"))
        if action is None:
            return
        await self.dispatch_component(interaction, action)

    async def dispatch_component(
        self, interaction: discord.Interaction, action: ComponentAction
    ) -> None:
        handler = self._component_handlers[type(action)]
        try:
            await handler(interaction, action)
        except ScrimBotError as exc:
            await send_ephemeral(interaction, f"❌ {exc}")
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Interaction error for %r: %s", action, exc)
            await send_ephemeral(interaction, GENERIC_FAILURE)

    async def _open_thread(
        self, interaction: discord.Interaction, name: str, reason: str
    ) -> discord.Thread:
        channel = interaction.channel
        if not isinstance(channel, discord.TextChannel):
            raise ConflictError("Use the registration panel in a server text channel.")
        thread = await channel.create_thread(
            name=name[:100],
            auto_archive_duration=60,
            type=discord.ChannelType.public_thread,
            reason=reason,
        )
        await thread.add_user(interaction.user)
        return thread

    async def on_register_pressed(
        self, interaction: discord.Interaction, action: RegisterTeam
    ) -> None:
        user = interaction.user
        self.registration.ensure_can_register(user.id)
        thread = await self._open_thread(
            interaction, f"Registration - {user.name}", "Team registration"
        )
        greeting = self.registration.open_session(thread.id, user.id)
        await thread.send(greeting)
        await send_ephemeral(
            interaction,
            f"✅ Registration started! Please check the thread: {thread.mention}",
        )

    async def on_edit_pressed(
        self, interaction: discord.Interaction, action: EditTeam
    ) -> None:
        user = interaction.user
        team = self.registration.team_managed_by(
            user.id, is_admin=is_admin(user), action="edit"
        )
        thread = await self._open_thread(
            interaction, f"Edit - {team.team_name}", "Team editing"
        )
        greeting = self.registration.open_session(thread.id, user.id, editing_team=team)
        await thread.send(greeting)
        await send_ephemeral(
            interaction, f"✅ Edit started! Please check the thread: {thread.mention}"
        )

    async def on_delete_pressed(
        self, interaction: discord.Interaction, action: DeleteTeam
    ) -> None:
        user = interaction.user
        team = self.registration.team_managed_by(
            user.id, is_admin=is_admin(user), action="delete"
        )
        await self.registration.delete_team(team, deleted_by=user.id)
        await send_ephemeral(
            interaction, f'✅ Team "{team.team_name}" has been deleted.'
        )

    async def on_check_in_pressed(
        self, interaction: discord.Interaction, action: CheckIn
    ) -> None:
        window = await self.check_in.start(interaction.user.id, action.scrim_name)
        await send_ephemeral(
            interaction,
            embed=embeds.build_captcha_embed(
                window.captcha_word, self.config.captcha_timeout_seconds
            ),
        )

    async def on_transfer_pressed(
        self, interaction: discord.Interaction, action: TransferLobbyRole
    ) -> None:
        recipient = await self.assigner.transfer_role(
            interaction.user.id, action.lobby_number, action.scrim_date
        )
        await send_ephemeral(
            interaction, f"✅ Lobby role transferred to <@{recipient}>"
        )

    # ----- Free-text replies -----
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        try:
            await self.on_free_text_reply(message)
        except ScrimBotError as exc:
            await message.reply(f"❌ {exc}")
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Failed to handle message %s: %s", message.id, exc)
            await message.reply(GENERIC_FAILURE)

    async def on_free_text_reply(self, message: discord.Message) -> None:
        """Route a message to the registration dialog or captcha that owns it."""
        channel = message.channel
        if isinstance(channel, discord.Thread):
            reply = await self.registration.handle_reply(
                channel.id, message.author.id, message.content
            )
            if reply is not None:
                await message.reply(reply.message)
                if reply.completed:
                    self._schedule_archive(channel)
                return

        result = await self.check_in.handle_reply(message.author.id, message.content)
        if result is None:
            return
        registration = result.registration
        text = (
            "✅ **Check-in successful!**\n\n"
            f"Team: **{registration.team_name}**\n"
            f"Lobby: **{registration.lobby_number}**\n"
            f"Position: **#{registration.check_in_order}**"
        )
        role = result.lobby_role
        if role is not None:
            text += f"\n\nYou have been assigned the <@&{role.id}> role!"
        await message.reply(text)
        await self.notifier.send_log(
            f'✅ Team "{registration.team_name}" checked in to '
            f"{registration.scrim_name} - Lobby {registration.lobby_number} "
            f"(Position #{registration.check_in_order})"
        )

    def _schedule_archive(self, thread: discord.Thread) -> None:
        task = asyncio.create_task(self._archive_thread_later(thread))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _archive_thread_later(self, thread: discord.Thread) -> None:
        await asyncio.sleep(self.config.thread_archive_delay_seconds)
        try:
            await thread.edit(archived=True)
        except discord.HTTPException as exc:
            log.info("Could not archive thread %s: %s", thread.id, exc)

    # ----- Slash command bodies -----
    async def create_scrim(
        self,
        interaction: discord.Interaction,
        scrim_name: str,
        days: str,
        start_time: str,
        end_time: str,
        mention_role_id: int | None = None,
    ) -> Scrim:
        scrim = Scrim(
            guild_id=self.config.guild_id,
            scrim_name=scrim_name.strip(),
            days=parse_weekdays(days),
            start_minute=parse_time_of_day(start_time),
            end_minute=parse_time_of_day(end_time),
            mention_role_id=mention_role_id,
        )
        if not scrim.scrim_name:
            raise ConflictError("Scrim name cannot be empty.")
        self.storage.save_scrim(scrim)
        await send_ephemeral(
            interaction,
            f'✅ Scrim "{scrim.scrim_name}" created successfully!\n'
            f"**Days:** {', '.join(scrim.days)}\n"
            f"**Check-in:** {scrim.start_time} - {scrim.end_time}",
        )
        self.on_scrim_created(scrim)
        return scrim

    async def delete_scrim(
        self, interaction: discord.Interaction, scrim_name: str
    ) -> None:
        if not self.storage.delete_scrim(scrim_name):
            raise NotFoundError(f'Scrim "{scrim_name}" not found.')
        await self.scheduler.forget(scrim_name)
        log.info("Scrim %s deleted by %s", scrim_name, interaction.user.id)
        await send_ephemeral(interaction, f'✅ Scrim "{scrim_name}" deleted.')

    async def list_teams(self, interaction: discord.Interaction) -> None:
        teams = self.storage.list_teams()
        if not teams:
            await send_ephemeral(interaction, "📋 No teams registered yet.")
            return
        await send_ephemeral(interaction, embed=embeds.build_teams_embed(teams))

    async def delete_team(
        self, interaction: discord.Interaction, team_name: str
    ) -> None:
        await self.registration.delete_team_by_name(
            team_name, deleted_by=interaction.user.id
        )
        await send_ephemeral(interaction, f'✅ Team "{team_name}" deleted.')

    async def create_leaderboard(
        self, interaction: discord.Interaction, scrim_name: str, data: str
    ) -> None:
        entries = parse_leaderboard_lines(data)
        embed = embeds.build_leaderboard_embed(scrim_name, entries)
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed)
        else:
            await interaction.response.send_message(embed=embed)

    async def view_slots(self, interaction: discord.Interaction) -> None:
        today = self.clock.today()
        by_scrim: dict[str, list[DailyRegistration]] = {}
        for scrim in self.storage.list_scrims():
            registrations = self.storage.list_registrations(scrim.scrim_name, today)
            if registrations:
                by_scrim[scrim.scrim_name] = registrations
        if not by_scrim:
            await send_ephemeral(interaction, "📋 No check-ins for today yet.")
            return
        await send_ephemeral(
            interaction, embed=embeds.build_slots_embed(today, by_scrim)
        )

    async def force_check_in(
        self, interaction: discord.Interaction, team_name: str, scrim_name: str
    ) -> DailyRegistration:
        registration = await self.assigner.force_check_in(
            team_name, scrim_name, interaction.user.id, self.clock.today()
        )
        await send_ephemeral(
            interaction,
            f'✅ Team "{team_name}" force checked-in to Lobby '
            f"{registration.lobby_number}.",
        )
        return registration

    async def on_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await send_ephemeral(interaction, f"❌ {error}")
            return
        original = getattr(error, "original", error)
        if isinstance(original, ScrimBotError):
            await send_ephemeral(interaction, f"❌ {original}")
            return
        log.exception("Slash command failed: %s", original, exc_info=original)
        await send_ephemeral(interaction, GENERIC_FAILURE)

    # ----- Slash command wiring -----
    def _register_commands(self) -> None:
        guild = discord.Object(id=self.config.guild_id)
        runtime = self

        @app_commands.describe(
            scrim_name="Name for the scrim",
            days="Days (e.g., Monday,Wednesday,Friday)",
            start_time="Check-in start time (HH:MM 24h format)",
            end_time="Check-in end time (HH:MM 24h format)",
            mention_role="Role to mention when check-in opens",
        )
        @require_admin()
        @app_commands.default_permissions(administrator=True)
        @self.tree.command(
            name="create_scrim",
            description="Create a new scrim schedule (Admin only)",
            guild=guild,
        )
        async def create_scrim_command(  # pragma: no cover - slash command wiring
            interaction: discord.Interaction,
            scrim_name: str,
            days: str,
            start_time: str,
            end_time: str,
            mention_role: discord.Role | None = None,
        ) -> None:
            await runtime.create_scrim(
                interaction,
                scrim_name,
                days,
                start_time,
                end_time,
                mention_role.id if mention_role is not None else None,
            )

        @app_commands.describe(scrim_name="Name of the scrim to delete")
        @require_admin()
        @app_commands.default_permissions(administrator=True)
        @self.tree.command(
            name="delete_scrim",
            description="Delete a scrim schedule (Admin only)",
            guild=guild,
        )
        async def delete_scrim_command(  # pragma: no cover - slash command wiring
            interaction: discord.Interaction, scrim_name: str
        ) -> None:
            await runtime.delete_scrim(interaction, scrim_name)

        @require_admin()
        @app_commands.default_permissions(administrator=True)
        @self.tree.command(
            name="list_teams",
            description="View all registered teams (Admin only)",
            guild=guild,
        )
        async def list_teams_command(  # pragma: no cover - slash command wiring
            interaction: discord.Interaction,
        ) -> None:
            await runtime.list_teams(interaction)

        @app_commands.describe(team_name="Team name to delete")
        @require_admin()
        @app_commands.default_permissions(administrator=True)
        @self.tree.command(
            name="delete_team",
            description="Delete a team (Admin only)",
            guild=guild,
        )
        async def delete_team_command(  # pragma: no cover - slash command wiring
            interaction: discord.Interaction, team_name: str
        ) -> None:
            await runtime.delete_team(interaction, team_name)

        @app_commands.describe(
            scrim_name="Scrim name",
            data="Format: TeamName,PlacementPoints,KillPoints (one per line)",
        )
        @require_admin()
        @app_commands.default_permissions(administrator=True)
        @self.tree.command(
            name="create_leaderboard",
            description="Generate leaderboard standings (Admin only)",
            guild=guild,
        )
        async def create_leaderboard_command(  # pragma: no cover - slash command wiring
            interaction: discord.Interaction, scrim_name: str, data: str
        ) -> None:
            await runtime.create_leaderboard(interaction, scrim_name, data)

        @self.tree.command(
            name="view_slots",
            description="View current check-in slots for today",
            guild=guild,
        )
        async def view_slots_command(  # pragma: no cover - slash command wiring
            interaction: discord.Interaction,
        ) -> None:
            await runtime.view_slots(interaction)

        @app_commands.describe(team_name="Team name", scrim_name="Scrim name")
        @require_admin()
        @app_commands.default_permissions(administrator=True)
        @self.tree.command(
            name="force_checkin",
            description="Force check-in a team (Admin only)",
            guild=guild,
        )
        async def force_checkin_command(  # pragma: no cover - slash command wiring
            interaction: discord.Interaction, team_name: str, scrim_name: str
        ) -> None:
            await runtime.force_check_in(interaction, team_name, scrim_name)


async def main() -> None:  # pragma: no cover - CLI entry point
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    runtime = ScrimBotRuntime.create()
    await runtime.run()


__all__ = ["ScrimBotRuntime", "is_admin", "main", "require_admin", "send_ephemeral"]
