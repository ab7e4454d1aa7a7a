from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from discord import app_commands
from fakes import GUILD_ID, FakeNotifier, FakeTable, make_scrim, make_team

from scrim_bot.actions import ACTION_TYPES, CheckIn, DeleteTeam, TransferLobbyRole
from scrim_bot.config import BotConfig
from scrim_bot.errors import InvalidValueError
from scrim_bot.runtime import GENERIC_FAILURE, ScrimBotRuntime, is_admin

DATE = "2024-01-01"


class FakeResponse:
    def __init__(self) -> None:
        self.messages: list[dict[str, object]] = []

    async def send_message(
        self, message: str | None = None, *, embed=None, ephemeral: bool = False
    ) -> None:
        self.messages.append(
            {"content": message, "embed": embed, "ephemeral": ephemeral}
        )

    def is_done(self) -> bool:
        return bool(self.messages)


class FakeFollowup:
    def __init__(self) -> None:
        self.sent: list[dict[str, object]] = []

    async def send(
        self, content: str | None = None, *, embed=None, ephemeral: bool = False
    ) -> None:
        self.sent.append({"content": content, "embed": embed, "ephemeral": ephemeral})


class FakeInteraction:
    def __init__(self, user_id: int, *, admin: bool = False) -> None:
        self.user = SimpleNamespace(
            id=user_id,
            name=f"user{user_id}",
            guild_permissions=SimpleNamespace(administrator=admin),
        )
        self.response = FakeResponse()
        self.followup = FakeFollowup()
        self.channel = None

    @property
    def replies(self) -> list[dict[str, object]]:
        return self.response.messages + self.followup.sent


class FakeMessage:
    def __init__(self, author_id: int, content: str, channel=None) -> None:
        self.id = 1
        self.author = SimpleNamespace(id=author_id, bot=False)
        self.content = content
        self.channel = channel if channel is not None else SimpleNamespace(id=7)
        self.replies: list[str] = []

    async def reply(self, content: str) -> None:
        self.replies.append(content)


@pytest.fixture
def config() -> BotConfig:
    return BotConfig(
        discord_token="token",
        guild_id=GUILD_ID,
        table_name="scrims",
        thread_archive_delay_seconds=0,
    )


@pytest.fixture
def runtime(config, clock):
    client = discord.Client(intents=discord.Intents.none())
    return ScrimBotRuntime(
        config,
        client=client,
        table=FakeTable(),
        clock=clock,
        notifier=FakeNotifier(),
    )


def test_every_component_action_has_a_handler(runtime):
    assert set(runtime._component_handlers) == set(ACTION_TYPES)


def test_slash_commands_are_registered_for_guild(runtime):
    commands = runtime.tree.get_commands(guild=discord.Object(id=GUILD_ID))

    assert {command.name for command in commands} == {
        "create_scrim",
        "delete_scrim",
        "list_teams",
        "delete_team",
        "create_leaderboard",
        "view_slots",
        "force_checkin",
    }


def test_is_admin_reads_guild_permissions():
    assert is_admin(FakeInteraction(1, admin=True).user) is True
    assert is_admin(FakeInteraction(1).user) is False
    assert is_admin(SimpleNamespace(id=1)) is False


@pytest.mark.asyncio
async def test_domain_errors_become_ephemeral_replies(runtime):
    runtime.storage.create_team(make_team("Alpha", 1, 2, 3))
    interaction = FakeInteraction(2)

    await runtime.dispatch_component(interaction, DeleteTeam())

    assert interaction.replies == [
        {
            "content": "❌ Only the team captain can delete the team.",
            "embed": None,
            "ephemeral": True,
        }
    ]
    assert runtime.storage.get_team("Alpha") is not None


@pytest.mark.asyncio
async def test_unexpected_errors_get_generic_reply(runtime, monkeypatch):
    interaction = FakeInteraction(1)
    monkeypatch.setattr(
        runtime.assigner, "transfer_role", AsyncMock(side_effect=KeyError("boom"))
    )

    await runtime.dispatch_component(interaction, TransferLobbyRole(1, DATE))

    assert interaction.replies[0]["content"] == GENERIC_FAILURE


@pytest.mark.asyncio
async def test_captain_deletes_team(runtime):
    runtime.storage.create_team(make_team("Alpha", 1, 2, 3))
    interaction = FakeInteraction(1)

    await runtime.dispatch_component(interaction, DeleteTeam())

    assert runtime.storage.get_team("Alpha") is None
    assert 'Team "Alpha" has been deleted' in interaction.replies[0]["content"]


@pytest.mark.asyncio
async def test_check_in_button_then_captcha_reply(runtime):
    runtime.storage.save_scrim(make_scrim("Evening"))
    runtime.storage.create_team(make_team("Alpha", 1, 2, 3))
    interaction = FakeInteraction(2)

    await runtime.dispatch_component(interaction, CheckIn("Evening"))

    embed = interaction.replies[0]["embed"]
    assert embed.title == "🔐 Captcha Verification"
    word = runtime.check_in.window_for(2).captcha_word
    message = FakeMessage(2, word.lower())

    await runtime.on_message(message)

    assert message.replies[0].startswith("✅ **Check-in successful!**")
    assert "Lobby: **1**" in message.replies[0]
    assert "Position: **#1**" in message.replies[0]
    assert "checked in to Evening" in runtime.notifier.logs[-1]


@pytest.mark.asyncio
async def test_wrong_captcha_reply_is_reported(runtime):
    runtime.storage.save_scrim(make_scrim("Evening"))
    runtime.storage.create_team(make_team("Alpha", 1, 2, 3))
    await runtime.check_in.start(1, "Evening")
    message = FakeMessage(1, "nope")

    await runtime.on_message(message)

    assert message.replies == ["❌ Incorrect captcha. Please try again."]
    assert runtime.check_in.has_window(1)


@pytest.mark.asyncio
async def test_unrelated_messages_are_ignored(runtime):
    message = FakeMessage(5, "hello there")
    bot_message = FakeMessage(5, "hello there")
    bot_message.author.bot = True

    await runtime.on_message(message)
    await runtime.on_message(bot_message)

    assert message.replies == []
    assert bot_message.replies == []


@pytest.mark.asyncio
async def test_thread_replies_drive_registration_and_archive(runtime):
    thread = MagicMock(spec=discord.Thread)
    thread.id = 321
    thread.edit = AsyncMock()
    runtime.registration.open_session(thread.id, 1)
    answers = [
        "Alpha",
        "ALP",
        "Cap#11111111",
        "Two#22222222",
        "Three#33333333",
        "<@2> <@3> <@1>",
    ]

    for content in answers:
        await runtime.on_message(FakeMessage(1, content, channel=thread))
    for task in list(runtime._background):
        await task

    assert runtime.storage.get_team("Alpha").member_ids == (1, 2, 3)
    thread.edit.assert_awaited_once_with(archived=True)


@pytest.mark.asyncio
async def test_create_scrim_saves_and_restarts_ticker(runtime, monkeypatch):
    restarts = []
    monkeypatch.setattr(runtime.scheduler, "restart", lambda: restarts.append(True))
    interaction = FakeInteraction(1, admin=True)

    scrim = await runtime.create_scrim(
        interaction, "Evening", "friday,monday", "20:00", "20:30", 77
    )

    assert scrim.days == ["Monday", "Friday"]
    assert runtime.storage.get_scrim("Evening").mention_role_id == 77
    assert restarts == [True]
    assert "Check-in:** 20:00 - 20:30" in interaction.replies[0]["content"]


@pytest.mark.asyncio
async def test_create_scrim_rejects_bad_time(runtime):
    with pytest.raises(InvalidValueError):
        await runtime.create_scrim(
            FakeInteraction(1, admin=True), "Evening", "Monday", "25:00", "20:30"
        )
    assert runtime.storage.list_scrims() == []


@pytest.mark.asyncio
async def test_force_check_in_and_view_slots(runtime):
    runtime.storage.save_scrim(make_scrim("Evening"))
    runtime.storage.create_team(make_team("Alpha", 1, 2, 3))
    admin = FakeInteraction(9, admin=True)

    registration = await runtime.force_check_in(admin, "Alpha", "Evening")
    viewer = FakeInteraction(4)
    await runtime.view_slots(viewer)

    assert registration.scrim_date == DATE
    assert "force checked-in to Lobby 1" in admin.replies[0]["content"]
    field = viewer.replies[0]["embed"].fields[0]
    assert field.name == "Evening"
    assert "Alpha" in field.value


@pytest.mark.asyncio
async def test_list_teams_when_empty(runtime):
    interaction = FakeInteraction(9, admin=True)

    await runtime.list_teams(interaction)

    assert interaction.replies[0]["content"] == "📋 No teams registered yet."


@pytest.mark.asyncio
async def test_command_errors_are_reported(runtime):
    denied = FakeInteraction(1)
    failed = FakeInteraction(1)

    await runtime.on_app_command_error(
        denied, app_commands.CheckFailure("Only administrators can use this command.")
    )
    await runtime.on_app_command_error(failed, app_commands.AppCommandError("boom"))

    assert denied.replies[0]["content"].startswith("❌ Only administrators")
    assert failed.replies[0]["content"] == GENERIC_FAILURE


@pytest.mark.asyncio
async def test_deleting_open_scrim_closes_check_in(runtime):
    runtime.storage.save_scrim(make_scrim("Evening"))
    await runtime.scheduler.tick()
    admin = FakeInteraction(9, admin=True)

    await runtime.delete_scrim(admin, "Evening")

    assert runtime.notifier.check_in_states == [True, False]
    assert runtime.scheduler.open_scrims == set()
    assert admin.replies[0]["content"] == '✅ Scrim "Evening" deleted.'


@pytest.mark.asyncio
async def test_check_in_button_outside_window_is_refused(runtime):
    runtime.storage.save_scrim(make_scrim("Late", start=14 * 60, end=15 * 60))
    runtime.storage.create_team(make_team("Alpha", 1, 2, 3))
    interaction = FakeInteraction(1)

    await runtime.dispatch_component(interaction, CheckIn("Late"))

    assert interaction.replies[0]["content"].startswith(
        "❌ Check-in is not open for Late"
    )
    assert not runtime.check_in.has_window(1)
