"""Tests for SessionController: startup, transport events, navigation and shutdown."""

import asyncio
import json
import time

import pytest

from discord_term.core import encryption
from discord_term.core.commands import CommandStatus
from discord_term.core.controller import (
    SessionController,
    TOKEN_PATTERN,
    channel_label,
    find_default_channel,
)
from discord_term.core.state import to_persisted
from discord_term.core.transport import ChannelKind
from tests.harness import (
    make_channel,
    make_dm_channel,
    make_guild,
    make_message,
    make_user,
)

CLIPBOARD_TOKEN = "M" + "a" * 23 + "." + "b" * 6 + "." + "c" * 27


class TestHelpers:
    def test_token_pattern_matches_clipboard_token(self):
        assert TOKEN_PATTERN.search(f"copied: {CLIPBOARD_TOKEN} !").group() == CLIPBOARD_TOKEN

    def test_default_channel_prefers_general(self):
        assert find_default_channel(make_guild()).name == "general"

    def test_default_channel_falls_back_to_first_text(self):
        guild = make_guild(channels=(
            make_channel("1", "stage", kind=ChannelKind.OTHER),
            make_channel("2", "chat"),
        ))
        assert find_default_channel(guild).name == "chat"

    def test_default_channel_none(self):
        assert find_default_channel(make_guild(channels=())) is None

    @pytest.mark.parametrize(
        "name, label",
        [
            ("general", "#general"),
            ("off-topic_2", "#off-topic_2"),
            ("Émoji 🎉 room", "#?moji?room"),
            ("a" * 30, "#" + "a" * 21 + " ..."),
        ],
    )
    def test_channel_label(self, name, label):
        assert channel_label(name) == label


class TestInit:
    async def test_prompt_when_no_token_anywhere(self, controller, surface):
        await controller.setup()
        assert surface.input == "/login "
        assert surface.header_visible is True
        assert "Set the environment variable" in surface.header_text
        assert surface.last_text().startswith("<System> Welcome! Please login")

    async def test_saved_token_wins(self, controller, transport, options, monkeypatch):
        monkeypatch.setenv("TOKEN", "from-env")
        data = to_persisted(controller.state.get())
        data["token"] = "saved"
        options.state_file_path.write_text(json.dumps(data))

        await controller.setup()
        assert transport.logins == ["saved"]

    async def test_env_token_before_clipboard(self, transport, surface, options, scheduler, monkeypatch):
        monkeypatch.setenv("TOKEN", "from-env")
        controller = SessionController(
            transport, surface, options, scheduler=scheduler, clipboard=lambda: CLIPBOARD_TOKEN
        )
        await controller.setup()
        assert transport.logins == ["from-env"]

    async def test_clipboard_token(self, transport, surface, options, scheduler):
        controller = SessionController(
            transport, surface, options, scheduler=scheduler, clipboard=lambda: CLIPBOARD_TOKEN
        )
        await controller.setup()
        assert transport.logins == [CLIPBOARD_TOKEN]

    async def test_clipboard_read_keeps_loop_responsive(self, transport, surface, options, scheduler):
        def _slow_clipboard():
            time.sleep(0.3)
            return CLIPBOARD_TOKEN

        controller = SessionController(
            transport, surface, options, scheduler=scheduler, clipboard=_slow_clipboard
        )
        gaps = []

        async def _tick():
            last = time.monotonic()
            while True:
                await asyncio.sleep(0.01)
                now = time.monotonic()
                gaps.append(now - last)
                last = now

        ticker = asyncio.create_task(_tick())
        await controller.init()
        ticker.cancel()

        assert transport.logins == [CLIPBOARD_TOKEN]
        assert len(gaps) > 5
        assert max(gaps) < 0.1

    async def test_explicit_token_first(self, transport, surface, options, scheduler, monkeypatch):
        monkeypatch.setenv("TOKEN", "from-env")
        controller = SessionController(
            transport, surface, options, scheduler=scheduler, clipboard=lambda: "", login_token="cli"
        )
        await controller.setup()
        assert transport.logins == ["cli"]

    async def test_login_failure_is_reported(self, controller, transport, surface):
        transport.login_error = RuntimeError("An improper token was passed")
        assert await controller.login("bad") is False
        assert surface.last_text() == "<System> Login failed: An improper token was passed"

    async def test_setup_restores_saved_theme(self, controller, options, surface):
        data = to_persisted(controller.state.get())
        data["theme"] = "ocean"
        options.state_file_path.write_text(json.dumps(data))

        await controller.setup(init=False)
        assert controller.state.get().theme == "ocean"
        assert surface.theme.messages.foreground == "#e0f0ff"


class TestReady:
    def test_ready_selects_guild_and_general(self, controller, transport, surface, options):
        transport.token = "tok"
        controller.handle_ready()

        state = controller.state.get()
        assert state.active_guild.id == "1"
        assert state.active_channel.name == "general"
        assert state.token == "tok"
        assert surface.channels_visible is True
        assert surface.title == "Discord Terminal @ Guild # general"
        assert [c.name for c in surface.channels] == ["random", "general"]
        assert surface.active_channel_id == "10"
        assert "<System> Successfully connected as me#0001" in surface.texts()
        assert json.loads(options.state_file_path.read_text())["token"] == "tok"

    def test_ready_hides_login_header(self, controller, surface):
        controller.header.show("tip")
        controller.handle_ready()
        assert surface.header_visible is False

    def test_guild_without_text_channels_warns(self, controller, surface):
        controller.set_active_guild(make_guild(id="2", name="Empty", channels=()))
        assert surface.last_text() == "<System> Warning: Guild 'Empty' doesn't have any text channels"
        assert surface.title == "Discord Terminal @ Empty"

    def test_ready_errors_are_reported_not_raised(self, controller, transport, surface):
        transport.guilds = None
        controller.handle_ready()
        assert surface.last_text().startswith("<System> Error while handling ready event")


class TestInboundMessages:
    def test_active_channel_message(self, ready_controller, surface):
        ready_controller.handle_message(make_message("hello", channel=make_channel()))
        assert surface.texts() == ["<@bob#0002> hello"]

    def test_own_message_is_remembered(self, ready_controller, surface, me):
        message = make_message("mine", author=me, deletable=True)
        ready_controller.handle_message(message)
        assert ready_controller.state.get().last_outgoing_message == message
        assert surface.texts() == ["<@me#0001> mine"]
        assert ready_controller.edit_last_prefill() == "/edit 5000 mine"

    def test_encrypted_message_is_revealed(self, ready_controller, surface):
        wrapped = encryption.wrap("secret plan", "discord-term")
        ready_controller.handle_message(make_message(wrapped))
        assert surface.texts() == ["<@bob#0002> secret plan"]

    def test_dm_both_directions(self, ready_controller, surface, me):
        bob = make_user("200", "bob#0002")
        ready_controller.handle_message(make_message("yo", author=bob, channel=make_dm_channel(me)))
        ready_controller.handle_message(make_message("hey", author=me, channel=make_dm_channel(bob)))
        assert surface.texts() == ["<<= DM ~> @bob#0002> yo", "<=> DM ~> @bob#0002> hey"]

    def test_tracked_user(self, ready_controller, surface):
        ready_controller.state.update(track_list={"200"})
        ready_controller.handle_message(make_message("hi", channel=make_channel("11", "random")))
        assert surface.texts() == ["<Track ~> @bob#0002> hi"]

    def test_role_glyphs_on_guild_messages(self, ready_controller, surface, guild):
        ready_controller.handle_message(make_message("hi", guild=guild, can_manage_messages=True))
        assert surface.texts() == ["<+@bob#0002> hi"]

    def test_message_body_cannot_inject_markup(self, ready_controller, surface):
        ready_controller.handle_message(make_message("[red]x[/red]"))
        assert surface.texts() == ["<@bob#0002> [red]x[/red]"]

    def test_client_error(self, controller, surface):
        controller.handle_error(RuntimeError("gateway hiccup"))
        assert surface.last_text() == "<System> An error occurred within the client: gateway hiccup"

    def test_guild_join_and_leave(self, ready_controller, surface, guild):
        ready_controller.handle_guild_join(make_guild(id="2", name="New", member_count=9))
        assert surface.last_text() == "<System> Joined guild 'New' (9 members)"
        ready_controller.handle_guild_leave(guild)
        assert surface.last_text() == "<System> Left guild 'Guild' (3 members)"
        assert ready_controller.state.get().active_guild is None
        assert surface.title == "Discord Terminal"


class TestNavigation:
    def test_select_channel(self, ready_controller):
        assert ready_controller.select_channel("11") is True
        assert ready_controller.state.get().active_channel.name == "random"
        assert ready_controller.select_channel("11") is False
        assert ready_controller.select_channel("12") is False
        assert ready_controller.select_channel("999") is False

    def test_switching_channel_stops_typing(self, ready_controller, transport, scheduler):
        ready_controller.on_input_changed("typing away")
        assert ready_controller.typing.active is True
        ready_controller.select_channel("11")
        assert ready_controller.typing.active is False
        assert transport.typing == [("start", "10"), ("stop", "10")]


class TestInput:
    async def test_send_without_channel(self, controller, transport, surface):
        result = await controller.submit("hello")
        assert result.status is CommandStatus.BLOCKED
        assert surface.last_text() == "<System> No active text channel"
        assert transport.sent == []

    async def test_send_failure_is_reported(self, ready_controller, transport, surface):
        transport.send_error = RuntimeError("Missing Permissions")
        result = await ready_controller.submit("hello")
        assert result.status is CommandStatus.FAILURE
        assert surface.last_text() == "<System> Unable to send message: Missing Permissions"

    def test_commands_do_not_trigger_typing(self, ready_controller):
        ready_controller.on_input_changed("/he")
        assert ready_controller.typing.active is False

    def test_muting_stops_typing(self, ready_controller):
        ready_controller.on_input_changed("hi")
        ready_controller.state.update(muted=True)
        assert ready_controller.typing.active is False

    async def test_submit_stops_typing(self, ready_controller):
        ready_controller.on_input_changed("hi")
        await ready_controller.submit("hi")
        assert ready_controller.typing.active is False

    def test_complete_and_escape(self, controller):
        assert controller.complete("/he") == "/help "
        assert controller.escape_input("/tag foo") == "/"
        assert controller.escape_input("half a message") == ""

    async def test_delete_last(self, ready_controller, transport, me):
        assert await ready_controller.delete_last() is False
        ready_controller.handle_message(make_message("oops", author=me, id="77", deletable=True))
        assert await ready_controller.delete_last() is True
        assert transport.deletes == ["77"]
        assert ready_controller.edit_last_prefill() is None


class TestShutdown:
    async def test_shutdown_continues_after_close_failure(self, transport, surface, options, scheduler):
        codes = []
        controller = SessionController(
            transport, surface, options, scheduler=scheduler, exit_hook=codes.append, clipboard=lambda: ""
        )

        async def _broken_close():
            raise RuntimeError("socket gone")

        transport.close = _broken_close
        await controller.shutdown(3)

        assert "<System> Error while handling shutdown event: socket gone" in surface.texts()
        assert options.state_file_path.exists()
        assert codes == [3]

    async def test_shutdown_cancels_typing(self, ready_controller, scheduler):
        ready_controller.on_input_changed("hi")
        await ready_controller.shutdown()
        assert scheduler.pending() == []
