"""Session controller: composes state, rendering, themes, timers and commands.

// [LAW:locality-or-seam] Thin coordinator. Rendering, routing, themes and
//   commands live in their own modules; this file wires transport events and
//   operator input to them.
// [LAW:single-enforcer] Transport-event entry points never let exceptions escape.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Callable, Optional

import pyperclip
from rich.markup import escape

import discord_term.core.encryption
from discord_term.core.builtin_commands import register_builtin_commands
from discord_term.core.commands import (
    CommandDispatcher,
    CommandRegistry,
    CommandResult,
    CommandStatus,
    OK,
)
from discord_term.core.errors import StateFileError
from discord_term.core.options import AppOptions
from discord_term.core.rendering import MessageRenderer
from discord_term.core.routing import Route, classify, role_glyphs
from discord_term.core.state import SessionState, StateStore
from discord_term.core.tags import TagTable
from discord_term.core.theme import ThemeCatalog, ThemeStore
from discord_term.core.timers import AsyncioScheduler, HeaderNotifier, Scheduler, TypingIndicator
from discord_term.core.transport import ChannelRef, GuildRef, MessageRef

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"[MN][A-Za-z\d]{23}\.[\w-]{6}\.[\w-]{27}")
TOKEN_ENV_VAR = "TOKEN"
TITLE = "Discord Terminal"

_CHANNEL_LABEL_RE = re.compile(r"[^a-z0-9-_]+")
_CHANNEL_LABEL_MAX = 25


def find_default_channel(guild: GuildRef) -> Optional[ChannelRef]:
    """A text channel named "general", else the first text channel."""
    text_channels = guild.text_channels()
    for channel in text_channels:
        if channel.name.lower() == "general":
            return channel
    return text_channels[0] if text_channels else None


def channel_label(name: str) -> str:
    """Terminal-safe ``#name`` for the channel list."""
    label = _CHANNEL_LABEL_RE.sub("?", name)
    if len(label) > _CHANNEL_LABEL_MAX:
        label = label[:21] + " ..."
    return f"#{label}"


def read_clipboard() -> str:
    try:
        return pyperclip.paste() or ""
    except pyperclip.PyperclipException:
        # Headless sessions have no clipboard backend.
        return ""


class SessionController:
    """The application object handed to every command handler as ``app``."""

    def __init__(
        self,
        transport,
        surface,
        options: Optional[AppOptions] = None,
        scheduler: Optional[Scheduler] = None,
        initial_state: Optional[SessionState] = None,
        commands: Optional[CommandRegistry] = None,
        exit_hook: Optional[Callable[[int], None]] = None,
        clipboard: Callable[[], str] = read_clipboard,
        login_token: Optional[str] = None,
    ):
        self.options = options or AppOptions()
        self.transport = transport
        self.surface = surface
        self._scheduler = scheduler or AsyncioScheduler()
        self._exit_hook = exit_hook
        self._clipboard = clipboard
        self._login_token = login_token

        self.state = StateStore(self.options.state_file_path, initial_state)
        self.message = MessageRenderer(self.state, surface)
        self.state.report = self.message.system
        self.tags = TagTable(self.state)
        self.theme = ThemeStore(
            ThemeCatalog(self.options.themes_dir), self.state, surface, self.message.system
        )
        self.typing = TypingIndicator(
            self.state, transport, self._scheduler, timeout=self.options.typing_timeout_s
        )
        self.header = HeaderNotifier(
            self.state, surface, self._scheduler, ms_per_char=self.options.header_auto_hide_ms_per_char
        )

        self.commands = commands if commands is not None else register_builtin_commands(CommandRegistry())
        self.dispatcher = CommandDispatcher(self.commands, self)

        self.state.subscribe_changed(self._on_state_changed)
        transport.bind(self)

    # ─── Startup ───────────────────────────────────────────────────────

    async def setup(self, init: bool = True) -> "SessionController":
        self.state.sync()
        self.theme.load(self.state.get().theme)
        if init:
            await self.init()
        return self

    async def init(self) -> None:
        """Pick a credential source: explicit, saved, environment, clipboard, prompt."""
        prefix = escape(self.options.command_prefix)
        saved = self.state.get().token
        env_token = os.environ.get(TOKEN_ENV_VAR)

        if self._login_token:
            self.message.system("Attempting to login using provided token")
            await self.login(self._login_token)
            return
        if saved:
            self.message.system(
                f"Attempting to login using saved token; Use [bold]{prefix}forget[/bold] to forget the token"
            )
            await self.login(saved)
            return
        if env_token:
            self.message.system("Attempting to login using environment token")
            await self.login(env_token)
            return

        # Clipboard backends shell out (xclip, wl-paste); keep the UI loop free.
        clip = await asyncio.to_thread(self._clipboard)
        match = TOKEN_PATTERN.search(clip or "")
        if match:
            self.message.system("Attempting to login using token in clipboard")
            await self.login(match.group())
            return

        self.surface.set_input(f"{self.options.command_prefix}login ")
        self.header.show(
            f"[bold]Pro Tip.[/bold] Set the environment variable [bold]{TOKEN_ENV_VAR}[/bold] to automagically login!"
        )
        self.message.system(
            f"Welcome! Please login using [bold]{prefix}login <token>[/bold] "
            f"or [bold]{prefix}help[/bold] to view available commands"
        )

    async def login(self, token: str) -> bool:
        try:
            await self.transport.login(token)
        except Exception as e:
            logger.warning("Login failed: %s", e)
            self.message.system(f"Login failed: {escape(str(e))}")
            return False
        return True

    # ─── Transport events ──────────────────────────────────────────────

    def handle_ready(self) -> None:
        try:
            self.header.hide()
            self.state.update(token=getattr(self.transport, "token", None) or self.state.get().token)
            user = self.transport.user
            tag = user.tag if user is not None else "?"
            self.message.system(f"Successfully connected as [bold]{escape(tag)}[/bold]")

            guilds = self.transport.guilds()
            if guilds:
                self.set_active_guild(guilds[0])
            self.show_channels()
            self._save_reporting()
        except Exception as e:
            self._report_event_failure("ready", e)

    def handle_message(self, message: MessageRef) -> None:
        try:
            self._route_message(message)
        except Exception as e:
            self._report_event_failure("message", e)

    def handle_error(self, error: BaseException) -> None:
        logger.error("Client error: %s", error)
        self.message.system(f"An error occurred within the client: {escape(str(error))}")

    def handle_guild_join(self, guild: GuildRef) -> None:
        self.message.system(f"Joined guild '[bold]{escape(guild.name)}[/bold]' ({guild.member_count} members)")

    def handle_guild_leave(self, guild: GuildRef) -> None:
        self.message.system(f"Left guild '[bold]{escape(guild.name)}[/bold]' ({guild.member_count} members)")
        try:
            active = self.state.get().active_guild
            if active is not None and active.id == guild.id:
                self.typing.stop()
                self.state.update(active_guild=None, active_channel=None)
                self._update_title()
        except Exception as e:
            self._report_event_failure("guild leave", e)

    def _route_message(self, message: MessageRef) -> None:
        user = self.transport.user
        self_id = user.id if user is not None else None
        if self_id is not None and message.author.id == self_id:
            self.state.update(last_outgoing_message=message)

        state = self.state.get()
        route = classify(message, state, self_id)
        if route is Route.DROP:
            return

        content = discord_term.core.encryption.reveal(message.display_content, state.decryption_key)
        author = message.author.tag

        if route is Route.TRACKED:
            self.message.special("Track", author, content)
        elif route is Route.SELF:
            self.message.self_message(author, content)
        elif route is Route.SELF_DM:
            recipient = message.channel.recipient
            self.message.special(
                "[green]=>[/green] DM", recipient.tag if recipient is not None else "?", content, "blue"
            )
        elif route is Route.USER:
            self.message.user(author, content, role_glyphs(message))
        elif route is Route.DM:
            self.message.special("[green]<=[/green] DM", author, content, "blue")
        elif route is Route.GLOBAL:
            self.message.special("Global", author, content)

    def _report_event_failure(self, event: str, error: Exception) -> None:
        logger.exception("Error handling %s event", event)
        self.message.system(f"Error while handling {event} event: {escape(str(error))}")

    # ─── Navigation ────────────────────────────────────────────────────

    def set_active_guild(self, guild: GuildRef) -> None:
        self.state.update(active_guild=guild)
        self.message.system(f"Switched to guild '[bold]{escape(guild.name)}[/bold]'")

        channel = find_default_channel(guild)
        if channel is not None:
            self.set_active_channel(channel)
        else:
            self.message.system(f"Warning: Guild '{escape(guild.name)}' doesn't have any text channels")

        self._update_title()
        self.update_channels()

    def set_active_channel(self, channel: ChannelRef) -> None:
        self.typing.stop()
        self.state.update(active_channel=channel)
        self._update_title()
        self.update_channels()
        self.message.system(f"Switched to channel '[bold]{escape(channel.name)}[/bold]'")

    def select_channel(self, channel_id: str) -> bool:
        """Channel-list click: switch when the id belongs to the active guild."""
        state = self.state.get()
        guild = state.active_guild
        if guild is None:
            return False
        if state.active_channel is not None and state.active_channel.id == channel_id:
            return False
        channel = guild.get_channel(channel_id)
        if channel is None or not channel.is_text:
            return False
        self.set_active_channel(channel)
        return True

    def update_channels(self) -> None:
        state = self.state.get()
        if state.active_guild is None:
            return
        active_id = state.active_channel.id if state.active_channel is not None else None
        self.surface.update_channels(state.active_guild.text_channels(), active_id)

    def show_channels(self) -> None:
        if not self.surface.channels_visible:
            self.surface.show_channels()
            self.surface.refresh_display()

    def hide_channels(self) -> None:
        if self.surface.channels_visible:
            self.surface.hide_channels()
            self.surface.refresh_display()

    def toggle_channels(self) -> None:
        if self.surface.channels_visible:
            self.hide_channels()
        else:
            self.show_channels()

    def _update_title(self) -> None:
        state = self.state.get()
        if state.active_guild is not None and state.active_channel is not None:
            self.surface.set_title(f"{TITLE} @ {state.active_guild.name} # {state.active_channel.name}")
        elif state.active_guild is not None:
            self.surface.set_title(f"{TITLE} @ {state.active_guild.name}")
        else:
            self.surface.set_title(TITLE)

    def _on_state_changed(self, new: SessionState, old: SessionState) -> None:
        if new.muted and not old.muted:
            self.typing.stop()

    # ─── Operator input ────────────────────────────────────────────────

    async def submit(self, raw: str) -> CommandResult:
        """Handle one submitted input line."""
        self.typing.stop()
        return await self.dispatcher.dispatch(raw)

    def complete(self, raw: str) -> Optional[str]:
        return self.dispatcher.complete(raw)

    def on_input_changed(self, value: str) -> None:
        if value and not value.startswith(self.options.command_prefix) and self.transport.user is not None:
            self.typing.start()

    async def send_message(self, text: str) -> CommandResult:
        state = self.state.get()
        if state.muted:
            self.message.system(
                "Message not sent; Muted mode is active. Please use "
                f"[bold]{escape(self.options.command_prefix)}mute[/bold] to toggle"
            )
            return CommandResult(CommandStatus.BLOCKED, "muted")
        if state.active_guild is None or state.active_channel is None:
            self.message.system("No active text channel")
            return CommandResult(CommandStatus.BLOCKED, "no active channel")

        if state.encrypt_outgoing:
            text = discord_term.core.encryption.wrap(text, state.decryption_key)
        try:
            await self.transport.send(state.active_channel, text)
        except Exception as e:
            logger.warning("Send failed: %s", e)
            self.message.system(f"Unable to send message: {escape(str(e))}")
            return CommandResult(CommandStatus.FAILURE, str(e))
        return OK

    def edit_last_prefill(self) -> Optional[str]:
        last = self.state.get().last_outgoing_message
        if last is None:
            return None
        return f"{self.options.command_prefix}edit {last.id} {last.content}"

    async def delete_last(self) -> bool:
        last = self.state.get().last_outgoing_message
        if last is None or not last.deletable:
            return False
        try:
            await self.transport.delete_message(last)
        except Exception as e:
            self.message.system(f"Unable to delete message: {escape(str(e))}")
            return False
        self.state.update(last_outgoing_message=None)
        return True

    def escape_input(self, raw: str) -> str:
        """Input value after Escape: bare prefix for a command, else empty."""
        return self.options.command_prefix if raw.startswith(self.options.command_prefix) else ""

    # ─── Shutdown ──────────────────────────────────────────────────────

    def _save_reporting(self) -> bool:
        try:
            self.state.save()
        except StateFileError as e:
            self.message.system(escape(str(e)))
            return False
        return True

    async def shutdown(self, code: int = 0) -> None:
        """Stop typing, disconnect, save, exit. Every step runs even if one fails."""
        try:
            self.typing.stop()
        except Exception as e:
            self._report_event_failure("shutdown", e)
        try:
            await self.transport.close()
        except Exception as e:
            self._report_event_failure("shutdown", e)
        self._save_reporting()
        if self._exit_hook is not None:
            self._exit_hook(code)
