"""Textual application: the terminal surface the SessionController draws on.

// [LAW:locality-or-seam] DiscordTermApp implements DisplaySurface and forwards
//   input events to the controller. No session logic lives here.
"""

import logging
from typing import Optional, Sequence

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Input, ListView

import discord_term.core.rendering
from discord_term.core.controller import SessionController, TITLE, channel_label, read_clipboard
from discord_term.core.options import AppOptions
from discord_term.core.theme import Theme
from discord_term.tui.widgets import (
    ChannelList,
    CommandInput,
    HeaderBar,
    MessagesPane,
    set_colors,
)

logger = logging.getLogger(__name__)


class DiscordTermApp(App):
    """TUI application for discord-term."""

    CSS_PATH = "styles.css"
    TITLE = TITLE

    BINDINGS = [
        Binding("ctrl+c", "shutdown", "Quit", priority=True),
        Binding("ctrl+x", "force_exit", "Force quit", priority=True),
    ]

    def __init__(
        self,
        transport,
        options: Optional[AppOptions] = None,
        scheduler=None,
        auto_init: bool = True,
        clipboard=read_clipboard,
        login_token: Optional[str] = None,
    ):
        super().__init__()
        self.options = options or AppOptions()
        self._auto_init = auto_init
        self.controller = SessionController(
            transport,
            self,
            self.options,
            scheduler=scheduler,
            exit_hook=self._exit_with,
            clipboard=clipboard,
            login_token=login_token,
        )

    def compose(self) -> ComposeResult:
        yield HeaderBar(id="header")
        yield ChannelList(id="channels")
        yield MessagesPane(id="messages", max_lines=self.options.max_messages, wrap=True, markup=False)
        yield CommandInput(id="input", placeholder="Type a message or /help")

    def on_mount(self) -> None:
        self.query_one(CommandInput).focus()
        self.run_worker(self.controller.setup(init=self._auto_init), exclusive=True)

    def _exit_with(self, code: int) -> None:
        self.exit(return_code=code)

    # ─── DisplaySurface ────────────────────────────────────────────────

    def push_line(self, line) -> None:
        self.query_one(MessagesPane).write(line)

    def clear_messages(self) -> None:
        self.query_one(MessagesPane).clear()

    def scroll_to_end(self) -> None:
        self.query_one(MessagesPane).scroll_end(animate=False)

    def refresh_display(self, hard: bool = False) -> None:
        self.screen.refresh(layout=hard)

    @property
    def header_visible(self) -> bool:
        return self.query_one(HeaderBar).display

    def set_header_text(self, text: str) -> None:
        self.query_one(HeaderBar).update(discord_term.core.rendering.markup(text))

    def show_header(self) -> None:
        self.query_one(HeaderBar).display = True

    def hide_header(self) -> None:
        self.query_one(HeaderBar).display = False

    @property
    def channels_visible(self) -> bool:
        return self.query_one(ChannelList).display

    def show_channels(self) -> None:
        self.query_one(ChannelList).display = True

    def hide_channels(self) -> None:
        self.query_one(ChannelList).display = False

    def update_channels(self, channels: Sequence, active_id) -> None:
        rows = [(c.id, channel_label(c.name)) for c in channels]
        self.query_one(ChannelList).set_channels(rows, active_id)

    def apply_theme(self, theme: Theme) -> None:
        set_colors(self.query_one(MessagesPane), theme.messages.foreground, theme.messages.background)
        set_colors(self.query_one(CommandInput), theme.input.foreground, theme.input.background)
        set_colors(self.query_one(HeaderBar), theme.header.foreground, theme.header.background)
        self.query_one(ChannelList).apply_group(theme.channels)

    def set_title(self, title: str) -> None:
        self.title = title

    def get_input(self) -> str:
        return self.query_one(CommandInput).value

    def set_input(self, value: str) -> None:
        box = self.query_one(CommandInput)
        box.value = value
        box.cursor_position = len(value)

    # ─── Input events ──────────────────────────────────────────────────

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        value = event.value
        event.input.value = ""
        await self.controller.submit(value)

    def on_input_changed(self, event: Input.Changed) -> None:
        self.controller.on_input_changed(event.value)

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        if event.item is not None and event.item.name:
            self.controller.select_channel(event.item.name)
        self.query_one(CommandInput).focus()

    # ─── Actions ───────────────────────────────────────────────────────

    def action_complete_input(self) -> None:
        completed = self.controller.complete(self.get_input())
        if completed is not None:
            self.set_input(completed)

    def action_escape_input(self) -> None:
        self.set_input(self.controller.escape_input(self.get_input()))

    def action_edit_last(self) -> None:
        prefill = self.controller.edit_last_prefill()
        if prefill is not None:
            self.set_input(prefill)

    async def action_delete_last(self) -> None:
        await self.controller.delete_last()

    async def action_shutdown(self) -> None:
        await self.controller.shutdown(0)

    def action_force_exit(self) -> None:
        logger.info("Force exit requested; state not saved")
        self.exit(return_code=0)
