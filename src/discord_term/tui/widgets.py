"""Widgets composed by DiscordTermApp.

// [LAW:locality-or-seam] Widgets render and forward keys; they never touch
//   session state. Key actions are routed to the app (``app.*`` actions).
"""

import logging
from typing import Optional

from textual import events
from textual.binding import Binding
from textual.color import ColorParseError
from textual.css.errors import StyleValueError
from textual.widget import Widget
from textual.widgets import Input, Label, ListItem, ListView, RichLog, Static

logger = logging.getLogger(__name__)


def set_colors(widget: Widget, foreground: Optional[str], background: Optional[str]) -> None:
    """Apply a theme color pair; unparsable values are logged and skipped."""
    for attr, value in (("color", foreground), ("background", background)):
        if not value:
            continue
        try:
            setattr(widget.styles, attr, value)
        except (ColorParseError, StyleValueError):
            logger.warning("Ignoring unparsable theme color %r for %s", value, widget)


class HeaderBar(Static):
    """One-line ``[!]`` banner. Hidden until a notice is shown."""

    DEFAULT_CSS = """
    HeaderBar {
        height: 1;
        padding: 0 1;
        display: none;
    }
    """


class ChannelItem(ListItem):
    """A channel row; ``name`` carries the channel id."""

    def __init__(self, label: str, channel_id: str, active: bool = False):
        super().__init__(Label(label), name=channel_id, classes="-active" if active else "")
        self.group = None

    def on_enter(self, event: events.Enter) -> None:
        if self.group is not None:
            set_colors(self, self.group.foreground_hover, self.group.background_hover)

    def on_leave(self, event: events.Leave) -> None:
        if self.group is not None:
            set_colors(self, self.group.foreground, self.group.background)


class ChannelList(ListView):
    """Text channels of the active guild. Hidden in fullscreen mode."""

    DEFAULT_CSS = """
    ChannelList {
        dock: left;
        width: 30;
        display: none;
    }
    ChannelList > ChannelItem.-active {
        text-style: bold;
    }
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.group = None

    def set_channels(self, rows: list[tuple[str, str]], active_id: Optional[str]) -> None:
        self.clear()
        for channel_id, label in rows:
            item = ChannelItem(label, channel_id, active=channel_id == active_id)
            item.group = self.group
            if self.group is not None:
                set_colors(item, self.group.foreground, self.group.background)
            self.append(item)

    def apply_group(self, group) -> None:
        self.group = group
        set_colors(self, group.foreground, group.background)
        for item in self.query(ChannelItem):
            item.group = group
            set_colors(item, group.foreground, group.background)


class MessagesPane(RichLog):
    """Scrollback of rendered lines, capped at ``max_lines``."""

    DEFAULT_CSS = """
    MessagesPane {
        height: 1fr;
    }
    """


class CommandInput(Input):
    """Single-line input with completion and message-edit keys."""

    BINDINGS = [
        Binding("tab", "app.complete_input", "Complete", show=False),
        Binding("escape", "app.escape_input", "Clear", show=False),
        Binding("up", "app.edit_last", "Edit last", show=False),
        Binding("down", "app.delete_last", "Delete last", show=False),
    ]
