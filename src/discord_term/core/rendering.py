"""Message rendering pipeline.

Every line the operator sees goes through MessageRenderer.render():
color resolution → template substitution → word-pin highlighting → surface.

// [LAW:single-enforcer] Only MessageRenderer pushes lines to the message pane.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence, Union

from rich.color import ANSI_COLOR_NAMES, Color, ColorParseError
from rich.errors import MarkupError
from rich.markup import escape
from rich.style import Style
from rich.text import Text

logger = logging.getLogger(__name__)

SYSTEM_SENDER = "[bold]System[/bold]"
PIN_STYLE = Style(color="white", bgcolor="cyan")
INVALID_COLOR_MESSAGE = "Refusing to append message: An invalid color was provided"

_TEMPLATE_RE = re.compile(r"(\{sender\}|\{message\})")
_TOKEN_RE = re.compile(r"\S+")


def resolve_color(name: object) -> Optional[Style]:
    """Style for a color name or ``#hex`` value; None when unrecognized."""
    if not isinstance(name, str) or not name:
        return None
    if not name.startswith("#") and name not in ANSI_COLOR_NAMES:
        return None
    try:
        return Style(color=Color.parse(name))
    except ColorParseError:
        return None


def markup(text: str) -> Text:
    """Parse client-authored markup, falling back to literal text."""
    try:
        return Text.from_markup(text)
    except MarkupError:
        return Text(text)


def fill_template(template: str, sender: Text, message: Text) -> Text:
    """Substitute every {sender} and {message}; anything else stays verbatim."""
    line = Text()
    for piece in _TEMPLATE_RE.split(template):
        if piece == "{sender}":
            line.append(sender.copy())
        elif piece == "{message}":
            line.append(message.copy())
        elif piece:
            line.append(piece)
    return line


def highlight_pins(line: Text, pins: Iterable[str]) -> int:
    """Stylize whole whitespace tokens equal to a pin. Returns the match count."""
    pinned = set(pins)
    if not pinned:
        return 0
    count = 0
    for match in _TOKEN_RE.finditer(line.plain):
        if match.group() in pinned:
            line.stylize(PIN_STYLE, match.start(), match.end())
            count += 1
    return count


class MessageRenderer:
    def __init__(self, state, surface):
        self._state = state
        self._surface = surface

    def render(
        self,
        sender: str,
        message: Union[str, Text],
        sender_color: str = "white",
        message_color: Optional[str] = None,
    ) -> bool:
        """Format one line and push it. Returns False for a rejected render.

        ``sender`` is client-authored markup. A str ``message`` is shown
        literally; pass a Text to keep styling.
        """
        state = self._state.get()
        sender_style = resolve_color(sender_color)
        if message_color is None:
            # Theme colors may use names the pane understands but rich does not.
            body_style = resolve_color(state.theme_data.messages.foreground) or Style()
        else:
            body_style = resolve_color(message_color)
        if sender_style is None or body_style is None:
            logger.debug("Rejected render: sender_color=%r message_color=%r", sender_color, message_color)
            self.system(INVALID_COLOR_MESSAGE)
            return False

        body = message.copy() if isinstance(message, Text) else Text(message)
        body.stylize_before(body_style)
        label = markup(sender)
        label.stylize_before(sender_style)

        line = fill_template(state.message_format, label, body)
        if sender != SYSTEM_SENDER:
            highlight_pins(line, state.word_pins)

        self._surface.push_line(line)
        self._surface.scroll_to_end()
        self._surface.refresh_display()
        return True

    def user(self, sender: str, message: str, modifiers: Sequence[str] = ()) -> bool:
        name = f"@{escape(sender)}"
        for modifier in modifiers:
            name = modifier + name
        return self.render(name, message, "cyan")

    def self_message(self, name: str, message: str) -> bool:
        return self.render(f"@[bold]{escape(name)}[/bold]", message, "cyan")

    def special(self, prefix: str, sender: str, message: str, color: str = "yellow") -> bool:
        return self.render(f"{prefix} ~> @[bold]{escape(sender)}[/bold]", message, color)

    def system(self, message: str) -> bool:
        """System line. ``message`` may carry markup."""
        return self.render(SYSTEM_SENDER, markup(message), "green")
