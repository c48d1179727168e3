"""Protocol for the terminal surface the controller draws on.

The Textual app implements it for real; tests use a recording fake. No
project imports besides typing, so either side can depend on it.
"""

from typing import Protocol, Sequence

from rich.text import Text


class DisplaySurface(Protocol):
    # Message pane
    def push_line(self, line: Text) -> None: ...
    def clear_messages(self) -> None: ...
    def scroll_to_end(self) -> None: ...
    def refresh_display(self, hard: bool = False) -> None: ...

    # Header banner
    @property
    def header_visible(self) -> bool: ...
    def set_header_text(self, text: str) -> None: ...
    def show_header(self) -> None: ...
    def hide_header(self) -> None: ...

    # Channel navigation panel
    @property
    def channels_visible(self) -> bool: ...
    def show_channels(self) -> None: ...
    def hide_channels(self) -> None: ...
    def update_channels(self, channels: Sequence, active_id) -> None: ...

    # Window chrome
    def apply_theme(self, theme) -> None: ...
    def set_title(self, title: str) -> None: ...

    # Input box
    def get_input(self) -> str: ...
    def set_input(self, value: str) -> None: ...
