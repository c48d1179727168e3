"""Themes: built-in default, file-backed catalog, and the ThemeStore.

// [LAW:one-source-of-truth] The active theme lives in session state (theme, theme_data);
//   ThemeStore is the single writer of both.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from rich.markup import escape

from discord_term.core.errors import ThemeError

logger = logging.getLogger(__name__)

DEFAULT_THEME_NAME = "default"

# Catalog names map straight onto file names; nothing path-like gets through.
_THEME_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

GROUPS = ("messages", "channels", "input", "header")


@dataclass(frozen=True)
class StyleGroup:
    foreground: str
    background: str
    foreground_hover: Optional[str] = None
    background_hover: Optional[str] = None

    @classmethod
    def from_dict(cls, group: str, raw: object, hover: bool = False) -> "StyleGroup":
        if not isinstance(raw, dict):
            raise ThemeError(f"'{group}' must be an object")

        def _color(key: str) -> str:
            value = raw.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ThemeError(f"'{group}.{key}' must be a non-empty string")
            return value.strip()

        if hover:
            return cls(
                _color("foregroundColor"),
                _color("backgroundColor"),
                _color("foregroundColorHover"),
                _color("backgroundColorHover"),
            )
        return cls(_color("foregroundColor"), _color("backgroundColor"))

    def to_dict(self) -> dict[str, str]:
        data = {"foregroundColor": self.foreground, "backgroundColor": self.background}
        if self.foreground_hover is not None:
            data["foregroundColorHover"] = self.foreground_hover
        if self.background_hover is not None:
            data["backgroundColorHover"] = self.background_hover
        return data


@dataclass(frozen=True)
class Theme:
    """Foreground/background styles for the four UI regions."""

    messages: StyleGroup
    channels: StyleGroup
    input: StyleGroup
    header: StyleGroup

    @classmethod
    def from_dict(cls, raw: object) -> "Theme":
        """Validate a catalog document. Raises ThemeError on schema mismatch."""
        if not isinstance(raw, dict):
            raise ThemeError("theme document must be a JSON object")
        missing = [g for g in GROUPS if g not in raw]
        if missing:
            raise ThemeError("missing style group(s): {}".format(", ".join(missing)))
        return cls(
            messages=StyleGroup.from_dict("messages", raw["messages"]),
            channels=StyleGroup.from_dict("channels", raw["channels"], hover=True),
            input=StyleGroup.from_dict("input", raw["input"]),
            header=StyleGroup.from_dict("header", raw["header"]),
        )

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {g: getattr(self, g).to_dict() for g in GROUPS}


def default_theme() -> Theme:
    """Built-in theme. Always valid."""
    return Theme(
        messages=StyleGroup("white", "gray"),
        channels=StyleGroup("white", "black", "white", "gray"),
        input=StyleGroup("gray", "lightgray"),
        header=StyleGroup("black", "white"),
    )


class ThemeCatalog:
    """Directory of ``<name>.json`` theme documents."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, name: str) -> Optional[Path]:
        if not _THEME_NAME_RE.match(name or ""):
            return None
        path = self.directory / f"{name}.json"
        return path if path.is_file() else None

    def names(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json") if p.is_file())

    def read(self, name: str) -> tuple[Theme, int]:
        """Read and validate one entry. Returns (theme, byte_length)."""
        path = self.path_for(name)
        if path is None:
            raise ThemeError(f"no catalog entry named '{name}'")
        try:
            raw = path.read_bytes()
            document = json.loads(raw.decode("utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise ThemeError(str(e)) from e
        except json.JSONDecodeError as e:
            raise ThemeError(f"invalid JSON ({e.msg} at line {e.lineno})") from e
        return Theme.from_dict(document), len(raw)


class ThemeStore:
    """Loads named themes and applies them to state and the output surface.

    ``report`` is the system-message sink (MessageRenderer.system).
    """

    def __init__(self, catalog: ThemeCatalog, state, surface, report: Callable[[str], None]):
        self.catalog = catalog
        self._state = state
        self._surface = surface
        self._report = report

    def names(self) -> list[str]:
        names = self.catalog.names()
        return [DEFAULT_THEME_NAME] + [n for n in names if n != DEFAULT_THEME_NAME]

    def load(self, name: str) -> bool:
        """Load and apply a theme by name. Returns whether it was applied."""
        if not name:
            return False

        if name == DEFAULT_THEME_NAME:
            return self.apply(DEFAULT_THEME_NAME, default_theme(), 0)

        if self.catalog.path_for(name) is None:
            self._report(
                "Such theme file could not be found (Are you sure that's under the "
                "[bold]themes[/bold] folder?)"
            )
            return False

        self._report(f"Loading theme '[bold]{name}[/bold]' ...")
        try:
            theme, length = self.catalog.read(name)
        except ThemeError as e:
            logger.warning("Theme %r rejected: %s", name, e)
            self._report(f"Error while loading theme '{name}': {escape(str(e))}")
            return False
        return self.apply(name, theme, length)

    def apply(self, name: str, data: Optional[Theme], length: int) -> bool:
        if data is None:
            self._report("Error while setting theme: No data was provided for the theme")
            return False

        self._state.update(theme=name, theme_data=data)
        self._surface.apply_theme(data)
        self._report(f"Applied theme '{name}' ({length} bytes)")
        return True
