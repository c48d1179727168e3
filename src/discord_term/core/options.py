"""Instance options for the session controller.

// [LAW:one-source-of-truth] Option defaults live in AppOptions only.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import discord_term.io.state_file

BUNDLED_THEMES_DIR = Path(__file__).resolve().parent.parent / "themes"


@dataclass(frozen=True)
class AppOptions:
    command_prefix: str = "/"
    state_file_path: Path = field(default_factory=discord_term.io.state_file.default_state_path)
    themes_dir: Path = BUNDLED_THEMES_DIR
    header_auto_hide_ms_per_char: int = 100
    typing_timeout_s: float = 10.0
    max_messages: int = 500


def from_environment(**overrides) -> AppOptions:
    """Build options from DISCORD_TERM_* environment variables.

    Explicit keyword overrides (e.g. from the CLI) win over the environment;
    ``None`` overrides are ignored.
    """
    values: dict[str, object] = {}
    env_state = os.environ.get("DISCORD_TERM_STATE_FILE")
    if env_state:
        values["state_file_path"] = Path(env_state).expanduser()
    env_themes = os.environ.get("DISCORD_TERM_THEMES_DIR")
    if env_themes:
        values["themes_dir"] = Path(env_themes).expanduser()
    env_prefix = os.environ.get("DISCORD_TERM_PREFIX")
    if env_prefix:
        values["command_prefix"] = env_prefix
    values.update({k: v for k, v in overrides.items() if v is not None})
    for key in ("state_file_path", "themes_dir"):
        if key in values:
            values[key] = Path(values[key]).expanduser()
    return AppOptions(**values)
