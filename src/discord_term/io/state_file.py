"""State file I/O for discord-term.

Manages the flat JSON state file, by default at
XDG_CONFIG_HOME/discord-term/state.json. Only raw dict <-> disk lives here;
field selection and coercion belong to discord_term.core.state.

This module is a STABLE BOUNDARY.
"""

import json
import os
import tempfile
from pathlib import Path


def default_state_path() -> Path:
    """Return the default state file path.

    Uses XDG_CONFIG_HOME (default ~/.config) / discord-term / state.json.
    """
    config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(config_home) / "discord-term" / "state.json"


def read_state(path: Path) -> tuple[dict, int]:
    """Read and parse the state file. Returns (data, byte_count).

    Raises OSError when the file cannot be read and ValueError when it is not
    a JSON object.
    """
    raw = path.read_bytes()
    data = json.loads(raw.decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError("state file does not contain a JSON object")
    return data, len(raw)


def write_state(path: Path, data: dict) -> int:
    """Atomic write of the state dict to JSON. Returns bytes written.

    Creates parent directories if needed. Writes to a temp file then renames
    to avoid partial writes on crash.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(data, indent=2, sort_keys=True).encode("utf-8") + b"\n"
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        os.replace(tmp_path, path)
    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(payload)
