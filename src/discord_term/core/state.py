"""Session state record and its store.

// [LAW:one-source-of-truth] SessionState is the only mutable session data; it is
//   replaced wholesale by StateStore.update() and never assigned field-by-field.
// [LAW:single-enforcer] StateStore.save() is the single writer of the state file.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from rich.markup import escape

import discord_term.io.state_file
from discord_term.core.errors import StateFileError
from discord_term.core.theme import DEFAULT_THEME_NAME, Theme, default_theme

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    active_channel: Any = None
    active_guild: Any = None
    global_messages: bool = False
    ignore_bots: bool = False
    ignore_empty_messages: bool = True
    muted: bool = False
    encrypt_outgoing: bool = False
    message_format: str = "<{sender}> {message}"
    decryption_key: str = "discord-term"
    track_list: frozenset = frozenset()
    ignored_users: frozenset = frozenset()
    word_pins: tuple = ()
    tags: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    theme: str = DEFAULT_THEME_NAME
    theme_data: Theme = field(default_factory=default_theme)
    last_outgoing_message: Any = None
    typing_timer: Any = None
    header_auto_hide_timer: Any = None
    token: Optional[str] = None


# Live references, timer handles and resolved theme data never reach disk.
TRANSIENT_FIELDS = frozenset({
    "active_channel",
    "active_guild",
    "theme_data",
    "last_outgoing_message",
    "typing_timer",
    "header_auto_hide_timer",
})

FIELD_NAMES = tuple(f.name for f in dataclasses.fields(SessionState))
PERSISTED_FIELDS = tuple(n for n in FIELD_NAMES if n not in TRANSIENT_FIELDS)

_BOOL_FIELDS = frozenset({
    "global_messages", "ignore_bots", "ignore_empty_messages", "muted", "encrypt_outgoing",
})
_STR_FIELDS = frozenset({"message_format", "decryption_key", "theme"})


def default_state() -> SessionState:
    """Fresh record with built-in defaults."""
    return SessionState()


def _normalize(changes: dict) -> dict:
    """Coerce collection fields to their immutable forms."""
    out = dict(changes)
    if "track_list" in out:
        out["track_list"] = frozenset(str(u) for u in (out["track_list"] or ()))
    if "ignored_users" in out:
        out["ignored_users"] = frozenset(str(u) for u in (out["ignored_users"] or ()))
    if "word_pins" in out:
        out["word_pins"] = tuple(str(w) for w in (out["word_pins"] or ()))
    if "tags" in out:
        out["tags"] = MappingProxyType({str(k): str(v) for k, v in dict(out["tags"] or {}).items()})
    return out


def to_persisted(state: SessionState) -> dict:
    """JSON-ready dict of the serializable fields."""
    return {
        "global_messages": state.global_messages,
        "ignore_bots": state.ignore_bots,
        "ignore_empty_messages": state.ignore_empty_messages,
        "muted": state.muted,
        "encrypt_outgoing": state.encrypt_outgoing,
        "message_format": state.message_format,
        "decryption_key": state.decryption_key,
        "track_list": sorted(state.track_list),
        "ignored_users": sorted(state.ignored_users),
        "word_pins": list(state.word_pins),
        "tags": dict(state.tags),
        "theme": state.theme,
        "token": state.token,
    }


def from_persisted(data: dict) -> dict:
    """Pick known, well-typed persisted fields out of a loaded dict.

    Unknown keys and values of the wrong type are dropped so the in-memory
    default survives.
    """
    picked: dict[str, object] = {}
    for key in PERSISTED_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if key in _BOOL_FIELDS:
            if isinstance(value, bool):
                picked[key] = value
        elif key in _STR_FIELDS:
            if isinstance(value, str):
                picked[key] = value
        elif key == "token":
            if value is None or isinstance(value, str):
                picked[key] = value
        elif key in ("track_list", "ignored_users", "word_pins"):
            if isinstance(value, list):
                picked[key] = value
        elif key == "tags":
            if isinstance(value, dict):
                picked[key] = value
    picked = _normalize(picked)
    if "track_list" in picked and "ignored_users" in picked:
        # A hand-edited file may list someone twice; ignoring wins.
        picked["track_list"] = picked["track_list"] - picked["ignored_users"]
    return picked


class StateStore:
    """Owner of the live SessionState.

    ``report`` is the system-message sink; it is bound late because the
    renderer itself reads from this store.
    """

    def __init__(
        self,
        path: Path,
        initial: Optional[SessionState] = None,
        report: Optional[Callable[[str], None]] = None,
    ):
        self.path = Path(path)
        self._state = initial if initial is not None else default_state()
        self.report = report or (lambda text: None)
        self._will_change: list[Callable[[], None]] = []
        self._changed: list[Callable[[SessionState, SessionState], None]] = []

    # ─── Subscribers ───────────────────────────────────────────────────

    def subscribe_will_change(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._will_change.append(callback)
        return lambda: self._will_change.remove(callback)

    def subscribe_changed(
        self, callback: Callable[[SessionState, SessionState], None]
    ) -> Callable[[], None]:
        self._changed.append(callback)
        return lambda: self._changed.remove(callback)

    # ─── Read / update ─────────────────────────────────────────────────

    def get(self) -> SessionState:
        """Snapshot of the current record. Immutable; call again for later changes."""
        return self._state

    def update(self, **changes) -> SessionState:
        """Replace the record with a shallow merge of ``changes``.

        Passing None clears an optional field. Unknown names raise TypeError.
        """
        unknown = sorted(set(changes) - set(FIELD_NAMES))
        if unknown:
            raise TypeError("unknown state field(s): {}".format(", ".join(unknown)))
        changes = _normalize(changes)

        # [LAW:single-enforcer] track_list and ignored_users stay disjoint here only.
        current = self._state
        if "track_list" in changes and "ignored_users" in changes:
            overlap = changes["track_list"] & changes["ignored_users"]
            if overlap:
                raise ValueError(
                    "user(s) cannot be both tracked and ignored: {}".format(", ".join(sorted(overlap)))
                )
        elif "track_list" in changes:
            changes["ignored_users"] = current.ignored_users - changes["track_list"]
        elif "ignored_users" in changes:
            changes["track_list"] = current.track_list - changes["ignored_users"]

        for callback in list(self._will_change):
            callback()

        previous = current
        self._state = dataclasses.replace(current, **changes)

        for callback in list(self._changed):
            callback(self._state, previous)
        return self._state

    # ─── Persistence ───────────────────────────────────────────────────

    def sync(self) -> bool:
        """Merge the persisted file into the live record. Returns whether it synced."""
        if not self.path.exists():
            return False
        try:
            data, length = discord_term.io.state_file.read_state(self.path)
        except (OSError, ValueError) as e:
            logger.warning("Could not read state file %s: %s", self.path, e)
            self.report(f"There was an error while reading the state file: {escape(str(e))}")
            return False

        # Live fields are simply not among the persisted keys, so replace() keeps them.
        self.update(**from_persisted(data))
        self.report(f"Synced state @ {escape(str(self.path))} ({length} bytes)")
        return True

    def save(self) -> int:
        """Write the serializable fields to disk. Returns bytes written.

        Raises StateFileError when the file cannot be written.
        """
        self.report("Saving application state ...")
        try:
            length = discord_term.io.state_file.write_state(self.path, to_persisted(self._state))
        except OSError as e:
            logger.exception("Failed to write state file %s", self.path)
            raise StateFileError(f"Could not save state @ '{self.path}': {e}") from e
        self.report(f"Application state saved @ '{escape(str(self.path))}' ({length} bytes)")
        return length
