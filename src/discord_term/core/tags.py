"""Tag table: named strings substituted into input via ``$name``.

Tags live inside the session state record; every write goes through
StateStore.update() with a fresh mapping.
"""

import re

_WHITESPACE_RE = re.compile(r"(\s+)")


class TagTable:
    def __init__(self, state):
        self._state = state

    def names(self) -> list[str]:
        return list(self._state.get().tags.keys())

    def has(self, name: str) -> bool:
        return name in self._state.get().tags

    def get(self, name: str) -> str:
        """Value of ``name``; a missing tag resolves to the bare name itself."""
        return self._state.get().tags.get(name, name)

    def set(self, name: str, value: str) -> None:
        tags = dict(self._state.get().tags)
        tags[name] = value
        self._state.update(tags=tags)

    def delete(self, name: str) -> bool:
        if not self.has(name):
            return False
        tags = dict(self._state.get().tags)
        del tags[name]
        self._state.update(tags=tags)
        return True

    def substitute(self, line: str) -> str:
        """Replace every whitespace-delimited ``$name`` token in ``line``; trim the result.

        Separators are kept as typed.
        """
        pieces = _WHITESPACE_RE.split(line)
        for i, piece in enumerate(pieces):
            if len(piece) > 1 and piece.startswith("$"):
                pieces[i] = self.get(piece[1:])
        return "".join(pieces).strip()
