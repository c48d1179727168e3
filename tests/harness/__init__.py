"""Test harness for discord-term.

Re-exports all public API for convenient imports:
    from tests.harness import FakeSurface, FakeTransport, make_guild, ...
"""

from tests.harness.fakes import FakeSurface, FakeTransport, ManualHandle, ManualScheduler
from tests.harness.builders import (
    OCEAN_THEME,
    make_channel,
    make_dm_channel,
    make_guild,
    make_message,
    make_user,
)

__all__ = [
    "FakeSurface",
    "FakeTransport",
    "ManualHandle",
    "ManualScheduler",
    "OCEAN_THEME",
    "make_channel",
    "make_dm_channel",
    "make_guild",
    "make_message",
    "make_user",
]
