"""Chat-platform transport boundary.

The controller only sees the plain records below; adapters (see
discord_term.transport) translate platform objects into them and keep the
native object in ``native`` for follow-up calls.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence


class ChannelKind(enum.Enum):
    TEXT = "text"
    DM = "dm"
    OTHER = "other"


@dataclass(frozen=True)
class UserRef:
    id: str
    tag: str
    bot: bool = False
    native: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ChannelRef:
    id: str
    name: str
    kind: ChannelKind = ChannelKind.TEXT
    guild_id: Optional[str] = None
    recipient: Optional[UserRef] = None
    native: Any = field(default=None, compare=False, repr=False)

    @property
    def is_text(self) -> bool:
        return self.kind is ChannelKind.TEXT


@dataclass(frozen=True)
class GuildRef:
    id: str
    name: str
    member_count: int = 0
    channels: tuple = ()
    native: Any = field(default=None, compare=False, repr=False)

    def text_channels(self) -> list[ChannelRef]:
        return [c for c in self.channels if c.is_text]

    def get_channel(self, channel_id: str) -> Optional[ChannelRef]:
        for channel in self.channels:
            if channel.id == channel_id:
                return channel
        return None


@dataclass(frozen=True)
class MessageRef:
    id: str
    author: UserRef
    channel: ChannelRef
    content: str
    clean_content: Optional[str] = None
    guild: Optional[GuildRef] = None
    # Permission flags of the author's member in the guild, when known.
    can_manage_messages: bool = False
    can_manage_guild: bool = False
    editable: bool = False
    deletable: bool = False
    native: Any = field(default=None, compare=False, repr=False)

    @property
    def display_content(self) -> str:
        return self.clean_content if self.clean_content is not None else self.content


class TransportListener(Protocol):
    def handle_ready(self) -> None: ...
    def handle_message(self, message: MessageRef) -> None: ...
    def handle_error(self, error: BaseException) -> None: ...
    def handle_guild_join(self, guild: GuildRef) -> None: ...
    def handle_guild_leave(self, guild: GuildRef) -> None: ...


class Transport(Protocol):
    @property
    def user(self) -> Optional[UserRef]: ...

    @property
    def latency_ms(self) -> float: ...

    def bind(self, listener: TransportListener) -> None: ...
    async def login(self, token: str) -> None: ...
    async def close(self) -> None: ...

    def guilds(self) -> Sequence[GuildRef]: ...
    def get_guild(self, guild_id: str) -> Optional[GuildRef]: ...
    def get_user(self, user_id: str) -> Optional[UserRef]: ...

    async def send(self, channel: ChannelRef, text: str) -> None: ...
    async def send_dm(self, user: UserRef, text: str) -> None: ...
    async def fetch_message(self, channel: ChannelRef, message_id: str) -> Optional[MessageRef]: ...
    async def edit_message(self, message: MessageRef, text: str) -> None: ...
    async def delete_message(self, message: MessageRef) -> None: ...

    def start_typing(self, channel: ChannelRef) -> None: ...
    def stop_typing(self, channel: ChannelRef) -> None: ...
