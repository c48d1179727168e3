"""discord.py adapter for the Transport protocol.

// [LAW:locality-or-seam] The only module that imports discord. Everything past
//   this file sees UserRef/ChannelRef/GuildRef/MessageRef records.

The gateway connection runs as a task on the caller's event loop (Textual's),
so listener callbacks arrive on the UI loop without any thread hop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import discord

from discord_term.core.transport import (
    ChannelKind,
    ChannelRef,
    GuildRef,
    MessageRef,
    TransportListener,
    UserRef,
)

logger = logging.getLogger(__name__)


def user_ref(user) -> UserRef:
    return UserRef(id=str(user.id), tag=str(user), bot=bool(getattr(user, "bot", False)), native=user)


def channel_ref(channel) -> ChannelRef:
    if isinstance(channel, discord.TextChannel):
        return ChannelRef(
            id=str(channel.id),
            name=channel.name,
            kind=ChannelKind.TEXT,
            guild_id=str(channel.guild.id),
            native=channel,
        )
    if isinstance(channel, discord.DMChannel):
        recipient = channel.recipient
        return ChannelRef(
            id=str(channel.id),
            name=str(recipient) if recipient is not None else "dm",
            kind=ChannelKind.DM,
            recipient=user_ref(recipient) if recipient is not None else None,
            native=channel,
        )
    return ChannelRef(
        id=str(channel.id),
        name=getattr(channel, "name", None) or str(channel.id),
        kind=ChannelKind.OTHER,
        native=channel,
    )


def guild_ref(guild: discord.Guild) -> GuildRef:
    channels = sorted(guild.channels, key=lambda c: c.position)
    return GuildRef(
        id=str(guild.id),
        name=guild.name,
        member_count=guild.member_count or 0,
        channels=tuple(channel_ref(c) for c in channels),
        native=guild,
    )


def message_ref(message: discord.Message, self_id: Optional[int]) -> MessageRef:
    guild = message.guild
    manage_messages = manage_guild = False
    if guild is not None and isinstance(message.author, discord.Member):
        perms = message.author.guild_permissions
        manage_messages = perms.manage_messages
        manage_guild = perms.manage_guild

    own = self_id is not None and message.author.id == self_id
    return MessageRef(
        id=str(message.id),
        author=user_ref(message.author),
        channel=channel_ref(message.channel),
        content=message.content,
        clean_content=message.clean_content,
        guild=guild_ref(guild) if guild is not None else None,
        can_manage_messages=manage_messages,
        can_manage_guild=manage_guild,
        editable=own,
        deletable=own or manage_messages,
        native=message,
    )


class _Gateway(discord.Client):
    """Forwards gateway events to a TransportListener."""

    def __init__(self, owner: "DiscordTransport"):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents, chunk_guilds_at_startup=False)
        self._owner = owner

    async def on_ready(self):
        logger.info("Gateway ready as %s", self.user)
        self._owner.listener.handle_ready()

    async def on_message(self, message: discord.Message):
        self._owner.listener.handle_message(message_ref(message, self.user and self.user.id))

    async def on_message_edit(self, before: discord.Message, after: discord.Message):
        self._owner.listener.handle_message(message_ref(after, self.user and self.user.id))

    async def on_guild_join(self, guild: discord.Guild):
        self._owner.listener.handle_guild_join(guild_ref(guild))

    async def on_guild_remove(self, guild: discord.Guild):
        self._owner.listener.handle_guild_leave(guild_ref(guild))

    async def on_error(self, event_method: str, *args, **kwargs):
        logger.exception("Unhandled error in %s", event_method)
        error = RuntimeError(f"error in {event_method}")
        self._owner.listener.handle_error(error)


class DiscordTransport:
    """Transport backed by a discord.py Client."""

    def __init__(self, client_factory=_Gateway):
        self.listener: Optional[TransportListener] = None
        self.token: Optional[str] = None
        self._client_factory = client_factory
        self._client = client_factory(self)
        self._connect_task: Optional[asyncio.Task] = None
        self._typing: dict[str, asyncio.Task] = {}

    def bind(self, listener: TransportListener) -> None:
        self.listener = listener

    # ─── Session ───────────────────────────────────────────────────────

    @property
    def user(self) -> Optional[UserRef]:
        user = self._client.user
        return user_ref(user) if user is not None else None

    @property
    def latency_ms(self) -> float:
        latency = self._client.latency
        # latency is NaN until the first heartbeat.
        return latency * 1000.0 if latency == latency else 0.0

    async def login(self, token: str) -> None:
        """Authenticate, then keep the gateway connection running in the background.

        Logging in again ends the running session first; a closed discord.py
        client cannot reconnect, so a fresh one replaces it.
        """
        if self._connect_task is not None:
            logger.info("Replacing the running gateway session")
            await self.close()
            self._client = self._client_factory(self)
        await self._client.login(token)
        self.token = token
        self._connect_task = asyncio.create_task(self._connect())

    async def _connect(self) -> None:
        try:
            await self._client.connect()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Gateway connection failed")
            if self.listener is not None:
                self.listener.handle_error(e)

    async def close(self) -> None:
        for task in self._typing.values():
            task.cancel()
        self._typing.clear()
        await self._client.close()
        task, self._connect_task = self._connect_task, None
        if task is not None:
            task.cancel()
            # _connect() already reported its own failures.
            await asyncio.wait({task})

    # ─── Lookups ───────────────────────────────────────────────────────

    def guilds(self) -> list[GuildRef]:
        return [guild_ref(g) for g in self._client.guilds]

    def get_guild(self, guild_id: str) -> Optional[GuildRef]:
        if not guild_id.isdigit():
            return None
        guild = self._client.get_guild(int(guild_id))
        return guild_ref(guild) if guild is not None else None

    def get_user(self, user_id: str) -> Optional[UserRef]:
        if not user_id.isdigit():
            return None
        user = self._client.get_user(int(user_id))
        return user_ref(user) if user is not None else None

    # ─── Messaging ─────────────────────────────────────────────────────

    async def send(self, channel: ChannelRef, text: str) -> None:
        await channel.native.send(text)

    async def send_dm(self, user: UserRef, text: str) -> None:
        await user.native.send(text)

    async def fetch_message(self, channel: ChannelRef, message_id: str) -> Optional[MessageRef]:
        if not message_id.isdigit():
            return None
        try:
            message = await channel.native.fetch_message(int(message_id))
        except discord.NotFound:
            return None
        user = self._client.user
        return message_ref(message, user.id if user is not None else None)

    async def edit_message(self, message: MessageRef, text: str) -> None:
        await message.native.edit(content=text)

    async def delete_message(self, message: MessageRef) -> None:
        await message.native.delete()

    # ─── Typing ────────────────────────────────────────────────────────

    def start_typing(self, channel: ChannelRef) -> None:
        if channel.id in self._typing or channel.native is None:
            return
        self._typing[channel.id] = asyncio.create_task(self._type(channel))

    def stop_typing(self, channel: ChannelRef) -> None:
        task = self._typing.pop(channel.id, None)
        if task is not None:
            task.cancel()

    async def _type(self, channel: ChannelRef) -> None:
        try:
            async with channel.native.typing():
                # Held until stop_typing() cancels this task.
                await asyncio.Event().wait()
        except asyncio.CancelledError:
            pass
        except discord.HTTPException as e:
            logger.warning("Typing indicator failed in %s: %s", channel.id, e)
        finally:
            if self._typing.get(channel.id) is asyncio.current_task():
                self._typing.pop(channel.id, None)
