"""Inbound message routing.

Decides how (and whether) a platform message is displayed, by a fixed
precedence. Pure: reads a state snapshot, returns a Route.
"""

import enum
from typing import Optional

from discord_term.core.transport import ChannelKind, MessageRef


class Route(enum.Enum):
    DROP = "drop"
    TRACKED = "tracked"
    SELF = "self"
    SELF_DM = "self_dm"
    USER = "user"
    DM = "dm"
    GLOBAL = "global"


def classify(message: MessageRef, state, self_id: Optional[str]) -> Route:
    author = message.author
    is_self = self_id is not None and author.id == self_id

    if author.id in state.ignored_users:
        return Route.DROP
    if author.id in state.track_list:
        return Route.TRACKED
    if state.ignore_bots and author.bot and not is_self:
        return Route.DROP
    if state.ignore_empty_messages and not message.content:
        return Route.DROP

    if is_self:
        if message.channel.kind is ChannelKind.TEXT:
            return Route.SELF
        if message.channel.kind is ChannelKind.DM:
            return Route.SELF_DM
        return Route.DROP

    active = state.active_channel
    if state.active_guild is not None and active is not None and message.channel.id == active.id:
        return Route.USER
    if message.channel.kind is ChannelKind.DM:
        return Route.DM
    if state.global_messages:
        return Route.GLOBAL
    return Route.DROP


def role_glyphs(message: MessageRef) -> list[str]:
    """Markup glyphs marking elevated roles, in application order."""
    if message.guild is None:
        return []
    glyphs = []
    if message.can_manage_messages:
        glyphs.append("[red]+[/red]")
    if message.author.bot:
        glyphs.append("[blue]&[/blue]")
    if message.can_manage_guild:
        glyphs.append("[green]$[/green]")
    return glyphs
