"""Shared builders for transport records in tests."""

from discord_term.core.transport import ChannelKind, ChannelRef, GuildRef, MessageRef, UserRef


def make_user(id="100", tag="alice#0001", bot=False):
    return UserRef(id=id, tag=tag, bot=bot)


def make_channel(id="10", name="general", kind=ChannelKind.TEXT, guild_id="1", recipient=None):
    return ChannelRef(id=id, name=name, kind=kind, guild_id=guild_id, recipient=recipient)


def make_dm_channel(recipient, id="900"):
    return ChannelRef(id=id, name=recipient.tag, kind=ChannelKind.DM, recipient=recipient)


def make_guild(id="1", name="Guild", channels=None, member_count=3):
    """Create a guild; defaults to #random, #general and a voice channel."""
    if channels is None:
        channels = (
            make_channel("11", "random", guild_id=id),
            make_channel("10", "general", guild_id=id),
            make_channel("12", "voice", kind=ChannelKind.OTHER, guild_id=id),
        )
    return GuildRef(id=id, name=name, member_count=member_count, channels=tuple(channels))


def make_message(
    content="hello",
    author=None,
    channel=None,
    guild=None,
    id="5000",
    **flags,
):
    """Create an inbound message. Extra keyword args set MessageRef flags."""
    return MessageRef(
        id=id,
        author=author or make_user("200", "bob#0002"),
        channel=channel or make_channel(),
        content=content,
        guild=guild,
        **flags,
    )


OCEAN_THEME = {
    "messages": {"foregroundColor": "#e0f0ff", "backgroundColor": "#001b2e"},
    "channels": {
        "foregroundColor": "#8fb8de",
        "backgroundColor": "#00111f",
        "foregroundColorHover": "#ffffff",
        "backgroundColorHover": "#0a3a5c",
    },
    "input": {"foregroundColor": "#e0f0ff", "backgroundColor": "#002a47"},
    "header": {"foregroundColor": "#001b2e", "backgroundColor": "#5fd7ff"},
}
