"""Built-in slash commands.

Every handler has the signature ``handler(args, app)`` where ``app`` is the
SessionController. Arity is declared at registration; handlers only check
what min_args cannot express.
"""

import random

from rich.markup import escape

from discord_term.core.commands import CommandRegistry
from discord_term.core.errors import UsageError

TIPS = [
    "You can use the [bold]{prefix}sync[/bold] command to discard unsaved changes and reload saved state",
    "You can use the [bold]{prefix}format[/bold] command to change the message format style",
    "Toggle full-screen chat using the [bold]{prefix}fullscreen[/bold] command",
    "Command autocomplete is supported, type [bold]{prefix}he[/bold] then press tab to try it!",
    "Press [bold]ESC[/bold] anytime to clear the current input",
    "Press [bold]UP[/bold] to edit your last message",
    "Exiting with [bold]CTRL + C[/bold] is recommended since it will automatically save state",
    "Press [bold]CTRL + X[/bold] to force exit without saving state",
]


def _bold_list(items, at: bool = False) -> str:
    mark = "@" if at else ""
    return ", ".join(f"{mark}[bold]{escape(str(i))}[/bold]" for i in items)


# ─── Session ──────────────────────────────────────────────────────────


async def _login(args, app):
    await app.login(args[0])


async def _logout(args, app):
    await app.shutdown()


def _save(args, app):
    app.state.save()


def _sync(args, app):
    before = app.state.get().theme
    if app.state.sync() and app.state.get().theme != before:
        app.theme.load(app.state.get().theme)


def _forget(args, app):
    if app.state.get().token is None:
        app.message.system("No saved token to forget")
        return
    app.state.update(token=None)
    app.state.save()


def _me(args, app):
    user = app.transport.user
    if user is None:
        app.message.system("Not logged in")
        return
    app.message.system(
        f"Logged in as [bold]{escape(user.tag)}[/bold] | [bold]{round(app.transport.latency_ms)}[/bold]ms"
    )


def _now(args, app):
    state = app.state.get()
    if state.active_guild is not None and state.active_channel is not None:
        app.message.system(
            f"Currently on guild '[bold]{escape(state.active_guild.name)}[/bold]' "
            f"# '[bold]{escape(state.active_channel.name)}[/bold]'"
        )
    elif state.active_guild is not None:
        app.message.system(f"Currently on guild '[bold]{escape(state.active_guild.name)}[/bold]'")
    else:
        app.message.system("No active guild")


# ─── Mode toggles ─────────────────────────────────────────────────────


def _toggle(app, field: str, on_text: str, off_text: str) -> None:
    value = not getattr(app.state.get(), field)
    app.state.update(**{field: value})
    app.message.system(on_text if value else off_text)


def _mute(args, app):
    _toggle(app, "muted", "Muted mode activated", "Muted mode is no longer activated")


def _doencrypt(args, app):
    _toggle(app, "encrypt_outgoing", "Now encrypting messages", "No longer encrypting messages")


def _global(args, app):
    _toggle(app, "global_messages", "Displaying global messages", "No longer displaying global messages")


def _bots(args, app):
    _toggle(app, "ignore_bots", "No longer displaying bot messages", "Displaying bot messages")


def _encrypt(args, app):
    app.state.update(decryption_key=args[0])
    app.message.system(f"Using decryption key '[bold]{escape(args[0])}[/bold]'")


def _format(args, app):
    app.state.update(message_format=" ".join(args))
    app.message.system(f"Successfully changed format to '{escape(app.state.get().message_format)}'")


# ─── User lists ───────────────────────────────────────────────────────


def _is_self(app, user_id: str) -> bool:
    user = app.transport.user
    return user is not None and user.id == user_id


def _ignore(args, app):
    state = app.state.get()
    if not args:
        if not state.ignored_users:
            app.message.system("Not ignoring anyone")
        else:
            app.message.system(f"Currently ignoring messages from: {_bold_list(sorted(state.ignored_users), at=True)}")
        return

    user_id = args[0]
    if _is_self(app, user_id):
        app.message.system("You can't ignore yourself, silly")
    elif user_id in state.ignored_users:
        app.state.update(ignored_users=state.ignored_users - {user_id})
        app.message.system(f"Removed user @[bold]{escape(user_id)}[/bold] from the ignore list")
    else:
        if user_id in state.track_list:
            app.message.system(f"No longer tracking @[bold]{escape(user_id)}[/bold]")
        # Adding to ignored_users drops the id from track_list in the same update.
        app.state.update(ignored_users=state.ignored_users | {user_id})
        app.message.system(f"Added user @[bold]{escape(user_id)}[/bold] to the ignore list")


def _track(args, app):
    state = app.state.get()
    if not args:
        if not state.track_list:
            app.message.system("Not tracking anyone")
        else:
            app.message.system(f"Tracking users: {_bold_list(sorted(state.track_list), at=True)}")
        return

    user_id = args[0]
    if _is_self(app, user_id):
        app.message.system("You can't track yourself, silly")
    elif user_id in state.track_list:
        app.state.update(track_list=state.track_list - {user_id})
        app.message.system(f"No longer tracking @[bold]{escape(user_id)}[/bold]")
    elif app.transport.get_user(user_id) is None:
        app.message.system("No such user cached")
    elif user_id in state.ignored_users:
        app.message.system("You must first stop ignoring that user")
    else:
        app.state.update(track_list=state.track_list | {user_id})
        app.message.system(f"Now tracking @[bold]{escape(user_id)}[/bold]")


def _pin(args, app):
    pins = app.state.get().word_pins
    if not args:
        if not pins:
            app.message.system("No set word pins")
        else:
            app.message.system(f"Word pins: {_bold_list(pins)}")
        return

    word = args[0]
    if word in pins:
        app.state.update(word_pins=tuple(p for p in pins if p != word))
        app.message.system(f"Removed word '[bold]{escape(word)}[/bold]' from pins")
    else:
        app.state.update(word_pins=pins + (word,))
        app.message.system(f"Added word '[bold]{escape(word)}[/bold]' to pins")


def _tag(args, app):
    if not args:
        names = app.tags.names()
        if not names:
            app.message.system("No tags have been set")
        else:
            app.message.system(f"Tags: {_bold_list(names)}")
        return

    name = args[0]
    if len(args) >= 2:
        app.tags.set(name, " ".join(args[1:]))
        app.message.system(f"Successfully saved tag '[bold]{escape(name)}[/bold]'")
    elif app.tags.delete(name):
        app.message.system(f"Successfully deleted tag '[bold]{escape(name)}[/bold]'")
    else:
        app.message.system("Such tag does not exist")


# ─── Themes & display ─────────────────────────────────────────────────


def _theme(args, app):
    if not args:
        app.message.system(f"The current theme is '[bold]{escape(app.state.get().theme)}[/bold]'")
        return
    app.theme.load(args[0])


def _themes(args, app):
    if not app.theme.catalog.directory.is_dir():
        app.message.system("Themes directory does not exist")
        return
    app.message.system("\n".join(escape(n) for n in app.theme.names()))


def _tip(args, app):
    tip = random.choice(TIPS).replace("{prefix}", escape(app.options.command_prefix))
    app.header.show(tip, auto_hide=True)


def _fullscreen(args, app):
    app.toggle_channels()


def _clear(args, app):
    app.surface.clear_messages()
    app.surface.refresh_display(hard=True)


def _reset(args, app):
    app.surface.refresh_display(hard=True)


def _help(args, app):
    prefix = app.options.command_prefix
    lines = []
    for command in app.commands:
        usage = f" {escape(command.usage)}" if command.usage else ""
        summary = f" - {command.summary}" if command.summary else ""
        lines.append(f"  [bold]{escape(prefix)}{command.name}[/bold]{usage}{summary}")
    app.message.system("Commands available:\n" + "\n".join(lines))


# ─── Messaging & navigation ───────────────────────────────────────────


async def _edit(args, app):
    channel = app.state.get().active_channel
    if channel is None:
        raise UsageError("No active text channel")

    message = await app.transport.fetch_message(channel, args[0])
    if message is None or not message.editable:
        app.message.system("That message doesn't exist or it is not editable")
        return
    await app.transport.edit_message(message, " ".join(args[1:]))


async def _dm(args, app):
    recipient = app.transport.get_user(args[0])
    if recipient is None:
        app.message.system("Such user does not exist or has not been cached")
        return
    try:
        await app.transport.send_dm(recipient, " ".join(args[1:]))
    except Exception as e:
        app.message.system(f"Unable to send message: {escape(str(e))}")


def _channel(args, app):
    guild = app.state.get().active_guild
    if guild is None:
        app.message.system("No active guild")
        return

    wanted = args[0]
    channel = guild.get_channel(wanted)
    if channel is None or not channel.is_text:
        channel = next(
            (c for c in guild.text_channels() if c.name == wanted or f"#{c.name}" == wanted),
            None,
        )
    if channel is None:
        app.message.system(f"Such channel does not exist in guild '{escape(guild.name)}'")
        return
    app.set_active_channel(channel)


def _guild(args, app):
    guild = app.transport.get_guild(args[0])
    if guild is None:
        app.message.system("Such guild does not exist")
        return
    app.set_active_guild(guild)


def register_builtin_commands(registry: CommandRegistry) -> CommandRegistry:
    registry.register("login", _login, min_args=1, usage="<token>", summary="log in with a token")
    registry.register("logout", _logout, summary="save state, disconnect and exit")
    registry.register("now", _now, summary="show the active guild and channel")
    registry.register("mute", _mute, summary="toggle muted mode (blocks sending)")
    registry.register("ignore", _ignore, usage="[user]", summary="list or toggle ignored users")
    registry.register("edit", _edit, min_args=2, usage="<msgId> <text>", summary="edit one of your messages")
    registry.register("save", _save, summary="save application state")
    registry.register("format", _format, min_args=1, usage="<template>", summary="set the message format")
    registry.register("forget", _forget, summary="forget the saved token")
    registry.register("encrypt", _encrypt, min_args=1, usage="<password>", summary="set the decryption key")
    registry.register("doencrypt", _doencrypt, summary="toggle encrypting outgoing messages")
    registry.register("theme", _theme, usage="[name]", summary="show or load a theme")
    registry.register("themes", _themes, summary="list available themes")
    registry.register("tag", _tag, usage="[name] [value]", summary="list, set or delete tags")
    registry.register("tip", _tip, summary="show a random tip")
    registry.register("dm", _dm, min_args=2, usage="<user> <text>", summary="send a direct message")
    registry.register("fullscreen", _fullscreen, summary="toggle the channel list")
    registry.register("me", _me, summary="show the logged-in user")
    registry.register("sync", _sync, summary="reload saved state")
    registry.register("pin", _pin, usage="[word]", summary="list or toggle word pins")
    registry.register("track", _track, usage="[user]", summary="list or toggle tracked users")
    registry.register("help", _help, summary="list commands")
    registry.register("global", _global, summary="toggle messages from other channels")
    registry.register("bots", _bots, summary="toggle bot messages")
    registry.register("clear", _clear, summary="clear the message pane")
    registry.register("c", _channel, min_args=1, usage="<channel>", summary="switch channel")
    registry.register("g", _guild, min_args=1, usage="<guild>", summary="switch guild")
    registry.register("reset", _reset, summary="redraw the screen")
    return registry
