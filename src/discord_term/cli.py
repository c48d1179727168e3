"""CLI entry point for discord-term."""

import argparse
import logging
import sys

import discord_term.core.options
import discord_term.io.logging_setup
from discord_term.core.errors import ThemeError
from discord_term.core.theme import DEFAULT_THEME_NAME, ThemeCatalog

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="discord-term", description="Terminal client for Discord")
    parser.add_argument("--state-file", help="Path of the persisted state file")
    parser.add_argument("--themes-dir", help="Directory holding theme JSON files")
    parser.add_argument("--prefix", help="Command prefix (default: /)")
    parser.add_argument("--token", help="Log in with this token on startup")
    parser.add_argument(
        "--list-themes",
        action="store_true",
        help="Print the available theme names and exit",
    )
    return parser


def list_themes(options) -> int:
    catalog = ThemeCatalog(options.themes_dir)
    print(DEFAULT_THEME_NAME)
    for name in catalog.names():
        try:
            _theme, length = catalog.read(name)
        except ThemeError as e:
            print(f"{name}\t(invalid: {e})")
            continue
        print(f"{name}\t{length} bytes")
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)

    # [LAW:single-enforcer] Runtime logger configuration is centralized in io.logging_setup.
    log_runtime = discord_term.io.logging_setup.configure(stream=args.list_themes)
    logger.info(
        "logging configured level=%s file=%s",
        log_runtime.level_name,
        log_runtime.file_path,
    )

    options = discord_term.core.options.from_environment(
        state_file_path=args.state_file,
        themes_dir=args.themes_dir,
        command_prefix=args.prefix,
    )
    if args.list_themes:
        sys.exit(list_themes(options))

    # Imported late: discord and textual are only needed for an interactive run.
    from discord_term.transport.discord_client import DiscordTransport
    from discord_term.tui.app import DiscordTermApp

    try:
        app = DiscordTermApp(DiscordTransport(), options, login_token=args.token)
        app.run()
    except Exception:
        logger.exception("Fatal error during startup")
        print(f"discord-term: fatal error, see {log_runtime.file_path}", file=sys.stderr)
        sys.exit(1)

    logger.info("Exited with code %s", app.return_code)
    sys.exit(app.return_code or 0)


if __name__ == "__main__":
    main()
