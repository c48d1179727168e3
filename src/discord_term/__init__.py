"""discord-term: a terminal chat client built around a session controller."""

__version__ = "0.4.0"
