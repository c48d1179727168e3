"""Exception types shared across the controller."""


class DiscordTermError(Exception):
    """Base class for errors reported to the operator as system lines."""


class UsageError(DiscordTermError):
    """A command or operation was invoked with missing or invalid input."""


class StateFileError(DiscordTermError):
    """The state file could not be written."""


class ThemeError(DiscordTermError):
    """A theme catalog entry could not be read or does not match the schema."""


class DecryptError(DiscordTermError):
    """Ciphertext could not be decrypted with the configured key."""
