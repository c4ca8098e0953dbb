"""Exception types shared by the bot components."""


class BotError(Exception):
    """Base class for every error raised by the bot itself."""


class ConfigError(BotError):
    """Invalid or inconsistent configuration value."""


class EngineError(BotError):
    """The engine process failed (spawn, handshake, crash or broken pipe).

    Fatal to the current match run; the host decides whether to restart.
    """


class SearchStalled(BotError):
    """The engine produced no candidate above the depth threshold, twice."""


class ActionRejected(BotError):
    """A click on the board could not be performed."""
