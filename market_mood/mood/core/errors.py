class MoodEngineError(Exception):
    """Base class for every error raised by the mood engine."""


class ConfigurationError(MoodEngineError):
    """A required startup parameter is missing or invalid. Fatal."""


class DataFetchError(MoodEngineError):
    """A snapshot or signal fetch for one symbol failed."""

    def __init__(self, symbol: str, reason: str) -> None:
        super().__init__(f"{symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


class SinkUnavailableError(MoodEngineError):
    """The dispatch sink is not connected."""
