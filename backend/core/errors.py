"""Error taxonomy for the decision engine.

Only FatalConfigError is allowed to stop the process. Every other error
is handled inside the cycle that raised it.
"""


class TradingBotError(Exception):
    """Base class for all decision-engine errors."""


class DataUnavailable(TradingBotError):
    """No latest price, or a history query failed for a ticker."""


class InsufficientHistory(TradingBotError):
    """Fewer price samples than the longest window a rule list needs."""

    def __init__(self, ticker: str, available: int, required: int):
        self.ticker = ticker
        self.available = available
        self.required = required
        super().__init__(
            f"{ticker}: {available} price points, need {required}"
        )


class VenueError(TradingBotError):
    """Auth failure, rejected order or transport error at the trade venue."""


class ConfigError(TradingBotError):
    """A single rule is unknown or malformed. The rule becomes inert."""


class FatalConfigError(TradingBotError):
    """Startup configuration is missing or invalid. The process must not start."""
