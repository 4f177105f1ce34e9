"""Market data models for bars and per-timestamp snapshots."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class MarketBar:
    """OHLCV bar data."""

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    def __post_init__(self) -> None:
        """Validate bar data integrity."""
        if self.high < max(self.open, self.close, self.low):
            raise ValueError("High must be >= open, close, and low")
        if self.low > min(self.open, self.close, self.high):
            raise ValueError("Low must be <= open, close, and high")
        if self.volume < 0:
            raise ValueError("Volume must be non-negative")
        if self.close <= 0:
            raise ValueError("Close must be positive")


# Asset -> bar active at the current timestamp. Assets without a bar are absent.
MarketSnapshot = dict[str, MarketBar]
