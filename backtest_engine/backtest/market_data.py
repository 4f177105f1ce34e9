"""In-memory historical market data feed.

The run timeline is taken from the first asset's bars. Other assets are
looked up by exact timestamp; a missing bar simply leaves the asset out of
that step's snapshot.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Mapping, Sequence

import pandas as pd

from backtest_engine.backtest.errors import ConfigurationError
from backtest_engine.models.market import MarketBar, MarketSnapshot

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"timestamp", "open", "high", "low", "close", "volume"}

# Seed spacing for feeds too short to infer one
DEFAULT_BAR_SPACING = timedelta(days=1)


class MarketDataFeed:
    """Timestamp-indexed bars for one or more assets.

    Example:
        >>> feed = MarketDataFeed({"BTC": btc_bars, "ETH": eth_bars})
        >>> for ts in feed.timestamps:
        ...     snapshot = feed.snapshot(ts)
    """

    def __init__(self, market_data: Mapping[str, Sequence[MarketBar]]):
        """Initialize feed.

        Args:
            market_data: Asset -> bars. Bar order does not matter; duplicate
                timestamps keep the last bar.

        Raises:
            ConfigurationError: If there is no data or the first asset has no bars
        """
        if not market_data:
            raise ConfigurationError("Market data is empty")

        self.assets: list[str] = list(market_data.keys())
        self._bars: dict[str, dict[datetime, MarketBar]] = {
            asset: {bar.timestamp: bar for bar in bars}
            for asset, bars in market_data.items()
        }

        primary = self.assets[0]
        if not self._bars[primary]:
            raise ConfigurationError(f"No bars for primary asset {primary}")
        self._timestamps: list[datetime] = sorted(self._bars[primary])

    @property
    def timestamps(self) -> list[datetime]:
        return list(self._timestamps)

    def __len__(self) -> int:
        return len(self._timestamps)

    def bars(self, asset: str) -> list[MarketBar]:
        """Bars for ``asset`` in timestamp order."""
        return [self._bars[asset][ts] for ts in sorted(self._bars[asset])]

    def snapshot(self, timestamp: datetime) -> MarketSnapshot:
        """Bars active at ``timestamp`` for every asset that has one."""
        return {
            asset: bars[timestamp]
            for asset, bars in self._bars.items()
            if timestamp in bars
        }

    def slice(self, start: datetime | None = None, end: datetime | None = None) -> "MarketDataFeed":
        """New feed restricted to bars with start <= timestamp <= end.

        Raises:
            ConfigurationError: If the range holds no primary-asset bars
        """
        sliced = {
            asset: [
                bar
                for ts, bar in bars.items()
                if (start is None or ts >= start) and (end is None or ts <= end)
            ]
            for asset, bars in self._bars.items()
        }
        if not sliced[self.assets[0]]:
            raise ConfigurationError(
                f"No market data between {start.isoformat() if start else 'start'} "
                f"and {end.isoformat() if end else 'end'}"
            )
        return MarketDataFeed(sliced)

    def seed_timestamp(self) -> datetime:
        """Timestamp for the equity curve's seed point, one bar before the first step.

        A single-bar feed has no spacing to copy and falls back to
        ``DEFAULT_BAR_SPACING`` so the curve stays strictly ordered.
        """
        if len(self._timestamps) < 2:
            return self._timestamps[0] - DEFAULT_BAR_SPACING
        return self._timestamps[0] - (self._timestamps[1] - self._timestamps[0])


def load_bars_csv(data_file: str | Path) -> list[MarketBar]:
    """Load OHLCV bars from a CSV file.

    The ``timestamp`` column may hold ISO strings or epoch milliseconds;
    naive timestamps are treated as UTC.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If required columns are missing
    """
    path = Path(data_file)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    df = pd.read_csv(path)
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"{path.name} is missing columns: {', '.join(sorted(missing))}")

    if pd.api.types.is_numeric_dtype(df["timestamp"]):
        df["timestamp"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
    else:
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)

    df = df.sort_values("timestamp").drop_duplicates("timestamp", keep="last").reset_index(drop=True)

    bars = [
        MarketBar(
            timestamp=row.timestamp.to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]

    if bars:
        logger.info(
            "Loaded %d bars from %s (%s to %s)",
            len(bars),
            path.name,
            bars[0].timestamp,
            bars[-1].timestamp,
        )
    return bars
