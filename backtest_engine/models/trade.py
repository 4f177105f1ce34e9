"""Trade ledger entry."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from .position import PositionSide


@dataclass
class Trade:
    """A single round trip. Closing fields stay None until the trade is finalized."""

    trade_id: str
    asset: str
    side: PositionSide
    entry_price: float
    entry_time: datetime
    quantity: float
    notional: float
    commission: float
    slippage: float
    exit_price: float | None = None
    exit_time: datetime | None = None
    pnl: float | None = None
    pnl_pct: float | None = None
    holding_period: timedelta | None = None
    exit_reason: str | None = None
    mae: float = 0.0
    mfe: float = 0.0

    @property
    def is_closed(self) -> bool:
        return self.exit_time is not None

    def record_excursion(self, unrealized_pnl: float) -> None:
        """Track the worst and best unrealized P&L seen while open."""
        self.mae = min(self.mae, unrealized_pnl)
        self.mfe = max(self.mfe, unrealized_pnl)

    def close(
        self,
        exit_price: float,
        exit_time: datetime,
        pnl: float,
        reason: str,
    ) -> None:
        """
        Finalize the trade.

        Raises:
            ValueError: If the trade is already closed or exits before it entered
        """
        if self.is_closed:
            raise ValueError(f"Trade {self.trade_id} is already closed")
        if exit_time < self.entry_time:
            raise ValueError(
                f"Exit time {exit_time.isoformat()} precedes entry time "
                f"{self.entry_time.isoformat()} for trade {self.trade_id}"
            )
        self.exit_price = exit_price
        self.exit_time = exit_time
        self.pnl = pnl
        self.pnl_pct = pnl / self.notional if self.notional > 0 else 0.0
        self.holding_period = exit_time - self.entry_time
        self.exit_reason = reason
