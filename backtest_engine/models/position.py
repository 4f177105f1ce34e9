"""Open position model."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class PositionSide(str, Enum):
    """Direction of an open position."""

    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def sign(self) -> int:
        """+1 for long, -1 for short."""
        return 1 if self is PositionSide.LONG else -1


@dataclass
class Position:
    """Open exposure in a single asset. At most one per asset."""

    trade_id: str
    asset: str
    side: PositionSide
    quantity: float
    entry_price: float
    entry_time: datetime
    notional: float
    current_price: float
    last_update: datetime
    unrealized_pnl: float = 0.0
    stop_loss: float | None = None
    take_profit: float | None = None
    stop_reason: str = "stop_loss"

    @property
    def market_value(self) -> float:
        """Cash credited if the position were closed at the current mark."""
        return self.notional + self.unrealized_pnl
