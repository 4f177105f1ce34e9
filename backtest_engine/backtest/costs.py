"""Trading and carry cost model for simulated fills."""

from dataclasses import dataclass
from datetime import datetime

from backtest_engine.config.models import CostConfig
from backtest_engine.models.position import Position, PositionSide

DAYS_PER_YEAR = 365.0


@dataclass(frozen=True)
class CostModel:
    """Cost rates applied to simulated orders.

    Attributes:
        commission_rate: Commission per side as a fraction of notional
        slippage_rate: Adverse fill price offset as a fraction of price
        spread_rate: Bid/ask spread as a fraction of notional
        borrowing_rate: Annual borrowing rate charged on short notional
        funding_rate: Annual funding rate charged on all open notional
    """

    commission_rate: float = 0.001
    slippage_rate: float = 0.0005
    spread_rate: float = 0.0002
    borrowing_rate: float = 0.0
    funding_rate: float = 0.0

    @classmethod
    def from_config(cls, config: CostConfig) -> "CostModel":
        return cls(
            commission_rate=config.commission,
            slippage_rate=config.slippage,
            spread_rate=config.spread,
            borrowing_rate=config.borrowing_cost,
            funding_rate=config.funding_rate or 0.0,
        )

    def commission(self, notional: float) -> float:
        return notional * self.commission_rate

    def slippage(self, notional: float) -> float:
        return notional * self.slippage_rate

    def fill_price(self, price: float, side: PositionSide) -> float:
        """Price after slippage; always worse for the order's side."""
        return price * (1.0 + side.sign * self.slippage_rate)

    def round_trip_costs(self, notional: float) -> float:
        """Commission, slippage and spread still to be paid to exit ``notional``."""
        return notional * (self.commission_rate + self.slippage_rate + self.spread_rate)

    def carry_cost(self, position: Position, as_of: datetime) -> float:
        """Borrowing (shorts only) and funding accrued since entry."""
        days_held = max((as_of - position.entry_time).total_seconds(), 0.0) / 86400.0
        rate = self.funding_rate
        if position.side is PositionSide.SHORT:
            rate += self.borrowing_rate
        return position.notional * rate * days_held / DAYS_PER_YEAR

    def unrealized_pnl(self, position: Position, price: float, as_of: datetime) -> float:
        """Side-aware mark-to-market P&L net of exit costs and carry."""
        gross = position.side.sign * (price - position.entry_price) * position.quantity
        return gross - self.round_trip_costs(position.notional) - self.carry_cost(position, as_of)
