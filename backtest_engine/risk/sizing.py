"""Position sizing: Kelly criterion and stop-distance risk sizing."""

from backtest_engine.config.models import BacktestConfig
from backtest_engine.models.signal import Signal, SignalAction

# Kelly allocations are never allowed above a quarter of capital
MAX_KELLY_FRACTION = 0.25
DEFAULT_STOP_DISTANCE = 0.02


def kelly_fraction(win_probability: float, win_loss_ratio: float, multiplier: float = 1.0) -> float:
    """
    Fractional Kelly allocation: f* = (p * b - q) / b, scaled and clamped to [0, 0.25].

    Args:
        win_probability: p, estimated probability of a winning trade.
        win_loss_ratio: b, average win / average loss.
        multiplier: Fraction of full Kelly to apply.

    Returns:
        Share of capital to allocate.
    """
    if win_loss_ratio <= 0:
        return 0.0
    q = 1.0 - win_probability
    full_kelly = (win_probability * win_loss_ratio - q) / win_loss_ratio
    return min(max(full_kelly * multiplier, 0.0), MAX_KELLY_FRACTION)


class PositionSizer:
    """
    Calculate order notional for a signal.

    Supports two methods, picked per signal:
    - kelly: when the signal carries win probability and win/loss ratio
    - risk: capital * risk_per_trade / stop distance, the default

    Both are capped at capital * max_position_size.
    """

    def __init__(self, config: BacktestConfig) -> None:
        self.config = config

    def size(self, signal: Signal, price: float, capital: float) -> float:
        """
        Calculate order notional.

        Args:
            signal: Strategy signal being sized.
            price: Current reference price of the asset.
            capital: Capital available for the order.

        Returns:
            Notional in cash units, never negative.
        """
        if price <= 0 or capital <= 0:
            return 0.0

        if signal.uses_kelly:
            notional = self._kelly_size(signal, capital)
        else:
            notional = self._risk_size(signal, price, capital)

        max_notional = capital * self.config.constraints.max_position_size
        return max(min(notional, max_notional), 0.0)

    def _kelly_size(self, signal: Signal, capital: float) -> float:
        fraction = kelly_fraction(
            signal.win_probability,
            signal.win_loss_ratio,
            self.config.risk_management.kelly_fraction,
        )
        return capital * fraction

    def _risk_size(self, signal: Signal, price: float, capital: float) -> float:
        """
        Risk-percentage sizing: units = (capital * risk%) / stop distance.

        Without a signal stop, the configured stop-loss fraction (or 2%) is
        placed on the losing side of the price.
        """
        stop = signal.stop_loss
        if stop is None:
            distance = self.config.constraints.stop_loss or DEFAULT_STOP_DISTANCE
            if signal.action is SignalAction.BUY:
                stop = price * (1.0 - distance)
            else:
                stop = price * (1.0 + distance)

        stop_distance = abs(price - stop)
        if stop_distance <= 0:
            return 0.0

        units = capital * self.config.risk_management.risk_per_trade / stop_distance
        return units * price
