"""EMA crossover strategy."""

from typing import Any, Mapping

from backtest_engine.indicators.ema import calculate_ema
from backtest_engine.models.market import MarketSnapshot
from backtest_engine.models.position import Position, PositionSide
from backtest_engine.models.signal import Signal, SignalAction

DEFAULT_PARAMETER_SPACE: dict[str, Any] = {
    "ema_fast": [5, 10, 15],
    "ema_slow": [20, 30, 50],
}


class EmaCrossoverStrategy:
    """Long-only trend following on a single asset.

    Rule: EMA fast > EMA slow while flat -> BUY; EMA fast < EMA slow while
    long -> SELL (closes the long).
    """

    def __init__(
        self,
        asset: str,
        ema_fast: int = 10,
        ema_slow: int = 30,
        parameter_space: dict[str, Any] | None = None,
    ) -> None:
        self.asset = asset
        self.parameter_space = (
            parameter_space if parameter_space is not None else dict(DEFAULT_PARAMETER_SPACE)
        )
        self._closes: list[float] = []
        self.update_parameters({"ema_fast": ema_fast, "ema_slow": ema_slow})

    @property
    def parameters(self) -> dict[str, Any]:
        return {"ema_fast": self.ema_fast, "ema_slow": self.ema_slow}

    def update_parameters(self, params: dict[str, Any]) -> None:
        """
        Apply EMA periods.

        Raises:
            ValueError: If the fast period is not shorter than the slow period
        """
        fast = int(params.get("ema_fast", getattr(self, "ema_fast", 10)))
        slow = int(params.get("ema_slow", getattr(self, "ema_slow", 30)))
        if fast < 1 or fast >= slow:
            raise ValueError(f"ema_fast ({fast}) must be >= 1 and < ema_slow ({slow})")
        self.ema_fast = fast
        self.ema_slow = slow

    def reset(self) -> None:
        self._closes.clear()

    def generate_signal(
        self,
        snapshot: MarketSnapshot,
        positions: Mapping[str, Position],
        available_capital: float,
    ) -> Signal | None:
        bar = snapshot.get(self.asset)
        if bar is None:
            return None

        self._closes.append(bar.close)
        if len(self._closes) < self.ema_slow:
            return None

        fast = calculate_ema(self._closes, self.ema_fast)[-1]
        slow = calculate_ema(self._closes, self.ema_slow)[-1]
        position = positions.get(self.asset)

        if fast > slow and position is None:
            return Signal(asset=self.asset, action=SignalAction.BUY)
        if fast < slow and position is not None and position.side is PositionSide.LONG:
            return Signal(asset=self.asset, action=SignalAction.SELL)
        return None
