"""Strategy interface definition."""

from typing import Any, Awaitable, Mapping, Protocol, runtime_checkable

from backtest_engine.models.market import MarketSnapshot
from backtest_engine.models.position import Position
from backtest_engine.models.signal import Signal


class Strategy(Protocol):
    """Interface for trading strategies driven by the backtest runner."""

    def generate_signal(
        self,
        snapshot: MarketSnapshot,
        positions: Mapping[str, Position],
        available_capital: float,
    ) -> Signal | None | Awaitable[Signal | None]:
        """
        Decide what to do at the current timestamp.

        May be a coroutine function; the runner awaits the result when needed.

        Args:
            snapshot: Bars active at the current timestamp, by asset.
            positions: Open positions, by asset.
            available_capital: Cash available for new positions.

        Returns:
            A Signal, or None to hold.
        """
        ...


@runtime_checkable
class ParameterizedStrategy(Protocol):
    """Strategy whose parameters can be optimized by walk-forward analysis."""

    parameter_space: dict[str, Any]

    def update_parameters(self, params: dict[str, Any]) -> None:
        """Apply a parameter combination before the next run."""
        ...


@runtime_checkable
class ResettableStrategy(Protocol):
    """Strategy holding per-run state that must be cleared between runs."""

    def reset(self) -> None:
        ...
