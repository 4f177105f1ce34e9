"""Monte Carlo bootstrap of a completed run's period returns.

Each simulation draws ``len(returns)`` returns with replacement, compounds
them from the initial capital and records the terminal return, the maximum
drawdown and the annualized Sharpe ratio. Draws are vectorized with numpy
in chunks; randomness comes from an injectable ``numpy.random.Generator``
so runs are reproducible.
"""

import logging
import math
from typing import Sequence

import numpy as np

from backtest_engine.config.models import MonteCarloConfig
from backtest_engine.metrics.returns import TRADING_DAYS_PER_YEAR, percentile, period_returns
from backtest_engine.models.results import ConfidenceInterval, EquityCurvePoint, MonteCarloSummary
from backtest_engine.monitoring.events import EventSink, EventType, LoggingEventSink, emit_event

logger = logging.getLogger(__name__)

PERCENTILES = (0.05, 0.25, 0.50, 0.75, 0.95)

_STD_EPSILON = 1e-12


def probability_of_ruin(returns: Sequence[float], capital: float) -> float:
    """
    Gambler's-ruin approximation: min(1, exp(-2 * mean * capital / variance)).

    Returns 1.0 for a non-positive mean, 0.0 for zero variance or no returns.
    """
    values = np.asarray(returns, dtype=float)
    if values.size == 0:
        return 0.0
    mean = float(values.mean())
    if mean <= 0:
        return 1.0
    variance = float(values.var())
    if variance == 0.0:
        return 0.0
    return min(1.0, math.exp(-2.0 * mean * capital / variance))


def _percentile_key(fraction: float) -> str:
    return f"{round(fraction * 100)}%"


class MonteCarloSimulator:
    """Bootstrap resampling of period returns.

    Example:
        >>> simulator = MonteCarloSimulator(config.monte_carlo, initial_capital=100_000)
        >>> summary = simulator.run_from_curve(results.equity_curve)
        >>> print(f"5th percentile return: {summary.percentiles['5%']:.2%}")
    """

    def __init__(
        self,
        config: MonteCarloConfig,
        initial_capital: float,
        rng: np.random.Generator | None = None,
        events: EventSink | None = None,
        chunk_size: int = 100,
    ):
        """Initialize Monte Carlo simulator.

        Args:
            config: Simulation count, confidence level and seed
            initial_capital: Capital every simulated path starts from
            rng: Random generator (default: seeded from ``config.random_seed``)
            events: Sink for progress events (default: log them)
            chunk_size: Simulations drawn per vectorized batch and per progress event
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.config = config
        self.initial_capital = initial_capital
        self.rng = rng if rng is not None else np.random.default_rng(config.random_seed)
        self.events = events or LoggingEventSink()
        self.chunk_size = chunk_size

    def run_from_curve(self, equity_curve: Sequence[EquityCurvePoint]) -> MonteCarloSummary:
        """Resample the period returns of an equity curve."""
        return self.run(period_returns([p.equity for p in equity_curve]))

    def run(self, returns: Sequence[float]) -> MonteCarloSummary:
        """
        Run the bootstrap.

        Args:
            returns: Realized period returns

        Returns:
            MonteCarloSummary with percentiles, confidence intervals and ruin probability
        """
        values = np.asarray(returns, dtype=float)
        simulations = self.config.simulations

        if values.size == 0:
            logger.warning("No returns to resample; Monte Carlo summary is empty")
            return self._empty_summary()

        terminal_returns = np.empty(simulations)
        max_drawdowns = np.empty(simulations)
        sharpe_ratios = np.empty(simulations)

        for start in range(0, simulations, self.chunk_size):
            count = min(self.chunk_size, simulations - start)
            draws = values[self.rng.integers(0, values.size, size=(count, values.size))]

            growth = np.cumprod(1.0 + draws, axis=1)
            equity = self.initial_capital * np.hstack([np.ones((count, 1)), growth])
            peaks = np.maximum.accumulate(equity, axis=1)
            with np.errstate(divide="ignore", invalid="ignore"):
                drawdowns = np.where(peaks > 0, (peaks - equity) / peaks, 0.0)

            means = draws.mean(axis=1)
            stds = draws.std(axis=1)
            safe_stds = np.where(stds < _STD_EPSILON, 1.0, stds)
            sharpe = np.where(
                stds < _STD_EPSILON,
                0.0,
                means * TRADING_DAYS_PER_YEAR / (safe_stds * math.sqrt(TRADING_DAYS_PER_YEAR)),
            )

            terminal_returns[start : start + count] = growth[:, -1] - 1.0
            max_drawdowns[start : start + count] = drawdowns.max(axis=1)
            sharpe_ratios[start : start + count] = sharpe

            emit_event(
                self.events,
                EventType.MONTE_CARLO_PROGRESS,
                {"completed": start + count, "total": simulations},
                level="DEBUG",
            )

        lower = (1.0 - self.config.confidence_level) / 2.0
        upper = 1.0 - lower

        summary = MonteCarloSummary(
            simulations=simulations,
            percentiles={_percentile_key(p): percentile(terminal_returns, p) for p in PERCENTILES},
            confidence_intervals={
                "total_return": ConfidenceInterval(
                    percentile(terminal_returns, lower), percentile(terminal_returns, upper)
                ),
                "max_drawdown": ConfidenceInterval(
                    percentile(max_drawdowns, lower), percentile(max_drawdowns, upper)
                ),
                "sharpe_ratio": ConfidenceInterval(
                    percentile(sharpe_ratios, lower), percentile(sharpe_ratios, upper)
                ),
            },
            probability_of_ruin=probability_of_ruin(values, self.initial_capital),
            expected_max_drawdown=float(max_drawdowns.mean()),
            mean_return=float(terminal_returns.mean()),
        )

        logger.info(
            "Monte Carlo: %d simulations, median return %.2f%%, expected max drawdown %.2f%%",
            simulations,
            summary.percentiles["50%"] * 100,
            summary.expected_max_drawdown * 100,
        )
        return summary

    def _empty_summary(self) -> MonteCarloSummary:
        zero = ConfidenceInterval(0.0, 0.0)
        return MonteCarloSummary(
            simulations=0,
            percentiles={_percentile_key(p): 0.0 for p in PERCENTILES},
            confidence_intervals={
                "total_return": zero,
                "max_drawdown": zero,
                "sharpe_ratio": zero,
            },
            probability_of_ruin=0.0,
            expected_max_drawdown=0.0,
            mean_return=0.0,
        )
