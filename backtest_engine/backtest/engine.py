"""Backtest engine entry point.

Dispatches a run to the single-period runner or the walk-forward analyzer,
then optionally augments the result with a Monte Carlo bootstrap. Every
failure is reported as a ``run_error`` event tagged with its phase before it
propagates.
"""

import asyncio
import logging
from typing import Sequence

import numpy as np

from backtest_engine.backtest.errors import BacktestError, ConfigurationError, Phase
from backtest_engine.backtest.market_data import MarketDataFeed
from backtest_engine.backtest.monte_carlo import MonteCarloSimulator
from backtest_engine.backtest.runner import BacktestRunner, MarketData
from backtest_engine.backtest.walk_forward import WalkForwardAnalyzer
from backtest_engine.config.models import BacktestConfig
from backtest_engine.models.results import BacktestResults
from backtest_engine.models.signal import Signal
from backtest_engine.monitoring.events import EventSink, EventType, LoggingEventSink, emit_event
from backtest_engine.strategies.interface import Strategy

logger = logging.getLogger(__name__)


class BacktestEngine:
    """Configure once, run many backtests.

    Example:
        >>> engine = BacktestEngine(config, events=RecordingEventSink())
        >>> results = await engine.run_backtest(strategy, {"BTC": bars})
        >>> print(results.to_json())
    """

    def __init__(
        self,
        config: BacktestConfig,
        events: EventSink | None = None,
        rng: np.random.Generator | None = None,
        progress_interval: int = 100,
    ):
        """Initialize engine.

        Args:
            config: Run configuration
            events: Sink for all run events (default: log them)
            rng: Random generator for Monte Carlo (default: seeded from config)
            progress_interval: Emit a step progress event every N steps
        """
        self.config = config
        self.events = events or LoggingEventSink()
        self.rng = rng
        self.progress_interval = progress_interval

    async def run_backtest(
        self,
        strategy: Strategy | None,
        market_data: MarketData,
        signals: Sequence[Signal | None] | None = None,
        benchmark_returns: Sequence[float] | None = None,
    ) -> BacktestResults:
        """Run a complete backtest.

        Args:
            strategy: Signal source (may be None with pre-computed ``signals``)
            market_data: Feed or asset -> bars mapping
            signals: Optional pre-computed signal per step (single-period runs only)
            benchmark_returns: Optional per-bar benchmark returns

        Returns:
            BacktestResults, with walk-forward and Monte Carlo blocks when enabled

        Raises:
            ConfigurationError: On unusable data or configuration
            StrategyError: If the strategy raises
        """
        walk_forward = self.config.walk_forward.enabled
        phase: Phase = "walk_forward" if walk_forward else "simple"

        emit_event(
            self.events,
            EventType.RUN_STARTED,
            {
                "mode": phase,
                "initial_capital": self.config.initial_capital,
                "monte_carlo": self.config.monte_carlo.enabled,
            },
        )

        try:
            feed = self._prepare_feed(market_data, phase)

            if walk_forward:
                if signals is not None:
                    raise ConfigurationError(
                        "Pre-computed signals cannot be used with walk-forward optimization",
                        phase=phase,
                    )
                analyzer = WalkForwardAnalyzer(
                    self.config,
                    events=self.events,
                    progress_interval=self.progress_interval,
                )
                results = await analyzer.run(strategy, feed, benchmark_returns)
            else:
                runner = BacktestRunner(
                    self.config,
                    events=self.events,
                    progress_interval=self.progress_interval,
                    phase=phase,
                )
                results = await runner.run(strategy, feed, signals, benchmark_returns)

            if self.config.monte_carlo.enabled:
                phase = "monte_carlo"
                simulator = MonteCarloSimulator(
                    self.config.monte_carlo,
                    self.config.initial_capital,
                    rng=self.rng,
                    events=self.events,
                )
                results.monte_carlo = simulator.run_from_curve(results.equity_curve)

        except Exception as exc:
            error_phase = exc.phase if isinstance(exc, BacktestError) else phase
            logger.error("Backtest failed during %s: %s", error_phase, exc)
            emit_event(
                self.events,
                EventType.RUN_ERROR,
                {"phase": error_phase, "error": str(exc), "error_type": type(exc).__name__},
                level="ERROR",
            )
            raise

        emit_event(
            self.events,
            EventType.RUN_COMPLETED,
            {
                "mode": "walk_forward" if walk_forward else "simple",
                "total_return": results.performance.total_return,
                "sharpe_ratio": results.performance.sharpe_ratio,
                "max_drawdown": results.performance.max_drawdown,
                "total_trades": results.trade_stats.total_trades,
            },
        )
        return results

    def run_backtest_sync(
        self,
        strategy: Strategy | None,
        market_data: MarketData,
        signals: Sequence[Signal | None] | None = None,
        benchmark_returns: Sequence[float] | None = None,
    ) -> BacktestResults:
        """Blocking wrapper around ``run_backtest`` for callers without an event loop."""
        return asyncio.run(self.run_backtest(strategy, market_data, signals, benchmark_returns))

    def _prepare_feed(self, market_data: MarketData, phase: Phase) -> MarketDataFeed:
        """Build the feed and restrict it to the configured date range."""
        try:
            feed = market_data if isinstance(market_data, MarketDataFeed) else MarketDataFeed(market_data)
            if self.config.start_date is not None or self.config.end_date is not None:
                feed = feed.slice(self.config.start_date, self.config.end_date)
        except ConfigurationError as exc:
            raise ConfigurationError(str(exc), phase=phase, cause=exc) from exc
        return feed
