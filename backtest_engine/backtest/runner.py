"""Single-period backtest runner.

Drives one strategy over one contiguous slice of market data:

    INIT -> STEPPING -> CLOSING -> DONE

Each step: snapshot -> reprice positions -> stop/target exits -> signal ->
execution -> risk policies -> equity point. Every run builds its own
simulator and risk manager, so runs never share mutable state.
"""

import asyncio
import inspect
import logging
from datetime import datetime
from typing import Mapping, Sequence

from backtest_engine.backtest.errors import Phase, StrategyError
from backtest_engine.backtest.market_data import MarketDataFeed
from backtest_engine.backtest.metrics import MetricsCalculator
from backtest_engine.backtest.portfolio import PortfolioSimulator
from backtest_engine.config.models import BacktestConfig
from backtest_engine.core.state_machine import RunState, StateMachine
from backtest_engine.models.market import MarketBar, MarketSnapshot
from backtest_engine.models.results import BacktestResults, EquityCurvePoint
from backtest_engine.models.signal import Signal
from backtest_engine.monitoring.events import EventSink, EventType, LoggingEventSink, emit_event
from backtest_engine.risk.manager import RiskManager
from backtest_engine.strategies.interface import ResettableStrategy, Strategy

logger = logging.getLogger(__name__)

MarketData = MarketDataFeed | Mapping[str, Sequence[MarketBar]]


class BacktestRunner:
    """Runs a strategy over historical data and returns its results.

    Example:
        >>> runner = BacktestRunner(config)
        >>> results = await runner.run(strategy, {"BTC": bars})
        >>> print(f"Total Return: {results.performance.total_return:.2%}")
    """

    def __init__(
        self,
        config: BacktestConfig,
        events: EventSink | None = None,
        progress_interval: int = 100,
        phase: Phase = "simple",
    ):
        """Initialize runner.

        Args:
            config: Run configuration
            events: Sink for progress, trade and risk events (default: log them)
            progress_interval: Emit a progress event every N steps
            phase: Phase tag attached to errors raised by this runner
        """
        if progress_interval < 1:
            raise ValueError("progress_interval must be at least 1")
        self.config = config
        self.events = events or LoggingEventSink()
        self.progress_interval = progress_interval
        self.phase = phase
        self.state_machine: StateMachine | None = None

    async def run(
        self,
        strategy: Strategy | None,
        market_data: MarketData,
        signals: Sequence[Signal | None] | None = None,
        benchmark_returns: Sequence[float] | None = None,
        run_id: str = "backtest",
    ) -> BacktestResults:
        """Run the backtest.

        Args:
            strategy: Signal source; may be None when ``signals`` is given
            market_data: Feed or asset -> bars mapping
            signals: Optional pre-computed signal per step (index-aligned
                with the timeline); the strategy is asked
                for any step whose slot is None or past the end
            benchmark_returns: Optional per-step benchmark returns
            run_id: Label used in logs and state machine errors

        Returns:
            BacktestResults for the run

        Raises:
            StrategyError: If a strategy hook raises
            ConfigurationError: If the market data is empty
        """
        if strategy is None and signals is None:
            raise ValueError("Either a strategy or pre-computed signals are required")

        feed = market_data if isinstance(market_data, MarketDataFeed) else MarketDataFeed(market_data)
        timestamps = feed.timestamps

        state = StateMachine(run_id)
        self.state_machine = state
        simulator = PortfolioSimulator(self.config, events=self.events)
        risk_manager = RiskManager(self.config, events=self.events)
        calculator = MetricsCalculator(self.config.initial_capital, benchmark_returns)

        if isinstance(strategy, ResettableStrategy):
            self._call_strategy(strategy.reset, timestamps[0])

        calculator.add_equity_point(
            EquityCurvePoint(
                timestamp=feed.seed_timestamp(),
                equity=self.config.initial_capital,
                drawdown=0.0,
                period_return=0.0,
                open_positions=0,
            )
        )

        logger.info(
            "Run %s: %d steps from %s to %s",
            run_id,
            len(timestamps),
            timestamps[0].isoformat(),
            timestamps[-1].isoformat(),
        )

        state.transition_to(RunState.STEPPING)
        previous_equity = self.config.initial_capital

        for index, timestamp in enumerate(timestamps):
            snapshot = feed.snapshot(timestamp)

            simulator.update_positions(snapshot, timestamp)
            simulator.check_exits(timestamp)

            signal = await self._next_signal(strategy, signals, index, snapshot, simulator, timestamp)
            if signal is not None:
                allowed, reason = risk_manager.entries_allowed()
                # Risk blocks only stop new exposure; signals that close a position pass
                if allowed or signal.asset in simulator.positions:
                    simulator.execute_trade(signal, snapshot, timestamp)
                else:
                    logger.debug("Entry for %s blocked: %s", signal.asset, reason)

            risk_manager.apply(simulator, timestamp)

            equity = simulator.calculate_equity()
            drawdown = simulator.record_equity(equity)
            period_return = equity / previous_equity - 1.0 if previous_equity > 0 else 0.0
            calculator.add_equity_point(
                EquityCurvePoint(
                    timestamp=timestamp,
                    equity=equity,
                    drawdown=drawdown,
                    period_return=period_return,
                    open_positions=len(simulator.positions),
                )
            )
            previous_equity = equity

            if index % self.progress_interval == 0:
                emit_event(
                    self.events,
                    EventType.STEP_PROGRESS,
                    {
                        "run_id": run_id,
                        "step": index,
                        "total_steps": len(timestamps),
                        "equity": equity,
                        "timestamp": timestamp.isoformat(),
                    },
                    level="DEBUG",
                )

        state.transition_to(RunState.CLOSING)
        simulator.close_all_positions(timestamps[-1], reason="end_of_backtest")

        state.transition_to(RunState.DONE)
        for trade in simulator.trades:
            calculator.add_trade(trade)

        results = calculator.calculate()
        logger.info(
            "Run %s complete: return %.2f%%, %d trades, max drawdown %.2f%%",
            run_id,
            results.performance.total_return * 100,
            results.trade_stats.total_trades,
            results.performance.max_drawdown * 100,
        )
        return results

    def run_sync(
        self,
        strategy: Strategy | None,
        market_data: MarketData,
        signals: Sequence[Signal | None] | None = None,
        benchmark_returns: Sequence[float] | None = None,
        run_id: str = "backtest",
    ) -> BacktestResults:
        """Blocking wrapper around ``run`` for callers without an event loop."""
        return asyncio.run(self.run(strategy, market_data, signals, benchmark_returns, run_id))

    async def _next_signal(
        self,
        strategy: Strategy | None,
        signals: Sequence[Signal | None] | None,
        index: int,
        snapshot: MarketSnapshot,
        simulator: PortfolioSimulator,
        timestamp: datetime,
    ) -> Signal | None:
        if signals is not None and index < len(signals) and signals[index] is not None:
            return signals[index]
        if strategy is None:
            return None

        try:
            result = strategy.generate_signal(snapshot, dict(simulator.positions), simulator.cash)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            raise StrategyError(
                f"Strategy failed at {timestamp.isoformat()}: {exc}",
                phase=self.phase,
                cause=exc,
            ) from exc
        return result

    def _call_strategy(self, hook, timestamp: datetime) -> None:
        try:
            hook()
        except Exception as exc:
            raise StrategyError(
                f"Strategy {hook.__name__} failed before {timestamp.isoformat()}: {exc}",
                phase=self.phase,
                cause=exc,
            ) from exc
