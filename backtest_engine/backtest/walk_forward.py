"""Walk-Forward Analysis (WFA) Framework.

This module implements rolling (or anchored) optimize-then-validate runs:
- Grid-search strategy parameters on each in-sample slice (max Sharpe)
- Re-run the winner on the in-sample slice and on the unseen out-of-sample slice
- Stitch the out-of-sample results into one combined result

Windows are counted in bars: starting at 0, a window of ``window_size`` bars
is placed every ``step_size`` bars while it still fits in the history.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Sequence

import numpy as np

from backtest_engine.backtest.errors import ConfigurationError, StrategyError
from backtest_engine.backtest.market_data import MarketDataFeed
from backtest_engine.backtest.metrics import MetricsCalculator
from backtest_engine.backtest.runner import BacktestRunner, MarketData
from backtest_engine.config.models import BacktestConfig
from backtest_engine.models.results import (
    BacktestResults,
    EquityCurvePoint,
    WalkForwardSummary,
    WalkForwardWindow,
)
from backtest_engine.monitoring.events import EventSink, EventType, LoggingEventSink, emit_event
from backtest_engine.strategies.interface import Strategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowBounds:
    """Bar index ranges of one window; ends are exclusive."""

    in_sample_start: int
    in_sample_end: int
    out_sample_start: int
    out_sample_end: int


def window_efficiency(out_sample: BacktestResults) -> float:
    """Out-of-sample win rate times out-of-sample total return."""
    if out_sample.trade_stats.total_trades == 0:
        return 0.0
    return out_sample.performance.win_rate * out_sample.performance.total_return


class WalkForwardAnalyzer:
    """Walk-forward optimization over a single dataset.

    Example:
        >>> analyzer = WalkForwardAnalyzer(config)
        >>> results = await analyzer.run(strategy, {"BTC": bars})
        >>> print(f"Windows: {len(results.walk_forward.windows)}")
    """

    def __init__(
        self,
        config: BacktestConfig,
        events: EventSink | None = None,
        progress_interval: int = 100,
    ):
        """Initialize walk-forward analyzer.

        Args:
            config: Run configuration; ``config.walk_forward`` sets the windows
            events: Sink for window and run events (default: log them)
            progress_interval: Step progress interval for the inner runs
        """
        self.config = config
        self.events = events or LoggingEventSink()
        self.progress_interval = progress_interval

    def build_windows(self, total_bars: int) -> list[WindowBounds]:
        """
        Compute window bounds for ``total_bars`` bars.

        Raises:
            ConfigurationError: If the window does not fit or produces an empty side
        """
        wf = self.config.walk_forward
        if wf.window_size > total_bars:
            raise ConfigurationError(
                f"Walk-forward window of {wf.window_size} bars exceeds the "
                f"{total_bars} bars of history",
                phase="walk_forward",
            )

        in_sample_size = int(wf.window_size * wf.in_sample_ratio)
        if in_sample_size < 1 or wf.window_size - in_sample_size < 1:
            raise ConfigurationError(
                f"Window of {wf.window_size} bars cannot be split at ratio {wf.in_sample_ratio}",
                phase="walk_forward",
            )

        bounds: list[WindowBounds] = []
        start = 0
        while start + wf.window_size <= total_bars:
            in_sample_end = start + in_sample_size
            bounds.append(
                WindowBounds(
                    in_sample_start=0 if wf.anchored else start,
                    in_sample_end=in_sample_end,
                    out_sample_start=in_sample_end,
                    out_sample_end=start + wf.window_size,
                )
            )
            start += wf.step_size

        if not bounds:
            raise ConfigurationError("No walk-forward windows fit the history", phase="walk_forward")
        return bounds

    async def run(
        self,
        strategy: Strategy,
        market_data: MarketData,
        benchmark_returns: Sequence[float] | None = None,
    ) -> BacktestResults:
        """Run walk-forward analysis.

        Args:
            strategy: Strategy to optimize; parameters come from its
                ``parameter_space`` and are applied via ``update_parameters``
            market_data: Feed or asset -> bars mapping
            benchmark_returns: Optional per-bar benchmark returns for the full history

        Returns:
            Combined out-of-sample BacktestResults with ``walk_forward`` populated
        """
        feed = market_data if isinstance(market_data, MarketDataFeed) else MarketDataFeed(market_data)
        timestamps = feed.timestamps
        bounds = self.build_windows(len(timestamps))

        logger.info("Walk-forward: %d windows over %d bars", len(bounds), len(timestamps))

        windows: list[WalkForwardWindow] = []
        for index, window in enumerate(bounds):
            in_feed = feed.slice(timestamps[window.in_sample_start], timestamps[window.in_sample_end - 1])
            out_feed = feed.slice(timestamps[window.out_sample_start], timestamps[window.out_sample_end - 1])

            best_params = await self._optimize_params(strategy, in_feed, index)
            self._apply_params(strategy, best_params)

            runner = self._runner()
            in_result = await runner.run(
                strategy,
                in_feed,
                benchmark_returns=self._benchmark_slice(benchmark_returns, window.in_sample_start, window.in_sample_end),
                run_id=f"window-{index}/in-sample",
            )
            out_result = await runner.run(
                strategy,
                out_feed,
                benchmark_returns=self._benchmark_slice(benchmark_returns, window.out_sample_start, window.out_sample_end),
                run_id=f"window-{index}/out-sample",
            )

            record = WalkForwardWindow(
                index=index,
                in_sample_start=timestamps[window.in_sample_start],
                in_sample_end=timestamps[window.in_sample_end - 1],
                out_sample_start=timestamps[window.out_sample_start],
                out_sample_end=timestamps[window.out_sample_end - 1],
                parameters=dict(best_params),
                in_sample_result=in_result,
                out_sample_result=out_result,
                efficiency=window_efficiency(out_result),
            )
            windows.append(record)

            emit_event(
                self.events,
                EventType.WALK_FORWARD_WINDOW_COMPLETE,
                {
                    "window": index,
                    "total_windows": len(bounds),
                    "parameters": record.parameters,
                    "in_sample_return": in_result.performance.total_return,
                    "out_sample_return": out_result.performance.total_return,
                    "efficiency": record.efficiency,
                },
            )

        return self._aggregate_results(windows)

    def _runner(self) -> BacktestRunner:
        return BacktestRunner(
            self.config,
            events=self.events,
            progress_interval=self.progress_interval,
            phase="walk_forward",
        )

    @staticmethod
    def _benchmark_slice(
        benchmark_returns: Sequence[float] | None,
        start: int,
        end: int,
    ) -> Sequence[float] | None:
        if benchmark_returns is None:
            return None
        return list(benchmark_returns[start:end])

    def _apply_params(self, strategy: Strategy, params: dict[str, Any]) -> None:
        update = getattr(strategy, "update_parameters", None)
        if update is None or not params:
            return
        try:
            update(params)
        except Exception as exc:
            raise StrategyError(
                f"Strategy rejected parameters {params}: {exc}",
                phase="walk_forward",
                cause=exc,
            ) from exc

    async def _optimize_params(
        self,
        strategy: Strategy,
        in_feed: MarketDataFeed,
        window_index: int,
    ) -> dict[str, Any]:
        """Find the parameter combination with the best in-sample Sharpe ratio."""
        space = getattr(strategy, "parameter_space", None) or {}
        combinations = self._generate_param_combinations(space)

        best_params: dict[str, Any] = combinations[0]
        best_score = float("-inf")
        runner = self._runner()

        for params in combinations:
            self._apply_params(strategy, params)
            result = await runner.run(strategy, in_feed, run_id=f"window-{window_index}/optimize")
            score = result.performance.sharpe_ratio
            if score > best_score:
                best_score = score
                best_params = params

        logger.debug(
            "Window %d: best parameters %s (Sharpe %.3f) from %d combinations",
            window_index,
            best_params,
            best_score,
            len(combinations),
        )
        return best_params

    def _generate_param_combinations(self, parameter_space: dict[str, Any]) -> list[dict[str, Any]]:
        """Cartesian product of list-valued parameters; scalar values are held fixed."""
        if not parameter_space:
            return [{}]

        keys = list(parameter_space.keys())
        values = [
            list(v) if isinstance(v, (list, tuple)) else [v]
            for v in parameter_space.values()
        ]

        combinations = []

        def recurse(idx: int, current: dict[str, Any]) -> None:
            if idx == len(keys):
                combinations.append(current.copy())
                return
            key = keys[idx]
            for val in values[idx]:
                current[key] = val
                recurse(idx + 1, current)

        recurse(0, {})
        return combinations

    def _aggregate_results(self, windows: list[WalkForwardWindow]) -> BacktestResults:
        """Combine the out-of-sample results of all windows."""
        out_returns = np.array([w.out_sample_result.performance.total_return for w in windows])
        efficiencies = np.array([w.efficiency for w in windows])

        combined_return = float(np.prod(1.0 + out_returns) - 1.0)
        max_drawdown = max(w.out_sample_result.performance.max_drawdown for w in windows)

        calculator = MetricsCalculator(self.config.initial_capital)
        for point in self._stitch_equity_curves(windows):
            calculator.add_equity_point(point)
        for window in windows:
            for trade in window.out_sample_result.trades:
                calculator.add_trade(trade)

        results = calculator.calculate()
        results.performance.total_return = combined_return
        results.performance.max_drawdown = max_drawdown

        mean_efficiency = float(efficiencies.mean())
        if mean_efficiency != 0:
            robustness = 1.0 - min(1.0, float(efficiencies.std()) / abs(mean_efficiency))
        else:
            robustness = 0.0

        results.walk_forward = WalkForwardSummary(
            windows=windows,
            combined_return=combined_return,
            max_drawdown=max_drawdown,
            avg_efficiency=mean_efficiency,
            stability=1.0 / (1.0 + float(out_returns.std())),
            robustness=robustness,
        )

        logger.info(
            "Walk-forward complete: %d windows, combined return %.2f%%, max drawdown %.2f%%",
            len(windows),
            combined_return * 100,
            max_drawdown * 100,
        )
        return results

    @staticmethod
    def _stitch_equity_curves(windows: list[WalkForwardWindow]) -> list[EquityCurvePoint]:
        """Chain out-of-sample curves so each window starts where the previous ended.

        Drawdown is recomputed against the running peak of the combined curve.
        """
        stitched: list[EquityCurvePoint] = []
        scale = 1.0
        peak = 0.0
        for index, window in enumerate(windows):
            curve = window.out_sample_result.equity_curve
            # Later windows drop their seed point, which duplicates the previous close
            points = curve if index == 0 else curve[1:]
            for point in points:
                equity = point.equity * scale
                peak = max(peak, equity)
                drawdown = (peak - equity) / peak if peak > 0 else 0.0
                stitched.append(replace(point, equity=equity, drawdown=drawdown))
            scale *= 1.0 + window.out_sample_result.performance.total_return
        return stitched
