"""Tests for the backtest engine entry point."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from backtest_engine.backtest.engine import BacktestEngine
from backtest_engine.backtest.errors import ConfigurationError, StrategyError
from backtest_engine.config.models import BacktestConfig, MonteCarloConfig, WalkForwardConfig
from backtest_engine.models.signal import Signal, SignalAction
from backtest_engine.monitoring.events import EventType, RecordingEventSink
from backtest_engine.strategies.ema_crossover import EmaCrossoverStrategy

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


class HoldStrategy:
    """Never trades."""

    def generate_signal(self, snapshot, positions, available_capital):
        return None


class BrokenStrategy:
    """Fails on the first bar."""

    def generate_signal(self, snapshot, positions, available_capital):
        raise KeyError("close")


def _with(config: BacktestConfig, **update) -> BacktestConfig:
    return BacktestConfig.model_validate({**config.model_dump(), **update})


class TestSimpleMode:
    """Test suite for single-period runs through the engine."""

    @pytest.mark.asyncio
    async def test_run_events(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test the run is bracketed by started and completed events."""
        events = RecordingEventSink()
        engine = BacktestEngine(full_position_config, events=events)

        results = await engine.run_backtest(HoldStrategy(), {"BTC": flat_bars})

        assert events.events[0].event_type is EventType.RUN_STARTED
        assert events.events[0].payload["mode"] == "simple"
        assert events.events[-1].event_type is EventType.RUN_COMPLETED
        assert events.events[-1].payload["total_trades"] == 0
        assert results.walk_forward is None
        assert results.monte_carlo is None

    @pytest.mark.asyncio
    async def test_precomputed_signals(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test signal lists pass through to the runner."""
        engine = BacktestEngine(full_position_config, events=RecordingEventSink())
        signals = [Signal(asset="BTC", action=SignalAction.BUY, notional=1000.0)]

        results = await engine.run_backtest(None, {"BTC": flat_bars}, signals=signals)

        assert len(results.trades) == 1

    @pytest.mark.asyncio
    async def test_date_range_filter(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test start and end dates restrict the timeline inclusively."""
        config = _with(
            full_position_config,
            start_date=START + timedelta(days=5),
            end_date=START + timedelta(days=14),
        )
        engine = BacktestEngine(config, events=RecordingEventSink())

        results = await engine.run_backtest(HoldStrategy(), {"BTC": flat_bars})

        assert len(results.equity_curve) == 11
        assert results.equity_curve[1].timestamp == START + timedelta(days=5)
        assert results.equity_curve[-1].timestamp == START + timedelta(days=14)

    @pytest.mark.asyncio
    async def test_empty_date_range(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test a range without data is a configuration error reported as run_error."""
        config = _with(full_position_config, start_date=START + timedelta(days=365))
        events = RecordingEventSink()
        engine = BacktestEngine(config, events=events)

        with pytest.raises(ConfigurationError) as exc_info:
            await engine.run_backtest(HoldStrategy(), {"BTC": flat_bars})

        assert exc_info.value.phase == "simple"
        error = events.of_type(EventType.RUN_ERROR)[0]
        assert error.level == "ERROR"
        assert error.payload["phase"] == "simple"
        assert error.payload["error_type"] == "ConfigurationError"
        assert not events.of_type(EventType.RUN_COMPLETED)

    @pytest.mark.asyncio
    async def test_strategy_error(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test strategy failures propagate with their cause."""
        events = RecordingEventSink()
        engine = BacktestEngine(full_position_config, events=events)

        with pytest.raises(StrategyError) as exc_info:
            await engine.run_backtest(BrokenStrategy(), {"BTC": flat_bars})

        assert isinstance(exc_info.value.cause, KeyError)
        assert events.of_type(EventType.RUN_ERROR)[0].payload["error_type"] == "StrategyError"

    def test_run_backtest_sync(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test the blocking wrapper."""
        engine = BacktestEngine(full_position_config, events=RecordingEventSink())
        results = engine.run_backtest_sync(HoldStrategy(), {"BTC": flat_bars})
        assert results.performance.total_return == 0.0


class TestWalkForwardMode:
    """Test suite for walk-forward dispatch."""

    @pytest.mark.asyncio
    async def test_walk_forward_dispatch(self, full_position_config: BacktestConfig, trending_bars) -> None:
        """Test an enabled walk-forward config returns a walk-forward block."""
        config = _with(
            full_position_config,
            walk_forward=WalkForwardConfig(enabled=True, window_size=60, step_size=30).model_dump(),
        )
        events = RecordingEventSink()
        strategy = EmaCrossoverStrategy(
            "BTC", ema_fast=3, ema_slow=10, parameter_space={"ema_fast": [3], "ema_slow": [10, 15]}
        )

        results = await BacktestEngine(config, events=events).run_backtest(strategy, {"BTC": trending_bars})

        assert results.walk_forward is not None
        assert len(results.walk_forward.windows) == 3
        assert events.of_type(EventType.RUN_COMPLETED)[0].payload["mode"] == "walk_forward"

    @pytest.mark.asyncio
    async def test_window_too_large(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test an oversized window reports the walk-forward phase."""
        config = _with(full_position_config, walk_forward={"enabled": True, "window_size": 100})
        events = RecordingEventSink()

        with pytest.raises(ConfigurationError) as exc_info:
            await BacktestEngine(config, events=events).run_backtest(
                EmaCrossoverStrategy("BTC"), {"BTC": flat_bars}
            )

        assert exc_info.value.phase == "walk_forward"
        assert events.of_type(EventType.RUN_ERROR)[0].payload["phase"] == "walk_forward"

    @pytest.mark.asyncio
    async def test_signals_rejected(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test pre-computed signals cannot drive an optimization."""
        config = _with(full_position_config, walk_forward={"enabled": True, "window_size": 10, "step_size": 5})

        with pytest.raises(ConfigurationError, match="walk-forward"):
            await BacktestEngine(config, events=RecordingEventSink()).run_backtest(
                None, {"BTC": flat_bars}, signals=[None]
            )


class TestMonteCarloMode:
    """Test suite for the Monte Carlo augmentation."""

    @pytest.mark.asyncio
    async def test_monte_carlo_attached(self, full_position_config: BacktestConfig, trending_bars) -> None:
        """Test an enabled Monte Carlo config attaches a summary."""
        config = _with(
            full_position_config,
            monte_carlo=MonteCarloConfig(enabled=True, simulations=50, random_seed=3).model_dump(),
        )
        events = RecordingEventSink()

        results = await BacktestEngine(config, events=events).run_backtest(
            EmaCrossoverStrategy("BTC", ema_fast=5, ema_slow=20), {"BTC": trending_bars}
        )

        assert results.monte_carlo is not None
        assert results.monte_carlo.simulations == 50
        assert events.of_type(EventType.MONTE_CARLO_PROGRESS)

    @pytest.mark.asyncio
    async def test_monte_carlo_failure_phase(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test failures after the main run are tagged with the Monte Carlo phase."""
        config = _with(full_position_config, monte_carlo={"enabled": True, "simulations": 10})
        events = RecordingEventSink()

        with patch(
            "backtest_engine.backtest.engine.MonteCarloSimulator.run_from_curve",
            side_effect=RuntimeError("boom"),
        ):
            with pytest.raises(RuntimeError):
                await BacktestEngine(config, events=events).run_backtest(HoldStrategy(), {"BTC": flat_bars})

        assert events.of_type(EventType.RUN_ERROR)[0].payload["phase"] == "monte_carlo"
