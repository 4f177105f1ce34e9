"""Tests for the single-period backtest runner."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from backtest_engine.backtest.errors import StrategyError
from backtest_engine.backtest.runner import BacktestRunner
from backtest_engine.config.models import BacktestConfig, ConstraintsConfig, RiskManagementConfig
from backtest_engine.core.state_machine import RunState
from backtest_engine.models.signal import Signal, SignalAction
from backtest_engine.monitoring.events import EventType, RecordingEventSink
from backtest_engine.strategies.ema_crossover import EmaCrossoverStrategy

START_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class HoldStrategy:
    """Never trades."""

    def generate_signal(self, snapshot, positions, available_capital):
        return None


class BuyOnceStrategy:
    """Buys all available capital on the first bar, then holds."""

    def __init__(self, asset: str = "BTC") -> None:
        self.asset = asset
        self.calls = 0

    def reset(self) -> None:
        self.calls = 0

    def generate_signal(self, snapshot, positions, available_capital):
        self.calls += 1
        if self.calls == 1:
            return Signal(asset=self.asset, action=SignalAction.BUY, notional=available_capital)
        return None


class AsyncBuyOnceStrategy(BuyOnceStrategy):
    """Coroutine flavour of BuyOnceStrategy."""

    async def generate_signal(self, snapshot, positions, available_capital):
        return super().generate_signal(snapshot, positions, available_capital)


class FailingStrategy:
    """Raises on the third call."""

    def __init__(self) -> None:
        self.calls = 0

    def generate_signal(self, snapshot, positions, available_capital):
        self.calls += 1
        if self.calls == 3:
            raise RuntimeError("model unavailable")
        return None


@pytest.fixture
def small_account(full_position_config: BacktestConfig) -> BacktestConfig:
    return full_position_config.model_copy(update={"initial_capital": 10_000.0})


class TestSimpleRun:
    """Test suite for a plain run over flat prices."""

    @pytest.mark.asyncio
    async def test_flat_price_round_trip(self, small_account: BacktestConfig, make_bars) -> None:
        """Test buy-and-hold on flat prices loses only its costs."""
        bars = make_bars([100.0] * 10)
        runner = BacktestRunner(small_account, events=RecordingEventSink())

        results = await runner.run(BuyOnceStrategy(), {"BTC": bars})

        assert len(results.trades) == 1
        trade = results.trades[0]
        assert trade.exit_reason == "end_of_backtest"
        assert trade.exit_time == bars[-1].timestamp
        assert trade.pnl < 0
        assert abs(trade.pnl) < 0.005 * 10_000.0
        assert results.performance.total_return == pytest.approx(trade.pnl / 10_000.0)
        assert results.performance.end_equity == pytest.approx(10_000.0 + trade.pnl)

    @pytest.mark.asyncio
    async def test_equity_curve_has_seed_point(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test the curve holds one point per step plus the seed."""
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())
        results = await runner.run(HoldStrategy(), {"BTC": flat_bars})

        assert len(results.equity_curve) == len(flat_bars) + 1
        seed = results.equity_curve[0]
        assert seed.equity == full_position_config.initial_capital
        assert seed.timestamp == START_TIME - timedelta(days=1)
        assert results.trades == []
        assert results.performance.total_return == 0.0
        assert results.performance.sharpe_ratio == 0.0

    @pytest.mark.asyncio
    async def test_drawdown_peak_is_monotonic(self, full_position_config: BacktestConfig, trending_bars) -> None:
        """Test every recorded drawdown agrees with the running peak."""
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())
        results = await runner.run(EmaCrossoverStrategy("BTC", ema_fast=5, ema_slow=20), {"BTC": trending_bars})

        peak = results.equity_curve[0].equity
        for point in results.equity_curve[1:]:
            peak = max(peak, point.equity)
            assert point.drawdown == pytest.approx((peak - point.equity) / peak)

    @pytest.mark.asyncio
    async def test_ledger_complete(self, full_position_config: BacktestConfig, trending_bars) -> None:
        """Test every trade is closed when the run finishes."""
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())
        results = await runner.run(EmaCrossoverStrategy("BTC", ema_fast=5, ema_slow=20), {"BTC": trending_bars})

        assert results.trades
        for trade in results.trades:
            assert trade.exit_price is not None
            assert trade.exit_time is not None
            assert trade.pnl is not None
            assert trade.holding_period >= timedelta(0)

    @pytest.mark.asyncio
    async def test_state_machine_finishes(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test the run ends in DONE."""
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())
        await runner.run(HoldStrategy(), {"BTC": flat_bars}, run_id="check")
        assert runner.state_machine.current_state is RunState.DONE

    @pytest.mark.asyncio
    async def test_async_strategy(self, small_account: BacktestConfig, make_bars) -> None:
        """Test coroutine strategies are awaited."""
        runner = BacktestRunner(small_account, events=RecordingEventSink())
        results = await runner.run(AsyncBuyOnceStrategy(), {"BTC": make_bars([100.0] * 5)})
        assert len(results.trades) == 1

    @pytest.mark.asyncio
    async def test_strategy_reset_between_runs(self, small_account: BacktestConfig, make_bars) -> None:
        """Test a resettable strategy starts fresh on every run."""
        runner = BacktestRunner(small_account, events=RecordingEventSink())
        strategy = BuyOnceStrategy()
        data = {"BTC": make_bars([100.0] * 5)}

        first = await runner.run(strategy, data)
        second = await runner.run(strategy, data)

        assert len(first.trades) == 1
        assert len(second.trades) == 1

    @pytest.mark.asyncio
    async def test_progress_events(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test a progress event every N steps."""
        events = RecordingEventSink()
        runner = BacktestRunner(full_position_config, events=events, progress_interval=10)
        await runner.run(HoldStrategy(), {"BTC": flat_bars})

        progress = events.of_type(EventType.STEP_PROGRESS)
        assert [e.payload["step"] for e in progress] == [0, 10, 20]
        assert all(e.level == "DEBUG" for e in progress)

    def test_run_sync(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test the blocking wrapper."""
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())
        results = runner.run_sync(HoldStrategy(), {"BTC": flat_bars})
        assert len(results.equity_curve) == 31

    def test_invalid_progress_interval(self, full_position_config: BacktestConfig) -> None:
        """Test progress_interval must be positive."""
        with pytest.raises(ValueError):
            BacktestRunner(full_position_config, progress_interval=0)


class TestPrecomputedSignals:
    """Test suite for index-aligned signal lists."""

    @pytest.mark.asyncio
    async def test_signals_replace_strategy(self, full_position_config: BacktestConfig, make_bars) -> None:
        """Test a buy then a sell from a signal list."""
        bars = make_bars([100.0, 101.0, 102.0, 103.0, 104.0])
        signals = [
            Signal(asset="BTC", action=SignalAction.BUY, notional=10_000.0),
            None,
            Signal(asset="BTC", action=SignalAction.SELL),
        ]
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())

        results = await runner.run(None, {"BTC": bars}, signals=signals)

        assert len(results.trades) == 1
        assert results.trades[0].exit_reason == "signal"
        assert results.trades[0].exit_time == bars[2].timestamp

    @pytest.mark.asyncio
    async def test_strategy_fills_empty_slots(self, full_position_config: BacktestConfig, make_bars) -> None:
        """Test the strategy is asked for every step whose slot is None."""
        bars = make_bars([100.0, 101.0, 102.0, 103.0, 104.0])
        strategy = BuyOnceStrategy()
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())

        results = await runner.run(strategy, {"BTC": bars}, signals=[None] * 5)

        assert strategy.calls == 5
        assert len(results.trades) == 1
        assert results.trades[0].entry_time == bars[0].timestamp

    @pytest.mark.asyncio
    async def test_supplied_signals_take_precedence(self, full_position_config: BacktestConfig, make_bars) -> None:
        """Test supplied slots win and the strategy covers the rest, including past the end of the list."""
        bars = make_bars([100.0, 101.0, 102.0, 103.0, 104.0])
        strategy = MagicMock()
        strategy.generate_signal.return_value = None
        signals = [
            Signal(asset="BTC", action=SignalAction.BUY, notional=10_000.0),
            None,
            Signal(asset="BTC", action=SignalAction.SELL),
        ]
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())

        results = await runner.run(strategy, {"BTC": bars}, signals=signals)

        assert strategy.generate_signal.call_count == 3
        assert len(results.trades) == 1
        assert results.trades[0].exit_time == bars[2].timestamp

    @pytest.mark.asyncio
    async def test_requires_strategy_or_signals(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test a run needs some source of signals."""
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())
        with pytest.raises(ValueError):
            await runner.run(None, {"BTC": flat_bars})


class TestStrategyErrors:
    """Test suite for strategy failures."""

    @pytest.mark.asyncio
    async def test_strategy_error_is_wrapped(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test exceptions become StrategyError with phase and cause."""
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())

        with pytest.raises(StrategyError) as exc_info:
            await runner.run(FailingStrategy(), {"BTC": flat_bars})

        assert exc_info.value.phase == "simple"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert "model unavailable" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_phase_follows_runner(self, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test the runner's phase tag is attached."""
        runner = BacktestRunner(full_position_config, events=RecordingEventSink(), phase="walk_forward")
        with pytest.raises(StrategyError) as exc_info:
            await runner.run(FailingStrategy(), {"BTC": flat_bars})
        assert exc_info.value.phase == "walk_forward"


class TestKillSwitchScenario:
    """Test suite for the drawdown kill switch inside a run."""

    @pytest.mark.asyncio
    async def test_ten_percent_drop(self, make_bars) -> None:
        """Test a 10% drop against a long liquidates and blocks the next entry."""
        config = BacktestConfig(
            initial_capital=100_000.0,
            constraints=ConstraintsConfig(max_position_size=1.0),
            risk_management=RiskManagementConfig(max_drawdown=0.05),
        )
        bars = make_bars([100.0, 100.0, 100.0, 90.0, 90.0, 90.0])
        buy = Signal(asset="BTC", action=SignalAction.BUY, notional=90_000.0)
        signals = [buy, None, None, None, buy, None]
        events = RecordingEventSink()

        results = await BacktestRunner(config, events=events).run(None, {"BTC": bars}, signals=signals)

        triggered = events.of_type(EventType.RISK_LIMIT_TRIGGERED)
        assert len(triggered) == 1
        assert triggered[0].payload["type"] == "max_drawdown"
        assert len(results.trades) == 1
        assert results.trades[0].exit_reason == "max_drawdown"
        assert results.trades[0].exit_time == bars[3].timestamp
        assert results.equity_curve[4].open_positions == 0
