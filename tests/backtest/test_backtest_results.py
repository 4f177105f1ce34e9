"""Tests for result persistence."""

import json
import math
from pathlib import Path

import pytest

from backtest_engine.backtest.backtest_results import load_results, save_results
from backtest_engine.backtest.runner import BacktestRunner
from backtest_engine.config.models import BacktestConfig
from backtest_engine.models.signal import Signal, SignalAction
from backtest_engine.monitoring.events import RecordingEventSink


class TestSaveResults:
    """Test suite for save_results / load_results."""

    def test_save_and_load(self, tmp_path: Path, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test a saved report carries metadata and the serialized results."""
        runner = BacktestRunner(full_position_config, events=RecordingEventSink())
        results = runner.run_sync(
            None,
            {"BTC": flat_bars},
            signals=[Signal(asset="BTC", action=SignalAction.BUY, notional=5000.0)],
        )

        path = save_results(results, tmp_path / "reports" / "run.json", metadata={"strategy": "manual"})
        report = load_results(path)

        assert path.exists()
        assert report["strategy"] == "manual"
        assert "generated_at" in report
        assert report["results"]["performance"]["start_equity"] == 100_000.0
        assert len(report["results"]["equity_curve"]) == len(flat_bars) + 1
        trade = report["results"]["trades"][0]
        assert trade["side"] == "LONG"
        assert trade["exit_reason"] == "end_of_backtest"
        assert isinstance(trade["holding_period"], float)

    def test_load_missing(self, tmp_path: Path) -> None:
        """Test loading a missing report raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_results(tmp_path / "nope.json")

    def test_no_loss_run_is_strict_json(self, tmp_path: Path, full_position_config: BacktestConfig, flat_bars) -> None:
        """Test a run without losing periods writes a report strict JSON parsers accept."""

        def reject_constant(token: str) -> None:
            raise ValueError(f"non-standard JSON constant {token}")

        runner = BacktestRunner(full_position_config, events=RecordingEventSink())
        results = runner.run_sync(None, {"BTC": flat_bars}, signals=[])

        assert results.risk.omega_ratio == math.inf
        assert results.risk.kappa_ratio == math.inf

        parsed = json.loads(results.to_json(), parse_constant=reject_constant)
        assert parsed["risk"]["omega_ratio"] == "inf"
        assert parsed["risk"]["kappa_ratio"] == "inf"

        path = save_results(results, tmp_path / "run.json")
        report = json.loads(path.read_text(encoding="utf-8"), parse_constant=reject_constant)
        assert report["results"]["risk"]["kappa_ratio"] == "inf"
