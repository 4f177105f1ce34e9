"""Unit tests for configuration Pydantic models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from backtest_engine.config.models import (
    BacktestConfig,
    ConstraintsConfig,
    CostConfig,
    MonteCarloConfig,
    RiskManagementConfig,
    WalkForwardConfig,
)


def test_backtest_config_defaults() -> None:
    """Test BacktestConfig uses correct defaults."""
    config = BacktestConfig()
    assert config.initial_capital == 100000.0
    assert config.start_date is None
    assert config.end_date is None
    assert config.walk_forward.enabled is False
    assert config.monte_carlo.enabled is False
    assert config.constraints.max_position_size == 0.1


def test_backtest_config_rejects_zero_capital() -> None:
    """Test BacktestConfig rejects non-positive initial capital."""
    with pytest.raises(ValidationError, match="greater than 0"):
        BacktestConfig(initial_capital=0.0)


def test_backtest_config_rejects_end_before_start() -> None:
    """Test end_date before start_date is rejected at construction."""
    with pytest.raises(ValidationError, match="must not be before"):
        BacktestConfig(
            start_date=datetime(2024, 6, 1, tzinfo=timezone.utc),
            end_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )


def test_backtest_config_accepts_equal_dates() -> None:
    """Test a single-day range is valid."""
    day = datetime(2024, 1, 1, tzinfo=timezone.utc)
    config = BacktestConfig(start_date=day, end_date=day)
    assert config.start_date == config.end_date


def test_backtest_config_is_frozen() -> None:
    """Test configuration cannot be mutated after construction."""
    config = BacktestConfig()
    with pytest.raises(ValidationError):
        config.initial_capital = 5.0  # type: ignore[misc]


def test_walk_forward_ratios_must_fit_window() -> None:
    """Test in_sample_ratio + out_sample_ratio > 1 is rejected."""
    with pytest.raises(ValidationError, match="must not exceed 1.0"):
        WalkForwardConfig(in_sample_ratio=0.8, out_sample_ratio=0.3)


def test_walk_forward_window_needs_both_sides() -> None:
    """Test a window too small to hold an in-sample bar is rejected."""
    with pytest.raises(ValidationError, match="leaves no in-sample bars"):
        WalkForwardConfig(window_size=2, in_sample_ratio=0.4, out_sample_ratio=0.4)



def test_walk_forward_valid_split() -> None:
    """Test a typical 70/30 split is accepted."""
    config = WalkForwardConfig(window_size=20, step_size=10, in_sample_ratio=0.7, out_sample_ratio=0.3)
    assert config.window_size == 20
    assert config.anchored is False


def test_constraints_reject_position_size_above_one() -> None:
    """Test max_position_size is a fraction of capital."""
    with pytest.raises(ValidationError, match="less than or equal to 1"):
        ConstraintsConfig(max_position_size=1.5)


def test_cost_config_rejects_negative_commission() -> None:
    """Test CostConfig rejects negative commission."""
    with pytest.raises(ValidationError, match="greater than or equal to 0"):
        CostConfig(commission=-0.001)


def test_risk_management_defaults() -> None:
    """Test RiskManagementConfig uses correct defaults."""
    config = RiskManagementConfig()
    assert config.max_drawdown == 0.2
    assert config.kelly_fraction == 0.25
    assert config.risk_per_trade == 0.02
    assert config.correlation_limit == 0.7


def test_monte_carlo_confidence_bounds() -> None:
    """Test confidence_level must lie strictly between 0 and 1."""
    with pytest.raises(ValidationError, match="less than 1"):
        MonteCarloConfig(confidence_level=1.0)


def test_nested_config_from_dict() -> None:
    """Test nested sections are parsed from plain dictionaries."""
    config = BacktestConfig(
        **{
            "initial_capital": 50000.0,
            "walk_forward": {"enabled": True, "window_size": 40, "step_size": 5},
            "monte_carlo": {"enabled": True, "simulations": 200, "random_seed": 7},
        }
    )
    assert config.walk_forward.window_size == 40
    assert config.monte_carlo.random_seed == 7
