"""Backtest result containers.

All containers are plain dataclasses; ``BacktestResults.to_dict`` produces a
nested, JSON-safe structure (ISO timestamps, seconds for durations, enum
values) for export.
"""

import json
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from .trade import Trade


@dataclass(frozen=True)
class EquityCurvePoint:
    """Portfolio state recorded once per step."""

    timestamp: datetime
    equity: float
    drawdown: float
    period_return: float
    open_positions: int


@dataclass
class PerformanceMetrics:
    """Return-based performance block."""

    total_return: float = 0.0
    annualized_return: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_duration: int = 0
    volatility: float = 0.0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    expectancy: float = 0.0
    payoff_ratio: float = 0.0
    recovery_factor: float = 0.0
    ulcer_index: float = 0.0
    serenity_ratio: float = 0.0
    start_equity: float = 0.0
    end_equity: float = 0.0


@dataclass
class RiskMetrics:
    """Tail-risk and benchmark-relative block."""

    value_at_risk_95: float = 0.0
    value_at_risk_99: float = 0.0
    conditional_var_95: float = 0.0
    conditional_var_99: float = 0.0
    beta: float = 1.0
    alpha: float = 0.0
    treynor_ratio: float = 0.0
    information_ratio: float = 0.0
    tracking_error: float = 0.0
    downside_deviation: float = 0.0
    omega_ratio: float = 0.0
    kappa_ratio: float = 0.0


@dataclass
class TradeStatistics:
    """Statistics over closed trades."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    avg_trades_per_day: float = 0.0
    avg_holding_period_days: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    avg_mae: float = 0.0
    avg_mfe: float = 0.0
    edge_ratio: float = 0.0


@dataclass
class PeriodAnalysis:
    """Realized P&L bucketed by calendar period of the exit."""

    daily: dict[str, float] = field(default_factory=dict)
    weekly: dict[str, float] = field(default_factory=dict)
    monthly: dict[str, float] = field(default_factory=dict)
    yearly: dict[str, float] = field(default_factory=dict)


@dataclass
class WalkForwardWindow:
    """One optimize-then-validate walk-forward window."""

    index: int
    in_sample_start: datetime
    in_sample_end: datetime
    out_sample_start: datetime
    out_sample_end: datetime
    parameters: dict[str, Any]
    in_sample_result: "BacktestResults"
    out_sample_result: "BacktestResults"
    efficiency: float


@dataclass
class WalkForwardSummary:
    """Aggregate of all walk-forward windows."""

    windows: list[WalkForwardWindow] = field(default_factory=list)
    combined_return: float = 0.0
    max_drawdown: float = 0.0
    avg_efficiency: float = 0.0
    stability: float = 0.0
    robustness: float = 0.0


@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float
    upper: float


@dataclass
class MonteCarloSummary:
    """Bootstrap distribution of terminal return, drawdown and Sharpe."""

    simulations: int = 0
    percentiles: dict[str, float] = field(default_factory=dict)
    confidence_intervals: dict[str, ConfidenceInterval] = field(default_factory=dict)
    probability_of_ruin: float = 0.0
    expected_max_drawdown: float = 0.0
    mean_return: float = 0.0


def _serialize(obj: Any) -> Any:
    """Recursively convert values into JSON-safe primitives.

    NaN becomes ``None`` and infinities become the strings ``"inf"`` and
    ``"-inf"`` (omega and kappa ratios are infinite without losses), so the
    output is strict RFC 8259 JSON.
    """
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(k): _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(v) for v in obj]
    if isinstance(obj, float):
        if math.isnan(obj):
            return None
        if math.isinf(obj):
            return "inf" if obj > 0 else "-inf"
    return obj


@dataclass
class BacktestResults:
    """Complete outcome of a backtest run."""

    performance: PerformanceMetrics
    risk: RiskMetrics
    trade_stats: TradeStatistics
    equity_curve: list[EquityCurvePoint] = field(default_factory=list)
    trades: list[Trade] = field(default_factory=list)
    period_analysis: PeriodAnalysis = field(default_factory=PeriodAnalysis)
    walk_forward: WalkForwardSummary | None = None
    monte_carlo: MonteCarloSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return _serialize(asdict(self))

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, allow_nan=False)
