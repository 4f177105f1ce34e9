"""Data models for market data, signals, positions, trades, and results."""

from .market import MarketBar, MarketSnapshot
from .position import Position, PositionSide
from .results import (
    BacktestResults,
    ConfidenceInterval,
    EquityCurvePoint,
    MonteCarloSummary,
    PerformanceMetrics,
    PeriodAnalysis,
    RiskMetrics,
    TradeStatistics,
    WalkForwardSummary,
    WalkForwardWindow,
)
from .signal import Signal, SignalAction
from .trade import Trade

__all__ = [
    "BacktestResults",
    "ConfidenceInterval",
    "EquityCurvePoint",
    "MarketBar",
    "MarketSnapshot",
    "MonteCarloSummary",
    "PerformanceMetrics",
    "PeriodAnalysis",
    "Position",
    "PositionSide",
    "RiskMetrics",
    "Signal",
    "SignalAction",
    "Trade",
    "TradeStatistics",
    "WalkForwardSummary",
    "WalkForwardWindow",
]
