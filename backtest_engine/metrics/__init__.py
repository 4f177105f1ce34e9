"""Metrics library: pure functions over return series, equity curves, and trade ledgers."""

from .returns import (
    RISK_FREE_RATE,
    TRADING_DAYS_PER_YEAR,
    alpha,
    annualized_return,
    beta,
    calmar_ratio,
    conditional_value_at_risk,
    downside_deviation,
    drawdown_series,
    information_ratio,
    kappa_ratio,
    lag1_autocorrelation,
    max_drawdown,
    max_drawdown_duration,
    omega_ratio,
    percentile,
    period_returns,
    recovery_factor,
    serenity_ratio,
    sharpe_ratio,
    sortino_ratio,
    total_return,
    tracking_error,
    treynor_ratio,
    ulcer_index,
    value_at_risk,
    volatility,
    years_between,
)
from .trades import (
    WinLossSummary,
    closed_trades,
    consecutive_streaks,
    period_analysis,
    summarize_wins_losses,
    trade_statistics,
)

__all__ = [
    "RISK_FREE_RATE",
    "TRADING_DAYS_PER_YEAR",
    "WinLossSummary",
    "alpha",
    "annualized_return",
    "beta",
    "calmar_ratio",
    "closed_trades",
    "conditional_value_at_risk",
    "consecutive_streaks",
    "downside_deviation",
    "drawdown_series",
    "information_ratio",
    "kappa_ratio",
    "lag1_autocorrelation",
    "max_drawdown",
    "max_drawdown_duration",
    "omega_ratio",
    "percentile",
    "period_analysis",
    "period_returns",
    "recovery_factor",
    "serenity_ratio",
    "sharpe_ratio",
    "sortino_ratio",
    "summarize_wins_losses",
    "total_return",
    "tracking_error",
    "trade_statistics",
    "treynor_ratio",
    "ulcer_index",
    "value_at_risk",
    "volatility",
    "years_between",
]
