"""Return-series and equity-curve statistics.

Every function is pure and degenerate-safe: empty or constant inputs and
zero denominators yield 0.0 rather than NaN or inf. The only exceptions are
``omega_ratio`` and ``kappa_ratio``, which return ``math.inf`` when there is
no downside at all, and ``annualized_return``, which returns ``math.inf``
when a gain compounded over a very short span overflows.
"""

import math
from datetime import datetime
from typing import Sequence

import numpy as np

TRADING_DAYS_PER_YEAR = 252
DAYS_PER_YEAR = 365.25
RISK_FREE_RATE = 0.02

# Standard deviations below this are treated as zero (constant series)
_STD_EPSILON = 1e-12


def _as_array(values: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(values, dtype=float)


def period_returns(equity: Sequence[float] | np.ndarray) -> np.ndarray:
    """Simple returns between consecutive equity values."""
    values = _as_array(equity)
    if values.size < 2:
        return np.empty(0)
    previous = values[:-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        returns = np.where(previous != 0, values[1:] / previous - 1.0, 0.0)
    return returns


def total_return(initial_equity: float, final_equity: float) -> float:
    if initial_equity <= 0:
        return 0.0
    return final_equity / initial_equity - 1.0


def years_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 86400.0 / DAYS_PER_YEAR


def annualized_return(total: float, years: float) -> float:
    """Geometric annualization of a total return over ``years``."""
    if years <= 0:
        return 0.0
    if total <= -1.0:
        return -1.0
    try:
        return float((1.0 + total) ** (1.0 / years) - 1.0)
    except OverflowError:
        return math.inf


def volatility(returns: Sequence[float]) -> float:
    """Annualized population standard deviation."""
    values = _as_array(returns)
    if values.size == 0:
        return 0.0
    return float(values.std() * math.sqrt(TRADING_DAYS_PER_YEAR))


def sharpe_ratio(returns: Sequence[float]) -> float:
    """Annualized Sharpe ratio: mean * 252 / (std * sqrt(252))."""
    values = _as_array(returns)
    if values.size == 0:
        return 0.0
    std = values.std()
    if std < _STD_EPSILON:
        return 0.0
    return float(values.mean() * TRADING_DAYS_PER_YEAR / (std * math.sqrt(TRADING_DAYS_PER_YEAR)))


def downside_deviation(returns: Sequence[float]) -> float:
    """Population standard deviation of the negative returns only."""
    values = _as_array(returns)
    negatives = values[values < 0]
    if negatives.size == 0:
        return 0.0
    return float(negatives.std())


def sortino_ratio(returns: Sequence[float]) -> float:
    """Sharpe ratio with downside deviation in place of total deviation."""
    values = _as_array(returns)
    if values.size == 0:
        return 0.0
    downside = downside_deviation(values)
    if downside < _STD_EPSILON:
        return 0.0
    return float(
        values.mean() * TRADING_DAYS_PER_YEAR / (downside * math.sqrt(TRADING_DAYS_PER_YEAR))
    )


def drawdown_series(equity: Sequence[float] | np.ndarray) -> np.ndarray:
    """Fractional drawdown from the running peak at every point."""
    values = _as_array(equity)
    if values.size == 0:
        return np.empty(0)
    peaks = np.maximum.accumulate(values)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(peaks > 0, (peaks - values) / peaks, 0.0)


def max_drawdown(equity: Sequence[float]) -> float:
    drawdowns = drawdown_series(equity)
    if drawdowns.size == 0:
        return 0.0
    return float(drawdowns.max())


def max_drawdown_duration(equity: Sequence[float]) -> int:
    """Longest run of consecutive points spent below the running peak."""
    longest = 0
    current = 0
    peak = -math.inf
    for value in equity:
        if value >= peak:
            peak = value
            current = 0
        else:
            current += 1
            longest = max(longest, current)
    return longest


def ulcer_index(equity: Sequence[float]) -> float:
    """Root mean square of the drawdown series."""
    drawdowns = drawdown_series(equity)
    if drawdowns.size == 0:
        return 0.0
    return float(math.sqrt(np.mean(drawdowns**2)))


def calmar_ratio(annual_return: float, max_dd: float) -> float:
    if max_dd <= 0:
        return 0.0
    return annual_return / max_dd


def recovery_factor(total: float, max_dd: float) -> float:
    if max_dd <= 0:
        return 0.0
    return total / max_dd


def serenity_ratio(annual_return: float, ulcer: float) -> float:
    if ulcer <= 0:
        return 0.0
    return annual_return / ulcer


def value_at_risk(returns: Sequence[float], confidence: float = 0.95) -> float:
    """Historical VaR: the return at index floor((1 - confidence) * n) of the sorted series."""
    values = np.sort(_as_array(returns))
    if values.size == 0:
        return 0.0
    index = min(int(math.floor((1.0 - confidence) * values.size)), values.size - 1)
    return float(values[index])


def conditional_value_at_risk(returns: Sequence[float], confidence: float = 0.95) -> float:
    """Expected shortfall: mean of the returns at or below the VaR cutoff."""
    values = np.sort(_as_array(returns))
    if values.size == 0:
        return 0.0
    index = min(int(math.floor((1.0 - confidence) * values.size)), values.size - 1)
    return float(values[: index + 1].mean())


def omega_ratio(returns: Sequence[float], threshold: float = 0.0) -> float:
    """Gains above ``threshold`` over losses at or below it; inf without losses."""
    values = _as_array(returns)
    if values.size == 0:
        return 0.0
    excess = values - threshold
    gains = float(excess[excess > 0].sum())
    losses = float(-excess[excess <= 0].sum())
    if losses == 0.0:
        return math.inf
    return gains / losses


def kappa_ratio(returns: Sequence[float], threshold: float = 0.0) -> float:
    """Mean excess return over the root of the second lower partial moment; inf without downside."""
    values = _as_array(returns)
    if values.size == 0:
        return 0.0
    shortfall = np.minimum(values - threshold, 0.0)
    lower_partial_moment = float(np.mean(shortfall**2))
    if lower_partial_moment == 0.0:
        return math.inf
    return float((values.mean() - threshold) / math.sqrt(lower_partial_moment))


def _benchmark_for(returns: np.ndarray, benchmark: Sequence[float] | None) -> np.ndarray:
    """Benchmark aligned to ``returns``; the strategy's own returns when none is given."""
    if benchmark is None:
        return returns
    bench = _as_array(benchmark)
    size = min(bench.size, returns.size)
    return bench[bench.size - size :]


def _aligned(returns: np.ndarray, bench: np.ndarray) -> np.ndarray:
    return returns[returns.size - bench.size :]


def beta(returns: Sequence[float], benchmark: Sequence[float] | None = None) -> float:
    """Covariance with the benchmark over benchmark variance; 1.0 when undefined."""
    values = _as_array(returns)
    bench = _benchmark_for(values, benchmark)
    values = _aligned(values, bench)
    if bench.size < 2 or bench.std() < _STD_EPSILON:
        return 1.0
    covariance = np.mean((values - values.mean()) * (bench - bench.mean()))
    return float(covariance / bench.var())


def alpha(
    returns: Sequence[float],
    annual_return: float,
    benchmark: Sequence[float] | None = None,
    risk_free_rate: float = RISK_FREE_RATE,
) -> float:
    """Jensen's alpha against the annualized arithmetic benchmark return."""
    values = _as_array(returns)
    bench = _benchmark_for(values, benchmark)
    bench_annual = float(bench.mean() * TRADING_DAYS_PER_YEAR) if bench.size else 0.0
    b = beta(values, benchmark)
    return annual_return - (risk_free_rate + b * (bench_annual - risk_free_rate))


def treynor_ratio(annual_return: float, beta_value: float, risk_free_rate: float = RISK_FREE_RATE) -> float:
    if abs(beta_value) < _STD_EPSILON:
        return 0.0
    return (annual_return - risk_free_rate) / beta_value


def _excess(returns: Sequence[float], benchmark: Sequence[float] | None) -> np.ndarray:
    values = _as_array(returns)
    bench = _benchmark_for(values, benchmark)
    return _aligned(values, bench) - bench


def information_ratio(returns: Sequence[float], benchmark: Sequence[float] | None = None) -> float:
    excess = _excess(returns, benchmark)
    if excess.size == 0:
        return 0.0
    std = excess.std()
    if std < _STD_EPSILON:
        return 0.0
    return float(excess.mean() / std)


def tracking_error(returns: Sequence[float], benchmark: Sequence[float] | None = None) -> float:
    excess = _excess(returns, benchmark)
    if excess.size == 0:
        return 0.0
    return float(excess.std() * math.sqrt(TRADING_DAYS_PER_YEAR))


def percentile(values: Sequence[float] | np.ndarray, fraction: float) -> float:
    """Nearest-rank percentile: sorted[ceil(n * fraction) - 1]."""
    ordered = np.sort(_as_array(values))
    if ordered.size == 0:
        return 0.0
    rank = math.ceil(round(ordered.size * fraction, 10))
    index = min(max(rank - 1, 0), ordered.size - 1)
    return float(ordered[index])


def lag1_autocorrelation(values: Sequence[float]) -> float:
    """Lag-1 autocorrelation of a short series; 0.0 when undefined.

    The denominator sums squared deviations of the first n - 1 values only,
    matching the numerator's terms.
    """
    series = _as_array(values)
    if series.size < 2:
        return 0.0
    centered = series - series.mean()
    denominator = float(np.sum(centered[:-1] ** 2))
    if denominator < _STD_EPSILON:
        return 0.0
    return float(np.sum(centered[:-1] * centered[1:]) / denominator)
