"""Backtesting framework.

Key Components:
    - MarketDataFeed: Timestamp-indexed historical bars
    - PortfolioSimulator: Simulated fills, costs, positions, and trade ledger
    - BacktestRunner: Single-period step loop
    - WalkForwardAnalyzer: Rolling/anchored optimize-then-validate windows
    - MonteCarloSimulator: Bootstrap confidence intervals
    - MetricsCalculator: Performance, risk, and trade statistics
    - BacktestEngine: Entry point dispatching the above

Example:
    >>> from backtest_engine.backtest import BacktestEngine
    >>> engine = BacktestEngine(config)
    >>> results = await engine.run_backtest(strategy, {"BTC": bars})
    >>> print(f"Total Return: {results.performance.total_return:.2%}")
"""

from backtest_engine.backtest.backtest_results import load_results, save_results
from backtest_engine.backtest.costs import CostModel
from backtest_engine.backtest.engine import BacktestEngine
from backtest_engine.backtest.errors import BacktestError, ConfigurationError, StrategyError
from backtest_engine.backtest.market_data import MarketDataFeed, load_bars_csv
from backtest_engine.backtest.metrics import MetricsCalculator
from backtest_engine.backtest.monte_carlo import MonteCarloSimulator, probability_of_ruin
from backtest_engine.backtest.portfolio import PortfolioSimulator
from backtest_engine.backtest.runner import BacktestRunner
from backtest_engine.backtest.walk_forward import WalkForwardAnalyzer

__all__ = [
    "BacktestEngine",
    "BacktestError",
    "BacktestRunner",
    "ConfigurationError",
    "CostModel",
    "MarketDataFeed",
    "MetricsCalculator",
    "MonteCarloSimulator",
    "PortfolioSimulator",
    "StrategyError",
    "WalkForwardAnalyzer",
    "load_bars_csv",
    "load_results",
    "probability_of_ruin",
    "save_results",
]
