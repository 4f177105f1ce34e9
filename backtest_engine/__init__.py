"""Strategy backtesting engine with walk-forward optimization and Monte Carlo resampling."""

__version__ = "0.1.0"
