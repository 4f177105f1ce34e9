"""
Exception hierarchy for backtest runs.

Every error records the phase it was raised in so callers can tell a
walk-forward failure from a Monte Carlo one.
"""

from typing import Literal

Phase = Literal["simple", "walk_forward", "monte_carlo"]


class BacktestError(Exception):
    """Base exception for all backtest errors."""

    def __init__(self, message: str, phase: Phase = "simple", cause: BaseException | None = None):
        self.phase = phase
        self.cause = cause
        super().__init__(message)


class ConfigurationError(BacktestError, ValueError):
    """Raised when the configuration or input data cannot produce a run."""

    pass


class StrategyError(BacktestError):
    """Raised when a strategy hook fails. Always fatal for the run."""

    pass
