"""Configuration package for the backtesting engine."""

from .loader import load_config
from .models import (
    BacktestConfig,
    ConstraintsConfig,
    CostConfig,
    MonteCarloConfig,
    RiskManagementConfig,
    WalkForwardConfig,
)

__all__ = [
    "BacktestConfig",
    "ConstraintsConfig",
    "CostConfig",
    "MonteCarloConfig",
    "RiskManagementConfig",
    "WalkForwardConfig",
    "load_config",
]
