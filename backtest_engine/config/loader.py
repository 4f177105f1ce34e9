"""Configuration loader with JSON file and environment variable support."""

import json
import os
from pathlib import Path
from typing import Any

from .models import BacktestConfig

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def load_config(config_path: str | Path | None = None) -> BacktestConfig:
    """
    Load configuration from JSON file with environment variable overrides.

    Priority: env vars > config file > defaults

    Args:
        config_path: Path to JSON config file. If None, uses BACKTEST_CONFIG_PATH env var
                     or defaults to 'backtest.json' in the current directory.

    Returns:
        Validated BacktestConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        json.JSONDecodeError: If config file has invalid JSON
        pydantic.ValidationError: If config values are invalid
    """
    if config_path is None:
        config_path = os.environ.get("BACKTEST_CONFIG_PATH", "backtest.json")

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    with open(config_file, encoding="utf-8") as f:
        config_data: dict[str, Any] = json.load(f)

    # Format: BACKTEST_INITIAL_CAPITAL, BACKTEST_MONTE_CARLO_SEED, etc.
    if capital := os.environ.get("BACKTEST_INITIAL_CAPITAL"):
        config_data["initial_capital"] = float(capital)

    if wf_enabled := os.environ.get("BACKTEST_WALK_FORWARD_ENABLED"):
        config_data.setdefault("walk_forward", {})["enabled"] = _env_flag(wf_enabled)

    if mc_enabled := os.environ.get("BACKTEST_MONTE_CARLO_ENABLED"):
        config_data.setdefault("monte_carlo", {})["enabled"] = _env_flag(mc_enabled)

    if simulations := os.environ.get("BACKTEST_MONTE_CARLO_SIMULATIONS"):
        config_data.setdefault("monte_carlo", {})["simulations"] = int(simulations)

    if seed := os.environ.get("BACKTEST_MONTE_CARLO_SEED"):
        config_data.setdefault("monte_carlo", {})["random_seed"] = int(seed)

    return BacktestConfig(**config_data)
