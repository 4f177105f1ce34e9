import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generator

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:  # pragma: no cover
    sys.path.append(str(PROJECT_ROOT))

from backtest_engine.config.models import (  # noqa: E402
    BacktestConfig,
    ConstraintsConfig,
    CostConfig,
    RiskManagementConfig,
)
from backtest_engine.models.market import MarketBar  # noqa: E402

START_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

BarFactory = Callable[..., list[MarketBar]]


def _make_bars(
    closes: list[float],
    start: datetime = START_TIME,
    step: timedelta = timedelta(days=1),
) -> list[MarketBar]:
    return [
        MarketBar(
            timestamp=start + i * step,
            open=close,
            high=close * 1.01,
            low=close * 0.99,
            close=close,
            volume=1000.0,
        )
        for i, close in enumerate(closes)
    ]


@pytest.fixture
def make_bars() -> BarFactory:
    """Factory turning a list of closes into daily bars starting 2024-01-01."""
    return _make_bars


@pytest.fixture
def flat_bars() -> list[MarketBar]:
    """Thirty daily bars with a constant close of 100."""
    return _make_bars([100.0] * 30)


@pytest.fixture
def trending_bars() -> list[MarketBar]:
    """A rise, a fall and a second rise, 120 daily bars in total."""
    closes = (
        [100.0 + i for i in range(40)]
        + [140.0 - i for i in range(40)]
        + [100.0 + i * 1.5 for i in range(40)]
    )
    return _make_bars(closes)


@pytest.fixture
def full_position_config() -> BacktestConfig:
    """Config that lets a single order use all available cash."""
    return BacktestConfig(
        initial_capital=100_000.0,
        constraints=ConstraintsConfig(max_position_size=1.0, max_leverage=1.0, max_open_positions=5),
        costs=CostConfig(commission=0.001, slippage=0.0005, spread=0.0002),
        risk_management=RiskManagementConfig(max_drawdown=0.5),
    )


@pytest.fixture(autouse=True)
def clean_config_env() -> Generator[None, None, None]:
    """Ensure BACKTEST_* env vars do not interfere with tests unless explicitly set."""
    original_env = {}
    keys_to_clear = [
        "BACKTEST_CONFIG_PATH",
        "BACKTEST_INITIAL_CAPITAL",
        "BACKTEST_WALK_FORWARD_ENABLED",
        "BACKTEST_MONTE_CARLO_ENABLED",
        "BACKTEST_MONTE_CARLO_SIMULATIONS",
        "BACKTEST_MONTE_CARLO_SEED",
    ]

    for key in keys_to_clear:
        if key in os.environ:
            original_env[key] = os.environ[key]
            os.environ.pop(key, None)

    yield

    for key in keys_to_clear:
        os.environ.pop(key, None)
    for key, value in original_env.items():
        os.environ[key] = value
