"""Risk management: position sizing, trailing stops, and portfolio policies."""

from .manager import RiskManager, position_correlation
from .sizing import PositionSizer, kelly_fraction
from .trailing_stop import TrailingStopManager

__all__ = [
    "PositionSizer",
    "RiskManager",
    "TrailingStopManager",
    "kelly_fraction",
    "position_correlation",
]
