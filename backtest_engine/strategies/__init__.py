"""Strategy interface and bundled reference strategies."""

from .ema_crossover import EmaCrossoverStrategy
from .interface import ParameterizedStrategy, ResettableStrategy, Strategy

__all__ = [
    "EmaCrossoverStrategy",
    "ParameterizedStrategy",
    "ResettableStrategy",
    "Strategy",
]
