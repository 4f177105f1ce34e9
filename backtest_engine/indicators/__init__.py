"""Technical indicators used by the bundled strategies."""

from .ema import calculate_ema

__all__ = ["calculate_ema"]
