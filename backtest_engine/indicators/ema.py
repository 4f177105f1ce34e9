"""Exponential moving average seeded with a simple moving average."""

from typing import Sequence

import numpy as np


def calculate_ema(values: Sequence[float], period: int) -> list[float]:
    """
    EMA series aligned with ``values``.

    The value at index ``period - 1`` is the mean of the first ``period``
    inputs; each later value moves toward the input by ``2 / (period + 1)``.
    Indices before the seed hold 0.0, as does the whole series when there
    are fewer than ``period`` inputs.

    Raises:
        ValueError: If ``period`` is below 1
    """
    if period < 1:
        raise ValueError("EMA period must be at least 1")

    closes = np.asarray(values, dtype=float)
    ema = np.zeros(closes.size)
    if closes.size < period:
        return ema.tolist()

    alpha = 2.0 / (period + 1)
    level = float(closes[:period].mean())
    ema[period - 1] = level
    for i in range(period, closes.size):
        level += alpha * (closes[i] - level)
        ema[i] = level
    return ema.tolist()
