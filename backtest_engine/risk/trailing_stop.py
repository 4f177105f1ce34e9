"""Trailing stop-loss manager."""

from backtest_engine.models.position import Position, PositionSide


class TrailingStopManager:
    """
    Maintains percentage trailing stops on open positions.

    The candidate stop is price * (1 - trail) for longs and price * (1 + trail)
    for shorts. The stop only ratchets in the position's favour: up for
    longs, down for shorts.
    """

    def __init__(self, trail_fraction: float) -> None:
        if not 0.0 < trail_fraction < 1.0:
            raise ValueError("Trail fraction must be between 0.0 and 1.0")
        self.trail_fraction = trail_fraction

    def candidate_stop(self, position: Position) -> float:
        if position.side is PositionSide.LONG:
            return position.current_price * (1.0 - self.trail_fraction)
        return position.current_price * (1.0 + self.trail_fraction)

    def update(self, position: Position) -> float:
        """
        Ratchet the position's stop from its current mark.

        Args:
            position: Open position, mutated in place.

        Returns:
            Updated stop-loss level.
        """
        candidate = self.candidate_stop(position)
        current_stop = position.stop_loss

        if current_stop is None:
            final_stop = candidate
        elif position.side is PositionSide.LONG:
            final_stop = max(candidate, current_stop)
        else:
            final_stop = min(candidate, current_stop)

        if final_stop != current_stop:
            position.stop_reason = "trailing_stop"
        position.stop_loss = final_stop
        return final_stop

    def update_all(self, positions: list[Position]) -> None:
        for position in positions:
            self.update(position)
