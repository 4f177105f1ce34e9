"""Signal models for trading decisions."""

from dataclasses import dataclass
from enum import Enum


class SignalAction(str, Enum):
    """Trading signal actions. Returning no signal means hold."""

    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Signal:
    """Trading signal emitted by a strategy for a single asset.

    Attributes:
        asset: Asset identifier present in the market data.
        action: BUY opens a long (or closes a short), SELL opens a short
            (or closes a long).
        quantity: Optional explicit size in units.
        notional: Optional explicit size in cash; wins over quantity.
        stop_loss: Optional stop-loss price level.
        take_profit: Optional take-profit price level.
        win_probability: Optional estimated win rate, enables Kelly sizing.
        win_loss_ratio: Optional average win / average loss, enables Kelly sizing.
    """

    asset: str
    action: SignalAction
    quantity: float | None = None
    notional: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None
    win_probability: float | None = None
    win_loss_ratio: float | None = None

    def __post_init__(self) -> None:
        """Validate signal data."""
        if self.quantity is not None and self.quantity <= 0:
            raise ValueError("Quantity must be positive")
        if self.notional is not None and self.notional <= 0:
            raise ValueError("Notional must be positive")
        if self.win_probability is not None and not 0.0 <= self.win_probability <= 1.0:
            raise ValueError("Win probability must be between 0.0 and 1.0")
        if self.win_loss_ratio is not None and self.win_loss_ratio <= 0:
            raise ValueError("Win/loss ratio must be positive")

    @property
    def uses_kelly(self) -> bool:
        """True when the signal carries the inputs for Kelly sizing."""
        return self.win_probability is not None and self.win_loss_ratio is not None
