"""Pydantic configuration models with type safety and validation.

All rates and percentages are fractions (0.01 = 1%).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class WalkForwardConfig(BaseModel):
    """Rolling (or anchored) in-sample / out-of-sample window settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Run walk-forward optimization instead of a single pass")
    in_sample_ratio: float = Field(
        default=0.7,
        gt=0.0,
        lt=1.0,
        description="Share of each window used for parameter optimization",
    )
    out_sample_ratio: float = Field(
        default=0.3,
        gt=0.0,
        lt=1.0,
        description="Share of each window used for out-of-sample validation",
    )
    window_size: int = Field(default=252, ge=2, description="Window length in bars")
    step_size: int = Field(default=63, ge=1, description="Bars to advance between windows")
    anchored: bool = Field(
        default=False,
        description="Keep the in-sample start pinned at the first bar",
    )

    @model_validator(mode="after")
    def validate_window_split(self) -> "WalkForwardConfig":
        """Ensure the ratios fit inside a window and both sides get at least one bar."""
        if self.in_sample_ratio + self.out_sample_ratio > 1.0 + 1e-9:
            raise ValueError(
                f"in_sample_ratio ({self.in_sample_ratio}) + out_sample_ratio "
                f"({self.out_sample_ratio}) must not exceed 1.0"
            )
        in_sample_bars = int(self.window_size * self.in_sample_ratio)
        if in_sample_bars < 1:
            raise ValueError(
                f"window_size {self.window_size} leaves no in-sample bars at ratio {self.in_sample_ratio}"
            )
        return self


class ConstraintsConfig(BaseModel):
    """Per-order and portfolio-level execution constraints."""

    model_config = ConfigDict(frozen=True)

    max_position_size: float = Field(
        default=0.1,
        gt=0.0,
        le=1.0,
        description="Maximum notional per order as a fraction of available cash",
    )
    max_leverage: float = Field(
        default=1.0,
        gt=0.0,
        description="Maximum gross exposure as a multiple of equity",
    )
    min_trade_size: float = Field(
        default=0.0,
        ge=0.0,
        description="Smallest notional accepted for an order",
    )
    max_open_positions: int = Field(default=10, ge=1, description="Maximum concurrent positions")
    stop_loss: float | None = Field(
        default=None,
        gt=0.0,
        lt=1.0,
        description="Default stop-loss distance from entry as a fraction of price",
    )
    take_profit: float | None = Field(
        default=None,
        gt=0.0,
        description="Default take-profit distance from entry as a fraction of price",
    )
    trailing_stop: float | None = Field(
        default=None,
        gt=0.0,
        lt=1.0,
        description="Trailing stop distance as a fraction of the current price",
    )


class CostConfig(BaseModel):
    """Trading and carry costs."""

    model_config = ConfigDict(frozen=True)

    commission: float = Field(default=0.001, ge=0.0, description="Commission per side on notional")
    slippage: float = Field(default=0.0005, ge=0.0, description="Adverse fill price offset")
    spread: float = Field(default=0.0002, ge=0.0, description="Bid/ask spread charged on notional")
    borrowing_cost: float = Field(default=0.0, ge=0.0, description="Annual borrowing rate for shorts")
    funding_rate: float | None = Field(
        default=None,
        description="Annual funding rate charged on all open notional (perpetuals)",
    )


class RiskManagementConfig(BaseModel):
    """Portfolio risk policies."""

    model_config = ConfigDict(frozen=True)

    max_drawdown: float = Field(
        default=0.2,
        gt=0.0,
        le=1.0,
        description="Drawdown from the high-water mark that triggers the kill switch",
    )
    var_limit: float = Field(
        default=1.0,
        gt=0.0,
        description="Largest tolerated 95% one-period VaR loss before entries are blocked",
    )
    kelly_fraction: float = Field(
        default=0.25,
        gt=0.0,
        le=1.0,
        description="Multiplier applied to the full Kelly fraction",
    )
    risk_per_trade: float = Field(
        default=0.02,
        gt=0.0,
        le=1.0,
        description="Capital risked per trade for stop-distance sizing",
    )
    correlation_limit: float = Field(
        default=0.7,
        ge=-1.0,
        le=1.0,
        description="Correlation above which the weakest position is pruned",
    )


class MonteCarloConfig(BaseModel):
    """Bootstrap resampling settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Resample the completed run's returns")
    simulations: int = Field(default=1000, ge=1, description="Number of bootstrap draws")
    confidence_level: float = Field(
        default=0.95,
        gt=0.0,
        lt=1.0,
        description="Two-sided confidence level for the reported intervals",
    )
    random_seed: int | None = Field(default=None, description="Seed for reproducible draws")


class BacktestConfig(BaseModel):
    """Root configuration model for a backtest run."""

    model_config = ConfigDict(frozen=True)

    initial_capital: float = Field(default=100000.0, gt=0.0, description="Starting cash")
    start_date: datetime | None = Field(
        default=None,
        description="First bar timestamp to include (defaults to the start of the data)",
    )
    end_date: datetime | None = Field(
        default=None,
        description="Last bar timestamp to include (defaults to the end of the data)",
    )
    walk_forward: WalkForwardConfig = Field(default_factory=WalkForwardConfig)
    constraints: ConstraintsConfig = Field(default_factory=ConstraintsConfig)
    costs: CostConfig = Field(default_factory=CostConfig)
    risk_management: RiskManagementConfig = Field(default_factory=RiskManagementConfig)
    monte_carlo: MonteCarloConfig = Field(default_factory=MonteCarloConfig)

    @model_validator(mode="after")
    def validate_date_range(self) -> "BacktestConfig":
        """Ensure end_date is not before start_date."""
        if self.start_date is not None and self.end_date is not None:
            if self.end_date < self.start_date:
                raise ValueError(
                    f"end_date ({self.end_date.isoformat()}) must not be before "
                    f"start_date ({self.start_date.isoformat()})"
                )
        return self
