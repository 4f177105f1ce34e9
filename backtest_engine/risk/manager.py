"""Portfolio-level risk policies applied after every step.

Policies, in order:
    1. Drawdown kill switch: close everything once drawdown from the
       manager's own high-water mark exceeds the limit, then block entries
       until a later evaluation is back within the limit.
    2. VaR gate: block entries while the historical 95% VaR loss exceeds
       the configured limit.
    3. Correlation pruning: close the weakest position when open positions
       move together.
    4. Trailing stops: ratchet stops on every open position.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from backtest_engine.config.models import BacktestConfig
from backtest_engine.metrics.returns import lag1_autocorrelation, period_returns, value_at_risk
from backtest_engine.models.position import Position
from backtest_engine.monitoring.events import EventSink, EventType, LoggingEventSink, emit_event
from backtest_engine.risk.trailing_stop import TrailingStopManager

if TYPE_CHECKING:
    from backtest_engine.backtest.portfolio import PortfolioSimulator

logger = logging.getLogger(__name__)

# Pruning needs correlation above both the configured limit and this floor
CORRELATION_FLOOR = 0.7
VAR_CONFIDENCE = 0.95
VAR_MIN_OBSERVATIONS = 20


def position_correlation(positions: list[Position]) -> float:
    """Lag-1 autocorrelation of notional-normalized unrealized P&L, in opening order."""
    if len(positions) < 2:
        return 0.0
    normalized = [
        p.unrealized_pnl / p.notional if p.notional > 0 else 0.0
        for p in positions
    ]
    return lag1_autocorrelation(normalized)


class RiskManager:
    """Applies portfolio risk policies to a simulator once per step."""

    def __init__(self, config: BacktestConfig, events: EventSink | None = None) -> None:
        self.config = config
        self.events = events or LoggingEventSink()
        trail = config.constraints.trailing_stop
        self.trailing_stops = TrailingStopManager(trail) if trail else None
        self.reset()

    def reset(self) -> None:
        self.high_water_mark = self.config.initial_capital
        self.halted = False
        self.var_blocked = False
        self.kill_switch_triggers = 0
        self._equity_history: list[float] = [self.config.initial_capital]

    def entries_allowed(self) -> tuple[bool, str]:
        """
        Check whether new positions may be opened.

        Returns:
            Tuple of (allowed, reason)
        """
        if self.halted:
            return False, "Drawdown kill switch active"
        if self.var_blocked:
            return False, "Value-at-risk limit exceeded"
        return True, "OK"

    def apply(self, simulator: "PortfolioSimulator", timestamp: datetime) -> None:
        """Run every risk policy against the simulator's current state."""
        equity = simulator.calculate_equity()
        self._equity_history.append(equity)

        if self._check_drawdown(simulator, equity, timestamp):
            return

        self._check_var(timestamp)
        self._check_correlation(simulator, timestamp)

        if self.trailing_stops is not None:
            self.trailing_stops.update_all(list(simulator.positions.values()))

    def current_drawdown(self, equity: float) -> float:
        if equity > self.high_water_mark:
            self.high_water_mark = equity
        if self.high_water_mark <= 0:
            return 0.0
        return (self.high_water_mark - equity) / self.high_water_mark

    def _check_drawdown(
        self,
        simulator: "PortfolioSimulator",
        equity: float,
        timestamp: datetime,
    ) -> bool:
        """Fire the kill switch if needed. Returns True when it fired."""
        drawdown = self.current_drawdown(equity)
        limit = self.config.risk_management.max_drawdown

        if drawdown <= limit:
            if self.halted:
                logger.info("Drawdown %.2f%% back within limit, entries resumed", drawdown * 100)
            self.halted = False
            return False

        if not simulator.positions:
            return False

        closed = simulator.close_all_positions(timestamp, reason="max_drawdown")
        self.kill_switch_triggers += 1
        self.halted = True
        # Re-base on the realized equity so the switch does not re-fire on the same loss
        self.high_water_mark = simulator.calculate_equity()

        logger.warning(
            "Max drawdown %.2f%% exceeded limit %.2f%%, closed %d positions",
            drawdown * 100,
            limit * 100,
            len(closed),
        )
        emit_event(
            self.events,
            EventType.RISK_LIMIT_TRIGGERED,
            {
                "type": "max_drawdown",
                "value": drawdown,
                "limit": limit,
                "closed_positions": len(closed),
                "timestamp": timestamp.isoformat(),
            },
            level="WARN",
        )
        return True

    def _check_var(self, timestamp: datetime) -> None:
        returns = period_returns(self._equity_history)
        if returns.size < VAR_MIN_OBSERVATIONS:
            return

        var_loss = -value_at_risk(returns, VAR_CONFIDENCE)
        limit = self.config.risk_management.var_limit
        blocked = var_loss > limit

        if blocked and not self.var_blocked:
            logger.warning("VaR loss %.4f exceeds limit %.4f, entries blocked", var_loss, limit)
            emit_event(
                self.events,
                EventType.RISK_LIMIT_TRIGGERED,
                {
                    "type": "var_limit",
                    "value": var_loss,
                    "limit": limit,
                    "timestamp": timestamp.isoformat(),
                },
                level="WARN",
            )
        self.var_blocked = blocked

    def _check_correlation(self, simulator: "PortfolioSimulator", timestamp: datetime) -> None:
        positions = list(simulator.positions.values())
        if len(positions) < 2:
            return

        correlation = position_correlation(positions)
        threshold = max(self.config.risk_management.correlation_limit, CORRELATION_FLOOR)
        if correlation <= threshold:
            return

        worst = min(positions, key=lambda p: p.unrealized_pnl)
        simulator.close_position(worst.asset, timestamp, "correlation")
        logger.info(
            "Position correlation %.2f above %.2f, closed %s",
            correlation,
            threshold,
            worst.asset,
        )
        emit_event(
            self.events,
            EventType.RISK_LIMIT_TRIGGERED,
            {
                "type": "correlation",
                "value": correlation,
                "limit": threshold,
                "asset": worst.asset,
                "timestamp": timestamp.isoformat(),
            },
            level="WARN",
        )
