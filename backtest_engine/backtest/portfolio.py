"""Simulated portfolio: cash, open positions, and the trade ledger.

A simulator instance belongs to exactly one run. Fills are taken at the
bar close, worsened by slippage; commission is charged on entry and the
round-trip exit cost is carried inside unrealized P&L so equity is always
cost-inclusive.
"""

import logging
import uuid
from datetime import datetime

from backtest_engine.backtest.costs import CostModel
from backtest_engine.config.models import BacktestConfig
from backtest_engine.models.market import MarketSnapshot
from backtest_engine.models.position import Position, PositionSide
from backtest_engine.models.signal import Signal, SignalAction
from backtest_engine.models.trade import Trade
from backtest_engine.monitoring.events import EventSink, EventType, LoggingEventSink, emit_event
from backtest_engine.risk.sizing import PositionSizer

logger = logging.getLogger(__name__)


class PortfolioSimulator:
    """Cash and position bookkeeping for one backtest run."""

    def __init__(
        self,
        config: BacktestConfig,
        events: EventSink | None = None,
        sizer: PositionSizer | None = None,
    ) -> None:
        """
        Initialize simulator.

        Args:
            config: Run configuration (capital, constraints, costs)
            events: Sink for trade events (default: log them)
            sizer: Position sizer used when a signal carries no explicit size
        """
        self.config = config
        self.costs = CostModel.from_config(config.costs)
        self.sizer = sizer or PositionSizer(config)
        self.events = events or LoggingEventSink()
        self.reset()

    def reset(self) -> None:
        """Return to a flat book holding only the initial capital."""
        self.cash = self.config.initial_capital
        self.positions: dict[str, Position] = {}
        self.trades: list[Trade] = []
        self._open_trades: dict[str, Trade] = {}
        self.equity_history: list[float] = [self.config.initial_capital]
        self.peak_equity = self.config.initial_capital

    @property
    def gross_exposure(self) -> float:
        return sum(p.notional for p in self.positions.values())

    def requested_notional(self, signal: Signal, price: float) -> float:
        """Explicit signal size when given, otherwise the risk sizer's."""
        if signal.notional is not None:
            return signal.notional
        if signal.quantity is not None:
            return signal.quantity * price
        return self.sizer.size(signal, price, self.cash)

    def should_execute_trade(self, signal: Signal, notional: float) -> tuple[bool, str]:
        """
        Check execution constraints for a new position.

        Args:
            signal: Signal being executed
            notional: Requested order notional

        Returns:
            Tuple of (allowed, reason)
        """
        constraints = self.config.constraints

        if notional <= 0:
            return False, f"Order for {signal.asset} has no size"

        max_notional = self.cash * constraints.max_position_size
        if notional > max_notional * (1 + 1e-9):
            return False, (
                f"Notional {notional:.2f} exceeds max position size {max_notional:.2f}"
            )

        if len(self.positions) >= constraints.max_open_positions:
            return False, (
                f"Max open positions ({constraints.max_open_positions}) reached"
            )

        if notional < constraints.min_trade_size:
            return False, (
                f"Notional {notional:.2f} below min trade size {constraints.min_trade_size:.2f}"
            )

        max_exposure = self.calculate_equity() * constraints.max_leverage
        if self.gross_exposure + notional > max_exposure * (1 + 1e-9):
            return False, (
                f"Exposure {self.gross_exposure + notional:.2f} exceeds leverage limit {max_exposure:.2f}"
            )

        return True, "OK"

    def execute_trade(
        self,
        signal: Signal,
        snapshot: MarketSnapshot,
        timestamp: datetime,
    ) -> Trade | None:
        """
        Execute a signal against the current snapshot.

        A signal opposite to an open position closes it; a signal on the same
        side as an open position is ignored.

        Returns:
            The opened or closed trade, or None when the signal was rejected
        """
        bar = snapshot.get(signal.asset)
        if bar is None:
            logger.debug("No bar for %s at %s, signal skipped", signal.asset, timestamp)
            return None

        side = PositionSide.LONG if signal.action is SignalAction.BUY else PositionSide.SHORT

        existing = self.positions.get(signal.asset)
        if existing is not None:
            if existing.side is side:
                logger.debug("Already %s %s, signal ignored", side.value, signal.asset)
                return None
            return self.close_position(signal.asset, timestamp, "signal")

        price = bar.close
        notional = self.requested_notional(signal, price)
        allowed, reason = self.should_execute_trade(signal, notional)
        if not allowed:
            logger.debug("Signal for %s rejected: %s", signal.asset, reason)
            return None

        # Keep notional + commission within cash
        notional = min(notional, self.cash / (1.0 + self.costs.commission_rate))

        fill_price = self.costs.fill_price(price, side)
        quantity = notional / fill_price
        commission = self.costs.commission(notional)
        slippage = self.costs.slippage(notional)
        stop_loss, take_profit = self._exit_levels(signal, fill_price, side)

        trade_id = str(uuid.uuid4())
        position = Position(
            trade_id=trade_id,
            asset=signal.asset,
            side=side,
            quantity=quantity,
            entry_price=fill_price,
            entry_time=timestamp,
            notional=notional,
            current_price=price,
            last_update=timestamp,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )
        position.unrealized_pnl = self.costs.unrealized_pnl(position, price, timestamp)

        trade = Trade(
            trade_id=trade_id,
            asset=signal.asset,
            side=side,
            entry_price=fill_price,
            entry_time=timestamp,
            quantity=quantity,
            notional=notional,
            commission=commission,
            slippage=slippage,
        )
        trade.record_excursion(position.unrealized_pnl)

        self.cash -= notional + commission
        self.positions[signal.asset] = position
        self._open_trades[signal.asset] = trade
        self.trades.append(trade)

        emit_event(
            self.events,
            EventType.TRADE_EXECUTED,
            {
                "trade_id": trade_id,
                "asset": signal.asset,
                "side": side.value,
                "price": fill_price,
                "quantity": quantity,
                "notional": notional,
                "commission": commission,
                "timestamp": timestamp.isoformat(),
            },
        )
        return trade

    def _exit_levels(
        self,
        signal: Signal,
        fill_price: float,
        side: PositionSide,
    ) -> tuple[float | None, float | None]:
        """Signal stop/target levels, else the configured default distances."""
        constraints = self.config.constraints

        stop_loss = signal.stop_loss
        if stop_loss is None and constraints.stop_loss is not None:
            stop_loss = fill_price * (1.0 - side.sign * constraints.stop_loss)

        take_profit = signal.take_profit
        if take_profit is None and constraints.take_profit is not None:
            take_profit = fill_price * (1.0 + side.sign * constraints.take_profit)

        return stop_loss, take_profit

    def update_positions(self, snapshot: MarketSnapshot, timestamp: datetime) -> None:
        """Reprice positions; assets missing from the snapshot keep their last mark."""
        for asset, position in self.positions.items():
            bar = snapshot.get(asset)
            if bar is not None:
                position.current_price = bar.close
            position.last_update = timestamp
            position.unrealized_pnl = self.costs.unrealized_pnl(
                position, position.current_price, timestamp
            )
            self._open_trades[asset].record_excursion(position.unrealized_pnl)

    def check_exits(self, timestamp: datetime) -> list[Trade]:
        """Close positions whose mark crossed their stop-loss or take-profit level."""
        closed: list[Trade] = []
        for asset, position in list(self.positions.items()):
            price = position.current_price
            long = position.side is PositionSide.LONG
            reason = None

            if position.stop_loss is not None:
                if (long and price <= position.stop_loss) or (not long and price >= position.stop_loss):
                    reason = position.stop_reason

            if reason is None and position.take_profit is not None:
                if (long and price >= position.take_profit) or (not long and price <= position.take_profit):
                    reason = "take_profit"

            if reason is not None:
                trade = self.close_position(asset, timestamp, reason)
                if trade is not None:
                    closed.append(trade)
        return closed

    def close_position(self, asset: str, timestamp: datetime, reason: str) -> Trade | None:
        """
        Realize a position at its current mark.

        Returns:
            The finalized trade, or None if no position is open for ``asset``
        """
        position = self.positions.pop(asset, None)
        if position is None:
            return None
        trade = self._open_trades.pop(asset)

        self.cash += position.market_value
        pnl = position.unrealized_pnl - trade.commission
        exit_side = PositionSide.SHORT if position.side is PositionSide.LONG else PositionSide.LONG
        exit_price = self.costs.fill_price(position.current_price, exit_side)
        trade.close(exit_price, timestamp, pnl, reason)

        emit_event(
            self.events,
            EventType.TRADE_CLOSED,
            {
                "trade_id": trade.trade_id,
                "asset": asset,
                "exit_price": exit_price,
                "pnl": pnl,
                "reason": reason,
                "timestamp": timestamp.isoformat(),
            },
        )
        return trade

    def close_all_positions(self, timestamp: datetime, reason: str = "end_of_backtest") -> list[Trade]:
        closed = []
        for asset in list(self.positions):
            trade = self.close_position(asset, timestamp, reason)
            if trade is not None:
                closed.append(trade)
        return closed

    def calculate_equity(self, snapshot: MarketSnapshot | None = None) -> float:
        """
        Cash plus the value of every open position.

        Args:
            snapshot: When given, positions are valued at its closes without
                mutating their stored marks

        Returns:
            Total equity
        """
        equity = self.cash
        for position in self.positions.values():
            unrealized = position.unrealized_pnl
            if snapshot is not None and position.asset in snapshot:
                unrealized = self.costs.unrealized_pnl(
                    position, snapshot[position.asset].close, position.last_update
                )
            equity += position.notional + unrealized
        return equity

    def calculate_drawdown(self, equity: float) -> float:
        """Drawdown from the running peak; the peak only ever rises."""
        if equity > self.peak_equity:
            self.peak_equity = equity
        if self.peak_equity <= 0:
            return 0.0
        return (self.peak_equity - equity) / self.peak_equity

    def record_equity(self, equity: float) -> float:
        """Append to the equity history and return the current drawdown."""
        self.equity_history.append(equity)
        return self.calculate_drawdown(equity)
