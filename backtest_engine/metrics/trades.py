"""Trade-ledger statistics. Only closed trades are counted."""

from collections import defaultdict
from dataclasses import dataclass
from typing import Sequence

from backtest_engine.models.results import PeriodAnalysis, TradeStatistics
from backtest_engine.models.trade import Trade


@dataclass(frozen=True)
class WinLossSummary:
    """Win/loss aggregates shared by the performance and trade blocks."""

    win_rate: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    profit_factor: float = 0.0
    expectancy: float = 0.0
    payoff_ratio: float = 0.0


def closed_trades(trades: Sequence[Trade]) -> list[Trade]:
    return [t for t in trades if t.is_closed and t.pnl is not None]


def summarize_wins_losses(trades: Sequence[Trade]) -> WinLossSummary:
    """
    Win rate, average win/loss, profit factor, expectancy and payoff ratio.

    Profit factor is 0.0 when there are no losing trades.
    """
    closed = closed_trades(trades)
    if not closed:
        return WinLossSummary()

    wins = [t.pnl for t in closed if t.pnl > 0]
    losses = [t.pnl for t in closed if t.pnl < 0]

    win_rate = len(wins) / len(closed)
    average_win = sum(wins) / len(wins) if wins else 0.0
    average_loss = sum(losses) / len(losses) if losses else 0.0
    gross_profit = sum(wins)
    gross_loss = abs(sum(losses))

    profit_factor = gross_profit / gross_loss if gross_loss > 0 else 0.0
    expectancy = win_rate * average_win - (1.0 - win_rate) * abs(average_loss)
    payoff_ratio = average_win / abs(average_loss) if average_loss != 0 else 0.0

    return WinLossSummary(
        win_rate=win_rate,
        average_win=average_win,
        average_loss=average_loss,
        profit_factor=profit_factor,
        expectancy=expectancy,
        payoff_ratio=payoff_ratio,
    )


def consecutive_streaks(trades: Sequence[Trade]) -> tuple[int, int]:
    """Longest winning and losing streaks, in ledger order."""
    max_wins = max_losses = 0
    wins = losses = 0
    for trade in closed_trades(trades):
        if trade.pnl > 0:
            wins += 1
            losses = 0
        elif trade.pnl < 0:
            losses += 1
            wins = 0
        else:
            wins = losses = 0
        max_wins = max(max_wins, wins)
        max_losses = max(max_losses, losses)
    return max_wins, max_losses


def trade_statistics(trades: Sequence[Trade], period_days: float) -> TradeStatistics:
    """
    Build the trade statistics block.

    Args:
        trades: Trade ledger (open trades are ignored)
        period_days: Length of the backtest in days, for trades-per-day

    Returns:
        TradeStatistics for the closed trades
    """
    closed = closed_trades(trades)
    if not closed:
        return TradeStatistics()

    pnls = [t.pnl for t in closed]
    summary = summarize_wins_losses(closed)
    max_wins, max_losses = consecutive_streaks(closed)
    holding_days = [t.holding_period.total_seconds() / 86400.0 for t in closed]

    edge_ratio = summary.expectancy / abs(summary.average_loss) if summary.average_loss != 0 else 0.0

    return TradeStatistics(
        total_trades=len(closed),
        winning_trades=sum(1 for p in pnls if p > 0),
        losing_trades=sum(1 for p in pnls if p < 0),
        avg_trades_per_day=len(closed) / period_days if period_days > 0 else 0.0,
        avg_holding_period_days=sum(holding_days) / len(holding_days),
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        largest_win=max(max(pnls), 0.0),
        largest_loss=min(min(pnls), 0.0),
        avg_mae=sum(t.mae for t in closed) / len(closed),
        avg_mfe=sum(t.mfe for t in closed) / len(closed),
        edge_ratio=edge_ratio,
    )


def period_analysis(trades: Sequence[Trade]) -> PeriodAnalysis:
    """Realized P&L per day (YYYY-MM-DD), ISO week (YYYY-Www), month (YYYY-MM) and year."""
    daily: dict[str, float] = defaultdict(float)
    weekly: dict[str, float] = defaultdict(float)
    monthly: dict[str, float] = defaultdict(float)
    yearly: dict[str, float] = defaultdict(float)

    for trade in closed_trades(trades):
        when = trade.exit_time
        iso_year, iso_week, _ = when.isocalendar()
        daily[when.strftime("%Y-%m-%d")] += trade.pnl
        weekly[f"{iso_year}-W{iso_week:02d}"] += trade.pnl
        monthly[when.strftime("%Y-%m")] += trade.pnl
        yearly[str(when.year)] += trade.pnl

    return PeriodAnalysis(
        daily=dict(daily),
        weekly=dict(weekly),
        monthly=dict(monthly),
        yearly=dict(yearly),
    )
