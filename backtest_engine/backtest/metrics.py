"""Performance metrics calculator for backtesting results."""

from typing import Sequence

from backtest_engine.metrics import returns as rm
from backtest_engine.metrics.trades import period_analysis, summarize_wins_losses, trade_statistics
from backtest_engine.models.results import (
    BacktestResults,
    EquityCurvePoint,
    PerformanceMetrics,
    RiskMetrics,
    TradeStatistics,
)
from backtest_engine.models.trade import Trade


class MetricsCalculator:
    """Reduce an equity curve and trade ledger to a BacktestResults record.

    Example:
        >>> calc = MetricsCalculator(initial_capital=100_000)
        >>> for point in curve:
        ...     calc.add_equity_point(point)
        >>> for trade in ledger:
        ...     calc.add_trade(trade)
        >>> results = calc.calculate()
    """

    def __init__(
        self,
        initial_capital: float,
        benchmark_returns: Sequence[float] | None = None,
    ):
        """Initialize calculator.

        Args:
            initial_capital: Capital at the start of the run
            benchmark_returns: Per-step benchmark returns for beta/alpha and
                friends; the strategy's own returns are used when omitted
        """
        self.initial_capital = initial_capital
        self.benchmark_returns = benchmark_returns
        self.equity_curve: list[EquityCurvePoint] = []
        self.trades: list[Trade] = []

    def add_equity_point(self, point: EquityCurvePoint) -> None:
        self.equity_curve.append(point)

    def add_trade(self, trade: Trade) -> None:
        self.trades.append(trade)

    def calculate(self) -> BacktestResults:
        """Calculate every metric block."""
        if not self.equity_curve:
            return BacktestResults(
                performance=PerformanceMetrics(
                    start_equity=self.initial_capital,
                    end_equity=self.initial_capital,
                ),
                risk=RiskMetrics(),
                trade_stats=TradeStatistics(),
                trades=list(self.trades),
            )

        equity = [p.equity for p in self.equity_curve]
        returns = rm.period_returns(equity)

        total = rm.total_return(self.initial_capital, equity[-1])
        years = rm.years_between(self.equity_curve[0].timestamp, self.equity_curve[-1].timestamp)
        annual = rm.annualized_return(total, years)
        max_dd = rm.max_drawdown(equity)
        ulcer = rm.ulcer_index(equity)
        wins_losses = summarize_wins_losses(self.trades)

        performance = PerformanceMetrics(
            total_return=total,
            annualized_return=annual,
            sharpe_ratio=rm.sharpe_ratio(returns),
            sortino_ratio=rm.sortino_ratio(returns),
            calmar_ratio=rm.calmar_ratio(annual, max_dd),
            max_drawdown=max_dd,
            max_drawdown_duration=rm.max_drawdown_duration(equity),
            volatility=rm.volatility(returns),
            win_rate=wins_losses.win_rate,
            profit_factor=wins_losses.profit_factor,
            average_win=wins_losses.average_win,
            average_loss=wins_losses.average_loss,
            expectancy=wins_losses.expectancy,
            payoff_ratio=wins_losses.payoff_ratio,
            recovery_factor=rm.recovery_factor(total, max_dd),
            ulcer_index=ulcer,
            serenity_ratio=rm.serenity_ratio(annual, ulcer),
            start_equity=self.initial_capital,
            end_equity=equity[-1],
        )

        beta = rm.beta(returns, self.benchmark_returns)
        risk = RiskMetrics(
            value_at_risk_95=rm.value_at_risk(returns, 0.95),
            value_at_risk_99=rm.value_at_risk(returns, 0.99),
            conditional_var_95=rm.conditional_value_at_risk(returns, 0.95),
            conditional_var_99=rm.conditional_value_at_risk(returns, 0.99),
            beta=beta,
            alpha=rm.alpha(returns, annual, self.benchmark_returns),
            treynor_ratio=rm.treynor_ratio(annual, beta),
            information_ratio=rm.information_ratio(returns, self.benchmark_returns),
            tracking_error=rm.tracking_error(returns, self.benchmark_returns),
            downside_deviation=rm.downside_deviation(returns) * (rm.TRADING_DAYS_PER_YEAR ** 0.5),
            omega_ratio=rm.omega_ratio(returns),
            kappa_ratio=rm.kappa_ratio(returns),
        )

        return BacktestResults(
            performance=performance,
            risk=risk,
            trade_stats=trade_statistics(self.trades, years * rm.DAYS_PER_YEAR),
            equity_curve=list(self.equity_curve),
            trades=list(self.trades),
            period_analysis=period_analysis(self.trades),
        )
