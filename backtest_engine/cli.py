"""
Command-line backtest runner.

Loads OHLCV CSV files, runs the bundled EMA crossover strategy through the
engine and writes a JSON report.

Example:
    backtest-engine --data BTC=data/BTC_USDT_1d.csv --walk-forward --monte-carlo --output report.json
"""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from backtest_engine.backtest.backtest_results import save_results
from backtest_engine.backtest.engine import BacktestEngine
from backtest_engine.backtest.errors import BacktestError
from backtest_engine.backtest.market_data import load_bars_csv
from backtest_engine.config.loader import load_config
from backtest_engine.config.models import BacktestConfig
from backtest_engine.models.market import MarketBar
from backtest_engine.models.results import BacktestResults
from backtest_engine.strategies.ema_crossover import EmaCrossoverStrategy

logger = logging.getLogger("backtest_engine.cli")


def _parse_data_args(values: Sequence[str]) -> dict[str, Path]:
    sources: dict[str, Path] = {}
    for value in values:
        asset, sep, path = value.partition("=")
        if not sep or not asset or not path:
            raise argparse.ArgumentTypeError(f"Expected ASSET=path.csv, got {value!r}")
        sources[asset] = Path(path)
    return sources


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backtest-engine",
        description="Backtest the EMA crossover strategy on historical OHLCV data",
    )
    parser.add_argument(
        "--data",
        action="append",
        required=True,
        metavar="ASSET=PATH",
        help="OHLCV CSV per asset; the first asset drives the timeline (repeatable)",
    )
    parser.add_argument("--config", help="JSON config file (defaults apply when omitted)")
    parser.add_argument("--fast", type=int, default=10, help="Fast EMA period")
    parser.add_argument("--slow", type=int, default=30, help="Slow EMA period")
    parser.add_argument("--walk-forward", action="store_true", help="Enable walk-forward optimization")
    parser.add_argument("--monte-carlo", action="store_true", help="Enable Monte Carlo resampling")
    parser.add_argument("--simulations", type=int, help="Monte Carlo simulation count")
    parser.add_argument("--seed", type=int, help="Monte Carlo random seed")
    parser.add_argument("--output", help="Write the JSON report to this path")
    return parser


def resolve_config(args: argparse.Namespace) -> BacktestConfig:
    """Config file (or defaults) with command-line overrides applied."""
    config = load_config(args.config) if args.config else BacktestConfig()

    walk_forward = config.walk_forward
    if args.walk_forward:
        walk_forward = walk_forward.model_copy(update={"enabled": True})

    mc_updates: dict[str, object] = {}
    if args.monte_carlo:
        mc_updates["enabled"] = True
    if args.simulations is not None:
        mc_updates["simulations"] = args.simulations
    if args.seed is not None:
        mc_updates["random_seed"] = args.seed

    return BacktestConfig.model_validate(
        {
            **config.model_dump(),
            "walk_forward": walk_forward.model_dump(),
            "monte_carlo": {**config.monte_carlo.model_dump(), **mc_updates},
        }
    )


def print_summary(results: BacktestResults) -> None:
    perf = results.performance
    print("\n" + "=" * 40)
    print("BACKTEST RESULTS")
    print("=" * 40)
    print(f"Total Return:    {perf.total_return:8.2%}")
    print(f"Annual Return:   {perf.annualized_return:8.2%}")
    print(f"Sharpe Ratio:    {perf.sharpe_ratio:8.2f}")
    print(f"Max Drawdown:    {perf.max_drawdown:8.2%}")
    print(f"Trades:          {results.trade_stats.total_trades:8d}")
    print(f"Win Rate:        {perf.win_rate:8.2%}")
    if results.walk_forward is not None:
        wf = results.walk_forward
        print(f"WF Windows:      {len(wf.windows):8d}")
        print(f"WF Efficiency:   {wf.avg_efficiency:8.4f}")
    if results.monte_carlo is not None:
        mc = results.monte_carlo
        print(f"MC 5% Return:    {mc.percentiles.get('5%', 0.0):8.2%}")
        print(f"MC Ruin Prob.:   {mc.probability_of_ruin:8.2%}")
    print("=" * 40)


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        sources = _parse_data_args(args.data)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    config = resolve_config(args)
    market_data: dict[str, list[MarketBar]] = {
        asset: load_bars_csv(path) for asset, path in sources.items()
    }
    primary = next(iter(sources))
    strategy = EmaCrossoverStrategy(primary, ema_fast=args.fast, ema_slow=args.slow)

    engine = BacktestEngine(config)
    try:
        results = asyncio.run(engine.run_backtest(strategy, market_data))
    except BacktestError as exc:
        logger.error("Backtest failed (%s): %s", exc.phase, exc)
        return 1

    print_summary(results)

    if args.output:
        path = save_results(
            results,
            args.output,
            metadata={
                "strategy": "ema_crossover",
                "parameters": strategy.parameters,
                "data": {asset: str(path) for asset, path in sources.items()},
            },
        )
        logger.info("Report written to %s", path)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
