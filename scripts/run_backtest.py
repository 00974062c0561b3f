#!/usr/bin/env python3
"""
Replay a CSV tick file through the bounce strategy.

The CSV needs `timestamp` (ms), `price` and `volume` columns. Results are
printed in the dashboard wire format and optionally written as JSON.

Usage:
    python scripts/run_backtest.py ticks.csv --symbol MEME --quantity 100
"""
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import argparse
import json

import pandas as pd

from config.settings import settings
from memebounce.backtester import BacktestRunner, BounceStrategy, load_series
from memebounce.detector import BounceDetector
from memebounce.models import SignalClassifier
from memebounce.utils.logger import get_backtester_logger


def load_ticks(path: Path, symbol: str) -> pd.DataFrame:
    """Read a tick CSV and rename its columns for load_series()."""
    df = pd.read_csv(path)
    missing = {'timestamp', 'price', 'volume'} - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {sorted(missing)}")
    return df[['timestamp', 'price', 'volume']].rename(
        columns={'price': symbol, 'volume': f"{symbol}_volume"}
    )


def main():
    parser = argparse.ArgumentParser(description='Bounce strategy backtest')
    parser.add_argument('csv', type=Path, help='Tick CSV with timestamp, price, volume')
    parser.add_argument('--symbol', default=settings.DEFAULT_SYMBOL,
                        help=f'Symbol name (default: {settings.DEFAULT_SYMBOL})')
    parser.add_argument('--quantity', type=float, default=None,
                        help='Units per entry (default: size by capital)')
    parser.add_argument('--capital', type=float, default=settings.INITIAL_BALANCE,
                        help=f'Initial capital (default: {settings.INITIAL_BALANCE})')
    parser.add_argument('--target', type=float, default=10.0,
                        help='Take-profit percentage (default: 10.0)')
    parser.add_argument('--stop-loss', type=float, default=5.0,
                        help='Stop loss percentage (default: 5.0)')
    parser.add_argument('--threshold', type=float, default=None,
                        help='Filter signals with the classifier at this confidence')
    parser.add_argument('--seed', type=int, default=None,
                        help='Seed for classifier weight initialisation')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose output')
    parser.add_argument('--output', '-o', type=str,
                        help='Output file path for results (JSON)')

    args = parser.parse_args()

    log = get_backtester_logger(log_level='DEBUG' if args.verbose else None)

    series = load_series(load_ticks(args.csv, args.symbol))
    log.info(f"Loaded {len(series)} ticks from {args.csv}")

    classifier = None
    if args.threshold is not None:
        classifier = SignalClassifier(confidence_threshold=args.threshold, seed=args.seed)

    strategy = BounceStrategy(
        detector=BounceDetector(),
        classifier=classifier,
        symbol=args.symbol,
        quantity=args.quantity,
        target_percent=args.target,
        stop_loss_percent=args.stop_loss,
    )
    runner = BacktestRunner(initial_capital=args.capital)
    summary = runner.run(strategy, series)

    report = summary.to_dict()
    report.pop('equityCurve')
    print(json.dumps(report, indent=2))

    if args.output:
        with open(args.output, 'w') as f:
            json.dump(runner.export_results(), f, indent=2)
        log.info(f"Results written to {args.output}")


if __name__ == "__main__":
    main()
