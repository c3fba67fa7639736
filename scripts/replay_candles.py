#!/usr/bin/env python3
"""
Candle replay
=============

Feeds a CSV of 1-minute candles through the signal engine and prints every
evaluation. The CSV needs a header with time, open, high, low, close and
(optionally) volume columns; time is a Unix timestamp in seconds.

Usage:
    # Evaluate BTC on 5m after every replayed candle
    python scripts/replay_candles.py data/btc_1m.csv --asset BTC --timeframe 5m

    # Several timeframes, one tick every 5 candles, directional signals only
    python scripts/replay_candles.py data/btc_1m.csv -a BTC -t 5m,15m --every 5 --directional

    # Timeframes and overrides from a subscriptions file
    python scripts/replay_candles.py data/btc_1m.csv --subscriptions subscriptions.yaml
"""

import argparse
import asyncio
import csv
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from signal_app.config import get_settings
from signal_app.feed import CandleFeed
from signal_app.scheduler import TickScheduler
from signal_app.subscriptions import load_subscriptions
from signal_core.engine import Evaluation, SignalEngine
from signal_core.models.candle import Candle

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def read_candles(path: Path) -> list[Candle]:
    """Read candles from a CSV file, skipping malformed rows."""
    candles = []
    with open(path, newline="") as f:
        for line_no, row in enumerate(csv.DictReader(f), start=2):
            try:
                candles.append(
                    Candle(
                        time=float(row["time"]),
                        open=float(row["open"]),
                        high=float(row["high"]),
                        low=float(row["low"]),
                        close=float(row["close"]),
                        volume=float(row.get("volume") or 0.0),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping line {line_no} of {path}: {e}")
    return candles


def format_evaluation(evaluation: Evaluation) -> str:
    signal = evaluation.signal
    line = (
        f"{signal.generated_at:%Y-%m-%d %H:%M} {signal.asset:<8} {signal.timeframe:<4} "
        f"{signal.direction.value:<8} conf={signal.confidence:5.1f} "
        f"ADX={signal.adx_value:5.1f} risk={signal.risk_level.value:<6} "
        f"action={signal.recommended_action.value}"
    )
    if signal.is_directional:
        targets = signal.targets
        line += (
            f" scalp={targets.scalp.price:.2f} mid={targets.mid.price:.2f} "
            f"big={targets.big.price:.2f}"
        )
    if signal.warning:
        line += f" | {signal.warning}"
    return line


async def main():
    parser = argparse.ArgumentParser(
        description="Replay 1m candles through the signal engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("csv", type=Path, help="CSV file of 1m candles")
    parser.add_argument("--asset", "-a", type=str, default="ASSET", help="Asset symbol (default: ASSET)")
    parser.add_argument(
        "--timeframe", "-t", type=str, default=settings.default_timeframe,
        help=f"Timeframes, comma separated (default: {settings.default_timeframe})",
    )
    parser.add_argument("--subscriptions", type=Path, help="subscriptions.yaml to use instead of --timeframe")
    parser.add_argument("--every", type=int, default=1, help="Tick after every N candles (default: 1)")
    parser.add_argument("--directional", action="store_true", help="Only print UP/DOWN signals")

    args = parser.parse_args()

    candles = read_candles(args.csv)
    if not candles:
        print(f"No candles in {args.csv}")
        return

    feed = CandleFeed(max_size=settings.lookback)
    scheduler = TickScheduler(
        SignalEngine(),
        feed,
        tick_interval=settings.tick_interval,
        max_workers=settings.max_workers,
        base_config=settings.engine_config(),
    )

    if args.subscriptions:
        for entry in load_subscriptions(args.subscriptions, scheduler.base_config).get_enabled():
            scheduler.subscribe(entry.asset, entry.timeframe, **entry.overrides)
        assets = sorted({asset for asset, _ in scheduler.subscriptions})
    else:
        for timeframe in args.timeframe.split(","):
            scheduler.subscribe(args.asset, timeframe.strip())
        assets = [args.asset]

    counts = {"evaluations": 0, "directional": 0}

    async def on_evaluation(evaluation: Evaluation) -> None:
        counts["evaluations"] += 1
        if evaluation.signal.is_directional:
            counts["directional"] += 1
        elif args.directional:
            return
        print(format_evaluation(evaluation))

    scheduler.on_signal(on_evaluation)

    print(f"Replaying {len(candles):,} candles for {', '.join(assets)}")
    try:
        for i, candle in enumerate(candles, start=1):
            for asset in assets:
                feed.ingest(asset, candle)
            if i % args.every == 0 or i == len(candles):
                # Evaluate as of the end of the latest candle
                now = datetime.fromtimestamp(candle.time + 60, tz=timezone.utc)
                await scheduler.tick(now=now)
    finally:
        scheduler.close()

    print()
    print(f"Evaluations: {counts['evaluations']:,}  directional: {counts['directional']:,}")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nReplay cancelled.")
        sys.exit(0)
