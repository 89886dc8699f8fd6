#!/usr/bin/env python3
"""
CLI Statistics Pipeline Runner
==============================
Command-line entry point for a statistics instance:

1. import: loads OHLC bars from a CSV file into the instance database
2. run: runs all statistics passes (Ctrl+C cancels after the current bar)
3. export: writes the labeled patterns to CSV files
4. status: prints row counts and watermarks

Usage:
    python -m cli.run_pipeline import --config configs/eurusd.yaml --csv eurusd_1m.csv
    python -m cli.run_pipeline run --config configs/eurusd.yaml
    python -m cli.run_pipeline export --config configs/eurusd.yaml --training-factor 0.8 --seed 42
"""

import argparse
import json
import signal
import sys
from typing import Optional

import pandas as pd
from loguru import logger

from pivotlab.config.settings import PipelineSettings, get_settings
from pivotlab.config.statistics import StatisticsConfig
from pivotlab.data.store import SQLiteBarStore
from pivotlab.pipeline.orchestrator import StatisticsPipeline
from pivotlab.statistics.export import PatternExporter
from pivotlab.utils.logging import setup_logging


def read_bars_csv(path: str) -> pd.DataFrame:
    """
    Read bars from CSV.

    The time column may hold epoch milliseconds or any date string pandas
    understands; other columns are matched case-insensitively.
    """
    df = pd.read_csv(path)
    df.columns = [c.strip().lower() for c in df.columns]
    if "time" not in df.columns:
        for alias in ("timestamp", "date", "datetime"):
            if alias in df.columns:
                df = df.rename(columns={alias: "time"})
                break
    if not pd.api.types.is_numeric_dtype(df["time"]):
        epoch = pd.Timestamp("1970-01-01", tz="UTC")
        df["time"] = (pd.to_datetime(df["time"], utc=True) - epoch) // pd.Timedelta(milliseconds=1)
    return df


def open_store(config: StatisticsConfig, settings: PipelineSettings, db_path: Optional[str]) -> SQLiteBarStore:
    return SQLiteBarStore(db_path or settings.db_path, config.average_set())


def cmd_import(args, config: StatisticsConfig, settings: PipelineSettings) -> int:
    store = open_store(config, settings, args.db)
    frame = read_bars_csv(args.csv)
    count = store.import_bars(frame)
    print(f"✅ Imported {count} bars into {store.db_path}")
    return 0


def cmd_run(args, config: StatisticsConfig, settings: PipelineSettings) -> int:
    store = open_store(config, settings, args.db)
    pipeline = StatisticsPipeline(config, settings=settings, store=store)

    def on_interrupt(signum, frame):
        logger.warning("Cancellation requested")
        pipeline.cancel()

    previous_handler = signal.signal(signal.SIGINT, on_interrupt)
    try:
        result = pipeline.run()
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    print("\n" + "=" * 70)
    print(result.summary())
    print("=" * 70)
    if result.cancelled:
        return 130
    return 0 if result.is_successful else 1


def cmd_export(args, config: StatisticsConfig, settings: PipelineSettings) -> int:
    store = open_store(config, settings, args.db)
    exporter = PatternExporter(store, args.output or settings.export_dir)
    result = exporter.export(
        config.name,
        training_factor=args.training_factor,
        calculated=not args.edited,
        seed=args.seed
    )
    print(f"✅ {result.total} patterns ({result.train} train, {result.test} test)")
    print(f"   {result.all_path}")
    return 0


def cmd_status(args, config: StatisticsConfig, settings: PipelineSettings) -> int:
    store = open_store(config, settings, args.db)
    print(json.dumps(store.summary(), indent=2))
    return 0


def main(argv=None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Statistics pipeline: pivots, labels, candles and training patterns",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "--config", "-c",
        help="Statistics YAML configuration (defaults when omitted)"
    )
    parser.add_argument(
        "--db",
        help="SQLite database path (overrides PIVOTLAB_DB_PATH)"
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (overrides PIVOTLAB_LOG_LEVEL)"
    )
    parser.add_argument(
        "--no-log-files",
        action="store_true",
        help="Log to stderr only"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Import OHLC bars from CSV")
    import_parser.add_argument("--csv", required=True, help="CSV file with time, open, high, low, close")

    subparsers.add_parser("run", help="Run all statistics passes")

    export_parser = subparsers.add_parser("export", help="Export patterns to CSV")
    export_parser.add_argument("--output", "-o", help="Output directory (overrides PIVOTLAB_EXPORT_DIR)")
    export_parser.add_argument("--training-factor", type=float, default=0.8, help="Share of training patterns")
    export_parser.add_argument("--seed", type=int, default=None, help="Random seed of the train/test split")
    export_parser.add_argument("--edited", action="store_true", help="Use edited labels instead of calculated")

    subparsers.add_parser("status", help="Show row counts and watermarks")

    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(log_level=args.log_level, enable_file=not args.no_log_files)

    config = StatisticsConfig.from_yaml(args.config) if args.config else StatisticsConfig()

    commands = {
        "import": cmd_import,
        "run": cmd_run,
        "export": cmd_export,
        "status": cmd_status,
    }
    return commands[args.command](args, config, settings)


if __name__ == "__main__":
    sys.exit(main())
