#!/usr/bin/env python3
"""
Compute streaming statistics over a directory of partitions.

Each partition file is reduced by its own worker thread and the partial
aggregates are merged into one result.

Usage:
    # Text partitions (one value per line) under data/values
    python scripts/run_stream_stats.py data/values

    # Parquet partitions, reading the 'latency_ms' column
    python scripts/run_stream_stats.py data/latency --format parquet --column latency_ms --pattern "*.parquet"

    # Skip unparseable values instead of failing the partition
    python scripts/run_stream_stats.py data/values --skip-bad-values

    # Use custom config, print JSON
    python scripts/run_stream_stats.py data/values --config config/production.yaml --json

    # Write an example config
    python scripts/run_stream_stats.py --write-example-config config/config.yaml
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import StreamStatsConfig, load_config, save_example_config
from shared.partitioning import discover_partitions
from streamstats.aggregates import PercentileEstimator
from streamstats.core.errors import EmptyAggregateError
from streamstats.parallel.reducer import ReduceResult
from streamstats.stream.sources import make_source

logger = logging.getLogger(__name__)


def apply_overrides(config: StreamStatsConfig, args: argparse.Namespace) -> StreamStatsConfig:
    """Layer command-line options over the loaded config."""
    data = config.model_dump()
    if args.format:
        data["source"]["format"] = args.format
    if args.column:
        data["source"]["column"] = args.column
    if args.pattern:
        data["source"]["pattern"] = args.pattern
    if args.skip_bad_values:
        data["source"]["parse_policy"] = "skip"
    if args.workers:
        data["reducer"]["max_workers"] = args.workers
    if args.aggregates:
        data["reducer"]["aggregates"] = args.aggregates
    if args.percentiles:
        data["percentiles"]["percentiles"] = args.percentiles
    return StreamStatsConfig(**data)


def format_results(result: ReduceResult, percentiles: List[float]) -> Dict[str, Any]:
    """
    Turn merged aggregates into a JSON-friendly report.

    Percentile estimators are reported at every configured percentile;
    empty aggregates are reported as None.
    """
    report: Dict[str, Any] = {}
    for name, aggregate in result.aggregates.items():
        try:
            if isinstance(aggregate, PercentileEstimator):
                values = aggregate.query_many(percentiles)
                report[name] = {f"p{p:g}": v for p, v in zip(percentiles, values)}
            else:
                report[name] = aggregate.compute()
        except EmptyAggregateError:
            report[name] = None
    return report


def run_stream_stats(
    config: StreamStatsConfig,
    input_path: str,
    show_progress: bool = True,
) -> Dict[str, Any]:
    """
    Discover partitions, reduce them and build the report.

    Returns:
        Dict with "statistics" and the reducer "summary".
    """
    paths = discover_partitions(
        input_path,
        pattern=config.source.pattern,
        recursive=config.source.recursive,
    )
    if not paths:
        logger.warning(f"No partitions matching {config.source.pattern} under {input_path}")

    root = input_path if Path(input_path).is_dir() else None
    options = config.source_options()
    sources = [make_source(p, root=root, **options) for p in paths]

    reducer = config.to_reducer(show_progress=show_progress)
    result = reducer.run(sources)

    return {
        "statistics": format_results(result, config.percentiles.percentiles),
        "summary": result.summary(),
    }


def print_report(report: Dict[str, Any]) -> None:
    stats = report["statistics"]
    summary = report["summary"]

    print("=" * 70)
    print(f"Partitions: {summary['completed']}/{summary['total_partitions']} completed, "
          f"{summary['failed']} failed, {summary['values_processed']:,} values")
    print("=" * 70)
    for name, value in stats.items():
        if isinstance(value, dict):
            print(f"{name}:")
            for label, v in value.items():
                print(f"  {label:>6}: {v}")
        else:
            print(f"{name}: {value}")
    for error in summary["errors"]:
        print(f"FAILED {error['partition_id']}: {error['kind']}: {error['message']}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Streaming statistics - parallel map-reduce over partition files"
    )
    parser.add_argument("input", nargs="?", help="Partition directory or single file")
    parser.add_argument("--config", type=str, default=None, help="Path to config file")
    parser.add_argument("--format", choices=["text", "parquet", "csv", "ndjson"], help="Partition file format")
    parser.add_argument("--column", type=str, help="Column to read for columnar formats")
    parser.add_argument("--pattern", type=str, help="Glob pattern for partition files")
    parser.add_argument("--skip-bad-values", action="store_true", help="Skip unparseable values instead of failing")
    parser.add_argument("--workers", type=int, help="Number of worker threads")
    parser.add_argument("--aggregates", nargs="+", help="Aggregates to compute (registry names)")
    parser.add_argument("--percentiles", nargs="+", type=float, help="Percentiles to report")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument("--write-example-config", metavar="PATH", help="Write an example config and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args(argv)

    if args.write_example_config:
        path = save_example_config(args.write_example_config)
        print(f"Example config saved to {path}")
        return 0

    if not args.input:
        parser.error("input is required")

    # Load config
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        if args.config:
            print(f"Error: {e}")
            return 1
        config = StreamStatsConfig()

    try:
        config = apply_overrides(config, args)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    # Configure logging
    log_level = logging.DEBUG if args.verbose else getattr(logging, config.log_level)
    logging.basicConfig(
        level=log_level,
        format=config.log_format,
    )

    try:
        report = run_stream_stats(config, args.input, show_progress=not args.no_progress)
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1

    if args.json:
        print(json.dumps(report, indent=2, default=str))
    else:
        print_report(report)

    return 0 if report["summary"]["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
