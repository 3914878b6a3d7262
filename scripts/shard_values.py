#!/usr/bin/env python3
"""
Split a file of values (one per line) into N text shards.

Creates OUTPUT/shard=0000/values.txt, OUTPUT/shard=0001/values.txt, ...
ready for run_stream_stats.py.

Usage:
    python scripts/shard_values.py values.txt data/values --shards 8
"""
import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from shared.partitioning import write_shards

logger = logging.getLogger(__name__)


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Split a value file into text shards")
    parser.add_argument("input", help="File with one value per line")
    parser.add_argument("output", help="Output directory for shards")
    parser.add_argument("--shards", type=int, default=4, help="Number of shards")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        with open(args.input, "r", encoding="utf-8") as f:
            values = [line.strip() for line in f if line.strip()]
        paths = write_shards(values, args.output, args.shards)
    except (OSError, ValueError) as e:
        logger.error(f"Sharding failed: {e}")
        return 1

    for path in paths:
        print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
