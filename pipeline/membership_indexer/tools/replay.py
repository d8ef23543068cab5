"""
Replay CLI tool for the membership indexer.

This tool feeds a saved SQS event (or a list of DynamoDB stream records)
through the reconciler, either against a real index table or as a dry run
that only prints the planned writes.

Usage:
    membership-indexer-replay EVENT_FILE [--table T] [--dry-run] [options]

Invariants:
    - Replay uses the same reconciler as the Lambda handler
    - Replaying the same file twice leaves the index unchanged
    - Dry runs never touch DynamoDB

How to change safely:
    - Keep accepted file formats a superset of what the queue delivers
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from ..config import DynamoDBConfig, IndexConfig, IndexerConfig
from ..index import DeleteIndex, DynamoDBIndexStore, InMemoryIndexStore
from ..main import handle_event
from ..reconcile import ReconcileError

logger = logging.getLogger(__name__)


def load_event(path: Path) -> dict[str, Any]:
    """Load an SQS event from a file.

    Accepts a Lambda SQS event ({"Records": [...]}) or a bare JSON list of
    stream records, which is wrapped as SQS messages.

    Raises:
        ValueError: If the file is not one of the accepted shapes
    """
    data = json.loads(path.read_text(encoding="utf-8"))

    if isinstance(data, list):
        return {
            "Records": [
                {"messageId": f"replay-{i}", "body": json.dumps(record)}
                for i, record in enumerate(data)
            ]
        }
    if isinstance(data, dict) and "Records" in data:
        return data

    raise ValueError(f"{path}: expected an SQS event or a list of stream records")


def build_config(args: argparse.Namespace) -> IndexerConfig:
    """Environment configuration with command-line overrides applied."""
    config = IndexerConfig(
        index=IndexConfig.from_env(),
        dynamodb=DynamoDBConfig.from_env(),
    )
    if args.table:
        config.index = replace(config.index, table_name=args.table)
    if args.region:
        config.dynamodb = replace(config.dynamodb, region=args.region)
    if args.endpoint_url:
        config.dynamodb = replace(config.dynamodb, endpoint_url=args.endpoint_url)
    config.validate()
    return config


async def replay(event: dict[str, Any], config: IndexerConfig, dry_run: bool) -> dict[str, int]:
    """Run an event through the reconciler."""
    if dry_run:
        store = InMemoryIndexStore()
        summary = await handle_event(event, config, store)
        for call in store.calls:
            for op in call.ops:
                verb = "delete" if isinstance(op, DeleteIndex) else "put"
                print(f"{verb:6} {call.table_name} {op.key}")
        return summary

    async with DynamoDBIndexStore(config.dynamodb) as store:
        return await handle_event(event, config, store)


def main() -> None:
    """CLI entry point for replay tool."""
    parser = argparse.ArgumentParser(
        description="Replay DynamoDB stream records into the membership index"
    )
    parser.add_argument("event_file", type=Path, help="SQS event or stream record list (JSON)")
    parser.add_argument("--table", help="Index table name (default: $TABLE_NAME)")
    parser.add_argument("--region", help="AWS region")
    parser.add_argument("--endpoint-url", help="DynamoDB endpoint URL (for LocalStack)")
    parser.add_argument("--dry-run", action="store_true", help="Print planned writes only")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = build_config(args)
        event = load_event(args.event_file)
    except (OSError, ValueError) as e:
        print(f"Replay failed: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        summary = asyncio.run(replay(event, config, args.dry_run))
    except ReconcileError as e:
        print(f"Replay failed: {e}", file=sys.stderr)
        sys.exit(1)

    print("Replay completed successfully")
    print(f"  Table: {config.index.table_name}")
    print(f"  Records: {summary['received']}")
    print(f"  Applied: {summary['applied']}")
    print(f"  Skipped: {summary['skipped']}")
    print(f"  Operations: {summary['operations']}")
    sys.exit(0)


if __name__ == "__main__":
    main()
