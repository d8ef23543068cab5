"""
Membership Indexer - Lambda entry point.

The function is subscribed to the user-stream SQS FIFO queue. Each invocation
receives one batch of SQS messages, each carrying one DynamoDB stream record
for the users table, and applies the membership index writes for them.

Handler:
    pipeline.membership_indexer.main.lambda_handler

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - One invocation processes one batch, strictly in order
    - Success is returned only if every notification in the batch was applied
    - Any failure raises, so the whole batch is redelivered (no partial acks)

How to change safely:
    - Keep the handler thin; logic belongs in the reconciler
    - Never catch BatchAbortedError here; redelivery depends on it propagating
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import json_log_formatter

from .config import IndexerConfig
from .index import DynamoDBIndexStore, IndexStore
from .reconcile import MembershipReconciler

logger = logging.getLogger(__name__)

_logging_configured = False


def setup_logging(config: IndexerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Indexer configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)


async def handle_event(
    event: dict[str, Any],
    config: IndexerConfig,
    store: IndexStore,
) -> dict[str, int]:
    """Process one SQS event against an index store.

    Args:
        event: Lambda SQS event
        config: Indexer configuration
        store: Index store to write to

    Returns:
        Batch summary (received, applied, skipped, operations)

    Raises:
        BatchAbortedError: If any notification in the batch fails
    """
    reconciler = MembershipReconciler(
        store=store,
        table_name=config.index.table_name,
        target_type=config.index.target_type,
        membership_attribute=config.index.membership_attribute,
    )
    result = await reconciler.handle_event(event)

    logger.info("Processed sqs event", extra=result.to_dict())
    return result.to_dict()


async def _run(event: dict[str, Any], config: IndexerConfig) -> dict[str, int]:
    async with DynamoDBIndexStore(config.dynamodb) as store:
        return await handle_event(event, config, store)


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, int]:
    """AWS Lambda entry point."""
    global _logging_configured

    config = IndexerConfig.from_env()
    if not _logging_configured:
        setup_logging(config)
        config.log_config()
        _logging_configured = True

    return asyncio.run(_run(event, config))
