"""
DynamoDB membership index store.

This module writes index operations with BatchWriteItem. It uses the AWS SDK
(aiobotocore) for async operations.

Invariants:
    - All operations are marshalled before the first network call
    - Requests are sent in order, at most max_batch_items per call
    - UnprocessedItems are a failure, never dropped and never retried here
    - No internal retry: failures surface for redelivery of the whole batch

How to change safely:
    - Test with LocalStack before deploying to AWS
    - Keep puts and deletes key-only so redelivery stays idempotent
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from ..config import DynamoDBConfig
from .base import IndexWriteError, WriteOp, marshal_op

logger = logging.getLogger(__name__)


class DynamoDBIndexStore:
    """DynamoDB implementation of the IndexStore protocol.

    Attributes:
        config: DynamoDB configuration
        client: DynamoDB client (created on connect, or injected)

    Example:
        >>> config = DynamoDBConfig(region="us-east-1")
        >>> async with DynamoDBIndexStore(config) as store:
        ...     await store.batch_write("poc-organizations", ops)
    """

    def __init__(self, config: DynamoDBConfig, client: Any = None) -> None:
        """Initialize the store.

        Args:
            config: DynamoDB configuration
            client: Optional pre-built client; connect() is then a no-op
        """
        self.config = config
        self._client = client
        self._client_ctx = None

    @property
    def is_connected(self) -> bool:
        """Whether a client is available."""
        return self._client is not None

    async def connect(self) -> None:
        """Create the DynamoDB client."""
        if self._client is not None:
            return

        session = get_session()

        client_config = {
            "region_name": self.config.region,
        }
        if self.config.endpoint_url:
            client_config["endpoint_url"] = self.config.endpoint_url

        self._client_ctx = session.create_client("dynamodb", **client_config)
        self._client = await self._client_ctx.__aenter__()

        logger.info(
            "Connected to DynamoDB",
            extra={
                "region": self.config.region,
                "endpoint": self.config.endpoint_url or "AWS",
            },
        )

    async def close(self) -> None:
        """Close the DynamoDB client, if this store created it."""
        if self._client_ctx is not None:
            try:
                await self._client_ctx.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"Error closing DynamoDB client: {e}")
            self._client_ctx = None
            self._client = None

    async def __aenter__(self) -> DynamoDBIndexStore:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def batch_write(self, table_name: str, ops: Sequence[WriteOp]) -> None:
        """Write operations to the index table.

        Args:
            table_name: Destination table
            ops: Operations to apply, in order

        Raises:
            MarshalError: If an operation cannot be encoded (nothing is sent)
            IndexWriteError: If not connected, the call fails, or any
                request comes back unprocessed
        """
        if self._client is None:
            raise IndexWriteError("Not connected to DynamoDB", table_name, len(ops))

        requests = [marshal_op(op) for op in ops]
        size = self.config.max_batch_items

        for start in range(0, len(requests), size):
            chunk = requests[start:start + size]

            try:
                response = await self._client.batch_write_item(
                    RequestItems={table_name: chunk},
                )
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "")
                raise IndexWriteError(
                    f"BatchWriteItem on '{table_name}' failed ({error_code}): {e}",
                    table_name,
                    len(ops),
                ) from e
            except BotoCoreError as e:
                raise IndexWriteError(
                    f"BatchWriteItem on '{table_name}' failed: {e}",
                    table_name,
                    len(ops),
                ) from e

            unprocessed = (response.get("UnprocessedItems") or {}).get(table_name) or []
            if unprocessed:
                raise IndexWriteError(
                    f"BatchWriteItem on '{table_name}' left {len(unprocessed)} "
                    f"of {len(chunk)} requests unprocessed",
                    table_name,
                    len(ops),
                )

            logger.debug(
                "Index batch written",
                extra={
                    "table": table_name,
                    "offset": start,
                    "requestCount": len(chunk),
                },
            )
