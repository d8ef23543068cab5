"""
Configuration management for the membership indexer.

All configuration is done via environment variables, as set on the Lambda
function. This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Defaults are applied here, at the boundary; core classes receive
      explicit values and never read the environment themselves
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep TABLE_NAME's default aligned with the deployed index table
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "poc-organizations"

# BatchWriteItem rejects more than 25 requests per call
MAX_BATCH_WRITE_ITEMS = 25


@dataclass(frozen=True)
class IndexConfig:
    """Destination index configuration.

    Attributes:
        table_name: DynamoDB table holding the membership index
        membership_attribute: List attribute on the user record to mirror
        target_type: Type prefix of the index partition key
    """

    table_name: str = DEFAULT_TABLE_NAME
    membership_attribute: str = "organizations"
    target_type: str = "ORGANIZATION"

    @classmethod
    def from_env(cls) -> IndexConfig:
        """Load configuration from environment variables."""
        return cls(
            # An empty TABLE_NAME falls back to the default as well
            table_name=os.getenv("TABLE_NAME") or DEFAULT_TABLE_NAME,
            membership_attribute=os.getenv("MEMBERSHIP_ATTRIBUTE", "organizations"),
            target_type=os.getenv("MEMBERSHIP_TARGET_TYPE", "ORGANIZATION"),
        )


@dataclass(frozen=True)
class DynamoDBConfig:
    """DynamoDB client configuration.

    Attributes:
        region: AWS region
        endpoint_url: Custom endpoint URL (for LocalStack testing)
        max_batch_items: Maximum write requests per BatchWriteItem call
    """

    region: str = "us-east-1"
    endpoint_url: str | None = None
    max_batch_items: int = MAX_BATCH_WRITE_ITEMS

    @classmethod
    def from_env(cls) -> DynamoDBConfig:
        """Load configuration from environment variables."""
        return cls(
            region=os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")),
            endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL"),
            max_batch_items=int(
                os.getenv("DYNAMODB_MAX_BATCH_ITEMS", str(MAX_BATCH_WRITE_ITEMS))
            ),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class IndexerConfig:
    """Complete indexer configuration.

    Attributes:
        index: Destination index configuration
        dynamodb: DynamoDB client configuration
        observability: Logging configuration
    """

    index: IndexConfig = field(default_factory=IndexConfig)
    dynamodb: DynamoDBConfig = field(default_factory=DynamoDBConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> IndexerConfig:
        """Load complete configuration from environment variables.

        Returns:
            IndexerConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            index=IndexConfig.from_env(),
            dynamodb=DynamoDBConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.index.membership_attribute:
            raise ValueError("MEMBERSHIP_ATTRIBUTE must not be empty")
        if not self.index.target_type:
            raise ValueError("MEMBERSHIP_TARGET_TYPE must not be empty")

        if not 1 <= self.dynamodb.max_batch_items <= MAX_BATCH_WRITE_ITEMS:
            raise ValueError(
                f"DYNAMODB_MAX_BATCH_ITEMS must be between 1 and {MAX_BATCH_WRITE_ITEMS}, "
                f"got {self.dynamodb.max_batch_items}"
            )

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Indexer configuration loaded",
            extra={
                "table_name": self.index.table_name,
                "membership_attribute": self.index.membership_attribute,
                "target_type": self.index.target_type,
                "region": self.dynamodb.region,
                "endpoint": self.dynamodb.endpoint_url or "AWS",
                "max_batch_items": self.dynamodb.max_batch_items,
                "log_level": self.observability.log_level,
            },
        )
