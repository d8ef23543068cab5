"""
Unit tests for environment configuration.
"""

import pytest

from pipeline.membership_indexer.config import (
    DEFAULT_TABLE_NAME,
    DynamoDBConfig,
    IndexConfig,
    IndexerConfig,
    ObservabilityConfig,
)

ENV_VARS = [
    "TABLE_NAME",
    "MEMBERSHIP_ATTRIBUTE",
    "MEMBERSHIP_TARGET_TYPE",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "DYNAMODB_ENDPOINT_URL",
    "DYNAMODB_MAX_BATCH_ITEMS",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from an empty configuration environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestIndexerConfig:
    """Tests for IndexerConfig and its sections."""

    def test_defaults(self):
        config = IndexerConfig.from_env()

        assert config.index.table_name == DEFAULT_TABLE_NAME == "poc-organizations"
        assert config.index.membership_attribute == "organizations"
        assert config.index.target_type == "ORGANIZATION"
        assert config.dynamodb.region == "us-east-1"
        assert config.dynamodb.endpoint_url is None
        assert config.dynamodb.max_batch_items == 25
        assert config.observability.log_format == "json"

    def test_table_name_from_env(self, monkeypatch):
        monkeypatch.setenv("TABLE_NAME", "test-table")
        assert IndexConfig.from_env().table_name == "test-table"

    def test_empty_table_name_uses_default(self, monkeypatch):
        monkeypatch.setenv("TABLE_NAME", "")
        assert IndexConfig.from_env().table_name == DEFAULT_TABLE_NAME

    def test_region_fallback(self, monkeypatch):
        monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
        assert DynamoDBConfig.from_env().region == "eu-west-1"

        monkeypatch.setenv("AWS_REGION", "ap-south-1")
        assert DynamoDBConfig.from_env().region == "ap-south-1"

    def test_endpoint_url(self, monkeypatch):
        monkeypatch.setenv("DYNAMODB_ENDPOINT_URL", "http://localhost:4566")
        assert DynamoDBConfig.from_env().endpoint_url == "http://localhost:4566"

    @pytest.mark.parametrize("value", ["0", "26"])
    def test_invalid_batch_size(self, monkeypatch, value):
        monkeypatch.setenv("DYNAMODB_MAX_BATCH_ITEMS", value)
        with pytest.raises(ValueError):
            IndexerConfig.from_env()

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValueError):
            IndexerConfig.from_env()

    def test_empty_membership_attribute(self):
        config = IndexerConfig(index=IndexConfig(membership_attribute=""))
        with pytest.raises(ValueError):
            config.validate()

    def test_observability_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOG_FORMAT", "text")

        config = ObservabilityConfig.from_env()
        assert config.log_level == "DEBUG"
        assert config.log_format == "text"
