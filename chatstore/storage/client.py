"""DynamoDB client singletons and storage backend selection.

The boto3 service resource (used by the data-access layer) and the
low-level client (used to provision tables) are each built lazily on
first use and reused for the lifetime of the process; neither is ever
explicitly closed.  Region and
endpoint come from :class:`~chatstore.config.dynamodb_config.DynamoDBConfig`,
so pointing ``LOCALSTACK_ENDPOINT`` at LocalStack or DynamoDB Local is
enough to run against a local table.

Read more on:
https://boto3.amazonaws.com/v1/documentation/api/latest/guide/resources.html
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import boto3
from loguru import logger

from ..config.app_config import AppConfig, get_app_config
from ..config.dynamodb_config import DynamoDBConfig, get_dynamodb_config
from ..dal.keys import INDEX_PARTITION_FIELD, INDEX_SORT_FIELD
from .base import ChatsTable
from .dynamodb import DynamoDBChatsTable
from .memory import InMemoryChatsTable


def client_kwargs(config: DynamoDBConfig) -> dict[str, Any]:
    """Return keyword arguments for ``boto3.client``/``boto3.resource``."""
    kwargs: dict[str, Any] = {"region_name": config.region}
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    return kwargs


@lru_cache()
def get_ddb_client() -> Any:
    """Return the process-wide boto3 DynamoDB client."""
    config = get_dynamodb_config()
    logger.info(
        "Creating DynamoDB client for region {} ({})",
        config.region,
        config.endpoint_url or "AWS",
    )
    return boto3.client("dynamodb", **client_kwargs(config))


@lru_cache()
def get_ddb_resource() -> Any:
    """Return the process-wide boto3 DynamoDB service resource."""
    config = get_dynamodb_config()
    logger.info(
        "Creating DynamoDB resource for region {} ({})",
        config.region,
        config.endpoint_url or "AWS",
    )
    return boto3.resource("dynamodb", **client_kwargs(config))


def build_chats_table(
    app_config: AppConfig | None = None,
    dynamodb_config: DynamoDBConfig | None = None,
) -> ChatsTable:
    """Construct the chats table for the configured storage backend."""
    app_config = app_config or get_app_config()
    dynamodb_config = dynamodb_config or get_dynamodb_config()
    indexes = {dynamodb_config.index_name: (INDEX_PARTITION_FIELD, INDEX_SORT_FIELD)}

    if app_config.storage_backend == "in_memory":
        logger.warning("Using the in-memory chats table; data is lost on restart")
        return InMemoryChatsTable(indexes=indexes)
    return DynamoDBChatsTable(
        resource=get_ddb_resource(),
        table_name=dynamodb_config.table_name,
        indexes=indexes,
    )


@lru_cache()
def get_chats_table() -> ChatsTable:
    """Return the shared chats table handle."""
    return build_chats_table()
