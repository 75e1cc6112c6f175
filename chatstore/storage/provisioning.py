"""Create and drop the chats table.

The data-access layer never manages its table; these helpers exist for
local development and integration tests against LocalStack or DynamoDB
Local.  Run as a module::

    python -m chatstore.storage.provisioning create
    python -m chatstore.storage.provisioning delete
"""

from __future__ import annotations

import argparse
from typing import Any, Optional

from botocore.exceptions import ClientError
from loguru import logger

from ..config.dynamodb_config import DynamoDBConfig, get_dynamodb_config
from ..dal.keys import INDEX_PARTITION_FIELD, INDEX_SORT_FIELD, PARTITION_FIELD, SORT_FIELD
from ..utils.logger import setup_logging
from .client import get_ddb_client

MAX_WAIT_SECONDS = 60
_WAITER_DELAY = 2


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def _waiter_config() -> dict[str, int]:
    return {"Delay": _WAITER_DELAY, "MaxAttempts": MAX_WAIT_SECONDS // _WAITER_DELAY}


def chats_table_params(config: Optional[DynamoDBConfig] = None) -> dict[str, Any]:
    """Return ``CreateTable`` parameters for the chats table.

    All four key attributes are strings.  The secondary index projects
    every attribute so listing a user's chats needs no extra reads, and
    the table uses on-demand capacity.
    """
    config = config or get_dynamodb_config()
    return {
        "TableName": config.table_name,
        "AttributeDefinitions": [
            {"AttributeName": PARTITION_FIELD, "AttributeType": "S"},
            {"AttributeName": SORT_FIELD, "AttributeType": "S"},
            {"AttributeName": INDEX_PARTITION_FIELD, "AttributeType": "S"},
            {"AttributeName": INDEX_SORT_FIELD, "AttributeType": "S"},
        ],
        "KeySchema": [
            {"AttributeName": PARTITION_FIELD, "KeyType": "HASH"},
            {"AttributeName": SORT_FIELD, "KeyType": "RANGE"},
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": config.index_name,
                "KeySchema": [
                    {"AttributeName": INDEX_PARTITION_FIELD, "KeyType": "HASH"},
                    {"AttributeName": INDEX_SORT_FIELD, "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
        "BillingMode": "PAY_PER_REQUEST",
    }


def delete_table(client: Any, table_name: str) -> bool:
    """Drop ``table_name`` and wait until it is gone.

    Returns ``False`` when the table did not exist.
    """
    try:
        client.delete_table(TableName=table_name)
    except ClientError as exc:
        if _error_code(exc) == "ResourceNotFoundException":
            return False
        logger.error("Error deleting table {}: {}", table_name, exc)
        raise
    logger.info("Waiting for table '{}' to be deleted...", table_name)
    client.get_waiter("table_not_exists").wait(TableName=table_name, WaiterConfig=_waiter_config())
    return True


def create_table(client: Any, params: dict[str, Any]) -> None:
    """Create a table from scratch, dropping any existing table of that name first."""
    table_name = params["TableName"]
    delete_table(client, table_name)
    try:
        client.create_table(**params)
    except ClientError as exc:
        if _error_code(exc) != "ResourceInUseException":
            logger.error("Error creating table {}: {}", table_name, exc)
            raise
        logger.warning("Table {} is already being created", table_name)
    client.get_waiter("table_exists").wait(TableName=table_name, WaiterConfig=_waiter_config())
    logger.info("Table '{}' is active", table_name)


def create_chats_table(client: Any = None, config: Optional[DynamoDBConfig] = None) -> None:
    create_table(client or get_ddb_client(), chats_table_params(config))


def delete_chats_table(client: Any = None, config: Optional[DynamoDBConfig] = None) -> bool:
    config = config or get_dynamodb_config()
    return delete_table(client or get_ddb_client(), config.table_name)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Manage the chats DynamoDB table.")
    parser.add_argument("action", choices=["create", "delete"])
    args = parser.parse_args(argv)

    setup_logging()
    if args.action == "create":
        create_chats_table()
    else:
        delete_chats_table()


if __name__ == "__main__":
    main()
