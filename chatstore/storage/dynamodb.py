"""DynamoDB implementation of the chats table.

Built on the boto3 resource layer: the service resource converts plain
Python values to and from DynamoDB's typed attribute maps, and
``boto3.dynamodb.conditions`` builds the key, filter and condition
expressions.  Each blocking call runs in a worker thread via
``asyncio.to_thread`` so the data-access layer stays non-blocking.
Request-level retries, connection pooling and timeouts are left to
botocore.
"""

from __future__ import annotations

import asyncio
from functools import reduce
from typing import Any, Callable, Iterable, Mapping, Optional

from boto3.dynamodb.conditions import Attr, Key as KeyCondition
from botocore.exceptions import ClientError
from loguru import logger

from ..utils.error_handler import ConditionFailedError, UnprocessedItemsError
from .base import ChatsTable, Item, Key

# DynamoDB caps a BatchWriteItem request at 25 operations.
BATCH_WRITE_LIMIT = 25
# Re-sends of items DynamoDB reports back as unprocessed (usually throttling).
MAX_BATCH_RESENDS = 5


def _is_condition_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class DynamoDBChatsTable(ChatsTable):
    """Chats table stored in DynamoDB.

    Parameters
    ----------
    resource:
        A ``boto3.resource("dynamodb")`` service resource.  Shared for the
        process lifetime.
    table_name:
        Name of the provisioned table.
    indexes:
        Secondary index name to ``(partition, sort)`` attribute names.
    resend_delay:
        Base delay in seconds before re-sending unprocessed batch items.
        Doubles on every attempt.
    """

    def __init__(
        self,
        resource: Any,
        table_name: str,
        indexes: Optional[Mapping[str, tuple[str, str]]] = None,
        partition_field: str = "pk",
        sort_field: str = "sk",
        resend_delay: float = 0.05,
    ) -> None:
        self.resource = resource
        self.table_name = table_name
        self.table = resource.Table(table_name)
        self.partition_field = partition_field
        self.sort_field = sort_field
        self.indexes = dict(indexes if indexes is not None else {"gsi1": ("gsi1pk", "gsi1sk")})
        self.resend_delay = resend_delay

    def _key(self, key: Key) -> dict[str, str]:
        return {
            self.partition_field: key[self.partition_field],
            self.sort_field: key[self.sort_field],
        }

    @staticmethod
    async def _call(method: Callable[..., dict[str, Any]], **kwargs: Any) -> dict[str, Any]:
        return await asyncio.to_thread(method, **kwargs)

    async def get_item(self, key: Key) -> Optional[Item]:
        response = await self._call(self.table.get_item, Key=self._key(key), ConsistentRead=True)
        return response.get("Item")

    async def put_item(self, item: Item, *, condition_not_exists: bool = False) -> None:
        kwargs: dict[str, Any] = {"Item": dict(item)}
        if condition_not_exists:
            kwargs["ConditionExpression"] = Attr(self.partition_field).not_exists()
        try:
            await self._call(self.table.put_item, **kwargs)
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise ConditionFailedError(f"Item already exists in {self.table_name}") from exc
            raise

    async def update_item(
        self,
        key: Key,
        set_attributes: Mapping[str, Any],
        remove_attributes: Iterable[str] = (),
        *,
        condition_exists: bool = True,
    ) -> Item:
        remove_attributes = list(remove_attributes)
        if not set_attributes and not remove_attributes:
            raise ValueError("update_item needs at least one attribute to set or remove")

        # boto3 has no builder for update expressions, only for conditions.
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        clauses: list[str] = []
        if set_attributes:
            assignments = []
            for position, (name, value) in enumerate(set_attributes.items()):
                names[f"#s{position}"] = name
                values[f":s{position}"] = value
                assignments.append(f"#s{position} = :s{position}")
            clauses.append("SET " + ", ".join(assignments))
        if remove_attributes:
            removals = []
            for position, name in enumerate(remove_attributes):
                names[f"#r{position}"] = name
                removals.append(f"#r{position}")
            clauses.append("REMOVE " + ", ".join(removals))

        kwargs: dict[str, Any] = {
            "Key": self._key(key),
            "UpdateExpression": " ".join(clauses),
            "ExpressionAttributeNames": names,
            "ReturnValues": "ALL_NEW",
        }
        if values:
            kwargs["ExpressionAttributeValues"] = values
        if condition_exists:
            kwargs["ConditionExpression"] = Attr(self.partition_field).exists()

        try:
            response = await self._call(self.table.update_item, **kwargs)
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise ConditionFailedError(f"Item does not exist in {self.table_name}") from exc
            raise
        return response.get("Attributes", {})

    async def delete_item(self, key: Key) -> None:
        await self._call(self.table.delete_item, Key=self._key(key))

    async def batch_delete(self, keys: Iterable[Key]) -> None:
        """Delete ``keys`` in batches of 25.

        Items DynamoDB hands back as unprocessed are re-sent with an
        exponential delay, at most ``MAX_BATCH_RESENDS`` times per batch;
        after that :class:`UnprocessedItemsError` is raised.
        """
        requests = [{"DeleteRequest": {"Key": self._key(key)}} for key in keys]
        for start in range(0, len(requests), BATCH_WRITE_LIMIT):
            pending = requests[start:start + BATCH_WRITE_LIMIT]
            for attempt in range(MAX_BATCH_RESENDS + 1):
                if attempt:
                    logger.debug(
                        "Re-sending {} unprocessed deletes to {} (attempt {})",
                        len(pending),
                        self.table_name,
                        attempt,
                    )
                    await asyncio.sleep(self.resend_delay * 2 ** (attempt - 1))
                response = await self._call(
                    self.resource.batch_write_item,
                    RequestItems={self.table_name: pending},
                )
                pending = (response.get("UnprocessedItems") or {}).get(self.table_name, [])
                if not pending:
                    break
            else:
                raise UnprocessedItemsError(
                    f"{len(pending)} deletes still unprocessed in {self.table_name} "
                    f"after {MAX_BATCH_RESENDS} re-sends"
                )

    async def query(
        self,
        key_field: str,
        key_value: str,
        *,
        sort_field: Optional[str] = None,
        sort_prefix: Optional[str] = None,
        index_name: Optional[str] = None,
        ascending: bool = True,
    ) -> list[Item]:
        if index_name is not None:
            if index_name not in self.indexes:
                raise ValueError(f"Unknown index {index_name!r}")
            sort_field = sort_field or self.indexes[index_name][1]
        else:
            sort_field = sort_field or self.sort_field

        condition = KeyCondition(key_field).eq(key_value)
        if sort_prefix is not None:
            condition = condition & KeyCondition(sort_field).begins_with(sort_prefix)

        kwargs: dict[str, Any] = {
            "KeyConditionExpression": condition,
            "ScanIndexForward": ascending,
        }
        if index_name is not None:
            kwargs["IndexName"] = index_name
        else:
            # Global secondary indexes do not support strongly consistent reads.
            kwargs["ConsistentRead"] = True

        return await self._paginate(self.table.query, **kwargs)

    async def scan(self, filters: Optional[Mapping[str, Any]] = None) -> list[Item]:
        kwargs: dict[str, Any] = {}
        if filters:
            conditions = [Attr(name).eq(value) for name, value in filters.items()]
            kwargs["FilterExpression"] = reduce(lambda left, right: left & right, conditions)
        return await self._paginate(self.table.scan, **kwargs)

    async def _paginate(self, method: Callable[..., dict[str, Any]], **kwargs: Any) -> list[Item]:
        items: list[Item] = []
        while True:
            response = await self._call(method, **kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key
