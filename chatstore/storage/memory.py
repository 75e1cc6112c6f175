"""In-process implementation of the chats table.

Behaves like the DynamoDB table for everything the data-access layer
relies on: items are keyed by ``(pk, sk)``, partition queries come back
ordered by sort key, secondary indexes are sparse (items lacking the
index key attributes are not indexed) and conditional writes fail with
:class:`ConditionFailedError`.  Used for local development and tests.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping, Optional

from loguru import logger

from ..utils.error_handler import ConditionFailedError
from .base import ChatsTable, Item, Key


class InMemoryChatsTable(ChatsTable):
    """Dictionary-backed chats table.

    ``indexes`` maps a secondary index name to its ``(partition, sort)``
    attribute names.
    """

    def __init__(
        self,
        indexes: Optional[Mapping[str, tuple[str, str]]] = None,
        partition_field: str = "pk",
        sort_field: str = "sk",
    ) -> None:
        self.partition_field = partition_field
        self.sort_field = sort_field
        self.indexes = dict(indexes if indexes is not None else {"gsi1": ("gsi1pk", "gsi1sk")})
        self._items: dict[tuple[str, str], Item] = {}

    def __len__(self) -> int:
        return len(self._items)

    def _key(self, key: Key) -> tuple[str, str]:
        try:
            return key[self.partition_field], key[self.sort_field]
        except KeyError as exc:
            raise ValueError(f"Key is missing attribute {exc.args[0]!r}") from exc

    async def get_item(self, key: Key) -> Optional[Item]:
        item = self._items.get(self._key(key))
        return copy.deepcopy(item) if item is not None else None

    async def put_item(self, item: Item, *, condition_not_exists: bool = False) -> None:
        key = self._key(item)
        if condition_not_exists and key in self._items:
            raise ConditionFailedError(f"Item {key} already exists")
        self._items[key] = copy.deepcopy(item)

    async def update_item(
        self,
        key: Key,
        set_attributes: Mapping[str, Any],
        remove_attributes: Iterable[str] = (),
        *,
        condition_exists: bool = True,
    ) -> Item:
        storage_key = self._key(key)
        current = self._items.get(storage_key)
        if current is None:
            if condition_exists:
                raise ConditionFailedError(f"Item {storage_key} does not exist")
            current = {self.partition_field: storage_key[0], self.sort_field: storage_key[1]}
        updated = dict(current)
        updated.update(copy.deepcopy(dict(set_attributes)))
        for name in remove_attributes:
            updated.pop(name, None)
        self._items[storage_key] = updated
        return copy.deepcopy(updated)

    async def delete_item(self, key: Key) -> None:
        self._items.pop(self._key(key), None)

    async def batch_delete(self, keys: Iterable[Key]) -> None:
        for key in keys:
            await self.delete_item(key)

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
            index_pk, index_sk = self.indexes[index_name]
        else:
            index_pk, index_sk = self.partition_field, self.sort_field
        if key_field != index_pk:
            raise ValueError(f"{key_field!r} is not the partition key of {index_name or 'the table'}")
        sort_field = sort_field or index_sk

        matches = [
            item
            for item in self._items.values()
            if item.get(index_pk) == key_value
            and index_sk in item
            and (sort_prefix is None or str(item.get(sort_field, "")).startswith(sort_prefix))
        ]
        # Ties on an index sort key fall back to the primary key order.
        matches.sort(
            key=lambda item: (item[index_sk], item[self.partition_field], item[self.sort_field]),
            reverse=not ascending,
        )
        logger.trace("In-memory query {}={} returned {} items", key_field, key_value, len(matches))
        return copy.deepcopy(matches)

    async def scan(self, filters: Optional[Mapping[str, Any]] = None) -> list[Item]:
        filters = filters or {}
        return [
            copy.deepcopy(item)
            for item in self._items.values()
            if all(item.get(name) == value for name, value in filters.items())
        ]
