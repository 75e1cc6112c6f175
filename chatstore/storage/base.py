"""Storage boundary consumed by the data-access layer.

The chats live in one keyed-range table.  Implementations only need to
support exact-key reads and writes, conditional puts and updates, and
range queries over a partition (on the table or on a secondary index)
ordered by sort key.  Items are plain ``dict`` attribute maps.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional

Item = dict[str, Any]
Key = Mapping[str, str]


class ChatsTable(ABC):
    """Asynchronous interface over the single chats table.

    ``partition_field`` and ``sort_field`` name the primary key
    attributes.  Conditional operations raise
    :class:`~chatstore.utils.error_handler.ConditionFailedError` when the
    condition does not hold.  Any other failure of the underlying store
    propagates unchanged.
    """

    partition_field: str = "pk"
    sort_field: str = "sk"

    @abstractmethod
    async def get_item(self, key: Key) -> Optional[Item]:
        """Return the item stored under ``key`` or ``None``."""

    @abstractmethod
    async def put_item(self, item: Item, *, condition_not_exists: bool = False) -> None:
        """Write ``item``, optionally refusing to overwrite an existing one."""

    @abstractmethod
    async def update_item(
        self,
        key: Key,
        set_attributes: Mapping[str, Any],
        remove_attributes: Iterable[str] = (),
        *,
        condition_exists: bool = True,
    ) -> Item:
        """Set and remove attributes on one item and return all its new attributes."""

    @abstractmethod
    async def delete_item(self, key: Key) -> None:
        """Delete the item stored under ``key``; missing items are ignored."""

    @abstractmethod
    async def batch_delete(self, keys: Iterable[Key]) -> None:
        """Delete many items.  No atomicity is implied across them."""

    @abstractmethod
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
        """Return every item in one partition, ordered by sort key.

        When ``sort_prefix`` is given only items whose ``sort_field``
        begins with it are returned.  ``index_name`` selects a secondary
        index instead of the table.
        """

    @abstractmethod
    async def scan(self, filters: Optional[Mapping[str, Any]] = None) -> list[Item]:
        """Return every item whose attributes equal all ``filters``."""
