"""Entity schema binding record models to the chats table.

An :class:`Entity` knows how to turn one kind of record into a table item
(attributes plus rendered key attributes) and back, and offers the
primitive operations the access layer composes.  Each attribute carries
up to three pure functions:

* a default generator (the model's ``default_factory``),
* a validator (the model's field constraints),
* an update hook (``on_update``), re-evaluated on every patch.

Read-only attributes may be set when a record is created but never
patched afterwards.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Generic, Iterable, Mapping, Optional, Sequence, TypeVar

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from ..models.chat import Chat
from ..models.chat_message import ChatMessage
from ..models.enums import EntityType
from ..models.record import Record
from ..storage.base import ChatsTable, Item
from ..utils import helpers
from ..utils.error_handler import (
    ConditionFailedError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from .keys import CHAT_BY_USER, CHAT_PRIMARY, MESSAGE_PRIMARY, IndexKeys

SERVICE_NAME = "chatservice"
ENTITY_TYPE_FIELD = "entityType"
VERSION_FIELD = "schemaVersion"
SERVICE_FIELD = "service"

RecordT = TypeVar("RecordT", bound=Record)


def describe_validation_error(exc: PydanticValidationError) -> str:
    """Flatten a pydantic error into a single readable line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "record"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


class Entity(Generic[RecordT]):
    """Maps one record model onto the shared chats table."""

    def __init__(
        self,
        table: ChatsTable,
        model: type[RecordT],
        entity_type: EntityType,
        primary: IndexKeys,
        indexes: Sequence[IndexKeys] = (),
        read_only: Iterable[str] = (),
        on_update: Optional[Mapping[str, Callable[[], Any]]] = None,
        version: str = "1",
    ) -> None:
        self.table = table
        self.model = model
        self.entity_type = entity_type
        self.primary = primary
        self.indexes = tuple(indexes)
        self.read_only = frozenset(read_only)
        self.on_update = dict(on_update or {})
        self.version = version

    def __repr__(self) -> str:
        return f"Entity({self.entity_type.value!r}, version={self.version!r})"

    # ------------------------------------------------------------------
    # Record <-> item conversion

    def build(self, **attributes: Any) -> RecordT:
        """Validate ``attributes`` and fill in generated defaults."""
        try:
            return self.model.model_validate(attributes)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid {self.entity_type.value}: {describe_validation_error(exc)}"
            ) from exc

    def key(self, record_or_values: RecordT | Mapping[str, Any]) -> dict[str, str]:
        """Return the primary key attributes for a record or raw attribute values."""
        values = self._values(record_or_values)
        try:
            return self.primary.render(values)
        except KeyError as exc:
            raise ValidationError(f"Cannot address {self.entity_type.value}: {exc.args[0]}") from exc

    def to_item(self, record: RecordT) -> Item:
        values = record.model_dump()
        item: Item = record.to_storage()
        item.update(self.primary.render(values))
        for index in self.indexes:
            item.update(index.render(values))
        item[ENTITY_TYPE_FIELD] = self.entity_type.value
        item[VERSION_FIELD] = self.version
        item[SERVICE_FIELD] = SERVICE_NAME
        return item

    def owns(self, item: Mapping[str, Any]) -> bool:
        return item.get(ENTITY_TYPE_FIELD) == self.entity_type.value

    def from_item(self, item: Mapping[str, Any]) -> RecordT:
        return self.model.model_validate(item)

    # ------------------------------------------------------------------
    # Operations

    async def create(self, **attributes: Any) -> RecordT:
        """Build a record and write it, refusing to overwrite an existing key."""
        record = self.build(**attributes)
        try:
            await self.table.put_item(self.to_item(record), condition_not_exists=True)
        except ConditionFailedError as exc:
            raise ConflictError(
                f"{self.entity_type.value} {self.key(record)} already exists"
            ) from exc
        return record

    async def get(self, **key_values: Any) -> Optional[RecordT]:
        item = await self.table.get_item(self.key(key_values))
        if item is None or not self.owns(item):
            return None
        return self.from_item(item)

    async def patch(self, record: RecordT, **changes: Any) -> RecordT:
        """Apply ``changes`` to an existing record and return the stored result.

        ``on_update`` hooks run on every patch, including one without
        changes, and any index whose key attributes changed is rewritten.
        Raises :class:`NotFoundError` when the item no longer exists.
        """
        forbidden = sorted(set(changes) & self.read_only)
        if forbidden:
            raise ValidationError(
                f"Cannot modify read-only {self.entity_type.value} attributes: {', '.join(forbidden)}"
            )
        unknown = sorted(set(changes) - set(self.model.model_fields))
        if unknown:
            raise ValidationError(
                f"Unknown {self.entity_type.value} attributes: {', '.join(unknown)}"
            )

        values = record.model_dump()
        values.update(changes)
        for name, hook in self.on_update.items():
            values[name] = hook()
        updated = self.build(**values)

        before = record.to_storage()
        after = updated.to_storage()
        set_attributes = {name: value for name, value in after.items() if before.get(name) != value}
        for name in list(changes) + list(self.on_update):
            alias = self.model.model_fields[name].alias or name
            if alias in after:
                set_attributes[alias] = after[alias]
        remove_attributes = [name for name in before if name not in after]

        changed = {
            name for name in self.model.model_fields
            if getattr(updated, name) != getattr(record, name)
        }
        updated_values = updated.model_dump()
        for index in self.indexes:
            if index.attributes & changed:
                set_attributes.update(index.render(updated_values))

        try:
            item = await self.table.update_item(
                self.key(record),
                set_attributes,
                remove_attributes,
                condition_exists=True,
            )
        except ConditionFailedError as exc:
            raise NotFoundError(f"{self.entity_type.value} {self.key(record)} not found") from exc
        return self.from_item(item)

    async def delete(self, record: RecordT) -> None:
        await self.table.delete_item(self.key(record))

    async def delete_many(self, records: Iterable[RecordT]) -> None:
        keys = [self.key(record) for record in records]
        if keys:
            logger.debug("Deleting {} {} items", len(keys), self.entity_type.value)
            await self.table.batch_delete(keys)

    async def query(self, **composite: Any) -> list[RecordT]:
        """Read the primary partition, narrowed by the sort key prefix.

        Only the partition key's attributes are required; the sort key is
        rendered up to its first missing attribute and used as a
        ``begins_with`` prefix.
        """
        return await self._query(self.primary, ascending=True, **composite)

    async def query_index(self, name: str, *, ascending: bool = True, **composite: Any) -> list[RecordT]:
        for index in self.indexes:
            if index.name == name:
                return await self._query(index, ascending=ascending, **composite)
        raise ValueError(f"{self.entity_type.value} has no index named {name!r}")

    async def scan(self) -> list[RecordT]:
        items = await self.table.scan({ENTITY_TYPE_FIELD: self.entity_type.value})
        return [self.from_item(item) for item in items]

    # ------------------------------------------------------------------

    async def _query(self, keys: IndexKeys, *, ascending: bool, **composite: Any) -> list[RecordT]:
        try:
            partition = keys.pk.render(composite)
        except KeyError as exc:
            raise ValidationError(f"Cannot query {self.entity_type.value}: {exc.args[0]}") from exc
        items = await self.table.query(
            keys.pk.field,
            partition,
            sort_field=keys.sk.field,
            sort_prefix=keys.sk.prefix(composite),
            index_name=keys.name,
            ascending=ascending,
        )
        return [self.from_item(item) for item in items if self.owns(item)]

    @staticmethod
    def _values(record_or_values: Record | Mapping[str, Any]) -> Mapping[str, Any]:
        if isinstance(record_or_values, Record):
            return record_or_values.model_dump()
        return record_or_values


def chat_entity(table: ChatsTable, index_name: str = "gsi1") -> Entity[Chat]:
    """Entity for chat metadata items, indexed by owner and last update."""
    return Entity(
        table,
        Chat,
        EntityType.CHAT,
        primary=CHAT_PRIMARY,
        indexes=[replace(CHAT_BY_USER, name=index_name)],
        read_only=("chat_id", "user_id", "created_at"),
        on_update={"updated_at": lambda: helpers.utc_now_iso()},
    )


def message_entity(table: ChatsTable) -> Entity[ChatMessage]:
    """Entity for messages, stored in their chat's partition."""
    return Entity(
        table,
        ChatMessage,
        EntityType.CHAT_MESSAGE,
        primary=MESSAGE_PRIMARY,
        read_only=("chat_id", "message_id", "user_id", "created_at"),
        on_update={"updated_at": lambda: helpers.utc_now_iso()},
    )
