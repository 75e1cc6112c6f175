"""Shared base for records persisted in the chats table."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from ..utils import helpers


class Record(BaseModel):
    """Base model carrying creation and update timestamps.

    Fields are snake_case in Python and camelCase (``chatId``,
    ``updatedAt``) in storage and JSON.  When a record is built without
    timestamps both are set to the same instant, so a new record always
    satisfies ``created_at == updated_at``.
    """

    created_at: str
    updated_at: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _default_timestamps(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        data = dict(data)
        created = data.get("createdAt", data.get("created_at"))
        if created is None:
            created = helpers.utc_now_iso()
            data["createdAt"] = created
        if "updatedAt" not in data and "updated_at" not in data:
            data["updatedAt"] = created
        return data

    def to_storage(self) -> dict[str, Any]:
        """Return the attribute map written to the table."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
