"""Request payloads for the chat API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .enums import MessageRole


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateChatRequest(_Payload):
    """Payload for creating a chat.

    The name is validated by the data-access layer so that API and
    direct callers see the same error for an empty or overlong name.
    """

    name: str = Field(..., description="Display name of the new chat.")


class UpdateChatRequest(_Payload):
    name: str = Field(..., description="New display name of the chat.")


class CreateMessageRequest(_Payload):
    content: str
    role: MessageRole
    reasoning_content: Optional[str] = None


class UpdateMessageRequest(_Payload):
    content: str
    reasoning_content: Optional[str] = Field(
        default=None,
        description="Replaces the stored reasoning content when provided; left untouched when omitted.",
    )
