"""Models representing chat messages."""

from typing import Optional

from pydantic import Field

from ..utils import helpers
from .enums import MessageRole
from .record import Record


class ChatMessage(Record):
    """Represents a single message in a chat.

    ``user_id`` records the author: the requesting user, or a synthetic
    ``assistant`` sender for generated replies.  ``reasoning_content``
    optionally carries auxiliary model output alongside the visible
    ``content``.  A message is addressed in storage by its chat, its
    creation time and its identifier, which also fixes its position in
    the chat's chronological history.
    """

    chat_id: str = Field(..., min_length=1)
    message_id: str = Field(default_factory=lambda: helpers.new_id(), min_length=1)
    user_id: str = Field(..., min_length=1)
    content: str
    reasoning_content: Optional[str] = None
    role: MessageRole
