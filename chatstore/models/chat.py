"""Model representing a chat's metadata record."""

from pydantic import Field

from ..utils import helpers
from .record import Record


class Chat(Record):
    """One conversation owned by a single user.

    ``created_at`` is fixed when the chat is created.  ``updated_at`` is
    refreshed on every write to the chat and on every message created,
    edited or deleted under it, so sorting a user's chats by
    ``updated_at`` lists the most recently active conversations first.
    """

    chat_id: str = Field(
        default_factory=lambda: helpers.new_id(),
        min_length=1,
        description="Unique identifier for the chat.",
    )
    user_id: str = Field(..., min_length=1, description="Identifier of the user who owns this chat.")
    name: str = Field(..., min_length=1, max_length=100, description="Display name of the chat.")
