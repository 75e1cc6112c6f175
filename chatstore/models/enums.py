"""Enumerations used across models."""

from enum import Enum


class MessageRole(str, Enum):
    """Enum for message roles in a chat.

    ``USER`` denotes a human message and ``ASSISTANT`` denotes a reply
    from the AI model.  No other senders are stored.
    """

    USER = "user"
    ASSISTANT = "assistant"


class EntityType(str, Enum):
    """Marker stored on every item to tell record kinds apart in the table."""

    CHAT = "chat"
    CHAT_MESSAGE = "chatmessage"
