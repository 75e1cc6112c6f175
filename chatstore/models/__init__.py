"""Expose commonly used model classes at the package level.

Importing these classes here allows consumers to write concise imports like::

    from chatstore.models import Chat, ChatMessage, MessageRole

These names refer to the underlying Pydantic models defined in their
respective modules.
"""

from .chat import Chat  # noqa: F401
from .chat_message import ChatMessage  # noqa: F401
from .enums import EntityType, MessageRole  # noqa: F401
from .requests import (  # noqa: F401
    CreateChatRequest,
    CreateMessageRequest,
    UpdateChatRequest,
    UpdateMessageRequest,
)
