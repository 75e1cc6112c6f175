"""Storage package containing the chats table backends."""

from .base import ChatsTable  # noqa: F401
from .dynamodb import DynamoDBChatsTable  # noqa: F401
from .memory import InMemoryChatsTable  # noqa: F401
