"""Data-access service for chats and their messages.

The ChatService translates chat operations into key-pattern reads and
writes against the single chats table and enforces ownership: a chat is
visible only to the user whose id it was created with.  Read-oriented
lookups treat "not yours" the same as "absent" and return ``None`` or an
empty list; write-oriented operations raise
:class:`~chatstore.utils.error_handler.NotFoundError`.

Writes that change a chat's messages also "touch" the chat, re-saving it
so that its ``updated_at`` (and therefore its position in the per-user
recency index) stays current.  The touch is a separate write issued after
the message write; there is no atomicity across the two, nor across the
deletes of a cascading chat delete.  Storage errors propagate unchanged.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from loguru import logger

from ..config.dynamodb_config import DynamoDBConfig, get_dynamodb_config
from ..dal.entities import chat_entity, message_entity
from ..models.chat import Chat
from ..models.chat_message import ChatMessage
from ..models.enums import MessageRole
from ..storage.base import ChatsTable
from ..storage.client import get_chats_table
from ..storage.memory import InMemoryChatsTable
from ..utils.error_handler import ChatError, NotFoundError
from ..utils.helpers import require_user_id


class ChatService:
    """CRUD and query operations over chats and chat messages.

    The service is stateless apart from the shared table handle it is
    given, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        table: ChatsTable | None = None,
        dynamodb_config: DynamoDBConfig | None = None,
    ) -> None:
        self.dynamodb_config = dynamodb_config or get_dynamodb_config()
        self.table = table if table is not None else get_chats_table()
        self.index_name = self.dynamodb_config.index_name
        self.chats = chat_entity(self.table, index_name=self.index_name)
        self.messages = message_entity(self.table)

    # ------------------------------------------------------------------
    # Chats

    async def create_chat(self, user_id: str, name: str) -> Chat:
        """Create a new chat owned by ``user_id``.

        Raises
        ------
        InvalidArgumentError
            If ``user_id`` is empty.
        ValidationError
            If ``name`` is empty or longer than 100 characters.
        """
        require_user_id(user_id)
        chat = await self.chats.create(user_id=user_id, name=name)
        logger.info("Created chat {} for user {}", chat.chat_id, user_id)
        return chat

    async def get_chat_for_user(self, chat_id: str, user_id: str) -> Optional[Chat]:
        """Return the chat when it exists and belongs to ``user_id``, else ``None``."""
        require_user_id(user_id)
        if not chat_id:
            return None
        chat = await self.chats.get(chat_id=chat_id)
        if chat is None:
            logger.debug("Chat {} not found", chat_id)
            return None
        if chat.user_id != user_id:
            logger.warning("User {} denied access to chat {}", user_id, chat_id)
            return None
        return chat

    async def get_all_chats_for_user(self, user_id: str) -> list[Chat]:
        """Return every chat owned by ``user_id``, most recently updated first."""
        require_user_id(user_id)
        chats = await self.chats.query_index(self.index_name, ascending=False, user_id=user_id)
        logger.debug("Found {} chats for user {}", len(chats), user_id)
        return chats

    async def update_chat_name(self, chat_id: str, user_id: str, name: str) -> Chat:
        """Rename a chat owned by ``user_id`` and return the updated chat."""
        chat = await self._require_chat(chat_id, user_id)
        updated = await self.chats.patch(chat, name=name)
        logger.info("Renamed chat {}", chat_id)
        return updated

    async def delete_chat(self, chat_id: str, user_id: str) -> bool:
        """Delete a chat and all its messages.

        Messages are deleted first and the chat item last.  Returns
        ``False`` without error when the chat is absent or not owned by
        ``user_id``.
        """
        chat = await self.get_chat_for_user(chat_id, user_id)
        if chat is None:
            return False

        messages = await self.messages.query(chat_id=chat_id)
        await self.messages.delete_many(messages)
        await self.chats.delete(chat)
        logger.info("Deleted chat {} with {} messages", chat_id, len(messages))
        return True

    # ------------------------------------------------------------------
    # Messages

    async def create_message(
        self,
        chat_id: str,
        user_id: str,
        content: str,
        role: MessageRole | str,
        reasoning_content: Optional[str] = None,
    ) -> ChatMessage:
        """Add a message to a chat owned by ``user_id``.

        Raises
        ------
        InvalidArgumentError
            If ``user_id`` is empty.
        NotFoundError
            If the chat does not exist or belongs to another user.
        ValidationError
            If ``role`` is not ``user`` or ``assistant``.
        """
        chat = await self._require_chat(chat_id, user_id)
        message = await self.messages.create(
            chat_id=chat_id,
            user_id=user_id,
            content=content,
            role=role,
            reasoning_content=reasoning_content,
        )
        await self._touch(chat)
        logger.info("Created {} message {} in chat {}", message.role.value, message.message_id, chat_id)
        return message

    async def get_messages_for_chat(self, chat_id: str, user_id: str) -> list[ChatMessage]:
        """Return a chat's messages in chronological order.

        An empty list is returned when the chat is absent or not owned by
        ``user_id``.
        """
        chat = await self.get_chat_for_user(chat_id, user_id)
        if chat is None:
            return []
        return await self.messages.query(chat_id=chat_id)

    async def update_message(
        self,
        chat_id: str,
        message_id: str,
        user_id: str,
        content: str,
        reasoning_content: Optional[str] = None,
    ) -> ChatMessage:
        """Replace a message's content, and its reasoning content when given.

        Raises
        ------
        NotFoundError
            If the chat is absent or not owned, or the message does not exist.
        """
        chat = await self._require_chat(chat_id, user_id)
        message = await self._find_message(chat_id, message_id)
        if message is None:
            raise NotFoundError(f"Message with ID {message_id} not found")

        changes: dict[str, str] = {"content": content}
        if reasoning_content is not None:
            changes["reasoning_content"] = reasoning_content
        updated = await self.messages.patch(message, **changes)
        await self._touch(chat)
        logger.info("Updated message {} in chat {}", message_id, chat_id)
        return updated

    async def delete_message(self, chat_id: str, message_id: str, user_id: str) -> bool:
        """Delete a message authored by ``user_id``.

        Raises
        ------
        NotFoundError
            If the message does not exist or was written by another user.
        """
        require_user_id(user_id)
        message = await self._find_message(chat_id, message_id)
        if message is None or message.user_id != user_id:
            raise NotFoundError(f"Message with ID {message_id} not found or access denied")

        await self.messages.delete(message)
        chat = await self.chats.get(chat_id=chat_id)
        if chat is not None:
            await self._touch(chat)
        logger.info("Deleted message {} from chat {}", message_id, chat_id)
        return True

    # ------------------------------------------------------------------
    # Maintenance

    async def clear_data(self, user_id: str) -> int:
        """Delete every chat and message in the table.

        Only allowed against local storage (the in-memory table or a
        configured local endpoint such as LocalStack).  Returns the
        number of chats removed.
        """
        require_user_id(user_id)
        if not (isinstance(self.table, InMemoryChatsTable) or self.dynamodb_config.is_local):
            raise ChatError("clear_data is only available against local storage (set LOCALSTACK_ENDPOINT)")

        chats = await self.chats.scan()
        for chat in chats:
            messages = await self.messages.query(chat_id=chat.chat_id)
            await self.messages.delete_many(messages)
        await self.chats.delete_many(chats)
        logger.warning("Cleared {} chats at the request of user {}", len(chats), user_id)
        return len(chats)

    # ------------------------------------------------------------------
    # Helpers

    async def _require_chat(self, chat_id: str, user_id: str) -> Chat:
        chat = await self.get_chat_for_user(chat_id, user_id)
        if chat is None:
            raise NotFoundError(f"Chat with ID {chat_id} not found or access denied")
        return chat

    async def _find_message(self, chat_id: str, message_id: str) -> Optional[ChatMessage]:
        # The sort key embeds created_at, so a message addressed only by id
        # has to be found by reading the chat's whole message range.
        if not chat_id or not message_id:
            return None
        for message in await self.messages.query(chat_id=chat_id):
            if message.message_id == message_id:
                return message
        return None

    async def _touch(self, chat: Chat) -> Chat:
        return await self.chats.patch(chat)


@lru_cache()
def get_chat_service() -> ChatService:
    """Dependency injector for ChatService instances.

    FastAPI will call this function to obtain a singleton
    ChatService.  The lru_cache decorator ensures only one
    instance exists.
    """
    return ChatService()
