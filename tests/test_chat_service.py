from __future__ import annotations

import asyncio
import uuid
from unittest.mock import MagicMock

import pytest

from chatstore.config.dynamodb_config import DynamoDBConfig
from chatstore.models import MessageRole
from chatstore.services.chat_service import ChatService
from chatstore.storage.base import ChatsTable
from chatstore.storage.dynamodb import DynamoDBChatsTable
from chatstore.storage.memory import InMemoryChatsTable
from chatstore.utils.error_handler import (
    ChatError,
    InvalidArgumentError,
    NotFoundError,
    ValidationError,
)


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Chats


def test_create_chat_returns_fresh_chat(service: ChatService) -> None:
    first = run(service.create_chat("u1", "First"))
    second = run(service.create_chat("u1", "Second"))

    assert first.chat_id != second.chat_id
    assert first.created_at == first.updated_at
    assert first.name == "First"
    assert first.user_id == "u1"


@pytest.mark.parametrize("user_id", ["", "   ", None])
def test_create_chat_requires_user_id(service: ChatService, table: InMemoryChatsTable, user_id) -> None:
    with pytest.raises(InvalidArgumentError):
        run(service.create_chat(user_id, "name"))

    assert len(table) == 0


class RecordingTable(ChatsTable):
    """Table that records every storage call and serves nothing."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def get_item(self, key):
        self.calls.append("get_item")

    async def put_item(self, item, *, condition_not_exists=False):
        self.calls.append("put_item")

    async def update_item(self, key, set_attributes, remove_attributes=(), *, condition_exists=True):
        self.calls.append("update_item")
        return {}

    async def delete_item(self, key):
        self.calls.append("delete_item")

    async def batch_delete(self, keys):
        self.calls.append("batch_delete")

    async def query(self, key_field, key_value, **kwargs):
        self.calls.append("query")
        return []

    async def scan(self, filters=None):
        self.calls.append("scan")
        return []


OPERATIONS = {
    "create_chat": lambda s, u: s.create_chat(u, "name"),
    "get_chat_for_user": lambda s, u: s.get_chat_for_user("c1", u),
    "get_all_chats_for_user": lambda s, u: s.get_all_chats_for_user(u),
    "update_chat_name": lambda s, u: s.update_chat_name("c1", u, "name"),
    "delete_chat": lambda s, u: s.delete_chat("c1", u),
    "create_message": lambda s, u: s.create_message("c1", u, "hi", MessageRole.USER),
    "get_messages_for_chat": lambda s, u: s.get_messages_for_chat("c1", u),
    "update_message": lambda s, u: s.update_message("c1", "m1", u, "hi"),
    "delete_message": lambda s, u: s.delete_message("c1", "m1", u),
}


@pytest.mark.parametrize("operation", sorted(OPERATIONS))
@pytest.mark.parametrize("user_id", ["", "   ", None])
def test_every_operation_rejects_missing_user_before_storage(
    dynamodb_config: DynamoDBConfig, operation: str, user_id
) -> None:
    recording = RecordingTable()
    service = ChatService(table=recording, dynamodb_config=dynamodb_config)

    with pytest.raises(InvalidArgumentError):
        run(OPERATIONS[operation](service, user_id))

    assert recording.calls == []


@pytest.mark.parametrize("name", ["", "x" * 101])
def test_create_chat_validates_name(service: ChatService, name: str) -> None:
    with pytest.raises(ValidationError):
        run(service.create_chat("u1", name))


def test_get_chat_for_owner(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "mine"))

    assert run(service.get_chat_for_user(chat.chat_id, "u1")) == chat


def test_get_chat_hides_other_users_chats(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "mine"))

    assert run(service.get_chat_for_user(chat.chat_id, "u2")) is None


def test_get_unknown_chat_returns_none(service: ChatService) -> None:
    assert run(service.get_chat_for_user(str(uuid.uuid4()), "anyone")) is None


def test_get_chat_requires_user_id(service: ChatService) -> None:
    with pytest.raises(InvalidArgumentError):
        run(service.get_chat_for_user("c1", ""))


def test_get_all_chats_only_returns_callers_chats(service: ChatService) -> None:
    mine = {run(service.create_chat("u1", f"chat {i}")).chat_id for i in range(3)}
    run(service.create_chat("u2", "someone else's"))

    chats = run(service.get_all_chats_for_user("u1"))

    assert {chat.chat_id for chat in chats} == mine
    assert run(service.get_all_chats_for_user("nobody")) == []


def test_get_all_chats_orders_by_recent_activity(service: ChatService) -> None:
    older = run(service.create_chat("u1", "older"))
    newer = run(service.create_chat("u1", "newer"))
    assert [c.chat_id for c in run(service.get_all_chats_for_user("u1"))] == [newer.chat_id, older.chat_id]

    run(service.create_message(older.chat_id, "u1", "bump", MessageRole.USER))

    assert [c.chat_id for c in run(service.get_all_chats_for_user("u1"))] == [older.chat_id, newer.chat_id]


def test_get_all_chats_requires_user_id(service: ChatService) -> None:
    with pytest.raises(InvalidArgumentError):
        run(service.get_all_chats_for_user(""))


def test_update_chat_name_round_trip(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "before"))

    updated = run(service.update_chat_name(chat.chat_id, "u1", "X"))
    fetched = run(service.get_chat_for_user(chat.chat_id, "u1"))

    assert updated == fetched
    assert fetched.name == "X"
    assert fetched.chat_id == chat.chat_id
    assert fetched.user_id == chat.user_id
    assert fetched.created_at == chat.created_at
    assert fetched.updated_at > chat.updated_at


def test_update_chat_name_of_other_users_chat(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "before"))

    with pytest.raises(NotFoundError):
        run(service.update_chat_name(chat.chat_id, "u2", "hijacked"))
    with pytest.raises(NotFoundError):
        run(service.update_chat_name("missing", "u1", "X"))

    assert run(service.get_chat_for_user(chat.chat_id, "u1")).name == "before"


def test_update_chat_name_validates(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "before"))

    with pytest.raises(ValidationError):
        run(service.update_chat_name(chat.chat_id, "u1", ""))


def test_delete_chat_cascades(service: ChatService, table: InMemoryChatsTable) -> None:
    chat = run(service.create_chat("u1", "doomed"))
    for i in range(3):
        run(service.create_message(chat.chat_id, "u1", f"m{i}", MessageRole.USER))
    keeper = run(service.create_chat("u1", "keeper"))

    assert run(service.delete_chat(chat.chat_id, "u1")) is True

    assert run(service.get_chat_for_user(chat.chat_id, "u1")) is None
    assert run(service.get_messages_for_chat(chat.chat_id, "u1")) == []
    assert len(table) == 1
    assert run(service.get_chat_for_user(keeper.chat_id, "u1")) == keeper


def test_delete_chat_not_owned_returns_false(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "mine"))

    assert run(service.delete_chat(chat.chat_id, "u2")) is False
    assert run(service.delete_chat("missing", "u1")) is False
    assert run(service.get_chat_for_user(chat.chat_id, "u1")) is not None


def test_delete_chat_requires_user_id(service: ChatService) -> None:
    with pytest.raises(InvalidArgumentError):
        run(service.delete_chat("c1", ""))


# ---------------------------------------------------------------------------
# Messages


def test_create_message_touches_chat(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "chat"))

    message = run(service.create_message(chat.chat_id, "u1", "hello", "user", reasoning_content="r"))
    after = run(service.get_chat_for_user(chat.chat_id, "u1"))

    assert message.chat_id == chat.chat_id
    assert message.user_id == "u1"
    assert message.role is MessageRole.USER
    assert message.reasoning_content == "r"
    assert message.created_at == message.updated_at
    assert after.updated_at > chat.updated_at


@pytest.mark.parametrize("role", ["user", "assistant", "system"])
def test_create_message_on_missing_chat(service: ChatService, role: str) -> None:
    with pytest.raises(NotFoundError):
        run(service.create_message("missing", "u1", "hello", role))


def test_create_message_on_other_users_chat(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "chat"))

    with pytest.raises(NotFoundError):
        run(service.create_message(chat.chat_id, "u2", "hello", MessageRole.USER))

    assert run(service.get_messages_for_chat(chat.chat_id, "u1")) == []


def test_create_message_rejects_unknown_role(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "chat"))

    with pytest.raises(ValidationError):
        run(service.create_message(chat.chat_id, "u1", "hello", "system"))

    assert run(service.get_messages_for_chat(chat.chat_id, "u1")) == []


def test_create_message_requires_user_id(service: ChatService) -> None:
    with pytest.raises(InvalidArgumentError):
        run(service.create_message("c1", "", "hello", MessageRole.USER))


def test_get_messages_for_hidden_chat_is_empty(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "chat"))
    run(service.create_message(chat.chat_id, "u1", "secret", MessageRole.USER))

    assert run(service.get_messages_for_chat(chat.chat_id, "u2")) == []
    assert run(service.get_messages_for_chat("missing", "u1")) == []


def test_get_messages_are_chronological(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "chat"))
    contents = [f"message {i}" for i in range(5)]
    for content in contents:
        run(service.create_message(chat.chat_id, "u1", content, MessageRole.USER))

    messages = run(service.get_messages_for_chat(chat.chat_id, "u1"))

    assert [m.content for m in messages] == contents
    assert [m.created_at for m in messages] == sorted(m.created_at for m in messages)


def test_update_message(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "chat"))
    message = run(service.create_message(chat.chat_id, "u1", "draft", MessageRole.ASSISTANT, "first thought"))
    touched = run(service.get_chat_for_user(chat.chat_id, "u1"))

    updated = run(service.update_message(chat.chat_id, message.message_id, "u1", "final"))

    assert updated.content == "final"
    assert updated.reasoning_content == "first thought"
    assert updated.created_at == message.created_at
    assert updated.updated_at > message.updated_at
    assert run(service.get_chat_for_user(chat.chat_id, "u1")).updated_at > touched.updated_at

    rewritten = run(service.update_message(chat.chat_id, message.message_id, "u1", "final", "second thought"))
    assert rewritten.reasoning_content == "second thought"
    assert run(service.get_messages_for_chat(chat.chat_id, "u1")) == [rewritten]


def test_update_message_not_found(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "chat"))
    message = run(service.create_message(chat.chat_id, "u1", "draft", MessageRole.USER))

    with pytest.raises(NotFoundError):
        run(service.update_message(chat.chat_id, "missing", "u1", "x"))
    with pytest.raises(NotFoundError):
        run(service.update_message(chat.chat_id, message.message_id, "u2", "x"))
    with pytest.raises(NotFoundError):
        run(service.update_message("missing", message.message_id, "u1", "x"))


def test_delete_message_by_author(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "chat"))
    message = run(service.create_message(chat.chat_id, "u1", "bye", MessageRole.USER))
    before = run(service.get_chat_for_user(chat.chat_id, "u1"))

    assert run(service.delete_message(chat.chat_id, message.message_id, "u1")) is True

    assert run(service.get_messages_for_chat(chat.chat_id, "u1")) == []
    assert run(service.get_chat_for_user(chat.chat_id, "u1")).updated_at > before.updated_at


def test_delete_message_by_non_author(service: ChatService) -> None:
    chat = run(service.create_chat("u1", "chat"))
    message = run(service.create_message(chat.chat_id, "u1", "mine", MessageRole.USER))

    with pytest.raises(NotFoundError):
        run(service.delete_message(chat.chat_id, message.message_id, "u2"))
    with pytest.raises(NotFoundError):
        run(service.delete_message(chat.chat_id, "missing", "u1"))

    assert len(run(service.get_messages_for_chat(chat.chat_id, "u1"))) == 1


def test_delete_message_requires_user_id(service: ChatService) -> None:
    with pytest.raises(InvalidArgumentError):
        run(service.delete_message("c1", "m1", ""))


def test_chat_lifecycle_scenario(service: ChatService, table: InMemoryChatsTable) -> None:
    chat = run(service.create_chat("u1", "c1"))
    m1 = run(service.create_message(chat.chat_id, "u1", "m1", MessageRole.USER))
    m2 = run(service.create_message(chat.chat_id, "u1", "m2", MessageRole.ASSISTANT))

    messages = run(service.get_messages_for_chat(chat.chat_id, "u1"))
    assert [m.message_id for m in messages] == [m1.message_id, m2.message_id]
    assert [m.role for m in messages] == [MessageRole.USER, MessageRole.ASSISTANT]

    run(service.delete_message(chat.chat_id, m1.message_id, "u1"))
    assert [m.message_id for m in run(service.get_messages_for_chat(chat.chat_id, "u1"))] == [m2.message_id]

    assert run(service.delete_chat(chat.chat_id, "u1")) is True
    assert run(service.get_chat_for_user(chat.chat_id, "u1")) is None
    assert run(service.get_messages_for_chat(chat.chat_id, "u1")) == []
    assert len(table) == 0


def test_same_timestamp_messages_are_distinct(service: ChatService, monkeypatch: pytest.MonkeyPatch) -> None:
    from chatstore.utils import helpers

    chat = run(service.create_chat("u1", "chat"))
    monkeypatch.setattr(helpers, "utc_now_iso", lambda: "2030-01-01T00:00:00.000000Z")
    first = run(service.create_message(chat.chat_id, "u1", "a", MessageRole.USER))
    second = run(service.create_message(chat.chat_id, "u1", "b", MessageRole.USER))

    messages = run(service.get_messages_for_chat(chat.chat_id, "u1"))

    assert first.created_at == second.created_at
    assert len(messages) == 2
    assert [m.message_id for m in messages] == sorted([first.message_id, second.message_id])


# ---------------------------------------------------------------------------
# Maintenance


def test_clear_data_removes_everything(service: ChatService, table: InMemoryChatsTable) -> None:
    for user in ("u1", "u2"):
        chat = run(service.create_chat(user, "chat"))
        run(service.create_message(chat.chat_id, user, "hi", MessageRole.USER))

    assert run(service.clear_data("u1")) == 2
    assert len(table) == 0


def test_clear_data_refuses_remote_tables(dynamodb_config: DynamoDBConfig) -> None:
    remote = ChatService(table=DynamoDBChatsTable(resource=MagicMock(), table_name="ChatsTable"), dynamodb_config=dynamodb_config)

    with pytest.raises(ChatError, match="local storage"):
        run(remote.clear_data("u1"))
    with pytest.raises(InvalidArgumentError):
        run(remote.clear_data(""))
