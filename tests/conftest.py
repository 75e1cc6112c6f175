from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from chatstore.config.dynamodb_config import DynamoDBConfig
from chatstore.services.chat_service import ChatService
from chatstore.storage.memory import InMemoryChatsTable
from chatstore.utils import helpers

CLOCK_START = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clock(monkeypatch: pytest.MonkeyPatch):
    """Replace the wall clock with one that advances 1 ms per reading."""
    ticks = itertools.count(1)

    def fake_now() -> str:
        moment = CLOCK_START + timedelta(milliseconds=next(ticks))
        return moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")

    monkeypatch.setattr(helpers, "utc_now_iso", fake_now)
    return fake_now


@pytest.fixture
def dynamodb_config() -> DynamoDBConfig:
    return DynamoDBConfig(table_name="ChatsTable", index_name="gsi1", region="us-east-1", endpoint_url=None)


@pytest.fixture
def table() -> InMemoryChatsTable:
    return InMemoryChatsTable()


@pytest.fixture
def service(table: InMemoryChatsTable, dynamodb_config: DynamoDBConfig) -> ChatService:
    return ChatService(table=table, dynamodb_config=dynamodb_config)
