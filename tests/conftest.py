"""Shared fixtures for store and CLI tests."""

from __future__ import annotations

import logging
from typing import Iterator

import mongomock
import pytest

from opbot.store import Store


class SharedMongoClient(mongomock.MongoClient):
    """In-memory client that survives ``Store.close`` between CLI invocations."""

    def close(self) -> None:
        pass


@pytest.fixture
def mongo_client() -> SharedMongoClient:
    return SharedMongoClient()


@pytest.fixture
def store(mongo_client: SharedMongoClient) -> Store:
    return Store(mongo_client)


@pytest.fixture
def chapters(mongo_client: SharedMongoClient):
    """Return the raw chapters collection for seeding and inspection."""
    return mongo_client["op-bot-data"]["chapters"]


@pytest.fixture
def subscribers(mongo_client: SharedMongoClient):
    """Return the raw subscribers collection for seeding and inspection."""
    return mongo_client["op-bot-data"]["subscribers"]


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
