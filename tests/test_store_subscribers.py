"""Subscriber operations against an in-memory MongoDB."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from opbot.store import CursorDecodeError, Store


def test_list_subscriber_ids_empty_returns_empty_list(store: Store) -> None:
    assert store.list_subscriber_ids() == []


def test_add_then_list_then_remove_round_trip(store: Store) -> None:
    store.add_subscriber(7)
    assert 7 in store.list_subscriber_ids()

    store.remove_subscriber(7)
    assert 7 not in store.list_subscriber_ids()


def test_list_subscriber_ids_returns_every_subscriber(store: Store) -> None:
    """Every stored chat id is returned, not only the last one scanned."""
    for chat_id in (1, -100123456789, 2**40):
        store.add_subscriber(chat_id)

    assert sorted(store.list_subscriber_ids()) == [-100123456789, 1, 2**40]


def test_add_subscriber_is_idempotent(store: Store, subscribers) -> None:
    store.add_subscriber(42)
    store.add_subscriber(42)

    assert subscribers.count_documents({"chat_id": 42}) == 1
    assert store.count_subscribers() == 1


def test_add_subscriber_stores_only_chat_id(store: Store, subscribers) -> None:
    store.add_subscriber(5)

    document = subscribers.find_one({"chat_id": 5})
    assert document is not None
    assert set(document) == {"_id", "chat_id"}


def test_add_subscriber_leaves_existing_document_untouched(store: Store, subscribers) -> None:
    subscribers.insert_one({"chat_id": 5, "joined": "2024-01-01"})

    store.add_subscriber(5)

    document = subscribers.find_one({"chat_id": 5}, {"_id": False})
    assert document == {"chat_id": 5, "joined": "2024-01-01"}
    assert subscribers.count_documents({}) == 1


def test_add_subscriber_rejects_non_integer_ids(store: Store, subscribers) -> None:
    with pytest.raises(ValidationError):
        store.add_subscriber("7")  # type: ignore[arg-type]
    with pytest.raises(ValidationError):
        store.add_subscriber(2**63)

    assert subscribers.count_documents({}) == 0


def test_remove_unknown_subscriber_is_noop(store: Store) -> None:
    store.add_subscriber(1)

    store.remove_subscriber(999)

    assert store.list_subscriber_ids() == [1]


def test_remove_subscriber_deletes_only_that_chat(store: Store) -> None:
    store.add_subscriber(1)
    store.add_subscriber(2)

    store.remove_subscriber(1)

    assert store.list_subscriber_ids() == [2]


def test_list_subscriber_ids_ignores_extra_fields(store: Store, subscribers) -> None:
    subscribers.insert_one({"chat_id": 3, "joined": "2024-01-01"})

    assert store.list_subscriber_ids() == [3]


def test_list_subscriber_ids_rejects_malformed_document(store: Store, subscribers) -> None:
    subscribers.insert_one({"chat_id": 1})
    subscribers.insert_one({"chat_id": "not-a-number"})

    with pytest.raises(CursorDecodeError) as excinfo:
        store.list_subscriber_ids()

    assert excinfo.value.operation == "list_subscriber_ids"
    assert isinstance(excinfo.value.__cause__, ValidationError)


def test_list_subscriber_ids_rejects_document_without_chat_id(
    store: Store, subscribers
) -> None:
    subscribers.insert_one({"user": 1})

    with pytest.raises(CursorDecodeError):
        store.list_subscriber_ids()


def test_ensure_indexes_creates_unique_chat_id_index(store: Store, subscribers) -> None:
    store.ensure_indexes()
    store.ensure_indexes()

    assert "chat_id_unique" in subscribers.index_information()

    store.add_subscriber(10)
    store.add_subscriber(10)
    assert subscribers.count_documents({}) == 1


def test_custom_collection_names(mongo_client) -> None:
    store = Store(mongo_client, database_name="other", subscribers_collection="users")

    store.add_subscriber(11)

    assert mongo_client["other"]["users"].count_documents({"chat_id": 11}) == 1
    assert store.database_name == "other"
