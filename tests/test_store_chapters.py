"""Chapter record operations against an in-memory MongoDB."""

from __future__ import annotations

import logging

import pytest

from opbot.store import ChapterRecord, NotFoundError, QueryError, Store, UpdateError
from opbot.store.models import INT64_MAX


def test_get_latest_chapter_empty_raises_not_found(store: Store) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        store.get_latest_chapter()

    assert excinfo.value.operation == "get_latest_chapter"


def test_get_latest_chapter_returns_record(store: Store, chapters) -> None:
    chapters.insert_one({"chapter_number": 5, "latest_url": "a"})

    assert store.get_latest_chapter() == ChapterRecord(chapter_number=5, latest_url="a")


def test_get_latest_chapter_malformed_document_is_query_error(store: Store, chapters) -> None:
    chapters.insert_one({"chapter_number": "five"})

    with pytest.raises(QueryError):
        store.get_latest_chapter()


def test_advance_chapter_moves_to_next_number(store: Store, chapters) -> None:
    chapters.insert_one({"chapter_number": 5, "latest_url": "a"})

    assert store.advance_chapter(5, "b") is True

    assert store.get_latest_chapter() == ChapterRecord(chapter_number=6, latest_url="b")
    assert chapters.count_documents({}) == 1


def test_advance_chapter_mismatch_leaves_record_unchanged(
    store: Store, chapters, caplog: pytest.LogCaptureFixture
) -> None:
    chapters.insert_one({"chapter_number": 5, "latest_url": "a"})

    with caplog.at_level(logging.WARNING, logger="opbot.store"):
        assert store.advance_chapter(99, "x") is False

    assert store.get_latest_chapter() == ChapterRecord(chapter_number=5, latest_url="a")
    assert "latest chapter left unchanged" in caplog.text


def test_advance_chapter_past_int64_range_raises_update_error(store: Store, chapters) -> None:
    chapters.insert_one({"chapter_number": INT64_MAX, "latest_url": "a"})

    with pytest.raises(UpdateError) as excinfo:
        store.advance_chapter(INT64_MAX, "b")

    assert excinfo.value.operation == "advance_chapter"
    assert store.get_latest_chapter() == ChapterRecord(chapter_number=INT64_MAX, latest_url="a")


def test_advance_chapter_on_empty_collection_creates_nothing(store: Store, chapters) -> None:
    assert store.advance_chapter(1, "x") is False
    assert chapters.count_documents({}) == 0


def test_advance_chapter_sequential_calls(store: Store, chapters) -> None:
    chapters.insert_one({"chapter_number": 1000, "latest_url": "u1000"})

    for _ in range(3):
        current = store.get_latest_chapter()
        store.advance_chapter(current.chapter_number, f"u{current.chapter_number + 1}")

    assert store.get_latest_chapter() == ChapterRecord(chapter_number=1003, latest_url="u1003")


def test_seed_chapter_creates_record_once(store: Store, chapters) -> None:
    assert store.seed_chapter(1100, "https://example.com/1100") is True
    assert store.seed_chapter(1, "ignored") is False

    assert chapters.count_documents({}) == 1
    assert store.get_latest_chapter() == ChapterRecord(
        chapter_number=1100, latest_url="https://example.com/1100"
    )


def test_seed_chapter_keeps_existing_record(store: Store, chapters) -> None:
    chapters.insert_one({"chapter_number": 7, "latest_url": "seven"})

    assert store.seed_chapter(1, "one") is False
    assert store.get_latest_chapter().chapter_number == 7
