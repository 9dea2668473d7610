"""Document model validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from opbot.store.models import INT64_MAX, INT64_MIN, ChapterRecord, Subscriber


def test_subscriber_ignores_mongo_id() -> None:
    subscriber = Subscriber.model_validate({"_id": "abc", "chat_id": 12})

    assert subscriber.chat_id == 12
    assert subscriber.to_document() == {"chat_id": 12}


@pytest.mark.parametrize("value", ["12", 1.0, True, None, INT64_MAX + 1, INT64_MIN - 1])
def test_subscriber_rejects_non_int64_chat_ids(value: object) -> None:
    with pytest.raises(ValidationError):
        Subscriber.model_validate({"chat_id": value})


def test_subscriber_accepts_int64_bounds() -> None:
    assert Subscriber(chat_id=INT64_MIN).chat_id == INT64_MIN
    assert Subscriber(chat_id=INT64_MAX).chat_id == INT64_MAX


def test_chapter_record_document_shape() -> None:
    record = ChapterRecord(chapter_number=1100, latest_url="https://example.com/1100")

    assert record.to_document() == {
        "chapter_number": 1100,
        "latest_url": "https://example.com/1100",
    }


def test_chapter_record_requires_url() -> None:
    with pytest.raises(ValidationError):
        ChapterRecord.model_validate({"chapter_number": 1})
