"""Document models for the subscriber and chapter collections."""

from __future__ import annotations

from typing import Annotated, Any, Dict

from pydantic import BaseModel, ConfigDict, Field

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

Int64 = Annotated[int, Field(strict=True, ge=INT64_MIN, le=INT64_MAX)]


class StoreDocument(BaseModel):
    """Shared configuration for stored documents.

    Unknown keys such as MongoDB's ``_id`` are ignored on read.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    def to_document(self) -> Dict[str, Any]:
        """Return the BSON-ready mapping for this model.

        Returns:
            Dict[str, Any]: Field mapping suitable for insertion.
        """
        return self.model_dump(mode="python")


class Subscriber(StoreDocument):
    """A chat registered for release notifications.

    Attributes:
        chat_id: Telegram chat identifier.
    """

    chat_id: Int64


class ChapterRecord(StoreDocument):
    """The latest chapter known to the bot.

    Attributes:
        chapter_number: Number of the latest chapter.
        latest_url: Source URL of that chapter.
    """

    chapter_number: Int64
    latest_url: str


__all__ = ["INT64_MIN", "INT64_MAX", "StoreDocument", "Subscriber", "ChapterRecord"]
