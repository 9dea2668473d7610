"""MongoDB persistence for subscribers and the latest chapter record."""

from __future__ import annotations

import contextlib
import logging
from typing import Any, Callable, ContextManager, Iterable, Iterator, List, Mapping, Type

import pymongo
from pydantic import ValidationError
from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from opbot.config.models import DatabaseSettings

from .errors import (
    CursorDecodeError,
    CursorIterationError,
    DeleteError,
    InsertError,
    NotFoundError,
    PingError,
    QueryError,
    StoreConnectionError,
    StoreError,
    UpdateError,
)
from .models import ChapterRecord, Subscriber

DEFAULT_DATABASE_NAME = "op-bot-data"
SUBSCRIBERS_COLLECTION = "subscribers"
CHAPTERS_COLLECTION = "chapters"
CHAT_ID_INDEX = "chat_id_unique"

LOGGER = logging.getLogger(__name__)


def _failure(
    error_cls: Type[StoreError], operation: str, message: str, exc: Exception
) -> StoreError:
    LOGGER.debug("%s failed: %s (%s)", operation, message, exc)
    return error_cls(f"{message}: {exc}", operation=operation)


class Store:
    """Typed access to the ``subscribers`` and ``chapters`` collections.

    A store wraps one MongoDB client. The client pools connections and is
    thread-safe, so a single store can be shared by every caller. Nothing is
    cached: each operation is one round-trip to the server.

    Every operation accepts a keyword-only ``timeout`` in seconds that bounds
    all driver I/O for that call. When omitted, the store-wide default given at
    construction applies; when that is also ``None`` the call may block until
    the driver's own timeouts fire.
    """

    def __init__(
        self,
        client: Any,
        *,
        database_name: str = DEFAULT_DATABASE_NAME,
        subscribers_collection: str = SUBSCRIBERS_COLLECTION,
        chapters_collection: str = CHAPTERS_COLLECTION,
        operation_timeout: float | None = None,
    ) -> None:
        """Bind the store to an existing client.

        Args:
            client: ``pymongo.MongoClient`` (or compatible) instance.
            database_name: Database holding both collections.
            subscribers_collection: Name of the subscriber collection.
            chapters_collection: Name of the chapter collection.
            operation_timeout: Default per-operation deadline in seconds.
        """
        self._client = client
        self._database_name = database_name
        self._database = client[database_name]
        self._subscribers = self._database[subscribers_collection]
        self._chapters = self._database[chapters_collection]
        self._operation_timeout = operation_timeout

    @classmethod
    def open(
        cls,
        uri: str,
        *,
        database_name: str = DEFAULT_DATABASE_NAME,
        subscribers_collection: str = SUBSCRIBERS_COLLECTION,
        chapters_collection: str = CHAPTERS_COLLECTION,
        server_selection_timeout_ms: int | None = None,
        operation_timeout: float | None = None,
        app_name: str | None = None,
        client_factory: Callable[..., Any] = MongoClient,
    ) -> "Store":
        """Connect to MongoDB and verify the server answers a ping.

        Args:
            uri: MongoDB connection string.
            database_name: Database holding both collections.
            subscribers_collection: Name of the subscriber collection.
            chapters_collection: Name of the chapter collection.
            server_selection_timeout_ms: Driver server-selection timeout.
            operation_timeout: Default per-operation deadline in seconds.
            app_name: Client name reported to the server.
            client_factory: Callable building the client from ``uri`` and options.

        Returns:
            Store: Store bound to ``database_name``.

        Raises:
            StoreConnectionError: If the client cannot be created or a database
                or collection name is invalid.
            PingError: If the server does not answer the liveness check.
        """
        options: dict[str, Any] = {}
        if server_selection_timeout_ms is not None:
            options["serverSelectionTimeoutMS"] = server_selection_timeout_ms
        if app_name:
            options["appname"] = app_name

        try:
            client = client_factory(uri, **options)
        except PyMongoError as exc:
            raise _failure(
                StoreConnectionError, "open", "Could not connect to the database", exc
            ) from exc

        try:
            store = cls(
                client,
                database_name=database_name,
                subscribers_collection=subscribers_collection,
                chapters_collection=chapters_collection,
                operation_timeout=operation_timeout,
            )
        except PyMongoError as exc:
            client.close()
            raise _failure(
                StoreConnectionError, "open", "Invalid database or collection name", exc
            ) from exc

        try:
            store.ping()
        except PingError:
            client.close()
            raise

        LOGGER.info("Connected to database %s.", database_name)
        return store

    @classmethod
    def from_settings(
        cls,
        settings: DatabaseSettings,
        *,
        client_factory: Callable[..., Any] = MongoClient,
    ) -> "Store":
        """Open a store described by configuration settings.

        Args:
            settings: Database section of the opbot configuration.
            client_factory: Callable building the client from a URI and options.

        Returns:
            Store: Connected store.
        """
        return cls.open(
            settings.uri,
            database_name=settings.name,
            subscribers_collection=settings.subscribers_collection,
            chapters_collection=settings.chapters_collection,
            server_selection_timeout_ms=settings.server_selection_timeout_ms,
            operation_timeout=settings.operation_timeout_seconds,
            app_name=settings.app_name,
            client_factory=client_factory,
        )

    @property
    def database_name(self) -> str:
        """Return the name of the database this store is bound to."""
        return self._database_name

    def close(self) -> None:
        """Release the underlying client."""
        self._client.close()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def ping(self, *, timeout: float | None = None) -> None:
        """Check that the server is reachable.

        Raises:
            PingError: If the ping command fails.
        """
        try:
            with self._deadline(timeout):
                self._client.admin.command("ping")
        except PyMongoError as exc:
            raise _failure(PingError, "ping", "Database did not answer ping", exc) from exc

    def ensure_indexes(self, *, timeout: float | None = None) -> None:
        """Create the unique index on ``chat_id``; a no-op when it exists.

        Raises:
            UpdateError: If the index cannot be created, for example because
                duplicate subscribers are already stored.
        """
        try:
            with self._deadline(timeout):
                self._subscribers.create_index(
                    [("chat_id", pymongo.ASCENDING)], unique=True, name=CHAT_ID_INDEX
                )
        except PyMongoError as exc:
            raise _failure(
                UpdateError, "ensure_indexes", "Could not create subscriber index", exc
            ) from exc

    # Subscribers ------------------------------------------------------

    def list_subscriber_ids(self, *, timeout: float | None = None) -> List[int]:
        """Return the chat id of every subscriber, in no particular order.

        Returns:
            List[int]: Chat ids; empty when nobody is subscribed.

        Raises:
            QueryError: If the scan cannot be started.
            CursorDecodeError: If a stored document is not a valid subscriber.
            CursorIterationError: If the scan fails after it has started.
        """
        operation = "list_subscriber_ids"
        chat_ids: List[int] = []
        with self._deadline(timeout):
            try:
                cursor = self._subscribers.find({})
            except PyMongoError as exc:
                raise _failure(QueryError, operation, "Could not scan subscribers", exc) from exc

            try:
                for document in _scan(cursor, operation):
                    try:
                        subscriber = Subscriber.model_validate(document)
                    except ValidationError as exc:
                        raise _failure(
                            CursorDecodeError, operation, "Malformed subscriber document", exc
                        ) from exc
                    chat_ids.append(subscriber.chat_id)
            finally:
                cursor.close()
        return chat_ids

    def count_subscribers(self, *, timeout: float | None = None) -> int:
        """Return the number of stored subscriber documents.

        Raises:
            QueryError: If the count fails.
        """
        try:
            with self._deadline(timeout):
                return self._subscribers.count_documents({})
        except PyMongoError as exc:
            raise _failure(
                QueryError, "count_subscribers", "Could not count subscribers", exc
            ) from exc

    def add_subscriber(self, chat_id: int, *, timeout: float | None = None) -> None:
        """Register ``chat_id``; registering an existing subscriber is a no-op.

        The write is a single upsert, so two concurrent calls for the same chat
        cannot both insert. With :meth:`ensure_indexes` applied, the losing
        side of such a race gets a duplicate-key error, which counts as success.

        Raises:
            InsertError: If the write fails.
        """
        document = Subscriber(chat_id=chat_id).to_document()
        try:
            with self._deadline(timeout):
                result = self._subscribers.update_one(
                    document, {"$setOnInsert": document}, upsert=True
                )
        except DuplicateKeyError:
            LOGGER.debug("Subscriber %s was registered concurrently.", chat_id)
            return
        except PyMongoError as exc:
            raise _failure(InsertError, "add_subscriber", "Could not add subscriber", exc) from exc

        if result.upserted_id is None:
            LOGGER.debug("Subscriber %s already registered.", chat_id)
        else:
            LOGGER.info("Registered subscriber %s.", chat_id)

    def remove_subscriber(self, chat_id: int, *, timeout: float | None = None) -> None:
        """Unregister ``chat_id``; removing an unknown subscriber is a no-op.

        Raises:
            DeleteError: If the delete fails.
        """
        try:
            with self._deadline(timeout):
                result = self._subscribers.delete_one({"chat_id": chat_id})
        except PyMongoError as exc:
            raise _failure(
                DeleteError, "remove_subscriber", "Could not remove subscriber", exc
            ) from exc

        if result.deleted_count:
            LOGGER.info("Removed subscriber %s.", chat_id)
        else:
            LOGGER.debug("Subscriber %s was not registered.", chat_id)

    # Chapters ---------------------------------------------------------

    def get_latest_chapter(self, *, timeout: float | None = None) -> ChapterRecord:
        """Return the stored chapter record.

        Raises:
            NotFoundError: If no chapter has been seeded yet.
            QueryError: If the lookup fails or the document is malformed.
        """
        operation = "get_latest_chapter"
        try:
            with self._deadline(timeout):
                document = self._chapters.find_one({})
        except PyMongoError as exc:
            raise _failure(QueryError, operation, "Could not read latest chapter", exc) from exc

        if document is None:
            raise NotFoundError("No latest chapter found", operation=operation)

        try:
            return ChapterRecord.model_validate(document)
        except ValidationError as exc:
            raise _failure(QueryError, operation, "Malformed chapter document", exc) from exc

    def advance_chapter(
        self, chapter_number: int, url: str, *, timeout: float | None = None
    ) -> bool:
        """Move the record stored at ``chapter_number`` to the next chapter.

        The update only applies while the stored number still equals
        ``chapter_number``, so a caller holding a stale record cannot skip or
        repeat a chapter. Callers should read the record with
        :meth:`get_latest_chapter` first.

        Args:
            chapter_number: Chapter number the caller believes is stored.
            url: Source URL of the new chapter.

        Returns:
            bool: ``True`` when the record advanced, ``False`` when no record
            held ``chapter_number`` and nothing changed.

        Raises:
            UpdateError: If the update fails or the record is already at the
                largest representable chapter number.
        """
        try:
            advanced = ChapterRecord(chapter_number=chapter_number + 1, latest_url=url)
        except ValidationError as exc:
            raise _failure(
                UpdateError, "advance_chapter", "Cannot advance past chapter number", exc
            ) from exc
        try:
            with self._deadline(timeout):
                result = self._chapters.update_one(
                    {"chapter_number": chapter_number}, {"$set": advanced.to_document()}
                )
        except PyMongoError as exc:
            raise _failure(
                UpdateError, "advance_chapter", "Could not update latest chapter", exc
            ) from exc

        if result.matched_count == 0:
            LOGGER.warning(
                "No chapter record at %s; latest chapter left unchanged.", chapter_number
            )
            return False

        LOGGER.info("Latest chapter advanced to %s.", advanced.chapter_number)
        return True

    def seed_chapter(
        self, chapter_number: int, url: str, *, timeout: float | None = None
    ) -> bool:
        """Create the chapter record if the collection is still empty.

        Returns:
            bool: ``True`` when a record was created, ``False`` when one existed.

        Raises:
            InsertError: If the write fails.
        """
        record = ChapterRecord(chapter_number=chapter_number, latest_url=url)
        try:
            with self._deadline(timeout):
                result = self._chapters.update_one(
                    {}, {"$setOnInsert": record.to_document()}, upsert=True
                )
        except PyMongoError as exc:
            raise _failure(InsertError, "seed_chapter", "Could not seed chapter", exc) from exc

        if result.upserted_id is None:
            LOGGER.debug("Chapter record already present; seed skipped.")
            return False

        LOGGER.info("Seeded latest chapter %s.", record.chapter_number)
        return True

    # Internal helpers -------------------------------------------------

    def _deadline(self, timeout: float | None) -> ContextManager[Any]:
        seconds = timeout if timeout is not None else self._operation_timeout
        if seconds is None:
            return contextlib.nullcontext()
        return pymongo.timeout(seconds)


def _scan(cursor: Iterable[Mapping[str, Any]], operation: str) -> Iterator[Mapping[str, Any]]:
    """Yield documents from ``cursor``, classifying driver failures.

    A failure before the first document means the scan never started and is a
    :class:`QueryError`; a later one is a :class:`CursorIterationError`.
    """
    iterator = iter(cursor)
    started = False
    while True:
        try:
            document = next(iterator)
        except StopIteration:
            return
        except PyMongoError as exc:
            if started:
                raise _failure(
                    CursorIterationError, operation, "Subscriber scan interrupted", exc
                ) from exc
            raise _failure(QueryError, operation, "Could not scan subscribers", exc) from exc
        started = True
        yield document


__all__ = [
    "Store",
    "DEFAULT_DATABASE_NAME",
    "SUBSCRIBERS_COLLECTION",
    "CHAPTERS_COLLECTION",
    "Subscriber",
    "ChapterRecord",
    "StoreError",
    "StoreConnectionError",
    "PingError",
    "QueryError",
    "CursorDecodeError",
    "CursorIterationError",
    "InsertError",
    "DeleteError",
    "UpdateError",
    "NotFoundError",
]
