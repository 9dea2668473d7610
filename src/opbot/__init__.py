"""Persistence layer and admin tooling for the opbot chapter notifier."""

from importlib import metadata as _metadata

from opbot.store import ChapterRecord, Store, StoreError, Subscriber

__all__ = ["Store", "StoreError", "Subscriber", "ChapterRecord", "__version__"]


def __getattr__(name: str):
    if name == "__version__":
        return _metadata.version("opbot")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
