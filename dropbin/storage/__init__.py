from __future__ import annotations

from pathlib import Path

from flask import Flask, current_app

from .blob_store import (
    BlobInfo,
    BlobNotFoundError,
    BlobStore,
    BlobStoreError,
    LocalBlobStore,
)

__all__ = [
    "BlobInfo",
    "BlobNotFoundError",
    "BlobStore",
    "BlobStoreError",
    "LocalBlobStore",
    "get_blob_store",
    "init_storage",
]

_EXTENSION_KEY = "dropbin.blob_store"


def init_storage(app: Flask, blob_store: BlobStore | None = None) -> None:
    """
    Attach the blob store to the app.

    Defaults to a ``LocalBlobStore`` rooted at
    ``BLOB_STORAGE_ROOT/BLOB_BUCKET``.
    """
    if blob_store is None:
        root = Path(app.config["BLOB_STORAGE_ROOT"]) / app.config["BLOB_BUCKET"]
        blob_store = LocalBlobStore(root)
    app.extensions[_EXTENSION_KEY] = blob_store


def get_blob_store() -> BlobStore:
    """Return the blob store of the current app."""
    return current_app.extensions[_EXTENSION_KEY]
