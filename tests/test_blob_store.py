from __future__ import annotations

import pytest

from dropbin.storage import BlobNotFoundError, BlobStoreError, LocalBlobStore


def test_put_get_and_delete(blob_store: LocalBlobStore) -> None:
    blob_store.put("uploads/abc-notes.txt", b"payload", "text/plain")

    assert blob_store.get("uploads/abc-notes.txt") == b"payload"

    blob_store.delete("uploads/abc-notes.txt")
    with pytest.raises(BlobNotFoundError):
        blob_store.get("uploads/abc-notes.txt")


def test_deleting_a_missing_blob_is_not_an_error(blob_store: LocalBlobStore) -> None:
    blob_store.delete("uploads/never-written.bin")


@pytest.mark.parametrize("path", ["", "/etc/passwd", "uploads/../../escape.txt"])
def test_paths_cannot_escape_the_root(blob_store: LocalBlobStore, path: str) -> None:
    with pytest.raises(BlobStoreError):
        blob_store.put(path, b"x", "text/plain")


def test_list_skips_temporary_files(blob_store: LocalBlobStore) -> None:
    blob_store.put("uploads/a.txt", b"a", "text/plain")
    blob_store.put("uploads/b.txt", b"bb", "text/plain")
    (blob_store.root / "uploads" / ".c.txt.tmp").write_bytes(b"partial")

    listed = {blob.path: blob.size for blob in blob_store.list("uploads/")}

    assert listed == {"uploads/a.txt": 1, "uploads/b.txt": 2}
