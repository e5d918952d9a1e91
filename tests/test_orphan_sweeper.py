from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from dropbin.services.paste_service import PasteService
from dropbin.storage import BlobNotFoundError, LocalBlobStore
from dropbin.worker.orphan_sweeper import sweep_orphaned_blobs



def _age(blob_store: LocalBlobStore, path: str, age: timedelta) -> None:
    target = blob_store.root / path
    stamp = (datetime.now(timezone.utc) - age).timestamp()
    os.utime(target, (stamp, stamp))


def test_sweeper_deletes_only_old_unreferenced_blobs(
    session: Session,
    paste_service: PasteService,
    blob_store: LocalBlobStore,
) -> None:
    dto = paste_service.create_paste(
        owner_id="user-1",
        data=b"kept",
        filename="kept.txt",
        mimetype="text/plain",
        expires_in=60,
    )
    referenced = f"uploads/{dto['slug']}-kept.txt"
    blob_store.put("uploads/orphan-old.txt", b"old", "text/plain")
    blob_store.put("uploads/orphan-new.txt", b"new", "text/plain")

    _age(blob_store, referenced, timedelta(days=2))
    _age(blob_store, "uploads/orphan-old.txt", timedelta(days=2))

    deleted = sweep_orphaned_blobs(session, blob_store, grace=timedelta(hours=1))

    assert deleted == ["uploads/orphan-old.txt"]
    assert blob_store.get(referenced) == b"kept"
    assert blob_store.get("uploads/orphan-new.txt") == b"new"
    with pytest.raises(BlobNotFoundError):
        blob_store.get("uploads/orphan-old.txt")


def test_sweeper_on_empty_store_is_a_no_op(session: Session, blob_store: LocalBlobStore) -> None:
    assert sweep_orphaned_blobs(session, blob_store, grace=timedelta(0)) == []
