from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import NoReturn

from flask import Flask
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dropbin.db import SessionLocal
from dropbin.repositories.paste_repository import PasteRepository
from dropbin.storage import BlobStore, BlobStoreError, get_blob_store


logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "uploads/"

_worker_started = False
_worker_lock = threading.Lock()


def sweep_orphaned_blobs(
    session: Session,
    blob_store: BlobStore,
    *,
    grace: timedelta,
    now: datetime | None = None,
) -> list[str]:
    """
    Delete blobs that no paste references and that are older than ``grace``.

    The grace period covers uploads whose row has not been inserted yet.
    Returns the deleted storage paths.
    """

    now_utc = now or datetime.now(timezone.utc)
    referenced = PasteRepository(session=session).list_storage_paths()

    deleted: list[str] = []
    for blob in blob_store.list(UPLOAD_PREFIX):
        if blob.path in referenced or now_utc - blob.modified_at < grace:
            continue
        blob_store.delete(blob.path)
        deleted.append(blob.path)
        logger.info(
            "Orphan sweeper: deleted unreferenced blob",
            extra={
                "event": "orphan_blob_deleted",
                "storage_path": blob.path,
                "correlation_id": "orphan-sweeper",
            },
        )
    return deleted


def _sweep_loop(app: Flask) -> NoReturn:
    """Background loop that periodically removes orphaned blobs."""

    interval = float(app.config["ORPHAN_SWEEP_INTERVAL_SECONDS"])
    grace = timedelta(seconds=float(app.config["ORPHAN_GRACE_SECONDS"]))

    with app.app_context():
        blob_store = get_blob_store()
        while True:
            session = SessionLocal()
            try:
                # Without the table every blob would look orphaned.
                if not inspect(session.get_bind()).has_table("pastes"):
                    logger.info(
                        "Orphan sweeper: 'pastes' table not found; skipping cycle",
                        extra={
                            "event": "orphan_sweeper_no_table",
                            "correlation_id": "orphan-sweeper",
                        },
                    )
                else:
                    sweep_orphaned_blobs(session, blob_store, grace=grace)
                session.rollback()
            except (SQLAlchemyError, BlobStoreError) as exc:
                session.rollback()
                logger.warning(
                    "Orphan sweeper: cycle failed; retrying next interval",
                    extra={
                        "event": "orphan_sweeper_error",
                        "error_type": type(exc).__name__,
                        "correlation_id": "orphan-sweeper",
                    },
                )
            except Exception:  # pragma: no cover - keep the thread alive
                session.rollback()
                logger.exception(
                    "Error in orphan sweeper loop",
                    extra={
                        "event": "orphan_sweeper_error",
                        "correlation_id": "orphan-sweeper",
                    },
                )
            finally:
                SessionLocal.remove()

            time.sleep(interval)


def start_orphan_sweeper(app: Flask) -> None:
    """
    Start the orphan sweeper in a background thread.

    This function is idempotent and will only start a single worker thread.
    """

    global _worker_started
    with _worker_lock:
        if _worker_started:
            return

        thread = threading.Thread(
            target=_sweep_loop,
            args=(app,),
            name="orphan-sweeper",
            daemon=True,
        )
        thread.start()
        _worker_started = True
