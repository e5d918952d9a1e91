from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dropbin.config import MAX_UPLOAD_BYTES
from dropbin.domain.access_policy import (
    AccessKind,
    Decision,
    DecisionKind,
    PasswordVerifier,
    evaluate,
    is_expired,
)
from dropbin.domain.models import Paste
from dropbin.observability import get_correlation_id
from dropbin.repositories.paste_repository import PasteRepository
from dropbin.services.errors import (
    InvalidParameters,
    InvalidPasswordError,
    PasswordRequiredError,
    PasteExpiredError,
    PasteLimitReachedError,
    PasteNotFoundError,
    PasteOwnershipError,
    PersistenceError,
    StorageError,
)
from dropbin.services.helpers import (
    build_storage_path,
    generate_slug,
    hash_password,
    verify_password,
)
from dropbin.storage import BlobStore, BlobStoreError


logger = logging.getLogger(__name__)

DEFAULT_MIMETYPE = "application/octet-stream"

_LIMIT_MESSAGES = {
    AccessKind.VIEW: "Maximum view limit reached",
    AccessKind.DOWNLOAD: "Maximum download limit reached",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _paste_to_dto(paste: Paste, now: datetime) -> dict[str, Any]:
    """Convert a Paste ORM entity to a plain dict DTO."""
    return {
        "slug": paste.slug,
        "owner_id": paste.owner_id,
        "filename": paste.filename,
        "mimetype": paste.mimetype,
        "created_at": paste.created_at,
        "expires_at": paste.expires_at,
        "expired": is_expired(paste, now),
        "view_count": paste.view_count,
        "download_count": paste.download_count,
        "max_views": paste.max_views,
        "max_downloads": paste.max_downloads,
        "password_protected": paste.is_protected,
    }


def _admitted_paste(
    decision: Decision, paste: Optional[Paste], slug: str
) -> Paste:
    """Return the paste of an admitted decision, else raise its service error."""

    if decision.admitted and paste is not None:
        return paste
    if paste is None or decision.kind is DecisionKind.NOT_FOUND:
        raise PasteNotFoundError(f"Paste {slug} not found.")
    if decision.kind is DecisionKind.EXPIRED:
        raise PasteExpiredError("This paste has expired.")
    if decision.kind is DecisionKind.LIMIT_REACHED:
        limit = decision.limit or decision.access_kind
        raise PasteLimitReachedError(_LIMIT_MESSAGES[limit], limit=limit)
    if decision.kind is DecisionKind.PASSWORD_REQUIRED:
        raise PasswordRequiredError("Password required.")
    if decision.kind is DecisionKind.INVALID_PASSWORD:
        raise InvalidPasswordError("Invalid password.")
    raise RuntimeError(f"Unhandled access decision {decision.kind!r}")  # pragma: no cover


def _validate_expires_in(expires_in: Any) -> float:
    if isinstance(expires_in, bool):
        raise InvalidParameters("expires_in must be a positive number (minutes).")
    try:
        minutes = float(expires_in)
    except (TypeError, ValueError) as exc:
        raise InvalidParameters(
            "expires_in must be a positive number (minutes)."
        ) from exc
    if not math.isfinite(minutes) or minutes <= 0:
        raise InvalidParameters("expires_in must be a positive number (minutes).")
    return minutes


def _validate_limit(name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidParameters(f"{name} must be a non-negative integer.")
    return value


@dataclass
class PasteService:
    """
    Application service coordinating the paste lifecycle.

    Owns session lifecycle: creates a session per use case, commits on success,
    rolls back on exception, and closes the session in a finally block.
    Access decisions come from ``access_policy.evaluate``; this class only
    applies the counter instructions they carry. Returns plain dict DTOs; no
    ORM entities escape this layer.
    """

    session_factory: Callable[[], Session]
    blob_store: BlobStore
    password_hasher: Callable[[str], str] = hash_password
    password_verifier: PasswordVerifier = verify_password
    clock: Callable[[], datetime] = _utcnow
    slug_factory: Callable[[], str] = generate_slug

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception(
                "Metadata store failure",
                extra={
                    "event": "paste_persistence_error",
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise PersistenceError("Metadata store operation failed.") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _read_blob(self, paste: Paste) -> bytes:
        try:
            return self.blob_store.get(paste.storage_path)
        except BlobStoreError as exc:
            logger.error(
                "Failed to read paste blob",
                extra={
                    "event": "paste_blob_read_failed",
                    "slug": paste.slug,
                    "storage_path": paste.storage_path,
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise StorageError("Failed to read file from storage.") from exc

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def create_paste(
        self,
        *,
        owner_id: str,
        data: Optional[bytes],
        filename: Optional[str],
        mimetype: Optional[str],
        expires_in: Any,
        password: Optional[str] = None,
        max_views: Optional[int] = None,
        max_downloads: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Store a new paste and its blob.

        - ``owner_id``, the file and ``expires_in`` are required
        - ``expires_in`` is a finite number of minutes > 0
        - ``max_views`` / ``max_downloads`` (if provided) are integers >= 0
        - the file is at most 10 MiB

        The blob is uploaded before the row is inserted: a failed insert
        leaves an orphaned blob for the sweeper, never a row without a blob.
        """
        if not owner_id or data is None or not filename or expires_in is None:
            logger.warning(
                "Missing fields when creating paste",
                extra={
                    "event": "paste_create_invalid_parameters",
                    "correlation_id": get_correlation_id(),
                },
            )
            raise InvalidParameters("user_id, file and expires_in are required.")

        minutes = _validate_expires_in(expires_in)
        max_views = _validate_limit("max_views", max_views)
        max_downloads = _validate_limit("max_downloads", max_downloads)

        if len(data) > MAX_UPLOAD_BYTES:
            raise InvalidParameters(
                f"file must be at most {MAX_UPLOAD_BYTES} bytes."
            )

        now = self.clock()
        try:
            expires_at = now + timedelta(minutes=minutes)
        except OverflowError as exc:
            raise InvalidParameters("expires_in is too large.") from exc

        slug = self.slug_factory()
        storage_path = build_storage_path(slug, filename)
        mimetype = mimetype or DEFAULT_MIMETYPE

        try:
            self.blob_store.put(storage_path, data, mimetype)
        except BlobStoreError as exc:
            logger.error(
                "Failed to upload paste blob",
                extra={
                    "event": "paste_blob_upload_failed",
                    "slug": slug,
                    "storage_path": storage_path,
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise StorageError("Failed to upload file to storage.") from exc

        password_hash = None
        if password and password.strip():
            password_hash = self.password_hasher(password)

        try:
            with self._session_scope() as session:
                paste = PasteRepository(session=session).create_paste(
                    slug=slug,
                    owner_id=owner_id,
                    filename=filename,
                    mimetype=mimetype,
                    storage_path=storage_path,
                    created_at=now,
                    expires_at=expires_at,
                    password_hash=password_hash,
                    max_views=max_views,
                    max_downloads=max_downloads,
                )
                dto = _paste_to_dto(paste, now)
                session.commit()
        except PersistenceError:
            logger.warning(
                "Paste row not stored; blob left for the orphan sweeper",
                extra={
                    "event": "paste_create_orphaned_blob",
                    "slug": slug,
                    "storage_path": storage_path,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise

        logger.info(
            "Paste created",
            extra={
                "event": "paste_created",
                "slug": slug,
                "owner_id": owner_id,
                "correlation_id": get_correlation_id(),
            },
        )
        return {**dto, "protected": password_hash is not None}

    # -------------------------------------------------------------------------
    # Retrieval / viewing
    # -------------------------------------------------------------------------
    def access_paste(
        self,
        slug: str,
        access_kind: AccessKind,
        *,
        password: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Serve the bytes of a paste for a view or a download.

        The policy decides first; an admitted decision's counter increment is
        applied as a guarded atomic update, and only then is the blob read.
        A failed read rolls the increment back.
        """
        if access_kind not in (AccessKind.VIEW, AccessKind.DOWNLOAD):
            raise ValueError(f"access_paste does not serve {access_kind.value!r}")

        with self._session_scope() as session:
            repo = PasteRepository(session=session)
            paste = repo.get_paste_by_slug(slug)

            now = self.clock()
            decision = evaluate(
                paste,
                access_kind,
                password,
                verify=self.password_verifier,
                now=now,
            )
            logger.info(
                "Paste access decision",
                extra={
                    "event": "paste_access_decision",
                    "slug": slug,
                    "access_kind": access_kind.value,
                    "decision": decision.kind.value,
                    "correlation_id": get_correlation_id(),
                },
            )
            paste = _admitted_paste(decision, paste, slug)

            dto = _paste_to_dto(paste, now)
            if decision.increment is not None:
                new_count = repo.increment_counter_atomic(slug, decision.increment)
                if new_count is None:
                    # Ceiling consumed by a concurrent access since the read.
                    raise PasteLimitReachedError(
                        _LIMIT_MESSAGES[access_kind], limit=access_kind
                    )
                dto[decision.increment.value] = new_count

            content = self._read_blob(paste)
            session.commit()

        return {**dto, "content": content}

    def preview_paste(self, slug: str) -> dict[str, Any]:
        """
        Return metadata and bytes without touching any counter.

        Preview never asks for a password; protected pastes report
        ``password_protected`` in the metadata.
        """
        with self._session_scope() as session:
            paste = PasteRepository(session=session).get_paste_by_slug(slug)

            now = self.clock()
            decision = evaluate(
                paste,
                AccessKind.PREVIEW,
                verify=self.password_verifier,
                now=now,
            )
            paste = _admitted_paste(decision, paste, slug)
            content = self._read_blob(paste)
            return {"metadata": _paste_to_dto(paste, now), "content": content}

    def list_pastes_for_owner(self, owner_id: str) -> list[dict[str, Any]]:
        """Return the owner's pastes newest first, flagged with ``expired``."""
        if not owner_id:
            raise InvalidParameters("user_id is required.")

        with self._session_scope() as session:
            pastes = PasteRepository(session=session).list_pastes_by_owner(owner_id)
            now = self.clock()
            return [_paste_to_dto(paste, now) for paste in pastes]

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------
    def delete_paste(
        self,
        slug: str,
        *,
        requested_by: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Delete the blob, then the row.

        A failed blob delete leaves the row untouched. A failed row delete
        after the blob is gone leaves a stale row; it is logged as
        ``paste_delete_stale_record`` for reconciliation.
        """
        with self._session_scope() as session:
            repo = PasteRepository(session=session)
            paste = repo.get_paste_by_slug(slug)
            if paste is None:
                raise PasteNotFoundError(f"Paste {slug} not found.")

            if requested_by is not None and requested_by != paste.owner_id:
                raise PasteOwnershipError(f"Paste {slug} is not owned by the requester.")

            storage_path = paste.storage_path
            try:
                self.blob_store.delete(storage_path)
            except BlobStoreError as exc:
                logger.error(
                    "Failed to delete paste blob",
                    extra={
                        "event": "paste_blob_delete_failed",
                        "slug": slug,
                        "storage_path": storage_path,
                        "error_type": type(exc).__name__,
                        "correlation_id": get_correlation_id(),
                    },
                )
                raise StorageError("Failed to delete file from storage.") from exc

            try:
                repo.delete_paste_by_slug(slug)
                session.commit()
            except SQLAlchemyError as exc:
                logger.error(
                    "Blob deleted but paste row remains",
                    extra={
                        "event": "paste_delete_stale_record",
                        "slug": slug,
                        "storage_path": storage_path,
                        "error_type": type(exc).__name__,
                        "correlation_id": get_correlation_id(),
                    },
                )
                raise PersistenceError("Failed to delete metadata.") from exc

        logger.info(
            "Paste deleted",
            extra={
                "event": "paste_deleted",
                "slug": slug,
                "correlation_id": get_correlation_id(),
            },
        )
        return {"slug": slug, "message": "File deleted successfully"}
