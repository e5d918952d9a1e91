from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import Delete, Select, Update, delete, or_, select, update
from sqlalchemy.orm import Session

from dropbin.domain.access_policy import Counter
from dropbin.domain.models import Paste
from dropbin.observability import get_correlation_id


logger = logging.getLogger(__name__)

_CEILING_BY_COUNTER = {
    Counter.VIEWS: Paste.max_views,
    Counter.DOWNLOADS: Paste.max_downloads,
}


class PasteRepository:
    """
    Repository for Paste records.

    All database interaction for Paste should go through this class.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def create_paste(
        self,
        *,
        slug: str,
        owner_id: str,
        filename: str,
        mimetype: str,
        storage_path: str,
        created_at: datetime,
        expires_at: Optional[datetime] = None,
        password_hash: Optional[str] = None,
        max_views: Optional[int] = None,
        max_downloads: Optional[int] = None,
    ) -> Paste:
        """Create and persist a new Paste with both counters at zero."""

        paste = Paste(
            slug=slug,
            owner_id=owner_id,
            filename=filename,
            mimetype=mimetype,
            storage_path=storage_path,
            password_hash=password_hash,
            created_at=created_at,
            expires_at=expires_at,
            max_views=max_views,
            max_downloads=max_downloads,
            view_count=0,
            download_count=0,
        )
        self._session.add(paste)
        # Flush so that generated primary key and defaults are populated.
        self._session.flush()
        return paste

    def get_paste_by_slug(self, slug: str) -> Optional[Paste]:
        """Return a Paste by its slug, or ``None`` if not found."""

        stmt: Select[tuple[Paste]] = select(Paste).where(Paste.slug == slug)
        return self._session.execute(stmt).scalar_one_or_none()

    def list_pastes_by_owner(self, owner_id: str) -> list[Paste]:
        """Return every Paste of ``owner_id``, newest first."""

        stmt: Select[tuple[Paste]] = (
            select(Paste)
            .where(Paste.owner_id == owner_id)
            .order_by(Paste.created_at.desc())
        )
        return list(self._session.execute(stmt).scalars().all())

    def list_storage_paths(self) -> set[str]:
        stmt = select(Paste.storage_path)
        return set(self._session.execute(stmt).scalars().all())

    def increment_counter_atomic(self, slug: str, counter: Counter) -> Optional[int]:
        """
        Atomically increment ``counter`` for a Paste while its ceiling allows.

        Issues ``SET col = col + 1 WHERE col < ceiling`` so concurrent
        admitted accesses cannot push the counter past the ceiling.
        Returns the new value, or ``None`` when no row matched (paste gone
        or ceiling already consumed).
        """

        column = getattr(Paste, counter.value)
        ceiling = _CEILING_BY_COUNTER[counter]

        stmt: Update = (
            update(Paste)
            .where(
                Paste.slug == slug,
                or_(ceiling.is_(None), column < ceiling),
            )
            .values({counter.value: column + 1})
            .returning(column)
            .execution_options(synchronize_session="fetch")
        )
        row = self._session.execute(stmt).one_or_none()
        if row is None:
            return None

        (new_count,) = row
        logger.info(
            "Paste counter incremented",
            extra={
                "event": "paste_counter_incremented",
                "slug": slug,
                "correlation_id": get_correlation_id(),
            },
        )
        return int(new_count)

    def delete_paste_by_slug(self, slug: str) -> bool:
        """Delete the Paste row. Returns False when nothing was deleted."""

        stmt: Delete = (
            delete(Paste)
            .where(Paste.slug == slug)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        # Caller is responsible for committing.
        return bool(result.rowcount)
