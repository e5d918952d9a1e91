from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, validates

from dropbin.db import Base


_IMMUTABLE_PASTE_FIELDS = (
    "slug",
    "owner_id",
    "filename",
    "mimetype",
    "storage_path",
    "password_hash",
)


class User(Base):
    """Registered uploader."""

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    nickname: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class Paste(Base):
    """A single uploaded file shared through its public slug."""

    __tablename__ = "pastes"
    __table_args__ = (
        UniqueConstraint("slug", name="uq_pastes_slug"),
        CheckConstraint(
            "max_views IS NULL OR max_views >= 0",
            name="ck_pastes_max_views_non_negative",
        ),
        CheckConstraint(
            "max_downloads IS NULL OR max_downloads >= 0",
            name="ck_pastes_max_downloads_non_negative",
        ),
        CheckConstraint(
            "view_count >= 0",
            name="ck_pastes_view_count_non_negative",
        ),
        CheckConstraint(
            "download_count >= 0",
            name="ck_pastes_download_count_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    slug: Mapped[str] = mapped_column(String(32), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    mimetype: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    max_views: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_downloads: Mapped[int | None] = mapped_column(Integer, nullable=True)
    view_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    download_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    @property
    def is_protected(self) -> bool:
        return bool(self.password_hash)

    @validates(*_IMMUTABLE_PASTE_FIELDS)
    def _validate_immutable(self, key: str, value: str | None) -> str | None:
        """
        Enforce that identity and blob metadata are immutable after creation.

        The values can be set on new instances, but any subsequent attempt to
        change them will raise an error.
        """

        current = self.__dict__.get(key)
        if current is not None and current != value:
            raise ValueError(f"Paste {key} is immutable and cannot be modified.")
        return value
