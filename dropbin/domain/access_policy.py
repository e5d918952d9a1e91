from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .models import Paste


PasswordVerifier = Callable[[str, str], bool]


class AccessKind(str, enum.Enum):
    VIEW = "view"
    DOWNLOAD = "download"
    PREVIEW = "preview"


class DecisionKind(str, enum.Enum):
    ADMITTED = "ADMITTED"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    LIMIT_REACHED = "LIMIT_REACHED"
    PASSWORD_REQUIRED = "PASSWORD_REQUIRED"
    INVALID_PASSWORD = "INVALID_PASSWORD"


class Counter(str, enum.Enum):
    """Counter columns an admitted access may increment."""

    VIEWS = "view_count"
    DOWNLOADS = "download_count"


# (counter to increment, column holding its ceiling) per consuming access.
_CONSUMING_ACCESS: dict[AccessKind, tuple[Counter, str]] = {
    AccessKind.VIEW: (Counter.VIEWS, "max_views"),
    AccessKind.DOWNLOAD: (Counter.DOWNLOADS, "max_downloads"),
}


@dataclass(frozen=True)
class Decision:
    """
    Outcome of evaluating one access attempt.

    ``increment`` names the counter the caller must bump by exactly one when
    applying an admitted decision; ``limit`` names the exhausted access kind
    for ``LIMIT_REACHED``.
    """

    kind: DecisionKind
    access_kind: AccessKind
    increment: Optional[Counter] = None
    limit: Optional[AccessKind] = None
    protected: bool = False

    @property
    def admitted(self) -> bool:
        return self.kind is DecisionKind.ADMITTED


def as_utc(value: datetime) -> datetime:
    """Assume UTC for naive datetimes (SQLite drops the offset)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(paste: Paste, now: Optional[datetime] = None) -> bool:
    """Return True once ``expires_at`` is set and not in the future."""
    if paste.expires_at is None:
        return False
    now_utc = now or datetime.now(timezone.utc)
    return as_utc(paste.expires_at) <= as_utc(now_utc)


def limit_reached(paste: Paste, access_kind: AccessKind) -> bool:
    if access_kind not in _CONSUMING_ACCESS:
        return False
    counter, ceiling_column = _CONSUMING_ACCESS[access_kind]
    ceiling = getattr(paste, ceiling_column)
    return ceiling is not None and getattr(paste, counter.value) >= ceiling


def evaluate(
    paste: Optional[Paste],
    access_kind: AccessKind,
    supplied_password: Optional[str] = None,
    *,
    verify: PasswordVerifier,
    now: Optional[datetime] = None,
) -> Decision:
    """
    Decide whether an access attempt on ``paste`` is permitted.

    Checks run in a fixed order and the first match wins:

    1. missing record → NOT_FOUND
    2. ``expires_at <= now`` → EXPIRED, for every access kind
    3. view/download ceiling consumed → LIMIT_REACHED (preview is exempt)
    4. protected view/download without a password → PASSWORD_REQUIRED,
       with a non-matching one → INVALID_PASSWORD (preview is exempt)
    5. otherwise ADMITTED, carrying the counter to increment

    The record is never modified; applying ``Decision.increment`` is the
    caller's job.
    """

    if paste is None:
        return Decision(kind=DecisionKind.NOT_FOUND, access_kind=access_kind)

    protected = paste.is_protected

    if is_expired(paste, now):
        return Decision(kind=DecisionKind.EXPIRED, access_kind=access_kind)

    if limit_reached(paste, access_kind):
        return Decision(
            kind=DecisionKind.LIMIT_REACHED,
            access_kind=access_kind,
            limit=access_kind,
            protected=protected,
        )

    if protected and access_kind in _CONSUMING_ACCESS:
        if not supplied_password:
            return Decision(
                kind=DecisionKind.PASSWORD_REQUIRED,
                access_kind=access_kind,
                protected=True,
            )
        if not verify(supplied_password, paste.password_hash):
            return Decision(
                kind=DecisionKind.INVALID_PASSWORD,
                access_kind=access_kind,
                protected=True,
            )

    increment = None
    if access_kind in _CONSUMING_ACCESS:
        increment, _ = _CONSUMING_ACCESS[access_kind]

    return Decision(
        kind=DecisionKind.ADMITTED,
        access_kind=access_kind,
        increment=increment,
        protected=protected,
    )
