from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dropbin.domain.models import Paste


def _paste(slug: str = "immutable1") -> Paste:
    return Paste(
        slug=slug,
        owner_id="user-1",
        filename="a.txt",
        mimetype="text/plain",
        storage_path=f"uploads/{slug}-a.txt",
        created_at=datetime.now(timezone.utc),
    )


def test_paste_identity_is_immutable(session: Session) -> None:
    paste = _paste()
    session.add(paste)
    session.flush()

    with pytest.raises(ValueError):
        paste.slug = "changed"
    with pytest.raises(ValueError):
        paste.storage_path = "uploads/elsewhere"


def test_counters_default_to_zero(session: Session) -> None:
    paste = _paste()
    session.add(paste)
    session.flush()

    assert paste.view_count == 0
    assert paste.download_count == 0
    assert paste.is_protected is False


def test_slug_is_unique(session: Session) -> None:
    session.add(_paste("same-slug"))
    session.flush()
    session.add(_paste("same-slug"))

    with pytest.raises(IntegrityError):
        session.flush()


def test_slug_constraint_matches_migration_name() -> None:
    names = {constraint.name for constraint in Paste.__table__.constraints}

    assert "uq_pastes_slug" in names
    assert Paste.__table__.c.slug.unique is not True
