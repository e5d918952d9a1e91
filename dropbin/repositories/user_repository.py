from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from dropbin.domain.models import User


class UserRepository:
    """Repository for User rows."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_user(self, user_id: str) -> Optional[User]:
        return self._session.get(User, user_id)

    def create_user(self, *, user_id: str, email: str, nickname: str) -> User:
        user = User(user_id=user_id, email=email, nickname=nickname)
        self._session.add(user)
        self._session.flush()
        return user
