from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dropbin.observability import get_correlation_id
from dropbin.repositories.user_repository import UserRepository
from dropbin.services.errors import InvalidParameters, PersistenceError


logger = logging.getLogger(__name__)


@dataclass
class UserService:
    """Registers uploaders; registration is idempotent."""

    session_factory: Callable[[], Session]

    def register_user(self, *, user_id: str, email: str, nickname: str) -> bool:
        """
        Create the user unless it already exists.

        Returns True when a row was created, False when ``user_id`` was
        already registered.
        """
        if not user_id or not email or not nickname:
            raise InvalidParameters("user_id, email and nickname are required.")

        session = self.session_factory()
        try:
            repo = UserRepository(session=session)
            if repo.get_user(user_id) is not None:
                return False

            repo.create_user(user_id=user_id, email=email, nickname=nickname)
            session.commit()
        except IntegrityError:
            # Registered concurrently between the lookup and the insert.
            session.rollback()
            return False
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceError("Failed to register user.") from exc
        finally:
            session.close()

        logger.info(
            "User registered",
            extra={
                "event": "user_registered",
                "owner_id": user_id,
                "correlation_id": get_correlation_id(),
            },
        )
        return True
