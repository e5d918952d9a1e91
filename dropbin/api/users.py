from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, request
from pydantic import ValidationError

from dropbin.api.schemas import UserCreateRequest
from dropbin.db import SessionLocal
from dropbin.services.errors import InvalidParameters
from dropbin.services.user_service import UserService

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.route("", methods=["POST"])
def register_user() -> tuple[dict, int]:
    """Register a user unless it already exists."""
    try:
        payload = UserCreateRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        raise InvalidParameters("user_id, email and nickname are required.") from exc

    created = UserService(session_factory=SessionLocal).register_user(
        user_id=payload.user_id,
        email=payload.email,
        nickname=payload.nickname,
    )
    if not created:
        return {"message": "User already exists"}, HTTPStatus.OK
    return {"message": "User created successfully"}, HTTPStatus.CREATED
