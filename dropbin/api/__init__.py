from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, Flask

from .errors import register_error_handlers
from .pastes import pastes_bp
from .schemas import HealthResponse
from .users import users_bp

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health() -> tuple[dict, int]:
    """Simple health check endpoint."""

    body = HealthResponse().model_dump()
    return body, HTTPStatus.OK


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(health_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(pastes_bp)
    register_error_handlers(app)
