from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask
from werkzeug.exceptions import HTTPException

from dropbin.observability import get_correlation_id
from dropbin.services.errors import (
    InvalidParameters,
    InvalidPasswordError,
    PasswordRequiredError,
    PasteExpiredError,
    PasteLimitReachedError,
    PasteNotFoundError,
    PasteOwnershipError,
    PersistenceError,
    ServiceError,
    StorageError,
)


logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[ServiceError], HTTPStatus] = {
    InvalidParameters: HTTPStatus.BAD_REQUEST,
    PasteNotFoundError: HTTPStatus.NOT_FOUND,
    PasteExpiredError: HTTPStatus.GONE,
    PasteLimitReachedError: HTTPStatus.FORBIDDEN,
    PasswordRequiredError: HTTPStatus.UNAUTHORIZED,
    InvalidPasswordError: HTTPStatus.FORBIDDEN,
    PasteOwnershipError: HTTPStatus.FORBIDDEN,
    StorageError: HTTPStatus.INTERNAL_SERVER_ERROR,
    PersistenceError: HTTPStatus.INTERNAL_SERVER_ERROR,
}


def status_for(exc: ServiceError) -> HTTPStatus:
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return HTTPStatus.INTERNAL_SERVER_ERROR


def error_body(exc: ServiceError) -> dict[str, Any]:
    body: dict[str, Any] = {"message": str(exc)}
    if isinstance(exc, PasteLimitReachedError):
        body["type"] = f"{exc.limit.value}_limit"
    elif isinstance(exc, InvalidPasswordError):
        body["type"] = "invalid_password"
    elif isinstance(exc, PasswordRequiredError):
        body["protected"] = True
    return body


def register_error_handlers(app: Flask) -> None:
    """Render every failure as JSON with a ``message``."""

    @app.errorhandler(ServiceError)
    def _handle_service_error(exc: ServiceError):  # type: ignore[unused-variable]
        status = status_for(exc)
        log = logger.error if status >= HTTPStatus.INTERNAL_SERVER_ERROR else logger.info
        log(
            "Request failed: %s",
            exc,
            extra={
                "event": "request_failed",
                "status_code": int(status),
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
        return error_body(exc), status

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):  # type: ignore[unused-variable]
        return {"message": exc.description}, exc.code

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):  # type: ignore[unused-variable]
        logger.exception(
            "Unhandled error",
            extra={
                "event": "unhandled_error",
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
        return {"message": "Internal server error"}, HTTPStatus.INTERNAL_SERVER_ERROR
