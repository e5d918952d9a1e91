from __future__ import annotations

import base64
import io
from http import HTTPStatus
from typing import Any

from flask import Blueprint, Response, current_app, request, send_file
from pydantic import ValidationError

from dropbin.api.schemas import (
    PasteCreateForm,
    PasteCreatedResponse,
    PasteMetadata,
    PasteSummary,
    describe_validation_error,
)
from dropbin.db import SessionLocal
from dropbin.domain.access_policy import AccessKind
from dropbin.services.errors import InvalidParameters
from dropbin.services.paste_service import PasteService
from dropbin.storage import get_blob_store

pastes_bp = Blueprint("pastes", __name__, url_prefix="/api/pastes")


def _paste_service() -> PasteService:
    return PasteService(session_factory=SessionLocal, blob_store=get_blob_store())


def _backend_url(path: str) -> str:
    return f"{current_app.config['BACKEND_BASE_URL'].rstrip('/')}{path}"


def _public_url(path: str) -> str:
    return f"{current_app.config['PUBLIC_BASE_URL'].rstrip('/')}{path}"


def _serve(dto: dict[str, Any], *, as_attachment: bool) -> Response:
    return send_file(
        io.BytesIO(dto["content"]),
        mimetype=dto["mimetype"],
        as_attachment=as_attachment,
        download_name=dto["filename"],
        max_age=0,
    )


@pastes_bp.route("", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a paste from a multipart upload.

    Field validation is handled by Pydantic; business rules by the service layer.
    """
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise InvalidParameters("user_id, file and expires_in are required.")

    try:
        form = PasteCreateForm.model_validate(request.form.to_dict())
    except ValidationError as exc:
        raise InvalidParameters(describe_validation_error(exc)) from exc

    dto = _paste_service().create_paste(
        owner_id=form.user_id,
        data=upload.read(),
        filename=upload.filename,
        mimetype=upload.mimetype,
        expires_in=form.expires_in,
        password=form.password,
        max_views=form.max_views,
        max_downloads=form.max_downloads,
    )

    body = PasteCreatedResponse(
        url=_backend_url(f"/api/pastes/{dto['slug']}"),
        slug=dto["slug"],
        protected=dto["protected"],
        expires_at=dto["expires_at"],
    )
    return body.model_dump(mode="json"), HTTPStatus.CREATED


@pastes_bp.route("/user/<user_id>", methods=["GET"])
def list_user_pastes(user_id: str) -> tuple[list, int]:
    pastes = _paste_service().list_pastes_for_owner(user_id)
    body = [
        PasteSummary(
            **dto,
            view_url=_public_url(f"/p/{dto['slug']}"),
            download_url=_backend_url(f"/api/pastes/{dto['slug']}/download"),
        ).model_dump(mode="json")
        for dto in pastes
    ]
    return body, HTTPStatus.OK


@pastes_bp.route("/<slug>", methods=["GET"])
def view_paste(slug: str) -> Response:
    dto = _paste_service().access_paste(
        slug,
        AccessKind.VIEW,
        password=request.args.get("password"),
    )
    return _serve(dto, as_attachment=False)


@pastes_bp.route("/<slug>/download", methods=["GET"])
def download_paste(slug: str) -> Response:
    dto = _paste_service().access_paste(
        slug,
        AccessKind.DOWNLOAD,
        password=request.args.get("password"),
    )
    return _serve(dto, as_attachment=True)


@pastes_bp.route("/<slug>/preview", methods=["GET"])
def preview_paste(slug: str) -> tuple[dict, int]:
    """Metadata plus the base64 body; counters are never touched."""
    preview = _paste_service().preview_paste(slug)
    metadata = PasteMetadata(**preview["metadata"])
    content = preview["content"]

    body = {
        "metadata": metadata.model_dump(mode="json"),
        "file": base64.b64encode(content).decode("ascii"),
        "mimetype": metadata.mimetype,
    }
    return body, HTTPStatus.OK


@pastes_bp.route("/<slug>", methods=["DELETE"])
def delete_paste(slug: str) -> tuple[dict, int]:
    """Remove the stored file, then its record."""
    result = _paste_service().delete_paste(slug)
    return {"message": result["message"]}, HTTPStatus.OK
