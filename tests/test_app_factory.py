from __future__ import annotations

from flask import Flask

from dropbin import create_app
from dropbin.storage import LocalBlobStore, get_blob_store


def test_create_app_returns_flask_instance(tmp_path) -> None:
    app = create_app("testing", {"BLOB_STORAGE_ROOT": str(tmp_path)})
    assert isinstance(app, Flask)
    assert app.config["TESTING"] is True


def test_create_app_attaches_blob_store_under_bucket(tmp_path) -> None:
    app = create_app(
        "testing",
        {"BLOB_STORAGE_ROOT": str(tmp_path), "BLOB_BUCKET": "pastes"},
    )
    with app.app_context():
        store = get_blob_store()
    assert isinstance(store, LocalBlobStore)
    assert store.root == (tmp_path / "pastes").resolve()


def test_health_endpoint_echoes_correlation_id(client) -> None:
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}
    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_unknown_route_returns_json_message(client) -> None:
    response = client.get("/nope")
    assert response.status_code == 404
    assert "message" in response.get_json()
