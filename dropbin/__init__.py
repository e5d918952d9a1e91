from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from flask import Flask
from flask_cors import CORS

from .api import register_blueprints
from .config import get_config
from .db import init_db
from .observability import init_observability
from .storage import init_storage
from .worker.orphan_sweeper import start_orphan_sweeper


def create_app(
    env_name: str | None = None,
    config_overrides: Mapping[str, Any] | None = None,
) -> Flask:
    """
    Application factory for the Flask backend.

    The configuration is selected based on the provided ``env_name`` or,
    if not given, the ``APP_ENV`` environment variable (falling back to
    ``development``). ``config_overrides`` is applied last.
    """
    if env_name is None:
        env_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app_config = get_config(env_name)
    app.config.from_object(app_config)
    if config_overrides:
        app.config.update(config_overrides)

    CORS(
        app
    )

    # Initialize infrastructure layers
    init_db(app)
    init_storage(app)
    init_observability(app)

    # Register API blueprints and JSON error handlers
    register_blueprints(app)

    # Start background orphan sweeper (disabled in testing)
    if not app.config.get("TESTING", False):
        start_orphan_sweeper(app)

    return app
