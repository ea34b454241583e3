from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from .config import get_settings_module
from .container import Container, build_container
from .database.bootstrap import apply_schema
from .marking.controller import register as register_marking


def setup_logging(app: Flask, level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("geo_attendance").setLevel(level)
    app.logger.setLevel(level)


def create_app(container: Container | None = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    setup_logging(app, getattr(settings, "LOG_LEVEL", "INFO"))

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        backend = getattr(settings, "STORE_BACKEND", "mysql")
        app.logger.info(
            "settings=%s backend=%s db=%s@%s:%s/%s",
            settings_module,
            backend,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if backend == "mysql" and bool(getattr(settings, "AUTO_INIT_DB", False)):
            schema_path = Path(__file__).resolve().parents[2] / "database" / "schema.sql"
            count = apply_schema(db_config, schema_path=schema_path)
            app.logger.info("schema ready (%d statements)", count)

        container = build_container(
            db_config=db_config,
            backend=backend,
            default_duration_minutes=int(getattr(settings, "DEFAULT_SESSION_MINUTES", 60)),
        )

    app.extensions["geo_attendance"] = container
    register_marking(app, container)

    return app
