from typing import Any

from dotenv import load_dotenv
from flask import Flask
from sqlalchemy import text
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import get_config
from .extensions import db, migrate
from .logging import get_logger


def create_app(config_name: str | None = None, **overrides: Any) -> Flask:
    """Application factory.

    ``overrides`` replace collaborators of the service graph (identity,
    hirings, notifications clients and the clock), mainly for tests.
    """
    app = Flask(__name__)

    # Load config
    # Ensure .env is loaded before reading env vars
    load_dotenv()
    app.config.from_object(get_config(config_name))

    logger = get_logger("disputes", app.config.get("LOG_LEVEL"))

    # Honor proxy headers from Nginx for correct url_for(_external=True) scheme/host
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)  # type: ignore[assignment]

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)

    from . import models  # noqa: F401  register tables for migrations
    from .services import init_services
    init_services(app, **overrides)

    # Register blueprints (v1 API)
    from .apis.v1 import register_api
    register_api(app)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/db-check")
    def db_check():
        try:
            db.session.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as e:
            logger.error("Database check failed: %s", e)
            return {"db": "error", "message": str(e)}, 500

    logger.info("Disputes service created (testing=%s)", app.config.get("TESTING"))
    return app
