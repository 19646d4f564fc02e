import logging
from typing import Any

from flask import Flask
from werkzeug.exceptions import HTTPException

from .blueprints_registry import register_blueprints
from .config import ENV_DIAGNOSTICS
from .extensions import limiter
from .logging_config import configure_logging
from .utils.api_responses import APIResponse

logger = logging.getLogger(__name__)


def create_app(config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    _load_base_config(app, config)
    _configure_rate_limiter(app)

    register_blueprints(app)
    _add_core_routes(app)
    configure_logging(app)
    _install_json_error_handlers(app)

    from .management import register_commands

    register_commands(app)

    return app


def _load_base_config(app: Flask, config: dict[str, Any] | None) -> None:
    app.config.from_object("cellartrack.config.Config")
    if config:
        app.config.update(config)
    app.config["ENV_DIAGNOSTICS"] = ENV_DIAGNOSTICS
    for warning in ENV_DIAGNOSTICS.get("warnings", ()):
        logger.warning("Environment configuration warning: %s", warning)


def _configure_rate_limiter(app: Flask) -> None:
    storage_uri = (
        app.config.get("RATELIMIT_STORAGE_URI")
        or app.config.get("RATELIMIT_STORAGE_URL")
        or "memory://"
    )
    app.config["RATELIMIT_STORAGE_URI"] = storage_uri
    limiter.init_app(app)

    if app.config.get("ENV") == "production" and storage_uri.startswith("memory"):
        logger.warning("Rate limiter is using in-process memory storage in production.")


def _add_core_routes(app: Flask) -> None:
    @app.route("/health")
    def health():
        return APIResponse.success({"environment": ENV_DIAGNOSTICS.get("active")}, message="ok")


def _install_json_error_handlers(app: Flask) -> None:
    """Return the standard JSON envelope for HTTP errors."""

    @app.errorhandler(HTTPException)
    def _http_error_handler(err: HTTPException):
        return APIResponse.error(err.description or err.name, status_code=err.code or 500)

    @app.errorhandler(500)
    def _internal_error_handler(err):
        app.logger.error("Unhandled server error: %s", err)
        return APIResponse.error("Internal server error", status_code=500)
