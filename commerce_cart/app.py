import logging
import sys
import time
from typing import Optional

from flask import Flask, g, request
from flask_cors import CORS
from flask_pymongo import PyMongo
from pymongo.database import Database
from pymongo.errors import PyMongoError
from werkzeug.middleware.proxy_fix import ProxyFix

from .auth import init_auth
from .config import Settings
from .errors import ConfigurationError, register_error_handlers
from .routes import (
    register_category_routes,
    register_order_routes,
    register_product_routes,
    register_user_routes,
)


def connect_database(app: Flask, settings: Settings) -> Database:
    try:
        mongo = PyMongo(app, uri=settings.connection_string)
        database = mongo.cx[settings.database_name]
        database.command("ping")
    except (PyMongoError, ValueError) as exc:
        raise ConfigurationError(f"Unable to connect to MongoDB: {exc}") from exc

    app.logger.info("MongoDB connected successfully: %s", settings.database_name)
    return database


def configure_logging(app: Flask, settings: Settings) -> None:
    app.logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    @app.before_request
    def start_request_timer():
        g.request_started_at = time.perf_counter()

    @app.after_request
    def log_request(response):
        started_at = g.pop("request_started_at", None)
        elapsed_ms = (time.perf_counter() - started_at) * 1000 if started_at else 0.0
        app.logger.info(
            "%s %s %s %s - %.3f ms",
            request.method,
            request.full_path.rstrip("?"),
            response.status_code,
            response.calculate_content_length() or "-",
            elapsed_ms,
        )
        return response


def create_app(
    settings: Optional[Settings] = None, database: Optional[Database] = None
) -> Flask:
    """Create and configure the Flask application.

    ``database`` lets callers hand in an already connected database; when it
    is omitted the app connects with ``settings.connection_string``.
    """
    if settings is None:
        settings = Settings.from_env()
    settings.validate(require_database=database is None)

    app = Flask(__name__)

    # Honor proxy headers so generated upload URLs keep the public origin.
    if settings.trusted_proxy_hops:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=settings.trusted_proxy_hops,
            x_proto=settings.trusted_proxy_hops,
            x_host=settings.trusted_proxy_hops,
            x_port=settings.trusted_proxy_hops,
        )

    app.config.update(settings.to_flask_config())
    configure_logging(app, settings)

    CORS(app, origins=list(settings.cors_origins) or "*")

    if database is None:
        database = connect_database(app, settings)

    init_auth(app, database)

    register_product_routes(app, database, settings)
    register_category_routes(app, database, settings)
    register_user_routes(app, database, settings)
    register_order_routes(app, database, settings)
    register_error_handlers(app, expose_details=not settings.is_production)

    @app.route("/health")
    def health():
        return {"status": "ok"}, 200

    return app


def main() -> None:
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    try:
        settings = Settings.from_env()
        app = create_app(settings)
    except ConfigurationError as exc:
        logging.getLogger(__name__).error("Startup failed: %s", exc)
        sys.exit(1)

    app.logger.info(
        "Server running in %s mode on port %s", settings.environment, settings.port
    )
    app.run(host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
