import atexit
import logging
import sys

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from models.user_store import UserStore
from services.auth_service import AuthService
from services.revocation import RevocationSweeper, create_registry
from utils.decorators import authenticate_request
from utils.security import TokenCodec

# Minimal Swagger config: exposes /apispec_1.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Auth Service API",
        "version": "1.0.0",
        "description": "Registration, login, JWT refresh rotation, logout and token validation.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/apispec_1.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )


def create_app(config_name: str | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app and wires the
    auth service (user store, token codec, revocation registry).
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    configure_logging(app.config["LOG_LEVEL"])

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    registry = create_registry(app.config["REVOCATION_BACKEND"], storage)
    app.extensions["auth_service"] = AuthService(
        store=UserStore(storage),
        codec=TokenCodec.from_config(app.config),
        registry=registry,
    )

    if app.config["REVOCATION_SWEEP_ENABLED"]:
        sweeper = RevocationSweeper(registry, app.config["REVOCATION_SWEEP_INTERVAL_SECONDS"])
        sweeper.start()
        atexit.register(sweeper.shutdown, wait=False)
        app.extensions["revocation_sweeper"] = sweeper

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    # Token authentication runs before every route
    app.before_request(authenticate_request)

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Auth Service API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
