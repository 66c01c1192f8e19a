"""
Environment-aware configuration.
Secrets, token lifetimes, revocation settings and CORS all come from the
environment (or a local .env). The database URL is handled by DBStorage.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEV_JWT_SECRET = "dev-secret-change-me-dev-secret-change-me-dev-secret-change-me!!"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # JWT: HMAC only, secret must be at least 256 bits
    JWT_SECRET = os.getenv("JWT_SECRET", DEV_JWT_SECRET)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS512")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "86400")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", "604800")))

    # Revocation registry: "memory" (single node) or "database" (shared table)
    REVOCATION_BACKEND = os.getenv("REVOCATION_BACKEND", "memory")
    REVOCATION_SWEEP_ENABLED = _env_bool("REVOCATION_SWEEP_ENABLED", "true")
    REVOCATION_SWEEP_INTERVAL_SECONDS = int(os.getenv("REVOCATION_SWEEP_INTERVAL_SECONDS", "3600"))

    # Requests under these prefixes never go through token authentication
    PUBLIC_PATH_PREFIXES = (
        "/api/v1/auth/register",
        "/api/v1/auth/login",
        "/api/v1/auth/health",
        "/api/v1/health",
        "/apidocs",
        "/apispec",
        "/flasgger_static",
    )


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "test"
    JWT_SECRET = os.getenv("JWT_SECRET", "test-secret-" + "x" * 64)
    ACCESS_TOKEN_EXPIRES = timedelta(minutes=15)
    REFRESH_TOKEN_EXPIRES = timedelta(hours=1)
    REVOCATION_BACKEND = "memory"
    REVOCATION_SWEEP_ENABLED = False


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        if ProductionConfig.JWT_SECRET == DEV_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be set in production")
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
