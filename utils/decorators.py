"""
Request authentication.

authenticate_request() runs before every request (registered with
app.before_request). It never rejects a request itself: it either
establishes g.current_user or leaves the request anonymous, and
login_required() turns "anonymous" into a 401 on routes that need identity.
"""
from __future__ import annotations

import logging
from functools import wraps
from typing import Optional

from flask import current_app, g, request

from services.errors import AuthenticationRequired, TokenError
from utils.security import ACCESS

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
DEFAULT_AUTHORITIES = ["ROLE_USER"]


def bearer_token() -> Optional[str]:
    """Token from the Authorization header, or None."""
    auth = request.headers.get("Authorization", "")
    if not auth.startswith(BEARER_PREFIX):
        return None
    token = auth[len(BEARER_PREFIX):].strip()
    return token or None


def is_public_path(path: str) -> bool:
    prefixes = current_app.config.get("PUBLIC_PATH_PREFIXES", ())
    return any(path.startswith(prefix) for prefix in prefixes)


def authenticate_request():
    g.current_user = None
    g.current_user_authorities = []
    g.current_token = None

    if is_public_path(request.path):
        return None

    token = bearer_token()
    if token is None:
        logger.debug("No bearer token on %s", request.path)
        return None

    auth_service = current_app.extensions["auth_service"]
    try:
        claims = auth_service.codec.decode(token, expected_type=ACCESS)
    except TokenError as exc:
        logger.warning("Rejected bearer token on %s: %s", request.path, exc.message)
        return None

    username = claims["sub"]
    if auth_service.registry.is_blacklisted(token):
        logger.warning("Attempted to use blacklisted token for user: %s", username)
        return None

    user = auth_service.store.find_active_by_identifier(username)
    if user is None or user.username != username:
        logger.warning("Token subject is not an active user: %s", username)
        return None

    g.current_user = user
    g.current_user_authorities = list(DEFAULT_AUTHORITIES)
    g.current_token = token
    logger.debug("Successfully authenticated user: %s", username)
    return None


def login_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if getattr(g, "current_user", None) is None:
                raise AuthenticationRequired()
            return fn(*args, **kwargs)

        return wrapper

    return decorator
