"""
AuthService: registration, login, refresh rotation, logout and validation.

Collaborators are injected:
- store: a UserStore (credential lookups and writes)
- codec: a TokenCodec (JWT issue/verify)
- registry: a RevocationRegistry (revoked tokens)

Token lifecycle: issued -> active -> {blacklisted, expired}. Blacklisted and
expired are both terminal and both mean "reject".
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from models.user import User
from models.user_store import UserStore, normalize_email
from services.errors import AlreadyExists, InvalidCredentials, InvalidToken, NotFound, TokenError
from services.revocation import RevocationRegistry
from utils.security import REFRESH, TokenCodec, burn_password_check, hash_password, verify_password

logger = logging.getLogger(__name__)

TOKEN_TYPE_BEARER = "Bearer"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    user: User
    token_type: str = TOKEN_TYPE_BEARER


def _expiry(claims: dict) -> datetime:
    return datetime.fromtimestamp(claims["exp"], tz=timezone.utc)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class AuthService:

    def __init__(self, store: UserStore, codec: TokenCodec, registry: RevocationRegistry):
        self.store = store
        self.codec = codec
        self.registry = registry

    def register(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone_number: Optional[str] = None,
    ) -> User:
        """Create an active user. Raises AlreadyExists on a taken username or email."""
        username = username.strip()
        email = normalize_email(email)
        logger.info("Attempting to register user: %s", username)

        # usernames and emails share one namespace for login
        if self.store.exists_by_username(username) or self.store.exists_by_email(username):
            logger.warning("Registration failed - username already exists: %s", username)
            raise AlreadyExists("username", username)
        if self.store.exists_by_email(email) or self.store.exists_by_username(email):
            logger.warning("Registration failed - email already exists: %s", email)
            raise AlreadyExists("email", email)

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            phone_number=_clean(phone_number),
            active=True,
        )
        user = self.store.create(user)
        logger.info("User registered successfully: %s (ID: %s)", user.username, user.id)
        return user

    def login(self, identifier: str, password: str) -> TokenPair:
        """Authenticate by username or email.

        Unknown, inactive and wrong-password cases all raise the same
        InvalidCredentials.
        """
        identifier = (identifier or "").strip()
        logger.info("Attempting to authenticate user: %s", identifier)

        user = self.store.find_active_by_identifier(identifier)
        if user is None:
            burn_password_check(password or "")
            logger.warning("Authentication failed for user: %s - unknown or inactive", identifier)
            raise InvalidCredentials()
        if not verify_password(password or "", user.password_hash):
            logger.warning("Authentication failed for user: %s - bad password", identifier)
            raise InvalidCredentials()

        try:
            self.store.update_last_login(user.username)
        except SQLAlchemyError as exc:
            logger.warning("Failed to update last login for user %s: %s", user.username, exc)

        logger.info("User authenticated successfully: %s", user.username)
        return self._issue_pair(user)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair; the presented token is
        blacklisted so it works exactly once."""
        logger.debug("Attempting to refresh token")
        claims = self.codec.decode(refresh_token)
        if claims.get("type") != REFRESH:
            raise InvalidToken("Invalid refresh token type")
        if self.registry.is_blacklisted(refresh_token):
            logger.warning("Rejected reuse of a rotated refresh token for user: %s", claims["sub"])
            raise InvalidToken("Refresh token has been invalidated")

        user = self.store.find_active_by_identifier(claims["sub"])
        if user is None or user.username != claims["sub"]:
            raise InvalidToken("Refresh token subject is not an active user")

        if not self.registry.blacklist(refresh_token, _expiry(claims)):
            # a concurrent refresh consumed it first
            raise InvalidToken("Refresh token has been invalidated")

        logger.info("Token refreshed successfully for user: %s", user.username)
        return self._issue_pair(user)

    def logout(self, token: str) -> bool:
        """Blacklist ``token`` until it expires. Tokens that cannot be decoded
        are ignored; returns whether the token was blacklisted."""
        try:
            claims = self.codec.decode(token)
        except TokenError as exc:
            logger.info("Logout with unusable token ignored: %s", exc.message)
            return False
        self.registry.blacklist(token, _expiry(claims))
        logger.info("User logged out successfully: %s", claims["sub"])
        return True

    def validate(self, token: str) -> bool:
        """True only for a well-signed, unexpired, non-revoked token whose
        subject is still an active user. Never raises."""
        try:
            if not token or self.registry.is_blacklisted(token):
                logger.debug("Token validation failed - missing or blacklisted")
                return False
            claims = self.codec.decode(token)
            user = self.store.find_active_by_identifier(claims["sub"])
            valid = user is not None and user.username == claims["sub"]
            logger.debug("Token validation result for user %s: %s", claims["sub"], valid)
            return valid
        except Exception as exc:
            logger.debug("Token validation failed: %s", exc)
            return False

    def get_current_user(self, identifier: str) -> User:
        logger.debug("Getting current user information for: %s", identifier)
        user = self.store.find_active_by_identifier(identifier)
        if user is None:
            raise NotFound(identifier)
        return user

    def statistics(self) -> dict:
        return {
            "users": {"total": self.store.count(), "active": self.store.count_active()},
            "blacklist": self.registry.statistics(),
        }

    def _issue_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.codec.issue_access(user.username),
            refresh_token=self.codec.issue_refresh(user.username),
            expires_in=int(self.codec.access_ttl.total_seconds()),
            user=user,
        )
