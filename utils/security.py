"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT issuance/verification via PyJWT (TokenCodec)
- JTI generation for token identifiers
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from services.errors import InvalidToken, TokenExpired

logger = logging.getLogger(__name__)

ph = PasswordHasher()

ACCESS = "access"
REFRESH = "refresh"
TOKEN_TYPES = (ACCESS, REFRESH)

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")
MIN_SECRET_BYTES = 32

_dummy_hash: Optional[str] = None


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def burn_password_check(password: str) -> None:
    """Run a verification against a throwaway hash.

    Used when the user does not exist so a failed login costs the same as a
    wrong password.
    """
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = ph.hash(uuid.uuid4().hex)
    verify_password(password, _dummy_hash)


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Issues and verifies compact HMAC-signed JWTs.

    Every token carries ``sub``, ``type`` (access|refresh), ``iat``, ``exp``
    and a random ``jti``. The ``type`` claim lives inside the signed payload
    so one key serves both token kinds without letting one pass for the other.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS512",
        access_ttl: timedelta = timedelta(days=1),
        refresh_ttl: timedelta = timedelta(days=7),
        leeway: int = 0,
    ):
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported JWT algorithm {algorithm!r}; expected one of {HMAC_ALGORITHMS}")
        if not secret or len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(f"JWT secret must be at least {MIN_SECRET_BYTES} bytes")
        self.secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.leeway = leeway

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TokenCodec":
        return cls(
            secret=config["JWT_SECRET"],
            algorithm=config.get("JWT_ALGORITHM", "HS512"),
            access_ttl=config["ACCESS_TOKEN_EXPIRES"],
            refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
        )

    def ttl_for(self, token_type: str) -> timedelta:
        if token_type == ACCESS:
            return self.access_ttl
        if token_type == REFRESH:
            return self.refresh_ttl
        raise ValueError(f"Unknown token type {token_type!r}")

    def issue(self, subject: str, token_type: str, ttl: Optional[timedelta] = None) -> str:
        if ttl is None:
            ttl = self.ttl_for(token_type)
        elif token_type not in TOKEN_TYPES:
            raise ValueError(f"Unknown token type {token_type!r}")
        now = _now()
        payload = {
            "sub": str(subject),
            "type": token_type,
            "iat": now,
            "exp": now + ttl,
            "jti": generate_jti(),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def issue_access(self, subject: str) -> str:
        return self.issue(subject, ACCESS)

    def issue_refresh(self, subject: str) -> str:
        return self.issue(subject, REFRESH)

    def decode(self, token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
        """
        Decode and validate a JWT. Raises TokenExpired past ``exp`` and
        InvalidToken for a bad signature, malformed structure or a ``type``
        that is unknown or differs from ``expected_type``.
        """
        if not token:
            raise InvalidToken("Token is missing")
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                leeway=self.leeway,
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except jwt.InvalidTokenError as exc:
            logger.debug("JWT rejected: %s", exc)
            raise InvalidToken()

        token_type = claims.get("type")
        if token_type not in TOKEN_TYPES:
            raise InvalidToken("Invalid token: unknown token type")
        if expected_type is not None and token_type != expected_type:
            raise InvalidToken(f"Invalid token type: expected {expected_type}")
        return claims

    def is_type(self, token: str, expected: str) -> bool:
        try:
            return self.decode(token).get("type") == expected
        except (InvalidToken, TokenExpired) as exc:
            logger.debug("Token type check failed: %s", exc.message)
            return False

    def expiration(self, token: str) -> datetime:
        claims = self.decode(token)
        return datetime.fromtimestamp(claims["exp"], tz=timezone.utc)

    def remaining_seconds(self, token: str) -> int:
        try:
            remaining = self.expiration(token) - _now()
        except (InvalidToken, TokenExpired):
            return 0
        return max(0, int(remaining.total_seconds()))
