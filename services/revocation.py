"""
Revocation registry: tokens that must not be honored again before their
natural expiry.

- RevocationRegistry is the interface the auth service depends on.
- InMemoryRevocationRegistry keeps entries in a lock-guarded dict (single node).
- DatabaseRevocationRegistry keeps them in the blacklisted_tokens table so
  several processes share one set.
- RevocationSweeper runs sweep() on an APScheduler background thread.

Entries are keyed by the exact token string; nothing here decodes tokens.
"""
from __future__ import annotations

import abc
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import IntegrityError

from models.blacklisted_token import BlacklistedToken

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored here is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RevocationRegistry(abc.ABC):

    @abc.abstractmethod
    def blacklist(self, token: str, expires_at: datetime) -> bool:
        """Revoke ``token`` until ``expires_at``.

        Idempotent. Returns True only for the call that actually inserted the
        entry, which makes it usable as a single-use gate.
        """

    @abc.abstractmethod
    def is_blacklisted(self, token: str) -> bool:
        ...

    @abc.abstractmethod
    def remove(self, token: str) -> bool:
        ...

    @abc.abstractmethod
    def sweep(self, now: Optional[datetime] = None) -> int:
        """Drop entries whose expiry has passed; return how many were removed."""

    @abc.abstractmethod
    def count(self) -> int:
        ...

    @abc.abstractmethod
    def clear(self) -> int:
        ...

    @abc.abstractmethod
    def count_expired(self, now: Optional[datetime] = None) -> int:
        ...

    def statistics(self) -> dict:
        total = self.count()
        expired = self.count_expired()
        return {"total": total, "expired": expired, "active": total - expired}


class InMemoryRevocationRegistry(RevocationRegistry):
    """Thread-safe dict of token -> expiry.

    Every operation holds the lock only for O(1) work. sweep() snapshots the
    candidates first and then removes them one at a time, so concurrent
    lookups are never stalled behind a full scan.
    """

    def __init__(self):
        self._entries: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def blacklist(self, token: str, expires_at: datetime) -> bool:
        if not token or not token.strip():
            logger.warning("Attempted to blacklist an empty token")
            return False
        expires_at = _as_utc(expires_at)
        with self._lock:
            if token in self._entries:
                return False
            self._entries[token] = expires_at
            size = len(self._entries)
        logger.debug("Token blacklisted. Total blacklisted tokens: %d", size)
        return True

    def is_blacklisted(self, token: str) -> bool:
        if not token:
            return False
        with self._lock:
            return token in self._entries

    def remove(self, token: str) -> bool:
        if not token:
            return False
        with self._lock:
            return self._entries.pop(token, None) is not None

    def sweep(self, now: Optional[datetime] = None) -> int:
        now = _as_utc(now) if now else _utcnow()
        with self._lock:
            candidates = [(token, exp) for token, exp in self._entries.items() if exp < now]

        removed = 0
        for token, exp in candidates:
            with self._lock:
                # skip entries replaced since the snapshot
                if self._entries.get(token) == exp:
                    del self._entries[token]
                    removed += 1

        if removed:
            logger.info("Cleaned up %d expired tokens from blacklist. Remaining: %d", removed, self.count())
        else:
            logger.debug("No expired tokens to clean up. Current blacklist size: %d", self.count())
        return removed

    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def count_expired(self, now: Optional[datetime] = None) -> int:
        now = _as_utc(now) if now else _utcnow()
        with self._lock:
            return sum(1 for exp in self._entries.values() if exp < now)

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._entries)
            self._entries.clear()
        logger.info("Cleared %d blacklisted tokens", cleared)
        return cleared


class DatabaseRevocationRegistry(RevocationRegistry):
    """Revocation set stored in the blacklisted_tokens table.

    The unique constraint on ``token`` makes blacklist() an atomic
    check-and-insert across processes.
    """

    def __init__(self, storage):
        self.storage = storage

    def _query(self):
        return self.storage.get_session().query(BlacklistedToken)

    def blacklist(self, token: str, expires_at: datetime) -> bool:
        if not token or not token.strip():
            logger.warning("Attempted to blacklist an empty token")
            return False
        if self.is_blacklisted(token):
            return False
        self.storage.new(BlacklistedToken(token=token, expires_at=_as_utc(expires_at)))
        try:
            self.storage.save()
        except IntegrityError:
            # another request revoked it first
            return False
        return True

    def is_blacklisted(self, token: str) -> bool:
        if not token:
            return False
        return self._query().filter(BlacklistedToken.token == token).first() is not None

    def remove(self, token: str) -> bool:
        if not token:
            return False
        deleted = self._query().filter(BlacklistedToken.token == token).delete(synchronize_session=False)
        self.storage.save()
        return deleted > 0

    def sweep(self, now: Optional[datetime] = None) -> int:
        now = _as_utc(now) if now else _utcnow()
        try:
            removed = self._query().filter(BlacklistedToken.expires_at < now).delete(synchronize_session=False)
            self.storage.save()
        finally:
            # sweeps run outside request teardown
            self.storage.close()
        if removed:
            logger.info("Cleaned up %d expired tokens from blacklist", removed)
        return removed

    def count(self) -> int:
        return self._query().count()

    def count_expired(self, now: Optional[datetime] = None) -> int:
        now = _as_utc(now) if now else _utcnow()
        return self._query().filter(BlacklistedToken.expires_at < now).count()

    def clear(self) -> int:
        cleared = self._query().delete(synchronize_session=False)
        self.storage.save()
        logger.info("Cleared %d blacklisted tokens", cleared)
        return cleared


def create_registry(backend: str, storage=None) -> RevocationRegistry:
    backend = (backend or "memory").lower()
    if backend == "memory":
        return InMemoryRevocationRegistry()
    if backend == "database":
        if storage is None:
            raise ValueError("database revocation backend needs a storage")
        return DatabaseRevocationRegistry(storage)
    raise ValueError(f"Unknown revocation backend {backend!r}")


class RevocationSweeper:
    """Periodic registry.sweep() on a background scheduler thread."""

    JOB_ID = "revocation-sweep"

    def __init__(self, registry: RevocationRegistry, interval_seconds: int = 3600):
        if interval_seconds <= 0:
            raise ValueError("sweep interval must be positive")
        self.registry = registry
        self.interval_seconds = interval_seconds
        self.scheduler = BackgroundScheduler(daemon=True)
        self.scheduler.add_job(
            self._run,
            "interval",
            seconds=interval_seconds,
            id=self.JOB_ID,
            max_instances=1,
            coalesce=True,
        )

    def _run(self) -> None:
        try:
            self.registry.sweep()
        except Exception:
            logger.exception("Blacklist sweep failed")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Token blacklist sweep scheduled every %d seconds", self.interval_seconds)

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Token blacklist sweeper stopped")
