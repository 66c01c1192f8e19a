"""
UserStore: the credential store the auth service talks to.

Thin query layer over DBStorage. Uniqueness of username/email is enforced by
the table's unique indexes; a violation on insert surfaces as AlreadyExists.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError

from models.user import User
from services.errors import AlreadyExists

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:

    def __init__(self, storage):
        self.storage = storage

    def _query(self):
        return self.storage.get_session().query(User)

    def find_by_username(self, username: str) -> Optional[User]:
        return self._query().filter(User.username == username).first()

    def find_active_by_identifier(self, identifier: str) -> Optional[User]:
        """Active user whose username, else (lower-cased) email, equals ``identifier``."""
        if not identifier or not identifier.strip():
            return None
        identifier = identifier.strip()
        active = self._query().filter(User.active.is_(True))
        user = active.filter(User.username == identifier).first()
        if user is None:
            user = active.filter(User.email == normalize_email(identifier)).first()
        return user

    def exists_by_username(self, username: str) -> bool:
        return self._query().filter(User.username == username).first() is not None

    def exists_by_email(self, email: str) -> bool:
        return self._query().filter(User.email == normalize_email(email)).first() is not None

    def create(self, user: User) -> User:
        self.storage.new(user)
        try:
            self.storage.save()
        except IntegrityError:
            # lost a race with a concurrent registration
            if self.exists_by_username(user.username):
                raise AlreadyExists("username", user.username)
            raise AlreadyExists("email", user.email)
        return user

    def update_last_login(self, username: str, when: Optional[datetime] = None) -> None:
        user = self.find_by_username(username)
        if user is None:
            return
        user.last_login = when or datetime.now(timezone.utc)
        user.save()

    def set_active(self, username: str, active: bool) -> bool:
        user = self.find_by_username(username)
        if user is None:
            return False
        user.active = active
        user.save()
        logger.info("User %s marked %s", username, "active" if active else "inactive")
        return True

    def count(self) -> int:
        return self.storage.count(User)

    def count_active(self) -> int:
        return self._query().filter(User.active.is_(True)).count()
