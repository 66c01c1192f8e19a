"""Tests for AuthService: registration, login, refresh rotation, logout, validation."""

from datetime import timedelta

import pytest

from conftest import ALICE
from models import storage
from models.user import User
from models.user_store import UserStore
from services.errors import AlreadyExists, InvalidCredentials, InvalidToken, NotFound, TokenExpired
from utils.security import ACCESS, REFRESH


def _register(service, **overrides):
    data = {
        "username": ALICE["username"],
        "email": ALICE["email"],
        "password": ALICE["password"],
        "first_name": ALICE["firstName"],
        "last_name": ALICE["lastName"],
    }
    data.update(overrides)
    return service.register(**data)


class TestRegister:

    def test_register_returns_active_user(self, auth_service):
        user = _register(auth_service, phone_number=" 555-0100 ")
        assert user.id
        assert user.username == "alice"
        assert user.active is True
        assert user.phone_number == "555-0100"
        assert user.password_hash != ALICE["password"]
        assert user.full_name == "Alice Liddell"

    def test_lookup_by_username_and_email_returns_same_record(self, auth_service):
        user = _register(auth_service)
        store = auth_service.store
        assert store.find_active_by_identifier("alice").id == user.id
        assert store.find_active_by_identifier("alice@x.com").id == user.id

    def test_email_lowercased_username_case_preserved(self, auth_service):
        user = _register(auth_service, username="AliceW", email="Alice@X.com")
        assert user.username == "AliceW"
        assert user.email == "alice@x.com"

    def test_duplicate_username_with_other_email(self, auth_service, alice):
        with pytest.raises(AlreadyExists) as exc:
            _register(auth_service, email="other@x.com")
        assert exc.value.field == "username"

    def test_duplicate_email_with_other_username(self, auth_service, alice):
        with pytest.raises(AlreadyExists) as exc:
            _register(auth_service, username="alice2", email="ALICE@x.com")
        assert exc.value.field == "email"

    def test_unique_violation_on_insert_is_already_exists(self, auth_service, alice, monkeypatch):
        # existence check misses (race); the unique index still catches it
        monkeypatch.setattr(auth_service.store, "exists_by_email", lambda email: False)
        with pytest.raises(AlreadyExists) as exc:
            _register(auth_service, username="alice2")
        assert exc.value.field == "email"
        assert auth_service.store.count() == 1

    def test_username_equal_to_existing_email_rejected(self, auth_service, alice):
        with pytest.raises(AlreadyExists) as exc:
            _register(auth_service, username="ALICE@x.com", email="mallory@x.com")
        assert exc.value.field == "username"
        assert auth_service.login("alice@x.com", "secret1").user.id == alice.id

    def test_email_equal_to_existing_username_rejected(self, auth_service):
        _register(auth_service, username="bob@x.com", email="bob.real@x.com")
        with pytest.raises(AlreadyExists) as exc:
            _register(auth_service, username="bob", email="bob@x.com")
        assert exc.value.field == "email"

    def test_lookup_prefers_username_over_email(self, auth_service, alice):
        # rows written straight to the store skip the register checks
        shadow = auth_service.store.create(
            User(
                username="alice@x.com",
                email="shadow@x.com",
                password_hash="x",
                first_name="S",
                last_name="S",
                active=True,
            )
        )
        store = auth_service.store
        assert store.find_active_by_identifier("alice@x.com").id == shadow.id
        assert store.find_active_by_identifier("ALICE@X.COM").id == alice.id
        assert store.find_active_by_identifier("alice").id == alice.id


class TestLogin:

    def test_login_by_username(self, auth_service, alice):
        pair = auth_service.login("alice", "secret1")
        codec = auth_service.codec
        assert pair.token_type == "Bearer"
        assert pair.expires_in == int(codec.access_ttl.total_seconds())
        access = codec.decode(pair.access_token)
        refresh = codec.decode(pair.refresh_token)
        assert (access["type"], access["sub"]) == (ACCESS, "alice")
        assert (refresh["type"], refresh["sub"]) == (REFRESH, "alice")

    def test_login_by_email_any_case(self, auth_service, alice):
        pair = auth_service.login("  Alice@X.com ", "secret1")
        assert auth_service.codec.decode(pair.access_token)["sub"] == "alice"

    def test_login_updates_last_login(self, auth_service, alice):
        assert alice.last_login is None
        auth_service.login("alice", "secret1")
        assert auth_service.store.find_by_username("alice").last_login is not None

    def test_wrong_password_and_unknown_user_fail_identically(self, auth_service, alice):
        with pytest.raises(InvalidCredentials) as wrong:
            auth_service.login("alice", "nope-nope")
        with pytest.raises(InvalidCredentials) as unknown:
            auth_service.login("nobody", "secret1")
        assert wrong.value.message == unknown.value.message

    def test_inactive_user_cannot_login(self, auth_service, alice):
        auth_service.store.set_active("alice", False)
        with pytest.raises(InvalidCredentials):
            auth_service.login("alice", "secret1")


class TestValidate:

    def test_valid_immediately_after_issue(self, auth_service, alice):
        pair = auth_service.login("alice", "secret1")
        assert auth_service.validate(pair.access_token) is True

    def test_invalid_after_ttl(self, make_service, alice):
        service = make_service(access_ttl=timedelta(seconds=-5))
        pair = service.login("alice", "secret1")
        assert service.validate(pair.access_token) is False

    def test_invalid_after_logout(self, auth_service, alice):
        pair = auth_service.login("alice", "secret1")
        assert auth_service.logout(pair.access_token) is True
        assert auth_service.codec.decode(pair.access_token)["sub"] == "alice"
        assert auth_service.validate(pair.access_token) is False

    def test_invalid_for_deactivated_user(self, auth_service, alice):
        pair = auth_service.login("alice", "secret1")
        auth_service.store.set_active("alice", False)
        assert auth_service.validate(pair.access_token) is False

    @pytest.mark.parametrize("token", [None, "", "garbage"])
    def test_never_raises(self, auth_service, token):
        assert auth_service.validate(token) is False


class TestRefresh:

    def test_refresh_rotates_exactly_once(self, auth_service, alice):
        first = auth_service.login("alice", "secret1")
        second = auth_service.refresh(first.refresh_token)
        assert second.access_token != first.access_token
        assert second.refresh_token != first.refresh_token
        assert auth_service.validate(second.access_token)

        with pytest.raises(InvalidToken):
            auth_service.refresh(first.refresh_token)
        # the rotated token keeps working
        assert auth_service.refresh(second.refresh_token).user.username == "alice"

    def test_access_token_rejected(self, auth_service, alice):
        pair = auth_service.login("alice", "secret1")
        with pytest.raises(InvalidToken):
            auth_service.refresh(pair.access_token)

    def test_expired_refresh_token(self, make_service, alice):
        service = make_service(refresh_ttl=timedelta(seconds=-5))
        pair = service.login("alice", "secret1")
        with pytest.raises(TokenExpired):
            service.refresh(pair.refresh_token)

    def test_malformed_refresh_token(self, auth_service):
        with pytest.raises(InvalidToken):
            auth_service.refresh("not-a-token")

    def test_blacklisted_by_logout(self, auth_service, alice):
        pair = auth_service.login("alice", "secret1")
        auth_service.logout(pair.refresh_token)
        with pytest.raises(InvalidToken):
            auth_service.refresh(pair.refresh_token)

    def test_inactive_subject_rejected(self, auth_service, alice):
        pair = auth_service.login("alice", "secret1")
        auth_service.store.set_active("alice", False)
        with pytest.raises(InvalidToken):
            auth_service.refresh(pair.refresh_token)

    def test_old_refresh_token_is_blacklisted_until_expiry(self, auth_service, alice):
        pair = auth_service.login("alice", "secret1")
        auth_service.refresh(pair.refresh_token)
        registry = auth_service.registry
        assert registry.is_blacklisted(pair.refresh_token)
        assert registry.sweep() == 0


class TestLogout:

    def test_logout_malformed_token_is_tolerated(self, auth_service):
        assert auth_service.logout("garbage") is False
        assert auth_service.registry.count() == 0

    def test_logout_expired_token_is_tolerated(self, make_service, alice):
        service = make_service(access_ttl=timedelta(seconds=-5))
        pair = service.login("alice", "secret1")
        assert service.logout(pair.access_token) is False

    def test_logout_twice(self, auth_service, alice):
        pair = auth_service.login("alice", "secret1")
        assert auth_service.logout(pair.access_token) is True
        assert auth_service.logout(pair.access_token) is True
        assert auth_service.registry.count() == 1


class TestCurrentUser:

    def test_found(self, auth_service, alice):
        assert auth_service.get_current_user("alice").email == "alice@x.com"

    def test_not_found(self, auth_service):
        with pytest.raises(NotFound):
            auth_service.get_current_user("ghost")


def test_statistics(auth_service, alice):
    pair = auth_service.login("alice", "secret1")
    auth_service.logout(pair.access_token)
    UserStore(storage).set_active("alice", False)
    stats = auth_service.statistics()
    assert stats["users"] == {"total": 1, "active": 0}
    assert stats["blacklist"]["total"] == 1
