"""Unit tests for auth/flow.py -- signup, login, logout without HTTP.

Covers:
- signup validation order and the specific error codes
- "email taken" is identical for the pre-check and the uniqueness race
- login rejects unknown email and wrong password with one identical AuthError
- logout swallows (and logs) session store failures
"""

import logging
from unittest.mock import patch

import pytest

from auth import flow
from core.errors import AuthError, DuplicateEmail, StoreError, ValidationError

PASSWORD = "Abcdef1"


def _signup(store, **overrides):
    fields = {
        "firstname": "Jane",
        "lastname": "Doe",
        "email": "jane@example.com",
        "password": PASSWORD,
        "confirm_password": PASSWORD,
    }
    fields.update(overrides)
    return flow.signup(store, **fields)


class TestSignup:
    def test_success_returns_new_id(self, user_store):
        uid = _signup(user_store)
        assert user_store.get_by_id(uid).email == "jane@example.com"

    def test_password_is_stored_hashed(self, user_store):
        _signup(user_store)
        stored = user_store.get_credential("jane@example.com").hashed_password
        assert stored != PASSWORD
        assert stored.startswith("$2")

    @pytest.mark.parametrize("field", ["firstname", "lastname", "email", "password", "confirm_password"])
    def test_missing_field(self, user_store, field):
        with pytest.raises(ValidationError) as exc_info:
            _signup(user_store, **{field: ""})
        assert exc_info.value.code == "missing_fields"

    def test_whitespace_only_counts_as_missing(self, user_store):
        with pytest.raises(ValidationError) as exc_info:
            _signup(user_store, firstname="   ")
        assert exc_info.value.code == "missing_fields"

    def test_invalid_email(self, user_store):
        with pytest.raises(ValidationError) as exc_info:
            _signup(user_store, email="not-an-email")
        assert exc_info.value.code == "invalid_email"

    def test_password_mismatch(self, user_store):
        with pytest.raises(ValidationError) as exc_info:
            _signup(user_store, confirm_password="Abcdef2")
        assert exc_info.value.code == "mismatch"

    def test_mismatch_is_checked_before_strength(self, user_store):
        with pytest.raises(ValidationError) as exc_info:
            _signup(user_store, password="abc", confirm_password="abd")
        assert exc_info.value.code == "mismatch"

    @pytest.mark.parametrize(
        "password, reason",
        [("abc12", "too_short"), ("abcdef1", "needs_uppercase"), ("Abcdefg", "needs_digit")],
    )
    def test_weak_password_propagates_reason(self, user_store, password, reason):
        with pytest.raises(ValidationError) as exc_info:
            _signup(user_store, password=password, confirm_password=password)
        assert exc_info.value.code == reason

    def test_email_taken_by_precheck(self, user_store):
        _signup(user_store)
        with pytest.raises(ValidationError) as exc_info:
            _signup(user_store, firstname="Janet")
        assert exc_info.value.code == "email_taken"

    def test_email_taken_by_uniqueness_race(self, user_store):
        """The pre-check misses a concurrent insert; the store constraint catches it."""
        _signup(user_store)
        with patch.object(user_store, "get_by_email", return_value=None):
            with pytest.raises(DuplicateEmail) as exc_info:
                _signup(user_store, firstname="Janet")
        precheck = ValidationError("email_taken")
        assert exc_info.value.code == precheck.code
        assert exc_info.value.message == precheck.message
        assert exc_info.value.status_code == precheck.status_code

    def test_store_failure_propagates_as_store_error(self, user_store):
        with patch.object(user_store, "create_user", side_effect=StoreError("disk full")):
            with pytest.raises(StoreError):
                _signup(user_store)


class TestLogin:
    def test_success_issues_session(self, user_store, session_store):
        uid = _signup(user_store)
        session_id = flow.login(user_store, session_store, "jane@example.com", PASSWORD)
        session = session_store.get(session_id)
        assert session.user_id == uid
        assert session.email == "jane@example.com"

    def test_missing_fields(self, user_store, session_store):
        with pytest.raises(ValidationError) as exc_info:
            flow.login(user_store, session_store, "jane@example.com", "")
        assert exc_info.value.code == "missing_fields"

    def test_invalid_email(self, user_store, session_store):
        with pytest.raises(ValidationError) as exc_info:
            flow.login(user_store, session_store, "jane", PASSWORD)
        assert exc_info.value.code == "invalid_email"

    def test_wrong_password_and_unknown_email_are_indistinguishable(self, user_store, session_store):
        _signup(user_store)
        with pytest.raises(AuthError) as wrong_password:
            flow.login(user_store, session_store, "jane@example.com", "Wrong123")
        with pytest.raises(AuthError) as unknown_email:
            flow.login(user_store, session_store, "ghost@example.com", PASSWORD)
        assert wrong_password.value.message == unknown_email.value.message == "Invalid email or password."
        assert wrong_password.value.status_code == unknown_email.value.status_code == 401

    def test_failed_login_creates_no_session(self, user_store, session_store):
        _signup(user_store)
        with pytest.raises(AuthError):
            flow.login(user_store, session_store, "jane@example.com", "Wrong123")
        assert session_store.purge_expired() == 0
        assert session_store._conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0] == 0


class TestLogout:
    def test_destroys_session(self, user_store, session_store):
        _signup(user_store)
        session_id = flow.login(user_store, session_store, "jane@example.com", PASSWORD)
        flow.logout(session_store, session_id)
        assert session_store.get(session_id) is None

    def test_destroy_failure_is_logged_not_raised(self, session_store, caplog):
        with patch.object(session_store, "destroy", side_effect=RuntimeError("store down")):
            with caplog.at_level(logging.ERROR, logger="portal.auth"):
                flow.logout(session_store, "some-session")
        assert "Session destroy failed" in caplog.text

    def test_empty_session_id_is_a_no_op(self, session_store):
        flow.logout(session_store, "")
