from __future__ import annotations

import re
from datetime import timedelta

import pytest

from marketplace.core.errors import AppError, ConflictError, UnauthorizedError, ValidationFailed
from marketplace.core.utils import utcnow
from marketplace.repositories.user_repository import UserRepository
from marketplace.services import auth_service as auth_module
from marketplace.services.auth_service import AuthService

from conftest import PASSWORD

SIGNUP = {
    "name": "Ada Lovelace",
    "email": "Ada@Example.com",
    "password": "analytical-engine",
    "password_confirm": "analytical-engine",
}


@pytest.fixture()
def users(db):
    return UserRepository(db)


@pytest.fixture()
def auth(users):
    return AuthService(users)


def test_signup_issues_a_working_session(auth):
    result = auth.signup(SIGNUP)

    assert result.user.email == "ada@example.com"
    assert result.user.role == "user"
    assert auth.authenticate(result.token).id == result.user.id


def test_signup_rejects_duplicates_and_privileged_roles(auth):
    auth.signup(SIGNUP)

    with pytest.raises(ConflictError):
        auth.signup(SIGNUP)
    with pytest.raises(ValidationFailed):
        auth.signup({**SIGNUP, "email": "eve@example.com", "role": "admin"})


def test_signup_reports_every_problem(auth):
    with pytest.raises(ValidationFailed) as excinfo:
        auth.signup({"email": "nope", "password": "short", "password_confirm": "other"})

    errors = excinfo.value.errors
    assert "Please tell us your name!" in errors
    assert "Please provide a valid email" in errors
    assert "Password must be at least 8 characters" in errors
    assert "Passwords are not the same!" in errors


def test_login(auth, make_user):
    user = make_user()

    assert auth.login(user.email.upper(), PASSWORD).user.id == user.id
    with pytest.raises(UnauthorizedError):
        auth.login(user.email, "wrong-password")
    with pytest.raises(AppError) as excinfo:
        auth.login(user.email, None)
    assert excinfo.value.status_code == 400


def test_inactive_users_cannot_log_in(auth, users, make_user):
    user = make_user()
    users.update(user.id, {"active": False})

    with pytest.raises(UnauthorizedError):
        auth.login(user.email, PASSWORD)


def test_authenticate_rejects_missing_unknown_and_expired_tokens(auth, users, make_user):
    user = make_user()
    with pytest.raises(UnauthorizedError):
        auth.authenticate(None)
    with pytest.raises(UnauthorizedError):
        auth.authenticate("not-a-token")

    users.create_session("expired-token", user.id, utcnow() - timedelta(seconds=5))
    with pytest.raises(UnauthorizedError):
        auth.authenticate("expired-token")
    assert users.get_session("expired-token") is None


def test_password_change_after_session_invalidates_it(auth, users, make_user):
    user = make_user()
    token = auth.login(user.email, PASSWORD).token

    users.set_password(user.id, user.password_hash, utcnow() + timedelta(seconds=5))

    with pytest.raises(UnauthorizedError) as excinfo:
        auth.authenticate(token)
    assert "recently changed password" in excinfo.value.message


def test_update_password_rotates_sessions(auth, make_user):
    user = make_user()
    old_token = auth.login(user.email, PASSWORD).token

    with pytest.raises(UnauthorizedError):
        auth.update_password(
            user, {"password_current": "bad", "password": "new-password-1", "password_confirm": "new-password-1"}
        )

    result = auth.update_password(
        user, {"password_current": PASSWORD, "password": "new-password-1", "password_confirm": "new-password-1"}
    )

    with pytest.raises(UnauthorizedError):
        auth.authenticate(old_token)
    assert auth.authenticate(result.token).id == user.id
    assert auth.login(user.email, "new-password-1").user.id == user.id


def test_forgot_and_reset_password(auth, make_user, monkeypatch):
    user = make_user()
    sent = []
    monkeypatch.setattr(auth_module, "send_email", lambda subject, to, body: sent.append((to, body)) or True)

    auth.forgot_password(user.email)

    assert sent and sent[0][0] == user.email
    token = re.search(r"resetPassword/([0-9a-f]+)", sent[0][1]).group(1)

    result = auth.reset_password(token, {"password": "brand-new-pass", "password_confirm": "brand-new-pass"})
    assert result.user.id == user.id
    assert auth.login(user.email, "brand-new-pass").user.id == user.id

    with pytest.raises(AppError) as excinfo:
        auth.reset_password(token, {"password": "another-pass", "password_confirm": "another-pass"})
    assert excinfo.value.status_code == 400


def test_forgot_password_failure_outside_dev(auth, users, make_user):
    user = make_user()

    with pytest.raises(AppError) as excinfo:
        auth.forgot_password(user.email)
    assert excinfo.value.status_code == 500
