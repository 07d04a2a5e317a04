"""Session helpers (issue tokens, read them from requests, cookies)."""
from __future__ import annotations

import secrets
from datetime import timedelta

from fastapi import Request, Response

from marketplace.core.config import get_settings
from marketplace.core.utils import as_utc, utcnow
from marketplace.db.models import UserSession
from marketplace.repositories.user_repository import UserRepository

SESSION_COOKIE_NAME = "session"


def issue_session(repo: UserRepository, user_id: int) -> str:
    """Create a new session token and persist it."""
    token = secrets.token_urlsafe(32)
    settings = get_settings()
    ttl = max(60, settings.session_ttl_seconds)
    repo.create_session(token, user_id, utcnow() + timedelta(seconds=ttl))
    return token


def active_session(repo: UserRepository, token: str | None) -> UserSession | None:
    """Return the stored session for ``token``; expired sessions are removed."""
    if not token:
        return None
    entity = repo.get_session(token)
    if not entity:
        return None
    if as_utc(entity.expires_at) < utcnow():
        repo.delete_session(token)
        return None
    return entity


def token_from_request(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE_NAME)


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    secure_cookie = settings.app_env == "prod"
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        httponly=True,
        secure=secure_cookie,
        samesite="strict",
        max_age=settings.session_ttl_seconds,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
