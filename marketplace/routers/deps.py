"""Request-scoped dependencies shared by the routers (database, current user, roles)."""
from __future__ import annotations

from typing import Any, Callable

from fastapi import Depends, Request
from fastapi.encoders import jsonable_encoder
from starlette.concurrency import run_in_threadpool

from marketplace.core.errors import AppError, ForbiddenError
from marketplace.db.models import User
from marketplace.db.session import Database
from marketplace.query.params import ParamMap, params_from_request
from marketplace.repositories.user_repository import UserRepository
from marketplace.services.auth_service import AuthService
from marketplace.services.session_service import token_from_request


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_params(request: Request) -> ParamMap:
    return params_from_request(request)


def get_auth_service(db: Database = Depends(get_db)) -> AuthService:
    return AuthService(UserRepository(db))


async def current_user(request: Request, auth: AuthService = Depends(get_auth_service)) -> User:
    """Resolve the logged-in user (Bearer token or session cookie) or raise 401."""
    user = await run_in_threadpool(auth.authenticate, token_from_request(request))
    request.state.user = user
    return user


def restrict_to(*roles: str) -> Callable[..., User]:
    def checker(user: User = Depends(current_user)) -> User:
        if user.role not in roles:
            raise ForbiddenError("You do not have permission to perform this action")
        return user

    return checker


async def json_body(request: Request) -> dict[str, Any]:
    if not await request.body():
        return {}
    try:
        data = await request.json()
    except ValueError as exc:
        raise AppError("Invalid JSON body", 400) from exc
    if not isinstance(data, dict):
        raise AppError("Request body must be a JSON object", 400)
    return data


def success(data: Any = None, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"status": "success"}
    payload.update(extra)
    if data is not None:
        payload["data"] = jsonable_encoder(data)
    return payload
