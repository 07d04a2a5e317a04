from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from starlette.concurrency import run_in_threadpool

from marketplace.core.rate_limiter import rate_limit_ip
from marketplace.db.models import User
from marketplace.domain.users import user_to_dict
from marketplace.routers.deps import current_user, get_auth_service, json_body, success
from marketplace.services.auth_service import AuthResult, AuthService
from marketplace.services.session_service import clear_session_cookie, set_session_cookie, token_from_request

# Mounted under both /api/v1/auth and /api/v1/users.
router = APIRouter(tags=["auth"])


def _signed_in(response: Response, result: AuthResult, *, status_code: int = 200) -> dict[str, Any]:
    set_session_cookie(response, result.token)
    response.status_code = status_code
    return success({"user": user_to_dict(result.user)}, token=result.token)


@router.post("/signup", status_code=201)
async def signup(
    request: Request,
    response: Response,
    data: dict[str, Any] = Depends(json_body),
    auth: AuthService = Depends(get_auth_service),
):
    rate_limit_ip(request, "auth:signup", limit=10, window_seconds=3600)
    result = await run_in_threadpool(auth.signup, data)
    return _signed_in(response, result, status_code=201)


@router.post("/login")
async def login(
    request: Request,
    response: Response,
    data: dict[str, Any] = Depends(json_body),
    auth: AuthService = Depends(get_auth_service),
):
    rate_limit_ip(request, "auth:login", limit=10, window_seconds=300)
    result = await run_in_threadpool(auth.login, data.get("email"), data.get("password"))
    return _signed_in(response, result)


@router.post("/logout")
def logout(request: Request, response: Response, auth: AuthService = Depends(get_auth_service)):
    auth.logout(token_from_request(request))
    clear_session_cookie(response)
    return success()


@router.post("/forgotPassword")
async def forgot_password(
    request: Request,
    data: dict[str, Any] = Depends(json_body),
    auth: AuthService = Depends(get_auth_service),
):
    rate_limit_ip(request, "auth:forgot", limit=5, window_seconds=300)
    await run_in_threadpool(auth.forgot_password, data.get("email"))
    return success(message="Token sent to email!")


@router.patch("/resetPassword/{token}")
async def reset_password(
    token: str,
    response: Response,
    data: dict[str, Any] = Depends(json_body),
    auth: AuthService = Depends(get_auth_service),
):
    result = await run_in_threadpool(auth.reset_password, token, data)
    return _signed_in(response, result)


@router.patch("/updatePassword")
async def update_password(
    response: Response,
    data: dict[str, Any] = Depends(json_body),
    user: User = Depends(current_user),
    auth: AuthService = Depends(get_auth_service),
):
    result = await run_in_threadpool(auth.update_password, user, data)
    return _signed_in(response, result)
