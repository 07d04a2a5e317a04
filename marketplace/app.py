from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace.core.config import Settings, get_settings
from marketplace.core.errors import install_error_handlers
from marketplace.core.log import configure_logging
from marketplace.core.rate_limiter import RateLimitMiddleware
from marketplace.db.session import Database
from marketplace.routers import auth as auth_router
from marketplace.routers import nfts as nfts_router
from marketplace.routers import subscriptions as subscriptions_router
from marketplace.routers import users as users_router

access_log = logging.getLogger("marketplace.access")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers (CSP, anti clickjacking, referrer policy)."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared body exceeds ``max_bytes`` with 413."""

    def __init__(self, app, *, max_bytes: int) -> None:
        super().__init__(app)
        self._max_bytes = max_bytes

    async def dispatch(self, request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > self._max_bytes:
            return JSONResponse(
                status_code=413,
                content={"status": "fail", "message": f"Request body too large (max {self._max_bytes} bytes)"},
            )
        return await call_next(request)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One line per request: method, path, status and elapsed time."""

    async def dispatch(self, request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        access_log.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
        return response


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Build the API. Pass ``database`` to reuse an existing handle (tests, scripts)."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.db is None
        if owned:
            app.state.db = Database(settings.database_url)
        app.state.db.create_all()
        try:
            yield
        finally:
            if owned:
                app.state.db.dispose()
                app.state.db = None

    app = FastAPI(title="NFT Marketplace API", lifespan=lifespan)
    app.state.db = database
    app.state.settings = settings

    if settings.app_env == "dev":
        app.add_middleware(AccessLogMiddleware)
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(
        RateLimitMiddleware,
        path_prefix="/api",
        limit=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
    )
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )
    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")

    install_error_handlers(app)

    @app.get("/")
    def welcome():
        return {"status": "success", "message": "Welcome to the NFT Marketplace API"}

    app.include_router(nfts_router.router)
    app.include_router(subscriptions_router.router)
    app.include_router(auth_router.router, prefix="/api/v1/auth")
    # Auth routes are registered on /api/v1/users before "/{user_id}".
    app.include_router(auth_router.router, prefix="/api/v1/users")
    app.include_router(users_router.router)
    return app
