"""
Template Backend - user profile API service

Run with ``python main.py`` or ``uvicorn main:create_app --factory``.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from config.settings import Settings, load_settings
from database import Database
from routers.auth_router import auth_router
from routers.users_router import users_router
from services.user_service import UserStore, build_user_store
from utils.errors import INTERNAL_ERROR, NOT_FOUND, VALIDATION_ERROR, ApiError, code_for_status
from utils.logging_utils import RequestLoggingMiddleware, configure_logging
from utils.rate_limit import RateLimiterMiddleware
from utils.responses import error_response
from utils.security_utils import API_CSP, SecurityHeadersMiddleware

logger = logging.getLogger(__name__)

PROCESS_START = time.monotonic()


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(f"Unhandled error: {e} (path={request.url.path}, method={request.method})")
            return error_response(INTERNAL_ERROR, status=500, message="Something went wrong")


def _not_found(request: Request):
    if request.url.path.startswith("/api/"):
        return error_response(NOT_FOUND, status=404, message="API endpoint not found")
    return error_response(NOT_FOUND, status=404, message="Route not found")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return error_response(exc.code, status=exc.status_code, message=exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # No route for this path/method pair
        if exc.status_code in (404, 405):
            return _not_found(request)
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return error_response(code_for_status(exc.status_code), status=exc.status_code, message=message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        return error_response(VALIDATION_ERROR, status=400, message=problems or "Invalid request")


def create_app(
    settings: Optional[Settings] = None,
    user_store: Optional[UserStore] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings)

    app = FastAPI(title="Template Backend")
    app.state.settings = settings
    app.state.database = database or Database(settings.database_url)
    app.state.user_store = user_store or build_user_store(settings, app.state.database)

    app.add_middleware(UncaughtExceptionMiddleware)
    app.add_middleware(
        RateLimiterMiddleware,
        capacity=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        redis_url=settings.redis_url,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        SecurityHeadersMiddleware,
        content_security_policy=API_CSP,
        enforce_https=settings.is_production,
    )

    # CORS MUST be near the bottom
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.on_event("startup")
    async def initialize_database():
        try:
            await app.state.database.init()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    @app.on_event("startup")
    async def log_startup():
        logger.info(f"Server started (port={settings.port}, environment={settings.env}, store={settings.user_store})")

    @app.on_event("shutdown")
    async def close_database():
        await app.state.database.dispose()

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": time.monotonic() - PROCESS_START,
        }

    app.include_router(auth_router)
    app.include_router(users_router)

    return app


if __name__ == "__main__":
    import uvicorn
    settings = load_settings()
    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
    )
