"""
Main FastAPI application for the KneeCare backend.
"""
import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from kneecare.api.api_v1 import api_router
from kneecare.core.config import Settings, settings as default_settings
from kneecare.core.exceptions import AppError, RateLimitedError
from kneecare.core.logging import security_logger, setup_logging
from kneecare.core.rate_limit import RateLimiter
from kneecare.core.security import build_password_context
from kneecare.db.init_db import init_db
from kneecare.db.session import build_engine, build_session_factory
from kneecare.models.audit_log import AuditAction, AuditEntity, AuditStatus
from kneecare.services.audit_service import AuditTrail, RequestContext
from kneecare.services.storage_service import StorageService
from kneecare.utils.ip_utils import client_ip

logger = logging.getLogger(__name__)

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def error_body(
    code: str,
    message: str,
    errors: Optional[List[Dict[str, Any]]] = None,
    exc: Optional[BaseException] = None,
    debug: bool = False,
) -> Dict[str, Any]:
    """Uniform JSON error payload."""
    body: Dict[str, Any] = {"success": False, "error": code, "message": message}
    if errors:
        body["errors"] = errors
    if debug and exc is not None:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def _request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        request_id=getattr(request.state, "request_id", None) or request.headers.get("x-request-id"),
    )


def _audit_failure(request: Request, status_code: int, message: str) -> None:
    """One failure entry per failed mutating request (or unexpected error) with a known actor."""
    actor_id = getattr(request.state, "actor_id", None)
    if actor_id is None:
        return
    if request.method not in MUTATING_METHODS and status_code < 500:
        return
    request.app.state.audit_trail.append(
        actor_id=actor_id,
        action=AuditAction.ERROR_OCCURRED,
        entity=AuditEntity.SYSTEM,
        context=_request_context(request),
        status=AuditStatus.FAILURE,
        error_message=message or "Request failed",
        metadata={"url": str(request.url.path), "method": request.method, "status_code": status_code},
    )


def _respond(request: Request, status_code: int, code: str, message: str, errors=None, exc=None) -> JSONResponse:
    _audit_failure(request, status_code, message)
    debug = request.app.state.settings.DEBUG
    return JSONResponse(status_code=status_code, content=error_body(code, message, errors, exc, debug))


def register_exception_handlers(app: FastAPI) -> None:
    """Normalize every error into the application taxonomy."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(f"{request.method} {request.url.path} - {exc.status_code} {exc.code}: {exc.message}")
        return _respond(request, exc.status_code, exc.code, exc.message, exc.errors, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path")),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        logger.info(f"{request.method} {request.url.path} - 400 validation_error: {errors}")
        return _respond(request, 400, "validation_error", "Validation failed", errors, exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = {404: "not_found", 405: "method_not_allowed"}.get(exc.status_code, "http_error")
        return _respond(request, exc.status_code, code, str(exc.detail), exc=exc)

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
        return _respond(request, 400, "conflict", "Duplicate or conflicting value", exc=exc)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error: {exc}", exc_info=True)
        return _respond(request, 500, "internal_error", "Database error", exc=exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        message = str(exc) if request.app.state.settings.DEBUG else "An unexpected error occurred"
        return _respond(request, 500, "internal_error", message, exc=exc)


def create_app(
    settings: Optional[Settings] = None,
    rate_limiter: Optional[RateLimiter] = None,
    storage: Optional[StorageService] = None,
) -> FastAPI:
    """Build the application and everything it depends on."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        setup_logging(settings)
        logger.info(f"Starting {settings.PROJECT_NAME}...")
        logger.info(f"Database: {settings.database_url_safe}")
        try:
            init_db(app.state.engine, app.state.session_factory, seed=settings.SEED_REFERENCE_DATA)
            logger.info("Application startup completed")
            yield
        except Exception as e:
            logger.error(f"Application startup failed: {e}")
            raise
        finally:
            logger.info(f"Shutting down {settings.PROJECT_NAME}...")
            app.state.engine.dispose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Knee osteoarthritis care management backend",
        version=settings.VERSION,
        docs_url="/docs" if settings.SHOW_DOCS else None,
        redoc_url="/redoc" if settings.SHOW_DOCS else None,
        openapi_url="/api/v1/openapi.json",
        lifespan=lifespan,
    )

    engine = build_engine(settings.DATABASE_URL)
    session_factory = build_session_factory(engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.pwd_context = build_password_context(settings.PASSWORD_BCRYPT_ROUNDS)
    app.state.audit_trail = AuditTrail(session_factory, settings.AUDIT_LOG_RETENTION_DAYS)
    app.state.storage = storage or StorageService(settings)
    if rate_limiter is None and settings.RATE_LIMIT_ENABLED:
        rate_limiter = RateLimiter.from_url(
            settings.REDIS_URL, settings.RATE_LIMIT_WINDOW_SECONDS, settings.RATE_LIMIT_MAX_REQUESTS
        )
    app.state.rate_limiter = rate_limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        """Reject clients that exceed the request ceiling for the current window."""
        limiter = request.app.state.rate_limiter
        if limiter is None or not request.url.path.startswith("/api"):
            return await call_next(request)

        ip = client_ip(request) or "unknown"
        allowed, remaining = await run_in_threadpool(limiter.hit, ip)
        if not allowed:
            security_logger.log_rate_limited(ip, request.url.path)
            exc = RateLimitedError()
            return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))
        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests."""
        request.state.request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.3f}s"
        )
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request.state.request_id
        return response

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")

    if not settings.USE_S3:
        app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "status": "operational",
            "docs": "/docs",
            "health": "/api/v1/health/",
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "kneecare.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
        log_level=default_settings.LOG_LEVEL.lower(),
    )
