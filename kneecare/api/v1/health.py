"""
Health check API endpoints.
"""
from datetime import datetime
import redis
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kneecare.api.deps import get_db, get_settings
from kneecare.core.config import Settings

router = APIRouter()


def _check_database(db: Session) -> dict:
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "type": db.get_bind().dialect.name}
    except SQLAlchemyError as e:
        return {"status": "unhealthy", "error": str(e)}


def _check_redis(request: Request, settings: Settings) -> dict:
    limiter = request.app.state.rate_limiter
    client = limiter.client if limiter is not None else redis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
    try:
        client.ping()
        return {"status": "healthy"}
    except redis.RedisError:
        return {"status": "unavailable", "note": "Redis not configured or not running"}


@router.get("/")
async def health_check(settings: Settings = Depends(get_settings)):
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.VERSION,
    }


@router.get("/ready")
async def readiness_check(db: Session = Depends(get_db)):
    """Readiness probe: the database must answer."""
    database = _check_database(db)
    body = {"status": "ready", "timestamp": datetime.utcnow().isoformat()}
    if database["status"] != "healthy":
        body["status"] = "not_ready"
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body


@router.get("/live")
async def liveness_check():
    """Liveness probe."""
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}


@router.get("/detailed")
async def detailed_health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    """Detailed health check including database and Redis connectivity."""
    health_status = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.VERSION,
        "services": {
            "database": _check_database(db),
            "redis": _check_redis(request, settings),
            "storage": {"status": "healthy", "backend": "s3" if settings.USE_S3 else "local"},
        },
    }

    # Only the database is critical
    if health_status["services"]["database"]["status"] != "healthy":
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=health_status)
    return health_status
