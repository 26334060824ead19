"""
FastAPI dependencies for dependency injection.

Everything a route needs (settings, database sessions, the audit trail,
storage) is taken from ``app.state``, where ``create_app`` puts it.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generator, Optional

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from kneecare.core.config import Settings
from kneecare.core.exceptions import ForbiddenError, UnauthorizedError
from kneecare.core.logging import security_logger
from kneecare.models.audit_log import AuditAction, AuditEntity, AuditStatus
from kneecare.models.user import Role, User
from kneecare.services.audit_service import AuditTrail, RequestContext
from kneecare.services.auth_service import AuthService
from kneecare.services.storage_service import StorageService
from kneecare.utils.ip_utils import client_ip

# Security scheme; missing credentials are reported by get_current_user
security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency to get database session."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_audit_trail(request: Request) -> AuditTrail:
    return request.app.state.audit_trail


def get_storage(request: Request) -> StorageService:
    return request.app.state.storage


def get_request_context(request: Request) -> RequestContext:
    """Where the current request came from."""
    request_id = request.headers.get("x-request-id") or getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return RequestContext(
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        request_id=request_id,
    )


def get_auth_service(request: Request, db: Session = Depends(get_db)) -> AuthService:
    return AuthService(db, request.app.state.settings, request.app.state.pwd_context)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Get current authenticated user from the bearer token.
    """
    token = credentials.credentials if credentials else None
    try:
        user = auth_service.validate_token(token)
    except UnauthorizedError as e:
        if token:
            security_logger.log_invalid_token(client_ip(request), e.message)
        raise
    request.state.actor_id = user.id
    return user


def require_roles(*roles: Role) -> Callable[..., User]:
    """Dependency factory admitting only the given roles."""
    allowed = {role.value for role in roles}

    def _checker(request: Request, current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            security_logger.log_permission_denied(
                current_user.id, f"{request.method} {request.url.path}", f"role {current_user.role}"
            )
            raise ForbiddenError(f"User role {current_user.role} is not authorized to access this route")
        return current_user

    return _checker


get_current_admin = require_roles(Role.ADMIN)
get_current_clinician = require_roles(Role.DOCTOR, Role.ADMIN)


@dataclass
class Auditor:
    """Audit trail bound to the acting user and request."""
    trail: AuditTrail
    actor_id: Optional[int]
    context: RequestContext

    def record(
        self,
        action: AuditAction,
        entity: AuditEntity,
        entity_id: Any = None,
        changes: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        status: AuditStatus = AuditStatus.SUCCESS,
    ) -> None:
        self.trail.append(
            actor_id=self.actor_id,
            action=action,
            entity=entity,
            entity_id=entity_id,
            changes=changes,
            context=self.context,
            status=status,
            metadata=metadata,
        )


def get_auditor(
    current_user: User = Depends(get_current_user),
    trail: AuditTrail = Depends(get_audit_trail),
    context: RequestContext = Depends(get_request_context),
) -> Auditor:
    return Auditor(trail=trail, actor_id=current_user.id, context=context)


@dataclass
class Pagination:
    page: int
    size: int


def get_pagination(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
) -> Pagination:
    """Get pagination parameters with validation."""
    return Pagination(page=page, size=size)
