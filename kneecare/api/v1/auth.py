"""
Authentication API endpoints.
"""
from fastapi import APIRouter, Depends, status

from kneecare.api.deps import (
    Auditor, get_audit_trail, get_auditor, get_auth_service, get_current_user,
    get_request_context, get_settings,
)
from kneecare.core.config import Settings
from kneecare.core.exceptions import AppError, UnauthorizedError
from kneecare.core.logging import security_logger
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.auth import AuthResponse, PasswordChange, UserLogin, UserRegister, UserResponse
from kneecare.schemas.common import MessageResponse
from kneecare.services.audit_service import AuditTrail, RequestContext
from kneecare.services.auth_service import AuthService

router = APIRouter()


def _auth_response(user: User, auth_service: AuthService, settings: Settings) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(user),
        access_token=auth_service.issue_token(user),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserRegister,
    auth_service: AuthService = Depends(get_auth_service),
    trail: AuditTrail = Depends(get_audit_trail),
    context: RequestContext = Depends(get_request_context),
    settings: Settings = Depends(get_settings),
):
    """Register a new patient, doctor or admin."""
    try:
        user = auth_service.register(payload)
    except AppError as e:
        security_logger.log_registration_rejected(payload.email, context.ip_address, e.message)
        raise

    trail.append(
        actor_id=user.id,
        action=AuditAction.USER_CREATED,
        entity=AuditEntity.USERS,
        entity_id=user.id,
        changes={"email": user.email, "role": user.role},
        context=context,
    )
    return _auth_response(user, auth_service, settings)


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: UserLogin,
    auth_service: AuthService = Depends(get_auth_service),
    trail: AuditTrail = Depends(get_audit_trail),
    context: RequestContext = Depends(get_request_context),
    settings: Settings = Depends(get_settings),
):
    """Exchange credentials for a bearer token."""
    try:
        user = auth_service.authenticate(payload.email, payload.password)
    except UnauthorizedError:
        security_logger.log_login_attempt(payload.email, context.ip_address, success=False)
        raise

    security_logger.log_login_attempt(user.email, context.ip_address, success=True)
    trail.append(
        actor_id=user.id,
        action=AuditAction.USER_LOGIN,
        entity=AuditEntity.USERS,
        entity_id=user.id,
        context=context,
    )
    return _auth_response(user, auth_service, settings)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the authenticated identity."""
    return current_user


@router.put("/password", response_model=MessageResponse)
async def change_password(
    payload: PasswordChange,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    auditor: Auditor = Depends(get_auditor),
):
    """Change the caller's password."""
    auth_service.change_password(current_user, payload.current_password, payload.new_password)
    auditor.record(
        AuditAction.PASSWORD_CHANGED, AuditEntity.USERS, current_user.id,
        changes={"password": "changed"},
    )
    return MessageResponse(message="Password updated successfully")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
):
    """Record a logout. Tokens are not revoked server-side."""
    security_logger.log_logout(current_user.id, auditor.context.ip_address)
    auditor.record(AuditAction.USER_LOGOUT, AuditEntity.USERS, current_user.id)
    return MessageResponse(message="Logged out successfully")
