"""
User management API endpoints.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import (
    Auditor, Pagination, get_auditor, get_auth_service, get_current_admin,
    get_current_user, get_db, get_pagination, require_roles,
)
from kneecare.core.exceptions import ValidationError
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import Role, User
from kneecare.schemas.auth import UserRegister, UserResponse, UserUpdate
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.services.auth_service import AuthService
from kneecare.services.user_service import UserService

router = APIRouter()


@router.get("/", response_model=Page[UserResponse])
async def list_users(
    role: Optional[Role] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """List all users (admin only)."""
    users, total = UserService(db).list_users(
        page=pagination.page,
        size=pagination.size,
        role=role.value if role else None,
        is_active=is_active,
        search=search,
    )
    return build_page(UserResponse, users, total, pagination.page, pagination.size)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserRegister,
    current_user: User = Depends(get_current_admin),
    auth_service: AuthService = Depends(get_auth_service),
    auditor: Auditor = Depends(get_auditor),
):
    """Create a user of any role (admin only)."""
    user = auth_service.register(payload, require_admin_secret=False)
    auditor.record(
        AuditAction.USER_CREATED, AuditEntity.USERS, user.id,
        changes={"email": user.email, "role": user.role},
    )
    return user


@router.get("/doctors", response_model=Page[UserResponse])
async def list_doctors(
    specialization: Optional[str] = Query(None, max_length=100),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Directory of active doctors."""
    doctors, total = UserService(db).list_doctors(pagination.page, pagination.size, specialization)
    return build_page(UserResponse, doctors, total, pagination.page, pagination.size)


@router.get("/me/patients", response_model=Page[UserResponse])
async def list_my_patients(
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(require_roles(Role.DOCTOR)),
    db: Session = Depends(get_db),
):
    """Patients under the calling doctor's active care."""
    patients, total = UserService(db).patients_of(current_user.id, pagination.page, pagination.size)
    return build_page(UserResponse, patients, total, pagination.page, pagination.size)


@router.get("/me/doctors", response_model=List[UserResponse])
async def list_my_doctors(
    current_user: User = Depends(require_roles(Role.PATIENT)),
    db: Session = Depends(get_db),
):
    """Doctors with an active relationship to the calling patient."""
    return UserService(db).doctors_of(current_user.id)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get a user profile."""
    return UserService(db).get_visible(current_user, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Update a user profile; fields outside the caller's role allowance are ignored."""
    service = UserService(db)
    user = service.get_visible(current_user, user_id)
    applied = service.update(current_user, user, payload.model_dump(exclude_unset=True))
    action = AuditAction.PROFILE_UPDATED if current_user.id == user.id else AuditAction.USER_UPDATED
    auditor.record(action, AuditEntity.USERS, user.id, changes=applied)
    return user


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    permanent: bool = Query(False),
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Deactivate a user, or remove them permanently (admin only)."""
    if user_id == current_user.id:
        raise ValidationError("Admins cannot delete their own account")
    service = UserService(db)
    user = service.get(user_id)
    if permanent:
        service.delete(user)
    else:
        service.deactivate(user)
    auditor.record(
        AuditAction.USER_DELETED, AuditEntity.USERS, user_id,
        metadata={"permanent": permanent},
    )
    return MessageResponse(message="User deleted successfully" if permanent else "User deactivated successfully")
