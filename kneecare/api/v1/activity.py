"""
Activity tracking API endpoints.
"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import Auditor, Pagination, get_auditor, get_current_user, get_db, get_pagination
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.lifestyle import ActivityCreate, ActivityResponse, ActivityUpdate
from kneecare.services.lifestyle_service import ActivityService

router = APIRouter()


@router.get("/", response_model=Page[ActivityResponse])
async def list_my_activity(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Activity logs of the current user."""
    items, total = ActivityService(db).list_for_owner(
        current_user, current_user.id, pagination.page, pagination.size, start_date, end_date
    )
    return build_page(ActivityResponse, items, total, pagination.page, pagination.size)


@router.get("/user/{user_id}", response_model=Page[ActivityResponse])
async def list_user_activity(
    user_id: int,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Activity logs of a patient (owner, their doctors, or admin)."""
    items, total = ActivityService(db).list_for_owner(
        current_user, user_id, pagination.page, pagination.size, start_date, end_date
    )
    return build_page(ActivityResponse, items, total, pagination.page, pagination.size)


@router.get("/stats")
async def get_activity_stats(
    user_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Totals and averages over a date range."""
    return ActivityService(db).stats(current_user, user_id or current_user.id, start_date, end_date)


@router.get("/{log_id}", response_model=ActivityResponse)
async def get_activity(
    log_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ActivityService(db).get(current_user, log_id)


@router.post("/", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
async def create_activity(
    payload: ActivityCreate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Log activity for yourself, or for a patient you care for."""
    values = payload.model_dump(exclude_none=True, exclude={"user_id"})
    record = ActivityService(db).create(current_user, values, owner_id=payload.user_id)
    auditor.record(AuditAction.ACTIVITY_LOGGED, AuditEntity.ACTIVITY_LOGS, record.id, changes=values)
    return record


@router.put("/{log_id}", response_model=ActivityResponse)
async def update_activity(
    log_id: int,
    payload: ActivityUpdate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    record, applied = ActivityService(db).update(current_user, log_id, payload.model_dump(exclude_unset=True))
    auditor.record(AuditAction.ACTIVITY_UPDATED, AuditEntity.ACTIVITY_LOGS, record.id, changes=applied)
    return record


@router.delete("/{log_id}", response_model=MessageResponse)
async def delete_activity(
    log_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    ActivityService(db).delete(current_user, log_id)
    auditor.record(AuditAction.ACTIVITY_DELETED, AuditEntity.ACTIVITY_LOGS, log_id)
    return MessageResponse(message="Activity log deleted successfully")
