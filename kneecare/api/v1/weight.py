"""
Weight tracking API endpoints.
"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import Auditor, Pagination, get_auditor, get_current_user, get_db, get_pagination
from kneecare.core.exceptions import NotFoundError
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.lifestyle import WeightCreate, WeightResponse, WeightUpdate
from kneecare.services.lifestyle_service import WeightService

router = APIRouter()


@router.get("/", response_model=Page[WeightResponse])
async def list_my_weight(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = WeightService(db).list_for_owner(
        current_user, current_user.id, pagination.page, pagination.size, start_date, end_date
    )
    return build_page(WeightResponse, items, total, pagination.page, pagination.size)


@router.get("/user/{user_id}", response_model=Page[WeightResponse])
async def list_user_weight(
    user_id: int,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = WeightService(db).list_for_owner(
        current_user, user_id, pagination.page, pagination.size, start_date, end_date
    )
    return build_page(WeightResponse, items, total, pagination.page, pagination.size)


@router.get("/latest", response_model=WeightResponse)
async def get_latest_weight(
    user_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Most recent measurement."""
    record = WeightService(db).latest(current_user, user_id or current_user.id)
    if record is None:
        raise NotFoundError("No weight logs found")
    return record


@router.get("/stats")
async def get_weight_stats(
    user_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return WeightService(db).stats(current_user, user_id or current_user.id, start_date, end_date)


@router.get("/{log_id}", response_model=WeightResponse)
async def get_weight(
    log_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return WeightService(db).get(current_user, log_id)


@router.post("/", response_model=WeightResponse, status_code=status.HTTP_201_CREATED)
async def create_weight(
    payload: WeightCreate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Record a measurement; BMI is derived from the owner's height when omitted."""
    values = payload.model_dump(exclude_none=True, exclude={"user_id"})
    record = WeightService(db).create(current_user, values, owner_id=payload.user_id)
    auditor.record(
        AuditAction.WEIGHT_LOGGED, AuditEntity.WEIGHT_LOGS, record.id,
        changes={"weight_kg": record.weight_kg, "bmi": record.bmi},
    )
    return record


@router.put("/{log_id}", response_model=WeightResponse)
async def update_weight(
    log_id: int,
    payload: WeightUpdate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    record, applied = WeightService(db).update(current_user, log_id, payload.model_dump(exclude_unset=True))
    auditor.record(AuditAction.WEIGHT_UPDATED, AuditEntity.WEIGHT_LOGS, record.id, changes=applied)
    return record


@router.delete("/{log_id}", response_model=MessageResponse)
async def delete_weight(
    log_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    WeightService(db).delete(current_user, log_id)
    auditor.record(AuditAction.WEIGHT_DELETED, AuditEntity.WEIGHT_LOGS, log_id)
    return MessageResponse(message="Weight log deleted successfully")
