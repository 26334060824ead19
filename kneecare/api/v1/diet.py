"""
Diet tracking API endpoints.
"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import Auditor, Pagination, get_auditor, get_current_user, get_db, get_pagination
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.lifestyle import DietCreate, DietResponse, DietUpdate, Meal
from kneecare.services.lifestyle_service import DietService

router = APIRouter()


@router.get("/", response_model=Page[DietResponse])
async def list_my_diet(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = DietService(db).list_for_owner(
        current_user, current_user.id, pagination.page, pagination.size, start_date, end_date
    )
    return build_page(DietResponse, items, total, pagination.page, pagination.size)


@router.get("/user/{user_id}", response_model=Page[DietResponse])
async def list_user_diet(
    user_id: int,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = DietService(db).list_for_owner(
        current_user, user_id, pagination.page, pagination.size, start_date, end_date
    )
    return build_page(DietResponse, items, total, pagination.page, pagination.size)


@router.get("/stats")
async def get_diet_stats(
    user_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return DietService(db).stats(current_user, user_id or current_user.id, start_date, end_date)


@router.get("/{log_id}", response_model=DietResponse)
async def get_diet(
    log_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return DietService(db).get(current_user, log_id)


@router.post("/", response_model=DietResponse, status_code=status.HTTP_201_CREATED)
async def create_diet(
    payload: DietCreate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Log a day of meals; calorie and nutrient totals are computed from the foods."""
    values = payload.model_dump(exclude_none=True, exclude={"user_id"})
    record = DietService(db).create(current_user, values, owner_id=payload.user_id)
    auditor.record(
        AuditAction.DIET_LOGGED, AuditEntity.DIET_LOGS, record.id,
        changes={"meals": len(record.meals), "total_calories": record.total_calories},
    )
    return record


@router.post("/{log_id}/meals", response_model=DietResponse)
async def add_meal(
    log_id: int,
    meal: Meal,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Append a meal to an existing log and recompute its totals."""
    record = DietService(db).add_meal(current_user, log_id, meal.model_dump())
    auditor.record(
        AuditAction.DIET_UPDATED, AuditEntity.DIET_LOGS, record.id,
        changes={"added_meal": meal.type, "total_calories": record.total_calories},
    )
    return record


@router.put("/{log_id}", response_model=DietResponse)
async def update_diet(
    log_id: int,
    payload: DietUpdate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    record, applied = DietService(db).update(current_user, log_id, payload.model_dump(exclude_unset=True))
    auditor.record(AuditAction.DIET_UPDATED, AuditEntity.DIET_LOGS, record.id, changes=applied)
    return record


@router.delete("/{log_id}", response_model=MessageResponse)
async def delete_diet(
    log_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    DietService(db).delete(current_user, log_id)
    auditor.record(AuditAction.DIET_DELETED, AuditEntity.DIET_LOGS, log_id)
    return MessageResponse(message="Diet log deleted successfully")
