"""
Medication reminder API endpoints.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import Auditor, Pagination, get_auditor, get_current_user, get_db, get_pagination
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.medication import (
    DoseLog, DoseResponse, MedicationCreate, MedicationResponse, MedicationUpdate,
)
from kneecare.services.medication_service import MedicationService

router = APIRouter()


@router.get("/", response_model=Page[MedicationResponse])
async def list_my_medications(
    include_inactive: bool = Query(False),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Medication reminders of the current user."""
    items, total = MedicationService(db).list_for_owner(
        current_user, current_user.id, pagination.page, pagination.size, include_inactive=include_inactive
    )
    return build_page(MedicationResponse, items, total, pagination.page, pagination.size)


@router.get("/today", response_model=List[MedicationResponse])
async def list_todays_medications(
    user_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Active reminders scheduled for today."""
    return MedicationService(db).today(current_user, user_id or current_user.id)


@router.get("/user/{user_id}", response_model=Page[MedicationResponse])
async def list_user_medications(
    user_id: int,
    include_inactive: bool = Query(False),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = MedicationService(db).list_for_owner(
        current_user, user_id, pagination.page, pagination.size, include_inactive=include_inactive
    )
    return build_page(MedicationResponse, items, total, pagination.page, pagination.size)


@router.get("/{reminder_id}", response_model=MedicationResponse)
async def get_medication(
    reminder_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return MedicationService(db).get(current_user, reminder_id)


@router.post("/", response_model=MedicationResponse, status_code=status.HTTP_201_CREATED)
async def create_medication(
    payload: MedicationCreate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Create a reminder. Doctors need the prescribe_medications permission."""
    values = payload.model_dump(exclude_none=True, exclude={"user_id"})
    record = MedicationService(db).create(current_user, values, owner_id=payload.user_id)
    auditor.record(
        AuditAction.MEDICATION_REMINDER_CREATED, AuditEntity.MEDICATION_REMINDERS, record.id,
        changes=values,
    )
    return record


@router.post("/{reminder_id}/doses", response_model=DoseResponse, status_code=status.HTTP_201_CREATED)
async def log_dose(
    reminder_id: int,
    payload: DoseLog,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Record a taken or missed dose."""
    dose = MedicationService(db).log_dose(
        current_user, reminder_id, payload.taken, payload.date, payload.time, payload.notes
    )
    auditor.record(
        AuditAction.MEDICATION_DOSE_LOGGED, AuditEntity.MEDICATION_REMINDERS, reminder_id,
        changes={"taken": dose.taken, "date": dose.date},
    )
    return dose


@router.put("/{reminder_id}", response_model=MedicationResponse)
async def update_medication(
    reminder_id: int,
    payload: MedicationUpdate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    record, applied = MedicationService(db).update(
        current_user, reminder_id, payload.model_dump(exclude_unset=True)
    )
    auditor.record(
        AuditAction.MEDICATION_REMINDER_UPDATED, AuditEntity.MEDICATION_REMINDERS, record.id,
        changes=applied,
    )
    return record


@router.delete("/{reminder_id}", response_model=MessageResponse)
async def delete_medication(
    reminder_id: int,
    permanent: bool = Query(False),
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Deactivate a reminder; admins may remove it permanently."""
    _, removed = MedicationService(db).delete(current_user, reminder_id, permanent=permanent)
    auditor.record(
        AuditAction.MEDICATION_REMINDER_DELETED, AuditEntity.MEDICATION_REMINDERS, reminder_id,
        metadata={"permanent": removed},
    )
    return MessageResponse(message="Medication reminder deleted successfully")
