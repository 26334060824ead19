"""
Consultation API endpoints.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import Auditor, Pagination, get_auditor, get_current_user, get_db, get_pagination
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.consultation import ConsultationStatus
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.consultation import (
    ConsultationCancel, ConsultationComplete, ConsultationCreate, ConsultationResponse, ConsultationUpdate,
)
from kneecare.services.consultation_service import ConsultationService

router = APIRouter()


@router.get("/", response_model=Page[ConsultationResponse])
async def list_consultations(
    status: Optional[ConsultationStatus] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Consultations the caller takes part in; admins see all."""
    items, total = ConsultationService(db).list_for(
        current_user, status.value if status else None, pagination.page, pagination.size
    )
    return build_page(ConsultationResponse, items, total, pagination.page, pagination.size)


@router.get("/upcoming", response_model=List[ConsultationResponse])
async def list_upcoming_consultations(
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ConsultationService(db).upcoming(current_user, limit)


@router.get("/{consultation_id}", response_model=ConsultationResponse)
async def get_consultation(
    consultation_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ConsultationService(db).get(current_user, consultation_id)


@router.post("/", response_model=ConsultationResponse, status_code=status.HTTP_201_CREATED)
async def schedule_consultation(
    payload: ConsultationCreate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Book a consultation. Patients book for themselves; doctors for their own patients."""
    consultation = ConsultationService(db).schedule(current_user, payload.model_dump(exclude_none=True))
    auditor.record(
        AuditAction.CONSULTATION_SCHEDULED, AuditEntity.CONSULTATIONS, consultation.id,
        changes={
            "doctor_id": consultation.doctor_id,
            "patient_id": consultation.patient_id,
            "scheduled_at": consultation.scheduled_at,
        },
    )
    return consultation


@router.put("/{consultation_id}", response_model=ConsultationResponse)
async def update_consultation(
    consultation_id: int,
    payload: ConsultationUpdate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    consultation, applied = ConsultationService(db).update(
        current_user, consultation_id, payload.model_dump(exclude_unset=True)
    )
    auditor.record(AuditAction.CONSULTATION_UPDATED, AuditEntity.CONSULTATIONS, consultation.id, changes=applied)
    return consultation


@router.post("/{consultation_id}/cancel", response_model=ConsultationResponse)
async def cancel_consultation(
    consultation_id: int,
    payload: ConsultationCancel,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    consultation = ConsultationService(db).cancel(current_user, consultation_id, payload.reason)
    auditor.record(
        AuditAction.CONSULTATION_CANCELLED, AuditEntity.CONSULTATIONS, consultation.id,
        changes={"status": consultation.status, "cancellation_reason": payload.reason},
    )
    return consultation


@router.post("/{consultation_id}/complete", response_model=ConsultationResponse)
async def complete_consultation(
    consultation_id: int,
    payload: ConsultationComplete,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Close a consultation with its outcome (consulting doctor only)."""
    outcome = payload.model_dump(exclude_none=True)
    consultation = ConsultationService(db).complete(current_user, consultation_id, outcome)
    auditor.record(
        AuditAction.CONSULTATION_COMPLETED, AuditEntity.CONSULTATIONS, consultation.id,
        changes=dict(outcome, status=consultation.status),
    )
    return consultation


@router.delete("/{consultation_id}", response_model=MessageResponse)
async def delete_consultation(
    consultation_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    ConsultationService(db).delete(current_user, consultation_id)
    auditor.record(AuditAction.CONSULTATION_DELETED, AuditEntity.CONSULTATIONS, consultation_id)
    return MessageResponse(message="Consultation deleted successfully")
