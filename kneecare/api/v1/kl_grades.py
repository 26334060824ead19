"""
Kellgren-Lawrence grade reference API endpoints.
"""
from typing import List
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from kneecare.api.deps import Auditor, get_auditor, get_current_admin, get_db
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.clinical import KLGradeCreate, KLGradeResponse, KLGradeUpdate
from kneecare.schemas.common import MessageResponse
from kneecare.services.kl_grade_service import KLGradeService

router = APIRouter()


@router.get("/", response_model=List[KLGradeResponse])
async def list_kl_grades(db: Session = Depends(get_db)):
    """All grades, public."""
    return KLGradeService(db).list_grades()


@router.get("/{grade}", response_model=KLGradeResponse)
async def get_kl_grade(grade: int = Path(..., ge=0, le=4), db: Session = Depends(get_db)):
    return KLGradeService(db).get(grade)


@router.get("/{grade}/recommendations", response_model=List[str])
async def get_kl_grade_recommendations(grade: int = Path(..., ge=0, le=4), db: Session = Depends(get_db)):
    """General advice for a grade."""
    return KLGradeService(db).get(grade).recommendations or []


@router.post("/initialize", response_model=List[KLGradeResponse], status_code=status.HTTP_201_CREATED)
async def initialize_kl_grades(
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Seed the five reference grades into an empty table (admin only)."""
    grades = KLGradeService(db).initialize()
    auditor.record(AuditAction.KL_GRADES_INITIALIZED, AuditEntity.KL_GRADES, metadata={"count": len(grades)})
    return grades


@router.post("/", response_model=KLGradeResponse, status_code=status.HTTP_201_CREATED)
async def create_kl_grade(
    payload: KLGradeCreate,
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    record = KLGradeService(db).create(payload.model_dump())
    auditor.record(AuditAction.KL_GRADE_CREATED, AuditEntity.KL_GRADES, record.grade, changes=payload.model_dump())
    return record


@router.put("/{grade}", response_model=KLGradeResponse)
async def update_kl_grade(
    payload: KLGradeUpdate,
    grade: int = Path(..., ge=0, le=4),
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    record, applied = KLGradeService(db).update(current_user, grade, payload.model_dump(exclude_unset=True))
    auditor.record(AuditAction.KL_GRADE_UPDATED, AuditEntity.KL_GRADES, record.grade, changes=applied)
    return record


@router.delete("/{grade}", response_model=MessageResponse)
async def delete_kl_grade(
    grade: int = Path(..., ge=0, le=4),
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    KLGradeService(db).delete(grade)
    auditor.record(AuditAction.KL_GRADE_DELETED, AuditEntity.KL_GRADES, grade)
    return MessageResponse(message="KL grade deleted successfully")
