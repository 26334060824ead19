"""
Progress report and disease progression API endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import (
    Auditor, Pagination, get_auditor, get_current_admin, get_current_clinician, get_current_user, get_db,
    get_pagination,
)
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.progress import ReportType
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.progress import (
    DiseaseProgressionResponse, DiseaseProgressionUpdate, ProgressionAnalytics, ProgressReportGenerate,
    ProgressReportResponse,
)
from kneecare.services.progress_service import DiseaseProgressionService, ProgressService

router = APIRouter()


@router.get("/", response_model=Page[ProgressReportResponse])
async def list_progress_reports(
    report_type: Optional[ReportType] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Your reports; for doctors the reports they generated, for admins every report."""
    items, total = ProgressService(db).list_visible(
        current_user, pagination.page, pagination.size,
        report_type=report_type.value if report_type else None,
    )
    return build_page(ProgressReportResponse, items, total, pagination.page, pagination.size)


@router.get("/reports/{user_id}", response_model=Page[ProgressReportResponse])
async def list_user_progress_reports(
    user_id: int,
    report_type: Optional[ReportType] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = ProgressService(db).list_for_owner(
        current_user, user_id, pagination.page, pagination.size,
        filters={"report_type": report_type.value if report_type else None},
    )
    return build_page(ProgressReportResponse, items, total, pagination.page, pagination.size)


@router.get("/reports/single/{report_id}", response_model=ProgressReportResponse)
async def get_progress_report(
    report_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProgressService(db).get(current_user, report_id)


@router.post("/reports/generate", response_model=ProgressReportResponse, status_code=status.HTTP_201_CREATED)
async def generate_progress_report(
    payload: ProgressReportGenerate,
    current_user: User = Depends(get_current_clinician),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Compute a report from the patient's logged data over the period."""
    report = ProgressService(db).generate(current_user, payload.model_dump(exclude_none=True))
    auditor.record(
        AuditAction.PROGRESS_REPORT_GENERATED, AuditEntity.PROGRESS_REPORTS, report.id,
        metadata={"user_id": report.user_id, "report_type": report.report_type},
    )
    return report


@router.delete("/reports/{report_id}", response_model=MessageResponse)
async def delete_progress_report(
    report_id: int,
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    ProgressService(db).delete(current_user, report_id)
    auditor.record(AuditAction.PROGRESS_REPORT_DELETED, AuditEntity.PROGRESS_REPORTS, report_id)
    return MessageResponse(message="Progress report deleted successfully")


@router.get("/progression/{user_id}", response_model=DiseaseProgressionResponse)
async def get_disease_progression(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return DiseaseProgressionService(db).for_user(current_user, user_id)


@router.put("/progression/{user_id}", response_model=DiseaseProgressionResponse)
async def update_disease_progression(
    user_id: int,
    payload: DiseaseProgressionUpdate,
    current_user: User = Depends(get_current_clinician),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Create or update progression details and risk factors."""
    record, applied = DiseaseProgressionService(db).upsert(
        current_user, user_id, payload.model_dump(exclude_unset=True)
    )
    auditor.record(
        AuditAction.DISEASE_PROGRESSION_UPDATED, AuditEntity.DISEASE_PROGRESSION, record.id, changes=applied,
    )
    return record


@router.delete("/progression/{user_id}", response_model=MessageResponse)
async def delete_disease_progression(
    user_id: int,
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    record_id = DiseaseProgressionService(db).remove(current_user, user_id)
    auditor.record(
        AuditAction.DISEASE_PROGRESSION_DELETED, AuditEntity.DISEASE_PROGRESSION, record_id,
        metadata={"user_id": user_id},
    )
    return MessageResponse(message="Disease progression data deleted successfully")


@router.get("/analytics/{user_id}", response_model=ProgressionAnalytics)
async def get_progression_analytics(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return DiseaseProgressionService(db).analytics(current_user, user_id)
