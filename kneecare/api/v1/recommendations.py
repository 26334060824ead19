"""
Care recommendation API endpoints.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import (
    Auditor, Pagination, get_auditor, get_current_clinician, get_current_user, get_db, get_pagination,
)
from kneecare.core.exceptions import NotFoundError
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.clinical import RecommendationCreate, RecommendationResponse, RecommendationUpdate
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.services.recommendation_service import RecommendationService

router = APIRouter()


@router.get("/", response_model=Page[RecommendationResponse])
async def list_my_recommendations(
    include_inactive: bool = Query(False),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = RecommendationService(db).list_for_owner(
        current_user, current_user.id, pagination.page, pagination.size, include_inactive=include_inactive
    )
    return build_page(RecommendationResponse, items, total, pagination.page, pagination.size)


@router.get("/user/{user_id}", response_model=Page[RecommendationResponse])
async def list_user_recommendations(
    user_id: int,
    include_inactive: bool = Query(False),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = RecommendationService(db).list_for_owner(
        current_user, user_id, pagination.page, pagination.size, include_inactive=include_inactive
    )
    return build_page(RecommendationResponse, items, total, pagination.page, pagination.size)


@router.get("/user/{user_id}/active", response_model=RecommendationResponse)
async def get_active_recommendation(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Latest active plan for a patient."""
    record = RecommendationService(db).active(current_user, user_id)
    if record is None:
        raise NotFoundError("No active recommendation found")
    return record


@router.get("/{recommendation_id}", response_model=RecommendationResponse)
async def get_recommendation(
    recommendation_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return RecommendationService(db).get(current_user, recommendation_id)


@router.post("/", response_model=RecommendationResponse, status_code=status.HTTP_201_CREATED)
async def create_recommendation(
    payload: RecommendationCreate,
    current_user: User = Depends(get_current_clinician),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Issue a care plan (doctors need the modify_recommendations permission)."""
    values = payload.model_dump(exclude_none=True, exclude={"user_id"})
    record = RecommendationService(db).create(current_user, values, owner_id=payload.user_id)
    auditor.record(
        AuditAction.RECOMMENDATION_CREATED, AuditEntity.RECOMMENDATIONS, record.id,
        changes={"user_id": record.user_id, "kl_grade": record.kl_grade},
    )
    return record


@router.put("/{recommendation_id}", response_model=RecommendationResponse)
async def update_recommendation(
    recommendation_id: int,
    payload: RecommendationUpdate,
    current_user: User = Depends(get_current_clinician),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    record, applied = RecommendationService(db).update(
        current_user, recommendation_id, payload.model_dump(exclude_unset=True)
    )
    auditor.record(AuditAction.RECOMMENDATION_UPDATED, AuditEntity.RECOMMENDATIONS, record.id, changes=applied)
    return record


@router.delete("/{recommendation_id}", response_model=MessageResponse)
async def delete_recommendation(
    recommendation_id: int,
    permanent: bool = Query(False),
    current_user: User = Depends(get_current_clinician),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Deactivate a recommendation; admins may remove it permanently."""
    _, removed = RecommendationService(db).delete(current_user, recommendation_id, permanent=permanent)
    auditor.record(
        AuditAction.RECOMMENDATION_DELETED, AuditEntity.RECOMMENDATIONS, recommendation_id,
        metadata={"permanent": removed},
    )
    return MessageResponse(message="Recommendation deleted successfully")
