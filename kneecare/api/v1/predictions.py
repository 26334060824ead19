"""
AI prediction API endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import (
    Auditor, Pagination, get_auditor, get_current_clinician, get_current_user, get_db, get_pagination,
)
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.xray import PredictionCreate, PredictionResponse, PredictionStats, PredictionUpdate
from kneecare.services.prediction_service import PredictionService
from kneecare.services.xray_service import XRayService

router = APIRouter()


@router.get("/", response_model=Page[PredictionResponse])
async def list_my_predictions(
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = PredictionService(db).list_for_owner(
        current_user, current_user.id, pagination.page, pagination.size
    )
    return build_page(PredictionResponse, items, total, pagination.page, pagination.size)


@router.get("/stats", response_model=PredictionStats)
async def get_prediction_stats(
    user_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Grade distribution and confidence summary."""
    return PredictionService(db).stats(current_user, user_id or current_user.id)


@router.get("/user/{user_id}", response_model=Page[PredictionResponse])
async def list_user_predictions(
    user_id: int,
    kl_grade: Optional[int] = Query(None, ge=0, le=4),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = PredictionService(db).list_for_owner(
        current_user, user_id, pagination.page, pagination.size, filters={"kl_grade": kl_grade}
    )
    return build_page(PredictionResponse, items, total, pagination.page, pagination.size)


@router.get("/xray/{image_id}", response_model=Page[PredictionResponse])
async def list_xray_predictions(
    image_id: int,
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Predictions made for one X-ray."""
    image = XRayService(db).get(current_user, image_id)
    items, total = PredictionService(db).list_for_owner(
        current_user, image.user_id, pagination.page, pagination.size, filters={"xray_image_id": image.id}
    )
    return build_page(PredictionResponse, items, total, pagination.page, pagination.size)


@router.get("/{prediction_id}", response_model=PredictionResponse)
async def get_prediction(
    prediction_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PredictionService(db).get(current_user, prediction_id)


@router.post("/", response_model=PredictionResponse, status_code=status.HTTP_201_CREATED)
async def create_prediction(
    payload: PredictionCreate,
    current_user: User = Depends(get_current_clinician),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Store a model prediction for an X-ray (doctor or admin)."""
    prediction = PredictionService(db).create(current_user, payload.model_dump(exclude_none=True))
    auditor.record(
        AuditAction.AI_PREDICTION_GENERATED, AuditEntity.AI_PREDICTIONS, prediction.id,
        changes={"xray_image_id": prediction.xray_image_id, "kl_grade": prediction.kl_grade},
    )
    return prediction


@router.put("/{prediction_id}", response_model=PredictionResponse)
async def review_prediction(
    prediction_id: int,
    payload: PredictionUpdate,
    current_user: User = Depends(get_current_clinician),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Attach review notes to a prediction."""
    prediction, applied = PredictionService(db).update(
        current_user, prediction_id, payload.model_dump(exclude_unset=True)
    )
    auditor.record(AuditAction.AI_PREDICTION_UPDATED, AuditEntity.AI_PREDICTIONS, prediction.id, changes=applied)
    return prediction


@router.delete("/{prediction_id}", response_model=MessageResponse)
async def delete_prediction(
    prediction_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    PredictionService(db).delete(current_user, prediction_id)
    auditor.record(AuditAction.AI_PREDICTION_DELETED, AuditEntity.AI_PREDICTIONS, prediction_id)
    return MessageResponse(message="Prediction deleted successfully")
