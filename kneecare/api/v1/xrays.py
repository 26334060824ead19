"""
X-ray image upload and management API endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from kneecare.api.deps import (
    Auditor, Pagination, get_auditor, get_current_user, get_db, get_pagination, get_settings, get_storage,
)
from kneecare.core.config import Settings
from kneecare.core.exceptions import ValidationError
from kneecare.core.logging import security_logger
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.xray import XRayMetadata, XRayResponse, XRayUpdate
from kneecare.services.storage_service import StorageService
from kneecare.services.xray_service import XRayService
from kneecare.utils.file_utils import read_upload

router = APIRouter()


def _parse_metadata(raw: Optional[str]):
    if not raw:
        return None
    try:
        return XRayMetadata.model_validate_json(raw).model_dump(mode="json", exclude_none=True)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in e.errors()
        ]
        raise ValidationError("Invalid image metadata", errors=errors)


@router.post("/upload", response_model=XRayResponse, status_code=status.HTTP_201_CREATED)
async def upload_xray(
    file: UploadFile = File(...),
    user_id: Optional[int] = Form(None),
    metadata: Optional[str] = Form(None),
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    settings: Settings = Depends(get_settings),
    storage: StorageService = Depends(get_storage),
    db: Session = Depends(get_db),
):
    """Upload a knee X-ray for yourself, or for a patient you care for."""
    content = await read_upload(file, settings.MAX_UPLOAD_SIZE)
    image = XRayService(db, storage).upload(
        current_user,
        content,
        file.filename or "upload",
        file.content_type or "",
        settings.MAX_UPLOAD_SIZE,
        owner_id=user_id,
        metadata=_parse_metadata(metadata),
    )
    security_logger.log_file_upload(current_user.id, image.file_name, image.file_size, auditor.context.ip_address)
    auditor.record(
        AuditAction.XRAY_UPLOADED, AuditEntity.XRAY_IMAGES, image.id,
        metadata={"file_name": image.file_name, "file_size": image.file_size, "user_id": image.user_id},
    )
    return image


@router.get("/", response_model=Page[XRayResponse])
async def list_my_xrays(
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = XRayService(db).list_for_owner(current_user, current_user.id, pagination.page, pagination.size)
    return build_page(XRayResponse, items, total, pagination.page, pagination.size)


@router.get("/user/{user_id}", response_model=Page[XRayResponse])
async def list_user_xrays(
    user_id: int,
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """X-rays of a patient (owner, doctors allowed to view predictions, or admin)."""
    items, total = XRayService(db).list_for_owner(current_user, user_id, pagination.page, pagination.size)
    return build_page(XRayResponse, items, total, pagination.page, pagination.size)


@router.get("/{image_id}", response_model=XRayResponse)
async def get_xray(
    image_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return XRayService(db).get(current_user, image_id)


@router.put("/{image_id}", response_model=XRayResponse)
async def update_xray(
    image_id: int,
    payload: XRayUpdate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True, mode="json")
    image, applied = XRayService(db).update(current_user, image_id, changes)
    auditor.record(AuditAction.XRAY_UPDATED, AuditEntity.XRAY_IMAGES, image.id, changes=applied)
    return image


@router.delete("/{image_id}", response_model=MessageResponse)
async def delete_xray(
    image_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    storage: StorageService = Depends(get_storage),
    db: Session = Depends(get_db),
):
    """Delete an X-ray record and its stored file."""
    image, _ = XRayService(db, storage).delete(current_user, image_id)
    auditor.record(
        AuditAction.XRAY_DELETED, AuditEntity.XRAY_IMAGES, image_id,
        metadata={"file_name": image.file_name},
    )
    return MessageResponse(message="X-ray image deleted successfully")
