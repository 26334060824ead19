"""
Doctor-patient relationship API endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import (
    Auditor, Pagination, get_auditor, get_current_admin, get_current_clinician,
    get_current_user, get_db, get_pagination,
)
from kneecare.core.exceptions import ForbiddenError, NotFoundError
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.relationship import (
    RelationshipCreate, RelationshipPermissionsResponse, RelationshipResponse, RelationshipUpdate,
)
from kneecare.services.relationship_service import RelationshipRegistry

router = APIRouter()


def _visible(registry: RelationshipRegistry, actor: User, relationship_id: int):
    relation = registry.get(relationship_id)
    if not registry.can_view(actor, relation):
        raise NotFoundError("Relationship not found")
    return relation


@router.get("/", response_model=Page[RelationshipResponse])
async def list_relationships(
    is_active: Optional[bool] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Relationships visible to the caller: admins see all, others their own."""
    items, total = RelationshipRegistry(db).query_for(
        current_user, active_only=is_active, page=pagination.page, size=pagination.size
    )
    return build_page(RelationshipResponse, items, total, pagination.page, pagination.size)


@router.get("/doctor/{doctor_id}", response_model=Page[RelationshipResponse])
async def list_doctor_relationships(
    doctor_id: int,
    is_active: Optional[bool] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Relationships of one doctor (that doctor or admin)."""
    if not current_user.is_admin and current_user.id != doctor_id:
        raise ForbiddenError("Access denied")
    items, total = RelationshipRegistry(db).query(
        doctor_id=doctor_id, active_only=is_active, page=pagination.page, size=pagination.size
    )
    return build_page(RelationshipResponse, items, total, pagination.page, pagination.size)


@router.get("/patient/{patient_id}", response_model=Page[RelationshipResponse])
async def list_patient_relationships(
    patient_id: int,
    is_active: Optional[bool] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Relationships of one patient (that patient, their doctors, or admin)."""
    registry = RelationshipRegistry(db)
    allowed = (
        current_user.is_admin
        or current_user.id == patient_id
        or (current_user.is_doctor and registry.find_active(current_user.id, patient_id) is not None)
    )
    if not allowed:
        raise ForbiddenError("Access denied")
    items, total = registry.query(
        patient_id=patient_id, active_only=is_active, page=pagination.page, size=pagination.size
    )
    return build_page(RelationshipResponse, items, total, pagination.page, pagination.size)


@router.get("/permissions/{doctor_id}/{patient_id}", response_model=RelationshipPermissionsResponse)
async def get_relationship_permissions(
    doctor_id: int,
    patient_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Permission set of the active relationship between a doctor and a patient."""
    if not current_user.is_admin and current_user.id not in (doctor_id, patient_id):
        raise ForbiddenError("Access denied")
    return RelationshipRegistry(db).permissions(doctor_id, patient_id)


@router.get("/{relationship_id}", response_model=RelationshipResponse)
async def get_relationship(
    relationship_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _visible(RelationshipRegistry(db), current_user, relationship_id)


@router.post("/", response_model=RelationshipResponse, status_code=status.HTTP_201_CREATED)
async def create_relationship(
    payload: RelationshipCreate,
    current_user: User = Depends(get_current_clinician),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Establish a care relationship (doctor or admin)."""
    doctor_id = payload.doctor_id or current_user.id
    relation = RelationshipRegistry(db).establish(
        current_user,
        doctor_id=doctor_id,
        patient_id=payload.patient_id,
        relationship_type=payload.relationship_type.value,
        permissions=payload.permissions.model_dump(exclude_none=True) if payload.permissions else None,
        notes=payload.notes,
    )
    auditor.record(
        AuditAction.RELATIONSHIP_CREATED, AuditEntity.RELATIONSHIPS, relation.id,
        changes={
            "doctor_id": relation.doctor_id,
            "patient_id": relation.patient_id,
            "relationship_type": relation.relationship_type,
            "permissions": relation.permissions,
        },
    )
    return relation


@router.put("/{relationship_id}", response_model=RelationshipResponse)
async def update_relationship(
    relationship_id: int,
    payload: RelationshipUpdate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Merge permission, type and note changes (the relationship's doctor or admin)."""
    registry = RelationshipRegistry(db)
    relation = _visible(registry, current_user, relationship_id)
    if not registry.can_modify(current_user, relation):
        raise ForbiddenError("Not authorized to update this relationship")
    patch = payload.model_dump(exclude_unset=True, mode="json")
    relation = registry.update(relationship_id, patch)
    auditor.record(AuditAction.RELATIONSHIP_UPDATED, AuditEntity.RELATIONSHIPS, relation.id, changes=patch)
    return relation


@router.delete("/{relationship_id}", response_model=RelationshipResponse)
async def end_relationship(
    relationship_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """End a relationship. Ending an already ended relationship succeeds without change."""
    registry = RelationshipRegistry(db)
    relation = _visible(registry, current_user, relationship_id)
    if not registry.can_modify(current_user, relation):
        raise ForbiddenError("Not authorized to end this relationship")
    relation, changed = registry.end(relationship_id)
    auditor.record(
        AuditAction.RELATIONSHIP_ENDED, AuditEntity.RELATIONSHIPS, relation.id,
        changes={"is_active": False},
        metadata={"already_ended": not changed},
    )
    return relation


@router.delete("/{relationship_id}/permanent", response_model=MessageResponse)
async def delete_relationship_permanently(
    relationship_id: int,
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Remove a relationship record for good (admin only)."""
    relation = RelationshipRegistry(db).permanently_delete(current_user, relationship_id)
    auditor.record(
        AuditAction.RELATIONSHIP_DELETED, AuditEntity.RELATIONSHIPS, relationship_id,
        changes={"doctor_id": relation.doctor_id, "patient_id": relation.patient_id},
    )
    return MessageResponse(message="Relationship permanently deleted")
