"""
Doctor-patient relationship registry.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kneecare.core.exceptions import (
    ConflictError, ForbiddenError, InvalidReferenceError, NotFoundError,
)
from kneecare.models.relationship import DoctorPatientRelation, PERMISSION_NAMES, RelationshipType
from kneecare.models.user import Role, User

logger = logging.getLogger(__name__)

ACTIVE_PAIR_MESSAGE = "Active relationship already exists between this doctor and patient"


class RelationshipRegistry:
    """Source of truth for care relationships and their permissions."""

    def __init__(self, db: Session):
        self.db = db

    def find_active(self, doctor_id: int, patient_id: int) -> Optional[DoctorPatientRelation]:
        """Active relationship for the pair, if any."""
        return self.db.query(DoctorPatientRelation).filter(
            DoctorPatientRelation.doctor_id == doctor_id,
            DoctorPatientRelation.patient_id == patient_id,
            DoctorPatientRelation.is_active.is_(True),
        ).first()

    # Matches the evaluator's relationship lookup signature
    lookup = find_active

    def get(self, relationship_id: int) -> DoctorPatientRelation:
        relation = self.db.query(DoctorPatientRelation).filter(
            DoctorPatientRelation.id == relationship_id
        ).first()
        if relation is None:
            raise NotFoundError("Relationship not found")
        return relation

    def _require_role(self, user_id: int, role: Role, label: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None or user.role != role.value:
            raise InvalidReferenceError(f"Invalid {label} ID")
        return user

    def establish(
        self,
        actor: User,
        doctor_id: int,
        patient_id: int,
        relationship_type: str = RelationshipType.PRIMARY_CARE.value,
        permissions: Optional[Dict[str, bool]] = None,
        notes: Optional[str] = None,
    ) -> DoctorPatientRelation:
        """Create an active relationship between a doctor and a patient."""
        if actor.is_doctor and actor.id != doctor_id:
            raise ForbiddenError("Doctors can only create relationships for themselves")
        if not (actor.is_doctor or actor.is_admin):
            raise ForbiddenError("Only doctors and admins can create relationships")

        self._require_role(doctor_id, Role.DOCTOR, "doctor")
        self._require_role(patient_id, Role.PATIENT, "patient")

        if self.find_active(doctor_id, patient_id) is not None:
            raise ConflictError(ACTIVE_PAIR_MESSAGE)

        granted = {name: True for name in PERMISSION_NAMES}
        granted.update({k: v for k, v in (permissions or {}).items() if k in PERMISSION_NAMES})

        relation = DoctorPatientRelation(
            doctor_id=doctor_id,
            patient_id=patient_id,
            relationship_type=relationship_type,
            notes=notes,
            is_active=True,
            **granted,
        )
        self.db.add(relation)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent request won the race for the active slot
            self.db.rollback()
            raise ConflictError(ACTIVE_PAIR_MESSAGE)
        self.db.refresh(relation)
        logger.info(f"Relationship {relation.id} established: doctor {doctor_id} -> patient {patient_id}")
        return relation

    def end(self, relationship_id: int) -> Tuple[DoctorPatientRelation, bool]:
        """Soft-delete. Ending an ended relationship is a no-op; the flag says whether anything changed."""
        relation = self.get(relationship_id)
        changed = relation.end()
        if changed:
            self.db.commit()
            self.db.refresh(relation)
            logger.info(f"Relationship {relation.id} ended")
        return relation, changed

    def permanently_delete(self, actor: User, relationship_id: int) -> DoctorPatientRelation:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can permanently delete relationships")
        relation = self.get(relationship_id)
        self.db.delete(relation)
        self.db.commit()
        logger.info(f"Relationship {relationship_id} permanently deleted by admin {actor.id}")
        return relation

    def update(self, relationship_id: int, patch: Dict[str, Any]) -> DoctorPatientRelation:
        """Merge permission, type and note changes. Parties are immutable."""
        relation = self.get(relationship_id)
        for name, granted in (patch.get("permissions") or {}).items():
            if name in PERMISSION_NAMES and granted is not None:
                setattr(relation, name, granted)
        if patch.get("relationship_type") is not None:
            relation.relationship_type = patch["relationship_type"]
        if "notes" in patch:
            relation.notes = patch["notes"]
        self.db.commit()
        self.db.refresh(relation)
        return relation

    def query(
        self,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        active_only: Optional[bool] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[DoctorPatientRelation], int]:
        """Matching relationships, newest first."""
        query = self.db.query(DoctorPatientRelation)
        if doctor_id is not None:
            query = query.filter(DoctorPatientRelation.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.filter(DoctorPatientRelation.patient_id == patient_id)
        if active_only is not None:
            query = query.filter(DoctorPatientRelation.is_active.is_(active_only))

        total = query.count()
        skip = (page - 1) * size
        items = query.order_by(desc(DoctorPatientRelation.created_at), desc(DoctorPatientRelation.id)) \
            .offset(skip).limit(size).all()
        return items, total

    def query_for(self, actor: User, active_only: Optional[bool] = None, page: int = 1, size: int = 20):
        """Relationships visible to ``actor``: admins see all, others their own."""
        if actor.is_admin:
            return self.query(active_only=active_only, page=page, size=size)
        if actor.is_doctor:
            return self.query(doctor_id=actor.id, active_only=active_only, page=page, size=size)
        return self.query(patient_id=actor.id, active_only=active_only, page=page, size=size)

    def can_view(self, actor: User, relation: DoctorPatientRelation) -> bool:
        return actor.is_admin or actor.id in (relation.doctor_id, relation.patient_id)

    def can_modify(self, actor: User, relation: DoctorPatientRelation) -> bool:
        return actor.is_admin or actor.id == relation.doctor_id

    def permissions(self, doctor_id: int, patient_id: int) -> Dict[str, Any]:
        relation = self.find_active(doctor_id, patient_id)
        if relation is None:
            raise NotFoundError("No active relationship found")
        return {
            "relationship_id": relation.id,
            "relationship_type": relation.relationship_type,
            "permissions": relation.permissions,
        }
