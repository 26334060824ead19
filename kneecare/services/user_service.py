"""
User management service.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc, func, or_
from sqlalchemy.orm import Session

from kneecare.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from kneecare.core.policy import ensure_access, evaluate_access, filter_update
from kneecare.models.relationship import DoctorPatientRelation
from kneecare.models.user import User
from kneecare.services.relationship_service import RelationshipRegistry

logger = logging.getLogger(__name__)


class UserService:
    """Service for reading and changing identities."""

    def __init__(self, db: Session):
        self.db = db
        self.relationships = RelationshipRegistry(db)

    def get(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("User not found")
        return user

    def get_visible(self, actor: User, user_id: int) -> User:
        """Profile of ``user_id`` if the policy lets ``actor`` see it."""
        user = self.get(user_id)
        if user.is_doctor and not actor.is_admin and actor.id != user.id:
            # Doctor profiles are visible to their own patients
            if actor.is_patient and self.relationships.find_active(user.id, actor.id):
                return user
            raise NotFoundError("User not found")
        if not evaluate_access(actor, user.id, self.relationships.lookup):
            raise NotFoundError("User not found")
        return user

    def list_users(
        self,
        page: int = 1,
        size: int = 20,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[User], int]:
        query = self.db.query(User)
        if role:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(User.email).like(pattern),
                func.lower(User.first_name).like(pattern),
                func.lower(User.last_name).like(pattern),
            ))
        total = query.count()
        skip = (page - 1) * size
        users = query.order_by(desc(User.created_at), desc(User.id)).offset(skip).limit(size).all()
        return users, total

    def update(self, actor: User, user: User, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply the role-permitted subset of ``changes``. Returns what was applied."""
        ensure_access(actor, user.id, self.relationships.lookup)
        if actor.is_doctor and actor.id != user.id:
            raise ForbiddenError("Doctors cannot edit patient profiles")

        applied = filter_update("user", actor.role, changes)
        if "email" in applied and applied["email"]:
            applied["email"] = applied["email"].lower()
            taken = self.db.query(User).filter(
                func.lower(User.email) == applied["email"], User.id != user.id
            ).first()
            if taken:
                raise ConflictError("email already exists")
        if applied.get("license_number"):
            taken = self.db.query(User).filter(
                User.license_number == applied["license_number"], User.id != user.id
            ).first()
            if taken:
                raise ConflictError("license_number already exists")

        for field, value in applied.items():
            if field == "role" and value is not None:
                value = getattr(value, "value", value)
            setattr(user, field, value)
        self.db.commit()
        self.db.refresh(user)
        return applied

    def deactivate(self, user: User) -> User:
        user.is_active = False
        self.db.commit()
        self.db.refresh(user)
        return user

    def delete(self, user: User) -> None:
        self.db.delete(user)
        self.db.commit()
        logger.info(f"User {user.id} permanently deleted")

    def patients_of(self, doctor_id: int, page: int = 1, size: int = 20) -> Tuple[List[User], int]:
        """Patients with an active relationship to the doctor."""
        query = self.db.query(User).join(
            DoctorPatientRelation, DoctorPatientRelation.patient_id == User.id
        ).filter(
            DoctorPatientRelation.doctor_id == doctor_id,
            DoctorPatientRelation.is_active.is_(True),
        )
        total = query.count()
        skip = (page - 1) * size
        return query.order_by(User.last_name, User.first_name).offset(skip).limit(size).all(), total

    def doctors_of(self, patient_id: int) -> List[User]:
        """Doctors with an active relationship to the patient."""
        return self.db.query(User).join(
            DoctorPatientRelation, DoctorPatientRelation.doctor_id == User.id
        ).filter(
            DoctorPatientRelation.patient_id == patient_id,
            DoctorPatientRelation.is_active.is_(True),
        ).order_by(User.last_name, User.first_name).all()

    def list_doctors(self, page: int = 1, size: int = 20, specialization: Optional[str] = None):
        query = self.db.query(User).filter(User.role == "doctor", User.is_active.is_(True))
        if specialization:
            query = query.filter(func.lower(User.specialization).like(f"%{specialization.lower()}%"))
        total = query.count()
        skip = (page - 1) * size
        return query.order_by(User.last_name, User.first_name).offset(skip).limit(size).all(), total
