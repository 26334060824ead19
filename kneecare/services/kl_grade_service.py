"""
Kellgren-Lawrence grade reference data.
"""
from typing import Any, Dict, List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kneecare.core.exceptions import ConflictError, NotFoundError
from kneecare.core.policy import filter_update
from kneecare.db.init_db import seed_kl_grades
from kneecare.models.clinical import KLGrade
from kneecare.models.user import User


class KLGradeService:
    """Reads are public; writes are admin-only and gated by the router."""

    def __init__(self, db: Session):
        self.db = db

    def list_grades(self) -> List[KLGrade]:
        return self.db.query(KLGrade).order_by(KLGrade.grade).all()

    def get(self, grade: int) -> KLGrade:
        record = self.db.query(KLGrade).filter(KLGrade.grade == grade).first()
        if record is None:
            raise NotFoundError("KL grade not found")
        return record

    def create(self, values: Dict[str, Any]) -> KLGrade:
        if self.db.query(KLGrade).filter(KLGrade.grade == values["grade"]).first():
            raise ConflictError("grade already exists")
        record = KLGrade(**values)
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("grade already exists")
        self.db.refresh(record)
        return record

    def update(self, actor: User, grade: int, changes: Dict[str, Any]) -> Tuple[KLGrade, Dict[str, Any]]:
        record = self.get(grade)
        applied = filter_update("kl_grade", actor.role, changes)
        for field, value in applied.items():
            setattr(record, field, value)
        self.db.commit()
        self.db.refresh(record)
        return record, applied

    def delete(self, grade: int) -> KLGrade:
        record = self.get(grade)
        self.db.delete(record)
        self.db.commit()
        return record

    def initialize(self) -> List[KLGrade]:
        """Seed the five reference grades into an empty table."""
        if self.db.query(KLGrade).count() > 0:
            raise ConflictError("KL grades already initialized")
        seed_kl_grades(self.db)
        return self.list_grades()
