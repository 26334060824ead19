"""
Doctor-patient care relationship model.
"""
import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from kneecare.db.base import Base
from kneecare.models.lifecycle import LifecycleMixin


class RelationshipType(str, enum.Enum):
    PRIMARY_CARE = "primary_care"
    SPECIALIST = "specialist"
    CONSULTANT = "consultant"


PERMISSION_NAMES = (
    "view_predictions",
    "view_activity_data",
    "modify_recommendations",
    "prescribe_medications",
)


class DoctorPatientRelation(LifecycleMixin, Base):
    """An active or ended care link between a doctor and a patient."""
    __tablename__ = "doctor_patient_relations"
    __table_args__ = (
        # At most one active relationship per pair
        Index(
            "uq_active_doctor_patient",
            "doctor_id", "patient_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    relationship_type = Column(String(20), default=RelationshipType.PRIMARY_CARE.value, nullable=False)
    start_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    notes = Column(String(1000))

    # Granular permissions
    view_predictions = Column(Boolean, default=True, nullable=False)
    view_activity_data = Column(Boolean, default=True, nullable=False)
    modify_recommendations = Column(Boolean, default=True, nullable=False)
    prescribe_medications = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    doctor = relationship("User", foreign_keys=[doctor_id])
    patient = relationship("User", foreign_keys=[patient_id])

    def __repr__(self):
        return (
            f"<DoctorPatientRelation(id={self.id}, doctor_id={self.doctor_id}, "
            f"patient_id={self.patient_id}, active={self.is_active})>"
        )

    @property
    def end_date(self):
        return self.ended_at

    @property
    def permissions(self) -> dict:
        return {name: bool(getattr(self, name)) for name in PERMISSION_NAMES}

    def grants(self, permission: str) -> bool:
        return bool(getattr(self, permission, False))
