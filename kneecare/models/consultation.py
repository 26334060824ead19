"""
Consultation model.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, JSON
from sqlalchemy.sql import func
from kneecare.db.base import Base


class ConsultationType(str, enum.Enum):
    VIRTUAL = "virtual"
    IN_PERSON = "in_person"
    REVIEW = "review"


class ConsultationStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class Consultation(Base):
    """An appointment between a doctor and the patient who owns it."""
    __tablename__ = "consultations"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    consultation_type = Column(String(20), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    duration = Column(Integer, default=30, nullable=False)  # minutes
    status = Column(String(20), default=ConsultationStatus.SCHEDULED.value, nullable=False, index=True)

    notes = Column(Text)
    clinical_assessment = Column(JSON)
    prescriptions = Column(JSON)
    next_appointment = Column(DateTime(timezone=True))
    action_items = Column(JSON)
    meeting_details = Column(JSON)
    reviewed_predictions = Column(JSON)
    updated_recommendations = Column(JSON)
    cancellation_reason = Column(String(500))
    completed_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Consultation(id={self.id}, doctor_id={self.doctor_id}, patient_id={self.patient_id}, status='{self.status}')>"

    def involves(self, user_id: int) -> bool:
        return user_id in (self.doctor_id, self.patient_id)
