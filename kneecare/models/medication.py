"""
Medication reminder and dose adherence models.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from kneecare.db.base import Base
from kneecare.models.lifecycle import LifecycleMixin
from kneecare.services.derivations import adherence_percentage


class MedicationFrequency(str, enum.Enum):
    DAILY = "daily"
    TWICE_DAILY = "twice_daily"
    THRICE_DAILY = "thrice_daily"
    WEEKLY = "weekly"
    AS_NEEDED = "as_needed"


class MedicationReminder(LifecycleMixin, Base):
    """A medication schedule owned by a patient."""
    __tablename__ = "medication_reminders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    medication_name = Column(String(200), nullable=False)
    dosage = Column(String(100), nullable=False)
    frequency = Column(String(20), nullable=False)
    time_slots = Column(JSON, default=list, nullable=False)  # ["08:00", "20:00"]
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True))
    prescribed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    notes = Column(String(500))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    doses = relationship(
        "MedicationDose",
        back_populates="reminder",
        cascade="all, delete-orphan",
        order_by="MedicationDose.date",
    )

    def __repr__(self):
        return f"<MedicationReminder(id={self.id}, user_id={self.user_id}, medication='{self.medication_name}')>"

    @property
    def adherence_percentage(self) -> int:
        return adherence_percentage(self.doses)


class MedicationDose(Base):
    """One adherence log entry for a reminder."""
    __tablename__ = "medication_doses"

    id = Column(Integer, primary_key=True, index=True)
    reminder_id = Column(Integer, ForeignKey("medication_reminders.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(DateTime(timezone=True), nullable=False)
    taken = Column(Boolean, nullable=False)
    time = Column(String(5))
    notes = Column(String(200))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    reminder = relationship("MedicationReminder", back_populates="doses")

    def __repr__(self):
        return f"<MedicationDose(id={self.id}, reminder_id={self.reminder_id}, taken={self.taken})>"
