"""
Kellgren-Lawrence grade reference data and care recommendations.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from kneecare.db.base import Base
from kneecare.models.lifecycle import LifecycleMixin, utcnow


class KLGrade(Base):
    """Reference description of a Kellgren-Lawrence grade."""
    __tablename__ = "kl_grades"

    id = Column(Integer, primary_key=True, index=True)
    grade = Column(Integer, unique=True, nullable=False)
    description = Column(String(500), nullable=False)
    severity = Column(String(30), nullable=False)
    recommendations = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<KLGrade(grade={self.grade}, severity='{self.severity}')>"


class Recommendation(LifecycleMixin, Base):
    """Personalised care plan for a patient."""
    __tablename__ = "recommendations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    kl_grade = Column(Integer, nullable=False)
    recommendations = Column(JSON, nullable=False)  # activity, diet, medication, reminders
    based_on = Column(JSON)
    generated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Recommendation(id={self.id}, user_id={self.user_id}, kl_grade={self.kl_grade})>"
