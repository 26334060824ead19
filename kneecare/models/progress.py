"""
Progress reports and per-patient disease progression.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from kneecare.db.base import Base
from kneecare.models.lifecycle import utcnow
from kneecare.services.derivations import kl_grade_trend


class ReportType(str, enum.Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class ReportSource(str, enum.Enum):
    AI_SYSTEM = "ai_system"
    DOCTOR = "doctor"
    MANUAL = "manual"


class ProgressReport(Base):
    """Metrics and insights for one patient over a reporting period."""
    __tablename__ = "progress_reports"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    report_type = Column(String(20), nullable=False, index=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    metrics = Column(JSON, nullable=False)  # adherence, activity, weight, symptoms
    insights = Column(JSON, nullable=False)  # achievements, concerns, recommendations
    generated_by = Column(String(20), default=ReportSource.DOCTOR.value, nullable=False)
    generated_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    generated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<ProgressReport(id={self.id}, user_id={self.user_id}, report_type='{self.report_type}')>"


class DiseaseProgression(Base):
    """KL grade history and risk profile, one row per patient."""
    __tablename__ = "disease_progressions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    kl_grade_history = Column(JSON, default=list, nullable=False)
    progression = Column(JSON, default=dict, nullable=False)  # current_grade, rate_of_progression, projected_grade
    risk_factors = Column(JSON, default=dict, nullable=False)  # modifiable, non_modifiable, current
    last_updated = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<DiseaseProgression(user_id={self.user_id}, current_grade={self.current_grade})>"

    @property
    def current_grade(self):
        return (self.progression or {}).get("current_grade")

    @property
    def trend(self) -> str:
        return kl_grade_trend(self.kl_grade_history or [])

    def add_kl_grade(self, grade: int, confidence: float, prediction_id: int = None, predicted_at=None) -> None:
        """Append a grade to the history and make it the current grade."""
        # JSON columns only notice reassignment
        self.kl_grade_history = list(self.kl_grade_history or []) + [{
            "grade": grade,
            "predicted_at": (predicted_at or utcnow()).isoformat(),
            "confidence": confidence,
            "prediction_id": prediction_id,
        }]
        self.progression = dict(self.progression or {}, current_grade=grade)
        self.last_updated = utcnow()
