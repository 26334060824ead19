"""
Lifestyle tracking models: activity, diet and weight logs.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, JSON
from sqlalchemy.sql import func
from kneecare.db.base import Base
from kneecare.models.lifecycle import utcnow
from kneecare.services.derivations import bmi_category, step_goal_achievement


class DataSource(str, enum.Enum):
    KNEE_BAND = "knee_band"
    MOBILE_APP = "mobile_app"
    MANUAL = "manual"
    BLUETOOTH_SCALE = "bluetooth_scale"


class ActivityLog(Base):
    """Daily activity summary for a patient."""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    steps = Column(Integer, default=0, nullable=False)
    distance = Column(Float, default=0.0)  # km
    calories_burned = Column(Float, default=0.0)
    active_minutes = Column(Integer, default=0)
    knee_band_data = Column(JSON)
    adherence_score = Column(Float)
    target_steps = Column(Integer, default=10000, nullable=False)
    target_active_minutes = Column(Integer, default=60, nullable=False)
    data_source = Column(String(20), default=DataSource.MANUAL.value, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<ActivityLog(id={self.id}, user_id={self.user_id}, steps={self.steps})>"

    @property
    def step_goal_achievement(self) -> float:
        return step_goal_achievement(self.steps, self.target_steps)


class DietLog(Base):
    """Meals eaten on a day with computed nutritional totals."""
    __tablename__ = "diet_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    meals = Column(JSON, default=list, nullable=False)
    total_calories = Column(Float, default=0.0, nullable=False)
    total_nutrients = Column(JSON)
    dietary_score = Column(Float)
    anti_inflammatory_foods = Column(JSON, default=list)
    data_source = Column(String(20), default=DataSource.MANUAL.value, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<DietLog(id={self.id}, user_id={self.user_id}, total_calories={self.total_calories})>"


class WeightLog(Base):
    """Single body-weight measurement."""
    __tablename__ = "weight_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    weight_kg = Column(Float, nullable=False)
    bmi = Column(Float)
    measured_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    data_source = Column(String(20), default=DataSource.MANUAL.value, nullable=False)
    notes = Column(String(200))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<WeightLog(id={self.id}, user_id={self.user_id}, weight_kg={self.weight_kg})>"

    @property
    def bmi_category(self):
        return bmi_category(self.bmi)
