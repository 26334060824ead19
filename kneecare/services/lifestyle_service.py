"""
Activity, diet and weight tracking services.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import asc, desc

from kneecare.models.lifestyle import ActivityLog, DietLog, WeightLog
from kneecare.models.user import User
from kneecare.services.derivations import (
    compute_bmi, compute_diet_totals, summarize_activity, summarize_weight,
)
from kneecare.services.record_service import OwnedRecordService


class ActivityService(OwnedRecordService):
    model = ActivityLog
    entity = "activity"
    date_field = "date"
    permission = "view_activity_data"
    not_found_message = "Activity log not found"

    def stats(self, actor: User, owner_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None):
        self.authorize_owner(actor, owner_id)
        logs = self.owner_query(owner_id, start, end).all()
        return summarize_activity(logs)


class DietService(OwnedRecordService):
    model = DietLog
    entity = "diet"
    date_field = "date"
    permission = "view_activity_data"
    not_found_message = "Diet log not found"

    def prepare(self, actor: User, values: Dict[str, Any], record=None) -> Dict[str, Any]:
        if "meals" in values:
            total_calories, total_nutrients = compute_diet_totals(values["meals"])
            values["total_calories"] = total_calories
            values["total_nutrients"] = total_nutrients
        return values

    def add_meal(self, actor: User, record_id: int, meal: Dict[str, Any]) -> DietLog:
        record = self.get(actor, record_id, write=True)
        meals = list(record.meals or []) + [meal]
        values = self.prepare(actor, {"meals": meals}, record=record)
        for field, value in values.items():
            setattr(record, field, value)
        self.db.commit()
        self.db.refresh(record)
        return record

    def stats(self, actor: User, owner_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None):
        self.authorize_owner(actor, owner_id)
        logs = self.owner_query(owner_id, start, end).all()
        days = len(logs)
        total = sum(log.total_calories or 0 for log in logs)
        scores = [log.dietary_score for log in logs if log.dietary_score is not None]
        return {
            "days": days,
            "total_calories": round(total, 2),
            "average_calories": round(total / days, 2) if days else 0,
            "average_dietary_score": round(sum(scores) / len(scores), 1) if scores else None,
        }


class WeightService(OwnedRecordService):
    model = WeightLog
    entity = "weight"
    date_field = "measured_at"
    permission = "view_activity_data"
    not_found_message = "Weight log not found"

    def prepare(self, actor: User, values: Dict[str, Any], record=None) -> Dict[str, Any]:
        # BMI is derived from the owner's height unless supplied
        if "weight_kg" in values and values.get("bmi") is None:
            owner_id = values.get(self.owner_field) or (record and self.owner_of(record))
            owner = self.db.query(User).filter(User.id == owner_id).first()
            values["bmi"] = compute_bmi(values["weight_kg"], owner.height_cm if owner else None)
        return values

    def latest(self, actor: User, owner_id: int) -> Optional[WeightLog]:
        self.authorize_owner(actor, owner_id)
        return self.owner_query(owner_id).order_by(desc(WeightLog.measured_at), desc(WeightLog.id)).first()

    def stats(self, actor: User, owner_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None):
        self.authorize_owner(actor, owner_id)
        logs = self.owner_query(owner_id, start, end).order_by(asc(WeightLog.measured_at), asc(WeightLog.id)).all()
        return summarize_weight(logs)
