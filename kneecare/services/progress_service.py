"""
Progress reports and disease progression tracking.

Reports are computed from the activity, weight and medication data a patient
logged during the reporting period. Disease progression keeps one row per
patient and grows its KL grade history from stored AI predictions.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import asc, desc

from kneecare.core.exceptions import ForbiddenError, InvalidReferenceError, NotFoundError
from kneecare.core.policy import filter_update
from kneecare.models.lifecycle import utcnow
from kneecare.models.lifestyle import ActivityLog, WeightLog
from kneecare.models.medication import MedicationDose, MedicationReminder
from kneecare.models.progress import DiseaseProgression, ProgressReport, ReportSource, ReportType
from kneecare.models.user import Role, User
from kneecare.services.derivations import (
    kl_grade_trend, progress_insights, progress_metrics, progression_rate, progression_risk_level,
)
from kneecare.services.record_service import OwnedRecordService

logger = logging.getLogger(__name__)


def _require_patient(db, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or user.role != Role.PATIENT.value:
        raise InvalidReferenceError("Invalid patient ID")
    return user


class ProgressService(OwnedRecordService):
    model = ProgressReport
    entity = "progress_report"
    date_field = "generated_at"
    permission = "view_predictions"
    not_found_message = "Progress report not found"

    def list_visible(
        self, actor: User, page: int = 1, size: int = 20, report_type: Optional[str] = None
    ) -> Tuple[List[ProgressReport], int]:
        """Patients see their own reports, doctors the ones they generated, admins all."""
        query = self.db.query(ProgressReport)
        if actor.is_doctor:
            query = query.filter(ProgressReport.generated_by_id == actor.id)
        elif not actor.is_admin:
            query = query.filter(ProgressReport.user_id == actor.id)
        if report_type:
            query = query.filter(ProgressReport.report_type == report_type)
        total = query.count()
        items = (
            query.order_by(desc(ProgressReport.generated_at), desc(ProgressReport.id))
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        return items, total

    def _period_data(self, owner_id: int, start: datetime, end: datetime):
        activity = self.db.query(ActivityLog).filter(
            ActivityLog.user_id == owner_id, ActivityLog.date >= start, ActivityLog.date <= end,
        ).order_by(asc(ActivityLog.date), asc(ActivityLog.id)).all()
        weight = self.db.query(WeightLog).filter(
            WeightLog.user_id == owner_id, WeightLog.measured_at >= start, WeightLog.measured_at <= end,
        ).order_by(asc(WeightLog.measured_at), asc(WeightLog.id)).all()
        doses = self.db.query(MedicationDose).join(MedicationReminder).filter(
            MedicationReminder.user_id == owner_id, MedicationDose.date >= start, MedicationDose.date <= end,
        ).order_by(asc(MedicationDose.date), asc(MedicationDose.id)).all()
        return activity, weight, doses

    def generate(self, actor: User, values: Dict[str, Any]) -> ProgressReport:
        """Compute and store a report for the patient and period in ``values``."""
        if not (actor.is_doctor or actor.is_admin):
            raise ForbiddenError("Only doctors and admins can generate progress reports")
        owner_id = values["user_id"]
        _require_patient(self.db, owner_id)
        self.authorize_owner(actor, owner_id, write=True)

        start, end = values["start_date"], values["end_date"]
        activity, weight, doses = self._period_data(owner_id, start, end)
        metrics = progress_metrics(activity, weight, doses, symptoms=values.get("symptoms"))
        report = ProgressReport(
            user_id=owner_id,
            report_type=ReportType(values["report_type"]).value,
            start_date=start,
            end_date=end,
            metrics=metrics,
            insights=progress_insights(metrics),
            generated_by=ReportSource.DOCTOR.value if actor.is_doctor else ReportSource.MANUAL.value,
            generated_by_id=actor.id,
        )
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        logger.info(f"Progress report {report.id} generated for user {owner_id} by {actor.id}")
        return report

    def delete(self, actor: User, record_id: int, permanent: bool = True) -> Tuple[ProgressReport, bool]:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can delete progress reports")
        return super().delete(actor, record_id, permanent=True)


class DiseaseProgressionService(OwnedRecordService):
    model = DiseaseProgression
    entity = "disease_progression"
    date_field = "last_updated"
    permission = "view_predictions"
    not_found_message = "Disease progression data not found"

    def find(self, user_id: int) -> Optional[DiseaseProgression]:
        return self.db.query(DiseaseProgression).filter(DiseaseProgression.user_id == user_id).first()

    def for_user(self, actor: User, user_id: int) -> DiseaseProgression:
        self.authorize_owner(actor, user_id)
        record = self.find(user_id)
        if record is None:
            raise NotFoundError(self.not_found_message)
        return record

    def record_grade(
        self, user_id: int, grade: int, confidence: float,
        prediction_id: Optional[int] = None, predicted_at: Optional[datetime] = None,
    ) -> DiseaseProgression:
        """Append a predicted grade to the patient's history. The caller commits."""
        record = self.find(user_id)
        if record is None:
            record = DiseaseProgression(
                user_id=user_id,
                kl_grade_history=[],
                progression={"rate_of_progression": "slow"},
                risk_factors={},
            )
            self.db.add(record)
        if predicted_at is not None and predicted_at.tzinfo is None:
            predicted_at = predicted_at.replace(tzinfo=timezone.utc)
        record.add_kl_grade(grade, confidence, prediction_id, predicted_at)
        return record

    def upsert(self, actor: User, user_id: int, changes: Dict[str, Any]) -> Tuple[DiseaseProgression, Dict[str, Any]]:
        """Merge progression details and replace risk factors; creates the row if needed."""
        if not (actor.is_doctor or actor.is_admin):
            raise ForbiddenError("Only doctors and admins can update disease progression")
        _require_patient(self.db, user_id)
        self.authorize_owner(actor, user_id, write=True)
        applied = filter_update(self.entity, actor.role, changes)

        record = self.find(user_id)
        if record is None:
            record = DiseaseProgression(user_id=user_id, kl_grade_history=[], progression={}, risk_factors={})
            self.db.add(record)
        if applied.get("progression") is not None:
            merged = dict(record.progression or {})
            merged.update({k: v for k, v in applied["progression"].items() if v is not None})
            record.progression = merged
        if applied.get("risk_factors") is not None:
            record.risk_factors = applied["risk_factors"]
        record.last_updated = utcnow()
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"Disease progression for user {user_id} updated by {actor.id}")
        return record, applied

    def remove(self, actor: User, user_id: int) -> int:
        """Delete the patient's progression row and return its id."""
        if not actor.is_admin:
            raise ForbiddenError("Only admins can delete disease progression data")
        record = self.find(user_id)
        if record is None:
            raise NotFoundError(self.not_found_message)
        record_id = record.id
        self.db.delete(record)
        self.db.commit()
        logger.info(f"Disease progression {record_id} for user {user_id} deleted by admin {actor.id}")
        return record_id

    def analytics(self, actor: User, user_id: int) -> Dict[str, Any]:
        self.authorize_owner(actor, user_id)
        record = self.find(user_id)
        if record is None:
            return {"has_data": False, "message": "No progression data available"}

        history = sorted(record.kl_grade_history or [], key=lambda entry: entry["predicted_at"])
        progression = record.progression or {}
        current_grade = progression.get("current_grade")
        return {
            "has_data": True,
            "current_grade": current_grade,
            "progression_rate": progression_rate(history),
            "risk_level": progression_risk_level(current_grade) if len(history) >= 2 else "low",
            "total_predictions": len(history),
            "timespan": (
                {"start": history[0]["predicted_at"], "end": history[-1]["predicted_at"]}
                if len(history) >= 2 else None
            ),
            "trend": kl_grade_trend(history),
            "projected_grade": progression.get("projected_grade"),
            "risk_factors": record.risk_factors,
        }
