"""
AI prediction records.

Predictions are produced by an external model; this service only stores and
reviews them.
"""
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import desc, func

from kneecare.core.exceptions import ForbiddenError, InvalidReferenceError
from kneecare.models.lifecycle import utcnow
from kneecare.models.user import User
from kneecare.models.xray import AIPrediction, ProcessingStatus, XRayImage
from kneecare.services.derivations import severity_description
from kneecare.services.progress_service import DiseaseProgressionService
from kneecare.services.record_service import OwnedRecordService


class PredictionService(OwnedRecordService):
    model = AIPrediction
    entity = "prediction"
    date_field = "predicted_at"
    permission = "view_predictions"
    not_found_message = "Prediction not found"

    def create(self, actor: User, values: Dict[str, Any], owner_id: Optional[int] = None) -> AIPrediction:
        if not (actor.is_doctor or actor.is_admin):
            raise ForbiddenError("Only doctors and admins can create predictions")
        xray = self.db.query(XRayImage).filter(XRayImage.id == values.get("xray_image_id")).first()
        if xray is None:
            raise InvalidReferenceError("Invalid X-ray image ID")
        prediction = super().create(actor, values, owner_id=xray.user_id)
        xray.is_processed = True
        xray.processing_status = ProcessingStatus.COMPLETED.value
        DiseaseProgressionService(self.db).record_grade(
            prediction.user_id, prediction.kl_grade, prediction.confidence,
            prediction_id=prediction.id, predicted_at=prediction.predicted_at,
        )
        self.db.commit()
        return prediction

    def prepare(self, actor: User, values: Dict[str, Any], record=None) -> Dict[str, Any]:
        if record is not None and "review_notes" in values:
            values["reviewed_by"] = actor.id
            values["reviewed_at"] = utcnow()
        return values

    def update(self, actor: User, record_id: int, changes: Dict[str, Any]):
        if not (actor.is_doctor or actor.is_admin):
            raise ForbiddenError("Only doctors and admins can update predictions")
        return super().update(actor, record_id, changes)

    def delete(self, actor: User, record_id: int, permanent: bool = True) -> Tuple[AIPrediction, bool]:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can delete predictions")
        return super().delete(actor, record_id, permanent=True)

    def stats(self, actor: User, owner_id: int) -> Dict[str, Any]:
        self.authorize_owner(actor, owner_id)
        query = self.owner_query(owner_id)
        by_grade = dict(
            query.with_entities(AIPrediction.kl_grade, func.count(AIPrediction.id))
            .group_by(AIPrediction.kl_grade)
            .all()
        )
        average_confidence = query.with_entities(func.avg(AIPrediction.confidence)).scalar()
        latest = query.order_by(desc(AIPrediction.predicted_at), desc(AIPrediction.id)).first()
        return {
            "total": sum(by_grade.values()),
            "by_kl_grade": {str(grade): count for grade, count in by_grade.items()},
            "average_confidence": round(average_confidence, 3) if average_confidence is not None else None,
            "latest_kl_grade": latest.kl_grade if latest else None,
            "latest_severity": severity_description(latest.kl_grade) if latest else None,
        }
