"""
Care recommendation service.
"""
from typing import Any, Dict, Optional

from sqlalchemy import desc

from kneecare.core.exceptions import ForbiddenError
from kneecare.models.clinical import Recommendation
from kneecare.models.user import User
from kneecare.services.record_service import OwnedRecordService


class RecommendationService(OwnedRecordService):
    model = Recommendation
    entity = "recommendation"
    date_field = "generated_at"
    write_permission = "modify_recommendations"
    not_found_message = "Recommendation not found"

    def _require_clinician(self, actor: User) -> None:
        if not (actor.is_doctor or actor.is_admin):
            raise ForbiddenError("Only doctors and admins can manage recommendations")

    def create(self, actor: User, values: Dict[str, Any], owner_id: Optional[int] = None) -> Recommendation:
        self._require_clinician(actor)
        return super().create(actor, dict(values, created_by=actor.id), owner_id=owner_id)

    def update(self, actor: User, record_id: int, changes: Dict[str, Any]):
        self._require_clinician(actor)
        return super().update(actor, record_id, changes)

    def delete(self, actor: User, record_id: int, permanent: bool = False):
        self._require_clinician(actor)
        return super().delete(actor, record_id, permanent=permanent)

    def active(self, actor: User, owner_id: int) -> Optional[Recommendation]:
        """Most recent active recommendation for the owner."""
        self.authorize_owner(actor, owner_id)
        return self.owner_query(owner_id).order_by(
            desc(Recommendation.generated_at), desc(Recommendation.id)
        ).first()
