"""
Access policy evaluation.

``evaluate_access`` decides whether an actor may touch a record owned by
another identity. Rules are applied in order and the first match wins:

1. admins are always allowed;
2. the owner is always allowed;
3. a doctor is allowed when an active relationship with the owner exists
   (and, if a relationship permission is requested, that relationship
   grants it);
4. everyone else is denied.

The evaluator is pure: it performs no I/O of its own beyond the relationship
lookup it is handed, and it never writes audit entries.

``FIELD_PERMISSIONS`` is the static table of which fields each role may
change on each entity; ``filter_update`` applies it.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Protocol

from kneecare.core.exceptions import ForbiddenError
from kneecare.models.user import Role


class Actor(Protocol):
    id: int
    role: str


class RelationshipGrant(Protocol):
    def grants(self, permission: str) -> bool: ...


# (doctor_id, patient_id) -> active relationship or None
RelationshipLookup = Callable[[int, int], Optional[RelationshipGrant]]


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


ALLOW_ADMIN = AccessDecision(True, "admin")
ALLOW_OWNER = AccessDecision(True, "owner")
ALLOW_RELATIONSHIP = AccessDecision(True, "active_relationship")
DENY_NO_RELATIONSHIP = AccessDecision(False, "no_active_relationship")
DENY_PERMISSION = AccessDecision(False, "permission_not_granted")
DENY = AccessDecision(False, "not_owner")


def evaluate_access(
    actor: Actor,
    owner_id: int,
    relationship_lookup: Optional[RelationshipLookup] = None,
    permission: Optional[str] = None,
) -> AccessDecision:
    """Decide whether ``actor`` may act on a record owned by ``owner_id``."""
    if actor.role == Role.ADMIN.value:
        return ALLOW_ADMIN
    if actor.id == owner_id:
        return ALLOW_OWNER
    if actor.role == Role.DOCTOR.value:
        if relationship_lookup is None:
            return DENY_NO_RELATIONSHIP
        relation = relationship_lookup(actor.id, owner_id)
        if relation is None:
            return DENY_NO_RELATIONSHIP
        if permission and not relation.grants(permission):
            return DENY_PERMISSION
        return ALLOW_RELATIONSHIP
    return DENY


def ensure_access(
    actor: Actor,
    owner_id: int,
    relationship_lookup: Optional[RelationshipLookup] = None,
    permission: Optional[str] = None,
    message: str = "Access denied",
) -> AccessDecision:
    """Like ``evaluate_access`` but raises ``ForbiddenError`` on deny."""
    decision = evaluate_access(actor, owner_id, relationship_lookup, permission)
    if not decision.allowed:
        raise ForbiddenError(message)
    return decision


def _fields(*names: str) -> FrozenSet[str]:
    return frozenset(names)


_ACTIVITY = _fields(
    "steps", "distance", "calories_burned", "active_minutes", "knee_band_data",
    "target_steps", "target_active_minutes", "adherence_score",
)
_DIET = _fields("meals", "dietary_score", "anti_inflammatory_foods")
_WEIGHT = _fields("weight_kg", "bmi", "measured_at", "notes")
_MEDICATION = _fields(
    "medication_name", "dosage", "frequency", "time_slots", "start_date", "end_date", "notes",
)
_CONSULTATION = _fields(
    "consultation_type", "scheduled_at", "duration", "status", "notes",
    "clinical_assessment", "prescriptions", "next_appointment", "action_items",
    "meeting_details", "cancellation_reason",
)
_USER_PROFILE = _fields(
    "first_name", "last_name", "phone", "date_of_birth", "gender", "profile_picture",
    "height_cm", "blood_type", "allergies", "chronic_conditions", "emergency_contact",
)
_DOCTOR_PROFILE = _fields("specialization", "experience_years", "hospital")
_XRAY = _fields("image_metadata", "processing_status", "is_processed")
_PREDICTION_REVIEW = _fields("review_notes")
_RECOMMENDATION = _fields("recommendations", "based_on", "is_active")
_FORUM_POST = _fields("title", "body", "category", "tags")
_FORUM_POST_MODERATION = _fields("is_pinned", "is_locked")
_FORUM_COMMENT = _fields("body")
_KL_GRADE = _fields("description", "severity", "recommendations")
_PROGRESSION = _fields("progression", "risk_factors")

PATIENT, DOCTOR, ADMIN = Role.PATIENT.value, Role.DOCTOR.value, Role.ADMIN.value

FIELD_PERMISSIONS: Mapping[str, Mapping[str, FrozenSet[str]]] = {
    "activity": {PATIENT: _ACTIVITY, DOCTOR: _ACTIVITY, ADMIN: _ACTIVITY},
    "diet": {PATIENT: _DIET, DOCTOR: _DIET, ADMIN: _DIET},
    "weight": {PATIENT: _WEIGHT, DOCTOR: _WEIGHT, ADMIN: _WEIGHT},
    "medication": {PATIENT: _MEDICATION, DOCTOR: _MEDICATION, ADMIN: _MEDICATION},
    "consultation": {
        PATIENT: _CONSULTATION,
        DOCTOR: _CONSULTATION | _fields("reviewed_predictions", "updated_recommendations"),
        ADMIN: _CONSULTATION | _fields("reviewed_predictions", "updated_recommendations"),
    },
    "user": {
        PATIENT: _USER_PROFILE,
        DOCTOR: _USER_PROFILE | _DOCTOR_PROFILE,
        ADMIN: _USER_PROFILE | _DOCTOR_PROFILE | _fields("email", "role", "is_active", "license_number"),
    },
    "xray": {PATIENT: _XRAY, DOCTOR: _XRAY, ADMIN: _XRAY},
    "prediction": {PATIENT: frozenset(), DOCTOR: _PREDICTION_REVIEW, ADMIN: _PREDICTION_REVIEW},
    "recommendation": {PATIENT: frozenset(), DOCTOR: _RECOMMENDATION, ADMIN: _RECOMMENDATION},
    "forum_post": {PATIENT: _FORUM_POST, DOCTOR: _FORUM_POST, ADMIN: _FORUM_POST | _FORUM_POST_MODERATION},
    "forum_comment": {PATIENT: _FORUM_COMMENT, DOCTOR: _FORUM_COMMENT, ADMIN: _FORUM_COMMENT},
    "kl_grade": {PATIENT: frozenset(), DOCTOR: frozenset(), ADMIN: _KL_GRADE},
    "progress_report": {PATIENT: frozenset(), DOCTOR: frozenset(), ADMIN: frozenset()},
    "disease_progression": {PATIENT: frozenset(), DOCTOR: _PROGRESSION, ADMIN: _PROGRESSION},
}


def updatable_fields(entity: str, role: str) -> FrozenSet[str]:
    """Fields ``role`` may change on ``entity``; empty for unknown pairs."""
    return FIELD_PERMISSIONS.get(entity, {}).get(role, frozenset())


def filter_update(entity: str, role: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop every key in ``changes`` the role may not modify on ``entity``."""
    allowed = updatable_fields(entity, role)
    return {key: value for key, value in changes.items() if key in allowed}
