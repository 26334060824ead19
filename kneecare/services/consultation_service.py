"""
Consultation scheduling service.
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import asc, desc

from kneecare.core.exceptions import ForbiddenError, InvalidReferenceError, ValidationError
from kneecare.models.consultation import Consultation, ConsultationStatus
from kneecare.models.lifecycle import utcnow
from kneecare.models.user import Role, User
from kneecare.services.record_service import OwnedRecordService

CLOSED_STATUSES = (ConsultationStatus.COMPLETED.value, ConsultationStatus.CANCELLED.value)


class ConsultationService(OwnedRecordService):
    model = Consultation
    entity = "consultation"
    owner_field = "patient_id"
    date_field = "scheduled_at"
    not_found_message = "Consultation not found"

    def can_access(self, actor: User, record, write: bool = False) -> bool:
        return record.involves(actor.id) or super().can_access(actor, record, write=write)

    def prepare(self, actor: User, values: Dict[str, Any], record=None) -> Dict[str, Any]:
        if values.get("status") == ConsultationStatus.COMPLETED.value:
            if not actor.is_doctor:
                raise ForbiddenError("Only the consulting doctor can complete a consultation")
            values["completed_at"] = utcnow()
        return values

    def _scoped(self, actor: User):
        query = self.db.query(Consultation)
        if actor.is_doctor:
            query = query.filter(Consultation.doctor_id == actor.id)
        elif actor.is_patient:
            query = query.filter(Consultation.patient_id == actor.id)
        return query

    def list_for(
        self,
        actor: User,
        status: Optional[str] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Consultation], int]:
        """Consultations the actor takes part in; admins see all."""
        query = self._scoped(actor)
        if status:
            query = query.filter(Consultation.status == status)
        total = query.count()
        skip = (page - 1) * size
        items = query.order_by(desc(Consultation.scheduled_at), desc(Consultation.id)).offset(skip).limit(size).all()
        return items, total

    def upcoming(self, actor: User, limit: int = 10) -> List[Consultation]:
        return self._scoped(actor).filter(
            Consultation.scheduled_at >= utcnow(),
            Consultation.status == ConsultationStatus.SCHEDULED.value,
        ).order_by(asc(Consultation.scheduled_at)).limit(limit).all()

    def schedule(self, actor: User, values: Dict[str, Any]) -> Consultation:
        """Book a consultation between a doctor and a patient."""
        doctor_id = values.get("doctor_id")
        patient_id = values.get("patient_id")
        if actor.is_patient:
            patient_id = actor.id
        elif actor.is_doctor:
            doctor_id = doctor_id or actor.id
            if doctor_id != actor.id:
                raise ForbiddenError("Doctors can only schedule their own consultations")
        if not doctor_id or not patient_id:
            raise ValidationError(
                "doctor_id and patient_id are required",
                errors=[{"field": "doctor_id" if not doctor_id else "patient_id", "message": "field required"}],
            )

        doctor = self.db.query(User).filter(User.id == doctor_id).first()
        if doctor is None or doctor.role != Role.DOCTOR.value:
            raise InvalidReferenceError("Invalid doctor ID")
        patient = self.db.query(User).filter(User.id == patient_id).first()
        if patient is None or patient.role != Role.PATIENT.value:
            raise InvalidReferenceError("Invalid patient ID")

        if actor.is_doctor:
            self.authorize_owner(actor, patient_id, write=True)

        consultation = Consultation(**dict(values, doctor_id=doctor_id, patient_id=patient_id))
        self.db.add(consultation)
        self.db.commit()
        self.db.refresh(consultation)
        return consultation

    def cancel(self, actor: User, consultation_id: int, reason: Optional[str] = None) -> Consultation:
        consultation = self.get(actor, consultation_id, write=True)
        if consultation.status in CLOSED_STATUSES:
            raise ValidationError(f"Consultation is already {consultation.status}")
        consultation.status = ConsultationStatus.CANCELLED.value
        consultation.cancellation_reason = reason
        self.db.commit()
        self.db.refresh(consultation)
        return consultation

    def complete(self, actor: User, consultation_id: int, outcome: Dict[str, Any]) -> Consultation:
        """Close a consultation with its clinical outcome. Only the consulting doctor may do this."""
        consultation = self.get(actor, consultation_id)
        if not actor.is_doctor or consultation.doctor_id != actor.id:
            raise ForbiddenError("Only the consulting doctor can complete a consultation")
        if consultation.status in CLOSED_STATUSES:
            raise ValidationError(f"Consultation is already {consultation.status}")
        for field, value in outcome.items():
            if value is not None:
                setattr(consultation, field, value)
        consultation.status = ConsultationStatus.COMPLETED.value
        consultation.completed_at = utcnow()
        self.db.commit()
        self.db.refresh(consultation)
        return consultation

    def delete(self, actor: User, record_id: int, permanent: bool = True):
        if not actor.is_admin:
            raise ForbiddenError("Only admins can delete consultations")
        return super().delete(actor, record_id, permanent=True)
