"""
Medication reminder service.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from kneecare.models.lifecycle import utcnow
from kneecare.models.medication import MedicationDose, MedicationReminder
from kneecare.models.user import User
from kneecare.services.record_service import OwnedRecordService


class MedicationService(OwnedRecordService):
    model = MedicationReminder
    entity = "medication"
    date_field = "start_date"
    write_permission = "prescribe_medications"
    not_found_message = "Medication reminder not found"

    def prepare(self, actor: User, values: Dict[str, Any], record=None) -> Dict[str, Any]:
        if record is None and actor.is_doctor:
            values.setdefault("prescribed_by", actor.id)
        return values

    def today(self, actor: User, owner_id: int, now: Optional[datetime] = None) -> List[MedicationReminder]:
        """Active reminders whose schedule covers the current moment."""
        self.authorize_owner(actor, owner_id)
        now = now or utcnow()
        return self.owner_query(owner_id).filter(
            MedicationReminder.start_date <= now,
            or_(MedicationReminder.end_date.is_(None), MedicationReminder.end_date >= now),
        ).order_by(MedicationReminder.medication_name).all()

    def log_dose(
        self,
        actor: User,
        reminder_id: int,
        taken: bool,
        date: Optional[datetime] = None,
        time: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> MedicationDose:
        """Record whether a scheduled dose was taken."""
        reminder = self.get(actor, reminder_id)
        dose = MedicationDose(
            reminder_id=reminder.id,
            date=date or utcnow(),
            taken=taken,
            time=time,
            notes=notes,
        )
        self.db.add(dose)
        self.db.commit()
        self.db.refresh(reminder)
        return dose
