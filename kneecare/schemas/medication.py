"""
Medication reminder schemas.
"""
import re
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, validator

from kneecare.models.medication import MedicationFrequency

TIME_SLOT_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def _check_slots(slots):
    for slot in slots or []:
        if not re.match(TIME_SLOT_PATTERN, slot):
            raise ValueError(f"Invalid time slot '{slot}', expected HH:MM")
    return slots


class MedicationCreate(BaseModel):
    user_id: Optional[int] = None
    medication_name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: MedicationFrequency
    time_slots: List[str] = []
    start_date: datetime
    end_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)

    @validator('time_slots')
    def validate_time_slots(cls, v):
        return _check_slots(v)

    @validator('end_date')
    def validate_end_date(cls, v, values):
        start = values.get('start_date')
        if v is not None and start is not None and (v.tzinfo is None) == (start.tzinfo is None) and v < start:
            raise ValueError('end_date must be after start_date')
        return v


class MedicationUpdate(BaseModel):
    medication_name: Optional[str] = Field(None, min_length=1, max_length=200)
    dosage: Optional[str] = Field(None, min_length=1, max_length=100)
    frequency: Optional[MedicationFrequency] = None
    time_slots: Optional[List[str]] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)

    @validator('time_slots')
    def validate_time_slots(cls, v):
        return _check_slots(v)


class DoseLog(BaseModel):
    taken: bool
    date: Optional[datetime] = None
    time: Optional[str] = Field(None, pattern=TIME_SLOT_PATTERN)
    notes: Optional[str] = Field(None, max_length=200)


class DoseResponse(BaseModel):
    id: int
    date: datetime
    taken: bool
    time: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class MedicationResponse(BaseModel):
    id: int
    user_id: int
    medication_name: str
    dosage: str
    frequency: str
    time_slots: List[str]
    start_date: datetime
    end_date: Optional[datetime] = None
    prescribed_by: Optional[int] = None
    notes: Optional[str] = None
    is_active: bool
    adherence_percentage: int = 0
    doses: List[DoseResponse] = []

    class Config:
        from_attributes = True
