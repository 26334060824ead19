"""
Consultation schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from kneecare.models.consultation import ConsultationStatus, ConsultationType


class ConsultationCreate(BaseModel):
    doctor_id: Optional[int] = None
    patient_id: Optional[int] = None
    consultation_type: ConsultationType
    scheduled_at: datetime
    duration: int = Field(30, ge=15, le=180)
    notes: Optional[str] = Field(None, max_length=2000)
    meeting_details: Optional[Dict[str, Any]] = None


class ConsultationUpdate(BaseModel):
    consultation_type: Optional[ConsultationType] = None
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=15, le=180)
    status: Optional[ConsultationStatus] = None
    notes: Optional[str] = Field(None, max_length=2000)
    clinical_assessment: Optional[Dict[str, Any]] = None
    prescriptions: Optional[List[Dict[str, Any]]] = None
    next_appointment: Optional[datetime] = None
    action_items: Optional[List[Dict[str, Any]]] = None
    meeting_details: Optional[Dict[str, Any]] = None
    cancellation_reason: Optional[str] = Field(None, max_length=500)
    reviewed_predictions: Optional[List[int]] = None
    updated_recommendations: Optional[List[int]] = None


class ConsultationCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ConsultationComplete(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)
    clinical_assessment: Optional[Dict[str, Any]] = None
    prescriptions: Optional[List[Dict[str, Any]]] = None
    next_appointment: Optional[datetime] = None
    action_items: Optional[List[Dict[str, Any]]] = None
    reviewed_predictions: Optional[List[int]] = None
    updated_recommendations: Optional[List[int]] = None


class ConsultationResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    consultation_type: str
    scheduled_at: datetime
    duration: int
    status: str
    notes: Optional[str] = None
    clinical_assessment: Optional[Dict[str, Any]] = None
    prescriptions: Optional[List[Dict[str, Any]]] = None
    next_appointment: Optional[datetime] = None
    action_items: Optional[List[Dict[str, Any]]] = None
    meeting_details: Optional[Dict[str, Any]] = None
    reviewed_predictions: Optional[List[int]] = None
    updated_recommendations: Optional[List[int]] = None
    cancellation_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
