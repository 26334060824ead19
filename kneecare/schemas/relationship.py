"""
Doctor-patient relationship schemas.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from kneecare.models.relationship import RelationshipType


class PermissionSet(BaseModel):
    view_predictions: Optional[bool] = None
    view_activity_data: Optional[bool] = None
    modify_recommendations: Optional[bool] = None
    prescribe_medications: Optional[bool] = None


class RelationshipCreate(BaseModel):
    """Schema for establishing a relationship; doctors default to themselves."""
    doctor_id: Optional[int] = None
    patient_id: int
    relationship_type: RelationshipType = RelationshipType.PRIMARY_CARE
    permissions: Optional[PermissionSet] = None
    notes: Optional[str] = Field(None, max_length=1000)


class RelationshipUpdate(BaseModel):
    """Parties cannot be changed; end the relationship and create a new one instead."""
    relationship_type: Optional[RelationshipType] = None
    permissions: Optional[PermissionSet] = None
    notes: Optional[str] = Field(None, max_length=1000)

    class Config:
        extra = "forbid"


class Permissions(BaseModel):
    view_predictions: bool
    view_activity_data: bool
    modify_recommendations: bool
    prescribe_medications: bool


class RelationshipResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    relationship_type: str
    is_active: bool
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    permissions: Permissions
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RelationshipPermissionsResponse(BaseModel):
    relationship_id: int
    relationship_type: str
    permissions: Permissions
