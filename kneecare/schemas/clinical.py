"""
KL grade and recommendation schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class KLGradeCreate(BaseModel):
    grade: int = Field(..., ge=0, le=4)
    description: str = Field(..., min_length=1, max_length=500)
    severity: str = Field(..., min_length=1, max_length=30)
    recommendations: List[str] = []


class KLGradeUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    severity: Optional[str] = Field(None, min_length=1, max_length=30)
    recommendations: Optional[List[str]] = None


class KLGradeResponse(BaseModel):
    grade: int
    description: str
    severity: str
    recommendations: List[str]

    class Config:
        from_attributes = True


class RecommendationPlan(BaseModel):
    activity: Dict[str, Any] = {}
    diet: Dict[str, Any] = {}
    medication: Dict[str, Any] = {}
    reminders: List[Dict[str, Any]] = []


class RecommendationCreate(BaseModel):
    user_id: int
    kl_grade: int = Field(..., ge=0, le=4)
    recommendations: RecommendationPlan
    based_on: Optional[Dict[str, Any]] = None


class RecommendationUpdate(BaseModel):
    recommendations: Optional[RecommendationPlan] = None
    based_on: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class RecommendationResponse(BaseModel):
    id: int
    user_id: int
    created_by: Optional[int] = None
    kl_grade: int
    recommendations: Dict[str, Any]
    based_on: Optional[Dict[str, Any]] = None
    generated_at: datetime
    is_active: bool

    class Config:
        from_attributes = True
