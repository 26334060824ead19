"""
Progress report and disease progression schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, validator

from kneecare.models.progress import ReportType


class SymptomScores(BaseModel):
    pain_score: Optional[int] = Field(None, ge=1, le=10)
    mobility_score: Optional[int] = Field(None, ge=1, le=10)
    improvement_percentage: Optional[float] = Field(None, ge=-100, le=100)


class ProgressReportGenerate(BaseModel):
    user_id: int
    report_type: ReportType
    start_date: datetime
    end_date: datetime
    symptoms: Optional[SymptomScores] = None

    @validator('end_date')
    def validate_end_date(cls, v, values):
        start = values.get('start_date')
        if start is not None and (v.tzinfo is None) == (start.tzinfo is None) and v <= start:
            raise ValueError('end_date must be after start_date')
        return v


class ProgressReportResponse(BaseModel):
    id: int
    user_id: int
    report_type: str
    start_date: datetime
    end_date: datetime
    metrics: Dict[str, Any]
    insights: Dict[str, List[str]]
    generated_by: str
    generated_by_id: Optional[int] = None
    generated_at: datetime

    class Config:
        from_attributes = True


class ProjectedGrade(BaseModel):
    grade: Optional[int] = Field(None, ge=0, le=4)
    time_frame: Optional[str] = Field(None, max_length=50)
    confidence: Optional[float] = Field(None, ge=0, le=1)
    factors: List[str] = []


class ProgressionDetails(BaseModel):
    current_grade: Optional[int] = Field(None, ge=0, le=4)
    rate_of_progression: Optional[Literal["slow", "moderate", "rapid"]] = None
    projected_grade: Optional[ProjectedGrade] = None


class CurrentRiskFactors(BaseModel):
    age: Optional[int] = Field(None, ge=0, le=130)
    bmi: Optional[float] = Field(None, gt=0)
    activity_level: Optional[Literal["sedentary", "light", "moderate", "active"]] = None
    adherence_score: Optional[float] = Field(None, ge=0, le=100)


class RiskFactors(BaseModel):
    modifiable: List[str] = []
    non_modifiable: List[str] = []
    current: Optional[CurrentRiskFactors] = None


class DiseaseProgressionUpdate(BaseModel):
    progression: Optional[ProgressionDetails] = None
    risk_factors: Optional[RiskFactors] = None


class KLGradeHistoryEntry(BaseModel):
    grade: int
    predicted_at: datetime
    confidence: Optional[float] = None
    prediction_id: Optional[int] = None


class DiseaseProgressionResponse(BaseModel):
    id: int
    user_id: int
    kl_grade_history: List[KLGradeHistoryEntry]
    progression: Dict[str, Any]
    risk_factors: Dict[str, Any]
    trend: str
    last_updated: datetime

    class Config:
        from_attributes = True


class ProgressionAnalytics(BaseModel):
    has_data: bool
    message: Optional[str] = None
    current_grade: Optional[int] = None
    progression_rate: Optional[str] = None
    risk_level: Optional[str] = None
    total_predictions: int = 0
    timespan: Optional[Dict[str, datetime]] = None
    trend: Optional[str] = None
    projected_grade: Optional[Dict[str, Any]] = None
    risk_factors: Optional[Dict[str, Any]] = None
