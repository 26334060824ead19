"""
X-ray image and prediction schemas.
"""
from datetime import datetime
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field

from kneecare.models.xray import OAStatus, ProcessingStatus


class Technique(BaseModel):
    kvp: Optional[float] = Field(None, ge=40, le=150)
    mas: Optional[float] = Field(None, ge=1, le=100)


class XRayMetadata(BaseModel):
    capture_date: Optional[datetime] = None
    equipment: Optional[str] = Field(None, max_length=200)
    position: Optional[Literal["AP", "PA", "Lateral", "Oblique"]] = None
    technique: Optional[Technique] = None


class XRayUpdate(BaseModel):
    image_metadata: Optional[XRayMetadata] = None
    processing_status: Optional[ProcessingStatus] = None
    is_processed: Optional[bool] = None


class XRayResponse(BaseModel):
    id: int
    user_id: int
    image_url: str
    file_name: str
    file_size: int
    content_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    image_metadata: Optional[Dict[str, Any]] = None
    processing_status: str
    is_processed: bool
    uploaded_at: datetime

    class Config:
        from_attributes = True


class Analysis(BaseModel):
    joint_space_narrowing: Optional[float] = Field(None, ge=0, le=1)
    osteophytes: Optional[float] = Field(None, ge=0, le=1)
    sclerosis: Optional[float] = Field(None, ge=0, le=1)
    bone_deformity: Optional[float] = Field(None, ge=0, le=1)


class ModelInfo(BaseModel):
    version: Optional[str] = None
    algorithm: Optional[str] = None
    trained_on: Optional[str] = None


class PredictionCreate(BaseModel):
    xray_image_id: int
    oa_status: OAStatus
    kl_grade: int = Field(..., ge=0, le=4)
    confidence: float = Field(..., ge=0, le=1)
    risk_score: Optional[float] = Field(None, ge=0, le=100)
    analysis: Optional[Analysis] = None
    model_info: Optional[ModelInfo] = None
    grad_cam_url: Optional[str] = Field(None, max_length=1000)
    explanation: Optional[str] = Field(None, max_length=2000)

    class Config:
        protected_namespaces = ()


class PredictionUpdate(BaseModel):
    review_notes: Optional[str] = Field(None, max_length=1000)


class PredictionResponse(BaseModel):
    id: int
    xray_image_id: int
    user_id: int
    oa_status: str
    kl_grade: int
    severity_description: str
    confidence: float
    risk_score: Optional[float] = None
    analysis: Optional[Dict[str, Any]] = None
    model_info: Optional[Dict[str, Any]] = None
    grad_cam_url: Optional[str] = None
    explanation: Optional[str] = None
    predicted_at: datetime
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None

    class Config:
        from_attributes = True
        protected_namespaces = ()


class PredictionStats(BaseModel):
    total: int
    by_kl_grade: Dict[str, int]
    average_confidence: Optional[float] = None
    latest_kl_grade: Optional[int] = None
    latest_severity: Optional[str] = None
