"""
X-ray image and AI prediction models.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from kneecare.db.base import Base
from kneecare.models.lifecycle import utcnow
from kneecare.services.derivations import severity_description


class ProcessingStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class OAStatus(str, enum.Enum):
    OA = "OA"
    NO_OA = "No_OA"


class XRayImage(Base):
    """Uploaded knee X-ray."""
    __tablename__ = "xray_images"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(1000), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    content_type = Column(String(100), nullable=False)
    width = Column(Integer)
    height = Column(Integer)
    image_metadata = Column("metadata", JSON)  # captureDate, equipment, position, technique

    processing_status = Column(String(20), default=ProcessingStatus.PENDING.value, nullable=False)
    is_processed = Column(Boolean, default=False, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    predictions = relationship("AIPrediction", back_populates="xray_image", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<XRayImage(id={self.id}, user_id={self.user_id}, file_name='{self.file_name}')>"


class AIPrediction(Base):
    """Stored result of an externally computed OA prediction."""
    __tablename__ = "ai_predictions"

    id = Column(Integer, primary_key=True, index=True)
    xray_image_id = Column(Integer, ForeignKey("xray_images.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    oa_status = Column(String(10), nullable=False)
    kl_grade = Column(Integer, nullable=False)
    confidence = Column(Float, nullable=False)
    risk_score = Column(Float)
    analysis = Column(JSON)
    model_info = Column(JSON)
    grad_cam_url = Column(String(1000))
    explanation = Column(String(2000))
    predicted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    # Human review
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    reviewed_at = Column(DateTime(timezone=True))
    review_notes = Column(String(1000))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    xray_image = relationship("XRayImage", back_populates="predictions")

    def __repr__(self):
        return f"<AIPrediction(id={self.id}, user_id={self.user_id}, kl_grade={self.kl_grade})>"

    @property
    def severity_description(self) -> str:
        return severity_description(self.kl_grade)

    @property
    def is_reviewed(self) -> bool:
        return self.reviewed_at is not None
