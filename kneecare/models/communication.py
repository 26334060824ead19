"""
Messaging and notification models.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.sql import func
from kneecare.db.base import Base
from kneecare.models.lifecycle import LifecycleMixin


class MessageType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    PREDICTION_SHARE = "prediction_share"
    APPOINTMENT_REQUEST = "appointment_request"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationType(str, enum.Enum):
    MEDICATION_REMINDER = "medication_reminder"
    APPOINTMENT = "appointment"
    ACHIEVEMENT = "achievement"
    SYSTEM = "system"
    AI_PREDICTION = "ai_prediction"
    FORUM_REPLY = "forum_reply"
    DOCTOR_MESSAGE = "doctor_message"
    PROGRESS_REPORT = "progress_report"


class Message(LifecycleMixin, Base):
    """Direct message between two users."""
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    conversation_id = Column(String(64), nullable=False, index=True)
    message_type = Column(String(30), default=MessageType.TEXT.value, nullable=False)
    content = Column(String(2000), nullable=False)
    attachments = Column(JSON, default=list)
    priority = Column(String(10), default=Priority.MEDIUM.value, nullable=False)
    reply_to_id = Column(Integer, ForeignKey("messages.id", ondelete="SET NULL"))

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True), server_default=func.now())

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Message(id={self.id}, conversation_id='{self.conversation_id}', is_read={self.is_read})>"


class Notification(LifecycleMixin, Base):
    """Notification addressed to a single user."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    title = Column(String(100), nullable=False)
    message = Column(String(500), nullable=False)
    priority = Column(String(10), default=Priority.MEDIUM.value, nullable=False)
    channels = Column(JSON, default=list)
    scheduled_for = Column(DateTime(timezone=True))
    related_entity = Column(JSON)
    action_required = Column(Boolean, default=False, nullable=False)
    action_url = Column(String(500))
    expires_at = Column(DateTime(timezone=True))

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, type='{self.type}', is_read={self.is_read})>"
