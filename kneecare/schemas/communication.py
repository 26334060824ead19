"""
Message and notification schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from kneecare.models.communication import MessageType, NotificationType, Priority


class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(..., min_length=1, max_length=2000)
    message_type: MessageType = MessageType.TEXT
    priority: Priority = Priority.MEDIUM
    attachments: List[Dict[str, Any]] = []
    reply_to_id: Optional[int] = None


class DirectMessageResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    conversation_id: str
    message_type: str
    content: str
    attachments: Optional[List[Dict[str, Any]]] = None
    priority: str
    reply_to_id: Optional[int] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConversationSummary(BaseModel):
    conversation_id: str
    other_user_id: int
    last_message: str
    last_message_at: Optional[datetime] = None
    unread_count: int


class UnreadCount(BaseModel):
    unread_count: int


class NotificationBody(BaseModel):
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=500)
    priority: Priority = Priority.MEDIUM
    channels: List[str] = ["in_app"]
    scheduled_for: Optional[datetime] = None
    related_entity: Optional[Dict[str, Any]] = None
    action_required: bool = False
    action_url: Optional[str] = Field(None, max_length=500)
    expires_at: Optional[datetime] = None


class NotificationCreate(NotificationBody):
    user_id: int


class NotificationBroadcast(NotificationBody):
    user_ids: List[int] = Field(..., min_length=1)


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    priority: str
    channels: Optional[List[str]] = None
    scheduled_for: Optional[datetime] = None
    related_entity: Optional[Dict[str, Any]] = None
    action_required: bool
    action_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BroadcastResult(BaseModel):
    success: bool = True
    sent_count: int
