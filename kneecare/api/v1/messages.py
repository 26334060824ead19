"""
Direct messaging API endpoints.
"""
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from kneecare.api.deps import Auditor, Pagination, get_auditor, get_current_user, get_db, get_pagination
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.communication import (
    ConversationSummary, DirectMessageResponse, MessageCreate, UnreadCount,
)
from kneecare.services.message_service import MessageService

router = APIRouter()


@router.get("/conversations", response_model=List[ConversationSummary])
async def list_conversations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """One summary per conversation, most recent first."""
    return MessageService(db).conversations(current_user)


@router.get("/conversation/{user_id}", response_model=Page[DirectMessageResponse])
async def get_conversation(
    user_id: int,
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Messages exchanged with another user, oldest first."""
    items, total = MessageService(db).conversation(current_user, user_id, pagination.page, pagination.size)
    return build_page(DirectMessageResponse, items, total, pagination.page, pagination.size)


@router.get("/unread-count", response_model=UnreadCount)
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UnreadCount(unread_count=MessageService(db).unread_count(current_user))


@router.get("/{message_id}", response_model=DirectMessageResponse)
async def get_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return MessageService(db).get(current_user, message_id)


@router.post("/", response_model=DirectMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Send a message. Patients may only write to doctors caring for them."""
    extra = payload.model_dump(exclude={"receiver_id", "content"}, exclude_none=True)
    message = MessageService(db).send(current_user, payload.receiver_id, payload.content, **extra)
    auditor.record(
        AuditAction.MESSAGE_SENT, AuditEntity.MESSAGES, message.id,
        metadata={"receiver_id": message.receiver_id, "conversation_id": message.conversation_id},
    )
    return message


@router.put("/{message_id}/read", response_model=DirectMessageResponse)
async def mark_message_read(
    message_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    message = MessageService(db).mark_read(current_user, message_id)
    auditor.record(AuditAction.MESSAGE_READ, AuditEntity.MESSAGES, message.id)
    return message


@router.delete("/{message_id}", response_model=MessageResponse)
async def delete_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    MessageService(db).delete(current_user, message_id)
    auditor.record(AuditAction.MESSAGE_DELETED, AuditEntity.MESSAGES, message_id)
    return MessageResponse(message="Message deleted successfully")
