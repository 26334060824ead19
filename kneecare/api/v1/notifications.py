"""
Notification API endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import (
    Auditor, Pagination, get_auditor, get_current_admin, get_current_user, get_db, get_pagination,
)
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.communication import (
    BroadcastResult, NotificationBroadcast, NotificationCreate, NotificationResponse, UnreadCount,
)
from kneecare.services.notification_service import NotificationService

router = APIRouter()


@router.get("/", response_model=Page[NotificationResponse])
async def list_my_notifications(
    is_read: Optional[bool] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = NotificationService(db).list_for_owner(
        current_user, current_user.id, pagination.page, pagination.size, filters={"is_read": is_read}
    )
    return build_page(NotificationResponse, items, total, pagination.page, pagination.size)


@router.get("/unread-count", response_model=UnreadCount)
async def get_unread_notification_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UnreadCount(unread_count=NotificationService(db).unread_count(current_user))


@router.get("/user/{user_id}", response_model=Page[NotificationResponse])
async def list_user_notifications(
    user_id: int,
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Notifications of any user (admin only)."""
    items, total = NotificationService(db).list_for_owner(current_user, user_id, pagination.page, pagination.size)
    return build_page(NotificationResponse, items, total, pagination.page, pagination.size)


@router.put("/read-all", response_model=MessageResponse)
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    updated = NotificationService(db).mark_all_read(current_user)
    auditor.record(AuditAction.NOTIFICATION_READ, AuditEntity.NOTIFICATIONS, metadata={"count": updated})
    return MessageResponse(message=f"{updated} notifications marked as read")


@router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return NotificationService(db).get(current_user, notification_id)


@router.post("/", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def create_notification(
    payload: NotificationCreate,
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Notify a single user (admin only)."""
    values = payload.model_dump(exclude_none=True, exclude={"user_id"})
    notification = NotificationService(db).create(current_user, values, owner_id=payload.user_id)
    auditor.record(
        AuditAction.NOTIFICATION_SENT, AuditEntity.NOTIFICATIONS, notification.id,
        metadata={"user_id": payload.user_id, "type": notification.type},
    )
    return notification


@router.post("/broadcast", response_model=BroadcastResult, status_code=status.HTTP_201_CREATED)
async def broadcast_notification(
    payload: NotificationBroadcast,
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Send the same notification to several users (admin only)."""
    values = payload.model_dump(exclude_none=True, exclude={"user_ids"})
    sent = NotificationService(db).broadcast(current_user, payload.user_ids, values)
    auditor.record(
        AuditAction.NOTIFICATION_SENT, AuditEntity.NOTIFICATIONS,
        metadata={"broadcast": True, "sent_count": len(sent), "user_ids": payload.user_ids},
    )
    return BroadcastResult(sent_count=len(sent))


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    notification = NotificationService(db).mark_read(current_user, notification_id)
    auditor.record(AuditAction.NOTIFICATION_READ, AuditEntity.NOTIFICATIONS, notification.id)
    return notification


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    NotificationService(db).delete(current_user, notification_id)
    auditor.record(AuditAction.NOTIFICATION_DELETED, AuditEntity.NOTIFICATIONS, notification_id)
    return MessageResponse(message="Notification deleted successfully")
