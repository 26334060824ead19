"""
Notification service.
"""
from typing import Any, Dict, Iterable, List, Optional

from kneecare.core.exceptions import ForbiddenError, InvalidReferenceError
from kneecare.models.communication import Notification
from kneecare.models.lifecycle import utcnow
from kneecare.models.user import User
from kneecare.services.record_service import OwnedRecordService


class NotificationService(OwnedRecordService):
    model = Notification
    entity = "notification"
    date_field = "created_at"
    not_found_message = "Notification not found"

    def create(self, actor: User, values: Dict[str, Any], owner_id: Optional[int] = None) -> Notification:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can create notifications")
        if self.db.query(User).filter(User.id == owner_id).first() is None:
            raise InvalidReferenceError("Invalid user ID")
        return super().create(actor, values, owner_id=owner_id)

    def broadcast(self, actor: User, user_ids: Iterable[int], values: Dict[str, Any]) -> List[Notification]:
        """Send the same notification to each listed active user."""
        if not actor.is_admin:
            raise ForbiddenError("Only admins can broadcast notifications")
        recipients = self.db.query(User.id).filter(
            User.id.in_(list(user_ids)), User.is_active.is_(True)
        ).all()
        notifications = [Notification(user_id=user_id, **values) for (user_id,) in recipients]
        self.db.add_all(notifications)
        self.db.commit()
        return notifications

    def mark_read(self, actor: User, notification_id: int) -> Notification:
        notification = self.get(actor, notification_id)
        if notification.user_id != actor.id:
            raise ForbiddenError("Only the recipient can mark a notification as read")
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_read(self, actor: User) -> int:
        now = utcnow()
        updated = self.db.query(Notification).filter(
            Notification.user_id == actor.id,
            Notification.is_read.is_(False),
            Notification.is_active.is_(True),
        ).update({Notification.is_read: True, Notification.read_at: now}, synchronize_session=False)
        self.db.commit()
        return updated

    def unread_count(self, actor: User) -> int:
        return self.owner_query(actor.id).filter(Notification.is_read.is_(False)).count()
