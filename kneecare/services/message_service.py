"""
Direct messaging service.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import asc, desc, or_
from sqlalchemy.orm import Session

from kneecare.core.exceptions import ForbiddenError, NotFoundError
from kneecare.models.communication import Message
from kneecare.models.lifecycle import utcnow
from kneecare.models.user import User
from kneecare.services.derivations import conversation_key
from kneecare.services.relationship_service import RelationshipRegistry

logger = logging.getLogger(__name__)


class MessageService:
    """Service for sending and reading messages."""

    def __init__(self, db: Session):
        self.db = db
        self.relationships = RelationshipRegistry(db)

    def _visible(self, actor: User):
        query = self.db.query(Message).filter(Message.is_active.is_(True))
        if not actor.is_admin:
            query = query.filter(or_(Message.sender_id == actor.id, Message.receiver_id == actor.id))
        return query

    def get(self, actor: User, message_id: int) -> Message:
        message = self._visible(actor).filter(Message.id == message_id).first()
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def send(self, actor: User, receiver_id: int, content: str, **extra: Any) -> Message:
        receiver = self.db.query(User).filter(User.id == receiver_id, User.is_active.is_(True)).first()
        if receiver is None:
            raise NotFoundError("Receiver not found")
        if actor.id == receiver_id:
            raise ForbiddenError("Cannot send a message to yourself")

        if actor.is_patient:
            if not receiver.is_doctor or self.relationships.find_active(receiver.id, actor.id) is None:
                raise ForbiddenError("You can only message doctors you have an active relationship with")

        reply_to_id = extra.get("reply_to_id")
        if reply_to_id is not None:
            self.get(actor, reply_to_id)

        message = Message(
            sender_id=actor.id,
            receiver_id=receiver_id,
            conversation_id=conversation_key(actor.id, receiver_id),
            content=content,
            **extra,
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def conversation(
        self, actor: User, other_user_id: int, page: int = 1, size: int = 50
    ) -> Tuple[List[Message], int]:
        """Messages between the actor and another user, oldest first."""
        key = conversation_key(actor.id, other_user_id)
        query = self.db.query(Message).filter(
            Message.conversation_id == key,
            Message.is_active.is_(True),
        )
        total = query.count()
        skip = (page - 1) * size
        return query.order_by(asc(Message.created_at), asc(Message.id)).offset(skip).limit(size).all(), total

    def conversations(self, actor: User) -> List[Dict[str, Any]]:
        """One summary per conversation: counterpart, last message and unread count."""
        messages = self.db.query(Message).filter(
            Message.is_active.is_(True),
            or_(Message.sender_id == actor.id, Message.receiver_id == actor.id),
        ).order_by(desc(Message.created_at), desc(Message.id)).all()

        summaries: Dict[str, Dict[str, Any]] = {}
        for message in messages:
            summary = summaries.get(message.conversation_id)
            if summary is None:
                other = message.receiver_id if message.sender_id == actor.id else message.sender_id
                summary = summaries[message.conversation_id] = {
                    "conversation_id": message.conversation_id,
                    "other_user_id": other,
                    "last_message": message.content,
                    "last_message_at": message.created_at,
                    "unread_count": 0,
                }
            if message.receiver_id == actor.id and not message.is_read:
                summary["unread_count"] += 1
        return list(summaries.values())

    def unread_count(self, actor: User) -> int:
        return self.db.query(Message).filter(
            Message.receiver_id == actor.id,
            Message.is_read.is_(False),
            Message.is_active.is_(True),
        ).count()

    def mark_read(self, actor: User, message_id: int) -> Message:
        message = self.get(actor, message_id)
        if message.receiver_id != actor.id:
            raise ForbiddenError("Only the receiver can mark a message as read")
        if not message.is_read:
            message.is_read = True
            message.read_at = utcnow()
            self.db.commit()
            self.db.refresh(message)
        return message

    def delete(self, actor: User, message_id: int) -> Message:
        message = self.get(actor, message_id)
        if message.sender_id != actor.id and not actor.is_admin:
            raise ForbiddenError("Only the sender can delete a message")
        message.end()
        self.db.commit()
        return message
