"""
Community forum models.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.sql import func
from kneecare.db.base import Base
from kneecare.models.lifecycle import LifecycleMixin, utcnow


class ForumCategory(str, enum.Enum):
    EXERCISE = "exercise"
    DIET = "diet"
    PAIN_MANAGEMENT = "pain_management"
    SUCCESS_STORIES = "success_stories"
    GENERAL = "general"
    MEDICATION = "medication"
    LIFESTYLE = "lifestyle"


class ForumPost(LifecycleMixin, Base):
    """Forum thread opener."""
    __tablename__ = "forum_posts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    body = Column(String(5000), nullable=False)
    category = Column(String(30), nullable=False, index=True)
    tags = Column(JSON, default=list)

    likes = Column(Integer, default=0, nullable=False)
    liked_by = Column(JSON, default=list)
    replies = Column(Integer, default=0, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    is_pinned = Column(Boolean, default=False, nullable=False)
    is_locked = Column(Boolean, default=False, nullable=False)
    last_activity_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<ForumPost(id={self.id}, title='{self.title}', category='{self.category}')>"


class ForumComment(LifecycleMixin, Base):
    """Comment on a forum post, optionally nested under another comment."""
    __tablename__ = "forum_comments"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("forum_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_comment_id = Column(Integer, ForeignKey("forum_comments.id", ondelete="CASCADE"), index=True)
    body = Column(String(1000), nullable=False)

    likes = Column(Integer, default=0, nullable=False)
    liked_by = Column(JSON, default=list)
    reply_count = Column(Integer, default=0, nullable=False)
    has_replies = Column(Boolean, default=False, nullable=False)
    is_edited = Column(Boolean, default=False, nullable=False)
    edited_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<ForumComment(id={self.id}, post_id={self.post_id}, parent_comment_id={self.parent_comment_id})>"
