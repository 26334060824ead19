"""
Community forum service.

Reply counters are recomputed explicitly whenever a comment is created or
removed, by ``refresh_reply_counters``.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc, func, or_
from sqlalchemy.orm import Session

from kneecare.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from kneecare.core.policy import filter_update
from kneecare.models.forum import ForumCategory, ForumComment, ForumPost
from kneecare.models.lifecycle import utcnow
from kneecare.models.user import User

logger = logging.getLogger(__name__)

POST_SORTS = {
    "recent": ForumPost.last_activity_at,
    "created": ForumPost.created_at,
    "likes": ForumPost.likes,
    "replies": ForumPost.replies,
    "views": ForumPost.views,
}


def toggle_like(liked_by: Optional[List[int]], user_id: int) -> Tuple[List[int], bool]:
    """New liker list and whether the user now likes the item."""
    likers = list(liked_by or [])
    if user_id in likers:
        likers.remove(user_id)
        return likers, False
    likers.append(user_id)
    return likers, True


class ForumService:
    """Service for forum posts and comments."""

    def __init__(self, db: Session):
        self.db = db

    # Posts

    def list_posts(
        self,
        page: int = 1,
        size: int = 20,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "recent",
    ) -> Tuple[List[ForumPost], int]:
        query = self.db.query(ForumPost).filter(ForumPost.is_active.is_(True))
        if category:
            query = query.filter(ForumPost.category == category)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(func.lower(ForumPost.title).like(pattern), func.lower(ForumPost.body).like(pattern)))
        total = query.count()
        skip = (page - 1) * size
        order = POST_SORTS.get(sort, ForumPost.last_activity_at)
        posts = query.order_by(desc(ForumPost.is_pinned), desc(order), desc(ForumPost.id)).offset(skip).limit(size).all()
        return posts, total

    def get_post(self, post_id: int, count_view: bool = False) -> ForumPost:
        post = self.db.query(ForumPost).filter(ForumPost.id == post_id, ForumPost.is_active.is_(True)).first()
        if post is None:
            raise NotFoundError("Post not found")
        if count_view:
            post.views = (post.views or 0) + 1
            self.db.commit()
            self.db.refresh(post)
        return post

    def _ensure_author(self, actor: User, item) -> None:
        if item.user_id != actor.id and not actor.is_admin:
            raise ForbiddenError("Not authorized to modify this item")

    def create_post(self, actor: User, values: Dict[str, Any]) -> ForumPost:
        post = ForumPost(user_id=actor.id, last_activity_at=utcnow(), **values)
        self.db.add(post)
        self.db.commit()
        self.db.refresh(post)
        return post

    def update_post(self, actor: User, post_id: int, changes: Dict[str, Any]) -> Tuple[ForumPost, Dict[str, Any]]:
        post = self.get_post(post_id)
        self._ensure_author(actor, post)
        applied = filter_update("forum_post", actor.role, changes)
        for field, value in applied.items():
            setattr(post, field, value)
        post.last_activity_at = utcnow()
        self.db.commit()
        self.db.refresh(post)
        return post, applied

    def delete_post(self, actor: User, post_id: int, permanent: bool = False) -> Tuple[ForumPost, bool]:
        post = self.db.query(ForumPost).filter(ForumPost.id == post_id).first()
        if post is None or (not post.is_active and not actor.is_admin):
            raise NotFoundError("Post not found")
        self._ensure_author(actor, post)
        if permanent:
            if not actor.is_admin:
                raise ForbiddenError("Only admins can permanently delete posts")
            self.db.query(ForumComment).filter(ForumComment.post_id == post.id).delete(synchronize_session=False)
            self.db.delete(post)
            self.db.commit()
            return post, True
        post.end()
        self.db.commit()
        return post, False

    def like_post(self, actor: User, post_id: int) -> Tuple[ForumPost, bool]:
        post = self.get_post(post_id)
        post.liked_by, liked = toggle_like(post.liked_by, actor.id)
        post.likes = len(post.liked_by)
        self.db.commit()
        self.db.refresh(post)
        return post, liked

    def categories(self) -> List[Dict[str, Any]]:
        counts = dict(
            self.db.query(ForumPost.category, func.count(ForumPost.id))
            .filter(ForumPost.is_active.is_(True))
            .group_by(ForumPost.category)
            .all()
        )
        return [{"category": c.value, "post_count": counts.get(c.value, 0)} for c in ForumCategory]

    # Comments

    def get_comment(self, comment_id: int) -> ForumComment:
        comment = self.db.query(ForumComment).filter(
            ForumComment.id == comment_id, ForumComment.is_active.is_(True)
        ).first()
        if comment is None:
            raise NotFoundError("Comment not found")
        return comment

    def list_comments(
        self, post_id: int, parent_comment_id: Optional[int] = None, page: int = 1, size: int = 50
    ) -> Tuple[List[ForumComment], int]:
        self.get_post(post_id)
        query = self.db.query(ForumComment).filter(
            ForumComment.post_id == post_id,
            ForumComment.is_active.is_(True),
        )
        if parent_comment_id is None:
            query = query.filter(ForumComment.parent_comment_id.is_(None))
        else:
            query = query.filter(ForumComment.parent_comment_id == parent_comment_id)
        total = query.count()
        skip = (page - 1) * size
        return query.order_by(ForumComment.created_at, ForumComment.id).offset(skip).limit(size).all(), total

    def refresh_reply_counters(self, post_id: int, parent_comment_id: Optional[int] = None) -> None:
        """Recompute the post's reply count and, for nested comments, the parent's."""
        active = ForumComment.is_active.is_(True)
        post = self.db.query(ForumPost).filter(ForumPost.id == post_id).first()
        if post is not None:
            post.replies = self.db.query(ForumComment).filter(ForumComment.post_id == post_id, active).count()
            post.last_activity_at = utcnow()
        if parent_comment_id is not None:
            parent = self.db.query(ForumComment).filter(ForumComment.id == parent_comment_id).first()
            if parent is not None:
                parent.reply_count = self.db.query(ForumComment).filter(
                    ForumComment.parent_comment_id == parent_comment_id, active
                ).count()
                parent.has_replies = parent.reply_count > 0
        self.db.commit()

    def create_comment(
        self, actor: User, post_id: int, body: str, parent_comment_id: Optional[int] = None
    ) -> ForumComment:
        post = self.get_post(post_id)
        if post.is_locked:
            raise ForbiddenError("This post is locked")
        if parent_comment_id is not None:
            parent = self.get_comment(parent_comment_id)
            if parent.post_id != post.id:
                raise ValidationError("Parent comment belongs to a different post")

        comment = ForumComment(post_id=post.id, user_id=actor.id, body=body, parent_comment_id=parent_comment_id)
        self.db.add(comment)
        self.db.commit()
        self.refresh_reply_counters(post.id, parent_comment_id)
        self.db.refresh(comment)
        return comment

    def update_comment(self, actor: User, comment_id: int, changes: Dict[str, Any]) -> Tuple[ForumComment, Dict[str, Any]]:
        comment = self.get_comment(comment_id)
        self._ensure_author(actor, comment)
        applied = filter_update("forum_comment", actor.role, changes)
        for field, value in applied.items():
            setattr(comment, field, value)
        if applied:
            comment.is_edited = True
            comment.edited_at = utcnow()
        self.db.commit()
        self.db.refresh(comment)
        return comment, applied

    def delete_comment(self, actor: User, comment_id: int) -> ForumComment:
        comment = self.get_comment(comment_id)
        self._ensure_author(actor, comment)
        comment.end()
        self.db.commit()
        self.refresh_reply_counters(comment.post_id, comment.parent_comment_id)
        return comment

    def like_comment(self, actor: User, comment_id: int) -> Tuple[ForumComment, bool]:
        comment = self.get_comment(comment_id)
        comment.liked_by, liked = toggle_like(comment.liked_by, actor.id)
        comment.likes = len(comment.liked_by)
        self.db.commit()
        self.db.refresh(comment)
        return comment, liked
