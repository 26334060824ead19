"""
Community forum API endpoints.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kneecare.api.deps import Auditor, Pagination, get_auditor, get_current_user, get_db, get_pagination
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.models.forum import ForumCategory
from kneecare.models.user import User
from kneecare.schemas.common import MessageResponse, Page, build_page
from kneecare.schemas.forum import (
    CategoryCount, CommentCreate, CommentResponse, CommentUpdate, LikeResponse,
    PostCreate, PostResponse, PostUpdate,
)
from kneecare.services.forum_service import ForumService

router = APIRouter()


@router.get("/posts", response_model=Page[PostResponse])
async def list_posts(
    category: Optional[ForumCategory] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    sort: str = Query("recent", pattern="^(recent|created|likes|replies|views)$"),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Browse posts; pinned posts come first."""
    posts, total = ForumService(db).list_posts(
        pagination.page, pagination.size, category.value if category else None, search, sort
    )
    return build_page(PostResponse, posts, total, pagination.page, pagination.size)


@router.get("/categories", response_model=List[CategoryCount])
async def list_categories(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ForumService(db).categories()


@router.get("/posts/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Read a post; each read counts as a view."""
    return ForumService(db).get_post(post_id, count_view=True)


@router.post("/posts", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    post = ForumService(db).create_post(current_user, payload.model_dump())
    auditor.record(
        AuditAction.FORUM_POST_CREATED, AuditEntity.FORUM_POSTS, post.id,
        changes={"title": post.title, "category": post.category},
    )
    return post


@router.put("/posts/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: int,
    payload: PostUpdate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Edit a post (author or admin); pinning and locking are admin only."""
    post, applied = ForumService(db).update_post(current_user, post_id, payload.model_dump(exclude_unset=True))
    auditor.record(AuditAction.FORUM_POST_UPDATED, AuditEntity.FORUM_POSTS, post.id, changes=applied)
    return post


@router.delete("/posts/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: int,
    permanent: bool = Query(False),
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    _, removed = ForumService(db).delete_post(current_user, post_id, permanent=permanent)
    auditor.record(
        AuditAction.FORUM_POST_DELETED, AuditEntity.FORUM_POSTS, post_id,
        metadata={"permanent": removed},
    )
    return MessageResponse(message="Post deleted successfully")


@router.post("/posts/{post_id}/like", response_model=LikeResponse)
async def like_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    """Toggle the caller's like on a post."""
    post, liked = ForumService(db).like_post(current_user, post_id)
    auditor.record(AuditAction.FORUM_POST_LIKED, AuditEntity.FORUM_POSTS, post.id, metadata={"liked": liked})
    return LikeResponse(liked=liked, likes=post.likes)


@router.get("/posts/{post_id}/comments", response_model=Page[CommentResponse])
async def list_comments(
    post_id: int,
    parent_comment_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Top-level comments of a post, or the replies to one comment."""
    comments, total = ForumService(db).list_comments(
        post_id, parent_comment_id, pagination.page, pagination.size
    )
    return build_page(CommentResponse, comments, total, pagination.page, pagination.size)


@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: int,
    payload: CommentCreate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    comment = ForumService(db).create_comment(current_user, post_id, payload.body, payload.parent_comment_id)
    auditor.record(
        AuditAction.FORUM_COMMENT_CREATED, AuditEntity.FORUM_COMMENTS, comment.id,
        metadata={"post_id": post_id, "parent_comment_id": payload.parent_comment_id},
    )
    return comment


@router.put("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: int,
    payload: CommentUpdate,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    comment, applied = ForumService(db).update_comment(current_user, comment_id, payload.model_dump())
    auditor.record(AuditAction.FORUM_COMMENT_UPDATED, AuditEntity.FORUM_COMMENTS, comment.id, changes=applied)
    return comment


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    comment = ForumService(db).delete_comment(current_user, comment_id)
    auditor.record(
        AuditAction.FORUM_COMMENT_DELETED, AuditEntity.FORUM_COMMENTS, comment_id,
        metadata={"post_id": comment.post_id},
    )
    return MessageResponse(message="Comment deleted successfully")


@router.post("/comments/{comment_id}/like", response_model=LikeResponse)
async def like_comment(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    auditor: Auditor = Depends(get_auditor),
    db: Session = Depends(get_db),
):
    comment, liked = ForumService(db).like_comment(current_user, comment_id)
    auditor.record(
        AuditAction.FORUM_COMMENT_LIKED, AuditEntity.FORUM_COMMENTS, comment.id, metadata={"liked": liked}
    )
    return LikeResponse(liked=liked, likes=comment.likes)
