"""
Forum schemas.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from kneecare.models.forum import ForumCategory


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=5000)
    category: ForumCategory
    tags: List[str] = []


class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    body: Optional[str] = Field(None, min_length=1, max_length=5000)
    category: Optional[ForumCategory] = None
    tags: Optional[List[str]] = None
    is_pinned: Optional[bool] = None
    is_locked: Optional[bool] = None


class PostResponse(BaseModel):
    id: int
    user_id: int
    title: str
    body: str
    category: str
    tags: Optional[List[str]] = None
    likes: int
    replies: int
    views: int
    is_pinned: bool
    is_locked: bool
    last_activity_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=1000)
    parent_comment_id: Optional[int] = None


class CommentUpdate(BaseModel):
    body: str = Field(..., min_length=1, max_length=1000)


class CommentResponse(BaseModel):
    id: int
    post_id: int
    user_id: int
    parent_comment_id: Optional[int] = None
    body: str
    likes: int
    reply_count: int
    has_replies: bool
    is_edited: bool
    edited_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LikeResponse(BaseModel):
    liked: bool
    likes: int


class CategoryCount(BaseModel):
    category: str
    post_count: int
