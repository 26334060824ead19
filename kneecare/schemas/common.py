"""
Shared response schemas.
"""
from typing import Generic, List, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a paginated listing."""
    items: List[T]
    total: int
    page: int
    size: int


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def build_page(schema, items, total: int, page: int, size: int) -> Page:
    """Wrap ORM rows in a typed page."""
    return Page[schema](
        items=[schema.model_validate(item) for item in items],
        total=total,
        page=page,
        size=size,
    )
