"""
Shared soft-delete lifecycle for records that are ended rather than removed.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import Boolean, Column, DateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Lifecycle:
    """Lifecycle state of a soft-deletable record."""
    active: bool
    ended_at: Optional[datetime] = None


class LifecycleMixin:
    """Adds ``is_active``/``ended_at`` columns and the operations on them."""

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    ended_at = Column(DateTime(timezone=True))

    @property
    def lifecycle(self) -> Lifecycle:
        return Lifecycle(active=bool(self.is_active), ended_at=self.ended_at)

    def end(self, when: Optional[datetime] = None) -> bool:
        """Mark the record ended. Returns False when it was already ended."""
        if not self.is_active:
            return False
        self.is_active = False
        self.ended_at = when or utcnow()
        return True
