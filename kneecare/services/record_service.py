"""
Base service for records owned by a single subject user.

Reads of a single record answer ``NotFoundError`` both when the record is
missing and when the actor may not see it. Owner-scoped operations
(listing, creating for a named owner) answer ``ForbiddenError`` on deny.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.orm import Session

from kneecare.core.exceptions import ForbiddenError, NotFoundError
from kneecare.core.policy import ensure_access, evaluate_access, filter_update
from kneecare.models.lifecycle import LifecycleMixin
from kneecare.models.user import User
from kneecare.services.relationship_service import RelationshipRegistry


class OwnedRecordService:
    """CRUD for one model, gated by the access policy."""

    model = None
    entity: str = None
    owner_field = "user_id"
    date_field: Optional[str] = None
    # Relationship permission a doctor needs to read / to write
    permission: Optional[str] = None
    write_permission: Optional[str] = None
    not_found_message = "Record not found"

    def __init__(self, db: Session):
        self.db = db
        self.relationships = RelationshipRegistry(db)

    @property
    def soft_deletes(self) -> bool:
        return issubclass(self.model, LifecycleMixin)

    def owner_of(self, record) -> int:
        return getattr(record, self.owner_field)

    def _owner_column(self):
        return getattr(self.model, self.owner_field)

    def _order_column(self):
        return getattr(self.model, self.date_field or "id")

    def _write_permission(self) -> Optional[str]:
        return self.write_permission or self.permission

    def authorize_owner(self, actor: User, owner_id: int, write: bool = False) -> None:
        """Raise ``ForbiddenError`` unless the actor may act for ``owner_id``."""
        permission = self._write_permission() if write else self.permission
        ensure_access(actor, owner_id, self.relationships.lookup, permission)

    def can_access(self, actor: User, record, write: bool = False) -> bool:
        permission = self._write_permission() if write else self.permission
        return evaluate_access(actor, self.owner_of(record), self.relationships.lookup, permission).allowed

    def load(self, record_id: int):
        return self.db.query(self.model).filter(self.model.id == record_id).first()

    def get(self, actor: User, record_id: int, write: bool = False):
        """Record by id, hidden as not found when the actor may not see it."""
        record = self.load(record_id)
        if record is None or not self.can_access(actor, record, write=write):
            raise NotFoundError(self.not_found_message)
        return record

    def owner_query(
        self,
        owner_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        include_inactive: bool = False,
    ):
        query = self.db.query(self.model).filter(self._owner_column() == owner_id)
        if self.soft_deletes and not include_inactive:
            query = query.filter(self.model.is_active.is_(True))
        if self.date_field:
            column = getattr(self.model, self.date_field)
            if start:
                query = query.filter(column >= start)
            if end:
                query = query.filter(column <= end)
        return query

    def apply_filters(self, query, filters: Dict[str, Any]):
        for field, value in (filters or {}).items():
            if value is not None:
                query = query.filter(getattr(self.model, field) == value)
        return query

    def list_for_owner(
        self,
        actor: User,
        owner_id: int,
        page: int = 1,
        size: int = 20,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        filters: Optional[Dict[str, Any]] = None,
        include_inactive: bool = False,
    ) -> Tuple[List[Any], int]:
        self.authorize_owner(actor, owner_id)
        query = self.apply_filters(self.owner_query(owner_id, start, end, include_inactive), filters)
        total = query.count()
        skip = (page - 1) * size
        items = query.order_by(desc(self._order_column()), desc(self.model.id)).offset(skip).limit(size).all()
        return items, total

    def prepare(self, actor: User, values: Dict[str, Any], record=None) -> Dict[str, Any]:
        """Hook for derived fields, called before every write."""
        return values

    def create(self, actor: User, values: Dict[str, Any], owner_id: Optional[int] = None):
        owner_id = owner_id or actor.id
        self.authorize_owner(actor, owner_id, write=True)
        values = self.prepare(actor, dict(values, **{self.owner_field: owner_id}))
        record = self.model(**values)
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def update(self, actor: User, record_id: int, changes: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:
        """Apply the role-permitted subset of ``changes``; returns the record and what was applied."""
        record = self.get(actor, record_id, write=True)
        applied = filter_update(self.entity, actor.role, changes)
        values = self.prepare(actor, dict(applied), record=record)
        for field, value in values.items():
            setattr(record, field, value)
        self.db.commit()
        self.db.refresh(record)
        return record, applied

    def delete(self, actor: User, record_id: int, permanent: bool = False) -> Tuple[Any, bool]:
        """Soft-delete where supported; hard delete otherwise or when an admin asks.

        Returns the record and whether it was physically removed.
        """
        record = self.get(actor, record_id, write=True)
        if self.soft_deletes and not permanent:
            record.end()
            self.db.commit()
            return record, False
        if self.soft_deletes and not actor.is_admin:
            raise ForbiddenError("Only admins can permanently delete records")
        self.db.delete(record)
        self.db.commit()
        return record, True
