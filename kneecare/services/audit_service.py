"""
Audit trail service.

Entries are written in their own session, after the operation they describe
has committed, so an audit failure can never roll back or abort the primary
request. Storage failures while appending are logged to the local audit
logger and swallowed; failures while reading or purging surface as
``InternalError``.
"""
import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy import asc, desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from kneecare.core.exceptions import InternalError, NotFoundError
from kneecare.core.logging import audit_logger
from kneecare.models.audit_log import AuditAction, AuditEntity, AuditLog, AuditStatus
from kneecare.models.lifecycle import utcnow

logger = logging.getLogger(__name__)

MASK = "***masked***"
USER_AGENT_LIMIT = 100
CREDENTIAL_KEYS = frozenset({
    "password", "current_password", "new_password", "hashed_password",
    "token", "access_token", "refresh_token", "secret", "admin_secret",
})
SORTABLE_FIELDS = ("timestamp", "action", "entity", "status", "actor_id")
EXPORT_FIELDS = (
    "id", "timestamp", "actor_id", "action", "entity", "entity_id", "status",
    "ip_address", "user_agent", "error_message", "changes",
)


@dataclass
class RequestContext:
    """Where a request came from."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    session_id: Optional[str] = None


@dataclass
class AuditFilters:
    actor_id: Optional[int] = None
    action: Optional[str] = None
    entity: Optional[str] = None
    entity_id: Optional[str] = None
    status: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None


def _is_credential_key(key: Any) -> bool:
    name = str(key).lower()
    return name in CREDENTIAL_KEYS or "password" in name


def redact_changes(changes: Any) -> Any:
    """Mask credential-like keys at any depth."""
    if isinstance(changes, dict):
        return {
            key: MASK if _is_credential_key(key) else redact_changes(value)
            for key, value in changes.items()
        }
    if isinstance(changes, (list, tuple)):
        return [redact_changes(item) for item in changes]
    return changes


def truncate_user_agent(user_agent: Optional[str], limit: int = USER_AGENT_LIMIT) -> Optional[str]:
    if user_agent and len(user_agent) > limit:
        return user_agent[:limit] + "..."
    return user_agent


def redact(entry: AuditLog) -> Dict[str, Any]:
    """Serializable view of an entry that is safe to hand out."""
    return {
        "id": entry.id,
        "actor_id": entry.actor_id,
        "action": entry.action,
        "entity": entry.entity,
        "entity_id": entry.entity_id,
        "changes": redact_changes(entry.changes),
        "ip_address": entry.ip_address,
        "user_agent": truncate_user_agent(entry.user_agent),
        "request_id": entry.request_id,
        "metadata": entry.details,
        "status": entry.status,
        "error_message": entry.error_message,
        "timestamp": entry.timestamp,
    }


def _value(enum_or_str: Any) -> Any:
    return getattr(enum_or_str, "value", enum_or_str)


class AuditTrail:
    """Append-only store of security-relevant events."""

    def __init__(self, session_factory: sessionmaker, retention_days: int = 730):
        self.session_factory = session_factory
        self.retention_days = retention_days

    def append(
        self,
        actor_id: Optional[int],
        action: AuditAction,
        entity: AuditEntity,
        entity_id: Any = None,
        changes: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
        status: AuditStatus = AuditStatus.SUCCESS,
        error_message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """Record an event. Never raises."""
        context = context or RequestContext()
        record = {
            "actor_id": actor_id,
            "action": _value(action),
            "entity": _value(entity),
            "entity_id": str(entity_id) if entity_id is not None else None,
            "status": _value(status),
            "error_message": error_message[:1000] if error_message else None,
        }
        db = None
        try:
            entry = AuditLog(
                **record,
                changes=redact_changes(jsonable_encoder(changes)) if changes is not None else None,
                details=jsonable_encoder(metadata) if metadata is not None else None,
                ip_address=context.ip_address,
                user_agent=context.user_agent[:500] if context.user_agent else None,
                request_id=context.request_id,
                session_id=context.session_id,
            )
            db = self.session_factory()
            db.add(entry)
            db.commit()
            return entry
        except Exception as e:
            if db is not None:
                db.rollback()
            audit_logger.log_append_failure(record, e)
            logger.error(f"Failed to append audit entry {record['action']}: {e}")
            return None
        finally:
            if db is not None:
                db.close()

    def _filtered(self, db, filters: AuditFilters):
        query = db.query(AuditLog)
        if filters.actor_id is not None:
            query = query.filter(AuditLog.actor_id == filters.actor_id)
        if filters.action:
            query = query.filter(AuditLog.action == filters.action)
        if filters.entity:
            query = query.filter(AuditLog.entity == filters.entity)
        if filters.entity_id is not None:
            query = query.filter(AuditLog.entity_id == str(filters.entity_id))
        if filters.status:
            query = query.filter(AuditLog.status == filters.status)
        if filters.start:
            query = query.filter(AuditLog.timestamp >= filters.start)
        if filters.end:
            query = query.filter(AuditLog.timestamp <= filters.end)
        return query

    def query(
        self,
        filters: Optional[AuditFilters] = None,
        page: int = 1,
        size: int = 50,
        sort_by: str = "timestamp",
        sort_order: str = "desc",
    ) -> Tuple[List[AuditLog], int]:
        """Filtered, sorted, paginated entries."""
        filters = filters or AuditFilters()
        column = getattr(AuditLog, sort_by if sort_by in SORTABLE_FIELDS else "timestamp")
        order = asc(column) if sort_order == "asc" else desc(column)
        skip = (page - 1) * size
        try:
            with self.session_factory() as db:
                query = self._filtered(db, filters)
                total = query.count()
                items = query.order_by(order, desc(AuditLog.id)).offset(skip).limit(size).all()
                return items, total
        except SQLAlchemyError as e:
            logger.error(f"Audit query failed: {e}")
            raise InternalError("Failed to query audit logs")

    def get(self, entry_id: int) -> AuditLog:
        try:
            with self.session_factory() as db:
                entry = db.query(AuditLog).filter(AuditLog.id == entry_id).first()
        except SQLAlchemyError as e:
            logger.error(f"Audit lookup failed: {e}")
            raise InternalError("Failed to load audit log")
        if entry is None:
            raise NotFoundError("Audit log not found")
        return entry

    def stats(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
        """Counts by action, entity and status plus the most active actors."""
        filters = AuditFilters(start=start, end=end)
        try:
            with self.session_factory() as db:
                def grouped(column):
                    rows = (
                        self._filtered(db, filters)
                        .with_entities(column, func.count(AuditLog.id))
                        .group_by(column)
                        .all()
                    )
                    return {key: count for key, count in rows}

                total = self._filtered(db, filters).count()
                top_users = (
                    self._filtered(db, filters)
                    .filter(AuditLog.actor_id.isnot(None))
                    .with_entities(AuditLog.actor_id, func.count(AuditLog.id).label("count"))
                    .group_by(AuditLog.actor_id)
                    .order_by(desc("count"))
                    .limit(10)
                    .all()
                )
                return {
                    "total": total,
                    "by_action": grouped(AuditLog.action),
                    "by_entity": grouped(AuditLog.entity),
                    "by_status": grouped(AuditLog.status),
                    "most_active_users": [
                        {"actor_id": actor_id, "count": count} for actor_id, count in top_users
                    ],
                }
        except SQLAlchemyError as e:
            logger.error(f"Audit statistics failed: {e}")
            raise InternalError("Failed to compute audit statistics")

    def export(self, filters: Optional[AuditFilters] = None, fmt: str = "json") -> Tuple[str, str]:
        """Render matching entries, redacted, as JSON or CSV. Returns (body, media type)."""
        filters = filters or AuditFilters()
        try:
            with self.session_factory() as db:
                entries = self._filtered(db, filters).order_by(desc(AuditLog.timestamp)).all()
        except SQLAlchemyError as e:
            logger.error(f"Audit export failed: {e}")
            raise InternalError("Failed to export audit logs")

        rows = [jsonable_encoder(redact(entry)) for entry in entries]
        if fmt == "csv":
            buffer = io.StringIO()
            writer = csv.DictWriter(buffer, fieldnames=EXPORT_FIELDS, extrasaction="ignore")
            writer.writeheader()
            for row in rows:
                row["changes"] = json.dumps(row["changes"]) if row["changes"] is not None else ""
                writer.writerow(row)
            return buffer.getvalue(), "text/csv"
        return json.dumps(rows, indent=2), "application/json"

    def cleanup(self, older_than_days: int) -> int:
        """Delete entries older than the given age. Returns the number removed."""
        cutoff = utcnow() - timedelta(days=older_than_days)
        try:
            with self.session_factory() as db:
                removed = (
                    db.query(AuditLog)
                    .filter(AuditLog.timestamp < cutoff)
                    .delete(synchronize_session=False)
                )
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Audit cleanup failed: {e}")
            raise InternalError("Failed to clean up audit logs")
        logger.info(f"Removed {removed} audit entries older than {older_than_days} days")
        return removed

    def purge_expired(self) -> int:
        """Apply the retention window."""
        return self.cleanup(self.retention_days)
