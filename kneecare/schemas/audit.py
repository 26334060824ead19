"""
Audit log schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from kneecare.models.audit_log import AuditAction, AuditEntity, AuditStatus


class AuditLogResponse(BaseModel):
    """Redacted audit entry."""
    id: int
    actor_id: Optional[int] = None
    action: str
    entity: str
    entity_id: Optional[str] = None
    changes: Optional[Any] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    status: str
    error_message: Optional[str] = None
    timestamp: datetime


class AuditLogCreate(BaseModel):
    """Manual entry written by an administrator."""
    action: AuditAction
    entity: AuditEntity
    entity_id: Optional[str] = None
    changes: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    status: AuditStatus = AuditStatus.SUCCESS


class AuditCleanupRequest(BaseModel):
    older_than_days: int = Field(..., ge=1)


class AuditCleanupResponse(BaseModel):
    success: bool = True
    deleted_count: int
    older_than_days: int


class ActorCount(BaseModel):
    actor_id: int
    count: int


class AuditStats(BaseModel):
    total: int
    by_action: Dict[str, int]
    by_entity: Dict[str, int]
    by_status: Dict[str, int]
    most_active_users: List[ActorCount]
