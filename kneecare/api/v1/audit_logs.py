"""
Audit log API endpoints.
"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status

from kneecare.api.deps import (
    Auditor, Pagination, get_audit_trail, get_auditor, get_current_admin,
    get_current_user, get_pagination, get_request_context,
)
from kneecare.core.exceptions import ForbiddenError, InternalError
from kneecare.models.audit_log import AuditAction, AuditEntity, AuditStatus
from kneecare.models.user import User
from kneecare.schemas.audit import (
    AuditCleanupRequest, AuditCleanupResponse, AuditLogCreate, AuditLogResponse, AuditStats,
)
from kneecare.schemas.common import Page
from kneecare.services.audit_service import AuditFilters, AuditTrail, RequestContext, redact

router = APIRouter()


def _page(items, total: int, pagination: Pagination) -> Page[AuditLogResponse]:
    return Page[AuditLogResponse](
        items=[AuditLogResponse(**redact(entry)) for entry in items],
        total=total,
        page=pagination.page,
        size=pagination.size,
    )


def _filters(
    actor_id: Optional[int] = Query(None),
    action: Optional[AuditAction] = Query(None),
    entity: Optional[AuditEntity] = Query(None),
    entity_id: Optional[str] = Query(None),
    status: Optional[AuditStatus] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
) -> AuditFilters:
    return AuditFilters(
        actor_id=actor_id,
        action=action.value if action else None,
        entity=entity.value if entity else None,
        entity_id=entity_id,
        status=status.value if status else None,
        start=start_date,
        end=end_date,
    )


@router.get("/", response_model=Page[AuditLogResponse])
async def list_audit_logs(
    filters: AuditFilters = Depends(_filters),
    sort_by: str = Query("timestamp"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_admin),
    trail: AuditTrail = Depends(get_audit_trail),
):
    """Search the audit trail (admin only)."""
    items, total = trail.query(filters, pagination.page, pagination.size, sort_by, sort_order)
    return _page(items, total, pagination)


@router.get("/me", response_model=Page[AuditLogResponse])
async def list_my_audit_logs(
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    trail: AuditTrail = Depends(get_audit_trail),
):
    """Entries for actions the caller performed."""
    items, total = trail.query(AuditFilters(actor_id=current_user.id), pagination.page, pagination.size)
    return _page(items, total, pagination)


@router.get("/user/{user_id}", response_model=Page[AuditLogResponse])
async def list_user_audit_logs(
    user_id: int,
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    trail: AuditTrail = Depends(get_audit_trail),
):
    """Entries for one actor (that actor or admin)."""
    if not current_user.is_admin and current_user.id != user_id:
        raise ForbiddenError("Access denied")
    items, total = trail.query(AuditFilters(actor_id=user_id), pagination.page, pagination.size)
    return _page(items, total, pagination)


@router.get("/stats/summary", response_model=AuditStats)
async def get_audit_stats(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_admin),
    trail: AuditTrail = Depends(get_audit_trail),
):
    return trail.stats(start_date, end_date)


@router.get("/entity/{entity}/{entity_id}", response_model=Page[AuditLogResponse])
async def list_entity_audit_logs(
    entity: AuditEntity,
    entity_id: str,
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_admin),
    trail: AuditTrail = Depends(get_audit_trail),
):
    """History of a single record (admin only)."""
    filters = AuditFilters(entity=entity.value, entity_id=entity_id)
    items, total = trail.query(filters, pagination.page, pagination.size)
    return _page(items, total, pagination)


@router.get("/export")
async def export_audit_logs(
    format: str = Query("json", pattern="^(json|csv)$"),
    filters: AuditFilters = Depends(_filters),
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    trail: AuditTrail = Depends(get_audit_trail),
):
    """Download matching entries as JSON or CSV (admin only)."""
    body, media_type = trail.export(filters, format)
    auditor.record(
        AuditAction.DATA_EXPORTED, AuditEntity.AUDIT_LOGS,
        metadata={"format": format},
    )
    filename = f"audit-logs-{datetime.utcnow():%Y%m%d%H%M%S}.{format}"
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/cleanup", response_model=AuditCleanupResponse)
async def cleanup_audit_logs(
    payload: AuditCleanupRequest,
    current_user: User = Depends(get_current_admin),
    auditor: Auditor = Depends(get_auditor),
    trail: AuditTrail = Depends(get_audit_trail),
):
    """Delete entries older than the given number of days (admin only)."""
    removed = trail.cleanup(payload.older_than_days)
    auditor.record(
        AuditAction.AUDIT_LOGS_CLEANED, AuditEntity.AUDIT_LOGS,
        metadata={"deleted_count": removed, "older_than_days": payload.older_than_days},
    )
    return AuditCleanupResponse(deleted_count=removed, older_than_days=payload.older_than_days)


@router.get("/{entry_id}", response_model=AuditLogResponse)
async def get_audit_log(
    entry_id: int,
    current_user: User = Depends(get_current_admin),
    trail: AuditTrail = Depends(get_audit_trail),
):
    return AuditLogResponse(**redact(trail.get(entry_id)))


@router.post("/", response_model=AuditLogResponse, status_code=status.HTTP_201_CREATED)
async def create_audit_log(
    payload: AuditLogCreate,
    current_user: User = Depends(get_current_admin),
    trail: AuditTrail = Depends(get_audit_trail),
    context: RequestContext = Depends(get_request_context),
):
    """Write a manual entry (admin only)."""
    entry = trail.append(
        actor_id=current_user.id,
        action=payload.action,
        entity=payload.entity,
        entity_id=payload.entity_id,
        changes=payload.changes,
        context=context,
        status=payload.status,
        metadata=payload.metadata,
    )
    if entry is None:
        raise InternalError("Failed to write audit log")
    return AuditLogResponse(**redact(entry))
