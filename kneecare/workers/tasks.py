"""
Celery tasks for the KneeCare backend.
"""
import logging
from typing import Optional

from kneecare.core.config import Settings, settings as default_settings
from kneecare.core.logging import audit_logger
from kneecare.db.session import build_engine, build_session_factory
from kneecare.models.audit_log import AuditAction, AuditEntity
from kneecare.services.audit_service import AuditTrail
from kneecare.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def purge_audit_trail(config: Optional[Settings] = None) -> int:
    """Delete audit entries older than the retention window and record the purge."""
    config = config or default_settings
    engine = build_engine(config.DATABASE_URL)
    try:
        trail = AuditTrail(build_session_factory(engine), config.AUDIT_LOG_RETENTION_DAYS)
        removed = trail.purge_expired()
        trail.append(
            actor_id=None,
            action=AuditAction.AUDIT_LOGS_CLEANED,
            entity=AuditEntity.AUDIT_LOGS,
            metadata={"deleted_count": removed, "older_than_days": config.AUDIT_LOG_RETENTION_DAYS},
        )
    finally:
        engine.dispose()
    audit_logger.log_system_event("audit_retention", "Expired audit entries purged", {"deleted_count": removed})
    return removed


@celery_app.task(name='kneecare.workers.tasks.purge_expired_audit_logs')
def purge_expired_audit_logs():
    """Periodic retention job."""
    removed = purge_audit_trail()
    logger.info(f"Audit retention removed {removed} entries")
    return {"deleted_count": removed}
