"""
Celery application configuration for the KneeCare backend.
"""
from celery import Celery
from kneecare.core.config import settings

# Create Celery app
celery_app = Celery(
    "kneecare",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        'kneecare.workers.tasks',
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    result_expires=3600,  # 1 hour
    task_routes={
        'kneecare.workers.tasks.purge_expired_audit_logs': {'queue': 'maintenance'},
    },
    # Beat schedule for periodic tasks
    beat_schedule={
        'purge-expired-audit-logs': {
            'task': 'kneecare.workers.tasks.purge_expired_audit_logs',
            'schedule': 86400.0,  # Daily
        },
    },
)

# Start worker with: celery -A kneecare.workers.celery_app worker -Q maintenance --loglevel=info
# Start beat with: celery -A kneecare.workers.celery_app beat --loglevel=info
