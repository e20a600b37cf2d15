"""Celery configuration for background task processing."""
from celery import Celery

from .config import get_config


def make_celery(app_name=__name__, config_class=None):
    """Create and configure Celery instance."""
    config_class = config_class or get_config()
    celery = Celery(
        app_name,
        broker=config_class.CELERY_BROKER_URL,
        backend=config_class.CELERY_RESULT_BACKEND,
        include=['storefront_sync.tasks'],
    )

    celery.conf.update(
        task_serializer=config_class.CELERY_TASK_SERIALIZER,
        result_serializer=config_class.CELERY_RESULT_SERIALIZER,
        accept_content=config_class.CELERY_ACCEPT_CONTENT,
        timezone=config_class.CELERY_TIMEZONE,
        enable_utc=config_class.CELERY_ENABLE_UTC,
        task_always_eager=config_class.CELERY_TASK_ALWAYS_EAGER,
        task_track_started=True,
        result_expires=3600,  # Results expire after 1 hour
        task_acks_late=True,  # Acknowledge tasks after completion
        worker_prefetch_multiplier=1,  # One task at a time per worker
        task_soft_time_limit=config_class.SYNC_LOCK_TTL - 60,
        task_time_limit=config_class.SYNC_LOCK_TTL,
        task_routes={
            'catalog.full_sync': {'queue': 'sync'},
            'catalog.fail_stale_syncs': {'queue': 'maintenance'},
        },
    )

    return celery


celery_app = make_celery('storefront_sync')
