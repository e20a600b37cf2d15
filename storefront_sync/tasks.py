"""Celery tasks for background processing."""
import logging

from celery.schedules import crontab

from .celery_app import celery_app
from .config import get_config
from .context import AppContext
from .exceptions import SyncAlreadyRunningError, SyncLogClosedError
from .logging_config import close_sync_logger, get_sync_logger
from .services.sync_service import SyncOptions

logger = logging.getLogger(__name__)


def _worker_context() -> AppContext:
    return AppContext(get_config()).initialize()


def _fail_queued_log(ctx: AppContext, sync_log_id, message: str) -> None:
    try:
        ctx.store.fail_sync_log(sync_log_id, message)
    except SyncLogClosedError:
        # The engine already closed it
        logger.debug(f"Sync log {sync_log_id} was already closed")


@celery_app.task(bind=True, name='catalog.full_sync')
def run_full_sync_task(self, sync_log_id, options=None):
    """Run a full catalog sync for a sync log created by the admin API."""
    config_class = get_config()
    ctx = _worker_context()
    run_logger = get_sync_logger(sync_log_id, config_class.LOG_PATH)

    self.update_state(state='PROGRESS', meta={'sync_log_id': sync_log_id, 'status': 'Starting sync...'})
    try:
        stats = ctx.sync_engine(run_logger=run_logger).run_full_sync(
            SyncOptions.from_dict(options), sync_log_id=sync_log_id
        )
        return stats.to_dict()
    except SyncAlreadyRunningError as e:
        logger.warning(f"Sync {sync_log_id} not started: {e}")
        return {'sync_log_id': sync_log_id, 'status': 'failed', 'error': str(e)}
    except Exception as e:
        logger.error(f"Sync task for log {sync_log_id} failed: {e}")
        _fail_queued_log(ctx, sync_log_id, str(e))
        self.update_state(
            state='FAILURE',
            meta={
                'exc_type': type(e).__name__,
                'exc_message': str(e),
                'status': 'Failed'
            }
        )
        raise
    finally:
        close_sync_logger(run_logger)
        ctx.db.close()


@celery_app.task(name='catalog.fail_stale_syncs')
def fail_stale_syncs():
    """Periodic task to close sync logs whose worker died."""
    ctx = _worker_context()
    operation = ctx.sync_settings.operation
    try:
        holder = ctx.store.lock_owner(operation)
        if holder:
            return f"Skipped: '{operation}' is held by {holder}"
        stale = ctx.store.fail_stale_sync_logs(operation, ctx.sync_settings.stale_after)
        return f"Marked {len(stale)} stale sync logs as failed"
    finally:
        ctx.db.close()


celery_app.conf.beat_schedule = {
    'fail-stale-syncs': {
        'task': 'catalog.fail_stale_syncs',
        'schedule': crontab(minute='*/15'),
    },
}
