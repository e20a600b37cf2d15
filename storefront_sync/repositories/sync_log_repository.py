"""
Sync Log Repository for managing reconciliation run records.
"""

from typing import List, Optional, Dict, Any
from datetime import datetime, timedelta
import logging

from sqlalchemy.orm import Session

from ..exceptions import SyncLogClosedError
from ..models import SyncLog, SyncStatus
from .base import BaseRepository

logger = logging.getLogger(__name__)

COUNTER_FIELDS = (
    'products_processed', 'products_created', 'products_updated', 'products_deleted',
    'variants_processed', 'variants_created', 'variants_updated', 'variants_deleted',
)


class SyncLogRepository(BaseRepository):
    """Repository for SyncLog model operations."""

    def __init__(self, session: Session):
        super().__init__(SyncLog, session)

    def _get_open(self, sync_id: int) -> Optional[SyncLog]:
        sync = self.get(sync_id)
        if sync is not None and sync.is_finished:
            raise SyncLogClosedError(f"Sync log {sync_id} is already {sync.status}")
        return sync

    def create_sync_log(self, operation: str, options: Optional[Dict[str, Any]] = None) -> SyncLog:
        """Create a new sync log in queued status."""
        return self.create(
            operation=operation,
            status=SyncStatus.QUEUED.value,
            current_step='Queued',
            progress=0,
            options=options or {},
            errors=[],
            warnings=[],
            started_at=datetime.utcnow()
        )

    def start_sync(self, sync_id: int, options: Optional[Dict[str, Any]] = None) -> Optional[SyncLog]:
        """Move a queued sync log to running."""
        sync = self._get_open(sync_id)
        if not sync:
            return None
        sync.status = SyncStatus.RUNNING.value
        sync.started_at = datetime.utcnow()
        if options is not None:
            sync.options = options
        self.session.flush()
        return sync

    def update_progress(self, sync_id: int, progress: Optional[int] = None, current_step: Optional[str] = None,
                        **counters) -> Optional[SyncLog]:
        """Update step text, progress and counters. Progress never moves backwards."""
        sync = self._get_open(sync_id)
        if not sync:
            return None

        if progress is not None:
            sync.progress = max(sync.progress or 0, min(int(progress), 100))
        if current_step is not None:
            sync.current_step = current_step
        for key, value in counters.items():
            if key in COUNTER_FIELDS and value is not None:
                setattr(sync, key, value)

        self.session.flush()
        return sync

    def _append(self, sync_id: int, field: str, message: str, details: Optional[Dict[str, Any]]) -> Optional[SyncLog]:
        sync = self._get_open(sync_id)
        if not sync:
            return None

        entry = {
            'timestamp': datetime.utcnow().isoformat(),
            'message': message
        }
        if details:
            entry['details'] = details
        # JSON columns only notice reassignment
        setattr(sync, field, list(getattr(sync, field) or []) + [entry])
        self.session.flush()
        return sync

    def add_warning(self, sync_id: int, warning: str, details: Optional[Dict[str, Any]] = None) -> Optional[SyncLog]:
        """Add a warning to sync record."""
        return self._append(sync_id, 'warnings', warning, details)

    def add_error(self, sync_id: int, error: str, details: Optional[Dict[str, Any]] = None) -> Optional[SyncLog]:
        """Add an error to sync record."""
        return self._append(sync_id, 'errors', error, details)

    def complete_sync(self, sync_id: int, counters: Optional[Dict[str, int]] = None) -> Optional[SyncLog]:
        """Close the run as success, or partial when any error was recorded."""
        sync = self._get_open(sync_id)
        if not sync:
            return None

        for key, value in (counters or {}).items():
            if key in COUNTER_FIELDS:
                setattr(sync, key, value)

        now = datetime.utcnow()
        sync.status = SyncStatus.PARTIAL.value if sync.errors else SyncStatus.SUCCESS.value
        sync.progress = 100
        sync.current_step = 'Completed'
        sync.completed_at = now
        sync.duration = int((now - sync.started_at).total_seconds() * 1000)
        self.session.flush()
        return sync

    def fail_sync(self, sync_id: int, error_message: str) -> Optional[SyncLog]:
        """Mark sync as failed."""
        sync = self._get_open(sync_id)
        if not sync:
            return None

        now = datetime.utcnow()
        sync.status = SyncStatus.FAILED.value
        sync.current_step = 'Failed'
        sync.error_message = error_message
        sync.completed_at = now
        sync.duration = int((now - sync.started_at).total_seconds() * 1000)
        self.session.flush()
        return sync

    def fail_stale_syncs(self, operation: str, older_than_seconds: int,
                         exclude_id: Optional[int] = None) -> List[int]:
        """Fail queued or running logs that stopped moving. Returns the ids touched."""
        cutoff = datetime.utcnow() - timedelta(seconds=older_than_seconds)
        query = self.session.query(SyncLog).filter(
            SyncLog.operation == operation,
            SyncLog.status.in_([SyncStatus.QUEUED.value, SyncStatus.RUNNING.value]),
            SyncLog.updated_at < cutoff,
        )
        if exclude_id is not None:
            query = query.filter(SyncLog.id != exclude_id)

        stale_ids = []
        for sync in query.all():
            logger.warning(f"Marking stale sync log {sync.id} ({sync.status}) as failed")
            self.fail_sync(sync.id, 'Abandoned: no progress since ' + sync.updated_at.isoformat())
            stale_ids.append(sync.id)
        return stale_ids

    def get_recent_syncs(self, operation: Optional[str] = None, limit: int = 20) -> List[SyncLog]:
        """Get recent sync logs, newest first."""
        query = self.session.query(SyncLog)
        if operation:
            query = query.filter(SyncLog.operation == operation)
        return query.order_by(SyncLog.started_at.desc(), SyncLog.id.desc()).limit(limit).all()

    def get_active_sync(self, operation: str) -> Optional[SyncLog]:
        return (
            self.session.query(SyncLog)
            .filter(
                SyncLog.operation == operation,
                SyncLog.status.in_([SyncStatus.QUEUED.value, SyncStatus.RUNNING.value]),
            )
            .order_by(SyncLog.id.desc())
            .first()
        )
