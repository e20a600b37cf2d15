"""
Sync Lock Repository: an advisory lease row per operation name.
"""

from datetime import datetime, timedelta
from typing import Optional
import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from ..models import SyncLock

logger = logging.getLogger(__name__)


class SyncLockRepository:
    """Acquire and release named leases stored in the ``sync_locks`` table."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, name: str) -> Optional[SyncLock]:
        return self.session.get(SyncLock, name)

    def acquire(self, name: str, owner: str, ttl_seconds: int) -> bool:
        """
        Take the lease for ``name``.

        An expired lease is taken over. A concurrent insert of the same name
        loses on the primary key and reports the lease as held.
        """
        now = datetime.utcnow()
        lock = self.get(name)
        if lock is not None:
            if lock.expires_at > now and lock.owner != owner:
                logger.info(f"Lock '{name}' held by {lock.owner} until {lock.expires_at.isoformat()}")
                return False
            if lock.expires_at <= now:
                logger.warning(f"Taking over expired lock '{name}' from {lock.owner}")
            lock.owner = owner
            lock.acquired_at = now
            lock.expires_at = now + timedelta(seconds=ttl_seconds)
            self.session.flush()
            return True

        try:
            self.session.add(SyncLock(
                name=name,
                owner=owner,
                acquired_at=now,
                expires_at=now + timedelta(seconds=ttl_seconds),
            ))
            self.session.flush()
        except IntegrityError:
            # The session holds nothing but this insert
            self.session.rollback()
            logger.info(f"Lock '{name}' was taken concurrently")
            return False
        return True

    def release(self, name: str, owner: str) -> bool:
        """Drop the lease if ``owner`` still holds it."""
        lock = self.get(name)
        if lock is None or lock.owner != owner:
            return False
        self.session.delete(lock)
        self.session.flush()
        return True

    def owner_of(self, name: str) -> Optional[str]:
        lock = self.get(name)
        if lock is None or lock.expires_at <= datetime.utcnow():
            return None
        return lock.owner
