"""
Local catalog store.

Facade over the repositories used by the sync engine. Each method runs in
its own transaction, so a failure on one product never rolls back work done
for another, and returns plain values rather than session-bound objects.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..database import DatabaseManager
from ..repositories import (
    ProductRepository,
    VariantRepository,
    VariantChanges,
    SyncLogRepository,
    SyncLockRepository,
)
from .categorization_service import CategorizationService

logger = logging.getLogger(__name__)


@dataclass
class ProductRecord:
    """Detached view of a local product."""
    id: int
    printful_id: int
    external_id: str
    name: str
    variant_printful_ids: List[int] = field(default_factory=list)

    @classmethod
    def from_model(cls, product) -> 'ProductRecord':
        return cls(
            id=product.id,
            printful_id=product.printful_id,
            external_id=product.external_id,
            name=product.name,
            variant_printful_ids=[v.printful_id for v in product.variants],
        )


class LocalCatalogStore:
    """Transactional catalog and sync-log operations over a DatabaseManager."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def ping(self) -> None:
        self.db.ping()

    # Products

    def list_products(self) -> List[ProductRecord]:
        with self.db.session_scope() as session:
            return [ProductRecord.from_model(p) for p in ProductRepository(session).list_all()]

    def list_printful_ids(self) -> List[int]:
        with self.db.session_scope() as session:
            return ProductRepository(session).list_printful_ids()

    def count_products(self) -> int:
        with self.db.session_scope() as session:
            return ProductRepository(session).count()

    def get_product_by_printful_id(self, printful_id: int) -> Optional[ProductRecord]:
        with self.db.session_scope() as session:
            product = ProductRepository(session).get_by_printful_id(printful_id)
            return ProductRecord.from_model(product) if product else None

    def sync_product(self, sync_product: Dict[str, Any],
                     sync_variants: List[Dict[str, Any]]) -> Tuple[ProductRecord, bool, VariantChanges]:
        """Upsert a product and its variants in one transaction."""
        with self.db.session_scope() as session:
            product, created = ProductRepository(session).upsert_from_remote(sync_product)
            changes = VariantRepository(session).upsert_for_product(product.id, sync_variants)
            session.flush()
            session.refresh(product)
            return ProductRecord.from_model(product), created, changes

    def delete_product(self, product_id: int) -> int:
        """Delete a product and its variants. Returns the number of variants removed."""
        with self.db.session_scope() as session:
            return ProductRepository(session).delete_with_variants(product_id)

    def auto_categorize_and_tag(self, product_id: int) -> Dict[str, Any]:
        with self.db.session_scope() as session:
            product = ProductRepository(session).get(product_id)
            if product is None:
                raise LookupError(f"Product {product_id} not found")
            return CategorizationService(session).categorize_and_tag(product)

    # Sync log

    def create_sync_log(self, operation: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        with self.db.session_scope() as session:
            return SyncLogRepository(session).create_sync_log(operation, options).to_dict()

    def get_sync_log(self, sync_id: int) -> Optional[Dict[str, Any]]:
        with self.db.session_scope() as session:
            sync = SyncLogRepository(session).get(sync_id)
            return sync.to_dict() if sync else None

    def start_sync_log(self, sync_id: int, options: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        with self.db.session_scope() as session:
            sync = SyncLogRepository(session).start_sync(sync_id, options)
            return sync.to_dict() if sync else None

    def update_sync_log(self, sync_id: int, progress: Optional[int] = None, current_step: Optional[str] = None,
                        **counters) -> None:
        with self.db.session_scope() as session:
            SyncLogRepository(session).update_progress(sync_id, progress, current_step, **counters)

    def add_sync_warning(self, sync_id: int, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        with self.db.session_scope() as session:
            SyncLogRepository(session).add_warning(sync_id, message, details)

    def add_sync_error(self, sync_id: int, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        with self.db.session_scope() as session:
            SyncLogRepository(session).add_error(sync_id, message, details)

    def complete_sync_log(self, sync_id: int, counters: Dict[str, int]) -> Optional[Dict[str, Any]]:
        with self.db.session_scope() as session:
            sync = SyncLogRepository(session).complete_sync(sync_id, counters)
            return sync.to_dict() if sync else None

    def fail_sync_log(self, sync_id: int, error_message: str) -> Optional[Dict[str, Any]]:
        with self.db.session_scope() as session:
            sync = SyncLogRepository(session).fail_sync(sync_id, error_message)
            return sync.to_dict() if sync else None

    def fail_stale_sync_logs(self, operation: str, older_than_seconds: int,
                             exclude_id: Optional[int] = None) -> List[int]:
        with self.db.session_scope() as session:
            return SyncLogRepository(session).fail_stale_syncs(operation, older_than_seconds, exclude_id)

    def recent_sync_logs(self, operation: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
        with self.db.session_scope() as session:
            return [s.to_dict() for s in SyncLogRepository(session).get_recent_syncs(operation, limit)]

    # Advisory lock

    def acquire_lock(self, name: str, owner: str, ttl_seconds: int) -> bool:
        with self.db.session_scope() as session:
            return SyncLockRepository(session).acquire(name, owner, ttl_seconds)

    def release_lock(self, name: str, owner: str) -> bool:
        with self.db.session_scope() as session:
            return SyncLockRepository(session).release(name, owner)

    def lock_owner(self, name: str) -> Optional[str]:
        with self.db.session_scope() as session:
            return SyncLockRepository(session).owner_of(name)
