"""
Catalog reconciliation engine.

Mirrors the Printful store catalog into the local database in one sequential
pass: fetch every remote product, delete local orphans, upsert the rest,
verify the result and record progress on a SyncLog row that the admin UI
polls.

Failures on a single product are recorded on the SyncLog and the run moves
on. Failures to start the run, or to load either side of the diff, are fatal:
the SyncLog is marked failed and the exception propagates.
"""

import logging
import os
import socket
import time
import uuid
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional

from ..config import SyncSettings
from ..exceptions import (
    PrintfulAPIError,
    SyncAlreadyRunningError,
    SyncError,
    SyncFetchError,
    SyncInitializationError,
)
from ..repositories.variant_repository import VariantRepository
from .catalog_store import LocalCatalogStore, ProductRecord
from .printful_client import PrintfulClient

logger = logging.getLogger(__name__)


@dataclass
class SyncOptions:
    dry_run: bool = False
    force_delete: bool = False
    skip_verification: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SyncOptions':
        data = data or {}
        return cls(
            dry_run=bool(data.get('dry_run', False)),
            force_delete=bool(data.get('force_delete', False)),
            skip_verification=bool(data.get('skip_verification', False)),
        )

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


@dataclass
class SyncStats:
    """Outcome of one reconciliation run."""
    sync_log_id: Optional[int] = None
    status: Optional[str] = None
    dry_run: bool = False
    products_processed: int = 0
    products_created: int = 0
    products_updated: int = 0
    products_deleted: int = 0
    variants_processed: int = 0
    variants_created: int = 0
    variants_updated: int = 0
    variants_deleted: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    duration_ms: int = 0

    def counters(self) -> Dict[str, int]:
        return {
            'products_processed': self.products_processed,
            'products_created': self.products_created,
            'products_updated': self.products_updated,
            'products_deleted': self.products_deleted,
            'variants_processed': self.variants_processed,
            'variants_created': self.variants_created,
            'variants_updated': self.variants_updated,
            'variants_deleted': self.variants_deleted,
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _preview_lines(names: List[str], limit: int = 5) -> str:
    shown = ', '.join(names[:limit])
    if len(names) > limit:
        shown += f" ... and {len(names) - limit} more"
    return shown


class ReconciliationEngine:
    """Runs full catalog syncs from Printful into the local store."""

    def __init__(self, client: PrintfulClient, store: LocalCatalogStore, settings: Optional[SyncSettings] = None,
                 sleep: Callable[[float], None] = time.sleep, run_logger: Optional[logging.Logger] = None):
        self.client = client
        self.store = store
        self.settings = settings or SyncSettings()
        self._sleep = sleep
        self.log = run_logger or logger
        self.owner = f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"

        self._sync_log_id: Optional[int] = None
        self._stats: Optional[SyncStats] = None

    @property
    def operation(self) -> str:
        return self.settings.operation

    def run_full_sync(self, options: Optional[SyncOptions] = None, sync_log_id: Optional[int] = None) -> SyncStats:
        """
        Run one reconciliation pass.

        ``sync_log_id`` continues a SyncLog created ahead of time in queued
        status (the admin API does this before enqueueing the task). Raises
        ``SyncAlreadyRunningError`` when another run holds the lock, and a
        ``SyncError`` subclass on any other fatal failure.
        """
        options = options or SyncOptions()
        started = time.monotonic()
        self._stats = SyncStats(dry_run=options.dry_run)

        self._initialize(options, sync_log_id)
        stats = self._stats

        try:
            remote_products = self._fetch_remote_catalog()
            local_products = self._load_local_products()

            self._progress(20, 'Analyzing changes')
            remote_ids = [int(p['id']) for p in remote_products]
            remote_id_set = set(remote_ids)
            to_delete = [p for p in local_products if p.printful_id not in remote_id_set]
            self._progress(25, f"Identified {len(to_delete)} products to delete")
            self.log.info(
                f"Remote: {len(remote_products)} products, local: {len(local_products)}, "
                f"to delete: {len(to_delete)}"
            )

            self._delete_orphans(to_delete, options)
            self._process_remote_products(remote_products, options)

            if options.dry_run:
                self.log.info("Dry run: skipping verification, local catalog left untouched")
            elif not options.skip_verification:
                self._verify(remote_products)

            self._progress(100, 'Finalizing synchronization')
            stats.duration_ms = int((time.monotonic() - started) * 1000)
            final = self.store.complete_sync_log(self._sync_log_id, stats.counters())
            stats.status = final['status'] if final else None
            self.log.info(
                f"Sync {self._sync_log_id} finished with status {stats.status}: "
                f"{stats.products_created} created, {stats.products_updated} updated, "
                f"{stats.products_deleted} deleted, {len(stats.errors)} errors, "
                f"{len(stats.warnings)} warnings in {stats.duration_ms} ms"
            )
            return stats

        except Exception as e:
            self.log.error(f"Sync {self._sync_log_id} failed: {e}")
            self._fail(str(e))
            if isinstance(e, SyncError):
                raise
            raise SyncError(f"Sync aborted: {e}") from e
        finally:
            self._release_lock()

    # Phases

    def _initialize(self, options: SyncOptions, sync_log_id: Optional[int]) -> None:
        try:
            self.store.ping()
        except Exception as e:
            raise SyncInitializationError(f"Database connectivity check failed: {e}") from e

        if not self.store.acquire_lock(self.operation, self.owner, self.settings.lock_ttl):
            holder = self.store.lock_owner(self.operation)
            error = SyncAlreadyRunningError(self.operation, holder)
            if sync_log_id is not None:
                self.store.fail_sync_log(sync_log_id, str(error))
            raise error

        try:
            # Only the lock holder may sweep: any other open log belongs to a dead run
            stale = self.store.fail_stale_sync_logs(self.operation, self.settings.stale_after, exclude_id=sync_log_id)
            if stale:
                self.log.warning(f"Marked {len(stale)} abandoned sync runs as failed: {stale}")

            if sync_log_id is None:
                sync_log_id = self.store.create_sync_log(self.operation, options.to_dict())['id']
            started = self.store.start_sync_log(sync_log_id, options.to_dict())
            if started is None:
                raise SyncInitializationError(f"Sync log {sync_log_id} not found")
        except Exception as e:
            self._release_lock()
            if isinstance(e, SyncError):
                raise
            raise SyncInitializationError(f"Could not open sync log: {e}") from e

        self._sync_log_id = sync_log_id
        self._stats.sync_log_id = sync_log_id
        self.log.info(
            f"Sync {sync_log_id} started ({'dry run' if options.dry_run else 'live'}, "
            f"force_delete={options.force_delete}, skip_verification={options.skip_verification})"
        )

    def _fetch_remote_catalog(self) -> List[Dict[str, Any]]:
        self._progress(10, 'Fetching products from Printful API')
        products: List[Dict[str, Any]] = []
        offset = 0
        try:
            while True:
                page = self.client.list_products(offset=offset, limit=self.settings.page_size)
                if not page:
                    break
                products.extend(page)
                offset += len(page)
                self._progress(10, f"Fetched {len(products)} products from Printful")
                self._sleep(self.settings.page_delay)
        except PrintfulAPIError as e:
            raise SyncFetchError(f"Failed to fetch Printful catalog: {e.reason}") from e
        self.log.info(f"Fetched {len(products)} products from Printful")
        return products

    def _load_local_products(self) -> List[ProductRecord]:
        try:
            return self.store.list_products()
        except Exception as e:
            raise SyncFetchError(f"Failed to load local products: {e}") from e

    def _delete_orphans(self, to_delete: List[ProductRecord], options: SyncOptions) -> None:
        stats = self._stats
        if not to_delete:
            return

        self._progress(30, f"Deleting {len(to_delete)} removed products")

        if options.dry_run:
            for product in to_delete:
                self.log.info(f"Dry run: would delete {product.name} ({len(product.variant_printful_ids)} variants)")
                stats.products_deleted += 1
                stats.variants_deleted += len(product.variant_printful_ids)
            self._progress(45, f"Would delete {len(to_delete)} products", **stats.counters())
            return

        total = len(to_delete)
        for index, product in enumerate(to_delete):
            self._progress(30 + round(index / total * 15), f"Deleting: {product.name}")
            try:
                if not options.force_delete and self._still_exists_remotely(product):
                    continue

                removed_variants = self.store.delete_product(product.id)
                stats.products_deleted += 1
                stats.variants_deleted += removed_variants
                self.log.info(f"Deleted {product.name} ({removed_variants} variants)")
            except Exception as e:
                self._error(f"Failed to delete {product.name}: {e}", printful_id=product.printful_id)
            self._progress(None, None, **stats.counters())
            self._sleep(self.settings.item_delay)

        self._progress(45, f"Deleted {stats.products_deleted} products")

    def _still_exists_remotely(self, product: ProductRecord) -> bool:
        """Re-check a deletion candidate. True means keep it; a warning or error has been recorded."""
        try:
            detail = self.client.get_product(product.printful_id)
        except PrintfulAPIError as e:
            if e.is_not_found:
                return False
            self._error(
                f"Could not confirm {product.name} was removed from Printful, keeping it: {e.reason}",
                printful_id=product.printful_id,
            )
            return True

        if detail:
            self._warning(
                f"Product {product.name} still exists in Printful, skipping deletion",
                printful_id=product.printful_id,
            )
            return True
        return False

    def _process_remote_products(self, remote_products: List[Dict[str, Any]], options: SyncOptions) -> None:
        stats = self._stats
        total = len(remote_products)
        self._progress(50, f"Processing {total} products")

        for index, basic in enumerate(remote_products):
            name = basic.get('name') or f"product {basic.get('id')}"
            self._progress(50 + round(index / total * 35) if total else 50, f"Processing: {name}")
            try:
                detail = self.client.get_product(int(basic['id'])) or {}
                sync_product = detail.get('sync_product') or basic
                sync_variants = detail.get('sync_variants') or []

                if options.dry_run:
                    self._preview_product(sync_product, sync_variants)
                else:
                    self._sync_product(sync_product, sync_variants)
            except Exception as e:
                reason = e.reason if isinstance(e, PrintfulAPIError) else str(e)
                self._error(f"Failed to process {name}: {reason}", printful_id=basic.get('id'))

            self._progress(None, None, **stats.counters())
            self._sleep(self.settings.item_delay)

        self._progress(85, f"Processed {stats.products_processed} of {total} products")

    def _preview_product(self, sync_product: Dict[str, Any], sync_variants: List[Dict[str, Any]]) -> None:
        stats = self._stats
        existing = self.store.get_product_by_printful_id(int(sync_product['id']))
        changes = VariantRepository.preview_changes(
            existing.variant_printful_ids if existing else [], sync_variants
        )
        if existing:
            stats.products_updated += 1
        else:
            stats.products_created += 1
        stats.products_processed += 1
        self._count_variants(changes)
        self.log.info(
            f"Dry run: would {'update' if existing else 'create'} {sync_product.get('name')} "
            f"({changes.created} new, {changes.updated} updated, {changes.deleted} removed variants)"
        )

    def _sync_product(self, sync_product: Dict[str, Any], sync_variants: List[Dict[str, Any]]) -> None:
        stats = self._stats
        record, created, changes = self.store.sync_product(sync_product, sync_variants)
        if created:
            stats.products_created += 1
        else:
            stats.products_updated += 1
        stats.products_processed += 1
        self._count_variants(changes)
        self.log.info(
            f"{'Created' if created else 'Updated'} {record.name}: "
            f"{changes.created} new, {changes.updated} updated, {changes.deleted} removed variants"
        )

        if created:
            try:
                result = self.store.auto_categorize_and_tag(record.id)
                self.log.info(f"Auto-categorized {record.name}: {result}")
            except Exception as e:
                self._warning(f"Failed to auto-categorize {record.name}: {e}", printful_id=record.printful_id)

    def _count_variants(self, changes) -> None:
        stats = self._stats
        stats.variants_created += changes.created
        stats.variants_updated += changes.updated
        stats.variants_deleted += changes.deleted
        stats.variants_processed += changes.processed

    def _verify(self, remote_products: List[Dict[str, Any]]) -> None:
        self._progress(90, 'Verifying synchronization completeness')
        remote_names = {int(p['id']): p.get('name') or str(p['id']) for p in remote_products}
        local_ids = set(self.store.list_printful_ids())

        missing = sorted(set(remote_names) - local_ids)
        extra = sorted(local_ids - set(remote_names))
        if not missing and not extra:
            self.log.info(f"Verification passed: {len(local_ids)} products match Printful")
            return

        message = f"Count mismatch: Printful has {len(remote_names)} products, database has {len(local_ids)} products"
        if missing:
            message += f"; missing in database: {_preview_lines([remote_names[i] for i in missing])}"
        if extra:
            message += f"; extra in database: {_preview_lines([str(i) for i in extra])}"
        self._warning(message, missing=missing, extra=extra)

    # Bookkeeping

    def _progress(self, progress: Optional[int], step: Optional[str], **counters) -> None:
        self.store.update_sync_log(self._sync_log_id, progress, step, **counters)
        if step:
            self.log.debug(f"{step} ({progress}%)" if progress is not None else step)

    def _warning(self, message: str, **details) -> None:
        self._stats.warnings.append(message)
        self.log.warning(message)
        self.store.add_sync_warning(self._sync_log_id, message, details or None)

    def _error(self, message: str, **details) -> None:
        self._stats.errors.append(message)
        self.log.error(message)
        self.store.add_sync_error(self._sync_log_id, message, details or None)

    def _release_lock(self) -> None:
        try:
            self.store.release_lock(self.operation, self.owner)
        except Exception as e:
            # Lease expires on its own after lock_ttl
            self.log.error(f"Could not release lock '{self.operation}': {e}")

    def _fail(self, message: str) -> None:
        if self._sync_log_id is None:
            return
        try:
            self.store.fail_sync_log(self._sync_log_id, message)
            self._stats.status = 'failed'
        except Exception as e:
            self.log.error(f"Could not mark sync {self._sync_log_id} as failed: {e}")
