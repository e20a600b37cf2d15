"""
Explicit application context.

Holds the database manager and the factories for outside clients so that
the web app, the Celery worker and the CLI each build their collaborators
from configuration instead of sharing module-level singletons.
"""

from typing import Any, Callable, Optional

from flask import current_app

from .config import SyncSettings
from .database import DatabaseManager
from .services.catalog_store import LocalCatalogStore
from .services.order_service import WebhookOrderTranslator
from .services.printful_client import PrintfulClient
from .services.snipcart_auth import SnipcartTokenVerifier
from .services.sync_service import ReconciliationEngine

EXTENSION_KEY = 'storefront'


def _enqueue_with_celery(sync_log_id: int, options: dict) -> str:
    from .tasks import run_full_sync_task
    return run_full_sync_task.delay(sync_log_id, options).id


def _getter(source: Any) -> Callable:
    if hasattr(source, 'get'):
        return source.get
    return lambda key, default=None: getattr(source, key, default)


class AppContext:
    """Collaborators shared by one process, built from a config class or mapping."""

    def __init__(self, source: Any, db: Optional[DatabaseManager] = None):
        self._get = _getter(source)
        self.db = db or DatabaseManager.from_config(source)
        self.store = LocalCatalogStore(self.db)
        self.sync_settings = SyncSettings.from_config(source)
        self.printful_factory: Callable[[], PrintfulClient] = lambda: PrintfulClient.from_config(source)
        self.verifier_factory: Callable[[], SnipcartTokenVerifier] = lambda: SnipcartTokenVerifier(
            self._get('SNIPCART_SECRET_KEY'),
            api_url=self._get('SNIPCART_API_URL', 'https://app.snipcart.com/api'),
        )
        self.enqueue_sync: Callable[[int, dict], str] = _enqueue_with_celery

    def setting(self, key: str, default: Any = None) -> Any:
        return self._get(key, default)

    def initialize(self, create_tables: bool = False) -> 'AppContext':
        if not self.db.is_initialized:
            self.db.initialize(create_tables=create_tables)
        return self

    def printful_client(self) -> PrintfulClient:
        return self.printful_factory()

    def token_verifier(self) -> SnipcartTokenVerifier:
        return self.verifier_factory()

    def order_translator(self) -> WebhookOrderTranslator:
        return WebhookOrderTranslator(
            self.printful_client(),
            currency=self.setting('ORDER_CURRENCY', 'USD'),
            confirm_orders=bool(self.setting('PRINTFUL_CONFIRM_ORDERS', False)),
        )

    def sync_engine(self, run_logger=None, sleep=None) -> ReconciliationEngine:
        kwargs = {'run_logger': run_logger}
        if sleep is not None:
            kwargs['sleep'] = sleep
        return ReconciliationEngine(self.printful_client(), self.store, self.sync_settings, **kwargs)


def get_context() -> AppContext:
    """The AppContext attached to the current Flask app."""
    return current_app.extensions[EXTENSION_KEY]
