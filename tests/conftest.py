"""Pytest configuration and fixtures for the test suite."""
import pytest
from unittest.mock import Mock

from storefront_sync.app import create_app
from storefront_sync.config import SyncSettings, TestingConfig
from storefront_sync.context import AppContext
from storefront_sync.exceptions import PrintfulAPIError
from storefront_sync.services.snipcart_auth import SnipcartTokenVerifier
from storefront_sync.services.sync_service import ReconciliationEngine


def make_remote_product(printful_id, name=None, variant_ids=None, tags=None):
    """A Printful ``store/products/{id}`` result with one variant per id."""
    name = name or f"Product {printful_id}"
    variant_ids = variant_ids if variant_ids is not None else [printful_id * 100 + 1]
    sync_product = {
        'id': printful_id,
        'external_id': f"ext-{printful_id}",
        'name': name,
        'thumbnail_url': f"https://files.cdn.printful.com/{printful_id}.png",
        'variants': len(variant_ids),
        'synced': len(variant_ids),
        'is_ignored': False,
    }
    if tags is not None:
        sync_product['tags'] = tags
    sync_variants = [
        {
            'id': variant_id,
            'external_id': f"var-{variant_id}",
            'sync_product_id': printful_id,
            'name': f"{name} / M",
            'retail_price': '25.00',
            'currency': 'USD',
            'size': 'M',
            'color': 'Black',
            'availability_status': 'active',
            'files': [{'type': 'default', 'url': f"https://example.com/{variant_id}.png"}],
            'options': [],
        }
        for variant_id in variant_ids
    ]
    return {'sync_product': sync_product, 'sync_variants': sync_variants}


class FakePrintfulClient:
    """In-memory stand-in for PrintfulClient."""

    def __init__(self):
        self.catalog = {}
        self.detail_overrides = {}
        self.failing_details = {}
        self.listing_error = None
        self.sync_variants = {}
        self.orders = []
        self.list_calls = []

    def add(self, printful_id, **kwargs):
        self.catalog[printful_id] = make_remote_product(printful_id, **kwargs)
        return self.catalog[printful_id]

    def remove(self, printful_id):
        self.catalog.pop(printful_id, None)

    def list_products(self, offset=0, limit=20):
        self.list_calls.append((offset, limit))
        if self.listing_error:
            raise self.listing_error
        ids = sorted(self.catalog)[offset:offset + limit]
        return [
            {key: self.catalog[i]['sync_product'][key] for key in ('id', 'external_id', 'name', 'variants', 'synced')}
            for i in ids
        ]

    def get_product(self, product_id):
        if product_id in self.failing_details:
            raise self.failing_details[product_id]
        if product_id in self.detail_overrides:
            return self.detail_overrides[product_id]
        if product_id not in self.catalog:
            raise PrintfulAPIError("Not found", code=404, reason="Not Found", status_code=404)
        return self.catalog[product_id]

    def get_sync_variant(self, external_id):
        if external_id not in self.sync_variants:
            raise PrintfulAPIError("Not found", code=404, reason="Not Found", status_code=404)
        return {'id': self.sync_variants[external_id], 'external_id': external_id}

    def create_order(self, order, confirm=False):
        self.orders.append(order)
        return {'id': 9001, 'status': 'draft', 'external_id': order.get('external_id')}

    def get_shipping_rates(self, recipient, items, currency='USD'):
        return [
            {'id': 'STANDARD', 'name': 'Flat Rate (3-4 business days)', 'rate': '4.99', 'maxDeliveryDays': 4},
            {'id': 'EXPRESS', 'name': 'Express (1-2 business days)', 'rate': '14.99', 'maxDeliveryDays': 2},
        ]


@pytest.fixture
def app_context():
    """AppContext over a fresh in-memory SQLite database."""
    ctx = AppContext(TestingConfig)
    ctx.initialize(create_tables=True)
    yield ctx
    ctx.db.close()


@pytest.fixture
def db(app_context):
    return app_context.db


@pytest.fixture
def store(app_context):
    return app_context.store


@pytest.fixture
def printful():
    return FakePrintfulClient()


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def sync_settings():
    return SyncSettings(page_size=2, page_delay=0.2, item_delay=0.1, lock_ttl=600, stale_after=300)


@pytest.fixture
def engine(printful, store, sync_settings, sleep):
    return ReconciliationEngine(printful, store, sync_settings, sleep=sleep)


@pytest.fixture
def snipcart_session():
    """requests.Session mock answering Snipcart's requestvalidation call."""
    session = Mock()
    session.get.return_value = Mock(ok=True, status_code=200)
    return session


@pytest.fixture
def test_app(app_context, printful, snipcart_session):
    """Create a test Flask application wired to the fake Printful client."""
    app_context.printful_factory = lambda: printful
    app_context.verifier_factory = lambda: SnipcartTokenVerifier(
        TestingConfig.SNIPCART_SECRET_KEY, session=snipcart_session
    )
    app_context.enqueue_sync = Mock(return_value='task-123')
    return create_app('testing', context=app_context)


@pytest.fixture
def test_client(test_app):
    """Create a test client for API testing."""
    with test_app.test_client() as client:
        yield client


@pytest.fixture
def auth_headers(test_app):
    """Create authentication headers for API testing."""
    with test_app.app_context():
        from flask_jwt_extended import create_access_token
        access_token = create_access_token(identity="test-admin")
        return {"Authorization": f"Bearer {access_token}"}
