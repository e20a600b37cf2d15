"""Tests for the admin and storefront API endpoints."""
import json
import pytest

from storefront_sync.services.categorization_service import CategorizationService

from conftest import make_remote_product


@pytest.fixture
def catalog(store):
    """Two synced products; returns their local ids."""
    ids = []
    for printful_id, name in ((1, 'Kids Hoodie'), (2, 'Canvas Tote Bag')):
        remote = make_remote_product(printful_id, name=name)
        record, _, _ = store.sync_product(remote['sync_product'], remote['sync_variants'])
        ids.append(record.id)
    return ids


@pytest.fixture
def seeded(db):
    with db.session_scope() as session:
        CategorizationService(session).seed_defaults()


class TestSyncAPI:
    """Triggering and polling catalog syncs."""

    def test_requires_authentication(self, test_client):
        response = test_client.post('/api/admin/sync')
        assert response.status_code == 401

    def test_trigger_queues_sync(self, test_client, auth_headers, app_context):
        response = test_client.post('/api/admin/sync', json={'dry_run': True}, headers=auth_headers)

        assert response.status_code == 202
        data = json.loads(response.data)
        assert data['task_id'] == 'task-123'
        assert data['sync_log']['status'] == 'queued'
        app_context.enqueue_sync.assert_called_once_with(
            data['sync_log']['id'], {'dry_run': True, 'force_delete': False, 'skip_verification': False}
        )

    def test_trigger_while_running(self, test_client, auth_headers, app_context):
        app_context.store.acquire_lock('full_sync', 'worker-1', 600)

        response = test_client.post('/api/admin/sync', headers=auth_headers)

        assert response.status_code == 409
        app_context.enqueue_sync.assert_not_called()

    def test_enqueue_failure(self, test_client, auth_headers, app_context):
        app_context.enqueue_sync.side_effect = ConnectionError("broker down")

        response = test_client.post('/api/admin/sync', headers=auth_headers)

        assert response.status_code == 503
        log = app_context.store.recent_sync_logs('full_sync', limit=1)[0]
        assert log['status'] == 'failed'

    def test_poll_sync_log(self, test_client, auth_headers, app_context):
        sync_log = app_context.store.create_sync_log('full_sync')

        response = test_client.get(f"/api/admin/sync/{sync_log['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'queued'

        response = test_client.get('/api/admin/sync/999', headers=auth_headers)
        assert response.status_code == 404

    def test_list_sync_logs(self, test_client, auth_headers, app_context):
        app_context.store.create_sync_log('full_sync')
        app_context.store.create_sync_log('full_sync')

        response = test_client.get('/api/admin/sync', headers=auth_headers)

        assert response.status_code == 200
        assert json.loads(response.data)['total'] == 2


class TestCategoriesAPI:
    """Category administration."""

    def test_create_generates_slug(self, test_client, auth_headers):
        response = test_client.post('/api/admin/categories', json={'name': 'Summer Sale!'}, headers=auth_headers)

        assert response.status_code == 201
        assert json.loads(response.data)['slug'] == 'summer-sale'

        response = test_client.post('/api/admin/categories', json={'name': 'Summer Sale'}, headers=auth_headers)
        assert json.loads(response.data)['slug'] == 'summer-sale-1'

    def test_duplicate_slug(self, test_client, auth_headers, seeded):
        response = test_client.post(
            '/api/admin/categories', json={'name': 'Kids', 'slug': 'children'}, headers=auth_headers
        )
        assert response.status_code == 409

    def test_invalid_color(self, test_client, auth_headers):
        response = test_client.post(
            '/api/admin/categories', json={'name': 'Sale', 'color': 'red'}, headers=auth_headers
        )
        assert response.status_code == 400

    def test_list_and_tree(self, test_client, auth_headers, seeded):
        response = test_client.get('/api/admin/categories', headers=auth_headers)
        data = json.loads(response.data)
        assert data['total'] == 4
        assert [c['slug'] for c in data['categories']] == ['children', 'adults', 'accessories', 'home-living']

        response = test_client.get('/api/admin/categories?tree=true', headers=auth_headers)
        assert json.loads(response.data)['tree_view'] is True

    def test_update(self, test_client, auth_headers):
        created = json.loads(test_client.post(
            '/api/admin/categories', json={'name': 'Sale'}, headers=auth_headers
        ).data)

        response = test_client.put(
            f"/api/admin/categories/{created['id']}", json={'name': 'Clearance', 'color': '#000000'},
            headers=auth_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['name'] == 'Clearance'

    def test_system_category_cannot_be_deleted(self, test_client, auth_headers, seeded):
        categories = json.loads(test_client.get('/api/admin/categories', headers=auth_headers).data)['categories']

        response = test_client.delete(f"/api/admin/categories/{categories[0]['id']}", headers=auth_headers)

        assert response.status_code == 409
        assert json.loads(response.data)['error'] == 'Cannot delete system categories'

    def test_delete(self, test_client, auth_headers):
        created = json.loads(test_client.post(
            '/api/admin/categories', json={'name': 'Sale'}, headers=auth_headers
        ).data)

        response = test_client.delete(f"/api/admin/categories/{created['id']}", headers=auth_headers)
        assert response.status_code == 200

        response = test_client.get(f"/api/admin/categories/{created['id']}", headers=auth_headers)
        assert response.status_code == 404


class TestTagsAPI:

    def test_create_and_search(self, test_client, auth_headers):
        response = test_client.post('/api/admin/tags', json={'name': 'Summer Vibes'}, headers=auth_headers)
        assert response.status_code == 201
        assert json.loads(response.data)['slug'] == 'summer-vibes'

        response = test_client.post('/api/admin/tags', json={'name': 'Summer Vibes'}, headers=auth_headers)
        assert response.status_code == 409

        response = test_client.get('/api/admin/tags?q=summer', headers=auth_headers)
        assert [t['name'] for t in json.loads(response.data)['tags']] == ['Summer Vibes']

    def test_delete_missing_tag(self, test_client, auth_headers):
        response = test_client.delete('/api/admin/tags/42', headers=auth_headers)
        assert response.status_code == 404


class TestProductsAPI:
    """Storefront listing and admin curation."""

    def test_public_listing(self, test_client, catalog):
        response = test_client.get('/api/products')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['total'] == 2
        assert [p['name'] for p in data['products']] == ['Canvas Tote Bag', 'Kids Hoodie']
        assert data['products'][0]['variants'][0]['retail_price'] == '25.00'

    def test_search(self, test_client, catalog):
        data = json.loads(test_client.get('/api/products?search=hoodie').data)
        assert [p['name'] for p in data['products']] == ['Kids Hoodie']

    def test_toggle_hides_product(self, test_client, auth_headers, catalog):
        response = test_client.post(f"/api/admin/products/{catalog[0]}/toggle", headers=auth_headers)

        assert response.status_code == 200
        assert json.loads(response.data) == {'id': catalog[0], 'is_active': False}
        assert json.loads(test_client.get('/api/products').data)['total'] == 1
        assert test_client.get(f"/api/products/{catalog[0]}").status_code == 404

    def test_assign_categories_and_filter(self, test_client, auth_headers, catalog, seeded):
        categories = json.loads(test_client.get('/api/admin/categories', headers=auth_headers).data)['categories']
        children = next(c for c in categories if c['slug'] == 'children')

        response = test_client.put(
            f"/api/admin/products/{catalog[0]}/categories",
            json={'category_ids': [children['id']]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert json.loads(response.data)['categories'][0]['is_primary'] is True
        data = json.loads(test_client.get('/api/products?category=children').data)
        assert [p['name'] for p in data['products']] == ['Kids Hoodie']

    def test_assign_unknown_tags(self, test_client, auth_headers, catalog):
        response = test_client.put(
            f"/api/admin/products/{catalog[0]}/tags", json={'tag_ids': [77]}, headers=auth_headers
        )
        assert response.status_code == 400

    def test_admin_listing_requires_auth(self, test_client, catalog):
        assert test_client.get('/api/admin/products').status_code == 401


class TestHealth:

    def test_healthy(self, test_client, catalog):
        response = test_client.get('/api/health')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['checks']['database']['stats']['product_count'] == 2
        assert data['checks']['sync']['running'] is False
