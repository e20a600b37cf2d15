"""Tests for the Snipcart webhook endpoints."""
import json
from unittest.mock import Mock

from storefront_sync.services.snipcart_auth import SnipcartTokenVerifier

TOKEN = {'X-Snipcart-RequestToken': 'request-token-1'}


def completed_order(items=None):
    return {
        'eventName': 'order.completed',
        'mode': 'Test',
        'content': {
            'invoiceNumber': 'SNIP-2001',
            'email': 'sam@example.com',
            'shippingAddress': {
                'fullName': 'Sam Lee',
                'address1': '22 Oak Ave',
                'city': 'Portland',
                'province': 'OR',
                'country': 'US',
                'postalCode': '97201',
            },
            'shippingRateUserDefinedId': 'standard',
            'items': items or [{'id': 'var-101', 'quantity': 1}],
        },
    }


class TestWebhookAuthentication:
    """Request token validation happens before anything else."""

    def test_missing_token(self, test_client, printful):
        response = test_client.post('/api/webhook', json=completed_order())

        assert response.status_code == 401
        assert printful.orders == []

    def test_token_rejected_by_snipcart(self, test_client, snipcart_session, printful):
        snipcart_session.get.return_value = Mock(ok=False, status_code=404)

        response = test_client.post('/api/webhook', json=completed_order(), headers=TOKEN)

        assert response.status_code == 401
        assert printful.orders == []

    def test_token_checked_against_snipcart(self, test_client, snipcart_session):
        test_client.post('/api/webhook', json={'eventName': 'customauth:customer_updated'}, headers=TOKEN)

        args, kwargs = snipcart_session.get.call_args
        assert args[0] == 'https://app.snipcart.com/api/requestvalidation/request-token-1'
        assert kwargs['auth'] == ('test-snipcart-secret', '')

    def test_alternate_header(self, test_client):
        response = test_client.post(
            '/api/webhook',
            json={'eventName': 'customauth:customer_updated'},
            headers={'X-Request-Token': 'request-token-1'},
        )
        assert response.status_code == 200

    def test_missing_secret_is_server_error(self, test_client, app_context):
        app_context.verifier_factory = lambda: SnipcartTokenVerifier(None)

        response = test_client.post('/api/webhook', json=completed_order(), headers=TOKEN)

        assert response.status_code == 500


class TestWebhookEvents:
    """Event dispatch and order creation."""

    def test_order_completed(self, test_client, printful):
        printful.sync_variants = {'var-101': 555}

        response = test_client.post('/api/webhook', json=completed_order(), headers=TOKEN)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['message'] == 'Order created'
        assert data['order']['id'] == 9001
        assert printful.orders[0]['external_id'] == 'SNIP-2001'
        assert printful.orders[0]['shipping'] == 'STANDARD'

    def test_unresolved_variant_is_bad_gateway(self, test_client, printful):
        response = test_client.post(
            '/api/webhook', json=completed_order(items=[{'id': 'var-404', 'quantity': 1}]), headers=TOKEN
        )

        assert response.status_code == 502
        data = json.loads(response.data)
        assert 'Unable to find sync variant with external ID: var-404' in data['error']
        assert data['code'] == 404
        assert printful.orders == []

    def test_customer_updated(self, test_client):
        response = test_client.post(
            '/api/webhook', json={'eventName': 'customauth:customer_updated', 'content': {}}, headers=TOKEN
        )

        assert response.status_code == 200
        assert json.loads(response.data) == {'message': 'Customer created'}

    def test_unsupported_event(self, test_client):
        response = test_client.post('/api/webhook', json={'eventName': 'order.status.changed'}, headers=TOKEN)
        assert response.status_code == 400

    def test_invalid_order_payload(self, test_client, printful):
        event = completed_order()
        event['content']['items'] = []

        response = test_client.post('/api/webhook', json=event, headers=TOKEN)

        assert response.status_code == 400
        assert printful.orders == []

    def test_non_json_body(self, test_client):
        response = test_client.post('/api/webhook', data='not json', headers=TOKEN, content_type='text/plain')
        assert response.status_code == 400


class TestShippingRates:

    def test_returns_printful_rates(self, test_client):
        response = test_client.post('/api/snipcart/shipping', json={
            'eventName': 'shippingrates.fetch',
            'content': {
                'items': [{'id': 'var-101', 'quantity': 1}],
                'shippingAddressCountry': 'US',
                'shippingAddressPostalCode': '97201',
            },
        }, headers=TOKEN)

        assert response.status_code == 200
        rates = json.loads(response.data)['rates']
        assert [r['userDefinedId'] for r in rates] == ['STANDARD', 'EXPRESS']

    def test_requires_token(self, test_client):
        response = test_client.post('/api/snipcart/shipping', json={'eventName': 'shippingrates.fetch'})
        assert response.status_code == 401
