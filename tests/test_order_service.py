"""Tests for Snipcart to Printful order translation."""
import pytest
from unittest.mock import Mock

from storefront_sync.exceptions import OrderTranslationError, PrintfulAPIError
from storefront_sync.services.order_service import (
    ShippingTier,
    WebhookOrderTranslator,
    build_recipient,
    map_shipping_method,
    tier_for_rate_name,
)


def order_event(**overrides):
    content = {
        'invoiceNumber': 'SNIP-1001',
        'email': 'jane@example.com',
        'shippingAddress': {
            'fullName': 'Jane Doe',
            'address1': '1 Main St',
            'city': 'Springfield',
            'province': 'IL',
            'country': 'US',
            'postalCode': '62701',
        },
        'shippingRateUserDefinedId': 'rate_express',
        'items': [{'id': 'var-101', 'quantity': 2}],
    }
    content.update(overrides)
    return {'eventName': 'order.completed', 'content': content}


class TestShippingMapping:

    @pytest.mark.parametrize('code,expected', [
        ('standard', ShippingTier.STANDARD),
        ('express', ShippingTier.EXPRESS),
        ('rate_priority', ShippingTier.PRIORITY),
        ('OVERNIGHT', ShippingTier.OVERNIGHT),
        ('rate_economy', ShippingTier.ECONOMY),
        ('pickup', ShippingTier.STANDARD),
        ('', ShippingTier.STANDARD),
        (None, ShippingTier.STANDARD),
    ])
    def test_every_code_maps_to_a_tier(self, code, expected):
        assert map_shipping_method(code) is expected

    def test_rate_names(self):
        assert tier_for_rate_name('Express (1-2 business days)') is ShippingTier.EXPRESS
        assert tier_for_rate_name('Flat Rate (3-4 business days)') is ShippingTier.STANDARD
        assert tier_for_rate_name(None) is ShippingTier.STANDARD


class TestRecipient:

    def test_name_falls_back_to_first_and_last(self):
        recipient = build_recipient({'firstName': 'Jane', 'lastName': 'Doe', 'address1': '1 Main St'})
        assert recipient['name'] == 'Jane Doe'

    def test_defaults(self):
        recipient = build_recipient({'fullAddress': '1 Main St, Springfield'})
        assert recipient['name'] == 'Customer'
        assert recipient['address1'] == '1 Main St, Springfield'
        assert recipient['state_code'] == 'CA'
        assert recipient['country_code'] == 'US'
        assert 'address2' not in recipient
        assert 'email' not in recipient

    def test_optional_fields(self):
        recipient = build_recipient(
            {'name': 'Jane', 'address1': 'a', 'address2': 'Apt 4', 'phone': '555-0100'},
            email='jane@example.com',
        )
        assert recipient['address2'] == 'Apt 4'
        assert recipient['phone'] == '555-0100'
        assert recipient['email'] == 'jane@example.com'


class TestWebhookOrderTranslator:
    """Translation of order.completed events."""

    def test_creates_one_order(self, printful):
        printful.sync_variants = {'var-101': 555}
        translator = WebhookOrderTranslator(printful, currency='USD')

        result = translator.handle_order_completed(order_event())

        assert result == {'id': 9001, 'status': 'draft', 'external_id': 'SNIP-1001'}
        assert len(printful.orders) == 1
        order = printful.orders[0]
        assert order['external_id'] == 'SNIP-1001'
        assert order['items'] == [{'sync_variant_id': 555, 'quantity': 2}]
        assert order['shipping'] == 'EXPRESS'
        assert order['retail_costs'] == {'currency': 'USD'}
        assert order['recipient']['name'] == 'Jane Doe'
        assert order['recipient']['state_code'] == 'IL'
        assert order['recipient']['email'] == 'jane@example.com'

    def test_unresolved_item_creates_nothing(self, printful):
        printful.sync_variants = {'var-101': 555}
        translator = WebhookOrderTranslator(printful)
        event = order_event(items=[{'id': 'var-101', 'quantity': 1}, {'id': 'var-999', 'quantity': 1}])

        with pytest.raises(OrderTranslationError) as exc_info:
            translator.handle_order_completed(event)

        assert "Unable to find sync variant with external ID: var-999" in exc_info.value.message
        assert exc_info.value.code == 404
        assert printful.orders == []

    def test_remote_error_is_carried_through(self):
        client = Mock()
        client.get_sync_variant.return_value = {'id': 555}
        client.create_order.side_effect = PrintfulAPIError(
            "Printful API error 400", code=400, reason="Recipient address is invalid", status_code=400
        )
        translator = WebhookOrderTranslator(client)

        with pytest.raises(OrderTranslationError) as exc_info:
            translator.handle_order_completed(order_event())

        error = exc_info.value
        assert error.code == 400
        assert error.reason == "Recipient address is invalid"
        assert error.to_dict()['error'].startswith("Failed to create Printful order")

    def test_confirm_flag_is_passed(self):
        client = Mock()
        client.get_sync_variant.return_value = {'id': 555}
        client.create_order.return_value = {'id': 1}

        WebhookOrderTranslator(client, confirm_orders=True).handle_order_completed(order_event())

        assert client.create_order.call_args.kwargs['confirm'] is True

    @pytest.mark.parametrize('missing', ['invoiceNumber', 'email', 'shippingAddress', 'items'])
    def test_incomplete_order_is_rejected(self, printful, missing):
        event = order_event(**{missing: None})

        with pytest.raises(OrderTranslationError):
            WebhookOrderTranslator(printful).handle_order_completed(event)
        assert printful.orders == []

    def test_shipping_rates(self, printful):
        rates = WebhookOrderTranslator(printful).shipping_rates({
            'items': [{'id': 'var-101', 'quantity': 1}],
            'shippingAddressCountry': 'US',
        })

        assert [r['userDefinedId'] for r in rates] == ['STANDARD', 'EXPRESS']
        assert rates[0]['cost'] == 4.99
        assert rates[1]['guaranteedDaysToDelivery'] == 2
