"""
Snipcart order translation.

Turns a completed Snipcart cart into a single Printful order. Translation is
all or nothing: every line item is resolved before the order call is made,
and any failure raises ``OrderTranslationError`` without creating an order.
"""

import enum
import logging
from typing import Any, Dict, List, Optional

from ..exceptions import OrderTranslationError, PrintfulAPIError
from .printful_client import PrintfulClient

logger = logging.getLogger(__name__)


class ShippingTier(enum.Enum):
    STANDARD = "STANDARD"
    EXPRESS = "EXPRESS"
    PRIORITY = "PRIORITY"
    OVERNIGHT = "OVERNIGHT"
    ECONOMY = "ECONOMY"


SHIPPING_METHODS = {
    'standard': ShippingTier.STANDARD,
    'express': ShippingTier.EXPRESS,
    'priority': ShippingTier.PRIORITY,
    'overnight': ShippingTier.OVERNIGHT,
    'economy': ShippingTier.ECONOMY,
}


def map_shipping_method(code: Optional[str]) -> ShippingTier:
    """Map a Snipcart shipping rate id to a Printful shipping tier; unknown codes ship standard."""
    if not isinstance(code, str):
        return ShippingTier.STANDARD
    key = code.strip().lower()
    if key.startswith('rate_'):
        key = key[len('rate_'):]
    return SHIPPING_METHODS.get(key, ShippingTier.STANDARD)


def tier_for_rate_name(name: str) -> ShippingTier:
    """Pick the tier a Printful shipping rate name describes."""
    lowered = (name or '').lower()
    if 'express' in lowered or 'priority' in lowered:
        return ShippingTier.EXPRESS
    if 'overnight' in lowered or 'next day' in lowered:
        return ShippingTier.OVERNIGHT
    if 'economy' in lowered or 'ground' in lowered:
        return ShippingTier.ECONOMY
    return ShippingTier.STANDARD


def build_recipient(address: Dict[str, Any], email: Optional[str] = None) -> Dict[str, Any]:
    """Printful recipient from a Snipcart shipping address."""
    full_name = ' '.join(
        part for part in (address.get('firstName'), address.get('lastName')) if part
    ).strip()
    recipient = {
        'name': address.get('name') or address.get('fullName') or full_name or 'Customer',
        'address1': address.get('address1') or address.get('fullAddress') or '',
        'city': address.get('city') or '',
        'state_code': address.get('province') or 'CA',
        'country_code': address.get('country') or 'US',
        'zip': address.get('postalCode') or '',
    }
    if address.get('address2'):
        recipient['address2'] = address['address2']
    if address.get('phone'):
        recipient['phone'] = address['phone']
    if email:
        recipient['email'] = email
    return recipient


class WebhookOrderTranslator:
    """Creates Printful orders for completed Snipcart orders."""

    def __init__(self, client: PrintfulClient, currency: str = 'USD', confirm_orders: bool = False):
        self.client = client
        self.currency = currency
        self.confirm_orders = confirm_orders

    def _validate(self, content: Dict[str, Any]) -> None:
        if not content.get('invoiceNumber'):
            raise OrderTranslationError("Invoice number is required")
        if not content.get('email'):
            raise OrderTranslationError("Email is required")
        if not content.get('shippingAddress'):
            raise OrderTranslationError("Shipping address is required")
        if not content.get('items'):
            raise OrderTranslationError("At least one item is required")

    def resolve_sync_variant_id(self, external_id: str) -> int:
        """Printful sync variant id for the external id used as the Snipcart item id."""
        try:
            variant = self.client.get_sync_variant(external_id)
        except PrintfulAPIError as e:
            logger.error(f"Sync variant lookup failed for {external_id}: {e.reason}")
            raise OrderTranslationError.from_api_error(
                f"Unable to find sync variant with external ID: {external_id}", e
            ) from e

        if not variant or 'id' not in variant:
            raise OrderTranslationError(f"Unable to find sync variant with external ID: {external_id}")
        return int(variant['id'])

    def build_items(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        order_items = []
        for item in items:
            sync_variant_id = self.resolve_sync_variant_id(str(item['id']))
            order_items.append({
                'sync_variant_id': sync_variant_id,
                'quantity': int(item.get('quantity') or 1),
            })
        return order_items

    def handle_order_completed(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Translate an ``order.completed`` event and submit it as one Printful order.

        Returns Printful's order result unmodified.
        """
        content = event.get('content') or {}
        self._validate(content)
        invoice = content['invoiceNumber']

        order = {
            'external_id': invoice,
            'recipient': build_recipient(content['shippingAddress'], content['email']),
            'items': self.build_items(content['items']),
            'retail_costs': {'currency': self.currency},
            'shipping': map_shipping_method(content.get('shippingRateUserDefinedId')).value,
        }

        logger.info(
            f"Creating Printful order for invoice {invoice}: {len(order['items'])} items, "
            f"shipping {order['shipping']}, country {order['recipient']['country_code']}"
        )
        try:
            result = self.client.create_order(order, confirm=self.confirm_orders)
        except PrintfulAPIError as e:
            logger.error(f"Printful rejected order for invoice {invoice}: {e.reason}")
            raise OrderTranslationError.from_api_error("Failed to create Printful order", e) from e

        logger.info(f"Printful order {result.get('id') if isinstance(result, dict) else None} created for invoice {invoice}")
        return result

    def shipping_rates(self, content: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Snipcart rate list for a ``shippingrates.fetch`` cart."""
        recipient = {
            key: content[field] for field, key in (
                ('shippingAddress1', 'address1'),
                ('shippingAddress2', 'address2'),
                ('shippingAddressCity', 'city'),
                ('shippingAddressCountry', 'country_code'),
                ('shippingAddressProvince', 'state_code'),
                ('shippingAddressPostalCode', 'zip'),
                ('shippingAddressPhone', 'phone'),
            ) if content.get(field)
        }
        items = [
            {'external_variant_id': str(item['id']), 'quantity': int(item.get('quantity') or 1)}
            for item in content.get('items') or []
        ]

        rates = self.client.get_shipping_rates(recipient, items, currency=self.currency)
        return [
            {
                'cost': float(rate.get('rate') or 0),
                'description': rate.get('name'),
                'userDefinedId': tier_for_rate_name(rate.get('name')).value,
                'guaranteedDaysToDelivery': rate.get('maxDeliveryDays'),
            }
            for rate in rates
        ]
