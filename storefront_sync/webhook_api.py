"""Snipcart webhook endpoints."""

from flask import Blueprint, jsonify, request
from marshmallow import ValidationError
import logging

from .context import get_context
from .exceptions import OrderTranslationError, PrintfulAPIError, SyncInitializationError, WebhookAuthError
from .schemas import snipcart_event_schema, snipcart_order_content_schema, shipping_rates_content_schema
from .services.snipcart_auth import extract_token

# Configure logging
logger = logging.getLogger(__name__)

# Create Blueprint
webhook_bp = Blueprint('webhook', __name__, url_prefix='/api')

ORDER_COMPLETED = 'order.completed'
CUSTOMER_UPDATED = 'customauth:customer_updated'
ALLOWED_EVENTS = (ORDER_COMPLETED, CUSTOMER_UPDATED)


def _verify_request():
    get_context().token_verifier().verify(extract_token(request.headers))


@webhook_bp.route('/webhook', methods=['POST'])
def snipcart_webhook():
    """Handle Snipcart webhook events."""
    try:
        _verify_request()
    except WebhookAuthError as e:
        return jsonify({'error': e.message}), e.status_code

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({'error': 'Request body must be a JSON object'}), 400

    try:
        event = snipcart_event_schema.load(payload)
    except ValidationError as e:
        return jsonify({'error': 'Invalid webhook payload', 'details': e.messages}), 400

    event_name = event['eventName']
    if event_name not in ALLOWED_EVENTS:
        logger.info(f"Ignoring unsupported Snipcart event {event_name}")
        return jsonify({'error': f'Unsupported event: {event_name}'}), 400

    if event_name == CUSTOMER_UPDATED:
        return jsonify({'message': 'Customer created'}), 200

    try:
        content = snipcart_order_content_schema.load(event['content'])
    except ValidationError as e:
        return jsonify({'error': 'Invalid order payload', 'details': e.messages}), 400

    try:
        order = get_context().order_translator().handle_order_completed({**event, 'content': content})
    except OrderTranslationError as e:
        logger.error(f"Order translation failed for invoice {content.get('invoiceNumber')}: {e.message}")
        return jsonify(e.to_dict()), 502
    except SyncInitializationError as e:
        logger.error(f"Printful client unavailable: {e}")
        return jsonify({'error': str(e)}), 500

    return jsonify({'message': 'Order created', 'order': order}), 200


@webhook_bp.route('/snipcart/shipping', methods=['POST'])
def snipcart_shipping_rates():
    """Answer Snipcart's shippingrates.fetch callback with Printful rates."""
    try:
        _verify_request()
    except WebhookAuthError as e:
        return jsonify({'error': e.message}), e.status_code

    try:
        event = snipcart_event_schema.load(request.get_json(silent=True) or {})
        content = shipping_rates_content_schema.load(event['content'])
    except ValidationError as e:
        return jsonify({'errors': [{'key': 'validation_error', 'message': str(e.messages)}]}), 400

    if event['eventName'] != 'shippingrates.fetch' or not content['items']:
        return '', 200

    try:
        rates = get_context().order_translator().shipping_rates(content)
    except PrintfulAPIError as e:
        logger.error(f"Shipping rate lookup failed: {e.reason}")
        # Snipcart shows these errors in the checkout
        return jsonify({'errors': [{'key': str(e.code or 'printful_error'), 'message': e.reason}]}), 200

    return jsonify({'rates': rates}), 200
