"""
Printful API client.

Thin wrapper over the Printful REST API used by the catalog sync and the
order webhook. Every call returns the ``result`` member of Printful's JSON
envelope or raises ``PrintfulAPIError``.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from ..exceptions import PrintfulAPIError, SyncInitializationError

logger = logging.getLogger(__name__)


class PrintfulClient:
    """Client for the Printful store API."""

    def __init__(self, api_key: str, base_url: str = 'https://api.printful.com', timeout: int = 30,
                 max_retries: int = 3, session: Optional[requests.Session] = None, sleep=time.sleep):
        if not api_key:
            raise SyncInitializationError("PRINTFUL_API_KEY is not configured")

        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self._sleep = sleep
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
        })

    @classmethod
    def from_config(cls, source, **kwargs) -> 'PrintfulClient':
        """Build a client from a config class or a Flask config mapping."""
        get = source.get if hasattr(source, 'get') else lambda key, default=None: getattr(source, key, default)
        return cls(
            api_key=get('PRINTFUL_API_KEY'),
            base_url=get('PRINTFUL_API_URL', 'https://api.printful.com'),
            timeout=get('PRINTFUL_TIMEOUT', 30),
            max_retries=get('PRINTFUL_MAX_RETRIES', 3),
            **kwargs
        )

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                 json: Optional[Dict[str, Any]] = None, retry_count: int = 0) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"

        try:
            response = self.session.request(method, url, params=params, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Printful {method} {path} failed: {e}")
            raise PrintfulAPIError(f"Request to Printful failed: {e}", reason=str(e)) from e

        if response.status_code == 429 and retry_count < self.max_retries:
            try:
                retry_after = int(response.headers.get('Retry-After', 2))
            except ValueError:
                retry_after = 2
            logger.warning(f"HTTP 429 rate limit, waiting {retry_after} seconds before retry {retry_count + 1}/{self.max_retries}")
            self._sleep(retry_after)
            return self._request(method, path, params=params, json=json, retry_count=retry_count + 1)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not response.ok:
            error = payload.get('error') if isinstance(payload, dict) else None
            reason = None
            if isinstance(error, dict):
                reason = error.get('message') or error.get('reason')
            if not reason and isinstance(payload, dict) and isinstance(payload.get('result'), str):
                reason = payload['result']
            reason = reason or response.reason or f"HTTP {response.status_code}"
            code = payload.get('code', response.status_code) if isinstance(payload, dict) else response.status_code
            logger.warning(f"Printful {method} {path} returned {response.status_code}: {reason}")
            raise PrintfulAPIError(
                f"Printful API error {code}: {reason}",
                code=code,
                reason=reason,
                status_code=response.status_code
            )

        return payload.get('result') if isinstance(payload, dict) else payload

    def list_products(self, offset: int = 0, limit: int = 20) -> List[Dict[str, Any]]:
        """One page of sync products from ``store/products``."""
        return self._request('GET', 'store/products', params={'offset': offset, 'limit': limit}) or []

    def get_product(self, product_id: int) -> Dict[str, Any]:
        """Sync product detail: ``{'sync_product': {...}, 'sync_variants': [...]}``."""
        return self._request('GET', f'store/products/{product_id}')

    def get_sync_variant(self, external_id: str) -> Dict[str, Any]:
        """Resolve a variant by the external id this store assigned it."""
        result = self._request('GET', f'store/variants/@{external_id}')
        if isinstance(result, dict) and 'sync_variant' in result:
            return result['sync_variant']
        return result

    def create_order(self, order: Dict[str, Any], confirm: bool = False) -> Dict[str, Any]:
        """Create an order. Left as a draft unless ``confirm`` is set."""
        params = {'confirm': 'true'} if confirm else None
        return self._request('POST', 'orders', params=params, json=order)

    def get_shipping_rates(self, recipient: Dict[str, Any], items: List[Dict[str, Any]],
                           currency: str = 'USD') -> List[Dict[str, Any]]:
        """Shipping rate quotes for a recipient and a set of items."""
        return self._request('POST', 'shipping/rates', json={
            'recipient': recipient,
            'items': items,
            'currency': currency,
        }) or []
