"""
Snipcart request token validation.

Snipcart signs nothing; instead each webhook carries a request token that
must be confirmed against Snipcart's ``requestvalidation`` endpoint using the
account's secret key. Anything short of a successful confirmation is a
rejection.
"""

import logging
from typing import Optional

import requests

from ..exceptions import WebhookAuthError

logger = logging.getLogger(__name__)

TOKEN_HEADERS = ('X-Snipcart-RequestToken', 'X-Request-Token')


def extract_token(headers) -> Optional[str]:
    """First request token header present on the request."""
    for header in TOKEN_HEADERS:
        value = headers.get(header)
        if value:
            return value.strip()
    return None


class SnipcartTokenVerifier:
    """Confirms webhook request tokens with Snipcart."""

    def __init__(self, secret_key: Optional[str], api_url: str = 'https://app.snipcart.com/api',
                 timeout: int = 10, session: Optional[requests.Session] = None):
        self.secret_key = secret_key
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def verify(self, token: Optional[str]) -> None:
        """Raise ``WebhookAuthError`` unless Snipcart confirms the token."""
        if not token:
            raise WebhookAuthError("Missing request token")
        if not self.secret_key:
            logger.error("SNIPCART_SECRET_KEY is not configured; rejecting webhook")
            raise WebhookAuthError("Webhook validation is not configured", status_code=500)

        try:
            response = self.session.get(
                f"{self.api_url}/requestvalidation/{token}",
                auth=(self.secret_key, ''),
                headers={'Accept': 'application/json'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Snipcart token validation request failed: {e}")
            raise WebhookAuthError("Could not validate request token") from e

        if not response.ok:
            logger.warning(f"Snipcart rejected request token with HTTP {response.status_code}")
            raise WebhookAuthError("Invalid request token")
