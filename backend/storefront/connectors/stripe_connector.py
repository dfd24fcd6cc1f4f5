"""
Stripe REST Connector
Handles the PaymentIntent calls made during checkout and the verification
of incoming webhook signatures

Stripe's API is form encoded; nested parameters are flattened as
`metadata[order_id]=...`.
"""
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional

import httpx

from storefront.core.config import settings

# Seconds a webhook timestamp may be away from now
WEBHOOK_TOLERANCE = 300


class WebhookSignatureError(ValueError):
    """Stripe-Signature header missing, malformed, stale or not matching"""


def _flatten(params: Dict[str, Any], prefix: str = "") -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else key
        if value is None:
            continue
        if isinstance(value, dict):
            flat.update(_flatten(value, name))
        elif isinstance(value, bool):
            flat[name] = "true" if value else "false"
        else:
            flat[name] = str(value)
    return flat


class StripeConnector:
    """
    Connector for the Stripe REST API

    Handles:
    - PaymentIntent creation for connected accounts (destination charges)
    - PaymentIntent retrieval
    - Webhook signature verification
    """

    def __init__(self, secret_key: str = None, api_base: str = None):
        """
        Initialize Stripe connector

        Args:
            secret_key: Platform secret key (sk_...)
            api_base: API root, overridable for tests
        """
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self.api_base = (api_base or settings.STRIPE_API_BASE).rstrip("/")

        if not self.secret_key:
            raise ValueError("Stripe credentials not configured. Set STRIPE_SECRET_KEY")

        self.headers = {
            'Authorization': f"Bearer {self.secret_key}",
            'Content-Type': 'application/x-www-form-urlencoded',
        }

    async def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                       idempotency_key: Optional[str] = None) -> Dict:
        headers = dict(self.headers)
        if idempotency_key:
            headers['Idempotency-Key'] = idempotency_key

        async with httpx.AsyncClient() as client:
            response = await client.request(
                method,
                f"{self.api_base}{path}",
                data=_flatten(params or {}),
                headers=headers,
                timeout=30.0
            )
            response.raise_for_status()
            return response.json()

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        destination: str,
        metadata: Optional[Dict[str, str]] = None,
        receipt_email: Optional[str] = None,
        idempotency_key: Optional[str] = None
    ) -> Dict:
        """
        Create a PaymentIntent whose funds are transferred to a connected account

        Args:
            amount: Amount in the smallest currency unit
            currency: ISO currency code
            destination: Connected account id (acct_...)
            metadata: tenant/cart/order ids for the webhook

        Returns:
            PaymentIntent object (id, client_secret, status, ...)
        """
        params = {
            'amount': amount,
            'currency': currency.lower(),
            'transfer_data': {'destination': destination},
            'automatic_payment_methods': {'enabled': True},
            'metadata': metadata or {},
            'receipt_email': receipt_email,
        }
        return await self._request("POST", "/payment_intents", params, idempotency_key=idempotency_key)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> Dict:
        return await self._request("GET", f"/payment_intents/{payment_intent_id}")


def verify_webhook_signature(
    payload: bytes,
    signature_header: Optional[str],
    secret: str,
    tolerance: int = WEBHOOK_TOLERANCE,
    now: Optional[float] = None
) -> Dict:
    """
    Verify a Stripe-Signature header and return the parsed event

    The header looks like `t=1700000000,v1=<hex>,v1=<hex>`; the signed
    message is "<t>.<raw payload>" using HMAC-SHA256 with the endpoint secret.

    Raises:
        WebhookSignatureError
    """
    if not signature_header:
        raise WebhookSignatureError("Missing Stripe-Signature header")
    if not secret:
        raise WebhookSignatureError("Webhook secret not configured")

    timestamp = None
    signatures = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if not timestamp or not signatures:
        raise WebhookSignatureError("Malformed Stripe-Signature header")

    try:
        timestamp_value = int(timestamp)
    except ValueError:
        raise WebhookSignatureError("Malformed Stripe-Signature timestamp")

    now = time.time() if now is None else now
    if abs(now - timestamp_value) > tolerance:
        raise WebhookSignatureError("Webhook timestamp outside tolerance")

    signed_payload = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()

    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise WebhookSignatureError("Signature mismatch")

    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        raise WebhookSignatureError("Invalid JSON payload")


def sign_webhook_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for a payload (local testing of the webhook endpoint)"""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"
