# app/services/payment/webhook_signature.py
"""
Authentication of raw provider webhook payloads.

Kept free of HTTP and database concerns: it takes the exact bytes that
arrived, the signature header and the shared secret, and either returns
the decoded event or raises.
"""
import json
from typing import Any, Dict, Optional

import stripe

from app.core.exceptions import WebhookSignatureError


def verify_webhook_signature(
    payload: bytes,
    signature: Optional[str],
    secret: str,
    tolerance: int = 300,
) -> Dict[str, Any]:
    """
    Verify a Stripe-Signature header against the raw body and decode it.

    The signature is checked before the body is parsed; events older than
    `tolerance` seconds are rejected to limit replay.

    Raises:
        WebhookSignatureError: missing header or secret, bad signature,
            stale timestamp, or a body that is not a JSON object
    """
    if not signature:
        raise WebhookSignatureError("Missing signature")
    if not secret:
        raise WebhookSignatureError("Webhook secret not configured")

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError:
        raise WebhookSignatureError("Invalid payload")

    try:
        stripe.WebhookSignature.verify_header(body, signature, secret, tolerance)
    except stripe.SignatureVerificationError:
        raise WebhookSignatureError("Invalid signature")

    try:
        event = json.loads(body)
    except ValueError:
        raise WebhookSignatureError("Invalid payload")
    if not isinstance(event, dict):
        raise WebhookSignatureError("Invalid payload")
    return event
