# app/services/payment/providers/stripe_provider.py
import stripe
import logging
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from dataclasses import dataclass

from ..provider_interface import (
    PaymentProviderInterface,
    CreatePaymentIntentParams,
    PaymentIntentResult,
    PaymentIntentStatus,
    PaymentIntentStatusEnum,
    WebhookEvent,
    WebhookEventType,
)

logger = logging.getLogger(__name__)


@dataclass
class StripeConfig:
    """Configuration for Stripe provider."""
    secret_key: str
    publishable_key: str
    api_version: str = "2023-10-16"
    max_retries: int = 2


# Mapping from Stripe payment intent status to our standardized status
STRIPE_STATUS_MAP: Dict[str, PaymentIntentStatusEnum] = {
    "requires_payment_method": PaymentIntentStatusEnum.REQUIRES_PAYMENT_METHOD,
    "requires_confirmation": PaymentIntentStatusEnum.REQUIRES_CONFIRMATION,
    "requires_action": PaymentIntentStatusEnum.REQUIRES_ACTION,
    "processing": PaymentIntentStatusEnum.PROCESSING,
    "succeeded": PaymentIntentStatusEnum.SUCCEEDED,
    "canceled": PaymentIntentStatusEnum.CANCELLED,
    "requires_capture": PaymentIntentStatusEnum.SUCCEEDED,  # For manual capture
}

# Mapping from Stripe event types to our standardized event types
STRIPE_EVENT_MAP: Dict[str, WebhookEventType] = {
    "payment_intent.succeeded": WebhookEventType.PAYMENT_INTENT_SUCCEEDED,
    "payment_intent.payment_failed": WebhookEventType.PAYMENT_INTENT_FAILED,
}


def parse_stripe_event(event: Dict[str, Any]) -> WebhookEvent:
    """
    Map a verified Stripe event payload onto the standardized WebhookEvent.

    Raises:
        PaymentError: the payload lacks the fields every Stripe event carries
    """
    try:
        event_id = event["id"]
        provider_event_type = event["type"]
        data_object = event.get("data", {}).get("object", {}) or {}
    except (KeyError, AttributeError, TypeError) as e:
        logger.error(f"Error parsing webhook event: {e}")
        raise PaymentError(
            code="PARSE_ERROR",
            message="Could not parse webhook event",
            retryable=False,
        )

    data: Dict[str, Any] = {"status": data_object.get("status")}

    object_id = data_object.get("id") or ""
    if object_id.startswith("pi_"):
        data["paymentIntentId"] = object_id
        data["amount"] = data_object.get("amount")
        data["currency"] = (data_object.get("currency") or "").upper()
        data["metadata"] = data_object.get("metadata") or {}

    last_error = data_object.get("last_payment_error")
    if last_error:
        data["failureCode"] = last_error.get("code") or last_error.get("decline_code")
        data["failureMessage"] = last_error.get("message")

    created = event.get("created")
    return WebhookEvent(
        event_id=event_id,
        event_type=STRIPE_EVENT_MAP.get(provider_event_type, WebhookEventType.UNKNOWN),
        provider_event_type=provider_event_type,
        data=data,
        created_at=datetime.fromtimestamp(created, tz=timezone.utc) if created else None,
        raw_payload=event,
    )


class StripeProvider(PaymentProviderInterface):
    """
    Stripe implementation of PaymentProviderInterface.

    SECURITY NOTES:
    - Never log full card details
    - Use idempotency keys for all mutations
    - Handle rate limiting gracefully
    """

    def __init__(self, config: StripeConfig):
        """Initialize Stripe provider with configuration."""
        self._config = config
        self._publishable_key = config.publishable_key

        # Initialize Stripe with locked API version
        stripe.api_key = config.secret_key
        stripe.api_version = config.api_version
        stripe.max_network_retries = config.max_retries

    @property
    def code(self) -> str:
        return "stripe"

    @property
    def name(self) -> str:
        return "Stripe"

    def get_publishable_key(self) -> str:
        """Get the publishable key for client-side use."""
        return self._publishable_key

    async def create_payment_intent(
        self, params: CreatePaymentIntentParams
    ) -> PaymentIntentResult:
        """
        Create a Stripe PaymentIntent for checkout.

        Uses idempotency keys to ensure safe retries.
        """
        try:
            intent_params: Dict[str, Any] = {
                "amount": params.amount,
                "currency": params.currency.lower(),
                "description": params.description,
                "metadata": {
                    **params.metadata,
                    "purchaseId": params.purchase_id,
                },
                "automatic_payment_methods": {
                    "enabled": True,
                },
            }
            if params.customer_email:
                intent_params["receipt_email"] = params.customer_email

            intent = stripe.PaymentIntent.create(
                **intent_params,
                idempotency_key=params.idempotency_key,
            )

            status = STRIPE_STATUS_MAP.get(
                intent.status, PaymentIntentStatusEnum.REQUIRES_PAYMENT_METHOD
            )

            return PaymentIntentResult(
                intent_id=intent.id,
                client_secret=intent.client_secret,
                status=status,
                provider_metadata={
                    "livemode": intent.livemode,
                },
            )

        except stripe.CardError as e:
            logger.error(f"Card error creating payment intent: {e.user_message}")
            raise PaymentError(
                code="CARD_ERROR",
                message=e.user_message or "Card was declined",
                retryable=True,
            )
        except stripe.RateLimitError as e:
            logger.error(f"Rate limit error: {e}")
            raise PaymentError(
                code="RATE_LIMIT",
                message="Too many requests. Please try again.",
                retryable=True,
            )
        except stripe.InvalidRequestError as e:
            logger.error(f"Invalid request error: {e}")
            raise PaymentError(
                code="INVALID_REQUEST",
                message=str(e),
                retryable=False,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating payment intent: {e}")
            raise PaymentError(
                code="PROVIDER_ERROR",
                message="Payment service temporarily unavailable",
                retryable=True,
            )

    async def get_payment_intent(self, intent_id: str) -> PaymentIntentStatus:
        """Retrieve current status of a payment intent."""
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id)

            failure_code = None
            failure_message = None
            if intent.last_payment_error:
                failure_code = intent.last_payment_error.code
                failure_message = intent.last_payment_error.message

            status = STRIPE_STATUS_MAP.get(
                intent.status, PaymentIntentStatusEnum.FAILED
            )

            return PaymentIntentStatus(
                intent_id=intent.id,
                status=status,
                amount=intent.amount,
                currency=intent.currency.upper(),
                client_secret=intent.client_secret,
                failure_code=failure_code,
                failure_message=failure_message,
            )

        except stripe.StripeError as e:
            logger.error(f"Error retrieving payment intent {intent_id}: {e}")
            raise PaymentError(
                code="PROVIDER_ERROR",
                message="Could not retrieve payment status",
                retryable=True,
            )

    async def cancel_payment_intent(self, intent_id: str) -> None:
        """Cancel a pending payment intent."""
        try:
            stripe.PaymentIntent.cancel(intent_id)
        except stripe.InvalidRequestError as e:
            # Intent might already be cancelled or completed
            if "cannot be canceled" not in str(e).lower():
                raise PaymentError(
                    code="CANCEL_FAILED",
                    message=str(e),
                    retryable=False,
                )
        except stripe.StripeError as e:
            logger.error(f"Error cancelling payment intent {intent_id}: {e}")
            raise PaymentError(
                code="PROVIDER_ERROR",
                message="Could not cancel payment",
                retryable=True,
            )


class PaymentError(Exception):
    """Custom exception for payment errors."""

    def __init__(self, code: str, message: str, retryable: bool = False):
        self.code = code
        self.message = message
        self.retryable = retryable
        super().__init__(message)
