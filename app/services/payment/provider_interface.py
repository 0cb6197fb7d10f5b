# app/services/payment/provider_interface.py
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime


class PaymentIntentStatusEnum(str, Enum):
    """Standardized payment intent status."""
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"


class WebhookEventType(str, Enum):
    """Standardized webhook event types."""
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.failed"
    UNKNOWN = "unknown"


@dataclass
class CreatePaymentIntentParams:
    """Parameters for creating a payment intent."""
    purchase_id: str
    amount: int  # In smallest currency unit (cents)
    currency: str  # ISO 4217
    description: str
    metadata: Dict[str, str]
    idempotency_key: str
    customer_email: Optional[str] = None


@dataclass
class PaymentIntentResult:
    """Result of creating a payment intent."""
    intent_id: str
    client_secret: str
    status: PaymentIntentStatusEnum
    provider_metadata: Optional[Dict[str, Any]] = None


@dataclass
class PaymentIntentStatus:
    """Current status of a payment intent."""
    intent_id: str
    status: PaymentIntentStatusEnum
    amount: int
    currency: str
    client_secret: Optional[str] = None
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None


@dataclass
class WebhookEvent:
    """Standardized webhook event."""
    event_id: str
    event_type: WebhookEventType
    provider_event_type: str
    data: Dict[str, Any]
    created_at: Optional[datetime]
    raw_payload: Dict[str, Any] = field(default_factory=dict)


class PaymentProviderInterface(ABC):
    """
    Core interface that all payment providers must implement.
    This abstraction allows swapping providers without changing business logic.
    """

    @property
    @abstractmethod
    def code(self) -> str:
        """Provider code identifier (e.g., 'stripe')."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name (e.g., 'Stripe')."""
        pass

    @abstractmethod
    async def create_payment_intent(
        self, params: CreatePaymentIntentParams
    ) -> PaymentIntentResult:
        """
        Initialize a payment intent for checkout.
        Returns a client-side secret for the secure payment form.
        """
        pass

    @abstractmethod
    async def get_payment_intent(self, intent_id: str) -> PaymentIntentStatus:
        """Retrieve current status of a payment intent."""
        pass

    @abstractmethod
    async def cancel_payment_intent(self, intent_id: str) -> None:
        """Cancel a pending payment intent."""
        pass

    def get_publishable_key(self) -> str:
        """Get the publishable/public API key for client-side use."""
        raise NotImplementedError("Provider does not support publishable keys")
