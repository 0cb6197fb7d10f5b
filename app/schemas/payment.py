# app/schemas/payment.py
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from enum import Enum

from app.schemas.registration import CamelModel


# ============================================
# Enums
# ============================================

class PaymentStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"


class WebhookEventStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    processed = "processed"
    failed = "failed"


# ============================================
# Payment Intent Schemas
# ============================================

class CreatePaymentIntentRequest(CamelModel):
    registration_id: str
    # Guest credential issued at registration time; omitted by signed-in users
    guest_token: Optional[str] = Field(default=None, max_length=512)


class PaymentIntentResponse(CamelModel):
    client_secret: str
    payment_id: str
    publishable_key: Optional[str] = None


# ============================================
# Internal write models
# ============================================

class PaymentCreate(BaseModel):
    purchase_id: str
    provider_code: str
    provider_intent_id: str
    status: PaymentStatus = PaymentStatus.pending
    currency: str = Field(..., max_length=3)
    amount: int = Field(..., ge=0)
    provider_metadata: Optional[Dict[str, Any]] = None


class PaymentUpdate(BaseModel):
    status: Optional[PaymentStatus] = None
    provider_intent_id: Optional[str] = None
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None


class WebhookEventCreate(BaseModel):
    provider_code: str
    provider_event_id: str
    provider_event_type: str
    payload: Dict[str, Any]
    signature_verified: bool = False
    ip_address: Optional[str] = None


class WebhookEventUpdate(BaseModel):
    status: Optional[WebhookEventStatus] = None
    processing_error: Optional[str] = None


class AuditLogCreate(BaseModel):
    action: str
    actor_type: str
    entity_type: str
    entity_id: str
    actor_id: Optional[str] = None
    previous_state: Optional[Dict[str, Any]] = None
    new_state: Optional[Dict[str, Any]] = None
    event_id: Optional[str] = None
