# app/api/v1/endpoints/payments.py
"""
Payment endpoints: checkout intent creation and the provider webhook.

SECURITY NOTES:
- Webhook signatures are verified against the raw body before parsing
- Verified events are journaled and processed idempotently
- Processing errors still return 200; the journal keeps the failure
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api import deps
from app.db.session import get_db, transaction
from app import crud
from app.core.config import settings
from app.core.exceptions import WebhookSignatureError
from app.core.limiter import limiter
from app.schemas.payment import (
    CreatePaymentIntentRequest,
    PaymentIntentResponse,
    WebhookEventCreate,
)
from app.schemas.token import TokenPayload
from app.services.payment.payment_service import PaymentService
from app.services.payment.providers.stripe_provider import PaymentError, parse_stripe_event
from app.services.payment.settlement_service import SettlementService
from app.services.payment.webhook_signature import verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post(
    "/create-intent",
    response_model=PaymentIntentResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("10/minute")
async def create_payment_intent(
    request: Request,
    intent_in: CreatePaymentIntentRequest,
    db: Session = Depends(get_db),
    current_user: Optional[TokenPayload] = Depends(deps.get_current_user_optional),
):
    """
    Create (or resume) the payment intent for a pending registration.

    Signed-in owners need only the registration id; guests also pass the
    `guestToken` they received at registration. Returns the client secret
    for the provider's payment form.
    """
    service = PaymentService(db)
    return await service.create_or_get_intent(
        registration_id=intent_in.registration_id,
        current_user=current_user,
        guest_token=intent_in.guest_token,
    )


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
):
    """
    Handle Stripe webhook events.

    This endpoint:
    1. Verifies the webhook signature
    2. Stores the event for audit
    3. Settles the payment and registration
    4. Returns 200 to acknowledge receipt

    Stripe will retry on non-2xx responses.
    """
    # Get raw body
    body = await request.body()

    # Get client IP
    client_ip = request.client.host if request.client else None

    try:
        payload = verify_webhook_signature(
            body,
            stripe_signature,
            settings.STRIPE_WEBHOOK_SECRET,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )
        event = parse_stripe_event(payload)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected webhook from {client_ip}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentError as e:
        logger.warning(f"Unparseable webhook from {client_ip}: {e.message}")
        raise HTTPException(status_code=400, detail="Invalid payload")

    # Check if already processed (idempotency)
    if crud.webhook_event.is_already_processed(
        db, provider_code="stripe", provider_event_id=event.event_id
    ):
        logger.info(f"Event {event.event_id} already processed, skipping")
        return {"status": "already_processed"}

    webhook_event_create = WebhookEventCreate(
        provider_code="stripe",
        provider_event_id=event.event_id,
        provider_event_type=event.provider_event_type,
        payload=event.raw_payload,
        signature_verified=True,
        ip_address=client_ip,
    )
    try:
        with transaction(db):
            webhook_event = crud.webhook_event.upsert_event(db, obj_in=webhook_event_create)
            crud.webhook_event.mark_processing(db, event_id=webhook_event.id)
            journal_id = webhook_event.id
    except IntegrityError:
        # A concurrent delivery of the same event inserted the row first.
        with transaction(db):
            webhook_event = crud.webhook_event.get_by_provider_event_id(
                db, provider_code="stripe", provider_event_id=event.event_id
            )
            crud.webhook_event.mark_processing(db, event_id=webhook_event.id)
            journal_id = webhook_event.id

    try:
        result = SettlementService(db).handle_event(event)
        with transaction(db):
            crud.webhook_event.mark_processed(
                db,
                event_id=journal_id,
                related_payment_id=result.get("payment_id"),
                related_registration_id=result.get("registration_id"),
            )
        return {"status": "processed", "event_id": event.event_id}

    except Exception as e:
        logger.exception(f"Error processing webhook event {event.event_id}: {e}")
        db.rollback()
        with transaction(db):
            crud.webhook_event.mark_failed(db, event_id=journal_id, error=str(e))
        # Still return 200; a redelivery of a failed event is processed again
        return {"status": "processing_error", "event_id": event.event_id}
