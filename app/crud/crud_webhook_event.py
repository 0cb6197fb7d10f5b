# app/crud/crud_webhook_event.py
from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_

from app.crud.base import CRUDBase
from app.models.payment_webhook_event import PaymentWebhookEvent
from app.schemas.payment import WebhookEventCreate, WebhookEventUpdate, WebhookEventStatus
from app.utils.time import utcnow


class CRUDWebhookEvent(CRUDBase[PaymentWebhookEvent, WebhookEventCreate, WebhookEventUpdate]):
    """Journal of received provider webhook events."""

    def get_by_provider_event_id(
        self, db: Session, *, provider_code: str, provider_event_id: str
    ) -> Optional[PaymentWebhookEvent]:
        """Get a webhook event by provider's event ID."""
        return (
            db.query(self.model)
            .filter(
                and_(
                    self.model.provider_code == provider_code,
                    self.model.provider_event_id == provider_event_id,
                )
            )
            .first()
        )

    def is_already_processed(
        self, db: Session, *, provider_code: str, provider_event_id: str
    ) -> bool:
        """Check if an event has already been processed."""
        event = self.get_by_provider_event_id(
            db, provider_code=provider_code, provider_event_id=provider_event_id
        )
        return event is not None and event.status == WebhookEventStatus.processed.value

    def upsert_event(
        self, db: Session, *, obj_in: WebhookEventCreate
    ) -> PaymentWebhookEvent:
        """Create or refresh the journal entry for a delivery."""
        existing = self.get_by_provider_event_id(
            db,
            provider_code=obj_in.provider_code,
            provider_event_id=obj_in.provider_event_id,
        )

        if existing:
            existing.payload = obj_in.payload
            existing.signature_verified = obj_in.signature_verified
            existing.ip_address = obj_in.ip_address
            db.add(existing)
            db.flush()
            return existing

        db_obj = PaymentWebhookEvent(
            provider_code=obj_in.provider_code,
            provider_event_id=obj_in.provider_event_id,
            provider_event_type=obj_in.provider_event_type,
            payload=obj_in.payload,
            signature_verified=obj_in.signature_verified,
            ip_address=obj_in.ip_address,
            status=WebhookEventStatus.pending.value,
        )
        db.add(db_obj)
        db.flush()
        return db_obj

    def mark_processing(
        self, db: Session, *, event_id: str
    ) -> Optional[PaymentWebhookEvent]:
        """Mark an event as processing."""
        event = self.get(db, id=event_id)
        if not event:
            return None

        event.status = WebhookEventStatus.processing.value
        event.attempt_count += 1
        db.add(event)
        db.flush()
        return event

    def mark_processed(
        self,
        db: Session,
        *,
        event_id: str,
        related_payment_id: Optional[str] = None,
        related_registration_id: Optional[str] = None,
    ) -> Optional[PaymentWebhookEvent]:
        """Mark an event as processed."""
        event = self.get(db, id=event_id)
        if not event:
            return None

        event.status = WebhookEventStatus.processed.value
        event.processed_at = utcnow()
        event.processing_error = None

        if related_payment_id:
            event.related_payment_id = related_payment_id
        if related_registration_id:
            event.related_registration_id = related_registration_id

        db.add(event)
        db.flush()
        return event

    def mark_failed(
        self, db: Session, *, event_id: str, error: str
    ) -> Optional[PaymentWebhookEvent]:
        """Mark an event as failed; a later redelivery processes it again."""
        event = self.get(db, id=event_id)
        if not event:
            return None

        event.status = WebhookEventStatus.failed.value
        event.processing_error = error[:2000]
        db.add(event)
        db.flush()
        return event


webhook_event = CRUDWebhookEvent(PaymentWebhookEvent)
