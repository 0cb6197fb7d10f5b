# app/services/payment/settlement_service.py
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app import crud
from app.db.session import transaction
from app.schemas.payment import PaymentStatus
from app.schemas.registration import RegistrationStatus
from .provider_interface import WebhookEvent, WebhookEventType

logger = logging.getLogger(__name__)


class SettlementError(Exception):
    """A verified event that cannot be applied to local state."""


class SettlementService:
    """
    Applies verified provider events to Payment and Registration.

    Payment states:  pending -> completed | failed;  failed -> completed.
    Nothing leaves `completed`, so redelivered or reordered events are no-ops.
    Inventory is never touched here.
    """

    def __init__(self, db: Session):
        self.db = db

    def handle_event(self, event: WebhookEvent) -> Dict[str, Optional[str]]:
        """Dispatch on event type; returns related entity ids for the journal."""
        if event.event_type == WebhookEventType.PAYMENT_INTENT_SUCCEEDED:
            return self._handle_succeeded(event)

        if event.event_type == WebhookEventType.PAYMENT_INTENT_FAILED:
            return self._handle_failed(event)

        logger.info(
            f"Acknowledged {event.provider_event_type} event {event.event_id} without changes"
        )
        return {}

    def _handle_succeeded(self, event: WebhookEvent) -> Dict[str, Optional[str]]:
        intent_id = event.data.get("paymentIntentId")
        if not intent_id:
            logger.warning(f"Succeeded event {event.event_id} has no payment intent id")
            return {}

        with transaction(self.db):
            payment = crud.payment.get_by_provider_intent_id(
                self.db, provider_intent_id=intent_id, for_update=True
            )
            if payment is None:
                logger.warning(f"No payment found for intent {intent_id}")
                return {}

            registration_id = payment.purchase.registration_id
            result = {"payment_id": payment.id, "registration_id": registration_id}

            if payment.is_terminal:
                logger.info(f"Payment {payment.id} already {payment.status}")
                return result

            claimed = (event.data.get("metadata") or {}).get("registrationId")
            if claimed and claimed != registration_id:
                raise SettlementError(
                    f"Intent {intent_id} names registration {claimed}, "
                    f"payment {payment.id} belongs to {registration_id}"
                )

            previous_status = payment.status
            crud.payment.update_status(self.db, payment=payment, status=PaymentStatus.completed)

            registration = crud.registration.get(self.db, id=registration_id, for_update=True)
            crud.audit_log.log_action(
                self.db,
                action="payment.succeeded",
                actor_type="webhook",
                actor_id=event.event_id,
                entity_type="payment",
                entity_id=payment.id,
                event_id=registration.event_id,
                previous_state={"status": previous_status},
                new_state={"status": PaymentStatus.completed.value},
            )

            if registration.status == RegistrationStatus.pending.value:
                crud.registration.update_status(
                    self.db, registration=registration, status=RegistrationStatus.confirmed
                )
                crud.audit_log.log_action(
                    self.db,
                    action="registration.confirmed",
                    actor_type="webhook",
                    actor_id=event.event_id,
                    entity_type="registration",
                    entity_id=registration.id,
                    event_id=registration.event_id,
                    previous_state={"status": RegistrationStatus.pending.value},
                    new_state={"status": RegistrationStatus.confirmed.value},
                )
                logger.info(f"Registration {registration.id} confirmed by payment {payment.id}")
            else:
                # Paid after cancellation; needs a manual refund.
                logger.warning(
                    f"Payment {payment.id} completed for registration "
                    f"{registration.id} in status {registration.status}"
                )

        return result

    def _handle_failed(self, event: WebhookEvent) -> Dict[str, Optional[str]]:
        intent_id = event.data.get("paymentIntentId")
        if not intent_id:
            logger.warning(f"Failed event {event.event_id} has no payment intent id")
            return {}

        with transaction(self.db):
            payment = crud.payment.get_by_provider_intent_id(
                self.db, provider_intent_id=intent_id, for_update=True
            )
            if payment is None:
                logger.warning(f"No payment found for intent {intent_id}")
                return {}

            registration_id = payment.purchase.registration_id
            result = {"payment_id": payment.id, "registration_id": registration_id}

            if payment.is_terminal or payment.status == PaymentStatus.failed.value:
                logger.info(f"Payment {payment.id} already {payment.status}, ignoring failure")
                return result

            failure_code = event.data.get("failureCode")
            failure_message = event.data.get("failureMessage")
            crud.payment.update_status(
                self.db,
                payment=payment,
                status=PaymentStatus.failed,
                failure_code=failure_code,
                failure_message=failure_message,
            )
            crud.audit_log.log_action(
                self.db,
                action="payment.failed",
                actor_type="webhook",
                actor_id=event.event_id,
                entity_type="payment",
                entity_id=payment.id,
                previous_state={"status": PaymentStatus.pending.value},
                new_state={
                    "status": PaymentStatus.failed.value,
                    "failure_code": failure_code,
                },
            )
            logger.info(f"Payment {payment.id} failed: {failure_code}")

        return result
