# app/services/payment/payment_service.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app import crud
from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PaymentAlreadySettledError,
    ValidationError,
)
from app.db.session import transaction
from app.models.purchase import Purchase
from app.models.registration import Registration
from app.schemas.payment import PaymentCreate, PaymentIntentResponse, PaymentStatus
from app.schemas.registration import RegistrationStatus
from app.schemas.token import TokenPayload
from app.services.registration.guest_credentials import GuestCredentialIssuer
from .provider_interface import CreatePaymentIntentParams, PaymentIntentStatusEnum
from .provider_factory import get_payment_provider, get_provider_for_currency
from .providers.stripe_provider import PaymentError

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Payment service layer that orchestrates payment intents.

    This service:
    - Authorizes the caller against a registration (account or guest token)
    - Creates the provider intent and the local Payment mirror, once per purchase
    - Hands back the existing client secret on repeat calls

    Provider calls never run while a database transaction is open.
    """

    def __init__(self, db: Session):
        self.db = db
        self.credentials = GuestCredentialIssuer(db)

    async def create_or_get_intent(
        self,
        *,
        registration_id: str,
        current_user: Optional[TokenPayload] = None,
        guest_token: Optional[str] = None,
    ) -> PaymentIntentResponse:
        registration = crud.registration.get(self.db, id=registration_id)
        purchase = None
        if registration is not None:
            purchase = crud.purchase.get_by_registration(
                self.db, registration_id=registration.id
            )

        actor_type = self._authorize(registration, purchase, current_user, guest_token)

        event = registration.event
        if event.is_free:
            raise ValidationError(
                "Payment is not required for free events", field="registrationId"
            )
        if registration.status != RegistrationStatus.pending.value:
            raise ConflictError(
                f"Registration is {registration.status}; only pending registrations can be paid"
            )
        if purchase is None:
            raise NotFoundError("Purchase not found for this registration")
        if purchase.total_price <= 0:
            raise ValidationError("Nothing to pay for this registration", field="registrationId")

        params = CreatePaymentIntentParams(
            purchase_id=purchase.id,
            amount=purchase.total_price,
            currency=purchase.currency,
            description=f"Registration {registration.id} for {event.name}",
            metadata={
                "registrationId": registration.id,
                "purchaseId": purchase.id,
                "eventId": event.id,
            },
            idempotency_key=f"purchase_{purchase.id}_create",
            customer_email=registration.participant.email if registration.participant else None,
        )
        context = {
            "registration_id": registration.id,
            "purchase_id": purchase.id,
            "event_id": event.id,
            "actor_type": actor_type,
            "actor_id": current_user.sub if current_user else None,
        }
        payment = crud.payment.get_by_purchase(self.db, purchase_id=purchase.id)
        existing = None
        if payment is not None:
            existing = {
                "id": payment.id,
                "status": payment.status,
                "provider_code": payment.provider_code,
                "provider_intent_id": payment.provider_intent_id,
            }

        # Release the read snapshot before calling the provider.
        self.db.rollback()

        if existing is not None:
            return await self._resume_existing(existing, params, context)
        return await self._create_new(params, context)

    def _authorize(
        self,
        registration: Optional[Registration],
        purchase: Optional[Purchase],
        current_user: Optional[TokenPayload],
        guest_token: Optional[str],
    ) -> str:
        """Return the actor type, or raise one generic AuthorizationError."""
        if registration is None:
            raise AuthorizationError()

        if current_user is not None:
            if current_user.is_admin:
                return "admin"
            if not registration.is_guest and registration.user_id == current_user.sub:
                return "user"
            raise AuthorizationError()

        if purchase is not None and self.credentials.verify(purchase, guest_token):
            return "guest"

        logger.info(f"Rejected payment intent request for registration {registration.id}")
        raise AuthorizationError()

    async def _create_new(
        self, params: CreatePaymentIntentParams, context: dict
    ) -> PaymentIntentResponse:
        try:
            provider = get_provider_for_currency(params.currency)
        except ValueError as e:
            logger.error(f"No payment provider for purchase {params.purchase_id}: {e}")
            raise ExternalServiceError()

        try:
            result = await provider.create_payment_intent(params)
        except PaymentError as e:
            logger.error(
                f"Failed to create payment intent for purchase {params.purchase_id}: {e}"
            )
            raise ExternalServiceError(e.message)

        with transaction(self.db):
            # Serialize with concurrent callers for the same purchase.
            crud.purchase.get(self.db, id=params.purchase_id, for_update=True)
            payment = crud.payment.get_by_purchase(self.db, purchase_id=params.purchase_id)
            if payment is None:
                payment = crud.payment.create_payment(
                    self.db,
                    obj_in=PaymentCreate(
                        purchase_id=params.purchase_id,
                        provider_code=provider.code,
                        provider_intent_id=result.intent_id,
                        status=PaymentStatus.pending,
                        currency=params.currency,
                        amount=params.amount,
                        provider_metadata=result.provider_metadata,
                    ),
                )
                crud.audit_log.log_action(
                    self.db,
                    action="payment.initiated",
                    actor_type=context["actor_type"],
                    actor_id=context["actor_id"],
                    entity_type="payment",
                    entity_id=payment.id,
                    event_id=context["event_id"],
                    new_state={
                        "status": PaymentStatus.pending.value,
                        "intent_id": result.intent_id,
                        "amount": params.amount,
                        "currency": params.currency,
                    },
                )
                logger.info(
                    f"Created payment {payment.id} with intent {result.intent_id} "
                    f"for registration {context['registration_id']}"
                )
            elif payment.provider_intent_id != result.intent_id:
                logger.warning(
                    f"Purchase {params.purchase_id} already has intent "
                    f"{payment.provider_intent_id}; ignoring {result.intent_id}"
                )
            payment_id = payment.id
            stored = {
                "id": payment.id,
                "status": payment.status,
                "provider_code": payment.provider_code,
                "provider_intent_id": payment.provider_intent_id,
            }

        if stored["provider_intent_id"] != result.intent_id:
            # A concurrent request won the race; serve its intent instead.
            return await self._resume_existing(stored, params, context)

        return PaymentIntentResponse(
            client_secret=result.client_secret,
            payment_id=payment_id,
            publishable_key=provider.get_publishable_key(),
        )

    async def _resume_existing(
        self, existing: dict, params: CreatePaymentIntentParams, context: dict
    ) -> PaymentIntentResponse:
        if existing["status"] == PaymentStatus.completed.value:
            raise PaymentAlreadySettledError()

        try:
            provider = get_payment_provider(existing["provider_code"])
        except ValueError as e:
            logger.error(f"Payment {existing['id']} uses an unavailable provider: {e}")
            raise ExternalServiceError()

        try:
            intent = await provider.get_payment_intent(existing["provider_intent_id"])
        except PaymentError as e:
            logger.error(f"Failed to retrieve intent {existing['provider_intent_id']}: {e}")
            raise ExternalServiceError(e.message)

        if intent.status == PaymentIntentStatusEnum.SUCCEEDED:
            # Settlement webhook has not landed yet; never charge twice.
            raise PaymentAlreadySettledError()

        if intent.status != PaymentIntentStatusEnum.CANCELLED:
            return PaymentIntentResponse(
                client_secret=intent.client_secret,
                payment_id=existing["id"],
                publishable_key=provider.get_publishable_key(),
            )

        # The old intent can no longer be paid; open a replacement.
        params.idempotency_key = (
            f"purchase_{params.purchase_id}_replace_{existing['provider_intent_id']}"
        )
        try:
            result = await provider.create_payment_intent(params)
        except PaymentError as e:
            logger.error(f"Failed to replace intent for purchase {params.purchase_id}: {e}")
            raise ExternalServiceError(e.message)

        with transaction(self.db):
            payment = crud.payment.get(self.db, id=existing["id"], for_update=True)
            if payment.status == PaymentStatus.completed.value:
                raise PaymentAlreadySettledError()
            if payment.provider_intent_id == existing["provider_intent_id"]:
                crud.payment.replace_intent(
                    self.db, payment=payment, provider_intent_id=result.intent_id
                )
                crud.audit_log.log_action(
                    self.db,
                    action="payment.intent_replaced",
                    actor_type=context["actor_type"],
                    actor_id=context["actor_id"],
                    entity_type="payment",
                    entity_id=payment.id,
                    event_id=context["event_id"],
                    previous_state={
                        "status": existing["status"],
                        "intent_id": existing["provider_intent_id"],
                    },
                    new_state={
                        "status": PaymentStatus.pending.value,
                        "intent_id": result.intent_id,
                    },
                )
                logger.info(
                    f"Replaced cancelled intent {existing['provider_intent_id']} "
                    f"with {result.intent_id} on payment {payment.id}"
                )

        return PaymentIntentResponse(
            client_secret=result.client_secret,
            payment_id=existing["id"],
            publishable_key=provider.get_publishable_key(),
        )
