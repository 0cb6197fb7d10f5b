# app/services/registration/registration_service.py
import logging
import math
from collections import Counter
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from app import crud
from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TicketNotOnSaleError,
    ValidationError,
)
from app.db.session import transaction
from app.models.event import Event
from app.models.registration import Registration
from app.models.ticket_type import TicketType
from app.schemas.event import EventStatus
from app.schemas.payment import PaymentStatus
from app.schemas.registration import (
    RegistrationCreate,
    RegistrationCreateResponse,
    RegistrationStatus,
)
from app.schemas.token import TokenPayload
from app.services.payment.provider_factory import get_payment_provider
from app.services.payment.providers.stripe_provider import PaymentError
from .guest_credentials import GuestCredentialIssuer
from .inventory_ledger import InventoryLedger
from .questionnaire import validate_responses

logger = logging.getLogger(__name__)


class RegistrationService:
    """
    Builds registrations and everything hanging off them.

    A registration, its purchase and purchase items, one attendee row per
    participant and their answers are written in one transaction together
    with the inventory reservation. Nothing here talks to the payment
    provider except the best-effort intent cancel after a cancellation.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = InventoryLedger(db)
        self.credentials = GuestCredentialIssuer(db)

    # ------------------------------------------------------------------ #
    # Create
    # ------------------------------------------------------------------ #

    def create_registration(
        self,
        registration_in: RegistrationCreate,
        *,
        user_id: Optional[str] = None,
    ) -> RegistrationCreateResponse:
        """
        Validate a registration request and persist it atomically.

        Returns the new registration id and, for paid registrations made
        without an account, the plaintext guest payment token.
        """
        event = crud.event.get(self.db, id=registration_in.event_id)
        ticket_types = self._validate_request(event, registration_in)

        try:
            registration_id, status, guest_token = self._persist(
                registration_in, user_id=user_id
            )
        except (OperationalError, IntegrityError) as e:
            logger.warning(
                f"Registration for event {registration_in.event_id} failed after retry: {e}"
            )
            raise ConflictError(
                "Registration could not be completed because of concurrent updates; please retry"
            )

        logger.info(
            f"Registration {registration_id} created for event {event.id} "
            f"({len(registration_in.participants)} attendee(s), status={status.value}, "
            f"ticket types={sorted(ticket_types)})"
        )

        if status == RegistrationStatus.confirmed:
            message = "Registration confirmed"
        else:
            message = "Registration created; complete payment to confirm"

        return RegistrationCreateResponse(
            message=message,
            registration_id=registration_id,
            status=status,
            guest_token=guest_token,
        )

    def _validate_request(
        self, event: Optional[Event], registration_in: RegistrationCreate
    ) -> Dict[str, TicketType]:
        """Checks that need no locks; cheapest first."""
        participants = registration_in.participants
        tickets = registration_in.tickets

        if not participants:
            raise ValidationError("At least one participant is required", field="participants")
        if event is None:
            raise NotFoundError("Event not found", field="eventId")
        if event.status != EventStatus.published.value:
            raise ValidationError("Event is not open for registration", field="eventId")

        ticket_types: Dict[str, TicketType] = {}

        if event.is_free:
            if tickets:
                raise ValidationError("Free events do not take tickets", field="tickets")
            if any(p.ticket_type_id for p in participants):
                raise ValidationError(
                    "Participants of a free event cannot be assigned a ticket type",
                    field="participants",
                )
        else:
            if not tickets:
                raise ValidationError("Tickets are required for paid events", field="tickets")

            line_ids = [line.ticket_type_id for line in tickets]
            if len(set(line_ids)) != len(line_ids):
                raise ValidationError("Each ticket type may appear only once", field="tickets")

            for line in tickets:
                ticket_type = crud.ticket_type.get(self.db, id=line.ticket_type_id)
                if ticket_type is None or ticket_type.event_id != event.id:
                    raise NotFoundError(
                        f"Ticket type {line.ticket_type_id} not found", field="tickets"
                    )
                ticket_types[ticket_type.id] = ticket_type

            if sum(line.quantity for line in tickets) != len(participants):
                raise ValidationError(
                    "Total ticket quantity must equal the number of participants",
                    field="participants",
                )

            assigned = Counter(p.ticket_type_id for p in participants)
            for line in tickets:
                if assigned.get(line.ticket_type_id, 0) != line.quantity:
                    raise ValidationError(
                        f"{line.quantity} participant(s) must be assigned ticket type "
                        f"{line.ticket_type_id}",
                        field="participants",
                    )

            currencies = {ticket_type.currency.upper() for ticket_type in ticket_types.values()}
            if len(currencies) > 1:
                raise ValidationError(
                    "All tickets in a registration must share one currency", field="tickets"
                )

        questions = crud.event_question.get_by_event(self.db, event_id=event.id)
        for index, participant in enumerate(participants):
            validate_responses(
                questions, participant.responses, field=f"participants[{index}].responses"
            )

        return ticket_types

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        retry=retry_if_exception_type((OperationalError, IntegrityError)),
        reraise=True,
    )
    def _persist(
        self, registration_in: RegistrationCreate, *, user_id: Optional[str]
    ) -> Tuple[str, RegistrationStatus, Optional[str]]:
        """
        Write the whole aggregate in one transaction.

        Serialization failures, deadlocks and a lost race on a new
        participant email roll back and are retried once.
        """
        participants = registration_in.participants

        with transaction(self.db):
            event = crud.event.get(self.db, id=registration_in.event_id, for_update=True)
            if event is None:
                raise NotFoundError("Event not found", field="eventId")
            if event.status != EventStatus.published.value:
                raise TicketNotOnSaleError("Event is not open for registration", field="eventId")

            self.ledger.check_event_capacity(event, len(participants))

            reserved: Dict[str, TicketType] = {}
            if not event.is_free:
                reserved = self.ledger.reserve_lines(
                    (line.ticket_type_id, line.quantity) for line in registration_in.tickets
                )

            primary = crud.participant.get_or_create(
                self.db, obj_in=participants[0], user_id=user_id
            )
            status = (
                RegistrationStatus.confirmed if event.is_free else RegistrationStatus.pending
            )
            registration = crud.registration.create_registration(
                self.db,
                event_id=event.id,
                participant_id=primary.id,
                user_id=user_id,
                status=status,
            )

            guest_token = None
            if not event.is_free:
                purchase = crud.purchase.create_with_items(
                    self.db,
                    registration_id=registration.id,
                    currency=next(iter(reserved.values())).currency.upper(),
                    lines=[
                        (reserved[line.ticket_type_id], line.quantity)
                        for line in registration_in.tickets
                    ],
                )
                if user_id is None:
                    guest_token = self.credentials.issue(purchase)

            for position, participant_in in enumerate(participants):
                if position == 0:
                    participant = primary
                else:
                    participant = crud.participant.get_or_create(self.db, obj_in=participant_in)
                attendee = crud.registration.add_attendee(
                    self.db,
                    registration_id=registration.id,
                    participant_id=participant.id,
                    ticket_type_id=participant_in.ticket_type_id,
                    position=position,
                )
                for response in participant_in.responses:
                    crud.registration.add_response(
                        self.db,
                        registration_participant_id=attendee.id,
                        event_question_id=response.question_id,
                        response_text=response.answer_text,
                    )

            crud.audit_log.log_action(
                self.db,
                action="registration.created",
                actor_type="user" if user_id else "guest",
                actor_id=user_id,
                entity_type="registration",
                entity_id=registration.id,
                event_id=event.id,
                new_state={
                    "status": status.value,
                    "attendees": len(participants),
                    "tickets": {
                        line.ticket_type_id: line.quantity for line in registration_in.tickets
                    },
                },
            )
            registration_id = registration.id

        return registration_id, status, guest_token

    # ------------------------------------------------------------------ #
    # Read
    # ------------------------------------------------------------------ #

    def get_registration(
        self, registration_id: str, *, current_user: TokenPayload
    ) -> Registration:
        """Registration detail for its owner, the event organizer or an admin."""
        registration = crud.registration.get_with_details(
            self.db, registration_id=registration_id
        )
        if registration is None:
            raise NotFoundError("Registration not found")

        is_organizer = registration.event.owner_id == current_user.sub
        if not (_is_owner(registration, current_user) or is_organizer or current_user.is_admin):
            raise AuthorizationError()
        return registration

    def list_registrations(
        self,
        *,
        current_user: TokenPayload,
        event_id: Optional[str] = None,
        user_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        """
        Page through registrations visible to the caller.

        Admins see everything and may filter freely. The organizer of
        `event_id` sees that event's registrations. Everyone else only ever
        sees their own, and asking for another user's is refused.
        """
        if current_user.is_admin:
            pass
        elif event_id is not None:
            event = crud.event.get(self.db, id=event_id)
            if event is None or event.owner_id != current_user.sub:
                user_id = current_user.sub
        elif user_id is None:
            user_id = current_user.sub
        elif user_id != current_user.sub:
            raise AuthorizationError()

        registrations, total_count = crud.registration.get_multi_filtered(
            self.db,
            event_id=event_id,
            user_id=user_id,
            skip=(page - 1) * limit,
            limit=limit,
        )
        return {
            "data": registrations,
            "pagination": {
                "total_items": total_count,
                "total_pages": math.ceil(total_count / limit),
                "current_page": page,
            },
        }

    # ------------------------------------------------------------------ #
    # Cancel / status changes
    # ------------------------------------------------------------------ #

    async def cancel_registration(
        self, registration_id: str, *, current_user: TokenPayload
    ) -> Registration:
        """
        Cancel a registration and return its tickets to stock.

        Cancelling twice is a no-op. A still-open provider intent is
        cancelled after the commit; failure there is logged, not raised.
        """
        open_intent: Optional[Tuple[str, str]] = None

        with transaction(self.db):
            registration = crud.registration.get(self.db, id=registration_id, for_update=True)
            if registration is None:
                raise NotFoundError("Registration not found")

            is_owner = _is_owner(registration, current_user)
            if not (is_owner or current_user.is_admin):
                raise AuthorizationError()

            if registration.status == RegistrationStatus.cancelled.value:
                logger.info(f"Registration {registration.id} already cancelled")
                return registration

            open_intent = self._apply_cancellation(
                registration,
                actor_type="admin" if current_user.is_admin and not is_owner else "user",
                actor_id=current_user.sub,
            )

        await self._cancel_open_intent(open_intent)
        self.db.refresh(registration)
        return registration

    async def update_registration_status(
        self,
        registration_id: str,
        *,
        status: RegistrationStatus,
        current_user: TokenPayload,
    ) -> Registration:
        """
        Set a registration's status on behalf of the event organizer or an admin.

        Setting the current status again changes nothing. A cancelled
        registration is final. Moving to `cancelled` releases inventory and
        the open intent exactly like a regular cancellation.
        """
        open_intent: Optional[Tuple[str, str]] = None

        with transaction(self.db):
            registration = crud.registration.get(self.db, id=registration_id, for_update=True)
            if registration is None:
                raise NotFoundError("Registration not found")

            is_organizer = registration.event.owner_id == current_user.sub
            if not (is_organizer or current_user.is_admin):
                raise AuthorizationError()

            if registration.status == status.value:
                return registration
            if registration.status == RegistrationStatus.cancelled.value:
                raise ValidationError(
                    "Cannot change status of a cancelled registration", field="status"
                )

            actor_type = "admin" if current_user.is_admin and not is_organizer else "organizer"
            if status == RegistrationStatus.cancelled:
                open_intent = self._apply_cancellation(
                    registration, actor_type=actor_type, actor_id=current_user.sub
                )
            else:
                previous_status = registration.status
                crud.registration.update_status(
                    self.db, registration=registration, status=status
                )
                crud.audit_log.log_action(
                    self.db,
                    action="registration.status_changed",
                    actor_type=actor_type,
                    actor_id=current_user.sub,
                    entity_type="registration",
                    entity_id=registration.id,
                    event_id=registration.event_id,
                    previous_state={"status": previous_status},
                    new_state={"status": status.value},
                )

        await self._cancel_open_intent(open_intent)
        self.db.refresh(registration)
        return registration

    def _apply_cancellation(
        self, registration: Registration, *, actor_type: str, actor_id: str
    ) -> Optional[Tuple[str, str]]:
        """Cancel a locked registration; returns the provider intent still open, if any."""
        open_intent: Optional[Tuple[str, str]] = None
        previous_status = registration.status
        crud.registration.update_status(
            self.db, registration=registration, status=RegistrationStatus.cancelled
        )

        purchase = crud.purchase.get_by_registration(self.db, registration_id=registration.id)
        if purchase is not None:
            self.ledger.release_purchase(purchase)
            payment = purchase.payment
            if payment is not None and payment.status == PaymentStatus.pending.value:
                open_intent = (payment.provider_code, payment.provider_intent_id)
            if payment is not None and payment.status == PaymentStatus.completed.value:
                logger.warning(
                    f"Cancelled registration {registration.id} has a completed payment "
                    f"{payment.id}; refund must be issued separately"
                )

        crud.audit_log.log_action(
            self.db,
            action="registration.cancelled",
            actor_type=actor_type,
            actor_id=actor_id,
            entity_type="registration",
            entity_id=registration.id,
            event_id=registration.event_id,
            previous_state={"status": previous_status},
            new_state={"status": RegistrationStatus.cancelled.value},
        )
        return open_intent

    async def _cancel_open_intent(self, open_intent: Optional[Tuple[str, str]]) -> None:
        if open_intent is None:
            return
        provider_code, intent_id = open_intent
        try:
            provider = get_payment_provider(provider_code)
            await provider.cancel_payment_intent(intent_id)
        except (PaymentError, ValueError) as e:
            logger.warning(f"Failed to cancel payment intent {intent_id}: {e}")


def _is_owner(registration: Registration, current_user: TokenPayload) -> bool:
    return not registration.is_guest and registration.user_id == current_user.sub
