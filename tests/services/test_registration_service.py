"""
Tests for RegistrationService.

Covers free and paid registration, request validation, custom question
answers, read and list authorization, cancellation with stock release and
organizer status changes.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app import crud
from app.core.exceptions import (
    AuthorizationError,
    EventCapacityError,
    InsufficientInventoryError,
    NotFoundError,
    ValidationError,
)
from app.models.registration import RegistrationParticipant
from app.schemas.event import EventStatus, QuestionType
from app.schemas.payment import PaymentCreate
from app.schemas.registration import (
    QuestionResponseIn,
    RegistrationCreate,
    RegistrationStatus,
    TicketSelection,
)
from app.services.registration.registration_service import RegistrationService
from tests.utils.auth import make_token_payload
from tests.utils.event import create_question, create_random_event, create_ticket_type
from tests.utils.registration import (
    free_registration_in,
    paid_registration_in,
    participant_in,
)


def run_async(coro):
    """Helper to run async coroutines in sync tests."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ==========================================================================
# Free events
# ==========================================================================


class TestFreeRegistration:
    def test_free_event_is_confirmed_without_purchase(self, db):
        event = create_random_event(db, is_free=True)

        result = RegistrationService(db).create_registration(
            free_registration_in(event.id, ["a@example.com", "b@example.com"])
        )

        assert result.status == RegistrationStatus.confirmed
        assert result.guest_token is None
        registration = crud.registration.get_with_details(
            db, registration_id=result.registration_id
        )
        assert registration.status == RegistrationStatus.confirmed.value
        assert len(registration.attendees) == 2
        assert registration.purchase is None
        assert [a.participant.email for a in registration.attendees] == [
            "a@example.com",
            "b@example.com",
        ]

    def test_free_event_rejects_tickets(self, db):
        event = create_random_event(db, is_free=True)
        registration_in = RegistrationCreate(
            event_id=event.id,
            tickets=[TicketSelection(ticket_type_id="tt_any", quantity=1)],
            participants=[participant_in()],
        )

        with pytest.raises(ValidationError) as exc_info:
            RegistrationService(db).create_registration(registration_in)
        assert exc_info.value.field == "tickets"

    def test_event_capacity_enforced(self, db):
        event = create_random_event(db, is_free=True, capacity=2)
        service = RegistrationService(db)
        service.create_registration(free_registration_in(event.id, ["a@example.com"]))

        with pytest.raises(EventCapacityError):
            service.create_registration(
                free_registration_in(event.id, ["b@example.com", "c@example.com"])
            )


# ==========================================================================
# Paid events
# ==========================================================================


class TestPaidRegistration:
    def test_guest_registration_is_pending_with_token(self, db):
        event = create_random_event(db)
        ticket_type = create_ticket_type(db, event, price=2500, quantity_total=5)

        result = RegistrationService(db).create_registration(
            paid_registration_in(event.id, ticket_type, ["a@example.com", "b@example.com"])
        )

        assert result.status == RegistrationStatus.pending
        assert result.guest_token
        registration = crud.registration.get_with_details(
            db, registration_id=result.registration_id
        )
        assert registration.user_id is None
        assert registration.purchase.total_price == 5000
        assert registration.purchase.currency == "AUD"
        assert [(i.quantity, i.unit_price) for i in registration.purchase.items] == [(2, 2500)]
        db.refresh(ticket_type)
        assert ticket_type.quantity_sold == 2

    def test_signed_in_registration_gets_no_guest_token(self, db):
        event = create_random_event(db)
        ticket_type = create_ticket_type(db, event)

        result = RegistrationService(db).create_registration(
            paid_registration_in(event.id, ticket_type, ["a@example.com"]),
            user_id="user_1",
        )

        assert result.guest_token is None
        registration = crud.registration.get(db, id=result.registration_id)
        assert registration.user_id == "user_1"
        assert registration.participant.user_id == "user_1"

    def test_attendee_count_matches_ticket_quantity(self, db):
        event = create_random_event(db)
        vip = create_ticket_type(db, event, name="VIP", price=9000)
        general = create_ticket_type(db, event, name="General", price=2000)
        registration_in = RegistrationCreate(
            event_id=event.id,
            tickets=[
                TicketSelection(ticket_type_id=vip.id, quantity=1),
                TicketSelection(ticket_type_id=general.id, quantity=2),
            ],
            participants=[
                participant_in("a@example.com", ticket_type_id=vip.id),
                participant_in("b@example.com", ticket_type_id=general.id),
                participant_in("c@example.com", ticket_type_id=general.id),
            ],
        )

        result = RegistrationService(db).create_registration(registration_in)

        registration = crud.registration.get_with_details(
            db, registration_id=result.registration_id
        )
        assert len(registration.attendees) == sum(
            item.quantity for item in registration.purchase.items
        )
        assert registration.purchase.total_price == 13000

    def test_price_is_frozen_on_purchase(self, db):
        event = create_random_event(db)
        ticket_type = create_ticket_type(db, event, price=1500)
        result = RegistrationService(db).create_registration(
            paid_registration_in(event.id, ticket_type, ["a@example.com"])
        )

        ticket_type.price = 9999
        db.commit()

        purchase = crud.purchase.get_by_registration(db, registration_id=result.registration_id)
        assert purchase.items[0].unit_price == 1500
        assert purchase.total_price == 1500

    def test_last_unit_goes_to_first_request(self, db):
        event = create_random_event(db)
        ticket_type = create_ticket_type(db, event, quantity_total=1)
        service = RegistrationService(db)

        service.create_registration(paid_registration_in(event.id, ticket_type, ["a@example.com"]))
        with pytest.raises(InsufficientInventoryError):
            service.create_registration(
                paid_registration_in(event.id, ticket_type, ["b@example.com"])
            )

        db.refresh(ticket_type)
        assert ticket_type.quantity_sold == 1
        assert db.query(RegistrationParticipant).count() == 1

    def test_failed_registration_leaves_no_rows(self, db):
        event = create_random_event(db)
        scarce = create_ticket_type(db, event, name="Scarce", quantity_total=1)
        registration_in = paid_registration_in(
            event.id, scarce, ["a@example.com", "b@example.com"]
        )

        with pytest.raises(InsufficientInventoryError):
            RegistrationService(db).create_registration(registration_in)

        assert crud.participant.get_by_email(db, email="a@example.com") is None
        assert db.query(RegistrationParticipant).count() == 0

    def test_existing_participant_is_reused(self, db):
        event = create_random_event(db)
        ticket_type = create_ticket_type(db, event)
        service = RegistrationService(db)
        service.create_registration(paid_registration_in(event.id, ticket_type, ["a@example.com"]))

        service.create_registration(
            paid_registration_in(event.id, ticket_type, ["A@Example.com"])
        )

        participant = crud.participant.get_by_email(db, email="a@example.com")
        assert participant is not None
        assert db.query(RegistrationParticipant).filter_by(
            participant_id=participant.id
        ).count() == 2


# ==========================================================================
# Validation
# ==========================================================================


class TestRegistrationValidation:
    def test_participants_required(self, db):
        event = create_random_event(db, is_free=True)

        with pytest.raises(ValidationError) as exc_info:
            RegistrationService(db).create_registration(RegistrationCreate(event_id=event.id))
        assert exc_info.value.field == "participants"

    def test_unknown_event(self, db):
        with pytest.raises(NotFoundError):
            RegistrationService(db).create_registration(
                free_registration_in("evt_missing", ["a@example.com"])
            )

    def test_unpublished_event(self, db):
        event = create_random_event(db, is_free=True, status=EventStatus.draft)

        with pytest.raises(ValidationError):
            RegistrationService(db).create_registration(
                free_registration_in(event.id, ["a@example.com"])
            )

    def test_paid_event_requires_tickets(self, db):
        event = create_random_event(db)

        with pytest.raises(ValidationError) as exc_info:
            RegistrationService(db).create_registration(
                free_registration_in(event.id, ["a@example.com"])
            )
        assert exc_info.value.field == "tickets"

    def test_quantity_must_match_participants(self, db):
        event = create_random_event(db)
        ticket_type = create_ticket_type(db, event)
        registration_in = RegistrationCreate(
            event_id=event.id,
            tickets=[TicketSelection(ticket_type_id=ticket_type.id, quantity=2)],
            participants=[participant_in(ticket_type_id=ticket_type.id)],
        )

        with pytest.raises(ValidationError):
            RegistrationService(db).create_registration(registration_in)

    def test_participant_assignment_must_match_lines(self, db):
        event = create_random_event(db)
        vip = create_ticket_type(db, event, name="VIP")
        general = create_ticket_type(db, event, name="General")
        registration_in = RegistrationCreate(
            event_id=event.id,
            tickets=[
                TicketSelection(ticket_type_id=vip.id, quantity=1),
                TicketSelection(ticket_type_id=general.id, quantity=1),
            ],
            participants=[
                participant_in("a@example.com", ticket_type_id=vip.id),
                participant_in("b@example.com", ticket_type_id=vip.id),
            ],
        )

        with pytest.raises(ValidationError):
            RegistrationService(db).create_registration(registration_in)

    def test_ticket_type_from_other_event(self, db):
        event = create_random_event(db)
        other = create_random_event(db, name="Other")
        ticket_type = create_ticket_type(db, other)

        with pytest.raises(NotFoundError):
            RegistrationService(db).create_registration(
                paid_registration_in(event.id, ticket_type, ["a@example.com"])
            )

    def test_duplicate_ticket_lines(self, db):
        event = create_random_event(db)
        ticket_type = create_ticket_type(db, event)
        registration_in = RegistrationCreate(
            event_id=event.id,
            tickets=[
                TicketSelection(ticket_type_id=ticket_type.id, quantity=1),
                TicketSelection(ticket_type_id=ticket_type.id, quantity=1),
            ],
            participants=[
                participant_in("a@example.com", ticket_type_id=ticket_type.id),
                participant_in("b@example.com", ticket_type_id=ticket_type.id),
            ],
        )

        with pytest.raises(ValidationError):
            RegistrationService(db).create_registration(registration_in)

    def test_mixed_currencies_rejected(self, db):
        event = create_random_event(db)
        aud = create_ticket_type(db, event, name="AUD", currency="AUD")
        usd = create_ticket_type(db, event, name="USD", currency="USD")
        registration_in = RegistrationCreate(
            event_id=event.id,
            tickets=[
                TicketSelection(ticket_type_id=aud.id, quantity=1),
                TicketSelection(ticket_type_id=usd.id, quantity=1),
            ],
            participants=[
                participant_in("a@example.com", ticket_type_id=aud.id),
                participant_in("b@example.com", ticket_type_id=usd.id),
            ],
        )

        with pytest.raises(ValidationError):
            RegistrationService(db).create_registration(registration_in)


# ==========================================================================
# Custom questions
# ==========================================================================


class TestQuestionResponses:
    def test_answers_are_stored_per_attendee(self, db):
        event = create_random_event(db, is_free=True)
        size = create_question(
            db, event, text="Shirt size", question_type=QuestionType.dropdown,
            is_required=True, options=["S", "M", "L"],
        )
        diet = create_question(
            db, event, text="Diet", question_type=QuestionType.checkbox,
            options=["Vegan", "Halal"],
        )
        registration_in = RegistrationCreate(
            event_id=event.id,
            participants=[
                participant_in(
                    "a@example.com",
                    responses=[
                        QuestionResponseIn(question_id=size.id, answer_text="M"),
                        QuestionResponseIn(question_id=diet.id, answer_text=json.dumps(["Vegan"])),
                    ],
                ),
                participant_in(
                    "b@example.com",
                    responses=[QuestionResponseIn(question_id=size.id, answer_text="L")],
                ),
            ],
        )

        result = RegistrationService(db).create_registration(registration_in)

        registration = crud.registration.get_with_details(
            db, registration_id=result.registration_id
        )
        first, second = registration.attendees
        assert {r.event_question_id: r.response_text for r in first.responses} == {
            size.id: "M",
            diet.id: '["Vegan"]',
        }
        assert [r.response_text for r in second.responses] == ["L"]

    def test_missing_required_answer_names_the_attendee(self, db):
        event = create_random_event(db, is_free=True)
        create_question(db, event, text="Company", is_required=True)
        registration_in = RegistrationCreate(
            event_id=event.id,
            participants=[participant_in("a@example.com"), participant_in("b@example.com")],
        )

        with pytest.raises(ValidationError) as exc_info:
            RegistrationService(db).create_registration(registration_in)
        assert exc_info.value.field == "participants[0].responses"


# ==========================================================================
# Read access
# ==========================================================================


class TestGetRegistration:
    def _registration(self, db, user_id="user_owner"):
        event = create_random_event(db, is_free=True, owner_id="organizer_1")
        result = RegistrationService(db).create_registration(
            free_registration_in(event.id, ["a@example.com"]), user_id=user_id
        )
        return result.registration_id

    def test_owner_can_read(self, db):
        registration_id = self._registration(db)

        registration = RegistrationService(db).get_registration(
            registration_id, current_user=make_token_payload("user_owner")
        )
        assert registration.id == registration_id

    def test_organizer_can_read(self, db):
        registration_id = self._registration(db)

        RegistrationService(db).get_registration(
            registration_id, current_user=make_token_payload("organizer_1")
        )

    def test_admin_can_read(self, db):
        registration_id = self._registration(db)

        RegistrationService(db).get_registration(
            registration_id, current_user=make_token_payload("someone", role="admin")
        )

    def test_stranger_is_denied(self, db):
        registration_id = self._registration(db)

        with pytest.raises(AuthorizationError):
            RegistrationService(db).get_registration(
                registration_id, current_user=make_token_payload("stranger")
            )

    def test_missing_registration(self, db):
        with pytest.raises(NotFoundError):
            RegistrationService(db).get_registration(
                "reg_missing", current_user=make_token_payload()
            )


# ==========================================================================
# Cancellation
# ==========================================================================


class TestCancelRegistration:
    def test_cancel_releases_stock_and_is_idempotent(self, db):
        event = create_random_event(db)
        ticket_type = create_ticket_type(db, event, quantity_total=2)
        service = RegistrationService(db)
        result = service.create_registration(
            paid_registration_in(event.id, ticket_type, ["a@example.com", "b@example.com"]),
            user_id="user_1",
        )
        user = make_token_payload("user_1")

        registration = run_async(service.cancel_registration(result.registration_id, current_user=user))
        run_async(service.cancel_registration(result.registration_id, current_user=user))

        assert registration.status == RegistrationStatus.cancelled.value
        db.refresh(ticket_type)
        assert ticket_type.quantity_sold == 0
        history = crud.audit_log.get_by_entity(
            db, entity_type="registration", entity_id=result.registration_id
        )
        assert sorted(entry.action for entry in history) == [
            "registration.cancelled",
            "registration.created",
        ]

    def test_cancel_cancels_open_payment_intent(self, db):
        event = create_random_event(db)
        ticket_type = create_ticket_type(db, event)
        service = RegistrationService(db)
        result = service.create_registration(
            paid_registration_in(event.id, ticket_type, ["a@example.com"]), user_id="user_1"
        )
        purchase = crud.purchase.get_by_registration(db, registration_id=result.registration_id)
        crud.payment.create_payment(
            db,
            obj_in=PaymentCreate(
                purchase_id=purchase.id,
                provider_code="stripe",
                provider_intent_id="pi_open",
                currency="AUD",
                amount=purchase.total_price,
            ),
        )
        db.commit()

        provider = MagicMock()
        provider.cancel_payment_intent = AsyncMock(return_value=None)
        with patch(
            "app.services.registration.registration_service.get_payment_provider",
            return_value=provider,
        ):
            run_async(
                service.cancel_registration(
                    result.registration_id, current_user=make_token_payload("user_1")
                )
            )

        provider.cancel_payment_intent.assert_awaited_once_with("pi_open")

    def test_only_owner_or_admin_may_cancel(self, db):
        event = create_random_event(db, is_free=True, owner_id="organizer_1")
        service = RegistrationService(db)
        result = service.create_registration(
            free_registration_in(event.id, ["a@example.com"]), user_id="user_1"
        )

        with pytest.raises(AuthorizationError):
            run_async(
                service.cancel_registration(
                    result.registration_id, current_user=make_token_payload("organizer_1")
                )
            )

        registration = run_async(
            service.cancel_registration(
                result.registration_id, current_user=make_token_payload("ops", role="admin")
            )
        )
        assert registration.status == RegistrationStatus.cancelled.value

    def test_cancelled_seats_free_up_capacity(self, db):
        event = create_random_event(db, is_free=True, capacity=1)
        service = RegistrationService(db)
        result = service.create_registration(
            free_registration_in(event.id, ["a@example.com"]), user_id="user_1"
        )
        run_async(
            service.cancel_registration(
                result.registration_id, current_user=make_token_payload("user_1")
            )
        )

        second = service.create_registration(free_registration_in(event.id, ["b@example.com"]))
        assert second.status == RegistrationStatus.confirmed


# ==========================================================================
# Listing
# ==========================================================================


class TestListRegistrations:
    def _seed(self, db):
        """Two events by different organizers; user_1 and user_2 register for each."""
        first = create_random_event(db, is_free=True, owner_id="organizer_1")
        second = create_random_event(db, is_free=True, owner_id="organizer_2")
        service = RegistrationService(db)
        for event in (first, second):
            for user_id in ("user_1", "user_2"):
                service.create_registration(
                    free_registration_in(event.id, [f"{user_id}@example.com"]), user_id=user_id
                )
        return first, second

    def _list(self, db, user, **filters):
        return RegistrationService(db).list_registrations(current_user=user, **filters)

    def test_admin_sees_everything(self, db):
        self._seed(db)

        page = self._list(db, make_token_payload("ops", role="admin"))

        assert len(page["data"]) == 4
        assert page["pagination"] == {"total_items": 4, "total_pages": 1, "current_page": 1}

    def test_admin_filters_by_user(self, db):
        self._seed(db)

        page = self._list(db, make_token_payload("ops", role="admin"), user_id="user_2")

        assert {r.user_id for r in page["data"]} == {"user_2"}
        assert page["pagination"]["total_items"] == 2

    def test_organizer_sees_their_event(self, db):
        first, _ = self._seed(db)

        page = self._list(db, make_token_payload("organizer_1"), event_id=first.id)

        assert {r.event_id for r in page["data"]} == {first.id}
        assert {r.user_id for r in page["data"]} == {"user_1", "user_2"}

    def test_attendee_filtering_by_event_sees_only_their_own(self, db):
        first, _ = self._seed(db)

        page = self._list(db, make_token_payload("user_1"), event_id=first.id)

        assert [(r.event_id, r.user_id) for r in page["data"]] == [(first.id, "user_1")]

    def test_default_is_own_registrations(self, db):
        self._seed(db)

        page = self._list(db, make_token_payload("user_2"))

        assert {r.user_id for r in page["data"]} == {"user_2"}
        assert page["pagination"]["total_items"] == 2

    def test_other_users_registrations_are_forbidden(self, db):
        self._seed(db)

        with pytest.raises(AuthorizationError):
            self._list(db, make_token_payload("user_1"), user_id="user_2")

    def test_pagination(self, db):
        self._seed(db)

        page = self._list(db, make_token_payload("ops", role="admin"), page=2, limit=3)

        assert len(page["data"]) == 1
        assert page["pagination"] == {"total_items": 4, "total_pages": 2, "current_page": 2}


# ==========================================================================
# Status changes
# ==========================================================================


class TestUpdateRegistrationStatus:
    def _paid(self, db, quantity_total=2):
        event = create_random_event(db, owner_id="organizer_1")
        ticket_type = create_ticket_type(db, event, quantity_total=quantity_total)
        result = RegistrationService(db).create_registration(
            paid_registration_in(event.id, ticket_type, ["a@example.com"]), user_id="user_1"
        )
        return result.registration_id, ticket_type

    def _update(self, db, registration_id, status, user):
        return run_async(
            RegistrationService(db).update_registration_status(
                registration_id, status=status, current_user=user
            )
        )

    def test_organizer_confirms(self, db):
        registration_id, ticket_type = self._paid(db)

        registration = self._update(
            db, registration_id, RegistrationStatus.confirmed, make_token_payload("organizer_1")
        )

        assert registration.status == RegistrationStatus.confirmed.value
        db.refresh(ticket_type)
        assert ticket_type.quantity_sold == 1
        history = crud.audit_log.get_by_entity(
            db, entity_type="registration", entity_id=registration_id
        )
        changes = [entry for entry in history if entry.action == "registration.status_changed"]
        assert len(changes) == 1
        assert changes[0].actor_type == "organizer"

    def test_admin_cancel_releases_stock(self, db):
        registration_id, ticket_type = self._paid(db)

        registration = self._update(
            db, registration_id, RegistrationStatus.cancelled, make_token_payload("ops", role="admin")
        )

        assert registration.status == RegistrationStatus.cancelled.value
        db.refresh(ticket_type)
        assert ticket_type.quantity_sold == 0
        purchase = crud.purchase.get_by_registration(db, registration_id=registration_id)
        assert purchase.inventory_released_at is not None

    def test_cancelled_is_final(self, db):
        registration_id, ticket_type = self._paid(db)
        organizer = make_token_payload("organizer_1")
        self._update(db, registration_id, RegistrationStatus.cancelled, organizer)

        with pytest.raises(ValidationError):
            self._update(db, registration_id, RegistrationStatus.confirmed, organizer)

        assert crud.registration.get(db, id=registration_id).status == "cancelled"
        db.refresh(ticket_type)
        assert ticket_type.quantity_sold == 0

    def test_same_status_is_a_no_op(self, db):
        registration_id, _ = self._paid(db)

        registration = self._update(
            db, registration_id, RegistrationStatus.pending, make_token_payload("organizer_1")
        )

        assert registration.status == RegistrationStatus.pending.value
        history = crud.audit_log.get_by_entity(
            db, entity_type="registration", entity_id=registration_id
        )
        assert [entry.action for entry in history] == ["registration.created"]

    def test_owner_is_not_organizer(self, db):
        registration_id, _ = self._paid(db)

        with pytest.raises(AuthorizationError):
            self._update(
                db, registration_id, RegistrationStatus.confirmed, make_token_payload("user_1")
            )

    def test_missing_registration(self, db):
        with pytest.raises(NotFoundError):
            self._update(
                db, "reg_missing", RegistrationStatus.confirmed, make_token_payload("organizer_1")
            )
