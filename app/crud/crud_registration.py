# app/crud/crud_registration.py
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.crud.base import CRUDBase
from app.models.purchase import Purchase
from app.models.registration import Registration, RegistrationParticipant, Response
from app.schemas.registration import RegistrationCreate, RegistrationStatus

ACTIVE_STATUSES = (RegistrationStatus.pending.value, RegistrationStatus.confirmed.value)


class CRUDRegistration(CRUDBase[Registration, RegistrationCreate, RegistrationCreate]):
    def get_with_details(self, db: Session, *, registration_id: str) -> Optional[Registration]:
        """Load a registration with attendees, responses, purchase items and payment."""
        return (
            db.query(self.model)
            .options(
                selectinload(self.model.participant),
                selectinload(self.model.event),
                selectinload(self.model.attendees).selectinload(
                    RegistrationParticipant.participant
                ),
                selectinload(self.model.attendees).selectinload(
                    RegistrationParticipant.responses
                ),
                selectinload(self.model.purchase).selectinload(Purchase.items),
                selectinload(self.model.purchase).selectinload(Purchase.payment),
            )
            .filter(self.model.id == registration_id)
            .first()
        )

    def get_multi_filtered(
        self,
        db: Session,
        *,
        event_id: Optional[str] = None,
        user_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Registration], int]:
        """Newest first, with the primary participant loaded; returns (page, total)."""
        query = db.query(self.model)
        if event_id is not None:
            query = query.filter(self.model.event_id == event_id)
        if user_id is not None:
            query = query.filter(self.model.user_id == user_id)

        total_count = query.count()
        registrations = (
            query.options(selectinload(self.model.participant))
            .order_by(self.model.created_at.desc(), self.model.id)
            .offset(skip)
            .limit(limit)
            .all()
        )
        return registrations, total_count

    def count_active_attendees(self, db: Session, *, event_id: str) -> int:
        """Count attendee seats held by pending or confirmed registrations."""
        return (
            db.query(func.count(RegistrationParticipant.id))
            .join(Registration, Registration.id == RegistrationParticipant.registration_id)
            .filter(
                Registration.event_id == event_id,
                Registration.status.in_(ACTIVE_STATUSES),
            )
            .scalar()
            or 0
        )

    def create_registration(
        self,
        db: Session,
        *,
        event_id: str,
        participant_id: str,
        user_id: Optional[str],
        status: RegistrationStatus,
    ) -> Registration:
        db_obj = Registration(
            event_id=event_id,
            participant_id=participant_id,
            user_id=user_id,
            status=status.value,
        )
        db.add(db_obj)
        db.flush()
        return db_obj

    def add_attendee(
        self,
        db: Session,
        *,
        registration_id: str,
        participant_id: str,
        ticket_type_id: Optional[str],
        position: int,
    ) -> RegistrationParticipant:
        attendee = RegistrationParticipant(
            registration_id=registration_id,
            participant_id=participant_id,
            ticket_type_id=ticket_type_id,
            position=position,
        )
        db.add(attendee)
        db.flush()
        return attendee

    def add_response(
        self,
        db: Session,
        *,
        registration_participant_id: str,
        event_question_id: str,
        response_text: str,
    ) -> Response:
        response = Response(
            registration_participant_id=registration_participant_id,
            event_question_id=event_question_id,
            response_text=response_text,
        )
        db.add(response)
        db.flush()
        return response

    def update_status(
        self, db: Session, *, registration: Registration, status: RegistrationStatus
    ) -> Registration:
        registration.status = status.value
        db.add(registration)
        db.flush()
        return registration


registration = CRUDRegistration(Registration)
