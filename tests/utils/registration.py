from typing import List, Optional

from app.models.ticket_type import TicketType
from app.schemas.registration import ParticipantIn, RegistrationCreate, TicketSelection


def participant_in(
    email: str = "ada@example.com",
    ticket_type_id: Optional[str] = None,
    **overrides,
) -> ParticipantIn:
    data = {
        "email": email,
        "first_name": "Ada",
        "last_name": "Lovelace",
        "ticket_type_id": ticket_type_id,
    }
    data.update(overrides)
    return ParticipantIn(**data)


def paid_registration_in(
    event_id: str, ticket_type: TicketType, emails: List[str]
) -> RegistrationCreate:
    """One ticket line covering every email, each attendee on that ticket type."""
    return RegistrationCreate(
        event_id=event_id,
        tickets=[TicketSelection(ticket_type_id=ticket_type.id, quantity=len(emails))],
        participants=[participant_in(email, ticket_type_id=ticket_type.id) for email in emails],
    )


def free_registration_in(event_id: str, emails: List[str]) -> RegistrationCreate:
    return RegistrationCreate(
        event_id=event_id,
        participants=[participant_in(email) for email in emails],
    )
