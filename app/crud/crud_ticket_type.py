# app/crud/crud_ticket_type.py
from typing import List, Sequence

from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.ticket_type import TicketType
from app.schemas.event import TicketTypeCreate, TicketTypeUpdate, TicketTypeStatus


class CRUDTicketType(CRUDBase[TicketType, TicketTypeCreate, TicketTypeUpdate]):
    """CRUD operations for TicketType model."""

    def get_by_event(self, db: Session, *, event_id: str) -> List[TicketType]:
        """Get all ticket types for an event."""
        return (
            db.query(self.model)
            .filter(self.model.event_id == event_id)
            .order_by(self.model.sort_order, self.model.created_at)
            .all()
        )

    def get_many_for_update(
        self, db: Session, *, ids: Sequence[str]
    ) -> List[TicketType]:
        """
        Lock several ticket types with SELECT ... FOR UPDATE.

        Rows are locked in ascending id order so concurrent multi-line
        reservations cannot deadlock each other.
        """
        if not ids:
            return []
        return (
            db.query(self.model)
            .filter(self.model.id.in_(sorted(set(ids))))
            .order_by(self.model.id)
            .with_for_update()
            .populate_existing()
            .all()
        )

    def create(self, db: Session, *, obj_in: TicketTypeCreate) -> TicketType:
        """Create a new ticket type for an event."""
        data = obj_in.model_dump()
        data["status"] = obj_in.status.value
        db_obj = TicketType(**data)
        db.add(db_obj)
        db.flush()
        return db_obj

    def increment_quantity_sold(
        self, db: Session, *, ticket_type: TicketType, quantity: int
    ) -> TicketType:
        """Add sold units to a ticket type the caller has already locked."""
        ticket_type.quantity_sold += quantity
        if ticket_type.quantity_sold >= ticket_type.quantity_total:
            ticket_type.status = TicketTypeStatus.sold_out.value
        db.add(ticket_type)
        return ticket_type

    def decrement_quantity_sold(
        self, db: Session, *, ticket_type: TicketType, quantity: int
    ) -> TicketType:
        """Return units to a locked ticket type (cancellations)."""
        ticket_type.quantity_sold = max(0, ticket_type.quantity_sold - quantity)
        if (
            ticket_type.status == TicketTypeStatus.sold_out.value
            and ticket_type.quantity_sold < ticket_type.quantity_total
        ):
            ticket_type.status = TicketTypeStatus.active.value
        db.add(ticket_type)
        return ticket_type


ticket_type = CRUDTicketType(TicketType)
