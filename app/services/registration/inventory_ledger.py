# app/services/registration/inventory_ledger.py
"""
Ticket inventory ledger.

All changes to `TicketType.quantity_sold` go through here. Every method
expects to run inside the caller's transaction and takes row locks
(SELECT ... FOR UPDATE) before reading counters, so two requests can never
both take the last unit.
"""
import logging
from typing import Dict, Iterable, Tuple

from sqlalchemy.orm import Session

from app import crud
from app.core.exceptions import (
    EventCapacityError,
    InsufficientInventoryError,
    NotFoundError,
    TicketNotOnSaleError,
)
from app.models.event import Event
from app.models.purchase import Purchase
from app.models.ticket_type import TicketType
from app.schemas.event import EventStatus, TicketTypeStatus

logger = logging.getLogger(__name__)


class InventoryLedger:
    def __init__(self, db: Session):
        self.db = db

    def reserve(self, ticket_type_id: str, quantity: int) -> TicketType:
        """Reserve `quantity` units of a single ticket type."""
        return self.reserve_lines([(ticket_type_id, quantity)])[ticket_type_id]

    def reserve_lines(self, lines: Iterable[Tuple[str, int]]) -> Dict[str, TicketType]:
        """
        Reserve several ticket lines atomically.

        Raises:
            NotFoundError: a ticket type disappeared
            TicketNotOnSaleError: inactive, outside its sales window, or the
                event is not open for registration
            InsufficientInventoryError: not enough units left
        """
        requested: Dict[str, int] = {}
        for ticket_type_id, quantity in lines:
            requested[ticket_type_id] = requested.get(ticket_type_id, 0) + quantity

        locked = crud.ticket_type.get_many_for_update(self.db, ids=list(requested))
        by_id = {ticket_type.id: ticket_type for ticket_type in locked}

        for ticket_type_id in sorted(requested):
            ticket_type = by_id.get(ticket_type_id)
            if ticket_type is None:
                raise NotFoundError(f"Ticket type {ticket_type_id} not found", field="tickets")

            quantity = requested[ticket_type_id]
            self._ensure_on_sale(ticket_type)

            if ticket_type.quantity_sold + quantity > ticket_type.quantity_total:
                logger.info(
                    f"Reservation rejected for ticket type {ticket_type.id}: "
                    f"requested {quantity}, available {ticket_type.quantity_available}"
                )
                raise InsufficientInventoryError(
                    f"Only {ticket_type.quantity_available} tickets left for {ticket_type.name}",
                    field="tickets",
                )

            crud.ticket_type.increment_quantity_sold(
                self.db, ticket_type=ticket_type, quantity=quantity
            )

        self.db.flush()
        return by_id

    def release_purchase(self, purchase: Purchase) -> bool:
        """
        Return every unit of a purchase to stock.

        Idempotent: the purchase row is locked and stamped, so a second call
        (or a concurrent one) releases nothing. Returns True if stock moved.
        """
        locked = crud.purchase.get(self.db, id=purchase.id, for_update=True)
        if locked is None or locked.inventory_released_at is not None:
            return False

        quantities: Dict[str, int] = {}
        for item in locked.items:
            quantities[item.ticket_type_id] = quantities.get(item.ticket_type_id, 0) + item.quantity

        for ticket_type in crud.ticket_type.get_many_for_update(self.db, ids=list(quantities)):
            crud.ticket_type.decrement_quantity_sold(
                self.db, ticket_type=ticket_type, quantity=quantities[ticket_type.id]
            )

        crud.purchase.mark_inventory_released(self.db, purchase=locked)
        logger.info(f"Released inventory for purchase {locked.id}: {quantities}")
        return True

    def check_event_capacity(self, event: Event, additional_attendees: int) -> None:
        """
        Enforce the event-wide attendee cap.

        The caller must hold the lock on the event row; seats are counted
        across pending and confirmed registrations.
        """
        if event.capacity is None:
            return
        taken = crud.registration.count_active_attendees(self.db, event_id=event.id)
        if taken + additional_attendees > event.capacity:
            raise EventCapacityError(
                f"Only {max(0, event.capacity - taken)} places left for this event",
                field="participants",
            )

    def _ensure_on_sale(self, ticket_type: TicketType) -> None:
        if ticket_type.event is None or ticket_type.event.status != EventStatus.published.value:
            raise TicketNotOnSaleError("Event is not open for registration", field="eventId")
        if ticket_type.status == TicketTypeStatus.sold_out.value:
            raise InsufficientInventoryError(f"{ticket_type.name} is sold out", field="tickets")
        if ticket_type.status != TicketTypeStatus.active.value:
            raise TicketNotOnSaleError(f"{ticket_type.name} is not on sale", field="tickets")
        if not ticket_type.is_within_sales_window:
            raise TicketNotOnSaleError(
                f"{ticket_type.name} is outside its sales window", field="tickets"
            )
