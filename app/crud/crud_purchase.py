# app/crud/crud_purchase.py
from typing import Iterable, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.purchase import Purchase
from app.models.purchase_item import PurchaseItem
from app.models.ticket_type import TicketType
from app.utils.time import utcnow


class CRUDPurchase(CRUDBase[Purchase, BaseModel, BaseModel]):
    def get_by_registration(
        self, db: Session, *, registration_id: str, for_update: bool = False
    ) -> Optional[Purchase]:
        query = db.query(self.model).filter(self.model.registration_id == registration_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def create_with_items(
        self,
        db: Session,
        *,
        registration_id: str,
        currency: str,
        lines: Iterable[Tuple[TicketType, int]],
    ) -> Purchase:
        """
        Create a purchase and its items.

        Unit prices and names are copied from the ticket types as they are
        now; later price changes never affect this purchase.
        """
        items = [
            PurchaseItem(
                ticket_type_id=ticket_type.id,
                ticket_type_name=ticket_type.name,
                quantity=quantity,
                unit_price=ticket_type.price,
            )
            for ticket_type, quantity in lines
        ]
        purchase = Purchase(
            registration_id=registration_id,
            currency=currency,
            total_price=sum(item.unit_price * item.quantity for item in items),
            items=items,
        )
        db.add(purchase)
        db.flush()
        return purchase

    def set_payment_token(
        self, db: Session, *, purchase: Purchase, token_hash: str, expires_at
    ) -> Purchase:
        purchase.payment_token_hash = token_hash
        purchase.payment_token_expires_at = expires_at
        db.add(purchase)
        db.flush()
        return purchase

    def mark_inventory_released(self, db: Session, *, purchase: Purchase) -> Purchase:
        purchase.inventory_released_at = utcnow()
        db.add(purchase)
        db.flush()
        return purchase


purchase = CRUDPurchase(Purchase)
