# app/models/purchase_item.py
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base
import uuid


class PurchaseItem(Base):
    __tablename__ = "purchase_items"

    id = Column(
        String, primary_key=True, default=lambda: f"pit_{uuid.uuid4().hex[:12]}"
    )
    purchase_id = Column(String, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    ticket_type_id = Column(String, ForeignKey("ticket_types.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False)  # Price per ticket in cents, frozen at purchase

    # Snapshot of ticket type at purchase time
    ticket_type_name = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Table constraints
    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_purchase_items_quantity_positive"),
    )

    # Relationships
    purchase = relationship("Purchase", back_populates="items")
    ticket_type = relationship("TicketType", foreign_keys=[ticket_type_id])

    @property
    def total_price(self) -> int:
        return self.unit_price * self.quantity
