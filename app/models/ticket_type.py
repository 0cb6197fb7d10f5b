# app/models/ticket_type.py
from sqlalchemy import (
    Column,
    String,
    DateTime,
    Integer,
    Text,
    ForeignKey,
    CheckConstraint,
    func,
)
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.utils.time import utcnow, ensure_aware
import uuid


class TicketType(Base):
    __tablename__ = "ticket_types"

    id = Column(
        String, primary_key=True, default=lambda: f"tt_{uuid.uuid4().hex[:12]}"
    )
    event_id = Column(String, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False, default=0, server_default="0")  # Price in cents
    currency = Column(String(3), nullable=False, default="AUD", server_default="AUD")
    quantity_total = Column(Integer, nullable=False)
    quantity_sold = Column(Integer, nullable=False, default=0, server_default="0")
    sales_start_at = Column(DateTime(timezone=True), nullable=True)
    sales_end_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default="active", server_default="active")
    # Values: 'active', 'inactive', 'sold_out'
    sort_order = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("quantity_sold >= 0", name="check_ticket_types_sold_non_negative"),
        CheckConstraint(
            "quantity_sold <= quantity_total", name="check_ticket_types_sold_within_total"
        ),
    )

    # Relationships
    event = relationship("Event", back_populates="ticket_types")

    @property
    def quantity_available(self) -> int:
        """Units that can still be reserved."""
        return max(0, self.quantity_total - self.quantity_sold)

    @property
    def is_within_sales_window(self) -> bool:
        now = utcnow()
        start = ensure_aware(self.sales_start_at)
        end = ensure_aware(self.sales_end_at)
        if start and now < start:
            return False  # Sales haven't started
        if end and now > end:
            return False  # Sales have ended
        return True
