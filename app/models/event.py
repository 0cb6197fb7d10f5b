# app/models/event.py
from sqlalchemy import Column, Integer, String, DateTime, Boolean, func, false
from sqlalchemy.orm import relationship
from app.db.base_class import Base
import uuid


class Event(Base):
    __tablename__ = "events"

    id = Column(
        String, primary_key=True, default=lambda: f"evt_{uuid.uuid4().hex[:12]}"
    )
    organization_id = Column(String, nullable=False, index=True)
    owner_id = Column(String, nullable=False, index=True)  # Organizer's user ID
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    status = Column(String, nullable=False, default="draft")
    # Values: 'draft', 'published', 'cancelled', 'completed'
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    capacity = Column(Integer, nullable=True)  # NULL = unlimited
    is_free = Column(Boolean, nullable=False, default=False, server_default=false())
    currency = Column(String(3), nullable=False, default="AUD", server_default="AUD")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    ticket_types = relationship(
        "TicketType", back_populates="event", order_by="TicketType.sort_order"
    )
    questions = relationship(
        "EventQuestion", back_populates="event", order_by="EventQuestion.sort_order"
    )
    registrations = relationship("Registration", back_populates="event")

    @property
    def is_published(self) -> bool:
        return self.status == "published"
