# app/models/payment_webhook_event.py
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Integer,
    Text,
    ForeignKey,
    UniqueConstraint,
    func,
    false,
)
from sqlalchemy.orm import relationship
from app.db.base_class import Base, JSONType
import uuid


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"

    id = Column(
        String, primary_key=True, default=lambda: f"whe_{uuid.uuid4().hex[:12]}"
    )

    # Provider information
    provider_code = Column(String(50), nullable=False)
    provider_event_id = Column(String(255), nullable=False)  # Provider's event ID
    provider_event_type = Column(String(100), nullable=False)  # e.g., 'payment_intent.succeeded'

    # Processing status
    status = Column(String(50), nullable=False, default="pending", server_default="pending")
    # Values: 'pending', 'processing', 'processed', 'failed'

    # Payload
    payload = Column(JSONType, nullable=False)

    # Signature verification
    signature_verified = Column(Boolean, nullable=False, default=False, server_default=false())

    # Processing details
    processed_at = Column(DateTime(timezone=True), nullable=True)
    processing_error = Column(Text, nullable=True)
    attempt_count = Column(Integer, nullable=False, default=0, server_default="0")

    # Related entities (populated during processing)
    related_payment_id = Column(String, ForeignKey("payments.id"), nullable=True)
    related_registration_id = Column(String, ForeignKey("registrations.id"), nullable=True)

    # Request metadata
    received_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    ip_address = Column(String(45), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "provider_code", "provider_event_id", name="uq_webhook_events_provider_event"
        ),
    )

    # Relationships
    payment = relationship("Payment", foreign_keys=[related_payment_id])
    registration = relationship("Registration", foreign_keys=[related_registration_id])

    @property
    def is_processed(self) -> bool:
        """Check if event has been processed."""
        return self.status == "processed"
