# app/models/payment.py
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base, JSONType
import uuid


class Payment(Base):
    __tablename__ = "payments"

    id = Column(
        String, primary_key=True, default=lambda: f"pay_{uuid.uuid4().hex[:12]}"
    )
    purchase_id = Column(
        String, ForeignKey("purchases.id"), nullable=False, unique=True, index=True
    )

    # Provider information
    provider_code = Column(String(50), nullable=False)  # 'stripe'
    provider_intent_id = Column(String(255), nullable=False, unique=True, index=True)

    status = Column(String(20), nullable=False, default="pending", server_default="pending")
    # Values: 'pending', 'completed', 'failed', 'refunded'

    # Financial
    currency = Column(String(3), nullable=False)
    amount = Column(Integer, nullable=False)  # Amount in cents

    # Failure information
    failure_code = Column(String(100), nullable=True)
    failure_message = Column(Text, nullable=True)

    processed_at = Column(DateTime(timezone=True), nullable=True)

    # Metadata from provider
    provider_metadata = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    purchase = relationship("Purchase", back_populates="payment")

    @property
    def is_terminal(self) -> bool:
        """Completed and refunded payments never change again via webhooks."""
        return self.status in ("completed", "refunded")
