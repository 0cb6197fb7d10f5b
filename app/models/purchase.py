# app/models/purchase.py
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base
import uuid


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(
        String, primary_key=True, default=lambda: f"pur_{uuid.uuid4().hex[:12]}"
    )
    registration_id = Column(
        String, ForeignKey("registrations.id"), nullable=False, unique=True, index=True
    )
    total_price = Column(Integer, nullable=False)  # In cents
    currency = Column(String(3), nullable=False)

    # Guest payment credential ("<salt>$<sha256 hex>"); the plaintext is never stored
    payment_token_hash = Column(String(255), nullable=True)
    payment_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Set once the reserved ticket stock has been returned
    inventory_released_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    registration = relationship("Registration", back_populates="purchase")
    items = relationship("PurchaseItem", back_populates="purchase", cascade="all, delete-orphan")
    payment = relationship("Payment", back_populates="purchase", uselist=False)
