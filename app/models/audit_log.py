# app/models/audit_log.py
from sqlalchemy import Column, String, DateTime, func
from app.db.base_class import Base, JSONType
import uuid


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(
        String, primary_key=True, default=lambda: f"aud_{uuid.uuid4().hex[:12]}"
    )

    # What happened
    action = Column(String(100), nullable=False)
    # Values: 'registration.created', 'registration.confirmed', 'registration.cancelled',
    #         'payment.initiated', 'payment.intent_replaced', 'payment.succeeded', 'payment.failed'

    # Who did it
    actor_type = Column(String(50), nullable=False)  # 'user', 'guest', 'organizer', 'admin', 'webhook', 'system'
    actor_id = Column(String, nullable=True)

    # What was affected
    entity_type = Column(String(50), nullable=False)  # 'registration', 'payment'
    entity_id = Column(String, nullable=False, index=True)

    # Change details
    previous_state = Column(JSONType, nullable=True)
    new_state = Column(JSONType, nullable=True)

    # Context
    event_id = Column(String, nullable=True)

    # Immutable timestamp
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
