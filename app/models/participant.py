# app/models/participant.py
from sqlalchemy import Column, String, Date, DateTime, func
from app.db.base_class import Base
import uuid


class Participant(Base):
    """A person who attends events, identified by email across registrations."""

    __tablename__ = "participants"

    id = Column(
        String, primary_key=True, default=lambda: f"ptc_{uuid.uuid4().hex[:12]}"
    )
    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone_number = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)

    # Set once the participant is linked to an account
    user_id = Column(String, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
