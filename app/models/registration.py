import uuid
from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base


class Registration(Base):
    __tablename__ = "registrations"

    id = Column(
        String, primary_key=True, default=lambda: f"reg_{uuid.uuid4().hex[:12]}"
    )
    event_id = Column(String, ForeignKey("events.id"), nullable=False, index=True)

    # The primary registrant (the person who filled in the form)
    participant_id = Column(String, ForeignKey("participants.id"), nullable=False, index=True)

    # Null for guest registrations made without an account
    user_id = Column(String, nullable=True, index=True)

    status = Column(String(20), nullable=False, default="pending", server_default="pending")
    # Values: 'pending', 'confirmed', 'cancelled'

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    event = relationship("Event", back_populates="registrations")
    participant = relationship("Participant", foreign_keys=[participant_id])
    attendees = relationship(
        "RegistrationParticipant",
        back_populates="registration",
        order_by="RegistrationParticipant.position",
    )
    purchase = relationship("Purchase", back_populates="registration", uselist=False)

    @property
    def is_guest(self) -> bool:
        return self.user_id is None


class RegistrationParticipant(Base):
    """One attendee seat in a registration; one row per reserved ticket unit."""

    __tablename__ = "registration_participants"

    id = Column(
        String, primary_key=True, default=lambda: f"rp_{uuid.uuid4().hex[:12]}"
    )
    registration_id = Column(
        String, ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    participant_id = Column(String, ForeignKey("participants.id"), nullable=False, index=True)
    # Null only for free events
    ticket_type_id = Column(String, ForeignKey("ticket_types.id"), nullable=True, index=True)
    position = Column(Integer, nullable=False, default=0, server_default="0")  # Order in the request
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    registration = relationship("Registration", back_populates="attendees")
    participant = relationship("Participant")
    ticket_type = relationship("TicketType")
    responses = relationship("Response", back_populates="attendee")


class Response(Base):
    __tablename__ = "responses"

    id = Column(
        String, primary_key=True, default=lambda: f"rsp_{uuid.uuid4().hex[:12]}"
    )
    registration_participant_id = Column(
        String,
        ForeignKey("registration_participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_question_id = Column(String, ForeignKey("event_questions.id"), nullable=False)
    response_text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "registration_participant_id",
            "event_question_id",
            name="uq_responses_attendee_question",
        ),
    )

    attendee = relationship("RegistrationParticipant", back_populates="responses")
    question = relationship("EventQuestion")
