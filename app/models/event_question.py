# app/models/event_question.py
from sqlalchemy import Column, String, Boolean, Integer, Text, ForeignKey, DateTime, func, false
from sqlalchemy.orm import relationship
from app.db.base_class import Base
import uuid


class EventQuestion(Base):
    __tablename__ = "event_questions"

    id = Column(
        String, primary_key=True, default=lambda: f"q_{uuid.uuid4().hex[:12]}"
    )
    event_id = Column(String, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False, default="text", server_default="text")
    # Values: 'text', 'checkbox', 'dropdown'
    is_required = Column(Boolean, nullable=False, default=False, server_default=false())
    sort_order = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    event = relationship("Event", back_populates="questions")
    options = relationship(
        "QuestionOption",
        back_populates="question",
        order_by="QuestionOption.sort_order",
        cascade="all, delete-orphan",
    )

    @property
    def option_texts(self) -> set:
        return {option.option_text for option in self.options}


class QuestionOption(Base):
    __tablename__ = "question_options"

    id = Column(
        String, primary_key=True, default=lambda: f"qo_{uuid.uuid4().hex[:12]}"
    )
    question_id = Column(
        String, ForeignKey("event_questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    option_text = Column(String(255), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0, server_default="0")

    question = relationship("EventQuestion", back_populates="options")
