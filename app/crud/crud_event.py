# app/crud/crud_event.py
from typing import List

from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.event import Event
from app.models.event_question import EventQuestion, QuestionOption
from app.schemas.event import (
    EventCreate,
    EventUpdate,
    EventQuestionCreate,
    EventQuestionUpdate,
)


class CRUDEvent(CRUDBase[Event, EventCreate, EventUpdate]):
    """Read access to events; writes belong to the event catalogue."""

    def create(self, db: Session, *, obj_in: EventCreate) -> Event:
        data = obj_in.model_dump()
        data["status"] = obj_in.status.value
        db_obj = Event(**data)
        db.add(db_obj)
        db.flush()
        return db_obj


class CRUDEventQuestion(CRUDBase[EventQuestion, EventQuestionCreate, EventQuestionUpdate]):
    def get_by_event(self, db: Session, *, event_id: str) -> List[EventQuestion]:
        return (
            db.query(self.model)
            .filter(self.model.event_id == event_id)
            .order_by(self.model.sort_order)
            .all()
        )

    def create(self, db: Session, *, obj_in: EventQuestionCreate) -> EventQuestion:
        db_obj = EventQuestion(
            event_id=obj_in.event_id,
            question_text=obj_in.question_text,
            question_type=obj_in.question_type.value,
            is_required=obj_in.is_required,
            sort_order=obj_in.sort_order,
        )
        db_obj.options = [
            QuestionOption(option_text=text, sort_order=index)
            for index, text in enumerate(obj_in.options)
        ]
        db.add(db_obj)
        db.flush()
        return db_obj


event = CRUDEvent(Event)
event_question = CRUDEventQuestion(EventQuestion)
