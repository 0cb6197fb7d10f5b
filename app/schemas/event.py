# app/schemas/event.py
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class EventStatus(str, Enum):
    draft = "draft"
    published = "published"
    cancelled = "cancelled"
    completed = "completed"


class TicketTypeStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    sold_out = "sold_out"


class QuestionType(str, Enum):
    text = "text"
    checkbox = "checkbox"
    dropdown = "dropdown"


# ============================================
# Catalogue inputs
# ============================================
# Events, ticket types and questions are managed by the event catalogue;
# these shapes are what this service reads and what seed/test data uses.

class EventCreate(BaseModel):
    organization_id: str
    owner_id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: EventStatus = EventStatus.draft
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    is_free: bool = False
    currency: str = Field(default="AUD", min_length=3, max_length=3)


class EventUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[EventStatus] = None
    capacity: Optional[int] = Field(default=None, ge=0)


class TicketTypeCreate(BaseModel):
    event_id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: int = Field(default=0, ge=0, description="Price in cents")
    currency: str = Field(default="AUD", min_length=3, max_length=3)
    quantity_total: int = Field(..., ge=0)
    sales_start_at: Optional[datetime] = None
    sales_end_at: Optional[datetime] = None
    status: TicketTypeStatus = TicketTypeStatus.active
    sort_order: int = 0


class TicketTypeUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[int] = Field(default=None, ge=0)
    quantity_total: Optional[int] = Field(default=None, ge=0)
    status: Optional[TicketTypeStatus] = None


class EventQuestionCreate(BaseModel):
    event_id: str
    question_text: str = Field(..., min_length=1)
    question_type: QuestionType = QuestionType.text
    is_required: bool = False
    sort_order: int = 0
    options: List[str] = Field(default_factory=list)


class EventQuestionUpdate(BaseModel):
    question_text: Optional[str] = None
    is_required: Optional[bool] = None
