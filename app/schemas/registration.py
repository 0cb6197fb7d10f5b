# app/schemas/registration.py
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class RegistrationStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys while keeping snake_case attributes."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


# ============================================
# Registration request
# ============================================

class TicketSelection(CamelModel):
    ticket_type_id: str
    quantity: int = Field(..., gt=0)


class QuestionResponseIn(CamelModel):
    question_id: str
    answer_text: str = Field(default="", max_length=5000)


class ParticipantIn(CamelModel):
    ticket_type_id: Optional[str] = None
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    date_of_birth: Optional[date] = None
    address: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    zip_code: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=100)
    responses: List[QuestionResponseIn] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class RegistrationCreate(CamelModel):
    event_id: str
    tickets: List[TicketSelection] = Field(default_factory=list)
    participants: List[ParticipantIn] = Field(default_factory=list)


class RegistrationCreateResponse(CamelModel):
    message: str
    registration_id: str
    status: RegistrationStatus
    # Only present for paid registrations made without an account
    guest_token: Optional[str] = None


# ============================================
# Registration detail
# ============================================

class ParticipantOut(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class ResponseOut(CamelModel):
    event_question_id: str
    response_text: str


class AttendeeOut(CamelModel):
    id: str
    ticket_type_id: Optional[str] = None
    participant: ParticipantOut
    responses: List[ResponseOut] = Field(default_factory=list)


class PurchaseItemOut(CamelModel):
    ticket_type_id: str
    ticket_type_name: str
    quantity: int
    unit_price: int


class PaymentSummary(CamelModel):
    id: str
    status: str
    amount: int
    currency: str


class PurchaseOut(CamelModel):
    id: str
    total_price: int
    currency: str
    items: List[PurchaseItemOut] = Field(default_factory=list)
    payment: Optional[PaymentSummary] = None


class RegistrationDetail(CamelModel):
    id: str
    event_id: str
    user_id: Optional[str] = None
    status: RegistrationStatus
    created_at: datetime
    participant: ParticipantOut
    attendees: List[AttendeeOut] = Field(default_factory=list)
    purchase: Optional[PurchaseOut] = None


# ============================================
# Registration list / status update
# ============================================

class RegistrationSummary(CamelModel):
    id: str
    event_id: str
    user_id: Optional[str] = None
    status: RegistrationStatus
    created_at: datetime
    participant: ParticipantOut


class Pagination(CamelModel):
    total_items: int
    total_pages: int
    current_page: int


class PaginatedRegistrations(CamelModel):
    data: List[RegistrationSummary]
    pagination: Pagination


class RegistrationStatusUpdate(CamelModel):
    status: RegistrationStatus
