# app/models/__init__.py
# Import all models to ensure SQLAlchemy can resolve relationships
# Order matters for dependencies - import base models first

from app.db.base_class import Base
from app.models.event import Event
from app.models.ticket_type import TicketType
from app.models.event_question import EventQuestion, QuestionOption
from app.models.participant import Participant
from app.models.registration import Registration, RegistrationParticipant, Response

# Payment models
from app.models.purchase import Purchase
from app.models.purchase_item import PurchaseItem
from app.models.payment import Payment
from app.models.payment_webhook_event import PaymentWebhookEvent
from app.models.audit_log import AuditLog
