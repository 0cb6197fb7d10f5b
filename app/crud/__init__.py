# app/crud/__init__.py

from .crud_audit_log import audit_log
from .crud_event import event, event_question
from .crud_participant import participant
from .crud_payment import payment
from .crud_purchase import purchase
from .crud_registration import registration
from .crud_ticket_type import ticket_type
from .crud_webhook_event import webhook_event
