# app/crud/crud_payment.py
from typing import Optional

from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.payment import Payment
from app.schemas.payment import PaymentCreate, PaymentUpdate, PaymentStatus
from app.utils.time import utcnow


class CRUDPayment(CRUDBase[Payment, PaymentCreate, PaymentUpdate]):
    """CRUD operations for Payment model."""

    def get_by_purchase(
        self, db: Session, *, purchase_id: str, for_update: bool = False
    ) -> Optional[Payment]:
        """Get the payment attached to a purchase."""
        query = db.query(self.model).filter(self.model.purchase_id == purchase_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def get_by_provider_intent_id(
        self, db: Session, *, provider_intent_id: str, for_update: bool = False
    ) -> Optional[Payment]:
        """Get a payment by the provider's intent ID."""
        query = db.query(self.model).filter(
            self.model.provider_intent_id == provider_intent_id
        )
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def create_payment(self, db: Session, *, obj_in: PaymentCreate) -> Payment:
        """Create a new payment record."""
        db_obj = Payment(
            purchase_id=obj_in.purchase_id,
            provider_code=obj_in.provider_code,
            provider_intent_id=obj_in.provider_intent_id,
            status=obj_in.status.value,
            currency=obj_in.currency,
            amount=obj_in.amount,
            provider_metadata=obj_in.provider_metadata,
        )
        db.add(db_obj)
        db.flush()
        return db_obj

    def update_status(
        self,
        db: Session,
        *,
        payment: Payment,
        status: PaymentStatus,
        failure_code: Optional[str] = None,
        failure_message: Optional[str] = None,
    ) -> Payment:
        """Update payment status and failure details."""
        payment.status = status.value

        if status == PaymentStatus.completed:
            payment.processed_at = utcnow()
            payment.failure_code = None
            payment.failure_message = None

        if failure_code:
            payment.failure_code = failure_code
        if failure_message:
            payment.failure_message = failure_message

        db.add(payment)
        db.flush()
        return payment

    def replace_intent(
        self, db: Session, *, payment: Payment, provider_intent_id: str
    ) -> Payment:
        """Point a payment at a fresh provider intent and reopen it."""
        payment.provider_intent_id = provider_intent_id
        payment.status = PaymentStatus.pending.value
        payment.failure_code = None
        payment.failure_message = None
        db.add(payment)
        db.flush()
        return payment


payment = CRUDPayment(Payment)
