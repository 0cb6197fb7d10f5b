# app/services/registration/guest_credentials.py
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.models.purchase import Purchase
from app.utils.security import generate_secret_token, hash_secret, verify_secret
from app.utils.time import utcnow, ensure_aware

logger = logging.getLogger(__name__)


class GuestCredentialIssuer:
    """
    Issues and checks the payment credential given to guest registrants.

    The plaintext token is returned exactly once, at issue time. Only a
    salted digest and an absolute expiry are stored on the purchase, and
    the expiry is never extended.
    """

    def __init__(self, db: Session, ttl_minutes: Optional[int] = None):
        self.db = db
        self.ttl = timedelta(minutes=ttl_minutes or settings.GUEST_TOKEN_TTL_MINUTES)

    def issue(self, purchase: Purchase) -> str:
        token = generate_secret_token()
        expires_at = utcnow() + self.ttl
        crud.purchase.set_payment_token(
            self.db,
            purchase=purchase,
            token_hash=hash_secret(token),
            expires_at=expires_at,
        )
        logger.info(
            f"Issued guest payment credential for purchase {purchase.id}, "
            f"expires at {expires_at.isoformat()}"
        )
        return token

    def verify(self, purchase: Purchase, presented_token: Optional[str]) -> bool:
        expires_at = ensure_aware(purchase.payment_token_expires_at)
        if not presented_token or not purchase.payment_token_hash or expires_at is None:
            return False
        # Evaluate both checks so timing does not reveal which one failed.
        digest_ok = verify_secret(presented_token, purchase.payment_token_hash)
        not_expired = utcnow() < expires_at
        return digest_ok and not_expired
