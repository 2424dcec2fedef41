"""Payment intent records."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payment import PaymentIntentRecord
from .base_repository import BaseRepository


class PaymentRepository(BaseRepository[PaymentIntentRecord]):
    def __init__(self, db: Session):
        super().__init__(db, PaymentIntentRecord)

    def get_latest_for_session(self, session_id: str) -> Optional[PaymentIntentRecord]:
        try:
            return (
                self.db.query(PaymentIntentRecord)
                .filter(PaymentIntentRecord.session_id == session_id)
                .order_by(PaymentIntentRecord.created_at.desc(), PaymentIntentRecord.id.desc())
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading payment intent for session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to load payment intent: {str(e)}") from e

    def get_pending_for_session(self, session_id: str) -> Optional[PaymentIntentRecord]:
        """Most recent intent the client can still confirm, if any."""
        latest = self.get_latest_for_session(session_id)
        if latest is not None and latest.is_pending:
            return latest
        return None

    def record_intent(
        self,
        *,
        session_id: str,
        provider_intent_id: str,
        amount_cents: int,
        currency: str,
        status: str,
        idempotency_key: str,
    ) -> PaymentIntentRecord:
        return self.create(
            session_id=session_id,
            provider_intent_id=provider_intent_id,
            amount_cents=amount_cents,
            currency=currency,
            status=status,
            idempotency_key=idempotency_key,
        )

    def update_status(self, record: PaymentIntentRecord, status: str) -> PaymentIntentRecord:
        if record.status != status:
            record.status = status
            record.updated_at = datetime.now(timezone.utc)
            self.flush()
        return record
