"""Payout processor - admin settlement of doctor payout requests"""

import logging

from sqlalchemy.orm import Session

from ...database import run_in_transaction
from ...errors import InsufficientCreditsError, InvalidStateError, NotFoundError
from ...models import Account, Payout, PayoutStatus, TransactionType, utcnow
from ..accounts.repository import AccountRepository
from ..accounts.service import ensure_admin
from ..ledger.ledger import CreditLedger
from .repository import PayoutRepository

logger = logging.getLogger(__name__)


class PayoutProcessor:
    def __init__(self, db: Session):
        self.db = db
        self.repo = PayoutRepository()
        self.accounts = AccountRepository()

    def list_pending(self, admin: Account) -> list[Payout]:
        ensure_admin(admin)
        return self.repo.list_pending(self.db)

    def approve(self, payout_id: int, admin: Account) -> Payout:
        """
        Settle a payout: mark it PROCESSED and debit the doctor in one transaction.

        A payout can be processed once. If the doctor's balance no longer covers
        the request the payout stays PROCESSING so it can be approved later.
        """
        ensure_admin(admin)
        admin_id = admin.id

        payout = run_in_transaction(self.db, lambda: self._settle(payout_id, admin_id))
        self.db.refresh(payout)
        logger.info(f"✅ Payout {payout_id} processed by admin {admin_id}: {payout.credits} credits")
        return payout

    def _settle(self, payout_id: int, admin_id: int) -> Payout:
        payout = self.repo.lock(self.db, payout_id)
        if not payout:
            raise NotFoundError("Payout request not found")
        if payout.status != PayoutStatus.PROCESSING:
            raise InvalidStateError("Payout request has already been processed")

        doctor = self.accounts.lock(self.db, payout.doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")
        if doctor.credits < payout.credits:
            raise InsufficientCreditsError(
                f"Doctor has {doctor.credits} credits, payout requires {payout.credits}"
            )

        payout.status = PayoutStatus.PROCESSED
        payout.processed_at = utcnow()
        payout.processed_by = admin_id

        CreditLedger(self.db).transfer(
            payout.doctor_id,
            None,
            payout.credits,
            TransactionType.ADMIN_ADJUSTMENT,
            payout_id=payout.id,
        )
        return payout
