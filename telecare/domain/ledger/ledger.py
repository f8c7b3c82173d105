"""
Credit ledger.

Every balance change writes a CreditTransaction row and updates the
materialized Account.credits in the same unit of work. The ledger never
commits: callers compose it with their own writes and commit once.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import InsufficientCreditsError, NotFoundError, ValidationError
from ...models import Account, CreditTransaction, TransactionType
from ..accounts.repository import AccountRepository
from .repository import LedgerRepository

logger = logging.getLogger(__name__)

# Entry type written for the receiving side of a transfer
COUNTERPART_TYPES = {
    TransactionType.APPOINTMENT_DEDUCTION: TransactionType.APPOINTMENT_CREDIT,
}


class CreditLedger:
    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountRepository()
        self.repo = LedgerRepository()

    def _lock_accounts(self, *account_ids: int) -> dict[int, Account]:
        # Fixed lock order so concurrent transfers between the same pair cannot deadlock
        locked = {}
        for account_id in sorted(set(account_ids)):
            account = self.accounts.lock(self.db, account_id)
            if not account:
                raise NotFoundError(f"Account {account_id} not found")
            locked[account_id] = account
        return locked

    def transfer(
        self,
        from_account_id: int,
        to_account_id: Optional[int],
        amount: int,
        type: TransactionType,
        appointment_id: Optional[int] = None,
        payout_id: Optional[int] = None,
    ) -> list[CreditTransaction]:
        """
        Move ``amount`` credits out of ``from_account_id``, into ``to_account_id``
        when given. Raises InsufficientCreditsError if the debit would take the
        balance below zero.
        """
        if amount <= 0:
            raise ValidationError("Transfer amount must be positive")
        if to_account_id == from_account_id:
            raise ValidationError("Cannot transfer credits to the same account")

        ids = [from_account_id] if to_account_id is None else [from_account_id, to_account_id]
        locked = self._lock_accounts(*ids)

        source = locked[from_account_id]
        if source.credits < amount:
            raise InsufficientCreditsError(
                f"Insufficient credits: {amount} required, {source.credits} available"
            )

        source.credits -= amount
        entries = [
            self.repo.add(
                self.db,
                account_id=source.id,
                amount=-amount,
                type=type,
                appointment_id=appointment_id,
                payout_id=payout_id,
            )
        ]

        if to_account_id is not None:
            target = locked[to_account_id]
            target.credits += amount
            entries.append(
                self.repo.add(
                    self.db,
                    account_id=target.id,
                    amount=amount,
                    type=COUNTERPART_TYPES.get(type, type),
                    appointment_id=appointment_id,
                    payout_id=payout_id,
                )
            )

        self.db.flush()
        logger.info(
            f"💳 Transferred {amount} credits {from_account_id} -> {to_account_id} ({type.value})"
        )
        return entries

    def credit(self, account_id: int, amount: int, type: TransactionType) -> CreditTransaction:
        """Unconditional credit, e.g. a completed purchase"""
        if amount <= 0:
            raise ValidationError("Credit amount must be positive")

        account = self._lock_accounts(account_id)[account_id]
        account.credits += amount
        entry = self.repo.add(self.db, account_id=account.id, amount=amount, type=type)
        self.db.flush()
        logger.info(f"💳 Credited {amount} credits to {account_id} ({type.value})")
        return entry

    def reconcile(self, account_id: int) -> dict:
        """Compare the materialized balance with the sum of ledger entries"""
        account = self.accounts.get_by_id(self.db, account_id)
        if not account:
            raise NotFoundError("Account not found")

        ledger_total = self.repo.ledger_total(self.db, account_id)
        consistent = ledger_total == account.credits
        if not consistent:
            logger.error(
                f"❌ Ledger mismatch for account {account_id}: balance={account.credits}, ledger={ledger_total}"
            )
        return {
            "account_id": account_id,
            "balance": account.credits,
            "ledger_total": ledger_total,
            "consistent": consistent,
        }
