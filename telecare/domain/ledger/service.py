"""Credit service - balance queries, purchases and reconciliation"""

import logging

from sqlalchemy.orm import Session

from ...config import CREDIT_DISPLAY_PRICE_USD
from ...database import run_in_transaction
from ...models import Account, CreditTransaction, TransactionType
from ..accounts.service import ensure_admin
from .ledger import CreditLedger
from .repository import LedgerRepository

logger = logging.getLogger(__name__)


class CreditService:
    def __init__(self, db: Session):
        self.db = db
        self.ledger = CreditLedger(db)
        self.repo = LedgerRepository()

    def get_balance(self, account: Account) -> dict:
        return {
            "credits": account.credits,
            "display_value_usd": account.credits * CREDIT_DISPLAY_PRICE_USD,
        }

    def get_history(self, account: Account, limit: int = 50) -> list[CreditTransaction]:
        return self.repo.history(self.db, account.id, limit)

    def record_purchase(self, admin: Account, account_id: int, credits: int) -> CreditTransaction:
        ensure_admin(admin)
        entry = run_in_transaction(
            self.db,
            lambda: self.ledger.credit(account_id, credits, TransactionType.CREDIT_PURCHASE),
        )
        self.db.refresh(entry)
        logger.info(f"✅ Recorded purchase of {credits} credits for account {account_id}")
        return entry

    def reconcile(self, admin: Account, account_id: int) -> dict:
        ensure_admin(admin)
        return self.ledger.reconcile(account_id)
