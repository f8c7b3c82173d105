"""Ledger repository - Database operations for credit transactions"""

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import CreditTransaction


class LedgerRepository:
    """Repository for credit transaction queries"""

    @staticmethod
    def add(db: Session, **fields) -> CreditTransaction:
        entry = CreditTransaction(**fields)
        db.add(entry)
        return entry

    @staticmethod
    def history(db: Session, account_id: int, limit: int = 50) -> list[CreditTransaction]:
        return (
            db.query(CreditTransaction)
            .filter(CreditTransaction.account_id == account_id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def ledger_total(db: Session, account_id: int) -> int:
        return (
            db.query(func.coalesce(func.sum(CreditTransaction.amount), 0))
            .filter(CreditTransaction.account_id == account_id)
            .scalar()
        )
