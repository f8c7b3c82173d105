"""Payout repository"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Payout, PayoutStatus


class PayoutRepository:
    @staticmethod
    def lock(db: Session, payout_id: int) -> Optional[Payout]:
        return (
            db.query(Payout)
            .filter(Payout.id == payout_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    @staticmethod
    def list_pending(db: Session) -> list[Payout]:
        return (
            db.query(Payout)
            .options(joinedload(Payout.doctor))
            .filter(Payout.status == PayoutStatus.PROCESSING)
            .order_by(Payout.created_at.desc())
            .all()
        )
