"""Payout router - admin review and approval"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_account
from ...database import get_db
from ...models import Account
from .schemas import PayoutResponse
from .service import PayoutProcessor

router = APIRouter(prefix="/admin/payouts", tags=["Payouts"])


def get_payout_processor(db: Session = Depends(get_db)) -> PayoutProcessor:
    """Dependency injection for PayoutProcessor"""
    return PayoutProcessor(db)


@router.get("", response_model=list[PayoutResponse])
async def get_pending_payouts(
    current_account: Account = Depends(get_current_account),
    processor: PayoutProcessor = Depends(get_payout_processor),
):
    """Payout requests awaiting approval"""
    return processor.list_pending(current_account)


@router.post("/{payout_id}/approve", response_model=PayoutResponse)
async def approve_payout(
    payout_id: int,
    current_account: Account = Depends(get_current_account),
    processor: PayoutProcessor = Depends(get_payout_processor),
):
    return processor.approve(payout_id, current_account)
