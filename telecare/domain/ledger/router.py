"""Ledger router - credit balances and admin bookkeeping"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_account
from ...database import get_db
from ...models import Account
from .schemas import (
    BalanceResponse,
    CreditPurchaseRequest,
    CreditTransactionResponse,
    ReconciliationResponse,
)
from .service import CreditService

router = APIRouter(tags=["Credits"])


def get_credit_service(db: Session = Depends(get_db)) -> CreditService:
    """Dependency injection for CreditService"""
    return CreditService(db)


@router.get("/credits/me", response_model=BalanceResponse)
async def get_my_balance(
    current_account: Account = Depends(get_current_account),
    service: CreditService = Depends(get_credit_service),
):
    return service.get_balance(current_account)


@router.get("/credits/me/transactions", response_model=list[CreditTransactionResponse])
async def get_my_transactions(
    limit: int = Query(50, ge=1, le=200),
    current_account: Account = Depends(get_current_account),
    service: CreditService = Depends(get_credit_service),
):
    return service.get_history(current_account, limit)


@router.post("/admin/credits/purchases", response_model=CreditTransactionResponse, status_code=201)
async def record_credit_purchase(
    body: CreditPurchaseRequest,
    current_account: Account = Depends(get_current_account),
    service: CreditService = Depends(get_credit_service),
):
    """Record credits bought through the billing provider"""
    return service.record_purchase(current_account, body.account_id, body.credits)


@router.get("/admin/credits/{account_id}/reconcile", response_model=ReconciliationResponse)
async def reconcile_account(
    account_id: int,
    current_account: Account = Depends(get_current_account),
    service: CreditService = Depends(get_credit_service),
):
    return service.reconcile(current_account, account_id)
