"""Ledger domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ...models import TransactionType


class BalanceResponse(BaseModel):
    credits: int
    display_value_usd: int


class CreditTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_id: int
    amount: int
    type: TransactionType
    appointment_id: Optional[int] = None
    payout_id: Optional[int] = None
    created_at: Optional[datetime] = None


class CreditPurchaseRequest(BaseModel):
    """Completed purchase reported by the billing provider"""

    account_id: int
    credits: int = Field(..., gt=0)


class ReconciliationResponse(BaseModel):
    account_id: int
    balance: int
    ledger_total: int
    consistent: bool
