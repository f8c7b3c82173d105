"""Payout domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ...models import PayoutStatus


class PayoutDoctor(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    specialty: Optional[str] = None
    credits: int


class PayoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    credits: int
    status: PayoutStatus
    processed_at: Optional[datetime] = None
    processed_by: Optional[int] = None
    created_at: Optional[datetime] = None
    doctor: Optional[PayoutDoctor] = None
