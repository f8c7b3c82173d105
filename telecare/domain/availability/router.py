"""Availability router - open slots and doctors' working hours"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_account
from ...config import AVAILABILITY_WINDOW_DAYS
from ...database import get_db
from ...models import Account
from .schemas import AvailabilityWindowRequest, AvailabilityWindowResponse, AvailableSlotsResponse
from .service import AvailabilityService

router = APIRouter(prefix="/doctors", tags=["Availability"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


@router.get("/me/availability", response_model=Optional[AvailabilityWindowResponse])
async def get_my_availability(
    current_account: Account = Depends(get_current_account),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Current working window; null means default hours apply"""
    return service.get_window(current_account)


@router.put("/me/availability", response_model=AvailabilityWindowResponse)
async def set_my_availability(
    body: AvailabilityWindowRequest,
    current_account: Account = Depends(get_current_account),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.set_window(current_account, body.start_time, body.end_time)


@router.get("/{doctor_id}/slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    doctor_id: int,
    days: int = Query(AVAILABILITY_WINDOW_DAYS, ge=1, le=14),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Bookable slots for the next few days (advisory; booking re-checks)"""
    return service.get_slots_response(doctor_id, window_days=days)
