"""Account router - onboarding, doctor profiles and admin verification"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_account
from ...cache import Cache, get_cache
from ...database import get_db
from ...models import Account, VerificationStatus
from .schemas import (
    AccountResponse,
    DoctorProfileResponse,
    DoctorStatusUpdate,
    RoleSelection,
    SuspensionUpdate,
)
from .service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Accounts"])


def get_account_service(
    db: Session = Depends(get_db), cache: Cache = Depends(get_cache)
) -> AccountService:
    """Dependency injection for AccountService"""
    return AccountService(db, cache)


@router.get("/accounts/me", response_model=AccountResponse)
async def get_me(current_account: Account = Depends(get_current_account)):
    """Get the current account, creating it on first access"""
    return current_account


@router.post("/accounts/me/role", response_model=AccountResponse)
async def select_role(
    body: RoleSelection,
    current_account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_account_service),
):
    """Choose PATIENT or DOCTOR (once)"""
    return service.set_role(current_account, body)


@router.get("/doctors", response_model=list[DoctorProfileResponse])
async def list_verified_doctors(
    specialty: Optional[str] = Query(None),
    service: AccountService = Depends(get_account_service),
):
    """Verified doctors, optionally filtered by specialty"""
    return service.list_verified_doctors(specialty)


@router.get("/doctors/{doctor_id}", response_model=DoctorProfileResponse)
async def get_doctor_profile(
    doctor_id: int,
    service: AccountService = Depends(get_account_service),
):
    """Public profile of a verified doctor"""
    return service.get_doctor_profile(doctor_id)


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/doctors", response_model=list[AccountResponse])
async def list_doctors(
    status: Optional[VerificationStatus] = Query(None),
    current_account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_account_service),
):
    """List doctors, optionally filtered by verification status"""
    return service.list_doctors(current_account, status)


@router.post("/admin/doctors/{doctor_id}/status", response_model=AccountResponse)
async def update_doctor_status(
    doctor_id: int,
    body: DoctorStatusUpdate,
    current_account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_account_service),
):
    """Verify or reject a doctor"""
    return service.update_doctor_status(current_account, doctor_id, body.status)


@router.post("/admin/doctors/{doctor_id}/suspension", response_model=AccountResponse)
async def update_doctor_suspension(
    doctor_id: int,
    body: SuspensionUpdate,
    current_account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_account_service),
):
    """Suspend or reinstate a doctor"""
    return service.set_suspension(current_account, doctor_id, body.suspend)
