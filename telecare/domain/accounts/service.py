"""Account service - onboarding, doctor verification and doctor lookups"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...cache import VERIFIED_DOCTORS_KEY, Cache, doctor_profile_key
from ...config import DOCTOR_LIST_CACHE_TTL, DOCTOR_PROFILE_CACHE_TTL
from ...errors import InvalidStateError, NotFoundError, UnauthorizedError
from ...models import Account, Role, VerificationStatus
from .repository import AccountRepository
from .schemas import DoctorProfileResponse, RoleSelection

logger = logging.getLogger(__name__)


def ensure_admin(account: Account) -> None:
    if account.role != Role.ADMIN:
        raise UnauthorizedError("Admin access required")


class AccountService:
    """Service layer for account business logic"""

    def __init__(self, db: Session, cache: Optional[Cache] = None):
        self.db = db
        self.repo = AccountRepository()
        self.cache = cache or Cache(client=None)

    def set_role(self, account: Account, selection: RoleSelection) -> Account:
        """Pick a role during onboarding. Allowed exactly once, from UNASSIGNED."""
        account = self.repo.lock(self.db, account.id)
        if account.role != Role.UNASSIGNED:
            self.db.rollback()
            raise InvalidStateError(f"Role already set to {account.role.value}")

        if selection.role == Role.PATIENT:
            account.role = Role.PATIENT
        else:
            account.role = Role.DOCTOR
            account.verification_status = VerificationStatus.PENDING
            account.specialty = selection.specialty
            account.experience = selection.experience
            account.credential_url = selection.credential_url
            account.description = selection.description or ""

        self.db.commit()
        self.db.refresh(account)
        logger.info(f"✅ Account {account.id} onboarded as {account.role.value}")
        return account

    def get_verified_doctor(self, doctor_id: int) -> Account:
        """Authoritative (uncached) lookup used before slot listing and booking"""
        doctor = self.repo.get_verified_doctor(self.db, doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found or not verified")
        return doctor

    def get_doctor_profile(self, doctor_id: int) -> dict:
        """Public profile of a verified doctor, served from cache when possible"""
        key = doctor_profile_key(doctor_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        doctor = self.get_verified_doctor(doctor_id)
        profile = DoctorProfileResponse.model_validate(doctor).model_dump()
        self.cache.set(key, profile, ttl=DOCTOR_PROFILE_CACHE_TTL)
        return profile

    def list_verified_doctors(self, specialty: Optional[str] = None) -> list[dict]:
        """Public doctor directory, ordered by name and optionally narrowed to one specialty"""
        doctors = self.cache.get(VERIFIED_DOCTORS_KEY)
        if doctors is None:
            accounts = self.repo.list_doctors(self.db, VerificationStatus.VERIFIED, order_by_name=True)
            doctors = [DoctorProfileResponse.model_validate(a).model_dump() for a in accounts]
            self.cache.set(VERIFIED_DOCTORS_KEY, doctors, ttl=DOCTOR_LIST_CACHE_TTL)

        if specialty:
            wanted = specialty.strip().lower()
            doctors = [d for d in doctors if (d["specialty"] or "").lower() == wanted]
        return doctors

    def list_doctors(self, admin: Account, status: Optional[VerificationStatus] = None) -> list[Account]:
        ensure_admin(admin)
        return self.repo.list_doctors(self.db, status)

    def update_doctor_status(
        self, admin: Account, doctor_id: int, status: VerificationStatus
    ) -> Account:
        """Approve or reject a doctor's credentials"""
        ensure_admin(admin)
        return self._set_verification(doctor_id, status)

    def set_suspension(self, admin: Account, doctor_id: int, suspend: bool) -> Account:
        """Suspending puts a doctor back into review; reinstating verifies them again"""
        ensure_admin(admin)
        status = VerificationStatus.PENDING if suspend else VerificationStatus.VERIFIED
        return self._set_verification(doctor_id, status)

    def _set_verification(self, doctor_id: int, status: VerificationStatus) -> Account:
        doctor = self.repo.get_doctor(self.db, doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")

        doctor.verification_status = status
        self.db.commit()
        self.db.refresh(doctor)
        self.cache.delete(doctor_profile_key(doctor_id))
        self.cache.delete(VERIFIED_DOCTORS_KEY)
        logger.info(f"🩺 Doctor {doctor_id} verification set to {status.value}")
        return doctor
