import pytest
from pydantic import ValidationError as SchemaValidationError

from telecare.auth import get_or_create_account
from telecare.cache import Cache, doctor_profile_key
from telecare.domain.accounts.schemas import RoleSelection
from telecare.domain.accounts.service import AccountService
from telecare.errors import InvalidStateError, NotFoundError, UnauthorizedError
from telecare.models import Role, VerificationStatus

from .conftest import make_account


class FakeRedis:
    """Just enough of redis.Redis for the Cache wrapper"""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self.store.pop(key, None)


def test_first_access_creates_unassigned_account(db):
    account = get_or_create_account(db, "idp|abc", email="new@example.com", name="New")

    assert account.role == Role.UNASSIGNED
    assert account.credits == 0
    assert get_or_create_account(db, "idp|abc").id == account.id


def test_patient_onboarding(db):
    account = get_or_create_account(db, "idp|patient")

    account = AccountService(db).set_role(account, RoleSelection(role=Role.PATIENT))

    assert account.role == Role.PATIENT
    assert account.verification_status is None


def test_doctor_onboarding_starts_pending(db):
    account = get_or_create_account(db, "idp|doctor")
    selection = RoleSelection(
        role=Role.DOCTOR,
        specialty="Dermatology",
        experience=7,
        credential_url="https://example.com/license.pdf",
    )

    account = AccountService(db).set_role(account, selection)

    assert account.role == Role.DOCTOR
    assert account.verification_status == VerificationStatus.PENDING
    assert account.specialty == "Dermatology"


def test_role_can_only_be_chosen_once(db):
    account = get_or_create_account(db, "idp|twice")
    service = AccountService(db)
    service.set_role(account, RoleSelection(role=Role.PATIENT))

    with pytest.raises(InvalidStateError):
        service.set_role(account, RoleSelection(role=Role.PATIENT))


def test_doctor_selection_requires_profile():
    with pytest.raises(SchemaValidationError):
        RoleSelection(role=Role.DOCTOR, specialty="Cardiology")


def test_admin_role_cannot_be_self_selected():
    with pytest.raises(SchemaValidationError):
        RoleSelection(role=Role.ADMIN)


class TestDoctorVerification:
    def test_admin_verifies_pending_doctor(self, db, admin):
        pending = make_account(db, Role.DOCTOR, verification=VerificationStatus.PENDING)
        service = AccountService(db)

        assert [d.id for d in service.list_doctors(admin, VerificationStatus.PENDING)] == [pending.id]
        service.update_doctor_status(admin, pending.id, VerificationStatus.VERIFIED)

        assert service.get_verified_doctor(pending.id).id == pending.id
        assert service.list_doctors(admin, VerificationStatus.PENDING) == []

    def test_suspension_hides_doctor(self, db, admin, doctor):
        service = AccountService(db)

        service.set_suspension(admin, doctor.id, suspend=True)
        with pytest.raises(NotFoundError):
            service.get_verified_doctor(doctor.id)

        service.set_suspension(admin, doctor.id, suspend=False)
        assert service.get_verified_doctor(doctor.id).verification_status == VerificationStatus.VERIFIED

    def test_non_admin_cannot_verify(self, db, patient, doctor):
        with pytest.raises(UnauthorizedError):
            AccountService(db).update_doctor_status(patient, doctor.id, VerificationStatus.REJECTED)

    def test_unknown_doctor(self, db, admin, patient):
        with pytest.raises(NotFoundError):
            AccountService(db).update_doctor_status(admin, patient.id, VerificationStatus.VERIFIED)


class TestDoctorProfileCache:
    def test_profile_is_cached_with_ttl(self, db, doctor):
        redis_client = FakeRedis()
        service = AccountService(db, Cache(redis_client))

        profile = service.get_doctor_profile(doctor.id)

        key = f"telecare:{doctor_profile_key(doctor.id)}"
        assert profile["name"] == "Dr. Vet"
        assert key in redis_client.store
        assert redis_client.ttls[key] > 0

    def test_status_change_invalidates_profile(self, db, admin, doctor):
        redis_client = FakeRedis()
        service = AccountService(db, Cache(redis_client))
        service.get_doctor_profile(doctor.id)

        service.set_suspension(admin, doctor.id, suspend=True)

        assert redis_client.store == {}
        with pytest.raises(NotFoundError):
            service.get_doctor_profile(doctor.id)

    def test_works_without_redis(self, db, doctor):
        assert AccountService(db, Cache(None)).get_doctor_profile(doctor.id)["id"] == doctor.id


class TestDoctorDirectory:
    def test_lists_only_verified_doctors_by_name(self, db, admin):
        zed = make_account(db, Role.DOCTOR, name="Dr. Zed")
        amy = make_account(db, Role.DOCTOR, name="Dr. Amy")
        make_account(db, Role.DOCTOR, verification=VerificationStatus.PENDING, name="Dr. Pending")
        make_account(db, Role.DOCTOR, verification=VerificationStatus.REJECTED, name="Dr. Rejected")
        suspended = make_account(db, Role.DOCTOR, name="Dr. Suspended")
        AccountService(db).set_suspension(admin, suspended.id, suspend=True)

        doctors = AccountService(db).list_verified_doctors()

        assert [d["id"] for d in doctors] == [amy.id, zed.id]

    def test_filters_by_specialty(self, db):
        derm = make_account(db, Role.DOCTOR, name="Dr. Skin")
        derm.specialty = "Dermatology"
        cardio = make_account(db, Role.DOCTOR, name="Dr. Heart")
        cardio.specialty = "Cardiology"
        db.commit()

        doctors = AccountService(db).list_verified_doctors("dermatology")

        assert [d["id"] for d in doctors] == [derm.id]

    def test_listing_is_cached_and_invalidated_on_status_change(self, db, admin, doctor):
        redis_client = FakeRedis()
        service = AccountService(db, Cache(redis_client))

        assert [d["id"] for d in service.list_verified_doctors()] == [doctor.id]
        key = "telecare:verified_doctors"
        assert redis_client.ttls[key] > 0

        service.set_suspension(admin, doctor.id, suspend=True)

        assert key not in redis_client.store
        assert service.list_verified_doctors() == []
