import asyncio
import threading
from datetime import datetime, timedelta

import pytest

from telecare.domain.appointments.service import BookingService
from telecare.domain.ledger.ledger import CreditLedger
from telecare.errors import (
    InsufficientCreditsError,
    InvalidStateError,
    NotFoundError,
    SlotUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from telecare.models import (
    Account,
    Appointment,
    AppointmentStatus,
    CreditTransaction,
    Role,
    TransactionType,
    VerificationStatus,
)

from .conftest import StubSessionIssuer, make_account, utc

NOW = utc(2025, 1, 6, 8)
START = utc(2025, 1, 6, 10)
END = START + timedelta(minutes=30)


def book(db, issuer, patient, doctor_id, start=START, end=END):
    return asyncio.run(BookingService(db, issuer).book(patient, doctor_id, start, end, now=NOW))


def test_booking_moves_two_credits(db, issuer, patient, doctor):
    appointment = book(db, issuer, patient, doctor.id)

    assert appointment.status == AppointmentStatus.SCHEDULED
    assert appointment.start_time == START
    assert appointment.video_session_id == issuer.session_id
    db.refresh(patient)
    db.refresh(doctor)
    assert patient.credits == 8
    assert doctor.credits == 2

    entries = db.query(CreditTransaction).filter(CreditTransaction.appointment_id == appointment.id).all()
    assert sorted(e.amount for e in entries) == [-2, 2]
    assert sum(e.amount for e in entries) == 0
    types = {e.account_id: e.type for e in entries}
    assert types[patient.id] == TransactionType.APPOINTMENT_DEDUCTION
    assert types[doctor.id] == TransactionType.APPOINTMENT_CREDIT


def test_balances_reconcile_after_booking(db, issuer, patient, doctor):
    book(db, issuer, patient, doctor.id)

    ledger = CreditLedger(db)
    assert ledger.reconcile(patient.id)["consistent"]
    assert ledger.reconcile(doctor.id)["consistent"]


def test_insufficient_credits_writes_nothing(db, issuer, doctor):
    poor = make_account(db, Role.PATIENT, credits=1)

    with pytest.raises(InsufficientCreditsError):
        book(db, issuer, poor, doctor.id)

    db.refresh(poor)
    assert poor.credits == 1
    assert db.query(Appointment).count() == 0
    assert issuer.calls == 0


def test_only_patients_can_book(db, issuer, doctor):
    other_doctor = make_account(db, Role.DOCTOR, credits=10)

    with pytest.raises(UnauthorizedError):
        book(db, issuer, other_doctor, doctor.id)


def test_unverified_doctor_cannot_be_booked(db, issuer, patient):
    pending = make_account(db, Role.DOCTOR, verification=VerificationStatus.PENDING)

    with pytest.raises(NotFoundError):
        book(db, issuer, patient, pending.id)


def test_slot_must_be_thirty_minutes(db, issuer, patient, doctor):
    with pytest.raises(ValidationError):
        book(db, issuer, patient, doctor.id, end=START + timedelta(minutes=45))


def test_naive_times_are_rejected(db, issuer, patient, doctor):
    naive = datetime(2025, 1, 6, 10)
    with pytest.raises(ValidationError):
        book(db, issuer, patient, doctor.id, start=naive, end=naive + timedelta(minutes=30))


def test_past_slots_cannot_be_booked(db, issuer, patient, doctor):
    start = NOW - timedelta(hours=1)
    with pytest.raises(ValidationError):
        book(db, issuer, patient, doctor.id, start=start, end=start + timedelta(minutes=30))


def test_overlapping_booking_is_rejected(db, issuer, patient, doctor):
    book(db, issuer, patient, doctor.id)
    second_patient = make_account(db, Role.PATIENT, credits=4)

    with pytest.raises(SlotUnavailableError):
        book(db, issuer, second_patient, doctor.id, start=START + timedelta(minutes=15), end=END + timedelta(minutes=15))

    db.refresh(second_patient)
    assert second_patient.credits == 4


def test_adjacent_slots_can_both_be_booked(db, issuer, patient, doctor):
    book(db, issuer, patient, doctor.id)
    second = book(db, issuer, patient, doctor.id, start=END, end=END + timedelta(minutes=30))

    assert second.start_time == END
    db.refresh(patient)
    assert patient.credits == 6


def test_booking_without_video_still_succeeds(db, patient, doctor):
    issuer = StubSessionIssuer(session_id=None)

    appointment = book(db, issuer, patient, doctor.id)

    assert appointment.video_session_id is None
    assert appointment.status == AppointmentStatus.SCHEDULED
    db.refresh(patient)
    assert patient.credits == 8


def test_failed_credit_transfer_leaves_no_appointment(db, issuer, patient, doctor, monkeypatch):
    def broken_transfer(self, *args, **kwargs):
        raise InsufficientCreditsError("balance changed underneath the booking")

    monkeypatch.setattr(CreditLedger, "transfer", broken_transfer)

    with pytest.raises(InsufficientCreditsError):
        book(db, issuer, patient, doctor.id)

    assert db.query(Appointment).count() == 0
    db.refresh(patient)
    assert patient.credits == 10


def test_concurrent_bookings_for_same_slot(db, session_factory, patient, doctor):
    second = make_account(db, Role.PATIENT, credits=10)
    patient_ids = [patient.id, second.id]
    doctor_id = doctor.id
    db.close()

    class SlowIssuer(StubSessionIssuer):
        async def create_session(self):
            await asyncio.sleep(0.05)
            return await super().create_session()

    barrier = threading.Barrier(2)
    outcomes = []

    def attempt(patient_id):
        session = session_factory()
        try:
            account = session.get(Account, patient_id)
            session.rollback()
            barrier.wait()
            asyncio.run(BookingService(session, SlowIssuer()).book(account, doctor_id, START, END, now=NOW))
            outcomes.append("booked")
        except SlotUnavailableError:
            outcomes.append("rejected")
        finally:
            session.close()

    threads = [threading.Thread(target=attempt, args=(pid,)) for pid in patient_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["booked", "rejected"]

    check = session_factory()
    try:
        scheduled = (
            check.query(Appointment)
            .filter(Appointment.doctor_id == doctor_id, Appointment.status == AppointmentStatus.SCHEDULED)
            .all()
        )
        assert len(scheduled) == 1
        total = sum(check.get(Account, pid).credits for pid in patient_ids)
        assert total == 18
        assert check.get(Account, doctor_id).credits == 2
    finally:
        check.close()


class TestAppointmentAccess:
    def test_participants_see_their_appointments(self, db, issuer, patient, doctor):
        appointment = book(db, issuer, patient, doctor.id)
        service = BookingService(db, issuer)

        assert [a.id for a in service.list_for_account(patient)] == [appointment.id]
        assert [a.id for a in service.list_for_account(doctor)] == [appointment.id]

    def test_only_cancelled_appointments_can_be_deleted(self, db, issuer, patient, doctor):
        appointment = book(db, issuer, patient, doctor.id)
        service = BookingService(db, issuer)

        with pytest.raises(InvalidStateError):
            service.delete(patient, appointment.id)

        appointment.status = AppointmentStatus.CANCELLED
        db.commit()
        service.delete(patient, appointment.id)

        assert db.query(Appointment).count() == 0
        # Ledger history survives the deletion
        assert db.query(CreditTransaction).filter(CreditTransaction.amount == -2).count() == 1

    def test_outsiders_cannot_delete(self, db, issuer, patient, doctor):
        appointment = book(db, issuer, patient, doctor.id)
        appointment.status = AppointmentStatus.CANCELLED
        db.commit()
        outsider = make_account(db, Role.PATIENT)

        with pytest.raises(UnauthorizedError):
            BookingService(db, issuer).delete(outsider, appointment.id)

    def test_missing_appointment(self, db, issuer, patient):
        with pytest.raises(NotFoundError):
            BookingService(db, issuer).delete(patient, 999)
