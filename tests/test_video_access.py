import asyncio
from datetime import timedelta

import pytest

from telecare.config import VIDEO_TOKEN_GRACE_SECONDS
from telecare.domain.appointments.service import BookingService
from telecare.errors import InvalidStateError, UnauthorizedError, VideoUnavailableError
from telecare.models import AppointmentStatus, Role

from .conftest import StubSessionIssuer, make_account, utc

NOW = utc(2025, 1, 6, 8)
START = utc(2025, 1, 6, 10)
END = START + timedelta(minutes=30)


@pytest.fixture
def appointment(db, issuer, patient, doctor):
    return asyncio.run(
        BookingService(db, issuer).book(patient, doctor.id, START, END, now=NOW)
    )


def test_participants_get_join_tokens(db, issuer, patient, doctor, appointment):
    service = BookingService(db, issuer)

    for participant in (patient, doctor):
        result = service.issue_join_token(participant, appointment.id)
        assert result["session_id"] == issuer.session_id
        assert result["expires_at"] == int(appointment.end_time.timestamp()) + VIDEO_TOKEN_GRACE_SECONDS

    db.refresh(appointment)
    assert appointment.video_session_token == result["token"]


def test_outsiders_get_nothing(db, issuer, appointment):
    outsider = make_account(db, Role.PATIENT)

    with pytest.raises(UnauthorizedError):
        BookingService(db, issuer).issue_join_token(outsider, appointment.id)


@pytest.mark.parametrize("status", [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED])
def test_only_scheduled_appointments_can_be_joined(db, issuer, patient, appointment, status):
    appointment.status = status
    db.commit()

    with pytest.raises(InvalidStateError):
        BookingService(db, issuer).issue_join_token(patient, appointment.id)


def test_missing_session_reports_video_unavailable(db, patient, doctor):
    issuer = StubSessionIssuer(session_id=None)
    appointment = asyncio.run(
        BookingService(db, issuer).book(patient, doctor.id, START, END, now=NOW)
    )

    with pytest.raises(VideoUnavailableError) as exc_info:
        BookingService(db, issuer).issue_join_token(patient, appointment.id)
    assert exc_info.value.status_code == 503


class TestVerifyJoin:
    def test_valid_token_is_accepted(self, db, issuer, patient, doctor, appointment):
        service = BookingService(db, issuer)
        token = service.issue_join_token(patient, appointment.id)["token"]

        result = service.verify_join(doctor, appointment.id, token, now=int(END.timestamp()))
        assert result["session_id"] == issuer.session_id

    def test_outsider_with_valid_token_is_rejected(self, db, issuer, patient, appointment):
        service = BookingService(db, issuer)
        token = service.issue_join_token(patient, appointment.id)["token"]
        outsider = make_account(db, Role.PATIENT)

        with pytest.raises(UnauthorizedError):
            service.verify_join(outsider, appointment.id, token, now=int(END.timestamp()))

    def test_expired_token_is_rejected(self, db, issuer, patient, appointment):
        service = BookingService(db, issuer)
        issued = service.issue_join_token(patient, appointment.id)

        with pytest.raises(UnauthorizedError):
            service.verify_join(patient, appointment.id, issued["token"], now=issued["expires_at"])

    def test_token_for_another_session_is_rejected(self, db, issuer, patient, appointment):
        foreign = issuer.issue_join_token("another-session", 4102444800)

        with pytest.raises(UnauthorizedError):
            BookingService(db, issuer).verify_join(patient, appointment.id, foreign)

    def test_cancelled_appointment_cannot_be_joined(self, db, issuer, patient, appointment):
        service = BookingService(db, issuer)
        token = service.issue_join_token(patient, appointment.id)["token"]
        appointment.status = AppointmentStatus.CANCELLED
        db.commit()

        with pytest.raises(InvalidStateError):
            service.verify_join(patient, appointment.id, token)
