"""
Booking engine.

A booking runs in two phases. The video session is requested first, outside
any database transaction, and may come back empty. Then a single transaction
locks the doctor row, re-checks the slot, inserts the appointment and moves
the credits. If that transaction fails nothing is written; an orphaned
video session is left behind.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import APPOINTMENT_CREDIT_COST, SLOT_MINUTES, VIDEO_TOKEN_GRACE_SECONDS
from ...database import run_in_transaction
from ...errors import (
    InsufficientCreditsError,
    InvalidStateError,
    NotFoundError,
    SlotUnavailableError,
    UnauthorizedError,
    ValidationError,
    VideoUnavailableError,
)
from ...models import Account, Appointment, AppointmentStatus, Role, TransactionType, VerificationStatus
from ..accounts.repository import AccountRepository
from ..ledger.ledger import CreditLedger
from ..video.session_issuer import SessionIssuer
from ..video.signing import InvalidTokenError
from .repository import AppointmentRepository

logger = logging.getLogger(__name__)


class BookingService:
    """Service layer for appointment booking and access"""

    def __init__(self, db: Session, issuer: SessionIssuer):
        self.db = db
        self.issuer = issuer
        self.repo = AppointmentRepository()
        self.accounts = AccountRepository()

    async def book(
        self,
        patient: Account,
        doctor_id: int,
        start: datetime,
        end: datetime,
        description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Appointment:
        now = now or datetime.now(timezone.utc)

        if patient.role != Role.PATIENT:
            raise UnauthorizedError("Only patient accounts can book appointments")

        doctor = self.accounts.get_verified_doctor(self.db, doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found or not verified")

        if start.tzinfo is None or end.tzinfo is None:
            raise ValidationError("start and end must be timezone-aware")
        if end - start != timedelta(minutes=SLOT_MINUTES):
            raise ValidationError(f"Appointments must be exactly {SLOT_MINUTES} minutes long")
        if start < now:
            raise ValidationError("Cannot book a slot that has already started")

        if patient.credits < APPOINTMENT_CREDIT_COST:
            raise InsufficientCreditsError(
                f"Insufficient credits: booking costs {APPOINTMENT_CREDIT_COST}, you have {patient.credits}"
            )

        # Advisory check so a taken slot does not cost a video session
        if self.repo.scheduled_overlapping(self.db, doctor_id, start, end):
            raise SlotUnavailableError("This time slot is already booked")

        patient_id = patient.id
        # Do not hold store locks across the outbound call
        self.db.rollback()

        session_id = await self.issuer.create_session()
        if session_id is None:
            logger.warning(
                f"⚠️ Booking doctor {doctor_id} at {start.isoformat()} without a video session"
            )

        try:
            appointment = run_in_transaction(
                self.db,
                lambda: self._reserve(patient_id, doctor_id, start, end, description, session_id),
            )
        except IntegrityError as e:
            logger.warning(f"Lost booking race for doctor {doctor_id} at {start.isoformat()}: {e}")
            raise SlotUnavailableError("This time slot was just booked by someone else") from e

        self.db.refresh(appointment)
        logger.info(
            f"✅ Appointment {appointment.id} booked: patient {patient_id} with doctor {doctor_id} at {start.isoformat()}"
        )
        return appointment

    def _reserve(
        self,
        patient_id: int,
        doctor_id: int,
        start: datetime,
        end: datetime,
        description: Optional[str],
        session_id: Optional[str],
    ) -> Appointment:
        # Row lock on the doctor serializes every booking for that doctor
        doctor = self.accounts.lock(self.db, doctor_id)
        if (
            not doctor
            or doctor.role != Role.DOCTOR
            or doctor.verification_status != VerificationStatus.VERIFIED
        ):
            raise NotFoundError("Doctor not found or not verified")

        if self.repo.scheduled_overlapping(self.db, doctor_id, start, end):
            raise SlotUnavailableError("This time slot is already booked")

        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            start_time=start,
            end_time=end,
            status=AppointmentStatus.SCHEDULED,
            description=description,
            video_session_id=session_id,
        )
        self.db.add(appointment)
        self.db.flush()

        CreditLedger(self.db).transfer(
            patient_id,
            doctor_id,
            APPOINTMENT_CREDIT_COST,
            TransactionType.APPOINTMENT_DEDUCTION,
            appointment_id=appointment.id,
        )
        return appointment

    def list_for_account(self, account: Account) -> list[Appointment]:
        return self.repo.list_for_account(self.db, account.id)

    def _get_for_participant(self, account: Account, appointment_id: int) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")
        if account.id not in (appointment.patient_id, appointment.doctor_id):
            raise UnauthorizedError("You are not a participant in this appointment")
        return appointment

    def delete(self, account: Account, appointment_id: int) -> dict:
        """Remove a cancelled appointment from a participant's list"""
        appointment = self._get_for_participant(account, appointment_id)
        if appointment.status != AppointmentStatus.CANCELLED:
            raise InvalidStateError("Only cancelled appointments can be deleted")

        self.repo.delete(self.db, appointment)
        logger.info(f"🗑️ Appointment {appointment_id} deleted by account {account.id}")
        return {"message": "Appointment deleted"}

    def issue_join_token(self, account: Account, appointment_id: int) -> dict:
        """Join credential for a participant, valid until one hour after the appointment ends"""
        appointment = self._get_for_participant(account, appointment_id)
        if appointment.status != AppointmentStatus.SCHEDULED:
            raise InvalidStateError("This appointment is not currently scheduled")
        if not appointment.video_session_id:
            raise VideoUnavailableError(
                "Video is temporarily unavailable for this appointment. "
                "The appointment is confirmed; please check back shortly."
            )

        expires_at = int(appointment.end_time.timestamp()) + VIDEO_TOKEN_GRACE_SECONDS
        token = self.issuer.issue_join_token(appointment.video_session_id, expires_at)

        appointment.video_session_token = token
        self.db.commit()
        logger.info(f"🎟️ Issued join token for appointment {appointment_id} to account {account.id}")
        return {
            "appointment_id": appointment.id,
            "session_id": appointment.video_session_id,
            "token": token,
            "expires_at": expires_at,
        }

    def verify_join(
        self, account: Account, appointment_id: int, token: str, now: Optional[int] = None
    ) -> dict:
        """Accept a join token only for a participant of a SCHEDULED appointment, before it expires"""
        appointment = self._get_for_participant(account, appointment_id)
        if appointment.status != AppointmentStatus.SCHEDULED:
            raise InvalidStateError("This appointment is not currently scheduled")
        if not appointment.video_session_id:
            raise VideoUnavailableError("Video is temporarily unavailable for this appointment")

        try:
            payload = self.issuer.verify_join_token(token, appointment.video_session_id, now=now)
        except InvalidTokenError as e:
            raise UnauthorizedError(f"Join token rejected: {e}") from e

        return {
            "appointment_id": appointment.id,
            "session_id": appointment.video_session_id,
            "expires_at": payload["exp"],
        }
