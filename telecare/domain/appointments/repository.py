"""Appointment repository - Database operations for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Appointment, AppointmentStatus
from ...shared.intervals import overlap_clause


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_by_id(db: Session, appointment_id: int) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def lock(db: Session, appointment_id: int) -> Optional[Appointment]:
        """Load an appointment with a row lock held until the transaction ends"""
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    @staticmethod
    def scheduled_overlapping(
        db: Session, doctor_id: int, start: datetime, end: datetime
    ) -> list[Appointment]:
        """SCHEDULED appointments of a doctor that overlap [start, end)"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.status == AppointmentStatus.SCHEDULED,
                overlap_clause(Appointment.start_time, Appointment.end_time, start, end),
            )
            .order_by(Appointment.start_time)
            .all()
        )

    @staticmethod
    def list_for_account(db: Session, account_id: int) -> list[Appointment]:
        return (
            db.query(Appointment)
            .filter(or_(Appointment.patient_id == account_id, Appointment.doctor_id == account_id))
            .order_by(Appointment.start_time.desc())
            .all()
        )

    @staticmethod
    def missing_video_session(db: Session, now: datetime, limit: int = 50) -> list[Appointment]:
        """Upcoming SCHEDULED appointments that were booked while the video API was down"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.status == AppointmentStatus.SCHEDULED,
                Appointment.video_session_id.is_(None),
                Appointment.end_time > now,
            )
            .order_by(Appointment.start_time)
            .limit(limit)
            .all()
        )

    @staticmethod
    def delete(db: Session, appointment: Appointment) -> None:
        db.delete(appointment)
        db.commit()
