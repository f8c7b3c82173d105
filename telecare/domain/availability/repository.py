"""Availability repository - doctors' daily working windows"""

from datetime import time
from typing import Optional

from sqlalchemy.orm import Session

from ...models import AvailabilityStatus, AvailabilityWindow


class AvailabilityRepository:
    @staticmethod
    def get_active_window(db: Session, doctor_id: int) -> Optional[AvailabilityWindow]:
        return (
            db.query(AvailabilityWindow)
            .filter(
                AvailabilityWindow.doctor_id == doctor_id,
                AvailabilityWindow.status == AvailabilityStatus.AVAILABLE,
            )
            .first()
        )

    @staticmethod
    def upsert_window(db: Session, doctor_id: int, start_time: time, end_time: time) -> AvailabilityWindow:
        """Replace the doctor's single window"""
        window = db.query(AvailabilityWindow).filter(AvailabilityWindow.doctor_id == doctor_id).first()
        if window is None:
            window = AvailabilityWindow(doctor_id=doctor_id)
            db.add(window)

        window.start_time = start_time
        window.end_time = end_time
        window.status = AvailabilityStatus.AVAILABLE
        db.commit()
        db.refresh(window)
        return window
