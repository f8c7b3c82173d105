"""Availability service - doctor working hours and slot listings"""

import logging
from datetime import datetime, time
from typing import Optional

from sqlalchemy.orm import Session

from ...config import AVAILABILITY_WINDOW_DAYS
from ...errors import UnauthorizedError, ValidationError
from ...models import Account, AvailabilityWindow, Role
from .repository import AvailabilityRepository
from .resolver import SlotCalendar, compute_slots

logger = logging.getLogger(__name__)


def _clock(value: datetime) -> str:
    return value.strftime("%I:%M %p").lstrip("0")


class AvailabilityService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = AvailabilityRepository()

    def get_slots(
        self, doctor_id: int, window_days: int = AVAILABILITY_WINDOW_DAYS, now: Optional[datetime] = None
    ) -> SlotCalendar:
        return compute_slots(self.db, doctor_id, window_days=window_days, now=now)

    def get_slots_response(
        self, doctor_id: int, window_days: int = AVAILABILITY_WINDOW_DAYS, now: Optional[datetime] = None
    ) -> dict:
        """Slot listing shaped for the booking UI, with display labels in the clinic timezone"""
        calendar = self.get_slots(doctor_id, window_days=window_days, now=now)
        days = []
        for day in calendar:
            slots = []
            for slot in day.slots:
                local_start = slot.start.astimezone(calendar.tz)
                local_end = slot.end.astimezone(calendar.tz)
                slots.append(
                    {
                        "start_time": slot.start,
                        "end_time": slot.end,
                        "formatted": f"{_clock(local_start)} - {_clock(local_end)}",
                    }
                )
            days.append(
                {
                    "date": day.date,
                    "display_date": day.date.strftime("%A, %B ") + str(day.date.day),
                    "slots": slots,
                }
            )

        return {
            "doctor_id": doctor_id,
            "used_default_hours": calendar.used_default_hours,
            "days": days,
        }

    def set_window(self, account: Account, start_time: time, end_time: time) -> AvailabilityWindow:
        if account.role != Role.DOCTOR:
            raise UnauthorizedError("Only doctors can set availability")
        if start_time >= end_time:
            raise ValidationError("start_time must be before end_time")

        window = self.repo.upsert_window(self.db, account.id, start_time, end_time)
        logger.info(f"🗓️ Doctor {account.id} availability set to {start_time}-{end_time}")
        return window

    def get_window(self, account: Account) -> Optional[AvailabilityWindow]:
        if account.role != Role.DOCTOR:
            raise UnauthorizedError("Only doctors have availability")
        return self.repo.get_active_window(self.db, account.id)
