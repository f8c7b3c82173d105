"""
Availability resolver.

Turns a doctor's daily working window into bookable slots for the next few
calendar days, dropping slots in the past and slots taken by SCHEDULED
appointments. The result is a plain iterable: iterating it again recomputes
the days from the same inputs, nothing is mutated.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ...config import (
    AVAILABILITY_WINDOW_DAYS,
    CLINIC_TIMEZONE,
    DEFAULT_DAY_END,
    DEFAULT_DAY_START,
    SLOT_MINUTES,
)
from ...errors import NotFoundError
from ...shared.intervals import overlaps
from ..accounts.repository import AccountRepository
from ..appointments.repository import AppointmentRepository
from .repository import AvailabilityRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime


@dataclass
class DaySlots:
    date: date
    slots: list[Slot] = field(default_factory=list)


def day_bounds(day: date, start: time, end: time, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Working interval of ``day`` in the clinic timezone, as UTC instants"""
    day_start = datetime.combine(day, start, tzinfo=tz).astimezone(timezone.utc)
    day_end = datetime.combine(day, end, tzinfo=tz).astimezone(timezone.utc)
    return day_start, day_end


def iter_day_slots(
    day_start: datetime,
    day_end: datetime,
    slot_minutes: int,
    now: datetime,
    busy: list[tuple[datetime, datetime]],
) -> Iterator[Slot]:
    step = timedelta(minutes=slot_minutes)
    current = day_start
    # A trailing partial slot never fits, so it is never produced
    while current + step <= day_end:
        slot_end = current + step
        if current >= now and not any(overlaps(current, slot_end, s, e) for s, e in busy):
            yield Slot(current, slot_end)
        current = slot_end


class SlotCalendar:
    """Open slots per day for one doctor"""

    def __init__(
        self,
        doctor_id: int,
        window_start: time,
        window_end: time,
        busy: list[tuple[datetime, datetime]],
        now: datetime,
        window_days: int,
        slot_minutes: int,
        tz: ZoneInfo,
        used_default_hours: bool,
    ):
        self.doctor_id = doctor_id
        self.window_start = window_start
        self.window_end = window_end
        self.busy = busy
        self.now = now
        self.window_days = window_days
        self.slot_minutes = slot_minutes
        self.tz = tz
        self.used_default_hours = used_default_hours

    def days(self) -> list[date]:
        first = self.now.astimezone(self.tz).date()
        return [first + timedelta(days=offset) for offset in range(self.window_days)]

    def __iter__(self) -> Iterator[DaySlots]:
        for day in self.days():
            day_start, day_end = day_bounds(day, self.window_start, self.window_end, self.tz)
            slots = list(iter_day_slots(day_start, day_end, self.slot_minutes, self.now, self.busy))
            # Days without open slots are still reported
            yield DaySlots(date=day, slots=slots)


def compute_slots(
    db: Session,
    doctor_id: int,
    window_days: int = AVAILABILITY_WINDOW_DAYS,
    slot_minutes: int = SLOT_MINUTES,
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> SlotCalendar:
    """Bookable slots for a verified doctor over the next ``window_days`` days"""
    doctor = AccountRepository.get_verified_doctor(db, doctor_id)
    if not doctor:
        raise NotFoundError("Doctor not found or not verified")

    now = now or datetime.now(timezone.utc)
    tz = tz or ZoneInfo(CLINIC_TIMEZONE)

    window = AvailabilityRepository.get_active_window(db, doctor_id)
    if window:
        window_start, window_end = window.start_time, window.end_time
    else:
        window_start = time.fromisoformat(DEFAULT_DAY_START)
        window_end = time.fromisoformat(DEFAULT_DAY_END)

    # Appointments anywhere in the horizon, from the first local midnight to the one after the last day
    first_day = now.astimezone(tz).date()
    horizon_start = datetime.combine(first_day, time.min, tzinfo=tz).astimezone(timezone.utc)
    horizon_end = datetime.combine(
        first_day + timedelta(days=window_days), time.min, tzinfo=tz
    ).astimezone(timezone.utc)
    busy = [
        (a.start_time, a.end_time)
        for a in AppointmentRepository.scheduled_overlapping(db, doctor_id, horizon_start, horizon_end)
    ]

    logger.debug(
        f"Computing slots for doctor {doctor_id}: {len(busy)} booked, window {window_start}-{window_end}"
    )
    return SlotCalendar(
        doctor_id=doctor_id,
        window_start=window_start,
        window_end=window_end,
        busy=busy,
        now=now,
        window_days=window_days,
        slot_minutes=slot_minutes,
        tz=tz,
        used_default_hours=window is None,
    )
