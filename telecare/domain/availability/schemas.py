"""Availability domain schemas"""

from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, model_validator

from ...models import AvailabilityStatus


class AvailabilityWindowRequest(BaseModel):
    """Daily working hours, as times of day in the clinic timezone"""

    start_time: time
    end_time: time

    @model_validator(mode="after")
    def validate_range(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityWindowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    doctor_id: int
    start_time: time
    end_time: time
    status: AvailabilityStatus


class SlotResponse(BaseModel):
    start_time: datetime
    end_time: datetime
    formatted: str


class DaySlotsResponse(BaseModel):
    date: date
    display_date: str
    slots: list[SlotResponse]


class AvailableSlotsResponse(BaseModel):
    doctor_id: int
    used_default_hours: bool
    days: list[DaySlotsResponse]
