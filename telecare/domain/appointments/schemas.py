"""Appointment domain schemas"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...models import AppointmentStatus


class BookingRequest(BaseModel):
    doctor_id: int
    start_time: datetime
    end_time: datetime
    description: Optional[str] = Field(None, max_length=2000)

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # Naive timestamps are taken as UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    doctor_id: int
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    description: Optional[str] = None
    video_session_id: Optional[str] = None
    created_at: Optional[datetime] = None


class JoinTokenResponse(BaseModel):
    appointment_id: int
    session_id: str
    token: str
    expires_at: int


class JoinVerificationRequest(BaseModel):
    token: str


class JoinVerificationResponse(BaseModel):
    appointment_id: int
    session_id: str
    expires_at: int
