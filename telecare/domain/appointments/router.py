"""Appointment router - booking, listing, deletion and video access"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_account
from ...database import get_db
from ...models import Account
from ..video.session_issuer import SessionIssuer, get_session_issuer
from .schemas import (
    AppointmentResponse,
    BookingRequest,
    JoinTokenResponse,
    JoinVerificationRequest,
    JoinVerificationResponse,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_booking_service(
    db: Session = Depends(get_db),
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, issuer)


@router.post("", response_model=AppointmentResponse, status_code=201)
async def book_appointment(
    body: BookingRequest,
    current_account: Account = Depends(get_current_account),
    service: BookingService = Depends(get_booking_service),
):
    """Book a slot with a verified doctor (costs credits)"""
    return await service.book(
        current_account, body.doctor_id, body.start_time, body.end_time, body.description
    )


@router.get("", response_model=list[AppointmentResponse])
async def list_my_appointments(
    current_account: Account = Depends(get_current_account),
    service: BookingService = Depends(get_booking_service),
):
    return service.list_for_account(current_account)


@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: int,
    current_account: Account = Depends(get_current_account),
    service: BookingService = Depends(get_booking_service),
):
    """Delete a cancelled appointment"""
    return service.delete(current_account, appointment_id)


@router.post("/{appointment_id}/video-token", response_model=JoinTokenResponse)
async def generate_video_token(
    appointment_id: int,
    current_account: Account = Depends(get_current_account),
    service: BookingService = Depends(get_booking_service),
):
    """Join credential for the appointment's video session"""
    return service.issue_join_token(current_account, appointment_id)


@router.post("/{appointment_id}/video-token/verify", response_model=JoinVerificationResponse)
async def verify_video_token(
    appointment_id: int,
    body: JoinVerificationRequest,
    current_account: Account = Depends(get_current_account),
    service: BookingService = Depends(get_booking_service),
):
    return service.verify_join(current_account, appointment_id, body.token)
