"""
Video session backfill worker.

Bookings go through even when the video API is down, leaving the appointment
without a session id. This worker retries session creation for upcoming
SCHEDULED appointments so participants can join once the API recovers.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ..config import VIDEO_BACKFILL_INTERVAL
from ..database import SessionLocal
from ..domain.appointments.repository import AppointmentRepository
from ..domain.video.session_issuer import SessionIssuer
from ..models import AppointmentStatus

logger = logging.getLogger(__name__)


async def backfill_missing_sessions(
    db: Session, issuer: SessionIssuer, now: Optional[datetime] = None, limit: int = 50
) -> int:
    """Attach video sessions to appointments that lack one. Returns how many were fixed."""
    if not issuer.is_available():
        logger.warning("⚠️ Video API not configured; skipping session backfill")
        return 0

    now = now or datetime.now(timezone.utc)
    pending = AppointmentRepository.missing_video_session(db, now, limit)
    if not pending:
        logger.info("✅ No appointments waiting for a video session")
        return 0

    appointment_ids = [a.id for a in pending]
    # Release the read before making outbound calls
    db.rollback()
    logger.info(f"🎥 Backfilling video sessions for {len(appointment_ids)} appointments")

    fixed = 0
    for appointment_id in appointment_ids:
        session_id = await issuer.create_session()
        if session_id is None:
            logger.warning("⚠️ Video API still unavailable, stopping this backfill run")
            break

        appointment = AppointmentRepository.lock(db, appointment_id)
        # It may have been cancelled or filled in by another worker meanwhile
        if (
            appointment is None
            or appointment.status != AppointmentStatus.SCHEDULED
            or appointment.video_session_id
        ):
            db.rollback()
            continue

        appointment.video_session_id = session_id
        db.commit()
        fixed += 1
        logger.info(f"✅ Appointment {appointment_id} now has video session {session_id}")

    return fixed


async def run_video_backfill_worker(interval: int = VIDEO_BACKFILL_INTERVAL):
    """Main worker loop"""
    logger.info("🚀 Starting video session backfill worker...")
    issuer = SessionIssuer()

    while True:
        db = SessionLocal()
        try:
            await backfill_missing_sessions(db, issuer)
        except Exception as e:
            logger.error(f"❌ Error in video backfill loop: {e}")
        finally:
            db.close()

        await asyncio.sleep(interval)
