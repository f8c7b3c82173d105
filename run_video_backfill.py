"""
Video session backfill runner.

    python run_video_backfill.py               # loop every VIDEO_BACKFILL_INTERVAL seconds
    python run_video_backfill.py --interval 60
    python run_video_backfill.py --once        # single pass, e.g. from cron
"""

import argparse
import asyncio
import logging
import sys

from telecare.config import VIDEO_BACKFILL_INTERVAL
from telecare.database import SessionLocal
from telecare.domain.video.session_issuer import SessionIssuer
from telecare.workers.video_backfill import backfill_missing_sessions, run_video_backfill_worker

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def run_once() -> int:
    db = SessionLocal()
    try:
        return await backfill_missing_sessions(db, SessionIssuer())
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Attach video sessions to appointments booked without one")
    parser.add_argument("--interval", type=int, default=VIDEO_BACKFILL_INTERVAL, help="seconds between passes")
    parser.add_argument("--once", action="store_true", help="run a single pass and exit")
    args = parser.parse_args(argv)

    if args.once:
        fixed = asyncio.run(run_once())
        logger.info(f"Backfill pass finished: {fixed} appointments updated")
        return 0

    try:
        asyncio.run(run_video_backfill_worker(args.interval))
    except KeyboardInterrupt:
        logger.info("👋 Backfill worker stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
