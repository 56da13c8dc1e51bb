"""
Pending booking expiry.

A new booking is created as `pending` with `expires_at` (UTC) set to
now + pending_ttl_minutes. If it is not confirmed by then (payment never
completed), it is cancelled and its slot is freed.

Runs as an asyncio task in backend lifespan.
Uses the synchronous DB session via asyncio.to_thread.
"""

import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from ..config import settings
from ..database import SessionLocal
from ..models import Bookings
from .events import emit_event
from .slots.config import to_db_datetime

logger = logging.getLogger(__name__)

EXPIRED_REASON = "Payment not completed, booking expired"


async def expiry_checker_loop() -> None:
    """Periodically cancel pending bookings whose hold has expired."""
    logger.info("expiry_checker_loop started")

    try:
        while True:
            try:
                await asyncio.to_thread(_run_cleanup)
            except asyncio.CancelledError:
                logger.info("expiry_checker_loop cancelled")
                raise
            except Exception:
                logger.exception("expiry_checker_loop error")

            await asyncio.sleep(settings.expiry_check_interval_seconds)
    except asyncio.CancelledError:
        pass


def _run_cleanup() -> None:
    db = SessionLocal()
    try:
        cleanup_expired_bookings(db)
    finally:
        db.close()


def cleanup_expired_bookings(db: Session, now: datetime | None = None) -> list[int]:
    """
    Cancel all pending bookings whose expires_at has passed.

    Returns:
        IDs of the cancelled bookings.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    now_str = to_db_datetime(now)

    expired = (
        db.query(Bookings)
        .filter(
            Bookings.status == "pending",
            Bookings.expires_at.isnot(None),
            Bookings.expires_at < now_str,
        )
        .all()
    )
    if not expired:
        db.rollback()
        return []

    for booking in expired:
        booking.status = "cancelled"
        booking.cancel_reason = EXPIRED_REASON
        booking.updated_at = now_str
    db.commit()

    expired_ids = [b.id for b in expired]
    logger.info(f"Cancelled {len(expired_ids)} expired bookings: {expired_ids}")

    for booking in expired:
        emit_event("booking_cancelled", {
            "booking_id": booking.id,
            "business_id": booking.business_id,
            "staff_id": booking.staff_id,
            "status": "cancelled",
            "reason": EXPIRED_REASON,
        })
    return expired_ids
