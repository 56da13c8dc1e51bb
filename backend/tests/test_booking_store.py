"""
Tests for atomic booking writes (storage-level overlap guard).
"""

import threading
from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from bookflow.errors import SlotConflict
from bookflow.models import Bookings
from bookflow.services.booking_store import (
    SLOT_TAKEN,
    booking_times,
    insert_booking,
    update_booking_times,
)
from bookflow.services.slots.calculator import ExistingBooking, find_overlaps
from bookflow.services.slots.config import from_db_datetime


def new_booking(salon, start, staff="staff_a", duration=60, buffer=0, status="pending"):
    return Bookings(
        business_id=salon["business_id"],
        service_id=salon["service_id"],
        staff_id=salon[staff],
        customer_name="Priya",
        customer_phone="+919876543210",
        status=status,
        **booking_times(datetime.fromisoformat(start), duration, buffer),
    )


class TestBookingTimes:

    def test_columns(self):
        times = booking_times(datetime(2025, 3, 11, 10, 0), 45, 15)

        assert times == {
            "date_start": "2025-03-11 10:00:00",
            "date_end": "2025-03-11 10:45:00",
            "blocked_until": "2025-03-11 11:00:00",
            "duration_minutes": 45,
            "buffer_minutes": 15,
        }


class TestInsertBooking:

    def test_insert_into_free_slot(self, session_factory, salon):
        with session_factory() as db:
            booking = insert_booking(db, new_booking(salon, "2025-03-11T10:00"))

            assert booking.id is not None
            assert booking.status == "pending"

    def test_overlapping_insert_is_rejected(self, session_factory, seed, salon):
        seed.booking(salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00")

        with session_factory() as db:
            with pytest.raises(SlotConflict) as exc_info:
                insert_booking(db, new_booking(salon, "2025-03-11T10:30"))

        assert exc_info.value.conflict_reason == SLOT_TAKEN
        assert exc_info.value.status_code == 409

    def test_adjacent_bookings_are_allowed(self, session_factory, seed, salon):
        seed.booking(salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00")

        with session_factory() as db:
            insert_booking(db, new_booking(salon, "2025-03-11T09:00"))
            insert_booking(db, new_booking(salon, "2025-03-11T11:00"))

    def test_other_staff_member_is_independent(self, session_factory, seed, salon):
        seed.booking(salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00")

        with session_factory() as db:
            booking = insert_booking(db, new_booking(salon, "2025-03-11T10:00", staff="staff_b"))

            assert booking.staff_id == salon["staff_b"]

    @pytest.mark.parametrize("status", ["cancelled", "no_show"])
    def test_inactive_booking_does_not_hold_slot(self, session_factory, seed, salon, status):
        seed.booking(
            salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00",
            status=status,
        )

        with session_factory() as db:
            insert_booking(db, new_booking(salon, "2025-03-11T10:00"))

    def test_cancelled_row_may_be_written_over_occupied_slot(self, session_factory, seed, salon):
        seed.booking(salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00")

        with session_factory() as db:
            insert_booking(db, new_booking(salon, "2025-03-11T10:00", status="cancelled"))

    def test_buffer_of_existing_booking_is_respected(self, session_factory, seed, salon):
        seed.booking(
            salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00",
            buffer=15,
        )

        with session_factory() as db:
            with pytest.raises(SlotConflict):
                insert_booking(db, new_booking(salon, "2025-03-11T11:00"))
            insert_booking(db, new_booking(salon, "2025-03-11T11:15"))

    def test_session_is_usable_after_conflict(self, session_factory, seed, salon):
        seed.booking(salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00")

        with session_factory() as db:
            with pytest.raises(SlotConflict):
                insert_booking(db, new_booking(salon, "2025-03-11T10:00"))
            booking = insert_booking(db, new_booking(salon, "2025-03-11T14:00"))

            assert db.query(Bookings).count() == 2
            assert booking.date_start == "2025-03-11 14:00:00"


class TestUpdateBookingTimes:

    def test_move_into_other_booking_is_rejected(self, session_factory, seed, salon):
        seed.booking(salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00")
        moving_id = seed.booking(
            salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T13:00"
        )

        with session_factory() as db:
            booking = db.get(Bookings, moving_id)
            with pytest.raises(SlotConflict):
                update_booking_times(db, booking, datetime(2025, 3, 11, 10, 30))

        with session_factory() as db:
            assert db.get(Bookings, moving_id).date_start == "2025-03-11 13:00:00"

    def test_move_within_own_interval(self, session_factory, seed, salon):
        booking_id = seed.booking(
            salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00"
        )

        with session_factory() as db:
            booking = update_booking_times(db, db.get(Bookings, booking_id), datetime(2025, 3, 11, 10, 30))

            assert booking.date_start == "2025-03-11 10:30:00"
            assert booking.date_end == "2025-03-11 11:30:00"
            assert booking.blocked_until == "2025-03-11 11:30:00"

    def test_reactivating_into_taken_slot_is_rejected(self, session_factory, seed, salon):
        cancelled_id = seed.booking(
            salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00",
            status="cancelled",
        )
        seed.booking(salon["business_id"], salon["service_id"], salon["staff_a"], "2025-03-11T10:00")

        with session_factory() as db:
            booking = db.get(Bookings, cancelled_id)
            booking.status = "confirmed"
            with pytest.raises(IntegrityError, match=SLOT_TAKEN):
                db.commit()
            db.rollback()


class TestConcurrentInserts:

    def test_only_one_of_two_racing_inserts_wins(self, session_factory, salon):
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def attempt():
            db = session_factory()
            try:
                barrier.wait()
                insert_booking(db, new_booking(salon, "2025-03-11T10:00"))
                result = "created"
            except SlotConflict:
                result = "conflict"
            except Exception as e:
                result = repr(e)
            finally:
                db.close()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["conflict", "created"]

        with session_factory() as db:
            rows = db.query(Bookings).filter(Bookings.staff_id == salon["staff_a"]).all()
            snapshot = [
                ExistingBooking(
                    id=b.id,
                    staff_id=b.staff_id,
                    start=from_db_datetime(b.date_start),
                    duration_minutes=b.duration_minutes,
                    buffer_minutes=b.buffer_minutes,
                    status=b.status,
                )
                for b in rows
            ]

        assert len(snapshot) == 1
        assert find_overlaps(snapshot) == []

    def test_many_racing_inserts_on_overlapping_times(self, session_factory, salon):
        starts = ["2025-03-11T10:00", "2025-03-11T10:15", "2025-03-11T10:30", "2025-03-11T10:45"]
        barrier = threading.Barrier(len(starts))
        created = []
        lock = threading.Lock()

        def attempt(start):
            db = session_factory()
            try:
                barrier.wait()
                insert_booking(db, new_booking(salon, start))
                with lock:
                    created.append(start)
            except SlotConflict:
                pass
            finally:
                db.close()

        threads = [threading.Thread(target=attempt, args=(s,)) for s in starts]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        # All four intervals overlap pairwise, so exactly one can exist
        assert len(created) == 1
