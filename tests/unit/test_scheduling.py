from datetime import date, datetime

import pytest
import pytest_asyncio

from bikeshop.db import crud
from bikeshop.db.engine import Database
from bikeshop.models import Booking
from bikeshop.models.enums import BookingStatus
from bikeshop.services.scheduling import (
    SLOT_TIMES, available_slots, free_slots, parse_booking_datetime,
)


@pytest_asyncio.fixture
async def db():
    database = Database(":memory:")
    await database.create_all()
    async with database.session_factory() as session:
        yield session
    await database.dispose()


def test_slot_grid_skips_lunch():
    assert len(SLOT_TIMES) == 8
    assert "13:00" not in SLOT_TIMES
    assert SLOT_TIMES[0] == "09:00"
    assert SLOT_TIMES[-1] == "17:00"


def test_free_slots_removes_taken_times():
    taken = [
        Booking(scheduled_at=datetime(2026, 5, 4, 9, 0)),
        Booking(scheduled_at=datetime(2026, 5, 4, 15, 0)),
    ]
    free = free_slots(taken)
    assert "09:00" not in free
    assert "15:00" not in free
    assert len(free) == 6


def test_parse_booking_datetime():
    assert parse_booking_datetime(" 2026-05-04", "10:00 ") == datetime(2026, 5, 4, 10, 0)


@pytest.mark.parametrize("date_str,time_str", [
    ("", "10:00"), ("2026-05-04", ""), ("04/05/2026", "10:00"), ("2026-02-30", "10:00"), ("2026-05-04", "25:00"),
])
def test_parse_booking_datetime_rejects_bad_input(date_str, time_str):
    with pytest.raises(ValueError):
        parse_booking_datetime(date_str, time_str)


async def test_available_slots_for_day(db):
    customer = await crud.create_user(db, "c@test.com", "hash")
    await crud.create_booking(db, customer.id, datetime(2026, 5, 4, 10, 0))
    cancelled = await crud.create_booking(db, customer.id, datetime(2026, 5, 4, 11, 0))
    await crud.update_booking_status(db, cancelled, BookingStatus.CANCELLED)
    await crud.create_booking(db, customer.id, datetime(2026, 5, 5, 9, 0))

    slots = await available_slots(db, date(2026, 5, 4))
    assert "10:00" not in slots
    assert "11:00" in slots
    assert "09:00" in slots
    assert len(slots) == 7
