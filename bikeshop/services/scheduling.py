"""Booking slot grid for a single shop day."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.db import crud
from bikeshop.models import Booking

# One-hour slots, closed for lunch at 13:00
SLOT_TIMES = ("09:00", "10:00", "11:00", "12:00", "14:00", "15:00", "16:00", "17:00")


def free_slots(bookings: Iterable[Booking]) -> list[str]:
    """Slots not already taken by one of `bookings`, in day order."""
    taken = {b.scheduled_at.strftime("%H:%M") for b in bookings}
    return [slot for slot in SLOT_TIMES if slot not in taken]


async def available_slots(db: AsyncSession, day: date) -> list[str]:
    start = datetime.combine(day, time.min)
    bookings = await crud.list_bookings_between(db, start, start + timedelta(days=1))
    return free_slots(bookings)


def parse_booking_datetime(date_str: str, time_str: str) -> datetime:
    """Combine form fields YYYY-MM-DD and HH:MM; raises ValueError on bad input."""
    return datetime.strptime(f"{date_str.strip()} {time_str.strip()}", "%Y-%m-%d %H:%M")
