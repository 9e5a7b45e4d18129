"""Aggregates for the admin dashboard and report pages."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.db import crud
from bikeshop.models.enums import (
    BookingStatus, QuoteStatus, Role, SURVEY_ELIGIBLE_STATUSES,
)

RATING_WINDOW_DAYS = 30
BOOKINGS_WINDOW_DAYS = 30


def rating_window_start() -> datetime:
    """Survey timestamps are UTC."""
    return datetime.now(timezone.utc) - timedelta(days=RATING_WINDOW_DAYS)


def rating_percentages(distribution: dict[int, int], total: int) -> dict[int, int]:
    """Share of each rating as an integer percentage, rounded half up."""
    if total <= 0:
        return {rating: 0 for rating in distribution}
    return {rating: int(count / total * 100 + 0.5) for rating, count in distribution.items()}


def response_rate(total_surveys: int, eligible_tickets: int) -> float:
    """Surveys per ready-or-delivered ticket, as a percentage."""
    if eligible_tickets > 0:
        return total_surveys / eligible_tickets * 100
    if total_surveys > 0:
        # surveyed tickets moved back out of ready/delivered
        return 100.0
    return 0.0


async def dashboard_stats(db: AsyncSession) -> dict:
    return {
        "user_count": await crud.count_users(db),
        "customer_count": await crud.count_users(db, Role.CUSTOMER),
        "technician_count": await crud.count_users(db, Role.TECHNICIAN),
        "booking_count": await crud.count_bookings(db),
        "pending_bookings": await crud.count_bookings(db, BookingStatus.PENDING),
        "ticket_counts": await crud.count_tickets_by_status(db),
        "avg_rating": await crud.average_rating_since(db, rating_window_start()),
    }


async def summary(db: AsyncSession, now: datetime) -> dict:
    """Headline numbers for the reports landing page.

    `now` is shop wall-clock time; bookings are counted from the first of
    the month up to it.
    """
    start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    monthly = await crud.list_bookings_between(db, start_of_month, now)
    return {
        "monthly_bookings": len(monthly),
        "current_month": now.strftime("%B"),
        "ticket_counts": await crud.count_tickets_by_status(db),
        "avg_rating": await crud.average_rating_since(db, rating_window_start()),
        "total_revenue": await crud.total_approved_revenue(db),
    }


async def bookings_report(db: AsyncSession, now: datetime) -> dict:
    start = now - timedelta(days=BOOKINGS_WINDOW_DAYS)
    return {
        "bookings": await crud.list_bookings_between(db, start, now),
        "start_date": start,
        "end_date": now,
    }


async def revenue_report(db: AsyncSession) -> dict:
    return {
        "quotes": await crud.list_quotes(db, QuoteStatus.APPROVED),
        "total_revenue": await crud.total_approved_revenue(db),
    }


async def survey_report(db: AsyncSession) -> dict:
    total = await crud.count_surveys(db)
    distribution = await crud.rating_distribution(db)
    counts = await crud.count_tickets_by_status(db)
    eligible = sum(counts[s] for s in SURVEY_ELIGIBLE_STATUSES)
    return {
        "surveys": await crud.list_surveys(db),
        "avg_rating": await crud.average_rating_since(db, rating_window_start()),
        "total_surveys": total,
        "rating_distribution": distribution,
        "rating_percentages": rating_percentages(distribution, total),
        "response_rate": response_rate(total, eligible),
        "star_levels": [5, 4, 3, 2, 1],
    }
