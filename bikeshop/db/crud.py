"""CRUD operations for the shop database.

Lookups return None on a miss; SQLAlchemyError propagates to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.models import (
    Ad, BikeModel, Bicycle, Booking, Brand, Quote, Service, Setting, Survey,
    Ticket, TicketPart, TicketStatusHistory, User,
)
from bikeshop.models.enums import (
    BookingStatus, PartStatus, QuoteStatus, Role, TicketStatus,
)

logger = logging.getLogger(__name__)

QUOTE_VALIDITY_DAYS = 7


# ── Users ─────────────────────────────────────────────────

async def create_user(
    db: AsyncSession, email: str, password_hash: str,
    name: str = "", phone: str = "", role: Role = Role.CUSTOMER,
) -> User:
    user = User(email=email, password_hash=password_hash, name=name, phone=phone, role=role)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalars().first()


async def list_users(
    db: AsyncSession, role: Role | None = None, limit: int = 100, offset: int = 0,
) -> list[User]:
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    if role is not None:
        stmt = stmt.where(User.role == role)
    result = await db.execute(stmt.limit(limit).offset(offset))
    return list(result.scalars().all())


async def count_users(db: AsyncSession, role: Role | None = None) -> int:
    stmt = select(func.count(User.id))
    if role is not None:
        stmt = stmt.where(User.role == role)
    return (await db.execute(stmt)).scalar_one()


async def update_user(db: AsyncSession, user: User, **kwargs) -> User:
    for k, v in kwargs.items():
        if v is not None:
            setattr(user, k, v)
    await db.commit()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: int) -> bool:
    result = await db.execute(delete(User).where(User.id == user_id))
    await db.commit()
    return result.rowcount > 0


# ── Brands ────────────────────────────────────────────────

async def create_brand(db: AsyncSession, name: str, logo_url: str = "") -> Brand:
    brand = Brand(name=name, logo_url=logo_url)
    db.add(brand)
    await db.commit()
    await db.refresh(brand)
    return brand


async def get_brand(db: AsyncSession, brand_id: int) -> Brand | None:
    return await db.get(Brand, brand_id)


async def find_brand_by_name(db: AsyncSession, name: str) -> Brand | None:
    """Case-insensitive exact match."""
    result = await db.execute(
        select(Brand).where(func.lower(Brand.name) == name.strip().lower())
    )
    return result.scalars().first()


async def list_brands(db: AsyncSession) -> list[Brand]:
    result = await db.execute(select(Brand).order_by(Brand.name))
    return list(result.scalars().all())


async def update_brand(db: AsyncSession, brand: Brand, **kwargs) -> Brand:
    for k, v in kwargs.items():
        if v is not None:
            setattr(brand, k, v)
    await db.commit()
    await db.refresh(brand)
    return brand


async def delete_brand(db: AsyncSession, brand_id: int) -> bool:
    result = await db.execute(delete(Brand).where(Brand.id == brand_id))
    await db.commit()
    return result.rowcount > 0


# ── Models ────────────────────────────────────────────────

async def create_model(db: AsyncSession, brand_id: int, name: str) -> BikeModel:
    model = BikeModel(brand_id=brand_id, name=name)
    db.add(model)
    await db.commit()
    await db.refresh(model)
    return model


async def get_model(db: AsyncSession, model_id: int) -> BikeModel | None:
    return await db.get(BikeModel, model_id)


async def find_model_by_name(db: AsyncSession, brand_id: int, name: str) -> BikeModel | None:
    result = await db.execute(
        select(BikeModel).where(
            BikeModel.brand_id == brand_id,
            func.lower(BikeModel.name) == name.strip().lower(),
        )
    )
    return result.scalars().first()


async def list_models(db: AsyncSession) -> list[BikeModel]:
    result = await db.execute(
        select(BikeModel).join(Brand).order_by(Brand.name, BikeModel.name)
    )
    return list(result.scalars().all())


async def list_models_for_brand(db: AsyncSession, brand_id: int) -> list[BikeModel]:
    result = await db.execute(
        select(BikeModel).where(BikeModel.brand_id == brand_id).order_by(BikeModel.name)
    )
    return list(result.scalars().all())


async def update_model(db: AsyncSession, model: BikeModel, **kwargs) -> BikeModel:
    for k, v in kwargs.items():
        if v is not None:
            setattr(model, k, v)
    await db.commit()
    await db.refresh(model)
    return model


async def delete_model(db: AsyncSession, model_id: int) -> bool:
    result = await db.execute(delete(BikeModel).where(BikeModel.id == model_id))
    await db.commit()
    return result.rowcount > 0


# ── Services ──────────────────────────────────────────────

async def create_service(
    db: AsyncSession, name: str, description: str = "",
    base_price: float = 0.0, estimated_hours: float = 1.0,
) -> Service:
    service = Service(
        name=name, description=description,
        base_price=base_price, estimated_hours=estimated_hours,
    )
    db.add(service)
    await db.commit()
    await db.refresh(service)
    return service


async def get_service(db: AsyncSession, service_id: int) -> Service | None:
    return await db.get(Service, service_id)


async def list_services(db: AsyncSession) -> list[Service]:
    result = await db.execute(select(Service).order_by(Service.name))
    return list(result.scalars().all())


async def update_service(db: AsyncSession, service: Service, **kwargs) -> Service:
    for k, v in kwargs.items():
        if v is not None:
            setattr(service, k, v)
    await db.commit()
    await db.refresh(service)
    return service


async def delete_service(db: AsyncSession, service_id: int) -> bool:
    result = await db.execute(delete(Service).where(Service.id == service_id))
    await db.commit()
    return result.rowcount > 0


# ── Bicycles ──────────────────────────────────────────────

async def create_bicycle(
    db: AsyncSession, user_id: int, brand_id: int | None = None,
    model_id: int | None = None, color: str = "", serial_number: str = "",
    notes: str = "",
) -> Bicycle:
    bicycle = Bicycle(
        user_id=user_id, brand_id=brand_id, model_id=model_id,
        color=color, serial_number=serial_number, notes=notes,
    )
    db.add(bicycle)
    await db.commit()
    await db.refresh(bicycle)
    return bicycle


async def get_bicycle(db: AsyncSession, bicycle_id: int) -> Bicycle | None:
    return await db.get(Bicycle, bicycle_id)


async def list_bicycles_for_user(db: AsyncSession, user_id: int) -> list[Bicycle]:
    result = await db.execute(
        select(Bicycle).where(Bicycle.user_id == user_id).order_by(Bicycle.created_at.desc())
    )
    return list(result.scalars().all())


async def update_bicycle(db: AsyncSession, bicycle: Bicycle, **kwargs) -> Bicycle:
    for k, v in kwargs.items():
        if v is not None:
            setattr(bicycle, k, v)
    await db.commit()
    await db.refresh(bicycle)
    return bicycle


# ── Bookings ──────────────────────────────────────────────

async def create_booking(
    db: AsyncSession, customer_id: int, scheduled_at: datetime,
    service_id: int | None = None, bicycle_id: int | None = None,
    status: BookingStatus = BookingStatus.PENDING, notes: str = "",
) -> Booking:
    booking = Booking(
        customer_id=customer_id, bicycle_id=bicycle_id, service_id=service_id,
        scheduled_at=scheduled_at, status=status, notes=notes,
    )
    db.add(booking)
    await db.commit()
    await db.refresh(booking)
    return booking


async def get_booking(db: AsyncSession, booking_id: int) -> Booking | None:
    return await db.get(Booking, booking_id)


async def list_bookings(
    db: AsyncSession, status: BookingStatus | None = None, limit: int = 50, offset: int = 0,
) -> list[Booking]:
    stmt = select(Booking).order_by(Booking.scheduled_at.desc(), Booking.id.desc())
    if status is not None:
        stmt = stmt.where(Booking.status == status)
    result = await db.execute(stmt.limit(limit).offset(offset))
    return list(result.scalars().all())


async def list_bookings_for_customer(
    db: AsyncSession, customer_id: int, limit: int = 50, offset: int = 0,
) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.customer_id == customer_id)
        .order_by(Booking.scheduled_at.desc(), Booking.id.desc())
        .limit(limit).offset(offset)
    )
    return list(result.scalars().all())


async def list_bookings_between(db: AsyncSession, start: datetime, end: datetime) -> list[Booking]:
    """Bookings scheduled in [start, end), excluding cancelled ones."""
    result = await db.execute(
        select(Booking)
        .where(
            Booking.scheduled_at >= start,
            Booking.scheduled_at < end,
            Booking.status != BookingStatus.CANCELLED,
        )
        .order_by(Booking.scheduled_at)
    )
    return list(result.scalars().all())


async def count_bookings(db: AsyncSession, status: BookingStatus | None = None) -> int:
    stmt = select(func.count(Booking.id))
    if status is not None:
        stmt = stmt.where(Booking.status == status)
    return (await db.execute(stmt)).scalar_one()


async def update_booking_status(db: AsyncSession, booking: Booking, status: BookingStatus) -> Booking:
    booking.status = status
    await db.commit()
    await db.refresh(booking)
    return booking


async def update_booking(db: AsyncSession, booking: Booking, **kwargs) -> Booking:
    for k, v in kwargs.items():
        if v is not None:
            setattr(booking, k, v)
    await db.commit()
    await db.refresh(booking)
    return booking


# ── Quotes ────────────────────────────────────────────────

async def create_quote(db: AsyncSession, booking_id: int, items: list[dict]) -> Quote:
    """Create a pending quote; total is the sum of the item totals."""
    total = round(sum(item["total"] for item in items), 2)
    quote = Quote(
        booking_id=booking_id,
        items=items,
        total=total,
        status=QuoteStatus.PENDING,
        valid_until=datetime.now(timezone.utc) + timedelta(days=QUOTE_VALIDITY_DAYS),
    )
    db.add(quote)
    await db.commit()
    await db.refresh(quote)
    return quote


async def get_quote(db: AsyncSession, quote_id: int) -> Quote | None:
    return await db.get(Quote, quote_id)


async def get_quote_for_booking(db: AsyncSession, booking_id: int) -> Quote | None:
    """Most recent quote for a booking."""
    result = await db.execute(
        select(Quote)
        .where(Quote.booking_id == booking_id)
        .order_by(Quote.created_at.desc(), Quote.id.desc())
        .limit(1)
    )
    return result.scalars().first()


async def list_quotes(
    db: AsyncSession, status: QuoteStatus | None = None, limit: int = 100, offset: int = 0,
) -> list[Quote]:
    stmt = select(Quote).order_by(Quote.created_at.desc(), Quote.id.desc())
    if status is not None:
        stmt = stmt.where(Quote.status == status)
    result = await db.execute(stmt.limit(limit).offset(offset))
    return list(result.scalars().all())


async def list_quotes_for_customer(db: AsyncSession, customer_id: int) -> list[Quote]:
    result = await db.execute(
        select(Quote)
        .join(Booking, Quote.booking_id == Booking.id)
        .where(Booking.customer_id == customer_id)
        .order_by(Quote.created_at.desc(), Quote.id.desc())
    )
    return list(result.scalars().all())


async def approve_quote(db: AsyncSession, quote: Quote) -> Quote:
    quote.status = QuoteStatus.APPROVED
    await db.commit()
    await db.refresh(quote)
    return quote


async def reject_quote(db: AsyncSession, quote: Quote, reason: str = "") -> Quote:
    quote.status = QuoteStatus.REJECTED
    quote.rejection_reason = reason
    await db.commit()
    await db.refresh(quote)
    return quote


async def total_approved_revenue(db: AsyncSession) -> float:
    result = await db.execute(
        select(func.coalesce(func.sum(Quote.total), 0.0)).where(Quote.status == QuoteStatus.APPROVED)
    )
    return float(result.scalar_one())


# ── Tickets ───────────────────────────────────────────────

async def append_status_history(
    db: AsyncSession, ticket_id: int, status: TicketStatus,
    changed_by: int | None, notes: str = "",
) -> TicketStatusHistory:
    entry = TicketStatusHistory(
        ticket_id=ticket_id, status=status, changed_by=changed_by, notes=notes,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry


async def try_append_status_history(
    db: AsyncSession, ticket_id: int, status: TicketStatus,
    changed_by: int | None, notes: str,
) -> TicketStatusHistory | None:
    """Append a history row; on failure log and carry on."""
    try:
        return await append_status_history(db, ticket_id, status, changed_by, notes)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to append status history for ticket %s", ticket_id)
        return None


async def create_ticket(
    db: AsyncSession, booking_id: int, tracking_code: str,
    technician_id: int | None = None, qr_code: bytes | None = None,
    notes: str = "",
) -> Ticket:
    """Insert a ticket in status received, then its initial history row.

    The two inserts commit separately; a failed history insert is logged
    and the ticket is kept.
    """
    ticket = Ticket(
        booking_id=booking_id,
        technician_id=technician_id,
        tracking_code=tracking_code,
        qr_code=qr_code,
        status=TicketStatus.RECEIVED,
        notes=notes,
    )
    db.add(ticket)
    await db.commit()
    await db.refresh(ticket)

    await try_append_status_history(db, ticket.id, ticket.status, technician_id, "created")
    return ticket


async def get_ticket(db: AsyncSession, ticket_id: int) -> Ticket | None:
    return await db.get(Ticket, ticket_id)


async def get_ticket_by_tracking_code(db: AsyncSession, code: str) -> Ticket | None:
    result = await db.execute(select(Ticket).where(Ticket.tracking_code == code))
    return result.scalars().first()


async def get_ticket_for_booking(db: AsyncSession, booking_id: int) -> Ticket | None:
    result = await db.execute(select(Ticket).where(Ticket.booking_id == booking_id))
    return result.scalars().first()


async def list_tickets(
    db: AsyncSession, status: TicketStatus | None = None,
    technician_id: int | None = None, limit: int = 50, offset: int = 0,
) -> list[Ticket]:
    stmt = select(Ticket).order_by(Ticket.updated_at.desc(), Ticket.id.desc())
    if status is not None:
        stmt = stmt.where(Ticket.status == status)
    if technician_id is not None:
        stmt = stmt.where(Ticket.technician_id == technician_id)
    result = await db.execute(stmt.limit(limit).offset(offset))
    return list(result.scalars().all())


async def count_tickets_by_status(db: AsyncSession) -> dict[TicketStatus, int]:
    """Ticket counts keyed by every status, zero-filled."""
    result = await db.execute(
        select(Ticket.status, func.count(Ticket.id)).group_by(Ticket.status)
    )
    counts = {status: 0 for status in TicketStatus}
    for status, n in result.all():
        counts[TicketStatus(status)] = n
    return counts


async def update_ticket_status(
    db: AsyncSession, ticket: Ticket, status: TicketStatus,
    changed_by: int | None, notes: str = "",
) -> Ticket:
    """Set the ticket status, then append the matching history row.

    Known gap: these are two independent commits. If the history insert
    fails the new status stands without its audit entry; the failure is
    only logged.
    """
    ticket.status = status
    await db.commit()
    await db.refresh(ticket)

    await try_append_status_history(db, ticket.id, status, changed_by, notes)
    return ticket


async def update_ticket(db: AsyncSession, ticket: Ticket, **kwargs) -> Ticket:
    for k, v in kwargs.items():
        if v is not None:
            setattr(ticket, k, v)
    await db.commit()
    await db.refresh(ticket)
    return ticket


async def assign_technician(db: AsyncSession, ticket: Ticket, technician_id: int | None) -> Ticket:
    ticket.technician_id = technician_id
    await db.commit()
    await db.refresh(ticket)
    return ticket


async def list_status_history(db: AsyncSession, ticket_id: int) -> list[TicketStatusHistory]:
    result = await db.execute(
        select(TicketStatusHistory)
        .where(TicketStatusHistory.ticket_id == ticket_id)
        .order_by(TicketStatusHistory.created_at, TicketStatusHistory.id)
    )
    return list(result.scalars().all())


# ── Ticket parts ──────────────────────────────────────────

async def create_ticket_part(db: AsyncSession, ticket_id: int, name: str) -> TicketPart:
    part = TicketPart(ticket_id=ticket_id, name=name)
    db.add(part)
    await db.commit()
    await db.refresh(part)
    return part


async def get_ticket_part(db: AsyncSession, part_id: int) -> TicketPart | None:
    return await db.get(TicketPart, part_id)


async def list_ticket_parts(db: AsyncSession, ticket_id: int) -> list[TicketPart]:
    result = await db.execute(
        select(TicketPart).where(TicketPart.ticket_id == ticket_id).order_by(TicketPart.id)
    )
    return list(result.scalars().all())


async def toggle_ticket_part(db: AsyncSession, part: TicketPart) -> TicketPart:
    part.status = PartStatus.PENDING if part.status == PartStatus.DONE else PartStatus.DONE
    await db.commit()
    await db.refresh(part)
    return part


async def delete_ticket_part(db: AsyncSession, part_id: int) -> bool:
    result = await db.execute(delete(TicketPart).where(TicketPart.id == part_id))
    await db.commit()
    return result.rowcount > 0


# ── Surveys ───────────────────────────────────────────────

async def create_survey(db: AsyncSession, ticket_id: int, rating: int, feedback: str = "") -> Survey:
    survey = Survey(ticket_id=ticket_id, rating=rating, feedback=feedback)
    db.add(survey)
    await db.commit()
    await db.refresh(survey)
    return survey


async def get_survey_for_ticket(db: AsyncSession, ticket_id: int) -> Survey | None:
    result = await db.execute(select(Survey).where(Survey.ticket_id == ticket_id))
    return result.scalars().first()


async def list_surveys(db: AsyncSession, limit: int = 100, offset: int = 0) -> list[Survey]:
    result = await db.execute(
        select(Survey).order_by(Survey.created_at.desc(), Survey.id.desc()).limit(limit).offset(offset)
    )
    return list(result.scalars().all())


async def count_surveys(db: AsyncSession) -> int:
    return (await db.execute(select(func.count(Survey.id)))).scalar_one()


async def average_rating_since(db: AsyncSession, since: datetime) -> float:
    """Mean rating of surveys created at or after `since`; 0.0 when none."""
    result = await db.execute(
        select(func.avg(Survey.rating)).where(Survey.created_at >= since)
    )
    avg = result.scalar_one()
    return float(avg) if avg is not None else 0.0


async def rating_distribution(db: AsyncSession) -> dict[int, int]:
    """Survey counts for each rating 1..5, zero-filled."""
    result = await db.execute(
        select(Survey.rating, func.count(Survey.id)).group_by(Survey.rating)
    )
    dist = {rating: 0 for rating in range(1, 6)}
    for rating, n in result.all():
        dist[rating] = n
    return dist


# ── Ads ───────────────────────────────────────────────────

async def create_ad(db: AsyncSession, **kwargs) -> Ad:
    ad = Ad(**kwargs)
    db.add(ad)
    await db.commit()
    await db.refresh(ad)
    return ad


async def get_ad(db: AsyncSession, ad_id: int) -> Ad | None:
    return await db.get(Ad, ad_id)


async def list_ads(db: AsyncSession) -> list[Ad]:
    result = await db.execute(select(Ad).order_by(Ad.created_at.desc(), Ad.id.desc()))
    return list(result.scalars().all())


async def get_random_active_ad(db: AsyncSession) -> Ad | None:
    result = await db.execute(
        select(Ad).where(Ad.active.is_(True)).order_by(func.random()).limit(1)
    )
    return result.scalars().first()


async def update_ad(db: AsyncSession, ad: Ad, **kwargs) -> Ad:
    for k, v in kwargs.items():
        if v is not None:
            setattr(ad, k, v)
    await db.commit()
    await db.refresh(ad)
    return ad


async def delete_ad(db: AsyncSession, ad_id: int) -> bool:
    result = await db.execute(delete(Ad).where(Ad.id == ad_id))
    await db.commit()
    return result.rowcount > 0


async def increment_ad_impressions(db: AsyncSession, ad_id: int) -> None:
    await db.execute(update(Ad).where(Ad.id == ad_id).values(impressions=Ad.impressions + 1))
    await db.commit()


async def increment_ad_clicks(db: AsyncSession, ad_id: int) -> None:
    await db.execute(update(Ad).where(Ad.id == ad_id).values(clicks=Ad.clicks + 1))
    await db.commit()


# ── Settings ──────────────────────────────────────────────

async def get_setting(db: AsyncSession, key: str) -> str | None:
    result = await db.execute(select(Setting.value).where(Setting.key == key))
    return result.scalars().first()


async def set_setting(db: AsyncSession, key: str, value: str) -> None:
    """Insert or overwrite a setting value."""
    now = datetime.now(timezone.utc)
    stmt = sqlite_insert(Setting).values(key=key, value=value, updated_at=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Setting.key],
        set_={"value": value, "updated_at": now},
    )
    await db.execute(stmt)
    await db.commit()
