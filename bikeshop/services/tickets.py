"""Ticket operations: creation, status changes, reassignment, notes and parts."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.db import crud
from bikeshop.errors import InvalidTransition
from bikeshop.models import Booking, Ticket, TicketPart
from bikeshop.models.enums import BookingStatus, Role, TicketStatus
from bikeshop.schemas.ticket import WalkInTicketCreate
from bikeshop.services.auth import Claims, hash_password
from bikeshop.services.qr import qr_png, tracking_url
from bikeshop.services.ticket_workflow import check_transition, ensure_can_edit

logger = logging.getLogger(__name__)

WALK_IN_PASSWORD = "123456"
WALK_IN_BICYCLE_NOTES = "created at reception"
REASSIGNED_NOTES = "Technician reassigned by administrator"

_TRACKING_CODE_ATTEMPTS = 5


def generate_tracking_code() -> str:
    """8 lowercase hex characters."""
    return secrets.token_hex(4)


async def _new_tracking_code(db: AsyncSession) -> str:
    for _ in range(_TRACKING_CODE_ATTEMPTS):
        code = generate_tracking_code()
        if await crud.get_ticket_by_tracking_code(db, code) is None:
            return code
    raise RuntimeError("could not allocate a unique tracking code")


async def create_ticket_from_booking(
    db: AsyncSession, booking: Booking, claims: Claims, base_url: str,
) -> Ticket:
    """Open a ticket for a booking, assigned to the creator; confirms the booking."""
    code = await _new_tracking_code(db)
    ticket = await crud.create_ticket(
        db,
        booking_id=booking.id,
        tracking_code=code,
        technician_id=claims.user_id,
        qr_code=qr_png(tracking_url(base_url, code)),
    )
    await crud.update_booking_status(db, booking, BookingStatus.CONFIRMED)
    logger.info("Ticket %s (%s) created from booking %s", ticket.id, code, booking.id)
    return ticket


async def create_walk_in_ticket(
    db: AsyncSession, form: WalkInTicketCreate, base_url: str,
) -> Ticket:
    """Counter intake: customer, bicycle, confirmed booking and unassigned ticket.

    Brands and models are matched by name case-insensitively and created
    when missing.
    """
    user = await crud.get_user_by_email(db, form.email)
    if user is None:
        user = await crud.create_user(
            db, form.email, hash_password(WALK_IN_PASSWORD),
            name=form.name, phone=form.phone, role=Role.CUSTOMER,
        )

    brand_id = model_id = None
    if form.brand:
        brand = await crud.find_brand_by_name(db, form.brand)
        if brand is None:
            brand = await crud.create_brand(db, form.brand)
        brand_id = brand.id
        if form.model:
            model = await crud.find_model_by_name(db, brand.id, form.model)
            if model is None:
                model = await crud.create_model(db, brand.id, form.model)
            model_id = model.id

    bicycle = await crud.create_bicycle(
        db, user.id, brand_id=brand_id, model_id=model_id,
        color=form.color, serial_number=form.serial, notes=WALK_IN_BICYCLE_NOTES,
    )
    booking = await crud.create_booking(
        db, user.id, scheduled_at=datetime.now(),
        service_id=form.service_id, bicycle_id=bicycle.id,
        status=BookingStatus.CONFIRMED, notes=form.notes,
    )

    code = await _new_tracking_code(db)
    ticket = await crud.create_ticket(
        db,
        booking_id=booking.id,
        tracking_code=code,
        technician_id=None,
        qr_code=qr_png(tracking_url(base_url, code)),
        notes=form.notes,
    )
    logger.info("Walk-in ticket %s (%s) created for %s", ticket.id, code, user.email)
    return ticket


def parse_target_status(ticket: Ticket, value: str) -> TicketStatus:
    try:
        return TicketStatus(value)
    except ValueError:
        raise InvalidTransition(TicketStatus(ticket.status).value, value) from None


async def change_status(
    db: AsyncSession, ticket: Ticket, claims: Claims,
    target: TicketStatus, notes: str = "",
) -> Ticket:
    """Apply a status change after the assignment and transition checks.

    Raises TicketAccessDenied or InvalidTransition before any write.
    """
    check_transition(claims, ticket, target)
    return await crud.update_ticket_status(db, ticket, target, claims.user_id, notes)


async def reassign_technician(
    db: AsyncSession, ticket: Ticket, technician_id: int | None, claims: Claims,
) -> Ticket:
    """Admin reassignment; recorded as a history row with the status unchanged."""
    ticket = await crud.assign_technician(db, ticket, technician_id)
    await crud.try_append_status_history(
        db, ticket.id, TicketStatus(ticket.status), claims.user_id, REASSIGNED_NOTES,
    )
    return ticket


async def update_notes(db: AsyncSession, ticket: Ticket, claims: Claims, notes: str) -> Ticket:
    ensure_can_edit(claims, ticket)
    return await crud.update_ticket(db, ticket, notes=notes)


async def add_part(db: AsyncSession, ticket: Ticket, claims: Claims, name: str) -> TicketPart | None:
    """Add a checklist item; blank names are ignored."""
    ensure_can_edit(claims, ticket)
    name = name.strip()
    if not name:
        return None
    return await crud.create_ticket_part(db, ticket.id, name)


async def toggle_part(db: AsyncSession, ticket: Ticket, claims: Claims, part: TicketPart) -> TicketPart:
    ensure_can_edit(claims, ticket)
    return await crud.toggle_ticket_part(db, part)


async def remove_part(db: AsyncSession, ticket: Ticket, claims: Claims, part: TicketPart) -> None:
    ensure_can_edit(claims, ticket)
    await crud.delete_ticket_part(db, part.id)
