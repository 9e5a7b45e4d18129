"""Workshop (technician) routes: tickets, quotes, parts and bicycles.

Mounted behind the staff role gate; admins pass it too.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.api.forms import local_path, optional_id, redirect
from bikeshop.context import AppContext
from bikeshop.db import crud
from bikeshop.dependencies import get_ctx, get_db, require_staff
from bikeshop.errors import InvalidTransition
from bikeshop.models import Ticket, TicketPart
from bikeshop.models.enums import BookingStatus, Role, TicketStatus
from bikeshop.schemas.quote import build_quote_items
from bikeshop.schemas.ticket import WalkInTicketCreate
from bikeshop.services import tickets as ticket_ops
from bikeshop.services.auth import Claims
from bikeshop.services.rendering import Flash
from bikeshop.services.ticket_workflow import allowed_next_statuses, ensure_can_edit

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workshop"], dependencies=[Depends(require_staff)])

DASHBOARD_LIMIT = 10

_DETAIL_ERRORS = {
    "invalid_transition": "You cannot move the ticket to that status (forward moves only)",
    "update_failed": "Could not update the ticket status",
}


async def _get_ticket(db: AsyncSession, ticket_id: int) -> Ticket:
    ticket = await crud.get_ticket(db, ticket_id)
    if ticket is None:
        raise HTTPException(404, "Ticket not found")
    return ticket


async def _get_part(db: AsyncSession, ticket: Ticket, part_id: int) -> TicketPart:
    part = await crud.get_ticket_part(db, part_id)
    if part is None or part.ticket_id != ticket.id:
        raise HTTPException(404, "Part not found")
    return part


def _parse_status_filter(value: str) -> TicketStatus | None:
    try:
        return TicketStatus(value) if value else None
    except ValueError:
        return None


@router.get("/workshop")
async def workshop_dashboard(
    request: Request,
    claims: Claims = Depends(require_staff),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    return ctx.renderer.response(
        request, "workshop/dashboard.html.j2", title="Workshop", user=claims,
        status_counts=await crud.count_tickets_by_status(db),
        recent_tickets=await crud.list_tickets(db, limit=DASHBOARD_LIMIT),
        pending_bookings=await crud.list_bookings(db, BookingStatus.PENDING, limit=DASHBOARD_LIMIT),
    )


# ── Walk-in tickets ───────────────────────────────────────

@router.get("/tickets/new")
async def new_ticket_page(
    request: Request,
    claims: Claims = Depends(require_staff),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    return ctx.renderer.response(
        request, "workshop/ticket_new.html.j2", title="New ticket", user=claims,
        services=await crud.list_services(db), form={},
    )


@router.post("/tickets/create_direct")
async def create_walk_in_ticket(
    request: Request,
    email: str = Form(""),
    name: str = Form(""),
    phone: str = Form(""),
    brand: str = Form(""),
    model: str = Form(""),
    color: str = Form(""),
    serial: str = Form(""),
    service_id: str = Form(""),
    notes: str = Form(""),
    claims: Claims = Depends(require_staff),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    raw = {
        "email": email, "name": name, "phone": phone, "brand": brand, "model": model,
        "color": color, "serial": serial, "notes": notes,
    }
    try:
        form = WalkInTicketCreate(service_id=optional_id(service_id), **raw)
    except ValidationError:
        return ctx.renderer.response(
            request, "workshop/ticket_new.html.j2", title="New ticket", user=claims,
            flash=Flash("error", "A valid customer email is required"),
            services=await crud.list_services(db), form=raw,
        )

    if form.service_id is not None and await crud.get_service(db, form.service_id) is None:
        return ctx.renderer.response(
            request, "workshop/ticket_new.html.j2", title="New ticket", user=claims,
            flash=Flash("error", "Unknown service"),
            services=await crud.list_services(db), form=raw,
        )

    ticket = await ticket_ops.create_walk_in_ticket(db, form, ctx.settings.base_url)
    return redirect(f"/tickets/{ticket.id}")


# ── Tickets ───────────────────────────────────────────────

@router.get("/tickets")
async def tickets_list(
    request: Request,
    status: str = "",
    claims: Claims = Depends(require_staff),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    tickets = await crud.list_tickets(db, status=_parse_status_filter(status))
    return ctx.renderer.response(
        request, "workshop/tickets.html.j2", title="Work orders", user=claims,
        tickets=tickets, current_status=status,
    )


@router.get("/tickets/{ticket_id}")
async def ticket_detail(
    request: Request,
    ticket_id: int,
    error: str = "",
    quote_created: str = "",
    claims: Claims = Depends(require_staff),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    ticket = await _get_ticket(db, ticket_id)

    flash = None
    if error in _DETAIL_ERRORS:
        flash = Flash("error", _DETAIL_ERRORS[error])
    elif quote_created:
        flash = Flash("success", "Quote created")

    technicians = []
    if claims.is_admin:
        technicians = await crud.list_users(db, role=Role.TECHNICIAN)

    return ctx.renderer.response(
        request, "workshop/ticket_detail.html.j2",
        title=f"Work order #{ticket.tracking_code}", user=claims, flash=flash,
        ticket=ticket,
        booking=ticket.booking,
        history=await crud.list_status_history(db, ticket.id),
        parts=await crud.list_ticket_parts(db, ticket.id),
        quote=await crud.get_quote_for_booking(db, ticket.booking_id),
        technicians=technicians,
        next_statuses=allowed_next_statuses(claims.role, TicketStatus(ticket.status)),
        can_edit=claims.is_admin or ticket.technician_id == claims.user_id,
    )


@router.post("/tickets/{ticket_id}/status")
async def update_ticket_status(
    ticket_id: int,
    status: str = Form(""),
    notes: str = Form(""),
    claims: Claims = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    ticket = await _get_ticket(db, ticket_id)
    ensure_can_edit(claims, ticket)

    try:
        target = ticket_ops.parse_target_status(ticket, status)
        await ticket_ops.change_status(db, ticket, claims, target, notes.strip())
    except InvalidTransition as exc:
        logger.info("Rejected ticket %s transition for user %s: %s", ticket_id, claims.user_id, exc)
        return redirect(f"/tickets/{ticket_id}?error=invalid_transition")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to update status of ticket %s", ticket_id)
        return redirect(f"/tickets/{ticket_id}?error=update_failed")

    return redirect(f"/tickets/{ticket_id}")


@router.post("/tickets/{ticket_id}/notes")
async def update_ticket_notes(
    ticket_id: int,
    notes: str = Form(""),
    claims: Claims = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    ticket = await _get_ticket(db, ticket_id)
    await ticket_ops.update_notes(db, ticket, claims, notes)
    return redirect(f"/tickets/{ticket_id}")


@router.post("/bookings/{booking_id}/ticket")
async def create_ticket_from_booking(
    booking_id: int,
    claims: Claims = Depends(require_staff),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    booking = await crud.get_booking(db, booking_id)
    if booking is None:
        raise HTTPException(404, "Booking not found")

    ticket = await ticket_ops.create_ticket_from_booking(db, booking, claims, ctx.settings.base_url)
    return redirect(f"/tickets/{ticket.id}")


# ── Parts checklist ───────────────────────────────────────

@router.post("/tickets/{ticket_id}/parts")
async def add_ticket_part(
    ticket_id: int,
    name: str = Form(""),
    claims: Claims = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    ticket = await _get_ticket(db, ticket_id)
    await ticket_ops.add_part(db, ticket, claims, name)
    return redirect(f"/tickets/{ticket_id}")


@router.post("/tickets/{ticket_id}/parts/{part_id}/toggle")
async def toggle_ticket_part(
    request: Request,
    ticket_id: int,
    part_id: int,
    claims: Claims = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    ticket = await _get_ticket(db, ticket_id)
    part = await _get_part(db, ticket, part_id)
    await ticket_ops.toggle_part(db, ticket, claims, part)

    if request.headers.get("HX-Request"):
        return Response(status_code=200)
    return redirect(f"/tickets/{ticket_id}")


@router.post("/tickets/{ticket_id}/parts/{part_id}/delete")
async def delete_ticket_part(
    ticket_id: int,
    part_id: int,
    claims: Claims = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    ticket = await _get_ticket(db, ticket_id)
    part = await _get_part(db, ticket, part_id)
    await ticket_ops.remove_part(db, ticket, claims, part)
    return redirect(f"/tickets/{ticket_id}")


# ── Print pages ───────────────────────────────────────────

@router.get("/tickets/{ticket_id}/label")
async def ticket_label(
    request: Request,
    ticket_id: int,
    claims: Claims = Depends(require_staff),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    ticket = await _get_ticket(db, ticket_id)
    return ctx.renderer.response(
        request, "workshop/ticket_label.html.j2",
        title=f"Workshop label #{ticket.tracking_code}", user=claims,
        ticket=ticket, booking=ticket.booking,
    )


@router.get("/tickets/{ticket_id}/quote")
async def ticket_quote(
    request: Request,
    ticket_id: int,
    claims: Claims = Depends(require_staff),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    ticket = await _get_ticket(db, ticket_id)
    quote = await crud.get_quote_for_booking(db, ticket.booking_id)
    if quote is None:
        raise HTTPException(404, "Quote not found")
    return ctx.renderer.response(
        request, "workshop/ticket_quote.html.j2", title=f"Quote #{quote.id}", user=claims,
        ticket=ticket, booking=ticket.booking, quote=quote,
    )


# ── Quotes ────────────────────────────────────────────────

@router.get("/quotes/new/{booking_id}")
async def new_quote_page(
    request: Request,
    booking_id: int,
    ticket_id: str = "",
    claims: Claims = Depends(require_staff),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    booking = await crud.get_booking(db, booking_id)
    if booking is None:
        raise HTTPException(404, "Booking not found")
    return ctx.renderer.response(
        request, "workshop/quote_new.html.j2", title="New quote", user=claims,
        booking=booking, services=await crud.list_services(db), ticket_id=ticket_id,
    )


@router.post("/quotes/new/{booking_id}")
async def create_quote(
    request: Request,
    booking_id: int,
    descriptions: list[str] = Form([], alias="item_description[]"),
    quantities: list[str] = Form([], alias="item_quantity[]"),
    prices: list[str] = Form([], alias="item_price[]"),
    ticket_id: str = Form(""),
    claims: Claims = Depends(require_staff),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    booking = await crud.get_booking(db, booking_id)
    if booking is None:
        raise HTTPException(404, "Booking not found")

    try:
        items = build_quote_items(descriptions, quantities, prices)
    except ValueError as exc:
        # pydantic.ValidationError is a ValueError
        logger.info("Rejected quote for booking %s: %s", booking_id, exc)
        return ctx.renderer.response(
            request, "workshop/quote_new.html.j2", title="New quote", user=claims,
            flash=Flash("error", "Check the quote items: each needs a description, a quantity of at least 1 and a price"),
            booking=booking, services=await crud.list_services(db), ticket_id=ticket_id,
        )

    quote = await crud.create_quote(db, booking.id, [item.model_dump() for item in items])
    ticket = optional_id(ticket_id)
    if ticket is not None:
        return redirect(f"/tickets/{ticket}?quote_created=true&quote_id={quote.id}")
    return redirect("/workshop")


# ── Bicycles ──────────────────────────────────────────────

@router.post("/bicycles/{bicycle_id}/update")
async def update_bicycle(
    bicycle_id: int,
    color: str = Form(""),
    serial_number: str = Form(""),
    notes: str = Form(""),
    redirect_to: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    bicycle = await crud.get_bicycle(db, bicycle_id)
    if bicycle is None:
        raise HTTPException(404, "Bicycle not found")

    bicycle.color = color.strip()
    bicycle.serial_number = serial_number.strip()
    bicycle.notes = notes.strip()
    await crud.update_bicycle(db, bicycle)
    return redirect(local_path(redirect_to, "/workshop"))


@router.post("/bookings/{booking_id}/bicycle")
async def create_bicycle_for_booking(
    booking_id: int,
    color: str = Form(""),
    serial_number: str = Form(""),
    notes: str = Form(""),
    redirect_to: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    booking = await crud.get_booking(db, booking_id)
    if booking is None:
        raise HTTPException(404, "Booking not found")

    bicycle = await crud.create_bicycle(
        db, booking.customer_id,
        color=color.strip(), serial_number=serial_number.strip(), notes=notes.strip(),
    )
    await crud.update_booking(db, booking, bicycle_id=bicycle.id)
    return redirect(local_path(redirect_to, "/workshop"))
