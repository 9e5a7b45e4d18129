"""Customer area: dashboard, bookings, quotes, profile and surveys.

Every route needs a session; staff may use them too, in which case the
ownership checks are skipped.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.api.forms import ensure_booking_access, optional_id, redirect
from bikeshop.context import AppContext
from bikeshop.db import crud
from bikeshop.dependencies import get_ctx, get_db, require_auth
from bikeshop.models import Quote, Ticket
from bikeshop.models.enums import BookingStatus, QuoteStatus, SURVEY_ELIGIBLE_STATUSES, TicketStatus
from bikeshop.services.auth import Claims
from bikeshop.services.rendering import Flash
from bikeshop.services.scheduling import SLOT_TIMES, parse_booking_datetime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["customer"])

RECENT_BOOKINGS = 5


@router.get("/dashboard")
async def dashboard(
    request: Request,
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    bookings = await crud.list_bookings_for_customer(db, claims.user_id, limit=RECENT_BOOKINGS)
    return ctx.renderer.response(
        request, "customer/dashboard.html.j2", title="My dashboard", user=claims,
        bookings=bookings,
    )


# ── Bookings ──────────────────────────────────────────────

async def _render_booking_form(
    request: Request, ctx: AppContext, db: AsyncSession, claims: Claims,
    flash: Flash | None = None, form: dict | None = None,
):
    return ctx.renderer.response(
        request, "customer/booking_new.html.j2", title="New booking", user=claims,
        flash=flash,
        services=await crud.list_services(db),
        brands=await crud.list_brands(db),
        models=await crud.list_models(db),
        bicycles=await crud.list_bicycles_for_user(db, claims.user_id),
        slot_times=SLOT_TIMES,
        form=form or {},
    )


@router.get("/bookings")
async def bookings_list(
    request: Request,
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    bookings = await crud.list_bookings_for_customer(db, claims.user_id)
    return ctx.renderer.response(
        request, "customer/bookings.html.j2", title="My bookings", user=claims,
        bookings=bookings,
    )


@router.get("/bookings/new")
async def new_booking_page(
    request: Request,
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    return await _render_booking_form(request, ctx, db, claims)


@router.post("/bookings")
async def create_booking(
    request: Request,
    service_id: str = Form(""),
    bicycle_id: str = Form(""),
    new_bicycle: str = Form(""),
    brand_id: str = Form(""),
    model_id: str = Form(""),
    color: str = Form(""),
    serial_number: str = Form(""),
    date: str = Form(""),
    time: str = Form(""),
    notes: str = Form(""),
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    form = {"date": date, "time": time, "notes": notes, "service_id": service_id}
    try:
        scheduled_at = parse_booking_datetime(date, time)
    except ValueError:
        return await _render_booking_form(
            request, ctx, db, claims, flash=Flash("error", "Invalid date or time"), form=form,
        )

    bike_id = optional_id(bicycle_id)
    if new_bicycle == "true":
        bicycle = await crud.create_bicycle(
            db, claims.user_id,
            brand_id=optional_id(brand_id), model_id=optional_id(model_id),
            color=color.strip(), serial_number=serial_number.strip(),
        )
        bike_id = bicycle.id
    elif bike_id is not None:
        bicycle = await crud.get_bicycle(db, bike_id)
        if bicycle is None or bicycle.user_id != claims.user_id:
            bike_id = None

    booking = await crud.create_booking(
        db, claims.user_id, scheduled_at,
        service_id=optional_id(service_id), bicycle_id=bike_id, notes=notes.strip(),
    )
    logger.info("Booking %s created by user %s for %s", booking.id, claims.user_id, scheduled_at)
    return redirect("/bookings")


@router.get("/bookings/{booking_id}")
async def booking_detail(
    request: Request,
    booking_id: int,
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    booking = await crud.get_booking(db, booking_id)
    if booking is None:
        raise HTTPException(404, "Booking not found")
    ensure_booking_access(claims, booking)

    quote = await crud.get_quote_for_booking(db, booking.id)
    ticket = await crud.get_ticket_for_booking(db, booking.id)
    return ctx.renderer.response(
        request, "customer/booking_detail.html.j2", title="Booking details", user=claims,
        booking=booking, quote=quote, ticket=ticket,
    )


@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    claims: Claims = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    booking = await crud.get_booking(db, booking_id)
    if booking is None:
        raise HTTPException(404, "Booking not found")
    ensure_booking_access(claims, booking)

    await crud.update_booking_status(db, booking, BookingStatus.CANCELLED)
    return redirect("/bookings")


# ── Quotes ────────────────────────────────────────────────

async def _get_own_quote(db: AsyncSession, claims: Claims, quote_id: int) -> Quote:
    quote = await crud.get_quote(db, quote_id)
    if quote is None:
        raise HTTPException(404, "Quote not found")
    ensure_booking_access(claims, quote.booking)
    return quote


@router.get("/quotes")
async def quotes_list(
    request: Request,
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    if claims.is_staff:
        quotes = await crud.list_quotes(db)
    else:
        quotes = await crud.list_quotes_for_customer(db, claims.user_id)
    return ctx.renderer.response(
        request, "customer/quotes.html.j2", title="My quotes", user=claims,
        quotes=quotes,
    )


@router.get("/quotes/{quote_id}")
async def quote_detail(
    request: Request,
    quote_id: int,
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    quote = await _get_own_quote(db, claims, quote_id)
    return ctx.renderer.response(
        request, "customer/quote_detail.html.j2", title="Quote details", user=claims,
        quote=quote, can_decide=QuoteStatus(quote.status) is QuoteStatus.PENDING,
    )


@router.post("/quotes/{quote_id}/approve")
async def approve_quote(
    quote_id: int,
    claims: Claims = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    quote = await _get_own_quote(db, claims, quote_id)
    await crud.approve_quote(db, quote)
    return redirect(f"/quotes/{quote.id}")


@router.post("/quotes/{quote_id}/reject")
async def reject_quote(
    quote_id: int,
    reason: str = Form(""),
    claims: Claims = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    quote = await _get_own_quote(db, claims, quote_id)
    await crud.reject_quote(db, quote, reason.strip())
    return redirect("/quotes")


# ── Profile ───────────────────────────────────────────────

@router.get("/profile")
async def profile(
    request: Request,
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    user = await crud.get_user(db, claims.user_id)
    if user is None:
        raise HTTPException(404, "User not found")
    return ctx.renderer.response(
        request, "customer/profile.html.j2", title="My profile", user=claims, profile=user,
    )


@router.post("/profile")
async def update_profile(
    request: Request,
    name: str = Form(""),
    phone: str = Form(""),
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    user = await crud.get_user(db, claims.user_id)
    if user is None:
        raise HTTPException(404, "User not found")

    # empty strings are real values here, so bypass update_user's None filter
    user.name = name.strip()
    user.phone = phone.strip()
    user = await crud.update_user(db, user)
    return ctx.renderer.response(
        request, "customer/profile.html.j2", title="My profile", user=claims, profile=user,
        flash=Flash("success", "Profile updated"),
    )


# ── Surveys ───────────────────────────────────────────────

async def _get_survey_ticket(db: AsyncSession, claims: Claims, ticket_id: int) -> Ticket:
    ticket = await crud.get_ticket(db, ticket_id)
    if ticket is None:
        raise HTTPException(404, "Ticket not found")
    ensure_booking_access(claims, ticket.booking)
    return ticket


@router.get("/survey/{ticket_id}")
async def survey_page(
    request: Request,
    ticket_id: int,
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    ticket = await _get_survey_ticket(db, claims, ticket_id)
    if await crud.get_survey_for_ticket(db, ticket.id) is not None:
        return ctx.renderer.response(
            request, "customer/survey_completed.html.j2", title="Survey already completed",
            user=claims, flash=Flash("info", "You have already completed this survey"),
        )
    if TicketStatus(ticket.status) not in SURVEY_ELIGIBLE_STATUSES:
        raise HTTPException(400, "Survey not available for this ticket status")

    return ctx.renderer.response(
        request, "customer/survey.html.j2", title="Satisfaction survey", user=claims, ticket=ticket,
    )


@router.post("/survey/{ticket_id}")
async def submit_survey(
    request: Request,
    ticket_id: int,
    rating: int = Form(0),
    feedback: str = Form(""),
    claims: Claims = Depends(require_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    ticket = await _get_survey_ticket(db, claims, ticket_id)
    if await crud.get_survey_for_ticket(db, ticket.id) is not None:
        return ctx.renderer.response(
            request, "customer/survey_completed.html.j2", title="Survey already completed",
            user=claims, flash=Flash("info", "You have already completed this survey"),
        )
    if TicketStatus(ticket.status) not in SURVEY_ELIGIBLE_STATUSES:
        raise HTTPException(400, "Survey not available for this ticket status")
    if not 1 <= rating <= 5:
        return ctx.renderer.response(
            request, "customer/survey.html.j2", title="Satisfaction survey", user=claims,
            ticket=ticket, flash=Flash("error", "Please choose a rating from 1 to 5"),
            status_code=400,
        )

    await crud.create_survey(db, ticket.id, rating, feedback.strip())
    return ctx.renderer.response(
        request, "customer/survey_completed.html.j2", title="Thank you!", user=claims,
        flash=Flash("success", "Thanks for your feedback!"),
    )
