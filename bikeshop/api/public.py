"""Public pages: home, service catalog, login/register, tracking and ad clicks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.api.forms import redirect
from bikeshop.context import AppContext
from bikeshop.db import crud
from bikeshop.dependencies import get_ctx, get_db, optional_auth
from bikeshop.models.enums import QuoteStatus, Role, SURVEY_ELIGIBLE_STATUSES, TicketStatus
from bikeshop.services.auth import (
    Claims, HOME_PATHS, clear_auth_cookie, hash_password, set_auth_cookie, verify_password,
)
from bikeshop.services.rendering import Flash

logger = logging.getLogger(__name__)

router = APIRouter(tags=["public"])

DEFAULT_HERO_CONCEPT = "bicycle workshop"


@router.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/")
async def home(
    request: Request,
    claims: Claims | None = Depends(optional_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    hero_concept = await crud.get_setting(db, "hero_concept") or DEFAULT_HERO_CONCEPT
    return ctx.renderer.response(
        request, "public/home.html.j2", title="Home", user=claims,
        hero_concept=hero_concept,
    )


@router.get("/services")
async def services_page(
    request: Request,
    claims: Claims | None = Depends(optional_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    services = await crud.list_services(db)
    return ctx.renderer.response(
        request, "public/services.html.j2", title="Our services", user=claims,
        services=services,
    )


# ── Login / register ──────────────────────────────────────

@router.get("/login")
async def login_page(
    request: Request,
    registered: str = "",
    claims: Claims | None = Depends(optional_auth),
    ctx: AppContext = Depends(get_ctx),
):
    if claims is not None:
        return redirect(HOME_PATHS[claims.role])
    flash = Flash("success", "Account created, you can now sign in") if registered else None
    return ctx.renderer.response(request, "public/login.html.j2", title="Sign in", flash=flash)


@router.post("/login")
async def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    user = await crud.get_user_by_email(db, email.strip())
    if user is None or not verify_password(password, user.password_hash):
        return ctx.renderer.response(
            request, "public/login.html.j2", title="Sign in",
            flash=Flash("error", "Invalid credentials"), email=email,
        )

    token = ctx.tokens.issue(user)
    response = redirect(HOME_PATHS[Role(user.role)])
    set_auth_cookie(
        response, token,
        max_age=ctx.tokens.max_age_seconds,
        secure=not ctx.settings.debug,
    )
    logger.info("User %s signed in", user.id)
    return response


@router.get("/register")
async def register_page(request: Request, ctx: AppContext = Depends(get_ctx)):
    return ctx.renderer.response(request, "public/register.html.j2", title="Register")


@router.post("/register")
async def register(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    email = email.strip()
    form = {"name": name, "email": email, "phone": phone}

    error = None
    if not email or "@" not in email or not password:
        error = "Email and password are required"
    elif password != confirm_password:
        error = "Passwords do not match"
    elif await crud.get_user_by_email(db, email) is not None:
        error = "That email is already registered"
    if error:
        return ctx.renderer.response(
            request, "public/register.html.j2", title="Register",
            flash=Flash("error", error), form=form,
        )

    await crud.create_user(
        db, email, hash_password(password),
        name=name.strip(), phone=phone.strip(), role=Role.CUSTOMER,
    )
    return redirect("/login?registered=1")


@router.get("/logout")
async def logout():
    response = redirect("/")
    clear_auth_cookie(response)
    return response


# ── Tracking ──────────────────────────────────────────────

@router.get("/tracking")
async def tracking_page(
    request: Request,
    code: str = "",
    claims: Claims | None = Depends(optional_auth),
    ctx: AppContext = Depends(get_ctx),
):
    if code.strip():
        return redirect(f"/tracking/{code.strip().lower()}")
    return ctx.renderer.response(request, "public/tracking.html.j2", title="Track your repair", user=claims)


@router.get("/tracking/{code}")
async def tracking_status(
    request: Request,
    code: str,
    survey_submitted: str = "",
    quote_approved: str = "",
    claims: Claims | None = Depends(optional_auth),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    ticket = await crud.get_ticket_by_tracking_code(db, code)
    if ticket is None:
        return ctx.renderer.response(
            request, "public/tracking.html.j2", title="Tracking code not found", user=claims,
            flash=Flash("error", "Tracking code not found"), code=code,
        )

    history = await crud.list_status_history(db, ticket.id)
    # latest entry per status, for the progress timeline
    status_map = {TicketStatus(h.status).value: h for h in history}
    quote = await crud.get_quote_for_booking(db, ticket.booking_id)
    survey = await crud.get_survey_for_ticket(db, ticket.id)

    ad = await crud.get_random_active_ad(db)
    if ad is not None:
        ctx.counters.ad_impression(ad.id)

    flash = None
    if survey_submitted:
        flash = Flash("success", "Thanks for your feedback!")
    elif quote_approved:
        flash = Flash("success", "Quote approved, we will get to work")

    return ctx.renderer.response(
        request, "public/tracking_result.html.j2", title="Your repair status", user=claims,
        flash=flash,
        ticket=ticket,
        history=history,
        status_map=status_map,
        quote=quote,
        survey=survey,
        ad=ad,
        survey_open=TicketStatus(ticket.status) in SURVEY_ELIGIBLE_STATUSES,
    )


@router.post("/tracking/{code}/survey")
async def submit_public_survey(
    code: str,
    rating: int = Form(0),
    feedback: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    ticket = await crud.get_ticket_by_tracking_code(db, code)
    if ticket is None:
        raise HTTPException(404, "Ticket not found")
    if TicketStatus(ticket.status) not in SURVEY_ELIGIBLE_STATUSES:
        raise HTTPException(400, "Survey not available for this ticket status")

    if await crud.get_survey_for_ticket(db, ticket.id) is not None:
        return redirect(f"/tracking/{code}")
    if not 1 <= rating <= 5:
        raise HTTPException(400, "Rating must be between 1 and 5")

    await crud.create_survey(db, ticket.id, rating, feedback.strip())
    return redirect(f"/tracking/{code}?survey_submitted=true")


@router.post("/tracking/quote/{quote_id}/approve")
async def approve_public_quote(
    quote_id: int,
    tracking_code: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    quote = await crud.get_quote(db, quote_id)
    ticket = await crud.get_ticket_by_tracking_code(db, tracking_code.strip())
    # the tracking code is the only credential on this page
    if quote is None or ticket is None or ticket.booking_id != quote.booking_id:
        raise HTTPException(404, "Quote not found")

    if QuoteStatus(quote.status) is not QuoteStatus.PENDING:
        return redirect(f"/tracking/{ticket.tracking_code}")
    await crud.approve_quote(db, quote)
    return redirect(f"/tracking/{ticket.tracking_code}?quote_approved=true")


@router.get("/ad/{ad_id}/click")
async def ad_click(
    ad_id: int,
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    ad = await crud.get_ad(db, ad_id)
    if ad is None:
        raise HTTPException(404, "Ad not found")

    ctx.counters.ad_click(ad.id)
    if ad.link_url:
        return RedirectResponse(ad.link_url, status_code=302)
    return redirect("/")
