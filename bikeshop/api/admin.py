"""Admin back office: users, catalog, reports, tickets, settings and ads."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.api.forms import optional_id, redirect
from bikeshop.api.public import DEFAULT_HERO_CONCEPT
from bikeshop.context import AppContext
from bikeshop.db import crud
from bikeshop.dependencies import get_ctx, get_db, require_admin
from bikeshop.models import Ad
from bikeshop.models.enums import MediaType, Role, TicketStatus
from bikeshop.services import reports
from bikeshop.services.auth import Claims, hash_password
from bikeshop.services.rendering import Flash
from bikeshop.services.tickets import reassign_technician

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _parse_role(value: str) -> Role | None:
    try:
        return Role(value)
    except ValueError:
        return None


def _parse_float(value: str, default: float = 0.0) -> float:
    try:
        return float(value)
    except ValueError:
        return default


@router.get("")
async def admin_dashboard(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    stats = await reports.dashboard_stats(db)
    return ctx.renderer.response(
        request, "admin/dashboard.html.j2", title="Admin dashboard", user=claims, **stats,
    )


# ── Users ─────────────────────────────────────────────────

def _user_form(request, ctx, claims, *, title, user=None, form=None, flash=None):
    return ctx.renderer.response(
        request, "admin/user_form.html.j2", title=title, user=claims, flash=flash,
        edit_user=user, form=form or {}, roles=list(Role),
    )


@router.get("/users")
async def users_list(
    request: Request,
    role: str = "",
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    users = await crud.list_users(db, role=_parse_role(role))
    return ctx.renderer.response(
        request, "admin/users.html.j2", title="Users", user=claims,
        users=users, current_role=role, roles=list(Role),
    )


@router.get("/users/new")
async def new_user_page(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
):
    return _user_form(request, ctx, claims, title="New user")


@router.post("/users")
async def create_user(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    role: str = Form("customer"),
    password: str = Form(""),
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    email = email.strip()
    form = {"name": name, "email": email, "phone": phone, "role": role}
    parsed_role = _parse_role(role)

    error = None
    if not email or not password:
        error = "Email and password are required"
    elif parsed_role is None:
        error = "Unknown role"
    elif await crud.get_user_by_email(db, email) is not None:
        error = "That email is already registered"
    if error:
        return _user_form(request, ctx, claims, title="New user", form=form, flash=Flash("error", error))

    user = await crud.create_user(
        db, email, hash_password(password),
        name=name.strip(), phone=phone.strip(), role=parsed_role,
    )
    logger.info("Admin %s created user %s with role %s", claims.user_id, user.id, parsed_role.value)
    return redirect("/admin/users")


@router.get("/users/{user_id}")
async def edit_user_page(
    request: Request,
    user_id: int,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    user = await crud.get_user(db, user_id)
    if user is None:
        raise HTTPException(404, "User not found")
    form = {"name": user.name, "email": user.email, "phone": user.phone, "role": Role(user.role).value}
    return _user_form(request, ctx, claims, title="Edit user", user=user, form=form)


@router.post("/users/{user_id}")
async def update_user(
    request: Request,
    user_id: int,
    name: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    role: str = Form(""),
    password: str = Form(""),
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    user = await crud.get_user(db, user_id)
    if user is None:
        raise HTTPException(404, "User not found")

    email = email.strip()
    form = {"name": name, "email": email, "phone": phone, "role": role}
    parsed_role = _parse_role(role)

    error = None
    if not email:
        error = "Email is required"
    elif parsed_role is None:
        error = "Unknown role"
    elif email != user.email and await crud.get_user_by_email(db, email) is not None:
        error = "That email is already registered"
    if error:
        return _user_form(
            request, ctx, claims, title="Edit user", user=user, form=form, flash=Flash("error", error),
        )

    user.name = name.strip()
    user.phone = phone.strip()
    await crud.update_user(
        db, user,
        email=email,
        role=parsed_role,
        password_hash=hash_password(password) if password else None,
    )
    return redirect("/admin/users")


@router.post("/users/{user_id}/delete")
async def delete_user(
    user_id: int,
    claims: Claims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if user_id == claims.user_id:
        raise HTTPException(400, "You cannot delete your own account")
    if not await crud.delete_user(db, user_id):
        raise HTTPException(404, "User not found")
    logger.info("Admin %s deleted user %s", claims.user_id, user_id)
    return redirect("/admin/users")


# ── Brands ────────────────────────────────────────────────

@router.get("/brands")
async def brands_list(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    return ctx.renderer.response(
        request, "admin/brands.html.j2", title="Brands", user=claims,
        brands=await crud.list_brands(db),
    )


@router.get("/brands/new")
async def new_brand_page(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
):
    return ctx.renderer.response(request, "admin/brand_form.html.j2", title="New brand", user=claims, brand=None)


@router.post("/brands")
async def create_brand(
    name: str = Form(""),
    logo_url: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    if not name.strip():
        raise HTTPException(400, "Brand name is required")
    await crud.create_brand(db, name.strip(), logo_url.strip())
    return redirect("/admin/brands")


@router.get("/brands/{brand_id}")
async def edit_brand_page(
    request: Request,
    brand_id: int,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    brand = await crud.get_brand(db, brand_id)
    if brand is None:
        raise HTTPException(404, "Brand not found")
    return ctx.renderer.response(request, "admin/brand_form.html.j2", title="Edit brand", user=claims, brand=brand)


@router.post("/brands/{brand_id}")
async def update_brand(
    brand_id: int,
    name: str = Form(""),
    logo_url: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    brand = await crud.get_brand(db, brand_id)
    if brand is None:
        raise HTTPException(404, "Brand not found")
    if not name.strip():
        raise HTTPException(400, "Brand name is required")
    brand.logo_url = logo_url.strip()
    await crud.update_brand(db, brand, name=name.strip())
    return redirect("/admin/brands")


@router.post("/brands/{brand_id}/delete")
async def delete_brand(brand_id: int, db: AsyncSession = Depends(get_db)):
    if not await crud.delete_brand(db, brand_id):
        raise HTTPException(404, "Brand not found")
    return redirect("/admin/brands")


# ── Models ────────────────────────────────────────────────

@router.get("/models")
async def models_list(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    return ctx.renderer.response(
        request, "admin/models.html.j2", title="Models", user=claims,
        models=await crud.list_models(db),
    )


@router.get("/models/new")
async def new_model_page(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    return ctx.renderer.response(
        request, "admin/model_form.html.j2", title="New model", user=claims,
        model=None, brands=await crud.list_brands(db),
    )


@router.post("/models")
async def create_model(
    brand_id: str = Form(""),
    name: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    brand = await crud.get_brand(db, optional_id(brand_id) or 0)
    if brand is None or not name.strip():
        raise HTTPException(400, "A brand and a model name are required")
    await crud.create_model(db, brand.id, name.strip())
    return redirect("/admin/models")


@router.get("/models/{model_id}")
async def edit_model_page(
    request: Request,
    model_id: int,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    model = await crud.get_model(db, model_id)
    if model is None:
        raise HTTPException(404, "Model not found")
    return ctx.renderer.response(
        request, "admin/model_form.html.j2", title="Edit model", user=claims,
        model=model, brands=await crud.list_brands(db),
    )


@router.post("/models/{model_id}")
async def update_model(
    model_id: int,
    brand_id: str = Form(""),
    name: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    model = await crud.get_model(db, model_id)
    if model is None:
        raise HTTPException(404, "Model not found")
    brand = await crud.get_brand(db, optional_id(brand_id) or 0)
    if brand is None or not name.strip():
        raise HTTPException(400, "A brand and a model name are required")
    await crud.update_model(db, model, brand_id=brand.id, name=name.strip())
    return redirect("/admin/models")


@router.post("/models/{model_id}/delete")
async def delete_model(model_id: int, db: AsyncSession = Depends(get_db)):
    if not await crud.delete_model(db, model_id):
        raise HTTPException(404, "Model not found")
    return redirect("/admin/models")


# ── Services ──────────────────────────────────────────────

@router.get("/services")
async def services_list(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    return ctx.renderer.response(
        request, "admin/services.html.j2", title="Services", user=claims,
        services=await crud.list_services(db),
    )


@router.get("/services/new")
async def new_service_page(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
):
    return ctx.renderer.response(
        request, "admin/service_form.html.j2", title="New service", user=claims, service=None,
    )


@router.post("/services")
async def create_service(
    name: str = Form(""),
    description: str = Form(""),
    base_price: str = Form("0"),
    estimated_hours: str = Form("1"),
    db: AsyncSession = Depends(get_db),
):
    if not name.strip():
        raise HTTPException(400, "Service name is required")
    await crud.create_service(
        db, name.strip(), description.strip(),
        base_price=_parse_float(base_price), estimated_hours=_parse_float(estimated_hours, 1.0),
    )
    return redirect("/admin/services")


@router.get("/services/{service_id}")
async def edit_service_page(
    request: Request,
    service_id: int,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    service = await crud.get_service(db, service_id)
    if service is None:
        raise HTTPException(404, "Service not found")
    return ctx.renderer.response(
        request, "admin/service_form.html.j2", title="Edit service", user=claims, service=service,
    )


@router.post("/services/{service_id}")
async def update_service(
    service_id: int,
    name: str = Form(""),
    description: str = Form(""),
    base_price: str = Form("0"),
    estimated_hours: str = Form("1"),
    db: AsyncSession = Depends(get_db),
):
    service = await crud.get_service(db, service_id)
    if service is None:
        raise HTTPException(404, "Service not found")
    if not name.strip():
        raise HTTPException(400, "Service name is required")
    service.description = description.strip()
    await crud.update_service(
        db, service,
        name=name.strip(),
        base_price=_parse_float(base_price),
        estimated_hours=_parse_float(estimated_hours, 1.0),
    )
    return redirect("/admin/services")


@router.post("/services/{service_id}/delete")
async def delete_service(service_id: int, db: AsyncSession = Depends(get_db)):
    if not await crud.delete_service(db, service_id):
        raise HTTPException(404, "Service not found")
    return redirect("/admin/services")


# ── Reports ───────────────────────────────────────────────

@router.get("/reports")
async def reports_dashboard(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    data = await reports.summary(db, datetime.now())
    return ctx.renderer.response(request, "admin/reports.html.j2", title="Reports", user=claims, **data)


@router.get("/reports/bookings")
async def bookings_report(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    data = await reports.bookings_report(db, datetime.now())
    return ctx.renderer.response(
        request, "admin/report_bookings.html.j2", title="Bookings report", user=claims, **data,
    )


@router.get("/reports/revenue")
async def revenue_report(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    data = await reports.revenue_report(db)
    return ctx.renderer.response(
        request, "admin/report_revenue.html.j2", title="Revenue report", user=claims, **data,
    )


@router.get("/reports/surveys")
async def surveys_report(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    data = await reports.survey_report(db)
    return ctx.renderer.response(
        request, "admin/report_surveys.html.j2", title="Survey report", user=claims, **data,
    )


# ── Tickets ───────────────────────────────────────────────

@router.get("/tickets")
async def admin_tickets(
    request: Request,
    status: str = "",
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    try:
        status_filter = TicketStatus(status) if status else None
    except ValueError:
        status_filter = None
    return ctx.renderer.response(
        request, "admin/tickets.html.j2", title="Tickets", user=claims,
        tickets=await crud.list_tickets(db, status=status_filter, limit=100),
        technicians=await crud.list_users(db, role=Role.TECHNICIAN),
        current_status=status,
    )


@router.post("/tickets/{ticket_id}/technician")
async def reassign_ticket_technician(
    ticket_id: int,
    technician_id: str = Form(""),
    claims: Claims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ticket = await crud.get_ticket(db, ticket_id)
    if ticket is None:
        raise HTTPException(404, "Ticket not found")

    tech_id = optional_id(technician_id)
    if tech_id is not None:
        tech = await crud.get_user(db, tech_id)
        if tech is None or Role(tech.role) is Role.CUSTOMER:
            raise HTTPException(400, "Not a technician")

    await reassign_technician(db, ticket, tech_id, claims)
    return redirect("/admin/tickets")


# ── Settings ──────────────────────────────────────────────

@router.get("/settings")
async def settings_page(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    hero_concept = await crud.get_setting(db, "hero_concept") or DEFAULT_HERO_CONCEPT
    return ctx.renderer.response(
        request, "admin/settings.html.j2", title="Settings", user=claims,
        hero_concept=hero_concept, config=ctx.settings,
    )


@router.post("/settings")
async def update_settings(
    request: Request,
    hero_concept: str = Form(""),
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    hero_concept = hero_concept.strip()
    if hero_concept:
        await crud.set_setting(db, "hero_concept", hero_concept)
    current = await crud.get_setting(db, "hero_concept") or DEFAULT_HERO_CONCEPT
    return ctx.renderer.response(
        request, "admin/settings.html.j2", title="Settings", user=claims,
        flash=Flash("success", "Settings saved"),
        hero_concept=current, config=ctx.settings,
    )


# ── Ads ───────────────────────────────────────────────────

def _parse_media_type(value: str) -> MediaType:
    try:
        return MediaType(value)
    except ValueError:
        return MediaType.IMAGE


async def _get_ad(db: AsyncSession, ad_id: int) -> Ad:
    ad = await crud.get_ad(db, ad_id)
    if ad is None:
        raise HTTPException(404, "Ad not found")
    return ad


@router.get("/ads")
async def ads_list(
    request: Request,
    claims: Claims = Depends(require_admin),
    ctx: AppContext = Depends(get_ctx),
    db: AsyncSession = Depends(get_db),
):
    return ctx.renderer.response(
        request, "admin/ads.html.j2", title="Ads", user=claims,
        ads=await crud.list_ads(db), media_types=list(MediaType),
    )


@router.post("/ads")
async def create_ad(
    title: str = Form(""),
    media_url: str = Form(""),
    media_type: str = Form("image"),
    link_url: str = Form(""),
    active: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    if not title.strip() or not media_url.strip():
        raise HTTPException(400, "Title and media URL are required")
    await crud.create_ad(
        db,
        title=title.strip(),
        media_url=media_url.strip(),
        media_type=_parse_media_type(media_type),
        link_url=link_url.strip(),
        active=active == "on",
    )
    return redirect("/admin/ads")


@router.post("/ads/{ad_id}/update")
async def update_ad(
    ad_id: int,
    action: str = Form(""),
    title: str = Form(""),
    media_url: str = Form(""),
    media_type: str = Form("image"),
    link_url: str = Form(""),
    active: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    ad = await _get_ad(db, ad_id)
    if action == "toggle":
        ad.active = not ad.active
    else:
        ad.title = title.strip()
        ad.media_url = media_url.strip()
        ad.media_type = _parse_media_type(media_type)
        ad.link_url = link_url.strip()
        ad.active = active == "on"
    await crud.update_ad(db, ad)
    return redirect("/admin/ads")


@router.post("/ads/{ad_id}/delete")
async def delete_ad(ad_id: int, db: AsyncSession = Depends(get_db)):
    if not await crud.delete_ad(db, ad_id):
        raise HTTPException(404, "Ad not found")
    return redirect("/admin/ads")
