"""Render server-side HTML pages with Jinja2."""

from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, TemplateError

from bikeshop.config import Settings
from bikeshop.errors import RenderError
from bikeshop.models.enums import TicketStatus, TICKET_STATUS_LABELS
from bikeshop.services.auth import Claims

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

_STATUS_LABELS = {
    "pending": "Pending",
    "confirmed": "Confirmed",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "approved": "Approved",
    "rejected": "Rejected",
    "done": "Done",
    **{s.value: label for s, label in TICKET_STATUS_LABELS.items()},
}

_STATUS_BADGES = {
    "pending": "secondary",
    "confirmed": "primary",
    "received": "secondary",
    "diagnosing": "primary",
    "in_progress": "warning",
    "waiting_parts": "warning",
    "ready": "success",
    "delivered": "success",
    "completed": "success",
    "cancelled": "error",
    "approved": "success",
    "rejected": "error",
}


@dataclass
class Flash:
    kind: str  # 'success' | 'error' | 'info'
    message: str


def _value(status) -> str:
    return getattr(status, "value", status) or ""


def format_date(value: datetime | None) -> str:
    return value.strftime("%d/%m/%Y") if value else "-"


def format_time(value: datetime | None) -> str:
    return value.strftime("%H:%M") if value else "-"


def format_datetime(value: datetime | None) -> str:
    return value.strftime("%d/%m/%Y %H:%M") if value else "-"


def format_money(amount: float | None) -> str:
    return f"${amount or 0:,.2f}"


def png_data_uri(data: bytes | None) -> str:
    if not data:
        return ""
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def status_label(status) -> str:
    v = _value(status)
    return _STATUS_LABELS.get(v, v)


def status_badge(status) -> str:
    return _STATUS_BADGES.get(_value(status), "secondary")


def whatsapp_link(phone: str, message: str, default_prefix: str = "+56") -> str:
    """wa.me link with a pre-filled message; bare local numbers get the default prefix."""
    clean = re.sub(r"[^0-9+]", "", phone or "")
    if clean and not clean.startswith("+"):
        clean = default_prefix + clean
    return f"https://wa.me/{clean.lstrip('+')}?text={quote(message)}"


class TemplateRenderer:
    """Jinja2 environment shared by all pages; templates extend layouts/base.html.j2."""

    def __init__(self, settings: Settings, template_dir: Path = _TEMPLATE_DIR):
        self._env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=True,
            auto_reload=settings.debug,
        )
        self._env.filters.update(
            format_date=format_date,
            format_time=format_time,
            format_datetime=format_datetime,
            format_money=format_money,
            status_label=status_label,
            status_badge=status_badge,
            whatsapp_link=whatsapp_link,
            png_data_uri=png_data_uri,
        )
        self._env.globals.update(
            business=settings.business,
            features=settings.features,
            ticket_statuses=list(TicketStatus),
        )

    def render_page(self, page: str, **context) -> str:
        try:
            template = self._env.get_template(page)
            return template.render(**context)
        except TemplateError as exc:
            logger.exception("Failed to render %s", page)
            raise RenderError(page) from exc

    def response(
        self,
        request: Request,
        page: str,
        *,
        title: str,
        user: Claims | None = None,
        flash: Flash | None = None,
        status_code: int = 200,
        **data,
    ) -> HTMLResponse:
        html = self.render_page(
            page,
            request=request,
            title=title,
            user=user,
            flash=flash,
            now=datetime.now(),
            **data,
        )
        return HTMLResponse(html, status_code=status_code)
