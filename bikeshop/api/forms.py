"""Small helpers shared by the HTML form routers."""

from __future__ import annotations

from fastapi import HTTPException
from fastapi.responses import RedirectResponse

from bikeshop.models import Booking
from bikeshop.services.auth import Claims


def redirect(url: str) -> RedirectResponse:
    """POST/redirect/GET: always a 303 so the browser follows with GET."""
    return RedirectResponse(url, status_code=303)


def optional_id(value: str | None) -> int | None:
    """Form select value as an id; blank, zero or garbage means none."""
    try:
        parsed = int((value or "").strip())
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def local_path(value: str | None, default: str) -> str:
    """Only same-site absolute paths are accepted as redirect targets."""
    value = (value or "").strip()
    # browsers read "/\host" like "//host"
    if value.startswith("/") and value[1:2] not in ("/", "\\"):
        return value
    return default


def ensure_booking_access(claims: Claims, booking: Booking) -> None:
    """Customers may only act on their own bookings; staff on any."""
    if not claims.is_staff and booking.customer_id != claims.user_id:
        raise HTTPException(403, "Forbidden")
