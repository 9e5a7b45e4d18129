from datetime import datetime

import pytest

from bikeshop.config import Settings
from bikeshop.errors import RenderError
from bikeshop.models.enums import TicketStatus
from bikeshop.services.rendering import (
    TemplateRenderer, format_date, format_datetime, format_money, format_time,
    png_data_uri, status_badge, status_label, whatsapp_link,
)


def test_date_formats():
    when = datetime(2026, 5, 4, 9, 5)
    assert format_date(when) == "04/05/2026"
    assert format_time(when) == "09:05"
    assert format_datetime(when) == "04/05/2026 09:05"
    assert format_date(None) == "-"


def test_money():
    assert format_money(1234.5) == "$1,234.50"
    assert format_money(None) == "$0.00"


def test_status_label_accepts_enum_or_string():
    assert status_label(TicketStatus.WAITING_PARTS) == "Waiting for parts"
    assert status_label("in_progress") == "In progress"
    assert status_label("mystery") == "mystery"
    assert status_badge("ready") == "success"
    assert status_badge("mystery") == "secondary"


def test_png_data_uri():
    assert png_data_uri(b"\x89PNG") == "data:image/png;base64,iVBORw=="
    assert png_data_uri(None) == ""


@pytest.mark.parametrize("phone,expected", [
    ("9 1234 5678", "https://wa.me/56912345678?text=Hola%20Ana"),
    ("+34 600 111 222", "https://wa.me/34600111222?text=Hola%20Ana"),
])
def test_whatsapp_link(phone, expected):
    assert whatsapp_link(phone, "Hola Ana") == expected


def test_page_renders_with_layout():
    renderer = TemplateRenderer(Settings(debug=True))
    html = renderer.render_page("public/tracking.html.j2", title="Track", user=None, flash=None, code="<x>")
    assert "<title>Track | BikeShop</title>" in html
    assert "&lt;x&gt;" in html


def test_missing_template_raises_render_error():
    renderer = TemplateRenderer(Settings(debug=True))
    with pytest.raises(RenderError):
        renderer.render_page("public/nope.html.j2")
