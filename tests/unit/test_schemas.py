from datetime import datetime

import pytest
from pydantic import ValidationError

from bikeshop.models import BikeModel
from bikeshop.schemas.catalog import BikeModelRead
from bikeshop.schemas.quote import QuoteItem, build_quote_items
from bikeshop.schemas.ticket import TicketStatusRead, WalkInTicketCreate


def test_quote_item_total_is_computed():
    item = QuoteItem(description=" Chain ", quantity=3, unit_price=10.333)
    assert item.description == "Chain"
    assert item.total == 31.0


@pytest.mark.parametrize("kwargs", [
    {"description": "   ", "quantity": 1, "unit_price": 1},
    {"description": "x", "quantity": 0, "unit_price": 1},
    {"description": "x", "quantity": 1, "unit_price": -1},
])
def test_quote_item_rejects_bad_rows(kwargs):
    with pytest.raises(ValidationError):
        QuoteItem(**kwargs)


def test_build_quote_items_skips_blank_rows():
    items = build_quote_items(["Chain", "", "Labour"], ["1", "1", "2"], ["15", "0", "10.5"])
    assert [i.description for i in items] == ["Chain", "Labour"]
    assert [i.total for i in items] == [15.0, 21.0]


def test_build_quote_items_requires_an_item():
    with pytest.raises(ValueError, match="at least one"):
        build_quote_items(["", " "], ["1", "1"], ["0", "0"])


def test_build_quote_items_requires_matching_lengths():
    with pytest.raises(ValueError, match="incomplete"):
        build_quote_items(["Chain"], ["1", "2"], ["15"])


def test_build_quote_items_rejects_non_numeric():
    with pytest.raises(ValidationError):
        build_quote_items(["Chain"], ["one"], ["15"])


def test_walk_in_strips_and_validates_email():
    form = WalkInTicketCreate(email="  a@b.com ", brand=" Trek ")
    assert form.email == "a@b.com"
    assert form.brand == "Trek"
    assert form.service_id is None
    with pytest.raises(ValidationError):
        WalkInTicketCreate(email="not-an-email")


def test_ticket_status_read_uses_camel_case_aliases():
    body = TicketStatusRead(
        id=1, tracking_code="abcd1234", status="ready", status_label="Ready for pickup",
        updated_at=datetime(2026, 5, 4, 10, 0),
    ).model_dump(mode="json", by_alias=True)
    assert body == {
        "id": 1,
        "trackingCode": "abcd1234",
        "status": "ready",
        "statusLabel": "Ready for pickup",
        "updatedAt": "2026-05-04T10:00:00",
    }


def test_bike_model_read_from_orm():
    read = BikeModelRead.model_validate(BikeModel(id=3, brand_id=2, name="Marlin"))
    assert read.model_dump() == {"id": 3, "brand_id": 2, "name": "Marlin"}
