from datetime import datetime, timezone

import pytest
import pytest_asyncio

from bikeshop.db import crud
from bikeshop.db.engine import Database
from bikeshop.errors import InvalidTransition, TicketAccessDenied
from bikeshop.models.enums import BookingStatus, Role, TicketStatus
from bikeshop.schemas.ticket import WalkInTicketCreate
from bikeshop.services import tickets as ticket_ops
from bikeshop.services.auth import Claims, verify_password
from bikeshop.services.qr import tracking_url

BASE_URL = "https://shop.example.com"


@pytest_asyncio.fixture
async def db():
    database = Database(":memory:")
    await database.create_all()
    async with database.session_factory() as session:
        yield session
    await database.dispose()


def _claims(user) -> Claims:
    now = datetime.now(timezone.utc)
    return Claims(user_id=user.id, email=user.email, role=Role(user.role), issued_at=now, expires_at=now)


@pytest_asyncio.fixture
async def people(db):
    customer = await crud.create_user(db, "cust@test.com", "hash", role=Role.CUSTOMER)
    tech = await crud.create_user(db, "tech@test.com", "hash", role=Role.TECHNICIAN)
    other = await crud.create_user(db, "other@test.com", "hash", role=Role.TECHNICIAN)
    admin = await crud.create_user(db, "admin@test.com", "hash", role=Role.ADMIN)
    return {"customer": customer, "tech": tech, "other": other, "admin": admin}


@pytest_asyncio.fixture
async def ticket(db, people):
    booking = await crud.create_booking(db, people["customer"].id, datetime(2026, 5, 4, 10, 0))
    return await ticket_ops.create_ticket_from_booking(db, booking, _claims(people["tech"]), BASE_URL)


def test_tracking_code_shape():
    code = ticket_ops.generate_tracking_code()
    assert len(code) == 8
    assert code == code.lower()
    int(code, 16)


def test_tracking_url_strips_trailing_slash():
    assert tracking_url("https://shop.example.com/", "abcd1234") == "https://shop.example.com/tracking/abcd1234"


# ── Creation ──────────────────────────────────────────────

async def test_ticket_from_booking_confirms_booking(db, people):
    booking = await crud.create_booking(db, people["customer"].id, datetime(2026, 5, 4, 10, 0))
    assert booking.status is BookingStatus.PENDING

    ticket = await ticket_ops.create_ticket_from_booking(db, booking, _claims(people["tech"]), BASE_URL)

    refreshed = await crud.get_booking(db, booking.id)
    assert refreshed.status is BookingStatus.CONFIRMED
    assert ticket.technician_id == people["tech"].id
    assert ticket.status is TicketStatus.RECEIVED
    assert ticket.qr_code.startswith(b"\x89PNG")


async def test_walk_in_creates_customer_bike_and_catalog(db):
    form = WalkInTicketCreate(
        email="walkin@test.com", name="Walk In", phone="555", brand="Orbea", model="Alma",
        color="red", serial="SN1", notes="squeaky brakes",
    )
    ticket = await ticket_ops.create_walk_in_ticket(db, form, BASE_URL)

    assert ticket.technician_id is None
    assert ticket.notes == "squeaky brakes"
    booking = await crud.get_booking(db, ticket.booking_id)
    assert booking.status is BookingStatus.CONFIRMED
    assert booking.bicycle.brand.name == "Orbea"
    assert booking.bicycle.model.name == "Alma"
    assert booking.bicycle.notes == ticket_ops.WALK_IN_BICYCLE_NOTES

    user = await crud.get_user_by_email(db, "walkin@test.com")
    assert user.role is Role.CUSTOMER
    assert verify_password(ticket_ops.WALK_IN_PASSWORD, user.password_hash)


async def test_walk_in_reuses_existing_customer_and_brand(db, people):
    await crud.create_brand(db, "Trek")
    form = WalkInTicketCreate(email="cust@test.com", brand="TREK")
    ticket = await ticket_ops.create_walk_in_ticket(db, form, BASE_URL)

    booking = await crud.get_booking(db, ticket.booking_id)
    assert booking.customer_id == people["customer"].id
    assert len(await crud.list_brands(db)) == 1
    assert booking.bicycle.model_id is None


# ── Status changes ────────────────────────────────────────

async def _history_count(db, ticket_id):
    return len(await crud.list_status_history(db, ticket_id))


async def test_assigned_technician_moves_forward(db, people, ticket):
    await crud.update_ticket_status(db, ticket, TicketStatus.DIAGNOSING, people["tech"].id)
    before = await _history_count(db, ticket.id)

    await ticket_ops.change_status(db, ticket, _claims(people["tech"]), TicketStatus.READY, "done")

    history = await crud.list_status_history(db, ticket.id)
    assert len(history) == before + 1
    assert history[-1].status is TicketStatus.READY
    assert history[-1].changed_by == people["tech"].id
    assert (await crud.get_ticket(db, ticket.id)).status is TicketStatus.READY


async def test_technician_cannot_skip_to_delivered(db, people, ticket):
    await crud.update_ticket_status(db, ticket, TicketStatus.DIAGNOSING, people["tech"].id)
    before = await _history_count(db, ticket.id)

    with pytest.raises(InvalidTransition):
        await ticket_ops.change_status(db, ticket, _claims(people["tech"]), TicketStatus.DELIVERED)

    assert (await crud.get_ticket(db, ticket.id)).status is TicketStatus.DIAGNOSING
    assert await _history_count(db, ticket.id) == before


async def test_unassigned_technician_is_denied(db, people, ticket):
    before = await _history_count(db, ticket.id)
    with pytest.raises(TicketAccessDenied):
        await ticket_ops.change_status(db, ticket, _claims(people["other"]), TicketStatus.DIAGNOSING)
    assert (await crud.get_ticket(db, ticket.id)).status is TicketStatus.RECEIVED
    assert await _history_count(db, ticket.id) == before


async def test_admin_may_move_backwards(db, people, ticket):
    await crud.update_ticket_status(db, ticket, TicketStatus.DELIVERED, people["admin"].id)
    await ticket_ops.change_status(db, ticket, _claims(people["admin"]), TicketStatus.RECEIVED)
    history = await crud.list_status_history(db, ticket.id)
    assert history[-1].status is TicketStatus.RECEIVED
    assert history[-1].changed_by == people["admin"].id


async def test_same_status_records_a_note(db, people, ticket):
    before = await _history_count(db, ticket.id)
    await ticket_ops.change_status(db, ticket, _claims(people["tech"]), TicketStatus.RECEIVED, "called customer")
    history = await crud.list_status_history(db, ticket.id)
    assert len(history) == before + 1
    assert history[-1].notes == "called customer"


def test_unknown_status_string_is_invalid_transition():
    from bikeshop.models import Ticket

    with pytest.raises(InvalidTransition):
        ticket_ops.parse_target_status(Ticket(status=TicketStatus.RECEIVED), "repaired")


# ── Reassignment, notes and parts ─────────────────────────

async def test_reassign_records_history(db, people, ticket):
    before = await _history_count(db, ticket.id)
    await ticket_ops.reassign_technician(db, ticket, people["other"].id, _claims(people["admin"]))

    assert (await crud.get_ticket(db, ticket.id)).technician_id == people["other"].id
    history = await crud.list_status_history(db, ticket.id)
    assert len(history) == before + 1
    assert history[-1].status is TicketStatus.RECEIVED
    assert history[-1].notes == ticket_ops.REASSIGNED_NOTES


async def test_notes_require_assignment(db, people, ticket):
    await ticket_ops.update_notes(db, ticket, _claims(people["tech"]), "needs new chain")
    assert (await crud.get_ticket(db, ticket.id)).notes == "needs new chain"
    with pytest.raises(TicketAccessDenied):
        await ticket_ops.update_notes(db, ticket, _claims(people["other"]), "hijack")


async def test_parts_checklist(db, people, ticket):
    tech = _claims(people["tech"])
    assert await ticket_ops.add_part(db, ticket, tech, "   ") is None
    part = await ticket_ops.add_part(db, ticket, tech, " Brake pads ")
    assert part.name == "Brake pads"

    part = await ticket_ops.toggle_part(db, ticket, tech, part)
    assert part.status.value == "done"

    with pytest.raises(TicketAccessDenied):
        await ticket_ops.remove_part(db, ticket, _claims(people["other"]), part)
    await ticket_ops.remove_part(db, ticket, tech, part)
    assert await crud.list_ticket_parts(db, ticket.id) == []
