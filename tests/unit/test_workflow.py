from datetime import datetime, timezone

import pytest

from bikeshop.errors import InvalidTransition, TicketAccessDenied
from bikeshop.models import Ticket
from bikeshop.models.enums import Role, TicketStatus
from bikeshop.services.auth import Claims
from bikeshop.services.ticket_workflow import (
    TECHNICIAN_TRANSITIONS,
    allowed_next_statuses,
    check_transition,
    ensure_can_edit,
    is_transition_allowed,
)

ALL_PAIRS = [(a, b) for a in TicketStatus for b in TicketStatus]


def _claims(user_id: int, role: Role) -> Claims:
    now = datetime.now(timezone.utc)
    return Claims(user_id=user_id, email=f"u{user_id}@test.com", role=role, issued_at=now, expires_at=now)


def _ticket(status: TicketStatus, technician_id: int | None = 7) -> Ticket:
    return Ticket(id=42, booking_id=1, tracking_code="abcd1234", status=status, technician_id=technician_id)


def test_transition_table_covers_every_status():
    assert set(TECHNICIAN_TRANSITIONS) == set(TicketStatus)
    assert TECHNICIAN_TRANSITIONS[TicketStatus.DELIVERED] == frozenset()


@pytest.mark.parametrize("current,target", ALL_PAIRS)
def test_technician_moves_follow_table(current, target):
    expected = current == target or target in TECHNICIAN_TRANSITIONS[current]
    assert is_transition_allowed(Role.TECHNICIAN, current, target) is expected


@pytest.mark.parametrize("current,target", ALL_PAIRS)
def test_admin_may_set_any_status(current, target):
    assert is_transition_allowed(Role.ADMIN, current, target)


def test_customer_cannot_change_status():
    assert not is_transition_allowed(Role.CUSTOMER, TicketStatus.RECEIVED, TicketStatus.DIAGNOSING)
    assert is_transition_allowed(Role.CUSTOMER, TicketStatus.RECEIVED, TicketStatus.RECEIVED)


def test_known_technician_paths():
    assert is_transition_allowed(Role.TECHNICIAN, TicketStatus.DIAGNOSING, TicketStatus.READY)
    assert is_transition_allowed(Role.TECHNICIAN, TicketStatus.WAITING_PARTS, TicketStatus.IN_PROGRESS)
    assert not is_transition_allowed(Role.TECHNICIAN, TicketStatus.DIAGNOSING, TicketStatus.DELIVERED)
    assert not is_transition_allowed(Role.TECHNICIAN, TicketStatus.READY, TicketStatus.IN_PROGRESS)
    assert not is_transition_allowed(Role.TECHNICIAN, TicketStatus.RECEIVED, TicketStatus.READY)


def test_allowed_next_statuses_in_workflow_order():
    assert allowed_next_statuses(Role.TECHNICIAN, TicketStatus.DIAGNOSING) == [
        TicketStatus.IN_PROGRESS, TicketStatus.WAITING_PARTS, TicketStatus.READY,
    ]
    assert allowed_next_statuses(Role.TECHNICIAN, TicketStatus.DELIVERED) == []
    admin_next = allowed_next_statuses(Role.ADMIN, TicketStatus.READY)
    assert TicketStatus.READY not in admin_next
    assert len(admin_next) == len(TicketStatus) - 1


def test_assigned_technician_can_edit():
    ensure_can_edit(_claims(7, Role.TECHNICIAN), _ticket(TicketStatus.RECEIVED))


def test_admin_can_edit_any_ticket():
    ensure_can_edit(_claims(1, Role.ADMIN), _ticket(TicketStatus.RECEIVED, technician_id=None))


@pytest.mark.parametrize("technician_id", [8, None])
def test_other_technician_is_denied(technician_id):
    with pytest.raises(TicketAccessDenied):
        ensure_can_edit(_claims(7, Role.TECHNICIAN), _ticket(TicketStatus.RECEIVED, technician_id))


def test_customer_is_denied_even_when_ids_match():
    with pytest.raises(TicketAccessDenied):
        ensure_can_edit(_claims(7, Role.CUSTOMER), _ticket(TicketStatus.RECEIVED))


def test_check_transition_rejects_and_leaves_ticket_untouched():
    ticket = _ticket(TicketStatus.DIAGNOSING)
    with pytest.raises(InvalidTransition) as exc_info:
        check_transition(_claims(7, Role.TECHNICIAN), ticket, TicketStatus.DELIVERED)
    assert exc_info.value.current == "diagnosing"
    assert exc_info.value.target == "delivered"
    assert ticket.status == TicketStatus.DIAGNOSING


def test_check_transition_checks_assignment_first():
    ticket = _ticket(TicketStatus.DIAGNOSING, technician_id=99)
    with pytest.raises(TicketAccessDenied):
        check_transition(_claims(7, Role.TECHNICIAN), ticket, TicketStatus.DELIVERED)
