"""Ticket status state machine.

Technicians move tickets forward along TECHNICIAN_TRANSITIONS; admins may set
any status. Re-submitting the current status is always allowed so notes can be
attached without a state change.
"""

from __future__ import annotations

from bikeshop.errors import InvalidTransition, TicketAccessDenied
from bikeshop.models.enums import Role, TicketStatus
from bikeshop.models.ticket import Ticket
from bikeshop.services.auth import Claims

TECHNICIAN_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.RECEIVED: frozenset({TicketStatus.DIAGNOSING}),
    TicketStatus.DIAGNOSING: frozenset({
        TicketStatus.IN_PROGRESS, TicketStatus.WAITING_PARTS, TicketStatus.READY,
    }),
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.WAITING_PARTS, TicketStatus.READY}),
    TicketStatus.WAITING_PARTS: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.READY}),
    TicketStatus.READY: frozenset({TicketStatus.DELIVERED}),
    TicketStatus.DELIVERED: frozenset(),
}


def is_transition_allowed(role: Role, current: TicketStatus, target: TicketStatus) -> bool:
    if current == target:
        return True
    if role is Role.ADMIN:
        return True
    if role is Role.TECHNICIAN:
        return target in TECHNICIAN_TRANSITIONS[current]
    return False


def allowed_next_statuses(role: Role, current: TicketStatus) -> list[TicketStatus]:
    """Statuses offered in the UI for this actor, in workflow order."""
    return [s for s in TicketStatus if s != current and is_transition_allowed(role, current, s)]


def ensure_can_edit(claims: Claims, ticket: Ticket) -> None:
    """Technicians may only touch tickets assigned to them."""
    if claims.role is Role.ADMIN:
        return
    if claims.role is Role.TECHNICIAN and ticket.technician_id == claims.user_id:
        return
    raise TicketAccessDenied(ticket.id, claims.user_id)


def check_transition(claims: Claims, ticket: Ticket, target: TicketStatus) -> None:
    """Raise TicketAccessDenied or InvalidTransition; mutates nothing."""
    ensure_can_edit(claims, ticket)
    current = TicketStatus(ticket.status)
    if not is_transition_allowed(claims.role, current, target):
        raise InvalidTransition(current.value, target.value)
