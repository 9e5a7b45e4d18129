"""Domain exceptions mapped to HTTP outcomes by the routers and app handlers."""

from __future__ import annotations


class LoginRequired(Exception):
    """No valid auth token on a protected route; answered with a redirect to /login."""


class TicketAccessDenied(Exception):
    """A technician tried to modify a ticket assigned to someone else."""

    def __init__(self, ticket_id: int, user_id: int):
        super().__init__(f"user {user_id} is not assigned to ticket {ticket_id}")
        self.ticket_id = ticket_id
        self.user_id = user_id


class InvalidTransition(Exception):
    """The requested status change is not allowed for the acting role."""

    def __init__(self, current: str, target: str):
        super().__init__(f"transition {current} -> {target} not allowed")
        self.current = current
        self.target = target


class RenderError(Exception):
    """A page template failed to render."""
