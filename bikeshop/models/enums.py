"""Closed enumerations stored as their lowercase string values."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    CUSTOMER = "customer"
    TECHNICIAN = "technician"
    ADMIN = "admin"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TicketStatus(str, Enum):
    RECEIVED = "received"
    DIAGNOSING = "diagnosing"
    IN_PROGRESS = "in_progress"
    WAITING_PARTS = "waiting_parts"
    READY = "ready"
    DELIVERED = "delivered"

    @property
    def label(self) -> str:
        return TICKET_STATUS_LABELS[self]


TICKET_STATUS_LABELS = {
    TicketStatus.RECEIVED: "Received",
    TicketStatus.DIAGNOSING: "Diagnosing",
    TicketStatus.IN_PROGRESS: "In progress",
    TicketStatus.WAITING_PARTS: "Waiting for parts",
    TicketStatus.READY: "Ready for pickup",
    TicketStatus.DELIVERED: "Delivered",
}

# Survey may be answered once the bike is ready or handed back
SURVEY_ELIGIBLE_STATUSES = frozenset({TicketStatus.READY, TicketStatus.DELIVERED})


class QuoteStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PartStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
