"""Ticket (work order) models: the ticket, its audit trail, checklist and survey."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint, DateTime, ForeignKey, Integer, LargeBinary, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bikeshop.models.base import Base, IntPKMixin, enum_column, utcnow
from bikeshop.models.enums import PartStatus, TicketStatus


class Ticket(Base, IntPKMixin):
    __tablename__ = "tickets"

    booking_id: Mapped[int] = mapped_column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"))
    technician_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, default=None
    )
    tracking_code: Mapped[str] = mapped_column(String(16), unique=True, index=True)
    qr_code: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True, default=None)
    status: Mapped[TicketStatus] = mapped_column(
        enum_column(TicketStatus), default=TicketStatus.RECEIVED
    )
    notes: Mapped[str] = mapped_column(Text, default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    booking = relationship("Booking", lazy="selectin")
    technician = relationship("User", lazy="selectin")


class TicketStatusHistory(Base, IntPKMixin):
    """Append-only: rows are inserted, never updated."""

    __tablename__ = "ticket_status_history"

    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[TicketStatus] = mapped_column(enum_column(TicketStatus))
    changed_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, default=None
    )
    notes: Mapped[str] = mapped_column(Text, default="")

    changed_by_user = relationship("User", lazy="selectin")


class TicketPart(Base, IntPKMixin):
    __tablename__ = "ticket_parts"

    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(200))
    status: Mapped[PartStatus] = mapped_column(enum_column(PartStatus), default=PartStatus.PENDING)


class Survey(Base, IntPKMixin):
    __tablename__ = "surveys"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_surveys_rating"),
    )

    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), unique=True
    )
    rating: Mapped[int] = mapped_column(Integer)
    feedback: Mapped[str] = mapped_column(Text, default="")

    ticket = relationship("Ticket", lazy="selectin")
