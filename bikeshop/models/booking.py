"""Booking and quote models: a customer's appointment and its cost estimate."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Float, ForeignKey, Integer, JSON, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bikeshop.models.base import Base, IntPKMixin, enum_column
from bikeshop.models.enums import BookingStatus, QuoteStatus


class Booking(Base, IntPKMixin):
    __tablename__ = "bookings"

    customer_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"))
    bicycle_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("bicycles.id", ondelete="SET NULL"), nullable=True, default=None
    )
    service_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("services.id", ondelete="SET NULL"), nullable=True, default=None
    )
    # Shop wall-clock time, stored naive
    scheduled_at: Mapped[datetime] = mapped_column(DateTime)
    status: Mapped[BookingStatus] = mapped_column(
        enum_column(BookingStatus), default=BookingStatus.PENDING
    )
    notes: Mapped[str] = mapped_column(Text, default="")

    customer = relationship("User", lazy="selectin")
    bicycle = relationship("Bicycle", lazy="selectin")
    service = relationship("Service", lazy="selectin")


class Quote(Base, IntPKMixin):
    __tablename__ = "quotes"

    booking_id: Mapped[int] = mapped_column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"))
    # [{description, quantity, unit_price, total}]
    items: Mapped[list] = mapped_column(JSON, default=list)
    total: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[QuoteStatus] = mapped_column(enum_column(QuoteStatus), default=QuoteStatus.PENDING)
    rejection_reason: Mapped[str] = mapped_column(String(500), default="")
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    booking = relationship("Booking", lazy="selectin")
