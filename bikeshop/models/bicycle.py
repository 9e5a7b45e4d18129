"""Bicycle model: a customer's bike, optionally linked to catalog brand/model."""

from __future__ import annotations

from sqlalchemy import String, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bikeshop.models.base import Base, IntPKMixin


class Bicycle(Base, IntPKMixin):
    __tablename__ = "bicycles"

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"))
    brand_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("brands.id", ondelete="SET NULL"), nullable=True, default=None
    )
    model_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("models.id", ondelete="SET NULL"), nullable=True, default=None
    )
    color: Mapped[str] = mapped_column(String(50), default="")
    serial_number: Mapped[str] = mapped_column(String(100), default="")
    notes: Mapped[str] = mapped_column(Text, default="")

    brand = relationship("Brand", lazy="selectin")
    model = relationship("BikeModel", lazy="selectin")

    @property
    def display_name(self) -> str:
        parts = [p for p in (
            self.brand.name if self.brand else "",
            self.model.name if self.model else "",
            self.color,
        ) if p]
        return " ".join(parts) or f"Bicycle #{self.id}"
