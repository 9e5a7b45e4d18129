"""Catalog models: bicycle brands, their models, and the shop's service menu."""

from __future__ import annotations

from sqlalchemy import String, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bikeshop.models.base import Base, IntPKMixin


class Brand(Base, IntPKMixin):
    __tablename__ = "brands"

    name: Mapped[str] = mapped_column(String(100))
    logo_url: Mapped[str] = mapped_column(String(500), default="")


class BikeModel(Base, IntPKMixin):
    __tablename__ = "models"

    brand_id: Mapped[int] = mapped_column(Integer, ForeignKey("brands.id", ondelete="CASCADE"))
    name: Mapped[str] = mapped_column(String(100))

    brand = relationship("Brand", lazy="selectin")


class Service(Base, IntPKMixin):
    __tablename__ = "services"

    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text, default="")
    base_price: Mapped[float] = mapped_column(Float, default=0.0)
    estimated_hours: Mapped[float] = mapped_column(Float, default=1.0)
