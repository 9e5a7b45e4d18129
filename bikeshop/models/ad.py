"""Ad banner model: shown on the public tracking page."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bikeshop.models.base import Base, IntPKMixin, enum_column, utcnow
from bikeshop.models.enums import MediaType


class Ad(Base, IntPKMixin):
    __tablename__ = "ads"

    title: Mapped[str] = mapped_column(String(200))
    media_url: Mapped[str] = mapped_column(String(500))
    media_type: Mapped[MediaType] = mapped_column(enum_column(MediaType), default=MediaType.IMAGE)
    link_url: Mapped[str] = mapped_column(String(500), default="")
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
