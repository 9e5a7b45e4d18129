from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field, field_validator


class WalkInTicketCreate(BaseModel):
    email: str
    name: str = ""
    phone: str = ""
    brand: str = ""
    model: str = ""
    color: str = ""
    serial: str = ""
    service_id: int | None = None
    notes: str = ""

    @field_validator("email", "name", "phone", "brand", "model", "color", "serial", "notes")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError("A valid email is required")
        return v


class TicketStatusRead(BaseModel):
    id: int
    tracking_code: str = Field(serialization_alias="trackingCode")
    status: str
    status_label: str = Field(serialization_alias="statusLabel")
    updated_at: datetime = Field(serialization_alias="updatedAt")
