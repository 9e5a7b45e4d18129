from __future__ import annotations
from pydantic import BaseModel


class BikeModelRead(BaseModel):
    id: int
    brand_id: int
    name: str

    model_config = {"from_attributes": True}
