"""Quote line items submitted from the technician's quote form."""

from __future__ import annotations
from pydantic import BaseModel, Field, field_validator, model_validator


class QuoteItem(BaseModel):
    description: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    total: float = 0.0

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Item description is required")
        return v

    @model_validator(mode="after")
    def compute_total(self) -> QuoteItem:
        self.total = round(self.quantity * self.unit_price, 2)
        return self


def build_quote_items(
    descriptions: list[str], quantities: list[str], prices: list[str],
) -> list[QuoteItem]:
    """Zip the parallel form arrays into items, skipping blank rows.

    Raises pydantic.ValidationError on a malformed row and ValueError when
    the arrays differ in length or no item remains.
    """
    if not (len(descriptions) == len(quantities) == len(prices)):
        raise ValueError("Quote item fields are incomplete")

    items = [
        QuoteItem(description=d, quantity=q, unit_price=p)
        for d, q, p in zip(descriptions, quantities, prices)
        if d.strip()
    ]
    if not items:
        raise ValueError("A quote needs at least one item")
    return items
