"""Pydantic request/response schemas."""

from bikeshop.schemas.catalog import BikeModelRead
from bikeshop.schemas.quote import QuoteItem, build_quote_items
from bikeshop.schemas.ticket import TicketStatusRead, WalkInTicketCreate

__all__ = [
    "BikeModelRead",
    "QuoteItem", "build_quote_items",
    "TicketStatusRead", "WalkInTicketCreate",
]
