"""SQLAlchemy ORM models.

All tables live in the single shop database.
"""

from bikeshop.models.base import Base
from bikeshop.models.enums import (
    Role, BookingStatus, TicketStatus, QuoteStatus, PartStatus, MediaType,
)
from bikeshop.models.user import User
from bikeshop.models.catalog import Brand, BikeModel, Service
from bikeshop.models.bicycle import Bicycle
from bikeshop.models.booking import Booking, Quote
from bikeshop.models.ticket import Ticket, TicketStatusHistory, TicketPart, Survey
from bikeshop.models.ad import Ad
from bikeshop.models.setting import Setting

__all__ = [
    "Base",
    "Role", "BookingStatus", "TicketStatus", "QuoteStatus", "PartStatus", "MediaType",
    "User", "Brand", "BikeModel", "Service", "Bicycle",
    "Booking", "Quote",
    "Ticket", "TicketStatusHistory", "TicketPart", "Survey",
    "Ad", "Setting",
]
