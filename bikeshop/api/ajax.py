"""JSON endpoints used by page scripts (cascading dropdowns, slot picker, status polling)."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.db import crud
from bikeshop.dependencies import get_db, require_auth
from bikeshop.models.enums import TicketStatus
from bikeshop.schemas.catalog import BikeModelRead
from bikeshop.schemas.ticket import TicketStatusRead
from bikeshop.services.scheduling import available_slots

router = APIRouter(prefix="/api", tags=["ajax"], dependencies=[Depends(require_auth)])


@router.get("/brands/{brand_id}/models")
async def models_for_brand(brand_id: int, db: AsyncSession = Depends(get_db)):
    models = await crud.list_models_for_brand(db, brand_id)
    return [BikeModelRead.model_validate(m).model_dump() for m in models]


@router.get("/bookings/slots")
async def booking_slots(date: str = "", db: AsyncSession = Depends(get_db)):
    try:
        day = datetime.strptime(date, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(400, "Invalid date, expected YYYY-MM-DD")
    return await available_slots(db, day)


@router.get("/tickets/{ticket_id}/status")
async def ticket_status(ticket_id: int, db: AsyncSession = Depends(get_db)):
    ticket = await crud.get_ticket(db, ticket_id)
    if ticket is None:
        raise HTTPException(404, "Ticket not found")

    status = TicketStatus(ticket.status)
    body = TicketStatusRead(
        id=ticket.id,
        tracking_code=ticket.tracking_code,
        status=status.value,
        status_label=status.label,
        updated_at=ticket.updated_at,
    )
    return body.model_dump(mode="json", by_alias=True)
