"""Availability API endpoints"""

from datetime import date as Date, datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablehaus.api.deps import get_availability, get_policy
from tablehaus.core.availability import AvailabilityCalculator
from tablehaus.core.policy import BookingPolicy
from tablehaus.core.lifecycle import Channel
from tablehaus.core.timeutils import to_instant
from tablehaus.database import get_db
from tablehaus.exceptions import StoreError
from tablehaus.models.table import DiningTable as DiningTableRow
from tablehaus.schemas.booking import DiningTable

router = APIRouter()


class AvailabilityResponse(BaseModel):
    """Occupied and free tables for a window"""
    date: Date
    time: str
    start_at: datetime
    end_at: datetime
    blocked: bool
    occupied_table_ids: List[UUID]
    free_tables: List[DiningTable]


@router.get("", response_model=AvailabilityResponse)
async def check_availability(
    date: str,
    time: str,
    channel: Channel = Channel.DINE_IN,
    party_size: Optional[int] = Query(None, ge=1),
    availability: AvailabilityCalculator = Depends(get_availability),
    policy: BookingPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_db),
):
    """Tables free for a booking starting at date/time"""
    try:
        start = to_instant(date, time, policy.timezone)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date or time format")
    end = start + policy.duration(channel)
    day = Date.fromisoformat(date)

    # Pickup orders never hold a table
    if channel == Channel.PICKUP:
        return AvailabilityResponse(
            date=day,
            time=time,
            start_at=start,
            end_at=end,
            blocked=policy.is_blocked(day),
            occupied_table_ids=[],
            free_tables=[],
        )

    try:
        occupied = await availability.compute_occupied(day, start, end)
    except StoreError:
        raise HTTPException(status_code=503, detail="Reservation store unavailable")

    result = await db.execute(
        select(DiningTableRow)
        .where(DiningTableRow.is_active == True)
        .order_by(DiningTableRow.name)
    )
    tables = [DiningTable.model_validate(row) for row in result.scalars().all()]
    free = [
        table for table in tables
        if table.id not in occupied and (party_size is None or table.capacity >= party_size)
    ]

    return AvailabilityResponse(
        date=day,
        time=time,
        start_at=start,
        end_at=end,
        blocked=policy.is_blocked(day),
        occupied_table_ids=sorted(occupied, key=str),
        free_tables=free,
    )
