"""Read-only reference data loaded by the booking wizard"""

from datetime import date
from typing import Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablehaus.api.deps import get_policy
from tablehaus.core.lifecycle import Channel
from tablehaus.core.policy import BookingPolicy
from tablehaus.database import get_db
from tablehaus.models.menu import MenuItem
from tablehaus.models.table import DiningTable as DiningTableRow
from tablehaus.schemas.booking import DiningTable, MenuItemInfo

router = APIRouter()


class ReferenceResponse(BaseModel):
    """Everything the wizard needs before the first step"""
    timezone: str
    tables: List[DiningTable]
    menu_items: List[MenuItemInfo]
    blocked_dates: List[date]
    min_spend_per_person: Dict[Channel, int]
    duration_minutes: Dict[Channel, int]


@router.get("", response_model=ReferenceResponse)
async def get_reference(
    policy: BookingPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_db),
):
    """Tables, menu and booking rules"""
    tables_result = await db.execute(
        select(DiningTableRow).where(DiningTableRow.is_active == True).order_by(DiningTableRow.name)
    )
    menu_result = await db.execute(
        select(MenuItem)
        .where(MenuItem.is_active == True, MenuItem.is_available == True)
        .order_by(MenuItem.sort_order, MenuItem.name)
    )

    return ReferenceResponse(
        timezone=policy.timezone,
        tables=[DiningTable.model_validate(row) for row in tables_result.scalars().all()],
        menu_items=[MenuItemInfo.model_validate(row) for row in menu_result.scalars().all()],
        blocked_dates=sorted(policy.blocked_dates),
        min_spend_per_person={channel: policy.min_spend.get(channel, 0) for channel in Channel},
        duration_minutes=policy.duration_minutes,
    )
