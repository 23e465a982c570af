"""Reservation schemas"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from tablehaus.core.lifecycle import Channel, OrderStatus


class OrderLine(BaseModel):
    """A menu item captured at the price it was ordered for"""
    menu_item_id: Optional[UUID] = None
    name: str
    quantity: int = Field(ge=1)
    unit_price: int = Field(ge=0)
    selected_options: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


class Reservation(BaseModel):
    """A committed booking; the record a tracking token resolves to"""
    id: UUID = Field(default_factory=uuid4)
    channel: Channel
    table_id: Optional[UUID] = None
    start_at: datetime
    end_at: Optional[datetime] = None
    status: OrderStatus = OrderStatus.PENDING
    party_size: int = Field(default=1, ge=1)

    # Money, in the smallest currency unit
    subtotal: int = 0
    discount: int = 0
    total: int = 0
    promotion_code: Optional[str] = None

    lines: List[OrderLine] = Field(default_factory=list)

    # Customer information
    customer_id: Optional[str] = None
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    customer_note: Optional[str] = None

    proof_reference: Optional[str] = None
    tracking_token: str
    token_expires_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StatusUpdate(BaseModel):
    """Staff status change request"""
    status: OrderStatus


class ReservationListResponse(BaseModel):
    """A customer's reservations"""
    items: List[Reservation]
    total: int


class TrackingLine(BaseModel):
    """Order line as shown on the public tracking page"""
    name: str
    quantity: int
    price: int
    options: Dict[str, Any] = Field(default_factory=dict)


class TrackingStep(BaseModel):
    """One progress-bar step"""
    status: OrderStatus
    reached: bool


class TrackingResponse(BaseModel):
    """Masked, anonymous view of a reservation"""
    short_id: str
    status: OrderStatus
    channel: Channel
    customer_name: str
    phone: str
    booking_time: datetime
    party_size: int
    table_id: Optional[UUID]
    subtotal: int
    discount: int
    total: int
    items: List[TrackingLine]
    steps: List[TrackingStep]
    progress: Optional[int]
    is_active: bool
    poll_interval_seconds: int
