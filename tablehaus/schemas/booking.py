"""Booking draft schemas held by the client-side wizard"""

import enum
import json
import datetime as dt
from typing import Any, Dict, FrozenSet, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tablehaus.core.lifecycle import Channel
from tablehaus.schemas.promotion import AppliedPromotion


class BookingStep(int, enum.Enum):
    """Wizard steps; checkout is a sub-mode of the food step"""
    DATE = 1
    TABLE = 2
    FOOD = 3


class DiningTable(BaseModel):
    """Table as consumed by the booking engine"""
    id: UUID
    name: str
    capacity: int = Field(ge=1)

    class Config:
        from_attributes = True


class MenuItemInfo(BaseModel):
    """Menu item reference data"""
    id: UUID
    name: str
    price: int
    category: Optional[str] = None

    class Config:
        from_attributes = True


class ReferenceData(BaseModel):
    """Read-only data loaded once and preserved across draft resets"""
    tables: List[DiningTable] = Field(default_factory=list)
    menu_items: List[MenuItemInfo] = Field(default_factory=list)
    blocked_dates: FrozenSet[dt.date] = frozenset()
    min_spend_per_person: int = 0


class ProofFile(BaseModel):
    """Pending proof-of-payment file handle"""
    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


class CartLine(BaseModel):
    """One cart entry; same item with different options is a different entry"""
    model_config = ConfigDict(frozen=True)

    menu_item_id: Optional[UUID] = None
    name: str
    quantity: int = Field(default=1, ge=1)
    unit_price: int = Field(ge=0)
    selected_options: Dict[str, Any] = Field(default_factory=dict)

    @property
    def options_key(self) -> str:
        return json.dumps(self.selected_options, sort_keys=True, default=str)

    def same_entry(self, other: "CartLine") -> bool:
        return self.menu_item_id == other.menu_item_id and self.name == other.name \
            and self.unit_price == other.unit_price and self.options_key == other.options_key


class BookingDraft(BaseModel):
    """Ephemeral in-progress booking; never persisted until commit"""
    model_config = ConfigDict(frozen=True)

    channel: Channel = Channel.DINE_IN
    step: BookingStep = BookingStep.DATE
    direction: int = 0
    checkout_mode: bool = False

    # Selection
    date: Optional[dt.date] = None
    time: Optional[str] = None
    party_size: int = Field(default=2, ge=1)
    selected_table: Optional[DiningTable] = None
    occupied_table_ids: FrozenSet[UUID] = frozenset()

    cart: List[CartLine] = Field(default_factory=list)

    # Form data
    contact_name: str = ""
    contact_phone: str = ""
    contact_email: Optional[str] = None
    special_request: str = ""
    is_agreed: bool = False
    proof_file: Optional[ProofFile] = None
    customer_id: Optional[str] = None

    applied_promotion: Optional[AppliedPromotion] = None

    reference: ReferenceData = Field(default_factory=ReferenceData)

    @property
    def subtotal(self) -> int:
        return sum(line.unit_price * line.quantity for line in self.cart)

    @property
    def discount(self) -> int:
        if self.applied_promotion is None:
            return 0
        return min(self.applied_promotion.discount_amount, self.subtotal)

    @property
    def total(self) -> int:
        return self.subtotal - self.discount


class ReservationCreate(BaseModel):
    """Submitted wizard state, sent as the `draft` form field beside the proof file"""
    channel: Channel = Channel.DINE_IN
    date: dt.date
    time: str
    party_size: int = Field(default=2, ge=1)
    table_id: Optional[UUID] = None
    items: List[CartLine] = Field(default_factory=list)
    contact_name: str = ""
    contact_phone: str = ""
    contact_email: Optional[str] = None
    special_request: str = ""
    is_agreed: bool = False
    promotion_code: Optional[str] = None
