"""Promotion schemas"""

import enum
from datetime import datetime
from typing import List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from tablehaus.core.lifecycle import Channel


class DiscountType(str, enum.Enum):
    """How a promotion's value is applied"""
    PERCENT = "percent"
    FIXED = "fixed"


class PromotionRule(BaseModel):
    """A promotion code as stored; read-only for the booking engine"""
    id: Optional[UUID] = None
    code: str
    discount_type: DiscountType
    discount_value: int = Field(ge=0)
    min_subtotal: int = 0
    channels: List[Channel] = Field(default_factory=lambda: list(Channel))
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    is_active: bool = True

    class Config:
        from_attributes = True


class PromotionAccepted(BaseModel):
    """The code applies; discount computed for the given subtotal"""
    valid: Literal[True] = True
    promotion_id: Optional[UUID] = None
    canonical_code: str
    discount_amount: int
    discount_type: DiscountType
    discount_value: int


class PromotionRejected(BaseModel):
    """The code does not apply"""
    valid: Literal[False] = False
    reason: str


PromotionResult = Union[PromotionAccepted, PromotionRejected]


class AppliedPromotion(BaseModel):
    """Snapshot of a promotion held by a booking draft"""
    promotion_id: Optional[UUID] = None
    code: str
    discount_amount: int
    discount_type: DiscountType
    discount_value: int

    @classmethod
    def from_result(cls, result: PromotionAccepted) -> "AppliedPromotion":
        return cls(
            promotion_id=result.promotion_id,
            code=result.canonical_code,
            discount_amount=result.discount_amount,
            discount_type=result.discount_type,
            discount_value=result.discount_value,
        )


class PromotionCheckRequest(BaseModel):
    """Check a code against a cart subtotal"""
    code: str
    subtotal: int = Field(ge=0)
    channel: Channel = Channel.DINE_IN
