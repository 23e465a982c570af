"""
Promotion code validation.

The discount is a function of the subtotal, so callers re-run validation
whenever the cart changes instead of caching the amount computed at apply
time.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import structlog

from tablehaus.core.lifecycle import Channel
from tablehaus.exceptions import StoreError
from tablehaus.schemas.promotion import (
    AppliedPromotion,
    DiscountType,
    PromotionAccepted,
    PromotionRejected,
    PromotionResult,
    PromotionRule,
)
from tablehaus.stores.base import PromotionStore

logger = structlog.get_logger()

REASON_EMPTY = "Enter a promotion code"
REASON_UNKNOWN = "Code not found"
REASON_INACTIVE = "Code is no longer active"
REASON_NOT_STARTED = "Code is not active yet"
REASON_EXPIRED = "Code expired"
REASON_CHANNEL = "Code is not valid for this service"
REASON_MIN_SPEND = "Min spend not met"
REASON_EXHAUSTED = "Usage limit reached"
REASON_UNAVAILABLE = "Failed to check promotion"


def canonical_code(code: str) -> str:
    return code.strip().upper()


def compute_discount(rule: PromotionRule, subtotal: int) -> int:
    """Discount for a subtotal, always within [0, subtotal]"""
    if rule.discount_type == DiscountType.FIXED:
        amount = rule.discount_value
    else:
        raw = Decimal(subtotal) * Decimal(rule.discount_value) / Decimal(100)
        amount = int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return max(0, min(subtotal, amount))


def evaluate_promotion(
    rule: Optional[PromotionRule],
    subtotal: int,
    channel: Channel,
    now: Optional[datetime] = None,
) -> PromotionResult:
    """Decide whether a looked-up rule applies to a subtotal and channel"""
    if subtotal < 0:
        raise ValueError("subtotal must be >= 0")
    if rule is None:
        return PromotionRejected(reason=REASON_UNKNOWN)

    now = now or datetime.now(timezone.utc)
    if not rule.is_active:
        return PromotionRejected(reason=REASON_INACTIVE)
    if rule.starts_at is not None and now < rule.starts_at:
        return PromotionRejected(reason=REASON_NOT_STARTED)
    if rule.ends_at is not None and now >= rule.ends_at:
        return PromotionRejected(reason=REASON_EXPIRED)
    if Channel(channel) not in rule.channels:
        return PromotionRejected(reason=REASON_CHANNEL)
    if subtotal < rule.min_subtotal:
        return PromotionRejected(reason=REASON_MIN_SPEND)
    if rule.usage_limit is not None and rule.usage_count >= rule.usage_limit:
        return PromotionRejected(reason=REASON_EXHAUSTED)

    return PromotionAccepted(
        promotion_id=rule.id,
        canonical_code=canonical_code(rule.code),
        discount_amount=compute_discount(rule, subtotal),
        discount_type=rule.discount_type,
        discount_value=rule.discount_value,
    )


class PromotionValidator:
    """Looks codes up in a PromotionStore and evaluates them"""

    def __init__(self, store: PromotionStore):
        self.store = store

    async def validate(self, code: str, subtotal: int, channel: Channel) -> PromotionResult:
        """
        Validate a code against the current subtotal.

        Rejections come back as PromotionRejected with a readable reason,
        including store failures; a negative subtotal is a programming error
        and raises ValueError.
        """
        if subtotal < 0:
            raise ValueError("subtotal must be >= 0")

        code = canonical_code(code or "")
        if not code:
            return PromotionRejected(reason=REASON_EMPTY)

        try:
            rule = await self.store.lookup(code)
        except StoreError as exc:
            logger.warning("Promotion lookup failed", code=code, error=str(exc))
            return PromotionRejected(reason=REASON_UNAVAILABLE)

        result = evaluate_promotion(rule, subtotal, channel)
        if not result.valid:
            logger.info("Promotion rejected", code=code, subtotal=subtotal, reason=result.reason)
        return result

    async def revalidate(
        self,
        applied: AppliedPromotion,
        subtotal: int,
        channel: Channel,
    ) -> PromotionResult:
        """
        Re-run validation for an already applied code after the subtotal changed.

        A rejection means the caller must clear the applied promotion.
        """
        result = await self.validate(applied.code, subtotal, channel)
        if not result.valid:
            logger.info("Applied promotion dropped", code=applied.code, subtotal=subtotal)
        return result
