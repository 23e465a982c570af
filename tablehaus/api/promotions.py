"""Promotion code check endpoint"""

from fastapi import APIRouter, Depends

from tablehaus.api.deps import get_promotion_validator
from tablehaus.core.promotions import PromotionValidator
from tablehaus.schemas.promotion import PromotionCheckRequest, PromotionResult

router = APIRouter()


@router.post("/check", response_model=PromotionResult)
async def check_promotion(
    request: PromotionCheckRequest,
    validator: PromotionValidator = Depends(get_promotion_validator),
):
    """Validate a code against a cart subtotal"""
    return await validator.validate(request.code, request.subtotal, request.channel)
