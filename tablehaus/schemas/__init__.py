"""Pydantic schemas for domain records and request/response validation"""

from tablehaus.schemas.booking import (
    BookingDraft,
    BookingStep,
    CartLine,
    DiningTable,
    MenuItemInfo,
    ProofFile,
    ReferenceData,
    ReservationCreate,
)
from tablehaus.schemas.promotion import (
    AppliedPromotion,
    DiscountType,
    PromotionAccepted,
    PromotionCheckRequest,
    PromotionRejected,
    PromotionResult,
    PromotionRule,
)
from tablehaus.schemas.reservation import (
    OrderLine,
    Reservation,
    ReservationListResponse,
    StatusUpdate,
    TrackingResponse,
)
from tablehaus.schemas.results import (
    CommitFailure,
    CommitResult,
    CommitSuccess,
    ErrorKind,
    Failure,
)

__all__ = [
    "BookingDraft",
    "BookingStep",
    "CartLine",
    "DiningTable",
    "MenuItemInfo",
    "ProofFile",
    "ReferenceData",
    "ReservationCreate",
    "AppliedPromotion",
    "DiscountType",
    "PromotionAccepted",
    "PromotionCheckRequest",
    "PromotionRejected",
    "PromotionResult",
    "PromotionRule",
    "OrderLine",
    "Reservation",
    "ReservationListResponse",
    "StatusUpdate",
    "TrackingResponse",
    "CommitFailure",
    "CommitResult",
    "CommitSuccess",
    "ErrorKind",
    "Failure",
]
