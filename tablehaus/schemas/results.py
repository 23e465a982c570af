"""Discriminated results returned across the core boundary"""

import enum
from typing import Literal, Optional, Union

from pydantic import BaseModel

from tablehaus.schemas.reservation import Reservation


class ErrorKind(str, enum.Enum):
    """Failure kinds surfaced to callers instead of exceptions"""
    INCOMPLETE_SELECTION = "INCOMPLETE_SELECTION"
    MISSING_CONTACT = "MISSING_CONTACT"
    TERMS_NOT_AGREED = "TERMS_NOT_AGREED"
    MISSING_PROOF = "MISSING_PROOF"
    DATE_BLOCKED = "DATE_BLOCKED"
    BELOW_MIN_SPEND = "BELOW_MIN_SPEND"
    TABLE_TAKEN = "TABLE_TAKEN"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    PROMO_INVALID = "PROMO_INVALID"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    SUBMIT_IN_PROGRESS = "SUBMIT_IN_PROGRESS"
    NOT_FOUND = "NOT_FOUND"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TRANSITION = "INVALID_TRANSITION"


# Resolved locally by re-presenting a wizard step; never reach storage
VALIDATION_KINDS = frozenset({
    ErrorKind.INCOMPLETE_SELECTION,
    ErrorKind.MISSING_CONTACT,
    ErrorKind.TERMS_NOT_AGREED,
    ErrorKind.MISSING_PROOF,
    ErrorKind.DATE_BLOCKED,
    ErrorKind.BELOW_MIN_SPEND,
})

RETRYABLE_KINDS = frozenset({
    ErrorKind.UPLOAD_FAILED,
    ErrorKind.STORE_UNAVAILABLE,
})


class CommitSuccess(BaseModel):
    """Reservation created"""
    success: Literal[True] = True
    reservation: Reservation


class CommitFailure(BaseModel):
    """Nothing was created"""
    success: Literal[False] = False
    error_kind: ErrorKind
    message: str

    @property
    def retryable(self) -> bool:
        return self.error_kind in RETRYABLE_KINDS


CommitResult = Union[CommitSuccess, CommitFailure]


class Failure(BaseModel):
    """Generic failure for lookups and transitions"""
    error_kind: ErrorKind
    message: str
    detail: Optional[str] = None
