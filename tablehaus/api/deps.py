"""Shared FastAPI dependencies: stores, policy and caller attribution"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablehaus.config import settings
from tablehaus.core.availability import AvailabilityCalculator
from tablehaus.core.policy import BookingPolicy
from tablehaus.core.promotions import PromotionValidator
from tablehaus.database import get_db
from tablehaus.models.blocked_date import BlockedDate
from tablehaus.stores import invalidation
from tablehaus.stores.base import BlobStore, InvalidationChannel
from tablehaus.stores.blob import LocalBlobStore
from tablehaus.stores.sql import SqlPromotionStore, SqlReservationStore

# Tokens are issued by the identity provider; anonymous callers book and track too
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

ROLE_CUSTOMER = "customer"
ROLE_STAFF = "staff"


class Principal(BaseModel):
    """Caller identity decoded from a bearer token"""
    subject: str
    role: str


def create_access_token(subject: str, role: str = ROLE_CUSTOMER) -> str:
    """Create JWT access token"""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": subject,
        "role": role,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


async def get_optional_principal(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[Principal]:
    """Decode the bearer token when present; None for anonymous callers"""
    if not token:
        return None

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise credentials_exception

    subject = payload.get("sub")
    if subject is None or payload.get("type") != "access":
        raise credentials_exception
    return Principal(subject=subject, role=payload.get("role", ROLE_CUSTOMER))


async def get_current_principal(principal: Optional[Principal] = Depends(get_optional_principal)) -> Principal:
    """Require an attributable caller"""
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


async def require_staff(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Require a staff token"""
    if principal.role != ROLE_STAFF:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff only")
    return principal


async def get_policy(db: AsyncSession = Depends(get_db)) -> BookingPolicy:
    """Booking policy with the current closure dates"""
    result = await db.execute(select(BlockedDate.date))
    return BookingPolicy.from_settings(settings, result.scalars().all())


def get_reservation_store(
    db: AsyncSession = Depends(get_db),
    policy: BookingPolicy = Depends(get_policy),
) -> SqlReservationStore:
    return SqlReservationStore(db, policy.timezone, policy.durations)


def get_promotion_validator(db: AsyncSession = Depends(get_db)) -> PromotionValidator:
    return PromotionValidator(SqlPromotionStore(db))


def get_availability(
    store: SqlReservationStore = Depends(get_reservation_store),
    policy: BookingPolicy = Depends(get_policy),
) -> AvailabilityCalculator:
    return AvailabilityCalculator(store, policy.timezone, policy.durations)


def get_blob_store() -> BlobStore:
    return LocalBlobStore(settings.proof_storage_path)


def get_invalidation() -> InvalidationChannel:
    return invalidation.invalidation_channel
