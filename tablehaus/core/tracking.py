"""Anonymous order tracking by token"""

import re
from datetime import datetime, timezone
from typing import Optional, Union

import structlog

from tablehaus.core.lifecycle import display_ordinal, is_active, polling_interval, progress_steps
from tablehaus.exceptions import StoreError
from tablehaus.schemas.reservation import Reservation, TrackingLine, TrackingResponse, TrackingStep
from tablehaus.schemas.results import ErrorKind, Failure
from tablehaus.stores.base import ReservationStore

logger = structlog.get_logger()


def mask_name(name: str) -> str:
    """First word only"""
    parts = (name or "").split()
    return parts[0] if parts else "Customer"


def mask_phone(phone: str) -> str:
    """0812345678 -> 081-xxx-5678"""
    digits = re.sub(r"[^0-9]", "", phone or "")
    if not digits:
        return ""
    if len(digits) >= 10:
        return f"{digits[:3]}-xxx-{digits[-4:]}"
    return "xxx-xxx-xxxx"


def short_id(token: str) -> str:
    """Human-friendly order code"""
    return token[-4:].upper()


def build_view(reservation: Reservation) -> TrackingResponse:
    """Masked public view of a reservation"""
    ordinal = display_ordinal(reservation.channel, reservation.status)
    steps = [
        TrackingStep(status=status, reached=ordinal is not None and index <= ordinal)
        for index, status in enumerate(progress_steps(reservation.channel))
    ]
    return TrackingResponse(
        short_id=short_id(reservation.tracking_token),
        status=reservation.status,
        channel=reservation.channel,
        customer_name=mask_name(reservation.customer_name),
        phone=mask_phone(reservation.customer_phone),
        booking_time=reservation.start_at,
        party_size=reservation.party_size,
        table_id=reservation.table_id,
        subtotal=reservation.subtotal,
        discount=reservation.discount,
        total=reservation.total,
        items=[
            TrackingLine(
                name=line.name,
                quantity=line.quantity,
                price=line.unit_price,
                options=line.selected_options,
            )
            for line in reservation.lines
        ],
        steps=steps,
        progress=ordinal,
        is_active=is_active(reservation.status),
        poll_interval_seconds=polling_interval(reservation.status),
    )


class TrackingService:
    """Resolves tracking tokens into masked views"""

    def __init__(self, store: ReservationStore):
        self.store = store

    async def lookup(self, token: str, now: Optional[datetime] = None) -> Union[TrackingResponse, Failure]:
        if not token:
            return Failure(error_kind=ErrorKind.NOT_FOUND, message="Booking not found")

        try:
            reservation = await self.store.get_by_token(token)
        except StoreError as exc:
            logger.warning("Tracking lookup failed", error=str(exc))
            return Failure(error_kind=ErrorKind.STORE_UNAVAILABLE, message="Could not load the booking")

        if reservation is None:
            return Failure(error_kind=ErrorKind.NOT_FOUND, message="Booking not found")

        now = now or datetime.now(timezone.utc)
        if reservation.token_expires_at is not None and now > reservation.token_expires_at:
            return Failure(error_kind=ErrorKind.TOKEN_EXPIRED, message="Link has expired")

        return build_view(reservation)
