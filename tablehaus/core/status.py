"""Staff-driven status transitions"""

from typing import Optional, Union
from uuid import UUID

import structlog

from tablehaus.core.lifecycle import OrderStatus, allowed_transitions, can_transition
from tablehaus.exceptions import ConflictError, StoreError
from tablehaus.schemas.reservation import Reservation
from tablehaus.schemas.results import ErrorKind, Failure
from tablehaus.stores.base import InvalidationChannel, ReservationStore

logger = structlog.get_logger()


class StatusService:
    """Moves reservations along their channel's transition graph"""

    def __init__(self, store: ReservationStore, invalidation: Optional[InvalidationChannel] = None):
        self.store = store
        self.invalidation = invalidation

    async def transition(self, reservation_id: UUID, new_status: OrderStatus) -> Union[Reservation, Failure]:
        new_status = OrderStatus(new_status)
        try:
            reservation = await self.store.get(reservation_id)
            if reservation is None:
                return Failure(error_kind=ErrorKind.NOT_FOUND, message="Reservation not found")

            if not can_transition(reservation.channel, reservation.status, new_status):
                allowed = ", ".join(s.value for s in allowed_transitions(reservation.channel, reservation.status))
                return Failure(
                    error_kind=ErrorKind.INVALID_TRANSITION,
                    message=f"Cannot move {reservation.channel.value} reservation "
                            f"from {reservation.status.value} to {new_status.value}",
                    detail=allowed or None,
                )

            updated = await self.store.update_status(reservation_id, new_status)
        except ConflictError as exc:
            return Failure(error_kind=ErrorKind.TABLE_TAKEN, message=str(exc))
        except StoreError as exc:
            logger.warning("Status update failed", reservation_id=str(reservation_id), error=str(exc))
            return Failure(error_kind=ErrorKind.STORE_UNAVAILABLE, message="Could not update the reservation")

        if updated is None:
            return Failure(error_kind=ErrorKind.NOT_FOUND, message="Reservation not found")

        logger.info(
            "Reservation status changed",
            reservation_id=str(reservation_id),
            old_status=reservation.status.value,
            new_status=new_status.value,
        )
        if self.invalidation is not None:
            try:
                await self.invalidation.publish()
            except Exception:
                logger.exception("Invalidation publish failed")
        return updated
