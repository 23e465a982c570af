"""In-process store implementations for single-node deployments and tests"""

from datetime import date, timedelta
from typing import Dict, List, Optional
from uuid import UUID

import structlog

from tablehaus.core.lifecycle import Channel, OrderStatus, is_active
from tablehaus.core.timeutils import civil_date, overlaps
from tablehaus.exceptions import ConflictError
from tablehaus.schemas.promotion import PromotionRule
from tablehaus.schemas.reservation import OrderLine, Reservation
from tablehaus.stores.base import PromotionStore, ReservationStore

logger = structlog.get_logger()


class InMemoryReservationStore(ReservationStore):
    """
    Dict-backed reservation store.

    With ``guard`` enabled, an overlapping active reservation on the same
    table is rejected with ConflictError. The check and the write run with
    no await between them, so the event loop makes each insert atomic.
    """

    def __init__(
        self,
        timezone: str,
        durations: Dict[Channel, timedelta],
        guard: bool = True,
    ):
        self.timezone = timezone
        self.durations = durations
        self.guard = guard
        self._rows: Dict[UUID, Reservation] = {}

    def _end(self, reservation: Reservation):
        return reservation.end_at or reservation.start_at + self.durations[reservation.channel]

    async def list_active_on_date(self, day: date) -> List[Reservation]:
        return [
            r for r in self._rows.values()
            if is_active(r.status) and civil_date(r.start_at, self.timezone) == day
        ]

    async def insert(self, reservation: Reservation, lines: List[OrderLine]) -> Reservation:
        stored = reservation.model_copy(update={"lines": list(lines)})
        if not self.guard or reservation.table_id is None:
            self._rows[stored.id] = stored
            return stored

        for existing in self._rows.values():
            if (
                existing.table_id == reservation.table_id
                and is_active(existing.status)
                and overlaps(stored.start_at, self._end(stored), existing.start_at, self._end(existing))
            ):
                logger.info(
                    "Table guard rejected insert",
                    table_id=str(reservation.table_id),
                    conflicting_id=str(existing.id),
                )
                raise ConflictError(f"Table {reservation.table_id} is already booked for this window")
        self._rows[stored.id] = stored
        return stored

    async def get_by_token(self, token: str) -> Optional[Reservation]:
        for reservation in self._rows.values():
            if reservation.tracking_token == token:
                return reservation
        return None

    async def get(self, reservation_id: UUID) -> Optional[Reservation]:
        return self._rows.get(reservation_id)

    async def update_status(self, reservation_id: UUID, status: OrderStatus) -> Optional[Reservation]:
        current = self._rows.get(reservation_id)
        if current is None:
            return None
        updated = current.model_copy(update={"status": status})
        self._rows[reservation_id] = updated
        return updated

    async def list_for_customer(self, customer_id: str, active_only: bool = False) -> List[Reservation]:
        rows = [
            r for r in self._rows.values()
            if r.customer_id == customer_id and (not active_only or is_active(r.status))
        ]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    def all(self) -> List[Reservation]:
        return list(self._rows.values())


class InMemoryPromotionStore(PromotionStore):
    """Promotion lookup over a fixed set of rules"""

    def __init__(self, rules: Optional[List[PromotionRule]] = None):
        self._rules = {rule.code.upper(): rule for rule in rules or []}

    async def lookup(self, code: str) -> Optional[PromotionRule]:
        return self._rules.get(code.upper())
