"""Table occupancy for a proposed service window"""

from datetime import date, datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List
from uuid import UUID

import structlog

from tablehaus.core.lifecycle import Channel, is_active
from tablehaus.core.timeutils import civil_date, overlaps, parse_date
from tablehaus.schemas.reservation import Reservation
from tablehaus.stores.base import ReservationStore

logger = structlog.get_logger()


def occupied_interval(reservation: Reservation, durations: Dict[Channel, timedelta]):
    """[start, end) a reservation holds its table for"""
    end = reservation.end_at or reservation.start_at + durations[reservation.channel]
    return reservation.start_at, end


def occupied_tables(
    reservations: Iterable[Reservation],
    proposed_start: datetime,
    proposed_end: datetime,
    durations: Dict[Channel, timedelta],
) -> FrozenSet[UUID]:
    """Tables held by an active reservation overlapping the proposed window"""
    occupied = set()
    for reservation in reservations:
        if reservation.table_id is None or not is_active(reservation.status):
            continue
        start, end = occupied_interval(reservation, durations)
        if overlaps(proposed_start, proposed_end, start, end):
            occupied.add(reservation.table_id)
    return frozenset(occupied)


class AvailabilityCalculator:
    """
    Computes occupied tables from a fresh store read.

    Reads are optimistic and unsynchronized; the commit path re-checks right
    before writing.
    """

    def __init__(
        self,
        store: ReservationStore,
        timezone: str,
        durations: Dict[Channel, timedelta],
    ):
        self.store = store
        self.timezone = timezone
        self.durations = durations

    def _candidate_dates(self, day: date, proposed_start: datetime, proposed_end: datetime) -> List[date]:
        # A reservation that started yesterday evening can still run into the window
        earliest = proposed_start - max(self.durations.values())
        dates = {day, civil_date(earliest, self.timezone), civil_date(proposed_start, self.timezone)}
        return sorted(d for d in dates if d <= day)

    async def active_reservations(
        self,
        day: date,
        proposed_start: datetime,
        proposed_end: datetime,
    ) -> List[Reservation]:
        seen: Dict[UUID, Reservation] = {}
        for candidate in self._candidate_dates(day, proposed_start, proposed_end):
            for reservation in await self.store.list_active_on_date(candidate):
                seen[reservation.id] = reservation
        return list(seen.values())

    async def compute_occupied(self, day, proposed_start: datetime, proposed_end: datetime) -> FrozenSet[UUID]:
        """Set of table ids unavailable for [proposed_start, proposed_end)"""
        day = parse_date(day)
        reservations = await self.active_reservations(day, proposed_start, proposed_end)
        occupied = occupied_tables(reservations, proposed_start, proposed_end, self.durations)
        logger.debug(
            "Computed occupancy",
            date=day.isoformat(),
            start=proposed_start.isoformat(),
            occupied=len(occupied),
        )
        return occupied

    async def is_table_free(self, table_id: UUID, day, proposed_start: datetime, proposed_end: datetime) -> bool:
        return table_id not in await self.compute_occupied(day, proposed_start, proposed_end)
