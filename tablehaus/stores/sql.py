"""SQLAlchemy-backed stores"""

from datetime import date, timedelta
from typing import Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tablehaus.core.lifecycle import ACTIVE_STATUSES, Channel, OrderStatus
from tablehaus.core.timeutils import day_bounds, ensure_utc
from tablehaus.exceptions import ConflictError, StoreUnavailableError
from tablehaus.models.promotion import Promotion as PromotionRow
from tablehaus.models.reservation import OrderLine as OrderLineRow
from tablehaus.models.reservation import Reservation as ReservationRow
from tablehaus.schemas.promotion import PromotionRule
from tablehaus.schemas.reservation import OrderLine, Reservation
from tablehaus.stores.base import PromotionStore, ReservationStore

logger = structlog.get_logger()

ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


def _optional_utc(value):
    return ensure_utc(value) if value is not None else None


def to_domain(row: ReservationRow) -> Reservation:
    """Map an ORM row to the domain record, normalizing timestamps to UTC"""
    return Reservation(
        id=row.id,
        channel=Channel(row.channel),
        table_id=row.table_id,
        start_at=ensure_utc(row.start_at),
        end_at=_optional_utc(row.end_at),
        status=OrderStatus(row.status),
        party_size=row.party_size,
        subtotal=row.subtotal,
        discount=row.discount,
        total=row.total,
        promotion_code=row.promotion_code,
        lines=[OrderLine.model_validate(line) for line in row.lines],
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        customer_phone=row.customer_phone,
        customer_email=row.customer_email,
        customer_note=row.customer_note,
        proof_reference=row.proof_reference,
        tracking_token=row.tracking_token,
        token_expires_at=_optional_utc(row.token_expires_at),
        created_at=ensure_utc(row.created_at),
    )


class SqlReservationStore(ReservationStore):
    """
    Reservation store over an AsyncSession.

    Instants are written in UTC. When ``guard`` is on, insert re-checks for an
    overlapping active reservation on the same table inside its transaction;
    on PostgreSQL the exclusion constraint from migration 001 is the
    authoritative guard and its IntegrityError becomes ConflictError.
    """

    def __init__(
        self,
        db: AsyncSession,
        timezone: str,
        durations: Dict[Channel, timedelta],
        guard: bool = True,
    ):
        self.db = db
        self.timezone = timezone
        self.durations = durations
        self.guard = guard

    async def _execute(self, query):
        try:
            return await self.db.execute(query)
        except (OperationalError, DBAPIError) as exc:
            logger.error("Reservation store unavailable", error=str(exc))
            raise StoreUnavailableError(str(exc)) from exc

    async def list_active_on_date(self, day: date) -> List[Reservation]:
        start, end = day_bounds(day, self.timezone)
        result = await self._execute(
            select(ReservationRow).where(
                ReservationRow.status.in_(ACTIVE_VALUES),
                ReservationRow.start_at >= start,
                ReservationRow.start_at < end,
            )
        )
        return [to_domain(row) for row in result.scalars().all()]

    async def _has_overlap(self, reservation: Reservation) -> bool:
        # Windows never span more than a day
        new_end = reservation.end_at or reservation.start_at + self.durations[reservation.channel]
        result = await self.db.execute(
            select(ReservationRow).where(
                ReservationRow.table_id == reservation.table_id,
                ReservationRow.status.in_(ACTIVE_VALUES),
                ReservationRow.start_at < new_end,
                ReservationRow.start_at > reservation.start_at - timedelta(days=1),
            )
        )
        for row in result.scalars().all():
            existing = to_domain(row)
            existing_end = existing.end_at or existing.start_at + self.durations[existing.channel]
            if existing_end > reservation.start_at:
                return True
        return False

    async def insert(self, reservation: Reservation, lines: List[OrderLine]) -> Reservation:
        row = ReservationRow(
            id=reservation.id,
            channel=reservation.channel.value,
            table_id=reservation.table_id,
            start_at=reservation.start_at,
            end_at=reservation.end_at,
            status=reservation.status.value,
            party_size=reservation.party_size,
            subtotal=reservation.subtotal,
            discount=reservation.discount,
            total=reservation.total,
            promotion_code=reservation.promotion_code,
            customer_id=reservation.customer_id,
            customer_name=reservation.customer_name,
            customer_phone=reservation.customer_phone,
            customer_email=reservation.customer_email,
            customer_note=reservation.customer_note,
            proof_reference=reservation.proof_reference,
            tracking_token=reservation.tracking_token,
            token_expires_at=reservation.token_expires_at,
            created_at=reservation.created_at,
        )
        row.lines = [
            OrderLineRow(
                position=index,
                menu_item_id=line.menu_item_id,
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                selected_options=line.selected_options,
            )
            for index, line in enumerate(lines)
        ]

        try:
            if self.guard and reservation.table_id is not None and await self._has_overlap(reservation):
                await self.db.rollback()
                raise ConflictError(f"Table {reservation.table_id} is already booked for this window")
            self.db.add(row)
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.info("Insert rejected by table constraint", table_id=str(reservation.table_id))
            raise ConflictError(str(exc.orig)) from exc
        except (OperationalError, DBAPIError) as exc:
            await self.db.rollback()
            logger.error("Reservation insert failed", error=str(exc))
            raise StoreUnavailableError(str(exc)) from exc

        return reservation.model_copy(update={"lines": list(lines)})

    async def get_by_token(self, token: str) -> Optional[Reservation]:
        result = await self._execute(
            select(ReservationRow).where(ReservationRow.tracking_token == token)
        )
        row = result.scalar_one_or_none()
        return to_domain(row) if row else None

    async def get(self, reservation_id: UUID) -> Optional[Reservation]:
        result = await self._execute(
            select(ReservationRow).where(ReservationRow.id == reservation_id)
        )
        row = result.scalar_one_or_none()
        return to_domain(row) if row else None

    async def update_status(self, reservation_id: UUID, status: OrderStatus) -> Optional[Reservation]:
        result = await self._execute(
            select(ReservationRow).where(ReservationRow.id == reservation_id)
        )
        row = result.scalar_one_or_none()
        if not row:
            return None

        row.status = OrderStatus(status).value
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError(str(exc.orig)) from exc
        except (OperationalError, DBAPIError) as exc:
            await self.db.rollback()
            raise StoreUnavailableError(str(exc)) from exc
        return to_domain(row)

    async def list_for_customer(self, customer_id: str, active_only: bool = False) -> List[Reservation]:
        query = select(ReservationRow).where(ReservationRow.customer_id == customer_id)
        if active_only:
            query = query.where(ReservationRow.status.in_(ACTIVE_VALUES))
        query = query.order_by(ReservationRow.created_at.desc())

        result = await self._execute(query)
        return [to_domain(row) for row in result.scalars().all()]


class SqlPromotionStore(PromotionStore):
    """Promotion lookup over the promotions table"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lookup(self, code: str) -> Optional[PromotionRule]:
        try:
            result = await self.db.execute(
                select(PromotionRow).where(PromotionRow.code == code.upper())
            )
        except (OperationalError, DBAPIError) as exc:
            raise StoreUnavailableError(str(exc)) from exc

        row = result.scalar_one_or_none()
        if not row:
            return None

        return PromotionRule(
            id=row.id,
            code=row.code,
            discount_type=row.discount_type,
            discount_value=row.discount_value,
            min_subtotal=row.min_subtotal,
            channels=row.channels or [channel.value for channel in Channel],
            starts_at=_optional_utc(row.starts_at),
            ends_at=_optional_utc(row.ends_at),
            usage_limit=row.usage_limit,
            usage_count=row.usage_count,
            is_active=row.is_active,
        )
