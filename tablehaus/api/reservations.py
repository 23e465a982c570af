"""Reservation API endpoints"""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablehaus.api.deps import (
    ROLE_CUSTOMER,
    Principal,
    get_availability,
    get_blob_store,
    get_current_principal,
    get_invalidation,
    get_optional_principal,
    get_policy,
    get_promotion_validator,
    get_reservation_store,
    require_staff,
)
from tablehaus.core.availability import AvailabilityCalculator
from tablehaus.core.commit import CommitProtocol
from tablehaus.core.lifecycle import Channel, proof_export_allowed
from tablehaus.core.policy import BookingPolicy
from tablehaus.core.promotions import PromotionValidator
from tablehaus.core.status import StatusService
from tablehaus.database import get_db
from tablehaus.exceptions import BlobNotFoundError, StoreError
from tablehaus.models.menu import MenuItem
from tablehaus.models.table import DiningTable as DiningTableRow
from tablehaus.schemas.booking import BookingDraft, DiningTable, ProofFile, ReservationCreate
from tablehaus.schemas.promotion import AppliedPromotion
from tablehaus.schemas.reservation import Reservation, ReservationListResponse, StatusUpdate
from tablehaus.schemas.results import CommitFailure, ErrorKind, Failure, VALIDATION_KINDS
from tablehaus.stores.base import BlobStore, InvalidationChannel
from tablehaus.stores.sql import SqlReservationStore

logger = structlog.get_logger()

router = APIRouter()

FAILURE_STATUS = {
    ErrorKind.PROMO_INVALID: 422,
    ErrorKind.TABLE_TAKEN: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.UPLOAD_FAILED: 502,
    ErrorKind.STORE_UNAVAILABLE: 503,
    ErrorKind.NOT_FOUND: 404,
}


def failure_to_http(kind: ErrorKind, message: str, detail=None) -> HTTPException:
    """Map a domain failure onto an HTTP error with a machine-readable code"""
    status_code = 422 if kind in VALIDATION_KINDS else FAILURE_STATUS.get(kind, 400)
    body = {"code": kind.value, "message": message}
    if detail:
        body["detail"] = detail
    return HTTPException(status_code=status_code, detail=body)


async def _load_table(db: AsyncSession, table_id: Optional[UUID]) -> Optional[DiningTable]:
    if table_id is None:
        return None
    result = await db.execute(
        select(DiningTableRow).where(DiningTableRow.id == table_id, DiningTableRow.is_active == True)
    )
    row = result.scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=422, detail="Unknown table")
    return DiningTable.model_validate(row)


async def _check_menu_items(db: AsyncSession, request: ReservationCreate) -> None:
    """Ordered items must exist, be available and not undercut the menu price"""
    item_ids = {line.menu_item_id for line in request.items if line.menu_item_id is not None}
    if not item_ids:
        return
    result = await db.execute(select(MenuItem).where(MenuItem.id.in_(item_ids)))
    menu = {item.id: item for item in result.scalars().all()}
    for line in request.items:
        if line.menu_item_id is None:
            continue
        item = menu.get(line.menu_item_id)
        if not item or not item.is_active or not item.is_available:
            raise HTTPException(status_code=422, detail=f"Menu item unavailable: {line.name}")
        if line.unit_price < item.price:
            raise HTTPException(status_code=422, detail=f"Price mismatch for {line.name}")


@router.post("", response_model=Reservation, status_code=201)
async def create_reservation(
    draft: str = Form(...),
    proof: Optional[UploadFile] = File(None),
    principal: Optional[Principal] = Depends(get_optional_principal),
    store: SqlReservationStore = Depends(get_reservation_store),
    availability: AvailabilityCalculator = Depends(get_availability),
    promotions: PromotionValidator = Depends(get_promotion_validator),
    blobs: BlobStore = Depends(get_blob_store),
    invalidation: InvalidationChannel = Depends(get_invalidation),
    policy: BookingPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_db),
):
    """Commit a booking: the draft JSON plus the proof-of-payment file"""
    try:
        request = ReservationCreate.model_validate_json(draft)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False))

    if request.channel == Channel.DINE_IN and request.table_id is None:
        raise HTTPException(status_code=422, detail="Dine-in bookings need a table")

    table = await _load_table(db, request.table_id) if request.channel == Channel.DINE_IN else None
    if table is not None and table.capacity < request.party_size:
        raise HTTPException(status_code=422, detail="Party is too large for this table")
    await _check_menu_items(db, request)

    subtotal = sum(line.unit_price * line.quantity for line in request.items)
    applied = None
    if request.promotion_code:
        result = await promotions.validate(request.promotion_code, subtotal, request.channel)
        if not result.valid:
            raise failure_to_http(ErrorKind.PROMO_INVALID, result.reason)
        applied = AppliedPromotion.from_result(result)

    proof_file = None
    if proof is not None and proof.filename:
        proof_file = ProofFile(
            filename=proof.filename,
            content=await proof.read(),
            content_type=proof.content_type or "application/octet-stream",
        )

    booking = BookingDraft(
        channel=request.channel,
        date=request.date,
        time=request.time,
        party_size=request.party_size,
        selected_table=table,
        cart=request.items,
        contact_name=request.contact_name,
        contact_phone=request.contact_phone,
        contact_email=request.contact_email,
        special_request=request.special_request,
        is_agreed=request.is_agreed,
        proof_file=proof_file,
        customer_id=principal.subject if principal and principal.role == ROLE_CUSTOMER else None,
        applied_promotion=applied,
    )

    protocol = CommitProtocol(
        store,
        blobs,
        policy,
        availability=availability,
        promotions=promotions,
        invalidation=invalidation,
    )
    outcome = await protocol.commit(booking)

    if isinstance(outcome, CommitFailure):
        raise failure_to_http(outcome.error_kind, outcome.message)
    return outcome.reservation


@router.get("/me", response_model=ReservationListResponse)
async def my_reservations(
    active: bool = Query(False),
    principal: Principal = Depends(get_current_principal),
    store: SqlReservationStore = Depends(get_reservation_store),
):
    """The caller's own reservations, newest first"""
    try:
        items = await store.list_for_customer(principal.subject, active_only=active)
    except StoreError:
        raise failure_to_http(ErrorKind.STORE_UNAVAILABLE, "Reservation store unavailable")
    return ReservationListResponse(items=items, total=len(items))


@router.get("/{reservation_id}", response_model=Reservation)
async def get_reservation(
    reservation_id: UUID,
    staff: Principal = Depends(require_staff),
    store: SqlReservationStore = Depends(get_reservation_store),
):
    """Get a specific reservation"""
    reservation = await store.get(reservation_id)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return reservation


@router.put("/{reservation_id}/status", response_model=Reservation)
async def update_status(
    reservation_id: UUID,
    update: StatusUpdate,
    staff: Principal = Depends(require_staff),
    store: SqlReservationStore = Depends(get_reservation_store),
    invalidation: InvalidationChannel = Depends(get_invalidation),
):
    """Move a reservation along its channel's lifecycle"""
    result = await StatusService(store, invalidation).transition(reservation_id, update.status)
    if isinstance(result, Failure):
        raise failure_to_http(result.error_kind, result.message, result.detail)
    logger.info("Status updated by staff", reservation_id=str(reservation_id), staff=staff.subject)
    return result


@router.get("/{reservation_id}/proof")
async def export_proof(
    reservation_id: UUID,
    staff: Principal = Depends(require_staff),
    store: SqlReservationStore = Depends(get_reservation_store),
    blobs: BlobStore = Depends(get_blob_store),
):
    """Download the payment slip once the booking has been confirmed"""
    reservation = await store.get(reservation_id)
    if not reservation or not reservation.proof_reference:
        raise HTTPException(status_code=404, detail="Reservation not found")
    if not proof_export_allowed(reservation.channel, reservation.status):
        raise HTTPException(status_code=403, detail="Proof is exported only after confirmation")

    try:
        content = await blobs.open(reservation.proof_reference)
    except BlobNotFoundError:
        raise HTTPException(status_code=404, detail="Proof file missing")

    return Response(
        content=content,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{reservation.proof_reference}"'},
    )
