"""
Reservation commit protocol.

Validates a booking draft, re-checks the table right before writing, uploads
the proof of payment and persists the reservation with its lines. Every
failure path returns a CommitFailure and leaves nothing behind in the store
or in blob storage.

The availability re-check and the insert are not one atomic step: a store
that enforces a table guard raises ConflictError on the losing insert, which
is reported exactly like a lost re-check.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import structlog

from tablehaus.core.availability import AvailabilityCalculator
from tablehaus.core.lifecycle import INITIAL_STATUS, Channel
from tablehaus.core.policy import BookingPolicy
from tablehaus.core.promotions import PromotionValidator
from tablehaus.core.timeutils import to_instant
from tablehaus.exceptions import ConflictError, StoreError, UploadError
from tablehaus.schemas.booking import BookingDraft
from tablehaus.schemas.reservation import OrderLine, Reservation
from tablehaus.schemas.results import CommitFailure, CommitResult, CommitSuccess, ErrorKind
from tablehaus.stores.base import BlobStore, InvalidationChannel, ReservationStore

logger = structlog.get_logger()

TRACKING_TOKEN_BYTES = 24


def mint_tracking_token() -> str:
    """Random, URL-safe and unrelated to the reservation id"""
    return secrets.token_urlsafe(TRACKING_TOKEN_BYTES)


def _fail(kind: ErrorKind, message: str) -> CommitFailure:
    return CommitFailure(error_kind=kind, message=message)


class CommitProtocol:
    """Turns a whole BookingDraft into a persisted Reservation"""

    def __init__(
        self,
        reservations: ReservationStore,
        blobs: BlobStore,
        policy: BookingPolicy,
        availability: Optional[AvailabilityCalculator] = None,
        promotions: Optional[PromotionValidator] = None,
        invalidation: Optional[InvalidationChannel] = None,
    ):
        self.reservations = reservations
        self.blobs = blobs
        self.policy = policy
        self.availability = availability or AvailabilityCalculator(
            reservations, policy.timezone, policy.durations
        )
        self.promotions = promotions
        self.invalidation = invalidation

    def window(self, draft: BookingDraft) -> Tuple[datetime, datetime]:
        """[start, end) the draft asks for; raises ValueError on an incomplete slot"""
        if draft.date is None or not draft.time:
            raise ValueError("Draft has no date/time selected")
        start = to_instant(draft.date, draft.time, self.policy.timezone)
        return start, start + self.policy.duration(draft.channel)

    def _check_selection(self, draft: BookingDraft) -> Optional[CommitFailure]:
        if draft.date is None or not draft.time:
            return _fail(ErrorKind.INCOMPLETE_SELECTION, "Please pick a date and time")
        if draft.channel == Channel.DINE_IN and draft.selected_table is None:
            return _fail(ErrorKind.INCOMPLETE_SELECTION, "Please pick a table")
        return None

    def _validate(self, draft: BookingDraft) -> Optional[CommitFailure]:
        if not draft.contact_name.strip() or not draft.contact_phone.strip():
            return _fail(ErrorKind.MISSING_CONTACT, "Contact name and phone are required")
        if not draft.is_agreed:
            return _fail(ErrorKind.TERMS_NOT_AGREED, "Please agree to the terms")
        if draft.proof_file is None:
            return _fail(ErrorKind.MISSING_PROOF, "Please attach proof of payment")
        if self.policy.is_blocked(draft.date):
            return _fail(ErrorKind.DATE_BLOCKED, f"The restaurant is closed on {draft.date.isoformat()}")

        required = self.policy.required_spend(draft.channel, draft.party_size)
        if required > 0 and draft.subtotal < required:
            return _fail(
                ErrorKind.BELOW_MIN_SPEND,
                f"Minimum spend is {required} for {draft.party_size} guest(s); "
                f"add {required - draft.subtotal} more",
            )
        return None

    async def _discard_proof(self, reference: str, log) -> None:
        """Best-effort removal of a proof whose reservation was never written"""
        try:
            await self.blobs.delete(reference)
        except StoreError as exc:
            log.warning("Orphaned proof left behind", proof_reference=reference, error=str(exc))

    async def commit(self, draft: BookingDraft) -> CommitResult:
        """Validate, re-check, upload, persist; see the module docstring"""
        failure = self._check_selection(draft)
        if failure is None:
            try:
                start, end = self.window(draft)
            except ValueError:
                failure = _fail(ErrorKind.INCOMPLETE_SELECTION, "Please pick a valid date and time")
        if failure is not None:
            logger.info("Commit rejected", channel=draft.channel.value, error_kind=failure.error_kind.value)
            return failure

        log = logger.bind(
            channel=draft.channel.value,
            start=start.isoformat(),
            table_id=str(draft.selected_table.id) if draft.selected_table else None,
        )

        failure = self._validate(draft)
        if failure is not None:
            log.info("Commit rejected", error_kind=failure.error_kind.value)
            return failure

        subtotal = draft.subtotal
        discount = 0
        promotion_code = None
        if draft.applied_promotion is not None:
            if self.promotions is not None:
                result = await self.promotions.revalidate(draft.applied_promotion, subtotal, draft.channel)
                if not result.valid:
                    log.info("Commit rejected", error_kind=ErrorKind.PROMO_INVALID.value, reason=result.reason)
                    return _fail(ErrorKind.PROMO_INVALID, result.reason)
                discount = result.discount_amount
            else:
                discount = draft.discount
            promotion_code = draft.applied_promotion.code

        table_id = draft.selected_table.id if draft.channel == Channel.DINE_IN else None
        if table_id is not None:
            try:
                free = await self.availability.is_table_free(table_id, draft.date, start, end)
            except StoreError as exc:
                log.warning("Availability re-check failed", error=str(exc))
                return _fail(ErrorKind.STORE_UNAVAILABLE, "Could not reach the booking service, please retry")
            if not free:
                log.info("Commit lost the race on re-check")
                return _fail(ErrorKind.TABLE_TAKEN, "This table was just taken! Please select another.")

        try:
            proof_reference = await self.blobs.upload(draft.proof_file)
        except UploadError as exc:
            log.warning("Proof upload failed", error=str(exc))
            return _fail(ErrorKind.UPLOAD_FAILED, "Uploading the payment slip failed, please retry")

        lines = [
            OrderLine(
                menu_item_id=line.menu_item_id,
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                selected_options=dict(line.selected_options),
            )
            for line in draft.cart
        ]
        reservation = Reservation(
            channel=draft.channel,
            table_id=table_id,
            start_at=start,
            end_at=end,
            status=INITIAL_STATUS,
            party_size=draft.party_size,
            subtotal=subtotal,
            discount=discount,
            total=subtotal - discount,
            promotion_code=promotion_code,
            customer_id=draft.customer_id,
            customer_name=draft.contact_name.strip(),
            customer_phone=draft.contact_phone.strip(),
            customer_email=draft.contact_email,
            customer_note=draft.special_request or None,
            proof_reference=proof_reference,
            tracking_token=mint_tracking_token(),
            token_expires_at=start + timedelta(hours=self.policy.tracking_token_ttl_hours),
            created_at=datetime.now(timezone.utc),
        )

        try:
            created = await self.reservations.insert(reservation, lines)
        except ConflictError:
            log.info("Commit lost the race at insert")
            await self._discard_proof(proof_reference, log)
            return _fail(ErrorKind.TABLE_TAKEN, "This table was just taken! Please select another.")
        except StoreError as exc:
            log.error("Reservation insert failed", error=str(exc))
            await self._discard_proof(proof_reference, log)
            return _fail(ErrorKind.STORE_UNAVAILABLE, "Could not save the booking, please retry")

        log.info("Reservation committed", reservation_id=str(created.id), total=created.total)
        if self.invalidation is not None:
            try:
                await self.invalidation.publish()
            except Exception:
                log.exception("Invalidation publish failed")
        return CommitSuccess(reservation=created)
