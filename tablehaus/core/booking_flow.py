"""
Booking wizard: a pure reducer over BookingDraft plus the controller that owns it.

Views never mutate the draft; they dispatch one of the action models below
and the controller swaps in the reducer's result. The controller is the only
piece that talks to availability, promotions and the commit protocol.
"""

import asyncio
import datetime as dt
from typing import Any, Callable, FrozenSet, List, Optional, Set, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict

from tablehaus.core.availability import AvailabilityCalculator
from tablehaus.core.commit import CommitProtocol
from tablehaus.core.lifecycle import Channel
from tablehaus.core.promotions import PromotionValidator
from tablehaus.core.timeutils import to_instant
from tablehaus.exceptions import StoreError
from tablehaus.schemas.booking import BookingDraft, BookingStep, CartLine, DiningTable, ReferenceData
from tablehaus.schemas.promotion import AppliedPromotion, PromotionResult
from tablehaus.schemas.results import CommitFailure, CommitResult, ErrorKind, VALIDATION_KINDS
from tablehaus.stores.base import InvalidationChannel, Unsubscribe

logger = structlog.get_logger()


class Action(BaseModel):
    model_config = ConfigDict(frozen=True)


class NextStep(Action):
    pass


class PrevStep(Action):
    pass


class GoToStep(Action):
    step: BookingStep


class SetDate(Action):
    date: dt.date


class SetTime(Action):
    time: str


class SetPartySize(Action):
    party_size: int


class SelectTable(Action):
    table: DiningTable


class DeselectTable(Action):
    pass


class AddToCart(Action):
    line: CartLine


class RemoveFromCart(Action):
    index: int


class UpdateQuantity(Action):
    index: int
    quantity: int


class ClearCart(Action):
    pass


class SetCheckoutMode(Action):
    enabled: bool


class UpdateField(Action):
    field: str
    value: Any = None


class LoadReference(Action):
    reference: ReferenceData


class SetOccupiedTables(Action):
    table_ids: FrozenSet[UUID]


class ApplyPromotion(Action):
    promotion: AppliedPromotion


class ClearPromotion(Action):
    pass


class Reset(Action):
    pass


BookingAction = Union[
    NextStep, PrevStep, GoToStep, SetDate, SetTime, SetPartySize, SelectTable,
    DeselectTable, AddToCart, RemoveFromCart, UpdateQuantity, ClearCart,
    SetCheckoutMode, UpdateField, LoadReference, SetOccupiedTables,
    ApplyPromotion, ClearPromotion, Reset,
]

CART_ACTIONS = (AddToCart, RemoveFromCart, UpdateQuantity, ClearCart)

FORM_FIELDS = frozenset({
    "contact_name",
    "contact_phone",
    "contact_email",
    "special_request",
    "is_agreed",
    "proof_file",
    "customer_id",
})


def steps_for(channel: Channel) -> List[BookingStep]:
    """Pickup orders have no table to choose"""
    if channel == Channel.PICKUP:
        return [BookingStep.DATE, BookingStep.FOOD]
    return [BookingStep.DATE, BookingStep.TABLE, BookingStep.FOOD]


def new_draft(channel: Channel = Channel.DINE_IN, reference: Optional[ReferenceData] = None) -> BookingDraft:
    party_size = 1 if channel == Channel.PICKUP else 2
    return BookingDraft(channel=channel, party_size=party_size, reference=reference or ReferenceData())


def _move(draft: BookingDraft, offset: int) -> BookingDraft:
    steps = steps_for(draft.channel)
    index = steps.index(draft.step) if draft.step in steps else 0
    target = steps[max(0, min(len(steps) - 1, index + offset))]
    update = {"step": target, "direction": 1 if offset > 0 else -1}
    if offset < 0:
        update["checkout_mode"] = False
    return draft.model_copy(update=update)


def _add_line(cart: List[CartLine], line: CartLine) -> List[CartLine]:
    for index, existing in enumerate(cart):
        if existing.same_entry(line):
            merged = existing.model_copy(update={"quantity": existing.quantity + line.quantity})
            return cart[:index] + [merged] + cart[index + 1:]
    return cart + [line]


def _check_index(cart: List[CartLine], index: int) -> None:
    if not 0 <= index < len(cart):
        raise IndexError(f"No cart line at index {index}")


def reduce(draft: BookingDraft, action: BookingAction) -> BookingDraft:
    """Apply one action; returns a new draft and never mutates the old one"""
    if isinstance(action, NextStep):
        return _move(draft, 1)
    if isinstance(action, PrevStep):
        return _move(draft, -1)
    if isinstance(action, GoToStep):
        if action.step not in steps_for(draft.channel):
            raise ValueError(f"{action.step.name} is not a step of {draft.channel.value}")
        direction = 1 if action.step > draft.step else -1
        return draft.model_copy(update={"step": action.step, "direction": direction})

    # Selection
    if isinstance(action, SetDate):
        return draft.model_copy(update={
            "date": action.date,
            "time": None,
            "selected_table": None,
            "occupied_table_ids": frozenset(),
        })
    if isinstance(action, SetTime):
        return draft.model_copy(update={"time": action.time})
    if isinstance(action, SetPartySize):
        if action.party_size < 1:
            raise ValueError("party_size must be >= 1")
        return draft.model_copy(update={"party_size": action.party_size})
    if isinstance(action, SelectTable):
        return draft.model_copy(update={"selected_table": action.table})
    if isinstance(action, DeselectTable):
        return draft.model_copy(update={"selected_table": None})
    if isinstance(action, SetOccupiedTables):
        return draft.model_copy(update={"occupied_table_ids": frozenset(action.table_ids)})

    # Cart
    if isinstance(action, AddToCart):
        return draft.model_copy(update={"cart": _add_line(list(draft.cart), action.line)})
    if isinstance(action, RemoveFromCart):
        _check_index(draft.cart, action.index)
        cart = [line for i, line in enumerate(draft.cart) if i != action.index]
        return draft.model_copy(update={"cart": cart})
    if isinstance(action, UpdateQuantity):
        _check_index(draft.cart, action.index)
        if action.quantity <= 0:
            cart = [line for i, line in enumerate(draft.cart) if i != action.index]
        else:
            cart = list(draft.cart)
            cart[action.index] = cart[action.index].model_copy(update={"quantity": action.quantity})
        return draft.model_copy(update={"cart": cart})
    if isinstance(action, ClearCart):
        return draft.model_copy(update={"cart": []})

    # Checkout
    if isinstance(action, SetCheckoutMode):
        return draft.model_copy(update={"checkout_mode": action.enabled})
    if isinstance(action, UpdateField):
        if action.field not in FORM_FIELDS:
            raise ValueError(f"Unknown form field: {action.field}")
        # Round-trip through validation so a bad value cannot slip in
        return BookingDraft.model_validate({**dict(draft), action.field: action.value})
    if isinstance(action, ApplyPromotion):
        return draft.model_copy(update={"applied_promotion": action.promotion})
    if isinstance(action, ClearPromotion):
        return draft.model_copy(update={"applied_promotion": None})

    if isinstance(action, LoadReference):
        return draft.model_copy(update={"reference": action.reference})
    if isinstance(action, Reset):
        return new_draft(draft.channel, draft.reference)

    raise TypeError(f"Unsupported action: {type(action).__name__}")


# Where the wizard sends the user to fix each validation failure
FAILURE_STEP = {
    ErrorKind.INCOMPLETE_SELECTION: BookingStep.DATE,
    ErrorKind.DATE_BLOCKED: BookingStep.DATE,
    ErrorKind.MISSING_CONTACT: BookingStep.FOOD,
    ErrorKind.TERMS_NOT_AGREED: BookingStep.FOOD,
    ErrorKind.MISSING_PROOF: BookingStep.FOOD,
    ErrorKind.BELOW_MIN_SPEND: BookingStep.FOOD,
}


class BookingFlowController:
    """
    Owns one BookingDraft and sequences date -> table -> food -> checkout.

    Only one commit may be in flight per draft. Invalidation events are
    treated as "re-read availability" and nothing more.
    """

    def __init__(
        self,
        availability: AvailabilityCalculator,
        promotions: PromotionValidator,
        commit_protocol: CommitProtocol,
        channel: Channel = Channel.DINE_IN,
        reference: Optional[ReferenceData] = None,
        invalidation: Optional[InvalidationChannel] = None,
        on_change: Optional[Callable[[BookingDraft], None]] = None,
    ):
        self.availability = availability
        self.promotions = promotions
        self.commit_protocol = commit_protocol
        self.invalidation = invalidation
        self.on_change = on_change
        self.draft = new_draft(channel, reference)
        self.notices: List[str] = []
        self.last_reservation = None
        self.submitting = False
        self._unsubscribe: Optional[Unsubscribe] = None
        self._refreshes: Set[asyncio.Task] = set()

    # --- dispatch ---------------------------------------------------------

    def _set(self, draft: BookingDraft) -> None:
        self.draft = draft
        if self.on_change is not None:
            self.on_change(draft)

    async def dispatch(self, action: BookingAction) -> BookingDraft:
        """Apply an action; an applied promotion is revalidated after every cart change"""
        self._set(reduce(self.draft, action))
        if isinstance(action, CART_ACTIONS) and self.draft.applied_promotion is not None:
            await self.revalidate_promotion()
        return self.draft

    # --- availability -----------------------------------------------------

    def window(self):
        start = to_instant(self.draft.date, self.draft.time, self.commit_protocol.policy.timezone)
        return start, start + self.commit_protocol.policy.duration(self.draft.channel)

    async def refresh_availability(self) -> FrozenSet[UUID]:
        """Re-derive occupied tables from a fresh store read"""
        if self.draft.channel != Channel.DINE_IN or self.draft.date is None or not self.draft.time:
            return frozenset()
        start, end = self.window()
        try:
            occupied = await self.availability.compute_occupied(self.draft.date, start, end)
        except StoreError as exc:
            logger.warning("Availability refresh failed", error=str(exc))
            return self.draft.occupied_table_ids
        self._set(reduce(self.draft, SetOccupiedTables(table_ids=occupied)))
        return occupied

    def free_tables(self) -> List[DiningTable]:
        """Reference tables that fit the party and are not occupied"""
        return [
            table for table in self.draft.reference.tables
            if table.id not in self.draft.occupied_table_ids and table.capacity >= self.draft.party_size
        ]

    def _on_invalidated(self) -> None:
        task = asyncio.get_running_loop().create_task(self.refresh_availability())
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)

    def start(self) -> None:
        """Subscribe to reservation-changed events"""
        if self.invalidation is not None and self._unsubscribe is None:
            self._unsubscribe = self.invalidation.subscribe(self._on_invalidated)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._refreshes:
            await asyncio.gather(*self._refreshes, return_exceptions=True)

    # --- promotions -------------------------------------------------------

    async def apply_code(self, code: str) -> PromotionResult:
        """Validate a code against the current subtotal and apply it when valid"""
        result = await self.promotions.validate(code, self.draft.subtotal, self.draft.channel)
        if result.valid:
            self._set(reduce(self.draft, ApplyPromotion(promotion=AppliedPromotion.from_result(result))))
        else:
            self._set(reduce(self.draft, ClearPromotion()))
        return result

    def remove_promotion(self) -> None:
        self._set(reduce(self.draft, ClearPromotion()))

    async def revalidate_promotion(self) -> Optional[PromotionResult]:
        """Refresh the applied discount, or clear it with a dismissible notice"""
        applied = self.draft.applied_promotion
        if applied is None:
            return None
        subtotal = self.draft.subtotal
        result = await self.promotions.revalidate(applied, subtotal, self.draft.channel)
        # A later cart change or reset supersedes this lookup
        if (
            self.draft.applied_promotion is None
            or self.draft.applied_promotion.code != applied.code
            or self.draft.subtotal != subtotal
        ):
            return result
        if result.valid:
            self._set(reduce(self.draft, ApplyPromotion(promotion=AppliedPromotion.from_result(result))))
        else:
            self._set(reduce(self.draft, ClearPromotion()))
            self.notices.append(f"{applied.code}: {result.reason}")
        return result

    def dismiss_notice(self, index: int = 0) -> None:
        if 0 <= index < len(self.notices):
            self.notices.pop(index)

    # --- submit -----------------------------------------------------------

    async def submit(self) -> CommitResult:
        """Hand the whole draft to the commit protocol and route the outcome"""
        if self.submitting:
            return CommitFailure(
                error_kind=ErrorKind.SUBMIT_IN_PROGRESS,
                message="A submission is already in progress",
            )

        self.submitting = True
        try:
            result = await self.commit_protocol.commit(self.draft)
        finally:
            self.submitting = False

        if result.success:
            self.last_reservation = result.reservation
            self._set(reduce(self.draft, Reset()))
            return result

        self._route_failure(result)
        return result

    def _route_failure(self, failure: CommitFailure) -> None:
        kind = failure.error_kind
        if kind in VALIDATION_KINDS:
            step = FAILURE_STEP[kind]
            if (
                kind == ErrorKind.INCOMPLETE_SELECTION
                and self.draft.date is not None
                and self.draft.time
                and self.draft.channel == Channel.DINE_IN
                and self.draft.selected_table is None
            ):
                step = BookingStep.TABLE
            draft = reduce(self.draft, GoToStep(step=step))
            if step == BookingStep.FOOD:
                draft = reduce(draft, SetCheckoutMode(enabled=True))
            self._set(draft)
        elif kind == ErrorKind.TABLE_TAKEN:
            draft = reduce(self.draft, DeselectTable())
            self._set(reduce(draft, GoToStep(step=BookingStep.TABLE)))
            self._on_invalidated()
        elif kind == ErrorKind.PROMO_INVALID:
            code = self.draft.applied_promotion.code if self.draft.applied_promotion else ""
            self._set(reduce(self.draft, ClearPromotion()))
            self.notices.append(f"{code}: {failure.message}" if code else failure.message)
        # UPLOAD_FAILED / STORE_UNAVAILABLE keep the user where they are
