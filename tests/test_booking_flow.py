"""Tests for the booking wizard reducer and controller"""

import asyncio
from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from tablehaus.core.availability import AvailabilityCalculator
from tablehaus.core.booking_flow import (
    AddToCart,
    BookingFlowController,
    ClearCart,
    DeselectTable,
    GoToStep,
    NextStep,
    PrevStep,
    RemoveFromCart,
    Reset,
    SelectTable,
    SetCheckoutMode,
    SetDate,
    SetPartySize,
    SetTime,
    UpdateField,
    UpdateQuantity,
    new_draft,
    reduce,
    steps_for,
)
from tablehaus.core.commit import CommitProtocol
from tablehaus.core.lifecycle import Channel
from tablehaus.core.policy import BookingPolicy
from tablehaus.core.promotions import PromotionValidator
from tablehaus.core.timeutils import to_instant
from tablehaus.schemas.booking import BookingStep, CartLine, ProofFile, ReferenceData
from tablehaus.schemas.promotion import DiscountType, PromotionRule
from tablehaus.schemas.reservation import Reservation
from tablehaus.schemas.results import ErrorKind
from tablehaus.stores.blob import InMemoryBlobStore
from tablehaus.stores.invalidation import InProcessInvalidationChannel
from tablehaus.stores.memory import InMemoryPromotionStore

DAY = date(2030, 6, 15)
STEAK = CartLine(name="Ribeye", quantity=1, unit_price=600, selected_options={"Doneness": "Medium"})
SLIP = ProofFile(filename="slip.jpg", content=b"jpeg-bytes", content_type="image/jpeg")


# --- reducer ---------------------------------------------------------------


def test_steps_per_channel():
    assert steps_for(Channel.DINE_IN) == [BookingStep.DATE, BookingStep.TABLE, BookingStep.FOOD]
    assert steps_for(Channel.PICKUP) == [BookingStep.DATE, BookingStep.FOOD]


def test_reduce_never_mutates():
    draft = new_draft()
    updated = reduce(draft, AddToCart(line=STEAK))

    assert draft.cart == []
    assert updated.cart == [STEAK]


def test_navigation_skips_table_for_pickup():
    draft = new_draft(Channel.PICKUP)
    assert draft.party_size == 1

    draft = reduce(draft, NextStep())
    assert draft.step == BookingStep.FOOD
    draft = reduce(draft, NextStep())
    assert draft.step == BookingStep.FOOD
    draft = reduce(draft, PrevStep())
    assert draft.step == BookingStep.DATE
    assert draft.direction == -1

    with pytest.raises(ValueError):
        reduce(draft, GoToStep(step=BookingStep.TABLE))


def test_going_back_leaves_checkout_mode():
    draft = reduce(new_draft(), GoToStep(step=BookingStep.FOOD))
    draft = reduce(draft, SetCheckoutMode(enabled=True))

    draft = reduce(draft, PrevStep())

    assert draft.step == BookingStep.TABLE
    assert draft.checkout_mode is False


def test_set_date_clears_time_and_table(tables):
    draft = reduce(new_draft(), SetDate(date=DAY))
    draft = reduce(draft, SetTime(time="19:00"))
    draft = reduce(draft, SelectTable(table=tables[0]))

    draft = reduce(draft, SetDate(date=date(2030, 6, 16)))

    assert draft.time is None
    assert draft.selected_table is None


def test_identical_lines_stack():
    draft = reduce(new_draft(), AddToCart(line=STEAK))
    draft = reduce(draft, AddToCart(line=STEAK.model_copy(update={"quantity": 2})))

    assert len(draft.cart) == 1
    assert draft.cart[0].quantity == 3
    assert draft.subtotal == 1800


def test_different_options_are_separate_lines():
    rare = STEAK.model_copy(update={"selected_options": {"Doneness": "Rare"}})
    draft = reduce(new_draft(), AddToCart(line=STEAK))
    draft = reduce(draft, AddToCart(line=rare))

    assert len(draft.cart) == 2


def test_quantity_updates_and_removal():
    salad = CartLine(name="Salad", quantity=1, unit_price=250)
    draft = reduce(reduce(new_draft(), AddToCart(line=STEAK)), AddToCart(line=salad))

    draft = reduce(draft, UpdateQuantity(index=0, quantity=4))
    assert draft.cart[0].quantity == 4

    draft = reduce(draft, UpdateQuantity(index=0, quantity=0))
    assert draft.cart == [salad]

    draft = reduce(draft, RemoveFromCart(index=0))
    assert draft.cart == []

    with pytest.raises(IndexError):
        reduce(draft, RemoveFromCart(index=0))


def test_update_field_validates():
    draft = reduce(new_draft(), UpdateField(field="contact_name", value="Somchai"))
    assert draft.contact_name == "Somchai"

    with pytest.raises(ValueError):
        reduce(draft, UpdateField(field="party_size", value=10))


def test_party_size_must_be_positive():
    with pytest.raises(ValueError):
        reduce(new_draft(), SetPartySize(party_size=0))


def test_reset_keeps_channel_and_reference(tables):
    reference = ReferenceData(tables=tables)
    draft = reduce(new_draft(Channel.PICKUP, reference), AddToCart(line=STEAK))
    draft = reduce(draft, UpdateField(field="contact_name", value="Somchai"))

    draft = reduce(draft, Reset())

    assert draft.channel == Channel.PICKUP
    assert draft.reference == reference
    assert draft.cart == []
    assert draft.contact_name == ""


# --- controller ------------------------------------------------------------


@pytest.fixture
def promotions():
    return PromotionValidator(InMemoryPromotionStore([
        PromotionRule(code="SAVE10", discount_type=DiscountType.PERCENT, discount_value=10, min_subtotal=1000),
    ]))


def make_controller(store, policy, promotions, tables, invalidation=None, blobs=None):
    availability = AvailabilityCalculator(store, policy.timezone, policy.durations)
    protocol = CommitProtocol(
        store,
        blobs or InMemoryBlobStore(),
        policy,
        availability=availability,
        promotions=promotions,
        invalidation=invalidation,
    )
    return BookingFlowController(
        availability,
        promotions,
        protocol,
        reference=ReferenceData(tables=tables),
        invalidation=invalidation,
    )


async def fill(controller, table):
    await controller.dispatch(SetDate(date=DAY))
    await controller.dispatch(SetTime(time="19:00"))
    await controller.dispatch(SelectTable(table=table))
    await controller.dispatch(AddToCart(line=STEAK.model_copy(update={"quantity": 2})))
    for field, value in [
        ("contact_name", "Somchai Jaidee"),
        ("contact_phone", "0812345678"),
        ("is_agreed", True),
        ("proof_file", SLIP),
    ]:
        await controller.dispatch(UpdateField(field=field, value=value))


def existing_booking(table_id, policy):
    start = to_instant(DAY, "19:00", policy.timezone)
    return Reservation(
        channel=Channel.DINE_IN,
        table_id=table_id,
        start_at=start,
        end_at=start + policy.duration(Channel.DINE_IN),
        customer_name="Walk In",
        customer_phone="0800000000",
        tracking_token=uuid4().hex,
        created_at=datetime.now(timezone.utc),
    )


@pytest.mark.asyncio
async def test_free_tables_respect_occupancy_and_party_size(memory_store, policy, promotions, tables):
    await memory_store.insert(existing_booking(tables[1].id, policy), [])
    controller = make_controller(memory_store, policy, promotions, tables)
    await controller.dispatch(SetDate(date=DAY))
    await controller.dispatch(SetTime(time="20:00"))
    await controller.dispatch(SetPartySize(party_size=3))

    occupied = await controller.refresh_availability()

    assert occupied == {tables[1].id}
    assert controller.free_tables() == [tables[2]]


@pytest.mark.asyncio
async def test_submit_success_resets_draft(memory_store, policy, promotions, tables):
    controller = make_controller(memory_store, policy, promotions, tables)
    await fill(controller, tables[0])

    result = await controller.submit()

    assert result.success is True
    assert controller.last_reservation == result.reservation
    assert controller.draft.cart == []
    assert controller.draft.reference.tables == tables
    assert controller.submitting is False


@pytest.mark.asyncio
async def test_validation_failure_routes_to_checkout(memory_store, policy, promotions, tables):
    controller = make_controller(memory_store, policy, promotions, tables)
    await fill(controller, tables[0])
    await controller.dispatch(UpdateField(field="is_agreed", value=False))

    result = await controller.submit()

    assert result.error_kind == ErrorKind.TERMS_NOT_AGREED
    assert controller.draft.step == BookingStep.FOOD
    assert controller.draft.checkout_mode is True
    assert controller.draft.contact_name == "Somchai Jaidee"


@pytest.mark.asyncio
async def test_blocked_date_routes_to_date_step(memory_store, promotions, tables):
    policy = BookingPolicy(timezone="Asia/Bangkok", blocked_dates={DAY})
    controller = make_controller(memory_store, policy, promotions, tables)
    await fill(controller, tables[0])

    result = await controller.submit()

    assert result.error_kind == ErrorKind.DATE_BLOCKED
    assert controller.draft.step == BookingStep.DATE


@pytest.mark.asyncio
async def test_missing_slot_routes_to_date_step(memory_store, policy, promotions, tables):
    controller = make_controller(memory_store, policy, promotions, tables)
    await controller.dispatch(UpdateField(field="contact_name", value="Somchai Jaidee"))

    result = await controller.submit()

    assert result.error_kind == ErrorKind.INCOMPLETE_SELECTION
    assert controller.draft.step == BookingStep.DATE
    assert controller.submitting is False
    assert memory_store.all() == []


@pytest.mark.asyncio
async def test_missing_table_routes_to_table_step(memory_store, policy, promotions, tables):
    controller = make_controller(memory_store, policy, promotions, tables)
    await fill(controller, tables[0])
    await controller.dispatch(SetTime(time="20:00"))
    await controller.dispatch(DeselectTable())
    await controller.dispatch(GoToStep(step=BookingStep.FOOD))

    result = await controller.submit()

    assert result.error_kind == ErrorKind.INCOMPLETE_SELECTION
    assert controller.draft.step == BookingStep.TABLE
    assert controller.draft.time == "20:00"
    assert memory_store.all() == []


@pytest.mark.asyncio
async def test_table_taken_sends_user_back_to_table_step(memory_store, policy, promotions, tables):
    controller = make_controller(memory_store, policy, promotions, tables)
    await fill(controller, tables[0])
    await memory_store.insert(existing_booking(tables[0].id, policy), [])

    result = await controller.submit()
    await controller.close()

    assert result.error_kind == ErrorKind.TABLE_TAKEN
    assert controller.draft.step == BookingStep.TABLE
    assert controller.draft.selected_table is None
    assert tables[0].id in controller.draft.occupied_table_ids
    assert len(controller.draft.cart) == 1


@pytest.mark.asyncio
async def test_second_submit_while_in_flight(memory_store, policy, promotions, tables):
    controller = make_controller(memory_store, policy, promotions, tables)
    await fill(controller, tables[0])

    first, second = await asyncio.gather(controller.submit(), controller.submit())

    assert first.success is True
    assert second.error_kind == ErrorKind.SUBMIT_IN_PROGRESS
    assert len(memory_store.all()) == 1


@pytest.mark.asyncio
async def test_promotion_follows_cart(memory_store, policy, promotions, tables):
    controller = make_controller(memory_store, policy, promotions, tables)
    await controller.dispatch(AddToCart(line=STEAK.model_copy(update={"quantity": 2})))

    result = await controller.apply_code("save10")
    assert result.valid is True
    assert controller.draft.discount == 120

    await controller.dispatch(AddToCart(line=STEAK))
    assert controller.draft.discount == 180

    # Dropping below the minimum clears the code with a notice
    await controller.dispatch(UpdateQuantity(index=0, quantity=1))
    assert controller.draft.applied_promotion is None
    assert controller.draft.discount == 0
    assert controller.notices == ["SAVE10: Min spend not met"]

    controller.dismiss_notice()
    assert controller.notices == []


class SlowPromotionStore(InMemoryPromotionStore):
    """Each lookup waits for the next queued delay"""

    def __init__(self, rules):
        super().__init__(rules)
        self.delays = []

    async def lookup(self, code):
        delay = self.delays.pop(0) if self.delays else 0
        await asyncio.sleep(delay)
        return await super().lookup(code)


@pytest.mark.asyncio
async def test_out_of_order_revalidation_keeps_latest_cart(memory_store, policy, tables):
    store = SlowPromotionStore([
        PromotionRule(code="SAVE10", discount_type=DiscountType.PERCENT, discount_value=10, min_subtotal=1000),
    ])
    controller = make_controller(memory_store, policy, PromotionValidator(store), tables)
    await controller.dispatch(AddToCart(line=STEAK.model_copy(update={"quantity": 2})))
    assert (await controller.apply_code("SAVE10")).valid is True

    # Shrinking to 600 answers late; growing to 1800 answers first
    store.delays = [0.05, 0]
    await asyncio.gather(
        controller.dispatch(UpdateQuantity(index=0, quantity=1)),
        controller.dispatch(UpdateQuantity(index=0, quantity=3)),
    )

    assert controller.draft.subtotal == 1800
    assert controller.draft.applied_promotion is not None
    assert controller.draft.applied_promotion.code == "SAVE10"
    assert controller.draft.discount == 180
    assert controller.notices == []


@pytest.mark.asyncio
async def test_rejected_code_is_not_applied(memory_store, policy, promotions, tables):
    controller = make_controller(memory_store, policy, promotions, tables)
    await controller.dispatch(AddToCart(line=STEAK))

    result = await controller.apply_code("SAVE10")

    assert result.valid is False
    assert controller.draft.applied_promotion is None


@pytest.mark.asyncio
async def test_clear_cart_drops_promotion(memory_store, policy, promotions, tables):
    controller = make_controller(memory_store, policy, promotions, tables)
    await controller.dispatch(AddToCart(line=STEAK.model_copy(update={"quantity": 2})))
    await controller.apply_code("SAVE10")

    await controller.dispatch(ClearCart())

    assert controller.draft.applied_promotion is None
    assert controller.draft.total == 0


@pytest.mark.asyncio
async def test_invalidation_triggers_refresh(memory_store, policy, promotions, tables):
    channel = InProcessInvalidationChannel()
    controller = make_controller(memory_store, policy, promotions, tables, invalidation=channel)
    controller.start()
    await controller.dispatch(SetDate(date=DAY))
    await controller.dispatch(SetTime(time="19:00"))
    assert controller.draft.occupied_table_ids == frozenset()

    # Another client books T1 and publishes
    await memory_store.insert(existing_booking(tables[0].id, policy), [])
    await channel.publish()
    await controller.close()

    assert controller.draft.occupied_table_ids == {tables[0].id}
    assert channel.subscriber_count == 0
