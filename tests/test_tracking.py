"""Tests for anonymous tracking and staff status transitions"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from tablehaus.core.lifecycle import ACTIVE_POLL_SECONDS, IDLE_POLL_SECONDS, Channel, OrderStatus
from tablehaus.core.status import StatusService
from tablehaus.core.tracking import TrackingService, mask_name, mask_phone, short_id
from tablehaus.schemas.reservation import OrderLine, Reservation
from tablehaus.schemas.results import ErrorKind, Failure
from tablehaus.stores.invalidation import InProcessInvalidationChannel

START = datetime(2030, 6, 15, 12, 0, tzinfo=timezone.utc)


def pickup_order(**overrides):
    values = dict(
        channel=Channel.PICKUP,
        start_at=START,
        end_at=START + timedelta(minutes=30),
        subtotal=1200,
        discount=120,
        total=1080,
        customer_name="Somchai Jaidee",
        customer_phone="081-234-5678",
        tracking_token="abcdefghijklmnopqrstuvwxyz0123456789wxyz",
        token_expires_at=START + timedelta(hours=24),
        created_at=START - timedelta(days=1),
    )
    values.update(overrides)
    return Reservation(**values)


def test_mask_name():
    assert mask_name("Somchai Jaidee") == "Somchai"
    assert mask_name("") == "Customer"


def test_mask_phone():
    assert mask_phone("081-234-5678") == "081-xxx-5678"
    assert mask_phone("12345") == "xxx-xxx-xxxx"
    assert mask_phone("") == ""


def test_short_id():
    assert short_id("abcdefghwxyz") == "WXYZ"


@pytest.mark.asyncio
async def test_lookup_returns_masked_view(memory_store):
    order = pickup_order(status=OrderStatus.PREPARING)
    await memory_store.insert(order, [OrderLine(name="Ribeye", quantity=2, unit_price=600)])

    view = await TrackingService(memory_store).lookup(order.tracking_token, now=START)

    assert view.short_id == "WXYZ"
    assert view.customer_name == "Somchai"
    assert view.phone == "081-xxx-5678"
    assert view.total == 1080
    assert view.items[0].name == "Ribeye"
    assert view.progress == 2
    assert [step.reached for step in view.steps] == [True, True, True, False, False]
    assert view.is_active is True
    assert view.poll_interval_seconds == ACTIVE_POLL_SECONDS


@pytest.mark.asyncio
async def test_lookup_cancelled_order_is_off_the_progress_bar(memory_store):
    order = pickup_order(status=OrderStatus.CANCELLED)
    await memory_store.insert(order, [])

    view = await TrackingService(memory_store).lookup(order.tracking_token, now=START)

    assert view.progress is None
    assert not any(step.reached for step in view.steps)
    assert view.poll_interval_seconds == IDLE_POLL_SECONDS


@pytest.mark.asyncio
async def test_lookup_unknown_and_expired(memory_store):
    order = pickup_order()
    await memory_store.insert(order, [])
    service = TrackingService(memory_store)

    missing = await service.lookup("no-such-token")
    assert isinstance(missing, Failure)
    assert missing.error_kind == ErrorKind.NOT_FOUND

    expired = await service.lookup(order.tracking_token, now=START + timedelta(hours=25))
    assert expired.error_kind == ErrorKind.TOKEN_EXPIRED


@pytest.mark.asyncio
async def test_status_transition_follows_channel_graph(memory_store):
    order = pickup_order()
    await memory_store.insert(order, [])
    channel = InProcessInvalidationChannel()
    events = []
    channel.subscribe(lambda: events.append("changed"))
    service = StatusService(memory_store, channel)

    updated = await service.transition(order.id, OrderStatus.CONFIRMED)
    assert updated.status == OrderStatus.CONFIRMED
    assert events == ["changed"]

    refused = await service.transition(order.id, OrderStatus.SEATED)
    assert refused.error_kind == ErrorKind.INVALID_TRANSITION
    assert "preparing" in refused.detail

    missing = await service.transition(uuid4(), OrderStatus.CONFIRMED)
    assert missing.error_kind == ErrorKind.NOT_FOUND
    assert events == ["changed"]
