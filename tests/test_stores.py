"""Tests for store implementations"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from tablehaus.core.lifecycle import Channel, OrderStatus
from tablehaus.exceptions import BlobNotFoundError, ConflictError, UploadError
from tablehaus.schemas.booking import ProofFile
from tablehaus.schemas.reservation import OrderLine, Reservation
from tablehaus.stores.blob import LocalBlobStore
from tablehaus.stores.invalidation import InProcessInvalidationChannel
from tablehaus.stores.sql import SqlPromotionStore, SqlReservationStore

START = datetime(2030, 6, 15, 12, 0, tzinfo=timezone.utc)


def booking(table_id, start=START, status=OrderStatus.PENDING, customer_id=None):
    return Reservation(
        channel=Channel.DINE_IN,
        table_id=table_id,
        start_at=start,
        end_at=start + timedelta(hours=2),
        status=status,
        customer_id=customer_id,
        customer_name="Somchai Jaidee",
        customer_phone="0812345678",
        tracking_token=uuid4().hex,
        token_expires_at=start + timedelta(hours=24),
        created_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def sql_store(test_db, policy):
    return SqlReservationStore(test_db, policy.timezone, policy.durations)


@pytest.mark.asyncio
async def test_sql_insert_and_read_back(sql_store, test_tables):
    table = test_tables[0]
    lines = [OrderLine(name="Ribeye", quantity=2, unit_price=600, selected_options={"Doneness": "Rare"})]

    created = await sql_store.insert(booking(table.id), lines)
    fetched = await sql_store.get_by_token(created.tracking_token)

    assert fetched.id == created.id
    assert fetched.start_at == START
    assert fetched.start_at.tzinfo is not None
    assert fetched.lines[0].selected_options == {"Doneness": "Rare"}

    on_day = await sql_store.list_active_on_date(START.date())
    assert [r.id for r in on_day] == [created.id]


@pytest.mark.asyncio
async def test_sql_guard_rejects_overlap(sql_store, test_tables):
    table = test_tables[0]
    await sql_store.insert(booking(table.id), [])

    with pytest.raises(ConflictError):
        await sql_store.insert(booking(table.id, start=START + timedelta(hours=1)), [])

    await sql_store.insert(booking(table.id, start=START + timedelta(hours=2)), [])


@pytest.mark.asyncio
async def test_sql_update_status_and_customer_listing(sql_store, test_tables):
    first = await sql_store.insert(booking(test_tables[0].id, customer_id="c1"), [])
    second = await sql_store.insert(booking(test_tables[1].id, customer_id="c1"), [])

    updated = await sql_store.update_status(first.id, OrderStatus.CANCELLED)
    assert updated.status == OrderStatus.CANCELLED
    assert await sql_store.update_status(uuid4(), OrderStatus.CONFIRMED) is None

    everything = await sql_store.list_for_customer("c1")
    active = await sql_store.list_for_customer("c1", active_only=True)
    assert {r.id for r in everything} == {first.id, second.id}
    assert [r.id for r in active] == [second.id]


@pytest.mark.asyncio
async def test_sql_promotion_lookup(test_db, test_promotions):
    store = SqlPromotionStore(test_db)

    rule = await store.lookup("save10")

    assert rule.code == "SAVE10"
    assert rule.discount_value == 10
    assert Channel.PICKUP in rule.channels
    assert await store.lookup("NOPE") is None


@pytest.mark.asyncio
async def test_local_blob_store(tmp_path):
    store = LocalBlobStore(str(tmp_path / "proofs"))

    reference = await store.upload(ProofFile(filename="../../etc/passwd.png", content=b"slip"))

    assert reference.startswith("slip_")
    assert reference.endswith(".png")
    assert "/" not in reference
    assert await store.open(reference) == b"slip"

    with pytest.raises(UploadError):
        await store.upload(ProofFile(filename="empty.png", content=b""))
    with pytest.raises(BlobNotFoundError):
        await store.open("../outside.png")
    with pytest.raises(BlobNotFoundError):
        await store.open("slip_missing.png")


@pytest.mark.asyncio
async def test_local_blob_store_delete(tmp_path):
    store = LocalBlobStore(str(tmp_path / "proofs"))
    reference = await store.upload(ProofFile(filename="slip.jpg", content=b"slip"))

    await store.delete(reference)

    with pytest.raises(BlobNotFoundError):
        await store.open(reference)
    # Already gone
    await store.delete(reference)
    with pytest.raises(BlobNotFoundError):
        await store.delete("../outside.png")


@pytest.mark.asyncio
async def test_in_process_channel_unsubscribe():
    channel = InProcessInvalidationChannel()
    events = []
    unsubscribe = channel.subscribe(lambda: events.append(1))

    await channel.publish()
    unsubscribe()
    await channel.publish()

    assert events == [1]
    assert channel.subscriber_count == 0
