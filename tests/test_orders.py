"""Tests for order submission and order history."""

import asyncio
from decimal import Decimal

import httpx
import pytest
from conftest import make_product, make_variant

from wholesale_server.orders import (
    CART_EMPTY,
    NOT_SIGNED_IN,
    ORDER_IN_PROGRESS,
    ORDER_SUBMIT_ERROR,
    OrderHistory,
    OrderSubmitter,
)
from wholesale_server.supabase_client import SupabaseClient, SupabaseError


def _order_row(**overrides):
    row = {
        "id": "order-1",
        "user_id": "user-1",
        "order_number": "WO-0001",
        "status": "submitted",
        "total_amount": "40.00",
        "notes": None,
    }
    row.update(overrides)
    return row


async def _fake_insert(table, rows):
    """Return inserted rows the way the data service would."""
    if table == "orders":
        return [{"id": "order-1", "status": "submitted", **rows}]
    return [{"id": f"item-{i}", **row} for i, row in enumerate(rows)]


@pytest.fixture
def widget_cart(cart):
    cart.add_to_cart(make_product(name="Widget"), make_variant(name="Red", wholesale_price="10.00"), 4)
    return cart


@pytest.fixture
def submitter(data_client, widget_cart):
    data_client.rpc.return_value = "WO-0001"
    data_client.insert.side_effect = _fake_insert
    return OrderSubmitter(data_client, widget_cart, confirmation_seconds=0)


@pytest.mark.asyncio
async def test_submit_order_success(submitter, data_client, widget_cart):
    result = await submitter.submit("user-1")

    assert result.success
    assert result.order.order_number == "WO-0001"
    assert result.order.total_amount == Decimal("40.00")
    assert len(result.items) == 1
    item = result.items[0]
    assert item.product_name == "Widget - Red"
    assert item.product_sku == "SKU-var-1"
    assert item.quantity == 4
    assert item.unit_price == Decimal("10.00")
    assert item.subtotal == Decimal("40.00")
    assert widget_cart.is_empty()


@pytest.mark.asyncio
async def test_submit_sends_steps_in_order(submitter, data_client):
    submitter.notes = "Deliver before noon"

    await submitter.submit("user-1")

    data_client.rpc.assert_awaited_once_with("generate_order_number")
    order_call, items_call = data_client.insert.await_args_list
    assert order_call.args == (
        "orders",
        {"user_id": "user-1", "order_number": "WO-0001", "total_amount": "40.00", "notes": "Deliver before noon"},
    )
    assert items_call.args[0] == "order_items"
    assert items_call.args[1] == [
        {
            "order_id": "order-1",
            "product_id": "prod-1",
            "product_name": "Widget - Red",
            "product_sku": "SKU-var-1",
            "quantity": 4,
            "unit_price": "10.00",
            "subtotal": "40.00",
        }
    ]
    assert submitter.notes == ""


@pytest.mark.asyncio
async def test_empty_notes_are_sent_as_null(submitter, data_client):
    await submitter.submit("user-1")

    assert data_client.insert.await_args_list[0].args[1]["notes"] is None


@pytest.mark.asyncio
async def test_order_number_failure_creates_nothing(submitter, data_client, widget_cart):
    data_client.rpc.side_effect = SupabaseError("rpc down", status_code=500)

    result = await submitter.submit("user-1")

    assert not result.success
    assert result.message == ORDER_SUBMIT_ERROR
    data_client.insert.assert_not_awaited()
    assert widget_cart.get_total_items() == 4


@pytest.mark.asyncio
async def test_order_creation_failure_keeps_cart(submitter, data_client, widget_cart):
    data_client.insert.side_effect = SupabaseError("insert failed", status_code=400)

    result = await submitter.submit("user-1")

    assert not result.success
    assert result.message == ORDER_SUBMIT_ERROR
    assert data_client.insert.await_count == 1
    assert widget_cart.get_total_items() == 4


@pytest.mark.asyncio
async def test_order_items_failure_keeps_cart_and_order(submitter, data_client, widget_cart):
    async def insert(table, rows):
        if table == "order_items":
            raise SupabaseError("items failed", status_code=500)
        return await _fake_insert(table, rows)

    data_client.insert.side_effect = insert
    submitter.notes = "keep me"

    result = await submitter.submit("user-1")

    assert not result.success
    assert result.message == ORDER_SUBMIT_ERROR
    assert widget_cart.get_total_items() == 4
    assert submitter.notes == "keep me"
    assert not submitter.submitting
    data_client.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_malformed_order_row_is_reported_generically(submitter, data_client, widget_cart):
    data_client.insert.side_effect = [[{"unexpected": True}]]

    result = await submitter.submit("user-1")

    assert not result.success
    assert result.message == ORDER_SUBMIT_ERROR
    assert not widget_cart.is_empty()


@pytest.mark.asyncio
async def test_submit_requires_user(submitter, data_client):
    result = await submitter.submit(None)

    assert result.message == NOT_SIGNED_IN
    data_client.rpc.assert_not_awaited()


@pytest.mark.asyncio
async def test_submit_empty_cart(data_client, cart):
    result = await OrderSubmitter(data_client, cart).submit("user-1")

    assert not result.success
    assert result.message == CART_EMPTY
    data_client.rpc.assert_not_awaited()


@pytest.mark.asyncio
async def test_concurrent_submit_is_rejected(submitter, data_client):
    release = asyncio.Event()

    async def slow_rpc(name):
        await release.wait()
        return "WO-0001"

    data_client.rpc.side_effect = slow_rpc
    data_client.insert.side_effect = _fake_insert

    first = asyncio.create_task(submitter.submit("user-1"))
    await asyncio.sleep(0)
    second = await submitter.submit("user-1")
    release.set()
    first_result = await first

    assert second.message == ORDER_IN_PROGRESS
    assert first_result.success
    data_client.rpc.assert_awaited_once()


@pytest.mark.asyncio
async def test_confirmation_is_dismissed_after_delay(data_client, widget_cart):
    dismissed = []
    data_client.rpc.return_value = "WO-0001"
    data_client.insert.side_effect = _fake_insert
    submitter = OrderSubmitter(
        data_client, widget_cart, confirmation_seconds=0.01, on_dismiss=lambda: dismissed.append(True)
    )

    await submitter.submit("user-1")
    assert submitter.order_submitted

    await asyncio.sleep(0.05)
    assert not submitter.order_submitted
    assert dismissed == [True]


@pytest.mark.asyncio
async def test_order_history_lists_newest_first(data_client):
    data_client.select.return_value = [_order_row(id="o2"), _order_row(id="o1")]

    orders = await OrderHistory(data_client).list_orders("user-1")

    assert [o.id for o in orders] == ["o2", "o1"]
    data_client.select.assert_awaited_once_with(
        "orders", filters={"user_id": "user-1"}, order="created_at", descending=True
    )


@pytest.mark.asyncio
async def test_order_items_are_cached(data_client):
    data_client.select.return_value = [
        {
            "id": "i1",
            "order_id": "o1",
            "product_id": "p1",
            "product_name": "Widget - Red",
            "product_sku": "SKU-1",
            "quantity": 2,
            "unit_price": 5,
            "subtotal": 10,
        }
    ]
    history = OrderHistory(data_client)

    first = await history.get_order_items("o1")
    second = await history.get_order_items("o1")

    assert first == second
    assert first[0].subtotal == Decimal("10")
    data_client.select.assert_awaited_once()


@pytest.mark.asyncio
async def test_non_json_reply_is_reported_generically(auth_manager, widget_cart):
    def handler(request):
        return httpx.Response(200, text="<html>proxy page</html>")

    client = SupabaseClient(
        "https://example.supabase.co", "anon-key", auth_manager, transport=httpx.MockTransport(handler)
    )

    result = await OrderSubmitter(client, widget_cart, confirmation_seconds=0).submit("user-1")

    assert not result.success
    assert result.message == ORDER_SUBMIT_ERROR
    assert widget_cart.get_total_items() == 4


@pytest.mark.asyncio
async def test_cart_storage_failure_after_submit_still_succeeds(submitter, widget_cart, mocker):
    mocker.patch.object(widget_cart.storage, "set_item", side_effect=OSError("disk full"))

    result = await submitter.submit("user-1")

    assert result.success
    assert result.order.order_number == "WO-0001"
    assert widget_cart.is_empty()


@pytest.mark.asyncio
async def test_clear_forgets_cached_items(data_client):
    history = OrderHistory(data_client)
    await history.get_order_items("o1")

    history.clear()
    await history.get_order_items("o1")

    assert data_client.select.await_count == 2
