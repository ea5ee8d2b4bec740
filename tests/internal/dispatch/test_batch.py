"""Tests for concurrent batch execution."""

import asyncio

import httpx
import pytest
import respx
from pydantic import BaseModel

from microhttp._internal.dispatch.batch import BatchExecutor
from microhttp._internal.dispatch.client import Dispatcher
from microhttp._internal.http import HttpClientFactory
from microhttp.exceptions import HttpStatusError, MicroHttpValidationError
from microhttp.models.batch import BatchItem, HttpMethod, RequestBatch
from microhttp.models.context import CancellationToken, RequestContext

BASE_URL = "https://api.test"


class Order(BaseModel):
    order_id: int
    total: float


def make_executor() -> BatchExecutor:
    return BatchExecutor(Dispatcher(HttpClientFactory(base_url=BASE_URL)))


class TestBatchExecutor:
    """Tests for BatchExecutor."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_all_items_succeed(self):
        """Every result should be stored under its item's index."""
        respx.get(f"{BASE_URL}/orders/1").mock(
            return_value=httpx.Response(200, json={"orderId": 1, "total": 9.5})
        )
        respx.get(f"{BASE_URL}/orders/2").mock(
            return_value=httpx.Response(200, json={"orderId": 2, "total": "12"})
        )
        batch = RequestBatch()
        first = batch.add("/orders/1", Order)
        second = batch.add("/orders/2", Order)

        results = await make_executor().execute(batch)

        assert results.count == 2
        assert results.failure_count == 0
        assert results.get(first, Order).order_id == 1
        assert results.get(second, Order).total == 12.0

    @pytest.mark.asyncio
    @respx.mock
    async def test_one_failure_does_not_affect_siblings(self):
        """A failing item is recorded; the others still complete."""
        respx.get(f"{BASE_URL}/orders/1").mock(
            return_value=httpx.Response(200, json={"orderId": 1, "total": 1})
        )
        respx.get(f"{BASE_URL}/orders/2").mock(return_value=httpx.Response(500, text="boom"))
        respx.get(f"{BASE_URL}/orders/3").mock(
            return_value=httpx.Response(200, json={"orderId": 3, "total": 3})
        )
        batch = RequestBatch()
        for order_id in (1, 2, 3):
            batch.add(f"/orders/{order_id}", Order)

        results = await make_executor().execute(batch)

        assert results.count == 2
        assert results.failure_count == 1
        assert len(results) == 3
        assert isinstance(results.error(1), HttpStatusError)
        assert results.error(1).status_code == 500
        assert results.succeeded(0) and results.succeeded(2)
        with pytest.raises(KeyError):
            results.get(1)

    @pytest.mark.asyncio
    @respx.mock
    async def test_items_with_bodies_are_encoded(self):
        """POST, PUT and PATCH items should send their data as JSON."""
        post = respx.post(f"{BASE_URL}/orders").mock(return_value=httpx.Response(200, json={}))
        put = respx.put(f"{BASE_URL}/orders/1").mock(return_value=httpx.Response(200, json={}))
        patch = respx.patch(f"{BASE_URL}/orders/1").mock(
            return_value=httpx.Response(200, json={})
        )
        delete = respx.delete(f"{BASE_URL}/orders/1").mock(
            return_value=httpx.Response(200, json={})
        )
        batch = RequestBatch()
        batch.add_post("/orders", Order(order_id=1, total=2.5), dict)
        batch.add_put("/orders/1", {"total": 3}, dict)
        batch.add_patch("/orders/1", {"total": 4}, dict)
        batch.add_delete("/orders/1", dict)

        results = await make_executor().execute(batch)

        assert results.count == 4
        assert post.calls.last.request.content == b'{"orderId":1,"total":2.5}'
        assert put.calls.last.request.content == b'{"total":3}'
        assert patch.called and delete.called

    @pytest.mark.asyncio
    async def test_unsupported_body_combinations_are_recorded(self):
        """Bodies on GET and missing bodies on POST fail only their own item."""
        batch = RequestBatch()
        batch.add_item(
            BatchItem(url="/orders", method=HttpMethod.GET, data={"a": 1}, response_type=dict)
        )
        batch.add_item(BatchItem(url="/orders", method="post", response_type=dict))

        results = await make_executor().execute(batch)

        assert results.count == 0
        assert isinstance(results.error(0), MicroHttpValidationError)
        assert isinstance(results.error(1), MicroHttpValidationError)

    @pytest.mark.asyncio
    @respx.mock
    async def test_item_context_overrides_batch_context(self):
        """Item contexts win; other items fall back to the batch context."""
        route = respx.get(f"{BASE_URL}/orders").mock(return_value=httpx.Response(200, json=[]))
        batch = RequestBatch()
        batch.add("/orders", list, context=RequestContext(headers={"X-Source": "item"}))
        batch.add("/orders", list)

        await make_executor().execute(batch, RequestContext(headers={"X-Source": "batch"}))

        sources = sorted(call.request.headers["X-Source"] for call in route.calls)
        assert sources == ["batch", "item"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_cancelled_item_is_recorded_as_failure(self):
        """One item's token firing should not cancel the whole batch."""
        respx.get(f"{BASE_URL}/orders").mock(return_value=httpx.Response(200, json=[]))
        token = CancellationToken()
        token.cancel()
        batch = RequestBatch()
        batch.add("/orders", list, context=RequestContext(cancellation=token))
        batch.add("/orders", list)

        results = await make_executor().execute(batch)

        assert isinstance(results.error(0), asyncio.CancelledError)
        assert results.get(1) == []

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        """An empty batch should produce empty results."""
        results = await make_executor().execute(RequestBatch())
        assert len(results) == 0

    @pytest.mark.asyncio
    @respx.mock
    async def test_debug_output(self, capsys):
        """Debug mode should report batch progress."""
        respx.get(f"{BASE_URL}/orders").mock(return_value=httpx.Response(200, json=[]))
        executor = BatchExecutor(
            Dispatcher(HttpClientFactory(base_url=BASE_URL)), debug=True
        )
        batch = RequestBatch()
        batch.add("/orders", list)

        await executor.execute(batch)

        assert "[microhttp:batch] Batch finished: 1 succeeded, 0 failed" in capsys.readouterr().err
