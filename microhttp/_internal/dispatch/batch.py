"""Concurrent execution of request batches."""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from microhttp._internal.dispatch.client import Dispatcher
from microhttp.exceptions import MicroHttpValidationError
from microhttp.models.batch import BatchItem, BatchResults, HttpMethod, RequestBatch
from microhttp.models.context import RequestContext, resolve_context

ItemSender = Callable[[Dispatcher, BatchItem, RequestContext], Awaitable[Any]]


async def _send_without_body(
    dispatcher: Dispatcher, item: BatchItem, context: RequestContext
) -> Any:
    if item.data is not None:
        raise MicroHttpValidationError(f"{item.method} batch items cannot carry a body")
    return await dispatcher.send(item.method, item.url, None, context, item.response_type)


async def _send_with_body(
    dispatcher: Dispatcher, item: BatchItem, context: RequestContext
) -> Any:
    if item.data is None:
        raise MicroHttpValidationError(f"{item.method} batch items require a body")
    body = dispatcher.codec.encode(item.data)
    return await dispatcher.send(item.method, item.url, body, context, item.response_type)


SENDERS: dict[HttpMethod, ItemSender] = {
    HttpMethod.GET: _send_without_body,
    HttpMethod.DELETE: _send_without_body,
    HttpMethod.POST: _send_with_body,
    HttpMethod.PUT: _send_with_body,
    HttpMethod.PATCH: _send_with_body,
}


class BatchExecutor:
    """Runs every item of a batch concurrently and collects outcomes by index.

    One item failing never affects its siblings: its exception is recorded
    under its index and the rest keep running. ``execute`` returns only
    after every item has finished.
    """

    def __init__(self, dispatcher: Dispatcher, *, debug: bool = False) -> None:
        self._dispatcher = dispatcher
        self._debug = debug

    def _log_debug(self, message: str) -> None:
        """Log a debug message to stderr if debug mode is enabled."""
        if self._debug:
            print(f"[microhttp:batch] {message}", file=sys.stderr)

    async def execute(
        self, batch: RequestBatch, context: RequestContext | None = None
    ) -> BatchResults:
        """Execute all items of ``batch``.

        Args:
            batch: The requests to run.
            context: Fallback context for items that do not carry their own.

        Returns:
            BatchResults with one result or one failure per item index.
        """
        results = BatchResults()
        items = batch.items
        self._log_debug(f"Executing batch of {len(items)} requests")
        async with asyncio.TaskGroup() as group:
            for index, item in enumerate(items):
                group.create_task(self._run_item(index, item, context, results))
        self._log_debug(
            f"Batch finished: {results.count} succeeded, {results.failure_count} failed"
        )
        return results

    async def _run_item(
        self,
        index: int,
        item: BatchItem,
        context: RequestContext | None,
        results: BatchResults,
    ) -> None:
        effective = resolve_context(item.context, context)
        sender = SENDERS.get(item.method)
        if sender is None:
            results.set_failure(
                index, MicroHttpValidationError(f"Unsupported batch method {item.method}")
            )
            return

        try:
            result = await sender(self._dispatcher, item, effective)
        except asyncio.CancelledError as e:
            # Only this item's token fired; outer cancellation still propagates.
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            self._log_debug(f"Item {index} cancelled")
            results.set_failure(index, e)
        except Exception as e:
            self._log_debug(f"Item {index} failed: {e}")
            results.set_failure(index, e)
        else:
            results.set_result(index, result)
