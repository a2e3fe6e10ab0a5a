"""
Apify Connector Operation Router

Dispatches each call on its operation identifier to a handler. Every handler,
including the default, forwards the inbound request to the backend and returns
the backend response untouched.
"""

import asyncio
import logging

import httpx

from apify_connector.context import ExecutionContext

logger = logging.getLogger(__name__)

OPERATIONS = (
    "RunActor",
    "RunTask",
    "GetDatasetItems",
    "GetKeyValueStoreRecord",
    "ScrapeSingleUrl",
)


class OperationRouter:
    """Routes connector operations to their handlers."""

    def __init__(self):
        self._handlers = {
            "RunActor": self.handle_run_actor,
            "RunTask": self.handle_run_task,
            "GetDatasetItems": self.handle_get_dataset_items,
            "GetKeyValueStoreRecord": self.handle_get_key_value_store_record,
            "ScrapeSingleUrl": self.handle_scrape_single_url,
        }

    def on_init(self) -> None:
        """Called once by the host after construction."""

    async def handle(self, context: ExecutionContext) -> httpx.Response:
        """
        Dispatch a call to the handler registered for its operation.

        Unknown operation identifiers, the empty string included, go to the
        default handler. Errors from the forwarding capability are not caught.
        """
        handler = self._handlers.get(context.operation_id, self.handle_default)
        logger.debug(f"Dispatching operation {context.operation_id!r} to {handler.__name__}")
        return await handler(context)

    async def handle_run_actor(self, context: ExecutionContext) -> httpx.Response:
        # Custom logic for RunActor goes here
        return await _send(context)

    async def handle_run_task(self, context: ExecutionContext) -> httpx.Response:
        # Custom logic for RunTask goes here
        return await _send(context)

    async def handle_get_dataset_items(self, context: ExecutionContext) -> httpx.Response:
        # Custom logic for GetDatasetItems goes here
        return await _send(context)

    async def handle_get_key_value_store_record(self, context: ExecutionContext) -> httpx.Response:
        # Custom logic for GetKeyValueStoreRecord goes here
        return await _send(context)

    async def handle_scrape_single_url(self, context: ExecutionContext) -> httpx.Response:
        # Custom logic for ScrapeSingleUrl goes here
        return await _send(context)

    async def handle_default(self, context: ExecutionContext) -> httpx.Response:
        """Pass through operations without custom handling."""
        return await _send(context)


async def _send(context: ExecutionContext) -> httpx.Response:
    """
    Forward the context's request, honoring its cancellation signal.

    Whatever the forward call raises is re-raised unchanged. If the signal
    fires first, the pending forward is cancelled and CancelledError raised.
    """
    if context.cancellation.is_set():
        raise asyncio.CancelledError(f"{context.operation_id or 'request'} cancelled before forwarding")

    forward_task = asyncio.ensure_future(context.forward(context.request, context.cancellation))
    cancel_task = asyncio.ensure_future(context.cancellation.wait())
    try:
        done, _ = await asyncio.wait({forward_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # Reached on the signal firing and on the caller's task being cancelled
        for task in (forward_task, cancel_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(forward_task, cancel_task, return_exceptions=True)

    if forward_task not in done:
        logger.info(f"Operation {context.operation_id!r} cancelled by caller")
        raise asyncio.CancelledError(f"{context.operation_id or 'request'} cancelled while forwarding")
    return forward_task.result()
