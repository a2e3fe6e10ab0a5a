"""httpx-backed forwarding capability."""

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class HttpxTransport:
    """
    Sends forwarded requests to the backend with a shared AsyncClient.

    The response is returned exactly as httpx produced it and httpx errors
    are left to propagate.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = DEFAULT_TIMEOUT):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def forward(self, request: httpx.Request, cancellation: asyncio.Event) -> httpx.Response:
        # The router cancels this coroutine when the signal fires
        logger.info(f"Forwarding {request.method} {request.url}")
        response = await self.client.send(request)
        logger.info(f"Backend responded {response.status_code} for {request.method} {request.url.path}")
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
