"""Per-call execution context handed to the operation router by the host."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

# forward(request, cancellation) -> backend response
Forward = Callable[[httpx.Request, asyncio.Event], Awaitable[httpx.Response]]


@dataclass(frozen=True)
class ExecutionContext:
    """
    Capability bundle for a single invocation.

    Attributes:
        operation_id: Operation identifier the call was tagged with
        request: Inbound request, forwarded as-is
        cancellation: Set by the host when the caller abandons the call
        forward: Sends a request to the backend and yields its response
    """

    operation_id: str
    request: httpx.Request
    cancellation: asyncio.Event
    forward: Forward
