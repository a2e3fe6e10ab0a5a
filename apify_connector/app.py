"""
Apify Connector Host

FastAPI application that hosts the operation router. Each inbound request is
tagged with an operation identifier header, forwarded to the Apify API through
the router, and the backend response is relayed back to the client.
"""

import asyncio
import logging
import traceback
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Request, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from apify_connector.config import Settings
from apify_connector.context import ExecutionContext
from apify_connector.router import OPERATIONS, OperationRouter
from apify_connector.transport import HttpxTransport

logger = logging.getLogger(__name__)

# Recomputed by httpx (outbound) or by the ASGI server (inbound)
HOP_REQUEST_HEADERS = {"host", "content-length", "transfer-encoding", "connection"}
HOP_RESPONSE_HEADERS = {"content-length", "transfer-encoding", "content-encoding", "connection"}

FORWARDED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
DISCONNECT_POLL_INTERVAL = 0.1
CLIENT_CLOSED_REQUEST = 499


def build_outbound_request(request: Request, body: bytes, settings: Settings) -> httpx.Request:
    """Rebuild the inbound request against the backend base URL."""
    target = f"{settings.base_url}{request.url.path}"
    if request.url.query:
        target = f"{target}?{request.url.query}"
    excluded = HOP_REQUEST_HEADERS | {settings.operation_header.lower()}
    headers = [(k, v) for k, v in request.headers.items() if k.lower() not in excluded]
    return httpx.Request(request.method, target, headers=headers, content=body)


def build_client_response(response: httpx.Response) -> Response:
    """Relay status, headers and body of a backend response."""
    relayed = Response(content=response.content, status_code=response.status_code)
    relayed.raw_headers.extend(
        (k.encode("latin-1"), v.encode("latin-1"))
        for k, v in response.headers.multi_items()
        if k.lower() not in HOP_RESPONSE_HEADERS
    )
    return relayed


class RequestLoggingMiddleware:
    """
    Log all incoming requests and their response status.

    Plain ASGI so that ``receive`` reaches the route untouched and client
    disconnects stay visible to it.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        logger.info(f"Incoming request: {scope.get('method')} {scope.get('path')}")

        async def send_wrapped(message: Message) -> None:
            if message.get("type") == "http.response.start":
                logger.info(f"Response status: {message.get('status')}")
            await send(message)

        await self.app(scope, receive, send_wrapped)


async def _watch_disconnect(request: Request, cancellation: asyncio.Event) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)
    cancellation.set()


def create_app(settings: Optional[Settings] = None, transport: Optional[HttpxTransport] = None) -> FastAPI:
    """Build the host application; a transport may be injected for tests."""
    settings = settings or Settings.from_env()
    app = FastAPI(title="Apify Connector", version="1.0.0")
    app.state.settings = settings
    app.state.router = OperationRouter()
    app.state.transport = transport

    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "proxy_status": "healthy",
            "proxy_target": settings.base_url,
            "operations": list(OPERATIONS),
        }

    @app.api_route("/{path:path}", methods=FORWARDED_METHODS)
    async def forward_operation(request: Request, path: str):
        """
        Route an inbound call through the operation router.

        Transport failures are mapped to gateway errors here; the router
        itself lets them through untouched.
        """
        operation_id = request.headers.get(settings.operation_header, "")
        body = await request.body()
        outbound = build_outbound_request(request, body, settings)
        cancellation = asyncio.Event()
        context = ExecutionContext(
            operation_id=operation_id,
            request=outbound,
            cancellation=cancellation,
            forward=app.state.transport.forward,
        )

        watcher = asyncio.ensure_future(_watch_disconnect(request, cancellation))
        try:
            response = await app.state.router.handle(context)
        except asyncio.CancelledError:
            if not cancellation.is_set():
                raise
            logger.info(f"Client disconnected during {operation_id or 'default'} call to {outbound.url}")
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        except httpx.TimeoutException as e:
            logger.error(f"Timeout forwarding request to {outbound.url}: {e}")
            logger.error(traceback.format_exc())
            raise HTTPException(status_code=504, detail=f"Backend timed out: {str(e)}")
        except httpx.HTTPError as e:
            logger.error(f"HTTP error forwarding request to {outbound.url}: {e}")
            logger.error(traceback.format_exc())
            raise HTTPException(status_code=502, detail=f"Error forwarding request: {str(e)}")
        finally:
            watcher.cancel()
            await asyncio.gather(watcher, return_exceptions=True)

        return build_client_response(response)

    @app.on_event("startup")
    async def startup_event():
        """Startup event handler"""
        if app.state.transport is None:
            app.state.transport = HttpxTransport(timeout=settings.timeout)
        app.state.router.on_init()
        logger.info("Apify Connector starting up")
        logger.info(f"Proxy target: {settings.base_url}")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup resources on shutdown"""
        await app.state.transport.aclose()
        logger.info("Apify Connector shutdown complete")

    return app


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)

    logger.info(f"Starting Apify Connector on port {settings.port}")
    logger.info(f"Proxying requests to: {settings.base_url}")

    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
