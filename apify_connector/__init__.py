"""Operation router and host for the Apify custom-code connector."""

from apify_connector.context import ExecutionContext
from apify_connector.router import OPERATIONS, OperationRouter
from apify_connector.transport import HttpxTransport

__all__ = [
    "ExecutionContext",
    "HttpxTransport",
    "OPERATIONS",
    "OperationRouter",
]
