"""Environment-driven settings for the connector host."""

import os
from dataclasses import dataclass

from apify_connector.transport import DEFAULT_TIMEOUT

APIFY_BASE_URL = "https://api.apify.com"
OPERATION_HEADER = "x-operation-id"
DEFAULT_PORT = 8001


@dataclass(frozen=True)
class Settings:
    base_url: str = APIFY_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    operation_header: str = OPERATION_HEADER
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the environment; bad numbers raise ValueError."""
        return cls(
            base_url=os.environ.get("APIFY_BASE_URL", APIFY_BASE_URL).rstrip("/"),
            timeout=float(os.environ.get("APIFY_CONNECTOR_TIMEOUT", DEFAULT_TIMEOUT)),
            operation_header=os.environ.get("APIFY_CONNECTOR_OPERATION_HEADER", OPERATION_HEADER).lower(),
            port=int(os.environ.get("PORT", DEFAULT_PORT)),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
