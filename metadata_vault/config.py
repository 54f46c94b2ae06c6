"""
Storage Configuration — Validated settings for the metadata store client.

Reads settings from environment variables:
    METADATA_HOST = <base URL of the metadata service>
    METADATA_SERVER_TIME_OFFSET = <clock skew against the server, in ms>
    METADATA_API_KEY = <value for the x-api-key header>
    METADATA_EMBED_HOST = <value for the x-embed-host header>
    METADATA_TIMEOUT = <request timeout, in seconds>

Security Note:
    Never log the API key. Only log the host and timeout.
"""
import os
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("metadata.storage")

DEFAULT_METADATA_HOST = "https://metadata.tor.us"
DEFAULT_TIMEOUT = 30.0


class StorageConfig(BaseModel):
    """Validated metadata store configuration."""

    metadata_host: str = Field(default=DEFAULT_METADATA_HOST)
    server_time_offset: int = Field(default=0)
    api_key: Optional[str] = None
    embed_host: Optional[str] = None
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    @field_validator("metadata_host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Unsupported metadata host: {v}")
        return v.rstrip("/")

    def headers(self) -> dict[str, str]:
        """Extra request headers for the configured credentials."""
        headers: dict[str, str] = {}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        if self.embed_host:
            headers["x-embed-host"] = self.embed_host
        return headers

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Create StorageConfig by loading values from environment.

        Returns:
            Populated StorageConfig instance.
        """
        config = cls(
            metadata_host=os.environ.get("METADATA_HOST", DEFAULT_METADATA_HOST),
            server_time_offset=int(os.environ.get("METADATA_SERVER_TIME_OFFSET", "0")),
            api_key=os.environ.get("METADATA_API_KEY") or None,
            embed_host=os.environ.get("METADATA_EMBED_HOST") or None,
            timeout=float(os.environ.get("METADATA_TIMEOUT", DEFAULT_TIMEOUT)),
        )
        logger.debug(
            "Loaded storage config: host=%s timeout=%s",
            config.metadata_host, config.timeout,
        )
        return config
