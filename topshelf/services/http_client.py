import logging
from typing import Optional

import httpx

from topshelf.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# HTTP/2 only when the optional 'h2' package is installed
try:
    import h2  # type: ignore  # noqa: F401
    _HTTP2_AVAILABLE = True
except ImportError:
    _HTTP2_AVAILABLE = False
    logger.debug("HTTP/2 disabled: 'h2' package is not installed.")


class PooledHTTPClient:
    """Async HTTP client with connection pooling and a hard timeout on every request"""

    def __init__(self, config: Optional[Settings] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        config = config or default_settings

        limits = httpx.Limits(
            max_keepalive_connections=20,
            max_connections=config.catalog_max_connections,
            keepalive_expiry=30.0
        )

        # The enrichment path has no other deadline, so every phase is bounded here
        timeout = httpx.Timeout(
            timeout=config.catalog_timeout,
            connect=min(5.0, config.catalog_timeout),
        )

        self._client = httpx.AsyncClient(
            limits=limits,
            timeout=timeout,
            follow_redirects=True,
            http2=_HTTP2_AVAILABLE and transport is None,
            transport=transport,
        )

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """Pooled async GET request"""
        return await self._client.get(url, **kwargs)

    async def close(self):
        """Close the underlying client"""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
