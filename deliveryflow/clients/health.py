import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class HttpHealthCheck:
    """Health predicate for blue/green validation: healthy while the endpoint answers below HTTP 400."""

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 5.0):
        self.url = url
        self._client = client
        self.timeout = timeout

    async def __call__(self) -> bool:
        try:
            if self._client is not None:
                response = await self._client.get(self.url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.url)
        except httpx.TransportError as e:
            logger.warning(f"Health check {self.url} unreachable: {e}")
            return False
        if response.status_code >= 400:
            logger.warning(f"Health check {self.url} returned HTTP {response.status_code}")
            return False
        return True
