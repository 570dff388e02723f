"""Backend reachability probe used by collaborators before hitting the live API."""

import asyncio

import httpx
from loguru import logger

from .live_api_client import LiveApiClient


class BackendProbe:
    """Any HTTP response, even an error status, proves the backend is reachable.

    Only a transport-level failure counts as unreachable. A probe that does not
    finish within the timeout reports the optimistic default.
    """

    def __init__(self, client: LiveApiClient, timeout: float = 3.0, optimistic_default: bool = True):
        self._client = client
        self._timeout = timeout
        self._optimistic_default = optimistic_default

    async def is_reachable(self) -> bool:
        try:
            status = await asyncio.wait_for(self._client.ping(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Backend probe timed out after {}s, assuming reachable={}",
                self._timeout,
                self._optimistic_default,
            )
            return self._optimistic_default
        except httpx.TransportError as exc:
            logger.warning("Backend unreachable: {}", exc)
            return False

        logger.debug("Backend reached with status={}", status)
        return True
