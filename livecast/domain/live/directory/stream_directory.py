"""Stream directory: fetches the ordered list of currently active broadcasts."""

import asyncio

import httpx
from loguru import logger
from pydantic import ValidationError

from livecast.domain.live.errors import UnavailableError
from livecast.schemas.broadcast import Broadcast
from livecast.services.integrations.live_api_client import LiveApiClient
from livecast.services.integrations.user_directory import UserDirectoryClient


class StreamDirectory:
    """Pure data access over the live directory upstream. Holds no state between calls."""

    def __init__(
        self,
        client: LiveApiClient,
        *,
        timeout: float = 5.0,
        user_directory: UserDirectoryClient | None = None,
    ):
        self._client = client
        self._timeout = timeout
        self._user_directory = user_directory

    async def list_active(self) -> list[Broadcast]:
        """Return active broadcasts in upstream order.

        Raises:
            UnavailableError: upstream unreachable, failing or slower than the timeout
        """
        try:
            raw_streams = await asyncio.wait_for(
                self._client.list_active_streams(), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            raise UnavailableError(
                f"Live directory did not answer within {self._timeout}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise UnavailableError(f"Live directory request failed: {exc}") from exc

        broadcasts: list[Broadcast] = []
        seen: set[str] = set()
        for raw in raw_streams:
            try:
                broadcast = Broadcast.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Skipping malformed broadcast payload: {}", exc.errors())
                continue
            if broadcast.id in seen:
                logger.warning("Skipping duplicate broadcast id={}", broadcast.id)
                continue
            seen.add(broadcast.id)
            broadcasts.append(broadcast)

        if self._user_directory is not None:
            broadcasts = await self._resolve_hosts(broadcasts)

        logger.info("Live directory returned {} active broadcasts", len(broadcasts))
        return broadcasts

    async def list_active_or_empty(self) -> list[Broadcast]:
        """Same as `list_active`, but an unavailable upstream means zero broadcasts."""
        try:
            return await self.list_active()
        except UnavailableError as exc:
            logger.warning("{} {} msg={} caller={}", exc.errcode, exc.erresid, exc.errmesg, exc.caller_info)
            return []

    async def _resolve_hosts(self, broadcasts: list[Broadcast]) -> list[Broadcast]:
        """Fill in host display identities the upstream left blank."""
        missing = [b for b in broadcasts if not b.host.display_name]
        if not missing:
            return broadcasts

        results = await asyncio.gather(
            *(self._user_directory.resolve(b.host.id) for b in missing),
            return_exceptions=True,
        )
        resolved: dict[str, Broadcast] = {}
        for broadcast, identity in zip(missing, results):
            if isinstance(identity, BaseException) or identity is None:
                logger.debug("Host identity unresolved for broadcast id={}", broadcast.id)
                continue
            resolved[broadcast.id] = broadcast.model_copy(update={"host": identity})

        return [resolved.get(b.id, b) for b in broadcasts]
