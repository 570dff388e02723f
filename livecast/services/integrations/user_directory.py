"""User directory client: display identities and follow edges."""

import httpx
from loguru import logger

from livecast.app_config import get_app_environ_config
from livecast.schemas.broadcast import UserIdentity

from .live_api_client import unwrap_results


class UserDirectoryClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        demo_mode: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._demo_mode = get_app_environ_config().DEMO_MODE if demo_mode is None else demo_mode
        self._transport = transport
        self._cache: dict[str, UserIdentity] = {}

    def _build_headers(self) -> dict[str, str]:
        return {"X-Api-Key": self.api_key} if self.api_key else {}

    async def resolve(self, user_id: str) -> UserIdentity | None:
        """Resolve a display identity, cached for the lifetime of the client."""
        cached = self._cache.get(user_id)
        if cached is not None:
            return cached

        if self._demo_mode:
            identity = UserIdentity(id=user_id, username=user_id, display_name=user_id)
            self._cache[user_id] = identity
            return identity

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(
                f"{self.base_url}/api/v1/users/{user_id}",
                headers=self._build_headers(),
                timeout=30,
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            identity = UserIdentity.model_validate(unwrap_results(response.json()))

        self._cache[user_id] = identity
        return identity

    async def set_follow(self, viewer_id: str, host_id: str, follow: bool) -> None:
        if self._demo_mode:
            logger.info("UserDirectoryClient DEMO_MODE=true: stubbed follow={} (no-op)", follow)
            return

        action = "follow" if follow else "unfollow"
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/api/v1/users/{action}",
                json={"user_id": viewer_id, "target_id": host_id},
                headers=self._build_headers(),
                timeout=30,
            )
            response.raise_for_status()


def get_user_directory_client() -> UserDirectoryClient:
    cfg = get_app_environ_config()
    return UserDirectoryClient(cfg.LIVE_API_BASE_URL, cfg.LIVE_API_KEY)
