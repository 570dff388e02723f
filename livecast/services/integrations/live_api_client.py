"""HTTP client for the live directory upstream."""

from typing import Any

import httpx
from loguru import logger

from livecast.app_config import get_app_environ_config

_DEMO_STREAMS: list[dict[str, Any]] = [
    {
        "id": "live_demo_talk",
        "host": {
            "id": "u2",
            "username": "travel_king",
            "displayName": "Travel King",
            "avatarUrl": "https://picsum.photos/100/100?random=2",
            "followers": 5000,
        },
        "title": "Morning walk through the market",
        "category": "Talk",
        "streamUrl": "https://storage.googleapis.com/gtv-videos-bucket/sample/ForBiggerJoyrides.mp4",
        "viewers": 120,
        "likes": 860,
    },
    {
        "id": "live_demo_battle",
        "host": {
            "id": "u6",
            "username": "dance_crew_ke",
            "displayName": "Nairobi Dancers",
            "avatarUrl": "https://picsum.photos/100/100?random=9",
            "followers": 32000,
        },
        "title": "Dance battle night",
        "category": "Battle",
        "streamUrl": "https://storage.googleapis.com/gtv-videos-bucket/sample/ForBiggerBlazes.mp4",
        "viewers": 2400,
        "likes": 15200,
    },
    {
        "id": "live_demo_gaming",
        "host": {
            "id": "u4",
            "username": "tech_guru",
            "displayName": "Tech Guru",
            "avatarUrl": "https://picsum.photos/100/100?random=6",
            "followers": 1200,
        },
        "title": "Ranked grind",
        "category": "Gaming",
        "isGaming": True,
        "streamUrl": "https://storage.googleapis.com/gtv-videos-bucket/sample/ForBiggerEscapes.mp4",
        "viewers": 310,
        "likes": 990,
    },
]


def unwrap_results(data: Any) -> Any:
    """Accept both a bare payload and the `{success, results}` envelope."""
    if isinstance(data, dict) and "results" in data:
        if data.get("success") is False:
            raise httpx.HTTPError(f"{data.get('errcode')}: {data.get('errmesg')}")
        return data["results"]
    return data


class LiveApiClient:
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

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    async def list_active_streams(self) -> list[dict[str, Any]]:
        """Fetch raw broadcast payloads for all active streams."""
        if self._demo_mode:
            logger.info("LiveApiClient DEMO_MODE=true: returning stubbed active streams")
            return [dict(item) for item in _DEMO_STREAMS]

        url = f"{self.base_url}/api/v1/live/active_streams"
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(url, headers=self._build_headers(), timeout=30)
            response.raise_for_status()
            results = unwrap_results(response.json())

        if not isinstance(results, list):
            raise httpx.HTTPError(f"Unexpected active_streams payload: {type(results).__name__}")
        logger.debug("list_active_streams returned {} items", len(results))
        return results

    async def ping(self) -> int:
        """Issue a lightweight request and return the HTTP status code."""
        if self._demo_mode:
            return 200

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(f"{self.base_url}/health", headers=self._build_headers())
            return response.status_code


def get_live_api_client() -> LiveApiClient:
    cfg = get_app_environ_config()
    return LiveApiClient(cfg.LIVE_API_BASE_URL, cfg.LIVE_API_KEY)
