from pydantic import BaseModel

from livecast.shared.config import config


class AppEnvironConfig(BaseModel):
    # Public demo switch: when enabled, external integrations use stubs and avoid network calls.
    DEMO_MODE: bool = config.get_bool("DEMO_MODE", True)
    DEBUG: bool = config.get_bool("DEBUG", False)

    GLOBAL_API_RATE_LIMIT: str = config.get("GLOBAL_API_RATE_LIMIT", "1000/minute").strip()

    # Upstream collaborators
    LIVE_API_BASE_URL: str = config.get("LIVE_API_BASE_URL", "http://localhost:9000").strip()
    LIVE_API_KEY: str | None = (config.get("LIVE_API_KEY") or "").strip() or None
    WALLET_API_BASE_URL: str = config.get("WALLET_API_BASE_URL", "http://localhost:9000").strip()
    DIRECTORY_TIMEOUT_SECONDS: float = config.get_float("DIRECTORY_TIMEOUT_SECONDS", 5.0)
    BACKEND_PROBE_TIMEOUT_SECONDS: float = config.get_float("BACKEND_PROBE_TIMEOUT_SECONDS", 3.0)

    # Realtime transport
    REDIS_URL_TRANSPORT: str = config.get_redis_url("transport")
    TRANSPORT_TOPIC_PREFIX: str = config.get("TRANSPORT_TOPIC_PREFIX", "room_").strip()
    PRESENCE_TTL_SECONDS: int = config.get_int("PRESENCE_TTL_SECONDS", 60)

    # View model
    CHAT_LOG_CAPACITY: int = config.get_int("CHAT_LOG_CAPACITY", 50)
    CHAT_LOG_RENDERED: int = config.get_int("CHAT_LOG_RENDERED", 15)
    VISIBILITY_THRESHOLD: float = config.get_float("VISIBILITY_THRESHOLD", 0.6)
    LIKE_AFFORDANCE_SECONDS: float = config.get_float("LIKE_AFFORDANCE_SECONDS", 1.0)
    GIFT_AFFORDANCE_SECONDS: float = config.get_float("GIFT_AFFORDANCE_SECONDS", 2.0)

    # Battle
    BATTLE_GRACE_SECONDS: float = config.get_float("BATTLE_GRACE_SECONDS", 3.0)
    GIFT_SCORE_MULTIPLIER: int = config.get_int("GIFT_SCORE_MULTIPLIER", 10)

    # Playback
    PLAYBACK_FALLBACK_URL: str = config.get(
        "PLAYBACK_FALLBACK_URL",
        "https://storage.googleapis.com/gtv-videos-bucket/sample/ForBiggerFun.mp4",
    ).strip()

    # Local viewer used by the HTTP bridge
    VIEWER_ID: str = config.get("VIEWER_ID", "viewer-local").strip()
    VIEWER_USERNAME: str = config.get("VIEWER_USERNAME", "guest").strip()
    VIEWER_AUTHENTICATED: bool = config.get_bool("VIEWER_AUTHENTICATED", True)

    # Outbound send throttling (token bucket per viewer/action)
    SEND_RATE_LIMIT_ENABLED: bool = config.get_bool("SEND_RATE_LIMIT_ENABLED", False)
    CHAT_RATE_CAPACITY: float = config.get_float("CHAT_RATE_CAPACITY", 10.0)
    CHAT_RATE_REFILL: float = config.get_float("CHAT_RATE_REFILL", 1.0)


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
