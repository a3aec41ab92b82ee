from pydantic import BaseModel

from livecast.shared.config import config


class AppEnvironConfig(BaseModel):
    # Demo switch: when enabled, the platform client and transport use stubs and avoid network calls.
    DEMO_MODE: bool = config.get_bool("DEMO_MODE", True)
    DEBUG: bool = config.get_bool("DEBUG", False)

    # HTTP server
    API_HOST: str = config.get_str("API_HOST", "127.0.0.1")
    API_PORT: int = config.get_int("API_PORT", 8000)
    API_WORKERS: int = config.get_int("API_WORKERS", 1)
    API_CORS_ORIGINS: list[str] = [
        origin.strip()
        for origin in config.get_str("API_CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    # Streaming platform (YouTube Live-compatible REST API)
    PLATFORM_API_BASE_URL: str = config.get_str(
        "PLATFORM_API_BASE_URL", "https://www.googleapis.com/youtube/v3"
    )
    PLATFORM_API_TIMEOUT_SECONDS: float = config.get_float("PLATFORM_API_TIMEOUT_SECONDS", 30.0)
    PLATFORM_ACCESS_TOKEN: str | None = config.get_str("PLATFORM_ACCESS_TOKEN") or None

    # OAuth refresh-token flow (used when PLATFORM_ACCESS_TOKEN is not set)
    OAUTH_TOKEN_URL: str = config.get_str("OAUTH_TOKEN_URL", "https://oauth2.googleapis.com/token")
    OAUTH_CLIENT_ID: str | None = config.get_str("OAUTH_CLIENT_ID") or None
    OAUTH_CLIENT_SECRET: str | None = config.get_str("OAUTH_CLIENT_SECRET") or None
    OAUTH_REFRESH_TOKEN: str | None = config.get_str("OAUTH_REFRESH_TOKEN") or None

    # Ingest endpoint used when the platform does not return one
    DEFAULT_INGEST_URL: str = config.get_str("DEFAULT_INGEST_URL", "rtmp://a.rtmp.youtube.com/live2")

    # Media transport implementation, "module:Class"
    MEDIA_TRANSPORT_CLASS: str = config.get_str(
        "MEDIA_TRANSPORT_CLASS", "livecast.services.transport.media_transport:DemoTransport"
    )

    # Transport session
    STREAM_MAX_RETRIES: int = config.get_int("STREAM_MAX_RETRIES", 5)
    STREAM_RECONNECT_BASE_DELAY_SECONDS: float = config.get_float(
        "STREAM_RECONNECT_BASE_DELAY_SECONDS", 3.0
    )
    STREAM_RECONNECT_MAX_DELAY_SECONDS: float = config.get_float(
        "STREAM_RECONNECT_MAX_DELAY_SECONDS", 60.0
    )
    STREAM_HEALTH_CHECK_INTERVAL_SECONDS: float = config.get_float(
        "STREAM_HEALTH_CHECK_INTERVAL_SECONDS", 5.0
    )
    STREAM_CONNECT_SETTLE_SECONDS: float = config.get_float("STREAM_CONNECT_SETTLE_SECONDS", 2.0)

    # Broadcast record
    BROADCAST_POLL_INTERVAL_SECONDS: float = config.get_float(
        "BROADCAST_POLL_INTERVAL_SECONDS", 10.0
    )
    BROADCAST_MAX_POLL_ATTEMPTS: int = config.get_int("BROADCAST_MAX_POLL_ATTEMPTS", 30)
    BROADCAST_AUTO_START: bool = config.get_bool("BROADCAST_AUTO_START", True)

    # Platform call resilience
    PLATFORM_RETRY_MAX_ATTEMPTS: int = config.get_int("PLATFORM_RETRY_MAX_ATTEMPTS", 3)
    PLATFORM_RETRY_BASE_DELAY_SECONDS: float = config.get_float(
        "PLATFORM_RETRY_BASE_DELAY_SECONDS", 1.0
    )
    PLATFORM_RETRY_MAX_DELAY_SECONDS: float = config.get_float(
        "PLATFORM_RETRY_MAX_DELAY_SECONDS", 10.0
    )
    CIRCUIT_BREAKER_THRESHOLD: int = config.get_int("CIRCUIT_BREAKER_THRESHOLD", 5)
    CIRCUIT_BREAKER_RESET_TIMEOUT_SECONDS: float = config.get_float(
        "CIRCUIT_BREAKER_RESET_TIMEOUT_SECONDS", 60.0
    )


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
