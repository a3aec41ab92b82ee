"""Stream controller settings."""

from dataclasses import dataclass

from livecast.app_config import AppEnvironConfig


@dataclass(frozen=True)
class StreamSessionSettings:
    max_retries: int = 5
    reconnect_base_delay: float = 3.0
    reconnect_max_delay: float = 60.0
    health_check_interval: float = 5.0
    # Wait after transport.start() before the liveness probe
    connect_settle_delay: float = 2.0
    # Waits around the transport restart during reconnection
    restart_settle_delay: float = 1.0
    # Pause between a failed reconnection attempt and the next backoff
    retry_pause: float = 2.0
    default_ingest_url: str = "rtmp://a.rtmp.youtube.com/live2"

    @classmethod
    def from_app_config(cls, app_config: AppEnvironConfig) -> "StreamSessionSettings":
        return cls(
            max_retries=app_config.STREAM_MAX_RETRIES,
            reconnect_base_delay=app_config.STREAM_RECONNECT_BASE_DELAY_SECONDS,
            reconnect_max_delay=app_config.STREAM_RECONNECT_MAX_DELAY_SECONDS,
            health_check_interval=app_config.STREAM_HEALTH_CHECK_INTERVAL_SECONDS,
            connect_settle_delay=app_config.STREAM_CONNECT_SETTLE_SECONDS,
            default_ingest_url=app_config.DEFAULT_INGEST_URL,
        )

    def reconnect_delay(self, attempt: int) -> float:
        """Backoff before reconnection ``attempt`` (1-based): 3, 6, 12, 24, 48, 60, ..."""
        delay = self.reconnect_base_delay * 2 ** (attempt - 1)
        return max(self.reconnect_base_delay, min(delay, self.reconnect_max_delay))
