from .platform_client import PlatformBroadcastAPI, PlatformClient
from .platform_schemas import (
    BroadcastMeta,
    BroadcastStatistics,
    GoLiveCheck,
    PlatformBroadcast,
    PlatformStream,
    StreamConfig,
)
from .token_provider import OAuthTokenProvider, StaticTokenProvider, TokenProvider, build_token_provider

__all__ = [
    "BroadcastMeta",
    "BroadcastStatistics",
    "GoLiveCheck",
    "OAuthTokenProvider",
    "PlatformBroadcast",
    "PlatformBroadcastAPI",
    "PlatformClient",
    "PlatformStream",
    "StaticTokenProvider",
    "StreamConfig",
    "TokenProvider",
    "build_token_provider",
]
