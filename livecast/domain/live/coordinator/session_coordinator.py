"""Binds one StreamSessionController to one BroadcastOrchestrator for "go live"."""

import asyncio

from loguru import logger
from pydantic import BaseModel

from livecast.domain.live.broadcast.broadcast_models import BroadcastCreateParams
from livecast.domain.live.broadcast.broadcast_orchestrator import BroadcastOrchestrator
from livecast.domain.live.stream.stream_controller import StreamSessionController
from livecast.schemas import (
    BroadcastSnapshot,
    BroadcastState,
    CombinedResult,
    OperationResult,
    StreamSessionSnapshot,
    StreamState,
)
from livecast.services.resilience import BreakerSnapshot
from livecast.utils.app_errors import AppError


class LiveStatus(BaseModel):
    stream: StreamSessionSnapshot
    broadcast: BroadcastSnapshot
    is_live: bool


class SessionCoordinator:
    """Runs one coordinator operation at a time; each side handles its own failures."""

    def __init__(self, controller: StreamSessionController, orchestrator: BroadcastOrchestrator):
        self.controller = controller
        self.orchestrator = orchestrator
        self._lock = asyncio.Lock()

    async def go_live(self, params: BroadcastCreateParams | None = None) -> CombinedResult:
        params = params or BroadcastCreateParams()
        async with self._lock:
            errors: list[AppError] = []

            if self.controller.state == StreamState.IDLE:
                if not self._collect(await self.controller.initialize(), errors):
                    return CombinedResult(ok=False, errors=errors)

            if self.orchestrator.state == BroadcastState.ENDED:
                # A finished broadcast cannot be reused; start from a clean record
                self._collect(await self.orchestrator.reset(), errors)

            if not self._collect(await self.orchestrator.create(**params.model_dump()), errors):
                return CombinedResult(ok=False, errors=errors)

            if not self._collect(await self.orchestrator.start_monitoring(), errors):
                self._collect(await self.orchestrator.end(), errors)
                return CombinedResult(ok=False, errors=errors)

            record = self.orchestrator.record
            if not self._collect(await self.controller.start(record.ingest_key, record.ingest_url), errors):
                logger.warning(f"Transport start failed, ending broadcast {record.broadcast_id}")
                self._collect(await self.orchestrator.end(), errors)
                return CombinedResult(ok=False, errors=errors)

            logger.info(f"Go live started for broadcast {record.broadcast_id}")
            return CombinedResult(ok=not errors, errors=errors)

    async def stop_live(self) -> CombinedResult:
        async with self._lock:
            errors: list[AppError] = []
            self._collect(await self.controller.stop(), errors)
            self._collect(await self.orchestrator.end(), errors)
            return CombinedResult(ok=not errors, errors=errors)

    async def force_live(self) -> CombinedResult:
        async with self._lock:
            errors: list[AppError] = []
            self._collect(await self.orchestrator.force_transition_to_live(), errors)
            return CombinedResult(ok=not errors, errors=errors)

    async def reset(self) -> CombinedResult:
        async with self._lock:
            errors: list[AppError] = []
            self._collect(await self.controller.reset(), errors)
            self._collect(await self.orchestrator.reset(), errors)
            return CombinedResult(ok=not errors, errors=errors)

    async def refresh_statistics(self) -> int | None:
        return await self.orchestrator.refresh_statistics()

    def breakers(self) -> list[BreakerSnapshot]:
        return self.orchestrator.breaker_snapshots()

    def reset_breakers(self) -> None:
        self.orchestrator.reset_breakers()

    def status(self) -> LiveStatus:
        stream = self.controller.snapshot()
        broadcast = self.orchestrator.snapshot()
        return LiveStatus(
            stream=stream,
            broadcast=broadcast,
            is_live=stream.state == StreamState.STREAMING and broadcast.state == BroadcastState.LIVE,
        )

    async def shutdown(self) -> None:
        """Release timers and the transport without ending the platform broadcast."""
        async with self._lock:
            await self.orchestrator.stop_monitoring()
            result = await self.controller.stop()
            if not result:
                logger.warning(f"Transport stop during shutdown failed: {result.error}")

    @staticmethod
    def _collect(result: OperationResult, errors: list[AppError]) -> bool:
        if not result and result.error is not None:
            errors.append(result.error)
        return result.ok
