# EVALSYNC Sync Context
# Process-wide wiring of store, monitor, guard, transport and coordinator

import asyncio
import logging
from typing import Any, Optional

from evalsync.config.schema import EvalsyncConfig
from evalsync.sync.bridges import (
    DeferredReplayBridge,
    LoopReplayBridge,
    NotificationBridge,
    NullNotificationBridge,
)
from evalsync.sync.connectivity import ConnectivityMonitor, ConnectivityState
from evalsync.sync.coordinator import DrainResult, SyncCoordinator
from evalsync.sync.credentials import CredentialGuard, CredentialProvider
from evalsync.sync.mutation import QueuedMutation
from evalsync.sync.store import MutationStore
from evalsync.sync.transport import RemoteTransport, Transport

logger = logging.getLogger(__name__)


class SyncContext:
    """
    The offline sync engine for one running client.

    Create exactly one per process (``SyncContext.from_config``) and pass it
    to whatever needs to queue writes or feed host signals; close it with
    ``aclose()`` or ``async with``. Other processes may open the same queue
    file; the store's locks keep their writes and drains apart.
    """

    def __init__(
        self,
        config: EvalsyncConfig,
        store: MutationStore,
        monitor: ConnectivityMonitor,
        guard: CredentialGuard,
        transport: Transport,
        *,
        replay_bridge: Optional[DeferredReplayBridge] = None,
        notifier: Optional[NotificationBridge] = None,
    ):
        self.config = config
        self.store = store
        self.monitor = monitor
        self.guard = guard
        self.transport = transport
        self.notifier = notifier if config.notifications.enabled and notifier else NullNotificationBridge()
        self.coordinator = SyncCoordinator(
            store,
            monitor,
            guard,
            transport,
            replay_bridge=replay_bridge or LoopReplayBridge(self.drain, delay=config.replay.delay_seconds),
            notifier=self.notifier,
            session_policy=config.credentials.on_session_invalid,
        )
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe = monitor.subscribe(self._on_transition)

    @classmethod
    def from_config(
        cls,
        config: EvalsyncConfig,
        credential_provider: CredentialProvider,
        *,
        transport: Optional[Transport] = None,
        replay_bridge: Optional[DeferredReplayBridge] = None,
        notifier: Optional[NotificationBridge] = None,
        online: Optional[bool] = None,
    ) -> "SyncContext":
        """
        Build a context from configuration.

        Args:
            config: Loaded configuration.
            credential_provider: Live credential source.
            transport: Optional transport (defaults to httpx RemoteTransport).
            replay_bridge: Optional host deferred execution.
            notifier: Optional host notifications.
            online: Initial reachability, if the host already knows it.
        """
        storage = config.storage
        store = MutationStore(
            storage.queue_path,
            max_items=storage.max_items,
            quarantine_corrupt=storage.quarantine_corrupt,
        )
        monitor = ConnectivityMonitor(storage.connectivity_path, initial=online)
        guard = CredentialGuard(credential_provider, segment_count=config.credentials.segment_count)
        return cls(
            config,
            store,
            monitor,
            guard,
            transport or RemoteTransport(config.remote),
            replay_bridge=replay_bridge,
            notifier=notifier,
        )

    @property
    def connectivity(self) -> ConnectivityState:
        return self.monitor.state

    def queue_evaluation(self, body: dict[str, Any]) -> str:
        """
        Queue an evaluation submission with the current credential as snapshot.

        Raises:
            StorageFull: If the action could not be queued.
        """
        mutation = QueuedMutation.evaluation(body, self.guard.current_credential())
        return self.store.enqueue(mutation)

    def queue_update(self, method: str, endpoint: str, body: Any = None) -> str:
        """
        Queue a generic record edit with the current credential as snapshot.

        Raises:
            StorageFull: If the action could not be queued.
        """
        mutation = QueuedMutation.update(method, endpoint, body, self.guard.current_credential())
        return self.store.enqueue(mutation)

    async def drain(self) -> DrainResult:
        return await self.coordinator.drain()

    def set_reachable(self, reachable: bool) -> bool:
        """Forward the host reachability signal."""
        return self.monitor.set_reachable(reachable)

    def session_invalidated(self) -> int:
        return self.coordinator.handle_session_invalidated()

    def session_restored(self) -> int:
        count = self.coordinator.handle_session_restored()
        if self.monitor.is_online:
            self._start_drain("session restored")
        return count

    async def aclose(self) -> None:
        self._unsubscribe()
        bridge = self.coordinator.replay_bridge
        if isinstance(bridge, LoopReplayBridge):
            await bridge.aclose()
        await self.wait_idle()
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "SyncContext":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _on_transition(self, previous: ConnectivityState, current: ConnectivityState) -> None:
        if current.online:
            self._start_drain("back online")
        elif self.config.notifications.notify_on_offline:
            self.notifier.working_offline()

    def _start_drain(self, reason: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Not running inside the host loop: leave it to the host scheduler.
            self.coordinator.request_replay(reason)
            return

        logger.debug("Starting drain: %s", reason)
        task = loop.create_task(self.coordinator.drain())
        self._tasks.add(task)
        task.add_done_callback(self._drain_done)

    def _drain_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background drain failed", exc_info=task.exception())

    async def wait_idle(self) -> None:
        """Wait for background drains started by transitions."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
