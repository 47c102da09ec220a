# EVALSYNC Sync Coordinator
# Single-flight drain of the offline queue with retry and purge policy

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from evalsync.config.schema import SessionInvalidPolicy
from evalsync.errors import CredentialRejected, MalformedLocalState, SyncError
from evalsync.sync.bridges import DeferredReplayBridge, NotificationBridge, NullNotificationBridge, NullReplayBridge
from evalsync.sync.connectivity import ConnectivityMonitor
from evalsync.sync.credentials import CredentialGuard
from evalsync.sync.mutation import FailureInfo, MutationStatus, QueuedMutation
from evalsync.sync.store import MutationStore
from evalsync.sync.transport import Transport

logger = logging.getLogger(__name__)


class ItemOutcome(str, Enum):
    """What happened to one item in a drain cycle."""

    SYNCED = "synced"
    RETRY = "retry"  # Back to pending, retried on a later cycle
    FAILED = "failed"  # Dead letter, reported
    LOST = "lost"  # Purged as unrecoverable, reported


@dataclass
class ItemResult:
    """Outcome of one delivery attempt."""

    mutation_id: str
    outcome: ItemOutcome
    error: Optional[SyncError] = None


@dataclass
class DrainResult:
    """Result of one drain cycle."""

    attempted: int = 0
    synced: int = 0
    retried: int = 0
    failed: int = 0
    lost: int = 0
    aborted: bool = False
    coalesced: bool = False
    skipped_reason: Optional[str] = None
    remaining: int = 0
    items: list[ItemResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if nothing was left behind or reported."""
        return not self.aborted and self.skipped_reason is None and self.failed == 0 and self.lost == 0

    @property
    def has_issues(self) -> bool:
        """Check if anything needs the user's attention."""
        return self.failed > 0 or self.lost > 0

    def record(self, mutation_id: str, outcome: ItemOutcome, error: Optional[SyncError] = None) -> None:
        self.items.append(ItemResult(mutation_id=mutation_id, outcome=outcome, error=error))
        if outcome == ItemOutcome.SYNCED:
            self.synced += 1
        elif outcome == ItemOutcome.RETRY:
            self.retried += 1
        elif outcome == ItemOutcome.FAILED:
            self.failed += 1
        elif outcome == ItemOutcome.LOST:
            self.lost += 1


class SyncCoordinator:
    """
    Drains the offline queue.

    One drain cycle runs at a time. Inside a process the ``draining`` flag is
    a plain boolean: the engine runs on a single asyncio loop and only yields
    while a remote call is in flight. Across processes the store's drain lock
    plays the same role. A trigger that arrives while a cycle runs, here or
    elsewhere, is coalesced into it rather than queued.
    """

    def __init__(
        self,
        store: MutationStore,
        monitor: ConnectivityMonitor,
        guard: CredentialGuard,
        transport: Transport,
        *,
        replay_bridge: Optional[DeferredReplayBridge] = None,
        notifier: Optional[NotificationBridge] = None,
        session_policy: SessionInvalidPolicy = SessionInvalidPolicy.FREEZE,
    ):
        """
        Initialize coordinator.

        Args:
            store: Queue persistence.
            monitor: Connectivity state source.
            guard: Credential checks.
            transport: Remote delivery.
            replay_bridge: Host deferred execution.
            notifier: Host user notifications.
            session_policy: What to do with pending items when the session ends.
        """
        self.store = store
        self.monitor = monitor
        self.guard = guard
        self.transport = transport
        self.replay_bridge = replay_bridge or NullReplayBridge()
        self.notifier = notifier or NullNotificationBridge()
        self.session_policy = session_policy
        self.draining = False

    async def drain(self) -> DrainResult:
        """
        Run one drain cycle over the pending items, oldest first.

        Returns:
            DrainResult describing the cycle.

        Raises:
            StorageFull: If a status change couldn't be written. The next
                cycle picks the affected item up again.
        """
        if self.draining:
            logger.debug("Drain already in progress, trigger coalesced")
            return DrainResult(coalesced=True)

        self.draining = True
        try:
            lock = self.store.drain_lock()
            if not lock.acquire(blocking=False):
                logger.info("Another process is draining %s, trigger coalesced", self.store.path)
                return DrainResult(coalesced=True)
            try:
                self.store.recover_interrupted()
                result = await self._drain_cycle()
            finally:
                lock.release()
        finally:
            self.draining = False

        result.remaining = len(self.store.list(MutationStatus.PENDING))
        if result.remaining and result.skipped_reason != "session_invalid":
            self.request_replay(f"{result.remaining} item(s) still pending")
        if result.synced:
            self._notify("sync_complete", result.synced)
        if result.lost:
            self._notify("items_lost", result.lost)

        logger.info(
            "Drain finished: %d synced, %d deferred, %d failed, %d lost%s",
            result.synced,
            result.retried,
            result.failed,
            result.lost,
            " (aborted)" if result.aborted else "",
        )
        return result

    async def _drain_cycle(self) -> DrainResult:
        result = DrainResult()

        if not self.guard.session_valid and self.session_policy == SessionInvalidPolicy.FREEZE:
            logger.info("Session invalid, queue frozen until sign-in")
            result.skipped_reason = "session_invalid"
            return result

        pending = self.store.list(MutationStatus.PENDING)
        if not pending:
            return result

        for snapshot in pending:
            if not self.monitor.is_online:
                logger.info("Offline, stopping drain with %s next", snapshot.id)
                result.aborted = True
                if result.attempted == 0:
                    result.skipped_reason = "offline"
                break

            # The user may have discarded or retried items while we awaited.
            item = self.store.get(snapshot.id)
            if item is None or item.status != MutationStatus.PENDING:
                continue

            result.attempted += 1
            outcome, error = await self._process(item)
            result.record(item.id, outcome, error)

        return result

    async def _process(self, item: QueuedMutation) -> tuple[ItemOutcome, Optional[SyncError]]:
        """Attempt delivery of one item and apply the retry/purge policy."""
        self.store.update_status(item.id, MutationStatus.SYNCING)

        if not self.guard.is_well_formed(item.credential_snapshot):
            self.store.remove(item.id)
            logger.warning("Purged %s: credential snapshot is malformed", item.id)
            return ItemOutcome.LOST, MalformedLocalState()

        credential = self.guard.credential_for(item)
        try:
            await self.transport.deliver(item, credential)
        except SyncError as error:
            if error.retryable:
                self._settle(item, MutationStatus.PENDING)
                logger.debug("Deferred %s: %s", item.id, error)
                return ItemOutcome.RETRY, error

            if self._settle(item, MutationStatus.FAILED, FailureInfo.from_error(error)):
                logger.warning("Delivery of %s failed permanently: %s", item.id, error)
                self._notify("item_failed", item, error)
            return ItemOutcome.FAILED, error
        except BaseException:
            # Never leave an item stuck in syncing
            self._settle(item, MutationStatus.PENDING)
            raise

        self._settle(item, MutationStatus.SYNCED)
        logger.info("Synced %s (%s)", item.id, item.label)
        return ItemOutcome.SYNCED, None

    def _settle(self, item: QueuedMutation, status: MutationStatus, failure: Optional[FailureInfo] = None) -> bool:
        """
        Record the outcome of a delivery.

        An item cleared while its request was in flight needs nothing more.
        When the write fails the item stays ``syncing`` on disk; the next
        cycle resets it before starting.
        """
        try:
            self.store.update_status(item.id, status, failure)
        except KeyError:
            logger.info("%s was removed while being delivered", item.id)
            return False
        except Exception:
            logger.error("Could not record %s for %s", status.value, item.id)
            raise
        return True

    def retry(self, mutation_id: str) -> QueuedMutation:
        """
        Put a failed item back in the queue on user request.

        Raises:
            KeyError: If the item doesn't exist.
            ValueError: If the item isn't failed.
        """
        item = self.store.get(mutation_id)
        if item is None:
            raise KeyError(f"Mutation '{mutation_id}' not found")
        if item.status != MutationStatus.FAILED:
            raise ValueError(f"Mutation '{mutation_id}' is {item.status.value}, not failed")
        return self.store.update_status(mutation_id, MutationStatus.PENDING)

    def retry_failed(self) -> int:
        """Put every failed item back in the queue."""
        failed = self.store.list(MutationStatus.FAILED)
        for item in failed:
            self.store.update_status(item.id, MutationStatus.PENDING)
        return len(failed)

    def discard(self, mutation_id: str) -> bool:
        """
        Remove an item on user request.

        Raises:
            ValueError: If the item is being delivered right now.
        """
        item = self.store.get(mutation_id)
        if item is None:
            return False
        if item.status == MutationStatus.SYNCING:
            raise ValueError(f"Mutation '{mutation_id}' is being delivered")
        return self.store.remove(mutation_id)

    def handle_session_invalidated(self) -> int:
        """
        React to the session ending.

        Returns:
            Number of items moved to failed (only with the ``fail`` policy).
        """
        self.guard.session_invalidated()
        if self.session_policy != SessionInvalidPolicy.FAIL:
            return 0

        count = 0
        for item in self.store.list(MutationStatus.PENDING):
            error = CredentialRejected("Session ended before this item was delivered")
            self.store.update_status(item.id, MutationStatus.FAILED, FailureInfo.from_error(error))
            self._notify("item_failed", item, error)
            count += 1
        return count

    def handle_session_restored(self) -> int:
        """
        React to the user signing in again.

        Items that failed on a rejected credential go back to pending with a
        refreshed snapshot.

        Returns:
            Number of items requeued.
        """
        self.guard.session_restored()
        credential = self.guard.current_credential()

        count = 0
        for item in self.store.list(MutationStatus.FAILED):
            if item.failure is None or item.failure.kind != CredentialRejected.__name__:
                continue
            if self.guard.is_well_formed(credential):
                self.store.update_credential_snapshot(item.id, credential)
            self.store.update_status(item.id, MutationStatus.PENDING)
            count += 1

        if count:
            logger.info("Requeued %d item(s) after sign-in", count)
        return count

    def request_replay(self, reason: str) -> None:
        """Ask the host for a later drain. Never raises."""
        try:
            self.replay_bridge.schedule(reason)
        except Exception:
            logger.exception("Deferred replay request failed")

    def _notify(self, method: str, *args) -> None:
        try:
            getattr(self.notifier, method)(*args)
        except Exception:
            logger.exception("Notification %s failed", method)
