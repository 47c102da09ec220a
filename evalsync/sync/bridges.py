# EVALSYNC Host Bridges
# Deferred replay and user notification adapters

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from rich.console import Console as RichConsole

from evalsync.errors import SyncError
from evalsync.sync.mutation import QueuedMutation

logger = logging.getLogger(__name__)


class DeferredReplayBridge(Protocol):
    """Asks the host to run the drain routine again later. Best effort."""

    def schedule(self, reason: str) -> None: ...


class NotificationBridge(Protocol):
    """Shows terminal outcomes to the user."""

    def sync_complete(self, count: int) -> None: ...

    def item_failed(self, mutation: QueuedMutation, error: SyncError) -> None: ...

    def items_lost(self, count: int) -> None: ...

    def working_offline(self) -> None: ...


class NullReplayBridge:
    """Replay bridge for hosts without background execution."""

    def schedule(self, reason: str) -> None:
        logger.debug("No deferred replay available (%s)", reason)


class LoopReplayBridge:
    """
    Schedules a later drain on the running asyncio loop.

    Only one replay is outstanding at a time; further requests while one is
    scheduled are dropped, and so is every request after ``aclose()``.
    """

    def __init__(self, drain: Callable[[], Awaitable[Any]], *, delay: float = 30.0):
        self.drain = drain
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def scheduled(self) -> bool:
        return self._handle is not None

    def schedule(self, reason: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, deferred replay skipped (%s)", reason)
            return

        if self._handle is not None or self._closed:
            return

        logger.debug("Deferred replay in %.1fs (%s)", self.delay, reason)
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def aclose(self) -> None:
        """Cancel the pending timer and wait for replays already running."""
        self._closed = True
        self.cancel()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self.drain())
        self._tasks.add(task)
        task.add_done_callback(self._replay_done)

    def _replay_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Deferred replay failed", exc_info=task.exception())


class NullNotificationBridge:
    """Notification bridge that shows nothing."""

    def sync_complete(self, count: int) -> None:
        pass

    def item_failed(self, mutation: QueuedMutation, error: SyncError) -> None:
        pass

    def items_lost(self, count: int) -> None:
        pass

    def working_offline(self) -> None:
        pass


@dataclass
class RecordingNotificationBridge:
    """Keeps every notification in memory."""

    synced: list[int] = field(default_factory=list)
    failures: list[tuple[str, SyncError]] = field(default_factory=list)
    lost: list[int] = field(default_factory=list)
    offline_notices: int = 0

    def sync_complete(self, count: int) -> None:
        self.synced.append(count)

    def item_failed(self, mutation: QueuedMutation, error: SyncError) -> None:
        self.failures.append((mutation.id, error))

    def items_lost(self, count: int) -> None:
        self.lost.append(count)

    def working_offline(self) -> None:
        self.offline_notices += 1


class ConsoleNotificationBridge:
    """Notification bridge printing to a rich console."""

    def __init__(self, console: Optional[RichConsole] = None):
        self.console = console or RichConsole()

    def sync_complete(self, count: int) -> None:
        self.console.print(f"[green]✓[/green] {count} offline item(s) have been synced successfully")

    def item_failed(self, mutation: QueuedMutation, error: SyncError) -> None:
        self.console.print(f"[red]✗[/red] {mutation.label} ([dim]{mutation.id}[/dim]): {_describe(error)}")

    def items_lost(self, count: int) -> None:
        noun = "One offline item" if count == 1 else f"{count} offline items"
        self.console.print(f"[red]✗[/red] {noun} could not be recovered and was removed")

    def working_offline(self) -> None:
        self.console.print("[yellow]⚠[/yellow] Working offline. Your data will sync when you're back online")


def _describe(error: SyncError) -> str:
    reason = getattr(error, "reason", None)
    if reason and reason != error.user_message:
        return f"{error.user_message} Server said: {reason}"
    return error.user_message
