# EVALSYNC Connectivity
# Reachability state driven by the host's push signal

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from evalsync.utils.paths import atomic_write

logger = logging.getLogger(__name__)

TransitionListener = Callable[["ConnectivityState", "ConnectivityState"], None]


@dataclass(frozen=True)
class ConnectivityState:
    """Process-wide reachability snapshot."""

    online: bool = False
    last_transition_at: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {"online": self.online, "last_transition_at": self.last_transition_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectivityState":
        last = data.get("last_transition_at")
        return cls(online=bool(data.get("online", False)), last_transition_at=float(last) if last is not None else None)


class ConnectivityMonitor:
    """
    Tracks reachability from the host signal and emits transition edges.

    There is no active probing: ``set_reachable`` is the only input.
    Listeners are called synchronously with ``(previous, current)``.
    """

    def __init__(self, state_path: Optional[Path] = None, *, initial: Optional[bool] = None):
        """
        Initialize monitor.

        Args:
            state_path: Optional file the state is persisted to.
            initial: Initial reachability. Defaults to the persisted value, else offline.
        """
        self.state_path = state_path
        self._listeners: list[TransitionListener] = []

        state = self._load()
        if initial is not None:
            state = ConnectivityState(online=initial, last_transition_at=state.last_transition_at)
        self._state = state

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state.online

    def subscribe(self, listener: TransitionListener) -> Callable[[], None]:
        """
        Register a transition listener.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_reachable(self, reachable: bool) -> bool:
        """
        Feed the host's reachability signal.

        Args:
            reachable: Whether the network is reachable.

        Returns:
            True if this was a transition.
        """
        if reachable == self._state.online:
            return False

        previous = self._state
        self._state = ConnectivityState(online=reachable, last_transition_at=time.time())
        logger.info("Connectivity changed: %s", "online" if reachable else "offline")
        self._save()

        for listener in list(self._listeners):
            try:
                listener(previous, self._state)
            except Exception:
                logger.exception("Connectivity listener failed")

        return True

    def _load(self) -> ConnectivityState:
        if self.state_path is None or not self.state_path.exists():
            return ConnectivityState()
        try:
            data = yaml.safe_load(self.state_path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                return ConnectivityState()
            return ConnectivityState.from_dict(data)
        except (OSError, UnicodeDecodeError, yaml.YAMLError, TypeError, ValueError) as e:
            logger.warning("Connectivity record at %s is unreadable, ignoring: %s", self.state_path, e)
            return ConnectivityState()

    def _save(self) -> None:
        if self.state_path is None:
            return
        try:
            atomic_write(self.state_path, yaml.safe_dump(self._state.to_dict(), sort_keys=False))
        except OSError as e:
            # The record is informational; the live state is authoritative.
            logger.warning("Could not persist connectivity state: %s", e)
