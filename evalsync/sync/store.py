# EVALSYNC Mutation Store
# Durable persistence of the offline mutation queue

from __future__ import annotations

import errno
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from evalsync.errors import StorageFull
from evalsync.sync.mutation import FailureInfo, MutationStatus, QueuedMutation
from evalsync.utils.locking import FileLock
from evalsync.utils.paths import atomic_write, quarantine_file

logger = logging.getLogger(__name__)

STORE_VERSION = "1.0"

_FULL_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class CorruptStoreError(ValueError):
    """Raised internally when the queue file cannot be understood."""


class MutationStore:
    """
    Durable, crash-surviving set of queued mutations.

    Every mutating call takes the queue lock, reads the file again, applies
    its change and writes the full set back before returning. Processes
    sharing one queue file (a CLI drain next to a CLI enqueue) therefore
    never overwrite each other's items. Writes go through a temp file and an
    atomic rename, so a reader always sees the last completed call.
    """

    def __init__(
        self,
        path: Path,
        *,
        max_items: Optional[int] = None,
        quarantine_corrupt: bool = False,
        lock_timeout: float = 10.0,
    ):
        """
        Initialize mutation store.

        Args:
            path: Path to the queue file.
            max_items: Optional quota; enqueue beyond it raises StorageFull.
            quarantine_corrupt: Move an unparseable file aside on load.
            lock_timeout: Seconds to wait for another process holding the queue lock.
        """
        self.path = path
        self.max_items = max_items
        self.quarantine_corrupt = quarantine_corrupt
        self.lock_timeout = lock_timeout
        self.lock_path = path.with_name(path.name + ".lock")
        self.drain_lock_path = path.with_name(path.name + ".drain.lock")
        self._items: Optional[list[QueuedMutation]] = None
        self._stamp: Optional[tuple[int, int, int]] = None
        self.quarantined_path: Optional[Path] = None

    @property
    def items(self) -> list[QueuedMutation]:
        """Current items, read again whenever the file changed on disk."""
        if self._items is None or self._file_stamp() != self._stamp:
            self._items = self.load()
        return self._items

    def load(self) -> list[QueuedMutation]:
        """
        Load the queue from disk.

        A missing file is an empty queue. So is a file that can't be parsed:
        losing a corrupt queue is preferred over refusing to start.
        """
        self._stamp = self._file_stamp()
        if self._stamp is None:
            return []

        try:
            raw = self.path.read_text(encoding="utf-8")
            return _parse_queue(raw)
        except (OSError, UnicodeDecodeError, yaml.YAMLError, CorruptStoreError) as e:
            logger.warning("Offline queue at %s is unreadable, starting empty: %s", self.path, e)
            if self.quarantine_corrupt:
                self.quarantined_path = quarantine_file(self.path)
                logger.warning("Unreadable queue preserved at %s", self.quarantined_path)
            return []

    def reload(self) -> list[QueuedMutation]:
        """Drop the in-memory view and read the file again."""
        self._items = None
        return self.list()

    def drain_lock(self) -> FileLock:
        """Lock held by whichever process is delivering items from this queue."""
        return FileLock(self.drain_lock_path, timeout=self.lock_timeout)

    def enqueue(self, mutation: QueuedMutation) -> str:
        """
        Append a mutation and persist.

        Args:
            mutation: The mutation to queue.

        Returns:
            The mutation id.

        Raises:
            StorageFull: If local storage is exhausted; nothing is queued.
            ValueError: If the id is already in the store.
        """

        def add(items: list[QueuedMutation]) -> None:
            if _find(items, mutation.id) is not None:
                raise ValueError(f"Mutation id already queued: {mutation.id}")
            if self.max_items is not None and len(items) >= self.max_items:
                raise StorageFull(f"Offline queue is full ({self.max_items} items)")
            items.append(mutation.copy())

        self._apply(add)
        logger.debug("Queued %s (%s)", mutation.id, mutation.label)
        return mutation.id

    def list(self, status: Optional[MutationStatus] = None) -> list[QueuedMutation]:
        """
        List items in enqueue order.

        Args:
            status: Optional status filter.

        Returns:
            Copies of the stored items.
        """
        return [item.copy() for item in self.items if status is None or item.status == status]

    def get(self, mutation_id: str) -> Optional[QueuedMutation]:
        """Get a copy of one item, or None."""
        items = self.items
        index = _find(items, mutation_id)
        return items[index].copy() if index is not None else None

    def remove(self, mutation_id: str) -> bool:
        """Remove an item and save."""
        if _find(self.items, mutation_id) is None:
            return False

        def drop(items: list[QueuedMutation]) -> bool:
            index = _find(items, mutation_id)
            if index is None:
                return False
            items.pop(index)
            return True

        return self._apply(drop)

    def update_status(
        self,
        mutation_id: str,
        status: MutationStatus,
        failure: Optional[FailureInfo] = None,
    ) -> QueuedMutation:
        """
        Change an item's status and save.

        ``synced`` is terminal and removes the item. The failure annotation is
        only kept for ``failed`` items.

        Raises:
            KeyError: If the item doesn't exist.
            RuntimeError: If another item is already ``syncing``.
        """

        def change(items: list[QueuedMutation]) -> QueuedMutation:
            index = _require(items, mutation_id)
            item = items[index]

            if status == MutationStatus.SYNCED:
                items.pop(index)
                item.status = status
                return item

            if status == MutationStatus.SYNCING:
                other = next((i for i in items if i.status == MutationStatus.SYNCING and i.id != mutation_id), None)
                if other is not None:
                    raise RuntimeError(f"Item {other.id} is already syncing")

            item.status = status
            item.failure = failure if status == MutationStatus.FAILED else None
            return item.copy()

        return self._apply(change)

    def update_credential_snapshot(self, mutation_id: str, credential: Optional[str]) -> QueuedMutation:
        """
        Refresh the credential snapshot of an item and save.

        Raises:
            KeyError: If the item doesn't exist.
        """

        def change(items: list[QueuedMutation]) -> QueuedMutation:
            item = items[_require(items, mutation_id)]
            item.credential_snapshot = credential
            return item.copy()

        return self._apply(change)

    def recover_interrupted(self) -> list[str]:
        """
        Put items left in ``syncing`` back to ``pending``.

        Call this only while holding ``drain_lock()``: a ``syncing`` item then
        belongs to a drain that died or failed to record its outcome.

        Returns:
            Ids of the recovered items.
        """
        if not any(item.status == MutationStatus.SYNCING for item in self.items):
            return []

        def change(items: list[QueuedMutation]) -> list[str]:
            recovered = []
            for item in items:
                if item.status == MutationStatus.SYNCING:
                    item.status = MutationStatus.PENDING
                    recovered.append(item.id)
            return recovered

        recovered = self._apply(change)
        for mutation_id in recovered:
            logger.info("Recovered interrupted item %s", mutation_id)
        return recovered

    def counts(self) -> dict[MutationStatus, int]:
        """Count items per status."""
        result = {status: 0 for status in MutationStatus if status != MutationStatus.SYNCED}
        for item in self.items:
            result[item.status] = result.get(item.status, 0) + 1
        return result

    def clear(self) -> int:
        """
        Remove every item and save.

        An item being delivered right now is kept; its drain settles it.

        Returns:
            Number of items removed.
        """
        if not self.items:
            return 0

        def change(items: list[QueuedMutation]) -> int:
            in_flight = [item for item in items if item.status == MutationStatus.SYNCING]
            removed = len(items) - len(in_flight)
            items[:] = in_flight
            return removed

        return self._apply(change)

    def __len__(self) -> int:
        return len(self.items)

    def _apply(self, change):
        """Read the file under the queue lock, apply a change and persist it."""
        with FileLock(self.lock_path, timeout=self.lock_timeout):
            current = self.load()
            working = [item.copy() for item in current]
            try:
                result = change(working)
                self._write(working)
            except Exception:
                self._items = current
                raise
            self._items = working
            self._stamp = self._file_stamp()
        return result

    def _write(self, items: list[QueuedMutation]) -> None:
        data = {
            "version": STORE_VERSION,
            "mutations": [item.to_dict() for item in items],
        }
        content = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
        try:
            atomic_write(self.path, content)
        except OSError as e:
            if e.errno in _FULL_ERRNOS:
                raise StorageFull(f"No space left to store the offline queue at {self.path}") from e
            raise

    def _file_stamp(self) -> Optional[tuple[int, int, int]]:
        # atomic_write replaces the inode, so any completed write changes the stamp
        try:
            st = self.path.stat()
        except OSError:
            return None
        return st.st_ino, st.st_mtime_ns, st.st_size


def _find(items: list[QueuedMutation], mutation_id: str) -> Optional[int]:
    for index, item in enumerate(items):
        if item.id == mutation_id:
            return index
    return None


def _require(items: list[QueuedMutation], mutation_id: str) -> int:
    index = _find(items, mutation_id)
    if index is None:
        raise KeyError(f"Mutation '{mutation_id}' not found")
    return index


def _parse_queue(raw: str) -> list[QueuedMutation]:
    """Parse queue file content, raising CorruptStoreError on any shape problem."""
    data: Any = yaml.safe_load(raw)
    if data is None:
        return []
    if not isinstance(data, dict) or not isinstance(data.get("mutations", []), list):
        raise CorruptStoreError("Queue file has an unexpected layout")

    items: list[QueuedMutation] = []
    seen: set[str] = set()
    for record in data.get("mutations", []):
        if not isinstance(record, dict):
            raise CorruptStoreError("Queue record is not a mapping")
        try:
            item = QueuedMutation.from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptStoreError(f"Invalid queue record: {e}") from e
        if item.id in seen:
            raise CorruptStoreError(f"Duplicate id in queue file: {item.id}")
        seen.add(item.id)
        items.append(item)
    return items
