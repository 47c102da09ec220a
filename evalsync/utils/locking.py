# EVALSYNC File Locking
# Cross-process advisory locks kept beside the files they guard

import fcntl
import logging
import os
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


class FileLock:
    """
    Exclusive ``fcntl.flock`` lock on a lock file.

    The kernel releases the lock when its holder dies, so a crashed process
    never leaves a stale lock behind. Two ``FileLock`` objects on the same
    path exclude each other even inside one process. POSIX only, and the
    lock file must live on a local filesystem.
    """

    def __init__(self, path: Path, *, timeout: float = 10.0):
        self.path = path
        self.timeout = timeout
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self, blocking: bool = True) -> bool:
        """
        Take the lock.

        Args:
            blocking: Wait up to ``timeout`` seconds for the current holder.

        Returns:
            True when acquired, False when ``blocking`` is off and the lock is taken.

        Raises:
            TimeoutError: If a blocking acquire gave up.
        """
        if self._fd is not None:
            raise RuntimeError(f"Lock already held: {self.path}")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
        deadline = time.monotonic() + self.timeout
        try:
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if not blocking:
                        os.close(fd)
                        return False
                    if time.monotonic() >= deadline:
                        raise TimeoutError(f"Timed out after {self.timeout}s waiting for {self.path}")
                    time.sleep(POLL_INTERVAL)
        except BaseException:
            os.close(fd)
            raise

        # Holder pid, for whoever inspects a stuck lock
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        logger.debug("Acquired %s", self.path)
        return True

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        logger.debug("Released %s", self.path)

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
