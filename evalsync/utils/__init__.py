# EVALSYNC Utilities Module
# Helper functions for durable state files

from evalsync.utils.locking import FileLock
from evalsync.utils.paths import atomic_write, quarantine_file

__all__ = [
    "FileLock",
    "atomic_write",
    "quarantine_file",
]
