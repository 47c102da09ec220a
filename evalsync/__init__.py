"""EVALSYNC - Offline mutation queue and sync engine for the sales-evaluation tracker.

Durably records evaluation submissions and record edits made while the
client is disconnected, and replays them in order once connectivity and
a valid session allow.
"""

__version__ = "1.0.0"
__author__ = "Equitania Software GmbH"
__email__ = "info@equitania.de"

__all__ = [
    "__version__",
    "SyncContext",
    "SyncCoordinator",
    "DrainResult",
    "MutationStore",
    "QueuedMutation",
    "MutationKind",
    "MutationStatus",
    "ConnectivityMonitor",
    "CredentialGuard",
    "RemoteTransport",
    "EvalsyncConfig",
    "load_config",
]


def __getattr__(name: str):
    """Lazy import to avoid loading dependencies during setup."""
    if name == "SyncContext":
        from evalsync.sync.context import SyncContext

        return SyncContext
    if name in ("SyncCoordinator", "DrainResult"):
        from evalsync.sync import coordinator

        return getattr(coordinator, name)
    if name == "MutationStore":
        from evalsync.sync.store import MutationStore

        return MutationStore
    if name in ("QueuedMutation", "MutationKind", "MutationStatus"):
        from evalsync.sync import mutation

        return getattr(mutation, name)
    if name == "ConnectivityMonitor":
        from evalsync.sync.connectivity import ConnectivityMonitor

        return ConnectivityMonitor
    if name == "CredentialGuard":
        from evalsync.sync.credentials import CredentialGuard

        return CredentialGuard
    if name == "RemoteTransport":
        from evalsync.sync.transport import RemoteTransport

        return RemoteTransport
    if name in ("EvalsyncConfig", "load_config"):
        from evalsync import config

        return getattr(config, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
