# EVALSYNC Sync Module
# Offline mutation queue and synchronization engine

from evalsync.sync.bridges import (
    ConsoleNotificationBridge,
    DeferredReplayBridge,
    LoopReplayBridge,
    NotificationBridge,
    NullNotificationBridge,
    NullReplayBridge,
    RecordingNotificationBridge,
)
from evalsync.sync.connectivity import ConnectivityMonitor, ConnectivityState
from evalsync.sync.context import SyncContext
from evalsync.sync.coordinator import DrainResult, ItemOutcome, ItemResult, SyncCoordinator
from evalsync.sync.credentials import (
    CredentialGuard,
    CredentialProvider,
    FileCredentialProvider,
    StaticCredentialProvider,
)
from evalsync.sync.mutation import (
    EvaluationSubmission,
    FailureInfo,
    GenericUpdate,
    MutationKind,
    MutationStatus,
    QueuedMutation,
)
from evalsync.sync.store import MutationStore
from evalsync.sync.transport import RemoteTransport, classify_response

__all__ = [
    # Mutation
    "QueuedMutation",
    "MutationKind",
    "MutationStatus",
    "EvaluationSubmission",
    "GenericUpdate",
    "FailureInfo",
    # Store
    "MutationStore",
    # Connectivity
    "ConnectivityMonitor",
    "ConnectivityState",
    # Credentials
    "CredentialGuard",
    "CredentialProvider",
    "StaticCredentialProvider",
    "FileCredentialProvider",
    # Transport
    "RemoteTransport",
    "classify_response",
    # Coordinator
    "SyncCoordinator",
    "DrainResult",
    "ItemOutcome",
    "ItemResult",
    # Bridges
    "DeferredReplayBridge",
    "NotificationBridge",
    "NullReplayBridge",
    "LoopReplayBridge",
    "NullNotificationBridge",
    "RecordingNotificationBridge",
    "ConsoleNotificationBridge",
    # Context
    "SyncContext",
]
