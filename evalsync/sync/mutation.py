# EVALSYNC Queued Mutation
# Unit of deferred work and its serialized form

import copy
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Union

from evalsync.errors import SyncError

HTTP_METHODS = ("POST", "PUT", "PATCH", "DELETE")


class MutationKind(str, Enum):
    """Tag for the payload variant."""

    EVALUATION = "evaluation"
    UPDATE = "update"


class MutationStatus(str, Enum):
    """Lifecycle status of a queued mutation."""

    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"  # Terminal, removed instead of persisted
    FAILED = "failed"  # Terminal dead letter, kept for the user


@dataclass(frozen=True)
class EvaluationSubmission:
    """A structured evaluation payload posted to the evaluation endpoint."""

    body: dict[str, Any]

    def __post_init__(self) -> None:
        if not isinstance(self.body, dict):
            raise TypeError("Evaluation body must be a mapping")
        object.__setattr__(self, "body", copy.deepcopy(self.body))

    def to_dict(self) -> dict[str, Any]:
        return {"body": copy.deepcopy(self.body)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EvaluationSubmission":
        return cls(body=data["body"])


@dataclass(frozen=True)
class GenericUpdate:
    """An arbitrary record edit: method + endpoint + JSON body."""

    method: str
    endpoint: str
    body: Any = None

    def __post_init__(self) -> None:
        method = str(self.method).upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported method for queued update: {self.method}")
        if not self.endpoint:
            raise ValueError("Queued update needs an endpoint")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "body", copy.deepcopy(self.body))

    def to_dict(self) -> dict[str, Any]:
        return {"method": self.method, "endpoint": self.endpoint, "body": copy.deepcopy(self.body)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GenericUpdate":
        return cls(method=data["method"], endpoint=data["endpoint"], body=data.get("body"))


Payload = Union[EvaluationSubmission, GenericUpdate]


@dataclass(frozen=True)
class FailureInfo:
    """Why an item ended up in the dead-letter state."""

    kind: str
    message: str
    status_code: Optional[int] = None

    @classmethod
    def from_error(cls, error: SyncError) -> "FailureInfo":
        return cls(kind=error.kind, message=str(error), status_code=error.status_code)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FailureInfo":
        return cls(kind=data["kind"], message=data.get("message", ""), status_code=data.get("status_code"))


@dataclass
class QueuedMutation:
    """
    A user-initiated write deferred for later delivery.

    Only ``status`` (with its ``failure`` annotation) and
    ``credential_snapshot`` ever change after enqueue.
    """

    id: str
    kind: MutationKind
    payload: Payload
    credential_snapshot: Optional[str]
    enqueued_at: float = field(default_factory=time.time)
    status: MutationStatus = MutationStatus.PENDING
    failure: Optional[FailureInfo] = None

    def __post_init__(self) -> None:
        expected = EvaluationSubmission if self.kind == MutationKind.EVALUATION else GenericUpdate
        if not isinstance(self.payload, expected):
            raise TypeError(f"{self.kind.value} mutation needs a {expected.__name__} payload")

    @classmethod
    def evaluation(cls, body: dict[str, Any], credential: Optional[str]) -> "QueuedMutation":
        """Create a pending evaluation submission with a fresh id."""
        return cls(
            id=new_mutation_id(MutationKind.EVALUATION),
            kind=MutationKind.EVALUATION,
            payload=EvaluationSubmission(body=body),
            credential_snapshot=credential,
        )

    @classmethod
    def update(cls, method: str, endpoint: str, body: Any, credential: Optional[str]) -> "QueuedMutation":
        """Create a pending generic update with a fresh id."""
        return cls(
            id=new_mutation_id(MutationKind.UPDATE),
            kind=MutationKind.UPDATE,
            payload=GenericUpdate(method=method, endpoint=endpoint, body=body),
            credential_snapshot=credential,
        )

    @property
    def label(self) -> str:
        """Short human-readable description."""
        if isinstance(self.payload, GenericUpdate):
            return f"{self.payload.method} {self.payload.endpoint}"
        return "Evaluation submission"

    def copy(self) -> "QueuedMutation":
        return replace(self, payload=copy.deepcopy(self.payload))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "payload": self.payload.to_dict(),
            "credential_snapshot": self.credential_snapshot,
            "enqueued_at": self.enqueued_at,
            "status": self.status.value,
        }
        if self.failure is not None:
            data["failure"] = self.failure.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueuedMutation":
        """
        Create from dictionary.

        Raises:
            KeyError, TypeError, ValueError: If the record is malformed.
        """
        kind = MutationKind(data["kind"])
        payload_data = data["payload"]
        if kind == MutationKind.EVALUATION:
            payload: Payload = EvaluationSubmission.from_dict(payload_data)
        else:
            payload = GenericUpdate.from_dict(payload_data)

        failure_data = data.get("failure")
        return cls(
            id=str(data["id"]),
            kind=kind,
            payload=payload,
            credential_snapshot=data.get("credential_snapshot"),
            enqueued_at=float(data["enqueued_at"]),
            status=MutationStatus(data.get("status", MutationStatus.PENDING.value)),
            failure=FailureInfo.from_dict(failure_data) if failure_data else None,
        )


def new_mutation_id(kind: MutationKind) -> str:
    """Generate an opaque id, prefixed by kind."""
    prefix = "eval" if kind == MutationKind.EVALUATION else "update"
    return f"{prefix}_{uuid.uuid4().hex}"
