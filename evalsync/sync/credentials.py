# EVALSYNC Credentials
# Structural credential checks and live-credential preference

import logging
from pathlib import Path
from typing import Optional, Protocol

from evalsync.sync.mutation import QueuedMutation

logger = logging.getLogger(__name__)


class CredentialProvider(Protocol):
    """The external session subsystem, seen as a black box."""

    def current_credential(self) -> Optional[str]:
        """Return the live bearer credential, or None when signed out."""
        ...


class StaticCredentialProvider:
    """Provider holding a credential set by the host."""

    def __init__(self, credential: Optional[str] = None):
        self.credential = credential

    def current_credential(self) -> Optional[str]:
        return self.credential


class FileCredentialProvider:
    """Provider reading the live token from a file on every call."""

    def __init__(self, path: Path):
        self.path = path

    def current_credential(self) -> Optional[str]:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read token file %s: %s", self.path, e)
            return None
        return token or None


class CredentialGuard:
    """
    Decides whether a credential is usable before a network attempt.

    Replay always prefers the live credential: the snapshot stored on an
    item was valid at enqueue time and is stale by construction. The guard
    never refreshes sessions itself.
    """

    def __init__(self, provider: CredentialProvider, *, segment_count: int = 3):
        self.provider = provider
        self.segment_count = segment_count
        self.session_valid = True

    def is_well_formed(self, credential: Optional[str]) -> bool:
        """Structural check only: expected dot-separated segment count, none empty."""
        if not credential or not isinstance(credential, str):
            return False
        parts = credential.split(".")
        return len(parts) == self.segment_count and all(parts)

    def current_credential(self) -> Optional[str]:
        """The live session credential, independent of any queued item."""
        return self.provider.current_credential()

    def credential_for(self, mutation: QueuedMutation) -> Optional[str]:
        """Credential to replay an item with: live first, snapshot as fallback."""
        live = self.current_credential()
        if self.is_well_formed(live):
            return live
        return mutation.credential_snapshot

    def session_invalidated(self) -> None:
        """Passive signal: the active session is no longer valid."""
        if self.session_valid:
            logger.info("Session invalidated")
        self.session_valid = False

    def session_restored(self) -> None:
        """Passive signal: the user signed in again."""
        if not self.session_valid:
            logger.info("Session restored")
        self.session_valid = True
