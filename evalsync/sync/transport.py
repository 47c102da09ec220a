# EVALSYNC Remote Transport
# Replays queued mutations against the remote API over httpx

import logging
from typing import Any, Optional, Protocol

import httpx

from evalsync.config.schema import RemoteConfig
from evalsync.errors import CredentialRejected, NetworkUnavailable, PayloadRejected, ServerTransient, SyncError
from evalsync.sync.mutation import EvaluationSubmission, QueuedMutation

logger = logging.getLogger(__name__)

_REASON_FIELDS = ("error", "message", "detail")


class Transport(Protocol):
    """Anything that can deliver one mutation or raise a SyncError."""

    async def deliver(self, mutation: QueuedMutation, credential: Optional[str]) -> None: ...


def classify_response(status_code: int, reason: str = "") -> Optional[SyncError]:
    """
    Map an HTTP status to the failure taxonomy.

    Args:
        status_code: Response status.
        reason: Server-provided reason, used for payload rejections.

    Returns:
        None for 2xx, otherwise the error to raise.
    """
    if 200 <= status_code < 300:
        return None
    if status_code in (401, 403):
        return CredentialRejected(f"HTTP {status_code}: credential rejected", status_code=status_code)
    if 400 <= status_code < 500:
        return PayloadRejected(reason or f"HTTP {status_code}", status_code=status_code)
    if status_code >= 500:
        return ServerTransient(f"HTTP {status_code}: server error", status_code=status_code)
    # 1xx/3xx never count as delivered
    return ServerTransient(f"HTTP {status_code}: unexpected response", status_code=status_code)


def extract_reason(response: httpx.Response) -> str:
    """Best-effort server reason from a JSON error body or plain text."""
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()[:500]

    if isinstance(data, dict):
        for key in _REASON_FIELDS:
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return response.text.strip()[:500]


class RemoteTransport:
    """
    Delivers mutations with ``httpx.AsyncClient``.

    Evaluations are POSTed to the configured evaluation endpoint; generic
    updates replay their own method and endpoint. The mutation id is sent as
    an idempotency key so the server can spot at-least-once redelivery.
    """

    def __init__(self, config: RemoteConfig, *, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout),
        )

    def build_request(self, mutation: QueuedMutation, credential: Optional[str]) -> httpx.Request:
        """Build the replay request for one mutation."""
        headers = {
            "Content-Type": "application/json",
            self.config.idempotency_header: mutation.id,
        }
        if credential:
            headers["Authorization"] = f"Bearer {credential}"

        payload = mutation.payload
        body: Any
        if isinstance(payload, EvaluationSubmission):
            method, url, body = "POST", self._url(self.config.evaluation_endpoint), payload.body
        else:
            method, url, body = payload.method, self._url(payload.endpoint), payload.body

        return self.client.build_request(method, url, json=body, headers=headers)

    async def deliver(self, mutation: QueuedMutation, credential: Optional[str]) -> None:
        """
        Send one mutation.

        Raises:
            NetworkUnavailable: Transport failure or timeout.
            ServerTransient: 5xx response.
            CredentialRejected: 401/403 response.
            PayloadRejected: Other 4xx response.
        """
        request = self.build_request(mutation, credential)
        try:
            response = await self.client.send(request)
        except httpx.TransportError as e:
            raise NetworkUnavailable(f"{type(e).__name__}: {e}") from e

        try:
            reason = "" if response.is_success else extract_reason(response)
        finally:
            await response.aclose()

        error = classify_response(response.status_code, reason)
        if error is not None:
            raise error
        logger.debug("Delivered %s: HTTP %s", mutation.id, response.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.config.base_url}/{endpoint.lstrip('/')}"
