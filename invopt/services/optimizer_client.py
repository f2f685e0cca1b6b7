"""HTTP client for the remote optimization engine."""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import requests

from invopt.services.item_catalog import ItemSnapshot

logger = logging.getLogger(__name__)

# Keep logged/stored response bodies short.
ERROR_BODY_LIMIT = 500

# Small reads keep the deadline check responsive to a server that trickles bytes.
READ_CHUNK_SIZE = 1


class OptimizerError(Exception):
    """The engine call failed: transport error, non-2xx status or bad JSON."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def build_payload(
    job_id: int,
    items: Sequence[ItemSnapshot],
    horizon_days: Optional[int] = None,
    service_level: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Build the request body for one batch.

    ``horizon_days`` is sent only when positive and ``service_level`` only when
    strictly between 0 and 1; otherwise the engine applies its own defaults.
    """
    payload: Dict[str, Any] = {"job_id": job_id}
    if horizon_days is not None and horizon_days > 0:
        payload["horizon_days"] = int(horizon_days)
    if service_level is not None and 0 < service_level < 1:
        payload["service_level"] = float(service_level)
    payload["items"] = [item.to_payload() for item in items]
    return payload


class OptimizerClient:
    """
    Synchronous client for the optimization engine.

    One POST per batch, no retries: a stalled call should fail its batch, not
    hold the job. ``timeout`` caps the whole call, body included.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 120.0,
        connect_timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._session = session or requests.Session()

    def optimize_batch(self, payload: Dict[str, Any]) -> Any:
        """
        POST a batch payload and return the decoded JSON body.

        Raises:
            OptimizerError: On transport failure, a call running past
                ``timeout`` seconds, HTTP status outside 200-299, or a body
                that is not valid JSON.
        """
        item_count = len(payload.get("items", []))
        logger.info(f"POST {self.url} (job {payload.get('job_id')}, {item_count} item(s))")

        deadline = time.monotonic() + self.timeout
        try:
            response = self._session.post(
                self.url,
                json=payload,
                headers={"Accept": "application/json"},
                timeout=(self.connect_timeout, self.timeout),
                stream=True,
            )
            try:
                content = self._read_body(response, deadline)
            finally:
                response.close()
        except requests.exceptions.Timeout as e:
            raise OptimizerError(f"Request timed out after {self.timeout}s: {e}") from e
        except requests.exceptions.RequestException as e:
            if time.monotonic() >= deadline:
                raise self._deadline_error() from e
            raise OptimizerError(f"Request failed: {e}") from e

        text = content.decode(response.encoding or "utf-8", errors="replace")
        if not 200 <= response.status_code < 300:
            body = text[:ERROR_BODY_LIMIT]
            raise OptimizerError(
                f"HTTP {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            return json.loads(text)
        except ValueError as e:
            body = text[:ERROR_BODY_LIMIT]
            raise OptimizerError(
                f"Invalid JSON from optimizer: {e}",
                status_code=response.status_code,
                body=body,
            ) from e

    def _read_body(self, response: requests.Response, deadline: float) -> bytes:
        chunks = []
        for piece in response.iter_content(chunk_size=READ_CHUNK_SIZE):
            if time.monotonic() >= deadline:
                raise self._deadline_error()
            chunks.append(piece)
        if time.monotonic() >= deadline:
            raise self._deadline_error()
        return b"".join(chunks)

    def _deadline_error(self) -> OptimizerError:
        return OptimizerError(f"Request exceeded the {self.timeout}s time limit")

    def close(self) -> None:
        self._session.close()


def chunk(items: Sequence[ItemSnapshot], size: int) -> List[List[ItemSnapshot]]:
    """Split ``items`` into contiguous batches of at most ``size``, preserving order."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]
