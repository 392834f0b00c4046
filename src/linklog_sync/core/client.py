"""HTTP client for the spreadsheet endpoint.

``RemoteClient.send`` performs exactly one POST and never raises for
transport or protocol failures: every outcome is turned into a
``SendResult`` by ``classify_response``, the single place where HTTP
statuses and response envelopes are mapped to error kinds.  The immediate
write path and the queue drain path both go through it.

Envelope returned by the endpoint::

    {"ok": true, "rowId": 42, "message": "Row updated"}
    {"ok": false, "error": "Sheet is locked", "terminal": false}

The endpoint must upsert keyed by ``profileUrl`` in both modes: queued
writes are replayed after lost responses, and a replayed ``append`` must
not add a second row.
"""

import logging
import threading
from typing import Any

import requests

from ..config import Config
from ..sync.models import ErrorKind, Record, SendResult, WriteMode

logger = logging.getLogger(__name__)


def classify_response(status_code: int, body: Any) -> SendResult:
    """Map an HTTP status and decoded JSON body to a ``SendResult``.

    Args:
        status_code: HTTP status code of the response.
        body: Decoded JSON body, or ``None`` if the body was not JSON.

    Returns:
        ``SendResult.success`` for a 2xx response whose envelope reports
        ``ok: true``; otherwise a failure carrying the error kind.
    """
    envelope = body if isinstance(body, dict) else {}
    remote_message = envelope.get("error") or envelope.get("message")

    match status_code:
        case 401 | 403:
            return SendResult.failure(
                ErrorKind.AUTH_ERROR,
                remote_message or "Authentication failed - check your token",
                status_code,
            )
        case 429:
            return SendResult.failure(
                ErrorKind.RATE_LIMITED,
                remote_message or "Rate limited by endpoint",
                status_code,
            )
        case s if s >= 500:
            return SendResult.failure(
                ErrorKind.SERVER_ERROR,
                f"Server error: {s}",
                status_code,
            )
        case s if 400 <= s < 500:
            detail = f": {remote_message}" if remote_message else ""
            return SendResult.failure(
                ErrorKind.CLIENT_ERROR,
                f"HTTP error: {s}{detail}",
                status_code,
            )
        case s if not 200 <= s < 300:
            return SendResult.failure(
                ErrorKind.PROTOCOL_ERROR,
                f"Unexpected HTTP status: {s}",
                status_code,
            )

    if not isinstance(body, dict):
        return SendResult.failure(
            ErrorKind.PROTOCOL_ERROR,
            "Response is not a JSON object",
            status_code,
        )

    if body.get("ok") is not True:
        return SendResult.failure(
            ErrorKind.PROTOCOL_ERROR,
            body.get("error") or "Unknown error from endpoint",
            status_code,
            terminal=body.get("terminal") is True,
        )

    row_id = body.get("rowId")
    return SendResult.success(str(row_id) if row_id is not None else None)


def _decode_body(response: requests.Response) -> Any:
    """Return the decoded JSON body, or ``None`` if it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return None


class RemoteClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    @property
    def timeout(self) -> tuple[float, float]:
        """(connect, read) timeout applied to every request."""
        return (self.config.connect_timeout, self.config.read_timeout)

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {"Authorization": f"Bearer {self.config.token}"}
        )
        session.verify = not self.config.insecure
        return session

    def send(self, record: Record, mode: WriteMode) -> SendResult:
        """
        Perform one write attempt for *record* in *mode*.

        Args:
            record: The record to write.
            mode: ``append`` or ``update``.

        Returns:
            Classified ``SendResult``; never raises for HTTP failures.
        """
        payload = {"mode": mode.value, **record.to_row()}
        try:
            response = self._get_session().post(
                self.config.endpoint_url,
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            logger.warning("Write for %s timed out: %s", record.key, exc)
            return SendResult.failure(
                ErrorKind.NETWORK_ERROR, f"Request timed out: {exc}"
            )
        except requests.RequestException as exc:
            logger.warning("Write for %s got no response: %s", record.key, exc)
            return SendResult.failure(
                ErrorKind.NETWORK_ERROR, f"No response from endpoint: {exc}"
            )

        result = classify_response(
            response.status_code, _decode_body(response)
        )
        if result.ok:
            logger.debug(
                "%s %s -> row %s", mode.value, record.key, result.remote_id
            )
        else:
            logger.debug(
                "%s %s failed: %s (%s)",
                mode.value,
                record.key,
                result.error.message,
                result.error.kind.value,
            )
        return result

    def validate_connection(self) -> int:
        """
        Check that the endpoint is reachable and accepts the token.

        Sends an authenticated GET to the endpoint URL.

        Returns:
            The HTTP status code of the (successful) response.

        Raises:
            requests.HTTPError: If the endpoint answers with a non-2xx status.
            requests.RequestException: If no response is obtained.
        """
        response = self._get_session().get(
            self.config.endpoint_url, timeout=self.timeout
        )
        response.raise_for_status()
        return response.status_code
