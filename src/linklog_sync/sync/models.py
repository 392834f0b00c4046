"""Pydantic models for the write-reconciliation engine.

Defines the core data contracts used across all sync modules:

- ``WriteMode``: append vs update, chosen from the local index.
- ``ErrorKind``: classification of a failed write attempt.
- ``Record``: one captured profile snapshot (closed 8-field schema).
- ``IndexEntry``: last known remote row for a profile URL.
- ``QueueItem``: a pending write owned by the durable queue.
- ``SendResult``: outcome of one HTTP round trip.
- ``WriteOutcome``: what the write coordinator reports back to the UI.
- ``DrainAction``, ``ItemResult``, ``DrainReport``: results of a drain pass.

All models are frozen (immutable); a retry produces a new ``QueueItem``
value instead of mutating the old one.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from ..validators import normalize_date_iso, validate_profile_url


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class WriteMode(str, Enum):
    """Write mode sent to the remote endpoint."""

    APPEND = "append"
    UPDATE = "update"


class ErrorKind(str, Enum):
    """Classification of a failed write attempt."""

    AUTH_ERROR = "auth_error"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    NETWORK_ERROR = "network_error"
    PROTOCOL_ERROR = "protocol_error"
    QUEUE_EXHAUSTED = "queue_exhausted"

    @property
    def retryable(self) -> bool:
        """Whether a write failing with this kind belongs in the queue."""
        return self in _RETRYABLE


_RETRYABLE = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVER_ERROR,
        ErrorKind.NETWORK_ERROR,
        ErrorKind.PROTOCOL_ERROR,
    }
)

# Column order of the remote sheet.
RECORD_FIELDS: tuple[str, ...] = (
    "name",
    "title",
    "company",
    "profile_url",
    "requested_at",
    "follow_up_date",
    "tag",
    "notes",
)


class Record(BaseModel):
    """A captured profile snapshot.

    Identity is ``profile_url``.  The eight column fields are strings;
    ``captured_at`` is the write timestamp and is persisted locally but not
    sent as a column.  Field names are accepted in snake_case or in the
    camelCase used on the wire (``profileUrl``, ``followUpDate``...).

    Attributes:
        name: Display name.
        title: Job title.
        company: Company name.
        profile_url: Canonical profile URL (identity key).
        requested_at: When the connection request was made.
        follow_up_date: Optional follow-up date, normalised to YYYY-MM-DD.
        tag: Free-form tag.
        notes: Free-form notes.
        captured_at: ISO 8601 timestamp of this snapshot.
    """

    name: str = ""
    title: str = ""
    company: str = ""
    profile_url: str
    requested_at: str = ""
    follow_up_date: str = ""
    tag: str = ""
    notes: str = ""
    captured_at: str = Field(default_factory=utc_now_iso)

    model_config = {
        "frozen": True,
        "extra": "forbid",
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    @field_validator("profile_url")
    @classmethod
    def _check_profile_url(cls, value: str) -> str:
        is_valid, reason = validate_profile_url(value)
        if not is_valid:
            raise ValueError(reason)
        return value.strip()

    @field_validator("follow_up_date")
    @classmethod
    def _normalize_follow_up(cls, value: str) -> str:
        return normalize_date_iso(value)

    @classmethod
    def from_payload(cls, payload: dict) -> Record:
        """Build a record from a scraper/form payload.

        Raises:
            ValueError: If the payload has unknown keys, non-string values,
                or an invalid profile URL.
        """
        return cls.model_validate(payload)

    @property
    def key(self) -> str:
        """Identity key used by the index and the queue."""
        return self.profile_url

    def to_row(self) -> dict[str, str]:
        """Return the eight column fields keyed by their wire names."""
        return self.model_dump(
            by_alias=True, include=set(RECORD_FIELDS)
        )


class IndexEntry(BaseModel):
    """Last known remote identity for a profile URL.

    Attributes:
        profile_url: Identity key.
        remote_id: Row reference assigned by the remote endpoint.
        last_synced: ISO 8601 timestamp of the last successful write.
    """

    profile_url: str
    remote_id: str | None = None
    last_synced: str

    model_config = {"frozen": True}


class QueueItem(BaseModel):
    """A pending write owned by the durable queue.

    Attributes:
        id: Opaque unique identifier of this queue entry.
        record: The record to write.
        mode: Write mode chosen at enqueue time; never re-derived on retry.
        retry_count: Number of failed drain attempts so far.
        enqueued_at: ISO 8601 timestamp of the original enqueue.
        last_error: Message of the most recent failure.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    record: Record
    mode: WriteMode
    retry_count: int = Field(default=0, ge=0)
    enqueued_at: str = Field(default_factory=utc_now_iso)
    last_error: str | None = None

    model_config = {"frozen": True}

    def next_attempt(self, error: str) -> QueueItem:
        """Return a copy with the retry counter incremented."""
        return self.model_copy(
            update={
                "retry_count": self.retry_count + 1,
                "last_error": error,
            }
        )


class RemoteError(BaseModel):
    """A classified failure from the remote endpoint.

    Attributes:
        kind: Error classification.
        message: Human-readable description for the UI and the logs.
        status_code: HTTP status, when a response was received.
        terminal: Set when the response envelope itself declares the
            failure final; overrides the retry policy of ``kind``.
    """

    kind: ErrorKind
    message: str
    status_code: int | None = None
    terminal: bool = False

    model_config = {"frozen": True}

    @property
    def retryable(self) -> bool:
        """Whether the failed write should be queued or kept in the queue."""
        return self.kind.retryable and not self.terminal


class SendResult(BaseModel):
    """Outcome of one write attempt.

    Exactly one of ``remote_id``/``error`` is meaningful: ``ok=True``
    carries the (possibly absent) row reference, ``ok=False`` the error.
    """

    ok: bool
    remote_id: str | None = None
    error: RemoteError | None = None

    model_config = {"frozen": True}

    @classmethod
    def success(cls, remote_id: str | None) -> SendResult:
        return cls(ok=True, remote_id=remote_id)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        status_code: int | None = None,
        terminal: bool = False,
    ) -> SendResult:
        return cls(
            ok=False,
            error=RemoteError(
                kind=kind,
                message=message,
                status_code=status_code,
                terminal=terminal,
            ),
        )


class WriteOutcome(BaseModel):
    """Result of ``WriteCoordinator.write`` handed back to the UI.

    Attributes:
        mode: Mode used for the immediate attempt.
        success: Whether the immediate attempt succeeded.
        queued: Whether the record was queued for a later retry.
        error: Message of the failure, if any.
        error_kind: Classification of the failure, if any.
        remote_id: Row reference on success.
    """

    mode: WriteMode
    success: bool
    queued: bool = False
    error: str | None = None
    error_kind: ErrorKind | None = None
    remote_id: str | None = None

    model_config = {"frozen": True}


class DrainAction(str, Enum):
    """What a drain pass did with one queue item."""

    SYNCED = "synced"
    REQUEUED = "requeued"
    DROPPED = "dropped"


class ItemResult(BaseModel):
    """Result of processing one queue item in a drain pass."""

    profile_url: str
    mode: WriteMode
    action: DrainAction
    retry_count: int
    error: str | None = None
    error_kind: ErrorKind | None = None

    model_config = {"frozen": True}


class DrainReport(BaseModel):
    """Aggregate report for one drain pass.

    Attributes:
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass completed.
        results: Per-item results in processing order.
        remaining: Queue length after the pass was persisted.
    """

    started_at: str
    completed_at: str | None = None
    results: list[ItemResult] = []
    remaining: int = 0

    model_config = {"frozen": True}

    @property
    def synced(self) -> list[ItemResult]:
        """Items written successfully."""
        return [r for r in self.results if r.action == DrainAction.SYNCED]

    @property
    def requeued(self) -> list[ItemResult]:
        """Items kept for another attempt."""
        return [
            r for r in self.results if r.action == DrainAction.REQUEUED
        ]

    @property
    def dropped(self) -> list[ItemResult]:
        """Items removed without a successful write."""
        return [r for r in self.results if r.action == DrainAction.DROPPED]

    def summary(self) -> str:
        """One-line summary with counts by action."""
        return (
            f"Drained {len(self.results)} items: "
            f"{len(self.synced)} synced, {len(self.requeued)} requeued, "
            f"{len(self.dropped)} dropped, {self.remaining} remaining"
        )
