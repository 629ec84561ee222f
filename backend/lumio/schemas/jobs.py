"""
Job lifecycle — Pydantic models and the state machine

A Job is created on submission and moves through a closed set of states:

    queued ──► processing ──► succeeded
      ▲            │
      └────────────┤ (nack with attempts left / lease expired)
                   ▼
                 failed

Only one worker holds the processing lease at a time. Terminal states never
transition again; the record simply expires after the configured TTL.
"""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel, Field, computed_field

from lumio.core.exceptions import InvalidJobTransitionError
from lumio.schemas.analysis import AnalysisResult


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class JobState(str, Enum):
    QUEUED     = "queued"       # waiting for a worker (first run or retry backoff)
    PROCESSING = "processing"   # claimed by exactly one worker
    SUCCEEDED  = "succeeded"    # JobResult persisted
    FAILED     = "failed"       # attempts exhausted; `error` holds the reason

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)


_ALLOWED_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.QUEUED:     frozenset({JobState.PROCESSING}),
    JobState.PROCESSING: frozenset({JobState.QUEUED, JobState.SUCCEEDED, JobState.FAILED}),
    JobState.SUCCEEDED:  frozenset(),
    JobState.FAILED:     frozenset(),
}


def can_transition(current: JobState, target: JobState) -> bool:
    return target in _ALLOWED_TRANSITIONS[current]


# ---------------------------------------------------------------------------
# Job record
# ---------------------------------------------------------------------------

class JobPayload(BaseModel):
    """Reference to the uploaded file — never the bytes themselves."""
    file_path:  str
    filename:   str
    mime_type:  str
    size_bytes: int = Field(..., ge=0)
    owner_id:   str | None = None


class Job(BaseModel):
    id:                   str
    payload:              JobPayload
    state:                JobState = JobState.QUEUED
    attempts:             int   = 0
    max_attempts:         int   = Field(3, ge=1)
    backoff_base_seconds: float = Field(2.0, ge=0.0)
    percent:              int   = Field(0, ge=0, le=100)
    message:              str | None = None
    error:                str | None = None
    lease_owner:          str | None = None
    lease_expires_at:     float | None = None
    available_at:         float = Field(default_factory=time.time)
    created_at:           float = Field(default_factory=time.time)
    updated_at:           float = Field(default_factory=time.time)
    finished_at:          float | None = None

    def transition(self, target: JobState) -> None:
        """Move to `target` or raise InvalidJobTransitionError."""
        if not can_transition(self.state, target):
            raise InvalidJobTransitionError(self.id, self.state.value, target.value)
        self.state = target
        self.updated_at = time.time()

    def backoff_delay(self, attempt: int | None = None) -> float:
        """Delay before the next attempt: base * 2^(attempt-1)."""
        attempt = self.attempts if attempt is None else attempt
        return self.backoff_base_seconds * (2 ** (max(attempt, 1) - 1))

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def lease_expired(self, now: float | None = None) -> bool:
        if self.lease_expires_at is None:
            return True
        now = time.time() if now is None else now
        return now >= self.lease_expires_at


class RetryDecision(BaseModel):
    """Outcome of a nack: either a scheduled retry or a terminal failure."""
    job_id:        str
    attempt:       int
    will_retry:    bool
    delay_seconds: float = 0.0
    reason:        str


class LeaseStatus(str, Enum):
    """What a worker learns when it reports against its lease."""
    HELD = "held"   # still ours; lease renewed
    LOST = "lost"   # record exists but another owner (or the sweep) took it
    GONE = "gone"   # record deleted by the client or expired


# ---------------------------------------------------------------------------
# Client-facing views
# ---------------------------------------------------------------------------

class JobStatusSnapshot(BaseModel):
    """Polled by clients — GET /jobs/{id}/status."""
    job_id:   str
    status:   JobState
    percent:  int = Field(0, ge=0, le=100)
    message:  str | None = None
    attempts: int = 0


class JobMeta(BaseModel):
    engine:             str
    analysis_engine:    str
    processing_time_ms: int
    pii_detected:       bool = False
    partial:            bool = False
    pages_processed:    int  = 0
    pages_total:        int  = 0
    cached_analysis:    bool = False


class JobResult(BaseModel):
    """Terminal, client-visible record written once by the worker on success."""
    job_id:         str
    filename:       str
    extracted_text: str
    analysis:       AnalysisResult
    meta:           JobMeta


class SubmitResponse(BaseModel):
    job_id: str
    status: JobState = JobState.QUEUED


class QueueStats(BaseModel):
    """Operational counts for dashboards."""
    queued:     int = 0
    processing: int = 0
    succeeded:  int = 0
    failed:     int = 0

    @computed_field  # type: ignore[misc]
    @property
    def depth(self) -> int:
        return self.queued
