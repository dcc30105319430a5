"""Job Pydantic model and lifecycle status."""

import asyncio
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Set

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from inventory_audit.models.outcome import ItemOutcome, LogEntry
from inventory_audit.models.report import Report


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAUSED = "paused"
    STOPPING = "stopping"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETE, JobStatus.ERROR})


class Job(BaseModel):
    """One batch run over a deduplicated queue of identifiers.

    Public fields are the observable state. Subscribers, control flags, the
    runner task and the cleanup timer are transient and live in private
    attributes.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.PENDING
    queue: List[str] = Field(default_factory=list)
    cursor: int = 0
    results: List[ItemOutcome] = Field(default_factory=list)
    logs: List[LogEntry] = Field(default_factory=list)
    notify_target: Optional[str] = None
    duplicates_ignored: int = 0
    report: Optional[Report] = None
    error: Optional[str] = None
    stopped_early: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    _subscribers: Set[Any] = PrivateAttr(default_factory=set)
    _pause_requested: bool = PrivateAttr(default=False)
    _stop_requested: bool = PrivateAttr(default=False)
    _finalizing: bool = PrivateAttr(default=False)
    _task: Optional[asyncio.Task] = PrivateAttr(default=None)
    _cleanup_handle: Optional[asyncio.TimerHandle] = PrivateAttr(default=None)

    @field_validator("queue")
    @classmethod
    def queue_is_unique(cls, v: List[str]) -> List[str]:
        """Identifiers in the queue must be unique."""
        if len(set(v)) != len(v):
            raise ValueError("queue must not contain duplicate identifiers")
        return v

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def total(self) -> int:
        return len(self.queue)

    @property
    def subscribers(self) -> Set[Any]:
        return self._subscribers

    @property
    def pause_requested(self) -> bool:
        return self._pause_requested

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_finalizing(self) -> bool:
        """Queue drained, stopped or faulted; the terminal report is being written."""
        return self._finalizing
