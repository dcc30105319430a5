"""Pydantic data models for Inventory Audit."""

from inventory_audit.models.events import (
    CompleteEvent,
    EndEvent,
    ItemProcessedEvent,
    JobErrorEvent,
    JobEvent,
    LogEvent,
    PausedEvent,
    ResumedEvent,
    StoppingEvent,
    parse_event,
)
from inventory_audit.models.job import TERMINAL_STATUSES, Job, JobStatus
from inventory_audit.models.outcome import ItemOutcome, LogEntry, OutcomeKind, Severity
from inventory_audit.models.report import Report, Summary

__all__ = [
    "Job",
    "JobStatus",
    "TERMINAL_STATUSES",
    "ItemOutcome",
    "OutcomeKind",
    "LogEntry",
    "Severity",
    "Report",
    "Summary",
    "JobEvent",
    "LogEvent",
    "ItemProcessedEvent",
    "PausedEvent",
    "ResumedEvent",
    "StoppingEvent",
    "CompleteEvent",
    "JobErrorEvent",
    "EndEvent",
    "parse_event",
]
