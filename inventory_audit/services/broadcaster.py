"""Fan-out of live job events to attached subscribers."""

import asyncio
import logging
from collections import deque
from typing import AsyncIterator, Deque, List, Optional

from inventory_audit.models.events import (
    CompleteEvent,
    EndEvent,
    JobErrorEvent,
    JobEvent,
    LogEvent,
)
from inventory_audit.models.job import Job, JobStatus
from inventory_audit.models.outcome import LogEntry, Severity
from inventory_audit.services.job_store import JobStore
from inventory_audit.services.summarizer import build_report

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class QueueSink:
    """Subscriber with its own buffer, drained by one consumer.

    ``send`` never blocks. Replayed history is always buffered; live events
    beyond ``max_backlog`` unread entries close the sink so the broadcaster
    drops it.
    """

    def __init__(self, max_backlog: int = 1000) -> None:
        self.max_backlog = max_backlog
        self.closed = False
        self._buffer: Deque[JobEvent] = deque()
        self._ready = asyncio.Event()

    def send(self, event: JobEvent, replay: bool = False) -> bool:
        """Buffer an event. Returns False if the sink can no longer accept events."""
        if self.closed:
            return False
        if not replay and len(self._buffer) >= self.max_backlog:
            self.close()
            return False
        self._buffer.append(event)
        self._ready.set()
        return True

    def close(self) -> None:
        self.closed = True
        self._ready.set()

    def pending(self) -> List[JobEvent]:
        """Drain whatever is buffered right now without waiting."""
        events = list(self._buffer)
        self._buffer.clear()
        return events

    async def events(self) -> AsyncIterator[JobEvent]:
        """Yield buffered and future events until the stream-end marker."""
        while True:
            while self._buffer:
                event = self._buffer.popleft()
                yield event
                if isinstance(event, EndEvent):
                    return
            if self.closed:
                return
            self._ready.clear()
            await self._ready.wait()


class EventBroadcaster:
    """Publishes job events to every sink currently attached to the job."""

    def __init__(self, store: JobStore) -> None:
        self.store = store

    def attach(self, job_id: str, sink: QueueSink) -> Job:
        """
        Register a sink and replay the job's history into it.

        Buffered logs are replayed first; for finished jobs the terminal event
        and the stream-end marker follow, so late subscribers see the whole
        run without anything being processed again.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job = self.store.require(job_id)
        self.store.cancel_cleanup(job)
        job.subscribers.add(sink)

        for entry in list(job.logs):
            sink.send(LogEvent(entry=entry), replay=True)

        terminal = self.terminal_events(job)
        for event in terminal:
            sink.send(event, replay=True)
        return job

    def detach(self, job_id: str, sink: QueueSink) -> None:
        """Deregister a sink; the last one leaving a finished job arms its cleanup."""
        job = self.store.get(job_id)
        if job is None:
            return
        job.subscribers.discard(sink)
        if not job.subscribers and job.is_terminal:
            self.store.schedule_cleanup(job)

    def publish(self, job: Job, event: JobEvent) -> None:
        """Record log events on the job and deliver the event to every sink."""
        if isinstance(event, LogEvent):
            job.logs.append(event.entry)

        for sink in list(job.subscribers):
            if not sink.send(event):
                logger.warning(f"[JOB {job.id}] Dropping subscriber that stopped accepting events")
                job.subscribers.discard(sink)

    def log(
        self,
        job: Job,
        message: str,
        severity: Severity = Severity.INFO,
        related_id: Optional[str] = None,
    ) -> LogEntry:
        """Append a log line to the job and publish it."""
        entry = LogEntry(message=message, severity=severity, related_id=related_id)
        prefix = f"[ID {related_id}] " if related_id else ""
        logger.log(_LOG_LEVELS[severity], f"[JOB {job.id}] {prefix}{message}")
        self.publish(job, LogEvent(entry=entry))
        return entry

    def terminal_events(self, job: Job) -> List[JobEvent]:
        """Terminal event plus stream-end marker for a finished job, else nothing."""
        if job.status == JobStatus.COMPLETE:
            report = job.report or build_report(job, final=True)
            return [CompleteEvent(report=report), EndEvent(ok=True)]
        if job.status == JobStatus.ERROR:
            report = job.report or build_report(job, final=True)
            return [
                JobErrorEvent(error=job.error or "Unexpected processing error", report=report),
                EndEvent(ok=False),
            ]
        return []
