"""Job runner: drives one job's queue through the item processor.

State machine::

    pending -> processing
    processing <-> paused
    processing | paused -> stopping -> complete
    processing -> complete          (queue drained)
    processing -> error             (orchestration fault)

Exactly one identifier is in flight per job. Pause and stop are flags set by
control signals and honored by the runner between items only. Once the loop
starts finalizing (history write, final report) every control signal is
rejected.
"""

import asyncio
import logging
from datetime import datetime
from typing import Iterable, Optional

from inventory_audit.models.events import (
    CompleteEvent,
    EndEvent,
    ItemProcessedEvent,
    JobErrorEvent,
    PausedEvent,
    ResumedEvent,
    StoppingEvent,
)
from inventory_audit.models.job import Job, JobStatus
from inventory_audit.models.outcome import Severity
from inventory_audit.models.report import Report
from inventory_audit.services.broadcaster import EventBroadcaster
from inventory_audit.services.history import HistoryStore
from inventory_audit.services.item_processor import ItemProcessor
from inventory_audit.services.job_store import JobStore
from inventory_audit.services.notifier import Notifier, NotifyStage
from inventory_audit.services.summarizer import build_report, summarize
from inventory_audit.utils.errors import HistoryError, InvalidTransitionError

logger = logging.getLogger(__name__)


class JobRunner:
    """Owns job execution and the control signals that steer it."""

    def __init__(
        self,
        store: JobStore,
        broadcaster: EventBroadcaster,
        processor: ItemProcessor,
        notifier: Optional[Notifier] = None,
        history: Optional[HistoryStore] = None,
    ) -> None:
        """
        Initialize the JobRunner.

        Args:
            store: Registry the jobs live in
            broadcaster: Event fan-out for live subscribers
            processor: Two-stage checker invoked once per identifier
            notifier: Webhook notifier for lifecycle transitions (optional)
            history: Persistence collaborator merged after every job (optional)
        """
        self.store = store
        self.broadcaster = broadcaster
        self.processor = processor
        self.notifier = notifier
        self.history = history

    # ==================== Submission ====================

    def submit(self, identifiers: Iterable[str], notify_target: Optional[str] = None) -> Job:
        """Create a job over the identifiers and start it."""
        job = self.store.create(identifiers, notify_target=notify_target)
        self.start(job)
        return job

    def start(self, job: Job) -> None:
        """
        Move a pending job to processing and schedule its loop.

        Raises:
            InvalidTransitionError: If the job is not pending
        """
        if job.status != JobStatus.PENDING:
            raise InvalidTransitionError(job.id, "start", job.status.value)

        job.status = JobStatus.PROCESSING
        job.started_at = datetime.utcnow()
        self.broadcaster.log(job, f"Processing {job.total} identifier(s).")
        if job.duplicates_ignored:
            self.broadcaster.log(
                job, f"{job.duplicates_ignored} duplicate identifier(s) ignored.", Severity.WARN
            )
        self._notify(job, NotifyStage.STARTED, {"totals": {"requested": job.total}})
        self._spawn(job)

    # ==================== Control signals ====================

    def pause(self, job_id: str) -> Job:
        """
        Request a pause; it takes effect once the in-flight item finishes.

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidTransitionError: If the job is not processing or a pause is already pending
                (also while the job is finalizing)
        """
        job = self.store.require(job_id)
        if job.status != JobStatus.PROCESSING or job.pause_requested or job.is_finalizing:
            raise InvalidTransitionError(job.id, "pause", self._describe(job))

        job._pause_requested = True
        self.broadcaster.log(job, "Pause requested by user.", Severity.WARN)
        if not job.is_running:
            self._honor_pause(job)
        return job

    def resume(self, job_id: str) -> Job:
        """
        Resume a paused job from its cursor, or cancel a pause not yet honored.

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidTransitionError: If the job is neither paused nor pausing, or is finalizing
        """
        job = self.store.require(job_id)
        if job.is_finalizing:
            raise InvalidTransitionError(job.id, "resume", self._describe(job))
        if job.status == JobStatus.PAUSED:
            job.status = JobStatus.PROCESSING
        elif not (job.status == JobStatus.PROCESSING and job.pause_requested):
            raise InvalidTransitionError(job.id, "resume", self._describe(job))

        job._pause_requested = False
        self.broadcaster.log(job, "Processing resumed.")
        self.broadcaster.publish(job, ResumedEvent(processed=job.cursor, total=job.total))
        self._notify(job, NotifyStage.RESUMED, {"totals": summarize(job).model_dump()})
        if not job.is_running:
            self._spawn(job)
        return job

    def stop(self, job_id: str) -> Job:
        """
        Stop early: finish the in-flight item, then complete with what was gathered.

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidTransitionError: If the job is not processing or paused, or is finalizing
        """
        job = self.store.require(job_id)
        if job.status not in (JobStatus.PROCESSING, JobStatus.PAUSED) or job.is_finalizing:
            raise InvalidTransitionError(job.id, "stop", self._describe(job))

        job._stop_requested = True
        job._pause_requested = False
        job.status = JobStatus.STOPPING
        self.broadcaster.log(job, "Stop requested; finishing the current item.", Severity.WARN)
        self.broadcaster.publish(job, StoppingEvent(processed=job.cursor, total=job.total))
        self._notify(job, NotifyStage.STOPPING, {"totals": summarize(job).model_dump()})
        if not job.is_running:
            self._spawn(job)
        return job

    # ==================== Reports ====================

    def partial_report(self, job_id: str) -> Report:
        """Snapshot over the results so far; the stored final report once finished."""
        job = self.store.require(job_id)
        if job.is_terminal and job.report is not None:
            return job.report
        return build_report(job)

    def final_report(self, job_id: str) -> Optional[Report]:
        """Final report of a finished job, or None while it is still running."""
        job = self.store.require(job_id)
        return job.report if job.is_terminal else None

    # ==================== Execution ====================

    def _spawn(self, job: Job) -> None:
        job._task = asyncio.create_task(self._drive(job), name=f"job-{job.id}")

    async def _drive(self, job: Job) -> None:
        """Step until the queue drains or a pause/stop signal is honored."""
        try:
            while True:
                if job.stop_requested:
                    await self._finish(job)
                    return
                if job.pause_requested:
                    self._honor_pause(job)
                    return
                if job.cursor >= job.total:
                    await self._finish(job)
                    return
                await self._step(job)
                # Item boundary: let control signals land before the next item
                await asyncio.sleep(0)
        except Exception as e:
            logger.exception(f"[JOB {job.id}] Orchestration fault")
            await self._fail(job, f"Unexpected error during processing: {type(e).__name__}: {e}")

    async def _step(self, job: Job) -> None:
        identifier = job.queue[job.cursor]

        def item_log(message: str, severity: Severity = Severity.INFO) -> None:
            self.broadcaster.log(job, message, severity, related_id=identifier)

        outcome = await self.processor.process_item(identifier, item_log)
        if outcome.id != identifier:
            raise RuntimeError(f"processor returned outcome for {outcome.id}, expected {identifier}")

        job.results.append(outcome)
        job.cursor += 1
        self.broadcaster.publish(
            job, ItemProcessedEvent(outcome=outcome, processed=job.cursor, total=job.total)
        )

    def _honor_pause(self, job: Job) -> None:
        job._pause_requested = False
        job.status = JobStatus.PAUSED
        self.broadcaster.log(job, f"Processing paused after {job.cursor} of {job.total}.", Severity.WARN)
        self.broadcaster.publish(job, PausedEvent(processed=job.cursor, total=job.total))
        self._notify(job, NotifyStage.PAUSED, {"totals": summarize(job).model_dump()})

    async def _finish(self, job: Job) -> None:
        """Drained or stopped: persist, then move to complete with the final report."""
        job._finalizing = True
        job.stopped_early = job.stop_requested and job.cursor < job.total
        await self._persist(job)

        job.status = JobStatus.COMPLETE
        job.completed_at = datetime.utcnow()
        job._stop_requested = False
        report = build_report(job, final=True)
        job.report = report

        if job.stopped_early:
            self.broadcaster.log(
                job,
                f"Stopped early after {job.cursor} of {job.total}; "
                f"{report.summary.valued} inventory(ies) valued.",
                Severity.WARN,
            )
        else:
            self.broadcaster.log(
                job,
                f"Processing complete; {report.summary.valued} inventory(ies) valued.",
                Severity.SUCCESS,
            )
        self.broadcaster.publish(job, CompleteEvent(report=report))
        self.broadcaster.publish(job, EndEvent(ok=True))
        self.store.schedule_cleanup(job)

        stage = NotifyStage.STOPPED_EARLY if job.stopped_early else NotifyStage.COMPLETE
        self._notify(job, stage, {"totals": report.summary.model_dump()})

    async def _fail(self, job: Job, message: str) -> None:
        """Orchestration fault: terminal, keeps the partial results, never retried."""
        if job.is_terminal:
            logger.error(f"[JOB {job.id}] Fault after reaching {job.status.value}: {message}")
            return

        job._finalizing = True
        await self._persist(job)

        job.status = JobStatus.ERROR
        job.error = message
        job.completed_at = datetime.utcnow()
        report = build_report(job, final=True)
        job.report = report

        self.broadcaster.log(job, message, Severity.ERROR)
        self.broadcaster.publish(job, JobErrorEvent(error=message, report=report))
        self.broadcaster.publish(job, EndEvent(ok=False))
        self.store.schedule_cleanup(job)
        self._notify(job, NotifyStage.FAILED, {"error": message, "totals": report.summary.model_dump()})

    async def _persist(self, job: Job) -> None:
        if self.history is None or not job.results:
            return
        try:
            written = await self.history.merge_results(job.results)
        except HistoryError as e:
            self.broadcaster.log(job, f"History not saved: {e}", Severity.WARN)
            return
        self.broadcaster.log(job, f"History updated with {written} record(s).")

    def _notify(self, job: Job, stage: NotifyStage, extra: dict) -> None:
        if self.notifier is not None:
            self.notifier.notify(job, stage, extra)

    @staticmethod
    def _describe(job: Job) -> str:
        if job.is_finalizing and not job.is_terminal:
            return "finalizing"
        if job.status == JobStatus.PROCESSING and job.pause_requested:
            return "pausing"
        return job.status.value

    # ==================== Lifecycle ====================

    async def join(self, job: Job) -> None:
        """Wait until the job's loop is no longer running."""
        while job.is_running:
            await job.task

    async def shutdown(self) -> None:
        """Cancel every running job loop."""
        tasks = [job.task for job in self.store.jobs() if job.is_running]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
