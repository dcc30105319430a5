"""In-memory job registry with idle cleanup of finished jobs."""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from inventory_audit.models.job import Job
from inventory_audit.utils.errors import JobNotFoundError

logger = logging.getLogger(__name__)


def dedupe_identifiers(raw: Iterable[str]) -> Tuple[List[str], int]:
    """
    Trim, drop blanks and remove duplicates while keeping first-seen order.

    Returns:
        The unique identifiers and how many duplicates were dropped
    """
    trimmed = [item.strip() for item in raw]
    trimmed = [item for item in trimmed if item]
    unique = list(dict.fromkeys(trimmed))
    return unique, len(trimmed) - len(unique)


class JobStore:
    """Registry of live jobs keyed by id."""

    def __init__(self, retention_seconds: float = 300.0) -> None:
        """
        Initialize the JobStore.

        Args:
            retention_seconds: Idle window after which a finished job with no
                subscribers is evicted
        """
        self.retention_seconds = retention_seconds
        self._jobs: Dict[str, Job] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def create(self, identifiers: Iterable[str], notify_target: Optional[str] = None) -> Job:
        """Register a new pending job over the deduplicated identifiers."""
        queue, duplicates = dedupe_identifiers(identifiers)
        job = Job(queue=queue, notify_target=notify_target, duplicates_ignored=duplicates)
        self._jobs[job.id] = job
        logger.info(f"Created job {job.id} with {len(queue)} identifier(s)")
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def require(self, job_id: str) -> Job:
        """Like ``get`` but raises JobNotFoundError for unknown ids."""
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def jobs(self) -> List[Job]:
        return list(self._jobs.values())

    def schedule_cleanup(self, job: Job) -> None:
        """(Re)arm the idle timer for a job."""
        self.cancel_cleanup(job)
        loop = asyncio.get_running_loop()
        job._cleanup_handle = loop.call_later(self.retention_seconds, self._evict, job.id)

    def cancel_cleanup(self, job: Job) -> None:
        if job._cleanup_handle is not None:
            job._cleanup_handle.cancel()
            job._cleanup_handle = None

    def _evict(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        job._cleanup_handle = None
        if job.subscribers:
            return
        del self._jobs[job_id]
        logger.info(f"Evicted idle job {job_id}")

    def close(self) -> None:
        """Cancel every pending cleanup timer."""
        for job in self._jobs.values():
            self.cancel_cleanup(job)
