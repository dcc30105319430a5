"""Best-effort webhook notifications for job lifecycle transitions."""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Set

import httpx

from inventory_audit.models.job import Job
from inventory_audit.models.outcome import Severity
from inventory_audit.utils.errors import NotificationError

logger = logging.getLogger(__name__)


class NotifyStage(str, Enum):
    STARTED = "started"
    PAUSED = "paused"
    RESUMED = "resumed"
    STOPPING = "stopping"
    STOPPED_EARLY = "stopped-early"
    COMPLETE = "complete"
    FAILED = "failed"


class Notifier:
    """Fire-and-forget webhook delivery.

    Each notification runs in its own task with a bounded timeout. Delivery is
    at most once: failures are logged as warnings and never retried.
    """

    def __init__(
        self,
        default_target: Optional[str] = None,
        timeout: float = 5.0,
        broadcaster: Optional[Any] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the Notifier.

        Args:
            default_target: Webhook URL used when a job has none of its own
            timeout: Per-delivery timeout in seconds
            broadcaster: EventBroadcaster used to surface failures in the job log (optional)
            transport: httpx transport override, mainly for tests
        """
        self.default_target = default_target
        self.timeout = timeout
        self.broadcaster = broadcaster
        self._transport = transport
        self._pending: Set[asyncio.Task] = set()

    def target_for(self, job: Job) -> Optional[str]:
        return job.notify_target or self.default_target

    def _build_payload(self, job: Job, stage: NotifyStage, extra: Optional[dict]) -> dict[str, Any]:
        return {
            "jobId": job.id,
            "stage": stage.value,
            "timestamp": datetime.utcnow().isoformat(),
            **(extra or {}),
        }

    def notify(
        self, job: Job, stage: NotifyStage, extra: Optional[dict] = None
    ) -> Optional[asyncio.Task]:
        """
        Schedule a notification for a lifecycle transition.

        Returns immediately; the caller never awaits delivery.

        Returns:
            The delivery task, or None when no target is configured
        """
        target = self.target_for(job)
        if not target:
            return None

        payload = self._build_payload(job, stage, extra)
        task = asyncio.create_task(self._deliver(job, target, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, job: Job, target: str, payload: dict[str, Any]) -> bool:
        try:
            await self.send(target, payload)
        except NotificationError as e:
            message = f"Webhook delivery failed ({payload['stage']}): {e}"
            logger.warning(f"[JOB {job.id}] {message}")
            # A finished job's log must end with its terminal event
            if self.broadcaster is not None and not job.is_terminal:
                self.broadcaster.log(job, message, Severity.WARN)
            return False
        return True

    async def send(self, target: str, payload: dict[str, Any]) -> None:
        """
        POST one payload to the webhook.

        Raises:
            NotificationError: On timeout, transport failure or non-2xx status
        """
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    target,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            raise NotificationError(f"{type(e).__name__}: {e}")

        if not response.is_success:
            raise NotificationError(f"webhook returned status {response.status_code}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight deliveries, giving up after ``timeout`` seconds."""
        if not self._pending:
            return
        pending = list(self._pending)
        _, not_done = await asyncio.wait(pending, timeout=timeout or self.timeout)
        for task in not_done:
            task.cancel()
