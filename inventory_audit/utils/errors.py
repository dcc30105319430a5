"""Custom exception classes for Inventory Audit."""


class InventoryAuditError(Exception):
    """Base exception for all application errors."""

    pass


class JobError(InventoryAuditError):
    """Errors raised by the job orchestrator."""

    pass


class JobNotFoundError(JobError):
    """No job is registered under the requested id."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidTransitionError(JobError):
    """A control signal is not valid from the job's current status."""

    def __init__(self, job_id: str, action: str, status: str) -> None:
        self.job_id = job_id
        self.action = action
        self.status = status
        super().__init__(f"Cannot {action} job {job_id} while it is {status}")


class UpstreamAPIError(InventoryAuditError):
    """An upstream lookup returned an error."""

    service = "Upstream"

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"{self.service} error {status_code}: {message}")


class SteamAPIError(UpstreamAPIError):
    """Steam Web API (profile / ban lookup) returned an error."""

    service = "Steam"


class ValuationAPIError(UpstreamAPIError):
    """Inventory valuation API returned an error."""

    service = "Valuation"


class NotificationError(InventoryAuditError):
    """Webhook notification could not be delivered."""

    pass


class HistoryError(InventoryAuditError):
    """History file could not be read or written."""

    pass
