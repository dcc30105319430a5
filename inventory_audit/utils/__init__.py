"""Utility modules for Inventory Audit."""

from inventory_audit.utils.errors import (
    HistoryError,
    InvalidTransitionError,
    InventoryAuditError,
    JobError,
    JobNotFoundError,
    NotificationError,
    SteamAPIError,
    UpstreamAPIError,
    ValuationAPIError,
)

__all__ = [
    "InventoryAuditError",
    "JobError",
    "JobNotFoundError",
    "InvalidTransitionError",
    "UpstreamAPIError",
    "SteamAPIError",
    "ValuationAPIError",
    "NotificationError",
    "HistoryError",
]
