"""Service layer for Inventory Audit."""

from inventory_audit.services.broadcaster import EventBroadcaster, QueueSink
from inventory_audit.services.history import HistoryStore, create_history_store
from inventory_audit.services.item_processor import (
    ItemProcessor,
    SteamInventoryProcessor,
    create_item_processor,
)
from inventory_audit.services.job_store import JobStore, dedupe_identifiers
from inventory_audit.services.notifier import Notifier, NotifyStage
from inventory_audit.services.runner import JobRunner
from inventory_audit.services.summarizer import build_report, successful_items, summarize

__all__ = [
    "EventBroadcaster",
    "QueueSink",
    "HistoryStore",
    "create_history_store",
    "ItemProcessor",
    "SteamInventoryProcessor",
    "create_item_processor",
    "JobStore",
    "dedupe_identifiers",
    "Notifier",
    "NotifyStage",
    "JobRunner",
    "build_report",
    "successful_items",
    "summarize",
]
