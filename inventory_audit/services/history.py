"""JSON-file history of processed identifiers, merged after every job."""

import asyncio
import json
import logging
import os
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from inventory_audit.models.outcome import ItemOutcome, OutcomeKind
from inventory_audit.utils.errors import HistoryError

logger = logging.getLogger(__name__)

_RECORDED_KINDS = (OutcomeKind.VALUATION_SUCCESS, OutcomeKind.VERIFIED_FLAGGED)


class HistoryStore:
    """Key-value record store of the latest outcome per identifier."""

    def __init__(self, path: str = "history.json") -> None:
        self.path = path

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load history file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, history: Dict[str, Any]) -> None:
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(history, f, indent=2)
        except OSError as e:
            raise HistoryError(f"Failed to write history file {self.path}: {e}")

    @staticmethod
    def build_entry(item: ItemOutcome, timestamp: Optional[float] = None) -> Dict[str, Any]:
        """History record for one outcome."""
        timestamp = timestamp if timestamp is not None else time.time()
        entry: Dict[str, Any] = {
            "status": item.outcome_kind.value,
            "success": item.outcome_kind in _RECORDED_KINDS,
            "timestamp": timestamp,
            "date": datetime.fromtimestamp(timestamp).isoformat(),
            "reason": item.reason,
        }
        if item.outcome_kind in _RECORDED_KINDS:
            entry["data"] = {
                "id": item.id,
                "display_name": item.display_name,
                "value": item.value,
                "vac_banned": item.vac_banned,
                "game_bans": item.game_bans,
                "cases_percentage": item.cases_percentage,
                "recorded_at": timestamp,
            }
        return entry

    def _merge(self, results: List[ItemOutcome]) -> int:
        history = self._load()
        now = time.time()
        for item in results:
            history[item.id] = self.build_entry(item, now)
        self._save(history)
        return len(results)

    async def merge_results(self, results: Iterable[ItemOutcome]) -> int:
        """
        Overwrite the stored record for every outcome and write the file back.

        Returns:
            Number of records written

        Raises:
            HistoryError: If the history file cannot be written
        """
        return await asyncio.to_thread(self._merge, list(results))

    def _recent(self, window_seconds: float) -> List[Dict[str, Any]]:
        cutoff = time.time() - window_seconds
        recent = []
        for record in self._load().values():
            if not isinstance(record, dict):
                continue
            data = record.get("data")
            if not record.get("success") or not data:
                continue
            if (record.get("timestamp") or 0) < cutoff:
                continue
            if data.get("value", 0) > 0 or data.get("vac_banned"):
                recent.append(data)
        recent.sort(key=lambda d: d.get("value", 0), reverse=True)
        return recent

    async def recent_entries(self, window_hours: float = 24) -> List[Dict[str, Any]]:
        """Valued or flagged records written within the last ``window_hours``."""
        return await asyncio.to_thread(self._recent, window_hours * 3600)


def create_history_store() -> HistoryStore:
    """Create a HistoryStore using application settings."""
    from inventory_audit.config import get_settings

    return HistoryStore(path=get_settings().history_file)
