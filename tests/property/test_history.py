"""Tests for the JSON history store.

Properties: merging keeps one record per identifier with the latest
outcome, and only valued or flagged records count as recent entries.
"""

import json
import time

import pytest

from inventory_audit.models.outcome import ItemOutcome, OutcomeKind
from inventory_audit.services.history import HistoryStore
from inventory_audit.utils.errors import HistoryError


def _outcome(identifier: str, kind: OutcomeKind, value: float = 0.0) -> ItemOutcome:
    return ItemOutcome(id=identifier, outcome_kind=kind, value=value, vac_banned=kind == OutcomeKind.VERIFIED_FLAGGED)


class TestMerge:
    @pytest.mark.asyncio
    async def test_merge_overwrites_by_identifier(self, history_store: HistoryStore) -> None:
        await history_store.merge_results([_outcome("A", OutcomeKind.STAGE2_ERROR)])
        written = await history_store.merge_results(
            [_outcome("A", OutcomeKind.VALUATION_SUCCESS, 10.0), _outcome("B", OutcomeKind.STAGE1_ERROR)]
        )

        with open(history_store.path) as f:
            history = json.load(f)

        assert written == 2
        assert set(history) == {"A", "B"}
        assert history["A"]["status"] == "valuation-success"
        assert history["A"]["data"]["value"] == 10.0
        assert "data" not in history["B"]

    @pytest.mark.asyncio
    async def test_existing_records_are_kept(self, history_store: HistoryStore) -> None:
        with open(history_store.path, "w") as f:
            json.dump({"OLD": {"status": "valuation-success", "success": True}}, f)

        await history_store.merge_results([_outcome("NEW", OutcomeKind.VERIFIED_CLEAN)])

        with open(history_store.path) as f:
            assert set(json.load(f)) == {"OLD", "NEW"}

    @pytest.mark.asyncio
    async def test_corrupt_file_starts_fresh(self, history_store: HistoryStore) -> None:
        with open(history_store.path, "w") as f:
            f.write("{not json")

        await history_store.merge_results([_outcome("A", OutcomeKind.VERIFIED_CLEAN)])

        with open(history_store.path) as f:
            assert set(json.load(f)) == {"A"}

    @pytest.mark.asyncio
    async def test_unwritable_path_raises(self, tmp_path) -> None:
        with pytest.raises(HistoryError):
            await HistoryStore(path=str(tmp_path)).merge_results([_outcome("A", OutcomeKind.VERIFIED_CLEAN)])


class TestRecent:
    @pytest.mark.asyncio
    async def test_only_valued_or_flagged_within_window(self, history_store: HistoryStore) -> None:
        await history_store.merge_results(
            [
                _outcome("RICH", OutcomeKind.VALUATION_SUCCESS, 900.0),
                _outcome("POOR", OutcomeKind.VALUATION_SUCCESS, 50.0),
                _outcome("EMPTY", OutcomeKind.VALUATION_SUCCESS, 0.0),
                _outcome("BANNED", OutcomeKind.VERIFIED_FLAGGED),
                _outcome("BROKEN", OutcomeKind.STAGE2_ERROR),
            ]
        )
        with open(history_store.path) as f:
            history = json.load(f)
        history["STALE"] = HistoryStore.build_entry(
            _outcome("STALE", OutcomeKind.VALUATION_SUCCESS, 5000.0), timestamp=time.time() - 48 * 3600
        )
        with open(history_store.path, "w") as f:
            json.dump(history, f)

        recent = await history_store.recent_entries(window_hours=24)

        assert [entry["id"] for entry in recent] == ["RICH", "POOR", "BANNED"]

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, history_store: HistoryStore) -> None:
        assert await history_store.recent_entries() == []
