"""Pytest fixtures for Inventory Audit tests."""

import asyncio
from typing import Callable, Dict, List, Optional

import pytest

from inventory_audit.models.outcome import ItemOutcome, OutcomeKind
from inventory_audit.services.broadcaster import EventBroadcaster
from inventory_audit.services.history import HistoryStore
from inventory_audit.services.item_processor import ItemProcessor
from inventory_audit.services.job_store import JobStore
from inventory_audit.services.notifier import Notifier
from inventory_audit.services.runner import JobRunner


class ScriptedProcessor(ItemProcessor):
    """Item processor returning scripted outcomes, with optional gates per identifier."""

    def __init__(
        self,
        script: Optional[Dict[str, OutcomeKind]] = None,
        values: Optional[Dict[str, float]] = None,
        fail_on: Optional[str] = None,
    ) -> None:
        self.script = script or {}
        self.values = values or {}
        self.fail_on = fail_on
        self.calls: List[str] = []
        self.entered: Dict[str, asyncio.Event] = {}
        self.gates: Dict[str, asyncio.Event] = {}

    def hold(self, identifier: str) -> None:
        """Block ``identifier`` inside process_item until ``release`` is called."""
        self.entered[identifier] = asyncio.Event()
        self.gates[identifier] = asyncio.Event()

    def release(self, identifier: str) -> None:
        self.gates[identifier].set()

    async def wait_entered(self, identifier: str) -> None:
        await asyncio.wait_for(self.entered[identifier].wait(), timeout=2.0)

    async def process_item(self, identifier, log=None) -> ItemOutcome:
        self.calls.append(identifier)
        if log is not None:
            log(f"Checking {identifier}")
        if identifier in self.entered:
            self.entered[identifier].set()
            await self.gates[identifier].wait()
        if identifier == self.fail_on:
            raise RuntimeError("processor exploded")

        kind = self.script.get(identifier, OutcomeKind.VALUATION_SUCCESS)
        value = self.values.get(identifier, 100.0) if kind == OutcomeKind.VALUATION_SUCCESS else 0.0
        return ItemOutcome(
            id=identifier,
            display_name=f"player-{identifier}",
            outcome_kind=kind,
            value=value,
            vac_banned=kind == OutcomeKind.VERIFIED_FLAGGED,
            reason=kind.value,
        )


class RecordingNotifier(Notifier):
    """Notifier that records stages instead of sending webhooks."""

    def __init__(self) -> None:
        super().__init__(default_target="http://notify.test/hook")
        self.stages: List[str] = []
        self.payloads: List[dict] = []

    def notify(self, job, stage, extra=None):
        self.stages.append(stage.value)
        self.payloads.append(self._build_payload(job, stage, extra))
        return None


@pytest.fixture
def scripted_processor() -> Callable[..., ScriptedProcessor]:
    """Factory for scripted item processors."""
    return ScriptedProcessor


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def history_store(tmp_path) -> HistoryStore:
    return HistoryStore(path=str(tmp_path / "history.json"))


@pytest.fixture
def make_runner(history_store) -> Callable[..., JobRunner]:
    """Factory wiring a JobRunner around the given processor."""

    def _make(
        processor: ItemProcessor,
        notifier: Optional[Notifier] = None,
        history: Optional[HistoryStore] = history_store,
        retention_seconds: float = 300.0,
    ) -> JobRunner:
        store = JobStore(retention_seconds=retention_seconds)
        broadcaster = EventBroadcaster(store)
        if notifier is not None:
            notifier.broadcaster = broadcaster
        return JobRunner(
            store=store,
            broadcaster=broadcaster,
            processor=processor,
            notifier=notifier,
            history=history,
        )

    return _make
