"""Tests for the HTTP API.

Properties: invalid submissions are rejected with 422, domain errors map to
404/409 with a consistent JSON body, and the result endpoint reflects the
job's lifecycle (202 running, 200 complete, 500 failed).
"""

import time
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient
from hypothesis import given, settings, strategies as st
from pydantic import ValidationError

from inventory_audit.api.routes import ProcessRequest
from inventory_audit.main import create_app
from inventory_audit.models.events import CompleteEvent, EndEvent, LogEvent, parse_event


# ==================== Helpers ====================


def _wait_for_result(client: TestClient, job_id: str, timeout: float = 5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        response = client.get(f"/process/{job_id}/result")
        if response.status_code != 202:
            return response
        time.sleep(0.01)
    raise AssertionError(f"job {job_id} did not finish in {timeout}s")


def _parse_stream(body: str) -> list:
    events = []
    for frame in body.split("\n\n"):
        if not frame.strip():
            continue
        kind_line, data_line = frame.split("\n", 1)
        events.append(parse_event(kind_line[len("event: "):], data_line[len("data: "):]))
    return events


@pytest.fixture
def client_factory(scripted_processor, history_store, recording_notifier):
    def _make(**processor_kwargs: Any) -> TestClient:
        app = create_app(
            processor=scripted_processor(**processor_kwargs),
            history=history_store,
            notifier=recording_notifier,
        )
        return TestClient(app)

    return _make


# ==================== Request Validation ====================


class TestProcessRequestValidation:
    """Submissions need at least one identifier and an http(s) webhook if any."""

    @given(blank=st.text(alphabet=" \t\n", max_size=10))
    @settings(max_examples=50)
    def test_blank_identifiers_rejected(self, blank: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ProcessRequest(steam_ids=blank)
        field_names = [e.get("loc", [])[-1] if e.get("loc") else None for e in exc_info.value.errors()]
        assert "steam_ids" in field_names

    @given(ids=st.lists(st.text(alphabet="0123456789", min_size=1, max_size=17), min_size=1, max_size=10))
    @settings(max_examples=50)
    def test_whitespace_separated_string_is_split(self, ids: list[str]) -> None:
        request = ProcessRequest(steam_ids="\n".join(ids))
        assert request.steam_ids == ids

    @pytest.mark.parametrize("url", ["ftp://hooks.test/x", "not a url"])
    def test_invalid_webhook_rejected(self, url: str) -> None:
        with pytest.raises(ValidationError):
            ProcessRequest(steam_ids="1", webhook_url=url)

    def test_blank_webhook_is_none(self) -> None:
        assert ProcessRequest(steam_ids="1", webhook_url="  ").webhook_url is None

    @pytest.mark.parametrize("url", ["http://hooks.test", "https://hooks.test:8443/a?b=1"])
    def test_webhook_kept_as_submitted(self, url: str) -> None:
        assert ProcessRequest(steam_ids="1", webhook_url=f"  {url} ").webhook_url == url


# ==================== Endpoints ====================


class TestEndpoints:
    def test_full_run(self, client_factory, history_store) -> None:
        with client_factory() as client:
            response = client.post("/process", json={"steam_ids": "A B A C"})
            assert response.status_code == 200
            body: Dict[str, Any] = response.json()
            assert body["total"] == 3
            assert body["duplicates_ignored"] == 1
            job_id = body["job_id"]

            result = _wait_for_result(client, job_id)
            assert result.status_code == 200
            report = result.json()
            assert report["summary"]["processed"] == 3
            assert report["partial"] is False
            assert [item["id"] for item in report["successful_items"]] == ["A", "B", "C"]

            partial = client.get(f"/process/{job_id}/partial-report").json()
            assert partial["summary"] == report["summary"]

            stream = client.get(f"/process/{job_id}/stream")
            assert stream.headers["content-type"].startswith("text/event-stream")
            events = _parse_stream(stream.text)
            assert isinstance(events[0], LogEvent)
            assert isinstance(events[-2], CompleteEvent)
            assert isinstance(events[-1], EndEvent)

            recent = client.get("/history/recent")
            assert recent.status_code == 200
            assert {item["id"] for item in recent.json()["items"]} == {"A", "B", "C"}

            health = client.get("/health").json()
            assert health == {"status": "healthy", "jobs": 1}

    def test_control_signals_on_finished_job_conflict(self, client_factory) -> None:
        with client_factory() as client:
            job_id = client.post("/process", json={"steam_ids": ["A"]}).json()["job_id"]
            _wait_for_result(client, job_id)

            for action in ("pause", "resume", "stop"):
                response = client.post(f"/process/{job_id}/{action}")
                assert response.status_code == 409
                assert response.json()["error_type"] == "InvalidTransitionError"

    def test_unknown_job_returns_404(self, client_factory) -> None:
        with client_factory() as client:
            for method, path in (
                ("post", "/process/missing/pause"),
                ("post", "/process/missing/resume"),
                ("post", "/process/missing/stop"),
                ("get", "/process/missing/partial-report"),
                ("get", "/process/missing/result"),
                ("get", "/process/missing/stream"),
            ):
                response = getattr(client, method)(path)
                assert response.status_code == 404
                assert response.json()["error_type"] == "JobNotFoundError"

    def test_pending_job_reports_still_running(self, client_factory) -> None:
        with client_factory() as client:
            job = client.app.state.runner.store.create(["A", "B"])

            result = client.get(f"/process/{job.id}/result")
            assert result.status_code == 202
            assert result.json() == {"status": "pending"}

            partial = client.get(f"/process/{job.id}/partial-report").json()
            assert partial["partial"] is True
            assert partial["summary"]["pending"] == 2

    def test_failed_job_returns_partial_result(self, client_factory) -> None:
        with client_factory(fail_on="B") as client:
            job_id = client.post("/process", json={"steam_ids": "A B C"}).json()["job_id"]

            result = _wait_for_result(client, job_id)
            assert result.status_code == 500
            body = result.json()
            assert "processor exploded" in body["error"]
            assert body["report"]["summary"]["processed"] == 1
            assert body["logs"]

    def test_webhook_target_is_the_submitted_url(self, client_factory) -> None:
        with client_factory() as client:
            response = client.post(
                "/process", json={"steam_ids": ["A"], "webhook_url": "http://hooks.test"}
            )
            job = client.app.state.runner.store.require(response.json()["job_id"])
            assert job.notify_target == "http://hooks.test"

    def test_empty_submission_rejected(self, client_factory) -> None:
        with client_factory() as client:
            response = client.post("/process", json={"steam_ids": "   "})
            assert response.status_code == 422
            assert response.json()["error_type"] == "ValidationError"

    def test_history_empty_returns_404(self, client_factory) -> None:
        with client_factory() as client:
            assert client.get("/history/recent").status_code == 404
