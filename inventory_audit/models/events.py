"""Live job events as a tagged union discriminated on ``event``."""

import json
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from inventory_audit.models.outcome import ItemOutcome, LogEntry
from inventory_audit.models.report import Report


class _BaseEvent(BaseModel):
    """Common serialisation for every event kind."""

    def payload_json(self) -> str:
        return self.model_dump_json(exclude={"event"})

    def to_sse(self) -> str:
        """Render as one Server-Sent Events frame."""
        return f"event: {self.event}\ndata: {self.payload_json()}\n\n"


class LogEvent(_BaseEvent):
    event: Literal["log"] = "log"
    entry: LogEntry


class ItemProcessedEvent(_BaseEvent):
    event: Literal["item-processed"] = "item-processed"
    outcome: ItemOutcome
    processed: int = Field(ge=1)
    total: int = Field(ge=1)


class PausedEvent(_BaseEvent):
    event: Literal["job-paused"] = "job-paused"
    processed: int = Field(ge=0)
    total: int = Field(ge=0)


class ResumedEvent(_BaseEvent):
    event: Literal["job-resumed"] = "job-resumed"
    processed: int = Field(ge=0)
    total: int = Field(ge=0)


class StoppingEvent(_BaseEvent):
    event: Literal["job-stopping"] = "job-stopping"
    processed: int = Field(ge=0)
    total: int = Field(ge=0)


class CompleteEvent(_BaseEvent):
    event: Literal["complete"] = "complete"
    report: Report


class JobErrorEvent(_BaseEvent):
    event: Literal["job-error"] = "job-error"
    error: str = Field(min_length=1)
    report: Report


class EndEvent(_BaseEvent):
    event: Literal["end"] = "end"
    ok: bool


JobEvent = Annotated[
    Union[
        LogEvent,
        ItemProcessedEvent,
        PausedEvent,
        ResumedEvent,
        StoppingEvent,
        CompleteEvent,
        JobErrorEvent,
        EndEvent,
    ],
    Field(discriminator="event"),
]

_event_adapter = TypeAdapter(JobEvent)


def parse_event(kind: str, data: str) -> JobEvent:
    """Rebuild an event from an SSE ``event:``/``data:`` pair."""
    payload = json.loads(data)
    payload["event"] = kind
    return _event_adapter.validate_python(payload)
