"""Per-item outcome and log entry Pydantic models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OutcomeKind(str, Enum):
    VERIFIED_CLEAN = "verified-clean"
    VERIFIED_FLAGGED = "verified-flagged"
    VALUATION_SUCCESS = "valuation-success"
    STAGE1_ERROR = "upstream-error-stage1"
    STAGE2_ERROR = "upstream-error-stage2"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARN = "warn"
    ERROR = "error"


class ItemOutcome(BaseModel):
    """Result of the two-stage check for one identifier. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    display_name: str = "N/A"
    outcome_kind: OutcomeKind
    value: float = 0.0
    reason: Optional[str] = None
    vac_banned: bool = False
    game_bans: int = Field(default=0, ge=0)
    cases_percentage: float = 0.0
    processed_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("value")
    @classmethod
    def value_only_for_valuations(cls, v: float, info) -> float:
        """A non-zero value is only meaningful for a successful valuation."""
        kind = info.data.get("outcome_kind")
        if v and kind is not None and kind != OutcomeKind.VALUATION_SUCCESS:
            raise ValueError("value must be zero unless the valuation succeeded")
        return v

    @property
    def is_flagged(self) -> bool:
        return self.outcome_kind == OutcomeKind.VERIFIED_FLAGGED

    @property
    def is_success(self) -> bool:
        return self.outcome_kind == OutcomeKind.VALUATION_SUCCESS


class LogEntry(BaseModel):
    """One line of a job's log. Append-only."""

    model_config = ConfigDict(frozen=True)

    message: str
    severity: Severity = Severity.INFO
    related_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
