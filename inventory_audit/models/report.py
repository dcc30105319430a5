"""Summary and report Pydantic models."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from inventory_audit.models.outcome import ItemOutcome


class Summary(BaseModel):
    """Aggregate counts derived from a job's results. Never stored on its own."""

    requested: int = Field(ge=0)
    processed: int = Field(ge=0)
    pending: int = Field(ge=0)
    skipped: int = Field(default=0, ge=0)
    clean: int = Field(ge=0)
    flagged: int = Field(ge=0)
    stage1_errors: int = Field(ge=0)
    stage2_errors: int = Field(ge=0)
    valued: int = Field(ge=0)
    duplicates_ignored: int = Field(default=0, ge=0)

    def counts(self) -> dict:
        """Aggregate counts only, for comparing reports taken at different times."""
        return self.model_dump()


class Report(BaseModel):
    """Snapshot report over a job, partial or final."""

    job_id: str
    status: str
    summary: Summary
    successful_items: List[ItemOutcome] = Field(default_factory=list)
    partial: bool = True
    stopped_early: bool = False
    generated_at: datetime = Field(default_factory=datetime.utcnow)
