"""Report summarizer: aggregate counts over a job's results."""

from typing import List

from inventory_audit.models.job import Job
from inventory_audit.models.outcome import ItemOutcome, OutcomeKind
from inventory_audit.models.report import Report, Summary


def summarize(job: Job, final: bool = False) -> Summary:
    """
    Compute aggregate counts for a job without touching its state.

    Args:
        job: Job to summarize
        final: When True, identifiers never started (stop requested early)
            are reported as skipped instead of pending

    Returns:
        Summary over the results accumulated so far
    """
    results = list(job.results)
    requested = len(job.queue)
    processed = len(results)
    remaining = max(requested - processed, 0)

    flagged = sum(1 for r in results if r.outcome_kind == OutcomeKind.VERIFIED_FLAGGED)
    stage1_errors = sum(1 for r in results if r.outcome_kind == OutcomeKind.STAGE1_ERROR)
    stage2_errors = sum(1 for r in results if r.outcome_kind == OutcomeKind.STAGE2_ERROR)
    valued = sum(1 for r in results if r.outcome_kind == OutcomeKind.VALUATION_SUCCESS)

    return Summary(
        requested=requested,
        processed=processed,
        pending=0 if final else remaining,
        skipped=remaining if final else 0,
        clean=processed - flagged - stage1_errors,
        flagged=flagged,
        stage1_errors=stage1_errors,
        stage2_errors=stage2_errors,
        valued=valued,
        duplicates_ignored=job.duplicates_ignored,
    )


def successful_items(job: Job) -> List[ItemOutcome]:
    """Successful valuations, highest value first; ties keep processing order."""
    items = [r for r in job.results if r.is_success]
    return sorted(items, key=lambda r: r.value, reverse=True)


def build_report(job: Job, final: bool = False) -> Report:
    """Snapshot report over the job; ``final`` marks it as the terminal report."""
    return Report(
        job_id=job.id,
        status=job.status.value,
        summary=summarize(job, final=final),
        successful_items=successful_items(job),
        partial=not final,
        stopped_early=job.stopped_early,
    )
