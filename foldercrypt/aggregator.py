"""Combine per-file results into a batch report."""

from pathlib import Path
from typing import Dict, Iterable

from .models import BatchReport, EncryptionTarget, OperationResult, SkippedFile


def aggregate(results: Iterable[OperationResult], operation: str = "",
              files: Iterable[Path] = (), pending: Iterable[EncryptionTarget] = (),
              skipped: Iterable[SkippedFile] = ()) -> BatchReport:
    """
    Build a BatchReport from per-file results.

    Pure: performs no I/O. Result order is preserved, so the report lists
    files in the order the workflow offered them.

    Args:
        results: One result per attempted file
        operation: "encrypt" or "decrypt"
        files: Post-operation directory listing
        pending: Targets abandoned after cancellation
        skipped: Files excluded before any backend call

    Returns:
        The aggregated report

    Raises:
        ValueError: If a target is reported more than once
    """
    results = tuple(results)
    pending = tuple(pending)

    seen = set()
    for target in [r.target for r in results] + list(pending):
        if target.source in seen:
            raise ValueError(f"Target reported more than once: {target.source}")
        seen.add(target.source)

    return BatchReport(
        operation=operation,
        results=results,
        files=tuple(files),
        pending=pending,
        skipped=tuple(skipped),
    )


def summarize(report: BatchReport) -> Dict[str, int]:
    """Counters for a report, for display and manifests."""
    return {
        'total_files': report.total,
        'successful': report.succeeded,
        'failed': report.failed,
        'pending': len(report.pending),
        'skipped': len(report.skipped),
    }
