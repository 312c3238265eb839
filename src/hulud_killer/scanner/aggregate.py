"""Aggregation — fold per-file findings into one result set."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from hulud_killer.scanner.models import Finding, Severity, Summary


def aggregate(per_file: Iterable[list[Finding]]) -> list[Finding]:
    """Concatenate per-file finding lists. Duplicates are kept."""
    findings: list[Finding] = []
    for file_findings in per_file:
        findings.extend(file_findings)
    return findings


def summarize(findings: list[Finding]) -> Summary:
    """Recount the severity histogram from scratch."""
    counts = Counter(f.severity for f in findings)
    return Summary(
        total=len(findings),
        critical=counts[Severity.CRITICAL],
        high=counts[Severity.HIGH],
        medium=counts[Severity.MEDIUM],
        low=counts[Severity.LOW],
    )
