"""Detection engine — rule tables, traversal, per-file checks, aggregation."""

from hulud_killer.scanner.engine import ScanEngine, ScanError, scan, scan_with_progress
from hulud_killer.scanner.models import (
    Finding,
    FindingKind,
    ScanConfig,
    ScanResult,
    Severity,
    Summary,
)

__all__ = [
    "Finding",
    "FindingKind",
    "ScanConfig",
    "ScanEngine",
    "ScanError",
    "ScanResult",
    "Severity",
    "Summary",
    "scan",
    "scan_with_progress",
]
