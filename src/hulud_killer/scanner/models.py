"""Scanner data models — findings, summaries and scan results."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class Severity(enum.Enum):
    """Finding severity level, highest first."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """Display order: 0 for CRITICAL up to 3 for LOW."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


class FindingKind(enum.Enum):
    """What matched — orthogonal to how bad it is."""

    MALICIOUS_FILE = "MaliciousFile"
    MALICIOUS_HASH = "MaliciousHash"
    SUSPICIOUS_PATTERN = "SuspiciousPattern"
    DANGEROUS_HOOK = "DangerousHook"
    COMPROMISED_PACKAGE = "CompromisedPackage"


@dataclass(frozen=True)
class Finding:
    """A single rule match against a file, hook or dependency declaration.

    ``line`` and ``context`` are only set for line-oriented content matches
    (``context`` is also used for hook scripts and infected version lists).
    """

    path: str
    kind: FindingKind
    severity: Severity
    description: str
    line: int | None = None
    context: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": self.path,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "description": self.description,
        }
        if self.line is not None:
            data["line"] = self.line
        if self.context is not None:
            data["context"] = self.context
        return data


@dataclass(frozen=True)
class ScanConfig:
    """Per-scan options."""

    include_node_modules: bool = False


@dataclass(frozen=True)
class Summary:
    """Severity histogram of a result set."""

    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
        }


@dataclass
class ScanResult:
    """Aggregate result of a scan."""

    scan_path: str
    findings: list[Finding] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)
    scanned_files: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Batch output document."""
        return {
            "findings": [f.to_dict() for f in self.findings],
            "summary": self.summary.to_dict(),
            "scannedFiles": self.scanned_files,
            "scanPath": self.scan_path,
        }
