"""Per-file checks. Each check is independent of the others' output."""

from __future__ import annotations

from pathlib import Path

from hulud_killer.scanner.checks.files import check_content, check_filename, check_hash
from hulud_killer.scanner.checks.lockfile import LOCKFILE_NAMES, check_lockfile
from hulud_killer.scanner.checks.manifest import MANIFEST_NAME, check_package_json
from hulud_killer.scanner.models import Finding
from hulud_killer.scanner.rules import RuleRegistry

__all__ = [
    "analyze_file",
    "check_content",
    "check_filename",
    "check_hash",
    "check_lockfile",
    "check_package_json",
]


def analyze_file(path: Path, registry: RuleRegistry) -> list[Finding]:
    """Run every applicable check on one file."""
    findings = check_filename(path, registry)
    findings.extend(check_hash(path, registry))
    findings.extend(check_content(path, registry))

    if path.name == MANIFEST_NAME:
        findings.extend(check_package_json(path, registry))
    if path.name in LOCKFILE_NAMES:
        findings.extend(check_lockfile(path, registry))

    return findings
