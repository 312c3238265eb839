"""File-level checks — filename, content hash, and line-by-line patterns."""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path

from hulud_killer.scanner.models import Finding, FindingKind, Severity
from hulud_killer.scanner.rules import RuleRegistry

logger = logging.getLogger(__name__)

# Files larger than this are never content-scanned
MAX_CONTENT_SIZE = 1_000_000

CONTEXT_LIMIT = 100

_HASH_PREFIX_LEN = 16
_HASH_CHUNK = 8192


def truncate(text: str, limit: int = CONTEXT_LIMIT) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with '...'."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def check_filename(path: Path, registry: RuleRegistry) -> list[Finding]:
    if path.name not in registry.malicious_files:
        return []
    return [
        Finding(
            path=str(path),
            kind=FindingKind.MALICIOUS_FILE,
            severity=Severity.CRITICAL,
            description=f"Known malicious file: {path.name}",
        )
    ]


def check_hash(path: Path, registry: RuleRegistry) -> list[Finding]:
    """Compare the file's SHA-256 digest against the known-bad list."""
    if not registry.malicious_hashes:
        return []

    try:
        digest = sha256_file(path)
    except OSError as e:
        logger.debug("Cannot hash %s: %s", path, e)
        return []

    if digest not in registry.malicious_hashes:
        return []
    return [
        Finding(
            path=str(path),
            kind=FindingKind.MALICIOUS_HASH,
            severity=Severity.CRITICAL,
            description=(
                f"File matches known malicious hash: {digest[:_HASH_PREFIX_LEN]}..."
            ),
        )
    ]


def check_content(path: Path, registry: RuleRegistry) -> list[Finding]:
    """Run every content rule against every line of a scannable file."""
    if path.suffix[1:] not in registry.scannable_extensions:
        return []

    findings: list[Finding] = []
    try:
        with path.open("rb") as fh:
            if _file_size(fh) > MAX_CONTENT_SIZE:
                return []
            for line_num, raw in enumerate(fh, start=1):
                try:
                    line = raw.decode("utf-8").rstrip("\r\n")
                except UnicodeDecodeError:
                    continue
                findings.extend(_match_line(path, line_num, line, registry))
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return []

    return findings


def _match_line(
    path: Path, line_num: int, line: str, registry: RuleRegistry
) -> list[Finding]:
    findings: list[Finding] = []
    for rule in registry.content_rules:
        if rule.regex.search(line):
            findings.append(
                Finding(
                    path=str(path),
                    kind=FindingKind.SUSPICIOUS_PATTERN,
                    severity=rule.severity,
                    description=rule.description,
                    line=line_num,
                    context=truncate(line.strip()),
                )
            )
    return findings


def sha256_file(path: Path) -> str:
    hasher = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_HASH_CHUNK), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def _file_size(fh) -> int:
    return os.fstat(fh.fileno()).st_size
