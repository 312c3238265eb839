"""Scan engine — enumerates a tree, fans analysis out, aggregates findings."""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from hulud_killer.scanner.aggregate import aggregate, summarize
from hulud_killer.scanner.checks import analyze_file
from hulud_killer.scanner.models import Finding, ScanConfig, ScanResult
from hulud_killer.scanner.progress import (
    ProgressCallback,
    ProgressCounter,
    noop_progress,
)
from hulud_killer.scanner.rules import RuleRegistry, get_registry
from hulud_killer.scanner.traversal import enumerate_files

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """The scan could not start: bad or unreadable root path."""


class ScanEngine:
    """Runs the file analyzer over every file a traversal admits."""

    def __init__(
        self,
        config: ScanConfig | None = None,
        registry: RuleRegistry | None = None,
        max_workers: int | None = None,
    ) -> None:
        self._config = config or ScanConfig()
        self._registry = registry or get_registry()
        self._max_workers = max_workers

    def scan(self, root: str | Path) -> ScanResult:
        """Scan a directory to completion without progress reporting."""
        return self.scan_with_progress(root, noop_progress)

    def scan_with_progress(
        self,
        root: str | Path,
        on_progress: ProgressCallback,
    ) -> ScanResult:
        """Scan a directory, calling ``on_progress`` once per finished file.

        ``on_progress`` is invoked concurrently from worker threads.
        There is no cancellation: every enumerated file is analyzed before
        this returns.
        """
        root_path = Path(root)
        _check_root(root_path)
        start = time.time()

        files = enumerate_files(root_path, self._config, self._registry)
        counter = ProgressCounter(len(files), on_progress)
        logger.info("Scanning %d files under %s", len(files), root_path)

        def _analyze(path: Path) -> list[Finding]:
            try:
                return analyze_file(path, self._registry)
            finally:
                counter.advance(str(path))

        # Results are only merged once every worker has finished
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            per_file = list(pool.map(_analyze, files))

        findings = aggregate(per_file)
        result = ScanResult(
            scan_path=str(root_path),
            findings=findings,
            summary=summarize(findings),
            scanned_files=len(files),
        )
        logger.info(
            "Scan of %s finished in %.2fs: %d findings",
            root_path,
            time.time() - start,
            result.summary.total,
        )
        return result


def scan(root: str | Path, config: ScanConfig | None = None) -> ScanResult:
    """Synchronous scan with no progress observer."""
    return ScanEngine(config=config).scan(root)


def scan_with_progress(
    root: str | Path,
    config: ScanConfig | None,
    on_progress: ProgressCallback,
) -> ScanResult:
    """Scan with a (thread-safe) progress callback."""
    return ScanEngine(config=config).scan_with_progress(root, on_progress)


def _check_root(root: Path) -> None:
    if not root.exists():
        raise ScanError(f"Path does not exist: {root}")
    if not root.is_dir():
        raise ScanError(f"Not a directory: {root}")
    try:
        with os.scandir(root):
            pass
    except OSError as e:
        raise ScanError(f"Cannot read directory {root}: {e.strerror}") from e
