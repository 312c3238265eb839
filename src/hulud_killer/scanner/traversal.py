"""Traversal policy — which entries of a tree get scanned."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from hulud_killer.scanner.models import ScanConfig
from hulud_killer.scanner.rules import RuleRegistry

logger = logging.getLogger(__name__)

_NODE_MODULES = "node_modules"


def should_visit(
    name: str,
    is_dir: bool,
    config: ScanConfig,
    registry: RuleRegistry,
) -> bool:
    """Decide whether a directory entry is descended into or scanned.

    Files are always accepted; dotfiles included.
    """
    if not is_dir:
        return True
    if name == _NODE_MODULES and not config.include_node_modules:
        return False
    return name not in registry.skip_dirs


def enumerate_files(
    root: Path,
    config: ScanConfig,
    registry: RuleRegistry,
) -> list[Path]:
    """List every file under ``root`` that the policy admits.

    The full list is built before any analysis starts so progress has a
    fixed denominator. Unreadable subdirectories are skipped silently and
    symlinked directories are never followed.
    """
    files: list[Path] = []

    def _on_error(err: OSError) -> None:
        logger.debug("Skipping unreadable directory %s: %s", err.filename, err)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        # Prune in place so os.walk never descends into rejected directories
        dirnames[:] = sorted(
            d for d in dirnames if should_visit(d, True, config, registry)
        )

        base = Path(dirpath)
        for name in sorted(filenames):
            if not should_visit(name, False, config, registry):
                continue
            path = base / name
            # Drops sockets, fifos and dangling symlinks
            if path.is_file():
                files.append(path)

    return files
