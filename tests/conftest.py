"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from hulud_killer.scanner.rules import RuleRegistry, build_registry


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def samples_dir(fixtures_dir: Path) -> Path:
    return fixtures_dir / "samples"


@pytest.fixture
def registry() -> RuleRegistry:
    """Registry with a small, predictable compromised-package table."""
    return build_registry(
        packages={
            "left-pad": ("3.0.1", "3.0.2"),
            "@ctrl/tinycolor": ("4.1.1", "4.1.2"),
        }
    )


@pytest.fixture
def write_json(tmp_path: Path) -> Callable[[str, object], Path]:
    def _write(relpath: str, data: object) -> Path:
        path = tmp_path / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return _write
