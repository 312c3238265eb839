"""Lockfile analyzer — resolved versions in npm, yarn and pnpm lockfiles."""

from __future__ import annotations

import logging
from pathlib import Path

from hulud_killer.scanner.checks.manifest import infected_context, load_json
from hulud_killer.scanner.models import Finding, FindingKind, Severity
from hulud_killer.scanner.rules import RuleRegistry

logger = logging.getLogger(__name__)

NPM_LOCKFILE = "package-lock.json"
YARN_LOCKFILE = "yarn.lock"
PNPM_LOCKFILE = "pnpm-lock.yaml"

LOCKFILE_NAMES = frozenset({NPM_LOCKFILE, YARN_LOCKFILE, PNPM_LOCKFILE})

_NODE_MODULES_PREFIX = "node_modules/"
_UNKNOWN_VERSION = "unknown"


def check_lockfile(path: Path, registry: RuleRegistry) -> list[Finding]:
    """Report compromised package versions pinned by a lockfile.

    Only exact infected versions are reported; a targeted package at some
    other version is not flagged here.
    """
    if path.name == NPM_LOCKFILE:
        return _check_npm_lockfile(path, registry)

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read %s: %s", path, e)
        return []
    return scan_lock_text(str(path), content, registry)


def scan_lock_text(
    path: str, content: str, registry: RuleRegistry
) -> list[Finding]:
    """Substring heuristic for yarn.lock and pnpm-lock.yaml.

    No grammar is applied: a coincidental substring can false-positive and an
    unusual layout (quoting, indentation) can slip through.
    """
    findings: list[Finding] = []
    for name, versions in registry.compromised_packages.items():
        for version in versions:
            candidates = (
                f"{name}@{version}",
                f'"{name}":\n  version: "{version}"',
            )
            if any(c in content for c in candidates):
                findings.append(_infected(path, name, version, versions))
    return findings


def package_name_from_key(key: str) -> str:
    """Recover a package name from an npm v7+ ``packages`` key.

    ``node_modules/a/node_modules/@scope/b`` yields ``@scope/b``.
    """
    _, sep, tail = key.rpartition(_NODE_MODULES_PREFIX)
    return tail if sep else key


def _check_npm_lockfile(path: Path, registry: RuleRegistry) -> list[Finding]:
    data = load_json(path)
    if not isinstance(data, dict):
        return []

    findings: list[Finding] = []

    # npm v7+ flat "packages" map
    packages = data.get("packages")
    if isinstance(packages, dict):
        for key, info in packages.items():
            name = package_name_from_key(key)
            version = _version_of(info)
            infected = registry.compromised_versions(name, version)
            if infected is not None:
                findings.append(_infected(str(path), name, version, infected))

    # npm v6 nested "dependencies" tree
    dependencies = data.get("dependencies")
    if isinstance(dependencies, dict):
        _walk_v6_dependencies(str(path), dependencies, registry, findings)

    return findings


def _walk_v6_dependencies(
    path: str,
    deps: dict,
    registry: RuleRegistry,
    findings: list[Finding],
) -> None:
    pending = [deps]
    while pending:
        level = pending.pop()
        for name, info in level.items():
            version = _version_of(info)
            infected = registry.compromised_versions(name, version)
            if infected is not None:
                findings.append(_infected(path, name, version, infected))

            nested = info.get("dependencies") if isinstance(info, dict) else None
            if isinstance(nested, dict):
                pending.append(nested)


def _version_of(info: object) -> str:
    if isinstance(info, dict):
        version = info.get("version")
        if isinstance(version, str):
            return version
    return _UNKNOWN_VERSION


def _infected(
    path: str, name: str, version: str, versions: tuple[str, ...]
) -> Finding:
    return Finding(
        path=path,
        kind=FindingKind.COMPROMISED_PACKAGE,
        severity=Severity.CRITICAL,
        description=f"INFECTED in lockfile: {name} @ {version}",
        context=infected_context(versions),
    )
