"""package.json analyzer — lifecycle hooks and declared dependencies."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from hulud_killer.scanner.checks.files import truncate
from hulud_killer.scanner.models import Finding, FindingKind, Severity
from hulud_killer.scanner.rules import RuleRegistry

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"

DEPENDENCY_SECTIONS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)

_UNKNOWN_VERSION = "unknown"


def check_package_json(path: Path, registry: RuleRegistry) -> list[Finding]:
    """Flag dangerous install hooks and compromised dependency versions."""
    data = load_json(path)
    if not isinstance(data, dict):
        return []

    findings = _check_hooks(str(path), data, registry)
    findings.extend(_check_dependencies(str(path), data, registry))
    return findings


def load_json(path: Path) -> object | None:
    """Parse a JSON file, returning None when it is unreadable or malformed."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None
    try:
        return json.loads(text)
    except (ValueError, RecursionError) as e:
        logger.debug("Malformed JSON in %s: %s", path, e)
        return None


def infected_context(versions: tuple[str, ...]) -> str:
    return f"Infected versions: {', '.join(versions)}"


def _check_hooks(path: str, data: dict, registry: RuleRegistry) -> list[Finding]:
    scripts = data.get("scripts")
    if not isinstance(scripts, dict):
        return []

    findings: list[Finding] = []
    for hook in registry.dangerous_hooks:
        script = scripts.get(hook)
        if not isinstance(script, str):
            continue
        for rule in registry.hook_rules:
            if rule.regex.search(script):
                findings.append(
                    Finding(
                        path=path,
                        kind=FindingKind.DANGEROUS_HOOK,
                        severity=Severity.CRITICAL,
                        description=f"{rule.description} in '{hook}' hook",
                        context=truncate(script),
                    )
                )
    return findings


def _check_dependencies(
    path: str, data: dict, registry: RuleRegistry
) -> list[Finding]:
    findings: list[Finding] = []
    for section in DEPENDENCY_SECTIONS:
        deps = data.get(section)
        if not isinstance(deps, dict):
            continue

        for name, spec in deps.items():
            version = spec if isinstance(spec, str) else _UNKNOWN_VERSION

            infected = registry.compromised_versions(name, version)
            if infected is not None:
                findings.append(
                    Finding(
                        path=path,
                        kind=FindingKind.COMPROMISED_PACKAGE,
                        severity=Severity.CRITICAL,
                        description=(
                            f"INFECTED package: {name} @ {version} (Shai-Hulud 2.0)"
                        ),
                        context=infected_context(infected),
                    )
                )
                continue

            # Targeted package, but not one of the known-bad versions
            targeted = registry.infected_versions(name)
            if targeted is not None:
                findings.append(
                    Finding(
                        path=path,
                        kind=FindingKind.COMPROMISED_PACKAGE,
                        severity=Severity.MEDIUM,
                        description=(
                            f"Package {name} was targeted "
                            f"(your version {version} may be safe)"
                        ),
                        context=infected_context(targeted),
                    )
                )
    return findings
