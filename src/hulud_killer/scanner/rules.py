"""Rule registry — IOC tables and compiled detection patterns."""

from __future__ import annotations

import functools
import importlib.resources
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

import yaml

from hulud_killer.scanner.models import Severity

logger = logging.getLogger(__name__)

# Known malicious filenames
MALICIOUS_FILES = ("setup_bun.js", "bun_environment.js")

# Known malicious file hashes (SHA-256) from the Netskope IOCs
MALICIOUS_HASHES = (
    "62ee164b9b306250c1172583f138c9614139264f889fa99614903c12755468d0",
    "f099c5d9ec417d4445a0328ac0ada9cde79fc37410914103ae9c609cbc0ee068",
    "cbb9bc5a8496243e02f3cc080efbe3e4a1430ba0671f2e43a202bf45b05479cd",
    "a3894003ad1d293ba96d77881ccd2071446dc3f65f434669b49b3da92421901a",
)

# Directories never descended into
SKIP_DIRS = (".git", ".svn", ".hg", "vendor", "dist", "build", "__pycache__")

# npm lifecycle hooks that run automatically on install/uninstall
DANGEROUS_HOOKS = ("preinstall", "postinstall", "preuninstall", "install")

# Extensions (without the dot) eligible for content scanning
SCANNABLE_EXTENSIONS = ("js", "ts", "mjs", "cjs", "json", "yaml", "yml", "sh")


def _after_first(word: str, tail: str) -> str:
    """Pattern for `word.*tail` that runs in linear time.

    Anchoring at the first `word` of each line means a failed match never
    restarts the `.*` scan from a later occurrence of `word`.
    """
    return rf"(?m)^(?:(?!{word}).)*{word}.*{tail}"


# (regex, description, severity) for line-by-line content matching
_CONTENT_RULES = [
    (r"(?i)SHA1HULUD", "Shai-Hulud runner identifier", Severity.CRITICAL),
    (
        r"(?i)Sha1-Hulud:\s*The\s*Second\s*Coming",
        "Shai-Hulud 2.0 marker string",
        Severity.CRITICAL,
    ),
    (r"setup_bun\.js", "Malicious setup file reference", Severity.CRITICAL),
    (r"bun_environment\.js", "Malicious environment file reference", Severity.CRITICAL),
    (
        r"list_AWS_secrets|list_GCP_secrets|list_Azure_secrets",
        "Cloud secrets enumeration function",
        Severity.CRITICAL,
    ),
    (
        r"githubGetPackagesByMaintainer|githubUpdatePackage",
        "Malicious GitHub package functions",
        Severity.CRITICAL,
    ),
    (r"github_save_file|githubListRepos", "Suspicious GitHub automation", Severity.HIGH),
    (r"gh\s+auth\s+token", "GitHub CLI token extraction", Severity.HIGH),
    (r"\.npmrc", "NPM config file access", Severity.MEDIUM),
    (r"NPM_TOKEN|npm_token", "NPM token reference", Severity.HIGH),
    (r"GITHUB_TOKEN|GH_TOKEN", "GitHub token environment variable", Severity.MEDIUM),
    (r"(?i)trufflehog", "Secret scanning tool reference", Severity.HIGH),
    (r"actions/runner/config", "GitHub Actions runner config access", Severity.HIGH),
    (r"discussion\.ya?ml", "Suspicious workflow filename", Severity.HIGH),
    (r"runs-on:\s*\[?\s*self-hosted", "Self-hosted runner configuration", Severity.MEDIUM),
    (
        _after_first("curl", r"\|\s*(sh|bash|node)"),
        "Remote code execution via curl pipe",
        Severity.HIGH,
    ),
    (
        _after_first("wget", r"\|\s*(sh|bash|node)"),
        "Remote code execution via wget pipe",
        Severity.HIGH,
    ),
    (r"~/\.aws/credentials", "AWS credentials file access", Severity.HIGH),
    (
        r"application_default_credentials\.json",
        "GCP credentials file access",
        Severity.HIGH,
    ),
    (r"azureProfile\.json", "Azure profile access", Severity.HIGH),
    (r"npm\s+publish\s+--access\s+public", "Public npm publish command", Severity.MEDIUM),
]

# (regex, description) applied to lifecycle hook script text
_HOOK_RULES = [
    (r"setup_bun", "Malicious setup script"),
    (r"bun_environment", "Malicious environment script"),
    (r"node\s+-e", "Inline node code execution"),
    (_after_first("curl", r"\|"), "Piped curl command"),
    (_after_first("wget", r"\|"), "Piped wget command"),
    (r"eval\(", "Eval code execution"),
    (r"Function\(", "Dynamic function creation"),
]

_PACKAGES_RESOURCE = "compromised_packages.yaml"


@dataclass(frozen=True)
class PatternRule:
    """A content rule with compiled regex and metadata."""

    regex: re.Pattern[str]
    description: str
    severity: Severity


@dataclass(frozen=True)
class HookRule:
    """A lifecycle-hook rule. Hook matches are always critical."""

    regex: re.Pattern[str]
    description: str


@dataclass(frozen=True, eq=False)
class RuleRegistry:
    """Read-only tables shared by every file analysis.

    Safe for concurrent reads: nothing here is mutated after construction.
    """

    malicious_files: frozenset[str]
    malicious_hashes: frozenset[str]
    skip_dirs: frozenset[str]
    scannable_extensions: frozenset[str]
    dangerous_hooks: tuple[str, ...]
    content_rules: tuple[PatternRule, ...]
    hook_rules: tuple[HookRule, ...]
    compromised_packages: Mapping[str, tuple[str, ...]]

    def infected_versions(self, package: str) -> tuple[str, ...] | None:
        """Return the infected versions of a targeted package, else None."""
        return self.compromised_packages.get(package)

    def compromised_versions(
        self, package: str, version: str
    ) -> tuple[str, ...] | None:
        """Return the infected versions if ``version`` is one of them.

        Exact string comparison only, no semver range resolution.
        """
        versions = self.compromised_packages.get(package)
        if versions is not None and version in versions:
            return versions
        return None


def build_registry(
    extra_packages: Mapping[str, tuple[str, ...]] | None = None,
    packages: Mapping[str, tuple[str, ...]] | None = None,
) -> RuleRegistry:
    """Compile every rule table into a new registry.

    ``packages`` replaces the bundled compromised-package table;
    ``extra_packages`` is merged on top of whichever table is used.
    """
    table = dict(packages) if packages is not None else _load_bundled_packages()
    for name, versions in (extra_packages or {}).items():
        merged = list(table.get(name, ()))
        merged.extend(v for v in versions if v not in merged)
        table[name] = tuple(merged)

    return RuleRegistry(
        malicious_files=frozenset(MALICIOUS_FILES),
        malicious_hashes=frozenset(MALICIOUS_HASHES),
        skip_dirs=frozenset(SKIP_DIRS),
        scannable_extensions=frozenset(SCANNABLE_EXTENSIONS),
        dangerous_hooks=DANGEROUS_HOOKS,
        content_rules=tuple(
            PatternRule(re.compile(p), desc, sev) for p, desc, sev in _CONTENT_RULES
        ),
        hook_rules=tuple(HookRule(re.compile(p), desc) for p, desc in _HOOK_RULES),
        compromised_packages=MappingProxyType(
            {name: tuple(versions) for name, versions in table.items()}
        ),
    )


@functools.lru_cache(maxsize=None)
def get_registry() -> RuleRegistry:
    """Return the process-wide default registry, built on first use."""
    registry = build_registry()
    logger.debug(
        "Rule registry loaded: %d content rules, %d compromised packages",
        len(registry.content_rules),
        len(registry.compromised_packages),
    )
    return registry


def load_packages_file(path: str | Path) -> dict[str, tuple[str, ...]]:
    """Load a YAML mapping of package name to version(s)."""
    text = Path(path).read_text(encoding="utf-8")
    return parse_packages(yaml.safe_load(text))


def parse_packages(data: object) -> dict[str, tuple[str, ...]]:
    """Validate a name -> version(s) mapping.

    Versions must be strings: an unquoted YAML ``1.10`` loads as the float
    ``1.1`` and would silently match the wrong release.
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Compromised package file must be a mapping")

    table: dict[str, tuple[str, ...]] = {}
    for name, versions in data.items():
        if isinstance(versions, str):
            versions = [versions]
        if not isinstance(versions, list):
            raise ValueError(f"Versions for {name!r} must be a string or a list")
        for v in versions:
            if not isinstance(v, str):
                raise ValueError(
                    f"Version {v!r} for {name!r} must be a quoted string"
                )
        table[str(name)] = tuple(versions)
    return table


def _load_bundled_packages() -> dict[str, tuple[str, ...]]:
    pkg = importlib.resources.files("hulud_killer.scanner.data")
    text = pkg.joinpath(_PACKAGES_RESOURCE).read_text(encoding="utf-8")
    return parse_packages(yaml.safe_load(text))
