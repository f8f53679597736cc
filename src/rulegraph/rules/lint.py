"""Authoring-time manifest lint: file registration, cycles, rule file structure."""

from __future__ import annotations

import os
import re
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel

from rulegraph.rules.store import ManifestSnapshot, ManifestStore

# Directories under the rules root holding non-rule artifacts
EXCLUDED_DIRS = frozenset({"artifacts"})

# Cross-references to persona documents live outside the manifest
EXTERNAL_REF_PREFIX = "PER-"

_SEMVER = re.compile(r"^\d+\.\d+\.\d+$")
_HEADING = re.compile(r"^#\s+", re.MULTILINE)


class LintSeverity(StrEnum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"


class LintFinding(BaseModel):
    severity: LintSeverity
    check: str
    message: str
    location: str | None = None


def rules_dir_for(store: ManifestStore, root: Path) -> Path:
    """The directory holding the manifest, or ``root/rules`` for in-memory stores."""
    return store.path.parent if store.path is not None else root / "rules"


def lint_manifest(
    store: ManifestStore, root: Path, rules_dir: Path | None = None
) -> list[LintFinding]:
    """Run every lint check against the manifest and the files under *root*."""
    snapshot = store.snapshot()
    rules_dir = rules_dir or rules_dir_for(store, root)
    findings: list[LintFinding] = []
    findings += check_structure(snapshot, root, rules_dir)
    findings += check_routing(snapshot)
    findings += check_cycles(snapshot)
    findings += check_rule_files(snapshot, root)
    findings += check_partitions(snapshot, root)
    return findings


def check_structure(snapshot: ManifestSnapshot, root: Path, rules_dir: Path) -> list[LintFinding]:
    findings: list[LintFinding] = []
    rules = snapshot.rules

    for rule_id, rule in rules.items():
        if not (root / rule.path).exists():
            findings.append(
                _finding(
                    LintSeverity.CRITICAL,
                    "structure",
                    f"Rule {rule_id} references missing file",
                    rule.path,
                )
            )
        for dep in rule.dependencies:
            if dep not in rules:
                findings.append(
                    _finding(
                        LintSeverity.CRITICAL,
                        "structure",
                        f"Rule {rule_id} depends on unknown rule {dep}",
                    )
                )
        for ref in rule.cross_references:
            if ref not in rules and not ref.startswith(EXTERNAL_REF_PREFIX):
                findings.append(
                    _finding(
                        LintSeverity.WARNING,
                        "structure",
                        f"Rule {rule_id} cross-references unknown rule {ref}",
                    )
                )
        for field_name in ("title", "path", "version"):
            if not getattr(rule, field_name):
                findings.append(
                    _finding(
                        LintSeverity.CRITICAL,
                        "structure",
                        f"Rule {rule_id} missing required field: {field_name}",
                    )
                )
        if not rule.triggers:
            findings.append(
                _finding(
                    LintSeverity.WARNING,
                    "structure",
                    f"Rule {rule_id} has no triggers (unreachable by routing)",
                )
            )
        if rule.version and not _SEMVER.match(rule.version):
            findings.append(
                _finding(
                    LintSeverity.WARNING,
                    "structure",
                    f"Rule {rule_id} has invalid version: {rule.version}",
                )
            )

    registered = {Path(r.path).as_posix() for r in rules.values()}
    for md_file in find_rule_files(rules_dir, root):
        if md_file not in registered:
            findings.append(
                _finding(
                    LintSeverity.WARNING,
                    "structure",
                    "File not registered in manifest",
                    md_file,
                )
            )
    return findings


def check_routing(snapshot: ManifestSnapshot) -> list[LintFinding]:
    """Unknown alwaysInclude ids, and rules no red flag would ever pull in.

    The second check is advisory: a rule can still be reached through its
    own triggers or through an edge.
    """
    routing = snapshot.manifest.routing
    findings = [
        _finding(
            LintSeverity.CRITICAL,
            "routing",
            f"alwaysInclude references unknown rule: {rule_id}",
        )
        for rule_id in routing.always_include
        if rule_id not in snapshot.rules
    ]

    always = set(routing.always_include)
    for rule_id, rule in snapshot.rules.items():
        if rule_id in always:
            continue
        if not any(rf.matches(t) for t in rule.triggers for rf in snapshot.red_flags):
            findings.append(
                _finding(
                    LintSeverity.INFO,
                    "routing",
                    f"Rule {rule_id} triggers don't match any routing redFlag pattern",
                )
            )
    return findings


def find_dependency_cycles(snapshot: ManifestSnapshot) -> list[list[str]]:
    """Cycles along resolvable dependency edges, each closed on its first id."""
    rules = snapshot.rules
    cycles: list[list[str]] = []
    visited: set[str] = set()
    on_stack: set[str] = set()

    def visit(node: str, trail: list[str]) -> None:
        if node in on_stack:
            cycles.append(trail[trail.index(node) :] + [node])
            return
        if node in visited:
            return
        visited.add(node)
        on_stack.add(node)
        for dep in rules[node].dependencies:
            if dep in rules:
                visit(dep, trail + [node])
        on_stack.discard(node)

    for rule_id in sorted(rules):
        visit(rule_id, [])
    return cycles


def check_cycles(snapshot: ManifestSnapshot) -> list[LintFinding]:
    return [
        _finding(
            LintSeverity.CRITICAL,
            "cycles",
            f"Dependency cycle detected: {' → '.join(cycle)}",
        )
        for cycle in find_dependency_cycles(snapshot)
    ]


def check_rule_files(snapshot: ManifestSnapshot, root: Path) -> list[LintFinding]:
    findings: list[LintFinding] = []
    for rule_id, rule in snapshot.rules.items():
        file_path = root / rule.path
        if not file_path.is_file():
            continue
        content = file_path.read_text(encoding="utf-8")

        explicit = f"Rule ID: {rule_id}" in content or f"Rule ID:{rule_id}" in content
        heading = re.search(rf"^#\s+{re.escape(rule_id)}[:\s]", content, re.MULTILINE)
        if not explicit and heading is None:
            findings.append(
                _finding(
                    LintSeverity.WARNING,
                    "content",
                    f'Rule file does not reference its own ID "{rule_id}"',
                    rule.path,
                )
            )
        if not _HEADING.search(content):
            findings.append(
                _finding(
                    LintSeverity.WARNING,
                    "content",
                    "Rule file has no top-level heading",
                    rule.path,
                )
            )
        if not re.search(r"##\s+(Directives|Purpose|Contracts|Context)", content, re.IGNORECASE):
            findings.append(
                _finding(
                    LintSeverity.INFO,
                    "content",
                    "Rule file has no Directives/Purpose section",
                    rule.path,
                )
            )
    return findings


def check_partitions(snapshot: ManifestSnapshot, root: Path) -> list[LintFinding]:
    findings: list[LintFinding] = []
    declared = snapshot.manifest.partitions
    for rule_id, rule in snapshot.rules.items():
        if rule.partition not in declared:
            findings.append(
                _finding(
                    LintSeverity.WARNING,
                    "partitions",
                    f"Rule {rule_id} uses unknown partition: {rule.partition}",
                )
            )
    for name, config in declared.items():
        if config.path and not (root / config.path).exists():
            findings.append(
                _finding(
                    LintSeverity.CRITICAL,
                    "partitions",
                    f"Partition directory missing: {config.path}",
                    name,
                )
            )
    return findings


def find_rule_files(rules_dir: Path, root: Path) -> list[str]:
    """Markdown files anywhere under *rules_dir*, relative to *root*."""
    if not rules_dir.is_dir():
        return []
    found: set[str] = set()
    for md_file in rules_dir.rglob("*.md"):
        if EXCLUDED_DIRS & set(md_file.relative_to(rules_dir).parts[:-1]):
            continue
        found.add(Path(os.path.relpath(md_file, root)).as_posix())
    return sorted(found)


def lint_failed(findings: list[LintFinding]) -> bool:
    return any(f.severity != LintSeverity.INFO for f in findings)


def format_lint_report(
    findings: list[LintFinding],
    total_rules: int,
    total_files: int,
    total_partitions: int,
) -> str:
    lines = [
        "===========================================",
        "RULES LINT REPORT",
        "===========================================",
        "",
        f"Rules in manifest: {total_rules}",
        f"Rule files found:  {total_files}",
        f"Partitions:        {total_partitions}",
        "",
    ]
    if not findings:
        lines.append("ALL CHECKS PASSED - Rules system is healthy")
        return "\n".join(lines)

    lines.append(f"Total findings: {len(findings)}")
    for severity in LintSeverity:
        count = sum(1 for f in findings if f.severity == severity)
        lines.append(f"  {severity.value.title()}: {count}")

    for severity in LintSeverity:
        group = [f for f in findings if f.severity == severity]
        if not group:
            continue
        lines += ["", f"{severity.value}:"]
        for f in group:
            where = f" ({f.location})" if f.location else ""
            lines.append(f"  [{f.check}] {f.message}{where}")
    return "\n".join(lines)


def _finding(
    severity: LintSeverity,
    check: str,
    message: str,
    location: str | None = None,
) -> LintFinding:
    return LintFinding(severity=severity, check=check, message=message, location=location)
