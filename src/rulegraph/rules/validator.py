"""Manifest integrity checks and routing reachability analysis."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from rulegraph.rules.models import (
    IssueType,
    RoutingCoverage,
    Severity,
    ValidationIssue,
    ValidationResult,
    ValidationStats,
)
from rulegraph.rules.store import ManifestSnapshot, ManifestStore

FileProbe = Callable[[str], bool]


def path_probe(root: Path) -> FileProbe:
    """File probe resolving rule paths relative to *root*."""

    def exists(rule_path: str) -> bool:
        return (root / rule_path).exists()

    return exists


def validate_integrity(
    store: ManifestStore,
    *,
    file_exists: FileProbe | None = None,
) -> ValidationResult:
    """Check files, edges and partitions of every rule. Never mutates the store.

    Args:
        store: Manifest to validate.
        file_exists: Probe for rule content locators. Defaults to checking
            paths relative to the current working directory.
    """
    snapshot = store.snapshot()
    manifest = snapshot.manifest
    probe = file_exists or path_probe(Path.cwd())

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    missing_files: list[str] = []
    orphan_rules: list[str] = []
    rules_by_partition: dict[str, int] = {p: 0 for p in manifest.partitions}

    if manifest.primary_directive not in manifest.rules:
        errors.append(
            _issue(
                manifest.primary_directive,
                IssueType.MISSING_PRIMARY_DIRECTIVE,
                f"Primary directive {manifest.primary_directive} not found in manifest",
            )
        )

    for rule_id in manifest.routing.always_include:
        if rule_id not in manifest.rules:
            errors.append(
                _issue(
                    rule_id,
                    IssueType.MISSING_ALWAYS_INCLUDE,
                    f"alwaysInclude references unknown rule {rule_id}",
                )
            )

    for rule in snapshot.get_all_rules():
        rules_by_partition[rule.partition] = rules_by_partition.get(rule.partition, 0) + 1

        if rule.partition not in manifest.partitions:
            errors.append(
                _issue(
                    rule.id,
                    IssueType.INVALID_PARTITION,
                    f"Partition '{rule.partition}' is not declared in manifest",
                )
            )

        if not probe(rule.path):
            missing_files.append(rule.id)
            errors.append(
                _issue(rule.id, IssueType.MISSING_FILE, f"Rule file not found: {rule.path}")
            )

        for dep_id in rule.dependencies:
            if dep_id not in manifest.rules:
                errors.append(
                    _issue(
                        rule.id,
                        IssueType.MISSING_DEPENDENCY,
                        f"Dependency {dep_id} not found in manifest",
                    )
                )

        for ref_id in rule.cross_references:
            if ref_id not in manifest.rules:
                warnings.append(
                    _issue(
                        rule.id,
                        IssueType.MISSING_CROSS_REFERENCE,
                        f"Cross-reference {ref_id} not found in manifest",
                        severity=Severity.WARNING,
                    )
                )

    reachable = find_reachable_rules(snapshot)
    for rule in snapshot.get_all_rules():
        if rule.id not in reachable and not rule.keyword_triggers:
            orphan_rules.append(rule.id)
            warnings.append(
                _issue(
                    rule.id,
                    IssueType.ORPHAN_RULE,
                    "Rule has no triggers and is not reachable via dependencies",
                    severity=Severity.WARNING,
                )
            )

    return ValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        stats=ValidationStats(
            total_rules=len(manifest.rules),
            rules_by_partition=rules_by_partition,
            orphan_rules=orphan_rules,
            missing_files=missing_files,
        ),
    )


def find_reachable_rules(snapshot: ManifestSnapshot) -> dict[str, list[str]]:
    """Reachability closure over the global seed sets.

    Returns a mapping of reachable rule id to the reasons it is reachable.
    Seed reasons are all recorded; an edge reason is recorded for the edge
    that first pulled the rule in.
    """
    manifest = snapshot.manifest
    rules = manifest.rules
    reasons: dict[str, list[str]] = {}

    def seed(rule_id: str, reason: str) -> None:
        if rule_id in rules:
            reasons.setdefault(rule_id, []).append(reason)

    seed(manifest.primary_directive, "primary directive")
    for rule_id in manifest.routing.always_include:
        seed(rule_id, "in alwaysInclude list")
    for rule in rules.values():
        if rule.has_wildcard:
            seed(rule.id, "wildcard trigger (*)")
    for rule in rules.values():
        for rf in snapshot.red_flags:
            if rule.partition in rf.partitions:
                seed(rule.id, f'red flag pattern "{rf.source}" covers partition "{rule.partition}"')
                break

    changed = True
    while changed:
        changed = False
        for source_id in sorted(reasons):
            source = rules[source_id]
            edges = [(d, f"dependency of {source_id}") for d in source.dependencies]
            edges += [(r, f"cross-reference from {source_id}") for r in source.cross_references]
            for target_id, reason in edges:
                if target_id in rules and target_id not in reasons:
                    reasons[target_id] = [reason]
                    changed = True

    return reasons


def validate_routing(store: ManifestStore) -> RoutingCoverage:
    """Report which rules the router can ever surface, and why."""
    snapshot = store.snapshot()
    reachable = find_reachable_rules(snapshot)

    covered: list[str] = []
    uncovered: list[str] = []
    details: dict[str, list[str]] = {}
    for rule in snapshot.get_all_rules():
        if rule.id in reachable:
            covered.append(rule.id)
            details[rule.id] = reachable[rule.id]
        else:
            uncovered.append(rule.id)

    return RoutingCoverage(covered=covered, uncovered=uncovered, coverage_details=details)


def format_validation_report(result: ValidationResult) -> str:
    lines: list[str] = [
        "=== Rules Validation Report ===",
        "",
        f"Status: {'VALID' if result.valid else 'INVALID'}",
        f"Total Rules: {result.stats.total_rules}",
        "",
        "Rules by Partition:",
    ]
    for partition, count in result.stats.rules_by_partition.items():
        lines.append(f"  {partition}: {count}")

    if result.errors:
        lines += ["", "ERRORS:"]
        lines += [f"  [{e.rule_id}] {e.message}" for e in result.errors]

    if result.warnings:
        lines += ["", "WARNINGS:"]
        lines += [f"  [{w.rule_id}] {w.message}" for w in result.warnings]

    if result.stats.orphan_rules:
        lines += ["", "ORPHAN RULES (no routing path):"]
        lines += [f"  {rule_id}" for rule_id in result.stats.orphan_rules]

    lines += ["", "=== End Report ==="]
    return "\n".join(lines)


def format_coverage_report(coverage: RoutingCoverage) -> str:
    if coverage.complete:
        return f"Routing coverage: all {len(coverage.covered)} rules are reachable"

    lines = [
        f"Routing coverage: {len(coverage.uncovered)} rule(s) have no path to be reached:",
    ]
    lines += [f"  - {rule_id}" for rule_id in coverage.uncovered]
    lines += [
        "",
        "Every rule must be reachable via:",
        "  1. Being in the alwaysInclude list",
        "  2. Having partition covered by a red flag pattern",
        "  3. Being a dependency of a covered rule",
        "  4. Being a cross-reference of a covered rule",
        "  5. Having a wildcard (*) trigger",
    ]
    return "\n".join(lines)


def _issue(
    rule_id: str,
    issue_type: IssueType,
    message: str,
    *,
    severity: Severity = Severity.ERROR,
) -> ValidationIssue:
    return ValidationIssue(rule_id=rule_id, type=issue_type, message=message, severity=severity)
