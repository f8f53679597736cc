"""Deterministic task routing over the rule manifest graph."""

from __future__ import annotations

from rulegraph.rules.models import (
    MatchSource,
    Rule,
    RuleMatch,
    TaskRoutingResult,
)
from rulegraph.rules.store import ManifestSnapshot, ManifestStore

# Rules in undeclared partitions sort after every declared partition
UNDECLARED_READ_ORDER = 99


def route_task(store: ManifestStore, task_description: str) -> TaskRoutingResult:
    """Compute the rules relevant to a free-text task.

    Seeds with alwaysInclude, adds whole partitions for matching red flags
    and individual rules for matching triggers, then closes over
    dependency and cross-reference edges. The same text against the same
    manifest always yields the same result.
    """
    snapshot = store.snapshot()
    primary_directive = snapshot.get_primary_directive()
    all_rules = snapshot.get_all_rules()
    task_lower = task_description.lower()

    matches: list[RuleMatch] = []
    added: set[str] = set()

    def add(match: RuleMatch) -> None:
        matches.append(match)
        added.add(match.rule.id)

    for rule in snapshot.get_always_include_rules():
        if rule.id not in added:
            add(
                RuleMatch(
                    rule=rule,
                    source=MatchSource.ALWAYS_INCLUDE,
                    matched_triggers=["*"] if rule.has_wildcard else [],
                )
            )

    for rf in snapshot.red_flags:
        if not rf.matches(task_lower):
            continue
        for partition in rf.partitions:
            for rule in all_rules:
                if rule.partition == partition and rule.id not in added:
                    add(
                        RuleMatch(
                            rule=rule,
                            source=MatchSource.RED_FLAG,
                            matched_red_flags=[rf.source],
                        )
                    )

    for rule in all_rules:
        if rule.id in added:
            continue
        hits = [t for t in rule.keyword_triggers if t.lower() in task_lower]
        if hits:
            add(RuleMatch(rule=rule, source=MatchSource.TRIGGER, matched_triggers=hits))

    to_expand = list(matches)
    while to_expand:
        current = to_expand.pop()
        rule_id = current.rule.id
        edges = [
            (dep, MatchSource.DEPENDENCY) for dep in snapshot.get_rule_dependencies(rule_id)
        ] + [
            (ref, MatchSource.CROSS_REFERENCE)
            for ref in snapshot.get_rule_cross_references(rule_id)
        ]
        for target, source in edges:
            if target.id in added:
                continue
            match = RuleMatch(rule=target, source=source, via=rule_id)
            add(match)
            to_expand.append(match)

    partitions = _ordered_partitions(snapshot, {m.rule.partition for m in matches})
    read_order = sorted(
        (m.rule for m in matches),
        key=lambda r: (_read_order(snapshot, r.partition), r.priority.rank),
    )
    direct_ids = [m.rule.id for m in matches if m.is_direct]

    return TaskRoutingResult(
        task=task_description,
        primary_directive=primary_directive,
        matched_rules=matches,
        partitions_to_consult=partitions,
        read_order=read_order,
        citation=format_citation(snapshot, direct_ids, partitions),
    )


def format_citation(
    snapshot: ManifestSnapshot,
    matched_ids: list[str],
    partitions: list[str],
) -> str:
    """Two-line summary: rules consulted, then partitions not touched."""
    manifest = snapshot.manifest
    if matched_ids:
        consulted = ", ".join(matched_ids)
    else:
        consulted = f"{manifest.primary_directive} (Primary Directive only)"

    touched = set(partitions)
    not_needed = [
        f"{manifest.partition_prefix(p)}-*"
        for p in _ordered_partitions(snapshot, set(manifest.partitions))
        if p not in touched
    ]

    citation = f"Rules consulted: {consulted}"
    if not_needed:
        citation += f"\nNot applicable: {', '.join(not_needed)}"
    return citation


def suggest_rules_for_keywords(store: ManifestStore, keywords: list[str]) -> list[Rule]:
    """Rules whose triggers overlap any keyword (containment either way).

    Advisory only: no red flags and no edge expansion.
    """
    lowered = [k.lower() for k in keywords if k]
    matches: list[Rule] = []
    for rule in store.get_all_rules():
        triggers = [t.lower() for t in rule.triggers if t]
        if any(t in k or k in t for k in lowered for t in triggers):
            matches.append(rule)
    return matches


def _read_order(snapshot: ManifestSnapshot, partition: str) -> int:
    config = snapshot.get_partition_config(partition)
    return config.read_order if config is not None else UNDECLARED_READ_ORDER


def _ordered_partitions(snapshot: ManifestSnapshot, partitions: set[str]) -> list[str]:
    return sorted(partitions, key=lambda p: (_read_order(snapshot, p), p))
