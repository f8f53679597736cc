"""Pydantic models and enums for the rule manifest graph."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

WILDCARD_TRIGGER = "*"

# Citation shorthand for the standard partitions
DEFAULT_PREFIXES: dict[str, str] = {
    "shared": "SHARED",
    "architecture": "ARCH",
    "hub": "HUB",
    "apps": "APP",
    "data": "DATA",
    "ui": "UI",
    "integration": "INT",
}


class Priority(StrEnum):
    ABSOLUTE = "ABSOLUTE"
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


class _WireModel(BaseModel):
    """Accepts both camelCase wire keys and snake_case attribute names."""

    model_config = ConfigDict(populate_by_name=True)


class Rule(_WireModel):
    id: str
    title: str
    path: str
    partition: str
    priority: Priority
    version: str = ""
    triggers: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    cross_references: list[str] = Field(default_factory=list, alias="crossReferences")
    description: str = ""

    @property
    def has_wildcard(self) -> bool:
        return WILDCARD_TRIGGER in self.triggers

    @property
    def keyword_triggers(self) -> list[str]:
        """Triggers usable for substring matching (no blanks, no wildcard)."""
        return [t for t in self.triggers if t and t != WILDCARD_TRIGGER]


class PartitionConfig(_WireModel):
    path: str = ""
    description: str = ""
    read_order: int = Field(default=0, alias="readOrder")
    prefix: str | None = None


class RedFlag(_WireModel):
    pattern: str
    partitions: list[str] = Field(default_factory=list)


class RoutingConfig(_WireModel):
    red_flags: list[RedFlag] = Field(default_factory=list, alias="redFlags")
    always_include: list[str] = Field(default_factory=list, alias="alwaysInclude")


class Manifest(_WireModel):
    schema_ref: str | None = Field(default=None, alias="$schema")
    version: str = ""
    last_updated: str = Field(default="", alias="lastUpdated")
    primary_directive: str = Field(alias="primaryDirective")
    rules: dict[str, Rule] = Field(default_factory=dict)
    partitions: dict[str, PartitionConfig] = Field(default_factory=dict)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)

    @model_validator(mode="before")
    @classmethod
    def _fill_rule_ids(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        rules = data.get("rules")
        if not isinstance(rules, dict):
            return data
        filled: dict[str, object] = {}
        for key, entry in rules.items():
            if isinstance(entry, dict) and "id" not in entry:
                entry = {**entry, "id": key}
            filled[key] = entry
        return {**data, "rules": filled}

    @model_validator(mode="after")
    def _check_rule_keys(self) -> Manifest:
        for key, rule in self.rules.items():
            if rule.id != key:
                raise ValueError(f"Rule keyed '{key}' declares id '{rule.id}'")
        return self

    def partition_prefix(self, partition: str) -> str:
        config = self.partitions.get(partition)
        if config is not None and config.prefix:
            return config.prefix
        return DEFAULT_PREFIXES.get(partition, partition.upper())


# ------------------------------------------------------------------ #
# Validation results
# ------------------------------------------------------------------ #
class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class IssueType(StrEnum):
    MISSING_FILE = "missing_file"
    MISSING_DEPENDENCY = "missing_dependency"
    MISSING_CROSS_REFERENCE = "missing_cross_reference"
    ORPHAN_RULE = "orphan_rule"
    INVALID_PARTITION = "invalid_partition"
    MISSING_PRIMARY_DIRECTIVE = "missing_primary_directive"
    MISSING_ALWAYS_INCLUDE = "missing_always_include"


class ValidationIssue(_WireModel):
    rule_id: str = Field(alias="ruleId")
    type: IssueType
    message: str
    severity: Severity


class ValidationStats(_WireModel):
    total_rules: int = Field(default=0, alias="totalRules")
    rules_by_partition: dict[str, int] = Field(default_factory=dict, alias="rulesByPartition")
    orphan_rules: list[str] = Field(default_factory=list, alias="orphanRules")
    missing_files: list[str] = Field(default_factory=list, alias="missingFiles")


class ValidationResult(_WireModel):
    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    stats: ValidationStats = Field(default_factory=ValidationStats)


class RoutingCoverage(_WireModel):
    covered: list[str] = Field(default_factory=list)
    uncovered: list[str] = Field(default_factory=list)
    coverage_details: dict[str, list[str]] = Field(default_factory=dict, alias="coverageDetails")

    @property
    def complete(self) -> bool:
        return not self.uncovered


# ------------------------------------------------------------------ #
# Routing results
# ------------------------------------------------------------------ #
class MatchSource(StrEnum):
    ALWAYS_INCLUDE = "always_include"
    RED_FLAG = "red_flag"
    TRIGGER = "trigger"
    DEPENDENCY = "dependency"
    CROSS_REFERENCE = "cross_reference"


class RuleMatch(_WireModel):
    rule: Rule
    source: MatchSource
    matched_triggers: list[str] = Field(default_factory=list, alias="matchedTriggers")
    matched_red_flags: list[str] = Field(default_factory=list, alias="matchedRedFlags")
    via: str | None = None  # rule id that pulled this one in through an edge

    @property
    def from_dependency(self) -> bool:
        return self.source == MatchSource.DEPENDENCY

    @property
    def from_cross_reference(self) -> bool:
        return self.source == MatchSource.CROSS_REFERENCE

    @property
    def is_direct(self) -> bool:
        return bool(self.matched_triggers or self.matched_red_flags)


class TaskRoutingResult(_WireModel):
    task: str
    primary_directive: Rule = Field(alias="primaryDirective")
    matched_rules: list[RuleMatch] = Field(default_factory=list, alias="matchedRules")
    partitions_to_consult: list[str] = Field(default_factory=list, alias="partitionsToConsult")
    read_order: list[Rule] = Field(default_factory=list, alias="readOrder")
    citation: str = ""

    def rule_ids(self) -> list[str]:
        return [m.rule.id for m in self.matched_rules]
