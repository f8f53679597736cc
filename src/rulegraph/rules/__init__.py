"""Rules engine: manifest store, validator, router and service facade."""

from rulegraph.rules.config import RulesConfig, load_rules_config
from rulegraph.rules.models import (
    WILDCARD_TRIGGER,
    IssueType,
    Manifest,
    MatchSource,
    PartitionConfig,
    Priority,
    RedFlag,
    RoutingConfig,
    RoutingCoverage,
    Rule,
    RuleMatch,
    Severity,
    TaskRoutingResult,
    ValidationIssue,
    ValidationResult,
)
from rulegraph.rules.router import route_task, suggest_rules_for_keywords
from rulegraph.rules.service import (
    RulesService,
    RulesServiceError,
    RulesValidationError,
    ServiceState,
)
from rulegraph.rules.store import (
    ManifestError,
    ManifestNotFound,
    ManifestParseError,
    ManifestStore,
    PrimaryDirectiveError,
)
from rulegraph.rules.validator import (
    format_validation_report,
    validate_integrity,
    validate_routing,
)

__all__ = [
    "WILDCARD_TRIGGER",
    "IssueType",
    "Manifest",
    "ManifestError",
    "ManifestNotFound",
    "ManifestParseError",
    "ManifestStore",
    "MatchSource",
    "PartitionConfig",
    "PrimaryDirectiveError",
    "Priority",
    "RedFlag",
    "RoutingConfig",
    "RoutingCoverage",
    "Rule",
    "RuleMatch",
    "RulesConfig",
    "RulesService",
    "RulesServiceError",
    "RulesValidationError",
    "ServiceState",
    "Severity",
    "TaskRoutingResult",
    "ValidationIssue",
    "ValidationResult",
    "format_validation_report",
    "load_rules_config",
    "route_task",
    "suggest_rules_for_keywords",
    "validate_integrity",
    "validate_routing",
]
