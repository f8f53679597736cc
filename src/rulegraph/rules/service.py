"""RulesService: lifecycle and the single entry point to the rules engine."""

from __future__ import annotations

import logging
import threading
from enum import StrEnum

from rulegraph.rules.config import RulesConfig
from rulegraph.rules.models import (
    PartitionConfig,
    Rule,
    RoutingCoverage,
    TaskRoutingResult,
    ValidationResult,
)
from rulegraph.rules.router import route_task, suggest_rules_for_keywords
from rulegraph.rules.store import ManifestError, ManifestStore
from rulegraph.rules.validator import (
    FileProbe,
    format_coverage_report,
    format_validation_report,
    path_probe,
    validate_integrity,
    validate_routing,
)

logger = logging.getLogger(__name__)


class ServiceState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class RulesServiceError(Exception):
    """Raised when the rules service cannot become ready."""


class RulesValidationError(RulesServiceError):
    """Raised by initialize() when the manifest fails validation."""

    def __init__(self, message: str, report: str) -> None:
        super().__init__(message)
        self.report = report


class RulesService:
    """Owns a ManifestStore and gates readiness on validation.

    Startup is strict: integrity errors and unreachable rules both fail
    initialize(). Reload only logs what it finds.
    """

    def __init__(self, store: ManifestStore, *, file_exists: FileProbe | None = None) -> None:
        self._store = store
        self._file_exists = file_exists
        self._lock = threading.Lock()
        self._state = ServiceState.UNINITIALIZED
        self._validation: ValidationResult | None = None
        self._coverage: RoutingCoverage | None = None

    @classmethod
    def from_config(cls, config: RulesConfig) -> RulesService:
        store = ManifestStore(config.manifest_file)
        return cls(store, file_exists=path_probe(config.root_dir))

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def store(self) -> ManifestStore:
        return self._store

    def is_ready(self) -> bool:
        return self._state == ServiceState.READY

    def initialize(self) -> None:
        with self._lock:
            if self._state == ServiceState.READY:
                return
            self._state = ServiceState.INITIALIZING
            logger.info("Initializing rules service")
            try:
                self._store.load()
                self._check_startup()
            except Exception:
                self._state = ServiceState.FAILED
                self._store.invalidate()
                self._validation = None
                self._coverage = None
                raise
            self._state = ServiceState.READY

    def reload(self) -> ValidationResult:
        """Re-parse and re-validate. Findings are logged, not raised.

        A service that never became ready goes through initialize() instead.
        """
        if self._state != ServiceState.READY:
            self.initialize()
            assert self._validation is not None
            return self._validation

        logger.info("Reloading rules manifest")
        with self._lock:
            try:
                self._store.reload()
            except ManifestError:
                logger.error("Rules manifest reload failed", exc_info=True)
                self._state = ServiceState.FAILED
                raise
            validation = self._run_validation()
            coverage = validate_routing(self._store)
            self._coverage = coverage
            self._state = ServiceState.READY

        if not validation.valid:
            logger.error(f"Reloaded manifest has errors:\n{format_validation_report(validation)}")
        if not coverage.complete:
            logger.error(format_coverage_report(coverage))
        self._log_warnings(validation)
        logger.info("Reload complete")
        return validation

    def get_primary_directive(self) -> Rule:
        return self._store.get_primary_directive()

    def get_rule(self, rule_id: str) -> Rule | None:
        return self._store.get_rule(rule_id)

    def get_all_rules(self) -> list[Rule]:
        return self._store.get_all_rules()

    def get_partition_config(self, partition: str) -> PartitionConfig | None:
        return self._store.get_partition_config(partition)

    def route_task(self, task_description: str) -> TaskRoutingResult:
        result = route_task(self._store, task_description)
        logger.info(f'Routed task: "{task_description[:50]}..."')
        logger.info(f"Matched {len(result.matched_rules)} rules")
        logger.info(f"Partitions: {', '.join(result.partitions_to_consult)}")
        return result

    def suggest_rules(self, keywords: list[str]) -> list[Rule]:
        rules = suggest_rules_for_keywords(self._store, keywords)
        logger.debug(f"Suggested {len(rules)} rules for {keywords}")
        return rules

    def validation_result(self) -> ValidationResult | None:
        return self._validation

    def get_routing_coverage(self) -> RoutingCoverage:
        if self._coverage is not None:
            return self._coverage
        return validate_routing(self._store)

    def format_citation_for_task(self, task_description: str) -> str:
        result = self.route_task(task_description)
        return f"---\n{result.citation}\nPrimary Directive: Verified\n---"

    def _run_validation(self) -> ValidationResult:
        self._validation = validate_integrity(self._store, file_exists=self._file_exists)
        return self._validation

    def _check_startup(self) -> None:
        validation = self._run_validation()
        if not validation.valid:
            report = format_validation_report(validation)
            logger.error(f"Rules validation failed\n{report}")
            raise RulesValidationError("Rules validation failed. See report for errors.", report)

        coverage = validate_routing(self._store)
        self._coverage = coverage
        if not coverage.complete:
            report = format_coverage_report(coverage)
            logger.error(f"Rules routing coverage failed\n{report}")
            raise RulesValidationError(
                "Rules routing coverage failed. All rules must be reachable.", report
            )

        logger.info(f"Loaded {validation.stats.total_rules} rules, all reachable via routing")
        self._log_warnings(validation)

    def _log_warnings(self, validation: ValidationResult) -> None:
        if not validation.warnings:
            return
        logger.warning(f"{len(validation.warnings)} rule warnings:")
        for w in validation.warnings:
            logger.warning(f"  [{w.rule_id}] {w.message}")
