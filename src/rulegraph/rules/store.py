"""ManifestStore: load, cache and query the rule manifest graph."""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from rulegraph.rules.models import Manifest, PartitionConfig, Rule

logger = logging.getLogger(__name__)


class ManifestError(Exception):
    """Base class for manifest loading failures."""


class ManifestNotFound(ManifestError):
    """Raised when the manifest source does not exist."""


class ManifestParseError(ManifestError):
    """Raised when the manifest source is not a valid manifest."""


class PrimaryDirectiveError(ManifestError):
    """Raised when the configured primary directive does not resolve."""


@dataclass(frozen=True)
class CompiledRedFlag:
    pattern: re.Pattern[str]
    partitions: tuple[str, ...]

    @property
    def source(self) -> str:
        return self.pattern.pattern

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


@dataclass(frozen=True)
class ManifestSnapshot:
    """One fully parsed manifest plus its derived indices.

    Built once per load and never mutated afterwards.
    """

    manifest: Manifest
    red_flags: tuple[CompiledRedFlag, ...]
    by_partition: dict[str, tuple[Rule, ...]] = field(default_factory=dict)

    @classmethod
    def build(cls, manifest: Manifest) -> ManifestSnapshot:
        red_flags: list[CompiledRedFlag] = []
        for rf in manifest.routing.red_flags:
            try:
                compiled = re.compile(rf.pattern, re.IGNORECASE)
            except re.error as e:
                raise ManifestParseError(f"Invalid red flag pattern {rf.pattern!r}: {e}") from e
            red_flags.append(CompiledRedFlag(pattern=compiled, partitions=tuple(rf.partitions)))

        grouped: dict[str, list[Rule]] = {}
        for rule in manifest.rules.values():
            grouped.setdefault(rule.partition, []).append(rule)

        return cls(
            manifest=manifest,
            red_flags=tuple(red_flags),
            by_partition={p: tuple(rules) for p, rules in grouped.items()},
        )

    @property
    def rules(self) -> dict[str, Rule]:
        return self.manifest.rules

    def get_rule(self, rule_id: str) -> Rule | None:
        return self.manifest.rules.get(rule_id)

    def get_all_rules(self) -> list[Rule]:
        return list(self.manifest.rules.values())

    def get_rules_by_partition(self, partition: str) -> list[Rule]:
        return list(self.by_partition.get(partition, ()))

    def get_rule_dependencies(self, rule_id: str) -> list[Rule]:
        rule = self.get_rule(rule_id)
        if rule is None:
            return []
        return self._resolve(rule.dependencies)

    def get_rule_cross_references(self, rule_id: str) -> list[Rule]:
        rule = self.get_rule(rule_id)
        if rule is None:
            return []
        return self._resolve(rule.cross_references)

    def get_partition_config(self, partition: str) -> PartitionConfig | None:
        return self.manifest.partitions.get(partition)

    def get_red_flags(self) -> list[CompiledRedFlag]:
        return list(self.red_flags)

    def get_always_include_rules(self) -> list[Rule]:
        return self._resolve(self.manifest.routing.always_include)

    def get_primary_directive(self) -> Rule:
        directive = self.get_rule(self.manifest.primary_directive)
        if directive is None:
            raise PrimaryDirectiveError(
                f"Primary directive {self.manifest.primary_directive} not found in manifest"
            )
        return directive

    def _resolve(self, rule_ids: list[str]) -> list[Rule]:
        rules = self.manifest.rules
        return [rules[rid] for rid in rule_ids if rid in rules]


class ManifestStore:
    """Cached, reloadable access to a single manifest source.

    The cached snapshot is replaced wholesale on reload; callers holding an
    older snapshot keep a consistent (if stale) view.
    """

    def __init__(self, path: Path | None = None, *, data: dict | None = None) -> None:
        if path is None and data is None:
            raise ValueError("ManifestStore needs a path or parsed data")
        self._path = path
        self._data = data
        self._lock = threading.Lock()
        self._snapshot: ManifestSnapshot | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ManifestStore:
        """Build a store over already parsed manifest data."""
        return cls(data=data)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def snapshot(self) -> ManifestSnapshot:
        """Return the current snapshot, loading it on first access."""
        current = self._snapshot
        if current is not None:
            return current
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._parse()
            return self._snapshot

    def load(self) -> Manifest:
        return self.snapshot().manifest

    def reload(self) -> Manifest:
        """Drop the cached manifest and parse the source again."""
        with self._lock:
            self._snapshot = None
            self._snapshot = self._parse()
            return self._snapshot.manifest

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None

    def get_rule(self, rule_id: str) -> Rule | None:
        return self.snapshot().get_rule(rule_id)

    def get_all_rules(self) -> list[Rule]:
        return self.snapshot().get_all_rules()

    def get_rules_by_partition(self, partition: str) -> list[Rule]:
        return self.snapshot().get_rules_by_partition(partition)

    def get_rule_dependencies(self, rule_id: str) -> list[Rule]:
        return self.snapshot().get_rule_dependencies(rule_id)

    def get_rule_cross_references(self, rule_id: str) -> list[Rule]:
        return self.snapshot().get_rule_cross_references(rule_id)

    def get_partition_config(self, partition: str) -> PartitionConfig | None:
        return self.snapshot().get_partition_config(partition)

    def get_red_flags(self) -> list[CompiledRedFlag]:
        return self.snapshot().get_red_flags()

    def get_always_include_rules(self) -> list[Rule]:
        return self.snapshot().get_always_include_rules()

    def get_primary_directive(self) -> Rule:
        return self.snapshot().get_primary_directive()

    def _parse(self) -> ManifestSnapshot:
        data = self._data if self._data is not None else self._read()
        try:
            manifest = Manifest.model_validate(data)
        except ValidationError as e:
            raise ManifestParseError(f"Manifest does not match schema: {e}") from e
        snapshot = ManifestSnapshot.build(manifest)
        logger.debug(f"Parsed manifest with {len(manifest.rules)} rules")
        return snapshot

    def _read(self) -> object:
        assert self._path is not None
        if not self._path.exists():
            raise ManifestNotFound(f"Rules manifest not found at {self._path}")
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ManifestParseError(f"Rules manifest at {self._path} is not valid JSON: {e}") from e
        except UnicodeDecodeError as e:
            raise ManifestParseError(f"Rules manifest at {self._path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise ManifestNotFound(f"Rules manifest at {self._path} is unreadable: {e}") from e
