"""Shared fixtures for rulegraph tests."""

from __future__ import annotations

import copy
import json
from pathlib import Path

import pytest

from rulegraph.rules.store import ManifestStore

PARTITION_ORDER = {
    "architecture": 0,
    "shared": 1,
    "hub": 2,
    "ui": 3,
    "data": 4,
    "apps": 5,
    "integration": 6,
}


def make_rule(
    rule_id: str,
    partition: str,
    priority: str = "MEDIUM",
    *,
    triggers: list[str] | None = None,
    dependencies: list[str] | None = None,
    cross_references: list[str] | None = None,
    version: str = "1.0.0",
) -> dict:
    """Build a wire-format rule entry."""
    return {
        "id": rule_id,
        "title": f"Title of {rule_id}",
        "path": f"rules/{partition}/{rule_id}.md",
        "partition": partition,
        "priority": priority,
        "version": version,
        "triggers": triggers or [],
        "dependencies": dependencies or [],
        "crossReferences": cross_references or [],
        "description": f"Description of {rule_id}",
    }


def build_manifest() -> dict:
    """Seven rules over the standard partitions, every rule reachable."""
    rules = [
        make_rule("ARCH-000", "architecture", "ABSOLUTE", triggers=["*"]),
        make_rule(
            "ARCH-001",
            "architecture",
            "CRITICAL",
            triggers=["architecture", "refactor"],
            dependencies=["ARCH-000"],
        ),
        make_rule("DATA-001", "data", "CRITICAL", triggers=["persistence"]),
        make_rule("DATA-010", "data", "HIGH", triggers=["database"], dependencies=["DATA-001"]),
        make_rule("UI-001", "ui", "MEDIUM", triggers=["component"]),
        make_rule(
            "INT-002",
            "integration",
            "HIGH",
            triggers=["webhook"],
            cross_references=["SHARED-001"],
        ),
        make_rule("SHARED-001", "shared", "LOW", triggers=["naming convention"]),
    ]
    return {
        "version": "1.0.0",
        "lastUpdated": "2026-01-15",
        "primaryDirective": "ARCH-000",
        "rules": {r["id"]: r for r in rules},
        "partitions": {
            name: {
                "path": f"rules/{name}",
                "description": f"{name} rules",
                "readOrder": order,
            }
            for name, order in PARTITION_ORDER.items()
        },
        "routing": {
            "redFlags": [
                {"pattern": "refactor|architecture", "partitions": ["architecture"]},
                {"pattern": "schema|migration", "partitions": ["data"]},
                {"pattern": "layout|button", "partitions": ["ui"]},
                {"pattern": "webhook|api key", "partitions": ["integration"]},
            ],
            "alwaysInclude": ["ARCH-000"],
        },
    }


def build_chain_manifest() -> dict:
    """ROOT -> A, then A -dep-> B -xref-> C -dep-> D, one partition."""
    rules = [
        make_rule("ROOT", "core", "ABSOLUTE", triggers=["*"]),
        make_rule("A", "core", "HIGH", triggers=["alpha"], dependencies=["B"]),
        make_rule("B", "core", "HIGH", cross_references=["C"]),
        make_rule("C", "core", "MEDIUM", dependencies=["D"]),
        make_rule("D", "core", "LOW"),
    ]
    return {
        "primaryDirective": "ROOT",
        "rules": {r["id"]: r for r in rules},
        "partitions": {"core": {"path": "rules/core", "description": "core", "readOrder": 0}},
        "routing": {"redFlags": [], "alwaysInclude": ["ROOT"]},
    }


def write_manifest(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def write_rules_tree(root: Path, data: dict) -> Path:
    """Write manifest.json, partition directories and one file per rule."""
    for config in data["partitions"].values():
        (root / config["path"]).mkdir(parents=True, exist_ok=True)
    for rule_id, rule in data["rules"].items():
        rule_file = root / rule["path"]
        rule_file.parent.mkdir(parents=True, exist_ok=True)
        rule_file.write_text(f"# {rule_id}: {rule['title']}\n\n## Purpose\n\n{rule['description']}\n")
    return write_manifest(root / "rules" / "manifest.json", data)


@pytest.fixture
def manifest_data() -> dict:
    return build_manifest()


@pytest.fixture
def store(manifest_data: dict) -> ManifestStore:
    return ManifestStore.from_dict(copy.deepcopy(manifest_data))


@pytest.fixture
def rules_tree(tmp_path: Path, manifest_data: dict) -> Path:
    """Manifest plus rule files on disk; returns the manifest path."""
    return write_rules_tree(tmp_path, manifest_data)


def always_exists(_path: str) -> bool:
    return True
