"""CLI entry point for the rulegraph rules engine."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import cast

from rulegraph import __version__
from rulegraph.rules.config import RulesConfig, load_rules_config
from rulegraph.rules.lint import (
    find_rule_files,
    format_lint_report,
    lint_failed,
    lint_manifest,
    rules_dir_for,
)
from rulegraph.rules.router import route_task, suggest_rules_for_keywords
from rulegraph.rules.store import ManifestError, ManifestStore
from rulegraph.rules.validator import (
    format_coverage_report,
    format_validation_report,
    path_probe,
    validate_integrity,
    validate_routing,
)


def _config(args: argparse.Namespace) -> RulesConfig:
    config = load_rules_config(cast(Path | None, args.config))
    manifest = cast(str | None, args.manifest)
    root = cast(str | None, args.root)
    if manifest:
        config.manifest_path = manifest
    if root:
        config.rules_root = root
    return config


def _load_store(config: RulesConfig) -> ManifestStore:
    store = ManifestStore(config.manifest_file)
    try:
        store.load()
    except ManifestError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    return store


def _cmd_validate(args: argparse.Namespace) -> None:
    config = _config(args)
    store = _load_store(config)

    result = validate_integrity(store, file_exists=path_probe(config.root_dir))
    coverage = validate_routing(store)

    print(format_validation_report(result))
    print()
    print(format_coverage_report(coverage))

    if not result.valid or not coverage.complete:
        sys.exit(1)


def _cmd_route(args: argparse.Namespace) -> None:
    store = _load_store(_config(args))
    task = " ".join(cast(list[str], args.task))
    try:
        result = route_task(store, task)
    except ManifestError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
        return

    print(result.citation)
    print()
    print(f"Partitions: {', '.join(result.partitions_to_consult)}")
    print("Read order:")
    for i, rule in enumerate(result.read_order, 1):
        print(f"  {i}. {rule.id} [{rule.priority}] {rule.title} ({rule.path})")


def _cmd_suggest(args: argparse.Namespace) -> None:
    store = _load_store(_config(args))
    rules = suggest_rules_for_keywords(store, cast(list[str], args.keywords))
    if not rules:
        print("No matching rules.")
        return
    for rule in rules:
        print(f"{rule.id}: {rule.title}")


def _cmd_audit(args: argparse.Namespace) -> None:
    config = _config(args)
    store = _load_store(config)
    rules_dir = rules_dir_for(store, config.root_dir)
    findings = lint_manifest(store, config.root_dir, rules_dir)
    print(
        format_lint_report(
            findings,
            total_rules=len(store.get_all_rules()),
            total_files=len(find_rule_files(rules_dir, config.root_dir)),
            total_partitions=len(store.snapshot().manifest.partitions),
        )
    )
    if lint_failed(findings):
        print("\nAUDIT FAILED - Fix critical/warning issues before committing")
        sys.exit(1)
    print("\nAUDIT PASSED")


def _cmd_serve(args: argparse.Namespace) -> None:
    from rulegraph.server.runner import run_server

    config = _config(args)
    # The uvicorn factory reads its config from the environment
    os.environ["RULEGRAPH_MANIFEST"] = str(config.manifest_file)
    os.environ["RULEGRAPH_ROOT"] = str(config.root_dir)
    run_server(port=cast(int | None, args.port))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="rulegraph",
        description="Validate and route tasks through a rule manifest",
    )
    _ = parser.add_argument(
        "-V", "--version", action="version", version=f"rulegraph {__version__}"
    )
    _ = parser.add_argument("--config", type=Path, default=None, help="Path to .rulegraph.json")
    _ = parser.add_argument("--manifest", default=None, help="Path to the rules manifest")
    _ = parser.add_argument("--root", default=None, help="Directory rule paths resolve against")
    _ = parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command")

    _ = subparsers.add_parser("validate", help="Check manifest integrity and routing coverage")

    route_p = subparsers.add_parser("route", help="Show the rules relevant to a task")
    _ = route_p.add_argument("task", nargs="*", help="Free-text task description")
    _ = route_p.add_argument("--json", action="store_true", help="Print the full result as JSON")

    suggest_p = subparsers.add_parser("suggest", help="Suggest rules for keywords")
    _ = suggest_p.add_argument("keywords", nargs="+", help="Keywords to match against triggers")

    _ = subparsers.add_parser("audit", help="Lint the manifest and rule files")

    serve_p = subparsers.add_parser("serve", help="Start the HTTP API server")
    _ = serve_p.add_argument("--port", type=int, default=None, help="Port (default: 41780)")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    dispatch = {
        "validate": _cmd_validate,
        "route": _cmd_route,
        "suggest": _cmd_suggest,
        "audit": _cmd_audit,
        "serve": _cmd_serve,
    }
    command = cast(str | None, args.command)
    handler = dispatch.get(command) if command is not None else None
    if handler:
        handler(args)
    else:
        parser.print_help()
        sys.exit(1)
