"""Tests for rules/service.py — RulesService lifecycle and delegation."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from conftest import always_exists, build_manifest, make_rule, write_manifest, write_rules_tree

from rulegraph.rules.config import RulesConfig
from rulegraph.rules.service import (
    RulesService,
    RulesServiceError,
    RulesValidationError,
    ServiceState,
)
from rulegraph.rules.store import ManifestNotFound, ManifestParseError, ManifestStore


def _service(data: dict) -> RulesService:
    return RulesService(ManifestStore.from_dict(data), file_exists=always_exists)


class TestInitialize:
    def test_starts_uninitialized(self):
        service = _service(build_manifest())
        assert service.state == ServiceState.UNINITIALIZED
        assert service.is_ready() is False

    def test_initialize_becomes_ready(self):
        service = _service(build_manifest())
        service.initialize()
        assert service.state == ServiceState.READY
        assert service.is_ready() is True
        result = service.validation_result()
        assert result is not None
        assert result.valid is True

    def test_initialize_is_idempotent(self):
        service = _service(build_manifest())
        service.initialize()
        first = service.validation_result()
        service.initialize()
        assert service.validation_result() is first

    def test_integrity_error_fails_hard(self):
        data = build_manifest()
        data["rules"]["DATA-010"]["dependencies"].append("DATA-999")
        service = _service(data)

        with pytest.raises(RulesValidationError) as exc_info:
            service.initialize()

        assert "Status: INVALID" in exc_info.value.report
        assert "DATA-999" in exc_info.value.report
        assert service.state == ServiceState.FAILED
        assert service.is_ready() is False
        assert service.store.is_loaded is False
        assert service.validation_result() is None

    def test_uncovered_rule_fails_hard(self):
        data = build_manifest()
        data["rules"]["APP-001"] = make_rule("APP-001", "apps", triggers=["checkout"])
        service = _service(data)

        with pytest.raises(RulesValidationError, match="coverage") as exc_info:
            service.initialize()

        assert "  - APP-001" in exc_info.value.report
        assert service.state == ServiceState.FAILED

    def test_warnings_do_not_block(self, caplog: pytest.LogCaptureFixture):
        data = build_manifest()
        data["rules"]["INT-002"]["crossReferences"].append("INT-999")
        service = _service(data)

        with caplog.at_level(logging.WARNING, logger="rulegraph.rules.service"):
            service.initialize()

        assert service.is_ready() is True
        assert "INT-999" in caplog.text

    def test_missing_manifest_propagates(self, tmp_path: Path):
        service = RulesService(ManifestStore(tmp_path / "nope.json"), file_exists=always_exists)
        with pytest.raises(ManifestNotFound):
            service.initialize()
        assert service.state == ServiceState.FAILED

    def test_undecodable_manifest_fails(self, tmp_path: Path):
        path = tmp_path / "manifest.json"
        path.write_bytes(b'{"primaryDirective": "\xff\xfe"}')
        service = RulesService(ManifestStore(path), file_exists=always_exists)
        with pytest.raises(ManifestParseError):
            service.initialize()
        assert service.state == ServiceState.FAILED
        assert service.store.is_loaded is False

    def test_unexpected_error_fails(self):
        def broken_probe(path: str) -> bool:
            raise RuntimeError("disk went away")

        service = RulesService(ManifestStore.from_dict(build_manifest()), file_exists=broken_probe)
        with pytest.raises(RuntimeError):
            service.initialize()
        assert service.state == ServiceState.FAILED
        assert service.validation_result() is None

    def test_validation_error_is_service_error(self):
        assert issubclass(RulesValidationError, RulesServiceError)

    def test_retry_after_fix(self, tmp_path: Path):
        data = build_manifest()
        data["rules"]["DATA-010"]["dependencies"].append("DATA-999")
        path = write_manifest(tmp_path / "manifest.json", data)
        service = RulesService(ManifestStore(path), file_exists=always_exists)

        with pytest.raises(RulesValidationError):
            service.initialize()

        write_manifest(path, build_manifest())
        service.initialize()
        assert service.is_ready() is True

    def test_failure_logs_report(self, caplog: pytest.LogCaptureFixture):
        data = build_manifest()
        data["rules"]["DATA-010"]["dependencies"].append("DATA-999")
        with caplog.at_level(logging.ERROR, logger="rulegraph.rules.service"):
            with pytest.raises(RulesValidationError):
                _service(data).initialize()
        assert "=== Rules Validation Report ===" in caplog.text


class TestReload:
    def test_reload_picks_up_edits(self, tmp_path: Path):
        data = build_manifest()
        path = write_manifest(tmp_path / "manifest.json", data)
        service = RulesService(ManifestStore(path), file_exists=always_exists)
        service.initialize()

        data["rules"]["UI-002"] = make_rule("UI-002", "ui", triggers=["modal"])
        write_manifest(path, data)
        result = service.reload()

        assert result.stats.total_rules == 8
        assert service.get_rule("UI-002") is not None
        assert service.state == ServiceState.READY

    def test_reload_with_errors_stays_ready(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ):
        data = build_manifest()
        path = write_manifest(tmp_path / "manifest.json", data)
        service = RulesService(ManifestStore(path), file_exists=always_exists)
        service.initialize()

        data["rules"]["DATA-010"]["dependencies"].append("DATA-999")
        data["rules"]["APP-001"] = make_rule("APP-001", "apps", triggers=["checkout"])
        write_manifest(path, data)
        with caplog.at_level(logging.ERROR, logger="rulegraph.rules.service"):
            result = service.reload()

        assert result.valid is False
        assert service.state == ServiceState.READY
        assert service.get_routing_coverage().uncovered == ["APP-001"]
        assert "DATA-999" in caplog.text

    def test_reload_load_failure_raises(self, tmp_path: Path):
        path = write_manifest(tmp_path / "manifest.json", build_manifest())
        service = RulesService(ManifestStore(path), file_exists=always_exists)
        service.initialize()

        path.write_text("{broken")
        with pytest.raises(ManifestParseError):
            service.reload()
        assert service.state == ServiceState.FAILED

    def test_reload_before_initialize_initializes(self):
        service = _service(build_manifest())
        result = service.reload()
        assert result.valid is True
        assert service.is_ready() is True


class TestQueries:
    @pytest.fixture
    def service(self) -> RulesService:
        svc = _service(build_manifest())
        svc.initialize()
        return svc

    def test_get_primary_directive(self, service: RulesService):
        assert service.get_primary_directive().id == "ARCH-000"

    def test_get_rule(self, service: RulesService):
        assert service.get_rule("UI-001") is not None
        assert service.get_rule("UI-404") is None

    def test_get_all_rules(self, service: RulesService):
        assert len(service.get_all_rules()) == 7

    def test_route_task(self, service: RulesService, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger="rulegraph.rules.service"):
            result = service.route_task("add a database index")
        assert "DATA-010" in result.rule_ids()
        assert "Routed task" in caplog.text
        assert "Matched 3 rules" in caplog.text

    def test_suggest_rules(self, service: RulesService):
        assert [r.id for r in service.suggest_rules(["webhook"])] == ["INT-002"]

    def test_routing_coverage(self, service: RulesService):
        assert service.get_routing_coverage().complete is True

    def test_format_citation_for_task(self, service: RulesService):
        assert service.format_citation_for_task("add a database index") == (
            "---\n"
            "Rules consulted: ARCH-000, DATA-010\n"
            "Not applicable: SHARED-*, HUB-*, UI-*, APP-*, INT-*\n"
            "Primary Directive: Verified\n"
            "---"
        )


class TestFromConfig:
    def test_builds_from_config(self, tmp_path: Path):
        manifest_path = write_rules_tree(tmp_path, build_manifest())
        config = RulesConfig(manifest_path=str(manifest_path), rules_root=str(tmp_path))
        service = RulesService.from_config(config)
        service.initialize()
        assert service.is_ready() is True

    def test_missing_rule_file_fails_startup(self, tmp_path: Path):
        manifest_path = write_rules_tree(tmp_path, build_manifest())
        (tmp_path / "rules" / "ui" / "UI-001.md").unlink()
        config = RulesConfig(manifest_path=str(manifest_path), rules_root=str(tmp_path))
        with pytest.raises(RulesValidationError) as exc_info:
            RulesService.from_config(config).initialize()
        assert "Rule file not found: rules/ui/UI-001.md" in exc_info.value.report

    def test_independent_instances(self):
        a = _service(build_manifest())
        b = _service(build_manifest())
        a.initialize()
        assert b.state == ServiceState.UNINITIALIZED
