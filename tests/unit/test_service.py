"""Tests for core/service.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from sspkit.core.content import SAMPLE_SSP_ID
from sspkit.core.service import ComplianceService, initialize_project
from sspkit.errors import ControlNotFound, DocumentNotFound, InvalidParameter, InvalidTier


class TestDispatch:
    def test_method_surface(self, service: ComplianceService):
        assert set(service.methods) == {
            "getControl", "searchControls", "getControlFamilies", "resolveBaseline",
            "createSSP", "getSSP", "listSSPs", "addControlImplementation",
            "getControlImplementation", "listControlImplementations", "validateSSP",
            "getExtensionControl", "searchExtensionControls", "getExtensionControlFamilies",
            "getExtensionControlsByFamily",
        }

    def test_unknown_method(self, service: ComplianceService):
        with pytest.raises(KeyError):
            service.dispatch("deleteEverything", {})

    def test_get_control(self, service: ComplianceService):
        result = service.dispatch("getControl", {"controlId": "ac.2", "includeEnhancements": True})
        assert result["id"] == "AC-2"
        assert result["enhancements"][0] == "AC-2(1)"

    def test_get_control_errors_propagate(self, service: ComplianceService):
        with pytest.raises(ControlNotFound):
            service.dispatch("getControl", {"controlId": "ZZ-1"})

    def test_search_with_baseline(self, service: ComplianceService):
        result = service.dispatch("searchControls", {"baseline": "moderate"})
        assert [c["id"] for c in result] == ["AC-1", "AC-2", "SI-4"]

    def test_search_limit_capped(self, service: ComplianceService):
        service.config["catalog"]["max_search_limit"] = 2
        assert len(service.dispatch("searchControls", {"limit": 500})) == 2

    def test_resolve_baseline(self, service: ComplianceService):
        result = service.dispatch("resolveBaseline", {"securityLevel": "MODERATE"})
        assert result["controls"] == ["AC-1", "AC-2", "SI-4"]
        assert result["kind"] == "standard"

    def test_ssp_lifecycle(self, service: ComplianceService):
        created = service.dispatch("createSSP", {"title": "Payroll", "securityLevel": "MODERATE", "systemId": "payroll"})
        assert created["id"] == "payroll"
        assert len(created["implementations"]) == 3

        service.dispatch("addControlImplementation", {
            "sspId": "payroll",
            "controlId": "AC-1",
            "implementationStatus": "IMPLEMENTED",
            "responsibleRoles": ["ciso"],
        })
        service.dispatch("addControlImplementation", {
            "sspId": "payroll",
            "controlId": "AC-2",
            "implementationStatus": "PARTIALLY_IMPLEMENTED",
        })

        record = service.dispatch("getControlImplementation", {"sspId": "payroll", "controlId": "ac-1"})
        assert record["status"] == "IMPLEMENTED"
        assert record["responsible_roles"] == ["ciso"]

        planned = service.dispatch("listControlImplementations", {"sspId": "payroll", "status": "PLANNED"})
        assert [r["control_id"] for r in planned] == ["SI-4"]

        report = service.dispatch("validateSSP", {"sspId": "payroll"})
        assert report["implementation_percentage"] == 50.0
        assert report["missing_controls"] == []
        assert report["valid"] is True

        assert [s["id"] for s in service.dispatch("listSSPs", {})] == ["payroll"]

    def test_create_invalid_tier(self, service: ComplianceService):
        with pytest.raises(InvalidTier):
            service.dispatch("createSSP", {"title": "x", "securityLevel": "SECRET"})

    def test_get_missing_ssp(self, service: ComplianceService):
        with pytest.raises(DocumentNotFound):
            service.dispatch("getSSP", {"sspId": "missing"})

    def test_extension_methods(self, service: ComplianceService):
        assert service.dispatch("getExtensionControl", {"controlId": "SI-4"})["title"] == "System Monitoring"
        assert "Access Control" in service.dispatch("getExtensionControlFamilies", {})
        assert service.dispatch("searchExtensionControls", {"keywords": "siem"})[0]["id"] == "SI-4"

    def test_extension_controls_by_family(self, service: ComplianceService):
        controls = service.dispatch("getExtensionControlsByFamily", {"familyName": "access control"})
        assert [c["id"] for c in controls] == ["AC-2", "AC-6"]

    def test_extension_search_rejects_non_text(self, service: ComplianceService):
        with pytest.raises(InvalidParameter):
            service.dispatch("searchExtensionControls", {"keywords": 5})


class TestInitializeProject:
    def test_creates_config_content_and_sample(self, tmp_path: Path):
        project = tmp_path / "fresh"
        project.mkdir()
        service = initialize_project(project)
        try:
            assert (project / ".sspkit" / "config.yaml").exists()
            assert (project / "oscal-content" / "profiles" / "baselines" / "moderate_baseline.json").exists()
            assert (project / "data" / "ssp" / f"{SAMPLE_SSP_ID}.json").exists()

            sample = service.dispatch("getSSP", {"sspId": SAMPLE_SSP_ID})
            assert [r["control_id"] for r in sample["implementations"]] == ["AC-1", "AC-2", "SI-4"]
            assert len(service.dispatch("getControlFamilies", {})) == 19
        finally:
            service.close()

    def test_keeps_existing_config(self, tmp_path: Path):
        project = tmp_path / "fresh"
        (project / ".sspkit").mkdir(parents=True)
        (project / ".sspkit" / "config.yaml").write_text("data:\n  path: records\n", encoding="utf-8")
        service = initialize_project(project, with_sample=True)
        try:
            assert (project / "records" / "ssp" / f"{SAMPLE_SSP_ID}.json").exists()
            assert "records" in (project / ".sspkit" / "config.yaml").read_text(encoding="utf-8")
        finally:
            service.close()

    def test_without_sample(self, tmp_path: Path):
        service = initialize_project(tmp_path, with_sample=False)
        try:
            assert service.dispatch("listSSPs", {}) == []
        finally:
            service.close()
