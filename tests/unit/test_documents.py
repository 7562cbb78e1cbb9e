"""Tests for core/documents.py."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from sspkit.core.documents import DocumentStore
from sspkit.core.storage import FileContentStore
from sspkit.errors import (
    DocumentNotFound,
    ImplementationNotFound,
    InvalidDocumentId,
    InvalidParameter,
    InvalidStatus,
    InvalidTier,
    MalformedIdentifier,
    ProfileNotFound,
    StorageUnavailable,
)
from sspkit.models.ssp import ImplementationStatus


class TestCreate:
    def test_seeds_planned_records(self, documents: DocumentStore):
        document = documents.create("Payroll", "HR payroll system", "MODERATE")
        assert document.id == "ssp-001"
        assert [r.control_id.hyphenated for r in document.implementations] == ["AC-1", "AC-2", "SI-4"]
        assert all(r.status is ImplementationStatus.PLANNED for r in document.implementations)
        assert all(r.description == "" and r.responsible_roles == [] for r in document.implementations)
        assert document.created == document.updated

    def test_persisted(self, documents: DocumentStore, tmp_path: Path):
        documents.create("Payroll", "", "LOW", document_id="payroll")
        stored = json.loads((tmp_path / "data" / "ssp" / "payroll.json").read_text(encoding="utf-8"))
        assert stored["id"] == "payroll"
        assert stored["tier"] == "LOW"
        assert stored["implementations"][0]["control_id"] == "AC-1"

    def test_tier_any_case(self, documents: DocumentStore):
        assert documents.create("Payroll", "", "low").tier.value == "LOW"

    def test_invalid_tier(self, documents: DocumentStore):
        with pytest.raises(InvalidTier):
            documents.create("Payroll", "", "EXTREME")

    def test_invalid_document_id(self, documents: DocumentStore):
        with pytest.raises(InvalidDocumentId):
            documents.create("Payroll", "", "LOW", document_id="../escape")

    def test_missing_baseline_writes_nothing(self, documents: DocumentStore, data_store: FileContentStore):
        with pytest.raises(ProfileNotFound):
            documents.create("Payroll", "", "HIGH")
        assert data_store.list("ssp") == []

    def test_agency_specific_kind(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE", kind="agency-specific")
        assert document.profile_kind.value == "agency-specific"
        assert len(document.implementations) == 4


class TestGetAndList:
    def test_round_trip(self, documents: DocumentStore):
        created = documents.create("Payroll", "desc", "MODERATE")
        assert documents.get(created.id) == created

    def test_not_found(self, documents: DocumentStore):
        with pytest.raises(DocumentNotFound) as exc:
            documents.get("nope")
        assert exc.value.context["document_id"] == "nope"

    @pytest.mark.parametrize("document_id", ["../ssp-001", "", "a/b"])
    def test_unsafe_ids_not_found(self, documents: DocumentStore, document_id):
        with pytest.raises(DocumentNotFound):
            documents.get(document_id)

    def test_corrupt_document(self, documents: DocumentStore, tmp_path: Path):
        path = tmp_path / "data" / "ssp" / "broken.json"
        path.parent.mkdir(parents=True)
        path.write_text('{"id": "broken"}', encoding="utf-8")
        with pytest.raises(StorageUnavailable):
            documents.get("broken")

    def test_list_sorted_summaries(self, documents: DocumentStore):
        documents.create("Zeta", "", "LOW", document_id="zeta")
        documents.create("Alpha", "", "MODERATE", document_id="alpha")
        summaries = documents.list()
        assert [s.id for s in summaries] == ["alpha", "zeta"]
        assert summaries[0].title == "Alpha"
        assert summaries[0].tier.value == "MODERATE"

    def test_list_empty(self, documents: DocumentStore):
        assert documents.list() == []

    def test_list_ignores_nested_and_invalid_keys(self, documents: DocumentStore, tmp_path: Path):
        documents.create("Payroll", "", "LOW", document_id="payroll")
        ssp_dir = tmp_path / "data" / "ssp"
        (ssp_dir / "archive").mkdir()
        (ssp_dir / "archive" / "payroll.json").write_text("{}", encoding="utf-8")
        (ssp_dir / "-draft.json").write_text("{}", encoding="utf-8")
        (ssp_dir / "notes.txt").write_text("scratch", encoding="utf-8")
        assert [s.id for s in documents.list()] == ["payroll"]

    def test_list_skips_corrupt_document(self, documents: DocumentStore, tmp_path: Path):
        documents.create("Payroll", "", "LOW", document_id="payroll")
        (tmp_path / "data" / "ssp" / "broken.json").write_text("{not json", encoding="utf-8")
        assert [s.id for s in documents.list()] == ["payroll"]


class TestUpsert:
    def test_replaces_existing_record(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        documents.upsert_implementation(document.id, "ac.1", "IMPLEMENTED", "Policy approved", ["ciso"])

        stored = documents.get(document.id)
        assert len(stored.implementations) == 3
        record = stored.implementations[0]
        assert record.control_id.hyphenated == "AC-1"
        assert record.status is ImplementationStatus.IMPLEMENTED
        assert record.responsible_roles == ["ciso"]

    def test_appends_new_record(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        documents.upsert_implementation(document.id, "CM-6", "PLANNED")
        stored = documents.get(document.id)
        assert [r.control_id.hyphenated for r in stored.implementations][-1] == "CM-6"

    def test_idempotent(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        first = documents.upsert_implementation(document.id, "AC-2", "PARTIALLY_IMPLEMENTED", "x", ["ops"])
        before = documents.get(document.id)
        second = documents.upsert_implementation(document.id, "AC-2", "PARTIALLY_IMPLEMENTED", "x", ["ops"])
        after = documents.get(document.id)
        assert first == second
        assert before.implementations == after.implementations

    def test_spellings_share_one_record(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        for spelling in ("CM-6", "cm.6", "CM 6", "cm6"):
            documents.upsert_implementation(document.id, spelling, "PLANNED")
        assert len(documents.get(document.id).implementations) == 4

    def test_roles_deduplicated(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        record = documents.upsert_implementation(document.id, "AC-1", "IMPLEMENTED", roles=["ops", " ops ", "", "sec"])
        assert record.responsible_roles == ["ops", "sec"]

    def test_single_role_string_kept_whole(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        record = documents.upsert_implementation(document.id, "AC-1", "IMPLEMENTED", roles="admin")
        assert record.responsible_roles == ["admin"]

    @pytest.mark.parametrize("roles", [5, {"role": "admin"}, ["ops", 7]])
    def test_invalid_roles_write_nothing(self, documents: DocumentStore, roles):
        document = documents.create("Payroll", "", "MODERATE")
        with pytest.raises(InvalidParameter):
            documents.upsert_implementation(document.id, "AC-1", "IMPLEMENTED", roles=roles)
        assert documents.get(document.id) == document

    def test_invalid_status_writes_nothing(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        with pytest.raises(InvalidStatus):
            documents.upsert_implementation(document.id, "AC-1", "DONE")
        assert documents.get(document.id) == document

    def test_malformed_control(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        with pytest.raises(MalformedIdentifier):
            documents.upsert_implementation(document.id, "AC_1", "IMPLEMENTED")

    def test_unknown_document(self, documents: DocumentStore):
        with pytest.raises(DocumentNotFound):
            documents.upsert_implementation("missing", "AC-1", "IMPLEMENTED")

    def test_failed_edit_leaves_document_untouched(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        with pytest.raises(RuntimeError):
            with documents.editing(document.id) as editable:
                editable.title = "Changed"
                raise RuntimeError("boom")
        assert documents.get(document.id).title == "Payroll"

    def test_concurrent_upserts_keep_every_record(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        controls = [f"CM-{n}" for n in range(1, 21)]
        barrier = threading.Barrier(len(controls))
        errors: list[Exception] = []

        def worker(control_id: str) -> None:
            try:
                barrier.wait()
                documents.upsert_implementation(document.id, control_id, "IMPLEMENTED")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(c,)) for c in controls]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        stored = documents.get(document.id)
        assert len(stored.implementations) == 3 + len(controls)


class TestImplementationQueries:
    def test_get_implementation(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        record = documents.get_implementation(document.id, "si 4")
        assert record.control_id.hyphenated == "SI-4"

    def test_get_missing_implementation(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        with pytest.raises(ImplementationNotFound) as exc:
            documents.get_implementation(document.id, "CM-6")
        assert exc.value.context["control_id"] == "CM-6"

    def test_list_by_status(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        documents.upsert_implementation(document.id, "AC-1", "IMPLEMENTED")
        assert len(documents.list_implementations(document.id)) == 3
        planned = documents.list_implementations(document.id, "PLANNED")
        assert [r.control_id.hyphenated for r in planned] == ["AC-2", "SI-4"]
        assert documents.list_implementations(document.id, ImplementationStatus.NOT_APPLICABLE) == []

    def test_list_invalid_status(self, documents: DocumentStore):
        document = documents.create("Payroll", "", "MODERATE")
        with pytest.raises(InvalidStatus):
            documents.list_implementations(document.id, "planned-ish")
