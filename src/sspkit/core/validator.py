"""SSP validation against its baseline.

Scoring policy:
    percentage = 100 * (IMPLEMENTED + 0.5 * PARTIALLY_IMPLEMENTED) / total records

ALTERNATIVE_IMPLEMENTATION and NOT_APPLICABLE count toward the total but earn
no credit. The total is the number of records in the document, which can
differ from the baseline size when controls were added or removed.
"""

from __future__ import annotations

from ..compliance.baseline import BaselineResolver
from ..models.control import ControlIdentifier
from ..models.ssp import ComplianceDocument, ImplementationStatus, ValidationReport
from .documents import DocumentStore


def calculate_status_counts(document: ComplianceDocument) -> dict[str, int]:
    counts = {status.value: 0 for status in ImplementationStatus}
    for record in document.implementations:
        counts[record.status.value] += 1
    return counts


def calculate_implementation_percentage(counts: dict[str, int], total: int) -> float:
    if total == 0:
        return 0.0
    implemented = counts.get(ImplementationStatus.IMPLEMENTED.value, 0)
    partial = counts.get(ImplementationStatus.PARTIALLY_IMPLEMENTED.value, 0)
    return round(100 * (implemented + 0.5 * partial) / total, 2)


def build_report(document: ComplianceDocument, required: frozenset[ControlIdentifier]) -> ValidationReport:
    """Join required controls against the document's records."""
    present = {record.control_id for record in document.implementations}
    missing = sorted(required - present, key=ControlIdentifier.sort_key)
    extra = sorted(present - required, key=ControlIdentifier.sort_key)

    counts = calculate_status_counts(document)
    total = len(document.implementations)

    return ValidationReport(
        document_id=document.id,
        tier=document.tier,
        valid=not missing,
        missing_controls=missing,
        extra_controls=extra,
        counts_by_status=counts,
        implementation_percentage=calculate_implementation_percentage(counts, total),
        total_controls=total,
        baseline_size=len(required),
    )


class ComplianceValidator:
    def __init__(self, documents: DocumentStore, resolver: BaselineResolver):
        self.documents = documents
        self.resolver = resolver

    def validate(self, document_id: str) -> ValidationReport:
        document = self.documents.get(document_id)
        required = self.resolver.resolve_required_controls(document.tier, document.profile_kind)
        return build_report(document, required)
