"""Markdown validation report."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..models.ssp import ComplianceDocument, ImplementationStatus, ValidationReport


def generate_validation_report(
    report: ValidationReport,
    document: ComplianceDocument,
    generated_at: Optional[datetime] = None,
) -> str:
    """Render a validation report as markdown."""
    timestamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    verdict = "PASS" if report.valid else "FAIL"

    lines: list[str] = []
    lines.append("# SSP Validation Report")
    lines.append("")
    lines.append(f"**System:** {document.title} (`{document.id}`)")
    lines.append(f"**Baseline:** {report.tier.value} ({document.profile_kind.value})")
    lines.append(f"**Date:** {timestamp}")
    lines.append(f"**Verdict:** {verdict}")
    lines.append(f"**Implementation:** {report.implementation_percentage:.2f}%")
    lines.append("")

    lines.append("## Summary")
    lines.append("")
    lines.append("| Status | Count |")
    lines.append("|--------|-------|")
    for status in ImplementationStatus:
        lines.append(f"| {status.value} | {report.counts_by_status.get(status.value, 0)} |")
    lines.append(f"| **Total** | **{report.total_controls}** |")
    lines.append("")
    lines.append(f"Baseline requires {report.baseline_size} controls.")
    lines.append("")

    if report.missing_controls:
        lines.append("## Missing Controls")
        lines.append("")
        for control_id in report.missing_controls:
            lines.append(f"- {control_id.hyphenated}")
        lines.append("")

    if report.extra_controls:
        lines.append("## Controls Outside the Baseline")
        lines.append("")
        for control_id in report.extra_controls:
            lines.append(f"- {control_id.hyphenated}")
        lines.append("")

    return "\n".join(lines)
