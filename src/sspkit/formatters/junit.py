"""JUnit XML formatter for CI/CD integration.

Each control family becomes a testsuite and each control a testcase, so a CI
dashboard shows baseline gaps the same way it shows failing tests.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from xml.dom import minidom
from xml.etree import ElementTree as ET

from ..models.control import ControlIdentifier
from ..models.ssp import ComplianceDocument, ImplementationRecord, ValidationReport


def export_junit_results(
    report: ValidationReport,
    document: ComplianceDocument,
    output_path: Path,
    fail_on: list[str] | None = None,
    suite_name: str | None = None,
) -> dict:
    """Export a validation report as JUnit XML.

    Args:
        report: Result of validating ``document`` against its baseline.
        document: The validated SSP; supplies per-control status.
        output_path: Path to write the XML file.
        fail_on: Implementation statuses to mark as failures. Default: PLANNED.
            Controls missing from the SSP always fail.
        suite_name: Name for the testsuites element. Default: the SSP title.

    Returns:
        Dict with: path, total_tests, failures, passed.
    """
    if fail_on is None:
        fail_on = ["PLANNED"]
    fail_set = {s.upper() for s in fail_on}

    records: dict[ControlIdentifier, ImplementationRecord | None] = {
        record.control_id: record for record in document.implementations
    }
    for control_id in report.missing_controls:
        records.setdefault(control_id, None)

    by_family: dict[str, list[ControlIdentifier]] = {}
    for control_id in sorted(records, key=ControlIdentifier.sort_key):
        by_family.setdefault(control_id.family, []).append(control_id)

    testsuites = ET.Element("testsuites")
    testsuites.set("name", suite_name or document.title or document.id)
    testsuites.set("timestamp", datetime.now().strftime("%Y-%m-%dT%H:%M:%S"))

    total_tests = 0
    total_failures = 0

    for family, control_ids in by_family.items():
        testsuite = ET.SubElement(testsuites, "testsuite")
        testsuite.set("name", family)
        testsuite.set("tests", str(len(control_ids)))

        suite_failures = 0

        for control_id in control_ids:
            total_tests += 1
            record = records[control_id]

            testcase = ET.SubElement(testsuite, "testcase")
            testcase.set("name", control_id.hyphenated)
            testcase.set("classname", f"{document.id}.{family}")

            if record is None:
                failure = ET.SubElement(testcase, "failure")
                failure.set("message", f"{control_id.hyphenated} is required by the "
                                       f"{report.tier.value} baseline but has no implementation record")
                failure.set("type", "missing")
                failure.text = f"Baseline: {report.tier.value}\nControl: {control_id.hyphenated}"
            elif record.status.value in fail_set:
                failure = ET.SubElement(testcase, "failure")
                failure.set("message", f"[{record.status.value}] {control_id.hyphenated}")
                failure.set("type", record.status.value.lower())

                text_parts = [f"Status: {record.status.value}"]
                if record.responsible_roles:
                    text_parts.append(f"Responsible roles: {', '.join(record.responsible_roles)}")
                if record.description:
                    text_parts.append(f"\nDescription:\n{record.description}")
                failure.text = "\n".join(text_parts)
            else:
                continue

            total_failures += 1
            suite_failures += 1

        testsuite.set("failures", str(suite_failures))
        testsuite.set("errors", "0")
        testsuite.set("skipped", "0")

    testsuites.set("tests", str(total_tests))
    testsuites.set("failures", str(total_failures))
    testsuites.set("errors", "0")

    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Pretty-print XML
    rough = ET.tostring(testsuites, encoding="unicode")
    dom = minidom.parseString(rough)
    xml_str = dom.toprettyxml(indent="  ", encoding="UTF-8")
    output_path.write_bytes(xml_str)

    return {
        "path": str(output_path),
        "total_tests": total_tests,
        "failures": total_failures,
        "passed": total_tests - total_failures,
    }
