"""sspkit - NIST 800-53 control lookup and System Security Plan management."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..errors import SspkitError

console = Console()
err_console = Console(stderr=True)

STATUS_CHOICES = [
    "IMPLEMENTED",
    "PARTIALLY_IMPLEMENTED",
    "PLANNED",
    "ALTERNATIVE_IMPLEMENTATION",
    "NOT_APPLICABLE",
]
TIER_CHOICES = ["LOW", "MODERATE", "HIGH"]
KIND_CHOICES = ["standard", "agency-specific"]


def _overrides(content_path: str | None, data_path: str | None, timeout: float | None) -> dict:
    overrides: dict = {}
    if content_path:
        overrides["content"] = {"path": content_path}
    if data_path:
        overrides["data"] = {"path": data_path}
    if timeout:
        overrides["storage"] = {"timeout_seconds": timeout}
    return overrides


def _service(ctx: click.Context):
    from ..core.service import ComplianceService

    if "service" not in ctx.obj:
        service = ComplianceService.from_project(Path(ctx.obj["project"]), ctx.obj["overrides"])
        ctx.obj["service"] = service
        ctx.call_on_close(service.close)
    return ctx.obj["service"]


def _fail(ctx: click.Context, error: SspkitError) -> None:
    err_console.print(f"  [red]ERROR[/red] {error.kind}: {escape(error.message)}", highlight=False)
    ctx.exit(1)


def _call(ctx: click.Context, method: str, params: dict, render: Callable[[Any], None]) -> None:
    """Run one request and print the result as JSON or through ``render``."""
    try:
        result = _service(ctx).dispatch(method, params)
    except SspkitError as e:
        _fail(ctx, e)
        return
    if ctx.obj["json"]:
        click.echo(json.dumps(result, indent=2))
    else:
        render(result)


def _print_control(control: dict) -> None:
    console.print(f"  [bold cyan]{control['id']}[/bold cyan] {control['title']}", highlight=False)
    console.print(f"  Family: {control['family']}", highlight=False)
    if control.get("description"):
        console.print()
        console.print(f"  {control['description']}", highlight=False)
    if control.get("enhancements"):
        console.print()
        console.print(f"  Enhancements: {', '.join(control['enhancements'])}", highlight=False)


def _print_controls(controls: list[dict]) -> None:
    if not controls:
        console.print("  No matching controls")
        return
    table = Table(show_edge=False)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Family", no_wrap=True)
    table.add_column("Title")
    for control in controls:
        table.add_row(control["id"], control["family"], control["title"])
    console.print(table)


def _print_record(record: dict) -> None:
    console.print(f"  [bold cyan]{record['control_id']}[/bold cyan] {record['status']}", highlight=False)
    if record.get("responsible_roles"):
        console.print(f"  Roles: {', '.join(record['responsible_roles'])}", highlight=False)
    if record.get("description"):
        console.print(f"  {record['description']}", highlight=False)


def _print_records(records: list[dict]) -> None:
    if not records:
        console.print("  No implementation records")
        return
    table = Table(show_edge=False)
    table.add_column("Control", style="cyan", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Roles")
    for record in records:
        table.add_row(record["control_id"], record["status"], ", ".join(record["responsible_roles"]))
    console.print(table)


def _print_document(document: dict) -> None:
    console.print(f"  [bold]{document['title']}[/bold] ({document['id']})", highlight=False)
    console.print(f"  Baseline: {document['tier']} ({document['profile_kind']})", highlight=False)
    console.print(f"  Status:   {document['status']}", highlight=False)
    console.print(f"  Updated:  {document['updated']}", highlight=False)
    if document.get("description"):
        console.print(f"  {document['description']}", highlight=False)
    console.print()
    _print_records(document["implementations"])


def _print_names(names: list) -> None:
    for name in names:
        console.print(f"  {name}", highlight=False)


def _print_extension_control(control: dict) -> None:
    console.print(f"  [bold cyan]{control.get('id', '?')}[/bold cyan] {control.get('title', '')}", highlight=False)
    if control.get("description"):
        console.print(f"  {control['description']}", highlight=False)
    if control.get("notes"):
        console.print(f"  Notes: {control['notes']}", highlight=False)
    steps = control.get("implementation") or []
    if isinstance(steps, str):
        steps = [steps]
    for step in steps:
        console.print(f"    - {step}", highlight=False)


def _print_guidance_list(controls: list[dict]) -> None:
    if not controls:
        console.print("  No matching guidance")
    for item in controls:
        console.print(f"  [cyan]{item.get('id', '?')}[/cyan] {item.get('title', '')}", highlight=False)


@click.group()
@click.pass_context
@click.option("--project", "-p", type=click.Path(file_okay=False), default=".", help="Project root")
@click.option("--content-path", type=str, help="OSCAL content directory override")
@click.option("--data-path", type=str, help="SSP data directory override")
@click.option("--timeout", type=float, help="Storage timeout in seconds")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
def cli(
    ctx: click.Context,
    project: str,
    content_path: str | None,
    data_path: str | None,
    timeout: float | None,
    as_json: bool,
) -> None:
    """sspkit - NIST 800-53 controls, baselines and System Security Plans."""
    ctx.ensure_object(dict)
    ctx.obj["project"] = project
    ctx.obj["overrides"] = _overrides(content_path, data_path, timeout)
    ctx.obj["json"] = as_json


@cli.command()
@click.pass_context
@click.option("--no-sample", is_flag=True, help="Skip writing the sample SSP")
@click.option("--force", is_flag=True, help="Overwrite existing content files")
def init(ctx: click.Context, no_sample: bool, force: bool) -> None:
    """Initialize sspkit in a project: config, sample content and sample SSP."""
    from ..core.service import initialize_project

    project_path = Path(ctx.obj["project"])
    project_path.mkdir(parents=True, exist_ok=True)
    try:
        service = initialize_project(
            project_path,
            with_sample=not no_sample,
            overwrite=force,
            cli_overrides=ctx.obj["overrides"],
        )
    except SspkitError as e:
        _fail(ctx, e)
        return
    service.close()


@cli.command()
@click.pass_context
def families(ctx: click.Context) -> None:
    """List control families."""
    def render(result: list[dict]) -> None:
        for family in result:
            console.print(f"  [cyan]{family['id']}[/cyan]  {family['title']}", highlight=False)

    _call(ctx, "getControlFamilies", {}, render)


@cli.command()
@click.pass_context
@click.argument("control_id")
@click.option("--enhancements", is_flag=True, help="Include enhancement ids")
def control(ctx: click.Context, control_id: str, enhancements: bool) -> None:
    """Show one control. Accepts AC-2, AC.2, AC 2, AC2, ac-2.1 and AC-2(1)."""
    _call(ctx, "getControl", {"controlId": control_id, "includeEnhancements": enhancements}, _print_control)


@cli.command()
@click.pass_context
@click.argument("query", required=False)
@click.option("--family", "-f", type=str, help="Family code, e.g. AC")
@click.option("--baseline", "-b", type=click.Choice(TIER_CHOICES, case_sensitive=False))
@click.option("--kind", type=click.Choice(KIND_CHOICES), help="Profile kind for --baseline")
@click.option("--limit", "-n", type=int, help="Maximum results")
def search(
    ctx: click.Context,
    query: str | None,
    family: str | None,
    baseline: str | None,
    kind: str | None,
    limit: int | None,
) -> None:
    """Search the control catalog."""
    params = {"query": query, "family": family, "baseline": baseline, "profileKind": kind, "limit": limit}
    _call(ctx, "searchControls", params, _print_controls)


@cli.command()
@click.pass_context
@click.argument("tier", type=click.Choice(TIER_CHOICES, case_sensitive=False))
@click.option("--kind", type=click.Choice(KIND_CHOICES), help="Profile kind")
def baseline(ctx: click.Context, tier: str, kind: str | None) -> None:
    """List the controls a baseline requires."""
    def render(result: dict) -> None:
        console.print(f"  [bold]{result['title'] or result['tier']}[/bold]", highlight=False)
        console.print(f"  Source: {result['source']}", highlight=False)
        console.print(f"  Controls ({len(result['controls'])}): {', '.join(result['controls'])}", highlight=False)

    _call(ctx, "resolveBaseline", {"securityLevel": tier, "profileKind": kind}, render)


@cli.command()
@click.pass_context
@click.argument("title")
@click.option("--tier", "-t", required=True, type=click.Choice(TIER_CHOICES, case_sensitive=False))
@click.option("--description", "-d", default="", help="System description")
@click.option("--id", "system_id", type=str, help="SSP id (default: random UUID)")
@click.option("--kind", type=click.Choice(KIND_CHOICES), help="Profile kind")
def create(
    ctx: click.Context,
    title: str,
    tier: str,
    description: str,
    system_id: str | None,
    kind: str | None,
) -> None:
    """Create an SSP seeded with every baseline control as PLANNED."""
    params = {
        "title": title,
        "description": description,
        "securityLevel": tier,
        "systemId": system_id,
        "profileKind": kind,
    }

    def render(result: dict) -> None:
        console.print(f"  [green]OK[/green] {result['id']}", highlight=False)

    _call(ctx, "createSSP", params, render)


@cli.command()
@click.pass_context
@click.argument("ssp_id")
def show(ctx: click.Context, ssp_id: str) -> None:
    """Show an SSP."""
    _call(ctx, "getSSP", {"sspId": ssp_id}, _print_document)


@cli.command("list")
@click.pass_context
def list_ssps(ctx: click.Context) -> None:
    """List SSPs."""
    def render(result: list[dict]) -> None:
        if not result:
            console.print("  No SSPs")
            return
        table = Table(show_edge=False)
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("Baseline", no_wrap=True)
        table.add_column("Updated", no_wrap=True)
        for summary in result:
            table.add_row(summary["id"], summary["title"], summary["tier"], summary["updated"])
        console.print(table)

    _call(ctx, "listSSPs", {}, render)


@cli.command("set")
@click.pass_context
@click.argument("ssp_id")
@click.argument("control_id")
@click.argument("status", type=click.Choice(STATUS_CHOICES, case_sensitive=False))
@click.option("--description", "-d", default="", help="Implementation narrative")
@click.option("--role", "-r", "roles", multiple=True, help="Responsible role (repeatable)")
def set_implementation(
    ctx: click.Context,
    ssp_id: str,
    control_id: str,
    status: str,
    description: str,
    roles: tuple[str, ...],
) -> None:
    """Add or replace the implementation record for a control.

    Example: sspkit set sample-ssp AC-2 IMPLEMENTED -r system-administrators
    """
    params = {
        "sspId": ssp_id,
        "controlId": control_id,
        "implementationStatus": status.upper(),
        "description": description,
        "responsibleRoles": list(roles),
    }
    _call(ctx, "addControlImplementation", params, _print_record)


@cli.command()
@click.pass_context
@click.argument("ssp_id")
@click.argument("control_id")
def impl(ctx: click.Context, ssp_id: str, control_id: str) -> None:
    """Show the implementation record for one control."""
    _call(ctx, "getControlImplementation", {"sspId": ssp_id, "controlId": control_id}, _print_record)


@cli.command()
@click.pass_context
@click.argument("ssp_id")
@click.option("--status", "-s", type=click.Choice(STATUS_CHOICES, case_sensitive=False))
def impls(ctx: click.Context, ssp_id: str, status: str | None) -> None:
    """List implementation records, optionally by status."""
    params = {"sspId": ssp_id, "status": status.upper() if status else None}
    _call(ctx, "listControlImplementations", params, _print_records)


@cli.command()
@click.pass_context
@click.argument("ssp_id")
@click.option("--junit", "junit_path", type=click.Path(dir_okay=False), help="Write JUnit XML here")
@click.option("--report", "report_path", type=click.Path(dir_okay=False), help="Write a markdown report here")
@click.option("--ci", is_flag=True, help="CI mode: exit 1 when the SSP is invalid")
def validate(
    ctx: click.Context,
    ssp_id: str,
    junit_path: str | None,
    report_path: str | None,
    ci: bool,
) -> None:
    """Validate an SSP against its baseline."""
    from ..formatters.junit import export_junit_results
    from ..formatters.report import generate_validation_report

    service = _service(ctx)
    try:
        document = service.documents.get(ssp_id)
        report = service.validator.validate(ssp_id)
    except SspkitError as e:
        _fail(ctx, e)
        return

    if ctx.obj["json"]:
        click.echo(report.model_dump_json(indent=2))
    else:
        color = "green" if report.valid else "red"
        verdict = "VALID" if report.valid else "INVALID"
        console.print(f"  [{color}]{verdict}[/{color}] {document.title} ({report.tier.value})", highlight=False)
        console.print(f"  Implementation: {report.implementation_percentage:.2f}%", highlight=False)
        console.print(f"  Records: {report.total_controls}  Baseline: {report.baseline_size}", highlight=False)
        for status, count in report.counts_by_status.items():
            if count:
                console.print(f"    {status}: {count}", highlight=False)
        if report.missing_controls:
            missing = ", ".join(c.hyphenated for c in report.missing_controls)
            console.print(f"  Missing: {missing}", highlight=False)

    if junit_path:
        result = export_junit_results(
            report, document, Path(junit_path), fail_on=service.config["validation"]["fail_on"]
        )
        err_console.print(
            f"  [green]Wrote[/green] {result['path']} ({result['failures']}/{result['total_tests']} failing)",
            highlight=False,
        )
    if report_path:
        path = Path(report_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(generate_validation_report(report, document), encoding="utf-8")
        err_console.print(f"  [green]Wrote[/green] {path}", highlight=False)

    if ci:
        sys.exit(0 if report.valid else 1)


@cli.command("ext-control")
@click.pass_context
@click.argument("control_id")
@click.option("--framework", type=str, help="Extension framework (default from config)")
def ext_control(ctx: click.Context, control_id: str, framework: str | None) -> None:
    """Show cloud-native guidance for a control."""
    _call(ctx, "getExtensionControl", {"controlId": control_id, "framework": framework}, _print_extension_control)


@cli.command("ext-search")
@click.pass_context
@click.option("--id", "control_id", type=str, help="Control id substring")
@click.option("--family", type=str, help="Family name substring")
@click.option("--keywords", "-k", type=str, help="Text in title, description or notes")
@click.option("--framework", type=str, help="Extension framework (default from config)")
def ext_search(
    ctx: click.Context,
    control_id: str | None,
    family: str | None,
    keywords: str | None,
    framework: str | None,
) -> None:
    """Search cloud-native guidance."""
    params = {"id": control_id, "familyName": family, "keywords": keywords, "framework": framework}
    _call(ctx, "searchExtensionControls", params, _print_guidance_list)


@cli.command("ext-family")
@click.pass_context
@click.argument("family_name")
@click.option("--framework", type=str, help="Extension framework (default from config)")
def ext_family(ctx: click.Context, family_name: str, framework: str | None) -> None:
    """List cloud-native guidance for the first family matching FAMILY_NAME."""
    _call(ctx, "getExtensionControlsByFamily", {"familyName": family_name, "framework": framework}, _print_guidance_list)


@cli.command("ext-families")
@click.pass_context
@click.option("--framework", type=str, help="Extension framework (default from config)")
def ext_families(ctx: click.Context, framework: str | None) -> None:
    """List families with cloud-native guidance."""
    _call(ctx, "getExtensionControlFamilies", {"framework": framework}, _print_names)


@cli.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Serve JSON-RPC requests on stdin/stdout, one per line."""
    from ..core.server import serve as serve_stdio

    serve_stdio(_service(ctx), click.get_text_stream("stdin"), click.get_text_stream("stdout"))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
