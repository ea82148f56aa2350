"""Command Line Interface for FHIR-Intake.

This module provides a Typer CLI to validate FHIR resources offline, submit
them through the full pipeline, run the API server, and inspect the loaded
configuration.

Security Impact:
    - ``validate`` prints canonical field names only, never extracted values
    - ``info`` never prints the downstream API token
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from fhir_intake.adapters.parsers import JSONResourceParser
from fhir_intake.domain.ports import ArtifactLoadError, FormatError, ResourceValidationError
from fhir_intake.domain.resources import PatientResource, to_fhir_dict
from fhir_intake.domain.validation import IssueSeverity
from fhir_intake.infrastructure.context import IntakeContext, build_context
from fhir_intake.infrastructure.logging_config import setup_logging
from fhir_intake.infrastructure.settings import settings
from fhir_intake.main import create_pipeline, create_validators, process_file

# Initialize Typer app and Rich console
app = typer.Typer(
    name="fhirintake",
    help="FHIR-Intake: validate, normalize and forward FHIR resources",
    add_completion=False
)
console = Console()

_SEVERITY_STYLES = {
    IssueSeverity.ERROR: "red",
    IssueSeverity.WARNING: "yellow",
    IssueSeverity.INFO: "dim",
}


def load_context_cli() -> IntakeContext:
    """Run the startup phase, exiting with code 1 on artifact failures."""
    try:
        return build_context(settings)
    except ArtifactLoadError as e:
        console.print(f"[red]✗[/red] Failed to load validation artifacts: {str(e)}")
        raise typer.Exit(code=1)


@app.command()
def validate(
    input_file: Path = typer.Argument(..., help="FHIR JSON file (Patient or DocumentReference)", exists=True),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Validate and extract a resource without forwarding it."""
    setup_logging(log_level="DEBUG" if verbose else "WARNING")
    context = load_context_cli()

    result = JSONResourceParser().parse(input_file.read_bytes())
    if result.is_failure():
        console.print(f"[red]✗[/red] {result.error_type}: {result.error}")
        raise typer.Exit(code=1)
    resource = result.value

    patient_validator, document_validator = create_validators(context)
    validator = patient_validator if isinstance(resource, PatientResource) else document_validator
    console.print(f"\n[bold blue]Validating {validator.resource_type}[/bold blue] [dim]{input_file}[/dim]")

    reason = validator.shape_error(resource)
    if reason is not None:
        console.print(f"[red]✗[/red] Shape check failed: {reason}")
        raise typer.Exit(code=1)
    console.print("[green]✓[/green] Shape check passed")

    validation = context.profile_validator.validate(to_fhir_dict(resource), validator.profile_id)
    if validation.issues:
        issues_table = Table(show_header=True, header_style="bold")
        issues_table.add_column("Severity")
        issues_table.add_column("Location", style="cyan")
        issues_table.add_column("Message")
        for issue in validation.issues:
            style = _SEVERITY_STYLES[issue.severity]
            issues_table.add_row(f"[{style}]{issue.severity.value}[/{style}]", issue.location, issue.message)
        console.print(issues_table)
    if not validation.ok:
        console.print(f"[red]✗[/red] Profile validation failed against {validator.profile_id}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Profile validation passed ({len(validation.warnings)} warning(s))")

    try:
        record = validator.transformer.extract(resource)
    except ResourceValidationError as e:
        console.print(f"[red]✗[/red] {str(e)}")
        raise typer.Exit(code=1)
    except FormatError as e:
        console.print(f"[red]✗[/red] Extraction failed: {str(e)}")
        raise typer.Exit(code=1)

    fields = ", ".join(record.to_downstream_payload().keys())
    console.print(f"[green]✓[/green] Extracted {type(record).__name__} [dim]({fields})[/dim]")


@app.command()
def submit(
    input_file: Path = typer.Argument(..., help="FHIR JSON file (Patient or DocumentReference)", exists=True),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Validate a resource and forward it to the downstream API."""
    setup_logging(use_json=settings.json_logs, log_level="DEBUG" if verbose else settings.log_level,
                  service=settings.app_name)
    context = load_context_cli()
    pipeline = create_pipeline(context)

    with console.status(f"[bold green]Submitting {input_file.name}..."):
        outcome = process_file(input_file, pipeline)

    if outcome.is_success():
        console.print(f"[green]✓[/green] HTTP {outcome.http_status}: {outcome.outcome.diagnostics}")
        return
    console.print(f"[red]✗[/red] HTTP {outcome.http_status}: {outcome.outcome.diagnostics}")
    raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: FI_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: FI_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the intake API server."""
    import uvicorn

    uvicorn.run(
        "fhir_intake.api.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def info() -> None:
    """Display configuration and loaded artifacts."""
    console.print("[bold blue]System Information[/bold blue]\n")

    downstream = settings.downstream
    artifacts = settings.artifacts
    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Application:", f"{settings.app_name} v{settings.app_version}")
    info_table.add_row("Downstream API:", downstream.base_url)
    info_table.add_row("Patient Path:", downstream.patient_path)
    info_table.add_row("Document Path:", downstream.document_path)
    info_table.add_row("Timeout:", f"{downstream.timeout_seconds:.1f} s")
    info_table.add_row("API Token:", "configured" if downstream.api_token else "not set")
    info_table.add_row("Patient Profile:", artifacts.patient_profile_url)
    info_table.add_row("Document Profile:", artifacts.document_profile_url)
    info_table.add_row("KDL CodeSystem:", artifacts.code_system_url)
    info_table.add_row("KDL ValueSet:", artifacts.value_set_url)
    console.print(info_table)

    context = load_context_cli()
    summary = context.describe()
    console.print(f"\n[bold]Loaded Artifacts[/bold] [dim]({summary['source']})[/dim]")
    artifact_table = Table(show_header=True, header_style="bold")
    artifact_table.add_column("Kind")
    artifact_table.add_column("URL", style="cyan")
    artifact_table.add_column("Version")
    artifact_table.add_column("Size", justify="right")
    for url in summary["profiles"]:
        artifact_table.add_row("StructureDefinition", url, context.profiles[url].get("version", "-"), "-")
    for cs in summary["code_systems"]:
        artifact_table.add_row("CodeSystem", cs["url"], cs["version"] or "-", str(cs["concepts"]))
    for vs in summary["value_sets"]:
        artifact_table.add_row("ValueSet", vs["url"], vs["version"] or "-", str(vs["codes"]))
    console.print(artifact_table)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"{settings.app_name} v{settings.app_version}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Optional[bool] = typer.Option(
        None, "--version", callback=version_callback, is_eager=True, help="Show version information"
    )
) -> None:
    """FHIR-Intake: validate, normalize and forward FHIR resources."""


if __name__ == "__main__":
    app()
