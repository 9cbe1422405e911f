# src/caseport/cli.py
"""caseport Command Line Interface.

Entry point for the caseport CLI tool.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from caseport import __version__
from caseport.contracts import CaseportError, MalformedDocumentError, RootNotFoundError
from caseport.core.config import CaseportSettings, load_settings

__all__ = [
    "app",
]

app = typer.Typer(
    name="caseport",
    help="caseport: sanitized export and re-import of appeal record graphs.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"caseport version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    # Don't override existing env vars
    return load_dotenv(override=False)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # We handle existence check ourselves for better error message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """caseport: sanitized export and re-import of appeal record graphs."""
    from caseport.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _format_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    console.print(Panel(content, title=f"[red bold]{title}[/]", border_style="red", padding=(0, 1)))


def _settings_or_exit(settings: Path | None) -> CaseportSettings:
    """Load settings from a YAML file, or defaults (plus CASEPORT_* env vars) without one."""
    if settings is None:
        return CaseportSettings()

    settings_path = settings.expanduser()
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        details = [f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()]
        _format_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None


_SETTINGS_OPTION = typer.Option(
    None,
    "--settings",
    "-s",
    help="Path to settings YAML file.",
)


@app.command("export")
def export_command(
    appeal_uuids: list[str] = typer.Argument(..., help="uuid of each appeal to export."),
    output: Path = typer.Option(
        ...,
        "--output",
        "-o",
        help="Where to write the JSON document.",
    ),
    settings: Path | None = _SETTINGS_OPTION,
    database_url: str | None = typer.Option(
        None,
        "--database-url",
        help="Source database (overrides database.url).",
    ),
    unsanitized: bool = typer.Option(
        False,
        "--unsanitized",
        help="Write original values (admin mode). Overrides export.sanitize.",
    ),
) -> None:
    """Export appeals and all their related records to a JSON document."""
    from sqlalchemy.exc import SQLAlchemyError

    from caseport.core.database import CaseDB
    from caseport.transfer.exporter import SanitizedJsonExporter

    config = _settings_or_exit(settings)
    url = database_url or config.database.url

    try:
        with CaseDB.from_url(url, echo=config.database.echo, create_tables=False) as db:
            exporter = SanitizedJsonExporter(db, sanitize=False if unsanitized else None, settings=config.export)
            exporter.export(appeal_uuids)
            exporter.save(output)
            counts = exporter.record_counts()
    except RootNotFoundError as e:
        _format_error(title="Appeal Not Found", message=str(e), hint="Appeals are looked up by uuid.")
        raise typer.Exit(1) from None
    except CaseportError as e:
        _format_error(title="Export Failed", message=str(e))
        raise typer.Exit(1) from None
    except SQLAlchemyError as e:
        _format_error(
            title="Database Error",
            message=f"{type(e).__name__}: {e}",
            hint="Check --database-url and that the source holds the appeals schema.",
        )
        raise typer.Exit(1) from None

    total = sum(counts.values())
    typer.echo(f"Exported {total} records ({'sanitized' if exporter.sanitize else 'UNSANITIZED'}) to {output}")


@app.command("import")
def import_command(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, help="Export document to import."),
    settings: Path | None = _SETTINGS_OPTION,
    target_url: str | None = typer.Option(
        None,
        "--target-url",
        help="Target database (overrides import.target_url and database.url).",
    ),
    id_offset: int | None = typer.Option(
        None,
        "--id-offset",
        min=1,
        help="Offset added to ids of created records (overrides import.id_offset).",
    ),
    report: Path | None = typer.Option(
        None,
        "--report",
        help="Write the id mapping, counts and warnings as JSON.",
    ),
) -> None:
    """Import an export document into a target database in one transaction."""
    from sqlalchemy.exc import SQLAlchemyError

    from caseport.core.database import CaseDB
    from caseport.transfer.configuration import build_registry
    from caseport.transfer.importer import import_document
    from caseport.transfer.serialization import deserialize

    config = _settings_or_exit(settings)
    registry = build_registry()

    try:
        parsed = deserialize(document.read_text(encoding="utf-8"), registry)
    except MalformedDocumentError as e:
        _format_error(title="Malformed Document", message=str(e), hint="Nothing was written.")
        raise typer.Exit(1) from None

    url = target_url or config.target_url
    try:
        with CaseDB.from_url(url, echo=config.database.echo) as db:
            result = import_document(
                db,
                parsed,
                registry=registry,
                id_offset=id_offset or config.import_.id_offset,
            )
    except CaseportError as e:
        _format_error(title="Import Failed", message=str(e), hint="The transaction was rolled back; nothing was written.")
        raise typer.Exit(1) from None
    except SQLAlchemyError as e:
        _format_error(
            title="Database Error",
            message=f"{type(e).__name__}: {e}",
            hint="The transaction was rolled back. Importing the same document twice into one database collides on created ids.",
        )
        raise typer.Exit(1) from None

    if report is not None:
        report.write_text(json.dumps(result.to_report(), indent=2), encoding="utf-8")

    typer.echo(f"Created {sum(result.created.values())} records, reused {sum(result.reused.values())} in {url}")
    for warning in result.warnings:
        typer.secho(f"  ! {warning}", fg=typer.colors.YELLOW)


@app.command("diff")
def diff_command(
    left: Path = typer.Argument(..., exists=True, dir_okay=False, help="First export document."),
    right: Path = typer.Argument(..., exists=True, dir_okay=False, help="Second export document."),
) -> None:
    """Compare two export documents, ignoring ids and references.

    Exits with status 1 when the documents differ.
    """
    from caseport.transfer.configuration import build_registry
    from caseport.transfer.difference import document_differences
    from caseport.transfer.serialization import deserialize

    registry = build_registry()
    try:
        left_document = deserialize(left.read_text(encoding="utf-8"), registry)
        right_document = deserialize(right.read_text(encoding="utf-8"), registry)
    except MalformedDocumentError as e:
        _format_error(title="Malformed Document", message=str(e))
        raise typer.Exit(1) from None

    differences = document_differences(left_document, right_document, registry)
    if not differences:
        typer.echo("No differences.")
        return
    for difference in differences:
        typer.echo(f"{difference.entity_type}[{difference.index}].{difference.field}: {difference.left!r} != {difference.right!r}")
    raise typer.Exit(1)


@app.command("check-registry")
def check_registry() -> None:
    """Validate the type registry and show retrieval order and import policies."""
    from caseport.contracts import RegistryValidationError
    from caseport.transfer.configuration import build_registry

    try:
        registry = build_registry()
    except RegistryValidationError as e:
        _format_error(title="Invalid Type Registry", message=str(e))
        raise typer.Exit(1) from None

    typer.echo("Retrieval order:")
    for position, entity_type in enumerate(registry, start=1):
        after = f" (after {', '.join(entity_type.depends_on)})" if entity_type.depends_on else ""
        typer.echo(f"  {position:2d}. {entity_type.name}{after}")
    typer.echo(f"Import order: {', '.join(t.name for t in registry.import_order())}")
    typer.echo(f"Tracked: {', '.join(registry.id_mapping_types)}")
    typer.echo(f"Reused by natural key: {', '.join(registry.reuse_record_types)}")
    typer.echo(f"Created raw: {', '.join(registry.raw_creation_types)}")
    typer.echo("Registry OK")


if __name__ == "__main__":
    app()
