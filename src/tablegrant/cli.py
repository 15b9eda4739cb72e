"""CLI entry point for tablegrant."""

from io import StringIO
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from tablegrant.global_models import Database, Permission
from tablegrant.permissions.analyzer import PermissionAnalyzer
from tablegrant.permissions.formatters import (
    CsvFormatter,
    JsonFormatter,
    ModelCsvFormatter,
    ModelJsonFormatter,
    ModelTextFormatter,
    OutputWriter,
    TextFormatter,
)
from tablegrant.permissions.models import AnalyzeOptions
from tablegrant.utils.config import load_config
from tablegrant.utils.file_utils import collect_source_files

app = typer.Typer(
    name="tablegrant",
    help="Infer the database table permissions an application's source code needs.",
    invoke_without_command=False,
)
console = Console()
err_console = Console(stderr=True)

_OUTPUT_FORMATS = ["text", "json", "csv"]


def _parse_database(value: Optional[str], option: str) -> Optional[Database]:
    if value is None:
        return None
    try:
        return Database(value.lower())
    except ValueError:
        choices = ", ".join(f"'{db.value}'" for db in Database)
        err_console.print(
            f"[red]Error:[/red] Invalid {option} '{value}'. Use one of {choices}."
        )
        raise typer.Exit(1)


def _parse_permission(value: Optional[str]) -> Optional[Permission]:
    if value is None:
        return None
    try:
        return Permission(value.upper())
    except ValueError:
        choices = ", ".join(perm.value for perm in Permission)
        err_console.print(
            f"[red]Error:[/red] Invalid permission '{value}'. Use one of {choices}."
        )
        raise typer.Exit(1)


def _validate_output_format(output_format: str) -> None:
    if output_format not in _OUTPUT_FORMATS:
        err_console.print(
            f"[red]Error:[/red] Invalid output format '{output_format}'. "
            "Use 'text', 'json', or 'csv'."
        )
        raise typer.Exit(1)


def _write_text_output(render, output_file: Optional[Path]) -> None:
    """Render Rich output to the console, or to a plain-text file."""
    if output_file:
        string_buffer = StringIO()
        render(Console(file=string_buffer, force_terminal=False, width=200))
        output_file.write_text(string_buffer.getvalue(), encoding="utf-8")
        console.print(f"[green]Success:[/green] Output written to {output_file}")
    else:
        render(console)


@app.callback()
def main():
    """tablegrant - table permission inference for ORM codebases."""
    pass


@app.command()
def analyze(
    models: List[Path] = typer.Option(
        ...,
        "--models",
        "-m",
        exists=True,
        help="Model/entity file or directory (repeatable)",
    ),
    services: List[Path] = typer.Option(
        ...,
        "--services",
        "-s",
        exists=True,
        help="Service/repository file or directory (repeatable)",
    ),
    default_db: Optional[str] = typer.Option(
        None,
        "--default-db",
        "-d",
        help="Default database: 'sqlserver' or 'postgres' (default: sqlserver, or from config)",
    ),
    secondary_conn: Optional[str] = typer.Option(
        None,
        "--secondary-conn",
        help="Named connection that routes a file to the other database",
    ),
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        "-f",
        help="Output format: 'text', 'json', or 'csv' (default: text, or from config)",
    ),
    output_file: Optional[Path] = typer.Option(
        None,
        "--output-file",
        "-o",
        help="Write output to file instead of stdout",
    ),
    banco: Optional[str] = typer.Option(
        None,
        "--banco",
        help="Only show rows targeting this database",
    ),
    permission: Optional[str] = typer.Option(
        None,
        "--permission",
        "-p",
        help="Only show rows with this permission (e.g. SELECT)",
    ),
    text_filter: Optional[str] = typer.Option(
        None,
        "--filter",
        help="Only show rows whose model, table or file contains this text",
    ),
    insert_only_save: bool = typer.Option(
        False,
        "--insert-only-save",
        help="Treat repository save() as INSERT only (default: INSERT and UPDATE)",
    ),
    max_file_chars: Optional[int] = typer.Option(
        None,
        "--max-file-chars",
        min=1,
        help="Skip files longer than this many characters",
    ),
) -> None:
    """
    Infer table permissions from model and service source files.

    Configuration can be set in tablegrant.toml in the current directory.
    CLI arguments override configuration file values.

    Examples:

        # Analyze a Spring project
        tablegrant analyze --models src/main/java/entity --services src/main/java/service

        # Analyze a NestJS project whose 'reporting' connection is Postgres
        tablegrant analyze -m src/models -s src/services --secondary-conn reporting

        # Only the UPDATE grants, as CSV
        tablegrant analyze -m models -s services --permission UPDATE -f csv
    """
    config = load_config()

    # Apply priority resolution: CLI args > config > defaults
    output_format = output_format or config.output_format or "text"
    _validate_output_format(output_format)
    database = (
        _parse_database(default_db, "default database")
        or config.default_db
        or Database.SQLSERVER
    )
    banco_filter = _parse_database(banco, "database filter")
    permission_filter = _parse_permission(permission)

    if insert_only_save:
        save_implies_update = False
    elif config.save_implies_update is not None:
        save_implies_update = config.save_implies_update
    else:
        save_implies_update = True

    options = AnalyzeOptions(
        default_db=database,
        secondary_conn_name=secondary_conn or config.secondary_conn_name,
        save_implies_update=save_implies_update,
        max_file_chars=max_file_chars or config.max_file_chars,
    )

    try:
        model_files = collect_source_files(models)
        service_files = collect_source_files(services)

        analyzer = PermissionAnalyzer(options)
        result = analyzer.analyze(model_files, service_files)

        for skipped in analyzer.skipped_files:
            err_console.print(
                f"[yellow]Warning:[/yellow] Skipping {skipped.category} file "
                f"{skipped.file}: {skipped.reason}"
            )

        result = result.filtered(
            banco=banco_filter, permission=permission_filter, text=text_filter
        )

        if output_format == "text":
            _write_text_output(
                lambda target: TextFormatter.format(result, target), output_file
            )
        else:
            if output_format == "json":
                formatted = JsonFormatter.format(result)
            else:  # csv
                formatted = CsvFormatter.format(result)
            OutputWriter.write(formatted, output_file)
            if output_file:
                console.print(
                    f"[green]Success:[/green] Permissions written to {output_file}"
                )

    except FileNotFoundError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    except Exception as e:
        err_console.print(f"[red]Error:[/red] Unexpected error: {e}")
        raise typer.Exit(1)


@app.command("models")
def list_models(
    models: List[Path] = typer.Option(
        ...,
        "--models",
        "-m",
        exists=True,
        help="Model/entity file or directory (repeatable)",
    ),
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        "-f",
        help="Output format: 'text', 'json', or 'csv' (default: text, or from config)",
    ),
    output_file: Optional[Path] = typer.Option(
        None,
        "--output-file",
        "-o",
        help="Write output to file instead of stdout",
    ),
) -> None:
    """
    Print the model catalog built from model declaration files.

    Examples:

        # Show every entity and the table it maps to
        tablegrant models --models src/models

        # Export the catalog as JSON
        tablegrant models -m src/models -f json -o catalog.json
    """
    config = load_config()
    output_format = output_format or config.output_format or "text"
    _validate_output_format(output_format)

    try:
        model_files = collect_source_files(models)

        analyzer = PermissionAnalyzer()
        catalog = analyzer.build_catalog(model_files)

        for skipped in analyzer.skipped_files:
            err_console.print(
                f"[yellow]Warning:[/yellow] Skipping {skipped.category} file "
                f"{skipped.file}: {skipped.reason}"
            )

        if output_format == "text":
            _write_text_output(
                lambda target: ModelTextFormatter.format(catalog.models, target),
                output_file,
            )
        else:
            if output_format == "json":
                formatted = ModelJsonFormatter.format(catalog.models)
            else:  # csv
                formatted = ModelCsvFormatter.format(catalog.models)
            OutputWriter.write(formatted, output_file)
            if output_file:
                console.print(
                    f"[green]Success:[/green] Catalog written to {output_file}"
                )

    except FileNotFoundError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    except Exception as e:
        err_console.print(f"[red]Error:[/red] Unexpected error: {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
