"""Output formatters for permission analysis results."""

import csv
import json
from io import StringIO
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from tablegrant.catalog.models import ModelInfo
from tablegrant.permissions.models import AnalysisResult

RESULT_COLUMNS = ["model", "table", "permission", "banco", "origem", "file"]


class TextFormatter:
    """Format the permission matrix as a Rich table for terminal display."""

    @staticmethod
    def format(result: AnalysisResult, console: Console) -> None:
        """
        Format and print the permission matrix.

        Args:
            result: AnalysisResult to display
            console: Rich Console instance for output
        """
        if not result.results:
            console.print("[yellow]No table permissions found.[/yellow]")
            return

        table = Table(title="Table permissions", title_style="bold")
        table.add_column("Model", style="cyan")
        table.add_column("Table", style="green")
        table.add_column("Permission", style="yellow")
        table.add_column("Database")
        table.add_column("Origin", style="magenta")
        table.add_column("File", style="dim")

        for row in result.results:
            table.add_row(
                row.model if row.has_known_model else Text(row.model, style="dim"),
                row.table,
                row.permission.value,
                row.banco.value,
                row.origem,
                row.file or "",
            )

        console.print(table)
        console.print(
            f"[dim]Total: {len(result.results)} row(s), "
            f"{len(result.distinct_tables())} distinct table(s)[/dim]"
        )


class JsonFormatter:
    """Format the permission matrix as JSON."""

    @staticmethod
    def format(result: AnalysisResult) -> str:
        """
        Format an analysis result as JSON.

        Output format:
        {
          "models": [
            {"model_name": "PedidoEntity", "table_name": "PEDIDOS", ...}
          ],
          "results": [
            {"model": "PedidoEntity", "table": "PEDIDOS", "permission": "SELECT",
             "banco": "sqlserver", "origem": "orm, sql", "file": "PedidoService.java"}
          ]
        }

        Args:
            result: AnalysisResult to serialize

        Returns:
            JSON-formatted string
        """
        payload = {
            "models": [model.model_dump(mode="json") for model in result.models],
            "results": [
                row.model_dump(mode="json", include=set(RESULT_COLUMNS))
                for row in result.results
            ],
        }
        return json.dumps(payload, indent=2)


class CsvFormatter:
    """Format the permission matrix as CSV."""

    @staticmethod
    def format(result: AnalysisResult) -> str:
        """
        Format the result rows as CSV.

        Output format:
        model,table,permission,banco,origem,file
        PedidoEntity,PEDIDOS,SELECT,sqlserver,orm,PedidoService.java

        Args:
            result: AnalysisResult to serialize

        Returns:
            CSV-formatted string (empty when there are no rows)
        """
        if not result.results:
            return ""

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(RESULT_COLUMNS)
        for row in result.results:
            writer.writerow(
                [
                    row.model,
                    row.table,
                    row.permission.value,
                    row.banco.value,
                    row.origem,
                    row.file or "",
                ]
            )
        return output.getvalue()


class ModelTextFormatter:
    """Format the model catalog as a Rich table."""

    @staticmethod
    def format(models: List[ModelInfo], console: Console) -> None:
        """
        Format and print catalogued models.

        Args:
            models: Catalogued models in discovery order
            console: Rich Console instance for output
        """
        if not models:
            console.print("[yellow]No models found.[/yellow]")
            return

        table = Table(title="Model catalog", title_style="bold")
        table.add_column("Model", style="cyan")
        table.add_column("Table", style="green")
        table.add_column("Schema")
        table.add_column("Database")
        table.add_column("Relations", style="dim")

        for model in models:
            relations = ", ".join(
                f"{rel.via} {rel.target}"
                + (f" ({rel.join_table})" if rel.join_table else "")
                for rel in model.relations
            )
            table.add_row(
                model.model_name,
                model.table_name or Text("(class name)", style="dim"),
                model.schema_name or "",
                model.db_hint.value if model.db_hint else "",
                relations,
            )

        console.print(table)
        console.print(f"[dim]Total: {len(models)} model(s)[/dim]")


class ModelJsonFormatter:
    """Format the model catalog as JSON."""

    @staticmethod
    def format(models: List[ModelInfo]) -> str:
        """Format catalogued models as ``{"models": [...]}``."""
        return json.dumps(
            {"models": [model.model_dump(mode="json") for model in models]}, indent=2
        )


class ModelCsvFormatter:
    """Format the model catalog as CSV."""

    @staticmethod
    def format(models: List[ModelInfo]) -> str:
        """
        Format catalogued models as CSV.

        Output format:
        model_name,table_name,schema_name,db_hint,relations
        PedidoEntity,PEDIDOS,,,OneToMany ItemEntity

        Args:
            models: Catalogued models

        Returns:
            CSV-formatted string (empty when there are no models)
        """
        if not models:
            return ""

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(["model_name", "table_name", "schema_name", "db_hint", "relations"])
        for model in models:
            writer.writerow(
                [
                    model.model_name,
                    model.table_name or "",
                    model.schema_name or "",
                    model.db_hint.value if model.db_hint else "",
                    "; ".join(f"{rel.via} {rel.target}" for rel in model.relations),
                ]
            )
        return output.getvalue()


class OutputWriter:
    """Write formatted output to file or stdout."""

    @staticmethod
    def write(content: str, output_file: Optional[Path] = None) -> None:
        """
        Write content to file or stdout.

        Args:
            content: The content to write
            output_file: Optional file path. If None, writes to stdout.
        """
        if output_file:
            output_file.write_text(content, encoding="utf-8")
        else:
            print(content)
