"""Pydantic models for permission analysis inputs and results."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tablegrant.catalog.models import ModelInfo
from tablegrant.global_models import UNKNOWN, Database, Origin, Permission


class PermissionRow(BaseModel):
    """One observed (table, permission, database) fact."""

    model: str = Field(UNKNOWN, description="Owning model name, or '-' when unknown")
    table: str = Field(..., description="Table or collection identifier")
    schema_name: Optional[str] = Field(
        None, description="Schema qualifier, folded into table when merged"
    )
    permission: Permission = Field(..., description="Inferred permission verb")
    banco: Database = Field(..., description="Target database")
    origem: str = Field(
        ...,
        description="Provenance tag; after merging, sorted comma-joined tags",
    )
    file: Optional[str] = Field(None, description="Originating file name")

    @property
    def origins(self) -> List[str]:
        """Individual provenance tags of this row."""
        return [tag.strip() for tag in self.origem.split(",") if tag.strip()]

    @property
    def has_known_model(self) -> bool:
        return self.model != UNKNOWN

    @classmethod
    def observed(
        cls,
        table: str,
        permission: Permission,
        banco: Database,
        origem: Origin,
        file: Optional[str],
        model: str = UNKNOWN,
        schema_name: Optional[str] = None,
    ) -> "PermissionRow":
        """
        Create an unmerged row carrying a single provenance tag.

        Args:
            table: Table identifier as found in the source
            permission: Permission verb
            banco: Target database
            origem: How the fact was derived
            file: Originating file name
            model: Owning model name (default: unknown)
            schema_name: Schema qualifier (if known)

        Returns:
            PermissionRow ready to be merged
        """
        return cls(
            model=model,
            table=table,
            schema_name=schema_name,
            permission=permission,
            banco=banco,
            origem=origem.value,
            file=file,
        )


class AnalyzeOptions(BaseModel):
    """Request-scoped options threaded through every pipeline call."""

    model_config = ConfigDict(frozen=True)

    default_db: Database = Field(
        default=Database.SQLSERVER, description="Database every row defaults to"
    )
    secondary_conn_name: Optional[str] = Field(
        None,
        description="Named connection that routes a file to the other database",
    )
    save_implies_update: bool = Field(
        default=True,
        description="Whether a repository save() also implies UPDATE",
    )
    max_file_chars: Optional[int] = Field(
        None, description="Files longer than this are skipped (partial result)"
    )


class SourceFile(BaseModel):
    """An in-memory source file supplied to the analyzer."""

    filename: str = Field(..., description="File name (extension selects the pipeline)")
    text: str = Field(..., description="File contents")


class SkippedFile(BaseModel):
    """Information about a file that was excluded from analysis."""

    file: str = Field(..., description="File name")
    category: str = Field(..., description="Input group: 'models' or 'services'")
    reason: str = Field(..., description="Reason for skipping")


class AnalysisResult(BaseModel):
    """Model catalog and merged permission rows for one request."""

    models: List[ModelInfo] = Field(default_factory=list)
    results: List[PermissionRow] = Field(default_factory=list)

    def distinct_tables(self) -> List[str]:
        """Sorted distinct table names in the results."""
        return sorted({row.table for row in self.results})

    def filtered(
        self,
        banco: Optional[Database] = None,
        permission: Optional[Permission] = None,
        text: Optional[str] = None,
    ) -> "AnalysisResult":
        """
        Return a copy keeping only the matching result rows.

        Args:
            banco: Keep rows targeting this database
            permission: Keep rows with this permission
            text: Keep rows whose model, table or file contains this text
                (case-insensitive)

        Returns:
            New AnalysisResult with the same models
        """
        needle = text.lower() if text else None
        rows = []
        for row in self.results:
            if banco is not None and row.banco != banco:
                continue
            if permission is not None and row.permission != permission:
                continue
            if needle is not None and not any(
                needle in (value or "").lower()
                for value in (row.model, row.table, row.file)
            ):
                continue
            rows.append(row)
        return AnalysisResult(models=self.models, results=rows)
