"""Dialect dispatcher: runs the pipelines over a batch of files."""

from typing import List, Optional

from tablegrant.catalog.heuristics import join_table_names
from tablegrant.catalog.models import ModelCatalog
from tablegrant.global_models import UNKNOWN, Origin, Permission
from tablegrant.permissions.merge import merge_rows
from tablegrant.permissions.models import (
    AnalysisResult,
    AnalyzeOptions,
    PermissionRow,
    SkippedFile,
    SourceFile,
)
from tablegrant.pipelines.registry import file_extension, pipeline_for_file


class PermissionAnalyzer:
    """Infer table permissions from model and service source files."""

    def __init__(self, options: Optional[AnalyzeOptions] = None):
        """
        Initialize the analyzer.

        Args:
            options: Request options (defaults to AnalyzeOptions())
        """
        self.options = options or AnalyzeOptions()
        self._skipped_files: List[SkippedFile] = []

    @property
    def skipped_files(self) -> List[SkippedFile]:
        """Files excluded from the last analysis."""
        return list(self._skipped_files)

    def analyze(
        self,
        models: List[SourceFile],
        services: List[SourceFile],
    ) -> AnalysisResult:
        """
        Build the model catalog and the merged permission matrix.

        Model files are read first, so every service file sees the complete
        catalog. Rows are merged across all files and rows whose table is
        unknown are dropped.

        Args:
            models: Entity/model declaration files
            services: Service, repository and controller files

        Returns:
            AnalysisResult with the catalog and the merged rows
        """
        self._skipped_files = []

        model_files = self._within_size_limit(models, "models")
        service_files = self._within_size_limit(services, "services")

        catalog = self.build_catalog(model_files)

        rows: List[PermissionRow] = []
        for source in service_files:
            rows.extend(self._service_rows(source, catalog))
        rows.extend(self._join_table_rows(model_files))

        results = [row for row in merge_rows(rows) if row.table != UNKNOWN]
        return AnalysisResult(models=catalog.models, results=results)

    def build_catalog(self, models: List[SourceFile]) -> ModelCatalog:
        """
        Build the model catalog from model declaration files.

        Args:
            models: Model files; unsupported extensions contribute nothing

        Returns:
            ModelCatalog in file order, then declaration order
        """
        catalog = ModelCatalog()
        for source in models:
            pipeline = pipeline_for_file(source.filename)
            if pipeline is None:
                self._skip(source, "models", "unsupported file extension")
                continue
            catalog.add_models(pipeline.extract_models(source.text, source.filename))
        return catalog

    def _service_rows(
        self, source: SourceFile, catalog: ModelCatalog
    ) -> List[PermissionRow]:
        if file_extension(source.filename) == "sql":
            # Standalone SQL files are acknowledged but not analyzed
            return [
                PermissionRow.observed(
                    table=UNKNOWN,
                    permission=Permission.SELECT,
                    banco=self.options.default_db,
                    origem=Origin.SQL,
                    file=source.filename,
                )
            ]

        pipeline = pipeline_for_file(source.filename)
        if pipeline is None:
            self._skip(source, "services", "unsupported file extension")
            return []
        return pipeline.extract_permissions(
            source.text, source.filename, catalog, self.options
        )

    def _join_table_rows(self, models: List[SourceFile]) -> List[PermissionRow]:
        rows: List[PermissionRow] = []
        for source in models:
            for _, join_table in join_table_names(source.text):
                rows.append(
                    PermissionRow.observed(
                        table=join_table,
                        permission=Permission.REFERENCES,
                        banco=self.options.default_db,
                        origem=Origin.RELATIONSHIP,
                        file=source.filename,
                    )
                )
        return rows

    def _within_size_limit(self, files: List[SourceFile], category: str) -> List[SourceFile]:
        limit = self.options.max_file_chars
        if limit is None:
            return list(files)

        kept: List[SourceFile] = []
        for source in files:
            if len(source.text) > limit:
                self._skip(
                    source,
                    category,
                    f"file has {len(source.text)} characters (limit {limit})",
                )
            else:
                kept.append(source)
        return kept

    def _skip(self, source: SourceFile, category: str, reason: str) -> None:
        self._skipped_files.append(
            SkippedFile(file=source.filename, category=category, reason=reason)
        )
