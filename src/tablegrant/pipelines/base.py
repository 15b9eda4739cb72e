"""Base classes for dialect pipelines.

A pipeline turns the source text of one language ecosystem into catalog
entries and permission rows. Pipelines are discovered via entry points and
selected by file extension.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple

from tablegrant.catalog.models import ModelCatalog, ModelInfo
from tablegrant.permissions.models import AnalyzeOptions, PermissionRow


class PipelineError(Exception):
    """Exception raised when a pipeline cannot be found or registered."""

    pass


class Pipeline(ABC):
    """Abstract base class for dialect pipelines.

    Implementations must not raise on unrecognized input: text without any
    matching declaration or call site simply produces no entries.

    Example:
        >>> class KotlinPipeline(Pipeline):
        ...     @property
        ...     def name(self) -> str:
        ...         return "kotlin"
        ...
        ...     @property
        ...     def extensions(self) -> Tuple[str, ...]:
        ...         return ("kt",)
        ...
        ...     def extract_models(self, text, filename):
        ...         return []
        ...
        ...     def extract_permissions(self, text, filename, catalog, options):
        ...         return []
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the pipeline name (e.g. "java")."""
        pass

    @property
    @abstractmethod
    def extensions(self) -> Tuple[str, ...]:
        """Return the lowercase file extensions (without dot) this pipeline handles."""
        pass

    @abstractmethod
    def extract_models(self, text: str, filename: str) -> List[ModelInfo]:
        """Derive catalog entries from a model declaration file.

        Args:
            text: File contents.
            filename: File name, for diagnostics.

        Returns:
            One ModelInfo per recognized declaration, in order of appearance.
        """
        pass

    @abstractmethod
    def extract_permissions(
        self,
        text: str,
        filename: str,
        catalog: ModelCatalog,
        options: AnalyzeOptions,
    ) -> List[PermissionRow]:
        """Derive unmerged permission rows from a service/repository file.

        Args:
            text: File contents.
            filename: File name recorded on every row.
            catalog: Model catalog built from all model files (read-only).
            options: Request options.

        Returns:
            Permission rows, each carrying a single provenance tag.
        """
        pass
