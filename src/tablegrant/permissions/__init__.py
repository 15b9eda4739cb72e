"""Permission rows, database routing and the merge/dedup reducer.

The dispatcher lives in ``tablegrant.permissions.analyzer`` and is not
re-exported here, since the pipelines it drives import these models.
"""

from tablegrant.permissions.merge import PermissionMerger, canonical_table, merge_rows
from tablegrant.permissions.models import (
    AnalysisResult,
    AnalyzeOptions,
    PermissionRow,
    SkippedFile,
    SourceFile,
)
from tablegrant.permissions.routing import FileRouting, dialect_database, resolve_routing

__all__ = [
    # Models
    "AnalysisResult",
    "AnalyzeOptions",
    "PermissionRow",
    "SkippedFile",
    "SourceFile",
    # Merge
    "PermissionMerger",
    "canonical_table",
    "merge_rows",
    # Routing
    "FileRouting",
    "dialect_database",
    "resolve_routing",
]
