"""Merging of raw permission observations into a deduplicated set."""

from typing import Dict, Iterable, List, Optional, Set, Tuple

from tablegrant.permissions.models import PermissionRow

MergeKey = Tuple[str, str, str]


def canonical_table(table: str, schema_name: Optional[str] = None) -> str:
    """
    Return the canonical, uppercase spelling of a table identifier.

    A schema is prefixed with a ``.`` separator unless the table is already
    qualified with it.

    Args:
        table: Table identifier
        schema_name: Optional schema qualifier

    Returns:
        Uppercase, schema-qualified table name
    """
    table = table.upper()
    if schema_name:
        schema = schema_name.upper()
        if not table.startswith(f"{schema}."):
            table = f"{schema}.{table}"
    return table


class PermissionMerger:
    """Fold permission rows into one row per (table, permission, database)."""

    def __init__(self):
        """Initialize the merger."""
        self._rows: Dict[MergeKey, PermissionRow] = {}
        self._origins: Dict[MergeKey, Set[str]] = {}

    @staticmethod
    def key(row: PermissionRow) -> MergeKey:
        """Case-insensitive grouping key of a row."""
        return (
            canonical_table(row.table, row.schema_name).lower(),
            row.permission.value,
            row.banco.value,
        )

    def add_row(self, row: PermissionRow) -> "PermissionMerger":
        """
        Add a row to be merged.

        The first row for a key decides the table spelling and file. Later
        rows add their provenance tags, and replace the model only while it
        is still unknown.

        Args:
            row: PermissionRow to add

        Returns:
            self for method chaining
        """
        key = self.key(row)
        existing = self._rows.get(key)
        if existing is None:
            self._rows[key] = row.model_copy(
                update={
                    "table": canonical_table(row.table, row.schema_name),
                    "schema_name": None,
                }
            )
            self._origins[key] = set(row.origins)
            return self

        self._origins[key].update(row.origins)
        if not existing.has_known_model and row.has_known_model:
            self._rows[key] = existing.model_copy(update={"model": row.model})
        return self

    def add_rows(self, rows: Iterable[PermissionRow]) -> "PermissionMerger":
        """Add several rows in order."""
        for row in rows:
            self.add_row(row)
        return self

    def merge(self) -> List[PermissionRow]:
        """
        Build the merged rows.

        Returns:
            One row per key in first-seen order, with ``origem`` rendered as
            the sorted provenance tags joined by ``", "``
        """
        return [
            row.model_copy(update={"origem": ", ".join(sorted(self._origins[key]))})
            for key, row in self._rows.items()
        ]


def merge_rows(rows: Iterable[PermissionRow]) -> List[PermissionRow]:
    """
    Convenience function to merge a stream of rows.

    Args:
        rows: Raw permission rows from all files

    Returns:
        Deduplicated PermissionRow list
    """
    return PermissionMerger().add_rows(rows).merge()
