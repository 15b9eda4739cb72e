"""Table and clause scanning primitives shared by all pipelines."""

from tablegrant.scanner.clauses import (
    NOISE_TOKENS,
    clean_identifier,
    cte_names,
    dominant_verb,
    is_noise,
    leading_verb,
    normalize_source,
    read_tables,
    table_references,
    template_literals,
    write_tables,
)

__all__ = [
    "NOISE_TOKENS",
    "clean_identifier",
    "cte_names",
    "dominant_verb",
    "is_noise",
    "leading_verb",
    "normalize_source",
    "read_tables",
    "table_references",
    "template_literals",
    "write_tables",
]
