"""Shared models and enums used across tablegrant modules."""

from enum import Enum

# Marker for a model or table that could not be resolved
UNKNOWN = "-"


class Permission(str, Enum):
    """Permission verb inferred for a table."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    REFERENCES = "REFERENCES"


class Database(str, Enum):
    """Physical database a permission row targets."""

    SQLSERVER = "sqlserver"
    POSTGRES = "postgres"

    def other(self) -> "Database":
        """Return the opposite database kind."""
        if self is Database.SQLSERVER:
            return Database.POSTGRES
        return Database.SQLSERVER

    @property
    def sql_dialect(self) -> str:
        """sqlglot dialect name used when tokenizing SQL for this database."""
        return "tsql" if self is Database.SQLSERVER else "postgres"


class Origin(str, Enum):
    """How a permission row was derived."""

    ORM = "orm"
    SQL = "sql"
    RELATIONSHIP = "relationship"
