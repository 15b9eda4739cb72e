"""Database routing: which physical database a file's rows belong to.

Precedence, highest first:

1. A model injected with its own named connection whose name contains a
   dialect keyword (``@InjectModel(Pedido, 'postgres_db')``) routes that
   model's rows.
2. A named-connection marker matching ``secondary_conn_name`` flips the
   whole file to the non-default database.
3. A bootstrap configuration call (``SequelizeModule.forRoot({ dialect })``,
   ``TypeOrmModule.forRoot({ type })``) sets the file database.
4. The model's own ``db_hint`` (from its declaration), per model.
5. ``default_db``.
"""

import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from tablegrant.global_models import Database
from tablegrant.permissions.models import AnalyzeOptions

_QUOTED = r"""['"`]([^'"`]+)['"`]"""

_NAMED_CONNECTION_MARKERS = [
    re.compile(r"@InjectConnection\s*\(\s*" + _QUOTED + r"\s*\)"),
    re.compile(r"@InjectDataSource\s*\(\s*" + _QUOTED + r"\s*\)"),
    re.compile(r"@InjectEntityManager\s*\(\s*" + _QUOTED + r"\s*\)"),
    re.compile(r'@Qualifier\s*\(\s*(?:value\s*=\s*)?"([^"]+)"\s*\)'),
    re.compile(r'@PersistenceContext\s*\([^)]*\bunitName\s*=\s*"([^"]+)"'),
]
_MODEL_CONNECTION = re.compile(
    r"@Inject(?:Model|Repository)\s*\(\s*(\w+)\s*,\s*" + _QUOTED + r"\s*\)"
)
_BOOTSTRAP_CONFIGS = [
    re.compile(
        r"SequelizeModule\.forRoot(?:Async)?\s*\(\s*\{[^;]*?\bdialect\s*:\s*" + _QUOTED
    ),
    re.compile(
        r"TypeOrmModule\.forRoot(?:Async)?\s*\(\s*\{[^;]*?\btype\s*:\s*" + _QUOTED
    ),
]

_SQLSERVER_KEYWORDS = ("mssql", "sqlserver", "sql_server")


def dialect_database(name: Optional[str]) -> Optional[Database]:
    """
    Map a dialect or connection name to a database kind.

    Args:
        name: Dialect or connection name (e.g. 'postgres', 'mssql_main')

    Returns:
        Database if the name contains a known keyword, None otherwise
    """
    if not name:
        return None
    lowered = name.lower()
    if "postgres" in lowered:
        return Database.POSTGRES
    if any(keyword in lowered for keyword in _SQLSERVER_KEYWORDS):
        return Database.SQLSERVER
    return None


def named_connections(text: str) -> List[str]:
    """Return every connection name injected in ``text``, in order of appearance."""
    found = []
    for pattern in _NAMED_CONNECTION_MARKERS:
        found.extend((m.start(), m.group(1)) for m in pattern.finditer(text))
    found.extend((m.start(), m.group(2)) for m in _MODEL_CONNECTION.finditer(text))
    found.sort()
    return [name for _, name in found]


def model_connections(text: str) -> Dict[str, str]:
    """Return ``{model name: connection name}`` for models injected with a connection."""
    connections: Dict[str, str] = {}
    for match in _MODEL_CONNECTION.finditer(text):
        connections.setdefault(match.group(1), match.group(2))
    return connections


def bootstrap_database(text: str) -> Optional[Database]:
    """Return the database configured by a module-level ORM bootstrap call."""
    for pattern in _BOOTSTRAP_CONFIGS:
        match = pattern.search(text)
        if match:
            database = dialect_database(match.group(1))
            if database is not None:
                return database
    return None


class FileRouting(BaseModel):
    """Routing decision for one analyzed file."""

    file_db: Database = Field(..., description="Database for rows of this file")
    model_dbs: Dict[str, Database] = Field(
        default_factory=dict, description="Per-model overrides"
    )
    file_signal: bool = Field(
        default=False,
        description="Whether file_db came from a marker or bootstrap call",
    )

    def database_for(
        self, model_name: Optional[str] = None, hint: Optional[Database] = None
    ) -> Database:
        """Return the database for rows of ``model_name``.

        A model's own ``db_hint`` is used only when the file carries no
        routing signal of its own.
        """
        if model_name is not None and model_name in self.model_dbs:
            return self.model_dbs[model_name]
        if hint is not None and not self.file_signal:
            return hint
        return self.file_db


def resolve_routing(text: str, options: AnalyzeOptions) -> FileRouting:
    """
    Decide which database the rows extracted from ``text`` target.

    Args:
        text: File contents
        options: Request options carrying the default and secondary connection

    Returns:
        FileRouting for the file
    """
    file_db = options.default_db
    file_signal = True
    if options.secondary_conn_name and options.secondary_conn_name in named_connections(
        text
    ):
        file_db = options.default_db.other()
    else:
        configured = bootstrap_database(text)
        if configured is not None:
            file_db = configured
        else:
            file_signal = False

    model_dbs: Dict[str, Database] = {}
    for model_name, connection in model_connections(text).items():
        database = dialect_database(connection)
        if database is not None:
            model_dbs[model_name] = database

    return FileRouting(file_db=file_db, model_dbs=model_dbs, file_signal=file_signal)
