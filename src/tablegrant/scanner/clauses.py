"""Low-level SQL clause and table identifier scanning.

These primitives work on arbitrary source text, not on parsed SQL. They are
shared by every pipeline: Java scans whole files, Node scans only the
contents of template literals.
"""

import re
from typing import List, Optional, Set, Tuple

import sqlglot
from sqlglot.errors import TokenError
from sqlglot.tokens import TokenType

from tablegrant.global_models import Permission

# Table identifier as it may appear after a clause keyword, optionally with an
# attached lock hint: dbo.[Pedidos], "public"."users", orders(NOLOCK)
_IDENT = r'([\w."\[\]`]+(?:\(\s*nolock\s*\))?)'

_NEWLINES = re.compile(r"\r\n|\r|\n")
_CONCAT_DOUBLE = re.compile(r'"\s*\+\s*"')
_CONCAT_SINGLE = re.compile(r"'\s*\+\s*'")
_TEMPLATE_LITERAL = re.compile(r"`((?:[^`\\]|\\.)*)`", re.DOTALL)
_INTERPOLATION = re.compile(r"\$\{[^}]*\}")

_READ_CLAUSE = re.compile(r"\b(?:FROM|JOIN)\s+" + _IDENT, re.IGNORECASE)
_WRITE_CLAUSES: List[Tuple[Permission, "re.Pattern[str]"]] = [
    (Permission.INSERT, re.compile(r"\bINSERT\s+INTO\s+" + _IDENT, re.IGNORECASE)),
    (Permission.UPDATE, re.compile(r"\bUPDATE\s+" + _IDENT, re.IGNORECASE)),
    (Permission.DELETE, re.compile(r"\bDELETE\s+FROM\s+" + _IDENT, re.IGNORECASE)),
]
_CTE_NAME = re.compile(
    r'(?:\bWITH\s+(?:RECURSIVE\s+)?|,\s*)([\w"\[\]`]+)\s+AS\s*\(', re.IGNORECASE
)
_LOCK_HINT = re.compile(r"\(\s*nolock\s*\)", re.IGNORECASE)
_WRAPPERS = re.compile(r'[\[\]"`]')
_DML_KEYWORD = re.compile(r"\b(INSERT|UPDATE|DELETE)\b", re.IGNORECASE)
_LEADING_WORD = re.compile(r"^\s*\(?\s*(\w+)")

# Tokens that regex scanning picks up from prose, import statements and SQL
# keywords following a clause keyword (ON UPDATE CASCADE, FROM the cache ...)
NOISE_TOKENS = frozenset(
    {
        "a",
        "an",
        "as",
        "cascade",
        "dual",
        "exports",
        "from",
        "import",
        "into",
        "lateral",
        "module",
        "on",
        "require",
        "select",
        "set",
        "the",
        "this",
        "unnest",
        "values",
        "where",
    }
)

_CRUD_WORDS = {"SELECT", "INSERT", "UPDATE", "DELETE"}

_VERB_TOKENS = {
    TokenType.SELECT: Permission.SELECT,
    TokenType.INSERT: Permission.INSERT,
    TokenType.UPDATE: Permission.UPDATE,
    TokenType.DELETE: Permission.DELETE,
}


def normalize_source(text: str) -> str:
    """Collapse newlines and merge concatenated string literals.

    ``"SELECT * " +\\n "FROM t"`` becomes ``"SELECT * FROM t"`` so clauses
    split across Java/JS string concatenations can be matched.
    """
    text = _NEWLINES.sub(" ", text)
    text = _CONCAT_DOUBLE.sub("", text)
    return _CONCAT_SINGLE.sub("", text)


def template_literals(text: str) -> List[str]:
    """Return the contents of every backtick-delimited string in ``text``."""
    return [m.group(1) for m in _TEMPLATE_LITERAL.finditer(text)]


def clean_identifier(raw: str) -> str:
    """Strip quoting, bracket wrapping and lock hints from an identifier."""
    name = _LOCK_HINT.sub("", raw)
    name = _WRAPPERS.sub("", name)
    return name.strip().rstrip(".")


def cte_names(span: str) -> Set[str]:
    """Return lowercase names of common table expressions defined in ``span``."""
    return {clean_identifier(m.group(1)).lower() for m in _CTE_NAME.finditer(span)}


def is_noise(identifier: str) -> bool:
    """Check whether a cleaned identifier is a regex false positive."""
    if not identifier or identifier.startswith("."):
        return True
    if not any(ch.isalpha() for ch in identifier):
        return True
    return identifier.lower() in NOISE_TOKENS


def _accept(identifier: str, ctes: Set[str]) -> bool:
    return not is_noise(identifier) and identifier.lower() not in ctes


def read_tables(span: str) -> List[str]:
    """Return unique table identifiers following FROM/JOIN, in order of appearance.

    CTE names and noise tokens are dropped. The FROM of ``DELETE FROM`` counts
    as a read as well; :func:`write_tables` reports its DELETE.
    """
    ctes = cte_names(span)
    tables: List[str] = []
    seen: Set[str] = set()
    for match in _READ_CLAUSE.finditer(span):
        table = clean_identifier(match.group(1))
        if _accept(table, ctes) and table.lower() not in seen:
            seen.add(table.lower())
            tables.append(table)
    return tables


def write_tables(span: str) -> List[Tuple[Permission, str]]:
    """Return ``(permission, table)`` for each INSERT INTO / UPDATE / DELETE FROM."""
    ctes = cte_names(span)
    found: List[Tuple[int, Permission, str]] = []
    for permission, pattern in _WRITE_CLAUSES:
        for match in pattern.finditer(span):
            table = clean_identifier(match.group(1))
            if _accept(table, ctes):
                found.append((match.start(), permission, table))
    found.sort(key=lambda item: item[0])
    return [(permission, table) for _, permission, table in found]


def table_references(span: str) -> List[Tuple[Permission, str]]:
    """Return every table reference in ``span`` with the verb of its clause.

    Reads come first (deduplicated), followed by write targets in order of
    appearance.
    """
    refs = [(Permission.SELECT, table) for table in read_tables(span)]
    refs.extend(write_tables(span))
    return refs


def _tokenize(sql: str, dialect: Optional[str]):
    return sqlglot.tokenize(_INTERPOLATION.sub("_param", sql), read=dialect)


def leading_verb(sql: str, dialect: Optional[str] = None) -> Optional[Permission]:
    """Return the verb of the statement ``sql`` starts with, if it is a CRUD verb."""
    try:
        tokens = _tokenize(sql, dialect)
    except TokenError:
        match = _LEADING_WORD.match(sql)
        if not match:
            return None
        word = match.group(1).upper()
        return Permission(word) if word in _CRUD_WORDS else None

    for token in tokens:
        if token.token_type == TokenType.L_PAREN:
            continue
        return _VERB_TOKENS.get(token.token_type)
    return None


def dominant_verb(sql: str, dialect: Optional[str] = None) -> Permission:
    """Return the permission a whole query is classified under.

    The first INSERT, UPDATE or DELETE keyword wins; a query without one is a
    SELECT. Keywords inside string literals and comments are ignored when the
    text can be tokenized.
    """
    try:
        tokens = _tokenize(sql, dialect)
    except TokenError:
        match = _DML_KEYWORD.search(sql)
        return Permission(match.group(1).upper()) if match else Permission.SELECT

    for token in tokens:
        verb = _VERB_TOKENS.get(token.token_type)
        if verb is not None and verb is not Permission.SELECT:
            return verb
    return Permission.SELECT
