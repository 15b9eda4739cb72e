"""Positional pairing heuristics for declaration text.

Nothing here parses scopes. Each function approximates "which class does this
annotation/decorator belong to" by linear position in the text, which holds
for conventionally formatted entity files. They are kept separate so a
scope-aware implementation can replace them without touching the pipelines.
"""

import re
from typing import List, Optional, Tuple

from pydantic import BaseModel

_CLASS_DECL = re.compile(
    r"\b(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+([A-Za-z_$][\w$]*)"
)
_NAME_ARGUMENT = re.compile(r"""\bname\s*[:=]\s*['"`]([^'"`]+)['"`]""")
_OPENING = "({["
_CLOSING = ")}]"


class ClassDeclaration(BaseModel):
    """A class name and where its declaration sits in the text."""

    name: str
    start: int
    name_end: int


class AnnotationUse(BaseModel):
    """An annotation or decorator call and its argument text."""

    start: int
    end: int
    arguments: str


def class_declarations(text: str) -> List[ClassDeclaration]:
    """Return every class declaration in ``text`` in order of appearance."""
    return [
        ClassDeclaration(name=m.group(1), start=m.start(), name_end=m.end(1))
        for m in _CLASS_DECL.finditer(text)
    ]


def nearest_following_class(text: str, offset: int) -> Optional[ClassDeclaration]:
    """Return the first class declared at or after ``offset``.

    An annotation or decorator is assumed to belong to the first class that
    follows it.
    """
    match = _CLASS_DECL.search(text, offset)
    if match is None:
        return None
    return ClassDeclaration(
        name=match.group(1), start=match.start(), name_end=match.end(1)
    )


def nearest_preceding_class(
    declarations: List[ClassDeclaration], offset: int
) -> Optional[ClassDeclaration]:
    """Return the last declaration that starts before ``offset``."""
    preceding = None
    for declaration in declarations:
        if declaration.start >= offset:
            break
        preceding = declaration
    return preceding


def balanced_span(
    text: str, offset: int, opening: str = "{", closing: str = "}"
) -> Tuple[int, int]:
    """Return ``(start, end)`` of the first balanced group at or after ``offset``.

    The span excludes the delimiters themselves. Delimiters inside string
    literals are counted like any other. When no opening delimiter follows
    ``offset`` the span is empty; when the group never closes it runs to the
    end of the text.
    """
    open_at = text.find(opening, offset)
    if open_at < 0:
        return offset, offset

    depth = 0
    for index in range(open_at, len(text)):
        char = text[index]
        if char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth == 0:
                return open_at + 1, index
    return open_at + 1, len(text)


def class_body_span(text: str, name_end: int) -> Tuple[int, int]:
    """Return ``(start, end)`` of the brace-balanced body after a class name."""
    return balanced_span(text, name_end)


def top_level(span: str) -> str:
    """Return ``span`` with every nested (), {} and [] group removed.

    ``name = "A", joinColumns = @JoinColumn(name = "b")`` becomes
    ``name = "A", joinColumns = @JoinColumn``.
    """
    depth = 0
    kept: List[str] = []
    for char in span:
        if char in _OPENING:
            depth += 1
        elif char in _CLOSING:
            depth = max(depth - 1, 0)
        elif depth == 0:
            kept.append(char)
    return "".join(kept)


def annotation_uses(text: str, name: str) -> List[AnnotationUse]:
    """Return every ``@name(...)`` in ``text`` with its paren-balanced arguments."""
    uses: List[AnnotationUse] = []
    for match in re.finditer(r"@" + re.escape(name) + r"\s*\(", text):
        start, end = balanced_span(text, match.end() - 1, "(", ")")
        uses.append(
            AnnotationUse(
                start=match.start(),
                end=min(end + 1, len(text)),
                arguments=text[start:end],
            )
        )
    return uses


def object_literal(arguments: str) -> Optional[str]:
    """Return the top-level text of the first ``{...}`` object in ``arguments``."""
    if "{" not in arguments:
        return None
    start, end = balanced_span(arguments, 0)
    return top_level(arguments[start:end])


def join_table_names(text: str) -> List[Tuple[int, str]]:
    """Return ``(offset, name)`` of each explicit join table declaration.

    Handles ``@JoinTable(name = "x", ...)`` (JPA) and
    ``@JoinTable({ name: 'x', ... })`` (TypeORM) with ``name`` in any
    position; names of nested join columns are ignored.
    """
    found: List[Tuple[int, str]] = []
    for use in annotation_uses(text, "JoinTable"):
        if use.arguments.lstrip().startswith("{"):
            fields = object_literal(use.arguments) or ""
        else:
            fields = top_level(use.arguments)
        match = _NAME_ARGUMENT.search(fields)
        if match:
            found.append((use.start, match.group(1)))
    return found


def lower_camel(name: str) -> str:
    """Return ``name`` with its first character lowercased."""
    return name[:1].lower() + name[1:]
