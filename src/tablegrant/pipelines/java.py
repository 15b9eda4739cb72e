"""JPA / Spring Data pipeline for Java sources."""

import re
from typing import Dict, List, Optional, Set, Tuple

from tablegrant.catalog.heuristics import (
    annotation_uses,
    class_body_span,
    join_table_names,
    lower_camel,
    nearest_following_class,
    top_level,
)
from tablegrant.catalog.models import ModelCatalog, ModelInfo, Relation
from tablegrant.global_models import UNKNOWN, Database, Origin, Permission
from tablegrant.permissions.models import AnalyzeOptions, PermissionRow
from tablegrant.permissions.routing import FileRouting, resolve_routing
from tablegrant.pipelines.base import Pipeline
from tablegrant.scanner.clauses import (
    leading_verb,
    normalize_source,
    table_references,
    write_tables,
)

_ANNOTATION_ARG = re.compile(r'\b(name|schema)\s*=\s*"([^"]*)"')
_RELATION_ANNOTATION = re.compile(r"@(OneToOne|ManyToOne|OneToMany|ManyToMany)\b")
# Field declaration following relation annotations: List<ItemEntity> itens;
_FIELD_DECLARATION = re.compile(
    r"([A-Z][\w.]*)(?:\s*<\s*([^<>;]+?)\s*>)?\s+(\w+)\s*[;=]"
)

_REPOSITORY_INTERFACE = re.compile(
    r"\binterface\s+(\w+)\s+extends\s+[\w.]*Repository\s*<\s*([\w.]+)"
)
_ANNOTATION_USE = re.compile(r"@\w+(?:\s*\([^()]*\))?")
_METHOD_NAME = re.compile(r"(\w+)\s*\(")
_QUERY_LITERAL = r'@Query\s*\(\s*(?:value\s*=\s*)?"((?:[^"\\]|\\.)*)"'
_INTERLEAVED_ANNOTATIONS = r"(?:@\w+(?:\s*\([^)]*\))?\s*)*?"
_MODIFYING_QUERIES = [
    re.compile(
        r"@Modifying\b(?:\s*\([^)]*\))?\s*" + _INTERLEAVED_ANNOTATIONS + _QUERY_LITERAL
    ),
    re.compile(_QUERY_LITERAL + r"[^)]*\)\s*" + _INTERLEAVED_ANNOTATIONS + r"@Modifying\b"),
]

_SAVE_METHODS = frozenset({"save", "saveAll", "saveAndFlush", "saveAllAndFlush"})
_READ_PREFIXES = ("find", "get", "exists", "count", "read", "query", "search", "stream")
_DELETE_PREFIXES = ("delete", "remove")
_NOT_VARIABLES = frozenset({"extends", "implements", "throws"})


def _relation_target(type_name: str, generic: Optional[str]) -> str:
    target = generic.split(",")[-1].strip() if generic else type_name
    target = re.sub(r"^\?\s*extends\s+", "", target)
    return target.split(".")[-1]


def parse_relations(body: str) -> List[Relation]:
    """
    Extract relation declarations from a class body.

    Each relation annotation is paired with the first field declaration after
    it; for collections the generic argument is the relation target.

    Args:
        body: Text of the class body

    Returns:
        Relations in declaration order
    """
    relations: List[Relation] = []
    for match in _RELATION_ANNOTATION.finditer(body):
        end = body.find(";", match.end())
        segment = body[match.end() : end + 1 if end >= 0 else len(body)]
        field = _FIELD_DECLARATION.search(segment)
        if field is None:
            continue

        join_table = None
        if match.group(1) == "ManyToMany":
            joins = join_table_names(segment)
            join_table = joins[0][1] if joins else None

        relations.append(
            Relation(
                via=match.group(1),
                target=_relation_target(field.group(1), field.group(2)),
                join_table=join_table,
            )
        )
    return relations


def classify_repository_method(method: str, save_implies_update: bool) -> List[Permission]:
    """
    Map a repository method name to the permissions it implies.

    A save cannot be told apart from an upsert without deeper analysis, so it
    implies UPDATE as well unless ``save_implies_update`` is off.

    Args:
        method: Method name, e.g. "findByStatus"
        save_implies_update: Whether save-family calls also imply UPDATE

    Returns:
        List of permissions (empty for unrecognized methods)
    """
    if method in _SAVE_METHODS:
        if save_implies_update:
            return [Permission.INSERT, Permission.UPDATE]
        return [Permission.INSERT]
    if method.startswith(_READ_PREFIXES):
        return [Permission.SELECT]
    if method.startswith(_DELETE_PREFIXES):
        return [Permission.DELETE]
    return []


def repository_variables(text: str, model: ModelInfo) -> List[str]:
    """
    Return the variable names a model's repository is referenced by.

    Explicit declarations typed as ``<EntityRoot>Repository`` (fields,
    constructor parameters) win; otherwise the lower-camel-case repository
    class name is assumed.

    Args:
        text: File contents
        model: Model whose repository is looked up

    Returns:
        Candidate variable names, deduplicated in order of appearance
    """
    repository = f"{model.entity_root}Repository"
    declaration = re.compile(r"\b" + re.escape(repository) + r"\s+(\w+)")
    names: List[str] = []
    for match in declaration.finditer(text):
        name = match.group(1)
        if name not in _NOT_VARIABLES and name not in names:
            names.append(name)
    return names or [lower_camel(repository)]


class JavaPipeline(Pipeline):
    """Catalog and permission extraction for JPA entities and Spring Data repositories."""

    @property
    def name(self) -> str:
        return "java"

    @property
    def extensions(self) -> Tuple[str, ...]:
        return ("java",)

    def extract_models(self, text: str, filename: str) -> List[ModelInfo]:
        """Pair each ``@Table`` annotation with the class declared after it."""
        models: List[ModelInfo] = []
        for use in annotation_uses(text, "Table"):
            args: Dict[str, str] = {}
            for arg in _ANNOTATION_ARG.finditer(top_level(use.arguments)):
                args.setdefault(arg.group(1), arg.group(2))
            if not args.get("name"):
                continue

            declaration = nearest_following_class(text, use.end)
            if declaration is None:
                continue

            start, end = class_body_span(text, declaration.name_end)
            models.append(
                ModelInfo(
                    model_name=declaration.name,
                    table_name=args["name"],
                    schema_name=args.get("schema") or None,
                    relations=parse_relations(text[start:end]),
                )
            )
        return models

    def extract_permissions(
        self,
        text: str,
        filename: str,
        catalog: ModelCatalog,
        options: AnalyzeOptions,
    ) -> List[PermissionRow]:
        routing = resolve_routing(text, options)
        source = normalize_source(text)

        rows: List[PermissionRow] = []
        referenced: List[ModelInfo] = []
        for model in catalog:
            model_rows = self._repository_call_rows(
                text, filename, model, catalog, routing, options
            )
            rows.extend(model_rows)
            if model_rows or self._mentions(text, model):
                referenced.append(model)

        rows.extend(self._repository_interface_rows(text, filename, catalog, routing))
        rows.extend(self._modifying_query_rows(source, filename, catalog, routing))
        rows.extend(self._join_table_rows(referenced, filename, routing))
        rows.extend(self._sql_rows(source, filename, catalog, routing))
        return rows

    @staticmethod
    def _mentions(text: str, model: ModelInfo) -> bool:
        names = (model.model_name, f"{model.entity_root}Repository")
        return any(re.search(r"\b" + re.escape(name) + r"\b", text) for name in names)

    @staticmethod
    def _orm_row(
        model: ModelInfo,
        permission: Permission,
        banco: Database,
        filename: str,
    ) -> PermissionRow:
        return PermissionRow.observed(
            table=model.effective_table,
            schema_name=model.schema_name,
            permission=permission,
            banco=banco,
            origem=Origin.ORM,
            file=filename,
            model=model.model_name,
        )

    def _repository_call_rows(
        self,
        text: str,
        filename: str,
        model: ModelInfo,
        catalog: ModelCatalog,
        routing: FileRouting,
        options: AnalyzeOptions,
    ) -> List[PermissionRow]:
        permissions: List[Permission] = []
        for variable in repository_variables(text, model):
            call = re.compile(r"\b" + re.escape(variable) + r"\s*\.\s*(\w+)\s*\(")
            for match in call.finditer(text):
                for permission in classify_repository_method(
                    match.group(1), options.save_implies_update
                ):
                    if permission not in permissions:
                        permissions.append(permission)

        banco = routing.database_for(model.model_name, model.db_hint)
        rows = [self._orm_row(model, perm, banco, filename) for perm in permissions]

        # Fetching an entity is assumed to eagerly fetch its declared relations
        if Permission.SELECT in permissions:
            for related in catalog.related_models(model):
                related_db = routing.database_for(related.model_name, related.db_hint)
                rows.append(
                    self._orm_row(related, Permission.SELECT, related_db, filename)
                )
        return rows

    def _repository_interface_rows(
        self,
        text: str,
        filename: str,
        catalog: ModelCatalog,
        routing: FileRouting,
    ) -> List[PermissionRow]:
        rows: List[PermissionRow] = []
        for match in _REPOSITORY_INTERFACE.finditer(text):
            model = catalog.find(match.group(2).split(".")[-1])
            if model is None:
                continue

            banco = routing.database_for(model.model_name, model.db_hint)
            start, end = class_body_span(text, match.end())
            seen: Set[Permission] = set()
            for declaration in text[start:end].split(";"):
                if "@Query" in declaration:
                    continue
                method = _METHOD_NAME.search(_ANNOTATION_USE.sub(" ", declaration))
                if method is None:
                    continue
                for permission in classify_repository_method(method.group(1), False):
                    if permission is Permission.INSERT or permission in seen:
                        continue
                    seen.add(permission)
                    rows.append(self._orm_row(model, permission, banco, filename))
        return rows

    def _resolve_sql_table(
        self, identifier: str, catalog: ModelCatalog
    ) -> Tuple[str, str, Optional[str], Optional[Database]]:
        # JPQL names entities instead of tables
        model = catalog.find(identifier)
        if model is not None:
            return model.model_name, model.effective_table, model.schema_name, model.db_hint
        model = catalog.find_by_table(identifier)
        if model is not None:
            return model.model_name, identifier, None, model.db_hint
        return UNKNOWN, identifier, None, None

    def _modifying_query_rows(
        self,
        source: str,
        filename: str,
        catalog: ModelCatalog,
        routing: FileRouting,
    ) -> List[PermissionRow]:
        rows: List[PermissionRow] = []
        for pattern in _MODIFYING_QUERIES:
            for match in pattern.finditer(source):
                query = match.group(1)
                if leading_verb(query, routing.file_db.sql_dialect) is not Permission.UPDATE:
                    continue
                for permission, identifier in write_tables(query):
                    if permission is not Permission.UPDATE:
                        continue
                    model_name, table, schema, hint = self._resolve_sql_table(
                        identifier, catalog
                    )
                    rows.append(
                        PermissionRow.observed(
                            table=table,
                            schema_name=schema,
                            permission=Permission.UPDATE,
                            banco=routing.database_for(model_name, hint),
                            origem=Origin.SQL,
                            file=filename,
                            model=model_name,
                        )
                    )
        return rows

    def _join_table_rows(
        self,
        models: List[ModelInfo],
        filename: str,
        routing: FileRouting,
    ) -> List[PermissionRow]:
        rows: List[PermissionRow] = []
        for model in models:
            banco = routing.database_for(model.model_name, model.db_hint)
            for join_table in model.join_tables():
                rows.append(
                    PermissionRow.observed(
                        table=join_table,
                        permission=Permission.REFERENCES,
                        banco=banco,
                        origem=Origin.RELATIONSHIP,
                        file=filename,
                        model=model.model_name,
                    )
                )
        return rows

    def _sql_rows(
        self,
        source: str,
        filename: str,
        catalog: ModelCatalog,
        routing: FileRouting,
    ) -> List[PermissionRow]:
        rows: List[PermissionRow] = []
        for permission, identifier in table_references(source):
            model_name, table, schema, hint = self._resolve_sql_table(identifier, catalog)
            rows.append(
                PermissionRow.observed(
                    table=table,
                    schema_name=schema,
                    permission=permission,
                    banco=routing.database_for(model_name, hint),
                    origem=Origin.SQL,
                    file=filename,
                    model=model_name,
                )
            )
        return rows
