"""Sequelize / TypeORM / Prisma pipeline for JavaScript and TypeScript sources."""

import re
from typing import Dict, List, Optional, Set, Tuple

from tablegrant.catalog.heuristics import (
    annotation_uses,
    class_declarations,
    join_table_names,
    lower_camel,
    nearest_following_class,
    nearest_preceding_class,
    object_literal,
)
from tablegrant.catalog.models import ModelCatalog, ModelInfo, Relation
from tablegrant.global_models import UNKNOWN, Origin, Permission
from tablegrant.permissions.models import AnalyzeOptions, PermissionRow
from tablegrant.permissions.routing import FileRouting, dialect_database, resolve_routing
from tablegrant.pipelines.base import Pipeline
from tablegrant.scanner.clauses import (
    dominant_verb,
    read_tables,
    template_literals,
    write_tables,
)

_QUOTED = r"""['"`]([^'"`]+)['"`]"""

# sequelize-typescript: @Table({ tableName: 'pedidos' }) or @Table('pedidos')
# TypeORM: @Entity('pedidos'), @Entity('pedidos', { schema }) or @Entity({ name: 'pedidos' })
_LEADING_STRING = re.compile(r"\s*" + _QUOTED)
_OBJECT_FIELD = re.compile(r"\b(tableName|name|schema|database)\s*:\s*" + _QUOTED)

_BELONGS_TO_MANY_THROUGH_MODEL = re.compile(
    r"@BelongsToMany\s*\(\s*\(\)\s*=>\s*(\w+)[^;]*?\(\)\s*=>\s*(\w+)"
)
_BELONGS_TO_MANY_THROUGH_TABLE = re.compile(
    r"@BelongsToMany\s*\(\s*\(\)\s*=>\s*(\w+)\s*,\s*(?:\{\s*through\s*:\s*)?" + _QUOTED
)
_MANY_TO_MANY = re.compile(r"@ManyToMany\s*\(\s*\(\)\s*=>\s*(\w+)")

_ASSOCIATION = re.compile(r"\bmodel\s*:\s*([A-Za-z_$][\w$]*)")
_PRISMA_CALL = re.compile(r"\bprisma\s*\.\s*(\w+)\s*\.\s*(\w+)\s*\(")

_NOT_ORM_VERBS = frozenset({"createquerybuilder", "query"})
_PRISMA_OPERATIONS: Dict[str, Tuple[Permission, ...]] = {
    "findMany": (Permission.SELECT,),
    "findFirst": (Permission.SELECT,),
    "findFirstOrThrow": (Permission.SELECT,),
    "findUnique": (Permission.SELECT,),
    "findUniqueOrThrow": (Permission.SELECT,),
    "count": (Permission.SELECT,),
    "aggregate": (Permission.SELECT,),
    "groupBy": (Permission.SELECT,),
    "create": (Permission.INSERT,),
    "createMany": (Permission.INSERT,),
    "update": (Permission.UPDATE,),
    "updateMany": (Permission.UPDATE,),
    "upsert": (Permission.INSERT, Permission.UPDATE),
    "delete": (Permission.DELETE,),
    "deleteMany": (Permission.DELETE,),
}


def classify_orm_call(method: str) -> Optional[Permission]:
    """
    Map a Sequelize/TypeORM call name to a permission.

    Groups are checked in order and a later group overrides an earlier one,
    so ``findOneAndUpdate`` is an UPDATE and ``findOrCreate`` an INSERT.

    Args:
        method: Called method name

    Returns:
        Permission, or None when the call is not a data access verb
    """
    verb = method.lower()
    if verb in _NOT_ORM_VERBS:
        return None

    permission = None
    if "find" in verb or "count" in verb:
        permission = Permission.SELECT
    if any(word in verb for word in ("create", "save", "insert", "bulkcreate")):
        permission = Permission.INSERT
    if "update" in verb:
        permission = Permission.UPDATE
    if any(word in verb for word in ("destroy", "delete", "remove", "softdelete")):
        permission = Permission.DELETE
    return permission


def _object_fields(body: Optional[str]) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for match in _OBJECT_FIELD.finditer(body or ""):
        fields.setdefault(match.group(1), match.group(2))
    return fields


class NodePipeline(Pipeline):
    """Catalog and permission extraction for Sequelize, TypeORM and Prisma code."""

    @property
    def name(self) -> str:
        return "node"

    @property
    def extensions(self) -> Tuple[str, ...]:
        return ("ts", "js", "tsx", "jsx", "mjs", "cjs")

    def extract_models(self, text: str, filename: str) -> List[ModelInfo]:
        """Pair table/entity decorators with the class declared after them."""
        # class start -> (class name, table, schema, database option)
        declared: Dict[int, Tuple[str, str, Optional[str], Optional[str]]] = {}

        def pair(offset: int, table: Optional[str], fields: Dict[str, str]) -> None:
            declaration = nearest_following_class(text, offset)
            if table and declaration is not None and declaration.start not in declared:
                declared[declaration.start] = (
                    declaration.name,
                    table,
                    fields.get("schema"),
                    fields.get("database"),
                )

        for use in annotation_uses(text, "Table"):
            name = _LEADING_STRING.match(use.arguments)
            if name:
                pair(use.end, name.group(1), {})
            else:
                fields = _object_fields(object_literal(use.arguments))
                pair(use.end, fields.get("tableName"), fields)
        for use in annotation_uses(text, "Entity"):
            fields = _object_fields(object_literal(use.arguments))
            name = _LEADING_STRING.match(use.arguments)
            pair(use.end, name.group(1) if name else fields.get("name"), fields)

        models: List[ModelInfo] = []
        starts: Dict[str, int] = {}
        for start in sorted(declared):
            class_name, table, schema, database = declared[start]
            starts.setdefault(class_name, start)
            models.append(
                ModelInfo(
                    model_name=class_name,
                    table_name=table,
                    schema_name=schema,
                    db_hint=dialect_database(database),
                )
            )

        self._attach_relations(text, models)
        return models

    def _attach_relations(self, text: str, models: List[ModelInfo]) -> None:
        if not models:
            return

        catalogued = {model.model_name: model for model in models}
        declarations = [
            decl for decl in class_declarations(text) if decl.name in catalogued
        ]

        def owner(offset: int) -> ModelInfo:
            # Best effort: the catalogued class declared before the decorator,
            # else the most recently catalogued model
            declaration = nearest_preceding_class(declarations, offset)
            if declaration is None:
                return models[-1]
            return catalogued[declaration.name]

        found: List[Tuple[int, Relation]] = []
        for match in _BELONGS_TO_MANY_THROUGH_MODEL.finditer(text):
            found.append(
                (
                    match.start(),
                    Relation(
                        via="BelongsToMany",
                        target=match.group(1),
                        join_table=match.group(2),
                    ),
                )
            )
        for match in _BELONGS_TO_MANY_THROUGH_TABLE.finditer(text):
            found.append(
                (
                    match.start(),
                    Relation(
                        via="BelongsToMany",
                        target=match.group(1),
                        join_table=match.group(2),
                    ),
                )
            )
        for match in _MANY_TO_MANY.finditer(text):
            end = text.find(";", match.end())
            segment = text[match.end() : end if end >= 0 else len(text)]
            joins = join_table_names(segment)
            found.append(
                (
                    match.start(),
                    Relation(
                        via="ManyToMany",
                        target=match.group(1),
                        join_table=joins[0][1] if joins else None,
                    ),
                )
            )

        found.sort(key=lambda item: item[0])
        for offset, relation in found:
            owner(offset).relations.append(relation)

    def extract_permissions(
        self,
        text: str,
        filename: str,
        catalog: ModelCatalog,
        options: AnalyzeOptions,
    ) -> List[PermissionRow]:
        routing = resolve_routing(text, options)

        rows: List[PermissionRow] = []
        referenced: List[ModelInfo] = []
        injected: Set[str] = set()
        for model in catalog:
            if not re.search(r"\b" + re.escape(model.model_name) + r"\b", text):
                continue
            referenced.append(model)
            variables, has_injection = self.model_variables(text, model)
            if has_injection:
                injected.add(model.model_name)
            for permission in self._call_permissions(text, variables):
                rows.append(self._orm_row(model, permission, routing, filename))

        rows.extend(self._association_rows(text, filename, catalog, routing, injected))
        rows.extend(self._prisma_rows(text, filename, catalog, routing))
        rows.extend(self._join_table_rows(referenced, filename, catalog, routing))
        rows.extend(self._sql_rows(text, filename, catalog, routing))
        return rows

    @staticmethod
    def model_variables(text: str, model: ModelInfo) -> Tuple[List[str], bool]:
        """
        Return variable names a model is accessed through in ``text``.

        Args:
            text: File contents
            model: Catalogued model

        Returns:
            Tuple of (candidate names, whether a dependency-injection field
            was found). Without an injection, camel-case guesses are used.
        """
        name = re.escape(model.model_name)
        injection_patterns = [
            re.compile(
                r"@Inject(?:Model|Repository)\s*\(\s*"
                + name
                + r"\b[^)]*\)\s*(?:(?:private|public|protected|readonly)\s+)*(\w+)"
            ),
            re.compile(
                r"(\w+)\s*[?!]?\s*:\s*(?:(?:Repository|ModelStatic|ModelCtor)\s*<\s*"
                + name
                + r"\s*>|typeof\s+"
                + name
                + r"\b)"
            ),
        ]
        names: List[str] = []
        for pattern in injection_patterns:
            for match in pattern.finditer(text):
                if match.group(1) not in names:
                    names.append(match.group(1))
        if names:
            return names + [model.model_name], True

        guess = lower_camel(model.model_name)
        return [guess, f"{guess}Repository", f"{guess}Model", model.model_name], False

    @staticmethod
    def _call_permissions(text: str, variables: List[str]) -> List[Permission]:
        permissions: List[Permission] = []
        for variable in variables:
            call = re.compile(r"\b" + re.escape(variable) + r"\s*\.\s*(\w+)\s*\(")
            for match in call.finditer(text):
                permission = classify_orm_call(match.group(1))
                if permission is not None and permission not in permissions:
                    permissions.append(permission)
        return permissions

    @staticmethod
    def _orm_row(
        model: ModelInfo,
        permission: Permission,
        routing: FileRouting,
        filename: str,
    ) -> PermissionRow:
        return PermissionRow.observed(
            table=model.effective_table,
            schema_name=model.schema_name,
            permission=permission,
            banco=routing.database_for(model.model_name, model.db_hint),
            origem=Origin.ORM,
            file=filename,
            model=model.model_name,
        )

    def _association_rows(
        self,
        text: str,
        filename: str,
        catalog: ModelCatalog,
        routing: FileRouting,
        injected: Set[str],
    ) -> List[PermissionRow]:
        rows: List[PermissionRow] = []
        seen: Set[str] = set()
        for match in _ASSOCIATION.finditer(text):
            model = catalog.find(match.group(1))
            if model is None or model.model_name in seen:
                continue
            # Only trusted when the file really uses injected ORM models
            if not injected - {model.model_name}:
                continue
            seen.add(model.model_name)
            rows.append(self._orm_row(model, Permission.SELECT, routing, filename))
        return rows

    def _prisma_rows(
        self,
        text: str,
        filename: str,
        catalog: ModelCatalog,
        routing: FileRouting,
    ) -> List[PermissionRow]:
        rows: List[PermissionRow] = []
        for match in _PRISMA_CALL.finditer(text):
            accessor, operation = match.group(1), match.group(2)
            permissions = _PRISMA_OPERATIONS.get(operation, ())
            model = catalog.find(accessor, case_sensitive=False)
            for permission in permissions:
                if model is not None:
                    rows.append(self._orm_row(model, permission, routing, filename))
                else:
                    rows.append(
                        PermissionRow.observed(
                            table=accessor,
                            permission=permission,
                            banco=routing.database_for(accessor),
                            origem=Origin.ORM,
                            file=filename,
                            model=accessor,
                        )
                    )
        return rows

    @staticmethod
    def _join_table_rows(
        models: List[ModelInfo],
        filename: str,
        catalog: ModelCatalog,
        routing: FileRouting,
    ) -> List[PermissionRow]:
        rows: List[PermissionRow] = []
        for model in models:
            for join_table in model.join_tables():
                through = catalog.find(join_table)
                rows.append(
                    PermissionRow.observed(
                        table=through.effective_table if through else join_table,
                        schema_name=through.schema_name if through else None,
                        permission=Permission.REFERENCES,
                        banco=routing.database_for(model.model_name, model.db_hint),
                        origem=Origin.RELATIONSHIP,
                        file=filename,
                        model=model.model_name,
                    )
                )
        return rows

    @staticmethod
    def _sql_rows(
        text: str,
        filename: str,
        catalog: ModelCatalog,
        routing: FileRouting,
    ) -> List[PermissionRow]:
        rows: List[PermissionRow] = []
        for query in template_literals(text):
            tables: List[str] = []
            for table in read_tables(query) + [t for _, t in write_tables(query)]:
                if table.lower() not in (seen.lower() for seen in tables):
                    tables.append(table)
            if not tables:
                continue

            # One verb for the whole literal, mixed statements are not split
            permission = dominant_verb(query, routing.file_db.sql_dialect)
            for table in tables:
                model = catalog.find_by_table(table)
                rows.append(
                    PermissionRow.observed(
                        table=table,
                        permission=permission,
                        banco=routing.database_for(
                            model.model_name if model else None,
                            model.db_hint if model else None,
                        ),
                        origem=Origin.SQL,
                        file=filename,
                        model=model.model_name if model else UNKNOWN,
                    )
                )
        return rows
