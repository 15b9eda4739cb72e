"""Entity catalog built from model declaration files.

Example:
    >>> from tablegrant.catalog import ModelCatalog, ModelInfo
    >>> catalog = ModelCatalog([ModelInfo(model_name="PedidoEntity", table_name="PEDIDOS")])
    >>> catalog.find("PedidoEntity").table_name
    'PEDIDOS'
"""

from tablegrant.catalog.heuristics import (
    AnnotationUse,
    ClassDeclaration,
    annotation_uses,
    balanced_span,
    class_body_span,
    class_declarations,
    join_table_names,
    lower_camel,
    nearest_following_class,
    nearest_preceding_class,
    object_literal,
    top_level,
)
from tablegrant.catalog.models import ModelCatalog, ModelInfo, Relation

__all__ = [
    "AnnotationUse",
    "ClassDeclaration",
    "ModelCatalog",
    "ModelInfo",
    "Relation",
    "annotation_uses",
    "balanced_span",
    "class_body_span",
    "class_declarations",
    "join_table_names",
    "lower_camel",
    "nearest_following_class",
    "nearest_preceding_class",
    "object_literal",
    "top_level",
]
