"""Pydantic models for the entity catalog and its relation graph."""

from typing import Dict, Iterable, Iterator, List, Optional

import rustworkx as rx
from pydantic import BaseModel, ConfigDict, Field

from tablegrant.global_models import Database


class Relation(BaseModel):
    """A relation declared on a model (to-one, to-many or many-to-many)."""

    via: str = Field(..., description="Relation kind, e.g. ManyToMany or BelongsToMany")
    target: str = Field(..., description="Name of the related model")
    join_table: Optional[str] = Field(
        None, description="Join table backing a many-to-many relation"
    )


class ModelInfo(BaseModel):
    """Represents one entity/class mapped to a database table."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str = Field(..., description="Source-level class/entity name")
    table_name: Optional[str] = Field(None, description="Declared table name")
    schema_name: Optional[str] = Field(None, description="Schema qualifier (if present)")
    db_hint: Optional[Database] = Field(None, description="Inferred target database")
    relations: List[Relation] = Field(
        default_factory=list, description="Relations in declaration order"
    )

    @property
    def entity_root(self) -> str:
        """Model name without a trailing ``Entity`` suffix."""
        if self.model_name.endswith("Entity") and self.model_name != "Entity":
            return self.model_name[: -len("Entity")]
        return self.model_name

    @property
    def effective_table(self) -> str:
        """Declared table name, falling back to the model name."""
        return self.table_name or self.model_name

    def join_tables(self) -> List[str]:
        """Return join tables of this model's many-to-many relations."""
        return [rel.join_table for rel in self.relations if rel.join_table]


class ModelCatalog:
    """Ordered set of models discovered for one analysis request.

    Models are kept in discovery order; duplicate names are appended, and
    lookups by name return the first one. Relations between catalogued models
    are held in a directed graph (model -> related model) built on first use.
    """

    def __init__(self, models: Optional[Iterable[ModelInfo]] = None):
        self._models: List[ModelInfo] = []
        self._by_name: Dict[str, int] = {}
        self._by_lower_name: Dict[str, int] = {}
        self._graph: Optional[rx.PyDiGraph] = None
        if models is not None:
            self.add_models(models)

    def add_model(self, model: ModelInfo) -> "ModelCatalog":
        """
        Append a model to the catalog.

        Args:
            model: ModelInfo to add

        Returns:
            self for method chaining
        """
        index = len(self._models)
        self._models.append(model)
        self._by_name.setdefault(model.model_name, index)
        self._by_lower_name.setdefault(model.model_name.lower(), index)
        self._graph = None
        return self

    def add_models(self, models: Iterable[ModelInfo]) -> "ModelCatalog":
        """Append several models, keeping their order."""
        for model in models:
            self.add_model(model)
        return self

    @property
    def models(self) -> List[ModelInfo]:
        """Catalogued models in discovery order."""
        return list(self._models)

    def __iter__(self) -> Iterator[ModelInfo]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def find(self, name: str, case_sensitive: bool = True) -> Optional[ModelInfo]:
        """
        Find the first model with the given name.

        Args:
            name: Model (class) name to look up
            case_sensitive: When False, names are compared case-insensitively

        Returns:
            ModelInfo if found, None otherwise
        """
        if case_sensitive:
            index = self._by_name.get(name)
        else:
            index = self._by_lower_name.get(name.lower())
        return self._models[index] if index is not None else None

    def find_by_table(self, table: str) -> Optional[ModelInfo]:
        """Find the first model declaring ``table`` (case-insensitive, unqualified)."""
        wanted = table.split(".")[-1].lower()
        for model in self._models:
            if model.table_name and model.table_name.lower() == wanted:
                return model
        return None

    def _relation_graph(self) -> rx.PyDiGraph:
        if self._graph is not None:
            return self._graph

        graph: rx.PyDiGraph = rx.PyDiGraph()
        graph.add_nodes_from(range(len(self._models)))
        for source, model in enumerate(self._models):
            for order, relation in enumerate(model.relations):
                target = self._by_name.get(relation.target)
                if target is not None:
                    graph.add_edge(
                        source, target, {"via": relation.via, "order": order}
                    )
        self._graph = graph
        return graph

    def related_models(self, model: ModelInfo) -> List[ModelInfo]:
        """
        Return catalogued models directly related to ``model``.

        Relations whose target is not in the catalog are ignored. Each related
        model is returned once, in relation declaration order.

        Args:
            model: A model from this catalog

        Returns:
            List of related ModelInfo objects
        """
        index = self._by_name.get(model.model_name)
        if index is None:
            return []

        graph = self._relation_graph()
        edges = sorted(graph.out_edges(index), key=lambda edge: edge[2]["order"])
        related: List[ModelInfo] = []
        seen = set()
        for _, target, _ in edges:
            if target not in seen:
                seen.add(target)
                related.append(self._models[target])
        return related
