"""Tests for the JPA / Spring Data pipeline."""

import pytest

from tablegrant.catalog.models import ModelCatalog, ModelInfo
from tablegrant.global_models import Database, Permission
from tablegrant.permissions.models import AnalyzeOptions
from tablegrant.pipelines.java import (
    JavaPipeline,
    classify_repository_method,
    parse_relations,
    repository_variables,
)

PEDIDO_ENTITY = """
package com.loja.entity;

import javax.persistence.*;

@Entity
@Table(name = "PEDIDOS", schema = "vendas")
public class PedidoEntity {

    @Id
    private Long id;

    @ManyToOne
    @JoinColumn(name = "cliente_id")
    private ClienteEntity cliente;

    @OneToMany(mappedBy = "pedido")
    private List<ItemEntity> itens;

    @ManyToMany
    @JoinTable(name = "PEDIDO_PRODUTO",
        joinColumns = @JoinColumn(name = "pedido_id"))
    private Set<ProdutoEntity> produtos;
}
"""

CLIENTE_ENTITY = """
@Entity
@Table(name = "CLIENTES")
public class ClienteEntity {
    @Id
    private Long id;
}
"""


@pytest.fixture
def pipeline():
    return JavaPipeline()


@pytest.fixture
def catalog(pipeline):
    models = pipeline.extract_models(PEDIDO_ENTITY, "PedidoEntity.java")
    models += pipeline.extract_models(CLIENTE_ENTITY, "ClienteEntity.java")
    models.append(ModelInfo(model_name="ItemEntity", table_name="ITENS"))
    return ModelCatalog(models)


def _facts(rows):
    return {(row.table, row.permission, row.origem) for row in rows}


class TestExtractModels:
    """Tests for entity catalog extraction."""

    def test_table_annotation_pairs_with_class(self, pipeline):
        """Test name and schema from @Table."""
        models = pipeline.extract_models(PEDIDO_ENTITY, "PedidoEntity.java")
        assert len(models) == 1
        model = models[0]
        assert model.model_name == "PedidoEntity"
        assert model.table_name == "PEDIDOS"
        assert model.schema_name == "vendas"
        assert model.db_hint is None

    def test_relations(self, pipeline):
        """Test relation kinds, targets and join tables."""
        model = pipeline.extract_models(PEDIDO_ENTITY, "PedidoEntity.java")[0]
        assert [(r.via, r.target, r.join_table) for r in model.relations] == [
            ("ManyToOne", "ClienteEntity", None),
            ("OneToMany", "ItemEntity", None),
            ("ManyToMany", "ProdutoEntity", "PEDIDO_PRODUTO"),
        ]

    def test_table_without_name_is_ignored(self, pipeline):
        """Test that @Table without a name creates no entry."""
        text = '@Entity\n@Table(schema = "x")\npublic class Semnome {}'
        assert pipeline.extract_models(text, "Semnome.java") == []

    def test_entity_without_table_is_ignored(self, pipeline):
        """Test that @Entity alone creates no entry."""
        assert pipeline.extract_models("@Entity\npublic class A {}", "A.java") == []

    def test_several_entities_in_one_file(self, pipeline):
        """Test declaration order with more than one entity."""
        models = pipeline.extract_models(PEDIDO_ENTITY + CLIENTE_ENTITY, "Tudo.java")
        assert [m.model_name for m in models] == ["PedidoEntity", "ClienteEntity"]

    def test_nested_annotation_arguments(self, pipeline):
        """Test that arguments after a nested annotation are still read."""
        text = """
        @Entity
        @Table(name = "PEDIDOS",
            uniqueConstraints = @UniqueConstraint(name = "uk_codigo", columnNames = {"codigo"}),
            schema = "vendas")
        public class PedidoEntity {
            @ManyToMany
            @JoinTable(joinColumns = @JoinColumn(name = "pedido_id"), name = "PEDIDO_ITEM")
            private List<ItemEntity> itens;
        }
        """
        model = pipeline.extract_models(text, "PedidoEntity.java")[0]
        assert (model.table_name, model.schema_name) == ("PEDIDOS", "vendas")
        assert [(r.target, r.join_table) for r in model.relations] == [
            ("ItemEntity", "PEDIDO_ITEM")
        ]

    def test_unrecognized_text(self, pipeline):
        """Test that arbitrary text yields nothing."""
        assert pipeline.extract_models("not java at all {", "x.java") == []


class TestParseRelations:
    """Tests for parse_relations."""

    def test_wildcard_generic(self):
        """Test a bounded wildcard collection."""
        body = "@OneToMany\nprivate List<? extends ItemEntity> itens;"
        assert parse_relations(body)[0].target == "ItemEntity"

    def test_map_takes_value_type(self):
        """Test that the last generic argument is the target."""
        body = "@OneToMany\nprivate Map<String, ItemEntity> itens;"
        assert parse_relations(body)[0].target == "ItemEntity"

    def test_qualified_type(self):
        """Test a fully qualified field type."""
        body = "@ManyToOne\nprivate com.loja.ClienteEntity cliente;"
        assert parse_relations(body)[0].target == "ClienteEntity"


class TestClassifyRepositoryMethod:
    """Tests for classify_repository_method."""

    @pytest.mark.parametrize(
        "method,expected",
        [
            ("findAll", [Permission.SELECT]),
            ("findByStatus", [Permission.SELECT]),
            ("getById", [Permission.SELECT]),
            ("existsById", [Permission.SELECT]),
            ("count", [Permission.SELECT]),
            ("deleteById", [Permission.DELETE]),
            ("removeByStatus", [Permission.DELETE]),
            ("flush", []),
        ],
    )
    def test_method_families(self, method, expected):
        """Test read and delete families."""
        assert classify_repository_method(method, True) == expected

    @pytest.mark.parametrize("method", ["save", "saveAll", "saveAndFlush", "saveAllAndFlush"])
    def test_save_implies_update(self, method):
        """Test the save policy toggle."""
        assert classify_repository_method(method, True) == [
            Permission.INSERT,
            Permission.UPDATE,
        ]
        assert classify_repository_method(method, False) == [Permission.INSERT]


class TestRepositoryVariables:
    """Tests for repository_variables."""

    def test_declared_fields_and_parameters(self):
        """Test explicit declarations typed as the repository."""
        text = (
            "private final PedidoRepository repo;\n"
            "public Servico(PedidoRepository outroRepo) {}"
        )
        model = ModelInfo(model_name="PedidoEntity")
        assert repository_variables(text, model) == ["repo", "outroRepo"]

    def test_interface_keywords_are_not_variables(self):
        """Test that extends/implements are not taken as names."""
        text = "interface PedidoRepository extends JpaRepository<PedidoEntity, Long> {}"
        model = ModelInfo(model_name="PedidoEntity")
        assert repository_variables(text, model) == ["pedidoRepository"]


class TestExtractPermissions:
    """Tests for permission extraction from services and repositories."""

    def test_save_and_find(self, pipeline, catalog):
        """Test repository calls and eager reads of related models."""
        text = """
        @Service
        public class PedidoService {
            private final PedidoRepository pedidoRepository;

            public PedidoEntity criar(PedidoEntity pedido) {
                return pedidoRepository.save(pedido);
            }

            public List<PedidoEntity> listar() {
                return pedidoRepository.findAll();
            }
        }
        """
        options = AnalyzeOptions(save_implies_update=False)
        rows = pipeline.extract_permissions(text, "PedidoService.java", catalog, options)
        facts = _facts(rows)
        assert ("PEDIDOS", Permission.INSERT, "orm") in facts
        assert ("PEDIDOS", Permission.SELECT, "orm") in facts
        assert ("PEDIDOS", Permission.UPDATE, "orm") not in facts
        # Related catalogued models are read along with the entity
        assert ("CLIENTES", Permission.SELECT, "orm") in facts
        assert ("ITENS", Permission.SELECT, "orm") in facts
        # The referenced entity's join table
        assert ("PEDIDO_PRODUTO", Permission.REFERENCES, "relationship") in facts

        pedido_rows = [row for row in rows if row.table == "PEDIDOS"]
        assert all(row.model == "PedidoEntity" for row in pedido_rows)
        assert all(row.schema_name == "vendas" for row in pedido_rows)
        assert all(row.file == "PedidoService.java" for row in rows)

    def test_save_reference_policy(self, pipeline, catalog):
        """Test that save implies UPDATE by default."""
        text = "class S { void f() { pedidoRepository.save(p); } }"
        rows = pipeline.extract_permissions(text, "S.java", catalog, AnalyzeOptions())
        assert {row.permission for row in rows if row.table == "PEDIDOS"} == {
            Permission.INSERT,
            Permission.UPDATE,
        }

    def test_repository_interface_declarations(self, pipeline, catalog):
        """Test derived query methods declared on the repository."""
        text = """
        public interface ClienteRepository extends JpaRepository<ClienteEntity, Long> {
            List<ClienteEntity> findByNome(String nome);
            void deleteByNome(String nome);
            ClienteEntity save(ClienteEntity c);
        }
        """
        rows = pipeline.extract_permissions(
            text, "ClienteRepository.java", catalog, AnalyzeOptions()
        )
        assert _facts(rows) == {
            ("CLIENTES", Permission.SELECT, "orm"),
            ("CLIENTES", Permission.DELETE, "orm"),
        }

    def test_modifying_query(self, pipeline, catalog):
        """Test a JPQL update bound to an entity name."""
        text = """
        public interface PedidoRepository extends JpaRepository<PedidoEntity, Long> {
            @Modifying
            @Transactional
            @Query("UPDATE PedidoEntity p SET p.status = :status " +
                   "WHERE p.id = :id")
            int atualizarStatus(Long id, String status);
        }
        """
        rows = pipeline.extract_permissions(
            text, "PedidoRepository.java", catalog, AnalyzeOptions()
        )
        updates = [row for row in rows if row.permission == Permission.UPDATE]
        assert updates
        assert all(row.table == "PEDIDOS" for row in updates)
        assert all(row.model == "PedidoEntity" for row in updates)
        assert all(row.origem == "sql" for row in updates)

    def test_native_sql_resolves_catalogued_table(self, pipeline, catalog):
        """Test that SQL naming a catalogued table keeps its model."""
        text = 'jdbc.query("SELECT * FROM clientes c JOIN ENDERECOS e ON e.id = c.id");'
        rows = pipeline.extract_permissions(text, "Dao.java", catalog, AnalyzeOptions())
        by_table = {row.table: row for row in rows}
        assert by_table["clientes"].model == "ClienteEntity"
        assert by_table["ENDERECOS"].model == "-"
        assert all(row.origem == "sql" for row in rows)

    def test_raw_delete_reports_read_and_delete(self, pipeline, catalog):
        """Test that DELETE FROM in native SQL yields SELECT and DELETE."""
        text = 'jdbc.update("DELETE FROM Pedidos WHERE id = ?", id);'
        rows = pipeline.extract_permissions(text, "Dao.java", catalog, AnalyzeOptions())
        assert [(row.table, row.permission) for row in rows] == [
            ("Pedidos", Permission.SELECT),
            ("Pedidos", Permission.DELETE),
        ]
        assert all(row.model == "PedidoEntity" for row in rows)

    def test_qualifier_routes_to_secondary_database(self, pipeline, catalog):
        """Test a named connection matching the secondary connection."""
        text = """
        public class Relatorio {
            @Autowired @Qualifier("reporting") private JdbcTemplate jdbc;
            void f() { jdbc.query("SELECT * FROM VENDAS_DIA"); }
        }
        """
        options = AnalyzeOptions(secondary_conn_name="reporting")
        rows = pipeline.extract_permissions(text, "Relatorio.java", catalog, options)
        assert {row.banco for row in rows} == {Database.POSTGRES}

    def test_no_matches(self, pipeline, catalog):
        """Test that unrelated code yields no rows."""
        text = "public class Util { int soma(int a, int b) { return a + b; } }"
        assert pipeline.extract_permissions(text, "Util.java", catalog, AnalyzeOptions()) == []


class TestPipelineProperties:
    """Tests for pipeline metadata."""

    def test_name_and_extensions(self, pipeline):
        assert pipeline.name == "java"
        assert pipeline.extensions == ("java",)
