"""Tests for database routing."""

import pytest

from tablegrant.global_models import Database
from tablegrant.permissions.models import AnalyzeOptions
from tablegrant.permissions.routing import (
    FileRouting,
    bootstrap_database,
    dialect_database,
    model_connections,
    named_connections,
    resolve_routing,
)


class TestDialectDatabase:
    """Tests for dialect_database."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("postgres", Database.POSTGRES),
            ("postgres_db", Database.POSTGRES),
            ("PostgresReplica", Database.POSTGRES),
            ("mssql", Database.SQLSERVER),
            ("sqlserver_main", Database.SQLSERVER),
            ("SQL_SERVER", Database.SQLSERVER),
            ("mysql", None),
            ("reporting", None),
            (None, None),
            ("", None),
        ],
    )
    def test_keywords(self, name, expected):
        assert dialect_database(name) == expected


class TestDatabaseOther:
    """Tests for Database.other."""

    def test_flips(self):
        assert Database.SQLSERVER.other() == Database.POSTGRES
        assert Database.POSTGRES.other() == Database.SQLSERVER


class TestMarkers:
    """Tests for connection marker scanning."""

    def test_named_connections_in_order(self):
        """Test every marker kind, in order of appearance."""
        text = """
        @PersistenceContext(unitName = "legado")
        @InjectConnection('principal')
        @InjectModel(Pedido, 'reporting')
        @Qualifier("auditoria")
        @InjectDataSource("ds")
        @InjectEntityManager(`em`)
        """
        assert named_connections(text) == [
            "legado",
            "principal",
            "reporting",
            "auditoria",
            "ds",
            "em",
        ]

    def test_model_connections(self):
        """Test per-model connection names."""
        text = (
            "@InjectModel(Pedido, 'postgres_db') a;\n"
            "@InjectRepository(Cliente, \"mssql\") b;\n"
            "@InjectModel(Item) c;"
        )
        assert model_connections(text) == {"Pedido": "postgres_db", "Cliente": "mssql"}

    def test_bootstrap_database(self):
        """Test Sequelize and TypeORM bootstrap calls."""
        assert (
            bootstrap_database("SequelizeModule.forRoot({ host: 'x', dialect: 'postgres' })")
            == Database.POSTGRES
        )
        assert (
            bootstrap_database("TypeOrmModule.forRootAsync({ type: 'mssql' })")
            == Database.SQLSERVER
        )
        assert bootstrap_database("TypeOrmModule.forRoot({ type: 'sqlite' })") is None


class TestResolveRouting:
    """Tests for resolve_routing precedence."""

    def test_default(self):
        """Test a file without any signal."""
        routing = resolve_routing("class A {}", AnalyzeOptions())
        assert routing.file_db == Database.SQLSERVER
        assert not routing.file_signal
        assert routing.model_dbs == {}

    def test_default_db_option(self):
        """Test the default database option."""
        routing = resolve_routing("class A {}", AnalyzeOptions(default_db=Database.POSTGRES))
        assert routing.file_db == Database.POSTGRES

    def test_secondary_connection_flips_file(self):
        """Test that the secondary connection routes to the other database."""
        text = "@InjectConnection('reporting') private conn: Sequelize;"
        options = AnalyzeOptions(secondary_conn_name="reporting")
        routing = resolve_routing(text, options)
        assert routing.file_db == Database.POSTGRES
        assert routing.file_signal

    def test_other_connection_does_not_flip(self):
        """Test that a different connection name keeps the default."""
        text = "@InjectConnection('principal') private conn: Sequelize;"
        options = AnalyzeOptions(secondary_conn_name="reporting")
        assert resolve_routing(text, options).file_db == Database.SQLSERVER

    def test_secondary_beats_bootstrap(self):
        """Test that the secondary marker wins over a bootstrap call."""
        text = (
            "@InjectConnection('reporting') c;\n"
            "SequelizeModule.forRoot({ dialect: 'mssql' })"
        )
        options = AnalyzeOptions(
            default_db=Database.POSTGRES, secondary_conn_name="reporting"
        )
        assert resolve_routing(text, options).file_db == Database.SQLSERVER

    def test_bootstrap(self):
        """Test a bootstrap call setting the file database."""
        text = "TypeOrmModule.forRoot({ type: 'postgres', host: 'db' })"
        routing = resolve_routing(text, AnalyzeOptions())
        assert routing.file_db == Database.POSTGRES
        assert routing.file_signal

    def test_model_connection_override(self):
        """Test that a per-model connection beats the file database."""
        text = (
            "@InjectModel(Pedido, 'postgres_db') p;\n"
            "@InjectModel(Item, 'reporting') i;"
        )
        routing = resolve_routing(text, AnalyzeOptions())
        assert routing.model_dbs == {"Pedido": Database.POSTGRES}
        assert routing.database_for("Pedido") == Database.POSTGRES
        assert routing.database_for("Item") == Database.SQLSERVER


class TestFileRouting:
    """Tests for FileRouting.database_for."""

    def test_hint_used_without_file_signal(self):
        routing = FileRouting(file_db=Database.SQLSERVER)
        assert routing.database_for("Cliente", Database.POSTGRES) == Database.POSTGRES

    def test_file_signal_beats_hint(self):
        routing = FileRouting(file_db=Database.SQLSERVER, file_signal=True)
        assert routing.database_for("Cliente", Database.POSTGRES) == Database.SQLSERVER

    def test_model_override_beats_everything(self):
        routing = FileRouting(
            file_db=Database.SQLSERVER,
            file_signal=True,
            model_dbs={"Cliente": Database.POSTGRES},
        )
        assert routing.database_for("Cliente", Database.SQLSERVER) == Database.POSTGRES

    def test_no_model(self):
        routing = FileRouting(file_db=Database.POSTGRES)
        assert routing.database_for() == Database.POSTGRES
