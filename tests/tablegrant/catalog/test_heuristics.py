"""Tests for positional declaration heuristics."""

from tablegrant.catalog.heuristics import (
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

SOURCE = """
@Table({ tableName: 'PEDIDOS' })
export class Pedido extends Model {
  total: number;
}

export default abstract class Base {}

class Item { nested = { a: 1 }; }
"""


class TestClassDeclarations:
    """Tests for class_declarations."""

    def test_finds_all_declarations_in_order(self):
        """Test export, default and abstract modifiers."""
        names = [decl.name for decl in class_declarations(SOURCE)]
        assert names == ["Pedido", "Base", "Item"]

    def test_positions(self):
        """Test that name_end points just past the class name."""
        decl = class_declarations(SOURCE)[0]
        assert SOURCE[decl.name_end - len("Pedido") : decl.name_end] == "Pedido"
        assert decl.start < decl.name_end

    def test_no_classes(self):
        """Test text without classes."""
        assert class_declarations("const x = 1;") == []


class TestNearestFollowingClass:
    """Tests for nearest_following_class."""

    def test_decorator_pairs_with_next_class(self):
        """Test that a decorator pairs with the class after it."""
        offset = SOURCE.index("@Table")
        assert nearest_following_class(SOURCE, offset).name == "Pedido"

    def test_no_following_class(self):
        """Test an offset past the last class."""
        assert nearest_following_class(SOURCE, len(SOURCE)) is None


class TestNearestPrecedingClass:
    """Tests for nearest_preceding_class."""

    def test_returns_last_class_before_offset(self):
        """Test lookup between two declarations."""
        declarations = class_declarations(SOURCE)
        offset = SOURCE.index("total")
        assert nearest_preceding_class(declarations, offset).name == "Pedido"

    def test_offset_before_first_class(self):
        """Test that nothing precedes the first declaration."""
        declarations = class_declarations(SOURCE)
        assert nearest_preceding_class(declarations, 0) is None


class TestClassBodySpan:
    """Tests for class_body_span."""

    def test_balanced_nested_braces(self):
        """Test that nested braces stay inside the body."""
        decl = class_declarations(SOURCE)[2]
        start, end = class_body_span(SOURCE, decl.name_end)
        assert SOURCE[start:end] == " nested = { a: 1 }; "

    def test_unbalanced_runs_to_end(self):
        """Test a body that is never closed."""
        text = "class A { x = 1;"
        start, end = class_body_span(text, text.index("A") + 1)
        assert text[start:end] == " x = 1;"
        assert end == len(text)

    def test_no_body(self):
        """Test a declaration without braces."""
        text = "class A"
        assert class_body_span(text, len(text)) == (len(text), len(text))


class TestLowerCamel:
    """Tests for lower_camel."""

    def test_lowercases_first_character(self):
        """Test PascalCase to camelCase."""
        assert lower_camel("PedidoRepository") == "pedidoRepository"

    def test_empty(self):
        """Test the empty string."""
        assert lower_camel("") == ""


class TestBalancedSpan:
    """Tests for balanced_span."""

    def test_parentheses(self):
        """Test a paren group containing nested groups."""
        text = '@Table(name = "A", x = @B(c = "d")) class T'
        start, end = balanced_span(text, 0, "(", ")")
        assert text[start:end] == 'name = "A", x = @B(c = "d")'

    def test_no_group(self):
        """Test text without the opening delimiter."""
        assert balanced_span("abc", 1) == (1, 1)


class TestTopLevel:
    """Tests for top_level."""

    def test_removes_nested_groups(self):
        """Test that (), {} and [] groups are dropped."""
        span = "name: 'a', opts: { name: 'b' }, list: [1, (2)], fn(x)"
        assert top_level(span) == "name: 'a', opts: , list: , fn"


class TestAnnotationUses:
    """Tests for annotation_uses."""

    def test_arguments_and_offsets(self):
        """Test that argument text spans nested parentheses."""
        text = '@JoinTable(name = "X", joinColumns = @JoinColumn(name = "y")) private'
        uses = annotation_uses(text, "JoinTable")
        assert len(uses) == 1
        assert uses[0].start == 0
        assert uses[0].arguments == 'name = "X", joinColumns = @JoinColumn(name = "y")'
        assert text[uses[0].end :] == " private"

    def test_name_must_match_exactly(self):
        """Test that a longer annotation name is not matched."""
        assert annotation_uses("@TableGenerator(name = 'x')", "Table") == []


class TestObjectLiteral:
    """Tests for object_literal."""

    def test_first_object_top_level(self):
        """Test the top-level text of the first object."""
        assert object_literal("'x', { schema: 'a', nested: { b: 1 } }") == (
            " schema: 'a', nested:  "
        )

    def test_no_object(self):
        """Test arguments without an object."""
        assert object_literal("'x'") is None


class TestJoinTableNames:
    """Tests for join_table_names."""

    def test_jpa_name_in_any_position(self):
        """Test a JPA join table whose name follows a nested join column."""
        text = (
            '@JoinTable(joinColumns = @JoinColumn(name = "pedido_id"), '
            'name = "PEDIDO_ITEM")'
        )
        assert join_table_names(text) == [(0, "PEDIDO_ITEM")]

    def test_typeorm_object(self):
        """Test a TypeORM join table with a nested join column."""
        text = "x; @JoinTable({ joinColumn: { name: 'a_id' }, name: 'a_b' })"
        assert join_table_names(text) == [(3, "a_b")]

    def test_without_name(self):
        """Test join tables that rely on naming defaults."""
        assert join_table_names("@JoinTable() @JoinTable({ joinColumn: {} })") == []
