"""
Tests for statement decomposition of function bodies.
"""

import pytest

from blockbridge.config import ParserConfig
from blockbridge.parser.session import ParseSession
from blockbridge.parser.statements import StatementDecomposer, WgslDecomposer, split_type_annotation


def decompose(session, text, decomposer_class=StatementDecomposer):
    return decomposer_class(session).decompose(text, 0, len(text))


def codes(session):
    return [d.code for d in session.diagnostics]


class TestControlFlow:
    """Conditionals and loops."""

    def test_if(self, session):
        stmts = decompose(session, "if x > 1 { a(); }")
        assert len(stmts) == 1
        assert stmts[0].type == "rust_if"
        assert stmts[0].text("CONDITION") == "x > 1"
        assert [s.type for s in stmts[0].body("THEN")] == ["rust_expr_stmt"]

    def test_else_if_chain(self, session):
        stmts = decompose(session, "if x > 1 { a(); } else if y { b(); } else { c(); }")
        assert len(stmts) == 1
        outer = stmts[0]
        assert outer.type == "rust_if_else"
        inner = outer.body("ELSE")[0]
        assert inner.type == "rust_if_else"
        assert inner.text("CONDITION") == "y"
        assert inner.body("ELSE")[0].text("EXPR") == "c()"

    def test_while(self, session):
        stmts = decompose(session, "while n < 10 { n += 1; }")
        assert stmts[0].type == "rust_while"
        assert stmts[0].text("CONDITION") == "n < 10"
        assert stmts[0].body("BODY")[0].type == "rust_expr_stmt"

    def test_for(self, session):
        stmts = decompose(session, "for i in 0..10 { total = total + i; }")
        loop = stmts[0]
        assert loop.type == "rust_for"
        assert loop.fields["VAR"] == "i"
        assert loop.text("ITERATOR") == "0..10"
        assign = loop.body("BODY")[0]
        assert assign.type == "rust_assign"
        assert assign.fields["VAR"] == "total"
        assert assign.text("VALUE") == "total + i"

    def test_loop_with_label(self, session):
        stmts = decompose(session, "'outer: loop { break 'outer; }")
        assert [s.type for s in stmts] == ["rust_loop"]
        assert stmts[0].body("BODY")[0].text("EXPR") == "break 'outer"

    def test_match_expression_ends_at_brace(self, session):
        stmts = decompose(session, "match x { 1 => a(), _ => b() }\nlet z = 2;")
        assert [s.type for s in stmts] == ["rust_expr_stmt", "rust_let_binding"]
        assert stmts[0].text("EXPR").startswith("match x {")


class TestBindingsAndExpressions:
    """let bindings, returns and expression statements."""

    def test_let_mut_with_type(self, session):
        stmts = decompose(session, "let mut count: u32 = 0;")
        binding = stmts[0]
        assert binding.type == "rust_let_binding"
        assert binding.fields == {"MUTABLE": "TRUE", "NAME": "count"}
        assert binding.text("TYPE") == ": u32"
        assert binding.text("VALUE") == "0"

    def test_let_without_type(self, session):
        binding = decompose(session, "let p = Point::new(1, 2);")[0]
        assert binding.fields["MUTABLE"] == "FALSE"
        assert binding.value("TYPE") is None
        assert binding.text("VALUE") == "Point::new(1, 2)"

    def test_implicit_return(self, session):
        stmts = decompose(session, "let x = 5;\nx * 2")
        assert [s.type for s in stmts] == ["rust_let_binding", "rust_return"]
        assert stmts[1].text("VALUE") == "x * 2"

    def test_explicit_return(self, session):
        stmts = decompose(session, "return a + b;")
        assert stmts[0].type == "rust_return"
        assert stmts[0].text("VALUE") == "a + b"

    def test_println(self, session):
        stmts = decompose(session, 'println!("hi {}", x);')
        assert stmts[0].type == "rust_println"
        assert stmts[0].text("MESSAGE") == '"hi {}", x'

    def test_empty_statements_skipped(self, session):
        assert [s.type for s in decompose(session, ";; a();")] == ["rust_expr_stmt"]

    def test_ids_unique(self, session):
        stmts = decompose(session, "if a { b(); } else { c(); }\nlet d = 1;")
        ids = [n.id for s in stmts for n in s.walk()]
        assert len(ids) == len(set(ids))


class TestRecovery:
    """Malformed bodies produce warnings, not exceptions."""

    def test_malformed_keyword(self, session):
        decompose(session, "if { } let y = 1;")
        assert codes(session).count("MALFORMED_STATEMENT") == 1
        assert all(d.severity == "warning" for d in session.diagnostics)

    def test_stray_closing_brace(self, session):
        stmts = decompose(session, "a(); }")
        assert [s.type for s in stmts] == ["rust_expr_stmt"]
        assert "UNBALANCED" in codes(session)

    def test_nesting_limit(self):
        session = ParseSession(ParserConfig(search=False, overrides={"max_nesting_depth": 2}))
        stmts = decompose(session, "if a { if b { if c { x(); } } }")
        inner = stmts[0].body("THEN")[0]
        assert inner.type == "rust_if"
        assert inner.body("THEN") == []
        assert "NESTING_LIMIT" in codes(session)


class TestWgslStatements:
    """WGSL flavour of the decomposer."""

    def test_var_decl(self, session):
        stmt = decompose(session, "var<function> total: f32 = 0.0;", WgslDecomposer)[0]
        assert stmt.type == "wgsl_var_decl"
        assert stmt.fields == {"KIND": "var", "NAME": "total", "TYPE": "f32"}
        assert stmt.text("VALUE") == "0.0"

    def test_if_strips_parentheses(self, session):
        stmt = decompose(session, "if (a > b) { return a; }", WgslDecomposer)[0]
        assert stmt.type == "wgsl_if"
        assert stmt.text("CONDITION") == "a > b"
        assert stmt.body("THEN")[0].type == "wgsl_return"

    def test_c_style_for(self, session):
        stmt = decompose(session, "for (var i = 0u; i < n; i++) { x = x + 1.0; }", WgslDecomposer)[0]
        assert stmt.type == "wgsl_for_loop"
        assert stmt.fields["VAR"] == "i"
        assert stmt.text("START") == "0u"
        assert stmt.text("END") == "i < n"
        assert stmt.text("UPDATE") == "i++"
        assert stmt.body("BODY")[0].type == "wgsl_assign"
        assert stmt.body("BODY")[0].fields["TARGET"] == "x"

    def test_compound_assignment_is_expression(self, session):
        stmt = decompose(session, "total += x;", WgslDecomposer)[0]
        assert stmt.type == "wgsl_expr_stmt"


@pytest.mark.parametrize("target,expected", [
    ("x", ("x", "")),
    ("x: f32", ("x", "f32")),
    ("v: std::vec::Vec<u8>", ("v", "std::vec::Vec<u8>")),
    ("std::f32::consts", ("std::f32::consts", "")),
])
def test_split_type_annotation(target, expected):
    assert split_type_annotation(target) == expected
