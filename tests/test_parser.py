"""Tests for the recursive-descent parsers."""

import pytest

from crosscompiler.ast_nodes import Node, NodeType, ast_to_dict, format_ast
from crosscompiler.lexer import tokenize
from crosscompiler.parser import ParseError, parse


def parse_source(source, language="javascript"):
    return parse(tokenize(source, language), language)


def body(source, language="javascript"):
    return list(parse_source(source, language).root.children)


def test_declaration_and_precedence():
    (decl,) = body("let x = 2 + 3 * 4;")
    assert decl.node_type is NodeType.VARIABLE_DECLARATION
    assert decl.value == "x"
    expr = decl.children[0]
    assert expr.attr("operator") == "+"
    left, right = expr.children
    assert left.value == 2
    assert right.attr("operator") == "*"


def test_left_associative_subtraction():
    (stmt,) = body("a - b - c;")
    expr = stmt.children[0]
    assert expr.attr("operator") == "-"
    assert expr.children[0].attr("operator") == "-"
    assert expr.children[1].value == "c"


def test_assignment_is_right_associative():
    (stmt,) = body("a = b = 1;")
    outer = stmt.children[0]
    assert outer.node_type is NodeType.ASSIGNMENT
    assert outer.children[1].node_type is NodeType.ASSIGNMENT


def test_logical_tiers():
    (stmt,) = body("a || b && c == d;")
    expr = stmt.children[0]
    assert expr.attr("operator") == "||"
    assert expr.children[1].attr("operator") == "&&"
    assert expr.children[1].children[1].attr("operator") == "=="


def test_if_else_and_blocks():
    (node,) = body("if (x > 1) { y = 1; } else y = 2;")
    assert node.node_type is NodeType.IF_STATEMENT
    cond, then_block, else_block = node.children
    assert cond.attr("operator") == ">"
    assert then_block.node_type is NodeType.BLOCK_STATEMENT
    assert else_block.node_type is NodeType.BLOCK_STATEMENT
    assert len(else_block.children) == 1


def test_for_statement_children():
    (node,) = body("for (let i = 0; i < 3; i = i + 1) { print(i); }")
    assert node.node_type is NodeType.FOR_STATEMENT
    init, cond, update, loop_body = node.children
    assert init.node_type is NodeType.VARIABLE_DECLARATION
    assert cond.attr("operator") == "<"
    assert update.node_type is NodeType.EXPRESSION_STATEMENT
    assert loop_body.node_type is NodeType.BLOCK_STATEMENT


def test_function_call_and_member():
    nodes = body("function add(a, b) { return a + b; }\nconsole.log(add(1, 2));")
    fn, call_stmt = nodes
    assert fn.node_type is NodeType.FUNCTION_DECLARATION
    assert fn.attr("parameters") == ("a", "b")
    call = call_stmt.children[0]
    assert call.node_type is NodeType.CALL_EXPRESSION
    callee = call.children[0]
    assert callee.node_type is NodeType.MEMBER_EXPRESSION
    assert callee.attr("property") == "log"


def test_arrow_function_declaration():
    (fn,) = body("const sq = (n) => n * n;")
    assert fn.node_type is NodeType.FUNCTION_DECLARATION
    assert fn.value == "sq"


def test_do_while_break_continue():
    (node,) = body("do { if (x) break; continue; } while (x < 3);")
    assert node.node_type is NodeType.DO_WHILE_STATEMENT
    block, cond = node.children
    kinds = [c.node_type for c in block.children]
    assert kinds == [NodeType.IF_STATEMENT, NodeType.CONTINUE_STATEMENT]


def test_try_catch_finally():
    (node,) = body("try { f(); } catch (e) { g(e); } finally { h(); }")
    assert node.node_type is NodeType.TRY_STATEMENT
    assert node.attr("param") == "e"
    assert node.attr("has_handler") and node.attr("has_finalizer")
    assert len(node.children) == 3


def test_c_typed_declarations_and_prototype():
    source = """
    #include <stdio.h>
    int square(int n);
    int main() {
        int a = 1, b[3] = {1, 2, 3};
        return 0;
    }
    int square(int n) { return n * n; }
    """
    nodes = body(source, "c")
    assert [n.value for n in nodes] == ["main", "square"]
    main_body = nodes[0].children[0]
    a, b, _ = main_body.children
    assert a.attr("declared_type") == "int"
    assert b.attr("declared_type") == "int[]"
    assert b.children[0].node_type is NodeType.ARRAY_EXPRESSION


def test_java_class_is_flattened():
    source = """
    public class Main {
        static int count = 0;
        public static void main(String[] args) {
            System.out.println("hi");
        }
    }
    """
    nodes = body(source, "java")
    assert [n.node_type for n in nodes] == [NodeType.VARIABLE_DECLARATION, NodeType.FUNCTION_DECLARATION]
    assert nodes[1].attr("param_types") == ("String[]",)


def test_java_cast_becomes_conversion_call():
    (decl,) = body("int x = (int) 2.5;", "java")
    call = decl.children[0]
    assert call.node_type is NodeType.CALL_EXPRESSION
    assert call.children[0].value == "int"


def test_python_blocks_and_implicit_declarations():
    source = "x = 1\nif x > 0:\n    x = 2\nelse:\n    y = 3\n"
    nodes = body(source, "python")
    decl, branch = nodes
    assert decl.node_type is NodeType.VARIABLE_DECLARATION
    then_block = branch.children[1]
    assert then_block.attr("scoped") is False
    assert then_block.children[0].node_type is NodeType.EXPRESSION_STATEMENT


def test_python_range_is_lowered_to_for():
    (loop,) = body("for i in range(3):\n    print(i)\n", "python")
    assert loop.node_type is NodeType.FOR_STATEMENT
    init, cond, update, _ = loop.children
    assert init.value == "i"
    assert cond.attr("operator") == "<"
    assert cond.children[1].value == 3


def test_python_def_with_annotations():
    (fn,) = body("def area(w: int, h: int) -> int:\n    return w * h\n", "python")
    assert fn.attr("parameters") == ("w", "h")
    assert fn.attr("param_types") == ("int", "int")
    assert fn.attr("return_type") == "int"


def test_python_def_body_with_nested_block():
    source = "def sign(n):\n    if n < 0:\n        return -1\n    return 1\nprint(sign(-4))\n"
    fn, call = body(source, "python")
    assert fn.node_type is NodeType.FUNCTION_DECLARATION
    branch, ret = fn.children[-1].children
    assert branch.node_type is NodeType.IF_STATEMENT
    assert ret.node_type is NodeType.RETURN_STATEMENT
    assert call.node_type is NodeType.EXPRESSION_STATEMENT


def test_python_def_body_must_be_indented():
    with pytest.raises(ParseError):
        parse_source("def f():\nreturn 1\n", "python")


def test_python_main_guard_is_flattened():
    source = 'def main():\n    pass\n\nif __name__ == "__main__":\n    main()\n'
    nodes = body(source, "python")
    assert nodes[0].node_type is NodeType.FUNCTION_DECLARATION
    assert nodes[1].node_type is NodeType.BLOCK_STATEMENT


@pytest.mark.parametrize("source, language", [
    ("let = 5;", "javascript"),
    ("if (x { }", "javascript"),
    ("x = a ? b : c;", "javascript"),
    ("switch (x) { }", "javascript"),
    ("1 = x;", "javascript"),
    ("def f(:\n    pass\n", "python"),
    ("x++\n", "python"),
])
def test_syntax_errors(source, language):
    with pytest.raises(ParseError) as info:
        parse_source(source, language)
    assert str(info.value).startswith("SyntaxError at line")
    assert info.value.line >= 1


def test_parse_error_names_token():
    with pytest.raises(ParseError) as info:
        parse_source("let x = ;")
    assert "';'" in str(info.value)


def test_nodes_are_arena_indexed():
    tree = parse_source("let x = 1; x = x + 1;")
    for i, node in enumerate(tree.nodes):
        assert node.id == i
        assert tree[i] is node
    assert tree.root is tree.nodes[-1]


def test_ast_serialization():
    tree = parse_source("let x = 1;")
    data = ast_to_dict(tree.root)
    assert data["type"] == "Program"
    assert data["children"][0]["value"] == "x"
    assert "VariableDeclaration 'x'" in format_ast(tree.root)


def test_node_defaults():
    node = Node(0, NodeType.PROGRAM)
    assert node.attributes == {}
    assert node.attr("scoped", True) is True
    assert Node(1, NodeType.PROGRAM).attributes is node.attributes
