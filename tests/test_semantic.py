"""Tests for scope handling, type inference and builtin checks."""

from crosscompiler import kinds
from crosscompiler.lexer import tokenize
from crosscompiler.parser import parse
from crosscompiler.semantic import analyze
from crosscompiler.symbols import BUILTINS


def check(source, language="javascript"):
    return analyze(parse(tokenize(source, language), language))


def symbol(analysis, name):
    (sym,) = analysis.symbol_table.find(name)
    return sym


def test_clean_program():
    analysis = check("let x = 1;\nlet y = x + 2;\nconsole.log(y);")
    assert analysis.ok
    assert analysis.symbol_table.names() == ["x", "y"]
    assert symbol(analysis, "x").used


def test_block_scope_visibility():
    analysis = check("{ let a = 1; }\nconsole.log(a);")
    assert len(analysis.errors) == 1
    assert analysis.errors[0].startswith("Undefined variable 'a'")


def test_errors_do_not_stop_the_walk():
    analysis = check("console.log(a);\nconsole.log(b);\nlet c = d;")
    assert [e.split(" (")[0] for e in analysis.errors] == [
        "Undefined variable 'a'", "Undefined variable 'b'", "Undefined variable 'd'",
    ]


def test_redeclaration_in_same_scope():
    analysis = check("let x = 1;\nlet x = 2;")
    assert len(analysis.errors) == 1
    assert "already declared in current scope" in analysis.errors[0]


def test_shadowing_in_inner_scope_is_allowed():
    analysis = check("let x = 1;\nif (x) { let x = 2; console.log(x); }")
    assert analysis.ok
    assert len(analysis.symbol_table.find("x")) == 2
    outer, inner = analysis.symbol_table.find("x")
    assert outer.ir_name is None
    assert inner.ir_name == "x_1"


def test_shadowing_name_skips_names_in_use():
    analysis = check("let x_1 = 0;\nlet x = 1;\nif (x) { let x = 2; console.log(x, x_1); }")
    assert analysis.ok
    assert analysis.symbol_table.find("x")[1].ir_name == "x_2"


def test_error_mentions_position():
    analysis = check("let a = 1;\nfoo;")
    assert analysis.errors == ["Undefined variable 'foo' (line 2, column 1)"]


def test_function_hoisting_and_parameters():
    analysis = check("console.log(twice(2));\nfunction twice(n) { return n * 2; }")
    assert analysis.ok
    assert symbol(analysis, "twice").kind == kinds.INT
    assert symbol(analysis, "n").kind == kinds.INT


def test_parameters_are_local():
    analysis = check("function f(p) { return p; }\nconsole.log(p);")
    assert len(analysis.errors) == 1
    assert "Undefined variable 'p'" in analysis.errors[0]


def test_type_inference():
    analysis = check('let s = "a" + 1;\nlet n = 2 * 3;\nlet b = 1 < 2;\nlet c = n;')
    assert symbol(analysis, "s").type == "string"
    assert symbol(analysis, "n").type == "number"
    assert symbol(analysis, "b").type == "boolean"
    assert symbol(analysis, "c").type == "number"


def test_storage_kinds():
    analysis = check("let i = 1;\nlet d = 1.5;\nlet m = i + d;\nlet xs = [1, 2];")
    assert symbol(analysis, "i").kind == kinds.INT
    assert symbol(analysis, "d").kind == kinds.DOUBLE
    assert symbol(analysis, "m").kind == kinds.DOUBLE
    assert symbol(analysis, "xs").kind == kinds.array_of(kinds.INT)


def test_declared_types_win():
    analysis = check("double x = 1;\nint y = 2;", "c")
    assert symbol(analysis, "x").kind == kinds.DOUBLE
    assert symbol(analysis, "y").kind == kinds.INT


def test_unknown_builtin_member():
    analysis = check("console.shout(1);\nMath.sqrt(4);")
    assert len(analysis.errors) == 1
    assert "Unknown member 'shout' on builtin 'console'" in analysis.errors[0]


def test_nested_builtin_members():
    assert check('System.out.println("x");', "java").ok
    analysis = check('System.out.shout("x");', "java")
    assert "Unknown member 'shout' on builtin 'System.out'" in analysis.errors[0]


def test_cannot_assign_to_builtin():
    analysis = check("print = 1;")
    assert len(analysis.errors) == 1
    assert "Cannot assign to builtin 'print'" in analysis.errors[0]


def test_python_rebinding_a_builtin_name_declares_it():
    assert check("print = 1\n", "python").ok


def test_control_flow_placement():
    analysis = check("break;\nreturn 1;")
    messages = [e.split(" (")[0] for e in analysis.errors]
    assert messages == ["'break' outside of loop", "Return statement outside of function"]


def test_loop_context_does_not_leak_into_functions():
    analysis = check("while (true) { function f() { break; } }")
    assert any("'break' outside of loop" in e for e in analysis.errors)


def test_catch_parameter_is_scoped():
    analysis = check("try { f(); } catch (e) { console.log(e); }\nconsole.log(e);\nfunction f() {}")
    assert len(analysis.errors) == 1
    assert "Undefined variable 'e'" in analysis.errors[0]


def test_python_function_scope():
    source = "total = 0\ndef add(n):\n    result = total + n\n    return result\nprint(add(1))\n"
    analysis = check(source, "python")
    assert analysis.ok
    assert symbol(analysis, "result").declaring_scope == 1


def test_builtins_are_shared_and_read_only():
    before = BUILTINS["console"].used
    check("console.log(1);")
    assert BUILTINS["console"].used == before
    assert "print" in BUILTINS


def test_symbol_table_serializes():
    data = check("let x = 1;").symbol_table.to_dict()
    assert data[0]["name"] == "x"
    assert data[0]["kind"] == kinds.INT
