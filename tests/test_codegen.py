"""Tests for lifting IR back to structured code and rendering each target."""

import pytest

from crosscompiler import codegen_c, codegen_java, codegen_js, codegen_python
from crosscompiler.codegen_common import For, If, Lifter, While, lift
from crosscompiler.ir import BINARY_OPS, UNARY_OPS, IROp, generate
from crosscompiler.lexer import tokenize
from crosscompiler.optimizer import optimize
from crosscompiler.parser import parse
from crosscompiler.semantic import analyze

GENERATORS = {
    "c": codegen_c,
    "java": codegen_java,
    "javascript": codegen_js,
    "python": codegen_python,
}

COUNTING_LOOP = "for (let i = 0; i < 3; i = i + 1) { console.log(i); }"


def lower(source, language="javascript"):
    tree = parse(tokenize(source, language), language)
    analysis = analyze(tree)
    assert analysis.ok, analysis.errors
    return optimize(generate(tree, analysis))


def render(source, target, language="javascript"):
    return GENERATORS[target].generate(lower(source, language))


def test_every_operation_has_a_lift_handler():
    assert set(IROp) <= set(Lifter([]).handlers)


@pytest.mark.parametrize("generator", [
    codegen_c.CGenerator, codegen_java.JavaGenerator, codegen_js.JavaScriptGenerator, codegen_python.PythonGenerator,
])
def test_operator_tables_are_complete(generator):
    assert BINARY_OPS | UNARY_OPS <= set(generator.OPERATORS)


def test_lift_recovers_counting_loop():
    program, gaps = lift(lower(COUNTING_LOOP))
    assert gaps == []
    (loop,) = program.body
    assert isinstance(loop, For)
    assert loop.init[0].target == "i"
    assert loop.cond.op is IROp.LT
    assert loop.update[0].target == "i"


def test_lift_recovers_if_else_and_while():
    program, _ = lift(lower("let a = 1;\nwhile (a < 5) { if (a > 2) { a = a + 2; } else { a = a + 1; } }"))
    loop = program.body[-1]
    assert isinstance(loop, While)
    branch = loop.body[0]
    assert isinstance(branch, If)
    assert branch.then and branch.orelse


def test_counting_loop_in_c():
    code, warnings = render(COUNTING_LOOP, "c")
    assert warnings == []
    assert "for (int i = 0; i < 3; i++)" in code
    assert 'printf("%d\\n", i);' in code
    assert "int main(void)" in code
    assert "return 0;" in code


def test_counting_loop_in_python():
    code, _ = render(COUNTING_LOOP, "python")
    assert "for i in range(3):" in code
    assert "print(i)" in code


def test_counting_loop_in_java():
    code, _ = render(COUNTING_LOOP, "java")
    assert "public class Main" in code
    assert "public static void main(String[] args)" in code
    assert "System.out.println(i);" in code


def test_counting_loop_in_javascript():
    code, _ = render("for (int i = 0; i < 3; i++) {\n    printf(\"%d\\n\", i);\n}\n", "javascript", "c")
    assert "for (let i = 0; i < 3; i++)" in code
    assert "console.log(i);" in code


def test_python_else_if_chain_becomes_elif():
    source = "let a = 3;\nif (a < 1) { console.log(1); } else if (a < 2) { console.log(2); } else { console.log(3); }"
    code, _ = render(source, "python")
    assert "elif a < 2:" in code
    assert "else:" in code


def test_python_do_while():
    code, _ = render("let n = 0;\ndo { n = n + 1; } while (n < 3);", "python")
    assert "while True:" in code
    assert "break" in code


def test_c_integer_division_survives_to_python():
    code, _ = render("int main() {\n    int a = 7;\n    int b = a / 2;\n    printf(\"%d\\n\", b);\n    return 0;\n}\n",
                     "python", "c")
    assert "int(a / 2)" in code


def test_python_functions_to_c_get_prototypes():
    code, _ = render("def square(n):\n    return n * n\nprint(square(4))\n", "c", "python")
    assert "int square(int n);" in code
    assert "return n * n;" in code


def test_missing_builtin_is_reported():
    code, warnings = render("name = input()\nprint(name)\n", "javascript", "python")
    assert warnings == ["javascript: no translation for builtin input"]
    assert "input(" in code


def test_generation_is_deterministic():
    code = lower(COUNTING_LOOP)
    for module in GENERATORS.values():
        assert module.generate(code) == module.generate(code)


def test_custom_indent():
    code, _ = codegen_python.generate(lower(COUNTING_LOOP), indent="  ")
    assert "\n  print(i)" in code


def test_shadowed_variable_keeps_its_own_name():
    source = "let x = 1;\nif (x > 0) { let x = 2; console.log(x); }\nconsole.log(x);"
    code, _ = render(source, "python")
    assert "x_1 = 2" in code
    assert "print(x_1)" in code
    assert code.rstrip().endswith("print(x)")


def test_shadowed_c_block_variable_in_python():
    source = ("int main() {\n    int x = 1;\n    {\n        int x = 2;\n        printf(\"%d\\n\", x);\n    }\n"
              "    printf(\"%d\\n\", x);\n    return 0;\n}\n")
    code, _ = render(source, "python", "c")
    assert "print(x_1)" in code
    assert "print(x)\n" in code


def test_sequential_loops_reuse_their_variable():
    source = "for (let i = 0; i < 2; i++) { console.log(i); }\nfor (let i = 0; i < 3; i++) { console.log(i); }"
    code, _ = render(source, "python")
    assert "i_1" not in code


def test_string_plus_zero_is_not_simplified():
    code, _ = render("let s = 'a';\nconsole.log(s + 0);", "python")
    assert "print(s)" not in code
    assert "s + " in code


def test_negative_remainder_truncates_in_python():
    code, _ = render("let a = -7;\nconsole.log(a % 3);", "python")
    assert "import math" in code
    assert "math.fmod(a, 3)" in code


def test_remainder_tested_against_zero_stays_plain():
    code, _ = render("for (let i = 0; i < 4; i++) { if (i % 2 == 0) { console.log(i); } }", "python")
    assert "if i % 2 == 0:" in code
    assert "math" not in code


def test_python_remainder_floors_in_c():
    code, _ = render("a = -7\nb = 3\nprint(a % b)\n", "c", "python")
    assert "(a % b + b) % b" in code


def test_range_needs_the_loop_to_own_its_variable():
    code, _ = render("let i = 0;\nfor (i = 0; i < 3; i++) { }\nconsole.log(i);", "python")
    assert "in range" not in code
    assert "while i < 3:" in code
    assert code.rstrip().endswith("print(i)")


def test_range_when_the_variable_is_not_read_afterwards():
    code, _ = render("let i = 0;\nfor (i = 0; i < 3; i++) { console.log(i); }", "python")
    assert "for i in range(3):" in code
