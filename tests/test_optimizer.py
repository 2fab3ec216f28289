"""Tests for the IR optimizer passes."""

import pytest

from crosscompiler.ir import IROp, Instruction, generate
from crosscompiler.lexer import tokenize
from crosscompiler.optimizer import (
    algebraic_simplification, constant_folding, copy_propagation, dead_code_elimination, optimize,
)
from crosscompiler.parser import parse
from crosscompiler.semantic import analyze

I = Instruction

SAMPLES = [
    ("let x = 2 + 3 * 4;", "javascript"),
    ("let a = 1;\nlet b = a * 1 + 0;\nconsole.log(b);", "javascript"),
    ("for (let i = 0; i < 3; i = i + 1) { if (i % 2 == 0) { continue; } console.log(i); }", "javascript"),
    ("def f(n):\n    return n * 0 + 1\nprint(f(2))\n", "python"),
    ("int main() {\n    int x = 10 / 0;\n    printf(\"%d\\n\", x);\n    return 0;\n}\n", "c"),
]


def lower(source, language="javascript"):
    tree = parse(tokenize(source, language), language)
    return generate(tree, analyze(tree))


def test_constant_expression_folds_to_one_load():
    code = optimize(lower("var x = 2 + 3 * 4;"))
    loads = [i for i in code if i.operation is IROp.LOAD_CONST]
    assert len(loads) == 1
    assert loads[0].arg1 == 14
    assert not any(i.operation in (IROp.ADD, IROp.MUL) for i in code)
    assert code[-1].operation is IROp.ASSIGN
    assert code[-1].arg1 == loads[0].result


@pytest.mark.parametrize("op, a, b, expected", [
    (IROp.ADD, 2, 3, 5),
    (IROp.SUB, 2, 3, -1),
    (IROp.MUL, 2.5, 2, 5.0),
    (IROp.DIV, 7, 2, 3.5),
    (IROp.DIV, 8, 2, 4),
    (IROp.DIV, 5, 0, 5),
    (IROp.MOD, 5, 0, 5),
    (IROp.MOD, 7, 3, 1),
    (IROp.INT_DIV, 7, 2, 3),
    (IROp.POW, 2, 10, 1024),
])
def test_constant_folding(op, a, b, expected):
    code = [I(IROp.LOAD_CONST, a, None, "t0"), I(IROp.LOAD_CONST, b, None, "t1"), I(op, "t0", "t1", "t2")]
    folded = constant_folding(code)
    assert folded[-1] == I(IROp.LOAD_CONST, expected, None, "t2")


@pytest.mark.parametrize("op, a, b", [
    (IROp.MOD, -7, 3),
    (IROp.INT_DIV, -7, 2),
    (IROp.POW, 2, -1),
])
def test_sign_sensitive_operations_are_not_folded(op, a, b):
    code = [I(IROp.LOAD_CONST, a, None, "t0"), I(IROp.LOAD_CONST, b, None, "t1"), I(op, "t0", "t1", "t2")]
    assert constant_folding(code) == code


def test_strings_are_not_folded():
    code = [I(IROp.LOAD_CONST, "a", None, "t0"), I(IROp.LOAD_CONST, "b", None, "t1"), I(IROp.ADD, "t0", "t1", "t2")]
    assert constant_folding(code) == code


def test_dead_code_keeps_control_and_effects():
    code = [
        I(IROp.FUNC_START, "f", "void"),
        I(IROp.LOAD_CONST, 1, None, "t0"),
        I(IROp.LABEL, None, None, "L0"),
        I(IROp.IF_FALSE, "c", None, "L1"),
        I(IROp.CALL, "@print", None, "t1", ("c",)),
        I(IROp.NEW, "Foo", None, "t2"),
        I(IROp.MEMBER_SET, "o", "p", "c"),
        I(IROp.ARRAY_SET, "xs", "i", "c"),
        I(IROp.ASSIGN, "c", None, "x"),
        I(IROp.IF_TRUE, "c", None, "L0"),
        I(IROp.GOTO, None, None, "L0"),
        I(IROp.RETURN, None),
        I(IROp.LABEL, None, None, "L1"),
        I(IROp.FUNC_END, "f"),
    ]
    kept = dead_code_elimination(code)
    assert kept == code[:1] + code[2:]


def test_copy_propagation_stops_at_labels():
    code = [
        I(IROp.ASSIGN, "x", None, "t0"),
        I(IROp.ADD, "t0", "t0", "t1"),
        I(IROp.LABEL, None, None, "L0"),
        I(IROp.ADD, "t0", "t0", "t2"),
    ]
    out = copy_propagation(code)
    assert out[1] == I(IROp.ADD, "x", "x", "t1")
    assert out[3] == code[3]


def test_copy_propagation_respects_writes():
    code = [
        I(IROp.ASSIGN, "x", None, "t0"),
        I(IROp.ASSIGN, "t9", None, "x"),
        I(IROp.ADD, "t0", "t0", "t1"),
    ]
    assert copy_propagation(code)[2] == code[2]


def test_algebraic_simplification():
    code = [
        I(IROp.DECLARE, "x", "int"),
        I(IROp.LOAD_CONST, 0, None, "t0"),
        I(IROp.LOAD_CONST, 1, None, "t1"),
        I(IROp.ADD, "x", "t0", "t2"),
        I(IROp.MUL, "x", "t1", "t3"),
        I(IROp.MUL, "t1", "x", "t4"),
        I(IROp.MUL, "x", "t0", "t5"),
        I(IROp.MUL, "t0", "x", "t6"),
    ]
    out = algebraic_simplification(code)
    assert out[3] == I(IROp.ASSIGN, "x", None, "t2")
    assert out[4] == I(IROp.ASSIGN, "x", None, "t3")
    assert out[5] == I(IROp.ASSIGN, "x", None, "t4")
    assert out[6] == I(IROp.LOAD_CONST, 0, None, "t5")
    assert out[7] == I(IROp.LOAD_CONST, 0, None, "t6")


@pytest.mark.parametrize("kind", ["string", "unknown"])
def test_identities_need_a_numeric_operand(kind):
    code = [
        I(IROp.DECLARE, "s", kind),
        I(IROp.LOAD_CONST, 0, None, "t0"),
        I(IROp.ADD, "s", "t0", "t1"),
        I(IROp.MUL, "s", "t0", "t2"),
    ]
    assert algebraic_simplification(code) == code


def test_string_plus_zero_keeps_the_concatenation():
    code = optimize(lower("let s = 'a';\nconsole.log(s + 0);"))
    assert any(i.operation is IROp.ADD and i.arg1 == "s" for i in code)


@pytest.mark.parametrize("source, language", SAMPLES)
def test_optimize_is_idempotent(source, language):
    once = optimize(lower(source, language))
    assert optimize(once) == once


@pytest.mark.parametrize("source, language", SAMPLES)
def test_optimize_is_pure_and_deterministic(source, language):
    code = lower(source, language)
    snapshot = list(code)
    assert optimize(code) == optimize(code)
    assert code == snapshot


@pytest.mark.parametrize("source, language", SAMPLES)
def test_control_instructions_survive(source, language):
    code = lower(source, language)
    control = (IROp.LABEL, IROp.GOTO, IROp.IF_FALSE, IROp.IF_TRUE, IROp.CALL, IROp.RETURN,
               IROp.FUNC_START, IROp.FUNC_END, IROp.CONTINUE, IROp.BREAK)
    before = [i for i in code if i.operation in control]
    after = [i for i in optimize(code) if i.operation in control]
    assert [(i.operation, i.result) for i in after] == [(i.operation, i.result) for i in before]


def test_division_by_zero_folds_to_left_operand():
    code = optimize(lower("int main() {\n    int x = 10 / 0;\n    return x;\n}\n", "c"))
    loads = [i.arg1 for i in code if i.operation is IROp.LOAD_CONST]
    assert loads == [10]


def test_pass_limit():
    code = lower("let a = 1;\nlet b = a * 1 + 0;")
    assert optimize(code, max_passes=0) == code
