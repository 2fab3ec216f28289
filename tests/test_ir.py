"""Tests for AST to three-address IR lowering."""

from crosscompiler.ir import IROp, Instruction, format_ir, generate, is_builtin, is_temp
from crosscompiler.lexer import tokenize
from crosscompiler.parser import parse
from crosscompiler.semantic import analyze


def lower(source, language="javascript"):
    tree = parse(tokenize(source, language), language)
    return generate(tree, analyze(tree))


def ops(code):
    return [ins.operation for ins in code]


def test_post_order_expression():
    code = lower("let x = 2 + 3 * 4;")
    assert ops(code) == [
        IROp.DECLARE, IROp.LOAD_CONST, IROp.LOAD_CONST, IROp.LOAD_CONST,
        IROp.MUL, IROp.ADD, IROp.ASSIGN,
    ]
    assert code[0] == Instruction(IROp.DECLARE, "x", "int")
    mul, add, assign = code[4:]
    assert (mul.arg1, mul.arg2, mul.result) == ("t1", "t2", "t3")
    assert (add.arg1, add.arg2, add.result) == ("t0", "t3", "t4")
    assert (assign.arg1, assign.result) == ("t4", "x")


def test_if_else_lowering():
    code = lower("let a = 1;\nif (a > 0) { a = 2; } else { a = 3; }")
    shape = [(i.operation, i.result) for i in code if i.operation in (IROp.IF_FALSE, IROp.GOTO, IROp.LABEL)]
    assert shape == [
        (IROp.IF_FALSE, "L0"), (IROp.GOTO, "L1"), (IROp.LABEL, "L0"), (IROp.LABEL, "L1"),
    ]


def test_if_without_else():
    code = lower("let a = 1;\nif (a) { a = 2; }")
    shape = [(i.operation, i.result) for i in code if i.operation in (IROp.IF_FALSE, IROp.GOTO, IROp.LABEL)]
    assert shape == [(IROp.IF_FALSE, "L0"), (IROp.LABEL, "L0")]


def test_while_lowering():
    code = lower("let n = 0;\nwhile (n < 3) { n = n + 1; }")
    markers = [i.operation for i in code if i.operation in (
        IROp.LABEL, IROp.WHILE_START, IROp.IF_FALSE, IROp.GOTO)]
    assert markers == [IROp.LABEL, IROp.WHILE_START, IROp.IF_FALSE, IROp.GOTO, IROp.LABEL]
    assert code[-2] == Instruction(IROp.GOTO, None, None, "L0")
    assert code[-1] == Instruction(IROp.LABEL, None, None, "L1")


def test_for_loop_scenario():
    tree = parse(tokenize("for (i = 0; i < 3; i = i + 1) { print(i) }"))
    analysis = analyze(tree)
    assert all("'i'" in e for e in analysis.errors)
    code = generate(tree, analysis)

    labels = [i.result for i in code if i.operation is IROp.LABEL]
    assert labels == ["L0", "L1"]
    gotos = [i for i in code if i.operation is IROp.GOTO]
    assert gotos == [Instruction(IROp.GOTO, None, None, "L0")]
    start = ops(code).index(IROp.LABEL)
    assert ops(code).index(IROp.GOTO) > start

    order = [i.operation for i in code if i.operation in (
        IROp.FOR_INIT, IROp.FOR_CONDITION, IROp.IF_FALSE, IROp.CALL, IROp.FOR_UPDATE, IROp.GOTO)]
    assert order == [IROp.FOR_INIT, IROp.FOR_CONDITION, IROp.IF_FALSE, IROp.CALL, IROp.FOR_UPDATE, IROp.GOTO]


def test_do_while_lowering():
    code = lower("let n = 0;\ndo { n = n + 1; } while (n < 3);")
    assert IROp.WHILE_END in ops(code)
    back = [i for i in code if i.operation is IROp.IF_TRUE]
    assert len(back) == 1 and back[0].result == "L0"


def test_break_and_continue_targets():
    code = lower("let n = 0;\nwhile (true) { if (n) { break; } continue; }")
    brk = next(i for i in code if i.operation is IROp.BREAK)
    cont = next(i for i in code if i.operation is IROp.CONTINUE)
    assert brk.result == "L1"
    assert cont.result == "L0"


def test_builtin_calls_are_canonical():
    js = lower("console.log(1);")
    java = lower('System.out.println(1);', "java")
    py = lower("print(1)\n", "python")
    for code in (js, java, py):
        call = next(i for i in code if i.operation is IROp.CALL)
        assert call.arg1 == "@print"
        assert len(call.params) == 1
        assert is_builtin(call.arg1)


def test_call_arguments_left_to_right():
    code = lower("function f(a, b) { return a; }\nf(1, 2);")
    call = next(i for i in code if i.operation is IROp.CALL)
    assert call.arg1 == "f"
    loads = [i.result for i in code if i.operation is IROp.LOAD_CONST]
    assert list(call.params) == loads


def test_function_bracketing():
    code = lower("function f(a) { return a + 1; }\nf(2);")
    start = code[0]
    assert start.operation is IROp.FUNC_START
    assert start.arg1 == "f"
    assert start.params == ("a",)
    assert start.types == ("int",)
    assert IROp.FUNC_END in ops(code)


def test_member_and_index_stores():
    code = lower("let xs = [1, 2];\nxs[0] = 5;\nlet o = new Foo();\no.name = 1;\nfunction Foo() {}")
    assert IROp.ARRAY_CREATE in ops(code)
    assert IROp.ARRAY_SET in ops(code)
    assert IROp.MEMBER_SET in ops(code)
    assert IROp.NEW in ops(code)


def test_integer_division_in_c():
    code = lower("int a = 7;\nint b = a / 2;", "c")
    assert IROp.INT_DIV in ops(code)
    assert IROp.DIV not in ops(code)
    js = lower("let a = 7;\nlet b = a / 2;")
    assert IROp.DIV in ops(js)


def test_try_catch_markers():
    code = lower("try { f(); } catch (e) { g(); } finally { h(); }\nfunction f() {}\nfunction g() {}\nfunction h() {}")
    markers = [i.operation for i in code if i.operation in (IROp.TRY, IROp.CATCH, IROp.FINALLY, IROp.LABEL)]
    assert markers == [IROp.TRY, IROp.CATCH, IROp.FINALLY, IROp.LABEL]
    catch = next(i for i in code if i.operation is IROp.CATCH)
    assert catch.arg1 == "e"


def test_counters_are_per_run():
    first = lower("let x = 1 + 2;")
    second = lower("let x = 1 + 2;")
    assert first == second
    assert all(is_temp(i.result) for i in first if i.operation is IROp.LOAD_CONST)


def test_source_names_never_collide_with_temporaries():
    code = lower("let t0 = 1;\nlet x = t0 + 1;")
    assert code[0].arg1 == "t0_"


def test_format_ir():
    text = format_ir(lower("let x = 1;"))
    assert text.splitlines() == ["    declare x : int", "    t0 = 1", "    x = t0"]


def test_every_operation_has_a_text_form():
    for op in IROp:
        assert str(Instruction(op, "a", "b", "r"))


def test_shadowed_declaration_gets_its_own_name():
    code = lower("let x = 1;\nif (x > 0) { let x = 2; x = x + 1; }\nx = 5;")
    declared = [i.arg1 for i in code if i.operation is IROp.DECLARE]
    assert declared == ["x", "x_1"]
    assert code[-1].result == "x"
    assert any(i.operation is IROp.ADD and i.arg1 == "x_1" for i in code)


def test_python_remainder_is_floored():
    code = lower("a = -7\nb = 3\nc = a % b\n", "python")
    assert ops(code).count(IROp.MOD) == 2
    assert IROp.ADD in ops(code)
    literal = lower("c = 7 % 3\n", "python")
    assert ops(literal).count(IROp.MOD) == 1


def test_python_floor_division_is_floored():
    code = lower("a = -7\nb = 2\nc = a // b\n", "python")
    assert ops(code).count(IROp.INT_DIV) == 1
    assert ops(code).count(IROp.MOD) == 2
    assert IROp.SUB in ops(code)


def test_python_string_formatting_is_not_floored():
    code = lower('s = "%d" % 3\n', "python")
    assert ops(code).count(IROp.MOD) == 1
