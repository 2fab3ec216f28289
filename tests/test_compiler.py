"""Tests for the compile facade: conversion pairs, results and failures."""

import logging

import pytest

import crosscompiler
from crosscompiler import CompilerContext, Language, compile, normalize_language, supported_conversions
from crosscompiler.compiler import is_supported, lexer

HELLO = {
    "c": '#include <stdio.h>\nint main() {\n    printf("Hello\\n");\n    return 0;\n}\n',
    "java": 'public class Main {\n    public static void main(String[] args) {\n'
            '        System.out.println("Hello");\n    }\n}\n',
    "python": 'print("Hello")\n',
    "javascript": 'console.log("Hello");\n',
}

DECLARE_AND_PRINT = {
    "c": "int main() {\n    int x = 1;\n    printf(\"%d\\n\", x);\n    return 0;\n}\n",
    "java": "public class Main {\n    public static void main(String[] args) {\n"
            "        int x = 1;\n        System.out.println(x);\n    }\n}\n",
    "python": "x = 1\nprint(x)\n",
    "javascript": "let x = 1;\nconsole.log(x);\n",
}

PRINTED = {
    "c": "printf(\"%d\\n\", x);",
    "java": "System.out.println(x);",
    "python": "print(x)",
    "javascript": "console.log(x);",
}

PAIRS = [(a, b) for a in HELLO for b in HELLO if a != b]

LOOP = "for (let i = 0; i < 3; i = i + 1) { console.log(i); }"


def test_twelve_pairs_are_supported():
    assert len(supported_conversions()) == 12
    assert ("javascript", "python") in supported_conversions()
    assert not is_supported("python", "python")


@pytest.mark.parametrize("src, dst", PAIRS)
def test_every_pair_translates_hello(src, dst):
    result = compile(HELLO[src], src, dst)
    assert result.success, result.error
    assert "Hello" in result.target_code
    assert result.error is None


@pytest.mark.parametrize("src, dst", PAIRS)
def test_every_pair_translates_a_variable(src, dst):
    result = compile(DECLARE_AND_PRINT[src], src, dst)
    assert result.success, result.error
    assert PRINTED[dst] in result.target_code


@pytest.mark.parametrize("src, dst", [
    ("python", "python"),
    ("c", "rust"),
    ("cobol", "java"),
])
def test_unsupported_pairs(src, dst):
    result = compile("x = 1", src, dst)
    assert not result.success
    assert result.error == f"Unsupported conversion: {src} to {dst}"
    assert result.errors == (result.error,)


def test_unsupported_pair_fails_before_lexing(monkeypatch):
    def refuse(*args, **kwargs):
        raise AssertionError("lexer should not run")

    monkeypatch.setattr(lexer, "CrossLexer", refuse)
    result = compile("int x = 1;", "c", "c")
    assert result.error == "Unsupported conversion: c to c"


@pytest.mark.parametrize("name, expected", [
    ("js", Language.JAVASCRIPT),
    ("JavaScript", Language.JAVASCRIPT),
    ("python-like", Language.PYTHON),
    ("c-like", Language.C),
    (" java ", Language.JAVA),
    ("go", None),
    (None, None),
])
def test_language_aliases(name, expected):
    assert normalize_language(name) is expected


def test_aliases_reach_the_same_generator():
    assert compile(LOOP, "js", "python-like").target_code == compile(LOOP, "javascript", "python").target_code


def test_success_result_carries_every_stage():
    result = compile(LOOP, "javascript", "c")
    assert result.success
    assert result.tokens[0].value == "for"
    assert result.ast is not None
    assert result.intermediate_code
    assert result.optimized_code
    assert result.symbol_table.names() == ["i"]
    assert "for (int i = 0; i < 3; i++)" in result.target_code
    assert result.warnings == ()


def test_success_dict():
    data = compile("let x = 1;", "javascript", "python").to_dict()
    assert data["success"] is True
    assert data["target_code"] == "x = 1\n"
    assert data["tokens"][0] == {"type": "KEYWORD", "value": "let", "line": 1, "column": 1}
    assert data["ast"]["type"] == "Program"
    assert data["intermediate_code"] == ["declare x : int", "t0 = 1", "x = t0"]
    assert data["symbol_table"][0]["name"] == "x"
    assert data["warnings"] == []


def test_syntax_error_result():
    result = compile("let = 5;", "javascript", "python")
    assert not result.success
    assert result.error.startswith("SyntaxError at line 1")
    assert result.to_dict() == {"success": False, "error": result.error, "errors": [result.error]}


def test_semantic_errors_are_all_reported():
    result = compile("console.log(a);\nconsole.log(b);", "javascript", "java")
    assert not result.success
    assert result.error.startswith("Semantic errors: Undefined variable 'a'")
    assert len(result.errors) == 2
    assert "Undefined variable 'b'" in result.errors[1]
    assert result.target_code == ""


def test_lexical_anomalies_become_warnings():
    result = compile("let x = 1; @", "javascript", "python")
    assert result.success
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("Unrecognized character '@'")


def test_generation_gaps_become_warnings(caplog):
    with caplog.at_level(logging.WARNING, logger="crosscompiler"):
        result = compile("name = input()\nprint(name)\n", "python", "javascript")
    assert result.success
    assert result.warnings == ("javascript: no translation for builtin input",)
    assert "no translation for builtin input" in caplog.text


def test_optimization_can_be_disabled():
    plain = compile("let x = 2 + 3;", "javascript", "python", CompilerContext(optimize=False))
    assert plain.optimized_code == plain.intermediate_code
    folded = compile("let x = 2 + 3;", "javascript", "python")
    assert len(folded.optimized_code) < len(folded.intermediate_code)
    assert folded.target_code == "x = 5\n"


def test_indent_setting():
    result = compile(LOOP, "javascript", "python", CompilerContext(indent="\t"))
    assert "\n\tprint(i)" in result.target_code


def test_compile_is_deterministic():
    first, second = compile(LOOP, "javascript", "java"), compile(LOOP, "javascript", "java")
    assert first.to_dict() == second.to_dict()
    assert first.optimized_code == second.optimized_code


def test_package_exports():
    assert crosscompiler.compile_source is compile
    assert issubclass(crosscompiler.UnsupportedConversion, ValueError)
