"""Tests for the crosscompile command line driver."""

import io

import pytest

from crosscompiler.main import main


@pytest.fixture
def program(tmp_path):
    def write(text, name="input.src"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)
    return write


def run(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def test_gen(program, capsys):
    main(["gen", "javascript", "python", program("console.log(1 + 2);\n")])
    assert capsys.readouterr().out == "print(3)\n"


def test_gen_failure(program, capsys):
    assert run(["gen", "javascript", "python", program("console.log(a);\n")]) == 1
    out = capsys.readouterr().out
    assert "Error - Undefined variable 'a'" in out
    assert "Code generation skipped due to errors." in out


def test_gen_unsupported_target(program, capsys):
    assert run(["gen", "javascript", "rust", program("let x = 1;\n")]) == 1
    assert "Error - Unsupported conversion: javascript to rust" in capsys.readouterr().out


def test_lex(program, capsys):
    main(["lex", "python", "c", program("x = 1\n")])
    out = capsys.readouterr().out
    assert "IDENTIFIER" in out


def test_parse(program, capsys):
    main(["parse", "c", "java", program("int x = 1;\n")])
    assert "Program" in capsys.readouterr().out


def test_parse_error(program, capsys):
    assert run(["parse", "javascript", "c", program("let = 5;\n")]) == 1
    assert capsys.readouterr().out.startswith("SyntaxError at line 1")


def test_check(program, capsys):
    main(["check", "javascript", "c", program("let x = 1;\n")])
    assert capsys.readouterr().out.strip() == "OK: no syntax/semantic errors found."
    assert run(["check", "javascript", "c", program("x;\n")]) == 1
    assert "Error - Undefined variable 'x'" in capsys.readouterr().out


def test_ir_and_opt(program, capsys):
    path = program("let x = 2 + 3;\n")
    main(["ir", "javascript", "c", path])
    raw = capsys.readouterr().out
    main(["opt", "javascript", "c", path])
    optimized = capsys.readouterr().out
    assert "t0 + t1" in raw
    assert "t2 = 5" in optimized
    assert len(optimized.splitlines()) < len(raw.splitlines())


def test_reads_stdin(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("print(\"hi\")\n"))
    main(["gen", "python", "javascript"])
    assert 'console.log("hi");' in capsys.readouterr().out


@pytest.mark.parametrize("argv", [[], ["gen", "c"], ["compile", "c", "java"]])
def test_usage(argv, capsys):
    assert run(argv) == 1
    assert "Usage:" in capsys.readouterr().out


def test_unknown_source_language(capsys):
    assert run(["lex", "cobol", "c"]) == 1
    assert "Unknown language: cobol" in capsys.readouterr().out


@pytest.mark.parametrize("mode", ["lex", "parse", "check", "ir", "opt"])
def test_unknown_target_language(mode, program, capsys):
    assert run([mode, "c", "rust", program("int x = 1;\n")]) == 1
    assert "Unknown language: rust" in capsys.readouterr().out
