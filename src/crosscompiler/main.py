import logging
import sys

from crosscompiler import ir, optimizer, semantic
from crosscompiler.ast_nodes import format_ast
from crosscompiler.compiler import compile, normalize_language
from crosscompiler.lexer import CrossLexer, print_tokens
from crosscompiler.parser import ParseError, parse

MODES = ("lex", "parse", "check", "ir", "opt", "gen")


def read_input(argv):
    if len(argv) >= 1:
        with open(argv[0], "r", encoding="utf-8") as f:
            return f.read()
    return sys.stdin.read()


def usage():
    print("Usage:")
    print("  crosscompile [-v] <mode> <from> <to> [file]")
    print("  modes: " + ", ".join(MODES))
    print("  languages: c, java, python, javascript")
    print("  examples:")
    print("  crosscompile gen javascript python < input.js")
    print("  crosscompile ir c java program.c")


def report_errors(errors):
    for er in errors:
        print(f"Error - {er}")


def main(argv=None):
    args = list(sys.argv[1:] if argv is None else argv)
    verbose = "-v" in args
    args = [a for a in args if a != "-v"]
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    if len(args) < 3 or args[0].lower() not in MODES:
        usage()
        sys.exit(1)

    mode = args[0].lower()
    source_lang = normalize_language(args[1])
    if source_lang is None:
        print(f"Unknown language: {args[1]}")
        sys.exit(1)
    # gen reports an unknown target as an unsupported conversion
    if mode != "gen" and normalize_language(args[2]) is None:
        print(f"Unknown language: {args[2]}")
        sys.exit(1)
    data = read_input(args[3:])

    if mode == "gen":
        result = compile(data, args[1], args[2])
        if not result.success:
            report_errors(result.errors)
            print("\nCode generation skipped due to errors.")
            sys.exit(1)
        print(result.target_code, end="")
        return

    tokens = CrossLexer(source_lang.value).tokenize(data)
    if mode == "lex":
        print_tokens(tokens)
        return

    # parse
    try:
        tree = parse(tokens, source_lang.value)
    except ParseError as e:
        print(str(e))
        sys.exit(1)
    if mode == "parse":
        print(format_ast(tree.root))
        return

    # semantic
    analysis = semantic.analyze(tree)
    if mode == "check":
        if analysis.ok:
            print("OK: no syntax/semantic errors found.")
        else:
            report_errors(analysis.errors)
            sys.exit(1)
        return

    if not analysis.ok:
        report_errors(analysis.errors)
        print("\nIR generation skipped due to errors.")
        sys.exit(1)
    code = ir.generate(tree, analysis)
    if mode == "opt":
        code = optimizer.optimize(code)
    print(ir.format_ir(code))


if __name__ == "__main__":
    main()
