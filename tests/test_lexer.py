"""Tests for the ply-based lexer."""

import pytest

from crosscompiler.lexer import CrossLexer, TokenType, print_tokens, tokenize


def kinds_of(tokens):
    return [t.kind for t in tokens if t.kind is not TokenType.NEWLINE]


def test_declaration_tokens():
    tokens = tokenize("let x = 42;")
    assert kinds_of(tokens) == [
        TokenType.KEYWORD, TokenType.IDENTIFIER, TokenType.ASSIGNMENT,
        TokenType.NUMBER, TokenType.SEMICOLON, TokenType.EOF,
    ]
    assert tokens[1].value == "x"
    assert tokens[3].value == 42


def test_numbers_keep_int_and_float():
    tokens = tokenize("1 2.5 3.")
    values = [t.value for t in tokens if t.kind is TokenType.NUMBER]
    assert values == [1, 2.5, 3.0]
    assert isinstance(values[0], int)
    assert isinstance(values[1], float)


def test_string_escapes():
    tokens = tokenize(r'"a\tb\n\"q\"" ' + r"'it\'s' `x\zy`")
    strings = [t.value for t in tokens if t.kind is TokenType.STRING]
    assert strings == ['a\tb\n"q"', "it's", "xzy"]


def test_unterminated_string_runs_to_end():
    tokens = tokenize('"abc')
    assert tokens[0].kind is TokenType.STRING
    assert tokens[0].value == "abc"
    assert tokens[-1].kind is TokenType.EOF


def test_comments():
    tokens = tokenize("// line\n/* block */ x")
    comments = [t.value for t in tokens if t.kind is TokenType.COMMENT]
    assert comments == [" line", " block "]


def test_unterminated_block_comment():
    tokens = tokenize("x /* never closed")
    assert [t.kind for t in tokens] == [TokenType.IDENTIFIER, TokenType.COMMENT, TokenType.EOF]


def test_longest_operator_match():
    tokens = tokenize("a === b !== c <= d && e || f++ += =>")
    ops = [(t.kind, t.value) for t in tokens if t.kind not in (TokenType.IDENTIFIER, TokenType.EOF)]
    assert ops == [
        (TokenType.COMPARISON, "==="),
        (TokenType.COMPARISON, "!=="),
        (TokenType.COMPARISON, "<="),
        (TokenType.LOGICAL, "&&"),
        (TokenType.LOGICAL, "||"),
        (TokenType.UNARY, "++"),
        (TokenType.ASSIGNMENT, "+="),
        (TokenType.ASSIGNMENT, "=>"),
    ]


def test_python_dialect():
    tokens = tokenize("x = 7 // 2 ** 3  # note", "python")
    ops = [t.value for t in tokens if t.kind is TokenType.ARITHMETIC]
    assert ops == ["//", "**"]
    assert [t.value for t in tokens if t.kind is TokenType.COMMENT] == [" note"]


def test_c_preprocessor_line_is_comment():
    tokens = tokenize("#include <stdio.h>\nint x;", "c")
    assert tokens[0].kind is TokenType.COMMENT
    assert tokens[0].value == "include <stdio.h>"
    keywords = [t.value for t in tokens if t.kind is TokenType.KEYWORD]
    assert keywords == ["int"]


def test_dialect_keywords():
    assert tokenize("def", "python")[0].kind is TokenType.KEYWORD
    assert tokenize("def", "javascript")[0].kind is TokenType.IDENTIFIER
    assert tokenize("String", "java")[0].kind is TokenType.IDENTIFIER


def test_newlines_and_positions():
    tokens = tokenize("a\n  b")
    assert [t.kind for t in tokens] == [TokenType.IDENTIFIER, TokenType.NEWLINE, TokenType.IDENTIFIER, TokenType.EOF]
    b = tokens[2]
    assert (b.line, b.column) == (2, 3)


@pytest.mark.parametrize("source", ["x @ y", "a ~ b"])
def test_unknown_characters_are_skipped_and_recorded(source):
    lexer = CrossLexer("javascript")
    tokens = lexer.tokenize(source)
    assert [t.value for t in tokens if t.kind is TokenType.IDENTIFIER] == [source[0], source[-1]]
    assert len(lexer.anomalies) == 1
    assert lexer.anomalies[0].char == source[2]
    assert "skipped" in str(lexer.anomalies[0])


def test_hash_outside_python_and_c_is_anomaly():
    lexer = CrossLexer("java")
    lexer.tokenize("int a; # b")
    assert [a.char for a in lexer.anomalies] == ["#"]


def test_lexer_is_reusable():
    lexer = CrossLexer("javascript")
    first = lexer.tokenize("a ~")
    second = lexer.tokenize("b")
    assert first[0].value == "a"
    assert second[0].value == "b"
    assert lexer.anomalies == []


def test_print_tokens(capsys):
    print_tokens(tokenize("x = 1"))
    out = capsys.readouterr().out
    assert "IDENTIFIER" in out
    assert "NUMBER" in out
