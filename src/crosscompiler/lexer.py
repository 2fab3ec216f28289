from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List

import ply.lex as lex

logger = logging.getLogger(__name__)


class TokenType(str, Enum):
    NUMBER = "NUMBER"
    STRING = "STRING"
    IDENTIFIER = "IDENTIFIER"
    KEYWORD = "KEYWORD"

    # Operator classes
    ARITHMETIC = "ARITHMETIC"
    COMPARISON = "COMPARISON"
    LOGICAL = "LOGICAL"
    UNARY = "UNARY"
    ASSIGNMENT = "ASSIGNMENT"

    # Punctuation
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACE = "LBRACE"
    RBRACE = "RBRACE"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    SEMICOLON = "SEMICOLON"
    COMMA = "COMMA"
    DOT = "DOT"
    COLON = "COLON"
    QUESTION = "QUESTION"

    COMMENT = "COMMENT"
    NEWLINE = "NEWLINE"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    kind: TokenType
    value: Any
    line: int
    column: int


@dataclass(frozen=True)
class LexicalAnomaly:
    char: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"Unrecognized character {self.char!r} at line {self.line}, column {self.column} was skipped"


KEYWORDS: Dict[str, FrozenSet[str]] = {
    "javascript": frozenset({
        "function", "var", "let", "const", "if", "else", "for", "while", "do",
        "switch", "case", "default", "break", "continue", "return", "try", "catch",
        "finally", "throw", "class", "extends", "import", "export", "from",
        "async", "await", "true", "false", "null", "undefined", "new", "this",
        "super", "static", "public", "private", "protected", "abstract", "interface",
    }),
    "c": frozenset({
        "auto", "break", "case", "char", "const", "continue", "default", "do",
        "double", "else", "enum", "extern", "float", "for", "goto", "if", "int",
        "long", "register", "return", "short", "signed", "sizeof", "static",
        "struct", "switch", "typedef", "union", "unsigned", "void", "volatile",
        "while", "bool", "true", "false", "NULL",
    }),
    "java": frozenset({
        "abstract", "boolean", "break", "byte", "case", "catch", "char", "class",
        "continue", "default", "do", "double", "else", "extends", "final",
        "finally", "float", "for", "if", "implements", "import", "instanceof",
        "int", "interface", "long", "new", "package", "private", "protected",
        "public", "return", "short", "static", "super", "switch", "this", "throw",
        "throws", "try", "void", "while", "true", "false", "null", "var",
    }),
    "python": frozenset({
        "False", "None", "True", "and", "as", "break", "class", "continue", "def",
        "del", "elif", "else", "except", "finally", "for", "from", "global", "if",
        "import", "in", "is", "lambda", "nonlocal", "not", "or", "pass", "raise",
        "return", "try", "while", "with", "yield",
    }),
}

OPERATOR_KINDS: Dict[str, TokenType] = {
    "===": TokenType.COMPARISON, "!==": TokenType.COMPARISON,
    "==": TokenType.COMPARISON, "!=": TokenType.COMPARISON,
    "<=": TokenType.COMPARISON, ">=": TokenType.COMPARISON,
    "<": TokenType.COMPARISON, ">": TokenType.COMPARISON,
    "&&": TokenType.LOGICAL, "||": TokenType.LOGICAL,
    "++": TokenType.UNARY, "--": TokenType.UNARY, "!": TokenType.UNARY,
    "=": TokenType.ASSIGNMENT, "=>": TokenType.ASSIGNMENT,
    "+=": TokenType.ASSIGNMENT, "-=": TokenType.ASSIGNMENT,
    "*=": TokenType.ASSIGNMENT, "/=": TokenType.ASSIGNMENT, "%=": TokenType.ASSIGNMENT,
    "+": TokenType.ARITHMETIC, "-": TokenType.ARITHMETIC,
    "*": TokenType.ARITHMETIC, "/": TokenType.ARITHMETIC, "%": TokenType.ARITHMETIC,
    "**": TokenType.ARITHMETIC, "//": TokenType.ARITHMETIC,
}

ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}

# Dialects where a '#' line is a comment (Python) or a preprocessor directive (C)
HASH_COMMENT_LANGUAGES = frozenset({"python", "c"})
POWER_LANGUAGES = frozenset({"python", "javascript"})

COMMENT_RE = r"//[^\n]*|/\*(?:[^*]|\*(?!/))*(?:\*/)?|\#[^\n]*"
STRING_RE = (
    r'"""[\s\S]*?(?:"""|\Z)'
    r"|'''[\s\S]*?(?:'''|\Z)"
    r'|"(?:[^"\\]|\\[\s\S]?)*"?'
    r"|'(?:[^'\\]|\\[\s\S]?)*'?"
    r"|`(?:[^`\\]|\\[\s\S]?)*`?"
)
OPERATOR_RE = r"===|!==|\*\*|//|==|!=|<=|>=|&&|\|\||\+\+|--|\+=|-=|\*=|/=|%=|=>|[-+*/%<>!=]"


def unescape(body: str, quote: str) -> str:
    """Decode the fixed escape set, stopping at the first unescaped quote."""
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\":
            i += 1
            if i >= len(body):
                break
            nxt = body[i]
            out.append(ESCAPES.get(nxt, nxt))
        elif body.startswith(quote, i):
            break
        else:
            out.append(ch)
        i += 1
    return "".join(out)


class CrossLexer:

    tokens = tuple(t.value for t in TokenType)

    # Ignored characters
    t_ignore = " \t\r\f\v"

    # Punctuation
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_LBRACE = r"\{"
    t_RBRACE = r"\}"
    t_LBRACKET = r"\["
    t_RBRACKET = r"\]"
    t_SEMICOLON = r";"
    t_COMMA = r","
    t_DOT = r"\."
    t_COLON = r":"
    t_QUESTION = r"\?"

    def __init__(self, language: str = "javascript"):
        self.language = language
        self.keywords = KEYWORDS.get(language, KEYWORDS["javascript"])
        self.lexer = None
        self.data = ""
        self.anomalies: List[LexicalAnomaly] = []

    # Comments, C preprocessor lines, and Python's '//' operator
    @lex.TOKEN(COMMENT_RE)
    def t_COMMENT(self, t):
        text = t.value
        if text.startswith("#"):
            if self.language not in HASH_COMMENT_LANGUAGES:
                self._anomaly("#", t.lexpos)
                t.lexer.lexpos = t.lexpos + 1
                return None
            t.value = text[1:]
            return t
        if self.language == "python":
            # Python has no C-style comments: '//' is floor division
            op = "//" if text.startswith("//") else "/"
            t.lexer.lexpos = t.lexpos + len(op)
            t.type = TokenType.ARITHMETIC.value
            t.value = op
            return t
        t.lexer.lineno += text.count("\n")
        if text.startswith("//"):
            t.value = text[2:]
        else:
            t.value = text[2:-2] if text.endswith("*/") and len(text) >= 4 else text[2:]
        return t

    def t_NEWLINE(self, t):
        r"\n"
        t.lexer.lineno += 1
        return t

    def t_NUMBER(self, t):
        r"\d+(?:\.\d*)?"
        t.value = float(t.value) if "." in t.value else int(t.value)
        return t

    @lex.TOKEN(STRING_RE)
    def t_STRING(self, t):
        text = t.value
        if text[:3] in ('"""', "'''"):
            if self.language != "python":
                # Outside Python a tripled quote is an empty string followed by another string
                t.lexer.lexpos = t.lexpos + 2
                t.value = ""
                return t
            t.lexer.lineno += text.count("\n")
            body = text[3:]
            t.value = body[:-3] if body.endswith(text[:3]) else body
            return t
        t.lexer.lineno += text.count("\n")
        t.value = unescape(text[1:], text[0])
        return t

    def t_IDENTIFIER(self, t):
        r"[A-Za-z_$][A-Za-z0-9_$]*"
        if t.value in self.keywords:
            t.type = TokenType.KEYWORD.value
        return t

    @lex.TOKEN(OPERATOR_RE)
    def t_OPERATOR(self, t):
        if t.value == "**" and self.language not in POWER_LANGUAGES:
            t.lexer.lexpos = t.lexpos + 1
            t.value = "*"
        t.type = OPERATOR_KINDS[t.value].value
        return t

    def t_error(self, t):
        self._anomaly(t.value[0], t.lexpos)
        t.lexer.skip(1)

    def _column(self, lexpos: int) -> int:
        line_start = self.data.rfind("\n", 0, lexpos) + 1
        return lexpos - line_start + 1

    def _anomaly(self, char: str, lexpos: int):
        anomaly = LexicalAnomaly(char, self.data.count("\n", 0, lexpos) + 1, self._column(lexpos))
        logger.warning("%s", anomaly)
        self.anomalies.append(anomaly)

    def build(self, **kwargs):
        """Build the ply lexer for this dialect"""
        self.lexer = lex.lex(module=self, **kwargs)
        return self.lexer

    def tokenize(self, data: str) -> List[Token]:
        if not self.lexer:
            self.build()

        self.data = data
        self.anomalies = []
        self.lexer.lineno = 1
        self.lexer.input(data)
        tokens: List[Token] = []

        while True:
            tok = self.lexer.token()
            if not tok:
                break
            tokens.append(Token(TokenType(tok.type), tok.value, tok.lineno, self._column(tok.lexpos)))

        tokens.append(Token(TokenType.EOF, None, self.lexer.lineno, self._column(len(data))))
        return tokens


def tokenize(source: str, language: str = "javascript") -> List[Token]:
    return CrossLexer(language).tokenize(source)


def print_tokens(tokens: List[Token]):
    if not tokens:
        print("No tokens found!")
        return

    print(f"{'Line':<6}| {'Column':<7}| {'Token':<12}| Value")
    print("-" * 60)

    for tok in tokens:
        value = str(tok.value)
        # Limit length for display
        if len(value) > 40:
            value = value[:37] + "..."
        # Display escape characters
        value = repr(value)[1:-1] if "\n" in value or "\t" in value else value

        print(f"{tok.line:<6}| {tok.column:<7}| {tok.kind.value:<12}| {value}")
