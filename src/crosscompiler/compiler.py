from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from crosscompiler import codegen_c, codegen_java, codegen_js, codegen_python, ir, lexer, optimizer, parser, semantic
from crosscompiler.ast_nodes import Ast, ast_to_dict
from crosscompiler.ir import Instruction
from crosscompiler.lexer import Token
from crosscompiler.optimizer import DEFAULT_MAX_PASSES
from crosscompiler.parser import ParseError
from crosscompiler.symbols import SymbolTable

logger = logging.getLogger(__name__)


class Language(str, Enum):
    C = "c"
    JAVA = "java"
    PYTHON = "python"
    JAVASCRIPT = "javascript"


ALIASES: Dict[str, Language] = {
    "c": Language.C,
    "c-like": Language.C,
    "java": Language.JAVA,
    "java-like": Language.JAVA,
    "python": Language.PYTHON,
    "python-like": Language.PYTHON,
    "javascript": Language.JAVASCRIPT,
    "js": Language.JAVASCRIPT,
    "js-like": Language.JAVASCRIPT,
}

SUPPORTED_CONVERSIONS: FrozenSet[Tuple[Language, Language]] = frozenset(
    (src, dst) for src in Language for dst in Language if src is not dst
)

GENERATORS: Dict[Language, Callable[..., Tuple[str, List[str]]]] = {
    Language.C: codegen_c.generate,
    Language.JAVA: codegen_java.generate,
    Language.PYTHON: codegen_python.generate,
    Language.JAVASCRIPT: codegen_js.generate,
}


class UnsupportedConversion(ValueError):
    def __init__(self, from_language: str, to_language: str):
        super().__init__(f"Unsupported conversion: {from_language} to {to_language}")
        self.from_language = from_language
        self.to_language = to_language


def normalize_language(name: Any) -> Optional[Language]:
    """Map a language name or alias to a Language, or None if unknown."""
    if isinstance(name, Language):
        return name
    if not isinstance(name, str):
        return None
    return ALIASES.get(name.strip().lower())


def supported_conversions() -> List[Tuple[str, str]]:
    return sorted((src.value, dst.value) for src, dst in SUPPORTED_CONVERSIONS)


def is_supported(from_language: Any, to_language: Any) -> bool:
    pair = (normalize_language(from_language), normalize_language(to_language))
    return pair in SUPPORTED_CONVERSIONS


@dataclass(frozen=True)
class CompilerContext:
    """Per-call compiler settings."""

    optimize: bool = True
    max_optimizer_passes: int = DEFAULT_MAX_PASSES
    indent: str = "    "


DEFAULT_CONTEXT = CompilerContext()


def token_to_dict(tok: Token) -> Dict[str, Any]:
    return {"type": tok.kind.value, "value": tok.value, "line": tok.line, "column": tok.column}


@dataclass(frozen=True)
class CompileResult:
    """Outcome of one compile call.

    A successful result carries every intermediate artifact; a failed one
    carries only the error summary and the individual messages.
    """

    success: bool
    target_code: str = ""
    tokens: Tuple[Token, ...] = ()
    ast: Optional[Ast] = None
    intermediate_code: Tuple[Instruction, ...] = ()
    optimized_code: Tuple[Instruction, ...] = ()
    symbol_table: Optional[SymbolTable] = None
    warnings: Tuple[str, ...] = ()
    error: Optional[str] = None
    errors: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def failure(cls, error: str, errors: Optional[List[str]] = None) -> "CompileResult":
        return cls(success=False, error=error, errors=tuple(errors) if errors else (error,))

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error, "errors": list(self.errors)}
        return {
            "success": True,
            "target_code": self.target_code,
            "tokens": [token_to_dict(t) for t in self.tokens],
            "ast": ast_to_dict(self.ast.root) if self.ast is not None else None,
            "intermediate_code": [str(i) for i in self.intermediate_code],
            "optimized_code": [str(i) for i in self.optimized_code],
            "symbol_table": self.symbol_table.to_dict() if self.symbol_table is not None else [],
            "warnings": list(self.warnings),
        }


def compile(source: str, from_language: Any, to_language: Any,
            context: Optional[CompilerContext] = None) -> CompileResult:
    """Translate `source` written in `from_language` into `to_language`.

    Unsupported pairs fail before the lexer runs. Syntax errors and semantic
    errors produce a failed result; lexical anomalies and generation gaps
    are returned as warnings.
    """
    context = context or DEFAULT_CONTEXT
    src, dst = normalize_language(from_language), normalize_language(to_language)
    if (src, dst) not in SUPPORTED_CONVERSIONS:
        err = UnsupportedConversion(from_language, to_language)
        logger.debug("%s", err)
        return CompileResult.failure(str(err))

    warnings: List[str] = []

    scanner = lexer.CrossLexer(src.value)
    tokens = scanner.tokenize(source)
    warnings.extend(str(a) for a in scanner.anomalies)
    logger.debug("lexed %d tokens (%s)", len(tokens), src.value)

    try:
        tree = parser.parse(tokens, src.value)
    except ParseError as e:
        logger.debug("parse failed: %s", e)
        return CompileResult.failure(str(e))
    logger.debug("parsed %d AST nodes", len(tree))

    analysis = semantic.analyze(tree)
    if not analysis.ok:
        logger.debug("semantic analysis reported %d errors", len(analysis.errors))
        return CompileResult.failure("Semantic errors: " + "; ".join(analysis.errors), analysis.errors)

    code = ir.generate(tree, analysis)
    optimized = optimizer.optimize(code, context.max_optimizer_passes) if context.optimize else list(code)

    target_code, gaps = GENERATORS[dst](optimized, context.indent)
    for gap in gaps:
        logger.warning("%s", gap)
    warnings.extend(gaps)
    logger.debug("%s -> %s: %d IR instructions, %d after optimization, %d warnings",
                 src.value, dst.value, len(code), len(optimized), len(warnings))

    return CompileResult(
        success=True,
        target_code=target_code,
        tokens=tuple(tokens),
        ast=tree,
        intermediate_code=tuple(code),
        optimized_code=tuple(optimized),
        symbol_table=analysis.symbol_table,
        warnings=tuple(warnings),
    )


compile_source = compile
