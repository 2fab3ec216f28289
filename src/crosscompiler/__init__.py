from crosscompiler.compiler import (
    DEFAULT_CONTEXT,
    CompilerContext,
    CompileResult,
    Language,
    UnsupportedConversion,
    compile,
    compile_source,
    normalize_language,
    supported_conversions,
)
from crosscompiler.parser import ParseError

__all__ = [
    "DEFAULT_CONTEXT",
    "CompilerContext",
    "CompileResult",
    "Language",
    "ParseError",
    "UnsupportedConversion",
    "compile",
    "compile_source",
    "normalize_language",
    "supported_conversions",
]
