"""Storage kinds: the value categories statically typed targets declare.

Kinds form a small lattice, UNKNOWN < INT < DOUBLE, with every other
distinct pair joining to OBJECT. Array kinds are spelled with a trailing
"[]" on their element kind.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

INT = "int"
DOUBLE = "double"
STRING = "string"
BOOLEAN = "boolean"
VOID = "void"
OBJECT = "object"
UNKNOWN = "unknown"

NUMERIC = frozenset({INT, DOUBLE})

ARITHMETIC_OPS = frozenset({"+", "-", "*", "/", "%", "**", "//"})
COMPARISON_OPS = frozenset({"==", "!=", "===", "!==", "<", ">", "<=", ">="})
LOGICAL_OPS = frozenset({"&&", "||", "!"})

DECLARED_KINDS = {
    "int": INT, "long": INT, "short": INT, "byte": INT, "Integer": INT, "Long": INT,
    "float": DOUBLE, "double": DOUBLE, "Double": DOUBLE, "Float": DOUBLE,
    "char": STRING, "char*": STRING, "String": STRING, "str": STRING, "Character": STRING,
    "bool": BOOLEAN, "boolean": BOOLEAN, "Boolean": BOOLEAN,
    "void": VOID,
    "list": UNKNOWN + "[]", "List": UNKNOWN + "[]",
}

# Semantic-type names reported in the symbol table
SEMANTIC_TYPES = {INT: "number", DOUBLE: "number", STRING: "string", BOOLEAN: "boolean"}


def array_of(kind: str) -> str:
    return kind + "[]"


def is_array(kind: Optional[str]) -> bool:
    return bool(kind) and kind.endswith("[]")


def element_of(kind: str) -> str:
    if is_array(kind):
        return kind[:-2]
    if kind == STRING:
        return STRING
    return UNKNOWN


def join(a: Optional[str], b: Optional[str]) -> str:
    a = a or UNKNOWN
    b = b or UNKNOWN
    if a == b:
        return a
    if a == UNKNOWN:
        return b
    if b == UNKNOWN:
        return a
    if a in NUMERIC and b in NUMERIC:
        return DOUBLE
    if is_array(a) and is_array(b):
        return array_of(join(element_of(a), element_of(b)))
    return OBJECT


def join_all(kinds: Iterable[Optional[str]]) -> str:
    out = UNKNOWN
    for k in kinds:
        out = join(out, k)
    return out


def from_declared(type_name: Optional[str]) -> str:
    """Map a source type annotation (C, Java or Python spelling) to a kind."""
    if not type_name:
        return UNKNOWN
    if type_name in DECLARED_KINDS:
        return DECLARED_KINDS[type_name]
    if type_name.endswith("[]"):
        return array_of(from_declared(type_name[:-2]))
    if type_name.endswith("*"):
        return array_of(from_declared(type_name[:-1]))
    return OBJECT


def of_value(value: Any) -> str:
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, int):
        return INT
    if isinstance(value, float):
        return DOUBLE
    if isinstance(value, str):
        return STRING
    return UNKNOWN


def binary_result(op: str, left: Optional[str], right: Optional[str]) -> str:
    if op in COMPARISON_OPS or op in LOGICAL_OPS:
        return BOOLEAN
    if op == "+" and STRING in (left, right):
        return STRING
    if op == "/":
        return DOUBLE
    if op == "//":
        return INT if left == INT and right == INT else DOUBLE
    if left in NUMERIC and right in NUMERIC:
        return INT if left == INT and right == INT else DOUBLE
    if left in NUMERIC or right in NUMERIC:
        return join(left if left in NUMERIC else None, right if right in NUMERIC else None)
    return UNKNOWN


def semantic_type(kind: str) -> str:
    if is_array(kind):
        return "object"
    return SEMANTIC_TYPES.get(kind, "unknown")
