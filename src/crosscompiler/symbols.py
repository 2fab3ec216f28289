from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from crosscompiler import kinds


@dataclass
class Symbol:
    name: str
    type: str
    declaring_scope: int
    used: bool = False
    kind: str = kinds.UNKNOWN
    builtin: bool = False
    # Builtin namespaces: member name -> result kind, or a nested namespace
    members: Optional[Mapping[str, Any]] = None
    # Builtin callables: result kind of a call
    returns: str = kinds.UNKNOWN
    # Kind fixed by a source annotation; refinement leaves it alone
    annotated: bool = False
    params: List["Symbol"] = field(default_factory=list)
    line: int = 0
    column: int = 0
    # Set when the symbol shadows a visible one and needs its own name downstream
    ir_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "kind": self.kind,
            "scope": self.declaring_scope,
            "used": self.used,
            "line": self.line,
            "column": self.column,
        }


@dataclass
class Scope:
    level: int = 0
    parent: Optional["Scope"] = None
    symbols: Dict[str, Symbol] = field(default_factory=dict)

    def define(self, sym: Symbol) -> bool:
        if sym.name in self.symbols:
            return False
        self.symbols[sym.name] = sym
        return True

    def lookup(self, name: str) -> Optional[Symbol]:
        cur = self
        while cur:
            if name in cur.symbols:
                return cur.symbols[name]
            cur = cur.parent
        return None


@dataclass
class SymbolTable:
    """Every symbol declared during one analysis, in declaration order."""

    symbols: List[Symbol] = field(default_factory=list)

    def add(self, sym: Symbol):
        self.symbols.append(sym)

    def find(self, name: str) -> List[Symbol]:
        return [s for s in self.symbols if s.name == name]

    def names(self) -> List[str]:
        return [s.name for s in self.symbols]

    def to_dict(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.symbols]

    def __len__(self) -> int:
        return len(self.symbols)

    def __iter__(self):
        return iter(self.symbols)


def _namespace(**members) -> Mapping[str, Any]:
    return MappingProxyType(members)


def _builtin(name: str, type_name: str = "function", returns: str = kinds.UNKNOWN,
             members: Optional[Mapping[str, Any]] = None) -> Symbol:
    return Symbol(name, type_name, declaring_scope=0, used=False, kind=kinds.OBJECT,
                  builtin=True, members=members, returns=returns)


I, D, S, B, V, U = kinds.INT, kinds.DOUBLE, kinds.STRING, kinds.BOOLEAN, kinds.VOID, kinds.UNKNOWN

_PRINT_STREAM = _namespace(println=V, print=V, printf=V)

_BUILTIN_LIST = [
    # Output
    _builtin("console", "object", members=_namespace(log=V, error=V, warn=V, info=V, debug=V)),
    _builtin("print", returns=V),
    _builtin("printf", returns=V),
    _builtin("puts", returns=V),
    _builtin("System", "object", members=_namespace(
        out=_PRINT_STREAM, err=_PRINT_STREAM, exit=V, currentTimeMillis=I, nanoTime=I,
    )),
    # Math namespaces
    _builtin("Math", "object", members=_namespace(
        abs=D, floor=I, ceil=I, round=I, sqrt=D, pow=D, max=D, min=D, random=D,
        trunc=I, PI=D, E=D,
    )),
    _builtin("math", "object", members=_namespace(
        sqrt=D, floor=I, ceil=I, pow=D, fabs=D, pi=D, e=D,
    )),
    _builtin("random", "object", members=_namespace(random=D, randint=I)),
    _builtin("time", "object", members=_namespace(time=D)),
    # Date / JSON
    _builtin("Date", "object", members=_namespace(now=I)),
    _builtin("JSON", "object", members=_namespace(stringify=S, parse=U)),
    # Conversions and wrappers
    _builtin("String", "object", members=_namespace(valueOf=S, format=S, join=S)),
    _builtin("Integer", "object", members=_namespace(parseInt=I, valueOf=I, toString=S, MAX_VALUE=I, MIN_VALUE=I)),
    _builtin("Double", "object", members=_namespace(parseDouble=D, valueOf=D, toString=S)),
    _builtin("process", "object", members=_namespace(exit=V, argv=kinds.array_of(S))),
    _builtin("len", returns=I),
    _builtin("str", returns=S),
    _builtin("int", returns=I),
    _builtin("float", returns=D),
    _builtin("abs", returns=D),
    _builtin("max", returns=D),
    _builtin("min", returns=D),
    _builtin("round", returns=I),
    _builtin("range", returns=kinds.array_of(I)),
    _builtin("input", returns=S),
    _builtin("parseInt", returns=I),
    _builtin("parseFloat", returns=D),
    _builtin("Number", returns=D),
    _builtin("strlen", returns=I),
    _builtin("sqrt", returns=D),
    _builtin("pow", returns=D),
    _builtin("fabs", returns=D),
    _builtin("floor", returns=D),
    _builtin("ceil", returns=D),
    _builtin("atoi", returns=I),
    _builtin("atof", returns=D),
    _builtin("rand", returns=I),
    _builtin("exit", returns=V),
    # Exception constructors
    _builtin("Error"),
    _builtin("Exception"),
    _builtin("RuntimeException"),
    _builtin("IllegalArgumentException"),
    _builtin("ValueError"),
    _builtin("TypeError"),
    _builtin("__name__", "string"),
]

BUILTINS: Mapping[str, Symbol] = MappingProxyType({s.name: s for s in _BUILTIN_LIST})
