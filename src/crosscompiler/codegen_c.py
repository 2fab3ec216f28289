from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set, Tuple

from crosscompiler import kinds
from crosscompiler.codegen_common import (
    PREC_ATOM, PREC_MULTIPLICATIVE, PREC_POSTFIX, PREC_TERNARY, PREC_UNARY, PRECEDENCE,
    ArrayLit, Binary, BraceGenerator, Const, Expr, FunctionDef, Goto, Label, New,
    Program, Return, Throw, Try, declared_names, place_declarations, quote, referenced_names,
    rename_calls, strip_declarations,
)
from crosscompiler.ir import COMPARISON_OPS, IROp

INCLUDE_ORDER = ("stdio.h", "stdlib.h", "string.h", "math.h", "stdbool.h", "time.h")

C_TYPES = {
    kinds.INT: "int",
    kinds.DOUBLE: "double",
    kinds.STRING: "char *",
    kinds.BOOLEAN: "bool",
    kinds.VOID: "void",
    kinds.OBJECT: "void *",
    kinds.UNKNOWN: "int",
}

# name -> (includes, definition)
HELPERS: Dict[str, Tuple[Tuple[str, ...], str]] = {
    "int_to_str": (("stdio.h", "stdlib.h"), """\
static char *int_to_str(long value) {
    char *buffer = malloc(24);
    snprintf(buffer, 24, "%ld", value);
    return buffer;
}"""),
    "double_to_str": (("stdio.h", "stdlib.h"), """\
static char *double_to_str(double value) {
    char *buffer = malloc(32);
    snprintf(buffer, 32, "%g", value);
    return buffer;
}"""),
    "str_concat": (("stdlib.h", "string.h"), """\
static char *str_concat(const char *a, const char *b) {
    char *buffer = malloc(strlen(a) + strlen(b) + 1);
    strcpy(buffer, a);
    strcat(buffer, b);
    return buffer;
}"""),
}

USER_MAIN = "program_main"


def typed(ctype: str, name: str) -> str:
    return ctype + name if ctype.endswith("*") else f"{ctype} {name}"


class CGenerator(BraceGenerator):
    language = "c"
    null = "NULL"

    def __init__(self, indent: str = "    "):
        super().__init__(indent)
        self.includes: Set[str] = {"stdio.h"}
        self.helpers: List[str] = []
        self.in_entry = False

    def use(self, *headers: str):
        self.includes.update(headers)

    def helper(self, name: str) -> str:
        if name not in self.helpers:
            self.helpers.append(name)
            self.use(*HELPERS[name][0])
        return name

    # ---------------- types ----------------
    def ctype(self, kind: str) -> str:
        if kinds.is_array(kind):
            return typed(self.ctype(kinds.element_of(kind)), "*")
        if kind == kinds.BOOLEAN:
            self.use("stdbool.h")
        return C_TYPES.get(kind, "int")

    def declaration(self, name: str, kind: str, value: Optional[Expr]) -> str:
        if kinds.is_array(kind) and isinstance(value, ArrayLit):
            element = self.ctype(kinds.element_of(kind))
            items = ", ".join(self.expr(i) for i in value.items)
            return f"{typed(element, name)}[] = {{{items}}}"
        text = typed(self.ctype(kind), name)
        if value is not None:
            text += f" = {self.expr(value)}"
        return text

    # ---------------- expressions ----------------
    def const(self, value) -> str:
        if isinstance(value, bool):
            self.use("stdbool.h")
            return "true" if value else "false"
        if value is None:
            self.use("stdlib.h")
            return "NULL"
        return super().const(value)

    def binary(self, e: Binary) -> Tuple[str, int]:
        op, lk, rk = e.op, e.left.kind, e.right.kind
        if op is IROp.POW:
            self.use("math.h")
            text = f"pow({self.expr(e.left)}, {self.expr(e.right)})"
            return (f"(int) {text}", PREC_UNARY) if e.kind == kinds.INT else (text, PREC_POSTFIX)
        if op in COMPARISON_OPS and lk == kinds.STRING and rk == kinds.STRING:
            self.use("string.h")
            symbol = self.OPERATORS[op]
            return f"strcmp({self.expr(e.left)}, {self.expr(e.right)}) {symbol} 0", PRECEDENCE[op]
        if op is IROp.ADD and e.kind == kinds.STRING:
            self.helper("str_concat")
            return f"str_concat({self.to_string(e.left)}, {self.to_string(e.right)})", PREC_POSTFIX
        if op is IROp.DIV and lk == kinds.INT and rk == kinds.INT:
            return (f"(double) {self.expr(e.left, PREC_UNARY)} / {self.expr(e.right, PREC_MULTIPLICATIVE + 1)}",
                    PREC_MULTIPLICATIVE)
        if op is IROp.MOD and e.kind == kinds.DOUBLE:
            self.use("math.h")
            return f"fmod({self.expr(e.left)}, {self.expr(e.right)})", PREC_POSTFIX
        if op is IROp.INT_DIV and e.kind != kinds.INT:
            self.use("math.h")
            return f"floor({self.expr(e.left, PREC_MULTIPLICATIVE)} / {self.expr(e.right, PREC_MULTIPLICATIVE + 1)})", PREC_POSTFIX
        return super().binary(e)

    def to_string(self, e: Expr) -> str:
        if e.kind == kinds.STRING:
            return self.expr(e)
        if e.kind == kinds.DOUBLE:
            return f"{self.helper('double_to_str')}({self.expr(e)})"
        if e.kind == kinds.BOOLEAN:
            return f'({self.expr(e, PREC_TERNARY + 1)} ? "true" : "false")'
        return f"{self.helper('int_to_str')}({self.expr(e)})"

    def array_literal(self, e: ArrayLit) -> str:
        element = self.ctype(kinds.element_of(e.kind))
        return f"({element}[]){{{', '.join(self.expr(i) for i in e.items)}}}"

    def new(self, e: New) -> Tuple[str, int]:
        if e.callee == "@Error" and e.args:
            return self.expr(e.args[0]), PREC_ATOM
        return self.gap_expr("object construction")

    # ---------------- printf formats ----------------
    def format_piece(self, e: Expr, pieces: List[str], values: List[str]):
        if isinstance(e, Const) and isinstance(e.value, str):
            pieces.append(e.value.replace("%", "%%"))
            return
        if isinstance(e, Binary) and e.op is IROp.ADD and e.kind == kinds.STRING:
            self.format_piece(e.left, pieces, values)
            self.format_piece(e.right, pieces, values)
            return
        if e.kind == kinds.DOUBLE:
            pieces.append("%g")
            values.append(self.expr(e))
        elif e.kind == kinds.STRING:
            pieces.append("%s")
            values.append(self.expr(e))
        elif e.kind == kinds.BOOLEAN:
            pieces.append("%s")
            values.append(f'{self.expr(e, PREC_TERNARY + 1)} ? "true" : "false"')
        else:
            pieces.append("%d")
            values.append(self.expr(e))

    def printf(self, args: Sequence[Expr], newline: bool, stream: Optional[str] = None) -> str:
        pieces: List[str] = []
        values: List[str] = []
        for i, a in enumerate(args):
            if i:
                pieces.append(" ")
            self.format_piece(a, pieces, values)
        fmt = quote("".join(pieces) + ("\n" if newline else ""))
        if stream:
            return f"fprintf({', '.join([stream, fmt] + values)})"
        return f"printf({', '.join([fmt] + values)})"

    # ---------------- builtins ----------------
    def builtin_print(self, args, call):
        return self.printf(args, newline=True), PREC_POSTFIX

    def builtin_write(self, args, call):
        return self.printf(args, newline=False), PREC_POSTFIX

    def builtin_printf(self, args, call):
        return self.call_text("printf", args)

    def builtin_sqrt(self, args, call):
        self.use("math.h")
        return self.call_text("sqrt", args)

    def builtin_pow(self, args, call):
        self.use("math.h")
        return self.call_text("pow", args)

    def builtin_abs(self, args, call):
        if args and args[0].kind == kinds.INT:
            self.use("stdlib.h")
            return self.call_text("abs", args)
        self.use("math.h")
        return self.call_text("fabs", args)

    def rounding(self, fn: str, args):
        self.use("math.h")
        text, _ = self.call_text(fn, args)
        return f"(int) {text}", PREC_UNARY

    def builtin_floor(self, args, call):
        return self.rounding("floor", args)

    def builtin_ceil(self, args, call):
        return self.rounding("ceil", args)

    def builtin_round(self, args, call):
        return self.rounding("round", args)

    def extreme(self, args, symbol: str):
        if len(args) != 2:
            return self.gap_expr(f"{len(args)}-argument max/min")
        a, b = (self.expr(x, PREC_TERNARY + 1) for x in args)
        return f"({a} {symbol} {b} ? {a} : {b})", PREC_ATOM

    def builtin_max(self, args, call):
        return self.extreme(args, ">")

    def builtin_min(self, args, call):
        return self.extreme(args, "<")

    def builtin_random(self, args, call):
        self.use("stdlib.h")
        return "((double) rand() / RAND_MAX)", PREC_ATOM

    def builtin_randint(self, args, call):
        self.use("stdlib.h")
        low, high = (self.expr(x, PREC_MULTIPLICATIVE + 1) for x in args[:2])
        return f"({low} + rand() % ({high} - {low} + 1))", PREC_ATOM

    def builtin_now(self, args, call):
        self.use("time.h")
        return "((long) time(NULL) * 1000)", PREC_ATOM

    def builtin_str(self, args, call):
        return self.to_string(args[0]), PREC_POSTFIX

    def builtin_int(self, args, call):
        if args[0].kind == kinds.STRING:
            self.use("stdlib.h")
            return self.call_text("atoi", args)
        return f"(int) {self.expr(args[0], PREC_UNARY)}", PREC_UNARY

    def builtin_float(self, args, call):
        if args[0].kind == kinds.STRING:
            self.use("stdlib.h")
            return self.call_text("atof", args)
        return f"(double) {self.expr(args[0], PREC_UNARY)}", PREC_UNARY

    def builtin_len(self, args, call):
        target = args[0]
        if target.kind == kinds.STRING:
            self.use("string.h")
            return f"(int) strlen({self.expr(target)})", PREC_UNARY
        name = self.expr(target, PREC_POSTFIX)
        return f"(int) (sizeof({name}) / sizeof({name}[0]))", PREC_UNARY

    def builtin_exit(self, args, call):
        self.use("stdlib.h")
        return self.call_text("exit", args or [Const(0, kinds.INT)])

    # ---------------- statements ----------------
    def visit_Return(self, s: Return):
        if self.in_entry:
            self.emit("return 0;" if s.value is None else f"return {self.expr(s.value)};")
            return
        super().visit_Return(s)

    def visit_Throw(self, s: Throw):
        value = s.value
        if isinstance(value, New) and value.args:
            args = list(value.args)
        elif value is not None and not isinstance(value, New):
            args = [value]
        else:
            args = [Const("error", kinds.STRING)]
        self.use("stdlib.h")
        self.emit(self.printf(args, newline=True, stream="stderr") + ";")
        self.emit("exit(1);")

    def visit_Try(self, s: Try):
        with self.block(""):
            self.statements(s.body)
        if s.handler is not None:
            self.emit(self.gap("catch block"))
        if s.finalizer is not None:
            with self.block(""):
                self.statements(s.finalizer)

    def visit_Label(self, s: Label):
        self.emit(f"{s.name}:;")

    def visit_Goto(self, s: Goto):
        self.emit(f"goto {s.name};")

    # ---------------- program ----------------
    def signature(self, fn: FunctionDef) -> str:
        params = ", ".join(typed(self.ctype(k), p) for p, k in zip(fn.params, fn.param_kinds)) or "void"
        ret = "void" if fn.return_kind == kinds.VOID else self.ctype(fn.return_kind)
        return f"{typed(ret, fn.name)}({params})"

    def function(self, fn: FunctionDef, global_names: Set[str]):
        body = place_declarations(fn.body, set(fn.params) | global_names)
        with self.block(self.signature(fn)):
            self.statements(body)

    def entry(self, body, global_names: Set[str]):
        body = place_declarations(body, global_names)
        self.in_entry = True
        with self.block("int main(void)"):
            self.statements(body)
            if not body or not isinstance(body[-1], Return):
                self.emit("return 0;")
        self.in_entry = False

    def render_program(self, program: Program) -> str:
        functions = list(program.functions)
        body = program.body
        user_main = self.find_main(program)
        if user_main is not None:
            if body:
                functions = [FunctionDef(USER_MAIN if f is user_main else f.name, f.params, f.param_kinds,
                                         f.return_kind, rename_calls(f.body, "main", USER_MAIN))
                             for f in functions]
                body = rename_calls(body, "main", USER_MAIN)
            else:
                functions = [f for f in functions if f is not user_main]
                body = user_main.body

        used_in_functions: Set[str] = set()
        for fn in functions:
            used_in_functions |= referenced_names(fn.body) - set(fn.params)
        global_names = [n for n in sorted(declared_names(body)) if n in used_in_functions]
        global_set = set(global_names)
        body = strip_declarations(body, global_set)

        function_parts = [self.capture(self.function, fn, global_set) for fn in functions]
        entry_part = self.capture(self.entry, body, global_set)
        globals_part = [
            typed(self.ctype(program.global_kinds.get(n, kinds.UNKNOWN)), n) + ";" for n in global_names
        ]
        prototypes = [self.signature(fn) + ";" for fn in functions]

        sections: List[List[str]] = [[f"#include <{h}>" for h in INCLUDE_ORDER if h in self.includes]]
        for name in self.helpers:
            sections.append(HELPERS[name][1].split("\n"))
        if globals_part:
            sections.append(globals_part)
        if prototypes:
            sections.append(prototypes)
        sections.extend(function_parts)
        sections.append(entry_part)
        return "\n\n".join("\n".join(part) for part in sections) + "\n"


def generate(instructions, indent: str = "    ") -> Tuple[str, List[str]]:
    gen = CGenerator(indent)
    code = gen.generate(instructions)
    return code, gen.warnings
