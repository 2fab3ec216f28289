from __future__ import annotations

from typing import List, Optional, Set, Tuple

from crosscompiler import kinds
from crosscompiler.codegen_common import (
    PREC_ADDITIVE, PREC_ATOM, PREC_MULTIPLICATIVE, PREC_POSTFIX, PREC_UNARY, PRECEDENCE,
    ArrayLit, Binary, BraceGenerator, Expr, FunctionDef, New, Program, Return, Throw, Try,
    declared_names, place_declarations, referenced_names, rename_calls, strip_declarations,
)
from crosscompiler.ir import IROp

JAVA_TYPES = {
    kinds.INT: "int",
    kinds.DOUBLE: "double",
    kinds.STRING: "String",
    kinds.BOOLEAN: "boolean",
    kinds.VOID: "void",
    kinds.OBJECT: "Object",
    kinds.UNKNOWN: "int",
}

DEFAULT_VALUES = {
    kinds.INT: "0",
    kinds.DOUBLE: "0.0",
    kinds.BOOLEAN: "false",
    kinds.UNKNOWN: "0",
}

CLASS_NAME = "Main"
USER_MAIN = "program_main"


class JavaGenerator(BraceGenerator):
    language = "java"

    def __init__(self, indent: str = "    "):
        super().__init__(indent)
        self.imports: Set[str] = set()
        self.in_entry = False

    def jtype(self, kind: str) -> str:
        if kinds.is_array(kind):
            return self.jtype(kinds.element_of(kind)) + "[]"
        return JAVA_TYPES.get(kind, "Object")

    def declaration(self, name: str, kind: str, value: Optional[Expr]) -> str:
        if kinds.is_array(kind) and isinstance(value, ArrayLit):
            items = ", ".join(self.expr(i) for i in value.items)
            return f"{self.jtype(kind)} {name} = {{{items}}}"
        init = self.expr(value) if value is not None else DEFAULT_VALUES.get(kind, "null")
        return f"{self.jtype(kind)} {name} = {init}"

    # ---------------- expressions ----------------
    def const(self, value) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if value is None:
            return "null"
        return super().const(value)

    def binary(self, e: Binary) -> Tuple[str, int]:
        op, lk, rk = e.op, e.left.kind, e.right.kind
        if op is IROp.POW:
            text = f"Math.pow({self.expr(e.left)}, {self.expr(e.right)})"
            return (f"(int) {text}", PREC_UNARY) if e.kind == kinds.INT else (text, PREC_POSTFIX)
        if lk == kinds.STRING and rk == kinds.STRING:
            left, right = self.expr(e.left, PREC_POSTFIX), self.expr(e.right)
            if op in (IROp.EQ, IROp.STRICT_EQ):
                return f"{left}.equals({right})", PREC_POSTFIX
            if op in (IROp.NE, IROp.STRICT_NE):
                return f"!{left}.equals({right})", PREC_UNARY
            if op in (IROp.LT, IROp.GT, IROp.LE, IROp.GE):
                return f"{left}.compareTo({right}) {self.OPERATORS[op]} 0", PRECEDENCE[op]
        if op is IROp.DIV and lk == kinds.INT and rk == kinds.INT:
            return (f"(double) {self.expr(e.left, PREC_UNARY)} / {self.expr(e.right, PREC_MULTIPLICATIVE + 1)}",
                    PREC_MULTIPLICATIVE)
        if op is IROp.INT_DIV and e.kind != kinds.INT:
            return f"Math.floor({self.expr(e.left)} / {self.expr(e.right, PREC_MULTIPLICATIVE + 1)})", PREC_POSTFIX
        return super().binary(e)

    def array_literal(self, e: ArrayLit) -> str:
        items = ", ".join(self.expr(i) for i in e.items)
        return f"new {self.jtype(e.kind)}{{{items}}}"

    def new(self, e: New) -> Tuple[str, int]:
        if e.callee == "@Error":
            return self.call_text("new RuntimeException", e.args)
        return super().new(e)

    def joined(self, args) -> str:
        if len(args) == 1:
            return self.expr(args[0])
        return ' + " " + '.join(self.expr(a, PREC_ADDITIVE + 1) for a in args)

    # ---------------- builtins ----------------
    def builtin_print(self, args, call):
        return f"System.out.println({self.joined(args) if args else ''})", PREC_POSTFIX

    def builtin_write(self, args, call):
        text = self.joined(args) if args else '""'
        return f"System.out.print({text})", PREC_POSTFIX

    def builtin_printf(self, args, call):
        return self.call_text("System.out.printf", args)

    def builtin_sqrt(self, args, call):
        return self.call_text("Math.sqrt", args)

    def builtin_pow(self, args, call):
        return self.call_text("Math.pow", args)

    def builtin_abs(self, args, call):
        return self.call_text("Math.abs", args)

    def rounding(self, fn: str, args):
        text, _ = self.call_text(fn, args)
        return f"(int) {text}", PREC_UNARY

    def builtin_floor(self, args, call):
        return self.rounding("Math.floor", args)

    def builtin_ceil(self, args, call):
        return self.rounding("Math.ceil", args)

    def builtin_round(self, args, call):
        return self.rounding("Math.round", args)

    def builtin_max(self, args, call):
        return self.call_text("Math.max", args)

    def builtin_min(self, args, call):
        return self.call_text("Math.min", args)

    def builtin_random(self, args, call):
        return "Math.random()", PREC_POSTFIX

    def builtin_randint(self, args, call):
        low, high = (self.expr(x, PREC_MULTIPLICATIVE + 1) for x in args[:2])
        return f"({low} + (int) (Math.random() * ({high} - {low} + 1)))", PREC_ATOM

    def builtin_now(self, args, call):
        return "(int) System.currentTimeMillis()", PREC_UNARY

    def builtin_str(self, args, call):
        return self.call_text("String.valueOf", args)

    def builtin_int(self, args, call):
        if args[0].kind == kinds.STRING:
            return self.call_text("Integer.parseInt", args)
        return f"(int) {self.expr(args[0], PREC_UNARY)}", PREC_UNARY

    def builtin_float(self, args, call):
        if args[0].kind == kinds.STRING:
            return self.call_text("Double.parseDouble", args)
        return f"(double) {self.expr(args[0], PREC_UNARY)}", PREC_UNARY

    def builtin_len(self, args, call):
        target = self.expr(args[0], PREC_POSTFIX)
        if args[0].kind == kinds.STRING:
            return f"{target}.length()", PREC_POSTFIX
        return f"{target}.length", PREC_POSTFIX

    def builtin_input(self, args, call):
        self.imports.add("java.util.Scanner")
        return "new Scanner(System.in).nextLine()", PREC_POSTFIX

    def builtin_exit(self, args, call):
        return f"System.exit({self.expr(args[0]) if args else '0'})", PREC_POSTFIX

    def builtin_upper(self, args, call):
        return f"{self.expr(args[0], PREC_POSTFIX)}.toUpperCase()", PREC_POSTFIX

    def builtin_lower(self, args, call):
        return f"{self.expr(args[0], PREC_POSTFIX)}.toLowerCase()", PREC_POSTFIX

    # ---------------- statements ----------------
    def visit_Return(self, s: Return):
        if self.in_entry:
            self.emit("return;")
            return
        super().visit_Return(s)

    def visit_Throw(self, s: Throw):
        value = s.value
        if value is None:
            self.emit('throw new RuntimeException();')
        elif isinstance(value, New):
            self.emit(f"throw {self.expr(value)};")
        else:
            self.emit(f"throw new RuntimeException(String.valueOf({self.expr(value)}));")

    def visit_Try(self, s: Try):
        self.emit("try {")
        with self.indented():
            self.statements(s.body)
        if s.handler is not None:
            self.emit(f"}} catch (Exception {s.param or 'e'}) {{")
            with self.indented():
                self.statements(s.handler)
        if s.finalizer is not None:
            self.emit("} finally {")
            with self.indented():
                self.statements(s.finalizer)
        self.emit("}")

    # ---------------- program ----------------
    def signature(self, fn: FunctionDef) -> str:
        params = ", ".join(f"{self.jtype(k)} {p}" for p, k in zip(fn.params, fn.param_kinds))
        ret = "void" if fn.return_kind == kinds.VOID else self.jtype(fn.return_kind)
        return f"public static {ret} {fn.name}({params})"

    def function(self, fn: FunctionDef, global_names: Set[str]):
        body = place_declarations(fn.body, set(fn.params) | global_names)
        with self.block(self.signature(fn)):
            self.statements(body)

    def entry(self, body, args_name: str, global_names: Set[str]):
        body = place_declarations(body, global_names | {args_name})
        self.in_entry = True
        with self.block(f"public static void main(String[] {args_name})"):
            self.statements(body)
        self.in_entry = False

    def render_program(self, program: Program) -> str:
        functions = list(program.functions)
        body = program.body
        args_name = "args"
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
                if len(user_main.params) == 1:
                    args_name = user_main.params[0]

        used_in_functions: Set[str] = set()
        for fn in functions:
            used_in_functions |= referenced_names(fn.body) - set(fn.params)
        global_names = [n for n in sorted(declared_names(body)) if n in used_in_functions]
        global_set = set(global_names)
        body = strip_declarations(body, global_set)

        parts: List[List[str]] = []
        fields = []
        for name in global_names:
            decl = self.declaration(name, program.global_kinds.get(name, kinds.UNKNOWN), None)
            fields.append(self.indent_unit + f"static {decl};")
        if fields:
            parts.append(fields)
        for fn in functions:
            parts.append([self.indent_unit + line if line else "" for line in self.capture(self.function, fn, global_set)])
        entry = self.capture(self.entry, body, args_name, global_set)
        parts.append([self.indent_unit + line if line else "" for line in entry])

        lines: List[str] = [f"import {name};" for name in sorted(self.imports)]
        if lines:
            lines.append("")
        lines.append(f"public class {CLASS_NAME} {{")
        lines.append("\n\n".join("\n".join(part) for part in parts))
        lines.append("}")
        return "\n".join(lines) + "\n"


def generate(instructions, indent: str = "    ") -> Tuple[str, List[str]]:
    gen = JavaGenerator(indent)
    code = gen.generate(instructions)
    return code, gen.warnings
