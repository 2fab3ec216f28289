from __future__ import annotations

from typing import List, Optional, Set, Tuple

from crosscompiler import kinds
from crosscompiler.codegen_common import (
    PREC_ATOM, PREC_MULTIPLICATIVE, PREC_POSTFIX, BraceGenerator, Binary, Expr, FunctionDef, New,
    Program, Throw, Try, declared_names, place_declarations,
)
from crosscompiler.ir import IROp


class JavaScriptGenerator(BraceGenerator):
    language = "javascript"

    OPERATORS = dict(BraceGenerator.OPERATORS)
    OPERATORS.update({
        IROp.EQ: "===", IROp.NE: "!==", IROp.STRICT_EQ: "===", IROp.STRICT_NE: "!==",
    })

    def __init__(self, indent: str = "    "):
        super().__init__(indent)
        self.requires: Set[str] = set()

    def declaration(self, name: str, kind: str, value: Optional[Expr]) -> str:
        if value is None:
            return f"let {name}"
        return f"let {name} = {self.expr(value)}"

    # ---------------- expressions ----------------
    def const(self, value) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if value is None:
            return "null"
        return super().const(value)

    def binary(self, e: Binary) -> Tuple[str, int]:
        if e.op is IROp.INT_DIV:
            return f"Math.trunc({self.expr(e.left, PREC_MULTIPLICATIVE)} / {self.expr(e.right, PREC_MULTIPLICATIVE + 1)})", PREC_POSTFIX
        return super().binary(e)

    def new(self, e: New) -> Tuple[str, int]:
        if e.callee == "@Error":
            return self.call_text("new Error", e.args)
        return super().new(e)

    # ---------------- builtins ----------------
    def builtin_print(self, args, call):
        return self.call_text("console.log", args)

    def builtin_write(self, args, call):
        if len(args) == 1:
            text = f"String({self.expr(args[0])})"
        else:
            text = "[" + ", ".join(self.expr(a) for a in args) + '].join(" ")'
        return f"process.stdout.write({text})", PREC_POSTFIX

    def builtin_printf(self, args, call):
        self.requires.add("util")
        text, _ = self.call_text("util.format", args)
        return f"process.stdout.write({text})", PREC_POSTFIX

    def math(self, fn: str, args):
        return self.call_text(f"Math.{fn}", args)

    def builtin_sqrt(self, args, call):
        return self.math("sqrt", args)

    def builtin_pow(self, args, call):
        return self.math("pow", args)

    def builtin_abs(self, args, call):
        return self.math("abs", args)

    def builtin_floor(self, args, call):
        return self.math("floor", args)

    def builtin_ceil(self, args, call):
        return self.math("ceil", args)

    def builtin_round(self, args, call):
        return self.math("round", args)

    def builtin_max(self, args, call):
        return self.math("max", args)

    def builtin_min(self, args, call):
        return self.math("min", args)

    def builtin_random(self, args, call):
        return "Math.random()", PREC_POSTFIX

    def builtin_randint(self, args, call):
        low, high = (self.expr(x, PREC_MULTIPLICATIVE + 1) for x in args[:2])
        return f"({low} + Math.floor(Math.random() * ({high} - {low} + 1)))", PREC_ATOM

    def builtin_now(self, args, call):
        return "Date.now()", PREC_POSTFIX

    def builtin_str(self, args, call):
        return self.call_text("String", args)

    def builtin_int(self, args, call):
        if args[0].kind == kinds.STRING:
            return self.call_text("parseInt", args)
        return self.math("trunc", args)

    def builtin_float(self, args, call):
        if args[0].kind == kinds.STRING:
            return self.call_text("parseFloat", args)
        return self.call_text("Number", args)

    def builtin_len(self, args, call):
        return f"{self.expr(args[0], PREC_POSTFIX)}.length", PREC_POSTFIX

    def builtin_exit(self, args, call):
        return self.call_text("process.exit", args)

    def method(self, name: str, args) -> Tuple[str, int]:
        return self.call_text(f"{self.expr(args[0], PREC_POSTFIX)}.{name}", args[1:])

    def builtin_push(self, args, call):
        return self.method("push", args)

    def builtin_upper(self, args, call):
        return self.method("toUpperCase", args)

    def builtin_lower(self, args, call):
        return self.method("toLowerCase", args)

    # ---------------- statements ----------------
    def visit_Throw(self, s: Throw):
        if s.value is None:
            self.emit("throw new Error();")
        else:
            self.emit(f"throw {self.expr(s.value)};")

    def visit_Try(self, s: Try):
        self.emit("try {")
        with self.indented():
            self.statements(s.body)
        if s.handler is not None:
            self.emit(f"}} catch ({s.param or 'e'}) {{")
            with self.indented():
                self.statements(s.handler)
        if s.finalizer is not None:
            self.emit("} finally {")
            with self.indented():
                self.statements(s.finalizer)
        self.emit("}")

    # ---------------- program ----------------
    def function(self, fn: FunctionDef, module_names: Set[str]):
        body = place_declarations(fn.body, set(fn.params) | module_names)
        with self.block(f"function {fn.name}({', '.join(fn.params)})"):
            self.statements(body)

    def render_program(self, program: Program) -> str:
        module_names = declared_names(program.body) | set(program.global_kinds)
        parts = [self.capture(self.function, fn, module_names) for fn in program.functions]
        body = self.capture(self.statements, place_declarations(program.body, set()))
        user_main = self.find_main(program)
        if user_main is not None and not program.body:
            body = ["main(process.argv.slice(2));" if user_main.params else "main();"]

        sections: List[str] = []
        if self.requires:
            sections.append("\n".join(f'const {m} = require("{m}");' for m in sorted(self.requires)))
        sections.extend("\n".join(part) for part in parts)
        if body:
            sections.append("\n".join(body))
        return "\n\n".join(sections) + "\n"


def generate(instructions, indent: str = "    ") -> Tuple[str, List[str]]:
    gen = JavaScriptGenerator(indent)
    code = gen.generate(instructions)
    return code, gen.warnings
