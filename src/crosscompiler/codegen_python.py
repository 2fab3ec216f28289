from __future__ import annotations

from typing import List, Optional, Set, Tuple

from crosscompiler import kinds
from crosscompiler.codegen_common import (
    PREC_ADDITIVE, PREC_MULTIPLICATIVE, PREC_NOT_WORD, PREC_POSTFIX, PRECEDENCE,
    Assign, BaseGenerator, Binary, Break, Call, Const, Continue, Declare, DoWhile, Expr, ExprStmt, For,
    FunctionDef, Goto, If, Index, IndexAssign, Label, MemberAssign, Name, New, Program, Return, Stmt,
    Throw, Try, Unary, While, assigned_names, declared_names, names_in, referenced_names, subexpressions,
    with_update,
)
from crosscompiler.ir import COMPARISON_OPS, IROp


def is_zero(e: Expr) -> bool:
    return isinstance(e, Const) and not isinstance(e.value, bool) and e.value == 0


def is_non_negative(e: Expr) -> bool:
    return isinstance(e, Const) and isinstance(e.value, (int, float)) and not isinstance(e.value, bool) \
        and e.value >= 0


class PythonGenerator(BaseGenerator):
    language = "python"
    comment = "#"
    null = "None"

    OPERATORS = {
        IROp.ADD: "+", IROp.SUB: "-", IROp.MUL: "*", IROp.DIV: "/", IROp.MOD: "%", IROp.INT_DIV: "//",
        IROp.POW: "**",
        IROp.EQ: "==", IROp.NE: "!=", IROp.STRICT_EQ: "==", IROp.STRICT_NE: "!=",
        IROp.LT: "<", IROp.GT: ">", IROp.LE: "<=", IROp.GE: ">=",
        IROp.AND: "and", IROp.OR: "or", IROp.NOT: "not ", IROp.NEG: "-", IROp.POS: "+",
    }

    def __init__(self, indent: str = "    "):
        super().__init__(indent)
        self.imports: Set[str] = set()
        self.module_names: Set[str] = set()
        # Statements still to run after the one being rendered, innermost block last
        self.following: List[List[Stmt]] = []

    def statements(self, stmts):
        stmts = list(stmts)
        for index, s in enumerate(stmts):
            self.following.append(stmts[index + 1:])
            try:
                self.statement(s)
            finally:
                self.following.pop()

    def read_later(self, name: str) -> bool:
        return any(name in referenced_names(rest) for rest in self.following)

    def suite(self, stmts: List[Stmt]):
        with self.indented():
            if stmts:
                self.statements(stmts)
            else:
                self.emit("pass")

    # ---------------- expressions ----------------
    def const(self, value) -> str:
        if isinstance(value, bool):
            return "True" if value else "False"
        if value is None:
            return "None"
        return super().const(value)

    def binary(self, e: Binary) -> Tuple[str, int]:
        op = e.op
        if op in COMPARISON_OPS:
            # Operands bind tighter than any comparison so chains never form
            prec = PRECEDENCE[op]
            left_text = self.expr(e.left, PREC_ADDITIVE)
            if op in (IROp.EQ, IROp.NE, IROp.STRICT_EQ, IROp.STRICT_NE) and is_zero(e.right) \
                    and isinstance(e.left, Binary) and e.left.op is IROp.MOD:
                # Whether a remainder is zero does not depend on its sign
                left_text = self.plain_mod(e.left)
            text = f"{left_text} {self.OPERATORS[op]} {self.expr(e.right, PREC_ADDITIVE)}"
            return text, prec
        if op is IROp.MOD:
            if is_non_negative(e.left) and is_non_negative(e.right):
                return super().binary(e)
            # The remainder takes the sign of the dividend
            self.imports.add("math")
            text = f"math.fmod({self.expr(e.left)}, {self.expr(e.right)})"
            return (f"int({text})" if e.kind == kinds.INT else text), PREC_POSTFIX
        if op is IROp.ADD and e.kind == kinds.STRING:
            left, right = e.left, e.right
            left_text = self.expr(left, PREC_ADDITIVE) if left.kind == kinds.STRING else self.str_call(left)
            right_text = self.expr(right, PREC_ADDITIVE + 1) if right.kind == kinds.STRING else self.str_call(right)
            return f"{left_text} + {right_text}", PREC_ADDITIVE
        if op is IROp.INT_DIV:
            # Integer division truncates toward zero
            return f"int({self.expr(e.left, PREC_MULTIPLICATIVE)} / {self.expr(e.right, PREC_MULTIPLICATIVE + 1)})", PREC_POSTFIX
        if op is IROp.AND or op is IROp.OR:
            prec = PRECEDENCE[op]
            return f"{self.expr(e.left, prec)} {self.OPERATORS[op]} {self.expr(e.right, prec + 1)}", prec
        return super().binary(e)

    def plain_mod(self, e: Binary) -> str:
        return super().binary(e)[0]

    def unary(self, e: Unary) -> Tuple[str, int]:
        if e.op is IROp.NOT:
            return f"not {self.expr(e.operand, PREC_NOT_WORD)}", PREC_NOT_WORD
        return super().unary(e)

    def str_call(self, e: Expr) -> str:
        return f"str({self.expr(e)})"

    def new(self, e: New) -> Tuple[str, int]:
        if e.callee == "@Error":
            return self.call_text("Exception", e.args)
        callee = e.callee[1:] if isinstance(e.callee, str) else self.expr(e.callee, PREC_POSTFIX)
        return self.call_text(callee, e.args)

    # ---------------- builtins ----------------
    def builtin_print(self, args, call):
        return self.call_text("print", args)

    def builtin_write(self, args, call):
        text = ", ".join([self.expr(a) for a in args] + ['end=""'])
        return f"print({text})", PREC_POSTFIX

    def builtin_printf(self, args, call):
        if not args:
            return 'print(end="")', PREC_POSTFIX
        fmt = self.expr(args[0], PREC_MULTIPLICATIVE)
        rest = args[1:]
        if not rest:
            return f'print({fmt}, end="")', PREC_POSTFIX
        values = self.expr(rest[0], PREC_MULTIPLICATIVE + 1) if len(rest) == 1 \
            else "(" + ", ".join(self.expr(a) for a in rest) + ")"
        return f'print({fmt} % {values}, end="")', PREC_POSTFIX

    def module_call(self, module: str, fn: str, args):
        self.imports.add(module)
        return self.call_text(f"{module}.{fn}", args)

    def builtin_sqrt(self, args, call):
        return self.module_call("math", "sqrt", args)

    def builtin_pow(self, args, call):
        return self.module_call("math", "pow", args)

    def builtin_abs(self, args, call):
        return self.call_text("abs", args)

    def builtin_floor(self, args, call):
        return self.module_call("math", "floor", args)

    def builtin_ceil(self, args, call):
        return self.module_call("math", "ceil", args)

    def builtin_round(self, args, call):
        return self.call_text("round", args)

    def builtin_max(self, args, call):
        return self.call_text("max", args)

    def builtin_min(self, args, call):
        return self.call_text("min", args)

    def builtin_random(self, args, call):
        return self.module_call("random", "random", args)

    def builtin_randint(self, args, call):
        return self.module_call("random", "randint", args)

    def builtin_now(self, args, call):
        self.imports.add("time")
        return "int(time.time() * 1000)", PREC_POSTFIX

    def builtin_str(self, args, call):
        return self.call_text("str", args)

    def builtin_int(self, args, call):
        return self.call_text("int", args)

    def builtin_float(self, args, call):
        return self.call_text("float", args)

    def builtin_len(self, args, call):
        return self.call_text("len", args)

    def builtin_input(self, args, call):
        return self.call_text("input", args)

    def builtin_exit(self, args, call):
        return self.module_call("sys", "exit", args)

    def method(self, name: str, args) -> Tuple[str, int]:
        receiver, rest = args[0], args[1:]
        return self.call_text(f"{self.expr(receiver, PREC_POSTFIX)}.{name}", rest)

    def builtin_push(self, args, call):
        return self.method("append", args)

    def builtin_upper(self, args, call):
        return self.method("upper", args)

    def builtin_lower(self, args, call):
        return self.method("lower", args)

    # ---------------- statements ----------------
    def visit_Assign(self, s: Assign):
        v = s.value
        if isinstance(v, Binary) and isinstance(v.left, Name) and v.left.name == s.target \
                and v.op in (IROp.ADD, IROp.SUB, IROp.MUL) \
                and (v.kind != kinds.STRING or v.right.kind == kinds.STRING):
            self.emit(f"{s.target} {self.OPERATORS[v.op]}= {self.expr(v.right)}")
            return
        self.emit(f"{s.target} = {self.expr(v)}")

    def visit_Declare(self, s: Declare):
        self.emit(f"{s.name} = None")

    def visit_ExprStmt(self, s: ExprStmt):
        self.emit(self.expr(s.expr))

    def visit_MemberAssign(self, s: MemberAssign):
        self.emit(f"{self.expr(s.obj, PREC_POSTFIX)}.{s.prop} = {self.expr(s.value)}")

    def visit_IndexAssign(self, s: IndexAssign):
        self.emit(f"{self.expr(s.obj, PREC_POSTFIX)}[{self.expr(s.index)}] = {self.expr(s.value)}")

    def visit_If(self, s: If, keyword: str = "if"):
        self.emit(f"{keyword} {self.expr(s.cond)}:")
        self.suite(s.then)
        if len(s.orelse) == 1 and isinstance(s.orelse[0], If):
            self.visit_If(s.orelse[0], "elif")
        elif s.orelse:
            self.emit("else:")
            self.suite(s.orelse)

    def visit_While(self, s: While):
        self.emit(f"while {self.expr(s.cond)}:")
        self.suite(s.body)

    def visit_DoWhile(self, s: DoWhile):
        # The exit test also runs before every `continue`
        guard = If(Unary(IROp.NOT, s.cond, kinds.BOOLEAN), [Break()])
        self.emit("while True:")
        with self.indented():
            self.statements(with_update(s.body, [guard]) + [guard])

    def range_header(self, s: For) -> Optional[str]:
        """`for v in range(...)` when the loop is a plain counting loop."""
        if len(s.init) != 1 or len(s.update) != 1:
            return None
        init, update, cond = s.init[0], s.update[0], s.cond
        if not isinstance(init, Assign) or not isinstance(update, Assign) or update.target != init.target:
            return None
        var = init.target
        if not init.declare and self.read_later(var):
            # `range` leaves the variable one step short of the bound
            return None
        step_expr = update.value
        if not (isinstance(step_expr, Binary) and step_expr.op in (IROp.ADD, IROp.SUB)
                and isinstance(step_expr.left, Name) and step_expr.left.name == var
                and isinstance(step_expr.right, Const) and isinstance(step_expr.right.value, int)
                and not isinstance(step_expr.right.value, bool) and step_expr.right.value != 0):
            return None
        step = step_expr.right.value if step_expr.op is IROp.ADD else -step_expr.right.value
        if not (isinstance(cond, Binary) and isinstance(cond.left, Name) and cond.left.name == var):
            return None
        bound = cond.right
        if step > 0 and cond.op not in (IROp.LT, IROp.LE) or step < 0 and cond.op not in (IROp.GT, IROp.GE):
            return None
        if var in names_in(bound) or var in names_in(init.value):
            return None
        written = assigned_names(s.body) | declared_names(s.body)
        if var in written or names_in(bound) & written:
            return None
        if any(isinstance(x, Call) and x.callee != "@len" or isinstance(x, New) for x in subexpressions(bound)):
            return None

        if cond.op in (IROp.LE, IROp.GE):
            delta = 1 if cond.op is IROp.LE else -1
            if isinstance(bound, Const) and isinstance(bound.value, int) and not isinstance(bound.value, bool):
                bound = Const(bound.value + delta, kinds.INT)
            else:
                bound = Binary(IROp.ADD if delta > 0 else IROp.SUB, bound, Const(1, kinds.INT), kinds.INT)
        start = init.value
        stop = self.expr(bound)
        if step == 1 and isinstance(start, Const) and start.value == 0 and not isinstance(start.value, bool):
            args = stop
        elif step == 1:
            args = f"{self.expr(start)}, {stop}"
        else:
            args = f"{self.expr(start)}, {stop}, {step}"
        return f"for {var} in range({args}):"

    def element_loop(self, s: For) -> Optional[Tuple[str, List[Stmt]]]:
        """An index loop that only reads seq[i] becomes `for x in seq`."""
        if not s.body or len(s.init) != 1 or not isinstance(s.init[0], Assign):
            return None
        var, start = s.init[0].target, s.init[0].value
        first = s.body[0]
        cond = s.cond
        if not (var.startswith("_i") and isinstance(start, Const) and start.value == 0
                and isinstance(first, Assign) and isinstance(first.value, Index)
                and isinstance(first.value.index, Name) and first.value.index.name == var
                and isinstance(first.value.obj, Name)):
            return None
        seq = first.value.obj.name
        length = cond.right if isinstance(cond, Binary) else None
        if not (isinstance(length, Call) and cond.op is IROp.LT and length.callee == "@len"
                and len(length.args) == 1 and isinstance(length.args[0], Name) and length.args[0].name == seq):
            return None
        rest = s.body[1:]
        if var in referenced_names(rest) or self.range_header(s) is None:
            return None
        return f"for {first.target} in {seq}:", rest

    def visit_For(self, s: For):
        element = self.element_loop(s)
        if element is not None:
            header, body = element
            self.emit(header)
            self.suite(body)
            return
        header = self.range_header(s)
        if header is not None:
            self.emit(header)
            self.suite(s.body)
            return
        self.statements(s.init)
        self.emit(f"while {self.expr(s.cond)}:")
        with self.indented():
            self.statements(with_update(s.body, s.update))
            self.statements(s.update)

    def visit_Return(self, s: Return):
        self.emit("return" if s.value is None else f"return {self.expr(s.value)}")

    def visit_Break(self, s: Break):
        self.emit("break")

    def visit_Continue(self, s: Continue):
        self.emit("continue")

    def visit_Throw(self, s: Throw):
        value = s.value
        if value is None:
            self.emit("raise Exception()")
        elif isinstance(value, New):
            self.emit(f"raise {self.expr(value)}")
        else:
            self.emit(f"raise Exception({self.expr(value)})")

    def visit_Try(self, s: Try):
        self.emit("try:")
        self.suite(s.body)
        if s.handler is not None:
            self.emit(f"except Exception as {s.param}:" if s.param else "except Exception:")
            self.suite(s.handler)
        if s.finalizer is not None:
            self.emit("finally:")
            self.suite(s.finalizer)

    def visit_Label(self, s: Label):
        self.emit(f"# label {s.name}")

    def visit_Goto(self, s: Goto):
        self.emit(f"# goto {s.name}")
        self.gap("goto")

    # ---------------- program ----------------
    def function(self, fn: FunctionDef):
        self.emit(f"def {fn.name}({', '.join(fn.params)}):")
        local = set(fn.params) | declared_names(fn.body)
        shared = sorted((assigned_names(fn.body) & self.module_names) - local)
        with self.indented():
            if shared:
                self.emit(f"global {', '.join(shared)}")
            if fn.body:
                self.statements(fn.body)
            elif not shared:
                self.emit("pass")

    def render_program(self, program: Program) -> str:
        self.module_names = declared_names(program.body) | set(program.global_kinds)
        parts = [self.capture(self.function, fn) for fn in program.functions]
        body = self.capture(self.statements, program.body)
        user_main = self.find_main(program)
        if user_main is not None and not program.body:
            call = "main(sys.argv[1:])" if user_main.params else "main()"
            if user_main.params:
                self.imports.add("sys")
            body = ['if __name__ == "__main__":', self.indent_unit + call]

        sections = []
        if self.imports:
            sections.append("\n".join(f"import {m}" for m in sorted(self.imports)))
        sections.extend("\n".join(part) for part in parts)
        if body:
            sections.append("\n".join(body))
        return "\n\n\n".join(sections) + "\n"


def generate(instructions, indent: str = "    ") -> Tuple[str, List[str]]:
    gen = PythonGenerator(indent)
    code = gen.generate(instructions)
    return code, gen.warnings
