from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from crosscompiler import kinds
from crosscompiler.ast_nodes import Ast, Node, NodeType
from crosscompiler.semantic import Analysis
from crosscompiler.symbols import SymbolTable

logger = logging.getLogger(__name__)


class IROp(str, Enum):
    LOAD_CONST = "LOAD_CONST"
    DECLARE = "DECLARE"
    ASSIGN = "ASSIGN"

    # Arithmetic
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    POW = "**"
    INT_DIV = "//"

    # Comparison
    EQ = "=="
    NE = "!="
    STRICT_EQ = "==="
    STRICT_NE = "!=="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="

    # Logical
    AND = "&&"
    OR = "||"
    NOT = "!"

    NEG = "neg"
    POS = "pos"

    MEMBER_GET = "MEMBER_GET"
    MEMBER_SET = "MEMBER_SET"
    ARRAY_GET = "ARRAY_GET"
    ARRAY_SET = "ARRAY_SET"
    ARRAY_CREATE = "ARRAY_CREATE"
    CALL = "CALL"
    NEW = "NEW"

    FUNC_START = "FUNC_START"
    FUNC_END = "FUNC_END"
    LABEL = "LABEL"
    GOTO = "GOTO"
    IF_FALSE = "IF_FALSE"
    IF_TRUE = "IF_TRUE"
    RETURN = "RETURN"

    # Loop markers
    FOR_INIT = "FOR_INIT"
    FOR_CONDITION = "FOR_CONDITION"
    FOR_UPDATE = "FOR_UPDATE"
    WHILE_START = "WHILE_START"
    WHILE_END = "WHILE_END"
    BREAK = "BREAK"
    CONTINUE = "CONTINUE"

    # Exception markers
    TRY = "TRY"
    CATCH = "CATCH"
    FINALLY = "FINALLY"
    THROW = "THROW"


ARITHMETIC_OPS = frozenset({IROp.ADD, IROp.SUB, IROp.MUL, IROp.DIV, IROp.MOD, IROp.POW, IROp.INT_DIV})
COMPARISON_OPS = frozenset({IROp.EQ, IROp.NE, IROp.STRICT_EQ, IROp.STRICT_NE, IROp.LT, IROp.GT, IROp.LE, IROp.GE})
BINARY_OPS = ARITHMETIC_OPS | COMPARISON_OPS | {IROp.AND, IROp.OR}
UNARY_OPS = frozenset({IROp.NEG, IROp.POS, IROp.NOT})
UNARY_SYMBOLS = {IROp.NEG: "-", IROp.POS: "+", IROp.NOT: "!"}

# Operations whose only effect is producing `result`
PURE_OPS = BINARY_OPS | UNARY_OPS | {
    IROp.LOAD_CONST, IROp.ASSIGN, IROp.MEMBER_GET, IROp.ARRAY_GET, IROp.ARRAY_CREATE,
}
JUMP_OPS = frozenset({IROp.GOTO, IROp.IF_FALSE, IROp.IF_TRUE, IROp.BREAK, IROp.CONTINUE})

TEMP_RE = re.compile(r"t\d+\Z")
LABEL_RE = re.compile(r"L\d+\Z")


def is_temp(operand: Any) -> bool:
    return isinstance(operand, str) and TEMP_RE.match(operand) is not None


def is_builtin(operand: Any) -> bool:
    return isinstance(operand, str) and operand.startswith("@")


@dataclass(frozen=True)
class Instruction:
    operation: IROp
    arg1: Any = None
    arg2: Any = None
    result: Any = None
    params: Tuple[Any, ...] = ()
    types: Tuple[str, ...] = ()

    def uses(self) -> List[str]:
        """Operands this instruction reads."""
        op = self.operation
        if op in BINARY_OPS or op is IROp.ARRAY_GET:
            found = [self.arg1, self.arg2]
        elif op in UNARY_OPS or op in (IROp.ASSIGN, IROp.MEMBER_GET, IROp.RETURN, IROp.THROW,
                                       IROp.IF_FALSE, IROp.IF_TRUE):
            found = [self.arg1]
        elif op is IROp.MEMBER_SET:
            found = [self.arg1, self.result]
        elif op is IROp.ARRAY_SET:
            found = [self.arg1, self.arg2, self.result]
        elif op is IROp.ARRAY_CREATE:
            found = list(self.params)
        elif op in (IROp.CALL, IROp.NEW):
            found = [self.arg1] + list(self.params)
        else:
            found = []
        return [o for o in found if isinstance(o, str)]

    def defines(self) -> Optional[str]:
        if self.operation in PURE_OPS or self.operation in (IROp.CALL, IROp.NEW):
            return self.result
        return None

    def replace_uses(self, mapping: Dict[str, str]) -> "Instruction":
        """Copy with read operands substituted; returns self when nothing changes."""
        op = self.operation
        sub = lambda o: mapping.get(o, o) if isinstance(o, str) else o
        arg1, arg2, result, params = self.arg1, self.arg2, self.result, self.params
        if op in BINARY_OPS or op is IROp.ARRAY_GET:
            arg1, arg2 = sub(arg1), sub(arg2)
        elif op in UNARY_OPS or op in (IROp.ASSIGN, IROp.MEMBER_GET, IROp.RETURN, IROp.THROW,
                                       IROp.IF_FALSE, IROp.IF_TRUE):
            arg1 = sub(arg1)
        elif op is IROp.MEMBER_SET:
            arg1, result = sub(arg1), sub(result)
        elif op is IROp.ARRAY_SET:
            arg1, arg2, result = sub(arg1), sub(arg2), sub(result)
        elif op is IROp.ARRAY_CREATE:
            params = tuple(sub(p) for p in params)
        elif op in (IROp.CALL, IROp.NEW):
            arg1 = sub(arg1)
            params = tuple(sub(p) for p in params)
        if (arg1, arg2, result, params) == (self.arg1, self.arg2, self.result, self.params):
            return self
        return Instruction(op, arg1, arg2, result, params, self.types)

    def __str__(self) -> str:
        op = self.operation
        a, b, r = self.arg1, self.arg2, self.result
        if op is IROp.LOAD_CONST:
            return f"{r} = {a!r}"
        if op is IROp.DECLARE:
            return f"declare {a} : {b}"
        if op is IROp.ASSIGN:
            return f"{r} = {a}"
        if op in BINARY_OPS:
            return f"{r} = {a} {op.value} {b}"
        if op in UNARY_OPS:
            return f"{r} = {UNARY_SYMBOLS[op]}{a}"
        if op is IROp.MEMBER_GET:
            return f"{r} = {a}.{b}"
        if op is IROp.MEMBER_SET:
            return f"{a}.{b} = {r}"
        if op is IROp.ARRAY_GET:
            return f"{r} = {a}[{b}]"
        if op is IROp.ARRAY_SET:
            return f"{a}[{b}] = {r}"
        if op is IROp.ARRAY_CREATE:
            return f"{r} = [{', '.join(map(str, self.params))}]"
        if op is IROp.CALL:
            return f"{r} = call {a}({', '.join(map(str, self.params))})"
        if op is IROp.NEW:
            return f"{r} = new {a}({', '.join(map(str, self.params))})"
        if op is IROp.FUNC_START:
            params = ", ".join(f"{p}: {t}" for p, t in zip(self.params, self.types))
            return f"func {a}({params}) -> {b}"
        if op is IROp.FUNC_END:
            return f"endfunc {a}"
        if op is IROp.LABEL:
            return f"{r}:"
        if op is IROp.GOTO:
            return f"goto {r}"
        if op is IROp.IF_FALSE:
            return f"ifFalse {a} goto {r}"
        if op is IROp.IF_TRUE:
            return f"ifTrue {a} goto {r}"
        if op is IROp.RETURN:
            return "return" if a is None else f"return {a}"
        if op is IROp.THROW:
            return f"throw {a}"
        if op in (IROp.BREAK, IROp.CONTINUE, IROp.TRY):
            return f"{op.value.lower()} {r}"
        if op is IROp.CATCH:
            return "catch" if a is None else f"catch {a}"
        return op.value.lower()


def format_ir(instructions: List[Instruction]) -> str:
    out = []
    for ins in instructions:
        indent = "" if ins.operation in (IROp.LABEL, IROp.FUNC_START, IROp.FUNC_END) else "    "
        out.append(indent + str(ins))
    return "\n".join(out)


# Builtin callables by dotted source name
CALL_BUILTINS: Dict[str, str] = {
    "console.log": "@print", "console.info": "@print", "console.debug": "@print",
    "console.error": "@print", "console.warn": "@print",
    "print": "@print", "puts": "@print",
    "System.out.println": "@print", "System.err.println": "@print",
    "System.out.print": "@write", "System.err.print": "@write",
    "printf": "@printf", "System.out.printf": "@printf", "System.err.printf": "@printf",
    "Math.sqrt": "@sqrt", "math.sqrt": "@sqrt", "sqrt": "@sqrt",
    "Math.pow": "@pow", "math.pow": "@pow", "pow": "@pow",
    "Math.abs": "@abs", "math.fabs": "@abs", "abs": "@abs", "fabs": "@abs",
    "Math.floor": "@floor", "math.floor": "@floor", "floor": "@floor",
    "Math.ceil": "@ceil", "math.ceil": "@ceil", "ceil": "@ceil",
    "Math.round": "@round", "round": "@round",
    "Math.max": "@max", "max": "@max",
    "Math.min": "@min", "min": "@min",
    "Math.random": "@random", "random.random": "@random",
    "random.randint": "@randint",
    "Date.now": "@now", "System.currentTimeMillis": "@now",
    "str": "@str", "String.valueOf": "@str", "Integer.toString": "@str", "Double.toString": "@str",
    "int": "@int", "parseInt": "@int", "Integer.parseInt": "@int", "Integer.valueOf": "@int",
    "atoi": "@int", "Math.trunc": "@int",
    "float": "@float", "parseFloat": "@float", "Number": "@float", "Double.parseDouble": "@float",
    "Double.valueOf": "@float", "atof": "@float",
    "len": "@len", "strlen": "@len",
    "input": "@input",
    "exit": "@exit", "System.exit": "@exit", "process.exit": "@exit",
}

EXCEPTION_BUILTINS = frozenset({
    "Error", "Exception", "RuntimeException", "IllegalArgumentException", "ValueError", "TypeError",
})

CONSTANT_BUILTINS: Dict[str, float] = {
    "Math.PI": math.pi, "math.pi": math.pi, "Math.E": math.e, "math.e": math.e,
}

# Methods on ordinary values with a portable meaning
METHOD_BUILTINS: Dict[str, str] = {
    "length": "@len", "size": "@len",
    "push": "@push", "append": "@push", "add": "@push",
    "toUpperCase": "@upper", "upper": "@upper",
    "toLowerCase": "@lower", "lower": "@lower",
}

PRINTF_CONVERSION_RE = re.compile(r"%[-+ 0#]*\d*(?:\.\d+)?(?:l|ll|h)?[dioufFeEgGxXcs]\Z")

STATEMENT_KINDS_WITHOUT_VALUE = (NodeType.EMPTY_STATEMENT,)


def non_negative_literal(node: Node) -> bool:
    value = node.value
    return node.node_type is NodeType.LITERAL and isinstance(value, (int, float)) \
        and not isinstance(value, bool) and value >= 0


class IRGenerator:
    def __init__(self, ast: Ast, analysis: Optional[Analysis] = None):
        self.ast = ast
        self.analysis = analysis or Analysis(SymbolTable(), [], ast.language)
        self.language = ast.language
        self.code: List[Instruction] = []
        self.temp_counter = 0
        self.label_counter = 0
        # (start label, end label) of enclosing loops
        self.loops: List[Tuple[str, str]] = []

    def new_temp(self) -> str:
        name = f"t{self.temp_counter}"
        self.temp_counter += 1
        return name

    def new_label(self) -> str:
        name = f"L{self.label_counter}"
        self.label_counter += 1
        return name

    def emit(self, op: IROp, arg1=None, arg2=None, result=None, params=(), types=()):
        self.code.append(Instruction(op, arg1, arg2, result, tuple(params), tuple(types)))

    @staticmethod
    def name(source_name: str) -> str:
        # Source identifiers spelled like temporaries or labels get a suffix
        if TEMP_RE.match(source_name) or LABEL_RE.match(source_name):
            return source_name + "_"
        return source_name

    def resolved_name(self, node: Node, source_name: str) -> str:
        sym = self.analysis.symbol_for(node)
        if sym is not None and sym.ir_name:
            return self.name(sym.ir_name)
        return self.name(source_name)

    def generate(self) -> List[Instruction]:
        if self.ast.root is not None:
            for st in self.ast.root.children:
                self.statement(st)
        logger.debug("IR generation: %d instructions, %d temporaries, %d labels",
                     len(self.code), self.temp_counter, self.label_counter)
        return self.code

    # ---------------- statements ----------------
    def statement(self, node: Node):
        nt = node.node_type

        if nt is NodeType.FUNCTION_DECLARATION:
            sym = self.analysis.symbol_for(node)
            names = [self.name(p) for p in node.attr("parameters", ())]
            if sym is not None:
                param_kinds = [p.kind for p in sym.params] or [kinds.UNKNOWN] * len(names)
                return_kind = sym.kind
            else:
                param_kinds = [kinds.from_declared(t) for t in node.attr("param_types", ())]
                return_kind = kinds.from_declared(node.attr("return_type"))
            self.emit(IROp.FUNC_START, self.name(node.value), return_kind, None, names, param_kinds)
            saved_loops = self.loops
            self.loops = []
            for st in node.children[0].children:
                self.statement(st)
            self.loops = saved_loops
            self.emit(IROp.FUNC_END, self.name(node.value))

        elif nt is NodeType.VARIABLE_DECLARATION:
            sym = self.analysis.symbol_for(node)
            kind = sym.kind if sym is not None else kinds.from_declared(node.attr("declared_type"))
            target = self.resolved_name(node, node.value)
            self.emit(IROp.DECLARE, target, kind)
            init = node.child(0)
            if init is not None:
                value = self.expression(init)
                self.emit(IROp.ASSIGN, value, None, target)

        elif nt is NodeType.EXPRESSION_STATEMENT:
            self.expression(node.children[0], want_value=False)

        elif nt in (NodeType.BLOCK_STATEMENT, NodeType.PROGRAM):
            for st in node.children:
                self.statement(st)

        elif nt is NodeType.IF_STATEMENT:
            cond = self.expression(node.children[0])
            else_label = self.new_label()
            self.emit(IROp.IF_FALSE, cond, None, else_label)
            self.statement(node.children[1])
            if len(node.children) > 2:
                end_label = self.new_label()
                self.emit(IROp.GOTO, None, None, end_label)
                self.emit(IROp.LABEL, None, None, else_label)
                self.statement(node.children[2])
                self.emit(IROp.LABEL, None, None, end_label)
            else:
                self.emit(IROp.LABEL, None, None, else_label)

        elif nt is NodeType.WHILE_STATEMENT:
            start, end = self.new_label(), self.new_label()
            self.emit(IROp.LABEL, None, None, start)
            self.emit(IROp.WHILE_START)
            cond = self.expression(node.children[0])
            self.emit(IROp.IF_FALSE, cond, None, end)
            self.loop_body(node.children[1], start, end)
            self.emit(IROp.GOTO, None, None, start)
            self.emit(IROp.LABEL, None, None, end)

        elif nt is NodeType.DO_WHILE_STATEMENT:
            start, end = self.new_label(), self.new_label()
            self.emit(IROp.LABEL, None, None, start)
            self.loop_body(node.children[0], start, end)
            self.emit(IROp.WHILE_END)
            cond = self.expression(node.children[1])
            self.emit(IROp.IF_TRUE, cond, None, start)
            self.emit(IROp.LABEL, None, None, end)

        elif nt is NodeType.FOR_STATEMENT:
            init, cond_node, update, body = node.children
            start, end = self.new_label(), self.new_label()
            self.emit(IROp.FOR_INIT)
            self.statement(init)
            self.emit(IROp.LABEL, None, None, start)
            self.emit(IROp.FOR_CONDITION)
            cond = self.expression(cond_node)
            self.emit(IROp.IF_FALSE, cond, None, end)
            self.loop_body(body, start, end)
            self.emit(IROp.FOR_UPDATE)
            self.statement(update)
            self.emit(IROp.GOTO, None, None, start)
            self.emit(IROp.LABEL, None, None, end)

        elif nt is NodeType.RETURN_STATEMENT:
            value = node.child(0)
            self.emit(IROp.RETURN, self.expression(value) if value is not None else None)

        elif nt is NodeType.BREAK_STATEMENT:
            self.emit(IROp.BREAK, None, None, self.loops[-1][1] if self.loops else None)

        elif nt is NodeType.CONTINUE_STATEMENT:
            self.emit(IROp.CONTINUE, None, None, self.loops[-1][0] if self.loops else None)

        elif nt is NodeType.THROW_STATEMENT:
            value = node.child(0)
            self.emit(IROp.THROW, self.expression(value) if value is not None else None)

        elif nt is NodeType.TRY_STATEMENT:
            children = list(node.children)
            end = self.new_label()
            self.emit(IROp.TRY, None, None, end)
            self.statement(children.pop(0))
            if node.attr("has_handler"):
                param = node.attr("param")
                self.emit(IROp.CATCH, self.resolved_name(children[0], param) if param else None)
                self.statement(children.pop(0))
            if node.attr("has_finalizer"):
                self.emit(IROp.FINALLY)
                self.statement(children.pop(0))
            self.emit(IROp.LABEL, None, None, end)

        elif nt in STATEMENT_KINDS_WITHOUT_VALUE:
            pass

        else:
            self.expression(node, want_value=False)

    def loop_body(self, body: Node, start: str, end: str):
        self.loops.append((start, end))
        self.statement(body)
        self.loops.pop()

    # ---------------- expressions ----------------
    def expression(self, node: Node, want_value: bool = True) -> Any:
        """Emit code for `node` and return the operand holding its value."""
        nt = node.node_type

        if nt is NodeType.LITERAL:
            t = self.new_temp()
            self.emit(IROp.LOAD_CONST, node.value, None, t)
            return t

        if nt is NodeType.IDENTIFIER:
            return self.resolved_name(node, node.value)

        if nt is NodeType.BINARY_EXPRESSION:
            left = self.expression(node.children[0])
            right = self.expression(node.children[1])
            return self.combine(node.attr("operator"), left, right, node.children[0], node.children[1])

        if nt is NodeType.UNARY_EXPRESSION:
            op = node.attr("operator")
            if op in ("++", "--"):
                return self.increment(node, want_value)
            operand = self.expression(node.children[0])
            t = self.new_temp()
            self.emit({"-": IROp.NEG, "+": IROp.POS, "!": IROp.NOT}[op], operand, None, t)
            return t

        if nt is NodeType.ASSIGNMENT:
            return self.assignment(node)

        if nt is NodeType.CALL_EXPRESSION:
            return self.call(node)

        if nt is NodeType.MEMBER_EXPRESSION:
            path = self.analysis.builtin_path(node)
            if path in CONSTANT_BUILTINS:
                t = self.new_temp()
                self.emit(IROp.LOAD_CONST, CONSTANT_BUILTINS[path], None, t)
                return t
            obj = self.expression(node.children[0])
            t = self.new_temp()
            if node.attr("computed"):
                index = self.expression(node.children[1])
                self.emit(IROp.ARRAY_GET, obj, index, t)
            elif node.attr("property") == "length" and path is None:
                self.emit(IROp.CALL, "@len", None, t, [obj])
            else:
                self.emit(IROp.MEMBER_GET, obj, node.attr("property"), t)
            return t

        if nt is NodeType.ARRAY_EXPRESSION:
            items = [self.expression(c) for c in node.children]
            t = self.new_temp()
            self.emit(IROp.ARRAY_CREATE, None, None, t, items)
            return t

        # Statement node in expression position
        self.statement(node)
        return None

    def assignment(self, node: Node) -> Any:
        target, value_node = node.children
        op = node.attr("operator")

        if target.node_type is NodeType.IDENTIFIER:
            name = self.resolved_name(target, target.value)
            value = self.expression(value_node)
            if op != "=":
                value = self.combine(op[:-1], name, value, target, value_node)
            self.emit(IROp.ASSIGN, value, None, name)
            return name

        obj = self.expression(target.children[0])
        if target.attr("computed"):
            index = self.expression(target.children[1])
            value = self.expression(value_node)
            if op != "=":
                current = self.new_temp()
                self.emit(IROp.ARRAY_GET, obj, index, current)
                value = self.combine(op[:-1], current, value, target, value_node)
            self.emit(IROp.ARRAY_SET, obj, index, value)
            return value

        prop = target.attr("property")
        value = self.expression(value_node)
        if op != "=":
            current = self.new_temp()
            self.emit(IROp.MEMBER_GET, obj, prop, current)
            value = self.combine(op[:-1], current, value, target, value_node)
        self.emit(IROp.MEMBER_SET, obj, prop, value)
        return value

    def combine(self, symbol: str, left: Any, right: Any, left_node: Node, right_node: Node) -> str:
        op = IROp(symbol)
        if op is IROp.DIV and self.language in ("c", "java") \
                and self.analysis.kind_of(left_node) == kinds.INT and self.analysis.kind_of(right_node) == kinds.INT:
            op = IROp.INT_DIV
        if op in (IROp.MOD, IROp.INT_DIV) and self.language == "python" \
                and kinds.STRING not in (self.analysis.kind_of(left_node), self.analysis.kind_of(right_node)) \
                and not (non_negative_literal(left_node) and non_negative_literal(right_node)):
            return self.floored(op, left, right)
        return self.binop(op, left, right)

    def binop(self, op: IROp, left: Any, right: Any) -> str:
        t = self.new_temp()
        self.emit(op, left, right, t)
        return t

    def floored(self, op: IROp, left: Any, right: Any) -> str:
        """Python's % and // round toward negative infinity; the IR's round toward zero.

        a mod b = ((a % b) + b) % b, and a div b = (a - (a mod b)) // b.
        """
        rem = self.binop(IROp.MOD, self.binop(IROp.ADD, self.binop(IROp.MOD, left, right), right), right)
        if op is IROp.MOD:
            return rem
        return self.binop(IROp.INT_DIV, self.binop(IROp.SUB, left, rem), right)

    def increment(self, node: Node, want_value: bool) -> Any:
        target = node.children[0]
        op = IROp.ADD if node.attr("operator") == "++" else IROp.SUB
        prefix = node.attr("prefix")

        if target.node_type is NodeType.IDENTIFIER:
            name = self.resolved_name(target, target.value)
            old = None
            if want_value and not prefix:
                old = self.new_temp()
                self.emit(IROp.ASSIGN, name, None, old)
            one = self.new_temp()
            self.emit(IROp.LOAD_CONST, 1, None, one)
            t = self.new_temp()
            self.emit(op, name, one, t)
            self.emit(IROp.ASSIGN, t, None, name)
            return old if old is not None else name

        obj = self.expression(target.children[0])
        computed = target.attr("computed")
        key = self.expression(target.children[1]) if computed else target.attr("property")
        current = self.new_temp()
        self.emit(IROp.ARRAY_GET if computed else IROp.MEMBER_GET, obj, key, current)
        one = self.new_temp()
        self.emit(IROp.LOAD_CONST, 1, None, one)
        t = self.new_temp()
        self.emit(op, current, one, t)
        self.emit(IROp.ARRAY_SET if computed else IROp.MEMBER_SET, obj, key, t)
        return t if prefix else current

    def call(self, node: Node) -> Any:
        callee = node.children[0]
        arg_nodes = list(node.children[1:])
        path = self.analysis.builtin_path(callee)

        if node.attr("constructor") or path in EXCEPTION_BUILTINS:
            if path in EXCEPTION_BUILTINS:
                target = "@Error"
            else:
                target = self.expression(callee)
            args = [self.expression(a) for a in arg_nodes]
            t = self.new_temp()
            self.emit(IROp.NEW, target, None, t, args)
            return t

        if path is not None:
            builtin = CALL_BUILTINS.get(path, "@" + path)
            text = None
            if builtin == "@printf":
                builtin, arg_nodes, text = self.simplify_printf(arg_nodes)
            if text is not None:
                args = [self.new_temp()]
                self.emit(IROp.LOAD_CONST, text, None, args[0])
            else:
                args = [self.expression(a) for a in arg_nodes]
            t = self.new_temp()
            self.emit(IROp.CALL, builtin, None, t, args)
            return t

        if callee.node_type is NodeType.MEMBER_EXPRESSION and not callee.attr("computed") \
                and callee.attr("property") in METHOD_BUILTINS:
            receiver = self.expression(callee.children[0])
            args = [receiver] + [self.expression(a) for a in arg_nodes]
            t = self.new_temp()
            self.emit(IROp.CALL, METHOD_BUILTINS[callee.attr("property")], None, t, args)
            return t

        target = self.expression(callee)
        args = [self.expression(a) for a in arg_nodes]
        t = self.new_temp()
        self.emit(IROp.CALL, target, None, t, args)
        return t

    @staticmethod
    def simplify_printf(arg_nodes: List[Node]) -> Tuple[str, List[Node], Optional[str]]:
        """printf("%d %s\\n", a, b) prints its arguments space-separated: treat it as print.

        Returns the builtin, its argument nodes, and replacement text when the
        call prints a single constant line.
        """
        if not arg_nodes:
            return "@printf", arg_nodes, None
        fmt = arg_nodes[0]
        if fmt.node_type is not NodeType.LITERAL or fmt.attr("data_type") != "string":
            return "@printf", arg_nodes, None
        text = fmt.value
        if not text.endswith("\n"):
            return "@printf", arg_nodes, None
        body = text[:-1]
        rest = arg_nodes[1:]
        if not rest:
            if "%" in body:
                return "@printf", arg_nodes, None
            return "@print", [], body
        parts = body.split(" ")
        if len(parts) == len(rest) and all(PRINTF_CONVERSION_RE.match(p) for p in parts):
            return "@print", rest, None
        return "@printf", arg_nodes, None


def generate(ast: Ast, analysis: Optional[Analysis] = None) -> List[Instruction]:
    return IRGenerator(ast, analysis).generate()
