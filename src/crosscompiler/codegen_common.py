from __future__ import annotations

import logging
from collections import ChainMap, Counter
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

from crosscompiler import kinds
from crosscompiler.ir import (
    ARITHMETIC_OPS, BINARY_OPS, COMPARISON_OPS, UNARY_OPS, Instruction, IROp, is_builtin, is_temp,
)

logger = logging.getLogger(__name__)


# ---------------- expression model ----------------

@dataclass(frozen=True)
class Const:
    value: Any
    kind: str = kinds.UNKNOWN


@dataclass(frozen=True)
class Name:
    name: str
    kind: str = kinds.UNKNOWN


@dataclass(frozen=True)
class Binary:
    op: IROp
    left: "Expr"
    right: "Expr"
    kind: str = kinds.UNKNOWN


@dataclass(frozen=True)
class Unary:
    op: IROp
    operand: "Expr"
    kind: str = kinds.UNKNOWN


@dataclass(frozen=True)
class Call:
    # '@name' for builtins, otherwise an expression
    callee: Union[str, "Expr"]
    args: Tuple["Expr", ...] = ()
    kind: str = kinds.UNKNOWN


@dataclass(frozen=True)
class New:
    callee: Union[str, "Expr"]
    args: Tuple["Expr", ...] = ()
    kind: str = kinds.OBJECT


@dataclass(frozen=True)
class Member:
    obj: "Expr"
    prop: str
    kind: str = kinds.UNKNOWN


@dataclass(frozen=True)
class Index:
    obj: "Expr"
    index: "Expr"
    kind: str = kinds.UNKNOWN


@dataclass(frozen=True)
class ArrayLit:
    items: Tuple["Expr", ...] = ()
    kind: str = kinds.UNKNOWN


Expr = Union[Const, Name, Binary, Unary, Call, New, Member, Index, ArrayLit]


def subexpressions(e: Expr) -> Iterator[Expr]:
    yield e
    if isinstance(e, Binary):
        yield from subexpressions(e.left)
        yield from subexpressions(e.right)
    elif isinstance(e, Unary):
        yield from subexpressions(e.operand)
    elif isinstance(e, (Call, New)):
        if not isinstance(e.callee, str):
            yield from subexpressions(e.callee)
        for a in e.args:
            yield from subexpressions(a)
    elif isinstance(e, Member):
        yield from subexpressions(e.obj)
    elif isinstance(e, Index):
        yield from subexpressions(e.obj)
        yield from subexpressions(e.index)
    elif isinstance(e, ArrayLit):
        for item in e.items:
            yield from subexpressions(item)


def names_in(e: Optional[Expr]) -> Set[str]:
    if e is None:
        return set()
    return {s.name for s in subexpressions(e) if isinstance(s, Name)}


def has_side_effect(e: Expr) -> bool:
    return any(isinstance(s, (Call, New)) for s in subexpressions(e))


def reads_memory(e: Expr) -> bool:
    return any(isinstance(s, (Member, Index)) for s in subexpressions(e))


# ---------------- statement model ----------------

@dataclass
class Assign:
    target: str
    value: Expr
    declare: bool = False
    kind: str = kinds.UNKNOWN


@dataclass
class Declare:
    name: str
    kind: str = kinds.UNKNOWN


@dataclass
class ExprStmt:
    expr: Expr


@dataclass
class MemberAssign:
    obj: Expr
    prop: str
    value: Expr


@dataclass
class IndexAssign:
    obj: Expr
    index: Expr
    value: Expr


@dataclass
class If:
    cond: Expr
    then: List["Stmt"]
    orelse: List["Stmt"] = field(default_factory=list)


@dataclass
class While:
    cond: Expr
    body: List["Stmt"]


@dataclass
class DoWhile:
    body: List["Stmt"]
    cond: Expr


@dataclass
class For:
    init: List["Stmt"]
    cond: Expr
    update: List["Stmt"]
    body: List["Stmt"]


@dataclass
class Return:
    value: Optional[Expr] = None


@dataclass
class Break:
    pass


@dataclass
class Continue:
    pass


@dataclass
class Throw:
    value: Optional[Expr] = None


@dataclass
class Try:
    body: List["Stmt"]
    param: Optional[str] = None
    handler: Optional[List["Stmt"]] = None
    finalizer: Optional[List["Stmt"]] = None


@dataclass
class Label:
    name: str


@dataclass
class Goto:
    name: str


@dataclass
class Gap:
    text: str


@dataclass
class FunctionDef:
    name: str
    params: List[str]
    param_kinds: List[str]
    return_kind: str
    body: List["Stmt"]


Stmt = Union[Assign, Declare, ExprStmt, MemberAssign, IndexAssign, If, While, DoWhile, For,
             Return, Break, Continue, Throw, Try, Label, Goto, Gap]


@dataclass
class Program:
    functions: List[FunctionDef]
    body: List[Stmt]
    # Kinds of variables declared at top level
    global_kinds: Dict[str, str]


def child_blocks(s: Stmt) -> List[List[Stmt]]:
    if isinstance(s, If):
        return [s.then, s.orelse]
    if isinstance(s, (While, DoWhile)):
        return [s.body]
    if isinstance(s, For):
        return [s.init, s.body, s.update]
    if isinstance(s, Try):
        return [b for b in (s.body, s.handler, s.finalizer) if b is not None]
    return []


def stmt_expressions(s: Stmt) -> List[Expr]:
    if isinstance(s, Assign):
        return [s.value]
    if isinstance(s, ExprStmt):
        return [s.expr]
    if isinstance(s, MemberAssign):
        return [s.obj, s.value]
    if isinstance(s, IndexAssign):
        return [s.obj, s.index, s.value]
    if isinstance(s, (If, While, DoWhile, For)):
        return [s.cond]
    if isinstance(s, (Return, Throw)) and s.value is not None:
        return [s.value]
    return []


def walk_statements(stmts: Sequence[Stmt]) -> Iterator[Stmt]:
    for s in stmts:
        yield s
        for block in child_blocks(s):
            yield from walk_statements(block)


def referenced_names(stmts: Sequence[Stmt]) -> Set[str]:
    out: Set[str] = set()
    for s in walk_statements(stmts):
        for e in stmt_expressions(s):
            out |= names_in(e)
        if isinstance(s, Assign):
            out.add(s.target)
    return out


def assigned_names(stmts: Sequence[Stmt]) -> Set[str]:
    return {s.target for s in walk_statements(stmts) if isinstance(s, Assign) and not s.declare}


def declared_names(stmts: Sequence[Stmt]) -> Set[str]:
    out = set()
    for s in walk_statements(stmts):
        if isinstance(s, Assign) and s.declare:
            out.add(s.target)
        elif isinstance(s, Declare):
            out.add(s.name)
        elif isinstance(s, Try) and s.param:
            out.add(s.param)
    return out


# Result kinds of the portable builtins
BUILTIN_KINDS = {
    "print": kinds.VOID, "write": kinds.VOID, "printf": kinds.VOID, "exit": kinds.VOID,
    "sqrt": kinds.DOUBLE, "pow": kinds.DOUBLE, "random": kinds.DOUBLE,
    "floor": kinds.INT, "ceil": kinds.INT, "round": kinds.INT, "randint": kinds.INT,
    "now": kinds.INT, "len": kinds.INT, "int": kinds.INT, "float": kinds.DOUBLE,
    "str": kinds.STRING, "input": kinds.STRING, "upper": kinds.STRING, "lower": kinds.STRING,
    "push": kinds.VOID,
}


# ---------------- IR lifting ----------------

class Lifter:
    """Rebuild structured statements from flat IR.

    Temporaries read exactly once are folded into the expression that
    reads them; others are materialized as assignments. Loops, ifs and
    try blocks are recognized from the label and marker patterns the IR
    generator emits; anything else is kept as labels and gotos."""

    def __init__(self, instructions: Sequence[Instruction]):
        self.code = list(instructions)
        self.labels = {ins.result: i for i, ins in enumerate(self.code) if ins.operation is IROp.LABEL}
        self.use_counts = Counter(o for ins in self.code for o in ins.uses() if is_temp(o))
        self.return_kinds = {ins.arg1: ins.arg2 for ins in self.code if ins.operation is IROp.FUNC_START}

        self.global_kinds: Dict[str, str] = {}
        depth = 0
        for ins in self.code:
            if ins.operation is IROp.FUNC_START:
                depth += 1
            elif ins.operation is IROp.FUNC_END:
                depth -= 1
            elif ins.operation is IROp.DECLARE and depth == 0:
                self.global_kinds[ins.arg1] = kinds.join(self.global_kinds.get(ins.arg1), ins.arg2)
        self.env = ChainMap({}, self.global_kinds)

        self.pending: Dict[str, Expr] = {}
        self.out: List[Stmt] = []
        self.functions: List[FunctionDef] = []
        self.gaps: List[str] = []

        self.handlers: Dict[IROp, Callable[[int, int], int]] = {
            IROp.LOAD_CONST: self.lift_load_const,
            IROp.DECLARE: self.lift_declare,
            IROp.ASSIGN: self.lift_assign,
            IROp.MEMBER_GET: self.lift_member_get,
            IROp.MEMBER_SET: self.lift_member_set,
            IROp.ARRAY_GET: self.lift_array_get,
            IROp.ARRAY_SET: self.lift_array_set,
            IROp.ARRAY_CREATE: self.lift_array_create,
            IROp.CALL: self.lift_call,
            IROp.NEW: self.lift_new,
            IROp.FUNC_START: self.lift_function,
            IROp.FUNC_END: self.skip,
            IROp.LABEL: self.lift_label,
            IROp.GOTO: self.lift_goto,
            IROp.IF_FALSE: self.lift_if,
            IROp.IF_TRUE: self.lift_if_true,
            IROp.RETURN: self.lift_return,
            IROp.FOR_INIT: self.lift_for,
            IROp.FOR_CONDITION: self.skip,
            IROp.FOR_UPDATE: self.skip,
            IROp.WHILE_START: self.skip,
            IROp.WHILE_END: self.skip,
            IROp.BREAK: self.lift_break,
            IROp.CONTINUE: self.lift_continue,
            IROp.TRY: self.lift_try,
            IROp.CATCH: self.skip,
            IROp.FINALLY: self.skip,
            IROp.THROW: self.lift_throw,
        }
        for op in BINARY_OPS:
            self.handlers[op] = self.lift_binary
        for op in UNARY_OPS:
            self.handlers[op] = self.lift_unary

    def lift(self) -> Program:
        body = self.lift_block(0, len(self.code))
        return Program(self.functions, body, dict(self.global_kinds))

    # ---------------- blocks ----------------
    def lift_block(self, start: int, stop: int) -> List[Stmt]:
        saved = self.out
        self.out = []
        self.run(start, stop)
        for t in [t for t, e in self.pending.items() if has_side_effect(e)]:
            self.materialize(t)
        block, self.out = self.out, saved
        return block

    def run(self, start: int, stop: int):
        i = start
        while i < stop:
            ins = self.code[i]
            handler = self.handlers.get(ins.operation)
            if handler is None:
                self.gap(f"IR operation {ins.operation}")
                i += 1
            else:
                i = handler(i, stop)

    def lift_region(self, start: int, stop: int, operand: Any) -> Tuple[List[Stmt], Expr]:
        """Lift a condition region: its statements and the expression for `operand`."""
        saved = self.out
        self.out = []
        self.run(start, stop)
        cond = self.take(operand)
        region, self.out = self.out, saved
        return region, cond

    def gap(self, text: str):
        self.gaps.append(text)
        self.out.append(Gap(text))

    # ---------------- temporaries ----------------
    def kind_of_name(self, name: str) -> str:
        return self.env.get(name, kinds.UNKNOWN)

    def take(self, operand: Any) -> Optional[Expr]:
        if operand is None:
            return None
        if not isinstance(operand, str):
            return Const(operand, kinds.of_value(operand))
        if operand in self.pending:
            return self.pending.pop(operand)
        return Name(operand, self.kind_of_name(operand))

    def define(self, temp: str, expr: Expr):
        uses = self.use_counts.get(temp, 0)
        if uses == 0:
            if has_side_effect(expr):
                self.emit(ExprStmt(expr))
        elif uses == 1:
            self.pending[temp] = expr
        else:
            self.env[temp] = expr.kind
            self.emit(Assign(temp, expr, declare=True, kind=expr.kind))

    def materialize(self, temp: str):
        expr = self.pending.pop(temp)
        self.env[temp] = expr.kind
        self.out.append(Assign(temp, expr, declare=True, kind=expr.kind))

    def emit(self, stmt: Stmt):
        """Append a statement, first materializing pending expressions that
        must be evaluated before it."""
        written = set()
        if isinstance(stmt, Assign):
            written.add(stmt.target)
        elif isinstance(stmt, Declare):
            written.add(stmt.name)
        stores = isinstance(stmt, (MemberAssign, IndexAssign)) or any(
            has_side_effect(e) for e in stmt_expressions(stmt))
        for t, e in list(self.pending.items()):
            if has_side_effect(e) or names_in(e) & written or (stores and reads_memory(e)):
                self.materialize(t)

        if isinstance(stmt, Assign) and not stmt.declare and self.out \
                and isinstance(self.out[-1], Declare) and self.out[-1].name == stmt.target:
            decl = self.out.pop()
            stmt = Assign(stmt.target, stmt.value, declare=True, kind=decl.kind)
        self.out.append(stmt)

    # ---------------- simple instructions ----------------
    def skip(self, i: int, stop: int) -> int:
        return i + 1

    def lift_load_const(self, i: int, stop: int) -> int:
        ins = self.code[i]
        self.define(ins.result, Const(ins.arg1, kinds.of_value(ins.arg1)))
        return i + 1

    def lift_declare(self, i: int, stop: int) -> int:
        ins = self.code[i]
        self.env[ins.arg1] = ins.arg2
        self.emit(Declare(ins.arg1, ins.arg2))
        return i + 1

    def lift_assign(self, i: int, stop: int) -> int:
        ins = self.code[i]
        value = self.take(ins.arg1)
        if value is None:
            self.gap(f"assignment to {ins.result} without a value")
            return i + 1
        if is_temp(ins.result):
            self.define(ins.result, value)
        else:
            if ins.result not in self.env:
                self.env[ins.result] = value.kind
            self.emit(Assign(ins.result, value, declare=False, kind=self.kind_of_name(ins.result)))
        return i + 1

    def lift_binary(self, i: int, stop: int) -> int:
        ins = self.code[i]
        left = self.take(ins.arg1)
        right = self.take(ins.arg2)
        op = ins.operation
        if op is IROp.INT_DIV:
            kind = kinds.INT if left.kind == kinds.INT and right.kind == kinds.INT else kinds.DOUBLE
        elif op is IROp.DIV and left.kind == kinds.INT and right.kind == kinds.INT:
            kind = kinds.DOUBLE
        else:
            kind = kinds.binary_result(op.value, left.kind, right.kind)
        self.define(ins.result, Binary(op, left, right, kind))
        return i + 1

    def lift_unary(self, i: int, stop: int) -> int:
        ins = self.code[i]
        operand = self.take(ins.arg1)
        kind = kinds.BOOLEAN if ins.operation is IROp.NOT else operand.kind
        self.define(ins.result, Unary(ins.operation, operand, kind))
        return i + 1

    def lift_member_get(self, i: int, stop: int) -> int:
        ins = self.code[i]
        self.define(ins.result, Member(self.take(ins.arg1), ins.arg2))
        return i + 1

    def lift_member_set(self, i: int, stop: int) -> int:
        ins = self.code[i]
        obj = self.take(ins.arg1)
        value = self.take(ins.result)
        self.emit(MemberAssign(obj, ins.arg2, value))
        return i + 1

    def lift_array_get(self, i: int, stop: int) -> int:
        ins = self.code[i]
        obj = self.take(ins.arg1)
        index = self.take(ins.arg2)
        self.define(ins.result, Index(obj, index, kinds.element_of(obj.kind)))
        return i + 1

    def lift_array_set(self, i: int, stop: int) -> int:
        ins = self.code[i]
        obj = self.take(ins.arg1)
        index = self.take(ins.arg2)
        value = self.take(ins.result)
        self.emit(IndexAssign(obj, index, value))
        return i + 1

    def lift_array_create(self, i: int, stop: int) -> int:
        ins = self.code[i]
        items = tuple(self.take(p) for p in ins.params)
        kind = kinds.array_of(kinds.join_all(item.kind for item in items))
        self.define(ins.result, ArrayLit(items, kind))
        return i + 1

    def lift_call(self, i: int, stop: int) -> int:
        ins = self.code[i]
        if is_builtin(ins.arg1):
            callee = ins.arg1
        else:
            callee = self.take(ins.arg1)
        args = tuple(self.take(p) for p in ins.params)
        self.define(ins.result, Call(callee, args, self.call_kind(callee, args)))
        return i + 1

    def call_kind(self, callee, args: Tuple[Expr, ...]) -> str:
        if isinstance(callee, str):
            name = callee[1:]
            if name in ("max", "min"):
                return kinds.join_all(a.kind for a in args)
            if name == "abs":
                return args[0].kind if args else kinds.DOUBLE
            return BUILTIN_KINDS.get(name, kinds.UNKNOWN)
        if isinstance(callee, Name):
            return self.return_kinds.get(callee.name, kinds.UNKNOWN)
        return kinds.UNKNOWN

    def lift_new(self, i: int, stop: int) -> int:
        ins = self.code[i]
        callee = ins.arg1 if is_builtin(ins.arg1) else self.take(ins.arg1)
        args = tuple(self.take(p) for p in ins.params)
        self.define(ins.result, New(callee, args))
        return i + 1

    def lift_return(self, i: int, stop: int) -> int:
        self.emit(Return(self.take(self.code[i].arg1)))
        return i + 1

    def lift_throw(self, i: int, stop: int) -> int:
        self.emit(Throw(self.take(self.code[i].arg1)))
        return i + 1

    def lift_break(self, i: int, stop: int) -> int:
        self.emit(Break())
        return i + 1

    def lift_continue(self, i: int, stop: int) -> int:
        self.emit(Continue())
        return i + 1

    def lift_goto(self, i: int, stop: int) -> int:
        self.emit(Goto(self.code[i].result))
        return i + 1

    def lift_if_true(self, i: int, stop: int) -> int:
        ins = self.code[i]
        self.emit(If(self.take(ins.arg1), [Goto(ins.result)]))
        return i + 1

    # ---------------- functions ----------------
    def lift_function(self, i: int, stop: int) -> int:
        ins = self.code[i]
        depth = 0
        end = stop
        for j in range(i, stop):
            op = self.code[j].operation
            if op is IROp.FUNC_START:
                depth += 1
            elif op is IROp.FUNC_END:
                depth -= 1
                if depth == 0:
                    end = j
                    break
        params = list(ins.params)
        param_kinds = list(ins.types) or [kinds.UNKNOWN] * len(params)

        saved_env, saved_pending = self.env, self.pending
        self.env = ChainMap(dict(zip(params, param_kinds)), self.global_kinds)
        self.pending = {}
        body = self.lift_block(i + 1, end)
        self.env, self.pending = saved_env, saved_pending

        self.functions.append(FunctionDef(ins.arg1, params, param_kinds, ins.arg2 or kinds.UNKNOWN, body))
        return end + 1

    # ---------------- control flow ----------------
    def is_backward_goto(self, j: int, label: str) -> bool:
        ins = self.code[j] if 0 <= j < len(self.code) else None
        return ins is not None and ins.operation is IROp.GOTO and ins.result == label

    def find_loop_exit(self, start: int, stop: int, loop_label: str) -> Optional[Tuple[int, int]]:
        """Position of the IF_FALSE leaving the loop and of its end label."""
        for j in range(start, stop):
            ins = self.code[j]
            if ins.operation is IROp.IF_FALSE:
                end = self.labels.get(ins.result)
                if end is not None and start < end <= stop and self.is_backward_goto(end - 1, loop_label):
                    return j, end
        return None

    def lift_if(self, i: int, stop: int) -> int:
        ins = self.code[i]
        cond = self.take(ins.arg1)
        target = self.labels.get(ins.result)
        if target is None or target <= i or target >= stop:
            self.emit(If(Unary(IROp.NOT, cond, kinds.BOOLEAN), [Goto(ins.result)]))
            return i + 1

        before = self.code[target - 1]
        if target - 1 > i and before.operation is IROp.GOTO:
            end = self.labels.get(before.result)
            if end is not None and target < end < stop:
                then = self.lift_block(i + 1, target - 1)
                orelse = self.lift_block(target + 1, end)
                self.emit(If(cond, then, orelse))
                return end + 1

        then = self.lift_block(i + 1, target)
        self.emit(If(cond, then))
        return target + 1

    def lift_label(self, i: int, stop: int) -> int:
        ins = self.code[i]
        label = ins.result
        nxt = self.code[i + 1] if i + 1 < stop else None

        if nxt is not None and nxt.operation is IROp.WHILE_START:
            found = self.find_loop_exit(i + 2, stop, label)
            if found is not None:
                j, end = found
                pre, cond = self.lift_region(i + 2, j, self.code[j].arg1)
                body = self.lift_block(j + 1, end - 1)
                if pre:
                    guard = If(Unary(IROp.NOT, cond, kinds.BOOLEAN), [Break()])
                    self.emit(While(Const(True, kinds.BOOLEAN), pre + [guard] + body))
                else:
                    self.emit(While(cond, body))
                return end + 1

        # do-while: LABEL start; body; WHILE_END; cond; IF_TRUE c, start
        for j in range(i + 1, stop):
            other = self.code[j]
            if other.operation is IROp.IF_TRUE and other.result == label:
                marker = max((k for k in range(i + 1, j) if self.code[k].operation is IROp.WHILE_END), default=None)
                if marker is None:
                    break
                body = self.lift_block(i + 1, marker)
                pre, cond = self.lift_region(marker + 1, j, other.arg1)
                self.emit(DoWhile(body + pre, cond))
                after = j + 1
                if after < stop and self.code[after].operation is IROp.LABEL \
                        and not self.is_jump_target(self.code[after].result, exclude=(i, j)):
                    after += 1
                return after

        self.emit(Label(label))
        return i + 1

    def is_jump_target(self, label: str, exclude: Tuple[int, int]) -> bool:
        lo, hi = exclude
        for k, ins in enumerate(self.code):
            if lo <= k <= hi:
                continue
            if ins.operation in (IROp.GOTO, IROp.IF_FALSE, IROp.IF_TRUE) and ins.result == label:
                return True
        return False

    def lift_for(self, i: int, stop: int) -> int:
        start = None
        for k in range(i + 1, stop - 1):
            if self.code[k].operation is IROp.LABEL and self.code[k + 1].operation is IROp.FOR_CONDITION:
                start = k
                break
        if start is None:
            return i + 1
        label = self.code[start].result
        found = self.find_loop_exit(start + 2, stop, label)
        if found is None:
            return i + 1
        j, end = found
        update_at = max((k for k in range(j + 1, end - 1) if self.code[k].operation is IROp.FOR_UPDATE),
                        default=end - 1)

        init = self.lift_block(i + 1, start)
        pre, cond = self.lift_region(start + 2, j, self.code[j].arg1)
        body = self.lift_block(j + 1, update_at)
        update = self.lift_block(update_at + 1, end - 1)
        if pre:
            for s in init:
                self.emit(s)
            guard = If(Unary(IROp.NOT, cond, kinds.BOOLEAN), [Break()])
            self.emit(While(Const(True, kinds.BOOLEAN), pre + [guard] + body + update))
        else:
            self.emit(For(init, cond, update, body))
        return end + 1

    def lift_try(self, i: int, stop: int) -> int:
        ins = self.code[i]
        end = self.labels.get(ins.result)
        if end is None or end >= stop:
            self.gap("try without end label")
            return i + 1
        catch_at = finally_at = None
        k = i + 1
        while k < end:
            other = self.code[k]
            if other.operation is IROp.TRY:
                nested_end = self.labels.get(other.result)
                k = nested_end + 1 if nested_end is not None else k + 1
                continue
            if other.operation is IROp.CATCH and catch_at is None and finally_at is None:
                catch_at = k
            elif other.operation is IROp.FINALLY and finally_at is None:
                finally_at = k
            k += 1

        body_end = catch_at if catch_at is not None else (finally_at if finally_at is not None else end)
        body = self.lift_block(i + 1, body_end)
        handler = finalizer = None
        param = None
        if catch_at is not None:
            param = self.code[catch_at].arg1
            handler = self.lift_block(catch_at + 1, finally_at if finally_at is not None else end)
        if finally_at is not None:
            finalizer = self.lift_block(finally_at + 1, end)
        self.emit(Try(body, param, handler, finalizer))
        return end + 1


def lift(instructions: Sequence[Instruction]) -> Tuple[Program, List[str]]:
    lifter = Lifter(instructions)
    program = lifter.lift()
    return program, lifter.gaps


# ---------------- declaration placement ----------------

def place_declarations(body: List[Stmt], predeclared: Set[str]) -> List[Stmt]:
    """Make every variable declared once, in a block enclosing all its uses.

    Variables declared more than once, or used outside the block that
    declares them, get one declaration at the top of `body` and their
    other declarations become plain assignments."""
    decls: Dict[str, List[Tuple]] = {}
    refs: Dict[str, List[Tuple]] = {}
    decl_kinds: Dict[str, str] = {}

    def note_refs(e: Optional[Expr], path):
        for n in names_in(e):
            refs.setdefault(n, []).append(path)

    def walk(stmts, path):
        for idx, s in enumerate(stmts):
            here = path + (idx,)
            if isinstance(s, Assign):
                note_refs(s.value, path)
                refs.setdefault(s.target, []).append(path)
                if s.declare:
                    decls.setdefault(s.target, []).append(path)
                    decl_kinds[s.target] = kinds.join(decl_kinds.get(s.target), s.kind)
            elif isinstance(s, Declare):
                decls.setdefault(s.name, []).append(path)
                decl_kinds[s.name] = kinds.join(decl_kinds.get(s.name), s.kind)
            elif isinstance(s, If):
                note_refs(s.cond, path)
                walk(s.then, here + ("then",))
                walk(s.orelse, here + ("else",))
            elif isinstance(s, While):
                note_refs(s.cond, path)
                walk(s.body, here + ("body",))
            elif isinstance(s, DoWhile):
                walk(s.body, here + ("body",))
                note_refs(s.cond, path)
            elif isinstance(s, For):
                scope = here + ("for",)
                walk(s.init, scope)
                note_refs(s.cond, scope)
                walk(s.update, scope)
                walk(s.body, scope + ("body",))
            elif isinstance(s, Try):
                walk(s.body, here + ("try",))
                if s.handler is not None:
                    walk(s.handler, here + ("catch",))
                if s.finalizer is not None:
                    walk(s.finalizer, here + ("finally",))
            else:
                for e in stmt_expressions(s):
                    note_refs(e, path)

    walk(body, ())

    hoisted = []
    for name, sites in decls.items():
        if name in predeclared:
            continue
        home = sites[0]
        if len(sites) > 1 or any(r[:len(home)] != home for r in refs.get(name, [])):
            hoisted.append(name)
    # Assigned but never declared here
    for name in refs:
        if name not in decls and name not in predeclared and not is_temp(name):
            if any(isinstance(s, Assign) and s.target == name for s in walk_statements(body)):
                hoisted.append(name)

    if not hoisted:
        return body
    hoist_set = set(hoisted)
    rewritten = strip_declarations(body, hoist_set)
    prologue: List[Stmt] = [Declare(name, decl_kinds.get(name, kinds.UNKNOWN)) for name in hoisted]
    return prologue + rewritten


def strip_declarations(stmts: List[Stmt], names: Set[str]) -> List[Stmt]:
    """Turn declarations of `names` into plain assignments (dropping bare ones)."""
    out: List[Stmt] = []
    for s in stmts:
        if isinstance(s, Declare) and s.name in names:
            continue
        if isinstance(s, Assign) and s.declare and s.target in names:
            s = replace(s, declare=False)
        elif isinstance(s, If):
            s = replace(s, then=strip_declarations(s.then, names), orelse=strip_declarations(s.orelse, names))
        elif isinstance(s, (While, DoWhile)):
            s = replace(s, body=strip_declarations(s.body, names))
        elif isinstance(s, For):
            s = replace(s, init=strip_declarations(s.init, names), update=strip_declarations(s.update, names),
                        body=strip_declarations(s.body, names))
        elif isinstance(s, Try):
            s = replace(s, body=strip_declarations(s.body, names),
                        handler=strip_declarations(s.handler, names) if s.handler is not None else None,
                        finalizer=strip_declarations(s.finalizer, names) if s.finalizer is not None else None)
        out.append(s)
    return out


def with_update(body: List[Stmt], update: List[Stmt]) -> List[Stmt]:
    """Run a for-loop update before every `continue` of that loop."""
    out: List[Stmt] = []
    for st in body:
        if isinstance(st, Continue):
            out.extend(update)
            out.append(st)
        elif isinstance(st, If):
            out.append(replace(st, then=with_update(st.then, update), orelse=with_update(st.orelse, update)))
        elif isinstance(st, Try):
            out.append(replace(st, body=with_update(st.body, update),
                               handler=with_update(st.handler, update) if st.handler is not None else None))
        else:
            out.append(st)
    return out


def rename_calls(stmts: List[Stmt], old: str, new: str) -> List[Stmt]:
    """Rename a function at every call site."""
    def fix(e: Optional[Expr]) -> Optional[Expr]:
        if e is None:
            return None
        if isinstance(e, Call):
            callee = e.callee
            if isinstance(callee, Name) and callee.name == old:
                callee = replace(callee, name=new)
            elif not isinstance(callee, str):
                callee = fix(callee)
            return replace(e, callee=callee, args=tuple(fix(a) for a in e.args))
        if isinstance(e, Binary):
            return replace(e, left=fix(e.left), right=fix(e.right))
        if isinstance(e, Unary):
            return replace(e, operand=fix(e.operand))
        if isinstance(e, New):
            return replace(e, args=tuple(fix(a) for a in e.args))
        if isinstance(e, Member):
            return replace(e, obj=fix(e.obj))
        if isinstance(e, Index):
            return replace(e, obj=fix(e.obj), index=fix(e.index))
        if isinstance(e, ArrayLit):
            return replace(e, items=tuple(fix(i) for i in e.items))
        return e

    out: List[Stmt] = []
    for s in stmts:
        if isinstance(s, Assign):
            s = replace(s, value=fix(s.value))
        elif isinstance(s, ExprStmt):
            s = replace(s, expr=fix(s.expr))
        elif isinstance(s, MemberAssign):
            s = replace(s, obj=fix(s.obj), value=fix(s.value))
        elif isinstance(s, IndexAssign):
            s = replace(s, obj=fix(s.obj), index=fix(s.index), value=fix(s.value))
        elif isinstance(s, If):
            s = replace(s, cond=fix(s.cond), then=rename_calls(s.then, old, new),
                        orelse=rename_calls(s.orelse, old, new))
        elif isinstance(s, While):
            s = replace(s, cond=fix(s.cond), body=rename_calls(s.body, old, new))
        elif isinstance(s, DoWhile):
            s = replace(s, cond=fix(s.cond), body=rename_calls(s.body, old, new))
        elif isinstance(s, For):
            s = replace(s, init=rename_calls(s.init, old, new), cond=fix(s.cond),
                        update=rename_calls(s.update, old, new), body=rename_calls(s.body, old, new))
        elif isinstance(s, (Return, Throw)):
            s = replace(s, value=fix(s.value))
        elif isinstance(s, Try):
            s = replace(s, body=rename_calls(s.body, old, new),
                        handler=rename_calls(s.handler, old, new) if s.handler is not None else None,
                        finalizer=rename_calls(s.finalizer, old, new) if s.finalizer is not None else None)
        out.append(s)
    return out


# ---------------- generator base ----------------

# Binding strength, loosest first
PREC_TERNARY = 0
PREC_OR = 1
PREC_AND = 2
PREC_NOT_WORD = 3
PREC_EQUALITY = 4
PREC_RELATIONAL = 5
PREC_ADDITIVE = 6
PREC_MULTIPLICATIVE = 7
PREC_UNARY = 8
PREC_POWER = 9
PREC_POSTFIX = 10
PREC_ATOM = 11

PRECEDENCE: Dict[IROp, int] = {
    IROp.OR: PREC_OR, IROp.AND: PREC_AND,
    IROp.EQ: PREC_EQUALITY, IROp.NE: PREC_EQUALITY, IROp.STRICT_EQ: PREC_EQUALITY, IROp.STRICT_NE: PREC_EQUALITY,
    IROp.LT: PREC_RELATIONAL, IROp.GT: PREC_RELATIONAL, IROp.LE: PREC_RELATIONAL, IROp.GE: PREC_RELATIONAL,
    IROp.ADD: PREC_ADDITIVE, IROp.SUB: PREC_ADDITIVE,
    IROp.MUL: PREC_MULTIPLICATIVE, IROp.DIV: PREC_MULTIPLICATIVE, IROp.MOD: PREC_MULTIPLICATIVE,
    IROp.INT_DIV: PREC_MULTIPLICATIVE,
    IROp.POW: PREC_POWER,
}

ESCAPES = {"\n": "\\n", "\t": "\\t", "\r": "\\r", "\\": "\\\\", '"': '\\"'}


def quote(text: str) -> str:
    return '"' + "".join(ESCAPES.get(ch, ch) for ch in text) + '"'


def format_number(value: Any) -> str:
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e16:
            return f"{value:.1f}"
        return repr(value)
    return str(value)


class BaseGenerator:
    """Shared driver for the target generators: indentation-tracked line
    buffer, statement dispatch and precedence-aware expression rendering."""

    language = ""
    comment = "//"
    null = "null"
    OPERATORS: Dict[IROp, str] = {}

    def __init__(self, indent: str = "    "):
        self.indent_unit = indent
        self.lines: List[str] = []
        self.level = 0
        self.warnings: List[str] = []
        self.program: Optional[Program] = None

    # ---------------- output buffer ----------------
    def emit(self, line: str = ""):
        self.lines.append(self.indent_unit * self.level + line if line else "")

    @contextmanager
    def indented(self):
        self.level += 1
        try:
            yield
        finally:
            self.level -= 1

    def capture(self, fn: Callable, *args) -> List[str]:
        saved, saved_level = self.lines, self.level
        self.lines, self.level = [], 0
        try:
            fn(*args)
            return self.lines
        finally:
            self.lines, self.level = saved, saved_level

    def gap(self, what: str) -> str:
        """Record a generation gap; returns a comment line marking it."""
        message = f"{self.language}: no translation for {what}"
        if message not in self.warnings:
            self.warnings.append(message)
        return f"{self.comment} unsupported: {what}"

    def gap_expr(self, what: str) -> Tuple[str, int]:
        self.gap(what)
        return self.null, PREC_ATOM

    # ---------------- entry ----------------
    def generate(self, instructions: Sequence[Instruction]) -> str:
        self.program, _ = lift(instructions)
        text = self.render_program(self.program)
        logger.debug("%s generator: %d lines, %d warnings", self.language, text.count("\n") + 1, len(self.warnings))
        return text

    def render_program(self, program: Program) -> str:
        raise NotImplementedError

    def find_main(self, program: Program) -> Optional[FunctionDef]:
        for fn in program.functions:
            if fn.name == "main":
                return fn
        return None

    # ---------------- statements ----------------
    def statements(self, stmts: Sequence[Stmt]):
        for s in stmts:
            self.statement(s)

    def statement(self, s: Stmt):
        method = getattr(self, "visit_" + type(s).__name__, None)
        if method is None:
            self.emit(self.gap(type(s).__name__))
            return
        method(s)

    def visit_Gap(self, s: Gap):
        self.emit(self.gap(s.text))

    # ---------------- expressions ----------------
    def expr(self, e: Expr, min_prec: int = PREC_TERNARY) -> str:
        text, prec = self.render(e)
        return f"({text})" if prec < min_prec else text

    def render(self, e: Expr) -> Tuple[str, int]:
        if isinstance(e, Const):
            text = self.const(e.value)
            if isinstance(e.value, (int, float)) and not isinstance(e.value, bool) and e.value < 0:
                return text, PREC_UNARY
            return text, PREC_ATOM
        if isinstance(e, Name):
            return e.name, PREC_ATOM
        if isinstance(e, Binary):
            return self.binary(e)
        if isinstance(e, Unary):
            return self.unary(e)
        if isinstance(e, Call):
            if isinstance(e.callee, str):
                return self.builtin_call(e.callee[1:], list(e.args), e)
            args = ", ".join(self.expr(a) for a in e.args)
            return f"{self.expr(e.callee, PREC_POSTFIX)}({args})", PREC_POSTFIX
        if isinstance(e, New):
            return self.new(e)
        if isinstance(e, Member):
            return f"{self.expr(e.obj, PREC_POSTFIX)}.{e.prop}", PREC_POSTFIX
        if isinstance(e, Index):
            return f"{self.expr(e.obj, PREC_POSTFIX)}[{self.expr(e.index)}]", PREC_POSTFIX
        if isinstance(e, ArrayLit):
            return self.array_literal(e), PREC_ATOM
        return self.gap_expr(type(e).__name__)

    def const(self, value: Any) -> str:
        if isinstance(value, str):
            return quote(value)
        return format_number(value)

    def binary(self, e: Binary) -> Tuple[str, int]:
        prec = PRECEDENCE[e.op]
        if e.op is IROp.POW:
            left = self.expr(e.left, prec + 1)
            right = self.expr(e.right, prec)
        else:
            left = self.expr(e.left, prec)
            right = self.expr(e.right, prec + 1)
        return f"{left} {self.OPERATORS[e.op]} {right}", prec

    def unary(self, e: Unary) -> Tuple[str, int]:
        return f"{self.OPERATORS[e.op]}{self.expr(e.operand, PREC_UNARY)}", PREC_UNARY

    def new(self, e: New) -> Tuple[str, int]:
        callee = e.callee[1:] if isinstance(e.callee, str) else self.expr(e.callee, PREC_POSTFIX)
        args = ", ".join(self.expr(a) for a in e.args)
        return f"new {callee}({args})", PREC_POSTFIX

    def array_literal(self, e: ArrayLit) -> str:
        return "[" + ", ".join(self.expr(i) for i in e.items) + "]"

    def builtin_call(self, name: str, args: List[Expr], call: Call) -> Tuple[str, int]:
        method = getattr(self, "builtin_" + name.replace(".", "_"), None)
        if method is None:
            self.gap(f"builtin {name}")
            return self.call_text(name, args)
        return method(args, call)

    def call_text(self, callee: str, args: Sequence[Expr]) -> Tuple[str, int]:
        return f"{callee}({', '.join(self.expr(a) for a in args)})", PREC_POSTFIX


class BraceGenerator(BaseGenerator):
    """Statement rendering shared by the C-family targets and JavaScript."""

    OPERATORS: Dict[IROp, str] = {
        IROp.ADD: "+", IROp.SUB: "-", IROp.MUL: "*", IROp.DIV: "/", IROp.MOD: "%", IROp.INT_DIV: "/",
        IROp.POW: "**",
        IROp.EQ: "==", IROp.NE: "!=", IROp.STRICT_EQ: "==", IROp.STRICT_NE: "!=",
        IROp.LT: "<", IROp.GT: ">", IROp.LE: "<=", IROp.GE: ">=",
        IROp.AND: "&&", IROp.OR: "||", IROp.NOT: "!", IROp.NEG: "-", IROp.POS: "+",
    }

    @contextmanager
    def block(self, header: str, closer: str = "}"):
        self.emit(header + " {" if header else "{")
        with self.indented():
            yield
        self.emit(closer)

    # ---------------- declarations ----------------
    def declaration(self, name: str, kind: str, value: Optional[Expr]) -> str:
        raise NotImplementedError

    def visit_Assign(self, s: Assign):
        if s.declare:
            self.emit(self.declaration(s.target, s.kind, s.value) + ";")
        else:
            self.emit(self.assignment(s) + ";")

    def assignment(self, s: Assign) -> str:
        # x = x + 1 renders as the compound or increment form
        v = s.value
        if isinstance(v, Binary) and isinstance(v.left, Name) and v.left.name == s.target \
                and v.op in (IROp.ADD, IROp.SUB) and v.kind != kinds.STRING:
            if isinstance(v.right, Const) and v.right.value == 1 and not isinstance(v.right.value, bool):
                return s.target + ("++" if v.op is IROp.ADD else "--")
            return f"{s.target} {self.OPERATORS[v.op]}= {self.expr(v.right)}"
        return f"{s.target} = {self.expr(v)}"

    def visit_Declare(self, s: Declare):
        self.emit(self.declaration(s.name, s.kind, None) + ";")

    def visit_ExprStmt(self, s: ExprStmt):
        self.emit(self.expr(s.expr) + ";")

    def visit_MemberAssign(self, s: MemberAssign):
        self.emit(f"{self.expr(s.obj, PREC_POSTFIX)}.{s.prop} = {self.expr(s.value)};")

    def visit_IndexAssign(self, s: IndexAssign):
        self.emit(f"{self.expr(s.obj, PREC_POSTFIX)}[{self.expr(s.index)}] = {self.expr(s.value)};")

    # ---------------- control flow ----------------
    def condition(self, e: Expr) -> str:
        return self.expr(e)

    def visit_If(self, s: If):
        self.emit(f"if ({self.condition(s.cond)}) {{")
        with self.indented():
            self.statements(s.then)
        self.else_branch(s.orelse)

    def else_branch(self, orelse: List[Stmt]):
        if len(orelse) == 1 and isinstance(orelse[0], If):
            nested = orelse[0]
            self.emit(f"}} else if ({self.condition(nested.cond)}) {{")
            with self.indented():
                self.statements(nested.then)
            self.else_branch(nested.orelse)
            return
        if orelse:
            self.emit("} else {")
            with self.indented():
                self.statements(orelse)
        self.emit("}")

    def visit_While(self, s: While):
        with self.block(f"while ({self.condition(s.cond)})"):
            self.statements(s.body)

    def visit_DoWhile(self, s: DoWhile):
        self.emit("do {")
        with self.indented():
            self.statements(s.body)
        self.emit(f"}} while ({self.condition(s.cond)});")

    def inline(self, s: Stmt) -> Optional[str]:
        """A simple statement without its semicolon, for a for-loop header."""
        if isinstance(s, Assign):
            if s.declare:
                return self.declaration(s.target, s.kind, s.value)
            return self.assignment(s)
        if isinstance(s, ExprStmt):
            return self.expr(s.expr)
        return None

    def visit_For(self, s: For):
        init = [self.inline(x) for x in s.init]
        if len(init) > 1 or None in init:
            self.statements(s.init)
            init_text = ""
        else:
            init_text = init[0] if init else ""
        update = [self.inline(x) for x in s.update]
        if None in update:
            # Non-simple update: run it at the end of the body
            with self.block(f"for ({init_text}; {self.condition(s.cond)}; )"):
                self.statements(with_update(s.body, s.update))
                self.statements(s.update)
            return
        with self.block(f"for ({init_text}; {self.condition(s.cond)}; {', '.join(update)})"):
            self.statements(s.body)

    def visit_Return(self, s: Return):
        self.emit("return;" if s.value is None else f"return {self.expr(s.value)};")

    def visit_Break(self, s: Break):
        self.emit("break;")

    def visit_Continue(self, s: Continue):
        self.emit("continue;")

    def visit_Label(self, s: Label):
        self.emit(f"// label {s.name}")

    def visit_Goto(self, s: Goto):
        self.emit(f"// goto {s.name}")
        self.gap("goto")
