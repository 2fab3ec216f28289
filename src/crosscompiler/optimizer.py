from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Set

from crosscompiler import kinds
from crosscompiler.ir import (
    ARITHMETIC_OPS, PURE_OPS, Instruction, IROp, is_builtin, is_temp,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 16
MAX_FOLDED_EXPONENT = 64

# Sentinel for "do not fold"
_NO_FOLD = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _evaluate(op: IROp, a: Any, b: Any) -> Any:
    """Compute a constant arithmetic result. Division and modulo by zero
    yield the left operand. Integer division and modulo are only folded
    where truncating and flooring semantics agree."""
    try:
        if op is IROp.ADD:
            value = a + b
        elif op is IROp.SUB:
            value = a - b
        elif op is IROp.MUL:
            value = a * b
        elif op is IROp.DIV:
            if b == 0:
                return a
            if isinstance(a, int) and isinstance(b, int) and a % b == 0:
                return a // b
            value = a / b
        elif op is IROp.MOD:
            if b == 0:
                return a
            if a < 0 or b < 0:
                return _NO_FOLD
            value = a % b
        elif op is IROp.INT_DIV:
            if b == 0:
                return a
            if (a < 0) != (b < 0) and a % b != 0:
                return _NO_FOLD
            value = a // b
            if isinstance(value, float):
                value = float(int(value))
        elif op is IROp.POW:
            if isinstance(b, int) and not 0 <= b <= MAX_FOLDED_EXPONENT:
                return _NO_FOLD
            value = a ** b
        else:
            return _NO_FOLD
    except (ZeroDivisionError, OverflowError):
        return _NO_FOLD
    if isinstance(value, complex):
        return _NO_FOLD
    if isinstance(value, float) and not math.isfinite(value):
        return _NO_FOLD
    return value


def constant_folding(code: List[Instruction]) -> List[Instruction]:
    consts: Dict[str, Any] = {}
    out: List[Instruction] = []
    for ins in code:
        op = ins.operation
        if op is IROp.LOAD_CONST and is_temp(ins.result):
            consts[ins.result] = ins.arg1
        elif op in ARITHMETIC_OPS and ins.arg1 in consts and ins.arg2 in consts:
            a, b = consts[ins.arg1], consts[ins.arg2]
            if _is_number(a) and _is_number(b):
                value = _evaluate(op, a, b)
                if value is not _NO_FOLD:
                    consts[ins.result] = value
                    out.append(Instruction(IROp.LOAD_CONST, value, None, ins.result))
                    continue
        elif op in (IROp.NEG, IROp.POS) and ins.arg1 in consts and _is_number(consts[ins.arg1]):
            value = -consts[ins.arg1] if op is IROp.NEG else consts[ins.arg1]
            consts[ins.result] = value
            out.append(Instruction(IROp.LOAD_CONST, value, None, ins.result))
            continue
        out.append(ins)
    return out


def dead_code_elimination(code: List[Instruction]) -> List[Instruction]:
    """Drop side-effect-free instructions whose temporary is never read.
    Writes to named variables and every control, call or store
    instruction are kept."""
    used = set()
    for ins in code:
        used.update(ins.uses())
    return [
        ins for ins in code
        if not (ins.operation in PURE_OPS and is_temp(ins.result) and ins.result not in used)
    ]


def copy_propagation(code: List[Instruction]) -> List[Instruction]:
    copies: Dict[str, str] = {}
    out: List[Instruction] = []
    for ins in code:
        op = ins.operation
        if op in (IROp.LABEL, IROp.FUNC_START, IROp.FUNC_END):
            # Another path may reach this point
            copies.clear()
        if copies:
            ins = ins.replace_uses(copies)

        written = _written_name(ins)
        if written is not None:
            for dst in [d for d, src in copies.items() if d == written or src == written]:
                del copies[dst]
        if op in (IROp.CALL, IROp.NEW):
            # Calls may write any named variable
            for dst in [d for d, src in copies.items() if not is_temp(src)]:
                del copies[dst]

        if op is IROp.ASSIGN and is_temp(ins.result) and isinstance(ins.arg1, str) \
                and not is_builtin(ins.arg1) and ins.arg1 != ins.result:
            copies[ins.result] = ins.arg1
        out.append(ins)
    return out


def _written_name(ins: Instruction) -> Optional[str]:
    if ins.operation in (IROp.DECLARE, IROp.CATCH):
        return ins.arg1
    return ins.defines()


def algebraic_simplification(code: List[Instruction]) -> List[Instruction]:
    """Rewrite x+0, x*1, 1*x, x*0 and 0*x. The identities only hold for
    numbers (`s + 0` concatenates), so x must be known numeric: a numeric
    constant, a variable or parameter declared with a numeric kind, or a
    temporary computed from those."""
    consts: Dict[str, Any] = {}
    numeric: Set[str] = set()
    out: List[Instruction] = []

    def known(operand, value) -> bool:
        c = consts.get(operand, None) if isinstance(operand, str) else None
        return _is_number(c) and c == value

    def is_numeric(operand) -> bool:
        return operand in numeric

    for ins in code:
        op = ins.operation
        if op is IROp.DECLARE:
            if ins.arg2 in kinds.NUMERIC:
                numeric.add(ins.arg1)
            else:
                numeric.discard(ins.arg1)
        elif op is IROp.FUNC_START:
            for name, kind in zip(ins.params, ins.types):
                if kind in kinds.NUMERIC:
                    numeric.add(name)
                else:
                    numeric.discard(name)
        elif op is IROp.LOAD_CONST and is_temp(ins.result):
            consts[ins.result] = ins.arg1
        elif op is IROp.ADD and known(ins.arg2, 0) and is_numeric(ins.arg1):
            ins = Instruction(IROp.ASSIGN, ins.arg1, None, ins.result)
        elif op is IROp.MUL:
            if known(ins.arg2, 0) and is_numeric(ins.arg1) or known(ins.arg1, 0) and is_numeric(ins.arg2):
                zero = consts[ins.arg2] if known(ins.arg2, 0) else consts[ins.arg1]
                ins = Instruction(IROp.LOAD_CONST, zero, None, ins.result)
                consts[ins.result] = zero
            elif known(ins.arg2, 1) and is_numeric(ins.arg1):
                ins = Instruction(IROp.ASSIGN, ins.arg1, None, ins.result)
            elif known(ins.arg1, 1) and is_numeric(ins.arg2):
                ins = Instruction(IROp.ASSIGN, ins.arg2, None, ins.result)

        if is_temp(ins.result):
            if ins.operation is IROp.LOAD_CONST and _is_number(ins.arg1) \
                    or ins.operation is IROp.ASSIGN and is_numeric(ins.arg1) \
                    or ins.operation in ARITHMETIC_OPS and is_numeric(ins.arg1) and is_numeric(ins.arg2) \
                    or ins.operation in (IROp.NEG, IROp.POS) and is_numeric(ins.arg1):
                numeric.add(ins.result)
        out.append(ins)
    return out


PASSES = (constant_folding, dead_code_elimination, copy_propagation, algebraic_simplification)


def optimize(instructions: List[Instruction], max_passes: int = DEFAULT_MAX_PASSES) -> List[Instruction]:
    """Run the passes in order, repeating until the list stops changing."""
    code = list(instructions)
    for round_no in range(max_passes):
        before = code
        for opt_pass in PASSES:
            code = opt_pass(code)
        if code == before:
            logger.debug("optimizer reached a fixed point after %d rounds", round_no + 1)
            break
    logger.debug("optimizer: %d -> %d instructions", len(instructions), len(code))
    return code
