from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from crosscompiler import kinds
from crosscompiler.ast_nodes import Ast, Node, NodeType
from crosscompiler.symbols import BUILTINS, Scope, Symbol, SymbolTable

logger = logging.getLogger(__name__)

MAX_REFINEMENT_ROUNDS = 32

STRING_METHODS = frozenset({
    "toUpperCase", "toLowerCase", "upper", "lower", "trim", "strip", "substring",
    "charAt", "toString", "concat", "repeat", "replace", "join",
})
LENGTH_MEMBERS = frozenset({"length", "size"})


@dataclass
class Analysis:
    """Result of one analysis run: the symbol table, collected errors and
    side tables keyed by AST node id."""

    symbol_table: SymbolTable
    errors: List[str]
    language: str = "javascript"
    resolved: Dict[int, Symbol] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def symbol_for(self, node: Node) -> Optional[Symbol]:
        return self.resolved.get(node.id)

    def builtin_path(self, node: Node) -> Optional[str]:
        """Dotted name of a member chain rooted at a builtin, e.g. 'System.out.println'."""
        if node.node_type is NodeType.IDENTIFIER:
            sym = self.resolved.get(node.id)
            return node.value if sym is not None and sym.builtin else None
        if node.node_type is NodeType.MEMBER_EXPRESSION and not node.attr("computed"):
            base = self.builtin_path(node.children[0])
            return f"{base}.{node.attr('property')}" if base else None
        return None

    def builtin_entry(self, node: Node) -> Any:
        """The builtin table entry a chain resolves to: a Symbol, a nested
        namespace mapping, a kind string, or None."""
        if node.node_type is NodeType.IDENTIFIER:
            sym = self.resolved.get(node.id)
            return sym if sym is not None and sym.builtin else None
        if node.node_type is NodeType.MEMBER_EXPRESSION and not node.attr("computed"):
            parent = self.builtin_entry(node.children[0])
            members = parent.members if isinstance(parent, Symbol) else parent
            if isinstance(members, Mapping):
                return members.get(node.attr("property"))
        return None

    def kind_of(self, node: Optional[Node]) -> str:
        if node is None:
            return kinds.UNKNOWN
        nt = node.node_type

        if nt is NodeType.LITERAL:
            dt = node.attr("data_type")
            if dt == "number":
                return kinds.of_value(node.value)
            if dt == "string":
                return kinds.STRING
            if dt == "boolean":
                return kinds.BOOLEAN
            return kinds.UNKNOWN

        if nt is NodeType.IDENTIFIER:
            sym = self.resolved.get(node.id)
            if sym is None or sym.builtin:
                return kinds.UNKNOWN
            return sym.kind

        if nt is NodeType.BINARY_EXPRESSION:
            op = node.attr("operator")
            left = self.kind_of(node.children[0])
            right = self.kind_of(node.children[1])
            if op == "/" and self.language in ("c", "java") and left == kinds.INT and right == kinds.INT:
                return kinds.INT
            return kinds.binary_result(op, left, right)

        if nt is NodeType.UNARY_EXPRESSION:
            if node.attr("operator") == "!":
                return kinds.BOOLEAN
            return self.kind_of(node.children[0])

        if nt is NodeType.ASSIGNMENT:
            op = node.attr("operator")
            value = self.kind_of(node.children[1])
            if op == "=":
                return value
            return kinds.binary_result(op[:-1], self.kind_of(node.children[0]), value)

        if nt is NodeType.CALL_EXPRESSION:
            if node.attr("constructor"):
                return kinds.OBJECT
            callee = node.children[0]
            entry = self.builtin_entry(callee)
            if isinstance(entry, Symbol):
                return entry.returns
            if isinstance(entry, str):
                return entry
            if callee.node_type is NodeType.IDENTIFIER:
                sym = self.resolved.get(callee.id)
                return sym.kind if sym is not None and sym.type == "function" else kinds.UNKNOWN
            if callee.node_type is NodeType.MEMBER_EXPRESSION and not callee.attr("computed"):
                prop = callee.attr("property")
                if prop in LENGTH_MEMBERS:
                    return kinds.INT
                if prop in STRING_METHODS:
                    return kinds.STRING
            return kinds.UNKNOWN

        if nt is NodeType.MEMBER_EXPRESSION:
            if node.attr("computed"):
                return kinds.element_of(self.kind_of(node.children[0]))
            entry = self.builtin_entry(node)
            if isinstance(entry, str):
                return entry
            if node.attr("property") in LENGTH_MEMBERS:
                return kinds.INT
            return kinds.UNKNOWN

        if nt is NodeType.ARRAY_EXPRESSION:
            return kinds.array_of(kinds.join_all(self.kind_of(c) for c in node.children))

        return kinds.UNKNOWN


class SemanticAnalyzer:
    def __init__(self, ast: Ast):
        self.ast = ast
        self.language = ast.language
        self.errors: List[str] = []
        self.table = SymbolTable()
        self.global_scope = Scope(level=0)
        self.current_scope = self.global_scope
        self.analysis = Analysis(self.table, self.errors, self.language)
        self.resolved = self.analysis.resolved
        self.taken: Optional[Set[str]] = None

        self.loop_depth = 0
        self.function_stack: List[Symbol] = []

        # Sites feeding kind refinement
        self.assignments: List[Tuple[Symbol, Node]] = []
        self.call_sites: List[Tuple[Symbol, Node]] = []
        self.returns: List[Tuple[Symbol, Node]] = []
        self.functions: List[Symbol] = []

    def error(self, msg: str, node: Optional[Node] = None):
        if node is not None and node.line:
            msg = f"{msg} (line {node.line}, column {node.column})"
        self.errors.append(msg)

    # ---------------- scopes ----------------
    def enter_scope(self):
        self.current_scope = Scope(level=self.current_scope.level + 1, parent=self.current_scope)

    def exit_scope(self):
        self.current_scope = self.current_scope.parent

    def declare(self, name: str, type_name: str, node: Node, kind: str = kinds.UNKNOWN,
                annotated: bool = False, register: bool = True) -> Symbol:
        sym = Symbol(name, type_name, self.current_scope.level, kind=kind, annotated=annotated,
                     line=node.line, column=node.column)
        outer = self.current_scope.lookup(name)
        if not self.current_scope.define(sym):
            self.error(f"Variable '{name}' already declared in current scope", node)
        else:
            self.table.add(sym)
            if outer is not None and type_name not in ("parameter", "function"):
                sym.ir_name = self.fresh_name(name)
        if register:
            self.resolved[node.id] = sym
        return sym

    def fresh_name(self, name: str) -> str:
        """A name no identifier in the program uses, for a shadowing symbol."""
        if self.taken is None:
            self.taken = {n.value for n in self.ast.nodes if isinstance(n.value, str)}
            for n in self.ast.nodes:
                self.taken.update(n.attr("parameters", ()))
        i = 1
        while f"{name}_{i}" in self.taken:
            i += 1
        self.taken.add(f"{name}_{i}")
        return f"{name}_{i}"

    def lookup(self, name: str) -> Optional[Symbol]:
        sym = self.current_scope.lookup(name)
        if sym is None:
            sym = BUILTINS.get(name)
        return sym

    # ---------------- entry ----------------
    def analyze(self) -> Analysis:
        root = self.ast.root
        if root is not None:
            self.visit_statements(root.children)
        self.refine()
        logger.debug("semantic analysis: %d symbols, %d errors", len(self.table), len(self.errors))
        return self.analysis

    def visit_statements(self, nodes):
        # Functions are visible throughout their block; bodies are analyzed
        # once the block's own declarations are known
        pending = []
        for st in nodes:
            if st.node_type is NodeType.FUNCTION_DECLARATION:
                self.declare_function(st)
        for st in nodes:
            if st.node_type is NodeType.FUNCTION_DECLARATION:
                pending.append(st)
            else:
                self.visit(st)
        for st in pending:
            self.analyze_function(st)

    def declare_function(self, node: Node):
        return_type = node.attr("return_type")
        kind = kinds.from_declared(return_type)
        sym = self.declare(node.value, "function", node, kind=kind, annotated=kind != kinds.UNKNOWN)
        self.functions.append(sym)

    def analyze_function(self, node: Node):
        fn = self.resolved[node.id]
        self.enter_scope()
        fn.params = []
        for name, type_name in zip(node.attr("parameters", ()), node.attr("param_types", ())):
            kind = kinds.from_declared(type_name)
            param = self.declare(name, "parameter", node, kind=kind,
                                 annotated=kind != kinds.UNKNOWN, register=False)
            fn.params.append(param)

        saved_depth = self.loop_depth
        self.loop_depth = 0
        self.function_stack.append(fn)
        body = node.children[0]
        self.visit_statements(body.children)
        self.function_stack.pop()
        self.loop_depth = saved_depth
        self.exit_scope()

    # ---------------- walk ----------------
    def visit(self, node: Optional[Node]):
        if node is None:
            return
        nt = node.node_type

        if nt is NodeType.FUNCTION_DECLARATION:
            self.declare_function(node)
            self.analyze_function(node)

        elif nt is NodeType.BLOCK_STATEMENT:
            if node.attr("scoped", True):
                self.enter_scope()
                self.visit_statements(node.children)
                self.exit_scope()
            else:
                self.visit_statements(node.children)

        elif nt is NodeType.VARIABLE_DECLARATION:
            init = node.child(0)
            self.visit(init)
            declared = node.attr("declared_type")
            kind = kinds.from_declared(declared)
            if declared and kind != kinds.UNKNOWN:
                type_name = kinds.semantic_type(kind)
            else:
                type_name = self.infer_type(init)
            sym = self.declare(node.value, type_name, node, kind=kind,
                               annotated=bool(declared) and kind != kinds.UNKNOWN)
            if init is not None:
                self.assignments.append((sym, init))

        elif nt is NodeType.IDENTIFIER:
            sym = self.lookup(node.value)
            if sym is None:
                self.error(f"Undefined variable '{node.value}'", node)
                return
            self.resolved[node.id] = sym
            if not sym.builtin:
                sym.used = True

        elif nt is NodeType.ASSIGNMENT:
            target, value = node.children
            self.visit(target)
            self.visit(value)
            if target.node_type is NodeType.IDENTIFIER:
                sym = self.resolved.get(target.id)
                if sym is not None and sym.builtin:
                    self.error(f"Cannot assign to builtin '{target.value}'", target)
                elif sym is not None:
                    self.assignments.append((sym, node))

        elif nt is NodeType.UNARY_EXPRESSION and node.attr("operator") in ("++", "--"):
            operand = node.children[0]
            self.visit(operand)
            sym = self.resolved.get(operand.id) if operand.node_type is NodeType.IDENTIFIER else None
            if sym is not None and not sym.builtin:
                self.assignments.append((sym, operand))

        elif nt is NodeType.CALL_EXPRESSION:
            for child in node.children:
                self.visit(child)
            callee = node.children[0]
            if callee.node_type is NodeType.IDENTIFIER:
                sym = self.resolved.get(callee.id)
                if sym is not None and not sym.builtin and sym.type == "function":
                    self.call_sites.append((sym, node))

        elif nt is NodeType.MEMBER_EXPRESSION:
            obj = node.children[0]
            self.visit(obj)
            if node.attr("computed"):
                self.visit(node.children[1])
                return
            parent = self.analysis.builtin_entry(obj)
            members = parent.members if isinstance(parent, Symbol) else parent
            prop = node.attr("property")
            if isinstance(members, Mapping) and prop not in members:
                self.error(f"Unknown member '{prop}' on builtin '{self.analysis.builtin_path(obj)}'", node)

        elif nt in (NodeType.WHILE_STATEMENT, NodeType.DO_WHILE_STATEMENT):
            for child in node.children:
                if child.node_type is NodeType.BLOCK_STATEMENT:
                    self.loop_depth += 1
                    self.visit(child)
                    self.loop_depth -= 1
                else:
                    self.visit(child)

        elif nt is NodeType.FOR_STATEMENT:
            init, cond, update, body = node.children
            scoped = node.attr("scoped", True)
            if scoped:
                self.enter_scope()
            self.visit(init)
            self.visit(cond)
            self.visit(update)
            self.loop_depth += 1
            self.visit(body)
            self.loop_depth -= 1
            if scoped:
                self.exit_scope()

        elif nt is NodeType.RETURN_STATEMENT:
            if not self.function_stack:
                self.error("Return statement outside of function", node)
            value = node.child(0)
            self.visit(value)
            if self.function_stack and value is not None:
                self.returns.append((self.function_stack[-1], value))

        elif nt in (NodeType.BREAK_STATEMENT, NodeType.CONTINUE_STATEMENT):
            if self.loop_depth == 0:
                word = "break" if nt is NodeType.BREAK_STATEMENT else "continue"
                self.error(f"'{word}' outside of loop", node)

        elif nt is NodeType.TRY_STATEMENT:
            children = list(node.children)
            self.visit(children.pop(0))
            if node.attr("has_handler"):
                handler = children.pop(0)
                self.enter_scope()
                if node.attr("param"):
                    self.declare(node.attr("param"), "object", handler, kind=kinds.OBJECT, annotated=True)
                self.visit(handler)
                self.exit_scope()
            if node.attr("has_finalizer"):
                self.visit(children.pop(0))

        else:
            # Statements and expressions without scoping rules of their own
            for child in node.children:
                self.visit(child)

    # ---------------- types ----------------
    def infer_type(self, node: Optional[Node]) -> str:
        if node is None:
            return "undefined"
        nt = node.node_type
        if nt is NodeType.LITERAL:
            dt = node.attr("data_type")
            if dt in ("number", "string", "boolean"):
                return dt
            return "undefined"
        if nt is NodeType.BINARY_EXPRESSION:
            op = node.attr("operator")
            if op in kinds.ARITHMETIC_OPS:
                left = self.infer_type(node.children[0])
                right = self.infer_type(node.children[1])
                if op == "+" and "string" in (left, right):
                    return "string"
                return "number"
            if op in kinds.COMPARISON_OPS or op in kinds.LOGICAL_OPS:
                return "boolean"
            return "unknown"
        if nt is NodeType.UNARY_EXPRESSION:
            return "boolean" if node.attr("operator") == "!" else "number"
        if nt is NodeType.IDENTIFIER:
            sym = self.lookup(node.value)
            return sym.type if sym else "unknown"
        if nt is NodeType.ARRAY_EXPRESSION:
            return "object"
        return "unknown"

    # ---------------- kind refinement ----------------
    def refine(self):
        """Propagate storage kinds from initializers, call sites and return
        values until nothing changes."""
        returning = {id(fn) for fn, _ in self.returns}
        for fn in self.functions:
            if not fn.annotated and id(fn) not in returning:
                fn.kind = kinds.VOID

        for _ in range(MAX_REFINEMENT_ROUNDS):
            changed = False
            for sym, node in self.assignments:
                if not sym.annotated:
                    changed |= self.widen(sym, self.analysis.kind_of(node))
            for fn, call in self.call_sites:
                for param, arg in zip(fn.params, call.children[1:]):
                    if not param.annotated:
                        changed |= self.widen(param, self.analysis.kind_of(arg))
            for fn, value in self.returns:
                if not fn.annotated:
                    changed |= self.widen(fn, self.analysis.kind_of(value))
            if not changed:
                break

    @staticmethod
    def widen(sym: Symbol, kind: str) -> bool:
        new = kinds.join(sym.kind, kind)
        if new != sym.kind:
            sym.kind = new
            return True
        return False


def analyze(ast: Ast) -> Analysis:
    return SemanticAnalyzer(ast).analyze()
