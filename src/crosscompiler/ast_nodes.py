from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence


class NodeType(str, Enum):
    PROGRAM = "Program"
    FUNCTION_DECLARATION = "FunctionDeclaration"
    VARIABLE_DECLARATION = "VariableDeclaration"
    ASSIGNMENT = "Assignment"
    BINARY_EXPRESSION = "BinaryExpression"
    UNARY_EXPRESSION = "UnaryExpression"
    CALL_EXPRESSION = "CallExpression"
    MEMBER_EXPRESSION = "MemberExpression"
    ARRAY_EXPRESSION = "ArrayExpression"
    IF_STATEMENT = "IfStatement"
    WHILE_STATEMENT = "WhileStatement"
    DO_WHILE_STATEMENT = "DoWhileStatement"
    FOR_STATEMENT = "ForStatement"
    RETURN_STATEMENT = "ReturnStatement"
    BREAK_STATEMENT = "BreakStatement"
    CONTINUE_STATEMENT = "ContinueStatement"
    THROW_STATEMENT = "ThrowStatement"
    TRY_STATEMENT = "TryStatement"
    BLOCK_STATEMENT = "BlockStatement"
    EXPRESSION_STATEMENT = "ExpressionStatement"
    EMPTY_STATEMENT = "EmptyStatement"
    IDENTIFIER = "Identifier"
    LITERAL = "Literal"


EMPTY_ATTRIBUTES: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True, eq=False)
class Node:
    """One AST node. Nodes are immutable once built; `id` is the node's
    index in the owning Ast arena, used to key semantic side tables."""

    id: int
    node_type: NodeType
    value: Any = None
    children: Sequence["Node"] = ()
    attributes: Mapping[str, Any] = field(default_factory=lambda: EMPTY_ATTRIBUTES)
    line: int = 0
    column: int = 0

    def attr(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def child(self, i: int) -> Optional["Node"]:
        return self.children[i] if i < len(self.children) else None


@dataclass
class Ast:
    """Arena owning every node of one parse. The root is the last node made."""

    nodes: List[Node] = field(default_factory=list)
    root: Optional[Node] = None
    language: str = "javascript"

    def make(self, node_type: NodeType, value: Any = None, children: Sequence[Node] = (),
             line: int = 0, column: int = 0, **attributes) -> Node:
        node = Node(
            id=len(self.nodes),
            node_type=node_type,
            value=value,
            children=tuple(children),
            attributes=MappingProxyType(dict(attributes)) if attributes else EMPTY_ATTRIBUTES,
            line=line,
            column=column,
        )
        self.nodes.append(node)
        return node

    def __getitem__(self, node_id: int) -> Node:
        return self.nodes[node_id]

    def __len__(self) -> int:
        return len(self.nodes)

    def walk(self, node: Optional[Node] = None) -> Iterator[Node]:
        """Pre-order traversal from `node` (default: the root)."""
        start = node if node is not None else self.root
        if start is None:
            return
        stack = [start]
        while stack:
            cur = stack.pop()
            yield cur
            stack.extend(reversed(cur.children))


def ast_to_dict(node: Optional[Node]) -> Optional[Dict[str, Any]]:
    """
    Serialize an AST subtree to plain dicts/lists recursively
    """
    if node is None:
        return None
    d: Dict[str, Any] = {"type": node.node_type.value}
    if node.value is not None:
        d["value"] = node.value
    if node.attributes:
        d["attributes"] = {k: list(v) if isinstance(v, tuple) else v for k, v in node.attributes.items()}
    if node.children:
        d["children"] = [ast_to_dict(c) for c in node.children]
    d["line"] = node.line
    d["column"] = node.column
    return d


def format_ast(node: Optional[Node], indent: int = 0) -> str:
    if node is None:
        return ""
    label = node.node_type.value
    if node.value is not None:
        label += f" {node.value!r}"
    extras = [f"{k}={v!r}" for k, v in node.attributes.items() if v not in (None, (), False)]
    if extras:
        label += " [" + ", ".join(extras) + "]"
    lines = ["  " * indent + label]
    for c in node.children:
        lines.append(format_ast(c, indent + 1))
    return "\n".join(lines)
