from __future__ import annotations

from typing import List, Optional, Set, Tuple

from crosscompiler.ast_nodes import Ast, Node, NodeType
from crosscompiler.lexer import Token, TokenType


class ParseError(SyntaxError):
    def __init__(self, message: str, line: int, column: int):
        super().__init__(f"SyntaxError at line {line}, column {column}: {message}")
        self.message = message
        self.line = line
        self.column = column


def describe(tok: Token) -> str:
    if tok.kind is TokenType.EOF:
        return "end of input"
    if tok.kind is TokenType.NEWLINE:
        return "end of line"
    return f"{tok.kind.value} {tok.value!r}"


class TokenStream:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        if not self.tokens or self.tokens[-1].kind is not TokenType.EOF:
            last = self.tokens[-1] if self.tokens else None
            self.tokens.append(Token(TokenType.EOF, None, last.line if last else 1, last.column if last else 1))
        self.i = 0

    def peek(self, k: int = 0) -> Token:
        j = min(self.i + k, len(self.tokens) - 1)
        return self.tokens[j]

    def at_end(self) -> bool:
        return self.peek().kind is TokenType.EOF

    def advance(self) -> Token:
        tok = self.peek()
        if tok.kind is not TokenType.EOF:
            self.i += 1
        return tok

    def check(self, kind: TokenType, *values, k: int = 0) -> bool:
        tok = self.peek(k)
        return tok.kind is kind and (not values or tok.value in values)

    def match(self, kind: TokenType, *values) -> Optional[Token]:
        if self.check(kind, *values):
            return self.advance()
        return None

    def expect(self, kind: TokenType, *values) -> Token:
        tok = self.peek()
        if not self.check(kind, *values):
            wanted = " or ".join(repr(v) for v in values) if values else kind.value
            raise ParseError(f"Expected {wanted}, got {describe(tok)}", tok.line, tok.column)
        return self.advance()


# Operator tiers, lowest to highest precedence
EQUALITY_OPS = ("==", "!=", "===", "!==")
RELATIONAL_OPS = ("<", ">", "<=", ">=")
ADDITIVE_OPS = ("+", "-")
MULTIPLICATIVE_OPS = ("*", "/", "%", "//")
ASSIGNMENT_OPS = ("=", "+=", "-=", "*=", "/=", "%=")

LITERAL_KEYWORDS = {
    "true": (True, "boolean"), "false": (False, "boolean"),
    "True": (True, "boolean"), "False": (False, "boolean"),
    "null": (None, "null"), "undefined": (None, "null"),
    "NULL": (None, "null"), "None": (None, "null"),
}

TYPE_KEYWORDS = frozenset({
    "int", "float", "double", "char", "void", "long", "short", "bool",
    "boolean", "byte", "unsigned", "signed", "auto", "var",
})
MODIFIER_KEYWORDS = frozenset({
    "public", "private", "protected", "static", "final", "abstract",
    "const", "extern", "register", "volatile",
})
CAST_TARGETS = {"int": "int", "long": "int", "short": "int", "double": "float", "float": "float"}


class Parser:
    """Recursive-descent parser for the brace dialects (C, Java, JavaScript)."""

    def __init__(self, tokens: List[Token], language: str = "javascript"):
        self.language = language
        self.arena = Ast(language=language)
        self.ts = TokenStream(self.prepare(tokens))
        self.loop_counter = 0

    def prepare(self, tokens: List[Token]) -> List[Token]:
        return [t for t in tokens if t.kind not in (TokenType.COMMENT, TokenType.NEWLINE)]

    # ---------------- helpers ----------------
    def node(self, node_type: NodeType, tok: Token, value=None, children=(), **attributes) -> Node:
        return self.arena.make(node_type, value, children, tok.line, tok.column, **attributes)

    def error(self, message: str, tok: Optional[Token] = None):
        tok = tok or self.ts.peek()
        raise ParseError(message, tok.line, tok.column)

    def keyword(self, *values) -> Optional[Token]:
        return self.ts.match(TokenType.KEYWORD, *values)

    def at_keyword(self, *values, k: int = 0) -> bool:
        return self.ts.check(TokenType.KEYWORD, *values, k=k)

    def end_statement(self):
        # Semicolons are optional at the end of a line, as in JavaScript
        self.ts.match(TokenType.SEMICOLON)

    def as_block(self, stmt: Node) -> Node:
        if stmt.node_type is NodeType.BLOCK_STATEMENT:
            return stmt
        return self.arena.make(NodeType.BLOCK_STATEMENT, None, [stmt], stmt.line, stmt.column, scoped=True)

    # ---------------- PROGRAM ----------------
    def parse(self) -> Ast:
        first = self.ts.peek()
        body: List[Node] = []
        while not self.ts.at_end():
            body.extend(self.parse_statements())
        self.arena.root = self.arena.make(NodeType.PROGRAM, None, body, first.line, first.column)
        return self.arena

    def parse_statements(self) -> List[Node]:
        """One source statement; declarations with several declarators and
        flattened class bodies yield more than one node."""
        if self.at_class():
            return self.parse_class()
        if self.at_declaration():
            return self.parse_typed_declaration()
        if self.language == "javascript" and self.at_keyword("let", "const", "var"):
            return self.parse_let()
        stmt = self.parse_statement()
        if stmt.node_type is NodeType.EMPTY_STATEMENT:
            return []
        return [stmt]

    def parse_block(self) -> Node:
        t = self.ts.expect(TokenType.LBRACE)
        body: List[Node] = []
        while not self.ts.check(TokenType.RBRACE):
            if self.ts.at_end():
                self.error("Expected '}' before end of input")
            body.extend(self.parse_statements())
        self.ts.expect(TokenType.RBRACE)
        return self.node(NodeType.BLOCK_STATEMENT, t, None, body, scoped=True)

    def parse_body(self) -> Node:
        if self.ts.check(TokenType.LBRACE):
            return self.parse_block()
        stmts = self.parse_statements()
        tok = self.ts.peek()
        if len(stmts) == 1:
            return self.as_block(stmts[0])
        return self.node(NodeType.BLOCK_STATEMENT, tok, None, stmts, scoped=True)

    # ---------------- STATEMENTS ----------------
    def parse_statement(self) -> Node:
        tok = self.ts.peek()

        if tok.kind is TokenType.LBRACE:
            return self.parse_block()
        if tok.kind is TokenType.SEMICOLON:
            self.ts.advance()
            return self.node(NodeType.EMPTY_STATEMENT, tok)

        if tok.kind is TokenType.KEYWORD:
            kw = tok.value
            if kw == "function":
                return self.parse_function()
            if kw == "if":
                return self.parse_if()
            if kw == "while":
                return self.parse_while()
            if kw == "do":
                return self.parse_do_while()
            if kw == "for":
                return self.parse_for()
            if kw == "return":
                self.ts.advance()
                children = []
                if not self.ts.check(TokenType.SEMICOLON) and not self.ts.check(TokenType.RBRACE) and not self.ts.at_end():
                    children.append(self.parse_expression())
                self.end_statement()
                return self.node(NodeType.RETURN_STATEMENT, tok, None, children)
            if kw in ("break", "continue"):
                self.ts.advance()
                self.end_statement()
                kind = NodeType.BREAK_STATEMENT if kw == "break" else NodeType.CONTINUE_STATEMENT
                return self.node(kind, tok)
            if kw == "throw":
                self.ts.advance()
                value = self.parse_expression()
                self.end_statement()
                return self.node(NodeType.THROW_STATEMENT, tok, None, [value])
            if kw == "try":
                return self.parse_try()
            if kw in ("import", "package"):
                while not self.ts.check(TokenType.SEMICOLON) and not self.ts.at_end():
                    self.ts.advance()
                self.end_statement()
                return self.node(NodeType.EMPTY_STATEMENT, tok)
            if kw == "export":
                self.ts.advance()
                return self.parse_statement()
            if kw == "switch":
                self.error("switch statements are not supported", tok)

        expr = self.parse_expression()
        self.end_statement()
        return self.node(NodeType.EXPRESSION_STATEMENT, tok, None, [expr])

    # ---------------- DECLARATIONS ----------------
    def at_class(self) -> bool:
        k = 0
        while self.at_keyword(*MODIFIER_KEYWORDS, k=k):
            k += 1
        return self.at_keyword("class", k=k)

    def at_declaration(self) -> bool:
        if self.language not in ("c", "java"):
            return False
        tok = self.ts.peek()
        if tok.kind is TokenType.KEYWORD:
            return tok.value in TYPE_KEYWORDS or tok.value in MODIFIER_KEYWORDS
        if tok.kind is TokenType.IDENTIFIER:
            # `String name`, `Foo[] items`
            if self.ts.check(TokenType.IDENTIFIER, k=1):
                return True
            return (self.ts.check(TokenType.LBRACKET, k=1) and self.ts.check(TokenType.RBRACKET, k=2)
                    and self.ts.check(TokenType.IDENTIFIER, k=3))
        return False

    def parse_type(self) -> Optional[str]:
        """Modifiers, a base type, pointer stars and array brackets."""
        while self.ts.peek().kind is TokenType.KEYWORD and self.ts.peek().value in MODIFIER_KEYWORDS:
            self.ts.advance()
        parts: List[str] = []
        while self.ts.peek().kind is TokenType.KEYWORD and self.ts.peek().value in TYPE_KEYWORDS:
            parts.append(self.ts.advance().value)
        if not parts:
            tok = self.ts.expect(TokenType.IDENTIFIER)
            parts.append(tok.value)
        base = [p for p in parts if p not in ("unsigned", "signed")] or ["int"]
        type_name = base[-1] if base[-1] != "long" or len(base) == 1 else "long"
        if type_name in ("auto", "var"):
            type_name = None
        while self.ts.match(TokenType.ARITHMETIC, "*"):
            type_name = (type_name or "void") + "*"
        while self.ts.check(TokenType.LBRACKET) and self.ts.check(TokenType.RBRACKET, k=1):
            self.ts.advance()
            self.ts.advance()
            type_name = (type_name or "int") + "[]"
        return type_name

    def parse_array_suffix(self, type_name: Optional[str]) -> Optional[str]:
        while self.ts.match(TokenType.LBRACKET):
            if not self.ts.check(TokenType.RBRACKET):
                self.parse_expression()
            self.ts.expect(TokenType.RBRACKET)
            type_name = (type_name or "int") + "[]"
        return type_name

    def parse_typed_declaration(self) -> List[Node]:
        start = self.ts.peek()
        type_name = self.parse_type()
        name_tok = self.ts.expect(TokenType.IDENTIFIER)

        if self.ts.check(TokenType.LPAREN):
            fn = self.parse_function_rest(name_tok, return_type=type_name, typed=True)
            return [fn] if fn is not None else []

        declaration = "const" if start.kind is TokenType.KEYWORD and start.value in ("const", "final") else "typed"
        decls = [self.parse_declarator(name_tok, type_name, declaration)]
        while self.ts.match(TokenType.COMMA):
            decls.append(self.parse_declarator(self.ts.expect(TokenType.IDENTIFIER), type_name, declaration))
        self.end_statement()
        return decls

    def parse_declarator(self, name_tok: Token, type_name: Optional[str], declaration: str) -> Node:
        type_name = self.parse_array_suffix(type_name)
        children = []
        if self.ts.match(TokenType.ASSIGNMENT, "="):
            if self.ts.check(TokenType.LBRACE):
                children.append(self.parse_initializer_list())
            else:
                children.append(self.parse_assignment())
        return self.node(NodeType.VARIABLE_DECLARATION, name_tok, name_tok.value, children,
                         declared_type=type_name, declaration=declaration)

    def parse_initializer_list(self) -> Node:
        t = self.ts.expect(TokenType.LBRACE)
        items = []
        while not self.ts.check(TokenType.RBRACE):
            items.append(self.parse_initializer_list() if self.ts.check(TokenType.LBRACE) else self.parse_assignment())
            if not self.ts.match(TokenType.COMMA):
                break
        self.ts.expect(TokenType.RBRACE)
        return self.node(NodeType.ARRAY_EXPRESSION, t, None, items)

    def parse_let(self) -> List[Node]:
        kw = self.ts.advance()
        name_tok = self.ts.expect(TokenType.IDENTIFIER)
        if self.ts.check(TokenType.ASSIGNMENT, "=") and self.at_arrow_function(1):
            self.ts.advance()
            fn = self.parse_arrow_function(name_tok)
            self.end_statement()
            return [fn]
        decls = [self.parse_declarator(name_tok, None, kw.value)]
        while self.ts.match(TokenType.COMMA):
            decls.append(self.parse_declarator(self.ts.expect(TokenType.IDENTIFIER), None, kw.value))
        self.end_statement()
        return decls

    def at_arrow_function(self, k: int) -> bool:
        if self.ts.check(TokenType.IDENTIFIER, k=k):
            return self.ts.check(TokenType.ASSIGNMENT, "=>", k=k + 1)
        if not self.ts.check(TokenType.LPAREN, k=k):
            return False
        depth = 0
        j = k
        while True:
            tok = self.ts.peek(j)
            if tok.kind is TokenType.EOF:
                return False
            if tok.kind is TokenType.LPAREN:
                depth += 1
            elif tok.kind is TokenType.RPAREN:
                depth -= 1
                if depth == 0:
                    return self.ts.check(TokenType.ASSIGNMENT, "=>", k=j + 1)
            j += 1

    def parse_arrow_function(self, name_tok: Token) -> Node:
        params: List[str] = []
        if self.ts.match(TokenType.LPAREN):
            while not self.ts.check(TokenType.RPAREN):
                params.append(self.ts.expect(TokenType.IDENTIFIER).value)
                if not self.ts.match(TokenType.COMMA):
                    break
            self.ts.expect(TokenType.RPAREN)
        else:
            params.append(self.ts.expect(TokenType.IDENTIFIER).value)
        arrow = self.ts.expect(TokenType.ASSIGNMENT, "=>")
        if self.ts.check(TokenType.LBRACE):
            body = self.parse_block()
        else:
            value = self.parse_assignment()
            ret = self.node(NodeType.RETURN_STATEMENT, arrow, None, [value])
            body = self.node(NodeType.BLOCK_STATEMENT, arrow, None, [ret], scoped=True)
        return self.node(NodeType.FUNCTION_DECLARATION, name_tok, name_tok.value, [body],
                         parameters=tuple(params), param_types=(None,) * len(params), return_type=None)

    def parse_function(self) -> Node:
        self.keyword("function")
        name_tok = self.ts.expect(TokenType.IDENTIFIER)
        return self.parse_function_rest(name_tok, return_type=None, typed=False)

    def parse_function_rest(self, name_tok: Token, return_type: Optional[str], typed: bool) -> Optional[Node]:
        self.ts.expect(TokenType.LPAREN)
        names: List[str] = []
        types: List[Optional[str]] = []
        if self.ts.check(TokenType.KEYWORD, "void") and self.ts.check(TokenType.RPAREN, k=1):
            self.ts.advance()
        while not self.ts.check(TokenType.RPAREN):
            ptype = self.parse_type() if typed else None
            pname = self.ts.expect(TokenType.IDENTIFIER)
            if typed:
                ptype = self.parse_array_suffix(ptype)
            names.append(pname.value)
            types.append(ptype)
            if not self.ts.match(TokenType.COMMA):
                break
        self.ts.expect(TokenType.RPAREN)
        if typed:
            while self.keyword("throws"):
                self.ts.expect(TokenType.IDENTIFIER)
                while self.ts.match(TokenType.COMMA):
                    self.ts.expect(TokenType.IDENTIFIER)
        if self.ts.match(TokenType.SEMICOLON):
            # Prototype: the definition comes later
            return None
        body = self.parse_block()
        return self.node(NodeType.FUNCTION_DECLARATION, name_tok, name_tok.value, [body],
                         parameters=tuple(names), param_types=tuple(types), return_type=return_type)

    def parse_class(self) -> List[Node]:
        """Java-style class wrapper: methods and fields become top-level declarations."""
        while self.keyword(*MODIFIER_KEYWORDS):
            pass
        self.keyword("class")
        self.ts.expect(TokenType.IDENTIFIER)
        if self.keyword("extends"):
            self.ts.expect(TokenType.IDENTIFIER)
        if self.keyword("implements"):
            self.ts.expect(TokenType.IDENTIFIER)
            while self.ts.match(TokenType.COMMA):
                self.ts.expect(TokenType.IDENTIFIER)
        self.ts.expect(TokenType.LBRACE)
        members: List[Node] = []
        while not self.ts.check(TokenType.RBRACE):
            if self.ts.at_end():
                self.error("Expected '}' before end of input")
            members.extend(self.parse_statements())
        self.ts.expect(TokenType.RBRACE)
        return members

    # ---------------- CONTROL FLOW ----------------
    def parse_condition(self) -> Node:
        self.ts.expect(TokenType.LPAREN)
        cond = self.parse_expression()
        self.ts.expect(TokenType.RPAREN)
        return cond

    def parse_if(self) -> Node:
        t = self.keyword("if")
        cond = self.parse_condition()
        then_block = self.parse_body()
        children = [cond, then_block]
        if self.keyword("else"):
            children.append(self.parse_body())
        return self.node(NodeType.IF_STATEMENT, t, None, children)

    def parse_while(self) -> Node:
        t = self.keyword("while")
        cond = self.parse_condition()
        body = self.parse_body()
        return self.node(NodeType.WHILE_STATEMENT, t, None, [cond, body])

    def parse_do_while(self) -> Node:
        t = self.keyword("do")
        body = self.parse_body()
        if not self.keyword("while"):
            self.error(f"Expected 'while' after do-block, got {describe(self.ts.peek())}")
        cond = self.parse_condition()
        self.end_statement()
        return self.node(NodeType.DO_WHILE_STATEMENT, t, None, [body, cond])

    def parse_for(self) -> Node:
        t = self.keyword("for")
        self.ts.expect(TokenType.LPAREN)

        iteration = self.try_parse_iteration_header(t)
        if iteration is not None:
            var_tok, iterable, declared_type = iteration
            self.ts.expect(TokenType.RPAREN)
            body = self.parse_body()
            return self.lower_iteration(t, var_tok, iterable, body, declare=True,
                                        declared_type=declared_type, scoped=True)

        if self.ts.check(TokenType.SEMICOLON):
            init = self.node(NodeType.EMPTY_STATEMENT, self.ts.peek())
        elif self.at_declaration():
            decls = self.parse_typed_declaration_header()
            init = decls
        elif self.language == "javascript" and self.at_keyword("let", "const", "var"):
            kw = self.ts.advance()
            init = self.parse_declarator(self.ts.expect(TokenType.IDENTIFIER), None, kw.value)
        else:
            expr = self.parse_expression()
            init = self.node(NodeType.EXPRESSION_STATEMENT, t, None, [expr])
        self.ts.expect(TokenType.SEMICOLON)

        if self.ts.check(TokenType.SEMICOLON):
            cond = self.node(NodeType.LITERAL, t, True, data_type="boolean")
        else:
            cond = self.parse_expression()
        self.ts.expect(TokenType.SEMICOLON)

        if self.ts.check(TokenType.RPAREN):
            update = self.node(NodeType.EMPTY_STATEMENT, self.ts.peek())
        else:
            expr = self.parse_expression()
            update = self.node(NodeType.EXPRESSION_STATEMENT, t, None, [expr])
        self.ts.expect(TokenType.RPAREN)

        body = self.parse_body()
        return self.node(NodeType.FOR_STATEMENT, t, None, [init, cond, update, body], scoped=True)

    def parse_typed_declaration_header(self) -> Node:
        type_name = self.parse_type()
        name_tok = self.ts.expect(TokenType.IDENTIFIER)
        decl = self.parse_declarator(name_tok, type_name, "typed")
        if self.ts.check(TokenType.COMMA):
            self.error("Declaring several loop variables is not supported")
        return decl

    def try_parse_iteration_header(self, for_tok: Token) -> Optional[Tuple[Token, Node, Optional[str]]]:
        """`for (const x of items)` and Java's `for (int x : items)`."""
        save = self.ts.i
        declared_type = None
        if self.language == "javascript" and self.at_keyword("let", "const", "var"):
            self.ts.advance()
        elif self.language == "java" and self.at_declaration():
            declared_type = self.parse_type()
        if self.ts.check(TokenType.IDENTIFIER):
            var_tok = self.ts.advance()
            if self.ts.match(TokenType.IDENTIFIER, "of") or (self.language == "java" and self.ts.match(TokenType.COLON)):
                return var_tok, self.parse_expression(), declared_type
            if self.at_keyword("in") or self.ts.check(TokenType.IDENTIFIER, "in"):
                self.error("for...in loops are not supported", for_tok)
        self.ts.i = save
        return None

    def lower_iteration(self, t: Token, var_tok: Token, iterable: Node, body: Node, declare: bool,
                        declared_type: Optional[str], scoped: bool) -> Node:
        """Rewrite `for x in items` into an index loop over `items`."""
        n = self.loop_counter
        self.loop_counter += 1
        index = f"_i{n}"
        prefix: List[Node] = []
        if iterable.node_type is not NodeType.IDENTIFIER:
            seq_name = f"_seq{n}"
            prefix.append(self.node(NodeType.VARIABLE_DECLARATION, t, seq_name, [iterable],
                                    declared_type=None, declaration="implicit"))
            iterable = self.node(NodeType.IDENTIFIER, t, seq_name)
        seq = lambda: self.node(NodeType.IDENTIFIER, t, iterable.value)
        ident = lambda name: self.node(NodeType.IDENTIFIER, t, name)
        num = lambda v: self.node(NodeType.LITERAL, t, v, data_type="number")

        init = self.node(NodeType.VARIABLE_DECLARATION, t, index, [num(0)],
                         declared_type="int", declaration="implicit")
        length = self.node(NodeType.CALL_EXPRESSION, t, None, [ident("len"), seq()], constructor=False)
        cond = self.node(NodeType.BINARY_EXPRESSION, t, None, [ident(index), length], operator="<")
        step = self.node(NodeType.BINARY_EXPRESSION, t, None, [ident(index), num(1)], operator="+")
        update = self.node(NodeType.EXPRESSION_STATEMENT, t, None,
                           [self.node(NodeType.ASSIGNMENT, t, None, [ident(index), step], operator="=")])
        element = self.node(NodeType.MEMBER_EXPRESSION, t, None, [seq(), ident(index)], computed=True, property=None)
        if declare:
            bind = self.node(NodeType.VARIABLE_DECLARATION, var_tok, var_tok.value, [element],
                             declared_type=declared_type, declaration="implicit")
        else:
            bind = self.node(NodeType.EXPRESSION_STATEMENT, var_tok, None,
                             [self.node(NodeType.ASSIGNMENT, var_tok, None, [ident(var_tok.value), element], operator="=")])
        loop_body = self.node(NodeType.BLOCK_STATEMENT, t, None, [bind] + list(body.children), scoped=scoped)
        loop = self.node(NodeType.FOR_STATEMENT, t, None, [init, cond, update, loop_body], scoped=scoped)
        if not prefix:
            return loop
        return self.node(NodeType.BLOCK_STATEMENT, t, None, prefix + [loop], scoped=scoped)

    def parse_try(self) -> Node:
        t = self.keyword("try")
        block = self.parse_block()
        children = [block]
        param = None
        has_handler = False
        has_finalizer = False
        if self.keyword("catch"):
            has_handler = True
            if self.ts.match(TokenType.LPAREN):
                if self.ts.check(TokenType.IDENTIFIER) and self.ts.check(TokenType.IDENTIFIER, k=1):
                    self.ts.advance()
                param = self.ts.expect(TokenType.IDENTIFIER).value
                self.ts.expect(TokenType.RPAREN)
            children.append(self.parse_block())
        if self.keyword("finally"):
            has_finalizer = True
            children.append(self.parse_block())
        if not has_handler and not has_finalizer:
            self.error("Expected 'catch' or 'finally' after try block")
        return self.node(NodeType.TRY_STATEMENT, t, None, children,
                         param=param, has_handler=has_handler, has_finalizer=has_finalizer)

    # ---------------- EXPRESSIONS (precedence) ----------------
    def parse_expression(self) -> Node:
        return self.parse_assignment()

    def parse_assignment(self) -> Node:
        expr = self.parse_logical_or()
        tok = self.ts.peek()
        if tok.kind is TokenType.ASSIGNMENT and tok.value in ASSIGNMENT_OPS:
            if expr.node_type not in (NodeType.IDENTIFIER, NodeType.MEMBER_EXPRESSION):
                self.error("Invalid assignment target", tok)
            self.ts.advance()
            value = self.parse_assignment()
            return self.node(NodeType.ASSIGNMENT, tok, None, [expr, value], operator=tok.value)
        if tok.kind is TokenType.ASSIGNMENT and tok.value == "=>":
            self.error("Arrow functions are only supported as declarations", tok)
        if tok.kind is TokenType.QUESTION:
            self.error("Conditional expressions are not supported", tok)
        return expr

    def binary(self, tok: Token, op: str, left: Node, right: Node) -> Node:
        return self.node(NodeType.BINARY_EXPRESSION, tok, None, [left, right], operator=op)

    def parse_logical_or(self) -> Node:
        expr = self.parse_logical_and()
        while True:
            tok = self.ts.peek()
            if self.ts.match(TokenType.LOGICAL, "||") or self.keyword("or"):
                expr = self.binary(tok, "||", expr, self.parse_logical_and())
            else:
                return expr

    def parse_logical_and(self) -> Node:
        expr = self.parse_logical_not()
        while True:
            tok = self.ts.peek()
            if self.ts.match(TokenType.LOGICAL, "&&") or self.keyword("and"):
                expr = self.binary(tok, "&&", expr, self.parse_logical_not())
            else:
                return expr

    def parse_logical_not(self) -> Node:
        return self.parse_equality()

    def parse_equality(self) -> Node:
        expr = self.parse_relational()
        while self.ts.check(TokenType.COMPARISON, *EQUALITY_OPS):
            tok = self.ts.advance()
            expr = self.binary(tok, tok.value, expr, self.parse_relational())
        return expr

    def parse_relational(self) -> Node:
        expr = self.parse_additive()
        while self.ts.check(TokenType.COMPARISON, *RELATIONAL_OPS):
            tok = self.ts.advance()
            expr = self.binary(tok, tok.value, expr, self.parse_additive())
        return expr

    def parse_additive(self) -> Node:
        expr = self.parse_multiplicative()
        while self.ts.check(TokenType.ARITHMETIC, *ADDITIVE_OPS):
            tok = self.ts.advance()
            expr = self.binary(tok, tok.value, expr, self.parse_multiplicative())
        return expr

    def parse_multiplicative(self) -> Node:
        expr = self.parse_unary()
        while self.ts.check(TokenType.ARITHMETIC, *MULTIPLICATIVE_OPS):
            tok = self.ts.advance()
            expr = self.binary(tok, tok.value, expr, self.parse_unary())
        return expr

    def parse_unary(self) -> Node:
        tok = self.ts.peek()
        if (tok.kind is TokenType.ARITHMETIC and tok.value in ("-", "+")) or \
                (tok.kind is TokenType.UNARY and tok.value == "!"):
            self.ts.advance()
            operand = self.parse_unary()
            return self.node(NodeType.UNARY_EXPRESSION, tok, None, [operand], operator=tok.value, prefix=True)
        if tok.kind is TokenType.UNARY and tok.value in ("++", "--"):
            self.ts.advance()
            operand = self.parse_unary()
            if operand.node_type not in (NodeType.IDENTIFIER, NodeType.MEMBER_EXPRESSION):
                self.error(f"Invalid operand for {tok.value}", tok)
            return self.node(NodeType.UNARY_EXPRESSION, tok, None, [operand], operator=tok.value, prefix=True)
        return self.parse_power()

    def parse_power(self) -> Node:
        base = self.parse_postfix()
        tok = self.ts.peek()
        if self.ts.match(TokenType.ARITHMETIC, "**"):
            return self.binary(tok, "**", base, self.parse_unary())
        return base

    def parse_postfix(self) -> Node:
        expr = self.parse_primary()
        while True:
            tok = self.ts.peek()
            if self.ts.match(TokenType.LPAREN):
                args = self.parse_arguments()
                expr = self.node(NodeType.CALL_EXPRESSION, tok, None, [expr] + args, constructor=False)
            elif self.ts.match(TokenType.DOT):
                name = self.ts.advance()
                if name.kind not in (TokenType.IDENTIFIER, TokenType.KEYWORD):
                    self.error(f"Expected property name, got {describe(name)}", name)
                expr = self.node(NodeType.MEMBER_EXPRESSION, tok, None, [expr], computed=False, property=name.value)
            elif self.ts.match(TokenType.LBRACKET):
                index = self.parse_expression()
                self.ts.expect(TokenType.RBRACKET)
                expr = self.node(NodeType.MEMBER_EXPRESSION, tok, None, [expr, index], computed=True, property=None)
            elif tok.kind is TokenType.UNARY and tok.value in ("++", "--") and self.language != "python":
                if expr.node_type not in (NodeType.IDENTIFIER, NodeType.MEMBER_EXPRESSION):
                    self.error(f"Invalid operand for {tok.value}", tok)
                self.ts.advance()
                expr = self.node(NodeType.UNARY_EXPRESSION, tok, None, [expr], operator=tok.value, prefix=False)
            else:
                return expr

    def parse_arguments(self) -> List[Node]:
        args: List[Node] = []
        while not self.ts.check(TokenType.RPAREN):
            args.append(self.parse_assignment())
            if not self.ts.match(TokenType.COMMA):
                break
        self.ts.expect(TokenType.RPAREN)
        return args

    def parse_primary(self) -> Node:
        tok = self.ts.peek()

        if tok.kind is TokenType.NUMBER:
            self.ts.advance()
            return self.node(NodeType.LITERAL, tok, tok.value, data_type="number")
        if tok.kind is TokenType.STRING:
            self.ts.advance()
            return self.node(NodeType.LITERAL, tok, tok.value, data_type="string")
        if tok.kind is TokenType.IDENTIFIER:
            self.ts.advance()
            return self.node(NodeType.IDENTIFIER, tok, tok.value)
        if tok.kind is TokenType.KEYWORD:
            if tok.value in LITERAL_KEYWORDS:
                self.ts.advance()
                value, data_type = LITERAL_KEYWORDS[tok.value]
                return self.node(NodeType.LITERAL, tok, value, data_type=data_type)
            if tok.value == "new":
                return self.parse_new()
        if tok.kind is TokenType.LPAREN:
            self.ts.advance()
            cast = self.try_parse_cast(tok)
            if cast is not None:
                return cast
            expr = self.parse_expression()
            self.ts.expect(TokenType.RPAREN)
            return expr
        if tok.kind is TokenType.LBRACKET:
            self.ts.advance()
            items: List[Node] = []
            while not self.ts.check(TokenType.RBRACKET):
                items.append(self.parse_assignment())
                if not self.ts.match(TokenType.COMMA):
                    break
            self.ts.expect(TokenType.RBRACKET)
            return self.node(NodeType.ARRAY_EXPRESSION, tok, None, items)

        self.error(f"Unexpected {describe(tok)} in expression", tok)

    def try_parse_cast(self, lparen: Token) -> Optional[Node]:
        """C/Java casts: `(int) x` becomes a call to the int conversion builtin."""
        tok = self.ts.peek()
        if self.language not in ("c", "java") or tok.kind is not TokenType.KEYWORD or tok.value not in TYPE_KEYWORDS:
            return None
        if not self.ts.check(TokenType.RPAREN, k=1):
            return None
        self.ts.advance()
        self.ts.advance()
        operand = self.parse_unary()
        target = CAST_TARGETS.get(tok.value)
        if target is None:
            return operand
        callee = self.node(NodeType.IDENTIFIER, tok, target)
        return self.node(NodeType.CALL_EXPRESSION, lparen, None, [callee, operand], constructor=False)

    def parse_new(self) -> Node:
        t = self.keyword("new")
        tok = self.ts.peek()
        if tok.kind is TokenType.KEYWORD and tok.value in TYPE_KEYWORDS or \
                (tok.kind is TokenType.IDENTIFIER and self.ts.check(TokenType.LBRACKET, k=1)):
            # new int[]{1, 2, 3}
            self.ts.advance()
            self.ts.expect(TokenType.LBRACKET)
            if not self.ts.check(TokenType.RBRACKET):
                self.error("Sized array allocation is not supported", tok)
            self.ts.expect(TokenType.RBRACKET)
            return self.parse_initializer_list()
        name = self.ts.expect(TokenType.IDENTIFIER)
        callee = self.node(NodeType.IDENTIFIER, name, name.value)
        args: List[Node] = []
        if self.ts.match(TokenType.LPAREN):
            args = self.parse_arguments()
        return self.node(NodeType.CALL_EXPRESSION, t, None, [callee] + args, constructor=True)


class IndentParser(Parser):
    """Parser for the indentation-sensitive Python dialect."""

    def __init__(self, tokens: List[Token], language: str = "python"):
        super().__init__(tokens, language)
        # Names bound so far, module level first then one set per enclosing def
        self.bound: List[Set[str]] = [set()]

    def prepare(self, tokens: List[Token]) -> List[Token]:
        out: List[Token] = []
        depth = 0
        for tok in tokens:
            if tok.kind is TokenType.COMMENT:
                continue
            if tok.kind in (TokenType.LPAREN, TokenType.LBRACKET, TokenType.LBRACE):
                depth += 1
            elif tok.kind in (TokenType.RPAREN, TokenType.RBRACKET, TokenType.RBRACE):
                depth = max(0, depth - 1)
            elif tok.kind is TokenType.NEWLINE:
                # Implicit line joining inside brackets; blank lines collapse
                if depth > 0 or not out or out[-1].kind is TokenType.NEWLINE:
                    continue
            out.append(tok)
        return out

    def is_bound(self, name: str) -> bool:
        return name in self.bound[-1]

    def bind(self, name: str):
        self.bound[-1].add(name)

    def end_statement(self):
        if self.ts.match(TokenType.SEMICOLON):
            if not self.ts.check(TokenType.NEWLINE) and not self.ts.at_end():
                return
        if not self.ts.match(TokenType.NEWLINE) and not self.ts.at_end():
            tok = self.ts.peek()
            self.error(f"Expected end of line, got {describe(tok)}", tok)

    def parse(self) -> Ast:
        first = self.ts.peek()
        body: List[Node] = []
        indent = first.column
        while not self.ts.at_end():
            tok = self.ts.peek()
            if tok.column != indent:
                self.error("Unexpected indent", tok)
            body.extend(self.parse_statements())
        self.arena.root = self.arena.make(NodeType.PROGRAM, None, body, first.line, first.column)
        return self.arena

    def parse_statements(self) -> List[Node]:
        stmt = self.parse_statement()
        if stmt.node_type is NodeType.EMPTY_STATEMENT:
            return []
        return [stmt]

    def parse_suite(self, header: Token) -> Node:
        """The indented block after a ':' (or a simple statement on the same line)."""
        colon = self.ts.expect(TokenType.COLON)
        if not self.ts.match(TokenType.NEWLINE):
            stmts = self.parse_statements()
            return self.node(NodeType.BLOCK_STATEMENT, colon, None, stmts, scoped=False)
        first = self.ts.peek()
        if first.kind is TokenType.EOF or first.column <= header.column:
            self.error("Expected an indented block", first)
        indent = first.column
        body: List[Node] = []
        while not self.ts.at_end():
            tok = self.ts.peek()
            if tok.column < indent:
                if tok.column > header.column:
                    self.error("Unindent does not match any outer indentation level", tok)
                break
            if tok.column > indent:
                self.error("Unexpected indent", tok)
            body.extend(self.parse_statements())
        return self.node(NodeType.BLOCK_STATEMENT, first, None, body, scoped=False)

    # ---------------- STATEMENTS ----------------
    def parse_statement(self) -> Node:
        tok = self.ts.peek()
        if tok.kind is TokenType.KEYWORD:
            kw = tok.value
            if kw == "def":
                return self.parse_def()
            if kw == "if":
                return self.parse_if()
            if kw == "while":
                self.ts.advance()
                cond = self.parse_expression()
                body = self.parse_suite(tok)
                return self.node(NodeType.WHILE_STATEMENT, tok, None, [cond, body])
            if kw == "for":
                return self.parse_for()
            if kw == "return":
                self.ts.advance()
                children = []
                if not self.ts.check(TokenType.NEWLINE) and not self.ts.at_end():
                    children.append(self.parse_expression())
                self.end_statement()
                return self.node(NodeType.RETURN_STATEMENT, tok, None, children)
            if kw in ("break", "continue"):
                self.ts.advance()
                self.end_statement()
                kind = NodeType.BREAK_STATEMENT if kw == "break" else NodeType.CONTINUE_STATEMENT
                return self.node(kind, tok)
            if kw == "pass":
                self.ts.advance()
                self.end_statement()
                return self.node(NodeType.EMPTY_STATEMENT, tok)
            if kw == "raise":
                self.ts.advance()
                children = []
                if not self.ts.check(TokenType.NEWLINE) and not self.ts.at_end():
                    children.append(self.parse_expression())
                self.end_statement()
                return self.node(NodeType.THROW_STATEMENT, tok, None, children)
            if kw == "try":
                return self.parse_try()
            if kw in ("import", "from"):
                while not self.ts.check(TokenType.NEWLINE) and not self.ts.at_end():
                    self.ts.advance()
                self.end_statement()
                return self.node(NodeType.EMPTY_STATEMENT, tok)
            if kw == "global":
                self.ts.advance()
                self.bind(self.ts.expect(TokenType.IDENTIFIER).value)
                while self.ts.match(TokenType.COMMA):
                    self.bind(self.ts.expect(TokenType.IDENTIFIER).value)
                self.end_statement()
                return self.node(NodeType.EMPTY_STATEMENT, tok)
            if kw in ("class", "with", "lambda", "yield", "del"):
                self.error(f"'{kw}' is not supported", tok)

        # annotated declaration: name: type [= value]
        if tok.kind is TokenType.IDENTIFIER and self.ts.check(TokenType.COLON, k=1):
            self.ts.advance()
            self.ts.advance()
            type_name = self.parse_annotation()
            children = []
            if self.ts.match(TokenType.ASSIGNMENT, "="):
                children.append(self.parse_expression())
            self.end_statement()
            if self.is_bound(tok.value):
                if not children:
                    return self.node(NodeType.EMPTY_STATEMENT, tok)
                target = self.node(NodeType.IDENTIFIER, tok, tok.value)
                assign = self.node(NodeType.ASSIGNMENT, tok, None, [target, children[0]], operator="=")
                return self.node(NodeType.EXPRESSION_STATEMENT, tok, None, [assign])
            self.bind(tok.value)
            return self.node(NodeType.VARIABLE_DECLARATION, tok, tok.value, children,
                             declared_type=type_name, declaration="typed")

        stmt = self.parse_simple_statement(tok)
        self.end_statement()
        return stmt

    def parse_simple_statement(self, tok: Token) -> Node:
        target = self.parse_logical_or()
        op = self.ts.peek()
        if op.kind is TokenType.ASSIGNMENT and op.value in ASSIGNMENT_OPS:
            if target.node_type not in (NodeType.IDENTIFIER, NodeType.MEMBER_EXPRESSION):
                self.error("Invalid assignment target", op)
            self.ts.advance()
            value = self.parse_expression()
            if op.value == "=" and target.node_type is NodeType.IDENTIFIER and not self.is_bound(target.value):
                self.bind(target.value)
                return self.node(NodeType.VARIABLE_DECLARATION, tok, target.value, [value],
                                 declared_type=None, declaration="implicit")
            assign = self.node(NodeType.ASSIGNMENT, op, None, [target, value], operator=op.value)
            return self.node(NodeType.EXPRESSION_STATEMENT, tok, None, [assign])
        return self.node(NodeType.EXPRESSION_STATEMENT, tok, None, [target])

    def parse_annotation(self) -> Optional[str]:
        tok = self.ts.peek()
        if tok.kind is TokenType.KEYWORD and tok.value == "None":
            self.ts.advance()
            return "void"
        name = self.ts.expect(TokenType.IDENTIFIER).value
        if self.ts.match(TokenType.LBRACKET):
            inner = self.parse_annotation()
            self.ts.expect(TokenType.RBRACKET)
            if name in ("list", "List"):
                return (inner or "int") + "[]"
        return name

    def parse_def(self) -> Node:
        def_tok = self.ts.advance()
        name_tok = self.ts.expect(TokenType.IDENTIFIER)
        self.bind(name_tok.value)
        self.ts.expect(TokenType.LPAREN)
        names: List[str] = []
        types: List[Optional[str]] = []
        while not self.ts.check(TokenType.RPAREN):
            names.append(self.ts.expect(TokenType.IDENTIFIER).value)
            types.append(self.parse_annotation() if self.ts.match(TokenType.COLON) else None)
            if self.ts.check(TokenType.ASSIGNMENT, "="):
                self.error("Default parameter values are not supported")
            if not self.ts.match(TokenType.COMMA):
                break
        self.ts.expect(TokenType.RPAREN)
        return_type = None
        if self.ts.check(TokenType.ARITHMETIC, "-") and self.ts.check(TokenType.COMPARISON, ">", k=1):
            self.ts.advance()
            self.ts.advance()
            return_type = self.parse_annotation()
        self.bound.append(set(names))
        try:
            body = self.parse_suite(def_tok)
        finally:
            self.bound.pop()
        return self.node(NodeType.FUNCTION_DECLARATION, name_tok, name_tok.value, [body],
                         parameters=tuple(names), param_types=tuple(types), return_type=return_type)

    def parse_if(self) -> Node:
        t = self.ts.advance()
        cond = self.parse_expression()
        then_block = self.parse_suite(t)
        children = [cond, then_block]
        if self.at_keyword("elif") and self.ts.peek().column == t.column:
            nested = self.parse_if()
            children.append(self.arena.make(NodeType.BLOCK_STATEMENT, None, [nested],
                                            nested.line, nested.column, scoped=False))
        elif self.at_keyword("else") and self.ts.peek().column == t.column:
            else_tok = self.ts.advance()
            children.append(self.parse_suite(else_tok))
        if self.is_main_guard(cond) and len(children) == 2 and len(self.bound) == 1:
            # `if __name__ == "__main__":` runs its body as top-level code
            return then_block
        return self.node(NodeType.IF_STATEMENT, t, None, children)

    @staticmethod
    def is_main_guard(cond: Node) -> bool:
        if cond.node_type is not NodeType.BINARY_EXPRESSION or cond.attr("operator") != "==":
            return False
        left, right = cond.children
        return (left.node_type is NodeType.IDENTIFIER and left.value == "__name__"
                and right.node_type is NodeType.LITERAL and right.value == "__main__")

    def parse_for(self) -> Node:
        t = self.ts.advance()
        var_tok = self.ts.expect(TokenType.IDENTIFIER)
        if not self.keyword("in"):
            self.error(f"Expected 'in', got {describe(self.ts.peek())}")
        iterable = self.parse_expression()
        declare = not self.is_bound(var_tok.value)
        self.bind(var_tok.value)
        body = self.parse_suite(t)

        if iterable.node_type is NodeType.CALL_EXPRESSION and iterable.children[0].node_type is NodeType.IDENTIFIER \
                and iterable.children[0].value == "range" and 1 <= len(iterable.children) - 1 <= 3:
            return self.lower_range(t, var_tok, list(iterable.children[1:]), body, declare)
        return self.lower_iteration(t, var_tok, iterable, body, declare=declare, declared_type=None, scoped=False)

    def lower_range(self, t: Token, var_tok: Token, args: List[Node], body: Node, declare: bool) -> Node:
        ident = lambda: self.node(NodeType.IDENTIFIER, var_tok, var_tok.value)
        if len(args) == 1:
            start = self.node(NodeType.LITERAL, t, 0, data_type="number")
            stop = args[0]
        else:
            start, stop = args[0], args[1]
        step = args[2] if len(args) == 3 else self.node(NodeType.LITERAL, t, 1, data_type="number")

        descending = False
        if step.node_type is NodeType.UNARY_EXPRESSION and step.attr("operator") == "-":
            descending = True
        elif step.node_type is NodeType.LITERAL and isinstance(step.value, (int, float)) and step.value < 0:
            descending = True

        if declare:
            init = self.node(NodeType.VARIABLE_DECLARATION, var_tok, var_tok.value, [start],
                             declared_type=None, declaration="implicit")
        else:
            init = self.node(NodeType.EXPRESSION_STATEMENT, var_tok, None,
                             [self.node(NodeType.ASSIGNMENT, var_tok, None, [ident(), start], operator="=")])
        cond = self.binary(t, ">" if descending else "<", ident(), stop)
        advance = self.binary(t, "+", ident(), step)
        update = self.node(NodeType.EXPRESSION_STATEMENT, t, None,
                           [self.node(NodeType.ASSIGNMENT, t, None, [ident(), advance], operator="=")])
        return self.node(NodeType.FOR_STATEMENT, t, None, [init, cond, update, body], scoped=False)

    def parse_try(self) -> Node:
        t = self.ts.advance()
        block = self.parse_suite(t)
        children = [block]
        param = None
        has_handler = False
        has_finalizer = False
        if self.at_keyword("except") and self.ts.peek().column == t.column:
            exc = self.ts.advance()
            has_handler = True
            if self.ts.check(TokenType.IDENTIFIER):
                self.ts.advance()
                if self.keyword("as"):
                    param = self.ts.expect(TokenType.IDENTIFIER).value
            children.append(self.parse_suite(exc))
            if self.at_keyword("except") and self.ts.peek().column == t.column:
                self.error("Only one except clause is supported")
        if self.at_keyword("finally") and self.ts.peek().column == t.column:
            fin = self.ts.advance()
            has_finalizer = True
            children.append(self.parse_suite(fin))
        if not has_handler and not has_finalizer:
            self.error("Expected 'except' or 'finally' after try block")
        return self.node(NodeType.TRY_STATEMENT, t, None, children,
                         param=param, has_handler=has_handler, has_finalizer=has_finalizer)

    # ---------------- EXPRESSIONS ----------------
    def parse_logical_not(self) -> Node:
        tok = self.ts.peek()
        if self.keyword("not"):
            operand = self.parse_logical_not()
            return self.node(NodeType.UNARY_EXPRESSION, tok, None, [operand], operator="!", prefix=True)
        return self.parse_equality()

    def parse_equality(self) -> Node:
        expr = self.parse_relational()
        while True:
            tok = self.ts.peek()
            if self.ts.check(TokenType.COMPARISON, *EQUALITY_OPS):
                self.ts.advance()
                expr = self.binary(tok, tok.value, expr, self.parse_relational())
            elif self.keyword("is"):
                op = "!==" if self.keyword("not") else "==="
                expr = self.binary(tok, op, expr, self.parse_relational())
            else:
                return expr

    def parse_unary(self) -> Node:
        tok = self.ts.peek()
        if tok.kind is TokenType.UNARY:
            self.error(f"Operator {tok.value!r} is not valid Python", tok)
        return super().parse_unary()

    def parse_primary(self) -> Node:
        tok = self.ts.peek()
        if tok.kind is TokenType.LBRACE:
            self.error("Dictionary literals are not supported", tok)
        return super().parse_primary()


def parse(tokens: List[Token], language: str = "javascript") -> Ast:
    if language == "python":
        return IndentParser(tokens, language).parse()
    return Parser(tokens, language).parse()
