"""Recursive descent parser for Kaleidoscope. Binary expressions are resolved by precedence climbing against an
OperatorTable, which is consulted at parse time: whatever the table says when an operator token is reached decides the
shape of the tree, so declaring an operator only affects what is parsed afterwards.

See kaleidoscope/lang/syntax.py for the grammar.
"""

from kaleidoscope.lang.error import LexError, ParseError
from kaleidoscope.lang.lexical import EOF, IDENTIFIER, KEYWORD, NUMBER, OPERATOR, PUNCTUATION
from kaleidoscope.lang.operators import BINARY, RIGHT, UNARY
from kaleidoscope.lang.syntax import (
    DEFAULT_BINARY_PRECEDENCE, UNARY_PRECEDENCE,
    Binary, Call, ExternDecl, For, Function, FunctionDef, If, Number, OperatorInfo, Prototype, TopLevelExpr, Unary,
    Var, Variable,
)


MIN_PRECEDENCE = 1
MAX_PRECEDENCE = 100


class Parser:
    """Pulls tokens from lexer one at a time and builds one Unit per call to parse_next_unit."""

    def __init__(self, lexer, operators):
        self.lexer = lexer
        self.operators = operators
        self._current = None

    @property
    def current(self):
        """The lookahead token. Read lazily, so a LexError surfaces in whichever unit first needs the token."""
        if self._current is None:
            self._current = self.lexer.next_token()
        return self._current

    def advance(self):
        """Consumes and returns the lookahead token."""
        token = self.current
        self._current = None
        return token

    def expect(self, kind, value=None, what=None):
        token = self.current
        if not token.is_(kind, value):
            raise ParseError.at(token, f"expected {what or repr(value)}, got {token}")
        return self.advance()

    def at_punctuation(self, symbol):
        return self.current.is_(PUNCTUATION, symbol)

    # ---------- TOP LEVEL ----------
    def parse_next_unit(self):
        """Parses one top-level unit. Returns None once the input is exhausted."""
        while self.at_punctuation(";"):
            self.advance()

        token = self.current
        if token.kind == EOF:
            return None

        if token.is_(KEYWORD, "def"):
            unit = FunctionDef(self.parse_function())
        elif token.is_(KEYWORD, "extern"):
            unit = ExternDecl(self.parse_extern())
        else:
            unit = TopLevelExpr(self.parse_top_level_expr())

        if self.at_punctuation(";"):
            self.advance()
        return unit

    def synchronize(self):
        """Discards the rest of a failed unit: tokens up to and including the next ';', or up to the next 'def' or
        'extern', or up to the end of input.
        """
        while True:
            try:
                token = self.current
            except LexError:
                continue  # malformed literals in the discarded text belong to the failed unit

            if token.kind == EOF or token.is_(KEYWORD, "def") or token.is_(KEYWORD, "extern"):
                return
            self.advance()
            if token.is_(PUNCTUATION, ";"):
                return

    def parse_function(self):
        self.expect(KEYWORD, "def")
        prototype = self.parse_prototype()
        return Function(prototype, self.parse_expression())

    def parse_extern(self):
        self.expect(KEYWORD, "extern")
        return self.parse_prototype()

    def parse_top_level_expr(self):
        return Function.anonymous(self.parse_expression())

    def parse_prototype(self):
        token = self.current

        if token.kind == IDENTIFIER:
            self.advance()
            name, operator = token.value, None

        elif token.is_(KEYWORD, UNARY) or token.is_(KEYWORD, BINARY):
            kind = self.advance().value
            symbol = self.current
            if symbol.kind != OPERATOR:
                raise ParseError.at(symbol, f"expected an operator symbol after '{kind}', got {symbol}")
            self.advance()

            precedence = UNARY_PRECEDENCE if kind == UNARY else DEFAULT_BINARY_PRECEDENCE
            if kind == BINARY and self.current.kind == NUMBER:
                literal = self.advance()
                if not MIN_PRECEDENCE <= literal.value <= MAX_PRECEDENCE:
                    msg = f"invalid precedence {literal.value:g}: must be {MIN_PRECEDENCE}..{MAX_PRECEDENCE}"
                    raise ParseError.at(literal, msg)
                if literal.value != int(literal.value):
                    raise ParseError.at(literal, f"precedence must be an integer, got {literal.value:g}")
                precedence = int(literal.value)

            name = Prototype.operator_name(kind, symbol.value)
            operator = OperatorInfo(kind, symbol.value, precedence)

        else:
            raise ParseError.at(token, f"expected function name in prototype, got {token}")

        self.expect(PUNCTUATION, "(", what="'(' in prototype")

        params = []
        while not self.at_punctuation(")"):
            param = self.current
            if param.kind != IDENTIFIER:
                raise ParseError.at(param, f"expected parameter name or ')' in prototype, got {param}")
            if param.value in params:
                raise ParseError.at(param, f"duplicate parameter '{param.value}' in prototype of '{name}'")
            params.append(self.advance().value)

            if self.at_punctuation(","):
                self.advance()
        self.advance()

        if operator is not None:
            expected = 1 if operator.kind == UNARY else 2
            if len(params) != expected:
                msg = f"invalid number of operands for {operator.kind} operator '{operator.symbol}': " \
                      f"expected {expected}, got {len(params)}"
                raise ParseError.at(token, msg)

        return Prototype(name, tuple(params), operator, token.line, token.column)

    # ---------- EXPRESSIONS ----------
    def parse_expression(self):
        lhs = self.parse_unary()
        return self.parse_binary_rhs(0, lhs)

    def parse_unary(self):
        token = self.current
        if token.kind != OPERATOR:
            return self.parse_primary()

        if self.operators.lookup(token.value, UNARY) is None:
            raise ParseError.at(token, f"unknown unary operator '{token.value}'")
        self.advance()
        return Unary(token.value, self.parse_unary(), token.line, token.column)

    def binary_entry(self):
        """Returns the binary OperatorEntry of the lookahead token, or None if the expression ends here."""
        token = self.current
        if token.kind != OPERATOR:
            return None

        entry = self.operators.entry(token.value, BINARY)
        if entry is None:
            raise ParseError.at(token, f"unknown binary operator '{token.value}'")
        return entry

    def parse_binary_rhs(self, min_precedence, lhs):
        """Precedence climbing: folds operators binding at least as tightly as min_precedence into lhs."""
        while True:
            entry = self.binary_entry()
            if entry is None or entry.precedence < min_precedence:
                return lhs

            op = self.advance()
            rhs = self.parse_unary()

            while True:
                following = self.binary_entry()
                if following is None:
                    break
                if following.precedence > entry.precedence:
                    rhs = self.parse_binary_rhs(entry.precedence + 1, rhs)
                elif following.precedence == entry.precedence and following.associativity == RIGHT:
                    rhs = self.parse_binary_rhs(entry.precedence, rhs)
                else:
                    break

            lhs = Binary(op.value, lhs, rhs, op.line, op.column)

    def parse_primary(self):
        token = self.current

        if token.kind == NUMBER:
            self.advance()
            return Number(token.value, token.line, token.column)

        if token.kind == IDENTIFIER:
            return self.parse_identifier_expr()

        if token.is_(PUNCTUATION, "("):
            return self.parse_paren_expr()

        if token.is_(KEYWORD, "if"):
            return self.parse_if_expr()

        if token.is_(KEYWORD, "for"):
            return self.parse_for_expr()

        if token.is_(KEYWORD, "var"):
            return self.parse_var_expr()

        raise ParseError.at(token, f"unknown {token} when expecting an expression")

    def parse_paren_expr(self):
        self.expect(PUNCTUATION, "(")
        expr = self.parse_expression()
        self.expect(PUNCTUATION, ")", what="')'")
        return expr

    def parse_identifier_expr(self):
        token = self.advance()
        if not self.at_punctuation("("):
            return Variable(token.value, token.line, token.column)

        self.advance()
        args = []
        if not self.at_punctuation(")"):
            while True:
                args.append(self.parse_expression())
                if self.at_punctuation(")"):
                    break
                if not self.at_punctuation(","):
                    raise ParseError.at(self.current, f"expected ')' or ',' in argument list, got {self.current}")
                self.advance()
        self.advance()

        return Call(token.value, tuple(args), token.line, token.column)

    def parse_if_expr(self):
        token = self.expect(KEYWORD, "if")
        cond = self.parse_expression()
        self.expect(KEYWORD, "then", what="'then'")
        then = self.parse_expression()
        self.expect(KEYWORD, "else", what="'else'")
        else_ = self.parse_expression()
        return If(cond, then, else_, token.line, token.column)

    def parse_for_expr(self):
        token = self.expect(KEYWORD, "for")
        var_name = self.expect(IDENTIFIER, what="identifier after 'for'").value
        self.expect(OPERATOR, "=", what="'=' after for loop variable")
        start = self.parse_expression()
        self.expect(PUNCTUATION, ",", what="',' after for start value")
        end = self.parse_expression()

        step = None
        if self.at_punctuation(","):
            self.advance()
            step = self.parse_expression()

        self.expect(KEYWORD, "in", what="'in' after for")
        body = self.parse_expression()
        return For(var_name, start, end, step, body, token.line, token.column)

    def parse_var_expr(self):
        token = self.expect(KEYWORD, "var")
        if self.current.kind != IDENTIFIER:
            raise ParseError.at(self.current, f"'var' requires at least one binding, got {self.current}")

        bindings = []
        while True:
            name = self.expect(IDENTIFIER, what="identifier in var binding list").value
            init = None
            if self.current.is_(OPERATOR, "="):
                self.advance()
                init = self.parse_expression()
            bindings.append((name, init))

            if not self.at_punctuation(","):
                break
            self.advance()

        self.expect(KEYWORD, "in", what="'in' after var bindings")
        body = self.parse_expression()
        return Var(tuple(bindings), body, token.line, token.column)
