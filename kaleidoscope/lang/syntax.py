"""Kaleidoscope abstract syntax tree. The node set is closed: Expr is one of the eight expression dataclasses below
and a top-level Unit is one of FunctionDef, ExternDecl or TopLevelExpr.

Formally, the grammar the parser accepts can be defined as

```
<unit>       ::= "def" <prototype> <expr> | "extern" <prototype> | <expr>      ; optionally followed by ";"
<prototype>  ::= <identifier> "(" <params> ")"
               | "unary" <op> "(" <identifier> ")"
               | "binary" <op> <number>? "(" <identifier> ","? <identifier> ")" ; integer precedence in 1..100
<expr>       ::= <unary> (<binop> <unary>)*                                     ; precedence climbing
<unary>      ::= <op> <unary> | <primary>
<primary>    ::= <number> | <identifier> | <identifier> "(" <args>? ")" | "(" <expr> ")"
               | "if" <expr> "then" <expr> "else" <expr>
               | "for" <identifier> "=" <expr> "," <expr> ("," <expr>)? "in" <expr>
               | "var" <identifier> ("=" <expr>)? ("," <identifier> ("=" <expr>)?)* "in" <expr>
```

Nodes are immutable and own their children. Source positions are kept for diagnostics but are ignored by equality.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from kaleidoscope.lang.operators import BINARY


ANONYMOUS_FUNCTION = "__anon_expr"
DEFAULT_BINARY_PRECEDENCE = 30
UNARY_PRECEDENCE = 1


def _position():
    return field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Number:
    value: float
    line: Optional[int] = _position()
    column: Optional[int] = _position()


@dataclass(frozen=True)
class Variable:
    name: str
    line: Optional[int] = _position()
    column: Optional[int] = _position()


@dataclass(frozen=True)
class Unary:
    op: str
    operand: "Expr"
    line: Optional[int] = _position()
    column: Optional[int] = _position()


@dataclass(frozen=True)
class Binary:
    op: str
    lhs: "Expr"
    rhs: "Expr"
    line: Optional[int] = _position()
    column: Optional[int] = _position()


@dataclass(frozen=True)
class Call:
    callee: str
    args: Tuple["Expr", ...]
    line: Optional[int] = _position()
    column: Optional[int] = _position()


@dataclass(frozen=True)
class If:
    cond: "Expr"
    then: "Expr"
    else_: "Expr"
    line: Optional[int] = _position()
    column: Optional[int] = _position()


@dataclass(frozen=True)
class For:
    var_name: str
    start: "Expr"
    end: "Expr"
    step: Optional["Expr"]
    body: "Expr"
    line: Optional[int] = _position()
    column: Optional[int] = _position()


@dataclass(frozen=True)
class Var:
    # (name, init) pairs, init is None when the binding has no initializer
    bindings: Tuple[Tuple[str, Optional["Expr"]], ...]
    body: "Expr"
    line: Optional[int] = _position()
    column: Optional[int] = _position()


Expr = Union[Number, Variable, Unary, Binary, Call, If, For, Var]


@dataclass(frozen=True)
class OperatorInfo:
    kind: str
    symbol: str
    precedence: int


@dataclass(frozen=True)
class Prototype:
    name: str
    params: Tuple[str, ...]
    operator: Optional[OperatorInfo] = None
    line: Optional[int] = _position()
    column: Optional[int] = _position()

    @staticmethod
    def operator_name(kind, symbol):
        """Name of the function implementing operator symbol of kind (unary/binary)."""
        return f"{kind}{symbol}"

    @property
    def is_operator(self):
        return self.operator is not None

    @property
    def is_anonymous(self):
        return self.name == ANONYMOUS_FUNCTION

    @property
    def arity(self):
        return len(self.params)

    def __str__(self):
        if self.operator is None:
            head = self.name
        elif self.operator.kind == BINARY:
            head = f"binary{self.operator.symbol} {self.operator.precedence}"
        else:
            head = f"unary{self.operator.symbol}"
        return f"{head}({' '.join(self.params)})"


@dataclass(frozen=True)
class Function:
    prototype: Prototype
    body: Expr

    @property
    def name(self):
        return self.prototype.name

    @classmethod
    def anonymous(cls, body):
        """Wraps body into the zero-argument function a top-level expression is executed through."""
        line, column = getattr(body, "line", None), getattr(body, "column", None)
        return cls(Prototype(ANONYMOUS_FUNCTION, (), None, line, column), body)


@dataclass(frozen=True)
class FunctionDef:
    function: Function


@dataclass(frozen=True)
class ExternDecl:
    prototype: Prototype


@dataclass(frozen=True)
class TopLevelExpr:
    function: Function


Unit = Union[FunctionDef, ExternDecl, TopLevelExpr]

