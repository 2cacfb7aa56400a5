"""Session control for Kaleidoscope: the top-level driver that runs source text one unit at a time, either in
interactive mode (one call to run per line read) or in script mode (one call for the whole file).
"""

import logging
from dataclasses import dataclass, field

from kaleidoscope.lang.error import KaleidoscopeError, LexError, ParseError
from kaleidoscope.lang.lexical import Lexer
from kaleidoscope.lang.operators import OperatorTable
from kaleidoscope.lang.parser import Parser
from kaleidoscope.lang.syntax import ExternDecl, FunctionDef, TopLevelExpr


logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """What a session accumulates across units: the operator table and the signature of every declared or defined
    function. Both only ever grow; nothing is rolled back when a unit fails.
    """
    operators: OperatorTable = field(default_factory=OperatorTable.with_builtins)
    signatures: dict = field(default_factory=dict)  # name: Prototype

    def register(self, prototype):
        """Records prototype. An operator prototype updates the operator table first, so the operator can be used by
        everything parsed afterwards.
        """
        if prototype.is_operator:
            info = prototype.operator
            self.operators.define(info.symbol, info.kind, info.precedence)
        self.signatures[prototype.name] = prototype


@dataclass(frozen=True)
class Evaluated:
    """A top-level expression was executed."""
    value: float
    unit: TopLevelExpr


@dataclass(frozen=True)
class Declared:
    """A function definition or an extern declaration was accepted."""
    unit: object  # FunctionDef | ExternDecl

    @property
    def prototype(self):
        if isinstance(self.unit, FunctionDef):
            return self.unit.function.prototype
        return self.unit.prototype


@dataclass(frozen=True)
class Failed:
    """A unit was abandoned because of error."""
    error: KaleidoscopeError


class Session:
    """Governs a Kaleidoscope session: every call to run parses new text against the same state and backend, so
    functions and operators persist across calls.
    """

    def __init__(self, backend=None, state=None):
        if backend is None:
            from kaleidoscope.backend.jit import LLVMBackend
            backend = LLVMBackend()

        self.backend = backend
        self.state = state if state is not None else SessionState()

    def run(self, source):
        """Lazily processes every unit of source, yielding one Evaluated, Declared or Failed outcome per unit. A failed
        unit is skipped up to the next unit boundary and processing resumes from there.
        """
        parser = Parser(Lexer(source), self.state.operators)

        while True:
            try:
                unit = parser.parse_next_unit()
            except (LexError, ParseError) as e:
                logger.debug("unit failed to parse: %s", e)
                parser.synchronize()
                yield Failed(e)
                continue

            if unit is None:
                return

            try:
                outcome = self.dispatch(unit)
            except KaleidoscopeError as e:  # the unit was fully parsed, so there is nothing to skip
                logger.debug("unit rejected: %s", e)
                outcome = Failed(e)

            yield outcome

    def feed(self, source):
        """Eager run: returns the list of outcomes for source."""
        return list(self.run(source))

    def dispatch(self, unit):
        """Hands one parsed unit to the backend and returns its outcome. Raises KaleidoscopeError."""
        if isinstance(unit, FunctionDef):
            logger.debug("defining %s", unit.function.prototype)
            self.state.register(unit.function.prototype)
            self.backend.declare_or_define(unit.function)
            return Declared(unit)

        if isinstance(unit, ExternDecl):
            logger.debug("declaring %s", unit.prototype)
            self.state.register(unit.prototype)
            self.backend.declare_or_define(unit.prototype)
            return Declared(unit)

        if isinstance(unit, TopLevelExpr):
            logger.debug("evaluating top-level expression")
            self.backend.declare_or_define(unit.function)
            return Evaluated(self.backend.execute_anonymous(unit.function), unit)

        raise TypeError(f"unknown unit {type(unit).__name__}")
