"""Backend that compiles units with llvmlite and runs them in-process with MCJIT."""

import ctypes
import itertools
import logging

from llvmlite import binding as llvm

from kaleidoscope.backend import runtime
from kaleidoscope.backend.base import Backend
from kaleidoscope.backend.codegen import CodeGenerator
from kaleidoscope.lang.error import BackendError
from kaleidoscope.lang.syntax import ANONYMOUS_FUNCTION, Function, Prototype


logger = logging.getLogger(__name__)


class LLVMBackend(Backend):
    """Every unit becomes its own LLVM module added to a single MCJIT engine, so functions defined by earlier units
    can be called from later ones. A definition is only verified when read; its module joins the engine the first time
    an executed expression reaches it, so a function may call another that is declared with extern and defined later.
    Modules of anonymous expressions are removed from the engine once executed.
    """

    def __init__(self, dump_ir=False):
        llvm.initialize_native_target()
        llvm.initialize_native_asmprinter()
        runtime.install()

        self.dump_ir = dump_ir
        self.prototypes = {}  # name: Prototype of every declared or defined function
        self.defined = set()  # names of functions with a body
        self.codegen = CodeGenerator(self.prototypes)

        self.target_machine = llvm.Target.from_default_triple().create_target_machine()
        self.engine = llvm.create_mcjit_compiler(llvm.parse_assembly(""), self.target_machine)

        self._pending = {}  # name: verified llvm module of a definition not added to the engine yet
        self._calls = {}  # name: names called by the definition
        self._anonymous = {}  # id(Function): (Function, symbol, llvm module, calls) awaiting execute_anonymous
        self._counter = itertools.count()

    def declare_or_define(self, unit):
        if isinstance(unit, Prototype):
            self.declare(unit)
        elif isinstance(unit, Function):
            if unit.prototype.is_anonymous:
                self.define_anonymous(unit)
            else:
                self.define(unit)
        else:
            raise TypeError(f"expected a Function or a Prototype, got {type(unit).__name__}")

    def declare(self, prototype):
        self._check_signature(prototype)
        if prototype.name in runtime.FUNCTIONS:
            arity, __ = runtime.FUNCTIONS[prototype.name]
            if arity != prototype.arity:
                msg = f"runtime function '{prototype.name}' takes {arity} parameter(s), got {prototype.arity}"
                raise BackendError(msg, prototype.line, prototype.column)
            self.defined.add(prototype.name)

        self.prototypes[prototype.name] = prototype
        self._log_ir(self.codegen.emit_declaration(prototype))

    def define(self, function):
        prototype = function.prototype
        if prototype.name in self.defined:
            raise BackendError(f"function '{prototype.name}' cannot be redefined", prototype.line, prototype.column)
        self._check_signature(prototype)

        previous = self.prototypes.get(prototype.name)
        self.prototypes[prototype.name] = prototype  # visible to the body, for recursion
        try:
            module = self._verify(self.codegen.emit_function(function))
        except BackendError:
            if previous is None:
                del self.prototypes[prototype.name]
            else:
                self.prototypes[prototype.name] = previous
            raise

        self.defined.add(prototype.name)
        self._pending[prototype.name] = module
        self._calls[prototype.name] = self.codegen.calls

    def define_anonymous(self, function):
        symbol = f"{ANONYMOUS_FUNCTION}.{next(self._counter)}"
        module = self._verify(self.codegen.emit_function(function, symbol))
        self._anonymous[id(function)] = (function, symbol, module, self.codegen.calls)

    def execute_anonymous(self, function):
        entry = self._anonymous.pop(id(function), None)
        if entry is None:
            raise BackendError("anonymous expression was not generated before being executed")
        __, symbol, module, calls = entry

        self._link(calls, function.prototype)
        self.engine.add_module(module)
        try:
            self.engine.finalize_object()
            self.engine.run_static_constructors()
            address = self.engine.get_function_address(symbol)
            if not address:
                raise BackendError(f"could not resolve '{symbol}' in the JIT")
            return float(ctypes.CFUNCTYPE(ctypes.c_double)(address)())
        finally:
            self.engine.remove_module(module)

    def _check_signature(self, prototype):
        known = self.prototypes.get(prototype.name)
        if known is not None and known.arity != prototype.arity:
            msg = f"'{prototype.name}' is already declared with {known.arity} parameter(s), got {prototype.arity}"
            raise BackendError(msg, prototype.line, prototype.column)

    def _link(self, calls, prototype):
        """Adds to the engine the pending definitions reachable from calls. Every reachable function must have a body,
        otherwise MCJIT would abort the process on the unresolved symbol.
        """
        reachable, stack = [], list(calls)
        seen = set()
        while stack:
            name = stack.pop()
            if name in seen:
                continue
            seen.add(name)
            if name not in self.defined:
                msg = f"function '{name}' is declared but never defined"
                raise BackendError(msg, prototype.line, prototype.column)
            if name in self._pending:
                reachable.append(name)
                stack.extend(self._calls[name])

        for name in reachable:
            self.engine.add_module(self._pending.pop(name))
            logger.debug("linked function '%s'", name)

    def _verify(self, module):
        """Verifies module and returns it parsed as an llvm (binding) module, ready to be added to the engine."""
        self._log_ir(module)

        try:
            llvm_module = llvm.parse_assembly(str(module))
            llvm_module.verify()
        except RuntimeError as e:
            raise BackendError(f"code generation failed for '{module.name}': {e}") from e
        return llvm_module

    def _log_ir(self, module):
        if self.dump_ir:
            logger.info("%s", module)
        else:
            logger.debug("generated module '%s'", module.name)
