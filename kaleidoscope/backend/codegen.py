"""Translation of Kaleidoscope syntax trees into LLVM IR with llvmlite. Every value is a double; every variable lives
in a stack slot allocated in the entry block of its function (mem2reg-friendly, as in the LLVM tutorial), which is
what makes parameters, loop variables and var/in bindings assignable.
"""

from llvmlite import ir

from kaleidoscope.lang.error import BackendError
from kaleidoscope.lang.operators import BINARY, UNARY
from kaleidoscope.lang.scope import LOCAL, LOOP, PARAMETER, Scope
from kaleidoscope.lang.syntax import Binary, Call, For, If, Number, Prototype, Unary, Var, Variable


DOUBLE = ir.DoubleType()
ZERO = ir.Constant(DOUBLE, 0.0)
ONE = ir.Constant(DOUBLE, 1.0)


class CodeGenerator:
    """Emits one ir.Module per unit. prototypes (name: Prototype) is the registry callees are resolved against; it is
    owned by the backend and shared, not copied. After emit_function, calls holds the names the function calls.
    """

    def __init__(self, prototypes):
        self.prototypes = prototypes
        self.calls = set()  # names called by the function being emitted
        self.module = None
        self.builder = None
        self.scope = Scope()

        self._emitters = {
            Number: self.emit_number,
            Variable: self.emit_variable,
            Unary: self.emit_unary,
            Binary: self.emit_binary,
            Call: self.emit_call,
            If: self.emit_if,
            For: self.emit_for,
            Var: self.emit_var,
        }
        self._builtins = {
            "+": lambda lhs, rhs: self.builder.fadd(lhs, rhs, "addtmp"),
            "-": lambda lhs, rhs: self.builder.fsub(lhs, rhs, "subtmp"),
            "*": lambda lhs, rhs: self.builder.fmul(lhs, rhs, "multmp"),
            "/": lambda lhs, rhs: self.builder.fdiv(lhs, rhs, "divtmp"),
            "<": lambda lhs, rhs: self.to_double(self.builder.fcmp_unordered("<", lhs, rhs, "cmptmp")),
            ">": lambda lhs, rhs: self.to_double(self.builder.fcmp_unordered(">", lhs, rhs, "cmptmp")),
            "==": lambda lhs, rhs: self.to_double(self.builder.fcmp_ordered("==", lhs, rhs, "cmptmp")),
        }

    # ---------- units ----------
    def emit_declaration(self, prototype):
        """Returns a module holding only the declaration of prototype."""
        self.module = ir.Module(name=prototype.name)
        self.emit_prototype(prototype)
        return self.module

    def emit_function(self, function, symbol=None):
        """Returns a module defining function under symbol (defaults to the function's own name)."""
        prototype = function.prototype
        self.module = ir.Module(name=symbol or prototype.name)
        self.calls = set()

        func = self.emit_prototype(prototype, symbol)
        self.builder = ir.IRBuilder(func.append_basic_block("entry"))

        with self.scope.frame():
            for arg, name in zip(func.args, prototype.params):
                slot = self.entry_alloca(func, name)
                self.builder.store(arg, slot)
                self.scope.bind(name, PARAMETER, slot)

            self.builder.ret(self.emit(function.body))

        return self.module

    def emit_prototype(self, prototype, symbol=None):
        name = symbol or prototype.name
        existing = self.module.globals.get(name)
        if existing is not None:
            return existing

        func_type = ir.FunctionType(DOUBLE, [DOUBLE] * prototype.arity)
        func = ir.Function(self.module, func_type, name=name)
        for arg, param in zip(func.args, prototype.params):
            arg.name = param
        return func

    def callee(self, name, node, arity):
        """Declares (in the current module) and returns the function called name, checking it takes arity args. The
        function only needs to be declared: whether it has a body is checked when code reaching it is executed.
        """
        prototype = self.prototypes.get(name)
        if prototype is None:
            raise BackendError(f"unknown function referenced '{name}'", node.line, node.column)
        if prototype.arity != arity:
            msg = f"incorrect number of arguments passed to '{name}': expected {prototype.arity}, got {arity}"
            raise BackendError(msg, node.line, node.column)
        self.calls.add(name)
        return self.emit_prototype(prototype)

    # ---------- expressions ----------
    def emit(self, node):
        return self._emitters[type(node)](node)

    def emit_number(self, node):
        return ir.Constant(DOUBLE, node.value)

    def emit_variable(self, node):
        binding = self.scope.lookup(node.name)
        if binding is None:
            raise BackendError(f"unknown variable name '{node.name}'", node.line, node.column)
        return self.builder.load(binding.slot, node.name)

    def emit_unary(self, node):
        operand = self.emit(node.operand)
        func = self.callee(Prototype.operator_name(UNARY, node.op), node, 1)
        return self.builder.call(func, [operand], "unop")

    def emit_binary(self, node):
        user_defined = Prototype.operator_name(BINARY, node.op)
        if user_defined in self.prototypes:
            lhs, rhs = self.emit(node.lhs), self.emit(node.rhs)
            return self.builder.call(self.callee(user_defined, node, 2), [lhs, rhs], "binop")

        if node.op == "=":
            return self.emit_assignment(node)

        builtin = self._builtins.get(node.op)
        if builtin is None:
            raise BackendError(f"no implementation for binary operator '{node.op}'", node.line, node.column)
        return builtin(self.emit(node.lhs), self.emit(node.rhs))

    def emit_assignment(self, node):
        if not isinstance(node.lhs, Variable):
            raise BackendError("destination of '=' must be a variable", node.line, node.column)

        value = self.emit(node.rhs)
        binding = self.scope.lookup(node.lhs.name)
        if binding is None:
            raise BackendError(f"unknown variable name '{node.lhs.name}'", node.lhs.line, node.lhs.column)
        self.builder.store(value, binding.slot)
        return value

    def emit_call(self, node):
        func = self.callee(node.callee, node, len(node.args))
        args = [self.emit(arg) for arg in node.args]
        return self.builder.call(func, args, "calltmp")

    def emit_if(self, node):
        cond = self.builder.fcmp_ordered("!=", self.emit(node.cond), ZERO, "ifcond")

        func = self.builder.function
        then_block = func.append_basic_block("then")
        else_block = func.append_basic_block("else")
        merge_block = func.append_basic_block("ifcont")
        self.builder.cbranch(cond, then_block, else_block)

        self.builder.position_at_end(then_block)
        then_value = self.emit(node.then)
        self.builder.branch(merge_block)
        then_block = self.builder.block  # emitting then may have moved us to another block

        self.builder.position_at_end(else_block)
        else_value = self.emit(node.else_)
        self.builder.branch(merge_block)
        else_block = self.builder.block

        self.builder.position_at_end(merge_block)
        phi = self.builder.phi(DOUBLE, "iftmp")
        phi.add_incoming(then_value, then_block)
        phi.add_incoming(else_value, else_block)
        return phi

    def emit_for(self, node):
        func = self.builder.function
        slot = self.entry_alloca(func, node.var_name)
        self.builder.store(self.emit(node.start), slot)

        loop_block = func.append_basic_block("loop")
        self.builder.branch(loop_block)
        self.builder.position_at_end(loop_block)

        with self.scope.frame():
            self.scope.bind(node.var_name, LOOP, slot)

            self.emit(node.body)
            step = self.emit(node.step) if node.step is not None else ONE
            end = self.emit(node.end)

            current = self.builder.load(slot, node.var_name)
            self.builder.store(self.builder.fadd(current, step, "nextvar"), slot)
            end_cond = self.builder.fcmp_ordered("!=", end, ZERO, "loopcond")

        after_block = func.append_basic_block("afterloop")
        self.builder.cbranch(end_cond, loop_block, after_block)
        self.builder.position_at_end(after_block)
        return ZERO

    def emit_var(self, node):
        func = self.builder.function
        with self.scope.frame():
            for name, init in node.bindings:
                # the initializer is emitted before name is bound, so `var a = a in ...` reads the outer a
                value = self.emit(init) if init is not None else ZERO
                slot = self.entry_alloca(func, name)
                self.builder.store(value, slot)
                self.scope.bind(name, LOCAL, slot)

            return self.emit(node.body)

    # ---------- helpers ----------
    def to_double(self, flag):
        return self.builder.uitofp(flag, DOUBLE, "booltmp")

    @staticmethod
    def entry_alloca(func, name):
        builder = ir.IRBuilder(func.entry_basic_block)
        builder.position_at_start(func.entry_basic_block)
        return builder.alloca(DOUBLE, name=name)
