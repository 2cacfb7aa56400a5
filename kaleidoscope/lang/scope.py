"""Lexical environment for Kaleidoscope variables. Every variable (function parameter, for loop variable or var/in
binding) is mutable and lives until the end of the expression that introduced it; an inner binding shadows an outer
one with the same name and the outer one is visible again once the inner frame is popped.
"""

from dataclasses import dataclass


PARAMETER = "parameter"
LOOP = "loop variable"
LOCAL = "local"


@dataclass
class Binding:
    name: str
    kind: str
    slot: object  # whatever the user of the scope stores for the variable (e.g. a stack slot)


class Scope:
    """Stack of frames mapping names to Bindings. Use frame() as a context manager to push a frame for the duration
    of a with block.
    """

    def __init__(self):
        self.frames = []

    def push(self):
        self.frames.append({})

    def pop(self):
        return self.frames.pop()

    def frame(self):
        return _Frame(self)

    def bind(self, name, kind, slot):
        """Binds name in the innermost frame, shadowing any binding of name in enclosing frames."""
        if not self.frames:
            raise RuntimeError("cannot bind a variable outside of a frame")
        binding = Binding(name, kind, slot)
        self.frames[-1][name] = binding
        return binding

    def lookup(self, name):
        """Returns the innermost Binding of name, or None if name is unbound."""
        for frame in reversed(self.frames):
            if name in frame:
                return frame[name]
        return None


class _Frame:
    """Context manager returned by Scope.frame."""

    def __init__(self, scope):
        self.scope = scope

    def __enter__(self):
        self.scope.push()
        return self.scope

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.scope.pop()
        return False
