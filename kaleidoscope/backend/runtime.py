"""Native functions Kaleidoscope programs can call after declaring them with extern, e.g. `extern putchard(c);`.
They are Python callables exposed to the JIT through ctypes, so they see the current sys.stdout.
"""

import ctypes
import math
import sys

from llvmlite import binding as llvm


def putchard(x):
    """Writes the character with code x and returns 0."""
    sys.stdout.write(chr(int(x)))
    sys.stdout.flush()
    return 0.0


def printd(x):
    """Prints x followed by a newline and returns 0."""
    print(f"{x:f}")
    return 0.0


def hello():
    print("Bonjour le monde !")
    return 42.0


def square(x):
    return x * x


def _libm(func):
    """Wraps a math function with C semantics: domain errors give NaN and overflows give infinity."""

    def call(x):
        try:
            return func(x)
        except ValueError:
            return math.nan
        except OverflowError:
            return math.inf

    return call


# name: (arity, implementation)
FUNCTIONS = {
    "putchard": (1, putchard),
    "printd": (1, printd),
    "hello": (0, hello),
    "square": (1, square),
    "sin": (1, _libm(math.sin)),
    "cos": (1, _libm(math.cos)),
    "tan": (1, _libm(math.tan)),
    "sqrt": (1, _libm(math.sqrt)),
    "exp": (1, _libm(math.exp)),
    "log": (1, _libm(math.log)),
    "fabs": (1, _libm(math.fabs)),
    "floor": (1, _libm(math.floor)),
}

_callbacks = {}  # name: ctypes callback, kept alive for as long as the JIT may call it


def install():
    """Registers every runtime function with the JIT's symbol table. Safe to call more than once."""
    for name, (arity, func) in FUNCTIONS.items():
        if name in _callbacks:
            continue
        callback = ctypes.CFUNCTYPE(ctypes.c_double, *[ctypes.c_double] * arity)(func)
        _callbacks[name] = callback
        llvm.add_symbol(name, ctypes.cast(callback, ctypes.c_void_p).value)
