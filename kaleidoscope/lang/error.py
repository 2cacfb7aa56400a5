"""Error handling for the Kaleidoscope frontend. Only KaleidoscopeErrors should be encountered while processing a unit:
if another type of error is raised and makes it all the way to ErrorHandler, it is assumed to be an internal issue.
"""

import sys

from termcolor import colored


class KaleidoscopeError(Exception):
    """Base of every error that is fatal to the unit being processed. line and column are 1-based and point at the
    token that caused the error (None if unknown).
    """
    kind = "error"

    def __init__(self, msg, line=None, column=None, internal=False):
        super().__init__(msg)
        self.msg = msg
        self.line = line
        self.column = column
        self.internal = internal

    @classmethod
    def at(cls, token, msg):
        """Builds an error positioned at token."""
        return cls(msg, token.line, token.column)

    def __str__(self):
        if self.line is None:
            return self.msg
        return f"{self.line}:{self.column}: {self.msg}"


class LexError(KaleidoscopeError):
    """Malformed literal or unterminated token."""
    kind = "lex error"


class ParseError(KaleidoscopeError):
    """Unexpected token, arity mismatch, missing keyword or empty binding list."""
    kind = "parse error"


class BackendError(KaleidoscopeError):
    """Unknown name, wrong call arity, redefinition conflict or code generation failure."""
    kind = "backend error"


class ErrorHandler:
    """Context manager that reports Kaleidoscope errors, and reports (and optionally exits on) anything else."""
    ERROR = "red"

    def __init__(self, path="<in>", fatal=True, stream=None):
        self.path = path
        self.fatal = fatal
        self.stream = stream
        self.source = ""
        self.errors = 0

    def register_source(self, source):
        """Registers the text errors will be diagnosed against. Should be called before each Session.run."""
        self.source = source

    def diagnose(self, error):
        """Returns the offending source line with a caret under error's column, or None without a position."""
        lines = self.source.splitlines()
        if error.line is None or not 0 < error.line <= len(lines):
            return None

        line = lines[error.line - 1]
        col = max(error.column - 1, 0)

        diagnosis = "  " + line[:col]
        diagnosis += colored(line[col:col + 1], ErrorHandler.ERROR, attrs=["bold"]) + line[col + 1:] + "\n"
        diagnosis += "  " + " " * col + colored("^", ErrorHandler.ERROR, attrs=["bold"])
        return diagnosis

    def _print(self, msg):
        print(msg, file=self.stream if self.stream is not None else sys.stdout)

    def _location(self, error):
        if error.line is None:
            return colored(f"{self.path}: ", attrs=["bold"])
        return colored(f"{self.path}:{error.line}:{error.column}: ", attrs=["bold"])

    def throw(self, error):
        """Reports error. Exits the process if error is internal and this handler is fatal."""
        self.errors += 1

        error_msg = self._location(error)
        if error.internal:
            error_msg += colored("[internal] ", ErrorHandler.ERROR, attrs=["bold"])
        error_msg += colored(f"{error.kind}: ", ErrorHandler.ERROR, attrs=["bold"]) + error.msg
        self._print(error_msg)

        if not error.internal:
            diagnosis = self.diagnose(error)
            if diagnosis:
                self._print(diagnosis)

        if error.internal and self.fatal:
            sys.exit(1)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        do_exit = False
        if exc_type is KeyboardInterrupt:
            self.throw(KaleidoscopeError("keyboard interrupt"))
        elif exc_type is SystemExit:
            do_exit = True
        elif exc_type is RecursionError:
            self.throw(KaleidoscopeError("maximum recursion depth exceeded while parsing"))
        elif exc_type is not None and issubclass(exc_type, KaleidoscopeError):
            self.throw(exc_val)
        elif exc_type is not None:
            self.throw(KaleidoscopeError(f"unknown error: '{exc_type.__name__}: {exc_val}'", internal=True))
            do_exit = self.fatal

        return not do_exit
