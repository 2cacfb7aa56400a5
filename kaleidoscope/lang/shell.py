"""Handles interactive/command-line mode for the Kaleidoscope REPL. Uses cmd as backend."""

import cmd

from kaleidoscope.lang.session import Declared, Evaluated, Failed
from kaleidoscope.lang.syntax import FunctionDef


def report(outcome, error_handler):
    """Prints outcome the way both the shell and the script runner do. Errors go through error_handler."""
    if isinstance(outcome, Evaluated):
        print(f"Evaluated to {outcome.value:f}")
    elif isinstance(outcome, Declared):
        what = "function definition" if isinstance(outcome.unit, FunctionDef) else "extern"
        print(f"Read {what}: {outcome.prototype}")
    elif isinstance(outcome, Failed):
        error_handler.throw(outcome.error)


class Shell(cmd.Cmd):
    """Kaleidoscope shell. Each complete line is run as source against the same session."""
    intro = "Kaleidoscope :: LLVM JIT backend\nType '?' or 'help' for more information."
    prompt = "ready> "
    secondary_prompt = "...> "  # used for line continuations
    _tmp_prompt = "ready> "     # also used for prompt swapping in line continuations

    def __init__(self, sess, error_handler, *args, **kwargs):
        super().__init__(*args, **kwargs)

        self.sess = sess
        self.error_handler = error_handler
        self.error_handler.fatal = False  # an internal error should not end the session

        self._tmp_line = ""

    @staticmethod
    def needs_continuation(text):
        """Whether or not text has unclosed parentheses, in which case the next line is appended to it."""
        code = "\n".join(line.split("#", 1)[0] for line in text.splitlines())
        return code.count("(") > code.count(")")

    def default(self, line):
        """Executes arbitrary Kaleidoscope source."""
        with self.error_handler:  # needed because cmd.Cmd automatically exits on Exception
            text = self._tmp_line + line + "\n"

            if self.needs_continuation(text):
                self._tmp_line = text
                self.prompt = self.secondary_prompt
                return

            self._tmp_line = ""
            self.prompt = self._tmp_prompt

            self.error_handler.register_source(text)
            for outcome in self.sess.run(text):
                report(outcome, self.error_handler)

    def do_help(self, arg):
        """Doesnt return docs, but rather a short intro."""
        print("Welcome to Kaleidoscope!\n\n"
              "Every value is a double. Define functions with 'def', declare native ones with \n"
              "'extern' and type any expression to evaluate it right away:\n\n"
              "  def fib(n) if n < 3 then 1 else fib(n-1) + fib(n-2);\n"
              "  fib(10);\n\n"
              "New operators can be defined too, e.g. 'def binary| 5 (a b) if a then 1 else b;'.\n"
              "Type 'functions' to list what is declared and 'operators' for the operator table.")

    def do_functions(self, arg):
        """Lists every declared or defined function."""
        for prototype in self.sess.state.signatures.values():
            print(prototype)

    def do_operators(self, arg):
        """Lists the operator table, tightest binding first."""
        for entry in self.sess.state.operators:
            origin = "user" if entry.is_user_defined else "builtin"
            print(f"{entry.arity} {entry.symbol} {entry.precedence} {entry.associativity} ({origin})")

    def emptyline(self):
        """Do not repeat previous command on empty line."""
        return ""

    def do_EOF(self, arg):
        """Exits interpreter."""
        print()
        return self.do_exit(arg)

    def do_exit(self, arg):
        """Exits interpreter."""
        return True
