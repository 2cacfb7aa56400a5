"""Runs Kaleidoscope source files or starts the interactive shell. Also uses error handling context manager. Called
from the kaleidoscope executable script.
"""

import argparse
import logging
import sys

from kaleidoscope.backend.jit import LLVMBackend
from kaleidoscope.lang.error import ErrorHandler, KaleidoscopeError
from kaleidoscope.lang.session import Failed, Session
from kaleidoscope.lang.shell import Shell, report


def run_file(path, sess, error_handler):
    """Runs every unit of the file at path, reporting as it goes. Returns the number of failed units."""
    try:
        with open(path, "r") as file:
            source = file.read()
    except OSError:
        raise KaleidoscopeError(f"'{path}' could not be opened")

    error_handler.register_source(source)
    failed = 0
    for outcome in sess.run(source):
        report(outcome, error_handler)
        failed += isinstance(outcome, Failed)
    return failed


def main():
    """Runs Kaleidoscope. Exit status is 1 if any unit of a script failed."""
    parser = argparse.ArgumentParser(prog="kaleidoscope")
    parser.add_argument("file", help="file to run (if empty, goes to command-line mode)", nargs="?")
    parser.add_argument("--dump-ir", action="store_true", help="print the LLVM IR of every unit")
    parser.add_argument("--verbose", action="store_true", help="log what the session and backend are doing")
    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.INFO if args.dump_ir else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s:%(name)s: %(message)s")

    with ErrorHandler(args.file or "<in>") as error_handler:
        sess = Session(LLVMBackend(dump_ir=args.dump_ir))

        if args.file is not None:
            run_file(args.file, sess, error_handler)
        else:
            Shell(sess, error_handler).cmdloop()

    if args.file is not None and error_handler.errors:
        sys.exit(1)


if __name__ == "__main__":
    main()
