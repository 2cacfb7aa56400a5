"""Operator table: the mutable registry the parser consults for every operator token. Seeded with the built-in binary
operators and extended (or overridden) by `unary`/`binary` prototypes as they are registered.
"""

from dataclasses import dataclass


UNARY = "unary"
BINARY = "binary"

LEFT = "left"
RIGHT = "right"


@dataclass(frozen=True)
class OperatorEntry:
    symbol: str
    arity: str
    precedence: int
    associativity: str = LEFT
    is_user_defined: bool = False


# symbol: (precedence, associativity); higher binds tighter
BUILTIN_BINARY = {
    "=": (2, RIGHT),
    "<": (10, LEFT),
    ">": (10, LEFT),
    "==": (10, LEFT),
    "+": (20, LEFT),
    "-": (20, LEFT),
    "*": (40, LEFT),
    "/": (40, LEFT),
}


class OperatorTable:
    """Maps (symbol, arity) to an OperatorEntry. Precedence 0 is reserved to mean "not a binary operator", so every
    entry has a precedence of at least 1.
    """

    def __init__(self, entries=()):
        self._entries = {}
        for entry in entries:
            self._entries[entry.symbol, entry.arity] = entry

    @classmethod
    def with_builtins(cls):
        """Returns a table seeded with the built-in binary operators."""
        return cls(OperatorEntry(symbol, BINARY, precedence, associativity)
                   for symbol, (precedence, associativity) in BUILTIN_BINARY.items())

    def entry(self, symbol, arity):
        return self._entries.get((symbol, arity))

    def lookup(self, symbol, arity):
        """Returns the precedence of symbol for arity, or None if symbol is not registered for arity."""
        entry = self.entry(symbol, arity)
        return entry.precedence if entry else None

    def define(self, symbol, arity, precedence, associativity=LEFT, user_defined=True):
        """Inserts or overwrites the entry for (symbol, arity), built-ins included. Returns the new entry."""
        if arity not in (UNARY, BINARY):
            raise ValueError(f"unknown operator arity '{arity}'")
        if precedence < 1:
            raise ValueError(f"precedence of '{symbol}' must be at least 1, got {precedence}")

        entry = OperatorEntry(symbol, arity, precedence, associativity, user_defined)
        self._entries[symbol, arity] = entry
        return entry

    def __iter__(self):
        return iter(sorted(self._entries.values(), key=lambda e: (e.arity, -e.precedence, e.symbol)))

    def __len__(self):
        return len(self._entries)
