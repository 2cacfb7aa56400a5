"""Lexical analysis for Kaleidoscope. Note that this module does not provide unit parsing, but rather tokenization of
arbitrary source text into a lazy stream of tokens.

Tokens can be loosely defined as follows:

```
<identifier>  ::= <letter> (<letter> | <digit>)*  ; keywords win over identifiers
<number>      ::= <digit>+ ("." <digit>*)?        ; always a 64-bit float
                | "." <digit>+                    ; a second "." is a LexError
<punctuation> ::= "(" | ")" | "," | ";"
<operator>    ::= "==" | <any other char>         ; meaning is decided by the parser's operator table

<comment>     ::= "#" <char>* <newline>
```
"""

from dataclasses import dataclass

from kaleidoscope.lang.error import LexError


EOF = "eof"
IDENTIFIER = "identifier"
NUMBER = "number"
KEYWORD = "keyword"
OPERATOR = "operator"
PUNCTUATION = "punctuation"

KEYWORDS = frozenset(["def", "extern", "if", "then", "else", "for", "in", "binary", "unary", "var"])
PUNCTUATIONS = frozenset("(),;")
MULTI_CHAR_OPERATORS = ("==",)


def is_digit(char):
    """ASCII digits only: str.isdigit also accepts superscripts and other digits that float() rejects."""
    return "0" <= char <= "9"


@dataclass(frozen=True)
class Token:
    """A single lexeme. value is the name for identifiers, the float for numbers and the text for everything else."""
    kind: str
    value: object = None
    line: int = 1
    column: int = 1

    def is_(self, kind, value=None):
        """Whether or not this token has kind (and value, if given)."""
        return self.kind == kind and (value is None or self.value == value)

    def __str__(self):
        if self.kind == EOF:
            return "end of input"
        if self.kind == NUMBER:
            return f"number '{self.value:g}'"
        return f"{self.kind} '{self.value}'"


class Lexer:
    """Converts source text into tokens, one call to next_token at a time. There is no rewind: build a new Lexer
    to read new text.
    """

    def __init__(self, text):
        self.text = text
        self.pos = 0
        self.line = 1
        self.column = 1

    @property
    def current_char(self):
        return self.text[self.pos] if self.pos < len(self.text) else None

    def peek(self, n=1):
        idx = self.pos + n
        return self.text[idx] if idx < len(self.text) else None

    def advance(self):
        if self.current_char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.pos += 1

    def skip_whitespace_and_comments(self):
        while self.current_char is not None:
            if self.current_char.isspace():
                self.advance()
            elif self.current_char == "#":
                while self.current_char is not None and self.current_char != "\n":
                    self.advance()
            else:
                return

    def read_identifier(self, line, column):
        start = self.pos
        while self.current_char is not None and self.current_char.isalnum():
            self.advance()

        name = self.text[start:self.pos]
        if name in KEYWORDS:
            return Token(KEYWORD, name, line, column)
        return Token(IDENTIFIER, name, line, column)

    def read_number(self, line, column):
        start = self.pos
        while self.current_char is not None and (is_digit(self.current_char) or self.current_char == "."):
            self.advance()

        literal = self.text[start:self.pos]
        if literal.count(".") > 1:
            raise LexError(f"malformed number literal '{literal}'", line, column)
        return Token(NUMBER, float(literal), line, column)

    def starts_number(self):
        char = self.current_char
        if is_digit(char):
            return True
        return char == "." and self.peek() is not None and is_digit(self.peek())

    def next_token(self):
        """Returns the next token. Returns an EOF token (forever) once the text is exhausted."""
        self.skip_whitespace_and_comments()
        line, column = self.line, self.column

        char = self.current_char
        if char is None:
            return Token(EOF, None, line, column)

        if char.isalpha():
            return self.read_identifier(line, column)

        if self.starts_number():
            return self.read_number(line, column)

        if char in PUNCTUATIONS:
            self.advance()
            return Token(PUNCTUATION, char, line, column)

        for symbol in MULTI_CHAR_OPERATORS:
            if self.text.startswith(symbol, self.pos):
                for __ in symbol:
                    self.advance()
                return Token(OPERATOR, symbol, line, column)

        self.advance()
        return Token(OPERATOR, char, line, column)

    def __iter__(self):
        """Yields tokens up to and including the EOF token."""
        while True:
            token = self.next_token()
            yield token
            if token.kind == EOF:
                return
