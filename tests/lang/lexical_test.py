import unittest

from kaleidoscope.lang.error import LexError
from kaleidoscope.lang.lexical import EOF, IDENTIFIER, KEYWORD, NUMBER, OPERATOR, PUNCTUATION, Lexer, Token


def kinds_and_values(text):
    return [(token.kind, token.value) for token in Lexer(text)]


class LexicalTestCase(unittest.TestCase):

    def test_numbers(self):
        should_pass = {"1": 1.0, "1.5": 1.5, "42.": 42.0, ".5": 0.5, "007": 7.0, "3.25": 3.25}
        for case, value in should_pass.items():
            self.assertEqual([(NUMBER, value), (EOF, None)], kinds_and_values(case))

        should_fail = ["1.2.3", "1..2", "0.0.0"]
        for case in should_fail:
            self.assertRaises(LexError, Lexer(case).next_token)

    def test_malformed_number_position(self):
        lexer = Lexer("foo 1.2.3")
        lexer.next_token()
        with self.assertRaises(LexError) as ctx:
            lexer.next_token()
        self.assertEqual((1, 5), (ctx.exception.line, ctx.exception.column))

    def test_identifiers_and_keywords(self):
        should_pass = {
            "foo": [(IDENTIFIER, "foo")],
            "x1y2": [(IDENTIFIER, "x1y2")],
            "def": [(KEYWORD, "def")],
            "extern binary unary var": [(KEYWORD, "extern"), (KEYWORD, "binary"), (KEYWORD, "unary"),
                                        (KEYWORD, "var")],
            "if then else for in": [(KEYWORD, "if"), (KEYWORD, "then"), (KEYWORD, "else"), (KEYWORD, "for"),
                                    (KEYWORD, "in")],
            "define": [(IDENTIFIER, "define")],
        }
        for case, result in should_pass.items():
            self.assertEqual(result + [(EOF, None)], kinds_and_values(case))

    def test_operators_and_punctuation(self):
        should_pass = {
            "a+b": [(IDENTIFIER, "a"), (OPERATOR, "+"), (IDENTIFIER, "b")],
            "a==b": [(IDENTIFIER, "a"), (OPERATOR, "=="), (IDENTIFIER, "b")],
            "a=b": [(IDENTIFIER, "a"), (OPERATOR, "="), (IDENTIFIER, "b")],
            "!x": [(OPERATOR, "!"), (IDENTIFIER, "x")],
            "f(a, b);": [(IDENTIFIER, "f"), (PUNCTUATION, "("), (IDENTIFIER, "a"), (PUNCTUATION, ","),
                         (IDENTIFIER, "b"), (PUNCTUATION, ")"), (PUNCTUATION, ";")],
            "1-.5": [(NUMBER, 1.0), (OPERATOR, "-"), (NUMBER, 0.5)],
            "a . b": [(IDENTIFIER, "a"), (OPERATOR, "."), (IDENTIFIER, "b")],
            "\u00b2": [(OPERATOR, "\u00b2")],
            "1\u00b3": [(NUMBER, 1.0), (OPERATOR, "\u00b3")],
            ".\u2460": [(OPERATOR, "."), (OPERATOR, "\u2460")],
        }
        for case, result in should_pass.items():
            self.assertEqual(result + [(EOF, None)], kinds_and_values(case))

    def test_comments_and_whitespace(self):
        should_pass = {
            "# only a comment": [],
            "x # trailing\ny": [(IDENTIFIER, "x"), (IDENTIFIER, "y")],
            "  \t\n  1  ": [(NUMBER, 1.0)],
            "": [],
        }
        for case, result in should_pass.items():
            self.assertEqual(result + [(EOF, None)], kinds_and_values(case))

    def test_positions(self):
        tokens = list(Lexer("def f(x)\n  x+1"))
        positions = [(token.value, token.line, token.column) for token in tokens[:-1]]
        self.assertEqual([("def", 1, 1), ("f", 1, 5), ("(", 1, 6), ("x", 1, 7), (")", 1, 8),
                          ("x", 2, 3), ("+", 2, 4), (1.0, 2, 5)], positions)

    def test_eof_is_sticky(self):
        lexer = Lexer("x")
        lexer.next_token()
        for __ in range(3):
            self.assertEqual(EOF, lexer.next_token().kind)

    def test_token(self):
        token = Token(OPERATOR, "+", 3, 4)
        self.assertTrue(token.is_(OPERATOR))
        self.assertTrue(token.is_(OPERATOR, "+"))
        self.assertFalse(token.is_(OPERATOR, "-"))
        self.assertFalse(token.is_(PUNCTUATION, "+"))
        self.assertEqual("operator '+'", str(token))
        self.assertEqual("end of input", str(Token(EOF)))


if __name__ == '__main__':
    unittest.main()
