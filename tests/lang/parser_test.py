import unittest

from kaleidoscope.lang.error import LexError, ParseError
from kaleidoscope.lang.lexical import Lexer
from kaleidoscope.lang.operators import BINARY, UNARY, OperatorTable
from kaleidoscope.lang.parser import Parser
from kaleidoscope.lang.session import SessionState
from kaleidoscope.lang.syntax import (
    ANONYMOUS_FUNCTION, Binary, Call, ExternDecl, For, Function, FunctionDef, If, Number, OperatorInfo, Prototype,
    TopLevelExpr, Unary, Var, Variable,
)


def parser_for(text, operators=None):
    return Parser(Lexer(text), operators if operators is not None else OperatorTable.with_builtins())


def expr(text, operators=None):
    unit = parser_for(text, operators).parse_next_unit()
    assert isinstance(unit, TopLevelExpr), unit
    return unit.function.body


def units(text, operators=None):
    parser = parser_for(text, operators)
    result = []
    while True:
        unit = parser.parse_next_unit()
        if unit is None:
            return result
        result.append(unit)


N = Number
V = Variable


class ParserTestCase(unittest.TestCase):

    def test_precedence_and_associativity(self):
        should_pass = {
            "1+2*3": Binary("+", N(1.0), Binary("*", N(2.0), N(3.0))),
            "1*2+3": Binary("+", Binary("*", N(1.0), N(2.0)), N(3.0)),
            "1-2-3": Binary("-", Binary("-", N(1.0), N(2.0)), N(3.0)),
            "8/4/2": Binary("/", Binary("/", N(8.0), N(4.0)), N(2.0)),
            "(1+2)*3": Binary("*", Binary("+", N(1.0), N(2.0)), N(3.0)),
            "a<b+1": Binary("<", V("a"), Binary("+", V("b"), N(1.0))),
            "a==b<c": Binary("<", Binary("==", V("a"), V("b")), V("c")),
            "a=b=c": Binary("=", V("a"), Binary("=", V("b"), V("c"))),
            "x=y+1": Binary("=", V("x"), Binary("+", V("y"), N(1.0))),
            "1+2*3-4": Binary("-", Binary("+", N(1.0), Binary("*", N(2.0), N(3.0))), N(4.0)),
        }
        for case, result in should_pass.items():
            self.assertEqual(result, expr(case), case)

    def test_primaries(self):
        should_pass = {
            "42": N(42.0),
            "x": V("x"),
            "f()": Call("f", ()),
            "f(1, x)": Call("f", (N(1.0), V("x"))),
            "f(g(1))": Call("f", (Call("g", (N(1.0),)),)),
            "if x then 1 else 2": If(V("x"), N(1.0), N(2.0)),
            "if a < b then a else b + 1": If(Binary("<", V("a"), V("b")), V("a"), Binary("+", V("b"), N(1.0))),
        }
        for case, result in should_pass.items():
            self.assertEqual(result, expr(case), case)

    def test_for(self):
        body = V("i")
        cond = Binary("<", V("i"), N(5.0))

        self.assertEqual(For("i", N(1.0), cond, None, body), expr("for i = 1, i < 5 in i"))
        self.assertEqual(For("i", N(1.0), cond, N(2.0), body), expr("for i = 1, i < 5, 2 in i"))

    def test_var(self):
        should_pass = {
            "var x = 1, y = 2 in x+y": Var((("x", N(1.0)), ("y", N(2.0))), Binary("+", V("x"), V("y"))),
            "var x in x": Var((("x", None),), V("x")),
            "var a = 1, b in a": Var((("a", N(1.0)), ("b", None)), V("a")),
        }
        for case, result in should_pass.items():
            self.assertEqual(result, expr(case), case)

        should_fail = ["var in x", "var x = 1 x", "var x = 1,", "var 1 in x"]
        for case in should_fail:
            self.assertRaises(ParseError, parser_for(case).parse_next_unit)

    def test_expression_errors(self):
        should_fail = [
            "(1+2",
            "f(1 2)",
            "if x then 1",
            "if x 1 else 2",
            "for 1 = 1, 2 in 3",
            "for i = 1 in i",
            "for i = 1, 2 i",
            "1 +",
            ")",
            "!x",           # no builtin unary operators
            "1 | 2",        # unknown binary operator
            "then",
        ]
        for case in should_fail:
            self.assertRaises(ParseError, parser_for(case).parse_next_unit)

    def test_units(self):
        result = units("def add(a b) a+b; extern sin(x); add(1, 2);")
        self.assertEqual([
            FunctionDef(Function(Prototype("add", ("a", "b")), Binary("+", V("a"), V("b")))),
            ExternDecl(Prototype("sin", ("x",))),
            TopLevelExpr(Function(Prototype(ANONYMOUS_FUNCTION, ()), Call("add", (N(1.0), N(2.0))))),
        ], result)

    def test_semicolons_are_optional(self):
        should_pass = {
            "1 2": 2,
            ";;;1;;2;;": 2,
            "def f(x) x extern g()": 2,
            "": 0,
            "  ;  ": 0,
            "# comment\n": 0,
        }
        for case, count in should_pass.items():
            self.assertEqual(count, len(units(case)), case)

    def test_prototypes(self):
        should_pass = {
            "extern f()": Prototype("f", ()),
            "extern f(a b c)": Prototype("f", ("a", "b", "c")),
            "extern f(a, b)": Prototype("f", ("a", "b")),
            "extern unary!(v)": Prototype("unary!", ("v",), OperatorInfo(UNARY, "!", 1)),
            "extern binary|(a b)": Prototype("binary|", ("a", "b"), OperatorInfo(BINARY, "|", 30)),
            "extern binary| 5 (a b)": Prototype("binary|", ("a", "b"), OperatorInfo(BINARY, "|", 5)),
            "extern binary== 9 (a b)": Prototype("binary==", ("a", "b"), OperatorInfo(BINARY, "==", 9)),
        }
        for case, result in should_pass.items():
            self.assertEqual([ExternDecl(result)], units(case), case)

        should_fail = [
            "extern 1(a)",
            "extern f(1)",
            "extern f(a a)",
            "extern f a",
            "def unary!(a b) 0",
            "def binary|(a) 0",
            "def binary| 0 (a b) 0",
            "def binary| 101 (a b) 0",
            "def binary| 5.5 (a b) 0",
            "def unary(a) 0",
            "def binary ( (a b) 0",
        ]
        for case in should_fail:
            self.assertRaises(ParseError, parser_for(case).parse_next_unit)

    def test_operator_name(self):
        prototype = units("def binary| 5 (a b) a")[0].function.prototype
        self.assertEqual("binary|", prototype.name)
        self.assertTrue(prototype.is_operator)
        self.assertEqual(2, prototype.arity)
        self.assertEqual("binary| 5(a b)", str(prototype))

    def test_operator_declaration_affects_later_units(self):
        state = SessionState()
        parser = parser_for("def binary| 5 (a b) a; 1 | 2 + 3; !1; def unary!(v) 0; !1;", state.operators)

        first = parser.parse_next_unit()
        state.register(first.function.prototype)
        self.assertEqual(Binary("|", N(1.0), Binary("+", N(2.0), N(3.0))), parser.parse_next_unit().function.body)

        self.assertRaises(ParseError, parser.parse_next_unit)
        parser.synchronize()

        state.register(parser.parse_next_unit().function.prototype)
        self.assertEqual(Unary("!", N(1.0)), parser.parse_next_unit().function.body)

    def test_precedence_redefinition(self):
        operators = OperatorTable.with_builtins()
        before = expr("a | b * c", _with(operators, "|", 50))
        after = expr("a | b * c", _with(operators, "|", 5))

        self.assertEqual(Binary("*", Binary("|", V("a"), V("b")), V("c")), before)
        self.assertEqual(Binary("|", V("a"), Binary("*", V("b"), V("c"))), after)

    def test_user_operator_mixes_with_builtins(self):
        operators = OperatorTable.with_builtins()
        operators.define("!", UNARY, 1)
        operators.define(":", BINARY, 1)

        self.assertEqual(Binary(":", Call("f", ()), Unary("!", Unary("!", V("x")))), expr("f() : !!x", operators))
        self.assertEqual(Binary(":", Binary(":", V("a"), V("b")), V("c")), expr("a : b : c", operators))
        self.assertEqual(Unary("!", Binary("+", V("a"), V("b"))), expr("!(a+b)", operators))
        self.assertEqual(Binary("+", Unary("!", V("a")), V("b")), expr("!a+b", operators))

    def test_synchronize(self):
        should_pass = {
            "1 + ; 2": [2.0],
            "f(1 2 3); 4": [4.0],
            ") def f() 5": ["f"],
            "if then else extern g()": ["g"],
            "1 +": [],
        }
        for case, result in should_pass.items():
            parser = parser_for(case)
            self.assertRaises(ParseError, parser.parse_next_unit)
            parser.synchronize()

            rest = []
            unit = parser.parse_next_unit()
            while unit is not None:
                if isinstance(unit, TopLevelExpr):
                    rest.append(unit.function.body.value)
                elif isinstance(unit, FunctionDef):
                    rest.append(unit.function.name)
                else:
                    rest.append(unit.prototype.name)
                unit = parser.parse_next_unit()
            self.assertEqual(result, rest, case)

    def test_synchronize_over_lex_errors(self):
        parser = parser_for("1.2.3 + 4.5.6; 7")
        self.assertRaises(LexError, parser.parse_next_unit)
        parser.synchronize()
        self.assertEqual(N(7.0), parser.parse_next_unit().function.body)

    def test_positions(self):
        body = expr("\n  a +\n b")
        self.assertEqual((2, 5), (body.line, body.column))
        self.assertEqual((2, 3), (body.lhs.line, body.lhs.column))
        self.assertEqual((3, 2), (body.rhs.line, body.rhs.column))

    def test_error_positions(self):
        with self.assertRaises(ParseError) as ctx:
            parser_for("def f(x)\n  x + )").parse_next_unit()
        self.assertEqual((2, 7), (ctx.exception.line, ctx.exception.column))


def _with(operators, symbol, precedence):
    operators.define(symbol, BINARY, precedence)
    return operators


if __name__ == '__main__':
    unittest.main()
