"""
Settings formula parser
Operator-precedence grammar built from pyparsing combinators
"""

from typing import Callable, List, Sequence
from functools import lru_cache, reduce
import logging

from pyparsing import (
    DelimitedList, Forward, Literal, MatchFirst, Opt, ParseResults,
    ParserElement, Regex, Suppress, ZeroOrMore
)

from error_handling import FormulaParseError, create_enhanced_parser_with_errors
from utilities import MAX_NESTING_DEPTH, PARSE_FRAMES_PER_LEVEL, recursion_headroom
from expressions import (
    Expression, Number, Boolean, String, Variable, List as ListNode, Index, Slice,
    Apply, Condition, UnaryOperatorKind, BinaryOperatorKind, build_unary, build_binary
)

# Enable packrat parsing: apply, index, slice and parens all retry the same
# prefix, so nested parentheses are exponential without memoization. The cache
# is reset on every parse_string call, so it is left unbounded.
ParserElement.enable_packrat(cache_size_limit=None)

logger = logging.getLogger("settings_formula.parsing")

# A keyword may not be followed by an identifier character, nor preceded by
# one that can start or extend a name. Digits may precede it: 1if c else 2
KEYWORD_BEFORE = r"A-Za-z_."
KEYWORD_AFTER = r"A-Za-z0-9_."


# ============================================================================
# OPERATOR TOKENS
# ============================================================================

def _constant(value):
    """Parse action replacing the matched text with a fixed token"""
    def action(tokens):
        return [value]
    return action


def keyword(word: str) -> ParserElement:
    """Match `word` only as a whole word"""
    return Regex(rf"(?<![{KEYWORD_BEFORE}]){word}(?![{KEYWORD_AFTER}])").set_name(repr(word))


def operator_parser(kinds: Sequence) -> ParserElement:
    """Match any of the given operators, producing its operator-kind tag.

    Symbolic operators are plain literals, tried in the given order (so
    ``<=`` must come before ``<``). Word operators are keywords.
    """
    alternatives = []
    for kind in kinds:
        if kind.value.isalpha():
            token = keyword(kind.value)
        else:
            token = Literal(kind.value)
        alternatives.append(token.set_parse_action(_constant(kind)).set_name(kind.value))
    return MatchFirst(alternatives)


# ============================================================================
# PRECEDENCE LAYER COMBINATORS
# ============================================================================

def unary_prefix(prev_parser: ParserElement, kinds: Sequence[UnaryOperatorKind]) -> ParserElement:
    """Any number of prefix operators applied to one operand of the previous layer"""
    def fold(tokens: ParseResults) -> Expression:
        items = list(tokens)
        result = items[-1]
        for kind in reversed(items[:-1]):
            result = build_unary(kind, result)
        return result

    return (ZeroOrMore(operator_parser(kinds)) + prev_parser).set_parse_action(fold)


def left_associative_binary(prev_parser: ParserElement, kinds: Sequence[BinaryOperatorKind]) -> ParserElement:
    """``prev (op prev)*`` folded so the first operand is the innermost left child"""
    def fold(tokens: ParseResults) -> Expression:
        items = list(tokens)
        result = items[0]
        for i in range(1, len(items), 2):
            result = build_binary(items[i], result, items[i + 1])
        return result

    return (prev_parser + ZeroOrMore(operator_parser(kinds) + prev_parser)).set_parse_action(fold)


def right_associative_binary(prev_parser: ParserElement, kinds: Sequence[BinaryOperatorKind]) -> ParserElement:
    """``prev (op self)?``, matched as a flat chain and folded from the right"""
    def fold(tokens: ParseResults) -> Expression:
        items = list(tokens)
        result = items[-1]
        for i in range(len(items) - 2, 0, -2):
            result = build_binary(items[i], items[i - 1], result)
        return result

    return (prev_parser + ZeroOrMore(operator_parser(kinds) + prev_parser)).set_parse_action(fold)


def conditional_expression(prev_parser: ParserElement) -> ParserElement:
    """``a if c else b``; chains nest in the else branch"""
    if_kw = keyword("if")
    else_kw = keyword("else")

    def fold(tokens: ParseResults) -> Expression:
        items = list(tokens)
        result = items[-1]
        # items: a, c1, b, c2, d ... -> a if c1 else (b if c2 else d)
        for i in range(len(items) - 2, 0, -2):
            result = Condition(items[i], items[i - 1], result)
        return result

    return (
        prev_parser + ZeroOrMore(Suppress(if_kw) + prev_parser + Suppress(else_kw) + prev_parser)
    ).set_parse_action(fold)


# Tightest binding first, following Python's operator precedence
PRECEDENCE_TABLE: List[Callable[[ParserElement], ParserElement]] = [
    lambda prev: right_associative_binary(prev, [BinaryOperatorKind.EXPONENTIATE]),
    lambda prev: unary_prefix(prev, [UnaryOperatorKind.NEGATE]),
    lambda prev: left_associative_binary(prev, [
        BinaryOperatorKind.MULTIPLY,
        BinaryOperatorKind.DIVIDE,
        BinaryOperatorKind.MODULO,
    ]),
    lambda prev: left_associative_binary(prev, [
        BinaryOperatorKind.ADD,
        BinaryOperatorKind.SUBTRACT,
    ]),
    lambda prev: left_associative_binary(prev, [
        BinaryOperatorKind.EQUAL,
        BinaryOperatorKind.NOT_EQUAL,
        BinaryOperatorKind.LESS_EQUAL,
        BinaryOperatorKind.GREATER_EQUAL,
        BinaryOperatorKind.LESS,
        BinaryOperatorKind.GREATER,
    ]),
    lambda prev: unary_prefix(prev, [UnaryOperatorKind.NOT]),
    lambda prev: left_associative_binary(prev, [BinaryOperatorKind.AND]),
    lambda prev: left_associative_binary(prev, [BinaryOperatorKind.OR]),
    conditional_expression,
    lambda prev: right_associative_binary(prev, [BinaryOperatorKind.ASSIGN]),
]


def bracket_depth(text: str) -> int:
    """Deepest nesting of ( and [ outside string literals"""
    depth = deepest = 0
    quote = None
    for char in text:
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char in "([":
            depth += 1
            deepest = max(deepest, depth)
        elif char in ")]":
            depth = max(0, depth - 1)
    return deepest


# ============================================================================
# GRAMMAR
# ============================================================================

class FormulaGrammar:
    """Settings formula grammar definition using pyparsing"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._setup_grammar()

    def _setup_grammar(self):
        """Setup the lexical primitives, the primary rules and the precedence ladder"""

        # Forward declaration for recursive structures
        expression = Forward()

        # Keywords
        reserved = MatchFirst([keyword(word) for word in ("True", "False", "not", "and", "or", "if", "else")])

        # Literals
        number = Regex(r"[0-9]+\.[0-9]+|[0-9]*\.[0-9]+|[0-9]+\.[0-9]*|[0-9]+").set_parse_action(
            lambda t: Number(float(t[0]))
        ).set_name("number")

        boolean = (
            keyword("True").set_parse_action(_constant(Boolean(True))) |
            keyword("False").set_parse_action(_constant(Boolean(False)))
        ).set_name("boolean")

        # No escape sequences: the content is everything up to the matching quote
        string = Regex(r"\"[^\"]*\"|'[^']*'").set_parse_action(
            lambda t: String(t[0][1:-1])
        ).set_name("string")

        # Dotted names such as math.sqrt are a single identifier
        identifier = Regex(r"[A-Za-z_][A-Za-z0-9_.]*")
        variable = (~reserved + identifier).set_parse_action(
            lambda t: Variable(t[0])
        ).set_name("variable")

        parenthesized = (Suppress("(") + expression + Suppress(")")).set_name("parenthesized expression")

        list_literal = (
            Suppress("[") + Opt(DelimitedList(expression)) + Suppress("]")
        ).set_parse_action(lambda t: ListNode(tuple(t))).set_name("list expression")

        # Function, index and slice targets share the same prefix
        target = variable | parenthesized

        apply = (
            target + Suppress("(") + Opt(DelimitedList(expression)) + Suppress(")")
        ).set_parse_action(lambda t: Apply(t[0], tuple(t[1:]))).set_name("apply expression")

        index = (
            target + Suppress("[") + expression + Suppress("]")
        ).set_parse_action(lambda t: Index(t[0], t[1])).set_name("index expression")

        slice_expr = (
            target + Suppress("[") + expression + Suppress(":") + expression + Suppress("]")
        ).set_parse_action(lambda t: Slice(t[0], t[1], t[2])).set_name("slice expression")

        # Order matters: apply, index and slice must be tried before the bare
        # target so the longest construct wins; a top-level ':' is what makes
        # slice succeed where index failed
        primary = MatchFirst([
            number,
            boolean,
            string,
            list_literal,
            apply,
            index,
            slice_expr,
            parenthesized,
            variable,
        ]).set_name("primary expression")

        expression <<= reduce(lambda parser, layer: layer(parser), PRECEDENCE_TABLE, primary)
        expression.set_name("expression")

        # Store the main parsers
        self.expression = expression
        self.primary = primary
        self.number = number
        self.boolean = boolean
        self.string = string
        self.variable = variable
        self.list_literal = list_literal
        self.apply = apply
        self.index = index
        self.slice = slice_expr
        self.parenthesized = parenthesized

    def parse_expression(self, text: str) -> Expression:
        """Parse one formula; the whole input must be consumed

        Raises:
            FormulaParseError: malformed input, or brackets nested deeper than
                MAX_NESTING_DEPTH
        """
        depth = bracket_depth(text)
        if depth > MAX_NESTING_DEPTH:
            raise FormulaParseError(
                f"Expression nests brackets {depth} deep; the limit is {MAX_NESTING_DEPTH}"
            )

        def parse(source: str) -> Expression:
            return self.expression.parse_string(source, parse_all=True)[0]

        with recursion_headroom(PARSE_FRAMES_PER_LEVEL * (depth + 1)):
            result = create_enhanced_parser_with_errors(parse, text)(text)
        if self.debug:
            logger.debug("Parsed %r as %s", text, result.to_code_str())
        return result


class FormulaParser:
    """Main parser entry point"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = FormulaGrammar(debug)

    def parse_expression(self, text: str) -> Expression:
        """Parse a single formula"""
        if not isinstance(text, str):
            raise FormulaParseError(f"Expected a string formula, got {type(text).__name__}")
        return self.grammar.parse_expression(text)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> FormulaParser:
    """Create a formula parser"""
    return FormulaParser(debug=debug)


def create_debug_parser() -> FormulaParser:
    """Create a formula parser with debug enabled"""
    return FormulaParser(debug=True)


@lru_cache(maxsize=None)
def _shared_parser(debug: bool) -> FormulaParser:
    return create_parser(debug)


def parse(text: str, debug: bool = False) -> Expression:
    """Parse a formula with the shared parser instance"""
    return _shared_parser(debug).parse_expression(text)
