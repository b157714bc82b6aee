"""
Error taxonomy and parse error enhancement for settings formulas
Parse failures are described by an immutable record built from pyparsing's
exception; the exception classes are the public surface
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union
from pyparsing import ParseException
import re

# Characters of source shown after the failure column
GOT_WINDOW = 10


# ============================================================================
# PARSE FAILURE RECORD
# ============================================================================

@dataclass(frozen=True)
class ParseFailure:
    """Where a formula stopped parsing and what might fix it"""
    message: str
    location: int = 0
    line: int = 0
    column: int = 0
    expected: Tuple[str, ...] = ()
    got: Optional[str] = None
    context: Optional[str] = None
    suggestions: Tuple[str, ...] = ()

    def render(self) -> str:
        parts = [f"Parse error at line {self.line}, column {self.column}:", f"  {self.message}"]
        if self.expected:
            parts.append(f"  Expected: {', '.join(self.expected)}")
        if self.got:
            parts.append(f"  Got: {self.got}")
        if self.context:
            parts.append(f"  Context:\n{self.context}")
        if self.suggestions:
            parts.append("  Suggestions:")
            parts.extend(f"    - {hint}" for hint in self.suggestions)
        return "\n".join(parts) + "\n"


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def source_line(source_text: str, line_num: int) -> Optional[str]:
    """1-based line of the source, or None past either end"""
    lines = source_text.split('\n')
    if 1 <= line_num <= len(lines):
        return lines[line_num - 1]
    return None


def get_context_lines(source_text: str, line_num: int, col_num: int) -> str:
    """Render the offending line with a caret under the failing column"""
    text = source_line(source_text, line_num)
    if text is None:
        return ""
    return f"    {text}\n    {' ' * (col_num - 1)}^"


def extract_expected(exc: ParseException) -> Tuple[str, ...]:
    """What pyparsing was looking for, taken from its message"""
    match = re.search(r"Expected\s+(.+?)(?:,\s+found|\s+\(|$)", str(exc))
    return (match.group(1),) if match else ("valid syntax",)


def extract_got(source_text: str, line_num: int, col_num: int) -> str:
    """A short window of the source starting at the failure column"""
    text = source_line(source_text, line_num)
    if text is None:
        return "unknown"
    window = text[max(0, col_num - 1):col_num - 1 + GOT_WINDOW + 1].strip()
    return f"'{window}'" if window else "end of input"


def generate_suggestions(source_text: str, got: str) -> Tuple[str, ...]:
    """Hints for the mistakes people make when writing formulas"""
    suggestions = []

    if source_text.count("(") != source_text.count(")"):
        suggestions.append("Parentheses are unbalanced")

    if source_text.count("[") != source_text.count("]"):
        suggestions.append("Square brackets are unbalanced")

    if source_text.count('"') % 2 or source_text.count("'") % 2:
        suggestions.append("A string literal is missing its closing quote")

    if re.search(r"(^|[^=!<>:])=($|[^=])", source_text):
        suggestions.append("Use '==' for comparison and ':=' for assignment")

    if re.search(r"&&|\|\||!(?!=)", source_text):
        suggestions.append("Use the words 'and', 'or' and 'not' for boolean logic")

    if " if " in f" {source_text} " and " else " not in f" {source_text} ":
        suggestions.append("Conditional expressions need an 'else' branch: a if c else b")

    if got.startswith("'true") or got.startswith("'false"):
        suggestions.append("Boolean literals are spelled 'True' and 'False'")

    return tuple(suggestions)


def describe_parse_exception(exc: ParseException, source_text: str) -> ParseFailure:
    """Build the failure record for a pyparsing exception"""
    got = extract_got(source_text, exc.lineno, exc.column)
    return ParseFailure(
        message=str(exc),
        location=exc.loc,
        line=exc.lineno,
        column=exc.column,
        expected=extract_expected(exc),
        got=got,
        context=get_context_lines(source_text, exc.lineno, exc.column),
        suggestions=generate_suggestions(source_text, got),
    )


# ============================================================================
# EXCEPTION CLASSES
# ============================================================================

class FormulaError(Exception):
    """Base class for every error raised while parsing or evaluating a formula"""


class FormulaParseError(FormulaError):
    """Malformed formula, or a valid prefix followed by unconsumed text

    The fields of the underlying ParseFailure (``line``, ``column``, ``got``,
    ``suggestions`` ...) are readable directly on the exception.
    """
    def __init__(self, failure: Union[ParseFailure, str]):
        if isinstance(failure, str):
            failure = ParseFailure(failure)
        self.failure = failure
        super().__init__(failure.message)

    def __getattr__(self, name: str):
        if name == "failure":
            raise AttributeError(name)
        return getattr(self.failure, name)

    def __str__(self) -> str:
        return self.failure.render()

    @classmethod
    def from_exception(cls, exc: ParseException, source_text: str) -> "FormulaParseError":
        return cls(describe_parse_exception(exc, source_text))


class FormulaEvaluationError(FormulaError):
    """Evaluation aborted; the message names the offending operation"""
    def __init__(self, message: str, operation: Optional[str] = None):
        self.message = message
        self.operation = operation
        super().__init__(message)


class UndefinedVariableError(FormulaEvaluationError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Variable '{name}' is not defined", "Variable")


class TypeMismatchError(FormulaEvaluationError):
    def __init__(self, operation: str, expected: str, actual: str, role: str = "operand"):
        self.expected = expected
        self.actual = actual
        super().__init__(f"{operation} requires {expected} for {role}, got {actual}", operation)


class InvalidAssignmentTargetError(FormulaEvaluationError):
    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Left side of assignment must be a variable, got {target}", "Assignment")


class NegativeFactorialDomainError(FormulaEvaluationError):
    def __init__(self, value: float):
        self.value = value
        super().__init__(f"Factorial of {value} is not defined", "Factorial")


class IndexOutOfRangeError(FormulaEvaluationError):
    def __init__(self, index: float, length: int):
        self.index = index
        self.length = length
        super().__init__(f"Index {index} is not a valid position in a list of length {length}", "Index")


class FunctionCallError(FormulaEvaluationError):
    def __init__(self, function: str, reason: str):
        self.function = function
        super().__init__(f"Call to {function} failed: {reason}", "Apply")


class NestingDepthError(FormulaEvaluationError):
    def __init__(self, operation: str):
        super().__init__(f"Expression is nested too deeply to {operation}", operation)


def create_enhanced_parser_with_errors(parser_func, source_text: str):
    """Wrap a parse function so pyparsing failures surface as FormulaParseError"""
    def enhanced_parse(*args, **kwargs):
        try:
            return parser_func(*args, **kwargs)
        except ParseException as e:
            raise FormulaParseError.from_exception(e, source_text) from e
        except RecursionError as e:
            raise FormulaParseError("Expression is nested too deeply to parse") from e

    return enhanced_parse
