"""
Utilities module for the formula interpreter
Operand tag checks, error message builders, total float arithmetic and the
recursion budget shared by the parser and the tree walkers
"""

from contextlib import contextmanager
from typing import Any, Callable, Tuple
import math
import sys

from error_handling import TypeMismatchError, FormulaEvaluationError, FunctionCallError
from values import (
  Result,
  NumberValue,
  BooleanValue,
  ListValue,
  CallableValue,
  make_boolean,
  type_name_of,
)


# ==================== NESTING LIMITS ====================

# Deepest bracket nesting ( "(" or "[" ) a formula may use
MAX_NESTING_DEPTH = 100

# Deepest expression tree the evaluator and analyzers will walk; long operator
# chains such as 1 + 1 + ... + 1 produce one level per operator
MAX_TREE_DEPTH = 5000

# Python frames spent per bracket level while parsing (the level passes through
# every precedence layer) and per tree level while walking
PARSE_FRAMES_PER_LEVEL = 100
WALK_FRAMES_PER_LEVEL = 4


@contextmanager
def recursion_headroom(frames: int):
  """
  Allow `frames` more Python frames than the current limit inside the block.
  The previous limit is restored on exit.
  """
  previous = sys.getrecursionlimit()
  sys.setrecursionlimit(previous + frames)
  try:
    yield
  finally:
    sys.setrecursionlimit(previous)


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(
  operation: str,
  role: str,
  expected: str,
  actual: Result
) -> TypeMismatchError:
  """
  Generate type mismatch error

  Args:
    operation: Node kind performing the check (e.g. "Addition")
    role: Which operand failed (e.g. "left operand", "index")
    expected: Expected value tag
    actual: Actual Result

  Returns:
    TypeMismatchError with formatted message
  """
  return TypeMismatchError(operation, expected, type_name_of(actual), role)


# ==================== TAG CHECKS ====================

def expect_number(operation: str, value: Result, role: str = "operand") -> float:
  if isinstance(value, NumberValue):
    return value.value
  raise type_mismatch_error(operation, role, NumberValue.type_name, value)


def expect_boolean(operation: str, value: Result, role: str = "operand") -> bool:
  if isinstance(value, BooleanValue):
    return value.value
  raise type_mismatch_error(operation, role, BooleanValue.type_name, value)


def expect_list(operation: str, value: Result, role: str = "operand") -> Tuple[Result, ...]:
  if isinstance(value, ListValue):
    return value.items
  raise type_mismatch_error(operation, role, ListValue.type_name, value)


def expect_callable(operation: str, value: Result, role: str = "function") -> CallableValue:
  if isinstance(value, CallableValue):
    return value
  raise type_mismatch_error(operation, role, CallableValue.type_name, value)


def is_integral(number: float) -> bool:
  return math.isfinite(number) and number == math.trunc(number)


# ==================== TOTAL FLOAT ARITHMETIC ====================

def divide(dividend: float, divisor: float) -> float:
  """IEEE division: zero divisors give a signed infinity, 0/0 gives NaN"""
  if divisor == 0:
    if dividend == 0 or math.isnan(dividend):
      return math.nan
    return math.copysign(math.inf, dividend) * math.copysign(1.0, divisor)
  return dividend / divisor


def modulo(dividend: float, divisor: float) -> float:
  """Remainder with the sign of the dividend; NaN where it is undefined"""
  if divisor == 0 or math.isinf(dividend) or math.isnan(dividend) or math.isnan(divisor):
    return math.nan
  if math.isinf(divisor):
    return dividend
  return math.fmod(dividend, divisor)


def power(base: float, exponent: float) -> float:
  """math.pow without exceptions: overflow saturates, undefined results are NaN"""
  try:
    return math.pow(base, exponent)
  except OverflowError:
    if base < 0 and is_integral(exponent) and exponent % 2 == 1:
      return -math.inf
    return math.inf
  except ValueError:
    if base == 0 and exponent < 0:
      if math.copysign(1.0, base) < 0 and is_integral(exponent) and exponent % 2 == 1:
        return -math.inf
      return math.inf
    return math.nan


# ==================== OPERATION FACTORIES ====================

def binary_arithmetic_op(
  op: Callable[[float, float], float],
  op_name: str
) -> Callable[[Result, Result], NumberValue]:
  """
  Factory for binary arithmetic operations

  Args:
    op: Float operation (e.g., operator.add, divide)
    op_name: Node kind for error messages

  Returns:
    Function that checks both operands are numbers and applies op

  Examples:
    add = binary_arithmetic_op(operator.add, "Addition")
    add(NumberValue(1), NumberValue(2)) -> NumberValue(3.0)
  """
  def arithmetic(left: Result, right: Result) -> NumberValue:
    x = expect_number(op_name, left, "left operand")
    y = expect_number(op_name, right, "right operand")
    return NumberValue(op(x, y))

  return arithmetic


def binary_comparison_op(
  op: Callable[[float, float], bool],
  op_name: str
) -> Callable[[Result, Result], BooleanValue]:
  """
  Factory for ordering comparisons between numbers

  Args:
    op: Python operator function (e.g., operator.lt)
    op_name: Node kind for error messages

  Returns:
    Function that performs the comparison
  """
  def comparison(left: Result, right: Result) -> BooleanValue:
    x = expect_number(op_name, left, "left operand")
    y = expect_number(op_name, right, "right operand")
    return make_boolean(op(x, y))

  return comparison


def binary_logical_op(
  op: Callable[[bool, bool], bool],
  op_name: str
) -> Callable[[Result, Result], BooleanValue]:
  """Factory for boolean connectives; both operands arrive already evaluated"""
  def logical(left: Result, right: Result) -> BooleanValue:
    x = expect_boolean(op_name, left, "left operand")
    y = expect_boolean(op_name, right, "right operand")
    return make_boolean(op(x, y))

  return logical


def call_host_function(callee: CallableValue, args: Tuple[Any, ...]) -> Any:
  """Invoke a caller-supplied function, reporting failures as evaluation errors"""
  name = callee.name or getattr(callee.function, '__name__', 'function')
  try:
    return callee.function(*args)
  except FormulaEvaluationError:
    raise
  except Exception as e:
    raise FunctionCallError(name, f"{type(e).__name__}: {e}") from e
