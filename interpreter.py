"""
Formula interpreter - tree-walking evaluation
Every node is evaluated by a free function; the environment is threaded by
reference and written only by assignment nodes
"""

from typing import Any, Callable, Dict, Mapping, Optional, Union
import logging
import math
import operator

from error_handling import (
  FunctionCallError,
  IndexOutOfRangeError,
  InvalidAssignmentTargetError,
  NegativeFactorialDomainError,
  UndefinedVariableError,
)
from expressions import (
  Expression,
  Number,
  Boolean,
  String,
  Variable,
  List,
  Index,
  Slice,
  Apply,
  Condition,
  Negate,
  Not,
  Factorial,
  Addition,
  Subtraction,
  Multiply,
  Divide,
  Modulo,
  Exponentiate,
  Equality,
  Inequality,
  LessThan,
  GreaterThan,
  LessThanEq,
  GreaterThanEq,
  And,
  Or,
  Assignment,
  node_name,
)
from semantics import walk_budget
from utilities import (
  binary_arithmetic_op,
  binary_comparison_op,
  binary_logical_op,
  call_host_function,
  divide,
  expect_boolean,
  expect_callable,
  expect_list,
  expect_number,
  is_integral,
  modulo,
  power,
)
from values import (
  Environment,
  Result,
  NumberValue,
  StringValue,
  ListValue,
  coerce_environment,
  from_python,
  make_boolean,
  to_python,
)

logger = logging.getLogger("settings_formula.interpreter")


# ============================================================================
# DISPATCH
# ============================================================================

def eval_ast(node: Expression, env: Environment, debug: bool = False) -> Result:
  """Evaluate one node against the shared environment"""
  if debug:
    logger.debug("Evaluating: %s", node_name(node))

  evaluator = _EVALUATORS.get(type(node))
  if evaluator is None:
    raise TypeError(f"Unknown expression node: {node!r}")
  return evaluator(node, env, debug)


def resolve(node: Expression, environment: Union[Environment, Mapping[str, Any], None] = None,
            debug: bool = False) -> Result:
  """
  Evaluate an expression tree

  Args:
    node: Root of the tree
    environment: Environment to read and assign into. A plain dict is read
      through and receives assignments as plain Python values; None means
      an empty one
    debug: Log every evaluated node

  Returns:
    The Result of the root node

  Raises:
    FormulaEvaluationError subclass describing the first failure
    TypeError: environment is a read-only mapping
  """
  env = coerce_environment(environment)
  with walk_budget(node, "evaluate"):
    return eval_ast(node, env, debug)


# ============================================================================
# LITERALS AND NAMES
# ============================================================================

def eval_number(node: Number, env: Environment, debug: bool = False) -> Result:
  return NumberValue(node.value)


def eval_boolean(node: Boolean, env: Environment, debug: bool = False) -> Result:
  return make_boolean(node.value)


def eval_string(node: String, env: Environment, debug: bool = False) -> Result:
  return StringValue(node.value)


def eval_variable(node: Variable, env: Environment, debug: bool = False) -> Result:
  """Exact-key lookup; a missing key is an error, a null binding is not"""
  value = env.lookup(node.name)
  if value is None:
    raise UndefinedVariableError(node.name)
  return value


# ============================================================================
# COMPOUND NODES
# ============================================================================

def eval_list(node: List, env: Environment, debug: bool = False) -> Result:
  return ListValue(tuple([eval_ast(element, env, debug) for element in node.elements]))


def eval_index(node: Index, env: Environment, debug: bool = False) -> Result:
  items = expect_list("Index", eval_ast(node.target, env, debug), "indexed value")
  position = expect_number("Index", eval_ast(node.index, env, debug), "index")

  if not is_integral(position) or not -len(items) <= position < len(items):
    raise IndexOutOfRangeError(position, len(items))
  return items[int(position)]


def _slice_bound(bound: float, length: int) -> int:
  # truncate toward zero; out-of-range values are clamped by slicing itself
  if math.isnan(bound):
    return 0
  if math.isinf(bound):
    return length if bound > 0 else -length - 1
  return math.trunc(bound)


def eval_slice(node: Slice, env: Environment, debug: bool = False) -> Result:
  items = expect_list("Slice", eval_ast(node.target, env, debug), "sliced value")
  start = expect_number("Slice", eval_ast(node.start, env, debug), "start bound")
  stop = expect_number("Slice", eval_ast(node.stop, env, debug), "stop bound")
  return ListValue(items[_slice_bound(start, len(items)):_slice_bound(stop, len(items))])


def eval_apply(node: Apply, env: Environment, debug: bool = False) -> Result:
  """Call a host function with positional, already-evaluated arguments"""
  callee = expect_callable("Apply", eval_ast(node.function, env, debug))
  args = tuple([to_python(eval_ast(argument, env, debug)) for argument in node.arguments])

  if debug:
    logger.debug("Calling %s with %d argument(s)", callee, len(args))

  returned = call_host_function(callee, args)
  try:
    return from_python(returned)
  except TypeError as e:
    raise FunctionCallError(str(callee), str(e)) from e


def eval_condition(node: Condition, env: Environment, debug: bool = False) -> Result:
  """Only the taken branch is evaluated"""
  if expect_boolean("Condition", eval_ast(node.condition, env, debug), "condition"):
    return eval_ast(node.when_true, env, debug)
  return eval_ast(node.when_false, env, debug)


# ============================================================================
# UNARY OPERATORS
# ============================================================================

def eval_negate(node: Negate, env: Environment, debug: bool = False) -> Result:
  return NumberValue(-expect_number("Negate", eval_ast(node.operand, env, debug)))


def eval_not(node: Not, env: Environment, debug: bool = False) -> Result:
  return make_boolean(not expect_boolean("Not", eval_ast(node.operand, env, debug)))


def eval_factorial(node: Factorial, env: Environment, debug: bool = False) -> Result:
  value = expect_number("Factorial", eval_ast(node.operand, env, debug))
  if value < 0:
    raise NegativeFactorialDomainError(value)

  product = 1.0
  i = 2
  while i <= value:
    product *= i
    if math.isinf(product):
      break
    i += 1
  return NumberValue(product)


# ============================================================================
# BINARY OPERATORS
# ============================================================================

def values_equal(left: Result, right: Result) -> bool:
  """Structural equality; values of different tags are never equal"""
  if isinstance(left, NumberValue) and isinstance(right, NumberValue):
    return left.value == right.value
  if isinstance(left, ListValue) and isinstance(right, ListValue):
    if len(left.items) != len(right.items):
      return False
    for a, b in zip(left.items, right.items):
      if not values_equal(a, b):
        return False
    return True
  return left == right


BINARY_OPERATIONS: Dict[type, Callable[[Result, Result], Result]] = {
  Addition: binary_arithmetic_op(operator.add, "Addition"),
  Subtraction: binary_arithmetic_op(operator.sub, "Subtraction"),
  Multiply: binary_arithmetic_op(operator.mul, "Multiply"),
  Divide: binary_arithmetic_op(divide, "Divide"),
  Modulo: binary_arithmetic_op(modulo, "Modulo"),
  Exponentiate: binary_arithmetic_op(power, "Exponentiate"),
  LessThan: binary_comparison_op(operator.lt, "LessThan"),
  GreaterThan: binary_comparison_op(operator.gt, "GreaterThan"),
  LessThanEq: binary_comparison_op(operator.le, "LessThanEq"),
  GreaterThanEq: binary_comparison_op(operator.ge, "GreaterThanEq"),
  # no short-circuit: both sides run so assignments on either side take effect
  And: binary_logical_op(lambda x, y: x and y, "And"),
  Or: binary_logical_op(lambda x, y: x or y, "Or"),
  Equality: lambda left, right: make_boolean(values_equal(left, right)),
  Inequality: lambda left, right: make_boolean(not values_equal(left, right)),
}


def eval_binary(node: Expression, env: Environment, debug: bool = False) -> Result:
  """Evaluate both operands left to right, then apply the operation"""
  left = eval_ast(node.left, env, debug)
  right = eval_ast(node.right, env, debug)
  return BINARY_OPERATIONS[type(node)](left, right)


def eval_assignment(node: Assignment, env: Environment, debug: bool = False) -> Result:
  """The single write path into the environment"""
  if not isinstance(node.left, Variable):
    raise InvalidAssignmentTargetError(node_name(node.left))

  value = eval_ast(node.right, env, debug)
  env.assign(node.left.name, value)

  if debug:
    logger.debug("Assigned %s = %s", node.left.name, value)
  return value


_EVALUATORS: Dict[type, Callable[[Any, Environment, bool], Result]] = {
  Number: eval_number,
  Boolean: eval_boolean,
  String: eval_string,
  Variable: eval_variable,
  List: eval_list,
  Index: eval_index,
  Slice: eval_slice,
  Apply: eval_apply,
  Condition: eval_condition,
  Negate: eval_negate,
  Not: eval_not,
  Factorial: eval_factorial,
  Assignment: eval_assignment,
  **{node_type: eval_binary for node_type in BINARY_OPERATIONS},
}


# ============================================================================
# ENTRY POINTS
# ============================================================================

def evaluate(text: str, environment: Union[Environment, Mapping[str, Any], None] = None,
             debug: bool = False) -> Result:
  """Parse and evaluate a formula in one step"""
  from parsing import parse
  return resolve(parse(text, debug=debug), environment, debug)


def create_interpreter(debug: bool = False) -> Callable[..., Result]:
  """Factory function returning an interpreter bound to one environment"""
  session_env = Environment()

  def interpreter(expression: Union[Expression, str],
                  environment: Optional[Environment] = None) -> Result:
    env = session_env if environment is None else environment
    if isinstance(expression, str):
      return evaluate(expression, env, debug)
    return resolve(expression, env, debug)

  interpreter.environment = session_env
  return interpreter


def create_debug_interpreter() -> Callable[..., Result]:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)
