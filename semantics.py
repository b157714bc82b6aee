"""
Formula static analysis - pure functions over the AST
Free-variable analysis and canonical code serialization; nothing here evaluates
"""

from contextlib import contextmanager
from typing import Any, FrozenSet, Mapping, Set, Tuple, Union

from error_handling import NestingDepthError
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
  UnaryOperator,
  BinaryOperator,
  Assignment,
  LEAF_NODES,
  node_name,
)
from utilities import MAX_TREE_DEPTH, WALK_FRAMES_PER_LEVEL, recursion_headroom
from values import Environment


# ============================================================================
# STRUCTURE
# ============================================================================

def child_nodes(node: Expression) -> Tuple[Expression, ...]:
  """Children of a node in evaluation order"""
  if isinstance(node, LEAF_NODES):
    return ()
  if isinstance(node, List):
    return node.elements
  if isinstance(node, Index):
    return (node.target, node.index)
  if isinstance(node, Slice):
    return (node.target, node.start, node.stop)
  if isinstance(node, Apply):
    return (node.function,) + node.arguments
  if isinstance(node, Condition):
    return (node.condition, node.when_true, node.when_false)
  if isinstance(node, UnaryOperator):
    return (node.operand,)
  if isinstance(node, BinaryOperator):
    return (node.left, node.right)
  raise TypeError(f"Unknown expression node: {node!r}")


def environment_names(environment: Union[Environment, Mapping[str, Any], None]) -> FrozenSet[str]:
  if environment is None:
    return frozenset()
  if isinstance(environment, Environment):
    return environment.names()
  return frozenset(environment)


def tree_depth(node: Expression) -> int:
  """Height of the tree, measured without recursion"""
  deepest = 0
  pending = [(node, 1)]
  while pending:
    current, depth = pending.pop()
    deepest = max(deepest, depth)
    pending.extend((child, depth + 1) for child in child_nodes(current))
  return deepest


@contextmanager
def walk_budget(node: Expression, operation: str):
  """
  Guard a recursive walk over `node`

  Trees deeper than MAX_TREE_DEPTH are rejected up front; shallower ones get
  enough recursion headroom that the walk cannot hit the interpreter limit.

  Raises:
    NestingDepthError: the tree is too deep for `operation`
  """
  depth = tree_depth(node)
  if depth > MAX_TREE_DEPTH:
    raise NestingDepthError(operation)
  with recursion_headroom(WALK_FRAMES_PER_LEVEL * depth):
    try:
      yield
    except RecursionError as e:
      raise NestingDepthError(operation) from e


# ============================================================================
# FREE VARIABLES
# ============================================================================

def analyze_free_variables(node: Expression, bound: FrozenSet[str]) -> Tuple[FrozenSet[str], FrozenSet[str]]:
  """
  Walk one node with the set of names already bound

  Args:
    node: Node to analyze
    bound: Names provided by the environment or assigned earlier in the walk

  Returns:
    (free names of this node, bound names after this node)
  """
  if isinstance(node, Variable):
    return (frozenset() if node.name in bound else frozenset([node.name])), bound

  if isinstance(node, Assignment) and isinstance(node.left, Variable):
    # the target counts as bound before the right-hand side is analyzed
    return analyze_free_variables(node.right, bound | {node.left.name})

  free: FrozenSet[str] = frozenset()
  for child in child_nodes(node):
    child_free, bound = analyze_free_variables(child, bound)
    free |= child_free
  return free, bound


def free_variables(node: Expression, environment: Union[Environment, Mapping[str, Any], None] = None) -> Set[str]:
  """Names the expression needs from outside to evaluate without an undefined variable"""
  with walk_budget(node, "analyze"):
    free, _ = analyze_free_variables(node, environment_names(environment))
  return set(free)


# ============================================================================
# CODE SERIALIZATION
# ============================================================================

def render_node(node: Expression, prefix: str) -> str:
  name = f"{prefix}{node_name(node)}"

  if isinstance(node, (Number, Boolean, String)):
    return f"{name}({node.value!r})"
  if isinstance(node, Variable):
    return f"{name}({node.name!r})"
  if isinstance(node, List):
    elements = ", ".join([render_node(element, prefix) for element in node.elements])
    return f"{name}([{elements}])"
  if isinstance(node, Apply):
    arguments = ", ".join([render_node(argument, prefix) for argument in node.arguments])
    return f"{name}({render_node(node.function, prefix)}, [{arguments}])"

  children = ", ".join([render_node(child, prefix) for child in child_nodes(node)])
  return f"{name}({children})"


def to_code_str(node: Expression, namespace: str = "") -> str:
  """Render a node as a constructor call, e.g. ``ast.Addition(ast.Number(1.0), ast.Variable('x'))``"""
  with walk_budget(node, "render"):
    return render_node(node, f"{namespace}." if namespace else "")
