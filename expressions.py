"""
Formula abstract syntax tree
A closed set of immutable node types built once by the parser
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Set, Tuple, Union

from values import Environment, Result


class Expression:
    """Base of every AST node.

    Nodes are frozen dataclasses compared structurally. ``resolve`` evaluates
    against an environment, ``free_variables`` reports the names the node
    reads without binding them first, and ``to_code_str`` renders the node as
    a constructor call.
    """

    def resolve(self, environment: Union[Environment, Mapping[str, Any], None] = None) -> Result:
        from interpreter import resolve
        return resolve(self, environment)

    def free_variables(self, environment: Union[Environment, Mapping[str, Any], None] = None) -> Set[str]:
        from semantics import free_variables
        return free_variables(self, environment)

    def to_code_str(self, namespace: str = "") -> str:
        from semantics import to_code_str
        return to_code_str(self, namespace)


# ============================================================================
# LITERALS AND NAMES
# ============================================================================

@dataclass(frozen=True)
class Number(Expression):
    value: float

    def __post_init__(self):
        object.__setattr__(self, 'value', float(self.value))


@dataclass(frozen=True)
class Boolean(Expression):
    value: bool


@dataclass(frozen=True)
class String(Expression):
    value: str


@dataclass(frozen=True)
class Variable(Expression):
    """Environment key; dots are part of the name, not a path"""
    name: str


# ============================================================================
# COMPOUND NODES
# ============================================================================

@dataclass(frozen=True)
class List(Expression):
    elements: Tuple[Expression, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'elements', tuple(self.elements))


@dataclass(frozen=True)
class Index(Expression):
    target: Expression
    index: Expression


@dataclass(frozen=True)
class Slice(Expression):
    target: Expression
    start: Expression
    stop: Expression


@dataclass(frozen=True)
class Apply(Expression):
    function: Expression
    arguments: Tuple[Expression, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'arguments', tuple(self.arguments))


@dataclass(frozen=True)
class Condition(Expression):
    """``when_true if condition else when_false``"""
    condition: Expression
    when_true: Expression
    when_false: Expression


# ============================================================================
# OPERATORS
# ============================================================================

@dataclass(frozen=True)
class UnaryOperator(Expression):
    operand: Expression


class Negate(UnaryOperator):
    pass


class Not(UnaryOperator):
    pass


class Factorial(UnaryOperator):
    pass


@dataclass(frozen=True)
class BinaryOperator(Expression):
    left: Expression
    right: Expression


class Addition(BinaryOperator):
    pass


class Subtraction(BinaryOperator):
    pass


class Multiply(BinaryOperator):
    pass


class Divide(BinaryOperator):
    pass


class Modulo(BinaryOperator):
    pass


class Exponentiate(BinaryOperator):
    pass


class Equality(BinaryOperator):
    pass


class Inequality(BinaryOperator):
    pass


class LessThan(BinaryOperator):
    pass


class GreaterThan(BinaryOperator):
    pass


class LessThanEq(BinaryOperator):
    pass


class GreaterThanEq(BinaryOperator):
    pass


class And(BinaryOperator):
    pass


class Or(BinaryOperator):
    pass


class Assignment(BinaryOperator):
    """``left := right``; only a Variable is a valid target"""


LEAF_NODES = (Number, Boolean, String, Variable)


# ============================================================================
# OPERATOR TABLES
# ============================================================================

class UnaryOperatorKind(Enum):
    NEGATE = "-"
    NOT = "not"
    FACTORIAL = "!"


class BinaryOperatorKind(Enum):
    EXPONENTIATE = "**"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"
    ADD = "+"
    SUBTRACT = "-"
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_EQUAL = "<="
    GREATER_EQUAL = ">="
    LESS = "<"
    GREATER = ">"
    AND = "and"
    OR = "or"
    ASSIGN = ":="


UNARY_CONSTRUCTORS: Dict[UnaryOperatorKind, Callable[[Expression], UnaryOperator]] = {
    UnaryOperatorKind.NEGATE: Negate,
    UnaryOperatorKind.NOT: Not,
    UnaryOperatorKind.FACTORIAL: Factorial,
}

BINARY_CONSTRUCTORS: Dict[BinaryOperatorKind, Callable[[Expression, Expression], BinaryOperator]] = {
    BinaryOperatorKind.EXPONENTIATE: Exponentiate,
    BinaryOperatorKind.MULTIPLY: Multiply,
    BinaryOperatorKind.DIVIDE: Divide,
    BinaryOperatorKind.MODULO: Modulo,
    BinaryOperatorKind.ADD: Addition,
    BinaryOperatorKind.SUBTRACT: Subtraction,
    BinaryOperatorKind.EQUAL: Equality,
    BinaryOperatorKind.NOT_EQUAL: Inequality,
    BinaryOperatorKind.LESS_EQUAL: LessThanEq,
    BinaryOperatorKind.GREATER_EQUAL: GreaterThanEq,
    BinaryOperatorKind.LESS: LessThan,
    BinaryOperatorKind.GREATER: GreaterThan,
    BinaryOperatorKind.AND: And,
    BinaryOperatorKind.OR: Or,
    BinaryOperatorKind.ASSIGN: Assignment,
}


def build_unary(kind: UnaryOperatorKind, operand: Expression) -> Expression:
    return UNARY_CONSTRUCTORS[kind](operand)


def build_binary(kind: BinaryOperatorKind, left: Expression, right: Expression) -> Expression:
    return BINARY_CONSTRUCTORS[kind](left, right)


def node_name(node: Expression) -> str:
    return type(node).__name__


