"""
Formula runtime values and the evaluation environment
Results form a closed tagged union; the environment is the only mutable state
"""

from dataclasses import dataclass
from collections.abc import MutableMapping
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple, Union


# ============================================================================
# RESULT VARIANTS (Immutable)
# ============================================================================

@dataclass(frozen=True)
class NumberValue:
  value: float
  type_name = "Number"

  def __post_init__(self):
    object.__setattr__(self, 'value', float(self.value))

  def __str__(self) -> str:
    return repr(self.value)


@dataclass(frozen=True)
class BooleanValue:
  value: bool
  type_name = "Boolean"

  def __str__(self) -> str:
    return "True" if self.value else "False"


@dataclass(frozen=True)
class StringValue:
  value: str
  type_name = "String"

  def __str__(self) -> str:
    return repr(self.value)


@dataclass(frozen=True)
class ListValue:
  items: Tuple["Result", ...] = ()
  type_name = "List"

  def __post_init__(self):
    object.__setattr__(self, 'items', tuple(self.items))

  def __str__(self) -> str:
    return "[" + ", ".join(str(item) for item in self.items) + "]"


@dataclass(frozen=True)
class CallableValue:
  function: Callable[..., Any]
  name: str = ""
  type_name = "Callable"

  def __eq__(self, other) -> bool:
    return isinstance(other, CallableValue) and self.function is other.function

  def __hash__(self) -> int:
    return id(self.function)

  def __str__(self) -> str:
    return f"<function {self.name or getattr(self.function, '__name__', '?')}>"


@dataclass(frozen=True)
class NullValue:
  type_name = "Null"

  def __str__(self) -> str:
    return "None"


Result = Union[NumberValue, BooleanValue, StringValue, ListValue, CallableValue, NullValue]

RESULT_TYPES = (NumberValue, BooleanValue, StringValue, ListValue, CallableValue, NullValue)

NULL = NullValue()
TRUE = BooleanValue(True)
FALSE = BooleanValue(False)


def make_boolean(value: bool) -> BooleanValue:
  return TRUE if value else FALSE


# ============================================================================
# CONVERSION
# ============================================================================

def from_python(value: Any, name: str = "") -> Result:
  """
  Wrap a plain Python value as a Result

  Args:
    value: bool, int, float, str, list/tuple, callable, None or a Result
    name: Label used when wrapping a callable

  Returns:
    The matching Result variant

  Raises:
    TypeError: value has no Result representation
  """
  if isinstance(value, RESULT_TYPES):
    return value
  if value is None:
    return NULL
  # bool is a subclass of int
  if isinstance(value, bool):
    return make_boolean(value)
  if isinstance(value, (int, float)):
    return NumberValue(value)
  if isinstance(value, str):
    return StringValue(value)
  if isinstance(value, (list, tuple)):
    return ListValue(tuple(from_python(item) for item in value))
  if callable(value):
    return CallableValue(value, name or getattr(value, '__name__', ''))
  raise TypeError(f"Cannot represent {type(value).__name__} as a formula value")


def to_python(result: Result) -> Any:
  """Unwrap a Result into the equivalent plain Python value"""
  if isinstance(result, (NumberValue, BooleanValue, StringValue)):
    return result.value
  if isinstance(result, ListValue):
    return [to_python(item) for item in result.items]
  if isinstance(result, CallableValue):
    return result.function
  if isinstance(result, NullValue):
    return None
  raise TypeError(f"Not a formula value: {result!r}")


def type_name_of(result: Any) -> str:
  return getattr(result, 'type_name', type(result).__name__)


# ============================================================================
# ENVIRONMENT
# ============================================================================

class Environment:
  """
  Caller-owned mapping from variable name to Result

  Dotted names such as ``math.sqrt`` are single opaque keys. The environment
  is threaded by reference through one evaluation; ``assign`` is the only
  write path and is used exclusively by assignment nodes.
  """

  def __init__(self, bindings: Optional[Mapping[str, Result]] = None,
               owner: Optional[MutableMapping[str, Any]] = None):
    self._bindings: Dict[str, Result] = {}
    # caller dict that mirrors every assignment as a plain Python value
    self._owner = owner
    for name, value in (bindings or {}).items():
      self._bindings[name] = from_python(value, name)

  @classmethod
  def from_python(cls, values: Mapping[str, Any]) -> "Environment":
    return cls(values)

  @classmethod
  def bound_to(cls, values: MutableMapping[str, Any]) -> "Environment":
    """Read from `values` and write assignments back into it"""
    return cls(values, owner=values)

  def lookup(self, name: str) -> Optional[Result]:
    return self._bindings.get(name)

  def assign(self, name: str, value: Result) -> Result:
    self._bindings[name] = value
    if self._owner is not None:
      self._owner[name] = to_python(value)
    return value

  def names(self) -> frozenset:
    return frozenset(self._bindings)

  def to_python(self) -> Dict[str, Any]:
    return {name: to_python(value) for name, value in self._bindings.items()}

  def __contains__(self, name: object) -> bool:
    return name in self._bindings

  def __iter__(self) -> Iterator[str]:
    return iter(self._bindings)

  def __len__(self) -> int:
    return len(self._bindings)

  def items(self):
    return self._bindings.items()

  def __repr__(self) -> str:
    return f"Environment({self._bindings!r})"


def coerce_environment(environment: Union[Environment, Mapping[str, Any], None]) -> Environment:
  """
  Accept an Environment, a mutable mapping of Python values, or None

  Assignments made during evaluation are written back into a mutable
  mapping. Read-only mappings raise TypeError.
  """
  if isinstance(environment, Environment):
    return environment
  if environment is None:
    return Environment()
  if isinstance(environment, MutableMapping):
    return Environment.bound_to(environment)
  raise TypeError(
    f"Environment must be an Environment or a mutable mapping, got {type(environment).__name__}"
  )
