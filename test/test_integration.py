"""
Integration tests: parse and resolve complete formulas end to end
"""

import math
import pytest
from parsing import parse
from expressions import (
  Number, Boolean, Variable, List, Index, Slice, Apply, Condition, Not,
  Addition, Subtraction, Multiply, Exponentiate, Equality, And, Or, Assignment,
)
from main import BENCHMARK_INPUTS
from values import Environment, to_python


CONFORMANCE_CASES = [
    ("True", Boolean(True), True, None),
    ("False", Boolean(False), False, None),
    ("True == True", Equality(Boolean(True), Boolean(True)), True, None),
    ("True == False", Equality(Boolean(True), Boolean(False)), False, None),
    ("False == False", Equality(Boolean(False), Boolean(False)), True, None),
    ("False == True", Equality(Boolean(False), Boolean(True)), False, None),
    (
        "True == True and False == False",
        And(Equality(Boolean(True), Boolean(True)), Equality(Boolean(False), Boolean(False))),
        True, None,
    ),
    (
        "True == True and False == False and 0 == 0",
        And(
            And(Equality(Boolean(True), Boolean(True)), Equality(Boolean(False), Boolean(False))),
            Equality(Number(0), Number(0)),
        ),
        True, None,
    ),
    (
        "1 + 2 - 3 * 3",
        Subtraction(Addition(Number(1), Number(2)), Multiply(Number(3), Number(3))),
        -6, None,
    ),
    (
        "1 + (2 - 3) * 3",
        Addition(Number(1), Multiply(Subtraction(Number(2), Number(3)), Number(3))),
        -2, None,
    ),
    (
        "10 * 10 == 100 or True",
        Or(Equality(Multiply(Number(10), Number(10)), Number(100)), Boolean(True)),
        True, None,
    ),
    ("4 ** 3 ** 2", Exponentiate(Number(4), Exponentiate(Number(3), Number(2))), 262144, None),
    (
        "1 + 1 * 1 ** 2",
        Addition(Number(1), Multiply(Number(1), Exponentiate(Number(1), Number(2)))),
        2, None,
    ),
    ("1 if True else 0", Condition(Boolean(True), Number(1), Number(0)), 1, None),
    ("a", Variable("a"), True, {"a": True}),
    ("a[0]", Index(Variable("a"), Number(0)), 1, {"a": [1, 2, 3]}),
    (
        "1 if False else 2 if True else 3",
        Condition(Boolean(False), Number(1), Condition(Boolean(True), Number(2), Number(3))),
        2, None,
    ),
    (
        "(a if True else b)[1]",
        Index(Condition(Boolean(True), Variable("a"), Variable("b")), Number(1)),
        2, {"a": [1, 2, 3], "b": [4, 5, 6]},
    ),
    ("a[0 : 2]", Slice(Variable("a"), Number(0), Number(2)), [1, 2], {"a": [1, 2, 3]}),
    ("[1, 2, 3]", List((Number(1), Number(2), Number(3))), [1, 2, 3], {"a": [1, 2, 3]}),
    (
        "[True, False, True]",
        List((Boolean(True), Boolean(False), Boolean(True))),
        [True, False, True], None,
    ),
    (
        "([1, 2 + 2])[1]",
        Index(List((Number(1), Addition(Number(2), Number(2)))), Number(1)),
        4, None,
    ),
    ("not True", Not(Boolean(True)), False, None),
    ("not (True or False)", Not(Or(Boolean(True), Boolean(False))), False, None),
    ("math.sqrt(9)", Apply(Variable("math.sqrt"), (Number(9),)), 3, {"math.sqrt": math.sqrt}),
    (
        "(x := 1) + x",
        Addition(Assignment(Variable("x"), Number(1)), Variable("x")),
        2, None,
    ),
]


class TestConformance:
  """Each formula parses to the expected tree and resolves to the expected value"""

  @pytest.mark.parametrize(
    "text,expected_tree,expected_value,bindings",
    CONFORMANCE_CASES,
    ids=[case[0] for case in CONFORMANCE_CASES],
  )
  def test_formula(self, text, expected_tree, expected_value, bindings):
    tree = parse(text)
    assert tree == expected_tree
    assert to_python(tree.resolve(Environment(bindings or {}))) == expected_value


class TestInfillFormula:
  """The infill line distance formula from the benchmark set"""

  @pytest.fixture
  def formula(self):
    return parse(BENCHMARK_INPUTS[-1])

  @pytest.mark.parametrize("pattern,expected", [
      ("grid", 4.0),
      ("triangles", 6.0),
      ("cubicsubdiv", 6.0),
      ("tetrahedral", 4.0),
      ("cross_3d", 2.0),
      ("lightning", 3.2),
      ("lines", 2.0),
  ])
  def test_line_distance(self, formula, pattern, expected):
    env = Environment({
        "infill_sparse_density": 20,
        "infill_line_width": 0.4,
        "infill_pattern": pattern,
    })
    assert to_python(formula.resolve(env)) == pytest.approx(expected)

  def test_zero_density(self, formula):
    env = Environment({"infill_sparse_density": 0, "infill_line_width": 0.4, "infill_pattern": "grid"})
    assert to_python(formula.resolve(env)) == 0

  def test_free_variables(self, formula):
    assert formula.free_variables() == {"infill_sparse_density", "infill_line_width", "infill_pattern"}


class TestBenchmarkInputs:
  """Every benchmark formula parses; the nested conditionals resolve to their last branch"""

  @pytest.mark.parametrize("text", BENCHMARK_INPUTS[:-1])
  def test_conditional_chain(self, text):
    expected = int(text.rstrip(")").split()[-1])
    assert to_python(parse(text).resolve()) == expected

  def test_session_reuses_environment(self):
    env = Environment()
    parse("total := 0").resolve(env)
    for i in range(1, 5):
      parse(f"total := total + {i}").resolve(env)
    assert to_python(parse("total").resolve(env)) == 10
