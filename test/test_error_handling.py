"""
Tests for parse error enhancement and the error taxonomy
"""

import pytest
from pyparsing import ParseException
from error_handling import (
  FormulaError,
  FormulaParseError,
  FormulaEvaluationError,
  TypeMismatchError,
  UndefinedVariableError,
  create_enhanced_parser_with_errors,
  extract_got,
  generate_suggestions,
  get_context_lines,
  ParseFailure,
)
from parsing import parse


class TestPureHelpers:
  """Test the error formatting helpers"""

  def test_context_marks_column(self):
    assert get_context_lines("1 + * 2", 1, 5) == "    1 + * 2\n        ^"

  def test_context_out_of_range(self):
    assert get_context_lines("1", 3, 1) == ""

  def test_extract_got(self):
    assert extract_got("1 + * 2", 1, 5) == "'* 2'"
    assert extract_got("1 +", 1, 4) == "end of input"

  def test_render_includes_suggestions(self):
    text = ParseFailure("bad", 0, 1, 1, expected=("expression",), suggestions=("try this",)).render()
    assert "line 1, column 1" in text
    assert "Expected: expression" in text
    assert "- try this" in text

  @pytest.mark.parametrize("source,fragment", [
      ("(1 + 2", "Parentheses"),
      ("a[0", "Square brackets"),
      ("'grid", "closing quote"),
      ("x = 1", "':='"),
      ("a && b", "'and'"),
      ("!a", "'not'"),
      ("1 if c", "'else'"),
  ])
  def test_suggestions(self, source, fragment):
    assert any(fragment in s for s in generate_suggestions(source, ""))

  def test_no_suggestion_for_comparisons(self):
    assert generate_suggestions("a == b != c <= d", "") == ()

  def test_lowercase_boolean_hint(self):
    assert any("True" in s for s in generate_suggestions("x == true 1", "'true 1'"))


class TestParseError:
  """Test FormulaParseError construction"""

  def test_fields_from_parser(self):
    with pytest.raises(FormulaParseError) as exc_info:
      parse("x = 1")
    error = exc_info.value
    assert error.line == 1
    assert error.column == 3
    assert error.got == "'= 1'"
    assert any("':='" in s for s in error.suggestions)
    assert "Parse error at line 1, column 3" in str(error)

  def test_chained_from_pyparsing(self):
    with pytest.raises(FormulaParseError) as exc_info:
      parse("1 +")
    assert isinstance(exc_info.value.__cause__, ParseException)

  def test_wrapper_converts_recursion(self):
    def runaway(text):
      raise RecursionError()

    with pytest.raises(FormulaParseError) as exc_info:
      create_enhanced_parser_with_errors(runaway, "x")("x")
    assert "nested too deeply" in str(exc_info.value)

  def test_wrapper_passes_results_through(self):
    assert create_enhanced_parser_with_errors(len, "abc")("abc") == 3


class TestTaxonomy:
  """Test the exception hierarchy"""

  def test_parse_and_evaluation_share_base(self):
    assert issubclass(FormulaParseError, FormulaError)
    assert issubclass(FormulaEvaluationError, FormulaError)
    assert not issubclass(FormulaParseError, FormulaEvaluationError)

  def test_undefined_message(self):
    error = UndefinedVariableError("speed")
    assert str(error) == "Variable 'speed' is not defined"
    assert error.operation == "Variable"

  def test_mismatch_message(self):
    error = TypeMismatchError("Index", "List", "Number", "indexed value")
    assert str(error) == "Index requires List for indexed value, got Number"
