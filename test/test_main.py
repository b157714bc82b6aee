"""
Command line tests
"""

import json
import pytest
import main as cli
from main import main, parse_binding, build_environment, run_benchmark, BENCHMARK_INPUTS
from parsing import create_parser
from values import NumberValue, StringValue


class TestBindings:
  """Test variable options"""

  def test_json_value(self):
    assert parse_binding("a=[1, 2]") == ("a", [1, 2])

  def test_string_fallback(self):
    assert parse_binding("pattern=grid") == ("pattern", "grid")

  def test_missing_separator(self):
    with pytest.raises(ValueError):
      parse_binding("pattern")

  def test_later_options_win(self, tmp_path):
    env_file = tmp_path / "env.json"
    env_file.write_text(json.dumps({"x": 1, "y": "a"}))
    env = build_environment(["x=2"], str(env_file))
    assert env.lookup("x") == NumberValue(2)
    assert env.lookup("y") == StringValue("a")

  def test_math_bindings(self):
    env = build_environment([], with_math=True)
    assert "math.sqrt" in env
    assert env.lookup("math.pi") == NumberValue(3.141592653589793)


class TestCommands:
  """Test one-shot invocations"""

  @pytest.mark.parametrize("argv,expected", [
      (["1 + 2"], "3.0"),
      (["a[0]", "--var", "a=[5, 6]"], "5.0"),
      (["name", "--var", "name=grid"], "'grid'"),
      (["math.sqrt(16)", "--math"], "4.0"),
      (["[1, True]"], "[1.0, True]"),
      (["--debug", "1"], "1.0"),
  ])
  def test_evaluate(self, capsys, argv, expected):
    assert main(argv) == 0
    assert capsys.readouterr().out.strip() == expected

  def test_env_file(self, capsys, tmp_path):
    env_file = tmp_path / "settings.json"
    env_file.write_text(json.dumps({"infill_line_width": 0.4}))
    assert main(["infill_line_width * 10", "--env-file", str(env_file)]) == 0
    assert capsys.readouterr().out.strip() == "4.0"

  def test_env_file_must_be_object(self, capsys, tmp_path):
    env_file = tmp_path / "settings.json"
    env_file.write_text("[1, 2]")
    assert main(["1", "--env-file", str(env_file)]) == 1
    assert "JSON object" in capsys.readouterr().err

  def test_parse(self, capsys):
    assert main(["--parse", "1 + x", "--namespace", "ast"]) == 0
    assert capsys.readouterr().out.strip() == "ast.Addition(ast.Number(1.0), ast.Variable('x'))"

  def test_free_vars(self, capsys):
    assert main(["--free-vars", "(x := 1) + y + b"]) == 0
    assert capsys.readouterr().out.split() == ["b", "y"]

  def test_free_vars_respects_bindings(self, capsys):
    assert main(["--free-vars", "a + b", "--var", "a=1"]) == 0
    assert capsys.readouterr().out.split() == ["b"]

  def test_parse_error_exit_status(self, capsys):
    assert main(["1 +"]) == 1
    assert "Parse error" in capsys.readouterr().err

  def test_evaluation_error_exit_status(self, capsys):
    assert main(["missing"]) == 1
    assert "Evaluation error" in capsys.readouterr().err

  def test_bad_binding_exit_status(self, capsys):
    assert main(["1", "--var", "novalue"]) == 1
    assert "NAME=VALUE" in capsys.readouterr().err


class TestBenchmark:
  """Test timing output"""

  def test_all_inputs_reported(self, capsys):
    assert main(["--benchmark"]) == 0
    out = capsys.readouterr().out
    assert out.count("Parsing took") == len(BENCHMARK_INPUTS)
    assert "Total parse time" in out

  def test_parse_failure_is_reported(self, capsys):
    total = run_benchmark(create_parser(), ["1 +", "2"])
    out = capsys.readouterr().out
    assert "Parse error" in out
    assert out.count("Parsing took") == 1
    assert total >= 0


class TestInteractive:
  """Test the interactive session"""

  @pytest.fixture
  def feed(self, monkeypatch):
    monkeypatch.setattr(cli, "READLINE_AVAILABLE", False)

    def feed_lines(lines):
      answers = iter(lines)

      def fake_input(prompt=""):
        try:
          return next(answers)
        except StopIteration:
          raise EOFError

      monkeypatch.setattr("builtins.input", fake_input)

    return feed_lines

  def test_session(self, capsys, feed):
    feed(["x := 2", "x * 3", ":env", ":free x + y", ":parse 1", "1 +", "missing", ":help", "", "exit"])
    assert main(["-i"]) == 0
    out = capsys.readouterr().out
    assert "=> 2.0 : Number" in out
    assert "=> 6.0 : Number" in out
    assert "x = 2.0" in out
    assert "Number(1.0)" in out
    assert "Parse error" in out
    assert "Evaluation error" in out
    assert ":parse <expr>" in out

  def test_free_listing_excludes_session_names(self, capsys, feed):
    feed(["x := 2", ":free x + y"])
    main([])
    assert "\ny\n" in capsys.readouterr().out

  def test_end_of_input(self, capsys, feed):
    feed([])
    assert main(["-i"]) == 0
    assert "Goodbye!" in capsys.readouterr().out

  def test_empty_environment_listing(self, capsys, feed):
    feed([":env", "exit"])
    main(["-i"])
    assert "(no bindings)" in capsys.readouterr().out
