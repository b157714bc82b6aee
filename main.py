"""
Settings formula - command line entry point
Evaluate, inspect and benchmark formulas; interactive sessions keep one environment
"""

import sys
import argparse
import json
import logging
import math
import os
import time
from typing import Any, Dict, List, Optional

# Readline support for history
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from error_handling import FormulaError, FormulaParseError, FormulaEvaluationError
from interpreter import resolve
from parsing import create_parser, create_debug_parser, FormulaParser
from values import Environment, Result, type_name_of

VERSION = "settings-formula 0.3.0"

BENCHMARK_INPUTS = [
    "1",
    "1 if False else 2",
    "1 if False else 2 if False else 3",
    "1 if False else 2 if False else 3 if False else 4",
    "1 if False else 2 if False else 3 if False else 4 if False else 5",
    "1 if False else 2 if False else 3 if False else 4 if False else 5 if False else 6",
    "1 if False else 2 if False else 3 if False else 4 if False else 5 if False else 6 if False else 7",
    "1 if False else 2 if False else 3 if False else 4 if False else 5 if False else 6 if False else 7 if False else 8",
    "1 if False else (2 if False else 3)",
    "1 if False else (2 if False else (3 if False else 4))",
    "1 if False else (2 if False else (3 if False else (4 if False else 5)))",
    "1 if False else (2 if False else (3 if False else (4 if False else (5 if False else 6))))",
    "1 if False else (2 if False else (3 if False else (4 if False else (5 if False else (6 if False else 7)))))",
    "1 if False else (2 if False else (3 if False else (4 if False else (5 if False else (6 if False else (7 if False else 8))))))",
    "0 if infill_sparse_density == 0 else (infill_line_width * 100) / infill_sparse_density * "
    "(2 if infill_pattern == 'grid' else (3 if infill_pattern == 'triangles' or infill_pattern == 'trihexagon' "
    "or infill_pattern == 'cubic' or infill_pattern == 'cubicsubdiv' else (2 if infill_pattern == 'tetrahedral' "
    "or infill_pattern == 'quarter_cubic' else (1 if infill_pattern == 'cross' or infill_pattern == 'cross_3d' "
    "else (1.6 if infill_pattern == 'lightning' else 1)))))",
]


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='Evaluate settings formulas against a variable environment',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s "1 + 2 * 3"                         # Evaluate a formula
  %(prog)s "a[0:2]" --var 'a=[1, 2, 3]'        # Bind variables (JSON values)
  %(prog)s "x * 2" --env-file settings.json    # Bind variables from a JSON object
  %(prog)s "math.sqrt(9)" --math               # Expose the math module
  %(prog)s --parse "1 if c else 2"             # Show the parsed tree
  %(prog)s --free-vars "(x := 1) + y"          # List free variables
  %(prog)s --benchmark                         # Time the built-in parse benchmark
  %(prog)s -i                                  # Interactive mode
        """
  )

  parser.add_argument(
      'expression',
      nargs='?',
      help='Formula to evaluate'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--var',
      action='append',
      default=[],
      metavar='NAME=VALUE',
      help='Bind a variable; VALUE is read as JSON, falling back to a plain string'
  )

  parser.add_argument(
      '--env-file',
      metavar='FILE',
      help='JSON object file with variable bindings'
  )

  parser.add_argument(
      '--math',
      action='store_true',
      help="Bind the functions and constants of Python's math module as math.<name>"
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse the formula and show its tree instead of evaluating it'
  )

  parser.add_argument(
      '--namespace',
      default='',
      help='Qualify node names shown by --parse'
  )

  parser.add_argument(
      '--free-vars',
      action='store_true',
      help='List the variables the formula reads without binding them'
  )

  parser.add_argument(
      '--benchmark',
      action='store_true',
      help='Parse the built-in benchmark formulas and print timings'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug logging for parsing and evaluation'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


# ============================================================================
# ENVIRONMENT LOADING
# ============================================================================

def parse_binding(binding: str) -> tuple:
  """Split NAME=VALUE; VALUE is JSON when it parses as JSON"""
  name, sep, raw = binding.partition('=')
  if not sep or not name.strip():
    raise ValueError(f"Expected NAME=VALUE, got '{binding}'")
  try:
    value = json.loads(raw)
  except json.JSONDecodeError:
    value = raw
  return name.strip(), value


def math_bindings() -> Dict[str, Any]:
  """Functions and constants of the math module keyed as math.<name>"""
  bindings = {}
  for name in dir(math):
    if name.startswith('_'):
      continue
    value = getattr(math, name)
    if callable(value) or isinstance(value, float):
      bindings[f"math.{name}"] = value
  return bindings


def build_environment(bindings: List[str], env_file: Optional[str] = None,
                      with_math: bool = False) -> Environment:
  """Build the evaluation environment from CLI options"""
  values: Dict[str, Any] = {}

  if with_math:
    values.update(math_bindings())

  if env_file:
    with open(env_file, 'r', encoding='utf-8') as f:
      loaded = json.load(f)
    if not isinstance(loaded, dict):
      raise ValueError(f"Environment file '{env_file}' must contain a JSON object")
    values.update(loaded)

  for binding in bindings:
    name, value = parse_binding(binding)
    values[name] = value

  return Environment.from_python(values)


# ============================================================================
# COMMANDS
# ============================================================================

def format_result(result: Result) -> str:
  return f"{result} : {type_name_of(result)}"


def evaluate_expression(parser: FormulaParser, text: str, env: Environment, debug: bool = False) -> Result:
  """Parse and resolve one formula against the given environment"""
  tree = parser.parse_expression(text)
  return resolve(tree, env, debug)


def show_parse(parser: FormulaParser, text: str, namespace: str = "") -> None:
  tree = parser.parse_expression(text)
  print(tree.to_code_str(namespace))


def show_free_variables(parser: FormulaParser, text: str, env: Environment) -> None:
  tree = parser.parse_expression(text)
  for name in sorted(tree.free_variables(env)):
    print(name)


def run_benchmark(parser: FormulaParser, inputs: Optional[List[str]] = None) -> float:
  """Parse every benchmark input and print how long each took"""
  total = 0.0
  for text in inputs or BENCHMARK_INPUTS:
    print(f'Starting parse of input: "{text}"')
    try:
      t0 = time.perf_counter()
      parser.parse_expression(text)
      elapsed = time.perf_counter() - t0
    except FormulaParseError as e:
      print(f"Parse error: {e}")
      continue
    total += elapsed
    print(f"Parsing took {elapsed:.6f} seconds.")
  print(f"Total parse time: {total:.6f} seconds.")
  return total


def setup_readline():
  """Setup readline with history"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser("~/.settings_formula_history")
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First run, no history yet

  readline.set_history_length(1000)

  import atexit
  atexit.register(_write_history, history_file)


def _write_history(history_file: str) -> None:
  try:
    readline.write_history_file(history_file)
  except OSError:
    pass


def print_help() -> None:
  print("Commands:")
  print("  :parse <expr>     - Show the parsed tree")
  print("  :free <expr>      - Show free variables")
  print("  :env              - Show current environment")
  print("  :help             - Show this help")
  print("  exit              - Leave the session")
  print()
  print("Formula features:")
  print("  x := 5                    - Assign (visible to later lines)")
  print("  a if cond else b          - Conditional")
  print("  xs[0], xs[1:3], [1, 2]    - Lists, indexing, slicing")
  print("  math.sqrt(9)              - Call a bound function")


def run_interactive_mode(parser: FormulaParser, env: Environment, debug: bool = False) -> None:
  """Read-evaluate loop sharing one environment across lines"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  while True:
    try:
      line = input("formula> ").strip()
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    if line in ("exit", "quit"):
      break
    if not line:
      continue

    try:
      if line.startswith(":parse "):
        show_parse(parser, line[len(":parse "):])
      elif line.startswith(":free "):
        names = sorted(parser.parse_expression(line[len(":free "):]).free_variables(env))
        print(", ".join(names) if names else "(none)")
      elif line == ":env":
        if len(env) == 0:
          print("  (no bindings)")
        for name, value in sorted(env.items()):
          val_str = str(value)
          if len(val_str) > 60:
            val_str = val_str[:57] + "..."
          print(f"  {name} = {val_str}")
      elif line == ":help":
        print_help()
      else:
        print(f"=> {format_result(evaluate_expression(parser, line, env, debug))}")
    except FormulaParseError as e:
      print(e)
    except FormulaEvaluationError as e:
      print(f"Evaluation error: {e}")


def main(argv: Optional[List[str]] = None) -> int:
  """Main entry point"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if args.debug:
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

  parser = create_debug_parser() if args.debug else create_parser()

  try:
    env = build_environment(args.var, args.env_file, args.math)
  except (OSError, ValueError, TypeError) as e:
    print(f"Error: {e}", file=sys.stderr)
    return 1

  if args.benchmark:
    run_benchmark(parser)
    return 0

  if args.interactive or not args.expression:
    run_interactive_mode(parser, env, args.debug)
    return 0

  try:
    if args.parse:
      show_parse(parser, args.expression, args.namespace)
    elif args.free_vars:
      show_free_variables(parser, args.expression, env)
    else:
      print(evaluate_expression(parser, args.expression, env, args.debug))
  except FormulaParseError as e:
    print(e, file=sys.stderr)
    return 1
  except FormulaError as e:
    print(f"Evaluation error: {e}", file=sys.stderr)
    return 1

  return 0


if __name__ == "__main__":
  sys.exit(main())
