"""
Test configuration for settings formula tests
"""

import math
import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import FormulaParser
from values import Environment


@pytest.fixture
def parser():
  """Provide a fresh parser instance for each test"""
  return FormulaParser()


@pytest.fixture
def environment():
  """Environment with a few list, scalar and function bindings"""
  return Environment({
      "a": [1, 2, 3],
      "b": [4, 5, 6],
      "flag": True,
      "name": "grid",
      "math.sqrt": math.sqrt,
  })
