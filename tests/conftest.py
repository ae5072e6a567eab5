"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Shared converter and configuration fixtures.
- Console capture so tests can assert on logged output.
"""

import sys
import pytest
from io import StringIO
from pathlib import Path

# Add src to path so we can import 'cy2pw' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from rich.console import Console

from cy2pw.config import RuntimeConfig
from cy2pw.core.converter import ComplexPatternConverter
from cy2pw.utils.console import reset_console, set_console


@pytest.fixture
def config():
  """Default runtime configuration."""
  return RuntimeConfig()


@pytest.fixture
def converter(config):
  """A converter with default settings, shared within one test."""
  return ComplexPatternConverter(config)


@pytest.fixture
def captured_console():
  """Redirects console and logging output into a buffer."""
  buffer = StringIO()
  set_console(Console(file=buffer, force_terminal=False, width=200))
  yield buffer
  reset_console()
