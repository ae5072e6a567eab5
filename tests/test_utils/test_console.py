"""
Tests for Centralized Logging Utility and Injection Mechanics.

Verifies:
1. Singleton Proxy correctness.
2. Injection capabilities (`set_console`).
3. Logging helpers rendered through the active console.
"""

import pytest
from rich.console import Console
from cy2pw.utils.console import (
  console,
  set_console,
  reset_console,
  log_info,
  log_error,
  log_success,
  log_warning,
  get_console,
)


@pytest.fixture(autouse=True)
def cleanup_console():
  """Ensures console is reset to stdout after every test."""
  reset_console()
  yield
  reset_console()


def test_console_singleton_proxy():
  """
  Verify `console` acts as a proxy to a real Rich console.
  """
  assert hasattr(console, "print")
  assert callable(console.print)
  assert hasattr(console, "export_text")
  assert isinstance(get_console(), Console)


def test_custom_console_injection():
  """
  Verify we can inject a capturing console and retrieve logs.
  """
  capture_console = Console(record=True, width=200)
  set_console(capture_console)

  log_info("Captured Log")
  log_success("Converted")

  output = capture_console.export_text()
  assert "Captured Log" in output
  assert "ℹ️" in output
  assert "✅ Converted" in output


def test_reset_functionality():
  """
  Verify `reset_console` restores a fresh default console.
  """
  original_backend = get_console()

  temp = Console()
  set_console(temp)
  assert get_console() is temp

  reset_console()
  current = get_console()

  assert current is not temp
  assert current is not original_backend
  assert isinstance(current, Console)


def test_logging_helpers_follow_console(captured_console):
  log_warning("WarnText")
  log_error("ErrorText")

  output = captured_console.getvalue()
  assert "⚠️  WarnText" in output
  assert "❌ ErrorText" in output


def test_proxy_getattr_delegation():
  """
  Attributes not defined on the proxy fall through to the backend.
  """
  width = console.width
  assert isinstance(width, int)
  assert width > 0


def test_injected_console_resolves_theme_styles():
  """
  Verify a plain console gains the theme when installed, so table styles resolve.
  """
  capture_console = Console(record=True, width=200)
  set_console(capture_console)

  assert capture_console.get_style("review") is not None
  console.print("[review]2 to review[/review] in [path]a.cy.js[/path]")
  assert "2 to review in a.cy.js" in capture_console.export_text()
