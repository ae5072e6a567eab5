"""
Tests for CLI argument parsing and dispatch.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from cy2pw.cli.__main__ import main


@patch("cy2pw.cli.commands.handle_convert", return_value=0)
def test_convert_dispatch(mock_convert):
  assert main(["convert", "x.cy.js"]) == 0
  mock_convert.assert_called_once_with(Path("x.cy.js"), None, {}, None, None)


@patch("cy2pw.cli.commands.handle_convert", return_value=0)
def test_convert_options(mock_convert):
  main(
    [
      "convert",
      "cypress/e2e",
      "--out",
      "tests/e2e",
      "--json-report",
      "report.json",
      "--config",
      "convert_test_structure=false",
      "fixtures_dir=fx",
    ]
  )
  mock_convert.assert_called_once_with(
    Path("cypress/e2e"),
    Path("tests/e2e"),
    {"convert_test_structure": False, "fixtures_dir": "fx"},
    Path("report.json"),
    None,
  )


@patch("cy2pw.cli.commands.handle_scan", return_value=0)
def test_scan_dispatch(mock_scan):
  assert main(["scan", "p"]) == 0
  mock_scan.assert_called_once_with(Path("p"))


def test_command_is_required():
  with pytest.raises(SystemExit):
    main([])
