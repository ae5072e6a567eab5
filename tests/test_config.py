"""
Tests for configuration loading.

Verifies that:
1. RuntimeConfig.load() picks up [tool.cy2pw] from pyproject.toml.
2. Overrides take precedence over TOML values.
3. Invalid settings surface as ValueError.
4. CLI key=value parsing coerces values.
"""

import pytest

from cy2pw.config import DEFAULT_BASE_IMPORT, DEFAULT_MALFORMED_MARKERS, RuntimeConfig, parse_cli_key_values


@pytest.fixture
def toml_file(tmp_path):
  """Creates a pyproject.toml with a cy2pw table in the temp dir."""
  fpath = tmp_path / "pyproject.toml"
  content = """
[tool.cy2pw]
fixtures_dir = "e2e/fixtures"
convert_test_structure = false

[tool.cy2pw.command_helpers]
login = "./helpers/auth"
"""
  fpath.write_text(content, encoding="utf-8")
  return fpath


def test_defaults():
  config = RuntimeConfig()
  assert config.base_import == DEFAULT_BASE_IMPORT
  assert config.fixtures_dir == "cypress/fixtures"
  assert config.malformed_markers == DEFAULT_MALFORMED_MARKERS
  assert config.convert_test_structure is True
  assert "**/*.cy.js" in config.include_globs
  assert config.command_helpers == {}
  assert config.test_id_attribute == "data-cy"


def test_load_from_toml(tmp_path, toml_file):
  config = RuntimeConfig.load(search_path=tmp_path)
  assert config.fixtures_dir == "e2e/fixtures"
  assert config.convert_test_structure is False
  assert config.command_helpers == {"login": "./helpers/auth"}


def test_load_searches_parents(tmp_path, toml_file):
  nested = tmp_path / "cypress" / "e2e"
  nested.mkdir(parents=True)
  assert RuntimeConfig.load(search_path=nested).fixtures_dir == "e2e/fixtures"


def test_overrides_win(tmp_path, toml_file):
  config = RuntimeConfig.load(search_path=tmp_path, overrides={"convert_test_structure": True})
  assert config.convert_test_structure is True
  assert config.fixtures_dir == "e2e/fixtures"


def test_invalid_base_import(tmp_path):
  with pytest.raises(ValueError, match="Configuration validation failed"):
    RuntimeConfig.load(search_path=tmp_path, overrides={"base_import": "const test = 1;"})


def test_base_import_is_stripped():
  assert RuntimeConfig(base_import="  import { test } from '@playwright/test';  ").base_import == (
    "import { test } from '@playwright/test';"
  )


def test_parse_cli_key_values():
  parsed = parse_cli_key_values(["a=1", "b=true", "c=1.5", "d=x", "bad", "=y"])
  assert parsed == {"a": 1, "b": True, "c": 1.5, "d": "x"}
  assert parse_cli_key_values(None) == {}
