"""
Runtime Configuration Store.

Settings are read from the `[tool.cy2pw]` table of the nearest
`pyproject.toml` and can be overridden from the command line with
`--config key=value` pairs.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from cy2pw.utils.console import log_warning

if sys.version_info >= (3, 11):
  import tomllib
else:
  import tomli as tomllib

DEFAULT_BASE_IMPORT = "import { test, expect } from '@playwright/test';"

DEFAULT_MALFORMED_MARKERS = [
  "cy.get('[data-testid=\"incomplete\"",
  "await await ",
  "page.locator(undefined)",
]


class RuntimeConfig(BaseModel):
  """
  Global configuration container for the conversion engine.
  """

  base_import: str = Field(DEFAULT_BASE_IMPORT, description="Import statement injected into every converted file.")
  fixtures_dir: str = Field("cypress/fixtures", description="Directory Cypress fixtures are resolved against.")
  malformed_markers: List[str] = Field(
    default_factory=lambda: list(DEFAULT_MALFORMED_MARKERS),
    description="Text fragments that mark a converted file as structurally invalid.",
  )
  convert_test_structure: bool = Field(True, description="Rewrite describe/it/hook headers to Playwright Test.")
  include_globs: List[str] = Field(
    default_factory=lambda: ["**/*.cy.js", "**/*.cy.ts", "**/*.spec.js", "**/*.spec.ts"],
    description="Glob patterns selecting spec files during directory conversion.",
  )
  command_helpers: Dict[str, str] = Field(
    default_factory=dict,
    description="Custom command name -> module exporting a Playwright helper of the same name.",
  )
  page_object_commands: Dict[str, str] = Field(
    default_factory=dict,
    description="Custom command name -> page object class exposing it as a method.",
  )
  test_id_attribute: str = Field("data-cy", description="Attribute used by data-cy style helper commands.")

  @field_validator("base_import")
  @classmethod
  def validate_base_import(cls, v: str) -> str:
    """
    Ensures the base import is a single import statement.

    Args:
        v (str): The configured import line.

    Returns:
        str: The stripped statement.

    Raises:
        ValueError: If the value is not an import statement.
    """
    v_clean = v.strip()
    if not v_clean.startswith("import "):
      raise ValueError(f"base_import must be an import statement, got: '{v_clean}'")
    return v_clean

  @classmethod
  def load(
    cls,
    search_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
  ) -> "RuntimeConfig":
    """
    Loads configuration from pyproject.toml and applies CLI overrides.

    Args:
        search_path (Optional[Path]): Directory to start searching for TOML config.
        overrides (Optional[Dict]): Values taking precedence over the TOML table.

    Returns:
        RuntimeConfig: The fully resolved configuration object.

    Raises:
        ValueError: If the merged settings fail validation.
    """
    start_dir = search_path or Path.cwd()
    toml_config, _ = _load_toml_settings(start_dir)
    merged = {**toml_config, **(overrides or {})}

    try:
      return cls.model_validate(merged)
    except ValidationError as e:
      raise ValueError(f"Configuration validation failed: {e}")


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Recursively searches parents for 'pyproject.toml' and extracts config.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory definition was found in.
  """
  current = start_path.resolve()

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.exists() and toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          data = tomllib.load(f)
      except (OSError, tomllib.TOMLDecodeError):
        return {}, None

      tool_section = data.get("tool", {})
      return tool_section.get("cy2pw", {}), parent

  return {}, None


def parse_cli_key_values(items: Optional[List[str]]) -> Dict[str, Any]:
  """
  Parses `key=value` override strings into a settings dictionary.

  Values are coerced to bool, int or float where they parse as such and kept
  as strings otherwise. Malformed entries are skipped with a warning.

  Args:
      items (Optional[List[str]]): Raw strings from argparse.

  Returns:
      Dict[str, Any]: Parsed overrides.
  """
  settings: Dict[str, Any] = {}
  for item in items or []:
    key, sep, raw = item.partition("=")
    if not sep or not key.strip():
      log_warning(f"Ignoring invalid config format: '{item}'. Expected 'key=value'.")
      continue
    settings[key.strip()] = _coerce(raw.strip())
  return settings


def _coerce(raw: str) -> Any:
  lowered = raw.lower()
  if lowered in ("true", "false"):
    return lowered == "true"
  for caster in (int, float):
    try:
      return caster(raw)
    except ValueError:
      continue
  return raw
