"""
Import Management for converted files.

Handles the module-level statements of a converted file:

1.  **Reference Removal**: drops `/// <reference types="cypress" />`
    directives.
2.  **Base Injection**: adds the Playwright Test import unless the file
    already imports `@playwright/test`.
3.  **Unit Imports**: adds the imports individual conversions asked for
    (`fs`, `path`, configured helper modules), skipping modules the file
    already imports.

New statements are inserted after the last top-level import or `require`
statement, or at the top of the file when there is none.

Usage:
    injector = ImportInjector(config.base_import)
    code, added = injector.apply(code, ["import fs from 'fs';"])
"""

import re
from typing import Iterable, List, Optional, Tuple

from cy2pw.core.scanning import CLOSERS, OPENERS, mask_literals
from cy2pw.core.tracer import TraceLogger

CYPRESS_REFERENCE_RE = re.compile(r"^[ \t]*///[ \t]*<reference\s+types\s*=\s*[\"']cypress[\"']\s*/>[ \t]*\r?\n?", re.MULTILINE)
PLAYWRIGHT_IMPORT_RE = re.compile(r"""(?:\bfrom\s*|\brequire\s*\(\s*)['"]@playwright/test['"]""")

_MODULE_RE = re.compile(r"""(?:\bfrom\s*|\brequire\s*\(\s*|^import\s+)['"]([^'"]+)['"]""")
_IMPORT_START_RE = re.compile(r"(?:import\b|(?:const|let|var)\s+[^=\n]+=\s*require\s*\(|require\s*\()")


def imported_module(statement: str) -> Optional[str]:
  """Module specifier of an import or require statement."""
  match = _MODULE_RE.search(statement.strip())
  return match.group(1) if match else None


def imports_module(code: str, module: str) -> bool:
  """True when `code` already imports or requires `module`."""
  escaped = re.escape(module)
  return bool(re.search(rf"""(?:\bfrom\s*|\brequire\s*\(\s*|\bimport\s+)['"]{escaped}['"]""", code))


def last_import_end(code: str) -> int:
  """
  Offset just past the last top-level import statement, or -1.

  Multi-line imports (`import {\\n a,\\n b\\n} from 'x';`) are covered up to
  the newline ending them.

  Args:
      code: Source text.

  Returns:
      int: Insertion offset, or -1 when the file has no imports.
  """
  masked = mask_literals(code)
  depth = 0
  line_start = 0
  end = -1
  in_import = False
  for index, ch in enumerate(masked + "\n"):
    if ch in OPENERS:
      depth += 1
    elif ch in CLOSERS:
      depth -= 1
    elif ch == "\n" and depth == 0:
      if in_import:
        end = index
        in_import = False
      line_start = index + 1
      continue
    if index == line_start and depth == 0 and _IMPORT_START_RE.match(masked, index):
      in_import = True
  return min(end, len(code))


class ImportInjector:
  """
  Applies the import changes to a converted file.
  """

  def __init__(self, base_import: str, tracer: Optional[TraceLogger] = None):
    """
    Initializes the injector.

    Args:
        base_import: Playwright Test import statement.
        tracer: Optional trace logger recording each action.
    """
    self.base_import = base_import
    self.tracer = tracer

  def strip_cypress_references(self, code: str) -> str:
    stripped, count = CYPRESS_REFERENCE_RE.subn("", code)
    if count and self.tracer:
      self.tracer.log_import('/// <reference types="cypress" />', "remove")
    return stripped

  def apply(self, code: str, extra: Iterable[str] = ()) -> Tuple[str, List[str]]:
    """
    Removes Cypress references and injects missing imports.

    Args:
        code: Converted source text.
        extra: Import statements required by converted units.

    Returns:
        Tuple[str, List[str]]: The updated code and the injected statements.
    """
    code = self.strip_cypress_references(code)
    if not code.strip():
      return code, []

    added: List[str] = []
    if not PLAYWRIGHT_IMPORT_RE.search(code):
      added.append(self.base_import)
    for statement in extra:
      module = imported_module(statement)
      if statement in added or (module and imports_module(code, module)):
        continue
      if module and any(imported_module(s) == module for s in added):
        continue
      added.append(statement)
    if not added:
      return code, []

    if self.tracer:
      for statement in added:
        self.tracer.log_import(statement)
    block = "\n".join(added)
    end = last_import_end(code)
    if end == -1:
      separator = "\n" if code.startswith("\n") else "\n\n"
      return block + separator + code, added
    return code[:end] + "\n" + block + code[end:], added
