"""
Test Structure Transformer.

Rewrites Mocha-style block headers into Playwright Test headers. Only the
header is rewritten (from the block name up to and including the `{` that
opens its callback body); the body and the closing `});` stay in place.

| Cypress                    | Playwright                                      |
| -------------------------- | ----------------------------------------------- |
| `describe` / `context`     | `test.describe(title, () => {`                  |
| `it` / `specify`           | `test(title, async ({ page }) => {`             |
| `beforeEach` / `afterEach` | `test.beforeEach(async ({ page }) => {`         |
| `before`                   | `test.beforeAll(async ({ browser }) => {`       |
| `after`                    | `test.afterAll(async () => {`                   |
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Set

from rich.markup import escape

from cy2pw.config import RuntimeConfig
from cy2pw.core.aliases import AliasSymbolTable
from cy2pw.core.context import ConversionContext
from cy2pw.core.models import ConversionUnit, Pattern
from cy2pw.core.scanning import at_statement_start, find_matching, mask_literals, split_top_level
from cy2pw.core.units import failed_unit, make_unit
from cy2pw.enums import Complexity, PatternKind
from cy2pw.utils.console import log_warning

BLOCK_RE = re.compile(
  r"(?<![\w$.])(describe|context|it|specify|before|beforeEach|after|afterEach)(?:\s*\.\s*(only|skip))?\s*\("
)
_CALLBACK_HEAD_RE = re.compile(
  r"\s*(?:async\s+)?(?:\(([^()]*)\)|([A-Za-z_$][\w$]*))\s*=>\s*\{"
  r"|\s*(?:async\s+)?function\b\s*[\w$]*\s*\(([^()]*)\)\s*\{"
)

SUITES = {"describe", "context"}
TESTS = {"it", "specify"}
HOOKS = {
  "beforeEach": "test.beforeEach(async ({ page }) => {",
  "afterEach": "test.afterEach(async ({ page }) => {",
  "before": "test.beforeAll(async ({ browser }) => {\n  const page = await browser.newPage();",
  "after": "test.afterAll(async () => {",
}


@dataclass
class BlockHeader:
  """
  A block header located in source text.

  Attributes:
      name: Block function (`describe`, `it`, `beforeEach`, ...).
      modifier: `only`, `skip` or None.
      start: Offset of the block name.
      end: Offset just past the callback's opening `{`, or past the whole
          statement for a pending test without a callback.
      arguments: Top-level arguments before the callback.
      params: Callback parameter text (`done` style callbacks).
      pending: True for `it('title')` without a callback.
  """

  name: str
  modifier: Optional[str]
  start: int
  end: int
  arguments: List[str]
  params: str = ""
  pending: bool = False


def find_block_headers(text: str, masked: Optional[str] = None) -> List[BlockHeader]:
  """
  Locates block headers in textual order.

  Args:
      text: Source text.
      masked: Pre-computed mask of `text`.

  Returns:
      List[BlockHeader]: Headers with inline callbacks, plus pending tests.
  """
  masked = masked if masked is not None else mask_literals(text)
  headers = []
  for match in BLOCK_RE.finditer(masked):
    if not at_statement_start(masked, match.start()):
      continue
    header = parse_block_header(text, masked, match)
    if header is not None:
      headers.append(header)
  return headers


def parse_block_header(
  text: str, masked: str, match: "re.Match[str]", header_only: bool = False
) -> Optional[BlockHeader]:
  """
  Parses the header starting at `match`.

  Args:
      text: Source text.
      masked: Mask of `text`.
      match: `BLOCK_RE` match of the block name.
      header_only: True when `text` ends at the callback's opening `{`
          (an extracted header span), so the call never closes.

  Returns:
      Optional[BlockHeader]: None when the call has no inline callback.
  """
  name, modifier = match.group(1), match.group(2)
  open_index = match.end() - 1
  close = find_matching(masked, open_index)
  if close is None and not header_only:
    return None
  args_text = text[open_index + 1 : close] if close is not None else text[open_index + 1 :]
  arguments = split_top_level(args_text)
  if not arguments:
    return None

  last = arguments[-1]
  offset = open_index + 1 + args_text.rfind(last)
  head = _CALLBACK_HEAD_RE.match(masked, offset)
  if head is None:
    if name in TESTS and len(arguments) == 1 and close is not None:
      end = close + 1
      if end < len(masked) and masked[end] == ";":
        end += 1
      return BlockHeader(name, modifier, match.start(), end, arguments, pending=True)
    return None
  params = next((group for group in head.groups() if group is not None), "")
  return BlockHeader(name, modifier, match.start(), head.end(), arguments[:-1], params.strip())


class StructureTransformer:
  """
  Converts test block headers.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None):
    self.config = config or RuntimeConfig()

  def convert_structure_pattern(
    self,
    pattern: Pattern,
    aliases: Optional[AliasSymbolTable] = None,
    config: Optional[RuntimeConfig] = None,
    declared: Optional[Set[str]] = None,
  ) -> ConversionUnit:
    """
    Converts one block header.

    Args:
        pattern: Header pattern (block name up to the body's `{`).
        aliases: Unused; accepted for a uniform transformer signature.
        config: Configuration overriding the transformer default.
        declared: Unused; accepted for a uniform transformer signature.

    Returns:
        ConversionUnit: The converted unit. Never raises.
    """
    original = pattern.raw_text
    try:
      text = original.strip()
      masked = mask_literals(text)
      match = BLOCK_RE.match(masked)
      header = parse_block_header(text, masked, match, header_only=True) if match else None
      if header is None:
        return failed_unit(PatternKind.STRUCTURE, original, "test block header could not be parsed", Complexity.LOW)
      ctx = ConversionContext(aliases, config or self.config)
      rewritten = self._render(header, ctx)
      complexity = Complexity.MEDIUM if header.name == "before" else Complexity.LOW
      return make_unit(
        PatternKind.STRUCTURE,
        original,
        rewritten,
        ctx,
        complexity,
        block_type=header.name,
        modifier=header.modifier,
      )
    except Exception as e:
      log_warning(f"Test structure conversion failed: {escape(str(e))}")
      return failed_unit(PatternKind.STRUCTURE, original, f"conversion error ({type(e).__name__}), convert manually")

  def _render(self, header: BlockHeader, ctx: ConversionContext) -> str:
    name, modifier = header.name, header.modifier
    title = header.arguments[0] if header.arguments else "''"
    if len(header.arguments) > 1:
      ctx.note(f"Options of {name}() were dropped, use test.use() or annotations instead")

    if header.pending:
      return f"test.fixme({title}, async () => {{}});"

    if header.params and name not in SUITES:
      ctx.flag(f"Callback parameter '{header.params}' of {name}() needs manual conversion")

    if name in SUITES:
      callee = f"test.describe.{modifier}" if modifier else "test.describe"
      return f"{callee}({title}, () => {{"
    if name in TESTS:
      callee = f"test.{modifier}" if modifier else "test"
      return f"{callee}({title}, async ({{ page }}) => {{"

    if modifier:
      ctx.note(f".{modifier} on {name}() has no Playwright equivalent and was dropped")
    if name == "before":
      ctx.flag("beforeAll hooks get their own page from the browser fixture, share it explicitly if tests rely on it")
    return HOOKS[name]
