"""
Callback-Pattern Transformer.

Rewrites Cypress callback chains (`cy.get(sel).then(($el) => { ... })`)
into sequential Playwright statements. The chain is classified into a
`ThenShape` by an ordered predicate table, first match wins:

1.  **simple**: one trailing `.then()` whose body issues no further `cy`
    commands.
2.  **multi_step**: one trailing `.then()` whose body issues `cy` commands;
    the body is converted statement by statement.
3.  **nested**: a callback body attaches another `.then()`; the callbacks are
    flattened into numbered blocks in textual order.
4.  **chained**: several trailing `.then()` attachments on one base; all of
    them operate on a shared `result` binding.
5.  **unrecognized**: anything else; the original is preserved under a
    manual review marker.

The base of the chain (the links before the first `.then()`) goes through the
command converter, so the callback parameter is bound to the Playwright
equivalent of the Cypress subject.
"""

import re
from typing import Callable, Dict, List, Optional, Set, Tuple

from rich.markup import escape

from cy2pw.config import RuntimeConfig
from cy2pw.core.aliases import AliasSymbolTable
from cy2pw.core.accessors import unique_name
from cy2pw.core.body import BodyConverter, convert_subject_chain
from cy2pw.core.chains import Callback, Chain, callback_argument, find_chains, has_invocation, has_then_attachment, parse_chain
from cy2pw.core.commands import MANUAL, CommandConverter
from cy2pw.core.context import ConversionContext
from cy2pw.core.models import ConversionUnit, Pattern
from cy2pw.core.scanning import (
  CLOSERS,
  OPENERS,
  at_statement_start,
  dedent_block,
  has_conditional,
  has_early_return,
  indent_block,
  is_identifier,
  mask_literals,
  rename_identifier,
  split_trailing_return,
)
from cy2pw.core.units import failed_unit, make_unit
from cy2pw.enums import BindingKind, Complexity, PatternKind, ThenShape
from cy2pw.utils.console import log_warning

NESTED_HEADER = f"{MANUAL} nested callbacks flattened into sequential blocks, verify the data flow"
UNRECOGNIZED_MESSAGE = "unrecognized callback chain, convert manually"

_THEN_RE = re.compile(r"\.\s*then\s*\(")

SHAPE_COMPLEXITY = {
  ThenShape.SIMPLE: Complexity.LOW,
  ThenShape.MULTI_STEP: Complexity.MEDIUM,
  ThenShape.CHAINED: Complexity.MEDIUM,
  ThenShape.NESTED: Complexity.HIGH,
  ThenShape.UNRECOGNIZED: Complexity.HIGH,
}


def first_then_index(chain: Chain) -> Optional[int]:
  """
  Index of the first `.then()` link when every link from there on is a
  `.then()` with an inline callback, else None.
  """
  names = chain.link_names
  if "then" not in names:
    return None
  index = names.index("then")
  for link in chain.links[index:]:
    if link.name != "then" or callback_argument(link) is None:
      return None
  return index


def callback_body(callback: Callback) -> str:
  """Block text of a callback; concise arrows become a `return` statement."""
  if callback.is_block:
    return dedent_block(callback.body)
  return f"return {callback.body.strip()};"


def _callbacks(chain: Chain) -> List[Callback]:
  index = first_then_index(chain)
  if index is None:
    return []
  return [callback_argument(link) for link in chain.links[index:]]


def _depth(masked: str, end: int) -> int:
  depth = 0
  for ch in masked[:end]:
    if ch in OPENERS:
      depth += 1
    elif ch in CLOSERS:
      depth -= 1
  return depth


class ThenPatternTransformer:
  """
  Converts callback-chain patterns into Playwright statements.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None):
    """
    Initializes the transformer.

    Args:
        config: Default configuration, used when a call passes none.
    """
    self.config = config or RuntimeConfig()
    self._shapes: List[Tuple[ThenShape, Callable[[Chain], bool]]] = [
      (ThenShape.SIMPLE, self._is_simple),
      (ThenShape.MULTI_STEP, self._is_multi_step),
      (ThenShape.NESTED, self._is_nested),
      (ThenShape.CHAINED, self._is_chained),
    ]

  # --- Classification ---

  def classify(self, chain: Chain) -> ThenShape:
    """
    Determines the structural shape of a callback chain.

    Args:
        chain: Parsed chain containing at least one `.then()` link.

    Returns:
        ThenShape: The first shape whose predicate matches.
    """
    for shape, predicate in self._shapes:
      if predicate(chain):
        return shape
    return ThenShape.UNRECOGNIZED

  def _single_body(self, chain: Chain) -> Optional[str]:
    callbacks = _callbacks(chain)
    if len(callbacks) != 1:
      return None
    return callbacks[0].body

  def _is_simple(self, chain: Chain) -> bool:
    body = self._single_body(chain)
    return body is not None and not has_invocation(body) and not has_then_attachment(body)

  def _is_multi_step(self, chain: Chain) -> bool:
    body = self._single_body(chain)
    return body is not None and has_invocation(body) and not has_then_attachment(body)

  def _is_nested(self, chain: Chain) -> bool:
    return any(has_then_attachment(callback.body) for callback in _callbacks(chain))

  def _is_chained(self, chain: Chain) -> bool:
    return len(_callbacks(chain)) > 1

  # --- Conversion ---

  def convert_then_pattern(
    self,
    pattern: Pattern,
    aliases: Optional[AliasSymbolTable] = None,
    config: Optional[RuntimeConfig] = None,
    declared: Optional[Set[str]] = None,
  ) -> ConversionUnit:
    """
    Converts one callback-chain pattern.

    Args:
        pattern: The extracted pattern.
        aliases: Alias table of the file. Built from the pattern text when
            omitted.
        config: Configuration overriding the transformer default.
        declared: Names already declared in the output file; bindings avoid
            them and are added to the set.

    Returns:
        ConversionUnit: The converted unit. Never raises; errors produce a
        failed unit preserving the original text.
    """
    original = pattern.raw_text
    try:
      return self._convert(pattern, aliases, config, declared)
    except Exception as e:
      log_warning(f"Callback chain conversion failed: {escape(str(e))}")
      return failed_unit(PatternKind.THEN, original, f"conversion error ({type(e).__name__}), convert manually", shape="error")

  def _convert(
    self,
    pattern: Pattern,
    aliases: Optional[AliasSymbolTable],
    config: Optional[RuntimeConfig],
    declared: Optional[Set[str]],
  ) -> ConversionUnit:
    original = pattern.raw_text
    text = original.strip()
    chain = parse_chain(text, 0)
    if chain is None or not chain.has_link("then"):
      return self._unrecognized(original)

    shape = self.classify(chain)
    if shape == ThenShape.UNRECOGNIZED:
      return self._unrecognized(original, callback_count=len(chain.then_links()))

    ctx = ConversionContext(
      aliases if aliases is not None else AliasSymbolTable.from_source(text),
      config or self.config,
    )
    if declared is not None:
      ctx.declared = declared
    converter = BodyConverter(ctx)

    nesting = 1
    if shape == ThenShape.NESTED:
      rewritten, binding, nesting = self._convert_nested(chain, converter, ctx)
    elif shape == ThenShape.CHAINED:
      rewritten, binding = self._convert_chained(chain, converter, ctx)
    else:
      rewritten, binding = self._convert_single(chain, converter, ctx, shape)

    complexity = SHAPE_COMPLEXITY[shape]
    if shape == ThenShape.SIMPLE and any(has_conditional(cb.body) for cb in _callbacks(chain)):
      complexity = Complexity.MEDIUM
    if shape == ThenShape.NESTED:
      ctx.note("Nested callbacks were flattened into sequential blocks")

    return make_unit(
      PatternKind.THEN,
      original,
      rewritten,
      ctx,
      complexity,
      manual=shape == ThenShape.NESTED,
      shape=shape.value,
      binding=binding,
      nesting_level=nesting,
      callback_count=len(_THEN_RE.findall(mask_literals(text))),
    )

  def _unrecognized(self, original: str, callback_count: int = 0) -> ConversionUnit:
    return failed_unit(
      PatternKind.THEN,
      original,
      UNRECOGNIZED_MESSAGE,
      shape=ThenShape.UNRECOGNIZED.value,
      binding=None,
      nesting_level=0,
      callback_count=callback_count,
    )

  def _base(self, chain: Chain, commands: CommandConverter, ctx: ConversionContext) -> Tuple[List[str], Optional[str], BindingKind]:
    """Converts the links before the first `.then()`."""
    index = first_then_index(chain)
    if not index:
      return [], None, BindingKind.VALUE
    converted = commands.convert_chain(chain.prefix(index), statement=False)
    if not converted.succeeded:
      ctx.flag(f"Base command cy.{chain.command}() could not be converted")
    return list(converted.statements), converted.expression, converted.kind

  def _convert_single(
    self, chain: Chain, converter: BodyConverter, ctx: ConversionContext, shape: ThenShape
  ) -> Tuple[str, Optional[str]]:
    commands = converter.commands(ctx)
    statements, expression, kind = self._base(chain, commands, ctx)
    callback = _callbacks(chain)[0]
    body = callback_body(callback)
    if has_early_return(body):
      ctx.flag("Early return inside the callback body")

    if kind == BindingKind.WINDOW:
      if callback.param and is_identifier(callback.param):
        body = rename_identifier(body, callback.param, "window")
      ctx.note("Window callbacks run in the browser and cannot read test variables")
      statements.append(f"await page.evaluate(() => {{\n{indent_block(body, '  ')}\n}});")
      return "\n".join(statements), "window"

    body, name = commands.bind_callback(body, callback.param, kind)
    bindings = self._declare(name, expression, kind, statements, ctx)
    remaining, returned = split_trailing_return(body)
    child = ctx.child(bindings)
    if remaining.strip():
      if shape == ThenShape.MULTI_STEP:
        statements.append(converter.convert_statements(remaining, child))
      else:
        statements.append(converter.convert(remaining, child))
    if returned is not None:
      hoisted, value = commands.convert_returned(returned, bindings)
      statements.extend(hoisted)
      statements.append(f"{value};")
    return "\n".join(statements), name

  def _declare(
    self,
    name: Optional[str],
    expression: Optional[str],
    kind: BindingKind,
    statements: List[str],
    ctx: ConversionContext,
    keyword: str = "const",
  ) -> Dict[str, BindingKind]:
    """Emits the binding declaration for a callback parameter."""
    if name is None:
      if expression is not None and expression.startswith("await "):
        statements.append(f"{expression};")
      return {}
    if expression is None:
      ctx.flag("Callback parameter has no value to bind")
      expression = "undefined"
    statements.append(f"{keyword} {name} = {expression};")
    return {name: kind}

  def _convert_chained(self, chain: Chain, converter: BodyConverter, ctx: ConversionContext) -> Tuple[str, str]:
    commands = converter.commands(ctx)
    statements, expression, kind = self._base(chain, commands, ctx)
    callbacks = _callbacks(chain)
    bodies = [callback_body(callback) for callback in callbacks]
    reassigned = any(split_trailing_return(body)[1] is not None for body in bodies[:-1])
    if kind == BindingKind.WINDOW:
      ctx.flag("Chained callbacks on the window object need manual conversion")
      kind = BindingKind.VALUE
      expression = "await page.evaluate(() => window)"

    name = unique_name("result", ctx.declared)
    bindings = self._declare(name, expression, kind, statements, ctx, "let" if reassigned else "const")
    if not bindings:
      bindings = {name: kind}

    for position, (callback, body) in enumerate(zip(callbacks, bodies)):
      final = position == len(callbacks) - 1
      if callback.param:
        if is_identifier(callback.param):
          body = rename_identifier(body, callback.param, name)
        else:
          ctx.flag(f"Destructured callback parameter '{callback.param}' needs manual conversion")
      if has_early_return(body):
        ctx.flag("Early return inside the callback body")
      remaining, returned = split_trailing_return(body)
      if remaining.strip():
        statements.append(converter.convert(remaining, ctx.child(dict(bindings))))
      if returned is None:
        continue
      hoisted, value = commands.convert_returned(returned, bindings)
      statements.extend(hoisted)
      if final:
        statements.append(f"{value};")
      else:
        statements.append(f"{name} = {value};")
        bindings[name] = bindings.get(value, BindingKind.VALUE)
    return "\n".join(statements), name

  # --- Nested callbacks ---

  def _convert_nested(self, chain: Chain, converter: BodyConverter, ctx: ConversionContext) -> Tuple[str, Optional[str], int]:
    commands = converter.commands(ctx)
    lead, expression, kind = self._base(chain, commands, ctx)
    blocks: List[List[str]] = []
    binding = None
    depth = 1
    for position, callback in enumerate(_callbacks(chain)):
      value, name, level = self._collect(expression, kind, callback, converter, ctx, blocks, lead, 1)
      lead = []
      binding = binding or name
      depth = max(depth, level)
      final = position == len(_callbacks(chain)) - 1
      if value is not None and final:
        if blocks:
          blocks[-1].append(f"{value};")
        else:
          blocks.append([f"{value};"])
      expression = value
      kind = ctx.bindings.get(value or "", BindingKind.VALUE)

    lines = [NESTED_HEADER]
    for number, block in enumerate(blocks, 1):
      lines.append(f"// block {number}")
      lines.extend(block)
    return "\n".join(lines), binding, depth

  def _collect(
    self,
    expression: Optional[str],
    kind: BindingKind,
    callback: Callback,
    converter: BodyConverter,
    ctx: ConversionContext,
    blocks: List[List[str]],
    lead: List[str],
    level: int,
  ) -> Tuple[Optional[str], Optional[str], int]:
    """
    Flattens one callback into blocks, recursing into inner callback chains.

    Args:
        expression: Value the callback parameter is bound to.
        kind: Kind of that value.
        callback: The callback.
        converter: Body converter.
        ctx: Context of the enclosing scope.
        blocks: Output block list, appended to in textual order.
        lead: Statements that must open this callback's first block.
        level: Nesting depth of the callback (outermost is 1).

    Returns:
        Tuple: The converted returned value (or None), the binding name and
        the deepest nesting level reached.
    """
    commands = converter.commands(ctx)
    body = callback_body(callback)
    if has_early_return(body):
      ctx.flag("Early return inside a nested callback")
    body, name = commands.bind_callback(body, callback.param, kind)
    current = list(lead)
    bindings = self._declare(name, expression, kind, current, ctx)
    child = ctx.child(bindings)
    remaining, returned = split_trailing_return(body)
    masked = mask_literals(remaining)
    deepest = level
    last = 0
    for inner in self._inner_chains(remaining, masked, child):
      segment = remaining[last : inner.start]
      if segment.strip():
        current.append(converter.convert(segment, child))
      if current:
        blocks.append(current)
      current = []
      index = first_then_index(inner)
      inner_lead: List[str] = []
      inner_expression, inner_kind = None, BindingKind.VALUE
      if index:
        inner_expression, inner_kind, inner_lead = convert_subject_chain(inner.prefix(index), converter, child)
      for link in inner.links[index:]:
        value, _, reached = self._collect(
          inner_expression, inner_kind, callback_argument(link), converter, child, blocks, inner_lead, level + 1
        )
        inner_lead = []
        deepest = max(deepest, reached)
        inner_expression, inner_kind = value, child.bindings.get(value or "", BindingKind.VALUE)
      last = inner.statement_end
    tail = remaining[last:]
    if tail.strip():
      current.append(converter.convert(tail, child))
    value = None
    if returned is not None:
      hoisted, value = commands.convert_returned(returned, bindings)
      current.extend(hoisted)
    if current:
      blocks.append(current)
    return value, name, deepest

  def _inner_chains(self, text: str, masked: str, ctx: ConversionContext) -> List[Chain]:
    """Callback chains standing as top-level statements of a body."""
    receivers = ["cy"] + ctx.locator_names
    found = find_chains(text, receivers, masked, accept=lambda c: c.has_link("then"))
    return [
      chain
      for chain in found
      if first_then_index(chain) is not None
      and at_statement_start(masked, chain.start)
      and _depth(masked, chain.start) == 0
    ]
