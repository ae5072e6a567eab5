"""
Wait/Intercept Transformer.

Rewrites network interception declarations and wait statements. Works in
two passes over a file:

1.  **Bind pass**: `AliasSymbolTable.from_source` records every
    `cy.intercept(...).as(name)` declaration before anything is rewritten,
    so waits resolve aliases declared both before and after them.
2.  **Rewrite pass**: `convert_wait_pattern` turns each declaration into a
    `page.route(...)` registration and each wait into an awaited
    `page.waitForResponse(...)`, `Promise.all([...])` or
    `page.waitForTimeout(...)`. Links chained on a wait (`.then()`,
    `.its()`, `.should()`) run against the awaited response.
"""

import re
from typing import Any, Dict, List, Optional, Set

from rich.markup import escape

from cy2pw.config import RuntimeConfig
from cy2pw.core import network
from cy2pw.core.accessors import expand_destructured, references_data
from cy2pw.core.aliases import AliasSymbolTable
from cy2pw.core.body import BodyConverter
from cy2pw.core.chains import Chain, callback_argument, parse_chain
from cy2pw.core.commands import Subject
from cy2pw.core.context import ConversionContext
from cy2pw.core.models import ConversionUnit, Pattern
from cy2pw.core.scanning import is_identifier
from cy2pw.core.units import failed_unit, make_unit
from cy2pw.enums import BindingKind, Complexity, PatternKind, WaitType
from cy2pw.utils.console import log_warning

FIXTURE_NOTE = "Fixture file integration requires manual setup"

_FIXTURE_RE = re.compile(r"\bfixture\s*[:(]")
_RESPONSE_PATH_RE = re.compile(r"^['\"`](?:response|request)\.")


def uses_fixture(text: str) -> bool:
  """True when the pattern text references a fixture file."""
  return bool(_FIXTURE_RE.search(text))


class WaitPatternTransformer:
  """
  Converts wait and interception patterns.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None):
    self.config = config or RuntimeConfig()

  def convert_wait_pattern(
    self,
    pattern: Pattern,
    aliases: Optional[AliasSymbolTable] = None,
    config: Optional[RuntimeConfig] = None,
    declared: Optional[Set[str]] = None,
  ) -> ConversionUnit:
    """
    Converts one wait or interception pattern.

    Args:
        pattern: The extracted pattern.
        aliases: Alias table from the bind pass. When omitted, a table is
            built from the pattern text itself.
        config: Configuration overriding the transformer default.
        declared: Names already declared in the output file.

    Returns:
        ConversionUnit: The converted unit. Never raises.
    """
    try:
      return self._convert(pattern, aliases, config, declared)
    except Exception as e:
      log_warning(f"Wait conversion failed: {escape(str(e))}")
      return failed_unit(
        pattern.kind, pattern.raw_text, f"conversion error ({type(e).__name__}), convert manually", wait_type=WaitType.UNKNOWN.value
      )

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
    if chain is None or chain.command not in ("wait", "intercept"):
      return failed_unit(
        PatternKind.WAIT, original, "wait could not be converted", Complexity.MEDIUM, **_metadata(WaitType.UNKNOWN)
      )

    ctx = ConversionContext(aliases if aliases is not None else AliasSymbolTable.from_source(text), config or self.config)
    if declared is not None:
      ctx.declared = declared
    fixture = uses_fixture(text)
    if fixture:
      ctx.note(FIXTURE_NOTE)

    if chain.command == "intercept":
      return self._convert_intercept(chain, original, ctx, fixture)
    return self._convert_wait(chain, original, ctx, fixture)

  def _convert_intercept(self, chain: Chain, original: str, ctx: ConversionContext, fixture: bool) -> ConversionUnit:
    converted = network.convert_intercept(chain, ctx.config.fixtures_dir)
    if not converted.succeeded:
      return failed_unit(
        PatternKind.INTERCEPT,
        original,
        "could not identify the intercepted URL",
        Complexity.MEDIUM,
        **_metadata(WaitType.INTERCEPT),
      )
    for note in converted.notes:
      ctx.note(note)
    for issue in converted.issues:
      if issue != FIXTURE_NOTE:
        ctx.flag(issue)

    alias = converted.metadata.get("alias_name")
    return make_unit(
      PatternKind.INTERCEPT,
      original,
      converted.text,
      ctx,
      Complexity.MEDIUM,
      manual=fixture,
      **_metadata(
        WaitType.INTERCEPT,
        alias_name=alias,
        alias_names=[alias] if alias else [],
        resolved_url=converted.metadata.get("url_pattern"),
        intercept_shape=converted.metadata.get("intercept_shape"),
        http_method=converted.metadata.get("http_method"),
      ),
    )

  def _convert_wait(self, chain: Chain, original: str, ctx: ConversionContext, fixture: bool) -> ConversionUnit:
    plan = network.plan_wait(chain.links[0].args, ctx.aliases)
    wait_type = WaitType(plan.metadata["wait_type"])
    if not plan.succeeded:
      return failed_unit(
        PatternKind.WAIT,
        original,
        "wait argument could not be classified",
        Complexity.MEDIUM,
        notes=list(plan.issues),
        **_metadata(WaitType.UNKNOWN),
      )
    for note in plan.notes:
      ctx.note(note)
    unresolved = list(plan.metadata.get("unresolved_aliases", []))
    for name in unresolved:
      ctx.flag(f"Unresolved alias @{name}")

    links = chain.links[1:]
    then_links = [link for link in links if link.name == "then"]
    extracts = self._extracts_data(chain)
    if links:
      rewritten = self._convert_links(chain, plan, wait_type, ctx)
    else:
      rewritten = plan.text

    if extracts:
      complexity = Complexity.HIGH
    elif wait_type in (WaitType.ALIAS, WaitType.MULTI_ALIAS):
      complexity = Complexity.MEDIUM
    else:
      complexity = Complexity.LOW

    names = plan.metadata.get("alias_names", [])
    resolved = plan.metadata.get("resolved_urls", [])
    return make_unit(
      PatternKind.WAIT,
      original,
      rewritten,
      ctx,
      complexity,
      manual=complexity == Complexity.HIGH or extracts or bool(unresolved) or fixture,
      **_metadata(
        wait_type,
        alias_name=names[0] if names else None,
        alias_names=names,
        resolved_url=resolved[0] if resolved else None,
        resolved_urls=resolved,
        has_chained_callback=bool(then_links),
        extracts_request_data=extracts,
        unresolved_aliases=unresolved,
      ),
    )

  def _convert_links(self, chain: Chain, plan: network.NetworkConversion, wait_type: WaitType, ctx: ConversionContext) -> str:
    """Applies the links chained on a wait to the awaited response."""
    commands = BodyConverter(ctx).commands(ctx)
    statements: List[str] = []
    if plan.expression is None:
      statements.append(plan.text)
      subject = Subject(None)
    else:
      statements.extend(line for line in plan.text.split("\n") if line.startswith(network.MANUAL))
      kind = BindingKind.RESPONSE
      if wait_type == WaitType.MULTI_ALIAS:
        ctx.flag("Callbacks on multi-alias waits receive an array of responses, check the accessors")
        kind = BindingKind.VALUE
      subject = Subject(plan.expression, kind)
    commands.convert_links(chain.links[1:], subject, statements)
    commands.finish_statement(subject, statements)
    return "\n".join(statements)

  def _extracts_data(self, chain: Chain) -> bool:
    """True when a chained callback or `.its()` reads request/response data."""
    for link in chain.links[1:]:
      if link.name == "its" and link.arguments and _RESPONSE_PATH_RE.match(link.arguments[0]):
        return True
      if link.name != "then":
        continue
      callback = callback_argument(link)
      if callback is None or not callback.param:
        continue
      param, body = callback.param, callback.body
      if not is_identifier(param):
        expanded = expand_destructured(param, body, BindingKind.RESPONSE, set())
        if expanded is None:
          continue
        param, body = expanded
      if references_data(body, param, BindingKind.RESPONSE):
        return True
    return False


def _metadata(wait_type: WaitType, **fields: Any) -> Dict[str, Any]:
  metadata: Dict[str, Any] = {
    "wait_type": wait_type.value,
    "alias_name": None,
    "alias_names": [],
    "resolved_url": None,
    "intercept_shape": None,
    "has_chained_callback": False,
    "extracts_request_data": False,
    "unresolved_aliases": [],
  }
  metadata.update(fields)
  return metadata
