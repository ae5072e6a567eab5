"""
Callback Body Converter.

Converts the body of a Cypress callback into Playwright statements. The
pipeline runs the same passes for every body, in this order:

1.  **Accessors**: property paths on response bindings become accessor calls,
    with extraction statements hoisted to the top of the body.
2.  **jQuery subjects**: methods called on element bindings (`$el.text()`,
    `$el.find('a')`) become locator calls.
3.  **Embedded invocations**: `cy.*` chains inside the body go through the
    command converter (recursively converting their own callbacks).
4.  **Awaits**: asynchronous page and locator calls lacking `await` get one.
5.  **Assertions**: BDD `expect(...)` chains become Playwright matchers.

Each pass only rewrites what it recognises and leaves already converted
Playwright code untouched, so running a body through twice is harmless.
"""

import re
from typing import List, Optional, Tuple

from cy2pw.core.accessors import rewrite_accessors
from cy2pw.core.assertions import rewrite_expectations
from cy2pw.core.chains import Chain, Link, find_chains
from cy2pw.core.commands import ChainConversion, CommandConverter
from cy2pw.core.context import ConversionContext
from cy2pw.core.scanning import (
  apply_replacements,
  at_statement_start,
  dedent_block,
  find_matching,
  is_string_literal,
  js_string,
  mask_literals,
  split_statements,
  strip_quotes,
)
from cy2pw.enums import BindingKind

ASYNC_LOCATOR_METHODS = {
  "click",
  "dblclick",
  "fill",
  "press",
  "pressSequentially",
  "type",
  "check",
  "uncheck",
  "setChecked",
  "selectOption",
  "selectText",
  "setInputFiles",
  "hover",
  "focus",
  "blur",
  "tap",
  "clear",
  "dispatchEvent",
  "scrollIntoViewIfNeeded",
  "textContent",
  "innerText",
  "innerHTML",
  "inputValue",
  "getAttribute",
  "isVisible",
  "isHidden",
  "isChecked",
  "isDisabled",
  "isEnabled",
  "isEditable",
  "count",
  "all",
  "allTextContents",
  "allInnerTexts",
  "evaluate",
  "evaluateAll",
  "boundingBox",
  "screenshot",
  "waitFor",
}

ASYNC_PAGE_METHODS = {
  "goto",
  "reload",
  "goBack",
  "goForward",
  "waitForResponse",
  "waitForRequest",
  "waitForTimeout",
  "waitForURL",
  "waitForLoadState",
  "waitForSelector",
  "title",
  "content",
  "setViewportSize",
  "setContent",
  "route",
  "unroute",
  "pause",
  "close",
  "addInitScript",
  "exposeFunction",
  "evaluate",
  "waitForFunction",
  "screenshot",
  "click",
  "fill",
  "hover",
  "press",
  "check",
  "selectOption",
  # page.context()
  "addCookies",
  "clearCookies",
  "cookies",
  "grantPermissions",
  "setOffline",
  "storageState",
}

# jQuery methods yielding a new element set
JQUERY_QUERIES = {
  "find": "locator({0})",
  "children": None,
  "eq": "nth({0})",
  "first": "first()",
  "last": "last()",
  "parent": "locator('..')",
  "next": "locator('xpath=following-sibling::*[1]')",
  "prev": "locator('xpath=preceding-sibling::*[1]')",
  "filter": None,
}

# jQuery getters -> awaited locator reads
JQUERY_VALUES = {
  "text": "textContent()",
  "html": "innerHTML()",
  "width": None,
  "height": None,
  "attr": "getAttribute({0})",
  "data": None,
  "prop": "evaluate((el, name) => el[name], {0})",
  "css": "evaluate((el, name) => getComputedStyle(el).getPropertyValue(name), {0})",
  "hasClass": "evaluate((el, name) => el.classList.contains(name), {0})",
  "is": None,
  "val": "inputValue()",
  "toArray": "all()",
}

JQUERY_ACTIONS = {
  "click": "click()",
  "dblclick": "dblclick()",
  "focus": "focus()",
  "blur": "blur()",
  "submit": "evaluate((form) => form.requestSubmit())",
  "trigger": "dispatchEvent({0})",
}

STATE_SELECTORS = {
  ":visible": "isVisible()",
  ":hidden": "isHidden()",
  ":checked": "isChecked()",
  ":disabled": "isDisabled()",
  ":enabled": "isEnabled()",
}

# Methods shared by Playwright locators; chains using them are already converted.
LOCATOR_METHODS = ASYNC_LOCATOR_METHODS | {
  "locator",
  "getByText",
  "getByRole",
  "getByLabel",
  "getByPlaceholder",
  "getByTestId",
  "getByAltText",
  "getByTitle",
  "nth",
  "and",
  "or",
}

_POSITIONAL_RE = re.compile(r"\{(\d)\}")
_AWAITED_BEFORE_RE = re.compile(r"(?:await|=>)\s*\(?\s*$")
_SUB_API_RE = re.compile(r"(?<![\w$.])page\s*\.\s*(?:request|clock|keyboard|mouse)\s*\.\s*[A-Za-z_$][\w$]*\s*\(")
_PROMISE_COMBINATOR_RE = re.compile(r"(?<![\w$])Promise\s*\.\s*(?:all|allSettled|race|any)\s*\(")


def _format(template: str, args: List[str]) -> str:
  return _POSITIONAL_RE.sub(lambda m: ", ".join(args) if m.group(1) == "0" else "", template)


class BodyConverter:
  """
  Converts callback bodies under a `ConversionContext`.
  """

  def __init__(self, context: ConversionContext):
    self.context = context

  def commands(self, context: Optional[ConversionContext] = None) -> CommandConverter:
    """Returns a command converter wired back to this body converter."""
    return CommandConverter(context or self.context, self.convert)

  def convert(self, body: str, context: Optional[ConversionContext] = None) -> str:
    """
    Runs the full pipeline over one body.

    Args:
        body: Callback body text (any indentation).
        context: Context to convert under (defaults to the converter's own).

    Returns:
        str: The converted, dedented body.
    """
    ctx = context or self.context
    text = dedent_block(body)
    prelude: List[str] = []
    for name, kind in ctx.bindings.items():
      if kind not in (BindingKind.RESPONSE, BindingKind.API_RESPONSE):
        continue
      rewrite = rewrite_accessors(text, name, kind, ctx.declared)
      text = rewrite.text
      prelude.extend(rewrite.prelude)
      for issue in rewrite.issues:
        ctx.flag(issue)

    text = self.rewrite_jquery(text, ctx)
    text = self.convert_invocations(text, ctx)
    text = ensure_awaited(text, ctx.locator_names)
    text, issues = rewrite_expectations(text, ctx.locator_names)
    for issue in issues:
      ctx.flag(issue)
    return "\n".join(prelude + [text]) if prelude else text

  def convert_statements(self, body: str, context: Optional[ConversionContext] = None) -> str:
    """
    Converts a body statement by statement.

    Used for multi-step callbacks: each logical statement is converted on its
    own, so hoisted extractions land directly before the statement using them.

    Args:
        body: Callback body text.
        context: Context to convert under.

    Returns:
        str: The converted statements joined by newlines.
    """
    ctx = context or self.context
    return "\n".join(self.convert(statement, ctx) for statement in split_statements(dedent_block(body)))

  # --- Embedded invocations ---

  def convert_invocations(self, text: str, context: Optional[ConversionContext] = None) -> str:
    """
    Converts every outermost `cy.*` chain embedded in `text`.

    Chains standing as statements are replaced by the converted statements;
    chains in expression position (`const x = cy.get(...)`) are replaced by
    the converted subject expression.
    """
    ctx = context or self.context
    masked = mask_literals(text)
    converter = self.commands(ctx)
    edits: List[Tuple[int, int, str]] = []
    for chain in find_chains(text, ("cy",), masked):
      if at_statement_start(masked, chain.start) and _ends_statement(masked, chain):
        converted = converter.convert_chain(chain, statement=True)
        edits.append((chain.start, chain.statement_end, converted.text))
        continue
      converted = converter.convert_chain(chain, statement=False)
      edits.append((chain.start, chain.end, self._expression_for(chain, converted, ctx)))
    return apply_replacements(text, edits)

  def _expression_for(self, chain: Chain, converted: ChainConversion, ctx: ConversionContext) -> str:
    if converted.statements:
      ctx.flag(f"Commands inside an expression need manual conversion: {' '.join(chain.text.split())}")
    if converted.expression is None:
      ctx.flag(f"cy.{chain.command}() yields no value in expression position")
      return "undefined"
    return converted.expression

  # --- jQuery subjects ---

  def rewrite_jquery(self, text: str, context: Optional[ConversionContext] = None) -> str:
    """
    Rewrites jQuery method calls on element bindings into locator calls.

    Args:
        text: Body text.
        context: Context providing the locator bindings.

    Returns:
        str: The rewritten text. Unsupported methods are left unchanged and
        flagged for review.
    """
    ctx = context or self.context
    names = ctx.locator_names
    if not names:
      return text
    masked = mask_literals(text)
    edits: List[Tuple[int, int, str]] = []
    for chain in find_chains(text, names, masked):
      replacement = self._jquery_chain(text, masked, chain, ctx)
      if replacement is not None:
        edits.append((chain.start, chain.end, replacement))
    text = apply_replacements(text, edits)

    masked = mask_literals(text)
    edits = []
    pattern = re.compile(rf"(?<![\w$.])({'|'.join(re.escape(n) for n in names)})\s*(?:\.\s*length\b|\[\s*\d+\s*\])")
    for match in pattern.finditer(masked):
      fragment = text[match.start() : match.end()]
      if fragment.endswith("]"):
        ctx.flag(f"DOM element access '{fragment}' needs manual conversion")
        continue
      edits.append((match.start(), match.end(), f"(await {match.group(1)}.count())"))
    return apply_replacements(text, edits)

  def _jquery_chain(self, text: str, masked: str, chain: Chain, ctx: ConversionContext) -> Optional[str]:
    expression = chain.receiver
    query_end = None
    for link in chain.links:
      query = self._jquery_query(expression, link, ctx)
      if query is not None:
        expression = query
        query_end = link.end
        continue
      terminal = self._jquery_terminal(expression, link)
      if terminal is None:
        if link.name in LOCATOR_METHODS:
          break
        ctx.flag(f"Unsupported jQuery method .{link.name}() on '{chain.receiver}'")
        return None
      rest = text[link.end : chain.end]
      if rest.strip():
        return f"({terminal}){rest}"
      if terminal.startswith("await ") and _AWAITED_BEFORE_RE.search(masked[: chain.start]):
        terminal = terminal[len("await ") :]
      return terminal
    if query_end is None:
      return None
    return expression + text[query_end : chain.end]

  def _jquery_query(self, expression: str, link: Link, ctx: ConversionContext) -> Optional[str]:
    args = link.arguments
    if link.name not in JQUERY_QUERIES:
      return None
    if link.name == "filter":
      if not args or args[0].startswith("{") or not is_string_literal(args[0]):
        return f"{expression}.filter({link.args})" if args and args[0].startswith("{") else None
      return f"{expression}.and({ctx.scope or 'page'}.locator({args[0]}))"
    if link.name == "children":
      if args and is_string_literal(args[0]):
        return f"{expression}.locator({js_string(':scope > ' + strip_quotes(args[0]))})"
      return f"{expression}.locator(':scope > *')"
    return f"{expression}.{_format(JQUERY_QUERIES[link.name], args)}"

  def _jquery_terminal(self, expression: str, link: Link) -> Optional[str]:
    name = link.name
    args = link.arguments
    if name == "val" and args:
      return f"await {expression}.fill({args[0]})"
    if name == "attr" and len(args) == 2:
      return f"await {expression}.evaluate((el, [name, value]) => el.setAttribute(name, value), [{args[0]}, {args[1]}])"
    if name == "prop" and len(args) == 2:
      if strip_quotes(args[0]) == "checked":
        return f"await {expression}.setChecked({args[1]})"
      return None
    if name == "css" and len(args) != 1:
      return None
    if name == "is":
      selector = strip_quotes(args[0]) if args else ""
      if selector in STATE_SELECTORS:
        return f"await {expression}.{STATE_SELECTORS[selector]}"
      return f"await {expression}.evaluate((el, selector) => el.matches(selector), {args[0] if args else 'undefined'})"
    if name in ("width", "height"):
      return f"(await {expression}.boundingBox()).{name}"
    if name == "data" and len(args) == 1:
      key = js_string("data-" + strip_quotes(args[0])) if is_string_literal(args[0]) else f"`data-${{{args[0]}}}`"
      return f"await {expression}.getAttribute({key})"
    if name in JQUERY_VALUES and JQUERY_VALUES[name] is not None:
      return f"await {expression}.{_format(JQUERY_VALUES[name], args)}"
    if name in JQUERY_ACTIONS:
      return f"await {expression}.{_format(JQUERY_ACTIONS[name], args)}"
    return None


def _ends_statement(masked: str, chain: Chain) -> bool:
  probe = chain.statement_end
  while probe < len(masked) and masked[probe] in " \t":
    probe += 1
  return probe >= len(masked) or masked[probe] in "\n}"


def _combinator_spans(masked: str) -> List[Tuple[int, int]]:
  spans = []
  for match in _PROMISE_COMBINATOR_RE.finditer(masked):
    close = find_matching(masked, match.end() - 1)
    if close is not None:
      spans.append((match.start(), close))
  return spans


def ensure_awaited(text: str, locator_names: Optional[List[str]] = None) -> str:
  """
  Inserts `await` before asynchronous page and locator calls lacking one.

  A call is asynchronous when any link of its chain is a known async
  Playwright method. Calls already awaited, returned from concise arrows, or
  collected inside `Promise.all([...])` are left alone. When the awaited
  value is used further (`.trim()`, `[0]`), the call is parenthesised.

  Args:
      text: Converted body text.
      locator_names: Identifiers bound to locators.

  Returns:
      str: Text with awaits inserted.
  """
  receivers = ["page"] + list(locator_names or [])
  masked = mask_literals(text)
  skipped = _combinator_spans(masked)
  edits: List[Tuple[int, int, str]] = []

  def needs_await(start: int) -> bool:
    if _AWAITED_BEFORE_RE.search(masked[:start]):
      return False
    return not any(lo < start < hi for lo, hi in skipped)

  for chain in find_chains(text, receivers, masked):
    async_index = _first_async_link(chain)
    if async_index is None or not needs_await(chain.start):
      continue
    cut = chain.links[async_index].end
    awaited = f"await {text[chain.start : cut]}"
    if cut < chain.end or (cut < len(masked) and masked[cut] in ".["):
      awaited = f"({awaited})"
    edits.append((chain.start, cut, awaited))

  for match in _SUB_API_RE.finditer(masked):
    if needs_await(match.start()) and not any(start <= match.start() < end for start, end, _ in edits):
      edits.append((match.start(), match.start(), "await "))
  return apply_replacements(text, edits)


def _first_async_link(chain: Chain) -> Optional[int]:
  methods = ASYNC_PAGE_METHODS if chain.receiver == "page" else ASYNC_LOCATOR_METHODS
  for index, link in enumerate(chain.links):
    if link.name in methods or (index > 0 and link.name in ASYNC_LOCATOR_METHODS):
      return index
  return None


def convert_subject_chain(chain: Chain, converter: BodyConverter, context: ConversionContext) -> Tuple[str, BindingKind, List[str]]:
  """
  Converts the base of a callback chain into a subject expression.

  `cy`-rooted chains go through the command converter; chains rooted at an
  element binding (`$list.find('li')`) go through the jQuery mapping.

  Args:
      chain: Base chain without its `.then()` attachments.
      converter: Body converter to use.
      context: Context to convert under.

  Returns:
      Tuple[str, BindingKind, List[str]]: Subject expression, its kind, and
      statements that must run first.
  """
  if chain.receiver == "cy":
    converted = converter.commands(context).convert_chain(chain, statement=False)
    return converted.expression or "undefined", converted.kind, converted.statements
  rewritten = converter.rewrite_jquery(chain.text[: chain.end - chain.start], context)
  kind = context.bindings.get(chain.receiver, BindingKind.VALUE)
  if rewritten.startswith("await ") or rewritten.startswith("("):
    kind = BindingKind.VALUE
  return rewritten, kind, []
