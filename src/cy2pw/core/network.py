"""
Network Interception and Wait Conversion.

Shared by the wait/intercept transformer (top-level statements) and the
command converter (statements embedded in callback bodies).

1.  **Interceptions**: `cy.intercept(...)` declarations become
    `page.route(...)` registrations. Response shapes: inline static objects,
    fixture files, request-handler callbacks and bare pass-through, with
    regex URLs passed through as regex literals.
2.  **Waits**: `cy.wait('@alias')`, `cy.wait(['@a', '@b'])` and
    `cy.wait(ms)` become awaited response or timeout waits, resolved through
    an `AliasSymbolTable`.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from cy2pw.core.aliases import (
  AliasSymbolTable,
  RouteMatcher,
  is_alias_reference,
  object_properties,
  parse_route_matcher,
  response_predicate,
  url_match_substring,
)
from cy2pw.core.chains import Callback, Chain, parse_callback
from cy2pw.core.scanning import (
  apply_replacements,
  dedent_block,
  find_matching,
  indent_block,
  is_identifier,
  is_string_literal,
  js_string,
  mask_literals,
  split_top_level,
  strip_quotes,
)
from cy2pw.enums import InterceptShape, WaitType

STATIC_RESPONSE_KEYS = {
  "statusCode",
  "statusMessage",
  "body",
  "headers",
  "fixture",
  "delay",
  "delayMs",
  "throttleKbps",
  "forceNetworkError",
}

MANUAL = "// TODO(cy2pw):"

_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")
_MEMBER_EXPR_RE = re.compile(r"^[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*$")

_REQUEST_PROPERTIES = {
  "body": "route.request().postDataJSON()",
  "url": "route.request().url()",
  "method": "route.request().method()",
  "headers": "route.request().headers()",
  "query": "Object.fromEntries(new URL(route.request().url()).searchParams)",
}


@dataclass
class NetworkConversion:
  """
  Output of an interception or wait conversion.

  Attributes:
      text: Replacement statements.
      expression: Awaited value expression (waits only), used when the wait
          result is bound to a callback parameter.
      notes: Informational notes for the conversion unit.
      issues: Reasons the output needs manual review.
      metadata: Kind-specific metadata fields.
      succeeded: False when the statement could not be classified.
  """

  text: str
  expression: Optional[str] = None
  notes: List[str] = field(default_factory=list)
  issues: List[str] = field(default_factory=list)
  metadata: Dict[str, Any] = field(default_factory=dict)
  succeeded: bool = True


def fixture_path(value: str, fixtures_dir: str) -> str:
  """
  Builds the `path` option for a fixture reference.

  Cypress resolves extension-less fixture names to `.json` files.

  Args:
      value: Fixture argument expression, usually a string literal.
      fixtures_dir: Directory holding the fixtures.

  Returns:
      str: A JavaScript expression for the fixture path.
  """
  base = fixtures_dir.rstrip("/")
  if is_string_literal(value):
    name = strip_quotes(value)
    if "." not in name.rsplit("/", 1)[-1]:
      name += ".json"
    return js_string(f"{base}/{name}")
  return f"`{base}/${{{value}}}`"


def static_response_fields(response: str, fixtures_dir: str) -> Tuple[List[str], List[str], List[str], bool]:
  """
  Maps a Cypress static response to `route.fulfill` option fields.

  Args:
      response: The response argument (object literal, string or expression).
      fixtures_dir: Directory used to resolve `fixture` references.

  Returns:
      Tuple: `(fields, prelude, notes, abort)` where `prelude` holds
      statements to run before fulfilling and `abort` requests
      `route.abort()` instead of a fulfill.
  """
  response = response.strip()
  if is_string_literal(response):
    return [f"body: {response}"], [], [], False
  if _NUMBER_RE.match(response):
    return [f"status: {response}"], [], [], False
  if not response.startswith("{"):
    return (
      ["status: 200", "contentType: 'application/json'", f"body: JSON.stringify({response})"],
      [],
      [f"Response '{response}' is assumed to be a response body"],
      False,
    )

  props = object_properties(response)
  if not any(key in STATIC_RESPONSE_KEYS for key in props):
    return ["status: 200", "contentType: 'application/json'", f"body: JSON.stringify({response})"], [], [], False

  fields: List[str] = []
  prelude: List[str] = []
  notes: List[str] = []
  abort = False
  for key, value in props.items():
    if key == "statusCode":
      fields.append(f"status: {value}")
    elif key == "body":
      if is_string_literal(value):
        fields.append(f"body: {value}")
      else:
        if "headers" not in props:
          fields.append("contentType: 'application/json'")
        fields.append(f"body: JSON.stringify({value})")
    elif key == "headers":
      fields.append(f"headers: {value}")
    elif key == "fixture":
      fields.append(f"path: {fixture_path(value, fixtures_dir)}")
    elif key in ("delay", "delayMs"):
      prelude.append(f"await new Promise((resolve) => setTimeout(resolve, {value}));")
    elif key == "forceNetworkError":
      abort = value.strip() == "true"
    elif key in ("throttleKbps", "statusMessage"):
      notes.append(f"'{key}' has no route.fulfill equivalent and was dropped")
    else:
      fields.append(f"{key}: {value}")
      notes.append(f"Unknown static response key '{key}' kept as-is")
  return fields, prelude, notes, abort


def fulfill_call(fields: List[str], multiline: bool = True) -> str:
  if not fields:
    return "await route.fulfill();"
  if not multiline:
    return f"await route.fulfill({{ {', '.join(fields)} }});"
  body = indent_block(",\n".join(fields) + ",", "  ")
  return f"await route.fulfill({{\n{body}\n}});"


def method_guard(method: Optional[str]) -> List[str]:
  if not method or method == "*":
    return []
  return [
    f"if (route.request().method() !== {js_string(method)}) {{",
    "  return route.continue();",
    "}",
  ]


def route_registration(url_expr: str, lines: List[str]) -> str:
  body = indent_block("\n".join(lines), "  ")
  return f"await page.route({url_expr}, async (route) => {{\n{body}\n}});"


def url_expression(matcher: RouteMatcher) -> str:
  if matcher.is_literal:
    return js_string(matcher.url)
  return matcher.url


def classify_intercept(matcher: RouteMatcher) -> InterceptShape:
  """Decides the interception shape from its URL and response argument."""
  if matcher.is_regex:
    return InterceptShape.REGEX
  response = (matcher.response or "").strip()
  if not response:
    return InterceptShape.PASS_THROUGH
  if parse_callback(response) is not None:
    return InterceptShape.HANDLER
  if response.startswith("{") and "fixture" in object_properties(response):
    return InterceptShape.FIXTURE
  return InterceptShape.INLINE


def convert_intercept(chain: Chain, fixtures_dir: str = "cypress/fixtures") -> NetworkConversion:
  """
  Converts a `cy.intercept(...)` chain into a route registration.

  Args:
      chain: Chain rooted at `intercept`, optionally followed by `.as()`.
      fixtures_dir: Directory used to resolve fixture responses.

  Returns:
      NetworkConversion: The `page.route` statement and metadata.
  """
  matcher = parse_route_matcher(chain.links[0].args)
  if matcher is None:
    return NetworkConversion(
      text=f"{MANUAL} could not identify the intercepted URL\n{chain.text}",
      issues=["Interception URL could not be identified"],
      succeeded=False,
    )

  shape = classify_intercept(matcher)
  url_expr = url_expression(matcher)
  notes: List[str] = []
  issues: List[str] = []
  alias = None
  for link in chain.links[1:]:
    if link.name == "as" and link.arguments:
      alias = strip_quotes(link.arguments[0])
    else:
      issues.append(f"Unsupported link .{link.name}() on cy.intercept")

  response = (matcher.response or "").strip()
  callback = parse_callback(response) if response else None
  guard = method_guard(matcher.method)
  uses_fixture = False

  if not response:
    text = f"await page.route({url_expr}, (route) => route.continue());"
  elif callback is not None:
    handler_lines, handler_issues = convert_request_handler(callback)
    issues.extend(handler_issues)
    text = route_registration(url_expr, guard + handler_lines)
  else:
    fields, prelude, field_notes, abort = static_response_fields(response, fixtures_dir)
    notes.extend(field_notes)
    lines = list(guard) + prelude
    if response.startswith("{") and "fixture" in object_properties(response):
      uses_fixture = True
      fixture = object_properties(response)["fixture"]
      lines.append(f"{MANUAL} load fixture file {strip_quotes(fixture)} (verify the path below)")
      if not any(f.startswith("status:") for f in fields):
        fields.insert(0, "status: 200")
    lines.append("await route.abort();" if abort else fulfill_call(fields))
    text = route_registration(url_expr, lines)

  if uses_fixture:
    issues.append("Fixture file integration requires manual setup")

  metadata = {
    "intercept_shape": shape.value,
    "alias_name": alias,
    "http_method": matcher.method,
    "url_pattern": matcher.url,
    "uses_fixture": uses_fixture,
  }
  return NetworkConversion(text=text, notes=notes, issues=issues, metadata=metadata)


def convert_request_handler(callback: Callback) -> Tuple[List[str], List[str]]:
  """
  Converts an interception request callback into route handler statements.

  `req.reply(...)` becomes `route.fulfill(...)`, `req.continue()` becomes
  `route.continue()`, `req.destroy()` becomes `route.abort()`, and request
  properties map to `route.request()` accessors. A handler that never
  replies continues the request, as Cypress does.

  Args:
      callback: The parsed `(req) => { ... }` callback.

  Returns:
      Tuple[List[str], List[str]]: Handler body lines and review issues.
  """
  req = callback.param or "req"
  body = dedent_block(callback.body) if callback.is_block else callback.body.strip() + ";"
  issues: List[str] = []
  if not is_identifier(req):
    issues.append(f"Destructured request parameter '{req}' needs manual conversion")
    return body.split("\n"), issues
  text = _rewrite_request_refs(body, req, issues)
  if not re.search(r"route\.(fulfill|continue|abort|fallback)\(", text):
    text = (text + "\n" if text.strip() else "") + "await route.continue();"
  return text.split("\n"), issues


def _rewrite_request_refs(text: str, req: str, issues: List[str]) -> str:
  masked = mask_literals(text)
  pattern = re.compile(rf"(?<![\w$.]){re.escape(req)}\s*\.\s*([A-Za-z_$][\w$]*)")
  edits = []
  pos = 0
  while True:
    match = pattern.search(masked, pos)
    if not match:
      break
    name = match.group(1)
    after = match.end()
    probe = after
    while probe < len(masked) and masked[probe] in " \t":
      probe += 1
    is_call = probe < len(masked) and masked[probe] == "("
    if is_call:
      close = find_matching(masked, probe)
      if close is None:
        break
      args = _rewrite_request_refs(text[probe + 1 : close], req, issues)
      replacement = _request_call(name, args, issues)
      end = close + 1
      if replacement is not None and not re.search(r"await\s*$", masked[: match.start()]):
        replacement = "await " + replacement
    else:
      replacement = _REQUEST_PROPERTIES.get(name)
      end = after
    if replacement is None:
      issues.append(f"Request handler member '{req}.{name}' has no direct route equivalent")
    else:
      edits.append((match.start(), end, replacement))
    pos = end
  return apply_replacements(text, edits)


def _request_call(name: str, args: str, issues: List[str]) -> Optional[str]:
  arguments = split_top_level(args)
  if name == "reply":
    if not arguments:
      return "route.fulfill()"
    if len(arguments) == 1:
      fields, prelude, notes, abort = static_response_fields(arguments[0], "cypress/fixtures")
      if prelude:
        issues.append("Delayed replies inside request handlers need manual conversion")
      return "route.abort()" if abort else f"route.fulfill({{ {', '.join(fields)} }})"
    fields = [f"status: {arguments[0]}"]
    body = arguments[1]
    fields.append(f"body: {body}" if is_string_literal(body) else f"body: JSON.stringify({body})")
    if len(arguments) > 2:
      fields.append(f"headers: {arguments[2]}")
    return f"route.fulfill({{ {', '.join(fields)} }})"
  if name == "continue":
    if arguments:
      issues.append("req.continue() with a response callback needs manual conversion")
      return None
    return "route.continue()"
  if name == "destroy":
    return "route.abort()"
  return None


def plan_wait(args_text: str, aliases: AliasSymbolTable) -> NetworkConversion:
  """
  Converts the arguments of a `cy.wait(...)` call.

  Args:
      args_text: Raw text between the wait parentheses.
      aliases: Alias table of the file being converted.

  Returns:
      NetworkConversion: Statement text plus the awaited expression and
      `wait_type`, `alias_names`, `resolved_urls`, `unresolved_aliases`
      metadata.
  """
  args = split_top_level(args_text)
  if not args:
    return _unknown_wait(args_text)
  first = args[0]
  options = f", {args[1]}" if len(args) > 1 else ""

  if is_alias_reference(first):
    name = strip_quotes(first).lstrip("@")
    call, comment, resolved = _response_wait(name, aliases, options)
    lines = ([comment] if comment else []) + [f"await {call};"]
    return NetworkConversion(
      text="\n".join(lines),
      expression=f"await {call}",
      notes=_wait_notes(),
      metadata=_wait_metadata(WaitType.ALIAS, [name], [resolved] if resolved else [], [] if resolved else [name]),
    )

  if first.startswith("[") and first.endswith("]"):
    elements = split_top_level(first[1:-1])
    if elements and all(is_alias_reference(e) for e in elements):
      names = [strip_quotes(e).lstrip("@") for e in elements]
      calls = []
      comments = []
      resolved_urls = []
      unresolved = []
      for name in names:
        call, comment, resolved = _response_wait(name, aliases, options)
        calls.append(call)
        if comment:
          comments.append(comment)
          unresolved.append(name)
        else:
          resolved_urls.append(resolved)
      listing = indent_block(",\n".join(calls) + ",", "  ")
      expression = f"await Promise.all([\n{listing}\n])"
      return NetworkConversion(
        text="\n".join(comments + [expression + ";"]),
        expression=expression,
        notes=_wait_notes(),
        metadata=_wait_metadata(WaitType.MULTI_ALIAS, names, resolved_urls, unresolved),
      )
    return _unknown_wait(args_text)

  if _NUMBER_RE.match(first) or (_MEMBER_EXPR_RE.match(first) and not is_string_literal(first)):
    notes = [] if _NUMBER_RE.match(first) else [f"Wait argument '{first}' is assumed to be a duration in milliseconds"]
    return NetworkConversion(
      text=f"await page.waitForTimeout({first});",
      notes=notes,
      metadata=_wait_metadata(WaitType.TIME, [], [], []),
    )
  return _unknown_wait(args_text)


def _response_wait(name: str, aliases: AliasSymbolTable, options: str) -> Tuple[str, Optional[str], Optional[str]]:
  binding = aliases.resolve(name)
  call = f"page.waitForResponse({response_predicate(binding, name)}{options})"
  if binding is None:
    comment = f"{MANUAL} unresolved alias @{name}, no matching cy.intercept().as('{name}') in this file"
    return call, comment, None
  resolved = binding.url_pattern if not binding.is_literal else url_match_substring(binding.url_pattern)
  return call, None, resolved


def _wait_notes() -> List[str]:
  return ["Start waitForResponse before the triggering action if the response can arrive early"]


def _wait_metadata(wait_type: WaitType, names: List[str], resolved: List[str], unresolved: List[str]) -> Dict[str, Any]:
  return {
    "wait_type": wait_type.value,
    "alias_names": names,
    "resolved_urls": resolved,
    "unresolved_aliases": unresolved,
  }


def _unknown_wait(args_text: str) -> NetworkConversion:
  return NetworkConversion(
    text="",
    issues=[f"Wait argument '{args_text.strip()}' could not be classified"],
    metadata=_wait_metadata(WaitType.UNKNOWN, [], [], []),
    succeeded=False,
  )
