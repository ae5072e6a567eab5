"""
Alias Symbol Table.

Maps network-interception aliases (``cy.intercept(...).as('getUsers')``) to
the URL pattern they were declared with, so wait statements referencing
``'@getUsers'`` can be rewritten into response waits on the real URL.

The table is an explicit, per-conversion object: it is built by a bind pass
over one file (`AliasSymbolTable.from_source`) and handed to the transformers
that consume it. Nothing is cached between files.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from cy2pw.core.chains import Chain, find_chains
from cy2pw.core.scanning import (
  find_top_level,
  is_regex_literal,
  is_string_literal,
  js_string,
  split_top_level,
  strip_quotes,
)

HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}


@dataclass(frozen=True)
class AliasBinding:
  """
  A single alias declaration.

  Attributes:
      alias: Alias name without the leading `@`.
      url_pattern: URL argument as written; unquoted for string literals,
          verbatim for regex literals and expressions.
      method: Upper-case HTTP method when the declaration names one.
      is_regex: True when `url_pattern` is a regex literal.
      is_literal: True when `url_pattern` came from a string literal.
  """

  alias: str
  url_pattern: str
  method: Optional[str] = None
  is_regex: bool = False
  is_literal: bool = True


@dataclass(frozen=True)
class RouteMatcher:
  """URL and method parsed from the leading arguments of `cy.intercept`."""

  url: str
  method: Optional[str]
  response: Optional[str]
  is_regex: bool
  is_literal: bool


class AliasSymbolTable:
  """
  Lookup table of interception aliases for one file.
  """

  def __init__(self) -> None:
    self._bindings: Dict[str, AliasBinding] = {}
    self.redefined: List[str] = []

  @classmethod
  def from_source(cls, text: str) -> "AliasSymbolTable":
    """
    Runs the bind pass over a whole file.

    Every `cy.intercept(...)` chain carrying an `.as(name)` link is bound,
    regardless of where it appears relative to the waits that use it.

    Args:
        text: Full source text of one file.

    Returns:
        AliasSymbolTable: A fresh, populated table.
    """
    table = cls()
    for chain in find_chains(text, accept=lambda c: c.command == "intercept", skip_rejected=False):
      binding = binding_from_chain(chain)
      if binding:
        table.bind(binding)
    return table

  def bind(self, binding: AliasBinding) -> None:
    if binding.alias in self._bindings:
      self.redefined.append(binding.alias)
    self._bindings[binding.alias] = binding

  def resolve(self, alias: str) -> Optional[AliasBinding]:
    """
    Looks up an alias, with or without its leading `@`.

    Args:
        alias: Alias reference such as `@getUsers`.

    Returns:
        Optional[AliasBinding]: The latest binding, or None when unbound.
    """
    return self._bindings.get(alias.lstrip("@"))

  def aliases(self) -> List[str]:
    return list(self._bindings)

  def __contains__(self, alias: str) -> bool:
    return alias.lstrip("@") in self._bindings

  def __len__(self) -> int:
    return len(self._bindings)

  def __iter__(self) -> Iterator[AliasBinding]:
    return iter(self._bindings.values())


def parse_route_matcher(args_text: str) -> Optional[RouteMatcher]:
  """
  Extracts URL, method and response from `cy.intercept` arguments.

  Handles `(url)`, `(url, response)`, `(method, url)`, `(method, url,
  response)` and the route-matcher object form `({ method, url }, response)`.

  Args:
      args_text: Raw text between the intercept parentheses.

  Returns:
      Optional[RouteMatcher]: None when no URL can be identified.
  """
  args = split_top_level(args_text)
  if not args:
    return None
  method = None
  if len(args) >= 2 and is_string_literal(args[0]) and strip_quotes(args[0]).upper() in HTTP_METHODS:
    method = strip_quotes(args[0]).upper()
    url_arg, rest = args[1], args[2:]
  else:
    url_arg, rest = args[0], args[1:]

  if url_arg.startswith("{"):
    props = object_properties(url_arg)
    if "url" not in props and "path" not in props and "pathname" not in props:
      return None
    method = strip_quotes(props["method"]).upper() if "method" in props else method
    url_arg = props.get("url") or props.get("path") or props.get("pathname")

  response = rest[0] if rest else None
  if is_regex_literal(url_arg):
    return RouteMatcher(url_arg.strip(), method, response, True, False)
  if is_string_literal(url_arg):
    return RouteMatcher(strip_quotes(url_arg), method, response, False, True)
  return RouteMatcher(url_arg.strip(), method, response, False, False)


def object_properties(object_text: str) -> Dict[str, str]:
  """
  Splits a `{ key: value, ... }` literal into its top-level properties.

  Shorthand properties (`{ body }`) map to themselves. Quoted keys are
  unquoted. Spread elements are skipped.

  Args:
      object_text: Object literal text including the braces.

  Returns:
      Dict[str, str]: Ordered mapping of key to raw value text.
  """
  inner = object_text.strip()
  if inner.startswith("{") and inner.endswith("}"):
    inner = inner[1:-1]
  props: Dict[str, str] = {}
  for entry in split_top_level(inner):
    if entry.startswith("..."):
      continue
    colon = find_top_level(entry, ":")
    if colon == -1:
      props[entry.strip()] = entry.strip()
      continue
    key = strip_quotes(entry[:colon].strip())
    props[key] = entry[colon + 1 :].strip()
  return props


def binding_from_chain(chain: Chain) -> Optional[AliasBinding]:
  """Builds a binding from an intercept chain with an `.as()` link."""
  alias_links = [link for link in chain.links if link.name == "as"]
  if not alias_links or not alias_links[0].arguments:
    return None
  alias_arg = alias_links[0].arguments[0]
  if not is_string_literal(alias_arg):
    return None
  matcher = parse_route_matcher(chain.links[0].args)
  if matcher is None:
    return None
  return AliasBinding(
    alias=strip_quotes(alias_arg),
    url_pattern=matcher.url,
    method=matcher.method,
    is_regex=matcher.is_regex,
    is_literal=matcher.is_literal,
  )


def url_match_substring(url: str) -> str:
  """
  Reduces a glob URL to the literal substring used for response matching.

  `'/api/books/*'` becomes `'/api/books'` and `'**/api/users'` becomes
  `'/api/users'`; URLs without wildcards are returned unchanged.

  Args:
      url: Unquoted URL pattern.

  Returns:
      str: The longest literal segment of the pattern.
  """
  if "*" not in url:
    return url
  segments = [s for s in url.split("*") if s]
  if not segments:
    return url
  best = max(segments, key=len)
  return best.rstrip("/") or best


def response_predicate(binding: Optional[AliasBinding], alias: str) -> str:
  """
  Renders the `waitForResponse` predicate for an alias reference.

  Args:
      binding: Resolved binding, or None for an unresolved alias.
      alias: Alias reference (used as the fallback substring).

  Returns:
      str: A JavaScript arrow function over `response`.
  """
  if binding is None:
    return f"response => response.url().includes({js_string(alias.lstrip('@'))})"
  if binding.is_regex:
    check = f"{binding.url_pattern}.test(response.url())"
  elif binding.is_literal:
    check = f"response.url().includes({js_string(url_match_substring(binding.url_pattern))})"
  else:
    check = f"response.url().includes({binding.url_pattern})"
  if binding.method:
    check += f" && response.request().method() === {js_string(binding.method)}"
  return f"response => {check}"


def is_alias_reference(value: str) -> bool:
  return is_string_literal(value) and bool(re.match(r"@[\w$.-]+$", strip_quotes(value)))
