"""
Response Accessor Rewriting.

Cypress exposes interception and request results as plain objects
(`interception.response.statusCode`, `resp.body`). Playwright exposes them as
objects with accessor methods (`response.status()`, `await response.json()`).

This module rewrites property paths on a bound callback parameter into the
accessor calls. Accessors whose value must be extracted asynchronously or
decoded (bodies, request headers) are hoisted into a local variable declared
once per distinct accessor, at the top of the callback body.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from cy2pw.core.scanning import apply_replacements, is_identifier, mask_literals, rename_identifier, split_top_level
from cy2pw.enums import BindingKind

# (property path, accessor expression, hoisted variable name or None)
RESPONSE_ACCESSORS: List[Tuple[str, str, Optional[str]]] = [
  ("response.statusCode", "{p}.status()", None),
  ("response.statusMessage", "{p}.statusText()", None),
  ("response.body", "await {p}.json()", "responseBody"),
  ("response.headers", "{p}.headers()", None),
  ("request.url", "{p}.request().url()", None),
  ("request.method", "{p}.request().method()", None),
  ("request.body", "{p}.request().postDataJSON()", "requestBody"),
  ("request.headers", "{p}.request().headers()", "requestHeaders"),
]

API_RESPONSE_ACCESSORS: List[Tuple[str, str, Optional[str]]] = [
  ("status", "{p}.status()", None),
  ("statusText", "{p}.statusText()", None),
  ("headers", "{p}.headers()", None),
  ("isOkStatusCode", "{p}.ok()", None),
  ("body", "await {p}.json()", "responseBody"),
]

# Binding names that replace a destructured callback parameter.
DESTRUCTURED_BINDINGS = {BindingKind.RESPONSE: "interception", BindingKind.API_RESPONSE: "response"}

_LEFTOVER = {
  BindingKind.RESPONSE: r"(?:response|request)\b(?!\s*\()",
  BindingKind.API_RESPONSE: r"(?:duration|requestHeaders|requestBody|redirectedToUrl|allRequestResponses)\b",
}


@dataclass
class AccessorRewrite:
  """
  Result of rewriting accessors on one parameter.

  Attributes:
      text: Body text with property paths replaced.
      prelude: Hoisted extraction statements, in first-use order.
      used: Property paths that were found.
      issues: Accesses with no mapping.
  """

  text: str
  prelude: List[str] = field(default_factory=list)
  used: List[str] = field(default_factory=list)
  issues: List[str] = field(default_factory=list)


def accessor_table(kind: BindingKind) -> List[Tuple[str, str, Optional[str]]]:
  if kind == BindingKind.RESPONSE:
    return RESPONSE_ACCESSORS
  if kind == BindingKind.API_RESPONSE:
    return API_RESPONSE_ACCESSORS
  return []


def _path_regex(param: str, path: str) -> "re.Pattern[str]":
  parts = r"\s*\.\s*".join(re.escape(part) for part in path.split("."))
  return re.compile(rf"(?<![\w$.]){re.escape(param)}\s*\.\s*{parts}\b(?!\s*\()")


def unique_name(base: str, declared: Set[str]) -> str:
  """Returns `base`, or `base2`, `base3`, ... when already declared."""
  name = base
  counter = 2
  while name in declared:
    name = f"{base}{counter}"
    counter += 1
  declared.add(name)
  return name


def references_data(text: str, param: str, kind: BindingKind) -> bool:
  """True when `text` reads any mapped property of `param`."""
  masked = mask_literals(text)
  return any(_path_regex(param, path).search(masked) for path, _, _ in accessor_table(kind))


def destructured_fields(param: str, kind: BindingKind) -> Optional[Dict[str, str]]:
  """
  Parses an object-destructuring callback parameter.

  `{ response }` maps the local `response` to the `response` property and
  `{ body: data }` maps `data` to `body`.

  Args:
      param: Parameter text as written.
      kind: Kind of the value being destructured.

  Returns:
      Optional[Dict[str, str]]: Local name to property name, or None when the
      pattern uses defaults, rest elements, nesting or a property with no
      accessor mapping.
  """
  text = param.strip()
  if not (text.startswith("{") and text.endswith("}")):
    return None
  roots = {path.split(".")[0] for path, _, _ in accessor_table(kind)}
  fields: Dict[str, str] = {}
  for item in split_top_level(text[1:-1]):
    if not item.strip():
      continue
    key, _, local = item.partition(":")
    key = key.strip()
    local = local.strip() or key
    if key not in roots or not is_identifier(local):
      return None
    fields[local] = key
  return fields or None


def expand_destructured(param: str, body: str, kind: BindingKind, declared: Set[str]) -> Optional[Tuple[str, str]]:
  """
  Replaces a destructuring parameter with a single named binding.

  Each destructured local becomes a property path on the binding
  (`response.body` becomes `interception.response.body`), so the accessor
  table applies to it like to a plain parameter.

  Args:
      param: Parameter text, e.g. `{ response }`.
      body: Callback body.
      kind: Kind of the value being destructured.
      declared: Names the binding must not take. Left unchanged.

  Returns:
      Optional[Tuple[str, str]]: The binding name and rewritten body, or None
      when the pattern is not supported.
  """
  fields = destructured_fields(param, kind)
  if fields is None:
    return None
  taken = set(declared) | set(re.findall(r"[A-Za-z_$][\w$]*", mask_literals(body)))
  name = unique_name(DESTRUCTURED_BINDINGS.get(kind, "subject"), taken)
  for local, key in fields.items():
    body = rename_identifier(body, local, f"{name}.{key}")
  return name, body


def rewrite_accessors(text: str, param: str, kind: BindingKind, declared: Optional[Set[str]] = None) -> AccessorRewrite:
  """
  Rewrites property paths of `param` into accessor calls.

  Args:
      text: Callback body.
      param: Bound parameter name (e.g. `interception`).
      kind: `BindingKind.RESPONSE` or `BindingKind.API_RESPONSE`.
      declared: Names already declared in the enclosing output scope; hoisted
          variables avoid them and are added to the set.

  Returns:
      AccessorRewrite: Rewritten text, hoisted prelude and issues.
  """
  declared = declared if declared is not None else set()
  result = AccessorRewrite(text=text)
  for path, expression, variable in accessor_table(kind):
    masked = mask_literals(result.text)
    matches = list(_path_regex(param, path).finditer(masked))
    if not matches:
      continue
    result.used.append(path)
    inline = expression.format(p=param)
    if variable:
      name = unique_name(variable, declared)
      result.prelude.append(f"const {name} = {inline};")
      replacement = name
    else:
      replacement = inline
    result.text = apply_replacements(result.text, [(m.start(), m.end(), replacement) for m in matches])

  leftover = _LEFTOVER.get(kind)
  if leftover:
    masked = mask_literals(result.text)
    for match in re.finditer(rf"(?<![\w$.]){re.escape(param)}\s*\.\s*{leftover}", masked):
      result.issues.append(f"Unmapped access '{result.text[match.start() : match.end()]}' needs manual conversion")
  return result


def path_expression(subject: str, path: str, kind: BindingKind) -> Optional[str]:
  """
  Maps an `.its('response.body.id')` style path onto accessor calls.

  Args:
      subject: Identifier holding the response.
      path: Dotted property path.
      kind: Binding kind of `subject`.

  Returns:
      Optional[str]: The accessor expression, or None when unmapped.
  """
  for mapped, expression, _ in accessor_table(kind):
    if path == mapped or path.startswith(mapped + "."):
      inline = expression.format(p=subject)
      rest = path[len(mapped) :]
      if rest and inline.startswith("await "):
        inline = f"({inline})"
      return inline + rest
  return None
