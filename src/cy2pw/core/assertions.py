"""
Assertion Vocabulary Rewriter.

Translates the two assertion dialects found in Cypress specs into Playwright
`expect` matchers:

1.  **Chainer assertions**: `cy.get(sel).should('have.length', 3)`, handled by
    `convert_should`.
2.  **BDD expectations**: `expect($el).to.be.visible`,
    `expect(x).to.deep.equal(y)`, handled by `rewrite_expectations`.

Both funnel into one matcher table. Subjects known to be locators get the
web-first matchers (`toBeVisible`, `toHaveCount`, `toContainText`); other
subjects get the generic value matchers (`toBe`, `toContain`, `toHaveLength`).
Every produced assertion is awaited.
"""

import re
from typing import Iterable, List, Optional, Tuple

from cy2pw.core.scanning import (
  apply_replacements,
  find_matching,
  is_string_literal,
  mask_literals,
  split_top_level,
  strip_quotes,
)

LANGUAGE_CHAINS = {
  "to",
  "be",
  "been",
  "is",
  "that",
  "which",
  "and",
  "has",
  "have",
  "with",
  "at",
  "of",
  "same",
  "but",
  "does",
  "still",
  "also",
  "own",
  "nested",
  "any",
  "all",
  "itself",
}

LOCATOR_STATES = {
  "visible": "toBeVisible",
  "hidden": "toBeHidden",
  "checked": "toBeChecked",
  "selected": "toBeChecked",
  "disabled": "toBeDisabled",
  "enabled": "toBeEnabled",
  "focused": "toBeFocused",
  "focus": "toBeFocused",
  "editable": "toBeEditable",
}

COMPARATORS = {
  "above": "toBeGreaterThan",
  "gt": "toBeGreaterThan",
  "greaterThan": "toBeGreaterThan",
  "below": "toBeLessThan",
  "lt": "toBeLessThan",
  "lessThan": "toBeLessThan",
  "least": "toBeGreaterThanOrEqual",
  "gte": "toBeGreaterThanOrEqual",
  "greaterThanOrEqual": "toBeGreaterThanOrEqual",
  "most": "toBeLessThanOrEqual",
  "lte": "toBeLessThanOrEqual",
  "lessThanOrEqual": "toBeLessThanOrEqual",
}

_CONTAINS = {"include", "includes", "contain", "contains"}
_EQUALS = {"equal", "equals", "eq"}

_EXPECT_RE = re.compile(r"(?<![\w$.])expect\s*\(")
_MEMBER_RE = re.compile(r"\s*\.\s*([A-Za-z_$][\w$]*)")
_LOCATOR_EXPR_RE = re.compile(r"^(?:page|[A-Za-z_$][\w$]*)\.(?:locator|getBy\w+)\(")
_TARGET_MATCHER_RE = re.compile(r"^to[A-Z]")
_REGEX_SPECIALS = re.compile(r"([.*+?^${}()|\[\]\\/])")

PAGE_URL = "page.url()"
PAGE_TITLE = "await page.title()"


def regex_from_literal(value: str) -> str:
  """
  Turns a string literal into an escaped regex literal.

  Args:
      value: JavaScript expression, typically a quoted string.

  Returns:
      str: `/escaped/` for string literals, `new RegExp(value)` otherwise.
  """
  if is_string_literal(value) and not value.strip().startswith("`"):
    return "/" + _REGEX_SPECIALS.sub(r"\\\1", strip_quotes(value)) + "/"
  if value.strip().startswith("/"):
    return value.strip()
  return f"new RegExp({value})"


def is_locator_subject(subject: str, locator_names: Iterable[str] = ()) -> bool:
  subject = subject.strip()
  return subject in set(locator_names) or bool(_LOCATOR_EXPR_RE.match(subject))


def build_matcher(
  subject: str,
  is_locator: bool,
  words: List[str],
  args: List[str],
  negated: bool = False,
  deep: bool = False,
) -> Optional[str]:
  """
  Builds an (unawaited) Playwright assertion expression.

  Args:
      subject: Expression under test.
      is_locator: True for locator subjects (web-first matchers).
      words: Meaningful assertion words with language chains removed, e.g.
          `['visible']` or `['length', 'greaterThan']`.
      args: Argument expressions of the terminal word.
      negated: True when the chain contained `not`.
      deep: True when the chain contained `deep`.

  Returns:
      Optional[str]: The assertion expression, or None when unsupported.
  """
  if not words:
    return None
  neg = ".not" if negated else ""
  joined = ", ".join(args)
  first = args[0] if args else ""

  if len(words) == 2 and words[0] in _CONTAINS and words[1] == "text":
    words = [words[0]]
  if len(words) == 2 and words[0] in ("length", "lengthOf") and words[1] in COMPARATORS:
    measured = f"await {subject}.count()" if is_locator else f"{subject}.length"
    return f"expect({measured}){neg}.{COMPARATORS[words[1]]}({joined})"
  if len(words) == 2 and words[0] == "property" and words[1] in _EQUALS | {"eql"} and len(args) == 1:
    return None
  if len(words) != 1:
    return None

  word = words[0]
  if word in LOCATOR_STATES and not args:
    return f"expect({subject}){neg}.{LOCATOR_STATES[word]}()"
  if word == "exist":
    if is_locator:
      return f"expect({subject}).toHaveCount(0)" if negated else f"expect({subject}).toBeAttached()"
    return f"expect({subject}).toBeUndefined()" if negated else f"expect({subject}).toBeDefined()"
  if word == "empty":
    matcher = "toBeEmpty()" if is_locator else "toHaveLength(0)"
    return f"expect({subject}){neg}.{matcher}"
  if word in ("true", "false"):
    return f"expect({subject}){neg}.toBe({word})"
  if word == "null":
    return f"expect({subject}){neg}.toBeNull()"
  if word == "undefined":
    return f"expect({subject}){neg}.toBeUndefined()"
  if word == "ok":
    return f"expect({subject}){neg}.toBeTruthy()"
  if word == "NaN":
    return f"expect({subject}){neg}.toBeNaN()"
  if not args:
    return None

  if word in _EQUALS or word == "eql":
    if subject == PAGE_URL:
      return f"expect(page){neg}.toHaveURL({first})"
    if subject == PAGE_TITLE:
      return f"expect(page){neg}.toHaveTitle({first})"
    if is_locator:
      return f"expect({subject}){neg}.toHaveText({first})"
    matcher = "toEqual" if deep or word == "eql" else "toBe"
    return f"expect({subject}){neg}.{matcher}({first})"
  if word in _CONTAINS or word == "string":
    if subject == PAGE_URL:
      return f"expect(page){neg}.toHaveURL({regex_from_literal(first)})"
    if subject == PAGE_TITLE:
      return f"expect(page){neg}.toHaveTitle({regex_from_literal(first)})"
    if is_locator:
      return f"expect({subject}){neg}.toContainText({first})"
    matcher = "toContainEqual" if deep else "toContain"
    return f"expect({subject}){neg}.{matcher}({first})"
  if word in ("match", "matches"):
    if subject == PAGE_URL:
      return f"expect(page){neg}.toHaveURL({first})"
    if is_locator:
      return f"expect({subject}){neg}.toHaveText({first})"
    return f"expect({subject}){neg}.toMatch({first})"
  if word in ("property", "ownProperty", "haveOwnProperty"):
    return f"expect({subject}){neg}.toHaveProperty({joined})"
  if word in ("length", "lengthOf"):
    matcher = "toHaveCount" if is_locator else "toHaveLength"
    return f"expect({subject}){neg}.{matcher}({first})"
  if word in COMPARATORS:
    measured = f"await {subject}.count()" if is_locator else subject
    return f"expect({measured}){neg}.{COMPARATORS[word]}({first})"
  if word in ("a", "an"):
    if strip_quotes(first) == "array":
      return f"expect(Array.isArray({subject})){neg}.toBe(true)"
    return f"expect(typeof {subject}){neg}.toBe({first})"
  if word in ("instanceOf", "instanceof"):
    return f"expect({subject}){neg}.toBeInstanceOf({first})"
  if word == "text":
    matcher = "toHaveText" if is_locator else "toBe"
    return f"expect({subject}){neg}.{matcher}({first})"
  if word == "value":
    return f"expect({subject}){neg}.toHaveValue({first})"
  if word in ("attr", "attribute"):
    return f"expect({subject}){neg}.toHaveAttribute({joined})"
  if word == "class":
    return f"expect({subject}){neg}.toHaveClass({regex_from_literal(first)})"
  if word == "css":
    return f"expect({subject}){neg}.toHaveCSS({joined})"
  if word == "id":
    return f"expect({subject}){neg}.toHaveId({first})"
  if word == "prop":
    return f"expect({subject}){neg}.toHaveJSProperty({joined})"
  if word == "oneOf":
    return f"expect({first}){neg}.toContain({subject})"
  if word in ("closeTo", "approximately"):
    return f"expect({subject}){neg}.toBeCloseTo({first})"
  if word in ("members", "includeMembers"):
    return f"expect({subject}){neg}.toEqual(expect.arrayContaining({first}))"
  return None


def _meaningful(words: List[str]) -> Tuple[List[str], bool, bool]:
  negated = words.count("not") % 2 == 1
  deep = "deep" in words
  kept = [w for w in words if w not in LANGUAGE_CHAINS and w not in ("not", "deep")]
  return kept, negated, deep


def convert_should(subject: str, is_locator: bool, args: List[str]) -> Tuple[Optional[str], Optional[str]]:
  """
  Converts a `.should(chainer, ...args)` link into an awaited statement.

  Args:
      subject: Expression the assertion applies to.
      is_locator: Whether `subject` is a locator.
      args: The raw `should` arguments; the first is the chainer string.

  Returns:
      Tuple[Optional[str], Optional[str]]: `(statement, None)` on success, or
      `(None, issue)` describing why the assertion could not be mapped.
  """
  if not args or not is_string_literal(args[0]):
    return None, "Callback assertions in .should() need manual conversion"
  chainer = strip_quotes(args[0])
  words, negated, deep = _meaningful(chainer.split("."))
  expression = build_matcher(subject, is_locator, words, args[1:], negated, deep)
  if expression is None:
    return None, f"Unsupported assertion chainer '{chainer}'"
  return f"await {expression};", None


def rewrite_expectations(text: str, locator_names: Iterable[str] = ()) -> Tuple[str, List[str]]:
  """
  Rewrites every BDD `expect(...)` chain in `text` into a Playwright matcher.

  Expectations already written with Playwright matchers (`toBeVisible`, ...)
  are left alone, so the rewrite is safe to run on converted code.

  Args:
      text: Callback body or statement text.
      locator_names: Identifiers bound to locators in the current scope.

  Returns:
      Tuple[str, List[str]]: The rewritten text and issues for assertions that
      could not be mapped (left unchanged).
  """
  names = set(locator_names)
  masked = mask_literals(text)
  edits = []
  issues = []
  covered_until = -1
  for match in _EXPECT_RE.finditer(masked):
    if match.start() < covered_until:
      continue
    open_index = match.end() - 1
    close = find_matching(masked, open_index)
    if close is None:
      continue
    segments, end = _member_chain(text, masked, close + 1)
    if not segments:
      continue
    first_word = segments[0][0]
    second_word = segments[1][0] if len(segments) > 1 else ""
    if _TARGET_MATCHER_RE.match(first_word) or (first_word == "not" and _TARGET_MATCHER_RE.match(second_word)):
      covered_until = end
      continue
    if first_word in ("resolves", "rejects"):
      continue

    subject = text[open_index + 1 : close].strip()
    words = [name for name, _ in segments]
    kept, negated, deep = _meaningful(words)
    call_args = [args for name, args in segments if args is not None and name in kept]
    terminal_args = split_top_level(call_args[-1]) if call_args else []
    if kept and kept[0] == "property" and len(kept) == 2 and kept[1] in _EQUALS | {"eql"}:
      property_args = [args for name, args in segments if name == "property"]
      merged = split_top_level(property_args[0]) + terminal_args if property_args else terminal_args
      expression = f"expect({subject}){'.not' if negated else ''}.toHaveProperty({', '.join(merged)})"
    else:
      expression = build_matcher(subject, is_locator_subject(subject, names), kept, terminal_args, negated, deep)
    if expression is None:
      issues.append(f"Unsupported assertion: {text[match.start() : end].strip()}")
      covered_until = end
      continue
    prefix = "" if re.search(r"await\s*$", masked[: match.start()]) else "await "
    edits.append((match.start(), end, prefix + expression))
    covered_until = end
  return apply_replacements(text, edits), issues


def _member_chain(text: str, masked: str, pos: int) -> Tuple[List[Tuple[str, Optional[str]]], int]:
  """Reads `.word` / `.word(args)` segments following an expect call."""
  segments: List[Tuple[str, Optional[str]]] = []
  end = pos
  while True:
    match = _MEMBER_RE.match(masked, pos)
    if not match:
      break
    name = match.group(1)
    pos = match.end()
    probe = pos
    while probe < len(masked) and masked[probe] in " \t":
      probe += 1
    args = None
    if probe < len(masked) and masked[probe] == "(":
      close = find_matching(masked, probe)
      if close is None:
        break
      args = text[probe + 1 : close]
      pos = close + 1
    segments.append((name, args))
    end = pos
  return segments, end
