"""
Invocation Chain Model.

Parses fluent invocation chains such as::

    cy.get('[data-testid="submit"]').should('be.visible').then(($btn) => { ... })

into a receiver plus an ordered list of `Link` calls, and inline callbacks
(arrow functions or `function` expressions) into parameters and a body.

All parsing works on masked text (see `cy2pw.core.scanning`) and slices the
original text for arguments, so literal contents are preserved verbatim.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from cy2pw.core.scanning import find_matching, mask_literals, split_top_level

_RECEIVER_RE = re.compile(r"[A-Za-z_$][\w$]*")
_LINK_RE = re.compile(r"\s*\.\s*([A-Za-z_$][\w$]*)\s*\(")

_ARROW_PARENS_RE = re.compile(r"\s*(async\s+)?\(([^()]*)\)\s*=>\s*")
_ARROW_BARE_RE = re.compile(r"\s*(async\s+)?([A-Za-z_$][\w$]*)\s*=>\s*")
_FUNCTION_RE = re.compile(r"\s*(async\s+)?function\b\s*[\w$]*\s*\(([^()]*)\)\s*")

_THEN_ATTACHMENT_RE = re.compile(r"\.\s*then\s*\(")


@dataclass
class Link:
  """
  A single `.name(args)` call in a chain.

  Attributes:
      name: Method name (`get`, `then`, `click`, ...).
      args: Raw argument text between the parentheses.
      start: Offset of the link (its dot, or the receiver for the root call).
      end: Offset just past the closing parenthesis.
  """

  name: str
  args: str
  start: int
  end: int

  @property
  def arguments(self) -> List[str]:
    return split_top_level(self.args)


@dataclass
class Chain:
  """
  A parsed invocation chain anchored at `receiver`.

  Offsets are relative to the text the chain was parsed from. `end` points
  past the last closing parenthesis; `statement_end` additionally covers a
  trailing semicolon.
  """

  receiver: str
  links: List[Link]
  start: int
  end: int
  statement_end: int
  text: str

  @property
  def command(self) -> str:
    """The first call of the chain (`get` for `cy.get(...).click()`)."""
    return self.links[0].name if self.links else ""

  @property
  def link_names(self) -> List[str]:
    return [link.name for link in self.links]

  def has_link(self, name: str) -> bool:
    return any(link.name == name for link in self.links)

  def then_links(self) -> List[Link]:
    return [link for link in self.links if link.name == "then"]

  def prefix(self, count: int) -> "Chain":
    """Returns a chain holding only the first `count` links."""
    kept = self.links[:count]
    end = kept[-1].end if kept else self.start + len(self.receiver)
    return Chain(
      receiver=self.receiver,
      links=kept,
      start=self.start,
      end=end,
      statement_end=end,
      text=self.text[: end - self.start],
    )


@dataclass
class Callback:
  """
  An inline callback argument.

  Attributes:
      params: Parameter texts (destructuring patterns are kept verbatim).
      body: Text between the braces, or the expression of a concise arrow.
      is_block: False for concise-body arrows (`x => x.length`).
      is_async: True when declared `async`.
  """

  params: List[str] = field(default_factory=list)
  body: str = ""
  is_block: bool = True
  is_async: bool = False

  @property
  def param(self) -> Optional[str]:
    return self.params[0] if self.params else None


def parse_chain(text: str, start: int, masked: Optional[str] = None) -> Optional[Chain]:
  """
  Parses the chain whose receiver begins at `start`.

  Args:
      text: Source text.
      start: Offset of the receiver identifier.
      masked: Pre-computed mask of `text` (computed when omitted).

  Returns:
      Optional[Chain]: The chain, or None when the receiver has no call links
      or a link's parentheses never balance.
  """
  masked = masked if masked is not None else mask_literals(text)
  match = _RECEIVER_RE.match(masked, start)
  if not match:
    return None
  receiver = match.group(0)
  pos = match.end()
  links: List[Link] = []
  while True:
    link_match = _LINK_RE.match(masked, pos)
    if not link_match:
      break
    open_index = link_match.end() - 1
    close = find_matching(masked, open_index)
    if close is None:
      return None
    link_start = start if not links else link_match.start()
    links.append(Link(link_match.group(1), text[open_index + 1 : close], link_start, close + 1))
    pos = close + 1
  if not links:
    return None
  end = pos
  statement_end = end
  probe = end
  while probe < len(masked) and masked[probe] in " \t":
    probe += 1
  if probe < len(masked) and masked[probe] == ";":
    statement_end = probe + 1
  return Chain(receiver, links, start, end, statement_end, text[start:statement_end])


def anchor_pattern(receivers: Iterable[str]) -> "re.Pattern[str]":
  names = "|".join(re.escape(r) for r in sorted(set(receivers), key=len, reverse=True))
  return re.compile(rf"(?<![\w$.])(?:{names})\s*\.")


def find_chains(
  text: str,
  receivers: Iterable[str] = ("cy",),
  masked: Optional[str] = None,
  accept=None,
  skip_rejected: bool = True,
) -> List[Chain]:
  """
  Finds chains rooted at any of `receivers`, in textual order.

  An accepted chain is never re-entered, so a chain nested inside an accepted
  one is not reported separately (outermost span wins).

  Args:
      text: Source text.
      receivers: Receiver identifiers to anchor on.
      masked: Pre-computed mask of `text`.
      accept: Optional predicate; chains failing it are not reported.
      skip_rejected: When False, scanning continues inside rejected chains so
          qualifying chains nested in their arguments are still found.

  Returns:
      List[Chain]: Non-overlapping chains ordered by position.
  """
  masked = masked if masked is not None else mask_literals(text)
  pattern = anchor_pattern(receivers)
  chains: List[Chain] = []
  pos = 0
  while True:
    match = pattern.search(masked, pos)
    if not match:
      break
    chain = parse_chain(text, match.start(), masked)
    if chain is None:
      pos = match.end()
      continue
    if accept is None or accept(chain):
      chains.append(chain)
      pos = chain.statement_end
    elif skip_rejected:
      pos = chain.statement_end
    else:
      pos = match.end()
  return chains


def parse_callback(arg_text: str) -> Optional[Callback]:
  """
  Parses an inline callback argument.

  Supports `(a, b) => { ... }`, `a => { ... }`, concise arrows, and
  `function (a) { ... }`, each optionally `async`.

  Args:
      arg_text: A single argument's raw text.

  Returns:
      Optional[Callback]: The callback, or None when the argument is not an
      inline function (e.g. a reference to a named function).
  """
  masked = mask_literals(arg_text)
  is_arrow = True
  match = _ARROW_PARENS_RE.match(masked) or _ARROW_BARE_RE.match(masked)
  if not match:
    match = _FUNCTION_RE.match(masked)
    is_arrow = False
  if not match:
    return None
  params = [p.strip() for p in split_top_level(arg_text[match.start(2) : match.end(2)])]
  params = [p for p in params if p]
  is_async = bool(match.group(1))
  rest = match.end()
  if rest < len(masked) and masked[rest] == "{":
    close = find_matching(masked, rest)
    if close is None or masked[close + 1 :].strip():
      return None
    return Callback(params, arg_text[rest + 1 : close], True, is_async)
  if not is_arrow:
    return None
  body = arg_text[rest:].strip()
  if not body:
    return None
  return Callback(params, body, False, is_async)


def callback_argument(link: Link) -> Optional[Callback]:
  """Parses the last argument of `link` as a callback (`.then(opts, cb)`)."""
  args = link.arguments
  return parse_callback(args[-1]) if args else None


def has_then_attachment(text: str) -> bool:
  return bool(_THEN_ATTACHMENT_RE.search(mask_literals(text)))


def has_invocation(text: str, receivers: Iterable[str] = ("cy",)) -> bool:
  return bool(anchor_pattern(receivers).search(mask_literals(text)))
