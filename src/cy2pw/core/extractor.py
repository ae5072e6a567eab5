"""
Pattern Extractor.

Locates the source spans each pattern family converts. Extraction is
structural rather than a full parse: an anchor (`cy.` not preceded by an
identifier character or `.`) starts a chain, the chain's `.link(...)` calls
are walked by balanced-delimiter matching on masked text, and a trailing
`;` is included. Spans with unbalanced delimiters are skipped.

Every family returns non-overlapping `Pattern` objects in textual order,
with offsets relative to the text passed in.
"""

import re
from typing import Callable, Dict, List

from cy2pw.core.aliases import is_alias_reference, parse_route_matcher
from cy2pw.core.chains import Chain, find_chains, has_then_attachment, parse_callback
from cy2pw.core.commands import KNOWN_COMMANDS, NODE_ONLY_COMMANDS, STANDARD_COMMANDS
from cy2pw.core.models import Pattern
from cy2pw.core.scanning import has_conditional, mask_literals, split_top_level
from cy2pw.core.structure import find_block_headers
from cy2pw.enums import Complexity, PatternKind

NETWORK_COMMANDS = {"wait", "intercept"}

_CALLBACK_RE = re.compile(r"=>|(?<![\w$.])function\b")


def chain_callbacks(chain: Chain) -> List[str]:
  """Bodies of every inline callback argument of the chain's links."""
  bodies = []
  for link in chain.links:
    for arg in link.arguments:
      callback = parse_callback(arg)
      if callback is not None:
        bodies.append(callback.body)
  return bodies


def estimate_complexity(chain: Chain) -> Complexity:
  """
  Coarse complexity of a chain, estimated before conversion.

  Args:
      chain: The extracted chain.

  Returns:
      Complexity: `high` for nested callback attachments or more than two
      callbacks, `medium` for intercepts with a response, alias waits,
      repeated `.then()` links and conditional logic, `low` otherwise.
  """
  bodies = chain_callbacks(chain)
  callbacks = len(_CALLBACK_RE.findall(mask_literals(chain.text)))
  if any(has_then_attachment(body) for body in bodies) or callbacks > 2:
    return Complexity.HIGH

  if chain.command == "intercept":
    matcher = parse_route_matcher(chain.links[0].args)
    if matcher is not None and matcher.response:
      return Complexity.MEDIUM
  if chain.command == "wait":
    args = split_top_level(chain.links[0].args)
    if args and (is_alias_reference(args[0]) or args[0].startswith("[")):
      return Complexity.MEDIUM
  if len(chain.then_links()) > 1 or any(has_conditional(body) for body in bodies):
    return Complexity.MEDIUM
  return Complexity.LOW


class PatternExtractor:
  """
  Finds candidate spans for every pattern family.
  """

  def extract_then_patterns(self, text: str) -> List[Pattern]:
    """
    Callback chains: `cy.*` chains with a `.then()` link whose root is not a
    wait or interception.

    The outermost chain wins; chains that do not qualify are searched inside,
    so callback chains nested in `.within()` bodies or command arguments are
    still found.
    """
    return self._chains(
      text,
      lambda chain: chain.has_link("then") and chain.command not in NETWORK_COMMANDS,
      lambda chain: PatternKind.THEN,
      skip_rejected=False,
    )

  def extract_wait_patterns(self, text: str) -> List[Pattern]:
    """Wait statements (kind `wait`) and interception declarations (kind `intercept`)."""
    return self._chains(
      text,
      lambda chain: chain.command in NETWORK_COMMANDS,
      lambda chain: PatternKind.INTERCEPT if chain.command == "intercept" else PatternKind.WAIT,
      skip_rejected=False,
    )

  def extract_command_patterns(self, text: str) -> List[Pattern]:
    """Outermost standard command chains without callback attachments."""
    standard = (STANDARD_COMMANDS | set(NODE_ONLY_COMMANDS)) - NETWORK_COMMANDS
    return self._chains(
      text,
      lambda chain: chain.command in standard and not chain.has_link("then"),
      lambda chain: PatternKind.COMMAND,
    )

  def extract_custom_command_patterns(self, text: str) -> List[Pattern]:
    """Outermost chains rooted at a command outside the known vocabulary."""
    return self._chains(
      text,
      lambda chain: chain.command not in KNOWN_COMMANDS and not chain.has_link("then"),
      lambda chain: PatternKind.CUSTOM_COMMAND,
    )

  def extract_structure_patterns(self, text: str) -> List[Pattern]:
    """
    Test block headers (`describe(...)`, `it(...)`, hooks) up to the opening
    brace of their callback body.
    """
    return [
      Pattern(kind=PatternKind.STRUCTURE, raw_text=text[h.start : h.end], start=h.start, end=h.end)
      for h in find_block_headers(text)
    ]

  def extract_all(self, text: str) -> Dict[str, List[Pattern]]:
    """
    Runs every family against the same text (used for scanning).

    Returns:
        Dict[str, List[Pattern]]: Patterns keyed by family name.
    """
    return {
      "then": self.extract_then_patterns(text),
      "wait": self.extract_wait_patterns(text),
      "command": self.extract_command_patterns(text),
      "customCommand": self.extract_custom_command_patterns(text),
      "structure": self.extract_structure_patterns(text),
    }

  def _chains(
    self,
    text: str,
    accept: Callable[[Chain], bool],
    kind_of: Callable[[Chain], PatternKind],
    skip_rejected: bool = True,
  ) -> List[Pattern]:
    patterns = []
    for chain in find_chains(text, ("cy",), accept=accept, skip_rejected=skip_rejected):
      patterns.append(
        Pattern(
          kind=kind_of(chain),
          raw_text=chain.text,
          complexity=estimate_complexity(chain),
          start=chain.start,
          end=chain.statement_end,
        )
      )
    return patterns