"""
Structural Validation.

Lightweight self-check run on converted code. It does not parse the output;
it verifies the properties the span-based rewriting can break:

1.  The output is not empty.
2.  Each bracket type is balanced by raw count.
3.  None of the known malformed-output markers is present.

A full parse of the output is left to downstream tooling (tsc, eslint).
"""

from typing import List, Optional, Sequence, Tuple

from cy2pw.config import DEFAULT_MALFORMED_MARKERS

BRACKET_PAIRS = (("(", ")", "parentheses"), ("[", "]", "square brackets"), ("{", "}", "braces"))


class StructuralValidator:
  """
  Checks converted code for structural defects.
  """

  def __init__(self, markers: Optional[Sequence[str]] = None):
    """
    Args:
        markers: Malformed-output markers; defaults to the built-in list.
    """
    self.markers = list(markers) if markers is not None else list(DEFAULT_MALFORMED_MARKERS)

  def check(self, code: str) -> List[str]:
    """
    Validates one code buffer.

    Args:
        code: Converted source text.

    Returns:
        List[str]: Error messages; empty when the code passes.
    """
    if not code.strip():
      return ["Converted code is empty"]
    errors = []
    for opener, closer, label in BRACKET_PAIRS:
      opened, closed = code.count(opener), code.count(closer)
      if opened != closed:
        errors.append(f"Unbalanced {label}: {opened} '{opener}' vs {closed} '{closer}'")
    for marker in self.markers:
      if marker and marker in code:
        errors.append(f"Malformed code marker found: {marker}")
    return errors

  def is_valid(self, code: str) -> bool:
    return not self.check(code)


def validate_structure(code: str, markers: Optional[Sequence[str]] = None) -> Tuple[bool, List[str]]:
  """
  Facade over `StructuralValidator`.

  Returns:
      Tuple[bool, List[str]]: Validity flag and error messages.
  """
  errors = StructuralValidator(markers).check(code)
  return not errors, errors
