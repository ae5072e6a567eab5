"""
Conversion Unit Construction.

Helpers shared by the transformers to turn a finished `ConversionContext`
into an immutable `ConversionUnit`, and to build the failed unit that keeps
the original text under a manual review marker.
"""

from typing import Any, List, Optional, Sequence

from cy2pw.config import DEFAULT_MALFORMED_MARKERS
from cy2pw.core.commands import manual_comment
from cy2pw.core.context import ConversionContext
from cy2pw.core.models import ConversionMetadata, ConversionUnit
from cy2pw.core.scanning import normalize_span
from cy2pw.core.validation import BRACKET_PAIRS
from cy2pw.enums import Complexity, PatternKind


def bracket_balance(text: str) -> List[int]:
  """Open-minus-close count per bracket type."""
  return [text.count(opener) - text.count(closer) for opener, closer, _ in BRACKET_PAIRS]


def is_well_formed(original: str, rewritten: str, markers: Optional[Sequence[str]] = None) -> bool:
  """
  Checks a rewritten span against the span it replaces.

  The rewrite must leave every bracket type exactly as balanced as the
  original (header spans such as `describe('x', () => {` are open by
  nature) and contain no malformed-output marker.

  Args:
      original: Source span.
      rewritten: Replacement text.
      markers: Malformed-output markers.

  Returns:
      bool: True when the rewrite is structurally sound.
  """
  if bracket_balance(original) != bracket_balance(rewritten):
    return False
  markers = DEFAULT_MALFORMED_MARKERS if markers is None else markers
  return not any(marker and marker in rewritten for marker in markers)


def make_unit(
  kind: PatternKind,
  original: str,
  rewritten: str,
  context: ConversionContext,
  complexity: Complexity,
  succeeded: bool = True,
  manual: bool = False,
  **extra: Any,
) -> ConversionUnit:
  """
  Builds the unit for a converted pattern.

  Review issues collected on the context are appended to the notes, and any
  issue marks the unit for manual review.

  Args:
      kind: Pattern family.
      original: Source text of the pattern.
      rewritten: Replacement text.
      context: Context the pattern was converted under.
      complexity: Final complexity.
      succeeded: False when the original was preserved for manual work.
      manual: Forces `requires_manual_review`.
      **extra: Kind-specific metadata fields.

  Returns:
      ConversionUnit: The frozen result.
  """
  notes = list(context.notes) + [f"Manual review: {issue}" for issue in context.issues]
  metadata = ConversionMetadata(
    complexity=complexity,
    requires_manual_review=manual or context.requires_manual_review or not succeeded,
    required_imports=list(context.imports),
    **extra,
  )
  return ConversionUnit(
    kind=kind,
    original_pattern=original,
    rewritten_text=rewritten,
    is_structurally_valid=is_well_formed(original, rewritten, context.config.malformed_markers),
    conversion_succeeded=succeeded,
    notes=notes,
    metadata=metadata,
  )


def failed_unit(
  kind: PatternKind,
  original: str,
  message: str,
  complexity: Complexity = Complexity.HIGH,
  notes: Optional[List[str]] = None,
  **extra: Any,
) -> ConversionUnit:
  """
  Builds a failed unit preserving `original` under a manual review marker.

  Args:
      kind: Pattern family.
      original: Source text of the pattern.
      message: Reason shown in the marker comment and the notes.
      complexity: Complexity to report.
      notes: Additional notes.
      **extra: Kind-specific metadata fields.

  Returns:
      ConversionUnit: The failed unit.
  """
  rewritten = f"{manual_comment(message)}\n{normalize_span(original)}"
  return ConversionUnit(
    kind=kind,
    original_pattern=original,
    rewritten_text=rewritten,
    is_structurally_valid=is_well_formed(original, rewritten),
    conversion_succeeded=False,
    notes=(notes or []) + [f"Manual review: {message}"],
    metadata=ConversionMetadata(complexity=complexity, requires_manual_review=True, **extra),
  )
