"""
Conversion Data Model.

Pydantic models shared by the extractor, the transformers and the
orchestrator:

1.  `Pattern`: a tagged span of source text found by the extractor.
2.  `ConversionUnit`: the immutable per-pattern result of a transformer.
3.  `ConversionSummary`: aggregate statistics for one file.
4.  `FileConversionResult`: everything produced for one converted file.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, computed_field

from cy2pw.enums import Complexity, PatternKind


class Pattern(BaseModel):
  """
  A self-contained span of source text tagged with a coarse kind.
  """

  model_config = ConfigDict(frozen=True)

  kind: PatternKind = Field(..., description="Pattern family the span belongs to.")
  raw_text: str = Field(..., description="The exact source text of the span.")
  complexity: Complexity = Field(Complexity.LOW, description="Coarse complexity estimated at extraction time.")
  start: int = Field(0, description="Start offset in the buffer snapshot the span was extracted from.")
  end: int = Field(0, description="End offset (exclusive) in the same snapshot.")

  @classmethod
  def from_text(cls, kind: PatternKind, text: str, complexity: Complexity = Complexity.LOW) -> "Pattern":
    """Wraps a standalone snippet as a pattern spanning the whole text."""
    return cls(kind=kind, raw_text=text, complexity=complexity, start=0, end=len(text))


class ConversionMetadata(BaseModel):
  """
  Per-unit metadata.

  Besides the two common fields, transformers attach kind-specific extras
  (`shape`, `wait_type`, `strategy`, ...), which pydantic keeps as
  attributes.
  """

  model_config = ConfigDict(extra="allow", frozen=True)

  complexity: Complexity = Field(Complexity.LOW, description="Complexity of the converted pattern.")
  requires_manual_review: bool = Field(False, description="True if a human must complete the rewrite.")

  def extra(self, key: str, default: Any = None) -> Any:
    """Reads a kind-specific field, returning `default` when absent."""
    return (self.model_extra or {}).get(key, default)


class ConversionUnit(BaseModel):
  """
  Result of converting one extracted pattern. Immutable once created.
  """

  model_config = ConfigDict(frozen=True)

  kind: PatternKind = Field(..., description="Family of the converted pattern.")
  original_pattern: str = Field(..., description="Source text of the pattern.")
  rewritten_text: str = Field(..., description="Replacement text spliced into the file.")
  is_structurally_valid: bool = Field(True, description="Delimiter balance and marker check of the rewrite.")
  conversion_succeeded: bool = Field(True, description="False when the pattern was preserved for manual work.")
  notes: List[str] = Field(default_factory=list, description="Human-readable conversion notes.")
  metadata: ConversionMetadata = Field(default_factory=ConversionMetadata)

  @property
  def requires_manual_review(self) -> bool:
    return self.metadata.requires_manual_review

  @property
  def required_imports(self) -> List[str]:
    return list(self.metadata.extra("required_imports", []) or [])


class ConversionSummary(BaseModel):
  """
  Aggregate statistics over all units of one file.
  """

  total_patterns: int = 0
  converted_patterns: int = 0
  failed_patterns: int = 0
  manual_review_required: int = 0
  complexity_distribution: Dict[str, int] = Field(
    default_factory=lambda: {c.value: 0 for c in Complexity},
    description="Unit counts per complexity level.",
  )

  @computed_field  # type: ignore[prop-decorator]
  @property
  def success_rate(self) -> int:
    """Percentage of converted patterns, 100 for a file without patterns."""
    if self.total_patterns == 0:
      return 100
    return round(self.converted_patterns / self.total_patterns * 100)

  @classmethod
  def from_units(cls, units: List[ConversionUnit]) -> "ConversionSummary":
    distribution = {c.value: 0 for c in Complexity}
    for unit in units:
      distribution[unit.metadata.complexity.value] += 1
    converted = sum(1 for u in units if u.conversion_succeeded)
    return cls(
      total_patterns=len(units),
      converted_patterns=converted,
      failed_patterns=len(units) - converted,
      manual_review_required=sum(1 for u in units if u.requires_manual_review),
      complexity_distribution=distribution,
    )

  @property
  def dominant_complexity(self) -> str:
    """Most frequent complexity level; ties resolve towards the lower level."""
    order = [c.value for c in Complexity]
    return max(order, key=lambda level: (self.complexity_distribution.get(level, 0), -order.index(level)))


class FileConversionResult(BaseModel):
  """
  Structured result of converting a single file.
  """

  file_path: str = Field("<string>", description="Logical path of the converted file.")
  original_code: str = Field("", description="Input source text.")
  converted_code: str = Field("", description="Rewritten source text.")
  is_valid: bool = Field(True, description="Result of the structural self-check.")
  conversion_succeeded: bool = Field(True, description="Valid and no failed pattern.")
  summary: ConversionSummary = Field(default_factory=ConversionSummary)
  notes: List[str] = Field(default_factory=list, description="Human-readable file-level notes.")
  detailed_results: List[ConversionUnit] = Field(default_factory=list, description="Per-pattern units.")
  validation_errors: List[str] = Field(default_factory=list, description="Structural check failures.")
  trace_events: List[Dict[str, Any]] = Field(default_factory=list, description="Execution trace events.")

  @property
  def has_manual_review(self) -> bool:
    return self.summary.manual_review_required > 0
