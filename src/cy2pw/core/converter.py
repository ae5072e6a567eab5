"""
Orchestration Engine for Pattern Conversion.

This module provides the `ComplexPatternConverter`, the primary driver of the
migration. It runs every pattern family over one source file and merges the
results into a `FileConversionResult`.

The pipeline consists of:

1.  **Bind Pass**: builds the file's `AliasSymbolTable` from the original
    code, before any rewriting, so waits resolve aliases declared anywhere
    in the file.
2.  **Family Passes**: for each `PatternFamily` in order (callback chains,
    waits/intercepts, standard commands, custom commands, test structure):
    extract the family's spans from the current buffer, convert each into a
    `ConversionUnit`, and splice all replacements into the buffer against
    that one snapshot, from the end towards the start.
3.  **Import Fixing**: removes Cypress reference directives and injects the
    Playwright Test import plus imports required by the units.
4.  **Structural Validation**: checks delimiter balance and malformed-output
    markers.

Nothing is shared between calls: the alias table, the trace logger and the
set of declared names are created per file, so one converter can be reused
across files.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple, Union

from rich.markup import escape

from cy2pw.config import RuntimeConfig
from cy2pw.core.aliases import AliasSymbolTable
from cy2pw.core.command_transformer import CommandPatternTransformer
from cy2pw.core.custom_commands import CustomCommandHandler
from cy2pw.core.extractor import PatternExtractor
from cy2pw.core.imports import ImportInjector
from cy2pw.core.models import ConversionMetadata, ConversionSummary, ConversionUnit, FileConversionResult, Pattern
from cy2pw.core.scanning import apply_replacements, line_indent, mask_literals
from cy2pw.core.structure import StructureTransformer
from cy2pw.core.then_transformer import ThenPatternTransformer
from cy2pw.core.tracer import TraceLogger
from cy2pw.core.validation import validate_structure
from cy2pw.core.wait_transformer import WaitPatternTransformer
from cy2pw.enums import Complexity, PatternKind
from cy2pw.utils.console import log_error, log_warning

FAILURE_PREFIX = "// CONVERSION FAILED:"

# Identifiers of the Playwright test scope that bindings must not shadow.
RESERVED_NAMES = {"page", "test", "expect", "browser", "context", "request"}

_DECLARATION_RE = re.compile(r"(?<![\w$.])(?:const|let|var)\s+([A-Za-z_$][\w$]*)")

Transform = Callable[[Pattern, AliasSymbolTable, RuntimeConfig, Set[str]], ConversionUnit]


@dataclass(frozen=True)
class PatternFamily:
  """
  One extraction/transformation pass.

  Attributes:
      name: Family name used in notes and traces.
      kind_label: Human-readable label for per-family counts.
      extract: Finds the family's patterns in a buffer.
      transform: Converts one pattern.
      enabled: Decides from the configuration whether the pass runs.
  """

  name: str
  kind_label: str
  extract: Callable[[str], List[Pattern]]
  transform: Transform
  enabled: Callable[[RuntimeConfig], bool] = lambda config: True


def declared_names(code: str) -> Set[str]:
  """Identifiers declared with `const`/`let`/`var` anywhere in `code`."""
  return set(_DECLARATION_RE.findall(mask_literals(code))) | RESERVED_NAMES


def break_trailing_code(buffer: str, start: int, end: int, text: str) -> Tuple[int, str]:
  """
  Moves code sharing the last line of a multi-line replacement onto its own line.

  Args:
      buffer: Buffer snapshot the span belongs to.
      start: Span start.
      end: Span end.
      text: Replacement text.

  Returns:
      Tuple[int, str]: The span end (extended over the whitespace following
      it) and the replacement text.
  """
  if "\n" not in text:
    return end, text
  line_end = buffer.find("\n", end)
  rest = buffer[end : line_end if line_end != -1 else len(buffer)]
  tail = rest.lstrip(" \t")
  if not tail or tail[0] in ")]},;" or tail.startswith("//"):
    return end, text
  return end + len(rest) - len(tail), text + "\n" + line_indent(buffer, start)


class ComplexPatternConverter:
  """
  Converts Cypress spec files into Playwright Test files.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None):
    """
    Initializes the converter and its family pipeline.

    Args:
        config: Runtime configuration. Defaults apply when omitted.
    """
    self.config = config or RuntimeConfig()
    self.extractor = PatternExtractor()
    self.then_transformer = ThenPatternTransformer(self.config)
    self.wait_transformer = WaitPatternTransformer(self.config)
    self.command_transformer = CommandPatternTransformer(self.config)
    self.custom_handler = CustomCommandHandler(self.config)
    self.structure_transformer = StructureTransformer(self.config)
    self.families: List[PatternFamily] = [
      PatternFamily(
        "then", "callback chains", self.extractor.extract_then_patterns, self.then_transformer.convert_then_pattern
      ),
      PatternFamily(
        "wait", "wait/intercept patterns", self.extractor.extract_wait_patterns, self.wait_transformer.convert_wait_pattern
      ),
      PatternFamily(
        "command",
        "command chains",
        self.extractor.extract_command_patterns,
        self.command_transformer.convert_command_pattern,
      ),
      PatternFamily(
        "customCommand",
        "custom commands",
        self.extractor.extract_custom_command_patterns,
        self.custom_handler.convert_custom_command,
      ),
      PatternFamily(
        "structure",
        "test blocks",
        self.extractor.extract_structure_patterns,
        self.structure_transformer.convert_structure_pattern,
        lambda config: config.convert_test_structure,
      ),
    ]

  def convert_file(self, path: Union[str, Path]) -> FileConversionResult:
    """
    Reads and converts one file.

    Args:
        path: Path of the Cypress spec.

    Returns:
        FileConversionResult: The conversion result.

    Raises:
        OSError: If the file cannot be read.
    """
    file_path = Path(path)
    return self.convert(file_path.read_text(encoding="utf-8"), str(file_path))

  def convert(self, code: str, file_path: str = "<string>") -> FileConversionResult:
    """
    Converts one file's source text.

    Args:
        code: Cypress spec source.
        file_path: Logical path, used in notes and traces.

    Returns:
        FileConversionResult: The conversion result. Unexpected errors are
        returned as a whole-file failure result, never raised.
    """
    tracer = TraceLogger()
    tracer.start_phase("Conversion Pipeline", file_path)
    try:
      result = self._run(code, file_path, tracer)
    except Exception as e:
      log_error(f"Conversion of [path]{escape(file_path)}[/path] failed: {escape(str(e))}")
      tracer.log_warning(f"Pipeline aborted: {e}")
      tracer.end_phase()
      return self._failure_result(code, file_path, e, tracer)
    tracer.end_phase()
    result.trace_events = tracer.export()
    return result

  def _run(self, code: str, file_path: str, tracer: TraceLogger) -> FileConversionResult:
    tracer.start_phase("Alias Binding", "Scanning cy.intercept(...).as(...) declarations")
    aliases = AliasSymbolTable.from_source(code)
    for alias in dict.fromkeys(aliases.redefined):
      tracer.log_warning(f"Alias @{alias} is declared more than once, the latest declaration wins")
    tracer.end_phase()

    declared = declared_names(code)
    buffer = code
    units: List[ConversionUnit] = []
    family_units: Dict[str, List[ConversionUnit]] = {}

    for family in self.families:
      if not family.enabled(self.config):
        continue
      tracer.start_phase(f"Family: {family.name}", family.kind_label)
      patterns = family.extract(buffer)
      edits = []
      converted = family_units.setdefault(family.kind_label, [])
      for pattern in patterns:
        tracer.log_match(pattern.kind.value, pattern.raw_text, pattern.start)
        unit = family.transform(pattern, aliases, self.config, declared)
        units.append(unit)
        converted.append(unit)
        edits.append((pattern.start, *break_trailing_code(buffer, pattern.start, pattern.end, unit.rewritten_text)))
        tracer.log_mutation(pattern.kind.value, pattern.raw_text, unit.rewritten_text)
        if not unit.conversion_succeeded:
          tracer.log_warning(f"{family.name} pattern at offset {pattern.start} needs manual conversion")
      buffer = apply_replacements(buffer, edits)
      tracer.end_phase()

    tracer.start_phase("Import Fixer", "Resolving imports")
    required = [statement for unit in units for statement in unit.required_imports]
    buffer, injected = ImportInjector(self.config.base_import, tracer).apply(buffer, required)
    tracer.end_phase()

    tracer.start_phase("Structural Validation", "Verifying delimiter balance")
    is_valid, errors = validate_structure(buffer, self.config.malformed_markers)
    for error in errors:
      tracer.log_warning(error)
    tracer.end_phase()

    summary = ConversionSummary.from_units(units)
    if not is_valid:
      log_warning(f"[path]{escape(file_path)}[/path] failed structural validation")
    return FileConversionResult(
      file_path=file_path,
      original_code=code,
      converted_code=buffer,
      is_valid=is_valid,
      conversion_succeeded=is_valid and summary.failed_patterns == 0,
      summary=summary,
      notes=self._notes(summary, units, family_units, injected, errors),
      detailed_results=units,
      validation_errors=errors,
    )

  def _notes(
    self,
    summary: ConversionSummary,
    units: List[ConversionUnit],
    family_units: Dict[str, List[ConversionUnit]],
    injected: List[str],
    errors: List[str],
  ) -> List[str]:
    """Builds the human-readable file notes."""
    notes: List[str] = []
    if summary.total_patterns == 0:
      notes.append("No convertible patterns detected")
    else:
      rate = summary.success_rate
      notes.append(f"Pattern conversion completed with {rate}% success rate")
      for label, family_results in family_units.items():
        succeeded = sum(1 for unit in family_results if unit.conversion_succeeded)
        if succeeded:
          notes.append(f"Converted {succeeded} {label}")
        if len(family_results) > succeeded:
          notes.append(f"Could not convert {len(family_results) - succeeded} {label}")
      if summary.manual_review_required:
        notes.append(f"{summary.manual_review_required} patterns require manual review")
      notes.append(f"Dominant complexity: {summary.dominant_complexity}")
      high = summary.complexity_distribution.get(Complexity.HIGH.value, 0)
      if high:
        notes.append(f"{high} high-complexity patterns detected")
      malformed = sum(1 for unit in units if not unit.is_structurally_valid)
      if malformed:
        notes.append(f"Malformed code detected in {malformed} converted patterns")
      if rate >= 85:
        notes.append("Excellent conversion rate")
      elif rate >= 70:
        notes.append("Good conversion rate")
      elif rate < 50:
        notes.append("Low conversion rate, consider manual migration")
    for statement in injected:
      notes.append(f"Added import: {statement}")
    for error in errors:
      notes.append(f"Validation error: {error}")
    return notes

  def _failure_result(self, code: str, file_path: str, error: Exception, tracer: TraceLogger) -> FileConversionResult:
    """Whole-file failure: the original code behind a failure marker."""
    message = f"{type(error).__name__}: {error}"
    unit = ConversionUnit(
      kind=PatternKind.COMMAND,
      original_pattern=code,
      rewritten_text=code,
      is_structurally_valid=False,
      conversion_succeeded=False,
      notes=[f"Conversion failed: {message}"],
      metadata=ConversionMetadata(complexity=Complexity.HIGH, requires_manual_review=True),
    )
    return FileConversionResult(
      file_path=file_path,
      original_code=code,
      converted_code=f"{FAILURE_PREFIX} {' '.join(message.split())}\n{code}",
      is_valid=False,
      conversion_succeeded=False,
      summary=ConversionSummary.from_units([unit]),
      notes=[f"Conversion failed: {message}"],
      detailed_results=[unit],
      validation_errors=[message],
      trace_events=tracer.export(),
    )
